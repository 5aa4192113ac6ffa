"""
Demonstrativo de análise parsing tests
"""
from datetime import date
from decimal import Decimal

import pytest

from faturamento.schemas.tiss import StatusDemonstrativoGuia, StatusGlosa, TipoGuia
from faturamento.services.tiss.parsers import glosa_from_demonstrativo, parse_demonstrativo_xml


pytestmark = pytest.mark.unit

TODAY = date(2026, 1, 5)

DEMONSTRATIVO_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ans:mensagemTISS xmlns:ans="http://www.ans.gov.br/padroes/tiss/schemas">
  <ans:cabecalho>
    <ans:registroANS>123456</ans:registroANS>
  </ans:cabecalho>
  <ans:demonstrativoAnaliseConta>
    <ans:numeroLote>20251221-0001</ans:numeroLote>
    <ans:numeroProtocolo>PROT-99</ans:numeroProtocolo>
    <ans:dataProcessamento>2025-12-28</ans:dataProcessamento>
    <ans:guiaRecusada>
      <ans:numeroGuiaPrestador>G-0001</ans:numeroGuiaPrestador>
      <ans:dataExecucao>2025-12-15</ans:dataExecucao>
      <ans:valorInformado>150.00</ans:valorInformado>
      <ans:valorProcessado>0</ans:valorProcessado>
      <ans:valorGlosado>150.00</ans:valorGlosado>
    </ans:guiaRecusada>
    <ans:guiaProcessada>
      <ans:numeroGuiaPrestador>S-0001</ans:numeroGuiaPrestador>
      <ans:numeroGuiaOperadora>OP-77</ans:numeroGuiaOperadora>
      <ans:dataExecucao>2025-12-16</ans:dataExecucao>
      <ans:valorInformado>55,00</ans:valorInformado>
      <ans:valorProcessado>25,00</ans:valorProcessado>
      <ans:valorGlosado>30,00</ans:valorGlosado>
      <ans:itemGlosado>
        <ans:codigoProcedimento>40302016</ans:codigoProcedimento>
        <ans:valorGlosado>30.00</ans:valorGlosado>
        <ans:codigoGlosa>B2</ans:codigoGlosa>
      </ans:itemGlosado>
    </ans:guiaProcessada>
    <ans:guia>
      <ans:numeroGuiaPrestador>G-0002</ans:numeroGuiaPrestador>
      <ans:valorInformado>80.00</ans:valorInformado>
      <ans:valorProcessado>80.00</ans:valorProcessado>
    </ans:guia>
    <ans:valorInformadoTotal>285.00</ans:valorInformadoTotal>
    <ans:valorProcessadoTotal>105.00</ans:valorProcessadoTotal>
    <ans:valorTotalGlosado>180.00</ans:valorTotalGlosado>
  </ans:demonstrativoAnaliseConta>
</ans:mensagemTISS>"""


def test_lote_fields_and_totals():
    demonstrativo = parse_demonstrativo_xml(DEMONSTRATIVO_XML, today=TODAY)

    assert demonstrativo.numero_lote == "20251221-0001"
    assert demonstrativo.registro_ans == "123456"
    assert demonstrativo.protocolo == "PROT-99"
    assert demonstrativo.data_processamento == date(2025, 12, 28)
    assert demonstrativo.valor_informado == Decimal("285.00")
    assert demonstrativo.valor_processado == Decimal("105.00")
    assert demonstrativo.valor_glosado == Decimal("180.00")


def test_guides_in_element_order():
    guias = parse_demonstrativo_xml(DEMONSTRATIVO_XML, today=TODAY).guias

    assert [g.numero_guia_prestador for g in guias] == ["G-0001", "S-0001", "G-0002"]
    assert [g.status for g in guias] == [
        StatusDemonstrativoGuia.GLOSADA_TOTAL,
        StatusDemonstrativoGuia.GLOSADA_PARCIAL,
        StatusDemonstrativoGuia.APROVADA,
    ]


def test_guide_values_and_items():
    recusada, processada, aprovada = parse_demonstrativo_xml(DEMONSTRATIVO_XML, today=TODAY).guias

    assert recusada.data_execucao == date(2025, 12, 15)
    assert recusada.itens_glosados == []

    assert processada.numero_guia_operadora == "OP-77"
    assert processada.valor_informado == Decimal("55.00")
    assert processada.valor_processado == Decimal("25.00")
    assert processada.valor_glosado == Decimal("30.00")
    assert len(processada.itens_glosados) == 1
    item = processada.itens_glosados[0]
    assert item.codigo_procedimento == "40302016"
    assert item.descricao_glosa == "Quantidade acima do permitido"

    assert aprovada.valor_glosado == Decimal("0")
    assert aprovada.data_execucao == TODAY


def test_guide_totals_are_not_read_as_lote_totals():
    xml = (
        "<ans:guiaRecusada><ans:numeroGuiaPrestador>G-1</ans:numeroGuiaPrestador>"
        "<ans:valorTotalGlosado>10</ans:valorTotalGlosado></ans:guiaRecusada>"
    )
    demonstrativo = parse_demonstrativo_xml(xml, today=TODAY)
    assert demonstrativo.valor_glosado == Decimal("0")
    assert demonstrativo.guias[0].valor_glosado == Decimal("10")


@pytest.mark.parametrize("xml", ["", "garbage & more", "<ans:numeroLote>"])
def test_unreadable_input_gives_empty_demonstrativo(xml):
    demonstrativo = parse_demonstrativo_xml(xml, today=TODAY)
    assert demonstrativo.guias == []
    assert demonstrativo.data_processamento == TODAY
    assert demonstrativo.valor_glosado == Decimal("0")


def test_glosa_from_denied_guide():
    demonstrativo = parse_demonstrativo_xml(DEMONSTRATIVO_XML, today=TODAY)
    recusada = demonstrativo.guias[0]

    glosa = glosa_from_demonstrativo(recusada, demonstrativo.data_processamento, TipoGuia.CONSULTA)

    assert glosa.numero_guia_prestador == "G-0001"
    assert glosa.status == StatusGlosa.PENDENTE
    assert glosa.valor_original == Decimal("150.00")
    assert glosa.valor_aprovado == Decimal("0")
    assert glosa.data_recebimento == date(2025, 12, 28)
    assert glosa.prazo_recurso == date(2026, 1, 27)
    assert len(glosa.itens_glosados) == 1
    assert glosa.itens_glosados[0].codigo_glosa == "outros"
    assert glosa.itens_glosados[0].valor_glosado == Decimal("150.00")
