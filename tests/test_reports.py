"""
Billing summary and glosa analysis tests
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from faturamento.schemas.tiss import (
    Glosa,
    GuiaRecord,
    ItemGlosado,
    RecursoGlosa,
    StatusGlosa,
    StatusGuia,
    TipoGuia,
)
from faturamento.services.tiss.reports import build_analise_glosas, build_resumo_faturamento


pytestmark = pytest.mark.unit

INICIO = date(2025, 12, 1)
FIM = date(2025, 12, 31)


def make_record(n, registro_ans, valor_total, tipo=TipoGuia.CONSULTA, status=StatusGuia.ENVIADA,
                valor_glosado=None, valor_pago=None, glosas=()):
    return GuiaRecord(
        id=f"guia-{n}",
        clinic_id="clinic-abc",
        patient_id="patient-1",
        tipo=tipo,
        status=status,
        numero_guia_prestador=f"G-{n}",
        registro_ans=registro_ans,
        nome_operadora=f"Operadora {registro_ans}",
        data_atendimento=date(2025, 12, 10),
        valor_total=Decimal(valor_total),
        valor_glosado=Decimal(valor_glosado) if valor_glosado else None,
        valor_pago=Decimal(valor_pago) if valor_pago else None,
        glosas=list(glosas),
    )


def make_glosa(itens, status=StatusGlosa.PENDENTE, recuperado=None):
    valor = sum((Decimal(v) for _, v in itens), Decimal("0"))
    recursos = []
    if recuperado is not None:
        recursos.append(RecursoGlosa(
            id="recurso-1",
            glosa_id="glosa-1",
            data_envio=date(2025, 12, 20),
            valor_contestado=valor,
            valor_recuperado=Decimal(recuperado),
        ))
    return Glosa(
        id="glosa-1",
        data_recebimento=date(2025, 12, 15),
        prazo_recurso=date(2025, 12, 15) + timedelta(days=30),
        valor_glosado=valor,
        itens_glosados=[
            ItemGlosado(sequencial_item=n, codigo_glosa=codigo, valor_glosado=Decimal(v))
            for n, (codigo, v) in enumerate(itens, start=1)
        ],
        status=status,
        recursos=recursos,
    )


def test_resumo_empty_period_has_all_buckets():
    resumo = build_resumo_faturamento([], INICIO, FIM)
    assert resumo.total_guias == 0
    assert resumo.taxa_glosa == 0.0
    assert resumo.guias_por_tipo == {t.value: 0 for t in TipoGuia}
    assert resumo.guias_por_status == {s.value: 0 for s in StatusGuia}
    assert resumo.por_operadora == []
    assert resumo.periodo.inicio == INICIO


def test_resumo_totals_and_operators():
    guias = [
        make_record(1, "111111", "100", valor_glosado="20", valor_pago="80", status=StatusGuia.PAGA),
        make_record(2, "111111", "300", tipo=TipoGuia.SADT, status=StatusGuia.GLOSADA_PARCIAL, valor_glosado="30"),
        make_record(3, "222222", "100"),
    ]
    resumo = build_resumo_faturamento(guias, INICIO, FIM)

    assert resumo.total_guias == 3
    assert resumo.valor_total_faturado == Decimal("500")
    assert resumo.valor_total_glosado == Decimal("50")
    assert resumo.valor_total_recebido == Decimal("80")
    assert resumo.taxa_glosa == 10.0
    assert resumo.guias_por_tipo["consulta"] == 2
    assert resumo.guias_por_tipo["sadt"] == 1
    assert resumo.guias_por_status["paga"] == 1
    assert resumo.guias_por_status["enviada"] == 1

    operadoras = {o.registro_ans: o for o in resumo.por_operadora}
    assert operadoras["111111"].quantidade_guias == 2
    assert operadoras["111111"].valor_faturado == Decimal("400")
    assert operadoras["111111"].valor_glosado == Decimal("50")
    assert operadoras["222222"].valor_recebido == Decimal("0")


def test_analise_by_reason_and_operator():
    guias = [
        make_record(1, "111111", "200", glosas=[make_glosa([("A7", "60"), ("A1", "20")])]),
        make_record(2, "222222", "100", glosas=[
            make_glosa([("A7", "20")], status=StatusGlosa.RESOLVIDA, recuperado="20"),
        ]),
        make_record(3, "333333", "50"),
    ]
    analise = build_analise_glosas(guias, INICIO, FIM)

    assert analise.total_glosas == 2
    assert analise.valor_total_glosado == Decimal("100")
    assert analise.valor_recuperado == Decimal("20")
    assert analise.taxa_recuperacao == 20.0

    assert [m.motivo for m in analise.por_motivo] == ["A7", "A1"]
    a7 = analise.por_motivo[0]
    assert a7.quantidade == 2
    assert a7.valor == Decimal("80")
    assert a7.percentual == 80.0
    assert a7.descricao == "Valor acima do contratado"

    assert {o.registro_ans for o in analise.por_operadora} == {"111111", "222222"}


def test_analise_ignores_recovery_of_unresolved_glosas():
    guias = [
        make_record(1, "111111", "100", glosas=[
            make_glosa([("A1", "50")], status=StatusGlosa.EM_RECURSO, recuperado="50"),
        ]),
    ]
    analise = build_analise_glosas(guias, INICIO, FIM)
    assert analise.valor_recuperado == Decimal("0")
    assert analise.taxa_recuperacao == 0.0
