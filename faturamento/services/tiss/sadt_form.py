"""
SADT Form
Validation, totals and XML generation for the TISS 4.02.00 Guia SP/SADT
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from faturamento.schemas.tiss import GuiaSADT, ProcedimentoRealizado, TissXmlOptions
from faturamento.services.tiss.consultation_form import REGISTRO_ANS_PATTERN
from faturamento.services.tiss.xml_common import (
    PAD_CODIGO_PROCEDIMENTO,
    PAD_REGISTRO_ANS,
    XmlWriter,
    build_mensagem_tiss,
    format_currency,
    format_date,
    format_time,
    pad,
    write_beneficiario,
    write_contratado,
    write_profissional,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TOTALS
# =============================================================================

def calculate_valor_total(procedimento: ProcedimentoRealizado) -> Decimal:
    """Line total: quantidade realizada x valor unitário"""
    return Decimal(procedimento.quantidade_realizada) * procedimento.valor_unitario


def calculate_sadt_totals(procedimentos: Iterable[ProcedimentoRealizado]) -> Dict[str, Decimal]:
    """
    Sum procedure lines

    Returns:
        {"valorTotalProcedimentos", "valorTotalGeral"}; zeros for no lines
    """
    total = sum((calculate_valor_total(p) for p in procedimentos), Decimal("0"))
    return {
        "valorTotalProcedimentos": total,
        "valorTotalGeral": total,
    }


# =============================================================================
# VALIDATION
# =============================================================================

def validate_guia_sadt(guia: GuiaSADT) -> List[str]:
    """
    Validate required fields of a Guia SP/SADT

    Args:
        guia: Guide to validate

    Returns:
        Every violated rule as a message; empty when valid
    """
    errors = []

    if not REGISTRO_ANS_PATTERN.match(guia.registro_ans or ""):
        errors.append("Registro ANS deve ter 6 dígitos")

    if not guia.numero_guia_prestador:
        errors.append("Número da guia do prestador é obrigatório")

    if not guia.dados_beneficiario.numero_carteira:
        errors.append("Número da carteira do beneficiário é obrigatório")

    if not guia.dados_beneficiario.nome_beneficiario:
        errors.append("Nome do beneficiário é obrigatório")

    # Solicitante
    if not guia.contratado_solicitante.codigo_prestador_na_operadora:
        errors.append("Código do prestador solicitante é obrigatório")

    if not guia.profissional_solicitante.conselho_profissional:
        errors.append("Conselho profissional do solicitante é obrigatório")

    if not guia.profissional_solicitante.numero_conselho_profissional:
        errors.append("Número no conselho do solicitante é obrigatório")

    if not guia.profissional_solicitante.uf:
        errors.append("UF do conselho do solicitante é obrigatório")

    # Executante
    if not guia.contratado_executante.codigo_prestador_na_operadora:
        errors.append("Código do prestador executante é obrigatório")

    if not guia.profissional_executante.conselho_profissional:
        errors.append("Conselho profissional do executante é obrigatório")

    if not guia.profissional_executante.numero_conselho_profissional:
        errors.append("Número no conselho do executante é obrigatório")

    if not guia.profissional_executante.uf:
        errors.append("UF do conselho do executante é obrigatório")

    # Solicitação
    if not guia.carater_atendimento:
        errors.append("Caráter do atendimento é obrigatório")

    if guia.data_solicitacao is None:
        errors.append("Data da solicitação é obrigatória")

    if not guia.indicacao_clinica:
        errors.append("Indicação clínica é obrigatória")

    # Procedimentos
    if not guia.procedimentos_realizados:
        errors.append("Pelo menos um procedimento é obrigatório")

    for n, proc in enumerate(guia.procedimentos_realizados, start=1):
        if proc.data_realizacao is None:
            errors.append(f"Procedimento {n}: data de realização é obrigatória")
        if not proc.codigo_procedimento:
            errors.append(f"Procedimento {n}: código do procedimento é obrigatório")
        if not proc.descricao_procedimento:
            errors.append(f"Procedimento {n}: descrição é obrigatória")
        if proc.quantidade_realizada <= 0:
            errors.append(f"Procedimento {n}: quantidade deve ser maior que zero")
        if proc.valor_unitario < 0:
            errors.append(f"Procedimento {n}: valor unitário não pode ser negativo")

    if guia.valor_total_geral is None or guia.valor_total_geral < 0:
        errors.append("Valor total geral é obrigatório e não pode ser negativo")

    return errors


# =============================================================================
# XML
# =============================================================================

def _write_procedimento(w: XmlWriter, proc: ProcedimentoRealizado, sequencial: int):
    w.open("procedimentoRealizado")
    w.element("sequencialItem", str(sequencial))
    w.element("dataRealizacao", format_date(proc.data_realizacao))
    w.element("horaInicial", format_time(proc.hora_inicial))
    w.element("horaFinal", format_time(proc.hora_final))
    w.element("codigoTabela", proc.codigo_tabela)
    w.element("codigoProcedimento", pad(proc.codigo_procedimento, PAD_CODIGO_PROCEDIMENTO))
    w.element("descricaoProcedimento", proc.descricao_procedimento)
    w.element("quantidadeRealizada", str(proc.quantidade_realizada))
    w.element("valorUnitario", format_currency(proc.valor_unitario))
    w.element("valorTotal", format_currency(proc.valor_total))
    w.element("viaAcesso", proc.via_acesso)
    w.element("tecnicaUtilizada", proc.tecnica_utilizada)
    w.close("procedimentoRealizado")


def _optional_total(value: Optional[Decimal]) -> str:
    """Optional totals are only emitted when positive"""
    if value is None or value <= 0:
        return ""
    return format_currency(value)


def write_guia_sadt(w: XmlWriter, guia: GuiaSADT):
    """Write the ans:guiaSP-SADT element"""
    w.open("guiaSP-SADT")

    w.open("cabecalhoGuia")
    w.element("registroANS", pad(guia.registro_ans, PAD_REGISTRO_ANS))
    w.element("numeroGuiaPrestador", guia.numero_guia_prestador)
    w.element("numeroGuiaPrincipal", guia.numero_guia_principal)
    w.element("dataAutorizacao", format_date(guia.data_autorizacao))
    w.element("senha", guia.senha)
    w.element("dataValidadeSenha", format_date(guia.data_validade_senha))
    w.element("numeroGuiaOperadora", guia.numero_guia_operadora)
    w.close("cabecalhoGuia")

    write_beneficiario(w, guia.dados_beneficiario)

    w.open("dadosSolicitante")
    write_contratado(w, guia.contratado_solicitante, "contratadoSolicitante")
    write_profissional(w, guia.profissional_solicitante, "profissionalSolicitante")
    w.close("dadosSolicitante")

    w.open("dadosExecutante")
    write_contratado(w, guia.contratado_executante, "contratadoExecutante")
    write_profissional(w, guia.profissional_executante, "profissionalExecutante")
    w.close("dadosExecutante")

    w.open("dadosSolicitacao")
    w.element("caraterAtendimento", guia.carater_atendimento)
    w.element("dataSolicitacao", format_date(guia.data_solicitacao))
    w.element("indicacaoClinica", guia.indicacao_clinica)
    w.close("dadosSolicitacao")

    w.open("procedimentosRealizados")
    for sequencial, proc in enumerate(guia.procedimentos_realizados, start=1):
        _write_procedimento(w, proc, sequencial)
    w.close("procedimentosRealizados")

    w.open("valorTotal")
    w.element("valorProcedimentos", format_currency(guia.valor_total_procedimentos))
    w.element("valorTaxasAlugueis", _optional_total(guia.valor_total_taxas))
    w.element("valorMateriais", _optional_total(guia.valor_total_materiais))
    w.element("valorMedicamentos", _optional_total(guia.valor_total_medicamentos))
    w.element("valorOPME", _optional_total(guia.valor_total_opme))
    w.element("valorTotalGeral", format_currency(guia.valor_total_geral))
    w.close("valorTotal")

    w.element("observacao", guia.observacao)

    w.close("guiaSP-SADT")


def generate_xml_sadt(guia: GuiaSADT, options: Optional[TissXmlOptions] = None) -> str:
    """
    Generate the TISS XML message for a Guia SP/SADT

    Totals are written as given; use calculate_sadt_totals to derive them.
    """
    xml = build_mensagem_tiss(
        [lambda w: write_guia_sadt(w, guia)],
        codigo_prestador=guia.contratado_solicitante.codigo_prestador_na_operadora,
        registro_ans=guia.registro_ans,
        options=options,
    )
    logger.debug(
        f"Generated guiaSP-SADT XML for {guia.numero_guia_prestador} "
        f"with {len(guia.procedimentos_realizados)} procedures"
    )
    return xml


def generate_guia_sadt_element(guia: GuiaSADT, indent: str = "") -> str:
    """ans:guiaSP-SADT only (no envelope or epilogo), every line prefixed with indent"""
    w = XmlWriter(prefix=indent)
    write_guia_sadt(w, guia)
    return w.getvalue()
