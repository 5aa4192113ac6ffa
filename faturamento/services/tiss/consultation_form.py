"""
Consultation Form
Validation and XML generation for the TISS 4.02.00 Guia de Consulta
"""

import logging
import re
from typing import List, Optional

from faturamento.schemas.tiss import GuiaConsulta, TissXmlOptions
from faturamento.services.tiss.xml_common import (
    PAD_CODIGO_PROCEDIMENTO,
    PAD_REGISTRO_ANS,
    XmlWriter,
    build_mensagem_tiss,
    format_currency,
    format_date,
    pad,
    write_beneficiario,
    write_contratado,
    write_profissional,
)

logger = logging.getLogger(__name__)

REGISTRO_ANS_PATTERN = re.compile(r"^\d{6}$")


def validate_guia_consulta(guia: GuiaConsulta) -> List[str]:
    """
    Validate required fields of a Guia de Consulta

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

    if not guia.contratado_solicitante.codigo_prestador_na_operadora:
        errors.append("Código do prestador na operadora é obrigatório")

    profissional = guia.profissional_solicitante
    if not profissional.conselho_profissional:
        errors.append("Conselho profissional é obrigatório")

    if not profissional.numero_conselho_profissional:
        errors.append("Número no conselho profissional é obrigatório")

    if not profissional.uf:
        errors.append("UF do conselho profissional é obrigatório")

    if not guia.tipo_consulta:
        errors.append("Tipo de consulta é obrigatório")

    if guia.data_atendimento is None:
        errors.append("Data do atendimento é obrigatória")

    if not guia.codigo_tabela:
        errors.append("Código da tabela é obrigatório")

    if not guia.codigo_procedimento:
        errors.append("Código do procedimento é obrigatório")

    if guia.valor_procedimento is None or guia.valor_procedimento < 0:
        errors.append("Valor do procedimento deve ser maior ou igual a zero")

    return errors


def write_guia_consulta(w: XmlWriter, guia: GuiaConsulta):
    """Write the ans:guiaConsulta element"""
    w.open("guiaConsulta")

    w.open("cabecalhoConsulta")
    w.element("registroANS", pad(guia.registro_ans, PAD_REGISTRO_ANS))
    w.element("numeroGuiaPrestador", guia.numero_guia_prestador)
    w.element("numeroGuiaOperadora", guia.numero_guia_operadora)
    w.element("dataAutorizacao", format_date(guia.data_autorizacao))
    w.element("senha", guia.senha)
    w.element("dataValidadeSenha", format_date(guia.data_validade_senha))
    w.close("cabecalhoConsulta")

    write_beneficiario(w, guia.dados_beneficiario)

    w.open("dadosSolicitante")
    write_contratado(w, guia.contratado_solicitante, "contratadoSolicitante")
    write_profissional(w, guia.profissional_solicitante, "profissionalSolicitante")
    w.close("dadosSolicitante")

    w.open("dadosAtendimento")
    w.element("tipoConsulta", guia.tipo_consulta)
    w.element("indicacaoClinica", guia.indicacao_clinica)
    w.element("dataAtendimento", format_date(guia.data_atendimento))
    w.element("codigoTabela", guia.codigo_tabela)
    w.element("codigoProcedimento", pad(guia.codigo_procedimento, PAD_CODIGO_PROCEDIMENTO))
    w.element("valorProcedimento", format_currency(guia.valor_procedimento))
    w.close("dadosAtendimento")

    w.element("observacao", guia.observacao)

    w.close("guiaConsulta")


def generate_xml_consulta(guia: GuiaConsulta, options: Optional[TissXmlOptions] = None) -> str:
    """
    Generate the TISS XML message for a Guia de Consulta

    The guide is not re-validated; call validate_guia_consulta first.
    """
    xml = build_mensagem_tiss(
        [lambda w: write_guia_consulta(w, guia)],
        codigo_prestador=guia.contratado_solicitante.codigo_prestador_na_operadora,
        registro_ans=guia.registro_ans,
        options=options,
    )
    logger.debug(f"Generated guiaConsulta XML for {guia.numero_guia_prestador}")
    return xml


def generate_guia_consulta_element(guia: GuiaConsulta, indent: str = "") -> str:
    """ans:guiaConsulta only (no envelope or epilogo), every line prefixed with indent"""
    w = XmlWriter(prefix=indent)
    write_guia_consulta(w, guia)
    return w.getvalue()

