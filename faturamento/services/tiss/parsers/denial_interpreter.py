"""
TISS Denial Interpreter
Human-readable reasons and remediation for ANS glosa (denial) codes
"""

import logging
from types import MappingProxyType
from typing import Mapping

from faturamento.schemas.tiss import GlosaDescription

logger = logging.getLogger(__name__)

CODIGO_GLOSA_OUTROS = "outros"

# ANS denial reason code -> description
GLOSA_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    # Administrativas
    "A1": "Guia não preenchida corretamente",
    "A2": "Procedimento não coberto pelo plano",
    "A3": "Procedimento já realizado no período",
    "A4": "Beneficiário sem cobertura ativa",
    "A5": "Carência não cumprida",
    "A6": "Cobrança em duplicidade",
    "A7": "Valor acima do contratado",
    "A8": "Ausência de autorização prévia",
    "A9": "Documentação incompleta",
    "A10": "Prazo de envio excedido",
    # Técnicas
    "B1": "CID incompatível com procedimento",
    "B2": "Quantidade acima do permitido",
    # Cadastrais
    "C1": "Profissional não cadastrado na operadora",
    CODIGO_GLOSA_OUTROS: "Outro motivo",
})

# ANS denial reason code -> suggested remediation
GLOSA_RECOMMENDATIONS: Mapping[str, str] = MappingProxyType({
    "A1": "Revise o preenchimento da guia e reenvie com os dados corretos",
    "A2": "Verifique a cobertura do plano ou solicite autorização especial",
    "A3": "Apresente justificativa médica para repetição do procedimento",
    "A4": "Confirme a situação do beneficiário com a operadora",
    "A5": "Aguarde o período de carência ou solicite exceção",
    "A6": "Identifique e cancele a cobrança duplicada",
    "A7": "Verifique a tabela de preços contratada",
    "A8": "Solicite autorização retroativa com justificativa de urgência",
    "A9": "Anexe a documentação faltante ao recurso",
    "A10": "Solicite exceção de prazo com justificativa",
    "B1": "Revise a indicação clínica e o CID informado",
    "B2": "Justifique a necessidade da quantidade realizada",
    "C1": "Regularize o cadastro do profissional na operadora",
    CODIGO_GLOSA_OUTROS: "Entre em contato com a operadora para esclarecimentos",
})

UNKNOWN_DESCRIPTION = "Motivo não catalogado"
UNKNOWN_RECOMMENDATION = "Entre em contato com a operadora"


def describe_glosa_code(codigo: str) -> str:
    """Description only; 'Motivo não catalogado' for unknown codes"""
    return GLOSA_DESCRIPTIONS.get(codigo, UNKNOWN_DESCRIPTION)


def get_glosa_description(codigo: str) -> GlosaDescription:
    """
    Interpret a glosa code

    Args:
        codigo: Denial reason code from the operator (A1..A10, B1, B2, C1, outros)

    Returns:
        Description and recommendation; a generic pair for unknown codes
    """
    description = GLOSA_DESCRIPTIONS.get(codigo)
    if description is None:
        logger.info(f"Unknown glosa code: {codigo}")
        return GlosaDescription(description=UNKNOWN_DESCRIPTION, recommendation=UNKNOWN_RECOMMENDATION)
    return GlosaDescription(description=description, recommendation=GLOSA_RECOMMENDATIONS[codigo])
