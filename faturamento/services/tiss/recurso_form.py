"""
Recurso Form
Validation and XML generation for the TISS 4.02.00 recurso de glosa (appeal)
"""

import logging
from typing import Dict, List, Optional

from faturamento.schemas.tiss import Glosa, ItemContestado, ItemGlosado, RecursoGlosa, TissXmlOptions
from faturamento.services.tiss.xml_common import (
    PAD_CODIGO_PROCEDIMENTO,
    PAD_REGISTRO_ANS,
    TIPO_TRANSACAO_RECURSO_GLOSA,
    XmlWriter,
    build_envelope,
    format_currency,
    pad,
)

logger = logging.getLogger(__name__)


def validate_recurso(recurso: RecursoGlosa, glosa: Glosa) -> List[str]:
    """
    Validate an appeal against the glosa it contests

    Returns:
        Every violated rule as a message; empty when valid
    """
    errors = []
    itens = {item.sequencial_item for item in glosa.itens_glosados}

    if not recurso.itens_contestados:
        errors.append("Recurso deve contestar ao menos um item")

    for contestado in recurso.itens_contestados:
        if contestado.sequencial_item not in itens:
            errors.append(f"Item {contestado.sequencial_item} não pertence à glosa")
        if not contestado.justificativa.strip():
            errors.append(f"Justificativa do item {contestado.sequencial_item} é obrigatória")

    return errors


def write_item_recurso(w: XmlWriter, contestado: ItemContestado, item: Optional[ItemGlosado]):
    """Write one ans:itemRecurso; the appealed value is the denied value of the item"""
    w.open("itemRecurso")
    w.element("sequencialItem", str(contestado.sequencial_item))
    if item is not None:
        w.element("codigoProcedimento", pad(item.codigo_procedimento, PAD_CODIGO_PROCEDIMENTO))
        w.element("valorRecursado", format_currency(item.valor_glosado))
    w.element("justificativa", contestado.justificativa)
    w.close("itemRecurso")


def write_recurso_glosa(w: XmlWriter, recurso: RecursoGlosa, glosa: Glosa, registro_ans: str):
    """Write the ans:recursoGlosa element"""
    itens: Dict[int, ItemGlosado] = {item.sequencial_item: item for item in glosa.itens_glosados}

    w.open("recursoGlosa")
    w.open("guiaRecursoGlosa")
    w.element("registroANS", pad(registro_ans, PAD_REGISTRO_ANS))
    w.element("numeroGuiaRecursoGlosa", recurso.numero_recurso or recurso.id)
    w.open("objetoRecurso")
    w.element("numeroGuiaPrestador", glosa.numero_guia_prestador)
    for contestado in recurso.itens_contestados:
        write_item_recurso(w, contestado, itens.get(contestado.sequencial_item))
    w.close("objetoRecurso")
    w.element("justificativaRecurso", recurso.justificativa_geral)
    w.close("guiaRecursoGlosa")
    w.close("recursoGlosa")


def generate_recurso_xml(
    recurso: RecursoGlosa,
    glosa: Glosa,
    codigo_prestador: str,
    registro_ans: str,
    options: Optional[TissXmlOptions] = None,
) -> str:
    """
    Generate the TISS XML message for a recurso de glosa

    Args:
        recurso: Appeal with the contested items and justifications
        glosa: Glosa being appealed (source of procedure codes and values)
        codigo_prestador: Provider code at the operator
        registro_ans: Operator ANS registry
        options: XML generation options

    Returns:
        Complete XML string with the epilogo hash
    """
    xml = build_envelope(
        lambda w: write_recurso_glosa(w, recurso, glosa, registro_ans),
        TIPO_TRANSACAO_RECURSO_GLOSA,
        codigo_prestador=codigo_prestador,
        registro_ans=registro_ans,
        options=options,
    )
    logger.debug(f"Generated recurso XML {recurso.numero_recurso or recurso.id} for glosa {glosa.id}")
    return xml
