"""
Batch Generator
Composes several guides of the same type into one TISS lote message
"""

import logging
from datetime import date
from functools import partial
from typing import List, Optional, Sequence, Union

from config import settings
from faturamento.core.error_handling import ValidationException
from faturamento.schemas.tiss import GuiaConsulta, GuiaSADT, TissXmlOptions
from faturamento.services.tiss.consultation_form import write_guia_consulta
from faturamento.services.tiss.sadt_form import write_guia_sadt
from faturamento.services.tiss.xml_common import build_mensagem_tiss

logger = logging.getLogger(__name__)

MAX_GUIAS_PER_LOTE = settings.TISS_MAX_GUIAS_PER_LOTE

Guia = Union[GuiaConsulta, GuiaSADT]


def generate_lote_number(sequence: int, today: Optional[date] = None) -> str:
    """Lot number as YYYYMMDD-NNNN"""
    today = today or date.today()
    return f"{today.strftime('%Y%m%d')}-{sequence:04d}"


def _validate_lote(guias: Sequence[Guia]):
    if not guias:
        raise ValidationException("Lote deve conter ao menos uma guia")

    if len(guias) > MAX_GUIAS_PER_LOTE:
        raise ValidationException(
            f"Máximo de {MAX_GUIAS_PER_LOTE} guias por lote",
            details={"quantidade": len(guias)},
        )

    tipos = {type(g) for g in guias}
    if len(tipos) > 1:
        raise ValidationException("Todas as guias do lote devem ser do mesmo tipo")

    registros = {g.registro_ans for g in guias}
    if len(registros) > 1:
        raise ValidationException(
            "Todas as guias do lote devem ser da mesma operadora",
            details={"registros_ans": sorted(registros)},
        )


def generate_lote_xml(
    guias: Sequence[Guia],
    numero_lote: str,
    options: Optional[TissXmlOptions] = None,
) -> str:
    """
    Generate one TISS message holding every guide of a lote

    Args:
        guias: 1..MAX_GUIAS_PER_LOTE guides of the same type and operator
        numero_lote: Lot number
        options: XML generation options

    Returns:
        XML with a single cabecalho and a single epilogo hash
    """
    _validate_lote(guias)

    writers: List = []
    for guia in guias:
        write = write_guia_consulta if isinstance(guia, GuiaConsulta) else write_guia_sadt
        writers.append(partial(write, guia=guia))

    first = guias[0]
    xml = build_mensagem_tiss(
        writers,
        codigo_prestador=first.contratado_solicitante.codigo_prestador_na_operadora,
        registro_ans=first.registro_ans,
        options=options,
        numero_lote=numero_lote,
    )
    logger.info(f"Generated lote {numero_lote} with {len(guias)} guides")
    return xml
