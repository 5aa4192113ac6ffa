"""
TISS Glosa Parser
Normalizes operator denial responses into Glosa records

Two inputs are accepted: a raw XML fragment (any subset of the known tags, in
any order, with or without the ``ans:`` prefix) or a structured response
(mapping or GlosaResponseInput). Neither path raises on missing or malformed
fields; absent values default to empty/zero.

Multi-guide demonstrativos de análise are read with the same helpers.
"""

import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, List, Mapping, Optional, Union

from lxml import etree

from config import settings
from faturamento.schemas.tiss import (
    DemonstrativoAnalise,
    DemonstrativoGuia,
    Glosa,
    GlosaResponseInput,
    ItemGlosado,
    StatusDemonstrativoGuia,
    StatusGlosa,
    TipoGuia,
)
from faturamento.services.tiss.parsers.denial_interpreter import (
    CODIGO_GLOSA_OUTROS,
    GLOSA_DESCRIPTIONS,
)
from faturamento.services.tiss.versioning import TISS_NAMESPACE

logger = logging.getLogger(__name__)

MOTIVO_NAO_ESPECIFICADO = "Motivo não especificado"

_DECLARATION_RE = re.compile(r"<\?xml[^>]*\?>", re.IGNORECASE)
# Operators send unescaped '&' and '<' inside free text
_BARE_AMPERSAND_RE = re.compile(r"&(?!#?\w+;)")
_BARE_LT_RE = re.compile(r"<(?![A-Za-z_/!?])")
_WRAPPER_TAG = "respostaGlosa"

# Amounts must stay below 10^16
MAX_ADJUSTED_EXPONENT = 15

# Substring markers for guide type detection, checked in order
_TIPO_MARKERS = (
    (("guiaConsulta", "guiaDeConsulta"), TipoGuia.CONSULTA),
    (("guiaSP-SADT", "guiaSADT"), TipoGuia.SADT),
    (("guiaInternacao", "guiaResumoInternacao"), TipoGuia.INTERNACAO),
    (("guiaHonorarios",), TipoGuia.HONORARIOS),
)


# =============================================================================
# VALUE COERCION
# =============================================================================

def _parse_decimal(value: Any) -> Decimal:
    """Decimal from text or number; accepts '1234,56' and '1.234,56'; invalid => 0"""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip()
        if not text:
            return Decimal("0")
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            logger.debug(f"Ignoring invalid decimal value: {value!r}")
            return Decimal("0")
    if not amount.is_finite() or amount.adjusted() > MAX_ADJUSTED_EXPONENT:
        logger.debug(f"Ignoring out of range decimal value: {value!r}")
        return Decimal("0")
    return amount


def _parse_text(value: Any) -> str:
    """str() of value with lone surrogates replaced"""
    if value is None:
        return ""
    return str(value).encode("utf-8", errors="replace").decode("utf-8")


def _parse_optional_date(value: Any) -> Optional[date]:
    """ISO (YYYY-MM-DD, optionally with time) or DD/MM/YYYY; None when unreadable"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    text = str(value).strip()
    for fmt, size in (("%Y-%m-%d", 10), ("%d/%m/%Y", 10)):
        try:
            return datetime.strptime(text[:size], fmt).date()
        except ValueError:
            continue
    logger.debug(f"Unparseable date {value!r}")
    return None


def _parse_date(value: Any, today: date) -> date:
    return _parse_optional_date(value) or today


def _coerce_tipo(value: Any) -> TipoGuia:
    if isinstance(value, TipoGuia):
        return value
    try:
        return TipoGuia(str(value).strip().lower())
    except ValueError:
        return TipoGuia.CONSULTA


def _prazo_recurso(data_recebimento: date) -> date:
    try:
        return data_recebimento + timedelta(days=settings.GLOSA_PRAZO_RECURSO_DIAS)
    except OverflowError:
        return date.max


def _motivo_description(codigo: str) -> str:
    return GLOSA_DESCRIPTIONS.get(codigo, MOTIVO_NAO_ESPECIFICADO)


# =============================================================================
# XML
# =============================================================================

def _parse_fragment(xml: str) -> Optional[etree._Element]:
    """Parse a fragment inside a synthetic root that declares the ans prefix"""
    if not xml or not xml.strip():
        return None
    body = _DECLARATION_RE.sub("", xml)
    body = _BARE_AMPERSAND_RE.sub("&amp;", body)
    body = _BARE_LT_RE.sub("&lt;", body)
    wrapped = f'<{_WRAPPER_TAG} xmlns:ans="{TISS_NAMESPACE}">{body}</{_WRAPPER_TAG}>'
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(wrapped.encode("utf-8", errors="replace"), parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        logger.warning(f"Unreadable glosa XML: {e}")
        return None
    if root is None:
        logger.warning("Unreadable glosa XML: empty document after recovery")
    return root


def _local_name(el: etree._Element) -> str:
    tag = el.tag
    if tag.startswith("{"):
        tag = tag.split("}", 1)[1]
    # Undeclared prefixes survive recovery as part of the tag
    return tag.rsplit(":", 1)[-1].lower()


def _elements(root: Optional[etree._Element], name: str) -> Iterator[etree._Element]:
    if root is None:
        return
    wanted = name.lower()
    for el in root.iter():
        if isinstance(el.tag, str) and _local_name(el) == wanted:
            yield el


def _extract_text(root: Optional[etree._Element], *names: str) -> str:
    """Text of the first leaf element, by local name, trying names in order"""
    for name in names:
        for el in _elements(root, name):
            if len(el) == 0 and el.text and el.text.strip():
                return el.text.strip()
    return ""


def _detect_tipo_guia(xml: str) -> TipoGuia:
    for markers, tipo in _TIPO_MARKERS:
        if any(marker in xml for marker in markers):
            return tipo
    return TipoGuia.CONSULTA


def _parse_item(item: etree._Element, sequencial: int) -> ItemGlosado:
    codigo_glosa = _extract_text(item, "codigoGlosa") or CODIGO_GLOSA_OUTROS
    return ItemGlosado(
        sequencial_item=sequencial,
        codigo_procedimento=_extract_text(item, "codigoProcedimento"),
        descricao_procedimento=_extract_text(item, "descricaoProcedimento"),
        valor_glosado=_parse_decimal(_extract_text(item, "valorGlosa", "valorGlosado")),
        codigo_glosa=codigo_glosa,
        descricao_glosa=_extract_text(item, "descricaoGlosa") or _motivo_description(codigo_glosa),
    )


def parse_glosa_xml(xml: str, today: Optional[date] = None) -> Glosa:
    """
    Parse a glosa XML response from an operator

    Args:
        xml: XML text or fragment received from the operator
        today: Reference date when the response carries no receipt date

    Returns:
        Glosa with status 'pendente'; zeroed when nothing can be read
    """
    today = today or date.today()
    xml = xml or ""
    root = _parse_fragment(xml)

    valor_original = _parse_decimal(_extract_text(root, "valorInformado", "valorTotal"))
    valor_glosado = _parse_decimal(_extract_text(root, "valorGlosado", "valorTotalGlosado"))

    itens: List[ItemGlosado] = [
        _parse_item(item, sequencial)
        for sequencial, item in enumerate(_elements(root, "itemGlosado"), start=1)
    ]

    if not itens and valor_glosado > 0:
        codigo_glosa = _extract_text(root, "codigoGlosa") or CODIGO_GLOSA_OUTROS
        itens.append(ItemGlosado(
            sequencial_item=1,
            codigo_procedimento=_extract_text(root, "codigoProcedimento"),
            descricao_procedimento=_extract_text(root, "descricaoProcedimento") or "Procedimento glosado",
            valor_glosado=valor_glosado,
            codigo_glosa=codigo_glosa,
            descricao_glosa=_motivo_description(codigo_glosa),
        ))

    data_recebimento = _parse_date(_extract_text(root, "dataRecebimento", "dataProcessamento"), today)

    glosa = Glosa(
        numero_guia_prestador=_extract_text(root, "numeroGuiaPrestador"),
        tipo_guia=_detect_tipo_guia(xml),
        data_recebimento=data_recebimento,
        valor_original=valor_original,
        valor_glosado=valor_glosado,
        valor_aprovado=valor_original - valor_glosado,
        itens_glosados=itens,
        prazo_recurso=_prazo_recurso(data_recebimento),
        status=StatusGlosa.PENDENTE,
        observacao_operadora=_extract_text(root, "observacao") or None,
    )
    logger.info(
        f"Parsed glosa XML for guia '{glosa.numero_guia_prestador}': "
        f"{len(itens)} items, valor glosado {valor_glosado}"
    )
    return glosa


# =============================================================================
# STRUCTURED
# =============================================================================

def _get(data: Mapping[str, Any], camel: str, snake: str) -> Any:
    value = data.get(camel)
    return data.get(snake) if value is None else value


def _input_from_mapping(data: Mapping[str, Any]) -> GlosaResponseInput:
    """Tolerant conversion; malformed values degrade to defaults"""
    raw_itens = _get(data, "itens", "itens")
    itens = None
    if isinstance(raw_itens, (list, tuple)):
        itens = []
        for raw in raw_itens:
            if not isinstance(raw, Mapping):
                continue
            itens.append({
                "codigo_procedimento": _parse_text(_get(raw, "codigoProcedimento", "codigo_procedimento")),
                "descricao": _parse_text(_get(raw, "descricao", "descricao")) or None,
                "valor": _parse_decimal(_get(raw, "valor", "valor")),
                "motivo": _parse_text(_get(raw, "motivo", "motivo")) or CODIGO_GLOSA_OUTROS,
            })

    observacao = _get(data, "observacao", "observacao")
    return GlosaResponseInput(
        numero_guia_prestador=_parse_text(_get(data, "numeroGuiaPrestador", "numero_guia_prestador")),
        tipo_guia=_coerce_tipo(_get(data, "tipoGuia", "tipo_guia")),
        data_recebimento=_parse_optional_date(_get(data, "dataRecebimento", "data_recebimento")),
        valor_original=_parse_decimal(_get(data, "valorOriginal", "valor_original")),
        valor_glosado=_parse_decimal(_get(data, "valorGlosado", "valor_glosado")),
        itens=itens,
        observacao=_parse_text(observacao) or None,
    )


def parse_glosa_response(
    data: Union[GlosaResponseInput, Mapping[str, Any]],
    today: Optional[date] = None,
) -> Glosa:
    """
    Parse a structured glosa response (JSON API or manual entry)

    Args:
        data: GlosaResponseInput or a mapping with camelCase or snake_case keys
        today: Receipt date when the response does not carry one

    Returns:
        Glosa with status 'pendente'
    """
    today = today or date.today()
    if not isinstance(data, GlosaResponseInput):
        data = _input_from_mapping(data if isinstance(data, Mapping) else {})

    itens = [
        ItemGlosado(
            sequencial_item=sequencial,
            codigo_procedimento=item.codigo_procedimento,
            descricao_procedimento=item.descricao or "",
            valor_glosado=_parse_decimal(item.valor),
            codigo_glosa=item.motivo or CODIGO_GLOSA_OUTROS,
            descricao_glosa=_motivo_description(item.motivo or CODIGO_GLOSA_OUTROS),
        )
        for sequencial, item in enumerate(data.itens or [], start=1)
    ]

    valor_original = _parse_decimal(data.valor_original)
    valor_glosado = _parse_decimal(data.valor_glosado)

    if not itens and valor_glosado > 0:
        itens.append(ItemGlosado(
            sequencial_item=1,
            codigo_procedimento="",
            descricao_procedimento="Valor glosado",
            valor_glosado=valor_glosado,
            codigo_glosa=CODIGO_GLOSA_OUTROS,
            descricao_glosa=MOTIVO_NAO_ESPECIFICADO,
        ))

    data_recebimento = data.data_recebimento or today

    return Glosa(
        numero_guia_prestador=data.numero_guia_prestador,
        tipo_guia=data.tipo_guia or TipoGuia.CONSULTA,
        data_recebimento=data_recebimento,
        valor_original=valor_original,
        valor_glosado=valor_glosado,
        valor_aprovado=valor_original - valor_glosado,
        itens_glosados=itens,
        prazo_recurso=_prazo_recurso(data_recebimento),
        status=StatusGlosa.PENDENTE,
        observacao_operadora=data.observacao,
    )


# =============================================================================
# DEMONSTRATIVO DE ANÁLISE
# =============================================================================

# Guide elements of a demonstrativo, collected in this order
_DEMONSTRATIVO_GUIA_TAGS = ("guiaRecusada", "guiaProcessada", "guia")


def _own_text(el: etree._Element, *names: str) -> str:
    """Like _extract_text, preferring direct children over nested items"""
    wanted = [name.lower() for name in names]
    for name in wanted:
        for child in el:
            if isinstance(child.tag, str) and _local_name(child) == name and child.text and child.text.strip():
                return child.text.strip()
    return _extract_text(el, *names)


def _demonstrativo_status(valor_glosado: Decimal, valor_processado: Decimal) -> StatusDemonstrativoGuia:
    if valor_glosado <= 0:
        return StatusDemonstrativoGuia.APROVADA
    if valor_processado > 0:
        return StatusDemonstrativoGuia.GLOSADA_PARCIAL
    return StatusDemonstrativoGuia.GLOSADA_TOTAL


def _parse_demonstrativo_guia(el: etree._Element, today: date) -> DemonstrativoGuia:
    valor_processado = _parse_decimal(_own_text(el, "valorProcessado", "valorLiberado"))
    valor_glosado = _parse_decimal(_own_text(el, "valorGlosado", "valorTotalGlosado"))
    return DemonstrativoGuia(
        numero_guia_prestador=_own_text(el, "numeroGuiaPrestador"),
        numero_guia_operadora=_own_text(el, "numeroGuiaOperadora") or None,
        data_execucao=_parse_date(_own_text(el, "dataExecucao", "dataAtendimento", "dataRealizacao"), today),
        valor_informado=_parse_decimal(_own_text(el, "valorInformado", "valorTotal")),
        valor_processado=valor_processado,
        valor_glosado=valor_glosado,
        status=_demonstrativo_status(valor_glosado, valor_processado),
        itens_glosados=[
            _parse_item(item, sequencial)
            for sequencial, item in enumerate(_elements(el, "itemGlosado"), start=1)
        ],
    )


def _demonstrativo_guias(root: Optional[etree._Element]) -> List[etree._Element]:
    collected: List[etree._Element] = []
    for tag in _DEMONSTRATIVO_GUIA_TAGS:
        for el in _elements(root, tag):
            if el is root or any(ancestor in collected for ancestor in el.iterancestors()):
                continue
            collected.append(el)
    return collected


def _text_outside(
    root: Optional[etree._Element],
    excluded: List[etree._Element],
    *names: str,
) -> str:
    """First leaf text by local name, ignoring elements inside the excluded subtrees"""
    for name in names:
        for el in _elements(root, name):
            if len(el) or not el.text or not el.text.strip():
                continue
            if any(ancestor in excluded for ancestor in el.iterancestors()):
                continue
            return el.text.strip()
    return ""


def parse_demonstrativo_xml(xml: str, today: Optional[date] = None) -> DemonstrativoAnalise:
    """
    Parse a demonstrativo de análise de conta covering one lote

    Guides are read from ``guiaRecusada``, ``guiaProcessada`` and ``guia``
    elements, in that order. Never raises; unreadable input gives an empty
    demonstrativo dated ``today``.

    Args:
        xml: XML text received from the operator
        today: Reference date for absent processing or execution dates

    Returns:
        DemonstrativoAnalise with lote totals and one entry per guide
    """
    today = today or date.today()
    root = _parse_fragment(xml or "")
    guide_elements = _demonstrativo_guias(root)

    def lote_text(*names: str) -> str:
        return _text_outside(root, guide_elements, *names)

    guias = [_parse_demonstrativo_guia(el, today) for el in guide_elements]
    demonstrativo = DemonstrativoAnalise(
        numero_lote=lote_text("numeroLote"),
        registro_ans=lote_text("registroANS"),
        protocolo=lote_text("numeroProtocolo", "protocolo"),
        data_processamento=_parse_date(lote_text("dataProcessamento", "dataRecebimento"), today),
        valor_informado=_parse_decimal(lote_text("valorInformadoTotal", "valorTotalInformado")),
        valor_processado=_parse_decimal(lote_text("valorProcessadoTotal", "valorTotalProcessado")),
        valor_glosado=_parse_decimal(lote_text("valorGlosadoTotal", "valorTotalGlosado")),
        guias=guias,
    )
    logger.info(
        f"Parsed demonstrativo for lote '{demonstrativo.numero_lote}': "
        f"{len(guias)} guides, valor glosado {demonstrativo.valor_glosado}"
    )
    return demonstrativo


def glosa_from_demonstrativo(
    guia: DemonstrativoGuia,
    data_recebimento: date,
    tipo_guia: TipoGuia = TipoGuia.CONSULTA,
) -> Glosa:
    """
    Glosa record for a denied guide of a demonstrativo

    The appeal window counts from ``data_recebimento``, the processing date of
    the demonstrativo.
    """
    itens = list(guia.itens_glosados)
    if not itens and guia.valor_glosado > 0:
        itens.append(ItemGlosado(
            sequencial_item=1,
            codigo_procedimento="",
            descricao_procedimento="Valor glosado",
            valor_glosado=guia.valor_glosado,
            codigo_glosa=CODIGO_GLOSA_OUTROS,
            descricao_glosa=MOTIVO_NAO_ESPECIFICADO,
        ))

    return Glosa(
        numero_guia_prestador=guia.numero_guia_prestador,
        tipo_guia=tipo_guia,
        data_recebimento=data_recebimento,
        valor_original=guia.valor_informado,
        valor_glosado=guia.valor_glosado,
        valor_aprovado=guia.valor_processado,
        itens_glosados=itens,
        prazo_recurso=_prazo_recurso(data_recebimento),
        status=StatusGlosa.PENDENTE,
    )
