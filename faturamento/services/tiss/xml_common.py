"""
TISS XML helpers
Formatting, escaping and the envelope shared by the guide and appeal forms
"""

import logging
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, List, Optional, Union

from faturamento.schemas.tiss import DadosBeneficiario, DadosContratado, DadosProfissional, TissXmlOptions
from faturamento.services.tiss.security import calculate_integrity_hash
from faturamento.services.tiss.versioning import CURRENT_TISS_VERSION, TISS_NAMESPACE

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

TIPO_TRANSACAO_ENVIO_LOTE = "ENVIO_LOTE_GUIAS"
TIPO_TRANSACAO_RECURSO_GLOSA = "RECURSO_GLOSA"

INDENT_UNIT = "  "

# Field widths (left-zero-padded)
PAD_CODIGO_PROCEDIMENTO = 10
PAD_REGISTRO_ANS = 6
PAD_NUMERO_CARTEIRA = 17
PAD_CNS = 15
PAD_CNES = 7

_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)

_CENT = Decimal("0.01")


def escape_xml(value: Optional[str]) -> str:
    """Escape XML special characters; '&' first so entities are not doubled"""
    if not value:
        return ""
    for char, entity in _ESCAPES:
        value = value.replace(char, entity)
    return value


def format_currency(value: Union[Decimal, int, float, str, None]) -> str:
    """Two decimal places, '.' separator, half-up rounding; '' when absent"""
    if value is None or value == "":
        return ""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        return str(amount.quantize(_CENT, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        logger.warning(f"Invalid monetary value: {value!r}")
        return ""


def format_date(value: Optional[date]) -> str:
    """ISO date (YYYY-MM-DD); '' when absent"""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_time(value: Optional[time]) -> str:
    """HH:MM; '' when absent"""
    if value is None:
        return ""
    return value.strftime("%H:%M")


def pad(value: Optional[str], length: int, char: str = "0") -> str:
    """Left-pad to length; longer values are kept as is"""
    if not value:
        return ""
    return value.rjust(length, char)


class XmlWriter:
    """
    Line-oriented writer for ``ans:`` prefixed TISS elements.

    Every emitted line starts with ``prefix`` followed by one indent unit per
    nesting level. With ``pretty_print`` off, lines are concatenated without
    indentation or newlines.
    """

    def __init__(self, prefix: str = "", pretty_print: bool = True, depth: int = 0):
        self.prefix = prefix
        self.pretty_print = pretty_print
        self.depth = depth
        self.parts: List[str] = []

    def _line(self, content: str):
        if self.pretty_print:
            self.parts.append(f"{self.prefix}{INDENT_UNIT * self.depth}{content}\n")
        else:
            self.parts.append(content)

    def raw(self, content: str):
        self._line(content)

    def open(self, tag: str, attributes: str = ""):
        self._line(f"<ans:{tag}{attributes}>")
        self.depth += 1

    def close(self, tag: str):
        self.depth -= 1
        self._line(f"</ans:{tag}>")

    def element(self, tag: str, value: Optional[str]):
        """Leaf element with escaped text; skipped when value is empty"""
        if value is None or value == "":
            return
        self._line(f"<ans:{tag}>{escape_xml(str(value))}</ans:{tag}>")

    def getvalue(self) -> str:
        return "".join(self.parts)


# =============================================================================
# SHARED BLOCKS
# =============================================================================

def write_beneficiario(w: XmlWriter, beneficiario: DadosBeneficiario):
    w.open("dadosBeneficiario")
    w.element("numeroCarteira", pad(beneficiario.numero_carteira, PAD_NUMERO_CARTEIRA))
    w.element("validadeCarteira", format_date(beneficiario.validade_carteira))
    w.element("nomeBeneficiario", beneficiario.nome_beneficiario)
    w.element("cns", pad(beneficiario.cns, PAD_CNS))
    w.close("dadosBeneficiario")


def write_contratado(w: XmlWriter, contratado: DadosContratado, tag: str):
    w.open(tag)
    w.element("codigoPrestadorNaOperadora", contratado.codigo_prestador_na_operadora)
    w.element("nomeContratado", contratado.nome_contratado)
    w.element("CNES", pad(contratado.cnes, PAD_CNES))
    w.close(tag)


def write_profissional(w: XmlWriter, profissional: DadosProfissional, tag: str):
    w.open(tag)
    w.element("nomeProfissional", profissional.nome_profissional)
    w.element("conselhoProfissional", profissional.conselho_profissional)
    w.element("numeroConselhoProfissional", profissional.numero_conselho_profissional)
    w.element("UF", profissional.uf)
    w.element("CBOS", profissional.cbo)
    w.close(tag)


# =============================================================================
# ENVELOPE
# =============================================================================

def build_envelope(
    write_body: Callable[[XmlWriter], None],
    tipo_transacao: str,
    codigo_prestador: str,
    registro_ans: str,
    options: Optional[TissXmlOptions] = None,
) -> str:
    """
    Build a complete ``ans:mensagemTISS`` document around a
    ``prestadorParaOperadora`` body

    Args:
        write_body: Callable writing the content of prestadorParaOperadora
        tipo_transacao: Transaction type sent in the cabecalho
        codigo_prestador: Provider code sent in cabecalho/origem
        registro_ans: Operator ANS registry sent in cabecalho/destino
        options: Declaration, pretty print and transaction timestamp

    Returns:
        XML text ending with the epilogo hash of everything emitted before it
    """
    options = options or TissXmlOptions()
    registro = options.data_hora_registro or datetime.now()

    w = XmlWriter(pretty_print=options.pretty_print)
    if options.include_declaration:
        w.raw(XML_DECLARATION)

    w.open("mensagemTISS", f' xmlns:ans="{TISS_NAMESPACE}" xmlns:xsi="{XSI_NAMESPACE}"')

    w.open("cabecalho")
    w.open("identificacaoTransacao")
    w.element("tipoTransacao", tipo_transacao)
    w.element("sequencialTransacao", "1")
    w.element("dataRegistroTransacao", format_date(registro.date()))
    w.element("horaRegistroTransacao", registro.strftime("%H:%M:%S"))
    w.close("identificacaoTransacao")
    w.open("origem")
    w.open("identificacaoPrestador")
    w.element("codigoPrestadorNaOperadora", codigo_prestador)
    w.close("identificacaoPrestador")
    w.close("origem")
    w.open("destino")
    w.element("registroANS", pad(registro_ans, PAD_REGISTRO_ANS))
    w.close("destino")
    w.element("versaoPadrao", CURRENT_TISS_VERSION)
    w.close("cabecalho")

    w.open("prestadorParaOperadora")
    write_body(w)
    w.close("prestadorParaOperadora")

    content_hash = calculate_integrity_hash(w.getvalue())

    w.open("epilogo")
    w.element("hash", content_hash)
    w.close("epilogo")
    w.close("mensagemTISS")

    return w.getvalue()


def build_mensagem_tiss(
    guide_writers: List[Callable[[XmlWriter], None]],
    codigo_prestador: str,
    registro_ans: str,
    options: Optional[TissXmlOptions] = None,
    numero_lote: str = "1",
) -> str:
    """
    Build a lote message (``ENVIO_LOTE_GUIAS``) holding one or more guides

    Args:
        guide_writers: Callables writing one guide element each into the writer
        codigo_prestador: Provider code sent in cabecalho/origem
        registro_ans: Operator ANS registry sent in cabecalho/destino
        options: Declaration, pretty print and transaction timestamp
        numero_lote: Lot number

    Returns:
        XML text ending with the epilogo hash of everything emitted before it
    """
    def write_lote(w: XmlWriter):
        w.open("loteGuias")
        w.element("numeroLote", numero_lote)
        w.open("guiasTISS")
        for write_guide in guide_writers:
            write_guide(w)
        w.close("guiasTISS")
        w.close("loteGuias")

    return build_envelope(write_lote, TIPO_TRANSACAO_ENVIO_LOTE, codigo_prestador, registro_ans, options)
