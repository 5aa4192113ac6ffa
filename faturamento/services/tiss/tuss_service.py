"""
TUSS Service
Lookup and search over TUSS (Terminologia Unificada da Saúde Suplementar) codes

The table ships with the package (``data/tuss_codes.json``) and is loaded once
into immutable module-level maps.
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from faturamento.schemas.tiss import TussCode

logger = logging.getLogger(__name__)

TUSS_DATA_PATH = Path(__file__).parent / "data" / "tuss_codes.json"

DEFAULT_SEARCH_LIMIT = 20
MIN_SEARCH_LENGTH = 2

# Groups holding office visits and exams
GRUPO_CONSULTAS = "Procedimentos clínicos"
GRUPOS_EXAMES = ("Exames laboratoriais", "Diagnóstico por imagem")


def _load_table(path: Path) -> Tuple[TussCode, ...]:
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    codes = tuple(TussCode.model_validate(item) for item in raw)
    logger.info(f"Loaded {len(codes)} TUSS codes from {path.name}")
    return codes


TUSS_CODES: Tuple[TussCode, ...] = _load_table(TUSS_DATA_PATH)

TUSS_BY_CODE: Mapping[str, TussCode] = MappingProxyType({c.codigo: c for c in TUSS_CODES})


def _group_table(codes: Tuple[TussCode, ...]) -> Mapping[str, Tuple[TussCode, ...]]:
    groups: Dict[str, List[TussCode]] = {}
    for code in codes:
        groups.setdefault(code.grupo, []).append(code)
    return MappingProxyType({grupo: tuple(items) for grupo, items in groups.items()})


TUSS_BY_GROUP: Mapping[str, Tuple[TussCode, ...]] = _group_table(TUSS_CODES)


def search(query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[TussCode]:
    """
    Search active TUSS codes

    Args:
        query: Code prefix, or part of the description, group or subgroup
        limit: Maximum results

    Returns:
        Matching codes, code-prefix hits first, then by description.
        Queries shorter than 2 characters return an empty list.
    """
    term = (query or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        return []

    exact = TUSS_BY_CODE.get(term)
    if exact is not None and exact.ativo:
        return [exact]

    needle = term.lower()
    prefix_hits: List[TussCode] = []
    text_hits: List[TussCode] = []
    for code in TUSS_CODES:
        if not code.ativo:
            continue
        if code.codigo.startswith(term):
            prefix_hits.append(code)
        elif (
            needle in code.descricao.lower()
            or needle in code.grupo.lower()
            or (code.subgrupo is not None and needle in code.subgrupo.lower())
        ):
            text_hits.append(code)

    prefix_hits.sort(key=lambda c: c.codigo)
    text_hits.sort(key=lambda c: c.descricao.lower())
    return (prefix_hits + text_hits)[:max(limit, 0)]


def get_by_code(codigo: str) -> Optional[TussCode]:
    """Exact lookup; None for empty or unknown codes"""
    if not codigo:
        return None
    return TUSS_BY_CODE.get(codigo.strip())


def get_by_group(grupo: str) -> List[TussCode]:
    return list(TUSS_BY_GROUP.get(grupo, ()))


def list_groups() -> List[str]:
    return sorted(TUSS_BY_GROUP.keys())


def is_valid(codigo: str) -> bool:
    """True when an active code with exactly this value exists"""
    code = TUSS_BY_CODE.get(codigo) if codigo else None
    return code is not None and code.ativo


def get_consulta_codes() -> List[TussCode]:
    """Active office-visit codes (grupo 'Procedimentos clínicos', subgroup Consultas)"""
    return [
        c for c in TUSS_BY_GROUP.get(GRUPO_CONSULTAS, ())
        if c.ativo and (c.subgrupo or "").lower().startswith("consulta")
    ]


def get_exam_codes() -> List[TussCode]:
    """Active laboratory and imaging codes"""
    return [c for grupo in GRUPOS_EXAMES for c in TUSS_BY_GROUP.get(grupo, ()) if c.ativo]


def count() -> int:
    return len(TUSS_CODES)


class TUSSService:
    """Service facade over the static TUSS table"""

    def search_tuss_codes(self, search_term: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[TussCode]:
        return search(search_term, limit)

    def get_tuss_code(self, codigo: str) -> Optional[TussCode]:
        return get_by_code(codigo)

    def get_codes_by_group(self, grupo: str) -> List[TussCode]:
        return get_by_group(grupo)

    def list_groups(self) -> List[str]:
        return list_groups()

    def validate_tuss_code(self, codigo: str) -> bool:
        """
        Validate that a TUSS code exists and is active

        Args:
            codigo: TUSS code

        Returns:
            True if valid, False otherwise
        """
        valid = is_valid(codigo)
        if not valid:
            logger.debug(f"Invalid TUSS code: {codigo}")
        return valid
