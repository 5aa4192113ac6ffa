"""
TUSS Endpoints
"""

from typing import List

from fastapi import APIRouter, Query

from faturamento.core.error_handling import NotFoundException
from faturamento.schemas.tiss import TussCode
from faturamento.services.tiss.tuss_service import DEFAULT_SEARCH_LIMIT, TUSSService

router = APIRouter(prefix="/tiss/tuss", tags=["TUSS"])


@router.get("/search", response_model=List[TussCode])
async def search_tuss_codes(
    q: str = Query(..., description="Code prefix or part of the description/group"),
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=100),
):
    """Search TUSS codes"""
    return TUSSService().search_tuss_codes(q, limit)


@router.get("/groups", response_model=List[str])
async def list_tuss_groups():
    """List TUSS groups"""
    return TUSSService().list_groups()


@router.get("/groups/{grupo}", response_model=List[TussCode])
async def get_tuss_codes_by_group(grupo: str):
    """Get TUSS codes of a group"""
    return TUSSService().get_codes_by_group(grupo)


@router.get("/{codigo}", response_model=TussCode)
async def get_tuss_code(codigo: str):
    """Get TUSS code by code"""
    code = TUSSService().get_tuss_code(codigo)
    if not code:
        raise NotFoundException("Código TUSS não encontrado", details={"codigo": codigo})
    return code


@router.get("/{codigo}/valid")
async def validate_tuss_code(codigo: str):
    """Check that a TUSS code exists and is active"""
    return {"codigo": codigo, "valid": TUSSService().validate_tuss_code(codigo)}
