"""
Billing Report Endpoints
"""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from faturamento.core.error_handling import ValidationException
from faturamento.schemas.tiss import AnaliseGlosas, Glosa, GlosaStats, ResumoFaturamento
from faturamento.services.tiss.guia_service import GuiaService
from faturamento.services.tiss.parsers import calculate_glosa_stats
from faturamento.services.tiss.reports import BillingReportService

router = APIRouter(prefix="/tiss/clinics/{clinic_id}/reports", tags=["TISS Reports"])


def _check_period(inicio: date, fim: date):
    if inicio > fim:
        raise ValidationException(
            "Data inicial posterior à data final",
            details={"inicio": inicio.isoformat(), "fim": fim.isoformat()},
        )


@router.get("/faturamento", response_model=ResumoFaturamento)
async def get_resumo_faturamento(
    clinic_id: str,
    inicio: date = Query(...),
    fim: date = Query(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Billing summary for guides attended within [inicio, fim]"""
    _check_period(inicio, fim)
    return await BillingReportService(db).get_resumo_faturamento(clinic_id, inicio, fim)


@router.get("/glosas", response_model=AnaliseGlosas)
async def get_analise_glosas(
    clinic_id: str,
    inicio: date = Query(...),
    fim: date = Query(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Glosa analysis by reason and operator"""
    _check_period(inicio, fim)
    return await BillingReportService(db).get_analise_glosas(clinic_id, inicio, fim)


@router.get("/glosas/stats", response_model=GlosaStats)
async def get_glosa_stats(
    clinic_id: str,
    inicio: date = Query(...),
    fim: date = Query(...),
    db: AsyncSession = Depends(get_async_session),
):
    """Glosa statistics, including glosas whose appeal deadline is close"""
    _check_period(inicio, fim)
    guias = await GuiaService(db).get_guias_by_date_range(clinic_id, inicio, fim)
    glosas: List[Glosa] = [glosa for guia in guias for glosa in guia.glosas]
    return calculate_glosa_stats(glosas)
