"""
Guia Endpoints
Create, query and update billed TISS guides
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from faturamento.api.deps import get_current_user_id
from faturamento.core.error_handling import NotFoundException, ValidationException
from faturamento.schemas.guia import (
    CreateGuiaConsultaInput,
    CreateGuiaSADTInput,
    GenerateLoteInput,
    UpdateGuiaOperadoraInput,
    UpdateGuiaStatusInput,
)
from faturamento.schemas.tiss import GuiaRecord, StatusGuia
from faturamento.services.tiss.guia_service import GuiaService
from faturamento.services.tiss.xsd_validator import XSDValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tiss/clinics/{clinic_id}", tags=["TISS Guias"])

XML_MEDIA_TYPE = "application/xml"


@router.post("/guias/consulta", response_model=GuiaRecord, status_code=status.HTTP_201_CREATED)
async def create_guia_consulta(
    clinic_id: str,
    data: CreateGuiaConsultaInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Create a Guia de Consulta and its XML"""
    return await GuiaService(db).create_guia_consulta(clinic_id, data, user_id)


@router.post("/guias/sadt", response_model=GuiaRecord, status_code=status.HTTP_201_CREATED)
async def create_guia_sadt(
    clinic_id: str,
    data: CreateGuiaSADTInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Create a Guia SP/SADT and its XML"""
    return await GuiaService(db).create_guia_sadt(clinic_id, data, user_id)


@router.get("/guias", response_model=List[GuiaRecord])
async def list_guias(
    clinic_id: str,
    status_filter: Optional[StatusGuia] = Query(None, alias="status"),
    patient_id: Optional[str] = Query(None),
    inicio: Optional[date] = Query(None),
    fim: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
):
    """
    List guides by status, by patient or by service date range

    Exactly one filter is applied, in that order of precedence.
    """
    service = GuiaService(db)
    if status_filter is not None:
        return await service.get_guias_by_status(clinic_id, status_filter)
    if patient_id:
        return await service.get_guias_by_patient(clinic_id, patient_id)
    if inicio and fim:
        return await service.get_guias_by_date_range(clinic_id, inicio, fim)
    raise ValidationException("Informe status, patient_id ou inicio e fim")


@router.get("/guias/{guia_id}", response_model=GuiaRecord)
async def get_guia(
    clinic_id: str,
    guia_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    return await GuiaService(db).get_guia(clinic_id, guia_id)


@router.get("/guias/{guia_id}/xml")
async def get_guia_xml(
    clinic_id: str,
    guia_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Download the stored TISS XML"""
    guia = await GuiaService(db).get_guia(clinic_id, guia_id)
    if not guia.xml_content:
        raise NotFoundException("XML não gerado para esta guia", details={"guia_id": guia_id})
    return Response(
        content=guia.xml_content,
        media_type=XML_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{guia.numero_guia_prestador}.xml"'},
    )


@router.patch("/guias/{guia_id}/status", response_model=GuiaRecord)
async def update_guia_status(
    clinic_id: str,
    guia_id: str,
    data: UpdateGuiaStatusInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    return await GuiaService(db).update_guia_status(clinic_id, guia_id, data.status, user_id)


@router.patch("/guias/{guia_id}/operadora", response_model=GuiaRecord)
async def update_guia_operadora(
    clinic_id: str,
    guia_id: str,
    data: UpdateGuiaOperadoraInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Record the operator response for a guide"""
    return await GuiaService(db).update_guia_operadora(clinic_id, guia_id, data, user_id)


@router.post("/guias/{guia_id}/regenerate-xml")
async def regenerate_guia_xml(
    clinic_id: str,
    guia_id: str,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Rebuild the XML from the stored guide data"""
    xml_content = await GuiaService(db).regenerate_xml(clinic_id, guia_id, user_id)
    return Response(content=xml_content, media_type=XML_MEDIA_TYPE)


@router.post("/guias/{guia_id}/validate-xml")
async def validate_guia_xml(
    clinic_id: str,
    guia_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Validate the stored XML (structure, hash and XSD when configured)"""
    guia = await GuiaService(db).get_guia(clinic_id, guia_id)
    return XSDValidator().validate_xml(guia.xml_content or "")


@router.post("/lotes")
async def generate_lote(
    clinic_id: str,
    data: GenerateLoteInput,
    db: AsyncSession = Depends(get_async_session),
):
    """Build a lote message from stored guides of the same type and operator"""
    numero_lote, xml_content = await GuiaService(db).generate_lote(clinic_id, data.guia_ids, data.sequencial)
    logger.info(f"Lote {numero_lote} requested for clinic {clinic_id}")
    return Response(
        content=xml_content,
        media_type=XML_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="lote-{numero_lote}.xml"'},
    )
