"""
Glosa Endpoints
Parse operator glosa responses and demonstrativos, attach them to guides and manage appeals
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from faturamento.api.deps import get_current_user_id
from faturamento.schemas.guia import (
    CreateRecursoInput,
    ImportDemonstrativoInput,
    ImportGlosaXmlInput,
    ResolveGlosaInput,
)
from faturamento.schemas.tiss import (
    DemonstrativoAnalise,
    DemonstrativoImportResult,
    Glosa,
    GlosaDescription,
    GlosaResponseInput,
    RecursoGlosa,
)
from faturamento.services.tiss.guia_service import GuiaService
from faturamento.services.tiss.parsers import (
    get_glosa_description,
    parse_demonstrativo_xml,
    parse_glosa_response,
    parse_glosa_xml,
)

router = APIRouter(prefix="/tiss", tags=["TISS Glosas"])

XML_MEDIA_TYPE = "application/xml"


@router.post("/glosas/parse-xml", response_model=Glosa)
async def parse_glosa_xml_endpoint(data: ImportGlosaXmlInput):
    """Parse a glosa XML without storing it"""
    return parse_glosa_xml(data.xml, today=data.data_referencia)


@router.post("/glosas/parse", response_model=Glosa)
async def parse_glosa_response_endpoint(data: GlosaResponseInput):
    """Parse a structured glosa response without storing it"""
    return parse_glosa_response(data)


@router.post("/demonstrativos/parse", response_model=DemonstrativoAnalise)
async def parse_demonstrativo_endpoint(data: ImportDemonstrativoInput):
    """Parse a demonstrativo de análise without applying it"""
    return parse_demonstrativo_xml(data.xml, today=data.data_referencia)


@router.get("/glosas/codes/{codigo}", response_model=GlosaDescription)
async def describe_glosa_code(codigo: str):
    """Description and recommended action for a glosa code"""
    return get_glosa_description(codigo)


@router.post(
    "/clinics/{clinic_id}/guias/{guia_id}/glosas/xml",
    response_model=Glosa,
    status_code=status.HTTP_201_CREATED,
)
async def import_glosa_xml(
    clinic_id: str,
    guia_id: str,
    data: ImportGlosaXmlInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Parse an operator glosa XML and attach it to the guide"""
    glosa = parse_glosa_xml(data.xml, today=data.data_referencia)
    return await GuiaService(db).import_glosa(clinic_id, guia_id, glosa, user_id)


@router.post(
    "/clinics/{clinic_id}/guias/{guia_id}/glosas",
    response_model=Glosa,
    status_code=status.HTTP_201_CREATED,
)
async def import_glosa(
    clinic_id: str,
    guia_id: str,
    data: GlosaResponseInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Attach a structured (manually entered) glosa to the guide"""
    return await GuiaService(db).import_glosa(clinic_id, guia_id, parse_glosa_response(data), user_id)


@router.post(
    "/clinics/{clinic_id}/guias/{guia_id}/glosas/{glosa_id}/recursos",
    response_model=RecursoGlosa,
    status_code=status.HTTP_201_CREATED,
)
async def create_recurso(
    clinic_id: str,
    guia_id: str,
    glosa_id: str,
    data: CreateRecursoInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """File an appeal against a glosa"""
    return await GuiaService(db).create_recurso(clinic_id, guia_id, glosa_id, data, user_id)


@router.post("/clinics/{clinic_id}/guias/{guia_id}/glosas/{glosa_id}/resolve", response_model=Glosa)
async def resolve_glosa(
    clinic_id: str,
    guia_id: str,
    glosa_id: str,
    data: ResolveGlosaInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Record the operator's final decision on a glosa"""
    return await GuiaService(db).resolve_glosa(clinic_id, guia_id, glosa_id, data, user_id)


@router.get("/clinics/{clinic_id}/guias/{guia_id}/glosas/{glosa_id}/recursos/{recurso_id}/xml")
async def get_recurso_xml(
    clinic_id: str,
    guia_id: str,
    glosa_id: str,
    recurso_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    """Download the appeal XML of a recurso"""
    xml_content = await GuiaService(db).get_recurso_xml(clinic_id, guia_id, glosa_id, recurso_id)
    return Response(
        content=xml_content,
        media_type=XML_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{recurso_id}.xml"'},
    )


@router.post("/clinics/{clinic_id}/demonstrativos", response_model=DemonstrativoImportResult)
async def import_demonstrativo(
    clinic_id: str,
    data: ImportDemonstrativoInput,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Apply an operator demonstrativo de análise to the clinic's guides"""
    demonstrativo = parse_demonstrativo_xml(data.xml, today=data.data_referencia)
    return await GuiaService(db).import_demonstrativo(clinic_id, demonstrativo, user_id)
