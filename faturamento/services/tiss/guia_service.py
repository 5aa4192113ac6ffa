"""
Guia Service
Creates, stores and reconciles billed TISS guides and their glosas
"""

import logging
import secrets
import string
import time
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from faturamento.core.error_handling import (
    GlosaFinalizadaException,
    GlosaNotFoundException,
    GuiaNotFoundException,
    GuiaValidationException,
    NotFoundException,
    ValidationException,
)
from faturamento.models.tiss.guia import TISSGuia
from faturamento.schemas.guia import (
    CreateGuiaConsultaInput,
    CreateGuiaSADTInput,
    CreateRecursoInput,
    ResolveGlosaInput,
    UpdateGuiaOperadoraInput,
)
from faturamento.schemas.tiss import (
    TABELA_TUSS,
    DemonstrativoAnalise,
    DemonstrativoImportResult,
    Glosa,
    GuiaConsulta,
    GuiaRecord,
    GuiaSADT,
    ProcedimentoRealizado,
    RecursoGlosa,
    StatusDemonstrativoGuia,
    StatusGlosa,
    StatusGuia,
    StatusRecurso,
    TipoGuia,
    TissXmlOptions,
)
from faturamento.services.tiss import tuss_service
from faturamento.services.tiss.batch_generator import generate_lote_number, generate_lote_xml
from faturamento.services.tiss.consultation_form import generate_xml_consulta, validate_guia_consulta
from faturamento.services.tiss.parsers.glosa_parser import glosa_from_demonstrativo
from faturamento.services.tiss.parsers.glosa_stats import is_within_appeal_deadline
from faturamento.services.tiss.recurso_form import generate_recurso_xml, validate_recurso
from faturamento.services.tiss.sadt_form import (
    calculate_sadt_totals,
    calculate_valor_total,
    generate_xml_sadt,
    validate_guia_sadt,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase

FINAL_GLOSA_STATUSES = (StatusGlosa.RESOLVIDA, StatusGlosa.INDEFERIDA)


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _dump(model) -> Dict[str, Any]:
    """JSON-ready dict with wire (camelCase) names"""
    return model.model_dump(mode="json", by_alias=True)


class GuiaService:
    """Service for billed TISS guides"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # NUMBERING
    # =========================================================================

    @staticmethod
    def generate_guia_number(clinic_id: str) -> str:
        """
        Generate a provider guide number

        Format: first 4 characters of the clinic id, base-36 millisecond
        timestamp and 4 random base-36 characters, uppercase and dash separated.
        """
        prefix = (clinic_id or "")[:4].upper()
        timestamp = _to_base36(time.time_ns() // 1_000_000)
        random_part = "".join(secrets.choice(_BASE36) for _ in range(4))
        return f"{prefix}-{timestamp}-{random_part}"

    @staticmethod
    def generate_recurso_number() -> str:
        """Appeal number: REC, base-36 millisecond timestamp and 4 random base-36 characters"""
        timestamp = _to_base36(time.time_ns() // 1_000_000)
        random_part = "".join(secrets.choice(_BASE36) for _ in range(4))
        return f"REC{timestamp}{random_part}"

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_guia_consulta(
        self,
        clinic_id: str,
        data: CreateGuiaConsultaInput,
        user_id: str = "system",
        options: Optional[TissXmlOptions] = None,
    ) -> GuiaRecord:
        """
        Create a Guia de Consulta

        Args:
            clinic_id: Clinic ID
            data: Guide data
            user_id: User creating the guide
            options: XML generation options

        Returns:
            Stored guide with status 'rascunho'

        Raises:
            GuiaValidationException: with every validation message in details
        """
        numero = self.generate_guia_number(clinic_id)
        guia = GuiaConsulta(
            registro_ans=data.registro_ans,
            numero_guia_prestador=numero,
            numero_guia_operadora=data.numero_guia_operadora,
            data_autorizacao=data.data_autorizacao,
            senha=data.senha,
            dados_beneficiario=data.dados_beneficiario,
            contratado_solicitante=data.contratado,
            profissional_solicitante=data.profissional,
            indicacao_clinica=data.indicacao_clinica,
            tipo_consulta=data.tipo_consulta,
            data_atendimento=data.data_atendimento,
            codigo_tabela=TABELA_TUSS,
            codigo_procedimento=data.codigo_procedimento,
            valor_procedimento=data.valor_procedimento,
            observacao=data.observacao,
        )

        self._raise_on_errors(validate_guia_consulta(guia))
        self._warn_unknown_tuss([guia.codigo_procedimento])

        guia_db = TISSGuia(
            id=str(uuid.uuid4()),
            clinic_id=clinic_id,
            patient_id=data.patient_id,
            appointment_id=data.appointment_id,
            tipo=TipoGuia.CONSULTA.value,
            status=StatusGuia.RASCUNHO.value,
            numero_guia_prestador=numero,
            registro_ans=data.registro_ans,
            nome_operadora=data.nome_operadora,
            data_atendimento=data.data_atendimento,
            valor_total=data.valor_procedimento,
            xml_content=generate_xml_consulta(guia, options),
            dados_guia=_dump(guia),
            glosas=[],
            created_by=user_id,
            updated_by=user_id,
        )
        return await self._insert(guia_db)

    async def create_guia_sadt(
        self,
        clinic_id: str,
        data: CreateGuiaSADTInput,
        user_id: str = "system",
        options: Optional[TissXmlOptions] = None,
    ) -> GuiaRecord:
        """
        Create a Guia SP/SADT

        Line totals and guide totals are computed from the procedures and the
        optional categories (taxas, materiais, medicamentos, OPME).
        """
        numero = self.generate_guia_number(clinic_id)

        procedimentos = []
        for proc in data.procedimentos:
            line = ProcedimentoRealizado(**proc.model_dump())
            line.valor_total = calculate_valor_total(line)
            procedimentos.append(line)

        totals = calculate_sadt_totals(procedimentos)
        extras = sum(
            (
                value for value in (
                    data.valor_total_taxas,
                    data.valor_total_materiais,
                    data.valor_total_medicamentos,
                    data.valor_total_opme,
                ) if value
            ),
            Decimal("0"),
        )

        guia = GuiaSADT(
            registro_ans=data.registro_ans,
            numero_guia_prestador=numero,
            numero_guia_principal=data.numero_guia_principal,
            numero_guia_operadora=data.numero_guia_operadora,
            data_autorizacao=data.data_autorizacao,
            senha=data.senha,
            dados_beneficiario=data.dados_beneficiario,
            contratado_solicitante=data.contratado_solicitante,
            profissional_solicitante=data.profissional_solicitante,
            contratado_executante=data.contratado_executante,
            profissional_executante=data.profissional_executante,
            carater_atendimento=data.carater_atendimento,
            data_solicitacao=data.data_solicitacao,
            indicacao_clinica=data.indicacao_clinica,
            procedimentos_realizados=procedimentos,
            valor_total_procedimentos=totals["valorTotalProcedimentos"],
            valor_total_taxas=data.valor_total_taxas,
            valor_total_materiais=data.valor_total_materiais,
            valor_total_medicamentos=data.valor_total_medicamentos,
            valor_total_opme=data.valor_total_opme,
            valor_total_geral=totals["valorTotalGeral"] + extras,
            observacao=data.observacao,
        )

        self._raise_on_errors(validate_guia_sadt(guia))
        self._warn_unknown_tuss([p.codigo_procedimento for p in procedimentos])

        guia_db = TISSGuia(
            id=str(uuid.uuid4()),
            clinic_id=clinic_id,
            patient_id=data.patient_id,
            appointment_id=data.appointment_id,
            tipo=TipoGuia.SADT.value,
            status=StatusGuia.RASCUNHO.value,
            numero_guia_prestador=numero,
            registro_ans=data.registro_ans,
            nome_operadora=data.nome_operadora,
            data_atendimento=data.data_solicitacao,
            valor_total=guia.valor_total_geral,
            xml_content=generate_xml_sadt(guia, options),
            dados_guia=_dump(guia),
            glosas=[],
            created_by=user_id,
            updated_by=user_id,
        )
        return await self._insert(guia_db)

    # =========================================================================
    # READ
    # =========================================================================

    async def get_guia(self, clinic_id: str, guia_id: str) -> GuiaRecord:
        """Get a guide; raises GuiaNotFoundException when missing"""
        return self._to_record(await self._get_guia_db(clinic_id, guia_id))

    async def get_guias_by_patient(self, clinic_id: str, patient_id: str) -> List[GuiaRecord]:
        query = (
            select(TISSGuia)
            .where(TISSGuia.clinic_id == clinic_id, TISSGuia.patient_id == patient_id)
            .order_by(TISSGuia.created_at.desc())
        )
        return await self._list(query)

    async def get_guias_by_status(self, clinic_id: str, status: StatusGuia) -> List[GuiaRecord]:
        query = (
            select(TISSGuia)
            .where(TISSGuia.clinic_id == clinic_id, TISSGuia.status == StatusGuia(status).value)
            .order_by(TISSGuia.created_at.desc())
        )
        return await self._list(query)

    async def get_guias_by_date_range(self, clinic_id: str, inicio: date, fim: date) -> List[GuiaRecord]:
        """Guides whose service date falls within [inicio, fim], newest first"""
        query = (
            select(TISSGuia)
            .where(
                TISSGuia.clinic_id == clinic_id,
                TISSGuia.data_atendimento >= inicio,
                TISSGuia.data_atendimento <= fim,
            )
            .order_by(TISSGuia.data_atendimento.desc())
        )
        return await self._list(query)

    # =========================================================================
    # UPDATE
    # =========================================================================

    async def update_guia_status(
        self,
        clinic_id: str,
        guia_id: str,
        status: StatusGuia,
        user_id: str = "system",
    ) -> GuiaRecord:
        guia_db = await self._get_guia_db(clinic_id, guia_id)
        previous = guia_db.status
        guia_db.status = StatusGuia(status).value
        guia_db.updated_by = user_id
        record = await self._save(guia_db)
        logger.info(f"Guia {guia_id} status {previous} -> {guia_db.status}")
        return record

    async def update_guia_operadora(
        self,
        clinic_id: str,
        guia_id: str,
        data: UpdateGuiaOperadoraInput,
        user_id: str = "system",
    ) -> GuiaRecord:
        """Record the operator response (claim number, denied and paid values, status)"""
        guia_db = await self._get_guia_db(clinic_id, guia_id)

        guia_db.status = data.status.value
        if data.numero_guia_operadora is not None:
            guia_db.numero_guia_operadora = data.numero_guia_operadora
            guia_db.dados_guia = {**guia_db.dados_guia, "numeroGuiaOperadora": data.numero_guia_operadora}
        if data.valor_glosado is not None:
            guia_db.valor_glosado = data.valor_glosado
        if data.valor_pago is not None:
            guia_db.valor_pago = data.valor_pago
        guia_db.updated_by = user_id

        record = await self._save(guia_db)
        logger.info(f"Guia {guia_id} updated with operator response, status={guia_db.status}")
        return record

    async def regenerate_xml(
        self,
        clinic_id: str,
        guia_id: str,
        user_id: str = "system",
        options: Optional[TissXmlOptions] = None,
    ) -> str:
        """Rebuild the XML from the stored guide data"""
        guia_db = await self._get_guia_db(clinic_id, guia_id)
        guia = self._guia_model(guia_db)

        if isinstance(guia, GuiaConsulta):
            xml_content = generate_xml_consulta(guia, options)
        else:
            xml_content = generate_xml_sadt(guia, options)

        guia_db.xml_content = xml_content
        guia_db.updated_by = user_id
        await self._save(guia_db)
        logger.info(f"Regenerated XML for guia {guia_id}")
        return xml_content

    async def generate_lote(
        self,
        clinic_id: str,
        guia_ids: List[str],
        sequencial: int = 1,
        options: Optional[TissXmlOptions] = None,
    ) -> Tuple[str, str]:
        """
        Build one lote message from stored guides

        Args:
            clinic_id: Clinic ID
            guia_ids: Guides to send, in order
            sequencial: Lot sequence for the day
            options: XML generation options

        Returns:
            (numero_lote, xml)
        """
        guias = []
        for guia_id in guia_ids:
            guias.append(self._guia_model(await self._get_guia_db(clinic_id, guia_id)))

        numero_lote = generate_lote_number(sequencial)
        return numero_lote, generate_lote_xml(guias, numero_lote, options)

    # =========================================================================
    # GLOSAS
    # =========================================================================

    async def import_glosa(
        self,
        clinic_id: str,
        guia_id: str,
        glosa: Glosa,
        user_id: str = "system",
    ) -> Glosa:
        """
        Attach a parsed glosa to a guide

        The guide becomes 'glosada_total' when the denied value reaches the
        billed value, 'glosada_parcial' otherwise.
        """
        guia_db = await self._get_guia_db(clinic_id, guia_id)

        now = _now()
        stored = glosa.model_copy(update={
            "id": glosa.id or f"glosa-{uuid.uuid4().hex}",
            "numero_guia_prestador": glosa.numero_guia_prestador or guia_db.numero_guia_prestador,
            "created_at": now,
            "updated_at": now,
        })

        glosas = self._load_glosas(guia_db)
        glosas.append(stored)
        self._store_glosas(guia_db, glosas)

        valor_glosado = self._total_glosado(glosas)
        guia_db.valor_glosado = valor_glosado
        guia_db.status = self._glosa_status(valor_glosado, guia_db.valor_total).value
        guia_db.updated_by = user_id

        await self._save(guia_db)
        logger.info(
            f"Imported glosa {stored.id} for guia {guia_id}: "
            f"valor glosado {stored.valor_glosado}, status {guia_db.status}"
        )
        return stored

    async def create_recurso(
        self,
        clinic_id: str,
        guia_id: str,
        glosa_id: str,
        data: CreateRecursoInput,
        user_id: str = "system",
        options: Optional[TissXmlOptions] = None,
    ) -> RecursoGlosa:
        """
        File an appeal for a glosa

        The appeal XML is generated and stored with the recurso. The glosa
        moves to 'em_recurso' and the guide to 'recurso'.
        """
        guia_db = await self._get_guia_db(clinic_id, guia_id)
        glosas = self._load_glosas(guia_db)
        index, glosa = self._find_glosa(glosas, glosa_id)

        if glosa.status in FINAL_GLOSA_STATUSES:
            raise GlosaFinalizadaException(glosa_id, glosa.status.value)

        itens = {item.sequencial_item: item for item in glosa.itens_glosados}
        unknown = [c.sequencial_item for c in data.itens_contestados if c.sequencial_item not in itens]
        if not data.itens_contestados or unknown:
            raise ValidationException(
                "Itens contestados inválidos",
                details={"itens_desconhecidos": unknown},
            )

        if not is_within_appeal_deadline(glosa):
            logger.warning(f"Recurso for glosa {glosa_id} filed after deadline {glosa.prazo_recurso}")

        valor_contestado = data.valor_contestado
        if valor_contestado is None:
            valor_contestado = sum(
                (itens[c.sequencial_item].valor_glosado for c in data.itens_contestados),
                Decimal("0"),
            )

        recurso = RecursoGlosa(
            id=f"recurso-{uuid.uuid4().hex}",
            glosa_id=glosa.id,
            numero_recurso=self.generate_recurso_number(),
            data_envio=data.data_envio or date.today(),
            itens_contestados=data.itens_contestados,
            justificativa_geral=data.justificativa_geral,
            valor_contestado=valor_contestado,
            status=StatusRecurso.ENVIADO,
        )

        errors = validate_recurso(recurso, glosa)
        if errors:
            logger.warning(f"Recurso validation failed for glosa {glosa_id}: {errors}")
            raise GuiaValidationException(errors)

        guia = self._guia_model(guia_db)
        recurso.xml_content = generate_recurso_xml(
            recurso,
            glosa,
            codigo_prestador=guia.contratado_solicitante.codigo_prestador_na_operadora,
            registro_ans=guia_db.registro_ans,
            options=options,
        )

        for contestado in data.itens_contestados:
            item = itens[contestado.sequencial_item]
            item.justificativa_recurso = contestado.justificativa
            item.status_recurso = StatusRecurso.ENVIADO.value

        glosa.recursos.append(recurso)
        glosa.status = StatusGlosa.EM_RECURSO
        glosa.updated_at = _now()
        glosas[index] = glosa
        self._store_glosas(guia_db, glosas)

        guia_db.status = StatusGuia.RECURSO.value
        guia_db.updated_by = user_id

        await self._save(guia_db)
        logger.info(f"Created recurso {recurso.id} for glosa {glosa_id}, valor contestado {valor_contestado}")
        return recurso

    async def get_recurso_xml(self, clinic_id: str, guia_id: str, glosa_id: str, recurso_id: str) -> str:
        """Stored appeal XML of a recurso"""
        guia_db = await self._get_guia_db(clinic_id, guia_id)
        _, glosa = self._find_glosa(self._load_glosas(guia_db), glosa_id)
        for recurso in glosa.recursos:
            if recurso.id == recurso_id and recurso.xml_content:
                return recurso.xml_content
        raise NotFoundException("Recurso não encontrado", details={"recurso_id": recurso_id})

    async def resolve_glosa(
        self,
        clinic_id: str,
        guia_id: str,
        glosa_id: str,
        data: ResolveGlosaInput,
        user_id: str = "system",
    ) -> Glosa:
        """
        Record the operator's final decision on a glosa

        A 'resolvida' decision moves the recovered value from valorGlosado to
        valorAprovado; 'indeferida' keeps the denial.
        """
        if data.status not in FINAL_GLOSA_STATUSES:
            raise ValidationException(
                "Status final deve ser 'resolvida' ou 'indeferida'",
                details={"status": data.status.value},
            )

        guia_db = await self._get_guia_db(clinic_id, guia_id)
        glosas = self._load_glosas(guia_db)
        index, glosa = self._find_glosa(glosas, glosa_id)

        if glosa.status in FINAL_GLOSA_STATUSES:
            raise GlosaFinalizadaException(glosa_id, glosa.status.value)

        recuperado = Decimal("0")
        if data.status == StatusGlosa.RESOLVIDA:
            recuperado = min(max(data.valor_recuperado, Decimal("0")), glosa.valor_glosado)
            glosa.valor_glosado -= recuperado
            glosa.valor_aprovado += recuperado

        if glosa.recursos:
            recurso = glosa.recursos[-1]
            if recuperado <= 0:
                recurso.status = StatusRecurso.NEGADO
            elif recuperado >= recurso.valor_contestado:
                recurso.status = StatusRecurso.ACEITO
            else:
                recurso.status = StatusRecurso.ACEITO_PARCIAL
            recurso.valor_recuperado = recuperado
            recurso.resposta_operadora = data.resposta_operadora
            recurso.data_resposta = data.data_resposta or date.today()
            for item in glosa.itens_glosados:
                if item.status_recurso:
                    item.status_recurso = recurso.status.value

        glosa.status = data.status
        glosa.updated_at = _now()
        glosas[index] = glosa
        self._store_glosas(guia_db, glosas)

        valor_glosado = self._total_glosado(glosas)
        guia_db.valor_glosado = valor_glosado
        if not any(g.status == StatusGlosa.EM_RECURSO for g in glosas):
            if valor_glosado > 0:
                guia_db.status = self._glosa_status(valor_glosado, guia_db.valor_total).value
            else:
                guia_db.status = StatusGuia.AUTORIZADA.value
        guia_db.updated_by = user_id

        await self._save(guia_db)
        logger.info(f"Glosa {glosa_id} {glosa.status.value}, valor recuperado {recuperado}")
        return glosa

    async def import_demonstrativo(
        self,
        clinic_id: str,
        demonstrativo: DemonstrativoAnalise,
        user_id: str = "system",
    ) -> DemonstrativoImportResult:
        """
        Apply an operator demonstrativo de análise to the stored guides

        Guides are matched by numeroGuiaPrestador. Approved guides become
        'autorizada', pending ones 'em_analise', and each denied guide gets a
        glosa dated from the demonstrativo processing date.
        """
        result = DemonstrativoImportResult(demonstrativo=demonstrativo)

        for guia_demo in demonstrativo.guias:
            guia_db = await self._find_by_numero(clinic_id, guia_demo.numero_guia_prestador)
            if guia_db is None:
                logger.warning(
                    f"Demonstrativo lote '{demonstrativo.numero_lote}': "
                    f"guia {guia_demo.numero_guia_prestador!r} not found in clinic {clinic_id}"
                )
                result.guias_nao_encontradas.append(guia_demo.numero_guia_prestador)
                continue

            if guia_demo.numero_guia_operadora:
                guia_db.numero_guia_operadora = guia_demo.numero_guia_operadora
            guia_db.updated_by = user_id

            if guia_demo.status == StatusDemonstrativoGuia.APROVADA:
                guia_db.status = StatusGuia.AUTORIZADA.value
                await self._save(guia_db)
            elif guia_demo.status == StatusDemonstrativoGuia.PENDENTE:
                guia_db.status = StatusGuia.EM_ANALISE.value
                await self._save(guia_db)
            else:
                glosa = glosa_from_demonstrativo(
                    guia_demo,
                    data_recebimento=demonstrativo.data_processamento,
                    tipo_guia=TipoGuia(guia_db.tipo),
                )
                stored = await self.import_glosa(clinic_id, guia_db.id, glosa, user_id)
                result.glosas_criadas.append(stored.id)

            result.guias_atualizadas.append(guia_db.id)

        logger.info(
            f"Demonstrativo lote '{demonstrativo.numero_lote}' applied to clinic {clinic_id}: "
            f"{len(result.guias_atualizadas)} guides updated, {len(result.glosas_criadas)} glosas created, "
            f"{len(result.guias_nao_encontradas)} not found"
        )
        return result

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _raise_on_errors(errors: List[str]):
        if errors:
            logger.warning(f"Guia validation failed: {errors}")
            raise GuiaValidationException(errors)

    @staticmethod
    def _warn_unknown_tuss(codes: List[str]):
        for code in codes:
            if not tuss_service.is_valid(code):
                logger.warning(f"Procedure code {code} not found in TUSS table")

    @staticmethod
    def _guia_model(guia_db: TISSGuia) -> Union[GuiaConsulta, GuiaSADT]:
        if guia_db.tipo == TipoGuia.CONSULTA.value:
            return GuiaConsulta.model_validate(guia_db.dados_guia)
        if guia_db.tipo == TipoGuia.SADT.value:
            return GuiaSADT.model_validate(guia_db.dados_guia)
        raise ValidationException(
            f"Tipo de guia não suportado: {guia_db.tipo}",
            details={"tipo": guia_db.tipo},
        )

    @staticmethod
    def _glosa_status(valor_glosado: Decimal, valor_total: Decimal) -> StatusGuia:
        if valor_glosado >= valor_total:
            return StatusGuia.GLOSADA_TOTAL
        return StatusGuia.GLOSADA_PARCIAL

    @staticmethod
    def _total_glosado(glosas: List[Glosa]) -> Decimal:
        return sum((g.valor_glosado for g in glosas), Decimal("0"))

    @staticmethod
    def _load_glosas(guia_db: TISSGuia) -> List[Glosa]:
        return [Glosa.model_validate(g) for g in (guia_db.glosas or [])]

    @staticmethod
    def _store_glosas(guia_db: TISSGuia, glosas: List[Glosa]):
        # New list so the JSON column is flagged as modified
        guia_db.glosas = [_dump(g) for g in glosas]

    @staticmethod
    def _find_glosa(glosas: List[Glosa], glosa_id: str) -> Tuple[int, Glosa]:
        for index, glosa in enumerate(glosas):
            if glosa.id == glosa_id:
                return index, glosa
        raise GlosaNotFoundException(glosa_id)

    async def _find_by_numero(self, clinic_id: str, numero_guia_prestador: str) -> Optional[TISSGuia]:
        if not numero_guia_prestador:
            return None
        query = select(TISSGuia).where(
            TISSGuia.clinic_id == clinic_id,
            TISSGuia.numero_guia_prestador == numero_guia_prestador,
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def _get_guia_db(self, clinic_id: str, guia_id: str) -> TISSGuia:
        query = select(TISSGuia).where(TISSGuia.clinic_id == clinic_id, TISSGuia.id == guia_id)
        result = await self.db.execute(query)
        guia_db = result.scalar_one_or_none()
        if guia_db is None:
            raise GuiaNotFoundException(guia_id)
        return guia_db

    async def _list(self, query) -> List[GuiaRecord]:
        result = await self.db.execute(query)
        return [self._to_record(g) for g in result.scalars().all()]

    async def _insert(self, guia_db: TISSGuia) -> GuiaRecord:
        self.db.add(guia_db)
        record = await self._save(guia_db)
        logger.info(f"Created guia {guia_db.id} ({guia_db.tipo}) {guia_db.numero_guia_prestador}")
        return record

    async def _save(self, guia_db: TISSGuia) -> GuiaRecord:
        await self.db.commit()
        await self.db.refresh(guia_db)
        return self._to_record(guia_db)

    @staticmethod
    def _to_record(guia_db: TISSGuia) -> GuiaRecord:
        return GuiaRecord(
            id=guia_db.id,
            clinic_id=guia_db.clinic_id,
            patient_id=guia_db.patient_id,
            appointment_id=guia_db.appointment_id,
            tipo=TipoGuia(guia_db.tipo),
            status=StatusGuia(guia_db.status),
            numero_guia_prestador=guia_db.numero_guia_prestador,
            numero_guia_operadora=guia_db.numero_guia_operadora,
            registro_ans=guia_db.registro_ans,
            nome_operadora=guia_db.nome_operadora or "",
            data_atendimento=guia_db.data_atendimento,
            valor_total=guia_db.valor_total,
            valor_glosado=guia_db.valor_glosado,
            valor_pago=guia_db.valor_pago,
            xml_content=guia_db.xml_content,
            dados_guia=guia_db.dados_guia or {},
            glosas=[Glosa.model_validate(g) for g in (guia_db.glosas or [])],
            created_at=guia_db.created_at,
            updated_at=guia_db.updated_at,
            created_by=guia_db.created_by,
            updated_by=guia_db.updated_by,
        )
