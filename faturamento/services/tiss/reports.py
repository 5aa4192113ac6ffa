"""
Billing Reports
Billing summary and glosa analysis over a date range
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy.ext.asyncio import AsyncSession

from faturamento.schemas.tiss import (
    AnaliseGlosas,
    GuiaRecord,
    MotivoGlosaResumo,
    OperadoraFaturamento,
    OperadoraGlosaResumo,
    Periodo,
    ResumoFaturamento,
    StatusGlosa,
    StatusGuia,
    TipoGuia,
)
from faturamento.services.tiss.guia_service import GuiaService
from faturamento.services.tiss.parsers.denial_interpreter import describe_glosa_code

logger = logging.getLogger(__name__)


def _percent(part: Decimal, total: Decimal) -> float:
    if total <= 0:
        return 0.0
    return round(float(part / total * 100), 2)


def build_resumo_faturamento(guias: Iterable[GuiaRecord], inicio: date, fim: date) -> ResumoFaturamento:
    """
    Summarize billing for a period

    Every TipoGuia and StatusGuia bucket is present, even with a zero count.
    """
    guias_por_tipo: Dict[str, int] = {tipo.value: 0 for tipo in TipoGuia}
    guias_por_status: Dict[str, int] = {status.value: 0 for status in StatusGuia}
    por_operadora: Dict[str, OperadoraFaturamento] = {}

    total_guias = 0
    valor_faturado = Decimal("0")
    valor_glosado = Decimal("0")
    valor_recebido = Decimal("0")

    for guia in guias:
        total_guias += 1
        guias_por_tipo[guia.tipo.value] += 1
        guias_por_status[guia.status.value] += 1

        glosado = guia.valor_glosado or Decimal("0")
        pago = guia.valor_pago or Decimal("0")
        valor_faturado += guia.valor_total
        valor_glosado += glosado
        valor_recebido += pago

        operadora = por_operadora.get(guia.registro_ans)
        if operadora is None:
            operadora = OperadoraFaturamento(
                registro_ans=guia.registro_ans,
                nome_operadora=guia.nome_operadora,
            )
            por_operadora[guia.registro_ans] = operadora
        operadora.valor_faturado += guia.valor_total
        operadora.valor_glosado += glosado
        operadora.valor_recebido += pago
        operadora.quantidade_guias += 1

    return ResumoFaturamento(
        periodo=Periodo(inicio=inicio, fim=fim),
        total_guias=total_guias,
        guias_por_tipo=guias_por_tipo,
        guias_por_status=guias_por_status,
        valor_total_faturado=valor_faturado,
        valor_total_glosado=valor_glosado,
        valor_total_recebido=valor_recebido,
        taxa_glosa=_percent(valor_glosado, valor_faturado),
        por_operadora=list(por_operadora.values()),
    )


def build_analise_glosas(guias: Iterable[GuiaRecord], inicio: date, fim: date) -> AnaliseGlosas:
    """
    Analyze glosas for a period

    Recovered value is what operators returned on resolved glosas
    (valorRecuperado of their recursos).
    """
    por_motivo: Dict[str, MotivoGlosaResumo] = {}
    por_operadora: Dict[str, OperadoraGlosaResumo] = {}

    total_glosas = 0
    valor_glosado = Decimal("0")
    valor_recuperado = Decimal("0")

    for guia in guias:
        if not guia.glosas:
            continue

        operadora = por_operadora.get(guia.registro_ans)
        if operadora is None:
            operadora = OperadoraGlosaResumo(
                registro_ans=guia.registro_ans,
                nome_operadora=guia.nome_operadora,
            )
            por_operadora[guia.registro_ans] = operadora

        for glosa in guia.glosas:
            total_glosas += 1
            valor_glosado += glosa.valor_glosado
            operadora.quantidade += 1
            operadora.valor += glosa.valor_glosado

            if glosa.status == StatusGlosa.RESOLVIDA:
                valor_recuperado += sum(
                    (r.valor_recuperado or Decimal("0") for r in glosa.recursos),
                    Decimal("0"),
                )

            for item in glosa.itens_glosados:
                motivo = por_motivo.get(item.codigo_glosa)
                if motivo is None:
                    motivo = MotivoGlosaResumo(
                        motivo=item.codigo_glosa,
                        descricao=item.descricao_glosa or describe_glosa_code(item.codigo_glosa),
                    )
                    por_motivo[item.codigo_glosa] = motivo
                motivo.quantidade += 1
                motivo.valor += item.valor_glosado

    motivos: List[MotivoGlosaResumo] = sorted(por_motivo.values(), key=lambda m: m.valor, reverse=True)
    total_motivos = sum((m.valor for m in motivos), Decimal("0"))
    for motivo in motivos:
        motivo.percentual = _percent(motivo.valor, total_motivos)

    return AnaliseGlosas(
        periodo=Periodo(inicio=inicio, fim=fim),
        total_glosas=total_glosas,
        valor_total_glosado=valor_glosado,
        valor_recuperado=valor_recuperado,
        taxa_recuperacao=_percent(valor_recuperado, valor_glosado),
        por_motivo=motivos,
        por_operadora=list(por_operadora.values()),
    )


class BillingReportService:
    """Service for billing reports"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_resumo_faturamento(self, clinic_id: str, inicio: date, fim: date) -> ResumoFaturamento:
        guias = await GuiaService(self.db).get_guias_by_date_range(clinic_id, inicio, fim)
        logger.info(f"Billing summary for clinic {clinic_id} {inicio}..{fim}: {len(guias)} guias")
        return build_resumo_faturamento(guias, inicio, fim)

    async def get_analise_glosas(self, clinic_id: str, inicio: date, fim: date) -> AnaliseGlosas:
        guias = await GuiaService(self.db).get_guias_by_date_range(clinic_id, inicio, fim)
        logger.info(f"Glosa analysis for clinic {clinic_id} {inicio}..{fim}: {len(guias)} guias")
        return build_analise_glosas(guias, inicio, fim)
