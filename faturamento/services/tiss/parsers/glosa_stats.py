"""
Glosa statistics and appeal deadlines
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from config import settings
from faturamento.schemas.tiss import Glosa, GlosaStats, MotivoStats, StatusGlosa

TOP_MOTIVOS_LIMIT = 10


def get_days_to_appeal_deadline(glosa: Glosa, today: Optional[date] = None) -> int:
    """Days until prazoRecurso; negative once the deadline has passed"""
    today = today or date.today()
    return (glosa.prazo_recurso - today).days


def is_within_appeal_deadline(glosa: Glosa, today: Optional[date] = None) -> bool:
    """True while an appeal can still be filed (the deadline day included)"""
    return get_days_to_appeal_deadline(glosa, today) >= 0


def _rate(part: Decimal, total: Decimal) -> float:
    if total <= 0:
        return 0.0
    return round(float(part / total * 100), 2)


def calculate_glosa_stats(glosas: Iterable[Glosa], today: Optional[date] = None) -> GlosaStats:
    """
    Aggregate a list of glosas

    Args:
        glosas: Glosas to aggregate
        today: Reference date for the approaching-deadline count

    Returns:
        GlosaStats with the recovered value (valorAprovado of resolved glosas),
        per-status counts, and the top denial reasons by value
    """
    today = today or date.today()
    alerta_dias = settings.GLOSA_PRAZO_ALERTA_DIAS

    total = 0
    valor_total = Decimal("0")
    valor_recuperado = Decimal("0")
    por_status: Dict[str, int] = {status.value: 0 for status in StatusGlosa}
    motivo_quantidade: Counter = Counter()
    motivo_valor: Dict[str, Decimal] = {}
    proximo_prazo = 0

    for glosa in glosas:
        total += 1
        valor_total += glosa.valor_glosado
        por_status[glosa.status.value] += 1

        if glosa.status == StatusGlosa.RESOLVIDA:
            valor_recuperado += glosa.valor_aprovado

        if glosa.status == StatusGlosa.PENDENTE:
            days = get_days_to_appeal_deadline(glosa, today)
            if 0 <= days <= alerta_dias:
                proximo_prazo += 1

        for item in glosa.itens_glosados:
            motivo_quantidade[item.codigo_glosa] += 1
            motivo_valor[item.codigo_glosa] = motivo_valor.get(item.codigo_glosa, Decimal("0")) + item.valor_glosado

    principais: List[MotivoStats] = sorted(
        (
            MotivoStats(motivo=motivo, quantidade=quantidade, valor=motivo_valor[motivo])
            for motivo, quantidade in motivo_quantidade.items()
        ),
        key=lambda m: m.valor,
        reverse=True,
    )[:TOP_MOTIVOS_LIMIT]

    return GlosaStats(
        total_glosas=total,
        valor_total_glosado=valor_total,
        valor_recuperado=valor_recuperado,
        taxa_recuperacao=_rate(valor_recuperado, valor_total),
        glosas_por_status=por_status,
        principais_motivos=principais,
        glosas_proximo_prazo=proximo_prazo,
    )
