"""
TISS Guia Model
Stores billed guides (Consulta, SP/SADT) with their generated XML and glosas
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String, Date, Numeric, Text, DateTime, JSON, Index

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class TISSGuia(Base):
    """TISS Guia - guia faturada para uma operadora"""
    __tablename__ = "tiss_guias"

    id = Column(String(36), primary_key=True)
    clinic_id = Column(String(64), nullable=False, index=True)
    patient_id = Column(String(64), nullable=False, index=True)
    appointment_id = Column(String(64), nullable=True)

    # Guide identification
    tipo = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="rascunho", index=True)
    numero_guia_prestador = Column(String(40), nullable=False, index=True)
    numero_guia_operadora = Column(String(40), nullable=True)

    # Operator
    registro_ans = Column(String(6), nullable=False)
    nome_operadora = Column(String(255), nullable=False, default="")

    data_atendimento = Column(Date, nullable=False, index=True)

    # Financial
    valor_total = Column(Numeric(12, 2), nullable=False)
    valor_glosado = Column(Numeric(12, 2), nullable=True)
    valor_pago = Column(Numeric(12, 2), nullable=True)

    # Generated XML and the guide data it was built from
    xml_content = Column(Text, nullable=True)
    dados_guia = Column(JSON, nullable=False)

    # Glosas with their recursos (list of dicts)
    glosas = Column(JSON, nullable=False, default=list)

    # Audit
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    created_by = Column(String(64), nullable=True)
    updated_by = Column(String(64), nullable=True)

    __table_args__ = (
        Index('ix_tiss_guias_clinic_status', 'clinic_id', 'status'),
        Index('ix_tiss_guias_clinic_data', 'clinic_id', 'data_atendimento'),
    )

    def __repr__(self):
        return f"<TISSGuia(id={self.id}, numero_guia_prestador='{self.numero_guia_prestador}', status='{self.status}')>"
