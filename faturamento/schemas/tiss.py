"""
TISS Schemas
Pydantic models for TISS 4.02.00 guides, glosas and billing reports.

Field names are snake_case in Python and camelCase on the wire, following the
ANS element names (``registroANS``, ``valorTotalOPME``).
"""

import enum
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TISSBaseModel(BaseModel):
    """Base model accepting both camelCase (wire) and snake_case (Python) names"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================

class TipoGuia(str, enum.Enum):
    """Tipo de guia TISS"""
    CONSULTA = "consulta"
    SADT = "sadt"
    INTERNACAO = "internacao"
    HONORARIOS = "honorarios"
    ANEXO = "anexo"


class StatusGuia(str, enum.Enum):
    """Status da guia no faturamento"""
    RASCUNHO = "rascunho"
    ENVIADA = "enviada"
    EM_ANALISE = "em_analise"
    AUTORIZADA = "autorizada"
    GLOSADA_PARCIAL = "glosada_parcial"
    GLOSADA_TOTAL = "glosada_total"
    PAGA = "paga"
    RECURSO = "recurso"


class StatusGlosa(str, enum.Enum):
    """Status geral de uma glosa"""
    PENDENTE = "pendente"
    EM_RECURSO = "em_recurso"
    RESOLVIDA = "resolvida"
    INDEFERIDA = "indeferida"


class StatusRecurso(str, enum.Enum):
    """Status de um recurso de glosa"""
    ENVIADO = "enviado"
    EM_ANALISE = "em_analise"
    ACEITO = "aceito"
    NEGADO = "negado"
    ACEITO_PARCIAL = "aceito_parcial"


# Código da tabela TUSS
TABELA_TUSS = "22"


# =============================================================================
# TUSS
# =============================================================================

class TussCode(TISSBaseModel):
    """Código TUSS (Terminologia Unificada da Saúde Suplementar)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    codigo: str
    descricao: str
    grupo: str
    subgrupo: Optional[str] = None
    valor_referencia: Optional[Decimal] = None
    vigencia_inicio: date
    vigencia_fim: Optional[date] = None
    ativo: bool = True


# =============================================================================
# IDENTIFICATION BLOCKS
# =============================================================================

class DadosBeneficiario(TISSBaseModel):
    """Dados do beneficiário (paciente)"""
    numero_carteira: str = ""
    validade_carteira: Optional[date] = None
    nome_beneficiario: str = ""
    cns: Optional[str] = None
    data_nascimento: Optional[date] = None


class DadosContratado(TISSBaseModel):
    """Dados do prestador contratado"""
    codigo_prestador_na_operadora: str = ""
    nome_contratado: Optional[str] = None
    cnes: Optional[str] = None
    cnpj: Optional[str] = None


class DadosProfissional(TISSBaseModel):
    """Dados do profissional solicitante/executante"""
    conselho_profissional: str = ""
    numero_conselho_profissional: str = ""
    uf: str = ""
    nome_profissional: Optional[str] = None
    cbo: Optional[str] = None


# =============================================================================
# GUIAS
# =============================================================================

class GuiaConsulta(TISSBaseModel):
    """Guia de Consulta TISS 4.02.00"""
    registro_ans: str = Field("", alias="registroANS")
    numero_guia_prestador: str = ""
    numero_guia_operadora: Optional[str] = None
    data_autorizacao: Optional[date] = None
    senha: Optional[str] = None
    data_validade_senha: Optional[date] = None
    dados_beneficiario: DadosBeneficiario = Field(default_factory=DadosBeneficiario)
    contratado_solicitante: DadosContratado = Field(default_factory=DadosContratado)
    profissional_solicitante: DadosProfissional = Field(default_factory=DadosProfissional)
    indicacao_clinica: Optional[str] = None
    tipo_consulta: str = ""
    data_atendimento: Optional[date] = None
    codigo_tabela: str = TABELA_TUSS
    codigo_procedimento: str = ""
    valor_procedimento: Optional[Decimal] = None
    observacao: Optional[str] = None


class ProcedimentoRealizado(TISSBaseModel):
    """Procedimento realizado em uma guia SP/SADT"""
    data_realizacao: Optional[date] = None
    hora_inicial: Optional[time] = None
    hora_final: Optional[time] = None
    codigo_tabela: str = TABELA_TUSS
    codigo_procedimento: str = ""
    descricao_procedimento: str = ""
    quantidade_realizada: int = 1
    valor_unitario: Decimal = Decimal("0")
    valor_total: Decimal = Decimal("0")
    via_acesso: Optional[str] = None
    tecnica_utilizada: Optional[str] = None


class GuiaSADT(TISSBaseModel):
    """Guia SP/SADT (Serviço Profissional / Serviço Auxiliar de Diagnóstico e Terapia)"""
    registro_ans: str = Field("", alias="registroANS")
    numero_guia_prestador: str = ""
    numero_guia_principal: Optional[str] = None
    numero_guia_operadora: Optional[str] = None
    data_autorizacao: Optional[date] = None
    senha: Optional[str] = None
    data_validade_senha: Optional[date] = None
    dados_beneficiario: DadosBeneficiario = Field(default_factory=DadosBeneficiario)
    contratado_solicitante: DadosContratado = Field(default_factory=DadosContratado)
    profissional_solicitante: DadosProfissional = Field(default_factory=DadosProfissional)
    contratado_executante: DadosContratado = Field(default_factory=DadosContratado)
    profissional_executante: DadosProfissional = Field(default_factory=DadosProfissional)
    carater_atendimento: str = ""
    data_solicitacao: Optional[date] = None
    indicacao_clinica: str = ""
    procedimentos_realizados: List[ProcedimentoRealizado] = Field(default_factory=list)
    valor_total_procedimentos: Decimal = Decimal("0")
    valor_total_taxas: Optional[Decimal] = None
    valor_total_materiais: Optional[Decimal] = None
    valor_total_medicamentos: Optional[Decimal] = None
    valor_total_opme: Optional[Decimal] = Field(None, alias="valorTotalOPME")
    valor_total_geral: Optional[Decimal] = None
    observacao: Optional[str] = None


class TissXmlOptions(TISSBaseModel):
    """Options for generating TISS XML"""
    include_declaration: bool = True
    pretty_print: bool = True
    # Transaction timestamp written to the cabecalho; defaults to now
    data_hora_registro: Optional[datetime] = None


# =============================================================================
# GLOSAS
# =============================================================================

class ItemGlosado(TISSBaseModel):
    """Item glosado em uma guia"""
    sequencial_item: int
    codigo_procedimento: str = ""
    descricao_procedimento: str = ""
    valor_glosado: Decimal = Decimal("0")
    codigo_glosa: str = "outros"
    descricao_glosa: str = ""
    justificativa_recurso: Optional[str] = None
    status_recurso: Optional[str] = None


class ItemContestado(TISSBaseModel):
    """Item contestado em um recurso"""
    sequencial_item: int
    justificativa: str
    documentos_anexos: List[str] = Field(default_factory=list)


class RecursoGlosa(TISSBaseModel):
    """Recurso (appeal) de uma glosa"""
    id: str
    glosa_id: str
    numero_recurso: str = ""
    data_envio: date
    itens_contestados: List[ItemContestado] = Field(default_factory=list)
    justificativa_geral: Optional[str] = None
    valor_contestado: Decimal = Decimal("0")
    status: StatusRecurso = StatusRecurso.ENVIADO
    resposta_operadora: Optional[str] = None
    data_resposta: Optional[date] = None
    valor_recuperado: Optional[Decimal] = None
    xml_content: Optional[str] = None


class Glosa(TISSBaseModel):
    """Glosa (denial) de uma guia"""
    id: Optional[str] = None
    numero_guia_prestador: str = ""
    tipo_guia: TipoGuia = TipoGuia.CONSULTA
    data_recebimento: date
    valor_original: Decimal = Decimal("0")
    valor_glosado: Decimal = Decimal("0")
    valor_aprovado: Decimal = Decimal("0")
    itens_glosados: List[ItemGlosado] = Field(default_factory=list)
    prazo_recurso: date
    status: StatusGlosa = StatusGlosa.PENDENTE
    observacao_operadora: Optional[str] = None
    recursos: List[RecursoGlosa] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GlosaItemInput(TISSBaseModel):
    """Item of a structured glosa response"""
    codigo_procedimento: str = ""
    descricao: Optional[str] = None
    valor: Decimal = Decimal("0")
    motivo: str = "outros"


class GlosaResponseInput(TISSBaseModel):
    """Structured glosa response (JSON API or manual entry)"""
    numero_guia_prestador: str = ""
    tipo_guia: Optional[TipoGuia] = None
    data_recebimento: Optional[date] = None
    valor_original: Decimal = Decimal("0")
    valor_glosado: Decimal = Decimal("0")
    itens: Optional[List[GlosaItemInput]] = None
    observacao: Optional[str] = None


class StatusDemonstrativoGuia(str, enum.Enum):
    """Resultado da análise de uma guia no demonstrativo"""
    APROVADA = "aprovada"
    GLOSADA_PARCIAL = "glosada_parcial"
    GLOSADA_TOTAL = "glosada_total"
    PENDENTE = "pendente"


class DemonstrativoGuia(TISSBaseModel):
    """Guia analisada em um demonstrativo de análise de conta"""
    numero_guia_prestador: str = ""
    numero_guia_operadora: Optional[str] = None
    data_execucao: date
    valor_informado: Decimal = Decimal("0")
    valor_processado: Decimal = Decimal("0")
    valor_glosado: Decimal = Decimal("0")
    status: StatusDemonstrativoGuia = StatusDemonstrativoGuia.APROVADA
    itens_glosados: List[ItemGlosado] = Field(default_factory=list)


class DemonstrativoAnalise(TISSBaseModel):
    """Demonstrativo de análise de conta (resultado do lote na operadora)"""
    numero_lote: str = ""
    registro_ans: str = Field("", alias="registroANS")
    protocolo: str = ""
    data_processamento: date
    valor_informado: Decimal = Decimal("0")
    valor_processado: Decimal = Decimal("0")
    valor_glosado: Decimal = Decimal("0")
    guias: List[DemonstrativoGuia] = Field(default_factory=list)


class DemonstrativoImportResult(TISSBaseModel):
    """Outcome of applying a demonstrativo to the stored guides"""
    demonstrativo: DemonstrativoAnalise
    guias_atualizadas: List[str] = Field(default_factory=list)
    glosas_criadas: List[str] = Field(default_factory=list)
    guias_nao_encontradas: List[str] = Field(default_factory=list)


class GlosaDescription(TISSBaseModel):
    """Human-readable reason and remediation for a glosa code"""
    description: str
    recommendation: str


class MotivoStats(TISSBaseModel):
    motivo: str
    quantidade: int = 0
    valor: Decimal = Decimal("0")


class GlosaStats(TISSBaseModel):
    """Aggregated statistics over a list of glosas"""
    total_glosas: int = 0
    valor_total_glosado: Decimal = Decimal("0")
    valor_recuperado: Decimal = Decimal("0")
    taxa_recuperacao: float = 0.0
    glosas_por_status: Dict[str, int] = Field(default_factory=dict)
    principais_motivos: List[MotivoStats] = Field(default_factory=list)
    glosas_proximo_prazo: int = 0


# =============================================================================
# PERSISTED GUIA
# =============================================================================

class GuiaRecord(TISSBaseModel):
    """Guia as stored by the orchestration layer"""
    id: str
    clinic_id: str
    patient_id: str
    appointment_id: Optional[str] = None
    tipo: TipoGuia
    status: StatusGuia
    numero_guia_prestador: str
    numero_guia_operadora: Optional[str] = None
    registro_ans: str = Field(..., alias="registroANS")
    nome_operadora: str = ""
    data_atendimento: date
    valor_total: Decimal
    valor_glosado: Optional[Decimal] = None
    valor_pago: Optional[Decimal] = None
    xml_content: Optional[str] = None
    dados_guia: Dict[str, Any] = Field(default_factory=dict)
    glosas: List[Glosa] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None


# =============================================================================
# RELATÓRIOS
# =============================================================================

class Periodo(TISSBaseModel):
    inicio: date
    fim: date


class OperadoraFaturamento(TISSBaseModel):
    registro_ans: str = Field(..., alias="registroANS")
    nome_operadora: str = ""
    valor_faturado: Decimal = Decimal("0")
    valor_glosado: Decimal = Decimal("0")
    valor_recebido: Decimal = Decimal("0")
    quantidade_guias: int = 0


class ResumoFaturamento(TISSBaseModel):
    """Resumo de faturamento por período"""
    periodo: Periodo
    total_guias: int = 0
    guias_por_tipo: Dict[str, int] = Field(default_factory=dict)
    guias_por_status: Dict[str, int] = Field(default_factory=dict)
    valor_total_faturado: Decimal = Decimal("0")
    valor_total_glosado: Decimal = Decimal("0")
    valor_total_recebido: Decimal = Decimal("0")
    taxa_glosa: float = 0.0
    por_operadora: List[OperadoraFaturamento] = Field(default_factory=list)


class MotivoGlosaResumo(TISSBaseModel):
    motivo: str
    descricao: str = ""
    quantidade: int = 0
    valor: Decimal = Decimal("0")
    percentual: float = 0.0


class OperadoraGlosaResumo(TISSBaseModel):
    registro_ans: str = Field(..., alias="registroANS")
    nome_operadora: str = ""
    quantidade: int = 0
    valor: Decimal = Decimal("0")


class AnaliseGlosas(TISSBaseModel):
    """Análise de glosas por período"""
    periodo: Periodo
    total_glosas: int = 0
    valor_total_glosado: Decimal = Decimal("0")
    valor_recuperado: Decimal = Decimal("0")
    taxa_recuperacao: float = 0.0
    por_motivo: List[MotivoGlosaResumo] = Field(default_factory=list)
    por_operadora: List[OperadoraGlosaResumo] = Field(default_factory=list)
