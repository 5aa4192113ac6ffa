"""
Guia Request Schemas
Inputs for creating and updating billed guides
"""

from datetime import date, time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from faturamento.schemas.tiss import (
    TABELA_TUSS,
    DadosBeneficiario,
    DadosContratado,
    DadosProfissional,
    ItemContestado,
    StatusGlosa,
    StatusGuia,
    TISSBaseModel,
)


class CreateGuiaConsultaInput(TISSBaseModel):
    """Schema for creating a Guia de Consulta"""
    patient_id: str
    appointment_id: Optional[str] = None
    registro_ans: str = Field(..., alias="registroANS")
    nome_operadora: str = ""
    dados_beneficiario: DadosBeneficiario
    contratado: DadosContratado
    profissional: DadosProfissional
    tipo_consulta: str
    data_atendimento: date
    codigo_procedimento: str
    valor_procedimento: Decimal
    indicacao_clinica: Optional[str] = None
    numero_guia_operadora: Optional[str] = None
    data_autorizacao: Optional[date] = None
    senha: Optional[str] = None
    observacao: Optional[str] = None


class ProcedimentoInput(TISSBaseModel):
    """Procedure line; valorTotal is derived from quantity and unit value"""
    data_realizacao: date
    hora_inicial: Optional[time] = None
    hora_final: Optional[time] = None
    codigo_tabela: str = TABELA_TUSS
    codigo_procedimento: str
    descricao_procedimento: str
    quantidade_realizada: int = 1
    valor_unitario: Decimal
    via_acesso: Optional[str] = None
    tecnica_utilizada: Optional[str] = None


class CreateGuiaSADTInput(TISSBaseModel):
    """Schema for creating a Guia SP/SADT"""
    patient_id: str
    appointment_id: Optional[str] = None
    registro_ans: str = Field(..., alias="registroANS")
    nome_operadora: str = ""
    dados_beneficiario: DadosBeneficiario
    contratado_solicitante: DadosContratado
    profissional_solicitante: DadosProfissional
    contratado_executante: DadosContratado
    profissional_executante: DadosProfissional
    carater_atendimento: str
    data_solicitacao: date
    indicacao_clinica: str
    procedimentos: List[ProcedimentoInput] = Field(default_factory=list)
    numero_guia_principal: Optional[str] = None
    numero_guia_operadora: Optional[str] = None
    data_autorizacao: Optional[date] = None
    senha: Optional[str] = None
    valor_total_taxas: Optional[Decimal] = None
    valor_total_materiais: Optional[Decimal] = None
    valor_total_medicamentos: Optional[Decimal] = None
    valor_total_opme: Optional[Decimal] = Field(None, alias="valorTotalOPME")
    observacao: Optional[str] = None


class UpdateGuiaStatusInput(TISSBaseModel):
    status: StatusGuia


class UpdateGuiaOperadoraInput(TISSBaseModel):
    """Operator response for a guide"""
    status: StatusGuia
    numero_guia_operadora: Optional[str] = None
    valor_glosado: Optional[Decimal] = None
    valor_pago: Optional[Decimal] = None


class ImportGlosaXmlInput(TISSBaseModel):
    """Operator XML; dataReferencia is only used when the XML carries no receipt date"""
    xml: str
    data_referencia: Optional[date] = None


class CreateRecursoInput(TISSBaseModel):
    """Appeal for some or all items of a glosa"""
    itens_contestados: List[ItemContestado]
    justificativa_geral: Optional[str] = None
    valor_contestado: Optional[Decimal] = None
    data_envio: Optional[date] = None


class ResolveGlosaInput(TISSBaseModel):
    """Final operator decision on an appealed glosa"""
    status: StatusGlosa
    valor_recuperado: Decimal = Decimal("0")
    resposta_operadora: Optional[str] = None
    data_resposta: Optional[date] = None


class GenerateLoteInput(TISSBaseModel):
    """Stored guides to send together in one lote"""
    guia_ids: List[str] = Field(..., min_length=1)
    sequencial: int = Field(1, ge=1, le=9999)


class ImportDemonstrativoInput(TISSBaseModel):
    """Demonstrativo de análise XML; dataReferencia fills absent dates"""
    xml: str
    data_referencia: Optional[date] = None
