"""
Pytest configuration and fixtures
"""
import os
from datetime import date, datetime
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_async_session
import faturamento.models.tiss  # noqa: F401  (registers tables on Base)
from faturamento.schemas.guia import CreateGuiaConsultaInput, CreateGuiaSADTInput, ProcedimentoInput
from faturamento.schemas.tiss import (
    DadosBeneficiario,
    DadosContratado,
    DadosProfissional,
    GuiaConsulta,
    GuiaSADT,
    ProcedimentoRealizado,
    TissXmlOptions,
)


# Test database URL (use in-memory SQLite for testing)
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///:memory:"
)

CLINIC_ID = "clinic-abc"
REGISTRO_ANS = "123456"
FIXED_TIMESTAMP = datetime(2025, 12, 21, 10, 30, 0)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False} if "sqlite" in TEST_DATABASE_URL else {},
        poolclass=StaticPool if "sqlite" in TEST_DATABASE_URL else None,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to the app, sharing the test database session
    """
    from main import app

    async def override_get_async_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def xml_options() -> TissXmlOptions:
    """Deterministic XML options (fixed transaction timestamp)"""
    return TissXmlOptions(data_hora_registro=FIXED_TIMESTAMP)


@pytest.fixture
def beneficiario() -> DadosBeneficiario:
    return DadosBeneficiario(
        numero_carteira="12345678901234567",
        nome_beneficiario="Maria da Silva",
        validade_carteira=date(2026, 12, 31),
    )


@pytest.fixture
def contratado() -> DadosContratado:
    return DadosContratado(
        codigo_prestador_na_operadora="PREST001",
        nome_contratado="Clínica Exemplo",
        cnes="1234",
    )


@pytest.fixture
def profissional() -> DadosProfissional:
    return DadosProfissional(
        nome_profissional="Dr. João Souza",
        conselho_profissional="CRM",
        numero_conselho_profissional="54321",
        uf="SP",
        cbo="225125",
    )


@pytest.fixture
def guia_consulta(beneficiario, contratado, profissional) -> GuiaConsulta:
    return GuiaConsulta(
        registro_ans=REGISTRO_ANS,
        numero_guia_prestador="G-0001",
        dados_beneficiario=beneficiario,
        contratado_solicitante=contratado,
        profissional_solicitante=profissional,
        tipo_consulta="1",
        data_atendimento=date(2025, 12, 15),
        codigo_procedimento="10101012",
        valor_procedimento=Decimal("150.00"),
    )


@pytest.fixture
def guia_sadt(beneficiario, contratado, profissional) -> GuiaSADT:
    procedimentos = [
        ProcedimentoRealizado(
            data_realizacao=date(2025, 12, 15),
            codigo_procedimento="40301117",
            descricao_procedimento="Hemograma completo",
            quantidade_realizada=1,
            valor_unitario=Decimal("25.00"),
            valor_total=Decimal("25.00"),
        ),
        ProcedimentoRealizado(
            data_realizacao=date(2025, 12, 15),
            codigo_procedimento="40302016",
            descricao_procedimento="Colesterol total",
            quantidade_realizada=2,
            valor_unitario=Decimal("15.00"),
            valor_total=Decimal("30.00"),
        ),
    ]
    return GuiaSADT(
        registro_ans=REGISTRO_ANS,
        numero_guia_prestador="S-0001",
        dados_beneficiario=beneficiario,
        contratado_solicitante=contratado,
        profissional_solicitante=profissional,
        contratado_executante=contratado,
        profissional_executante=profissional,
        carater_atendimento="1",
        data_solicitacao=date(2025, 12, 15),
        indicacao_clinica="Check-up anual",
        procedimentos_realizados=procedimentos,
        valor_total_procedimentos=Decimal("55.00"),
        valor_total_geral=Decimal("55.00"),
    )


@pytest.fixture
def consulta_input(beneficiario, contratado, profissional) -> CreateGuiaConsultaInput:
    return CreateGuiaConsultaInput(
        patient_id="patient-1",
        appointment_id="appt-1",
        registro_ans=REGISTRO_ANS,
        nome_operadora="Operadora Saúde",
        dados_beneficiario=beneficiario,
        contratado=contratado,
        profissional=profissional,
        tipo_consulta="1",
        data_atendimento=date(2025, 12, 15),
        codigo_procedimento="10101012",
        valor_procedimento=Decimal("150.00"),
    )


@pytest.fixture
def sadt_input(beneficiario, contratado, profissional) -> CreateGuiaSADTInput:
    return CreateGuiaSADTInput(
        patient_id="patient-1",
        registro_ans=REGISTRO_ANS,
        nome_operadora="Operadora Saúde",
        dados_beneficiario=beneficiario,
        contratado_solicitante=contratado,
        profissional_solicitante=profissional,
        contratado_executante=contratado,
        profissional_executante=profissional,
        carater_atendimento="1",
        data_solicitacao=date(2025, 12, 16),
        indicacao_clinica="Check-up anual",
        procedimentos=[
            ProcedimentoInput(
                data_realizacao=date(2025, 12, 16),
                codigo_procedimento="40301117",
                descricao_procedimento="Hemograma completo",
                valor_unitario=Decimal("25.00"),
            ),
            ProcedimentoInput(
                data_realizacao=date(2025, 12, 16),
                codigo_procedimento="40302016",
                descricao_procedimento="Colesterol total",
                quantidade_realizada=2,
                valor_unitario=Decimal("15.00"),
            ),
        ],
    )
