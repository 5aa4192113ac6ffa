"""
HTTP API tests
"""
import warnings

import pytest


pytestmark = pytest.mark.integration

CLINIC_ID = "clinic-abc"
GUIAS_URL = f"/api/v1/tiss/clinics/{CLINIC_ID}/guias"


def consulta_payload():
    return {
        "patientId": "patient-1",
        "registroANS": "123456",
        "nomeOperadora": "Operadora Saúde",
        "dadosBeneficiario": {"numeroCarteira": "12345678901234567", "nomeBeneficiario": "Maria da Silva"},
        "contratado": {"codigoPrestadorNaOperadora": "PREST001", "cnes": "1234"},
        "profissional": {"conselhoProfissional": "CRM", "numeroConselhoProfissional": "54321", "uf": "SP"},
        "tipoConsulta": "1",
        "dataAtendimento": "2025-12-15",
        "codigoProcedimento": "10101012",
        "valorProcedimento": "150.00",
    }


async def create_consulta(client):
    response = await client.post(f"{GUIAS_URL}/consulta", json=consulta_payload(), headers={"X-User-Id": "user-1"})
    assert response.status_code == 201
    return response.json()


async def test_root_endpoint(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_health_endpoint(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["tiss_version"] == "4.02.00"


async def test_tuss_search_and_lookup(client):
    response = await client.get("/api/v1/tiss/tuss/search", params={"q": "hemograma"})
    assert response.status_code == 200
    assert "40301117" in [c["codigo"] for c in response.json()]

    response = await client.get("/api/v1/tiss/tuss/10101012")
    assert response.status_code == 200
    assert response.json()["grupo"] == "Procedimentos clínicos"
    assert "valorReferencia" in response.json()

    response = await client.get("/api/v1/tiss/tuss/00000000")
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["type"] == "NotFoundException"
    assert error["path"] == "/api/v1/tiss/tuss/00000000"


async def test_tuss_groups(client):
    response = await client.get("/api/v1/tiss/tuss/groups")
    assert response.status_code == 200
    assert len(response.json()) == 4


async def test_create_and_fetch_guia(client):
    guia = await create_consulta(client)
    assert guia["status"] == "rascunho"
    assert guia["registroANS"] == "123456"
    assert guia["createdBy"] == "user-1"

    response = await client.get(f"{GUIAS_URL}/{guia['id']}")
    assert response.status_code == 200
    assert response.json()["numeroGuiaPrestador"] == guia["numeroGuiaPrestador"]

    response = await client.get(f"{GUIAS_URL}/{guia['id']}/xml")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<ans:codigoProcedimento>0010101012</ans:codigoProcedimento>" in response.text


async def test_create_guia_validation_error(client):
    payload = consulta_payload()
    payload["registroANS"] = "12"
    response = await client.post(f"{GUIAS_URL}/consulta", json=payload)
    assert response.status_code == 422
    error = response.json()["error"]
    assert error["message"] == "Validação falhou"
    assert "Registro ANS deve ter 6 dígitos" in error["details"]["errors"]


async def test_request_schema_error(client):
    with warnings.catch_warnings():
        warnings.filterwarnings("error", message=".*HTTP_422_UNPROCESSABLE_ENTITY", category=DeprecationWarning)
        response = await client.post(f"{GUIAS_URL}/consulta", json={"patientId": "p"})
    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"


async def test_list_requires_a_filter(client):
    response = await client.get(GUIAS_URL)
    assert response.status_code == 422


async def test_status_update_and_listing(client):
    guia = await create_consulta(client)

    response = await client.patch(f"{GUIAS_URL}/{guia['id']}/status", json={"status": "enviada"})
    assert response.status_code == 200
    assert response.json()["status"] == "enviada"

    response = await client.get(GUIAS_URL, params={"status": "enviada"})
    assert [g["id"] for g in response.json()] == [guia["id"]]


async def test_validate_stored_xml(client):
    guia = await create_consulta(client)
    response = await client.post(f"{GUIAS_URL}/{guia['id']}/validate-xml")
    assert response.status_code == 200
    assert response.json()["is_valid"] is True


async def test_glosa_flow(client):
    guia = await create_consulta(client)
    glosas_url = f"{GUIAS_URL}/{guia['id']}/glosas"

    xml = (
        "<ans:guiaConsulta><ans:dataRecebimento>2025-12-21</ans:dataRecebimento>"
        "<ans:valorInformado>150.00</ans:valorInformado><ans:valorGlosado>40.00</ans:valorGlosado>"
        "<ans:codigoGlosa>A8</ans:codigoGlosa></ans:guiaConsulta>"
    )
    response = await client.post(f"{glosas_url}/xml", json={"xml": xml})
    assert response.status_code == 201
    glosa = response.json()
    assert glosa["valorGlosado"] == "40.00"
    assert glosa["prazoRecurso"] == "2026-01-20"
    assert glosa["itensGlosados"][0]["codigoGlosa"] == "A8"

    response = await client.post(
        f"{glosas_url}/{glosa['id']}/recursos",
        json={"itensContestados": [{"sequencialItem": 1, "justificativa": "Autorização anexada"}]},
    )
    assert response.status_code == 201
    assert response.json()["status"] == "enviado"

    response = await client.post(
        f"{glosas_url}/{glosa['id']}/resolve",
        json={"status": "resolvida", "valorRecuperado": "40.00"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "resolvida"

    response = await client.get(f"{GUIAS_URL}/{guia['id']}")
    assert response.json()["status"] == "autorizada"

    response = await client.post(
        f"{glosas_url}/{glosa['id']}/resolve",
        json={"status": "indeferida"},
    )
    assert response.status_code == 409


async def test_stateless_glosa_endpoints(client):
    response = await client.post("/api/v1/tiss/glosas/parse", json={"valorGlosado": "12.50", "dataRecebimento": "2025-12-21"})
    assert response.status_code == 200
    assert response.json()["itensGlosados"][0]["codigoGlosa"] == "outros"

    response = await client.post("/api/v1/tiss/glosas/parse-xml", json={"xml": ""})
    assert response.status_code == 200
    assert response.json()["valorGlosado"] == "0"

    response = await client.get("/api/v1/tiss/glosas/codes/A1")
    assert response.json()["description"] == "Guia não preenchida corretamente"


async def test_reports(client):
    guia = await create_consulta(client)
    await client.post(
        f"{GUIAS_URL}/{guia['id']}/glosas",
        json={"valorOriginal": "150", "valorGlosado": "30", "dataRecebimento": "2025-12-21"},
    )
    params = {"inicio": "2025-12-01", "fim": "2025-12-31"}
    reports_url = f"/api/v1/tiss/clinics/{CLINIC_ID}/reports"

    response = await client.get(f"{reports_url}/faturamento", params=params)
    assert response.status_code == 200
    assert response.json()["totalGuias"] == 1
    assert response.json()["taxaGlosa"] == 20.0

    response = await client.get(f"{reports_url}/glosas", params=params)
    assert response.json()["totalGlosas"] == 1

    response = await client.get(f"{reports_url}/glosas/stats", params=params)
    assert response.json()["glosasPorStatus"]["pendente"] == 1

    response = await client.get(f"{reports_url}/faturamento", params={"inicio": "2025-12-31", "fim": "2025-12-01"})
    assert response.status_code == 422


async def test_reference_date_only_fills_missing_receipt_date(client):
    url = "/api/v1/tiss/glosas/parse-xml"

    response = await client.post(url, json={"xml": "<ans:valorGlosado>10</ans:valorGlosado>", "dataReferencia": "2025-12-01"})
    assert response.json()["dataRecebimento"] == "2025-12-01"
    assert response.json()["prazoRecurso"] == "2025-12-31"

    xml = "<ans:dataRecebimento>2025-12-21</ans:dataRecebimento><ans:valorGlosado>10</ans:valorGlosado>"
    response = await client.post(url, json={"xml": xml, "dataReferencia": "2025-12-01"})
    assert response.json()["dataRecebimento"] == "2025-12-21"


async def test_recurso_xml_download(client):
    guia = await create_consulta(client)
    glosas_url = f"{GUIAS_URL}/{guia['id']}/glosas"
    response = await client.post(
        glosas_url,
        json={"valorOriginal": "150.00", "valorGlosado": "40.00", "dataRecebimento": "2025-12-21",
              "itens": [{"codigoProcedimento": "10101012", "valor": "40.00", "motivo": "A8"}]},
    )
    glosa = response.json()

    response = await client.post(
        f"{glosas_url}/{glosa['id']}/recursos",
        json={"itensContestados": [{"sequencialItem": 1, "justificativa": "Valor contratado"}],
              "justificativaGeral": "Tabela vigente"},
    )
    assert response.status_code == 201
    recurso = response.json()
    assert recurso["numeroRecurso"].startswith("REC")

    response = await client.get(f"{glosas_url}/{glosa['id']}/recursos/{recurso['id']}/xml")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert f'filename="{recurso["id"]}.xml"' in response.headers["content-disposition"]
    assert "<ans:justificativaRecurso>Tabela vigente</ans:justificativaRecurso>" in response.text

    response = await client.get(f"{glosas_url}/{glosa['id']}/recursos/recurso-missing/xml")
    assert response.status_code == 404

    response = await client.post(
        f"{glosas_url}/{glosa['id']}/recursos",
        json={"itensContestados": [{"sequencialItem": 1, "justificativa": ""}]},
    )
    assert response.status_code == 422
    assert response.json()["error"]["details"]["errors"] == ["Justificativa do item 1 é obrigatória"]


async def test_demonstrativo_endpoints(client):
    guia = await create_consulta(client)
    xml = (
        "<ans:demonstrativoAnaliseConta><ans:numeroLote>L-1</ans:numeroLote>"
        "<ans:dataProcessamento>2025-12-28</ans:dataProcessamento>"
        "<ans:guiaRecusada>"
        f"<ans:numeroGuiaPrestador>{guia['numeroGuiaPrestador']}</ans:numeroGuiaPrestador>"
        "<ans:valorInformado>150.00</ans:valorInformado><ans:valorGlosado>150.00</ans:valorGlosado>"
        "</ans:guiaRecusada>"
        "<ans:guia><ans:numeroGuiaPrestador>G-UNKNOWN</ans:numeroGuiaPrestador></ans:guia>"
        "</ans:demonstrativoAnaliseConta>"
    )

    response = await client.post("/api/v1/tiss/demonstrativos/parse", json={"xml": xml})
    assert response.status_code == 200
    parsed = response.json()
    assert parsed["numeroLote"] == "L-1"
    assert [g["status"] for g in parsed["guias"]] == ["glosada_total", "aprovada"]

    response = await client.post(f"/api/v1/tiss/clinics/{CLINIC_ID}/demonstrativos", json={"xml": xml})
    assert response.status_code == 200
    result = response.json()
    assert result["guiasAtualizadas"] == [guia["id"]]
    assert result["guiasNaoEncontradas"] == ["G-UNKNOWN"]
    assert len(result["glosasCriadas"]) == 1

    response = await client.get(f"{GUIAS_URL}/{guia['id']}")
    assert response.json()["status"] == "glosada_total"
    assert response.json()["glosas"][0]["prazoRecurso"] == "2026-01-27"
