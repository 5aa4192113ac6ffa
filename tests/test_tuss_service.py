"""
TUSS table lookup and search tests
"""
import pytest

from faturamento.services.tiss import tuss_service
from faturamento.services.tiss.tuss_service import TUSSService


pytestmark = pytest.mark.unit


def test_table_loaded():
    assert tuss_service.count() == 72
    assert len(tuss_service.TUSS_BY_CODE) == 72


def test_get_by_code():
    code = tuss_service.get_by_code("40301117")
    assert code is not None
    assert code.descricao == "Hemograma completo"
    assert code.grupo == "Exames laboratoriais"


def test_get_by_code_unknown_or_empty():
    assert tuss_service.get_by_code("99999999") is None
    assert tuss_service.get_by_code("") is None


@pytest.mark.parametrize("query", ["", "a", " "])
def test_search_short_query_returns_nothing(query):
    assert tuss_service.search(query) == []


def test_search_exact_code_returns_single_hit():
    results = tuss_service.search("10101012")
    assert [c.codigo for c in results] == ["10101012"]


def test_search_code_prefix_sorted_by_code():
    results = tuss_service.search("4030", limit=100)
    codes = [c.codigo for c in results]
    assert codes
    assert all(c.startswith("4030") for c in codes)
    assert codes == sorted(codes)


def test_search_by_description_is_case_insensitive():
    results = tuss_service.search("HEMOGRAMA")
    descricoes = [c.descricao for c in results]
    assert "Hemograma completo" in descricoes
    assert "Hemograma com contagem de plaquetas" in descricoes


def test_search_matches_group_and_subgroup():
    by_group = tuss_service.search("diagnóstico por imagem", limit=100)
    assert len(by_group) == 9
    by_subgroup = tuss_service.search("hematologia", limit=100)
    assert any(c.codigo == "40301117" for c in by_subgroup)


def test_search_respects_limit():
    assert len(tuss_service.search("40", limit=5)) == 5
    assert len(tuss_service.search("exames")) == tuss_service.DEFAULT_SEARCH_LIMIT


def test_list_groups_sorted():
    assert tuss_service.list_groups() == [
        "Diagnóstico por imagem",
        "Exames laboratoriais",
        "Procedimentos",
        "Procedimentos clínicos",
    ]


def test_get_by_group():
    assert len(tuss_service.get_by_group("Exames laboratoriais")) == 40
    assert tuss_service.get_by_group("Inexistente") == []


def test_is_valid():
    assert tuss_service.is_valid("10101012") is True
    assert tuss_service.is_valid("00000000") is False
    assert tuss_service.is_valid("") is False


def test_consulta_and_exam_codes():
    consultas = tuss_service.get_consulta_codes()
    assert len(consultas) == 6
    assert all(c.subgrupo == "Consultas" for c in consultas)

    exames = tuss_service.get_exam_codes()
    assert len(exames) == 49
    assert {c.grupo for c in exames} == {"Exames laboratoriais", "Diagnóstico por imagem"}


def test_service_facade():
    service = TUSSService()
    assert service.get_tuss_code("10101012").codigo == "10101012"
    assert service.validate_tuss_code("10101012") is True
    assert service.search_tuss_codes("consulta", limit=3)
    assert "Procedimentos" in service.list_groups()
