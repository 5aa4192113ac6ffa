"""
TISS XML validation tests
"""
import pytest

from faturamento.services.tiss.consultation_form import generate_xml_consulta
from faturamento.services.tiss.security import calculate_integrity_hash, verify_integrity
from faturamento.services.tiss.xsd_validator import XSDValidator


pytestmark = pytest.mark.unit

MINIMAL_XSD = """<?xml version="1.0" encoding="UTF-8"?>
<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema"
           targetNamespace="http://www.ans.gov.br/padroes/tiss/schemas"
           elementFormDefault="qualified">
  <xs:element name="mensagemTISS">
    <xs:complexType>
      <xs:sequence>
        <xs:element name="somenteEste" type="xs:string"/>
      </xs:sequence>
    </xs:complexType>
  </xs:element>
</xs:schema>
"""


def test_integrity_hash():
    digest = calculate_integrity_hash("conteudo")
    assert len(digest) == 40
    assert digest == digest.upper()
    assert calculate_integrity_hash(b"conteudo") == digest
    assert verify_integrity("conteudo", digest.lower()) is True
    assert verify_integrity("outro", digest) is False


def test_generated_xml_is_valid(guia_consulta, xml_options):
    result = XSDValidator().validate_xml(generate_xml_consulta(guia_consulta, xml_options))
    assert result["is_valid"] is True
    assert result["errors"] == []
    assert result["warnings"] == []
    assert result["version"] == "4.02.00"


def test_empty_content():
    result = XSDValidator().validate_xml("")
    assert result["is_valid"] is False
    messages = [e["message"] for e in result["errors"]]
    assert "XML declaration missing" in messages
    assert "Root element mensagemTISS not found" in messages
    assert "Epilogo with hash required" in messages
    assert result["version"] is None


def test_hash_mismatch_detected(guia_consulta, xml_options):
    xml = generate_xml_consulta(guia_consulta, xml_options).replace("150.00", "999.00")
    result = XSDValidator().validate_xml(xml)
    assert result["is_valid"] is False
    assert [e["path"] for e in result["errors"]] == ["epilogo.hash"]


def test_unsupported_version_is_a_warning(guia_consulta, xml_options):
    xml = generate_xml_consulta(guia_consulta, xml_options).replace("4.02.00", "3.05.00")
    result = XSDValidator().validate_xml(xml)
    assert any("Unsupported TISS version 3.05.00" in w["message"] for w in result["warnings"])


def test_missing_xsd_file_is_a_warning(guia_consulta, xml_options, tmp_path):
    xml = generate_xml_consulta(guia_consulta, xml_options)
    result = XSDValidator(xsd_path=str(tmp_path / "missing.xsd")).validate_xml(xml)
    assert result["is_valid"] is True
    assert result["warnings"][0]["path"] == "xsd"


def test_xsd_errors_are_reported(guia_consulta, xml_options, tmp_path):
    xsd_file = tmp_path / "tiss.xsd"
    xsd_file.write_text(MINIMAL_XSD, encoding="utf-8")
    xml = generate_xml_consulta(guia_consulta, xml_options)

    result = XSDValidator().validate_xml(xml, xsd_path=str(xsd_file))
    assert result["is_valid"] is False
    assert result["errors"]
    assert all(e["level"] == "error" for e in result["errors"])
