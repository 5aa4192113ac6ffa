"""
XSD Validator Service
Structural checks, hash verification and optional XSD validation of TISS XML
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from lxml import etree

from config import settings
from faturamento.services.tiss.security import verify_integrity
from faturamento.services.tiss.versioning import CURRENT_TISS_VERSION, is_supported_version

logger = logging.getLogger(__name__)

_EPILOGO_OPEN = "<ans:epilogo>"
_HASH_RE = re.compile(r"<ans:hash>\s*([0-9A-Fa-f]+)\s*</ans:hash>")
_VERSAO_RE = re.compile(r"<ans:versaoPadrao>\s*([^<]+?)\s*</ans:versaoPadrao>")


def verify_hash(xml_content: str) -> bool:
    """
    Recompute the epilogo hash

    Args:
        xml_content: Complete TISS message

    Returns:
        True when ans:hash matches the content emitted before ans:epilogo
    """
    index = xml_content.find(_EPILOGO_OPEN)
    if index < 0:
        return False
    match = _HASH_RE.search(xml_content, index)
    if match is None:
        return False
    # Indentation of the epilogo line is not part of the hashed content
    content = xml_content[:index].rstrip(" \t")
    return verify_integrity(content, match.group(1))


class XSDValidator:
    """Service for validating TISS XML"""

    def __init__(self, xsd_path: Optional[str] = None):
        self.xsd_path = xsd_path or settings.TISS_XSD_PATH

    def validate_xml(self, xml_content: str, xsd_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Validate a generated TISS message

        Args:
            xml_content: XML string to validate
            xsd_path: XSD schema file (defaults to TISS_XSD_PATH when configured)

        Returns:
            Validation result with errors and warnings
        """
        errors: List[Dict[str, Any]] = []
        warnings: List[Dict[str, Any]] = []
        xml_content = xml_content or ""

        if "<?xml version" not in xml_content:
            errors.append({"path": "root", "message": "XML declaration missing", "level": "error"})

        if "mensagemTISS" not in xml_content:
            errors.append({"path": "root", "message": "Root element mensagemTISS not found", "level": "error"})

        if "ans:cabecalho" not in xml_content:
            errors.append({"path": "cabecalho", "message": "Cabecalho element required", "level": "error"})

        versao = _VERSAO_RE.search(xml_content)
        if versao is None:
            warnings.append({"path": "cabecalho.versaoPadrao", "message": "Version not specified"})
        elif not is_supported_version(versao.group(1)):
            warnings.append({
                "path": "cabecalho.versaoPadrao",
                "message": f"Unsupported TISS version {versao.group(1)} (current {CURRENT_TISS_VERSION})",
            })

        if "epilogo" not in xml_content:
            errors.append({"path": "epilogo", "message": "Epilogo with hash required", "level": "error"})
        elif not verify_hash(xml_content):
            errors.append({"path": "epilogo.hash", "message": "Hash does not match content", "level": "error"})

        xml_doc = None
        try:
            xml_doc = etree.fromstring(xml_content.encode("utf-8"))
        except etree.XMLSyntaxError as e:
            errors.append({
                "line": e.lineno,
                "message": f"XML syntax error: {str(e)}",
                "level": "error",
            })

        schema_path = xsd_path or self.xsd_path
        if xml_doc is not None and schema_path:
            errors.extend(self._validate_schema(xml_doc, schema_path, warnings))

        if errors:
            logger.info(f"TISS XML validation failed with {len(errors)} errors")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors,
            "warnings": warnings,
            "version": versao.group(1) if versao else None,
        }

    @staticmethod
    def _validate_schema(xml_doc, schema_path: str, warnings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not Path(schema_path).is_file():
            warnings.append({"path": "xsd", "message": f"XSD file not found: {schema_path}"})
            return []

        try:
            xsd_schema = etree.XMLSchema(etree.parse(schema_path))
        except (etree.XMLSchemaParseError, etree.XMLSyntaxError) as e:
            logger.error(f"Failed to load XSD {schema_path}: {e}")
            warnings.append({"path": "xsd", "message": f"XSD could not be loaded: {e}"})
            return []

        if xsd_schema.validate(xml_doc):
            return []
        return [
            {
                "line": error.line,
                "column": error.column,
                "message": error.message,
                "level": "error",
            }
            for error in xsd_schema.error_log
        ]
