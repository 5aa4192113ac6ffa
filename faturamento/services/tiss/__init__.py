"""
TISS Services
Billing core: TUSS table, guide and appeal XML, glosas and reports
"""

from .versioning import CURRENT_TISS_VERSION, SUPPORTED_VERSIONS
from .tuss_service import TUSSService
from .consultation_form import generate_guia_consulta_element, generate_xml_consulta, validate_guia_consulta
from .sadt_form import calculate_sadt_totals, generate_guia_sadt_element, generate_xml_sadt, validate_guia_sadt
from .batch_generator import generate_lote_number, generate_lote_xml
from .recurso_form import generate_recurso_xml, validate_recurso
from .xsd_validator import XSDValidator, verify_hash
from .guia_service import GuiaService
from .reports import BillingReportService

__all__ = [
    'CURRENT_TISS_VERSION',
    'SUPPORTED_VERSIONS',
    'TUSSService',
    'validate_guia_consulta',
    'generate_xml_consulta',
    'generate_guia_consulta_element',
    'validate_guia_sadt',
    'calculate_sadt_totals',
    'generate_xml_sadt',
    'generate_guia_sadt_element',
    'generate_lote_number',
    'generate_lote_xml',
    'validate_recurso',
    'generate_recurso_xml',
    'XSDValidator',
    'verify_hash',
    'GuiaService',
    'BillingReportService',
]
