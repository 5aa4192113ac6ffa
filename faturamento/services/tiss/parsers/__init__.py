"""
TISS Parsers
Parsers for processing glosa responses and demonstrativos from operators
"""

from .denial_interpreter import get_glosa_description
from .glosa_parser import (
    glosa_from_demonstrativo,
    parse_demonstrativo_xml,
    parse_glosa_response,
    parse_glosa_xml,
)
from .glosa_stats import (
    calculate_glosa_stats,
    get_days_to_appeal_deadline,
    is_within_appeal_deadline,
)

__all__ = [
    'parse_glosa_xml',
    'parse_glosa_response',
    'parse_demonstrativo_xml',
    'glosa_from_demonstrativo',
    'get_glosa_description',
    'calculate_glosa_stats',
    'is_within_appeal_deadline',
    'get_days_to_appeal_deadline',
]
