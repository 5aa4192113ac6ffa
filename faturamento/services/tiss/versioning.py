"""
TISS Versioning
Standard version and namespace emitted in every TISS message
"""

from typing import List

from config import settings

# Current TISS version
CURRENT_TISS_VERSION = settings.TISS_VERSION

# Supported TISS versions
SUPPORTED_VERSIONS: List[str] = [
    "4.02.00",  # Current version
]

TISS_NAMESPACE = "http://www.ans.gov.br/padroes/tiss/schemas"


def is_supported_version(version: str) -> bool:
    return version in SUPPORTED_VERSIONS
