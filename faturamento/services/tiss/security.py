"""
TISS Security
Integrity hash for the ``ans:epilogo`` element
"""

import hashlib
import logging
from typing import Union

logger = logging.getLogger(__name__)


def calculate_integrity_hash(data: Union[str, bytes]) -> str:
    """
    Calculate the TISS epilogo hash

    Args:
        data: Content emitted before ``ans:epilogo`` (text is UTF-8 encoded)

    Returns:
        Uppercase hex SHA-1 digest (40 characters)
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha1(data).hexdigest().upper()


def verify_integrity(data: Union[str, bytes], expected_hash: str) -> bool:
    """
    Verify data integrity using hash

    Args:
        data: Data to verify
        expected_hash: Expected hash (hex-encoded, any case)

    Returns:
        True if hash matches, False otherwise
    """
    actual_hash = calculate_integrity_hash(data)
    matches = actual_hash == (expected_hash or "").strip().upper()
    if not matches:
        logger.warning(f"Integrity hash mismatch: expected {expected_hash}, got {actual_hash}")
    return matches
