"""
hashing.py — SHA-256 Hashing Module
=====================================
Provides SHA-256 digests for whole resources and individual blocks.
Manifests carry raw digests, not hex strings.
"""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def sha256_digest(data: bytes) -> bytes:
    """
    Compute the SHA-256 digest of the given data.

    Args:
        data: Raw bytes to hash.

    Returns:
        The 32-byte SHA-256 digest.

    Raises:
        TypeError: If data is not bytes.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"Expected bytes, got {type(data).__name__}")

    digest = hashlib.sha256(data).digest()
    logger.debug("SHA-256: %s... (%d bytes)", digest.hex()[:16], len(data))
    return digest


def matches_digest(data: bytes, expected: bytes) -> bool:
    """Return True if the SHA-256 digest of `data` equals `expected`."""
    return hmac.compare_digest(sha256_digest(data), bytes(expected))
