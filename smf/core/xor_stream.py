"""
xor_stream.py — Obfuscation Stream Module
===========================================
Wraps a binary reader or writer with a single-byte XOR transform.
The transform is symmetric, so the same key that obfuscated a payload
restores it. This is obfuscation only: it offers no confidentiality
and no tamper resistance.

Neither wrapper buffers data or owns the underlying stream; closing
remains the caller's job.
"""

import logging
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)

MIN_KEY = 1
MAX_KEY = 255


def _translation_table(key: int) -> bytes:
    """Build the 256-entry byte map for `key`, rejecting no-op keys."""
    if not isinstance(key, int) or not MIN_KEY <= key <= MAX_KEY:
        raise ValueError(f"XOR key must be an integer in [{MIN_KEY}, {MAX_KEY}], got {key!r}")
    return bytes(value ^ key for value in range(256))


def xor_bytes(data: bytes, key: int) -> bytes:
    """
    XOR every byte of `data` with `key`.

    Args:
        data: Bytes to transform.
        key: Obfuscation key in [1, 255].

    Returns:
        The transformed bytes. Applying this twice with the same key
        returns the original input.

    Raises:
        ValueError: If the key is zero or out of range.
    """
    return bytes(data).translate(_translation_table(key))


class XORReader:
    """
    Reader that de-obfuscates bytes as they are read from `raw`.

    End of stream is reported exactly as `raw` reports it (an empty
    bytes object, or None for a non-blocking source with no data).
    """

    def __init__(self, key: int, raw: BinaryIO):
        self._table = _translation_table(key)
        self.key = key
        self.raw = raw

    def read(self, size: int = -1) -> Optional[bytes]:
        data = self.raw.read(size)
        if not data:
            return data
        return data.translate(self._table)

    def readinto(self, buffer) -> Optional[int]:
        """Fill `buffer` from the source and XOR the filled prefix in place."""
        count = self.raw.readinto(buffer)
        if count:
            view = memoryview(buffer).cast("B")
            view[:count] = view[:count].tobytes().translate(self._table)
        return count

    def readable(self) -> bool:
        return True


class XORWriter:
    """Writer that obfuscates a copy of each buffer before passing it on."""

    def __init__(self, key: int, raw: BinaryIO):
        self._table = _translation_table(key)
        self.key = key
        self.raw = raw

    def write(self, data) -> int:
        """
        Obfuscate `data` and write it to the sink.

        The caller's buffer is left untouched.

        Returns:
            The byte count reported by the underlying sink.
        """
        payload = bytes(data).translate(self._table)
        written = self.raw.write(payload)
        logger.debug("XOR-wrote %d bytes (key=0x%02x)", len(payload), self.key)
        return written

    def writable(self) -> bool:
        return True

    def flush(self) -> None:
        self.raw.flush()
