"""
codec.py — Manifest Codec
===========================
Reads and writes the framed manifest format:

    offset 0  4 bytes  magic  b"\\x14SMF"
    offset 4  1 byte   format version
    offset 5  1 byte   XOR obfuscation key, random per encode
    offset 6  N bytes  XOR-obfuscated bencoded Info

The 6-byte header is always plaintext. The key varies per write to
scramble the payload; it is not a security boundary.
"""

import io
import logging
import os
import random
from typing import BinaryIO, Optional, Tuple, Union

import httpx
from fastbencode import bdecode, bencode

from smf.config import settings
from smf.core.xor_stream import XORReader, XORWriter
from smf.errors import (
    CorruptPayloadError,
    EncodeError,
    FetchError,
    ShortHeaderError,
    UnrecognizedFormatError,
    UnsupportedVersionError,
)
from smf.models import DataBlock, Info

logger = logging.getLogger(__name__)

MAGIC = b"\x14SMF"
VERSION = 1
SUPPORTED_VERSIONS = frozenset({VERSION})
HEADER_SIZE = len(MAGIC) + 2

# Seeded once per process; callers wanting reproducible keys pass their own.
_rng = random.Random()

Source = Union[str, os.PathLike, bytes, BinaryIO]


def generate_key(rng: Optional[random.Random] = None) -> int:
    """Draw a non-cryptographic obfuscation key in [1, 254]."""
    return (rng or _rng).randint(1, 254)


# ── Payload mapping ───────────────────────────────────────


def _dump_payload(info: Info) -> bytes:
    try:
        return bencode(
            {
                b"status": int(info.status),
                b"hash": bytes(info.hash),
                b"name": info.name.encode("utf-8"),
                b"size": info.size,
                b"block_size": info.block_size,
                b"encode": int(info.encode),
                b"type": int(info.type),
                b"block": [
                    {b"h": bytes(entry.hash), b"i": entry.index, b"d": bytes(entry.data)}
                    for entry in info.block
                ],
            }
        )
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Cannot encode manifest {info.name!r}: {e}") from e


def _load_payload(payload: bytes) -> Info:
    try:
        raw = bdecode(payload)
    except Exception as e:  # backend-specific decode errors
        raise CorruptPayloadError(f"Malformed manifest payload: {e}") from e
    if not isinstance(raw, dict):
        raise CorruptPayloadError(
            f"Manifest payload must be a dictionary, got {type(raw).__name__}"
        )

    try:
        blocks = [
            DataBlock(
                hash=entry.get(b"h", b""),
                index=entry.get(b"i", 0),
                data=entry.get(b"d", b""),
            )
            for entry in raw.get(b"block", [])
        ]
        return Info(
            status=raw.get(b"status", 0),
            hash=raw.get(b"hash", b""),
            name=raw.get(b"name", b"").decode("utf-8"),
            size=raw.get(b"size", 0),
            block_size=raw.get(b"block_size", 0),
            encode=raw.get(b"encode", 0),
            type=raw.get(b"type", 0),
            block=blocks,
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise CorruptPayloadError(f"Invalid manifest payload: {e}") from e


# ── Encoding ──────────────────────────────────────────────


def encode_to_stream(
    stream: BinaryIO, info: Info, rng: Optional[random.Random] = None
) -> int:
    """
    Write the framed manifest to an open binary stream.

    Returns:
        Total number of bytes written, header included.

    Raises:
        EncodeError: If `info` cannot be bencoded.
    """
    payload = _dump_payload(info)
    key = generate_key(rng)
    stream.write(MAGIC + bytes((VERSION, key)))
    written = XORWriter(key, stream).write(payload)
    logger.debug(
        "Encoded manifest %s: %d payload bytes, key=0x%02x", info.name, written, key
    )
    return HEADER_SIZE + written


def encode(info: Info, rng: Optional[random.Random] = None) -> bytes:
    """Return the framed manifest as bytes."""
    buffer = io.BytesIO()
    encode_to_stream(buffer, info, rng)
    return buffer.getvalue()


def encode_to_file(
    path: Union[str, os.PathLike], info: Info, rng: Optional[random.Random] = None
) -> None:
    """
    Write the framed manifest to `path`, truncating any existing file.

    Raises:
        OSError: If the file cannot be created or written.
        EncodeError: If `info` cannot be bencoded.
    """
    with open(path, "wb") as f:
        size = encode_to_stream(f, info, rng)
    logger.info(
        "Wrote manifest %s (%d blocks, %d bytes) to %s",
        info.name,
        len(info.block),
        size,
        path,
    )


# ── Decoding ──────────────────────────────────────────────


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        piece = stream.read(size - len(data))
        if not piece:
            break
        data += piece
    return bytes(data)


def read_header(stream: BinaryIO) -> Tuple[int, int]:
    """
    Consume and validate the 6-byte header.

    Returns:
        (version, key) tuple.

    Raises:
        ShortHeaderError: Fewer than 6 bytes were available.
        UnrecognizedFormatError: The magic tag does not match.
        UnsupportedVersionError: The version byte is not supported.
        CorruptPayloadError: The key byte is zero.
    """
    header = _read_exact(stream, HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        raise ShortHeaderError(
            f"Expected {HEADER_SIZE} header bytes, got {len(header)}"
        )
    if header[: len(MAGIC)] != MAGIC:
        raise UnrecognizedFormatError(
            f"Unknown magic header {header[: len(MAGIC)]!r}"
        )

    version, key = header[4], header[5]
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)
    if key == 0:
        raise CorruptPayloadError("Manifest header carries a zero obfuscation key")
    return version, key


def decode_from_stream(stream: BinaryIO) -> Info:
    """Decode a manifest from an open binary stream positioned at its header."""
    version, key = read_header(stream)
    payload = XORReader(key, stream).read()
    info = _load_payload(payload or b"")
    logger.debug(
        "Decoded manifest %s (version=%d, %d blocks)", info.name, version, len(info.block)
    )
    return info


def decode(data: bytes) -> Info:
    """Decode a manifest held in memory."""
    return decode_from_stream(io.BytesIO(data))


def decode_from_file(path: Union[str, os.PathLike]) -> Info:
    """
    Decode a manifest file.

    Raises:
        OSError: If the file cannot be opened or read.
        ManifestError: If the content is not a valid manifest.
    """
    with open(path, "rb") as f:
        info = decode_from_stream(f)
    logger.info("Loaded manifest %s from %s", info.name, path)
    return info


def decode_from_url(
    url: str,
    client: Optional[httpx.Client] = None,
    timeout: Optional[float] = None,
) -> Info:
    """
    Fetch a manifest over HTTP and decode it.

    The whole body is buffered before decoding starts.

    Args:
        url: Location of the manifest.
        client: Optional preconfigured client; a one-off request is made
            when omitted.
        timeout: Request timeout in seconds for the one-off request.

    Raises:
        FetchError: On transport errors or a non-2xx response.
        ManifestError: If the body is not a valid manifest.
    """
    try:
        if client is None:
            response = httpx.get(
                url,
                timeout=settings.FETCH_TIMEOUT if timeout is None else timeout,
                follow_redirects=True,
            )
        else:
            response = client.get(url, follow_redirects=True)
        response.raise_for_status()
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FetchError(url, str(e)) from e

    body = response.content
    logger.info("Fetched %d bytes of manifest from %s", len(body), url)
    return decode(body)


def load(source: Source, client: Optional[httpx.Client] = None) -> Info:
    """
    Decode a manifest from whatever `source` is.

    http(s) URLs are fetched, other strings and path-likes are opened as
    files, bytes are decoded in memory, and anything else is read as a
    binary stream.
    """
    if isinstance(source, str) and source.startswith(("http://", "https://")):
        return decode_from_url(source, client=client)
    if isinstance(source, (str, os.PathLike)):
        return decode_from_file(source)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode(bytes(source))
    return decode_from_stream(source)
