"""
chunker.py — Block Chunking Module
====================================
Splits a resource into fixed-size blocks and builds the sealed
manifest describing them.

Default block size: 256 KB (262144 bytes), overridable via SMF_BLOCK_SIZE.
"""

import logging
from typing import List, Optional

from smf.config import settings
from smf.core.hashing import matches_digest, sha256_digest
from smf.models import DataBlock, DataType, Info

logger = logging.getLogger(__name__)


def split_file(data: bytes, chunk_size: Optional[int] = None) -> List[bytes]:
    """
    Split a file (as bytes) into fixed-size chunks.

    Args:
        data: Raw file content as bytes.
        chunk_size: Size of each chunk in bytes (default from settings).

    Returns:
        List of byte chunks. The last chunk may be smaller than chunk_size.

    Raises:
        ValueError: If data is empty or chunk_size is not positive.
    """
    if chunk_size is None:
        chunk_size = settings.BLOCK_SIZE
    if not data:
        raise ValueError("Cannot split empty data")
    if chunk_size <= 0:
        raise ValueError("Chunk size must be a positive integer")

    chunks = [data[offset : offset + chunk_size] for offset in range(0, len(data), chunk_size)]

    logger.info(
        "Split %d bytes into %d chunks (chunk_size=%d)",
        len(data),
        len(chunks),
        chunk_size,
    )
    return chunks


def build_info(data: bytes, name: str, block_size: Optional[int] = None) -> Info:
    """
    Build a sealed manifest with inline block payloads.

    Args:
        data: Complete resource content.
        name: Label stored in the manifest.
        block_size: Block length in bytes (default from settings).

    Returns:
        An `Info` in FINISH status with one STREAM block per chunk.
    """
    if block_size is None:
        block_size = settings.BLOCK_SIZE
    chunks = split_file(data, block_size)

    info = Info(
        name=name,
        size=len(data),
        block_size=block_size,
        hash=sha256_digest(data),
        type=DataType.STREAM,
    )
    info.begin_upload()
    for index, chunk in enumerate(chunks):
        info.append_block(DataBlock(hash=sha256_digest(chunk), index=index, data=chunk))
    info.seal()
    return info


def verify_block(block: DataBlock, payload: Optional[bytes] = None) -> bool:
    """
    Check a block's content against its recorded hash.

    `payload` is the fetched content for URI blocks; STREAM blocks are
    checked against their inline `data` when it is omitted.
    """
    content = block.data if payload is None else payload
    is_valid = matches_digest(content, block.hash)
    if not is_valid:
        logger.warning("Block %d failed hash verification", block.index)
    return is_valid
