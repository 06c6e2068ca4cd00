"""
state.py — Download-State Codec
=================================
Persists `DownloadMeta` between runs so an interrupted download can
resume. The file is pydantic JSON obfuscated with a fixed XOR key and
carries no header: it never leaves this machine.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from smf.config import settings
from smf.core.xor_stream import XORReader, XORWriter
from smf.errors import CorruptPayloadError
from smf.models import DownloadMeta, Info

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def _key(key: Optional[int]) -> int:
    return settings.STATE_KEY if key is None else key


def encode_to_file(path: PathLike, meta: DownloadMeta, key: Optional[int] = None) -> None:
    """
    Write download state to `path`, truncating any existing file.

    Raises:
        OSError: If the file cannot be created or written.
    """
    payload = meta.model_dump_json().encode("utf-8")
    with open(path, "wb") as f:
        XORWriter(_key(key), f).write(payload)
    logger.debug(
        "Saved download state for %s (%d/%d) to %s",
        meta.name,
        meta.downloaded,
        meta.download_total,
        path,
    )


def decode_from_file(path: PathLike, key: Optional[int] = None) -> DownloadMeta:
    """
    Read download state from `path`.

    Raises:
        OSError: If the file cannot be opened or read.
        CorruptPayloadError: If the content is not valid download state.
    """
    with open(path, "rb") as f:
        payload = XORReader(_key(key), f).read()
    try:
        return DownloadMeta.model_validate_json(payload or b"")
    except ValueError as e:
        raise CorruptPayloadError(f"Invalid download state in {path}: {e}") from e


def load_or_create(path: PathLike, info: Info, key: Optional[int] = None) -> DownloadMeta:
    """
    Resume from the state file at `path`, or start fresh for `info`.

    An unreadable state file, or one recorded for a different resource,
    is treated as absent.
    """
    path = Path(path)
    if path.exists():
        try:
            meta = decode_from_file(path, key)
        except (CorruptPayloadError, OSError) as e:
            logger.warning("Discarding unreadable download state %s: %s", path, e)
        else:
            if meta.hash == info.hash:
                logger.info(
                    "Resuming %s from %s (%d/%d blocks)",
                    meta.name,
                    path,
                    meta.downloaded,
                    meta.download_total,
                )
                return meta
            logger.warning(
                "Download state %s belongs to a different resource, starting over", path
            )
    return DownloadMeta.from_info(info)


def discard(path: PathLike) -> bool:
    """
    Delete the state file at `path`.

    Returns:
        True if a file was removed, False if none existed.
    """
    path = Path(path)
    if path.exists():
        path.unlink()
        logger.info("Removed download state %s", path)
        return True
    return False
