"""
models.py — Manifest Data Model
=================================
The manifest (`Info`) describes one resource split into fixed-size,
individually hashed blocks. `DownloadMeta` wraps a manifest with the
consumer-side record of which blocks have already been fetched.

Bytes fields serialize to JSON as base64 so that raw digests survive
the download-state encoding.
"""

import logging
from enum import IntEnum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from smf.core.bitset import BitSet

logger = logging.getLogger(__name__)


class Status(IntEnum):
    """Lifecycle stage of a manifest, set by its producer."""

    CREATE = 0
    UPLOADING = 1
    FINISH = 2
    LOCAL = 3


class EncodeType(IntEnum):
    NONE = 0
    IMAGE = 1


class DataType(IntEnum):
    """Whether `DataBlock.data` holds a URI or the inline payload."""

    URI = 0
    STREAM = 1


class _Record(BaseModel):
    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")


class DataBlock(_Record):
    """One chunk of a resource."""

    hash: bytes = b""
    index: int = Field(default=0, ge=0)
    data: bytes = b""

    def uri(self) -> str:
        """Decode `data` as the URI it holds for URI-typed manifests."""
        return self.data.decode("utf-8")


class Info(_Record):
    """
    Manifest of a resource.

    Attributes:
        status: Lifecycle stage.
        hash: Content hash of the whole resource.
        name: Human-readable label.
        size: Total length of the resource in bytes.
        block_size: Length of every block except possibly the last.
        encode: Content-level encoding hint.
        type: Meaning of each block's `data`.
        block: Blocks keyed by their `index`; list order carries no meaning.
    """

    status: Status = Status.CREATE
    hash: bytes = b""
    name: str = ""
    size: int = Field(default=0, ge=0)
    block_size: int = Field(default=0, ge=0)
    encode: EncodeType = EncodeType.NONE
    type: DataType = DataType.URI
    block: List[DataBlock] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_indices(self) -> "Info":
        seen = set()
        for entry in self.block:
            if entry.index in seen:
                raise ValueError(f"Duplicate block index {entry.index}")
            seen.add(entry.index)
        return self

    def append_block(self, block: DataBlock) -> None:
        """
        Attach `block`, replacing any existing entry with the same index.

        Replacement happens in place, so the position of every other
        block is preserved. A copy is stored; later changes to the
        caller's object do not leak into the manifest.
        """
        block = block.model_copy()
        for position, existing in enumerate(self.block):
            if existing.index == block.index:
                self.block[position] = block
                logger.debug("Replaced block %d of %s", block.index, self.name)
                return
        self.block.append(block)
        logger.debug("Appended block %d to %s", block.index, self.name)

    def get_block(self, index: int) -> Optional[DataBlock]:
        for entry in self.block:
            if entry.index == index:
                return entry
        return None

    def block_count(self) -> int:
        """Number of blocks implied by `size` and `block_size` (ceiling)."""
        if self.block_size <= 0:
            return 0
        return -(-self.size // self.block_size)

    def block_offset(self, index: int) -> int:
        """Byte offset of block `index` within the resource."""
        return index * self.block_size

    def begin_upload(self) -> None:
        """Move a freshly created manifest into the UPLOADING stage."""
        if self.status not in (Status.CREATE, Status.UPLOADING):
            raise ValueError(
                f"Cannot start uploading manifest {self.name!r} in status {self.status.name}"
            )
        self.status = Status.UPLOADING

    def seal(self) -> None:
        """
        Mark the manifest FINISH once every block is present.

        Raises:
            ValueError: If any index in [0, block_count) is missing or a
                block lies beyond the end of the resource.
        """
        expected = set(range(self.block_count()))
        present = {entry.index for entry in self.block}
        if present != expected:
            raise ValueError(
                f"Cannot seal manifest {self.name!r}: "
                f"missing blocks {sorted(expected - present)}, "
                f"unexpected blocks {sorted(present - expected)}"
            )
        self.status = Status.FINISH
        logger.info("Sealed manifest %s (%d blocks)", self.name, len(self.block))


class DownloadMeta(_Record):
    """
    Consumer-side download progress for one manifest.

    `index` has one bit per block position; `downloaded` always equals
    the number of set bits.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    info: Info = Field(default_factory=Info)
    index: BitSet = Field(default_factory=BitSet)
    downloaded: int = Field(default=0, ge=0)
    download_total: int = Field(default=0, ge=0)

    @field_validator("index", mode="before")
    @classmethod
    def _load_index(cls, value):
        if isinstance(value, dict):
            return BitSet.from_dict(value)
        return value

    @field_serializer("index")
    def _dump_index(self, index: BitSet):
        return index.to_dict()

    @model_validator(mode="after")
    def _consistent_counters(self) -> "DownloadMeta":
        if self.downloaded != self.index.count():
            raise ValueError(
                f"Downloaded counter {self.downloaded} does not match "
                f"{self.index.count()} completed blocks"
            )
        if self.download_total != self.info.block_count():
            raise ValueError(
                f"Download total {self.download_total} does not match "
                f"{self.info.block_count()} blocks in the manifest"
            )
        highest = max((entry.index for entry in self.info.block), default=-1)
        if len(self.index) < highest + 1:
            raise ValueError(
                f"Index of {len(self.index)} bits cannot cover block {highest}"
            )
        return self

    @classmethod
    def from_info(cls, info: Info) -> "DownloadMeta":
        """Start tracking a freshly received manifest with nothing fetched."""
        total = info.block_count()
        highest = max((entry.index for entry in info.block), default=-1)
        return cls(
            info=info,
            index=BitSet(max(total, highest + 1)),
            downloaded=0,
            download_total=total,
        )

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def size(self) -> int:
        return self.info.size

    @property
    def block_size(self) -> int:
        return self.info.block_size

    @property
    def hash(self) -> bytes:
        return self.info.hash

    @property
    def status(self) -> Status:
        return self.info.status

    @property
    def blocks(self) -> List[DataBlock]:
        return self.info.block

    @property
    def finished(self) -> bool:
        return not self.missing()

    def mark_complete(self, index: int) -> None:
        """
        Record block `index` as verified and stored; repeat calls are no-ops.

        Raises:
            IndexError: If `index` lies outside [0, download_total), or
                outside the index when the total is unknown.
        """
        limit = self.download_total or len(self.index)
        if not 0 <= index < limit:
            raise IndexError(f"Block index {index} out of range [0, {limit})")
        if self.index.get(index):
            return
        self.index.set(index)
        self.downloaded += 1

    def is_complete(self, index: int) -> bool:
        return self.index.get(index)

    def missing(self) -> List[int]:
        """Indices in [0, download_total) not yet marked complete."""
        return [i for i in range(self.download_total) if not self.index.get(i)]
