"""
bitset.py — Growable Bit Vector
=================================
Tracks per-block completion for download state. Bits are stored
least-significant-first inside each byte.
"""

import base64
from typing import Dict, Iterator


class BitSet:
    """
    A fixed-size bit vector that grows when a bit past its end is set.

    Attributes:
        size: Number of addressable bits.
    """

    def __init__(self, size: int = 0):
        if size < 0:
            raise ValueError(f"BitSet size must be non-negative, got {size}")
        self.size = size
        self._bits = bytearray((size + 7) // 8)

    def _check(self, index: int) -> None:
        if index < 0:
            raise IndexError(f"Bit index {index} is negative")

    def get(self, index: int) -> bool:
        """Return the bit at `index`; bits past the end read as unset."""
        self._check(index)
        if index >= self.size:
            return False
        return bool(self._bits[index >> 3] & (1 << (index & 7)))

    def set(self, index: int) -> None:
        """Set the bit at `index`, growing the vector if needed."""
        self._check(index)
        if index >= self.size:
            self.grow(index + 1)
        self._bits[index >> 3] |= 1 << (index & 7)

    def grow(self, size: int) -> None:
        """Extend the vector to at least `size` bits; never shrinks."""
        if size <= self.size:
            return
        self._bits.extend(bytes((size + 7) // 8 - len(self._bits)))
        self.size = size

    def count(self) -> int:
        """Number of set bits."""
        return int.from_bytes(self._bits, "little").bit_count()

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[int]:
        """Iterate over the indices of set bits in ascending order."""
        return (index for index in range(self.size) if self.get(index))

    def __eq__(self, other) -> bool:
        if not isinstance(other, BitSet):
            return NotImplemented
        return self.size == other.size and self._bits == other._bits

    def __repr__(self) -> str:
        return f"BitSet(size={self.size}, set={list(self)})"

    def to_dict(self) -> Dict:
        return {
            "size": self.size,
            "bits": base64.b64encode(bytes(self._bits)).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "BitSet":
        """
        Rebuild a BitSet from `to_dict` output.

        Raises:
            ValueError: If a field has the wrong type, or the stored bytes
                do not match the declared size or set bits beyond it.
        """
        size = data.get("size", 0)
        encoded = data.get("bits", "")
        if not isinstance(size, int) or isinstance(size, bool):
            raise ValueError(f"BitSet size must be an integer, got {type(size).__name__}")
        if not isinstance(encoded, str):
            raise ValueError(f"BitSet bits must be a base64 string, got {type(encoded).__name__}")
        if size < 0:
            raise ValueError(f"BitSet size must be non-negative, got {size}")

        bits = base64.b64decode(encoded, validate=True)
        needed = (size + 7) // 8
        if len(bits) != needed:
            raise ValueError(f"BitSet of {size} bits needs {needed} bytes, got {len(bits)}")
        bitset = cls(size)
        if size % 8 and bits and bits[-1] >> (size % 8):
            raise ValueError(f"BitSet has bits set beyond its size {size}")
        bitset._bits[:] = bits
        return bitset
