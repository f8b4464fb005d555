"""Fixed-capacity presence set over node indices 0..255."""

from typing import Iterator

CAPACITY = 256


class BitSet:
    """256-bit set backed by a 32-byte array.

    One instance records which nodes sampled true during a single pass.
    """

    __slots__ = ("_bits",)

    def __init__(self):
        self._bits = bytearray(CAPACITY // 8)

    @staticmethod
    def _locate(value: int):
        if not 0 <= value < CAPACITY:
            raise ValueError(f"BitSet index {value} outside 0..{CAPACITY - 1}")
        return value >> 3, 1 << (value & 7)

    def insert(self, value: int) -> bool:
        """Add ``value``. Returns True if it was not already present."""
        byte_index, mask = self._locate(value)
        already_present = bool(self._bits[byte_index] & mask)
        self._bits[byte_index] |= mask
        return not already_present

    def contains(self, value: int) -> bool:
        byte_index, mask = self._locate(value)
        return bool(self._bits[byte_index] & mask)

    __contains__ = contains

    def __iter__(self) -> Iterator[int]:
        for byte_index, byte in enumerate(self._bits):
            if not byte:
                continue
            for bit in range(8):
                if byte & (1 << bit):
                    yield (byte_index << 3) | bit

    def __len__(self) -> int:
        return sum(bin(b).count("1") for b in self._bits)

    def __repr__(self) -> str:
        return f"BitSet({sorted(self)})"
