"""
Cursor over an encoded network buffer.

The buffer has no per-node length prefix, so node K can only be parsed once
node K-1 has been consumed in full. ``NetworkReader`` owns that position and
is handed from one decode step to the next.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .encoder import PROBABILITY_FORMAT, pattern_width
from .errors import MalformedNetworkError


@dataclass(frozen=True)
class EncodedEntry:
    pattern: bytes
    probability: float

    def matches(self, parent_states: Sequence[bool]) -> bool:
        """True if every constrained position equals the parent's state."""
        for shard_idx, shard in enumerate(self.pattern):
            mask = shard >> 4
            if not mask:
                continue
            state_shard = 0
            for bit, state in enumerate(parent_states[shard_idx * 4:shard_idx * 4 + 4]):
                if state:
                    state_shard |= 1 << bit
            if state_shard & mask != shard & mask:
                return False
        return True


@dataclass(frozen=True)
class EncodedNode:
    parent_indices: Tuple[int, ...]
    entries: Tuple[EncodedEntry, ...]

    def lookup(self, parent_states: Sequence[bool]) -> Optional[float]:
        """Probability of the first matching entry, or None."""
        for entry in self.entries:
            if entry.matches(parent_states):
                return entry.probability
        return None


class NetworkReader:
    """Sequential reader over an encoded buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = memoryview(data)
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def _take(self, size: int) -> memoryview:
        if size > self.remaining:
            raise MalformedNetworkError(
                f"Buffer truncated at offset {self.offset}: need {size} bytes, {self.remaining} left"
            )
        chunk = self._data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_bytes(self, size: int) -> bytes:
        return bytes(self._take(size))

    def read_f32(self) -> float:
        return PROBABILITY_FORMAT.unpack(self._take(PROBABILITY_FORMAT.size))[0]

    def read_node(self) -> EncodedNode:
        """Consume one node record."""
        num_parents = self.read_u8()
        parent_indices = tuple(self.read_bytes(num_parents))
        num_entries = self.read_u8()
        width = pattern_width(num_parents)
        entries = tuple(
            EncodedEntry(pattern=self.read_bytes(width), probability=self.read_f32())
            for _ in range(num_entries)
        )
        return EncodedNode(parent_indices=parent_indices, entries=entries)

    def expect_end(self) -> None:
        if self.remaining:
            raise MalformedNetworkError(
                f"{self.remaining} trailing bytes after last node at offset {self.offset}"
            )


def decode_network(data: bytes, num_nodes: int) -> List[EncodedNode]:
    """Decode every node record and verify the buffer is fully consumed."""
    reader = NetworkReader(data)
    nodes = [reader.read_node() for _ in range(num_nodes)]
    reader.expect_end()
    return nodes


def project_states(parent_indices: Iterable[int], present) -> List[bool]:
    """Current true/false state of each parent index in ``present``."""
    return [present.contains(idx) for idx in parent_indices]
