"""
Network encoder.

Validates a node list, assigns topological indices and packs the network
into a single byte buffer that the sampler streams through once per pass.

Layout, one record per node in topological order:

    num_parents      u8
    parent_indices   u8 * num_parents      (ascending topological index)
    num_cpt_entries  u8
    entries          num_cpt_entries * (pattern bytes, f32 little-endian)

Each pattern byte covers up to four parents. The low nibble holds the
required values, the high nibble marks which positions are constrained;
an unconstrained position is a wildcard.
"""

import heapq
import logging
import math
import numbers
import struct
from typing import Dict, List, Sequence

from .errors import (
    CycleDetectedError,
    DuplicateIdError,
    IndexOverflowError,
    InvalidProbabilityError,
    TooManyNodesError,
    UnknownParentError,
)
from .models import CptEntry, Node, SerializedNetwork

logger = logging.getLogger(__name__)

MAX_NODES = 255
PARENTS_PER_PATTERN_BYTE = 4
PROBABILITY_FORMAT = struct.Struct("<f")


def pattern_width(num_parents: int) -> int:
    """Number of pattern bytes per CPT entry for a node with ``num_parents``."""
    return (num_parents + PARENTS_PER_PATTERN_BYTE - 1) // PARENTS_PER_PATTERN_BYTE


def _to_u8(what: str, value: int) -> int:
    if not 0 <= value <= 0xFF:
        raise IndexOverflowError(what, value)
    return value


def validate_structure(nodes: Sequence[Node]) -> Dict[str, List[str]]:
    """Run the structural checks in order and return each node's parent ids.

    Raises:
        TooManyNodesError, DuplicateIdError, UnknownParentError
    """
    if len(nodes) > MAX_NODES:
        raise TooManyNodesError(len(nodes), MAX_NODES)

    seen = set()
    for node in nodes:
        if node.id in seen:
            raise DuplicateIdError(node.id)
        seen.add(node.id)

    parents = {node.id: node.parent_ids for node in nodes}
    for node in nodes:
        for parent_id in parents[node.id]:
            if parent_id not in seen:
                raise UnknownParentError(node.id, parent_id)

    return parents


def topological_sort(nodes: Sequence[Node], parents: Dict[str, List[str]]) -> List[str]:
    """Kahn's algorithm over the parent relation.

    Ready nodes are released in lexical id order so the result is
    reproducible for a given network.

    Raises:
        CycleDetectedError: if some nodes never reach in-degree zero
    """
    children: Dict[str, List[str]] = {node.id: [] for node in nodes}
    in_degree: Dict[str, int] = {node.id: 0 for node in nodes}

    for node in nodes:
        for parent_id in parents[node.id]:
            children[parent_id].append(node.id)
            in_degree[node.id] += 1

    ready = [node_id for node_id, degree in in_degree.items() if degree == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        node_id = heapq.heappop(ready)
        order.append(node_id)
        for child_id in children[node_id]:
            in_degree[child_id] -= 1
            if in_degree[child_id] == 0:
                heapq.heappush(ready, child_id)

    if len(order) < len(nodes):
        resolved = set(order)
        raise CycleDetectedError([n.id for n in nodes if n.id not in resolved])

    return order


def encode_pattern(entry: CptEntry, parent_ids: Sequence[str]) -> bytes:
    """Pack an entry's parent states into constraint/value nibbles."""
    pattern = bytearray(pattern_width(len(parent_ids)))
    for local_idx, parent_id in enumerate(parent_ids):
        byte_idx, bit = divmod(local_idx, PARENTS_PER_PATTERN_BYTE)
        state = entry.parent_states.get(parent_id)
        if state is None:
            continue
        pattern[byte_idx] |= 1 << (bit + 4)
        if state:
            pattern[byte_idx] |= 1 << bit
    return bytes(pattern)


def _encode_node(node: Node, parent_ids: List[str], index_of: Dict[str, int], buffer: bytearray) -> None:
    ordered = sorted(parent_ids, key=lambda pid: index_of[pid])

    buffer.append(_to_u8("Number of parents", len(ordered)))
    buffer.extend(_to_u8("Parent index", index_of[pid]) for pid in ordered)
    buffer.append(_to_u8("Number of CPT entries", len(node.cpt_entries)))

    for entry in node.cpt_entries:
        p = entry.probability
        if not isinstance(p, numbers.Real) or math.isnan(p) or not 0.0 <= p <= 1.0:
            raise InvalidProbabilityError(node.id, p)
        buffer.extend(encode_pattern(entry, ordered))
        buffer.extend(PROBABILITY_FORMAT.pack(float(p)))


def encode(nodes: Sequence[Node]) -> SerializedNetwork:
    """Validate, order and serialize a network.

    Checks run in a fixed order and the first failure wins: node count,
    duplicate ids, unknown parents, cycles.

    Returns:
        SerializedNetwork whose ``topo_order[i]`` is the id at index ``i``

    Raises:
        EncodeError subclass describing the first failed check
    """
    parents = validate_structure(nodes)
    order = topological_sort(nodes, parents)
    logger.debug(f"Topological order: {order}")

    index_of = {node_id: _to_u8("Topological index", idx) for idx, node_id in enumerate(order)}
    by_id = {node.id: node for node in nodes}

    buffer = bytearray()
    for node_id in order:
        _encode_node(by_id[node_id], parents[node_id], index_of, buffer)

    return SerializedNetwork(data=bytes(buffer), topo_order=tuple(order))
