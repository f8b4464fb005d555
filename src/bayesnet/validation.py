"""
Authoring-time CPT checks.

Sampling only needs *some* entry to match each parent assignment it meets.
These checks are stricter: every parent combination must be covered by
exactly one entry, so that entry order never changes the meaning of a table.
"""

import math
import numbers
from typing import Dict, List, Optional, Sequence, Tuple

from .encoder import topological_sort, validate_structure
from .errors import EncodeError
from .models import CptEntry, Node

MAX_WILDCARDS = 8
MAX_REPORTED = 3


def _combination_key(values: Sequence[bool]) -> str:
    return "".join("T" if v else "F" for v in values)


def expand_entry(entry: CptEntry, parent_ids: Sequence[str], max_wildcards: int = MAX_WILDCARDS) -> List[str]:
    """Concrete parent combinations covered by ``entry``, as "TF.." strings.

    Raises:
        ValueError: if the entry has more than ``max_wildcards`` wildcards
    """
    base = [entry.parent_states.get(pid) for pid in parent_ids]
    wildcards = [i for i, v in enumerate(base) if v is None]

    if len(wildcards) > max_wildcards:
        raise ValueError(
            f"Too many 'any' values. Maximum {max_wildcards} per rule to prevent exponential explosion."
        )

    combinations = []
    for i in range(2 ** len(wildcards)):
        values = list(base)
        for j, pos in enumerate(wildcards):
            values[pos] = bool((i >> j) & 1)
        combinations.append(_combination_key(values))
    return combinations


def deduplicate_root_entries(entries: List[CptEntry]) -> List[CptEntry]:
    """A parentless node keeps only its first entry."""
    if len(entries) > 1 and not entries[0].parent_states:
        return [entries[0]]
    return entries


def sync_column_order(entries: Sequence[CptEntry], existing_order: Optional[Sequence[str]] = None) -> List[str]:
    """Parent column order: existing columns that are still referenced, then new parents."""
    referenced: Dict[str, None] = {}
    for entry in entries:
        for pid in entry.parent_states:
            referenced.setdefault(pid, None)

    order = [pid for pid in (existing_order or []) if pid in referenced]
    order.extend(pid for pid in referenced if pid not in order)
    return order


def _summarize(keys: List[str]) -> str:
    shown = ", ".join(keys[:MAX_REPORTED])
    return shown + ("..." if len(keys) > MAX_REPORTED else "")


def validate_cpt_entries(entries: Sequence[CptEntry], max_wildcards: int = MAX_WILDCARDS) -> Tuple[bool, Optional[str]]:
    """Check one node's table.

    Returns:
        (is_valid, error message or None)
    """
    if not entries:
        return False, "CPT entries cannot be empty"

    parent_ids = list(entries[0].parent_states)

    for entry in entries:
        p = entry.probability
        if not isinstance(p, numbers.Real) or math.isnan(p) or p < 0 or p > 1:
            return False, f"Invalid probability value: {p}. Must be between 0 and 1."
        if set(entry.parent_states) != set(parent_ids):
            return False, "All CPT entries must have the same parent nodes"

    if not parent_ids:
        if len(entries) > 1:
            return False, (
                f"Root nodes should have exactly one CPT entry, but found {len(entries)}."
            )
        return True, None

    coverage: Dict[str, int] = {}
    try:
        for entry in entries:
            for key in expand_entry(entry, parent_ids, max_wildcards):
                coverage[key] = coverage.get(key, 0) + 1
    except ValueError as e:
        return False, str(e)

    total = 2 ** len(parent_ids)
    uncovered, conflicting = [], []
    for i in range(total):
        key = _combination_key([bool((i >> idx) & 1) for idx in range(len(parent_ids))])
        count = coverage.get(key, 0)
        if count == 0:
            uncovered.append(key)
        elif count > 1:
            conflicting.append(key)

    if uncovered:
        return False, (
            f"CPT is incomplete: {len(uncovered)} of {total} combinations not covered. "
            f"Missing: {_summarize(uncovered)}"
        )
    if conflicting:
        return False, (
            f"CPT has conflicts: {len(conflicting)} combinations covered by multiple rules. "
            f"Conflicting: {_summarize(conflicting)}"
        )
    return True, None


def validate_network(nodes: Sequence[Node], max_wildcards: int = MAX_WILDCARDS) -> Tuple[bool, List[str]]:
    """Structural checks plus a per-node table check.

    Returns:
        (is_valid, list of error messages)
    """
    errors: List[str] = []

    try:
        topological_sort(nodes, validate_structure(nodes))
    except EncodeError as e:
        errors.append(str(e))

    for node in nodes:
        ok, message = validate_cpt_entries(node.cpt_entries, max_wildcards)
        if not ok:
            errors.append(f"Node {node.id}: {message}")

    return len(errors) == 0, errors
