"""
Data models for Bayesian network inference.

These are intentionally lightweight (stdlib dataclasses) so the core can be
driven from the CLI, the HTTP API or plain Python without conversion layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class CptEntry:
    """One row of a conditional probability table.

    ``parent_states`` maps a parent id to the value it must take for this row
    to apply. ``None`` (or leaving the parent out) means "any value".
    """
    parent_states: Dict[str, Optional[bool]] = field(default_factory=dict)
    probability: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CptEntry":
        """Build an entry from snake_case or camelCase keys.

        Raises:
            ValueError: if a parent state is not true, false or null
        """
        states = data.get("parent_states", data.get("parentStates", {})) or {}
        for parent_id, state in states.items():
            if state is not None and not isinstance(state, bool):
                raise ValueError(
                    f"Parent state for {parent_id} must be true, false or null, got {state!r}"
                )
        return cls(
            parent_states={str(k): v for k, v in states.items()},
            probability=float(data["probability"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"parent_states": dict(self.parent_states), "probability": self.probability}


@dataclass
class Node:
    """A binary random variable and its ordered CPT entries."""
    id: str
    cpt_entries: List[CptEntry] = field(default_factory=list)

    @property
    def parent_ids(self) -> List[str]:
        """Union of parent ids across all entries, in first-seen order."""
        seen: Dict[str, None] = {}
        for entry in self.cpt_entries:
            for parent_id in entry.parent_states:
                seen.setdefault(parent_id, None)
        return list(seen)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        """Build a node from either snake_case or the browser's camelCase keys."""
        node_id = data.get("id", data.get("_id"))
        if node_id is None:
            raise KeyError("Node is missing 'id'")
        entries = data.get("cpt_entries", data.get("cptEntries", [])) or []
        return cls(id=str(node_id), cpt_entries=[CptEntry.from_dict(e) for e in entries])

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "cpt_entries": [e.to_dict() for e in self.cpt_entries]}


def nodes_from_dicts(items: List[Dict[str, Any]]) -> List[Node]:
    return [Node.from_dict(item) for item in items]


@dataclass(frozen=True)
class Intervention:
    """do(node = value) expressed on a topological index."""
    on_node: int
    value: bool


@dataclass(frozen=True)
class SerializedNetwork:
    """Encoded network buffer plus the id at each topological index."""
    data: bytes
    topo_order: tuple

    @property
    def num_nodes(self) -> int:
        return len(self.topo_order)

    def index_of(self, node_id: str) -> Optional[int]:
        try:
            return self.topo_order.index(node_id)
        except ValueError:
            return None


@dataclass
class InterventionResult:
    """Marginals under do(node=True) and do(node=False)."""
    true_case: Dict[str, float]
    false_case: Dict[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {"true_case": dict(self.true_case), "false_case": dict(self.false_case)}


@dataclass
class SensitivityResult:
    """Average causal effect of one ancestor on the target."""
    node_id: str
    sensitivity: float
    p_true: float
    p_false: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "sensitivity": self.sensitivity,
            "p_true": self.p_true,
            "p_false": self.p_false,
        }
