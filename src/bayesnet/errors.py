"""
Error types for network encoding, sampling and queries.

Every error is terminal for the query that raised it. Validation errors
(subclasses of EncodeError) are raised before any sampling begins.
"""

from typing import Optional


class InferenceError(Exception):
    """Base class for all inference failures."""
    pass


class EncodeError(InferenceError):
    """Raised when a node list cannot be encoded into a network buffer."""
    pass


class TooManyNodesError(EncodeError):
    """Raised when a network has more nodes than a one-byte index can address."""

    def __init__(self, count: int, limit: int = 255):
        self.count = count
        self.limit = limit
        super().__init__(f"Network has {count} nodes, maximum {limit} supported")


class DuplicateIdError(EncodeError):
    """Raised when two nodes share the same id."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Duplicate node id: {node_id}")


class UnknownParentError(EncodeError):
    """Raised when a CPT entry references a parent that is not in the network."""

    def __init__(self, node_id: str, parent_id: str):
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(
            f"Node {node_id} references parent {parent_id} which is not in the node list"
        )


class CycleDetectedError(EncodeError):
    """Raised when the parent relation contains a cycle."""

    def __init__(self, unresolved: Optional[list] = None):
        self.unresolved = sorted(unresolved or [])
        detail = f" (unresolved: {', '.join(self.unresolved)})" if self.unresolved else ""
        super().__init__(f"Cycle detected in Bayesian network{detail}")


class IndexOverflowError(EncodeError):
    """Raised when a count or index does not fit in one byte."""

    def __init__(self, what: str, value: int):
        self.what = what
        self.value = value
        super().__init__(f"{what} {value} exceeds one-byte capacity (255)")


class InvalidProbabilityError(EncodeError):
    """Raised when a CPT probability is not a number in [0, 1]."""

    def __init__(self, node_id: str, probability: float):
        self.node_id = node_id
        self.probability = probability
        super().__init__(
            f"Node {node_id} has invalid probability {probability}; must be between 0 and 1"
        )


class NodeNotFoundError(InferenceError):
    """Raised when an intervention or target node id is not in the network."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id} not found")


class IncompleteCptError(InferenceError):
    """Raised when a sampled parent assignment matches no CPT entry."""

    def __init__(self, node_index: int, node_id: Optional[str] = None):
        self.node_index = node_index
        self.node_id = node_id
        label = node_id if node_id is not None else f"#{node_index}"
        super().__init__(
            f"Node {label} has no CPT entry matching the sampled parent states"
        )


class MalformedNetworkError(InferenceError):
    """Raised when an encoded buffer is truncated or has trailing bytes."""
    pass


class EntropyUnavailableError(InferenceError):
    """Raised when the operating system cannot supply seed bytes."""
    pass


class QueryCancelledError(InferenceError):
    """Raised when a caller-supplied cancellation check fires mid-query."""
    pass
