"""
Ancestral sampling over an encoded network.

One call draws one full assignment: nodes are visited in topological order,
each conditioned on the parents already drawn in the same pass.
"""

from typing import Optional

import numpy as np

from .bit_set import BitSet
from .errors import IncompleteCptError, MalformedNetworkError
from .models import Intervention
from .reader import NetworkReader, project_states


def sample(
    encoded: bytes,
    num_nodes: int,
    intervention: Optional[Intervention],
    rng: np.random.Generator,
) -> BitSet:
    """Draw one assignment of every node.

    Args:
        encoded: Buffer produced by ``encoder.encode``
        num_nodes: Number of node records in ``encoded``
        intervention: Optional do(on_node = value); the target keeps its
            forced value and its own CPT outcome is discarded
        rng: Generator shared across all passes of a query

    Returns:
        BitSet of the topological indices that sampled true

    Raises:
        IncompleteCptError: a node's parent states matched no CPT entry
        MalformedNetworkError: the buffer does not hold exactly num_nodes records
    """
    present = BitSet()
    if intervention is not None and intervention.value:
        present.insert(intervention.on_node)

    reader = NetworkReader(encoded)
    for index in range(num_nodes):
        # Always parse the record so the cursor stays aligned for the next node.
        node = reader.read_node()
        probability = node.lookup(project_states(node.parent_indices, present))
        if probability is None:
            raise IncompleteCptError(index)

        if intervention is not None and intervention.on_node == index:
            continue
        if rng.random() < probability:
            present.insert(index)

    if reader.remaining:
        raise MalformedNetworkError(
            f"{reader.remaining} bytes left after sampling {num_nodes} nodes"
        )
    return present
