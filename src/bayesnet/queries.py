"""
Query layer: marginals, interventional marginals and ancestor sensitivity.

Every query encodes its network once, builds one random generator and
reuses both across all sampling passes. Nothing is shared between calls.

Usage:
    from src.bayesnet import queries
    from src.bayesnet.models import nodes_from_dicts

    nodes = nodes_from_dicts(payload["nodes"])
    marginals = queries.compute_marginals(nodes, num_samples=10_000)
    ranked = queries.compute_sensitivity(nodes, "Outcome", num_samples=10_000)
"""

import logging
import time
from collections import deque
from typing import Callable, Dict, List, Optional, Sequence, Set, Union

import numpy as np

from . import encoder, sampler
from .entropy import make_rng
from .errors import IncompleteCptError, NodeNotFoundError, QueryCancelledError
from .models import (
    Intervention,
    InterventionResult,
    Node,
    SensitivityResult,
    SerializedNetwork,
)

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]
ProgressCallback = Callable[[str, float, int, int], None]


def _check_samples(num_samples: int) -> None:
    if num_samples <= 0:
        raise ValueError("num_samples must be positive")


def _run_batch(
    network: SerializedNetwork,
    num_samples: int,
    intervention: Optional[Intervention],
    rng: np.random.Generator,
    should_cancel: Optional[CancelCheck] = None,
) -> Dict[str, float]:
    """Draw ``num_samples`` passes and normalize per-node true counts."""
    num_nodes = network.num_nodes
    counts = np.zeros(num_nodes, dtype=np.int64)

    for _ in range(num_samples):
        if should_cancel is not None and should_cancel():
            raise QueryCancelledError("Query cancelled")
        try:
            present = sampler.sample(network.data, num_nodes, intervention, rng)
        except IncompleteCptError as e:
            raise IncompleteCptError(e.node_index, network.topo_order[e.node_index]) from e
        for index in present:
            counts[index] += 1

    probabilities = counts / num_samples
    return {node_id: float(p) for node_id, p in zip(network.topo_order, probabilities)}


def _resolve_index(network: SerializedNetwork, node_id: str) -> int:
    index = network.index_of(node_id)
    if index is None:
        raise NodeNotFoundError(node_id)
    return index


def compute_marginals(
    nodes: Sequence[Node],
    num_samples: int,
    rng: Optional[np.random.Generator] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> Dict[str, float]:
    """Estimate P(node = True) for every node.

    Returns:
        Dict mapping node id to the fraction of samples in which it was true
    """
    _check_samples(num_samples)
    network = encoder.encode(nodes)
    rng = rng if rng is not None else make_rng()

    start = time.time()
    result = _run_batch(network, num_samples, None, rng, should_cancel)
    logger.info(
        f"Marginals: {network.num_nodes} nodes, {num_samples} samples "
        f"in {time.time() - start:.2f}s"
    )
    return result


def compute_intervention_marginals(
    nodes: Sequence[Node],
    node_id: str,
    num_samples: int,
    rng: Optional[np.random.Generator] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> InterventionResult:
    """Estimate marginals under do(node_id=True) and do(node_id=False).

    The two batches run back to back on the same generator, true case first.

    Raises:
        NodeNotFoundError: if ``node_id`` is not in ``nodes``
    """
    _check_samples(num_samples)
    network = encoder.encode(nodes)
    index = _resolve_index(network, node_id)
    rng = rng if rng is not None else make_rng()

    start = time.time()
    true_case = _run_batch(network, num_samples, Intervention(index, True), rng, should_cancel)
    false_case = _run_batch(network, num_samples, Intervention(index, False), rng, should_cancel)
    logger.info(
        f"Intervention on {node_id}: {network.num_nodes} nodes, 2x{num_samples} samples "
        f"in {time.time() - start:.2f}s"
    )
    return InterventionResult(true_case=true_case, false_case=false_case)


def find_ancestors(nodes: Sequence[Node], target_id: str) -> Set[str]:
    """Transitive parents of ``target_id`` (the target itself excluded).

    Raises:
        NodeNotFoundError: if ``target_id`` is not in ``nodes``
    """
    parents = {node.id: node.parent_ids for node in nodes}
    if target_id not in parents:
        raise NodeNotFoundError(target_id)

    ancestors: Set[str] = set()
    visited = {target_id}
    queue = deque([target_id])
    while queue:
        current = queue.popleft()
        for parent_id in parents.get(current, []):
            if parent_id not in visited:
                visited.add(parent_id)
                ancestors.add(parent_id)
                queue.append(parent_id)
    return ancestors


def compute_sensitivity(
    nodes: Sequence[Node],
    target_id: str,
    num_samples: int,
    rng: Optional[np.random.Generator] = None,
    on_progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelCheck] = None,
) -> List[SensitivityResult]:
    """Average causal effect of each ancestor on ``target_id``.

    For each ancestor A: P(target | do(A=True)) - P(target | do(A=False)),
    estimated on the subnetwork of the target and its ancestors only.
    Ancestors are processed in topological order with one shared generator;
    the result is sorted by descending absolute effect.

    Returns:
        List of SensitivityResult; empty if the target has no parents

    Raises:
        NodeNotFoundError: if ``target_id`` is not in ``nodes``
    """
    _check_samples(num_samples)
    # The whole request is rejected on invalid structure, not just the sampled part.
    encoder.topological_sort(nodes, encoder.validate_structure(nodes))

    ancestors = find_ancestors(nodes, target_id)
    if not ancestors:
        logger.info(f"Sensitivity: {target_id} has no ancestors, nothing to sample")
        return []

    keep = ancestors | {target_id}
    network = encoder.encode([node for node in nodes if node.id in keep])
    target_index = _resolve_index(network, target_id)
    rng = rng if rng is not None else make_rng()

    start = time.time()
    order = [node_id for node_id in network.topo_order if node_id in ancestors]
    results: List[SensitivityResult] = []
    for completed, ancestor_id in enumerate(order, 1):
        index = network.topo_order.index(ancestor_id)
        p_true = _run_batch(network, num_samples, Intervention(index, True), rng, should_cancel)
        p_false = _run_batch(network, num_samples, Intervention(index, False), rng, should_cancel)

        target_true = p_true[network.topo_order[target_index]]
        target_false = p_false[network.topo_order[target_index]]
        result = SensitivityResult(
            node_id=ancestor_id,
            sensitivity=target_true - target_false,
            p_true=target_true,
            p_false=target_false,
        )
        results.append(result)
        logger.debug(f"Sensitivity {ancestor_id} -> {target_id}: {result.sensitivity:+.4f}")
        if on_progress is not None:
            on_progress(ancestor_id, result.sensitivity, completed, len(order))

    logger.info(
        f"Sensitivity for {target_id}: {len(order)} ancestors, {num_samples} samples each way "
        f"in {time.time() - start:.2f}s"
    )
    return sorted(results, key=lambda r: abs(r.sensitivity), reverse=True)


def compute_marginals_request(
    nodes: Sequence[Node],
    num_samples: int,
    intervention_node_id: Optional[str] = None,
    rng: Optional[np.random.Generator] = None,
) -> Union[Dict[str, float], InterventionResult]:
    """Single entry point: plain marginals, or both intervention cases.

    An empty network yields an empty mapping without sampling.
    """
    if not nodes:
        return {}
    _check_samples(num_samples)
    if intervention_node_id is None:
        return compute_marginals(nodes, num_samples, rng)
    return compute_intervention_marginals(nodes, intervention_node_id, num_samples, rng)
