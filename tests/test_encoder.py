"""
Tests for src/bayesnet/encoder.py - validation, ordering and byte layout.
"""

import struct

import networkx as nx
import numpy as np
import pytest

from src.bayesnet import encoder
from src.bayesnet.errors import (
    CycleDetectedError,
    DuplicateIdError,
    IndexOverflowError,
    InvalidProbabilityError,
    TooManyNodesError,
    UnknownParentError,
)
from src.bayesnet.models import CptEntry, Node


def f32(value):
    return struct.pack("<f", value)


def root(node_id, p=0.5):
    return Node(node_id, [CptEntry({}, p)])


def node(node_id, *entries):
    return Node(node_id, [CptEntry(states, p) for states, p in entries])


class TestByteLayout:
    """Tests for the serialized record format."""

    def test_single_root(self):
        """A root is: 0 parents, 1 entry, zero pattern bytes, f32."""
        network = encoder.encode([root("A", 0.5)])
        assert network.topo_order == ("A",)
        assert network.data == bytes([0, 1]) + f32(0.5)

    def test_child_with_one_parent(self):
        """True sets constraint+value bits, False only the constraint bit."""
        network = encoder.encode([
            node("B", ({"A": True}, 0.9), ({"A": False}, 0.2)),
            root("A", 0.3),
        ])
        assert network.topo_order == ("A", "B")
        expected = (
            bytes([0, 1]) + f32(0.3)
            + bytes([1, 0, 2])
            + bytes([0x11]) + f32(0.9)
            + bytes([0x10]) + f32(0.2)
        )
        assert network.data == expected

    def test_wildcard_and_absent_parent_encode_as_zero(self):
        """None and a missing parent key are both unconstrained."""
        network = encoder.encode([
            root("A"),
            root("B"),
            node("C", ({"A": True, "B": None}, 0.7), ({"B": False}, 0.1)),
        ])
        # C: parents [0, 1]; entry 1 constrains A=true only, entry 2 constrains B=false only
        c_record = network.data[-(1 + 2 + 1 + 2 * 5):]
        assert c_record == (
            bytes([2, 0, 1, 2])
            + bytes([0x11]) + f32(0.7)
            + bytes([0x20]) + f32(0.1)
        )

    def test_parents_sorted_by_topological_index(self):
        """Parent columns follow topo order, not the entry's key order."""
        network = encoder.encode([
            root("Z"),
            root("A"),
            node("C", ({"Z": True, "A": False}, 0.4)),
        ])
        assert network.topo_order == ("A", "Z", "C")
        c_record = network.data[2 * (2 + 4):]
        # A is bit 0 (constrained false), Z is bit 1 (constrained true)
        assert c_record == bytes([2, 0, 1, 1, 0x32]) + f32(0.4)

    def test_five_parents_use_two_pattern_bytes(self):
        """Parents are packed four per byte."""
        parents = [root(f"P{i}") for i in range(1, 6)]
        child = node("X", ({"P5": True, "P1": False, "P2": None, "P3": None, "P4": None}, 0.25))
        network = encoder.encode(parents + [child])
        assert network.topo_order[-1] == "X"
        x_record = network.data[5 * (2 + 4):]
        assert x_record == bytes([5, 0, 1, 2, 3, 4, 1, 0x10, 0x11]) + f32(0.25)

    def test_probability_stored_as_float32(self):
        """Probabilities are narrowed to 32-bit floats."""
        network = encoder.encode([root("A", 0.1)])
        stored = struct.unpack("<f", network.data[2:6])[0]
        assert stored != 0.1
        assert abs(stored - 0.1) < 1e-7

    def test_pattern_width(self):
        """ceil(num_parents / 4)."""
        assert [encoder.pattern_width(n) for n in (0, 1, 4, 5, 8, 9)] == [0, 1, 1, 2, 2, 3]


class TestTopologicalOrder:
    """Tests for Kahn ordering."""

    def test_ties_broken_lexically(self):
        """Independent roots come out in id order regardless of input order."""
        network = encoder.encode([root("c"), root("b"), root("a")])
        assert network.topo_order == ("a", "b", "c")

    def test_parents_precede_children(self):
        """Every edge points forward in the topological order."""
        edges = [
            ("rain", "wet"), ("sprinkler", "wet"), ("cloudy", "rain"),
            ("cloudy", "sprinkler"), ("wet", "slippery"), ("season", "cloudy"),
            ("season", "sprinkler"),
        ]
        graph = nx.DiGraph(edges)
        assert nx.is_directed_acyclic_graph(graph)

        nodes = []
        for name in graph.nodes:
            preds = list(graph.predecessors(name))
            if preds:
                nodes.append(node(name, ({p: None for p in preds}, 0.5)))
            else:
                nodes.append(root(name))

        order = encoder.encode(nodes).topo_order
        position = {node_id: i for i, node_id in enumerate(order)}
        assert set(order) == set(graph.nodes)
        for parent, child in edges:
            assert position[parent] < position[child]

    def test_deterministic_across_input_permutations(self):
        """The same network in a different order encodes identically."""
        nodes = [
            root("A"),
            node("B", ({"A": True}, 0.9), ({"A": False}, 0.1)),
            root("C"),
            node("D", ({"B": None, "C": True}, 0.3), ({}, 0.6)),
        ]
        forward = encoder.encode(nodes)
        backward = encoder.encode(list(reversed(nodes)))
        assert forward == backward


class TestValidation:
    """Tests for structural checks and their order."""

    def test_capacity_255_succeeds(self):
        """Exactly 255 nodes is the maximum."""
        nodes = [root(f"n{i:03d}") for i in range(255)]
        network = encoder.encode(nodes)
        assert network.num_nodes == 255

    def test_capacity_256_fails(self):
        """256 nodes raise TooManyNodesError."""
        nodes = [root(f"n{i:03d}") for i in range(256)]
        with pytest.raises(TooManyNodesError) as exc:
            encoder.encode(nodes)
        assert exc.value.count == 256

    def test_size_checked_before_duplicates(self):
        """Node count is the first check."""
        nodes = [root("same") for _ in range(256)]
        with pytest.raises(TooManyNodesError):
            encoder.encode(nodes)

    def test_duplicate_id(self):
        """Two nodes with one id raise DuplicateIdError."""
        with pytest.raises(DuplicateIdError) as exc:
            encoder.encode([root("A"), root("A")])
        assert exc.value.node_id == "A"

    def test_duplicate_checked_before_unknown_parent(self):
        """Duplicate ids win over dangling parent references."""
        nodes = [root("A"), root("A"), node("B", ({"ghost": True}, 0.5))]
        with pytest.raises(DuplicateIdError):
            encoder.encode(nodes)

    def test_unknown_parent(self):
        """A reference to a missing node raises UnknownParentError."""
        with pytest.raises(UnknownParentError) as exc:
            encoder.encode([node("B", ({"ghost": True}, 0.5))])
        assert exc.value.node_id == "B"
        assert exc.value.parent_id == "ghost"

    def test_two_node_cycle(self):
        """A -> B -> A is rejected."""
        nodes = [
            node("A", ({"B": True}, 0.5), ({"B": False}, 0.5)),
            node("B", ({"A": True}, 0.5), ({"A": False}, 0.5)),
        ]
        with pytest.raises(CycleDetectedError) as exc:
            encoder.encode(nodes)
        assert exc.value.unresolved == ["A", "B"]

    def test_self_loop(self):
        """A node listing itself as a parent is a cycle."""
        with pytest.raises(CycleDetectedError):
            encoder.encode([node("A", ({"A": None}, 0.5))])

    def test_too_many_cpt_entries(self):
        """More than 255 entries cannot be counted in one byte."""
        entries = [({}, 0.5)] * 256
        with pytest.raises(IndexOverflowError):
            encoder.encode([node("A", *entries)])

    def test_probability_out_of_range(self):
        """Probabilities outside [0, 1] are rejected before sampling."""
        with pytest.raises(InvalidProbabilityError) as exc:
            encoder.encode([root("A", 1.5)])
        assert exc.value.node_id == "A"

    def test_nan_probability(self):
        """NaN is not a probability."""
        with pytest.raises(InvalidProbabilityError):
            encoder.encode([root("A", float("nan"))])

    def test_numpy_probabilities_accepted(self):
        """Numpy scalars are real numbers and encode like floats."""
        network = encoder.encode([root("A", np.float32(0.5)), root("B", np.int64(1))])
        assert network.data == bytes([0, 1]) + f32(0.5) + bytes([0, 1]) + f32(1.0)

    def test_non_numeric_probability(self):
        with pytest.raises(InvalidProbabilityError):
            encoder.encode([root("A", "0.5")])
