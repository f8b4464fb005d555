"""Canonical network fingerprint and probability formatting."""

import json
from typing import Sequence

from .models import Node


def compute_fingerprint(nodes: Sequence[Node]) -> str:
    """String that changes only when the probabilistic content changes.

    Node order and parent-key order do not affect the result. Ids are JSON
    encoded, so no choice of id can make two networks collide.
    """
    canonical = [
        [
            node.id,
            [
                [sorted(entry.parent_states.items()), entry.probability]
                for entry in node.cpt_entries
            ],
        ]
        for node in sorted(nodes, key=lambda n: n.id)
    ]
    return json.dumps(canonical, separators=(",", ":"))


def _significant(value: float, sig_figs: int) -> str:
    formatted = f"{value:.{sig_figs}g}"
    if "e" in formatted:
        # Fall back to plain notation for very small/large values.
        formatted = f"{float(formatted):f}".rstrip("0").rstrip(".")
    return formatted


def format_probability(probability: float, sig_figs: int = 2) -> str:
    if probability == 0:
        return "0"
    if probability == 1:
        return "1"
    return _significant(probability, sig_figs)


def format_probability_as_percentage(probability: float, sig_figs: int = 2) -> str:
    percentage = probability * 100
    if percentage == 0:
        return "0%"
    if percentage == 100:
        return "100%"
    return _significant(percentage, sig_figs) + "%"
