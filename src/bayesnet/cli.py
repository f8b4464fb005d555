"""
Command-line interface for Monte Carlo inference over binary Bayesian networks.

Usage:
    python -m src.bayesnet.cli --network data/sprinkler.json marginals
    python -m src.bayesnet.cli --network data/sprinkler.json intervene Rain
    python -m src.bayesnet.cli --network data/sprinkler.json sensitivity WetGrass --json
    python -m src.bayesnet.cli --network data/sprinkler.json validate
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from src.logging_config import configure_logging

from . import encoder, queries, validation
from .config import ConfigError, InferenceSettings, load_settings
from .entropy import make_rng
from .errors import InferenceError
from .fingerprint import format_probability, format_probability_as_percentage
from .models import Node, nodes_from_dicts

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "schemas" / "network.schema.json"


class InvalidNetworkFileError(Exception):
    """Raised when a network file fails to load or validate."""
    pass


def load_network(path: Path, schema_path: Optional[Path] = DEFAULT_SCHEMA_PATH) -> List[Node]:
    """Load a ``{"nodes": [...]}`` JSON file and validate it against the schema.

    Raises:
        InvalidNetworkFileError: if the file is missing, not JSON or off-schema
    """
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidNetworkFileError(f"Failed to read network file {path}: {e}")

    if schema_path is not None and schema_path.exists():
        with open(schema_path) as f:
            schema = json.load(f)
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            where = ".".join(str(p) for p in e.absolute_path) or "<root>"
            raise InvalidNetworkFileError(f"Schema validation failed at {where}: {e.message}")

    try:
        return nodes_from_dicts(data["nodes"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidNetworkFileError(f"Invalid network in {path}: {e}")


def _settings(args: argparse.Namespace) -> InferenceSettings:
    settings = load_settings(Path(args.config) if args.config else None)
    if args.samples is not None:
        settings = replace(settings, num_samples=args.samples)
    if args.seed is not None:
        settings = replace(settings, seed=args.seed)
    return settings


def _print_marginals(probabilities: Dict[str, float], indent: str = "  ") -> None:
    for node_id, p in probabilities.items():
        print(f"{indent}{node_id}: {format_probability_as_percentage(p)}")


def _emit_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def cmd_marginals(args: argparse.Namespace, nodes: List[Node], settings: InferenceSettings) -> int:
    """Print P(node = True) for every node."""
    result = queries.compute_marginals(nodes, settings.num_samples, make_rng(settings.seed))
    if args.json:
        _emit_json(result)
    else:
        print(f"Marginals ({settings.num_samples} samples):")
        _print_marginals(result)
    return 0


def cmd_intervene(args: argparse.Namespace, nodes: List[Node], settings: InferenceSettings) -> int:
    """Print marginals under do(node=True) and do(node=False)."""
    result = queries.compute_intervention_marginals(
        nodes, args.node, settings.num_samples, make_rng(settings.seed)
    )
    if args.json:
        _emit_json(result.to_dict())
    else:
        print(f"do({args.node} = true):")
        _print_marginals(result.true_case)
        print(f"do({args.node} = false):")
        _print_marginals(result.false_case)
    return 0


def cmd_sensitivity(args: argparse.Namespace, nodes: List[Node], settings: InferenceSettings) -> int:
    """Rank ancestors of a node by average causal effect."""
    def progress(node_id: str, sensitivity: float, completed: int, total: int) -> None:
        if args.verbose:
            print(f"  [{completed}/{total}] {node_id}: {sensitivity:+.3f}", file=sys.stderr)

    results = queries.compute_sensitivity(
        nodes, args.node, settings.num_samples, make_rng(settings.seed), on_progress=progress
    )
    if args.json:
        _emit_json({"target": args.node, "sensitivities": [r.to_dict() for r in results]})
        return 0

    if not results:
        print(f"{args.node} has no ancestors")
        return 0
    print(f"Sensitivity of {args.node} (P(do=true) - P(do=false)):")
    for r in results:
        print(
            f"  {r.node_id}: {r.sensitivity:+.3f}  "
            f"(true={format_probability(r.p_true)}, false={format_probability(r.p_false)})"
        )
    return 0


def cmd_validate(args: argparse.Namespace, nodes: List[Node], settings: InferenceSettings) -> int:
    """Check structure and CPT coverage."""
    ok, errors = validation.validate_network(nodes, settings.max_wildcards)
    if args.json:
        _emit_json({"valid": ok, "errors": errors})
    elif ok:
        print(f"Network valid ({len(nodes)} nodes)")
    else:
        print("Network validation failed:")
        for err in errors:
            print(f"  - {err}")
    return 0 if ok else 1


def cmd_encode(args: argparse.Namespace, nodes: List[Node], settings: InferenceSettings) -> int:
    """Show the topological order and the encoded buffer."""
    network = encoder.encode(nodes)
    if args.json:
        _emit_json({"topo_order": list(network.topo_order), "data": network.data.hex()})
    else:
        for idx, node_id in enumerate(network.topo_order):
            print(f"  {idx:3d} {node_id}")
        print(f"{len(network.data)} bytes: {network.data.hex()}")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="bayesnet",
        description="Monte Carlo inference over binary Bayesian networks"
    )

    parser.add_argument("--network", required=True, help="Path to network JSON file")
    parser.add_argument("--config", help="Path to inference.yaml (default: config/inference.yaml)")
    parser.add_argument("--samples", type=int, help="Samples per batch (overrides config)")
    parser.add_argument("--seed", type=int, help="Fixed RNG seed for reproducible output")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    marginals_parser = subparsers.add_parser("marginals", help="Marginal probability of every node")
    marginals_parser.set_defaults(func=cmd_marginals)

    intervene_parser = subparsers.add_parser("intervene", help="Marginals under do(node=true/false)")
    intervene_parser.add_argument("node", help="Node id to intervene on")
    intervene_parser.set_defaults(func=cmd_intervene)

    sensitivity_parser = subparsers.add_parser("sensitivity", help="Ancestor sensitivity of a node")
    sensitivity_parser.add_argument("node", help="Target node id")
    sensitivity_parser.set_defaults(func=cmd_sensitivity)

    validate_parser = subparsers.add_parser("validate", help="Validate structure and CPT coverage")
    validate_parser.set_defaults(func=cmd_validate)

    encode_parser = subparsers.add_parser("encode", help="Show topological order and encoded bytes")
    encode_parser.set_defaults(func=cmd_encode)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        settings = _settings(args)
        level = logging.DEBUG if args.verbose else settings.log_level_value
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(level)

    try:
        nodes = load_network(Path(args.network))
        return args.func(args, nodes, settings)
    except (InvalidNetworkFileError, InferenceError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
