"""
Tests for src/bayesnet/cli.py.
"""

import json

import pytest

from src.bayesnet import cli


CHAIN = {
    "nodes": [
        {"id": "A", "cpt_entries": [{"parent_states": {}, "probability": 0.5}]},
        {"id": "B", "cpt_entries": [
            {"parent_states": {"A": True}, "probability": 1.0},
            {"parent_states": {"A": False}, "probability": 0.0},
        ]},
    ]
}


@pytest.fixture(autouse=True)
def work_dir(tmp_path, monkeypatch):
    """Run each command from a scratch directory so log files land there."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def network_file(tmp_path):
    path = tmp_path / "chain.json"
    path.write_text(json.dumps(CHAIN))
    return path


def run(network_path, *args):
    return cli.main(["--network", str(network_path), "--seed", "1", "--samples", "200", *args])


class TestLoadNetwork:
    """Tests for load_network."""

    def test_loads_nodes(self, network_file):
        nodes = cli.load_network(network_file)
        assert [n.id for n in nodes] == ["A", "B"]
        assert nodes[1].parent_ids == ["A"]

    def test_accepts_browser_keys(self, tmp_path):
        path = tmp_path / "browser.json"
        path.write_text(json.dumps({
            "nodes": [{"_id": "A", "cptEntries": [{"parentStates": {}, "probability": 0.3}]}]
        }))
        nodes = cli.load_network(path)
        assert nodes[0].id == "A"
        assert nodes[0].cpt_entries[0].probability == 0.3

    def test_missing_file(self, tmp_path):
        with pytest.raises(cli.InvalidNetworkFileError):
            cli.load_network(tmp_path / "absent.json")

    def test_string_state_without_schema(self, tmp_path):
        """Without the schema, a string state is still refused rather than coerced."""
        path = tmp_path / "strings.json"
        path.write_text(json.dumps({
            "nodes": [{"id": "B", "cpt_entries": [{"parent_states": {"A": "false"}, "probability": 0.5}]}]
        }))
        with pytest.raises(cli.InvalidNetworkFileError, match="must be true, false or null"):
            cli.load_network(path, schema_path=None)

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({
            "nodes": [{"id": "A", "cpt_entries": [{"parent_states": {}, "probability": 1.5}]}]
        }))
        with pytest.raises(cli.InvalidNetworkFileError, match="Schema validation failed"):
            cli.load_network(path)


class TestCommands:
    """End-to-end command runs."""

    def test_marginals_text(self, network_file, capsys):
        assert run(network_file, "marginals") == 0
        out = capsys.readouterr().out
        assert "Marginals (200 samples):" in out
        assert "  A: " in out
        assert "  B: " in out

    def test_marginals_json(self, network_file, capsys):
        assert run(network_file, "--json", "marginals") == 0
        result = json.loads(capsys.readouterr().out)
        assert set(result) == {"A", "B"}
        assert result["A"] == result["B"]

    def test_same_seed_same_output(self, network_file, capsys):
        run(network_file, "--json", "marginals")
        first = capsys.readouterr().out
        run(network_file, "--json", "marginals")
        assert capsys.readouterr().out == first

    def test_intervene_json(self, network_file, capsys):
        assert run(network_file, "--json", "intervene", "A") == 0
        result = json.loads(capsys.readouterr().out)
        assert result["true_case"] == {"A": 1.0, "B": 1.0}
        assert result["false_case"] == {"A": 0.0, "B": 0.0}

    def test_sensitivity_json(self, network_file, capsys):
        assert run(network_file, "--json", "sensitivity", "B") == 0
        result = json.loads(capsys.readouterr().out)
        assert result["target"] == "B"
        assert result["sensitivities"] == [
            {"node_id": "A", "sensitivity": 1.0, "p_true": 1.0, "p_false": 0.0}
        ]

    def test_sensitivity_of_root(self, network_file, capsys):
        assert run(network_file, "sensitivity", "A") == 0
        assert "A has no ancestors" in capsys.readouterr().out

    def test_verbose_progress_on_stderr(self, network_file, capsys):
        assert run(network_file, "-v", "sensitivity", "B") == 0
        assert "[1/1] A" in capsys.readouterr().err

    def test_encode(self, network_file, capsys):
        assert run(network_file, "--json", "encode") == 0
        result = json.loads(capsys.readouterr().out)
        assert result["topo_order"] == ["A", "B"]
        assert bytes.fromhex(result["data"])[0] == 0

    def test_validate_ok(self, network_file, capsys):
        assert run(network_file, "validate") == 0
        assert "Network valid (2 nodes)" in capsys.readouterr().out

    def test_validate_incomplete(self, tmp_path, capsys):
        path = tmp_path / "incomplete.json"
        path.write_text(json.dumps({
            "nodes": [
                {"id": "A", "cpt_entries": [{"parent_states": {}, "probability": 0.5}]},
                {"id": "B", "cpt_entries": [{"parent_states": {"A": True}, "probability": 0.5}]},
            ]
        }))
        assert run(path, "validate") == 1
        assert "Node B: CPT is incomplete" in capsys.readouterr().out


class TestErrors:
    """Failures print to stderr and exit 1."""

    def test_unknown_node(self, network_file, capsys):
        assert run(network_file, "intervene", "Z") == 1
        assert "Error: Node Z not found" in capsys.readouterr().err

    def test_missing_network(self, tmp_path, capsys):
        assert run(tmp_path / "absent.json", "marginals") == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_sample_count(self, network_file, capsys):
        assert cli.main(["--network", str(network_file), "--samples", "0", "marginals"]) == 1
        assert "num_samples must be positive" in capsys.readouterr().err

    def test_cycle(self, tmp_path, capsys):
        path = tmp_path / "cycle.json"
        path.write_text(json.dumps({
            "nodes": [
                {"id": "A", "cpt_entries": [{"parent_states": {"B": None}, "probability": 0.5}]},
                {"id": "B", "cpt_entries": [{"parent_states": {"A": None}, "probability": 0.5}]},
            ]
        }))
        assert run(path, "marginals") == 1
        assert "Cycle detected" in capsys.readouterr().err

    def test_no_command_prints_help(self, network_file, capsys):
        assert cli.main(["--network", str(network_file)]) == 0
        assert "usage:" in capsys.readouterr().out
