"""
tests/test_cli.py - Tests for the cyclekernel command line

Validates:
- run / replay / seeds against a JSON ledger directory
- exit codes: 0 success, 1 actionable, 2 fatal
- validate-config output
"""

import json

import pytest
from click.testing import CliRunner

from cli import cli


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(cli, ["--log-level", "ERROR", *args])


# =============================================================================
# RUN / REPLAY / SEEDS
# =============================================================================

class TestRun:
    """cyclekernel run."""

    def test_dry_run_json(self, runner, tmp_path):
        """A dry run on an empty ledger succeeds and writes no files."""
        result = invoke(runner, "run", "--ledger", str(tmp_path), "--dry-run", "-o", "json")
        assert result.exit_code == 0, result.output
        out = json.loads(result.output)
        assert out["cycle_id"] == 1
        assert out["stats"]["dry_run"] is True
        assert list(tmp_path.iterdir()) == []

    def test_live_run_writes_tables(self, runner, tmp_path):
        """A live run creates the ledger tables."""
        result = invoke(runner, "run", "--ledger", str(tmp_path), "-o", "json")
        assert result.exit_code == 0, result.output
        assert (tmp_path / "World_Config.json").exists()
        assert (tmp_path / "Cycle_Seeds.json").exists()

    def test_rich_output(self, runner, tmp_path):
        """The default renderer prints the cycle panel."""
        result = invoke(runner, "run", "--ledger", str(tmp_path), "--dry-run")
        assert result.exit_code == 0, result.output
        assert "civic_load" in result.output

    def test_missing_ledger_is_fatal(self, runner, tmp_path):
        """An absent ledger directory exits 2."""
        result = invoke(runner, "run", "--ledger", str(tmp_path / "missing"), "-o", "json")
        assert result.exit_code == 2
        assert "Ledger unavailable" in json.loads(result.output)["error"]

    def test_missing_config_is_fatal(self, runner, tmp_path):
        """A config path that does not exist exits 2."""
        result = invoke(runner, "run", "--ledger", str(tmp_path),
                        "--config", str(tmp_path / "nope.yaml"), "-o", "json")
        assert result.exit_code == 2

    def test_receipts_appended(self, runner, tmp_path):
        """--receipts appends one JSON line per cycle receipt."""
        ledger = tmp_path / "ledger"
        ledger.mkdir()
        receipts = tmp_path / "receipts.jsonl"
        result = invoke(runner, "run", "--ledger", str(ledger), "--dry-run",
                        "--receipts", str(receipts), "-o", "json")
        assert result.exit_code == 0, result.output

        lines = [json.loads(line) for line in receipts.read_text().splitlines()]
        types = [r["receipt_type"] for r in lines]
        assert "intent_summary" in types
        assert types[-1] == "cycle"
        assert all(":" in r["payload_hash"] for r in lines)

    def test_inputs_file(self, runner, tmp_path):
        """World-state inputs are read from YAML."""
        ledger = tmp_path / "ledger"
        ledger.mkdir()
        inputs = tmp_path / "inputs.yaml"
        inputs.write_text("weather:\n  type: fog\nstory_seeds: [a, b]\n")
        config = tmp_path / "kernel.yaml"
        config.write_text("max_crisis_spikes: 0\n")

        result = invoke(runner, "run", "--ledger", str(ledger), "-c", str(config),
                        "-i", str(inputs), "--dry-run", "-o", "json")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["summary"]["cycle_checksum"].startswith("fog|")


class TestReplayAndSeeds:
    """cyclekernel replay and seeds."""

    def test_replay_after_run(self, runner, tmp_path):
        """A stored cycle replays to the same checksum."""
        assert invoke(runner, "run", "--ledger", str(tmp_path), "-o", "json").exit_code == 0

        result = invoke(runner, "replay", "1", "--ledger", str(tmp_path), "-o", "json")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["replay"]["match"] is True

    def test_replay_unknown_cycle(self, runner, tmp_path):
        """A cycle that was never run is a mismatch, exit 1."""
        result = invoke(runner, "replay", "3", "--ledger", str(tmp_path), "-o", "json")
        assert result.exit_code == 1
        assert json.loads(result.output)["replay"]["match"] is False

    def test_replay_rejects_zero(self, runner, tmp_path):
        """Cycle ids start at 1."""
        result = invoke(runner, "replay", "0", "--ledger", str(tmp_path))
        assert result.exit_code == 2

    def test_seeds_lists_runs(self, runner, tmp_path):
        """Each live run leaves one seed record."""
        invoke(runner, "run", "--ledger", str(tmp_path), "-o", "json")
        invoke(runner, "run", "--ledger", str(tmp_path), "-o", "json")

        result = invoke(runner, "seeds", "--ledger", str(tmp_path), "-o", "json")
        assert result.exit_code == 0, result.output
        records = json.loads(result.output)
        assert [r["cycle_id"] for r in records] == [1, 2]
        assert [r["seed"] for r in records] == [1, 2]

    def test_seeds_missing_ledger(self, runner, tmp_path):
        """Listing seeds from an absent ledger exits 2."""
        result = invoke(runner, "seeds", "--ledger", str(tmp_path / "missing"))
        assert result.exit_code == 2


# =============================================================================
# VALIDATE-CONFIG
# =============================================================================

class TestValidateConfig:
    """cyclekernel validate-config."""

    def test_valid(self, runner, tmp_path):
        """A valid file reports its hash and exits 0."""
        path = tmp_path / "kernel.yaml"
        path.write_text("digest_window: 10\n")
        result = invoke(runner, "validate-config", str(path), "-o", "json")
        assert result.exit_code == 0, result.output
        out = json.loads(result.output)
        assert out["valid"] is True
        assert out["config"]["digest_window"] == 10
        assert ":" in out["config_hash"]

    def test_schema_violation(self, runner, tmp_path):
        """Out-of-range values fail with exit 1."""
        path = tmp_path / "kernel.yaml"
        path.write_text("digest_window: 1\n")
        result = invoke(runner, "validate-config", str(path), "-o", "json")
        assert result.exit_code == 1
        out = json.loads(result.output)
        assert out["valid"] is False
        assert out["errors"][0].startswith("digest_window")

    def test_threshold_order(self, runner, tmp_path):
        """Misordered thresholds pass the schema but fail construction."""
        path = tmp_path / "kernel.json"
        path.write_text(json.dumps({"recovery_thresholds": {"light": 8, "moderate": 6, "heavy": 10}}))
        result = invoke(runner, "validate-config", str(path), "-o", "json")
        assert result.exit_code == 1
        assert json.loads(result.output)["valid"] is False

    def test_missing(self, runner, tmp_path):
        """A missing file exits 2."""
        result = invoke(runner, "validate-config", str(tmp_path / "nope.yaml"), "-o", "json")
        assert result.exit_code == 2
        assert json.loads(result.output)["error"] == "config not found"

    def test_rich_output(self, runner, tmp_path):
        """The panel reports PASSED for a valid file."""
        path = tmp_path / "kernel.yaml"
        path.write_text("max_crisis_spikes: 1\n")
        result = invoke(runner, "validate-config", str(path))
        assert result.exit_code == 0
        assert "PASSED" in result.output
