"""
Tests for das_sim.cli.

These tests run the CLI in-process on tiny configurations.
"""

import csv
import json

from das_sim.cli import main


class TestSimulateCommand:
    """Tests for the simulate command."""

    def test_prints_summary_json(self, capsys):
        code = main(["simulate", "--n", "8", "--n-clients", "5", "--n-samples", "4", "--n-trials", "5"])
        assert code == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["config"]["n"] == 8
        assert payload["summary"]["n_trials"] == 5
        assert 0.0 <= payload["summary"]["mean_fraction"] <= 1.0

    def test_writes_json_and_trial_csv(self, tmp_path):
        out = tmp_path / "out" / "summary.json"
        trials = tmp_path / "trials.csv"
        code = main([
            "simulate", "--n", "8", "--strategy", "box:2x2", "--n-samples", "3",
            "--percent-censored", "0.25", "--n-trials", "4", "--workers", "2",
            "--output", str(out), "--csv", str(trials),
        ])
        assert code == 0
        assert json.loads(out.read_text())["config"]["box_width"] == 2
        with open(trials, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [int(r["trial_index"]) for r in rows] == [0, 1, 2, 3]
        assert all(int(r["n_censored"]) == 16 for r in rows)

    def test_invalid_configuration_exits_2(self, capsys):
        code = main(["simulate", "--n", "8", "--strategy", "box:3x3", "--n-trials", "1"])
        assert code == 2
        assert "error:" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == 1


class TestSweepCommand:
    """Tests for the sweep command."""

    def test_small_grids_csv(self, tmp_path):
        out = tmp_path / "sweep.csv"
        code = main([
            "sweep", "small-grids", "--n-clients", "5", "--percent-censored", "0.5",
            "--dims", "2", "--n-trials", "2", "--output", str(out),
        ])
        assert code == 0
        with open(out, newline="") as f:
            rows = list(csv.DictReader(f))
        # 7 sample counts x 4 grid sizes
        assert len(rows) == 28
        assert {r["percent_censored"] for r in rows} == {"0.5"}
