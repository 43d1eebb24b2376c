import argparse
import runpy
import sys
from pathlib import Path

import pandas as pd
import pytest

SCRIPT = Path(__file__).parent.parent / "scripts" / "compare_mrca_ages.py"


@pytest.fixture
def script():
    return runpy.run_path(str(SCRIPT), run_name="compare_mrca_ages")


def test_script_writes_outputs(script, data_dir, tmp_path, monkeypatch, capsys):
    summary = tmp_path / "summary.csv"
    plot = tmp_path / "ages.png"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "compare_mrca_ages.py",
            "--trees",
            f"no_geo={data_dir / 'three_trees.newick'}",
            "--trees",
            f"geo={data_dir / 'three_trees.newick'}",
            "--pair",
            "A",
            "B",
            "--burnin",
            "0",
            "--bins",
            "4",
            "--summary-csv",
            str(summary),
            "--plot",
            str(plot),
        ],
    )
    assert script["main"]() == 0

    frame = pd.read_csv(summary)
    assert set(frame["tree_set"]) == {"no_geo", "geo"}
    assert list(frame["n"]) == [2, 2]
    assert plot.stat().st_size > 0
    assert "Dispersion lower in 'geo'" in capsys.readouterr().out


def test_script_rejects_single_tree_set(script, data_dir, monkeypatch):
    monkeypatch.setattr(
        sys,
        "argv",
        ["compare_mrca_ages.py", "--trees", f"x={data_dir / 'three_trees.newick'}", "--pair", "A", "B"],
    )
    assert script["main"]() == 2


def test_parse_tree_argument(script):
    assert script["parse_tree_argument"]("geo=trees.nex") == ["geo", "trees.nex"]
    with pytest.raises(argparse.ArgumentTypeError):
        script["parse_tree_argument"]("trees.nex")
