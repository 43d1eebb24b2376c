import math

import numpy as np
import pandas as pd
import pytest

from mrca_analyzer.comparison import (
    compare_dispersion,
    compare_distributions,
    dispersion,
    dispersion_table,
    shared_bin_edges,
    summarize_distribution,
)
from mrca_analyzer.mrca_ages import compute_mrca_ages


def test_dispersion_of_keyed_distributions():
    reference = {("A", "B"): [10, 20, 30]}
    candidate = {("A", "B"): [40, 50, 60]}
    result = compare_dispersion(reference, candidate)
    # Equal spread is not lower
    assert result.percent_lower == 0.0
    assert result.n_compared == 1
    assert result.n_unmatched == 0


def test_dispersion_ignores_unmatched_keys():
    reference = {"k1": [10, 20, 30], "k2": [1, 2, 3], "only_ref": [0, 100]}
    candidate = {"k1": [19, 20, 21], "k2": [0, 50, 100], "only_cand": [5, 6]}
    result = compare_dispersion(reference, candidate)
    assert result.n_compared == 2
    assert result.n_lower == 1
    assert result.percent_lower == 50.0
    assert result.n_unmatched == 2


def test_dispersion_undefined_pairs_are_not_compared():
    reference = {"k1": [1.0], "k2": [1.0, 2.0, 4.0]}
    candidate = {"k1": [1.0, 2.0], "k2": [2.0, 2.5, 3.0]}
    result = compare_dispersion(reference, candidate)
    assert result.n_undefined == 1
    assert result.n_compared == 1
    assert result.percent_lower == 100.0


def test_dispersion_with_nothing_comparable():
    result = compare_dispersion({"k": []}, {"other": [1.0, 2.0]})
    assert math.isnan(result.percent_lower)
    assert result.n_compared == 0


def test_dispersion_table_columns():
    table = dispersion_table({"k": [1.0, 3.0], "x": [1.0]}, {"k": [1.0, 2.0], "x": [5.0]})
    assert list(table.columns) == [
        "key",
        "n_reference",
        "n_candidate",
        "std_reference",
        "std_candidate",
        "lower",
    ]
    row = table.set_index("key").loc["k"]
    assert row["std_reference"] == pytest.approx(math.sqrt(2))
    assert row["lower"]
    assert pd.isna(table.set_index("key").loc["x", "lower"])


def test_dispersion_uses_sample_standard_deviation():
    assert dispersion([10, 20, 30]) == pytest.approx(10.0)
    assert math.isnan(dispersion([5.0]))
    assert math.isnan(dispersion([]))


def test_compare_distributions_shared_bins():
    comparison = compare_distributions([0.0, 1.0, 2.0], [2.0, 3.0, 4.0], bins=4)
    assert comparison.labels == ("a", "b")
    np.testing.assert_allclose(comparison.bin_edges, [0.0, 1.0, 2.0, 3.0, 4.0])
    assert comparison.counts[0].tolist() == [1, 1, 1, 0]
    assert comparison.counts[1].tolist() == [0, 0, 1, 2]
    assert comparison.outside_range == (0, 0)


def test_compare_three_distributions_with_labels():
    comparison = compare_distributions(
        [1.0], [2.0], [3.0], labels=["prior", "geo", "no geo"], bins=2
    )
    assert comparison.labels == ("prior", "geo", "no geo")
    assert len(comparison.counts) == 3
    assert [s.n for s in comparison.summaries] == [1, 1, 1]


def test_compare_distributions_empty_inputs():
    comparison = compare_distributions([], [], bins=5)
    np.testing.assert_allclose(comparison.bin_edges[[0, -1]], [0.0, 1.0])
    assert all(c.sum() == 0 for c in comparison.counts)
    assert all(s.is_empty() for s in comparison.summaries)
    assert math.isnan(comparison.summaries[0].mean)


def test_compare_distributions_accepts_empty_result(tree_set_without_b):
    empty = compute_mrca_ages(tree_set_without_b, "A", "B")
    comparison = compare_distributions(empty, [1.0, 2.0])
    assert comparison.summaries[0].n == 0
    assert comparison.counts[1].sum() == 2


def test_value_range_excludes_outside_values():
    comparison = compare_distributions(
        [-5.0, 0.5, 1.5, 50.0], [1.0], bins=2, value_range=(0.0, 2.0)
    )
    assert comparison.counts[0].tolist() == [1, 1]
    assert comparison.outside_range == (2, 0)
    # Summaries describe the full distribution
    assert comparison.summaries[0].n == 4


def test_single_repeated_value_gets_a_bin():
    edges = shared_bin_edges([np.array([3.0, 3.0])], bins=1)
    np.testing.assert_allclose(edges, [2.5, 3.5])


@pytest.mark.parametrize(
    "kwargs",
    [{"bins": 0}, {"value_range": (2.0, 1.0)}, {"value_range": (1.0, 1.0)}],
)
def test_invalid_binning(kwargs):
    with pytest.raises(ValueError):
        compare_distributions([1.0], [2.0], **kwargs)


def test_label_count_must_match():
    with pytest.raises(ValueError):
        compare_distributions([1.0], [2.0], labels=["only one"])


def test_summarize_distribution():
    summary = summarize_distribution([1.0, 2.0, 3.0, 4.0], label="x")
    assert summary.label == "x"
    assert summary.n == 4
    assert summary.mean == 2.5
    assert summary.median == 2.5
    assert summary.minimum == 1.0
    assert summary.maximum == 4.0
    assert summary.q025 < summary.q975


def test_frames():
    comparison = compare_distributions([1.0, 2.0], [], labels=["x", "y"], bins=2)
    frame = comparison.to_frame()
    assert list(frame["label"]) == ["x", "y"]
    assert list(frame["outside_range"]) == [0, 0]
    assert frame.loc[1, "n"] == 0

    hist = comparison.histogram_frame()
    assert len(hist) == 4
    assert hist.groupby("label")["count"].sum().to_dict() == {"x": 2, "y": 0}
