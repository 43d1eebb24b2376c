"""
Comparison of MRCA age distributions.

Distributions are compared descriptively: shared-bin histogram counts for
side-by-side plotting, summary statistics, and for distributions keyed by
taxon pair, the share of pairs whose dispersion is lower in one sample than
in another. Empty distributions are valid input everywhere; their statistics
are NaN ("no data"), never zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

DEFAULT_BINS = 30
DEFAULT_LABELS = ("a", "b", "c")


def _as_array(values: Iterable[float]) -> NDArray[np.float64]:
    return np.asarray(list(values), dtype=float)


def dispersion(values: Iterable[float]) -> float:
    """Sample standard deviation; NaN for fewer than two values."""
    data = _as_array(values)
    if data.size < 2:
        return math.nan
    return float(np.std(data, ddof=1))


@dataclass(frozen=True)
class DistributionSummary:
    label: str
    n: int
    mean: float
    median: float
    std: float
    minimum: float
    maximum: float
    q025: float
    q975: float

    def is_empty(self) -> bool:
        return self.n == 0


def summarize_distribution(values: Iterable[float], label: str = "") -> DistributionSummary:
    """
    Descriptive statistics of one distribution.

    An empty distribution yields n=0 and NaN for every statistic.
    """
    data = _as_array(values)
    if data.size == 0:
        nan = math.nan
        return DistributionSummary(label, 0, nan, nan, nan, nan, nan, nan, nan)
    q025, q975 = np.quantile(data, [0.025, 0.975])
    return DistributionSummary(
        label=label,
        n=int(data.size),
        mean=float(np.mean(data)),
        median=float(np.median(data)),
        std=dispersion(data),
        minimum=float(np.min(data)),
        maximum=float(np.max(data)),
        q025=float(q025),
        q975=float(q975),
    )


def shared_bin_edges(
    distributions: Sequence[NDArray[np.float64]],
    bins: int = DEFAULT_BINS,
    value_range: Optional[Tuple[float, float]] = None,
) -> NDArray[np.float64]:
    """
    Equal-width bin edges common to all distributions.

    Spans ``value_range`` if given, else the observed range of all non-empty
    distributions, else [0, 1].
    """
    if bins < 1:
        raise ValueError(f"bins must be at least 1, got {bins}")
    if value_range is not None:
        low, high = value_range
        if not low < high:
            raise ValueError(f"Invalid value range {value_range}")
    else:
        non_empty = [d for d in distributions if d.size]
        if non_empty:
            low = float(min(d.min() for d in non_empty))
            high = float(max(d.max() for d in non_empty))
        else:
            low, high = 0.0, 1.0
        if low == high:
            # A single repeated value still needs a bin of positive width
            low, high = low - 0.5, high + 0.5
    return np.linspace(low, high, bins + 1)


@dataclass(frozen=True, eq=False)
class DistributionComparison:
    """Side-by-side view of two or three distributions over shared bins."""

    labels: Tuple[str, ...]
    bin_edges: NDArray[np.float64]
    counts: Tuple[NDArray[np.int64], ...]
    outside_range: Tuple[int, ...]
    summaries: Tuple[DistributionSummary, ...]

    def to_frame(self) -> pd.DataFrame:
        """Summary statistics, one row per distribution."""
        frame = pd.DataFrame([asdict(s) for s in self.summaries])
        frame["outside_range"] = list(self.outside_range)
        return frame

    def histogram_frame(self) -> pd.DataFrame:
        """Long-form bin counts with columns label, bin_left, bin_right, count."""
        rows: List[Dict[str, Any]] = []
        for label, counts in zip(self.labels, self.counts):
            for left, right, count in zip(
                self.bin_edges[:-1], self.bin_edges[1:], counts
            ):
                rows.append(
                    {
                        "label": label,
                        "bin_left": float(left),
                        "bin_right": float(right),
                        "count": int(count),
                    }
                )
        return pd.DataFrame(rows, columns=["label", "bin_left", "bin_right", "count"])

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation; NaN statistics become None."""
        return {
            "labels": list(self.labels),
            "bin_edges": self.bin_edges.tolist(),
            "counts": [c.tolist() for c in self.counts],
            "outside_range": list(self.outside_range),
            "summaries": [
                {k: _nan_to_none(v) for k, v in asdict(s).items()}
                for s in self.summaries
            ],
        }


def _nan_to_none(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def compare_distributions(
    distribution_a: Iterable[float],
    distribution_b: Iterable[float],
    distribution_c: Optional[Iterable[float]] = None,
    labels: Optional[Sequence[str]] = None,
    bins: int = DEFAULT_BINS,
    value_range: Optional[Tuple[float, float]] = None,
) -> DistributionComparison:
    """
    Bin two or three distributions on shared edges and summarise each.

    Args:
        distribution_a: First distribution (e.g. ages without geographic prior)
        distribution_b: Second distribution
        distribution_c: Optional third distribution
        labels: Display labels, one per distribution
        bins: Number of equal-width bins
        value_range: Fixed (min, max) display range; values outside it are
            excluded from the counts and reported in ``outside_range``

    Returns:
        DistributionComparison
    """
    inputs = [distribution_a, distribution_b]
    if distribution_c is not None:
        inputs.append(distribution_c)
    arrays = [_as_array(d) for d in inputs]

    if labels is None:
        labels = DEFAULT_LABELS[: len(arrays)]
    if len(labels) != len(arrays):
        raise ValueError(f"Got {len(labels)} labels for {len(arrays)} distributions")

    edges = shared_bin_edges(arrays, bins=bins, value_range=value_range)
    low, high = edges[0], edges[-1]

    counts: List[NDArray[np.int64]] = []
    outside: List[int] = []
    for label, data in zip(labels, arrays):
        hist, _ = np.histogram(data, bins=edges)
        counts.append(hist.astype(np.int64))
        outside.append(int(np.count_nonzero((data < low) | (data > high))))
        if data.size == 0:
            logger.info(f"Distribution '{label}' is empty")

    return DistributionComparison(
        labels=tuple(labels),
        bin_edges=edges,
        counts=tuple(counts),
        outside_range=tuple(outside),
        summaries=tuple(
            summarize_distribution(data, label) for label, data in zip(labels, arrays)
        ),
    )


# ===================================================================
# Keyed dispersion comparison
# ===================================================================


@dataclass(frozen=True)
class DispersionComparison:
    """
    Share of keys whose candidate dispersion is strictly lower than the
    reference dispersion, over keys present in both inputs with defined
    dispersion on both sides.
    """

    percent_lower: float
    n_lower: int
    n_compared: int
    n_unmatched: int
    n_undefined: int


def dispersion_table(
    reference: Mapping[Hashable, Iterable[float]],
    candidate: Mapping[Hashable, Iterable[float]],
) -> pd.DataFrame:
    """
    Per-key dispersions for keys present in both mappings.

    Columns: key, n_reference, n_candidate, std_reference, std_candidate, lower.
    ``lower`` is None where either dispersion is undefined.
    """
    rows: List[Dict[str, Any]] = []
    shared = [key for key in reference if key in candidate]
    for key in shared:
        ref = _as_array(reference[key])
        cand = _as_array(candidate[key])
        std_ref = dispersion(ref)
        std_cand = dispersion(cand)
        defined = not (math.isnan(std_ref) or math.isnan(std_cand))
        rows.append(
            {
                "key": key,
                "n_reference": int(ref.size),
                "n_candidate": int(cand.size),
                "std_reference": std_ref,
                "std_candidate": std_cand,
                "lower": (std_cand < std_ref) if defined else None,
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "key",
            "n_reference",
            "n_candidate",
            "std_reference",
            "std_candidate",
            "lower",
        ],
    )


def compare_dispersion(
    reference: Mapping[Hashable, Iterable[float]],
    candidate: Mapping[Hashable, Iterable[float]],
) -> DispersionComparison:
    """
    Percentage of keyed distributions that are tighter in ``candidate``.

    Keys are matched by set intersection; unmatched keys and keys with an
    undefined dispersion on either side are counted but not compared. With
    nothing comparable the percentage is NaN.
    """
    table = dispersion_table(reference, candidate)
    n_unmatched = len(set(reference) ^ set(candidate))
    defined = table[table["lower"].notna()]
    n_compared = int(len(defined))
    n_lower = int(sum(bool(v) for v in defined["lower"]))
    percent = 100.0 * n_lower / n_compared if n_compared else math.nan

    logger.info(
        f"Dispersion lower in candidate for {n_lower} of {n_compared} pairs"
        f" ({n_unmatched} unmatched, {len(table) - n_compared} undefined)"
    )
    return DispersionComparison(
        percent_lower=percent,
        n_lower=n_lower,
        n_compared=n_compared,
        n_unmatched=n_unmatched,
        n_undefined=int(len(table) - n_compared),
    )
