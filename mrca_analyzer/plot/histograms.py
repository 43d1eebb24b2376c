"""
Visualization of MRCA age comparisons.

All drawing functions accept an optional ``ax``; without one they create a
figure of their own. Styling is applied with :func:`rendering_context`, which
restores the previous matplotlib settings on exit.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.axes import Axes

from mrca_analyzer.comparison import DistributionComparison

PLOT_STYLE: Dict[str, Any] = {
    "figure.facecolor": "white",
    "axes.facecolor": "white",
    "axes.edgecolor": "gray",
    "grid.color": "gray",
    "grid.alpha": 0.7,
    "font.size": 10,
    "axes.titlepad": 10,
}

# Colour-blind safe palette, one colour per compared distribution
DISTRIBUTION_COLORS = ("#0072B2", "#CC79A7", "#009E73")
REFERENCE_LINE_COLOR = "#777777"


@contextmanager
def rendering_context(
    overrides: Optional[Dict[str, Any]] = None, seaborn_style: str = "whitegrid"
) -> Iterator[None]:
    """
    Apply the plot style for the duration of a ``with`` block.

    Args:
        overrides: rcParams taking precedence over PLOT_STYLE
        seaborn_style: Seaborn axes style applied underneath

    Example:
        >>> with rendering_context():
        ...     ax = plot_mrca_histograms(comparison)
    """
    style = dict(PLOT_STYLE)
    style.update(overrides or {})
    with sns.axes_style(seaborn_style), plt.rc_context(style):
        yield


def _get_axes(ax: Optional[Axes], figsize=(8, 5)) -> Axes:
    if ax is None:
        _, ax = plt.subplots(figsize=figsize)
    return ax


def plot_mrca_histograms(
    comparison: DistributionComparison,
    ax: Optional[Axes] = None,
    title: Optional[str] = None,
) -> Axes:
    """
    Overlay the binned distributions of a comparison on shared bins.

    Each distribution is drawn as a filled step histogram with a dashed line
    at its mean. Empty distributions appear in the legend as "(no data)".

    Parameters:
    -----------
    comparison : DistributionComparison
        Output of compare_distributions
    ax : Optional[Axes]
        Matplotlib axes to plot on
    title : Optional[str]
        Plot title

    Returns:
    --------
    Axes
    """
    ax = _get_axes(ax)
    edges = comparison.bin_edges
    for i, (label, counts, summary) in enumerate(
        zip(comparison.labels, comparison.counts, comparison.summaries)
    ):
        color = DISTRIBUTION_COLORS[i % len(DISTRIBUTION_COLORS)]
        if summary.is_empty():
            # Keeps the legend entry; nothing to draw
            ax.plot([], [], color=color, label=f"{label} (no data)")
            continue
        ax.stairs(
            counts,
            edges,
            fill=True,
            alpha=0.4,
            color=color,
            label=f"{label} (n={summary.n})",
        )
        ax.stairs(counts, edges, color=color, linewidth=1.2)
        ax.axvline(summary.mean, color=color, linestyle="--", linewidth=1)

    ax.set_xlim(edges[0], edges[-1])
    ax.set_xlabel("MRCA age")
    ax.set_ylabel("Number of trees")
    if title:
        ax.set_title(title)
    ax.legend(frameon=False)
    return ax


def plot_dispersion_scatter(
    table: pd.DataFrame,
    ax: Optional[Axes] = None,
    title: Optional[str] = None,
) -> Axes:
    """
    Scatter per-pair dispersion of the candidate against the reference.

    Points below the y = x line are pairs whose candidate distribution is
    tighter. Rows with an undefined dispersion on either side are dropped.

    Parameters:
    -----------
    table : pd.DataFrame
        Output of dispersion_table
    ax : Optional[Axes]
        Matplotlib axes to plot on
    title : Optional[str]
        Plot title

    Returns:
    --------
    Axes
    """
    ax = _get_axes(ax, figsize=(6, 6))
    defined = table.dropna(subset=["std_reference", "std_candidate"]).copy()

    if defined.empty:
        ax.text(0.5, 0.5, "no data", ha="center", va="center", transform=ax.transAxes)
    else:
        defined["tighter"] = np.where(
            defined["std_candidate"] < defined["std_reference"],
            "lower in candidate",
            "not lower",
        )
        sns.scatterplot(
            data=defined,
            x="std_reference",
            y="std_candidate",
            hue="tighter",
            palette={
                "lower in candidate": DISTRIBUTION_COLORS[0],
                "not lower": DISTRIBUTION_COLORS[1],
            },
            ax=ax,
        )
        upper = float(max(defined["std_reference"].max(), defined["std_candidate"].max()))
        ax.plot(
            [0, upper],
            [0, upper],
            color=REFERENCE_LINE_COLOR,
            linestyle="--",
            linewidth=1,
        )

    ax.set_xlabel("SD of MRCA age (reference)")
    ax.set_ylabel("SD of MRCA age (candidate)")
    if title:
        ax.set_title(title)
    return ax
