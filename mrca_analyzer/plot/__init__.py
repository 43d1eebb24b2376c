"""
Plotting submodule.

Provides overlaid histograms of MRCA age distributions and a scatter plot of
per-pair dispersions, both drawn inside a scoped rendering context.
"""

from mrca_analyzer.plot.histograms import (
    PLOT_STYLE,
    rendering_context,
    plot_mrca_histograms,
    plot_dispersion_scatter,
)

__all__ = [
    "PLOT_STYLE",
    "rendering_context",
    "plot_mrca_histograms",
    "plot_dispersion_scatter",
]
