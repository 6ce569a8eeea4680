"""Plotting helpers for corrpairs diagnostics."""

from corrpairs.plotting.null import plot_null_distribution
from corrpairs.plotting.styles import (
    DEFAULT_PLOT_STYLE,
    PlotStyle,
    apply_plot_style,
    plot_style_dict,
)

__all__ = [
    "PlotStyle",
    "DEFAULT_PLOT_STYLE",
    "apply_plot_style",
    "plot_style_dict",
    "plot_null_distribution",
]
