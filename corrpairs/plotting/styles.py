"""Shared plotting style settings for deterministic figure outputs."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import scipy


@dataclass(frozen=True)
class PlotStyle:
    """Plotting defaults used by pipeline figures."""

    dpi: int = 150
    figsize_null: tuple[float, float] = (6.0, 4.0)
    hist_bins: int = 50
    hist_color: str = "steelblue"
    observed_color: str = "red"
    alpha_hist: float = 0.7
    axis_label_fontsize: int = 10
    title_fontsize: int = 11
    legend_fontsize: int = 8


DEFAULT_PLOT_STYLE = PlotStyle()


def apply_plot_style(style: PlotStyle = DEFAULT_PLOT_STYLE) -> None:
    """Apply deterministic matplotlib rcParams for pipeline plots."""
    plt.rcParams.update(
        {
            "figure.dpi": style.dpi,
            "savefig.dpi": style.dpi,
            "savefig.facecolor": "white",
            "axes.titlesize": style.title_fontsize,
            "axes.labelsize": style.axis_label_fontsize,
            "legend.fontsize": style.legend_fontsize,
            "axes.grid": False,
        }
    )


def plot_style_dict(style: PlotStyle = DEFAULT_PLOT_STYLE) -> dict[str, Any]:
    """Return style + dependency versions for run metadata."""
    d = asdict(style)
    d["matplotlib_version"] = str(matplotlib.__version__)
    d["numpy_version"] = str(np.__version__)
    d["scipy_version"] = str(scipy.__version__)
    return d
