"""Diagnostic histogram of a simulated null distribution."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np

from corrpairs.core.types import NullDistribution
from corrpairs.plotting.styles import DEFAULT_PLOT_STYLE, PlotStyle


def plot_null_distribution(
    null: NullDistribution,
    out_png: str | Path,
    *,
    observed: Sequence[float] | None = None,
    title: str | None = None,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
) -> Path:
    """Histogram of null statistics with optional observed values marked."""
    out = Path(out_png)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=style.figsize_null)
    ax.hist(
        null.values,
        bins=style.hist_bins,
        color=style.hist_color,
        alpha=style.alpha_hist,
        edgecolor="black",
    )
    if observed is not None:
        obs = np.asarray(observed, dtype=float).ravel()
        for i, val in enumerate(obs[np.isfinite(obs)]):
            ax.axvline(
                val,
                color=style.observed_color,
                linestyle="--",
                linewidth=1.5,
                label="Observed" if i == 0 else None,
            )
        if np.any(np.isfinite(obs)):
            ax.legend()
    ax.set_xlabel("rho")
    ax.set_ylabel("Count")
    ax.set_title(
        title or f"Null rho ({null.kind}, df={null.df_residual}, iters={null.iters})"
    )
    fig.tight_layout()
    fig.savefig(out.as_posix(), dpi=style.dpi, facecolor="white")
    plt.close(fig)
    return out
