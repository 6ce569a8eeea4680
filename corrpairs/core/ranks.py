"""Average-rank transforms and the tie-corrected Spearman statistic.

Tied values share their average rank in the covariance term, while the
denominator is always the sum of squared rank deviations of a tie-free
ranking, n(n^2 - 1)/12. This keeps one precomputed null distribution valid for
every pair regardless of its tie pattern, and stops sparse count data with
many zeros from inflating the magnitude of the correlation.
"""

from __future__ import annotations

import warnings

import numpy as np
from scipy.stats import rankdata

from corrpairs.core.errors import ConfigurationError, UndefinedStatisticWarning
from corrpairs.core.utils import finite_1d, finite_2d


def rank_average(x: np.ndarray) -> np.ndarray:
    """Average ranks (1-based) of a 1-D sample."""
    arr = finite_1d("x", x)
    return rankdata(arr, method="average").astype(float)


def rank_rows(matrix: np.ndarray) -> np.ndarray:
    """Average ranks computed independently along each row."""
    arr = finite_2d("matrix", matrix)
    return rankdata(arr, method="average", axis=1).astype(float)


def unique_rank_ss(n: int) -> float:
    n_f = float(n)
    return n_f * (n_f * n_f - 1.0) / 12.0


def rank_covariance(a: np.ndarray, b: np.ndarray) -> float | np.ndarray:
    """Rank cross-product scaled by the tie-free sum of squares, without NaN masking."""
    n = int(a.shape[-1])
    if n != int(b.shape[-1]):
        raise ConfigurationError("rank vectors must have the same length.")
    if n < 2:
        raise ConfigurationError("at least 2 observations are required.")
    mid = 0.5 * (n + 1.0)
    return np.sum((a - mid) * (b - mid), axis=-1) / unique_rank_ss(n)


def rho_from_ranks(rx: np.ndarray, ry: np.ndarray) -> float | np.ndarray:
    """Tie-corrected statistic from precomputed rank vectors.

    Broadcasts over leading axes; the last axis indexes observations. Rows with
    constant ranks on either side return NaN.
    """
    a = np.asarray(rx, dtype=float)
    b = np.asarray(ry, dtype=float)
    rho = rank_covariance(a, b)
    undefined = (np.ptp(a, axis=-1) == 0.0) | (np.ptp(b, axis=-1) == 0.0)
    rho = np.where(undefined, np.nan, rho)
    return float(rho) if np.ndim(rho) == 0 else rho


def tie_corrected_rho(x: np.ndarray, y: np.ndarray) -> float:
    """Spearman-like correlation with averaged ties and a tie-free denominator.

    Equals the usual Spearman coefficient when neither sample has ties. A
    zero-variance sample yields NaN with an UndefinedStatisticWarning.
    """
    a = finite_1d("x", x)
    b = finite_1d("y", y)
    if a.size != b.size:
        raise ConfigurationError(
            f"x and y must have the same length, got {a.size} and {b.size}."
        )
    if a.size < 2:
        raise ConfigurationError("at least 2 observations are required.")
    rho = rho_from_ranks(rankdata(a, method="average"), rankdata(b, method="average"))
    if not np.isfinite(rho):
        warnings.warn(
            "Rank correlation undefined for a zero-variance sample.",
            UndefinedStatisticWarning,
            stacklevel=2,
        )
    return float(rho)


def clamp_rho(rho: float | np.ndarray) -> float | np.ndarray:
    """Clamp to [-1, 1], leaving NaN untouched."""
    out = np.clip(np.asarray(rho, dtype=float), -1.0, 1.0)
    return float(out) if out.ndim == 0 else out
