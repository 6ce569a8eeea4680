"""Multiple-testing corrections for batches of pairwise tests."""

from __future__ import annotations

import numpy as np


def _check_unit_interval(p: np.ndarray) -> None:
    finite = p[np.isfinite(p)]
    if np.any((finite < 0.0) | (finite > 1.0)):
        raise ValueError("p-values must be in [0,1] or NaN.")


def bh_fdr(pvals: np.ndarray) -> np.ndarray:
    """Benjamini-Hochberg adjusted p-values; NaN inputs stay NaN and are not counted."""
    arr = np.asarray(pvals, dtype=float)
    flat = arr.ravel()
    _check_unit_interval(flat)
    q = np.full_like(flat, np.nan)
    finite = np.isfinite(flat)
    if np.any(finite):
        p = flat[finite]
        m = int(p.size)
        order = np.argsort(p, kind="mergesort")
        ranked = p[order]
        ranks = np.arange(1, m + 1, dtype=float)
        adj = ranked * (float(m) / ranks)
        adj = np.minimum.accumulate(adj[::-1])[::-1]
        adj = np.clip(adj, 0.0, 1.0)
        q_valid = np.empty_like(adj)
        q_valid[order] = adj
        q[finite] = q_valid
    return q.reshape(arr.shape)


def simes_combine(pvals: np.ndarray) -> float:
    """Simes combined p-value, min_i(m * p_(i) / i), ignoring NaN."""
    p = np.asarray(pvals, dtype=float).ravel()
    _check_unit_interval(p)
    p = np.sort(p[np.isfinite(p)])
    if p.size == 0:
        return float("nan")
    ranks = np.arange(1, p.size + 1, dtype=float)
    return float(min(1.0, np.min(p * (p.size / ranks))))
