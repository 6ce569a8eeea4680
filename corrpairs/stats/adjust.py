"""Nuisance-adjusted ranking with a lower-bound floor for censored values.

Residuals from a nuisance fit can order observations that sit at a known
lower bound (for example zero counts) purely by their covariate pattern. The
floor replaces those residuals with a value below every other residual, so the
censored observations stay tied and rank last.
"""

from __future__ import annotations

import warnings

import numpy as np
import scipy.linalg
from scipy.stats import rankdata

from corrpairs.core.errors import (
    CensoredOrderingWarning,
    ConfigurationError,
    EmptyFloorWarning,
    UndefinedStatisticWarning,
)
from corrpairs.core.ranks import rank_covariance, rho_from_ranks
from corrpairs.core.types import (
    CorrelationResult,
    Nuisance,
    NullDistribution,
    check_alternative,
)
from corrpairs.core.utils import finite_2d

RESIDUAL_EPS = 1e-10


def orthonormal_basis(design: np.ndarray) -> np.ndarray:
    x = np.asarray(design, dtype=float)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    q, _ = scipy.linalg.qr(x, mode="economic")
    return q


def snap_ties(values: np.ndarray, tol: float | np.ndarray) -> np.ndarray:
    """Merge entries of each row that lie within `tol` of their sorted neighbour.

    Every run of such entries takes the run's smallest value, so the result
    ranks identically whatever rounding produced the input.
    """
    one_d = np.ndim(values) == 1
    v = np.atleast_2d(np.asarray(values, dtype=float))
    n = v.shape[1]
    order = np.argsort(v, axis=1, kind="mergesort")
    srt = np.take_along_axis(v, order, axis=1)
    starts = np.ones(srt.shape, dtype=bool)
    starts[:, 1:] = np.diff(srt, axis=1) > tol
    run = np.where(starts, np.arange(n), 0)
    np.maximum.accumulate(run, axis=1, out=run)
    out = np.empty_like(v)
    np.put_along_axis(out, order, np.take_along_axis(srt, run, axis=1), axis=1)
    return out[0] if one_d else out


def fit_residuals(values: np.ndarray, design: np.ndarray) -> np.ndarray:
    """Least-squares residuals of each row of `values` on `design` (n x p).

    Residuals within `RESIDUAL_EPS` of each other, relative to the row scale,
    are merged, and those near zero are set to exactly zero, so that rounding
    noise cannot break ties between equal values in the same design cell.
    """
    one_d = np.ndim(values) == 1
    y = finite_2d("values", values)
    q = orthonormal_basis(design)
    if q.shape[0] != y.shape[1]:
        raise ConfigurationError(
            f"design has {q.shape[0]} rows but samples have {y.shape[1]} observations."
        )
    resid = y - (y @ q) @ q.T
    scale = np.maximum(1.0, np.max(np.abs(y), axis=1, keepdims=True))
    resid = snap_ties(resid, RESIDUAL_EPS * scale)
    resid[np.abs(resid) <= RESIDUAL_EPS * scale] = 0.0
    return resid[0] if one_d else resid


def floor_residuals(residuals: np.ndarray, at_bound: np.ndarray) -> np.ndarray:
    """Move flagged entries strictly below the smallest unflagged entry of their row.

    Rows where every entry is flagged become constant.
    """
    one_d = np.ndim(residuals) == 1
    r = finite_2d("residuals", residuals)
    mask = np.asarray(at_bound, dtype=bool)
    if mask.ndim == 1:
        mask = mask.reshape(1, -1)
    if mask.shape != r.shape:
        raise ConfigurationError(
            f"at_bound shape {mask.shape} does not match residual shape {r.shape}."
        )
    free = np.where(mask, np.inf, r)
    lowest = np.min(free, axis=1)
    sentinel = np.where(np.isfinite(lowest), lowest - 1.0, 0.0)
    out = np.where(mask, sentinel[:, None], r)
    return out[0] if one_d else out


def _resolve_floor(
    values: np.ndarray, lower_bound: float | None, at_bound: np.ndarray | None
) -> np.ndarray | None:
    if at_bound is not None:
        mask = np.asarray(at_bound, dtype=bool)
        if mask.ndim == 1:
            mask = mask.reshape(1, -1)
        if mask.shape != values.shape:
            raise ConfigurationError(
                f"at_bound shape {mask.shape} does not match sample shape {values.shape}."
            )
    elif lower_bound is not None:
        mask = values <= float(lower_bound)
    else:
        return None

    empty = ~mask.any(axis=1)
    if np.any(empty):
        warnings.warn(
            f"{int(empty.sum())} sample(s) have no observation at the lower bound; "
            "the floor has no effect on them.",
            EmptyFloorWarning,
            stacklevel=3,
        )
    return mask


def _warn_censored(values: np.ndarray) -> None:
    mins = np.min(values, axis=1, keepdims=True)
    tied = np.sum(values == mins, axis=1) > 1
    if np.any(tied):
        warnings.warn(
            f"{int(tied.sum())} sample(s) have tied minimum values but no lower bound "
            "was given; their residuals are ordered by the nuisance fit alone, which "
            "can manufacture strong spurious correlations. Pass lower_bound or at_bound.",
            CensoredOrderingWarning,
            stacklevel=3,
        )


def adjusted_ranks(
    values: np.ndarray,
    nuisance: Nuisance | None = None,
    *,
    lower_bound: float | None = None,
    at_bound: np.ndarray | None = None,
) -> np.ndarray:
    """Rank samples after nuisance removal and flooring.

    `values` is one sample (1-D) or a samples x observations matrix. Design
    nuisances rank floored residuals; block nuisances rank within each block.
    """
    nz = nuisance or Nuisance.none()
    one_d = np.ndim(values) == 1
    y = finite_2d("values", values)
    nz.check_n_obs(y.shape[1])
    if y.shape[1] < 2:
        raise ConfigurationError("at least 2 observations are required.")

    mask = _resolve_floor(y, lower_bound, at_bound)
    if nz.kind == "design":
        adj = fit_residuals(y, nz.design)
        if mask is None:
            _warn_censored(y)
    else:
        adj = y
    if mask is not None:
        adj = floor_residuals(adj, mask)

    if nz.kind == "block":
        ranks = np.empty_like(adj)
        for idx in nz.block_indices():
            ranks[:, idx] = rankdata(adj[:, idx], method="average", axis=1)
    else:
        ranks = rankdata(adj, method="average", axis=1).astype(float)
    return ranks[0] if one_d else ranks


def rho_for_ranks(
    rx: np.ndarray, ry: np.ndarray, nuisance: Nuisance | None = None
) -> float | np.ndarray:
    """Statistic for ranks produced by `adjusted_ranks` under the same nuisance.

    Block nuisances average per-block statistics with weights n_b / n. A block
    where either side is constant contributes zero; the result is NaN only
    when a side is constant in every block.
    """
    nz = nuisance or Nuisance.none()
    if nz.kind != "block":
        return rho_from_ranks(rx, ry)

    a = np.asarray(rx, dtype=float)
    b = np.asarray(ry, dtype=float)
    n = float(a.shape[-1])
    rho = np.zeros(np.broadcast_shapes(a.shape[:-1], b.shape[:-1]), dtype=float)
    varies_a = np.zeros(a.shape[:-1], dtype=bool)
    varies_b = np.zeros(b.shape[:-1], dtype=bool)
    for idx in nz.block_indices():
        ra = a[..., idx]
        rb = b[..., idx]
        rho = rho + (idx.size / n) * rank_covariance(ra, rb)
        varies_a |= np.ptp(ra, axis=-1) > 0.0
        varies_b |= np.ptp(rb, axis=-1) > 0.0
    rho = np.where(varies_a & varies_b, rho, np.nan)
    return float(rho) if np.ndim(rho) == 0 else rho


def adjusted_rho(
    x: np.ndarray,
    y: np.ndarray,
    nuisance: Nuisance | None = None,
    *,
    lower_bound: float | None = None,
    at_bound_x: np.ndarray | None = None,
    at_bound_y: np.ndarray | None = None,
) -> float:
    rx = adjusted_ranks(x, nuisance, lower_bound=lower_bound, at_bound=at_bound_x)
    ry = adjusted_ranks(y, nuisance, lower_bound=lower_bound, at_bound=at_bound_y)
    if rx.shape != ry.shape:
        raise ConfigurationError(
            f"x and y must have the same length, got {rx.size} and {ry.size}."
        )
    rho = float(rho_for_ranks(rx, ry, nuisance))
    if not np.isfinite(rho):
        warnings.warn(
            "Rank correlation undefined for a zero-variance sample.",
            UndefinedStatisticWarning,
            stacklevel=2,
        )
    return rho


def correlate(
    x: np.ndarray,
    y: np.ndarray,
    null: NullDistribution,
    nuisance: Nuisance | None = None,
    *,
    lower_bound: float | None = None,
    at_bound_x: np.ndarray | None = None,
    at_bound_y: np.ndarray | None = None,
    alternative: str = "two-sided",
) -> CorrelationResult:
    """Tie-corrected, nuisance-adjusted correlation of two samples with a null p-value."""
    alt = check_alternative(alternative)
    nz = nuisance or Nuisance.none()
    n_x = int(np.size(x))
    n_y = int(np.size(y))
    if n_x != n_y:
        raise ConfigurationError(f"x and y must have the same length, got {n_x} and {n_y}.")
    nz.check_n_obs(n_x)
    null.check_compatible(nz, n_x)

    rho = adjusted_rho(
        x,
        y,
        nz,
        lower_bound=lower_bound,
        at_bound_x=at_bound_x,
        at_bound_y=at_bound_y,
    )
    p = float(null.pvalue(rho, alt))
    limited = bool(np.isfinite(p) and p <= null.min_pvalue(alt) * (1.0 + 1e-12))
    return CorrelationResult(
        rho=rho,
        p_value=p,
        alternative=alt,
        n_obs=n_x,
        df_residual=int(n_x - nz.n_params),
        limited=limited,
        metadata={
            "nuisance": nz.kind,
            "floor": bool(
                lower_bound is not None or at_bound_x is not None or at_bound_y is not None
            ),
            "null_iters": int(null.iters),
            "null_seed": int(null.seed),
        },
    )
