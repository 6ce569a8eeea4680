"""Type-I error calibration of null distributions by simulation."""

from __future__ import annotations

import math
from typing import Any

import numpy as np
from scipy.stats import binomtest, norm

from corrpairs.core.errors import ConfigurationError
from corrpairs.core.types import Nuisance, NullDistribution, check_alternative
from corrpairs.stats.adjust import adjusted_ranks, rho_for_ranks


def wilson_ci(k: int, n: int, alpha: float = 0.05) -> tuple[float, float]:
    if n <= 0:
        return float("nan"), float("nan")
    z = float(norm.ppf(1.0 - alpha / 2.0))
    phat = k / n
    denom = 1.0 + z * z / n
    center = (phat + z * z / (2.0 * n)) / denom
    half = z * math.sqrt(phat * (1.0 - phat) / n + z * z / (4.0 * n * n)) / denom
    return float(max(0.0, center - half)), float(min(1.0, center + half))


def simulate_null_calibration(
    nuisance: Nuisance,
    null: NullDistribution,
    *,
    n_trials: int = 1000,
    alpha: float = 0.05,
    seed: int = 0,
    alternative: str = "two-sided",
) -> dict[str, Any]:
    """Rejection rate at `alpha` for independent normal pairs adjusted by `nuisance`.

    The supplied `null` is used as-is, without the compatibility check applied
    by `correlate`, so a mismatched null can be measured directly.
    """
    alt = check_alternative(alternative)
    n_obs = nuisance.n_obs if nuisance.n_obs is not None else null.n_obs
    trials = int(n_trials)
    if trials <= 0:
        raise ConfigurationError("n_trials must be positive.")
    if not (0.0 < float(alpha) < 1.0):
        raise ConfigurationError("alpha must be in (0, 1).")

    rng = np.random.default_rng(int(seed))
    x = rng.standard_normal((trials, int(n_obs)))
    y = rng.standard_normal((trials, int(n_obs)))
    rho = rho_for_ranks(adjusted_ranks(x, nuisance), adjusted_ranks(y, nuisance), nuisance)
    p = np.asarray(null.pvalue(rho, alt), dtype=float)

    k = int(np.sum(p <= float(alpha)))
    ci_low, ci_high = wilson_ci(k, trials)
    test = binomtest(k, trials, float(alpha), alternative="two-sided")
    return {
        "n_trials": trials,
        "alpha": float(alpha),
        "n_rejected": k,
        "rejection_rate": float(k / trials),
        "ci_low": ci_low,
        "ci_high": ci_high,
        "binom_pvalue": float(test.pvalue),
        "null_kind": null.kind,
        "null_df_residual": int(null.df_residual),
    }
