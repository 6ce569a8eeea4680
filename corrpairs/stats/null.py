"""Seeded null distributions for the tie-corrected rank statistic."""

from __future__ import annotations

import numpy as np
from scipy.stats import rankdata

from corrpairs.core.errors import ConfigurationError
from corrpairs.core.ranks import rank_covariance
from corrpairs.core.types import (
    NULL_METHODS,
    Nuisance,
    NullConfig,
    NullDistribution,
)
from corrpairs.stats.adjust import RESIDUAL_EPS, orthonormal_basis


CHUNK_ELEMENTS = 2_000_000
MAX_CHUNK_ROWS = 1000


def default_chunk_size(n_obs: int) -> int:
    """Simulations per batch so that each batch array holds about CHUNK_ELEMENTS floats."""
    return int(max(1, min(MAX_CHUNK_ROWS, CHUNK_ELEMENTS // max(1, int(n_obs)))))


def resolve_method(kind: str, method: str) -> str:
    m = str(method)
    if m not in NULL_METHODS:
        raise ConfigurationError(f"method must be one of {NULL_METHODS}, got '{method}'.")
    if kind == "design":
        if m == "auto":
            return "residuals"
        if m == "permutation":
            raise ConfigurationError(
                "method='permutation' ignores the design's lost degrees of freedom; "
                "use 'residuals' or 'reduced'."
            )
        return m
    if m in ("auto", "permutation"):
        return "permutation"
    raise ConfigurationError(f"method '{m}' is only valid with a design nuisance.")


def _permutation_null(
    n: int, iters: int, rng: np.random.Generator, chunk_size: int
) -> np.ndarray:
    base = np.arange(1, n + 1, dtype=float)
    out = np.empty(iters, dtype=float)
    for start in range(0, iters, chunk_size):
        m = min(chunk_size, iters - start)
        perms = rng.permuted(np.tile(base, (m, 1)), axis=1)
        out[start : start + m] = rank_covariance(perms, base)
    return out


def _residual_null(
    design: np.ndarray, iters: int, rng: np.random.Generator, chunk_size: int
) -> np.ndarray:
    q = orthonormal_basis(design)
    n = int(q.shape[0])
    out = np.empty(iters, dtype=float)
    for start in range(0, iters, chunk_size):
        m = min(chunk_size, iters - start)
        ranks = []
        for _ in range(2):
            z = rng.standard_normal((m, n))
            resid = z - (z @ q) @ q.T
            resid[np.abs(resid) <= RESIDUAL_EPS] = 0.0
            ranks.append(rankdata(resid, method="average", axis=1))
        out[start : start + m] = rank_covariance(ranks[0], ranks[1])
    return out


def _block_null(
    sizes: tuple[int, ...], iters: int, rng: np.random.Generator, chunk_size: int
) -> np.ndarray:
    total = float(sum(sizes))
    out = np.zeros(iters, dtype=float)
    for size in sizes:
        out += (size / total) * _permutation_null(int(size), iters, rng, chunk_size)
    return out


def generate_null(
    nuisance: Nuisance | None = None,
    *,
    n_obs: int | None = None,
    iters: int = 10_000,
    seed: int = 0,
    method: str = "auto",
    chunk_size: int | None = None,
) -> NullDistribution:
    """Simulate the statistic under independence.

    Without a nuisance, `n_obs` sets the sample size and random permutations
    are compared with the identity ranking. With a design, the default
    `method="residuals"` ranks residuals of standard normal vectors regressed on
    the design; `method="reduced"` permutes at the residual degrees of freedom.
    Block nuisances combine per-block permutation statistics with weights
    n_b / n. All randomness comes from `seed`. `chunk_size` defaults to
    `default_chunk_size(n)`.
    """
    nz = nuisance or Nuisance.none(n_obs)
    iters_i = int(iters)
    if iters_i <= 0:
        raise ConfigurationError("iters must be positive.")
    if n_obs is not None:
        nz.check_n_obs(int(n_obs))
    n = nz.n_obs if nz.n_obs is not None else n_obs
    if n is None:
        raise ConfigurationError("n_obs is required when no nuisance fixes the sample size.")
    n = int(n)
    if n < 2:
        raise ConfigurationError("n_obs must be at least 2.")
    chunk_i = default_chunk_size(n) if chunk_size is None else int(chunk_size)
    if chunk_i <= 0:
        raise ConfigurationError("chunk_size must be positive.")

    resolved = resolve_method(nz.kind, method)
    rng = np.random.default_rng(int(seed))
    df = int(n - nz.n_params)

    if nz.kind == "design" and resolved == "residuals":
        values = _residual_null(nz.design, iters_i, rng, chunk_i)
    elif nz.kind == "design":
        values = _permutation_null(df, iters_i, rng, chunk_i)
    elif nz.kind == "block":
        values = _block_null(nz.block_sizes, iters_i, rng, chunk_i)
    else:
        values = _permutation_null(n, iters_i, rng, chunk_i)

    return NullDistribution(
        values=values,
        n_obs=n,
        df_residual=df,
        kind=nz.kind,
        iters=iters_i,
        seed=int(seed),
        method=resolved,
        block_sizes=nz.block_sizes,
        design_signature=nz.signature() if resolved == "residuals" else "",
    )


class NullCache:
    """Reuse null distributions across batches with the same parameterization.

    Keys are (kind, n_obs, nuisance signature, iters, seed, method), so two
    different designs with equal shape never share a null.
    """

    def __init__(self) -> None:
        self._store: dict[tuple, NullDistribution] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._store)

    def get(
        self,
        nuisance: Nuisance | None = None,
        *,
        n_obs: int | None = None,
        config: NullConfig | None = None,
    ) -> NullDistribution:
        cfg = config or NullConfig()
        nz = nuisance or Nuisance.none(n_obs)
        n = nz.n_obs if nz.n_obs is not None else n_obs
        key = (
            nz.kind,
            None if n is None else int(n),
            nz.signature(),
            int(cfg.iters),
            int(cfg.seed),
            resolve_method(nz.kind, cfg.method),
        )
        cached = self._store.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        null = generate_null(
            nz,
            n_obs=n_obs,
            iters=cfg.iters,
            seed=cfg.seed,
            method=cfg.method,
            chunk_size=cfg.chunk_size,
        )
        self._store[key] = null
        return null

    def clear(self) -> None:
        self._store.clear()
