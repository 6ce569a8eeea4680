"""Typed configuration and result containers for corrpairs core operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from corrpairs.core.errors import ConfigurationError
from corrpairs.core.utils import stable_hash_array

ALTERNATIVES: tuple[str, ...] = ("two-sided", "greater", "less")
NUISANCE_KINDS: tuple[str, ...] = ("none", "design", "block")
NULL_METHODS: tuple[str, ...] = ("auto", "permutation", "residuals", "reduced")


def check_alternative(alternative: str) -> str:
    alt = str(alternative)
    if alt not in ALTERNATIVES:
        raise ConfigurationError(
            f"alternative must be one of {ALTERNATIVES}, got '{alternative}'."
        )
    return alt


@dataclass(frozen=True, eq=False)
class Nuisance:
    """Known nuisance structure removed before ranking.

    - `kind="none"`: samples are ranked as given.
    - `kind="design"`: samples are regressed on `design` (n x p) and residuals ranked.
    - `kind="block"`: samples are ranked within each block and statistics averaged.

    Build instances with `Nuisance.none`, `Nuisance.from_design` or
    `Nuisance.from_block` so validation runs once.
    """

    kind: str = "none"
    n_obs: int | None = None
    design: np.ndarray | None = None
    block_codes: np.ndarray | None = None
    block_levels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in NUISANCE_KINDS:
            raise ConfigurationError(
                f"Nuisance kind must be one of {NUISANCE_KINDS}, got '{self.kind}'."
            )
        if self.kind == "design" and self.design is None:
            raise ConfigurationError("Nuisance kind 'design' requires a design matrix.")
        if self.kind == "block" and self.block_codes is None:
            raise ConfigurationError("Nuisance kind 'block' requires block labels.")

    @classmethod
    def none(cls, n_obs: int | None = None) -> "Nuisance":
        if n_obs is not None and int(n_obs) < 2:
            raise ConfigurationError("n_obs must be at least 2.")
        return cls(kind="none", n_obs=None if n_obs is None else int(n_obs))

    @classmethod
    def from_design(cls, design: np.ndarray) -> "Nuisance":
        x = np.array(design, dtype=float, copy=True)
        if x.ndim == 1:
            x = x.reshape(-1, 1)
        if x.ndim != 2:
            raise ConfigurationError(f"design must be 2-D, got shape {x.shape}.")
        n, p = x.shape
        if p == 0:
            raise ConfigurationError("design must have at least one column.")
        if not np.isfinite(x).all():
            raise ConfigurationError("design contains NaN/inf.")
        if n < p:
            raise ConfigurationError(
                f"design has fewer observations ({n}) than parameters ({p})."
            )
        rank = int(np.linalg.matrix_rank(x))
        if rank < p:
            raise ConfigurationError(
                f"design is not full column rank (rank {rank} < {p} columns)."
            )
        if n - p < 2:
            raise ConfigurationError(
                f"design leaves {n - p} residual degrees of freedom; at least 2 are required."
            )
        x.setflags(write=False)
        return cls(kind="design", n_obs=int(n), design=x)

    @classmethod
    def from_block(cls, labels: np.ndarray) -> "Nuisance":
        arr = np.asarray(labels).ravel()
        if arr.size == 0:
            raise ConfigurationError("block labels must be non-empty.")
        levels, codes = np.unique(arr.astype(str), return_inverse=True)
        sizes = np.bincount(codes, minlength=levels.size)
        small = [str(levels[i]) for i in np.flatnonzero(sizes < 2)]
        if small:
            raise ConfigurationError(
                f"Every block needs at least 2 observations; too small: {', '.join(small)}."
            )
        codes = codes.astype(np.int64)
        codes.setflags(write=False)
        return cls(
            kind="block",
            n_obs=int(arr.size),
            block_codes=codes,
            block_levels=tuple(str(v) for v in levels),
        )

    @property
    def n_params(self) -> int:
        if self.kind == "design":
            return int(self.design.shape[1])
        if self.kind == "block":
            return len(self.block_levels)
        return 0

    @property
    def df_residual(self) -> int | None:
        if self.n_obs is None:
            return None
        return int(self.n_obs - self.n_params)

    @property
    def block_sizes(self) -> tuple[int, ...]:
        if self.kind != "block":
            return ()
        counts = np.bincount(self.block_codes, minlength=len(self.block_levels))
        return tuple(int(c) for c in counts)

    def block_indices(self) -> list[np.ndarray]:
        if self.kind != "block":
            raise ConfigurationError("block_indices requires a block nuisance.")
        return [
            np.flatnonzero(self.block_codes == b) for b in range(len(self.block_levels))
        ]

    def check_n_obs(self, n_obs: int) -> None:
        if self.n_obs is not None and int(n_obs) != self.n_obs:
            raise ConfigurationError(
                f"{self.kind} nuisance describes {self.n_obs} observations, "
                f"but samples have {int(n_obs)}."
            )

    def signature(self) -> str:
        if self.kind == "design":
            return stable_hash_array(self.design)
        if self.kind == "block":
            return stable_hash_array(np.sort(np.asarray(self.block_sizes, dtype=np.int64)))
        return "none"


@dataclass(frozen=True)
class NullConfig:
    """Null-distribution simulation settings."""

    iters: int = 10_000
    seed: int = 0
    method: str = "auto"
    chunk_size: int | None = None


@dataclass(frozen=True)
class NullDistribution:
    """Simulated statistics under independence.

    `values` is stored sorted and read-only. P-values use the plus-one Monte
    Carlo estimate `(1 + hits) / (1 + iters)`. Residual-method nulls carry the
    signature of the design they were simulated for.
    """

    values: np.ndarray
    n_obs: int
    df_residual: int
    kind: str
    iters: int
    seed: int
    method: str
    block_sizes: tuple[int, ...] = ()
    design_signature: str = ""
    tol: float = 1e-10

    def __post_init__(self) -> None:
        arr = np.sort(np.asarray(self.values, dtype=float).ravel())
        if arr.size == 0:
            raise ConfigurationError("NullDistribution requires at least one value.")
        arr.setflags(write=False)
        object.__setattr__(self, "values", arr)

    @property
    def size(self) -> int:
        return int(self.values.size)

    def variance(self) -> float:
        return float(np.var(self.values))

    def proportion_ge(self, x: float | np.ndarray) -> float | np.ndarray:
        q = np.asarray(x, dtype=float) - self.tol
        hits = self.size - np.searchsorted(self.values, q, side="left")
        out = hits / float(self.size)
        return float(out) if np.ndim(out) == 0 else out

    def proportion_le(self, x: float | np.ndarray) -> float | np.ndarray:
        q = np.asarray(x, dtype=float) + self.tol
        hits = np.searchsorted(self.values, q, side="right")
        out = hits / float(self.size)
        return float(out) if np.ndim(out) == 0 else out

    def min_pvalue(self, alternative: str = "two-sided") -> float:
        alt = check_alternative(alternative)
        p = 1.0 / (self.size + 1.0)
        if alt == "two-sided":
            return float(min(1.0, 2.0 * p))
        return float(p)

    def pvalue(
        self, rho: float | np.ndarray, alternative: str = "two-sided"
    ) -> float | np.ndarray:
        alt = check_alternative(alternative)
        r = np.asarray(rho, dtype=float)
        m = float(self.size)
        hits_ge = m - np.searchsorted(self.values, r - self.tol, side="left")
        hits_le = np.searchsorted(self.values, r + self.tol, side="right")
        p_ge = (1.0 + hits_ge) / (1.0 + m)
        p_le = (1.0 + hits_le) / (1.0 + m)
        if alt == "greater":
            p = p_ge
        elif alt == "less":
            p = p_le
        else:
            p = np.minimum(1.0, 2.0 * np.minimum(p_ge, p_le))
        p = np.where(np.isfinite(r), p, np.nan)
        return float(p) if p.ndim == 0 else p

    def check_compatible(self, nuisance: "Nuisance", n_obs: int) -> None:
        """Raise ConfigurationError unless this null fits `nuisance` on `n_obs` samples."""
        n = int(n_obs)
        if nuisance.kind == "none":
            if self.kind != "none" or self.n_obs != n:
                raise ConfigurationError(
                    f"Null was generated for kind={self.kind}, n={self.n_obs}; "
                    f"samples need kind=none, n={n}."
                )
            return
        df = int(nuisance.df_residual)
        if self.df_residual != df:
            raise ConfigurationError(
                f"Null residual d.f. ({self.df_residual}) does not match the "
                f"{nuisance.kind} nuisance residual d.f. ({df})."
            )
        if nuisance.kind == "design":
            if (
                self.kind == "design"
                and self.design_signature
                and self.design_signature != nuisance.signature()
            ):
                raise ConfigurationError(
                    f"Null (method={self.method}) was simulated for a different design "
                    "with the same shape; regenerate it for this design."
                )
            if self.kind == "design" and self.n_obs == n:
                return
            if self.kind == "none" and self.n_obs == df:
                return
            raise ConfigurationError(
                f"Null (kind={self.kind}, n={self.n_obs}) is not parameterized for a "
                f"design with n={n} and residual d.f. {df}."
            )
        if self.kind != "block" or sorted(self.block_sizes) != sorted(nuisance.block_sizes):
            raise ConfigurationError(
                f"Null block sizes {self.block_sizes} do not match nuisance block sizes "
                f"{nuisance.block_sizes}."
            )

    def to_json(self) -> dict[str, Any]:
        qs = np.quantile(self.values, [0.005, 0.025, 0.5, 0.975, 0.995])
        return {
            "kind": self.kind,
            "method": self.method,
            "n_obs": int(self.n_obs),
            "df_residual": int(self.df_residual),
            "iters": int(self.iters),
            "seed": int(self.seed),
            "block_sizes": [int(b) for b in self.block_sizes],
            "design_signature": self.design_signature,
            "mean": float(np.mean(self.values)),
            "variance": self.variance(),
            "quantiles": {
                "0.005": float(qs[0]),
                "0.025": float(qs[1]),
                "0.5": float(qs[2]),
                "0.975": float(qs[3]),
                "0.995": float(qs[4]),
            },
        }


@dataclass(frozen=True)
class CorrelationResult:
    """Output of `correlate` for one pair of samples."""

    rho: float
    p_value: float
    alternative: str
    n_obs: int
    df_residual: int
    limited: bool
    metadata: dict[str, Any] = field(default_factory=dict)
