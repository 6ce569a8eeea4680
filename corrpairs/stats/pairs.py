"""Batch testing of gene pairs against one shared null distribution."""

from __future__ import annotations

import warnings
from typing import Any, Sequence

import numpy as np
import pandas as pd
import scipy.sparse as sp

from corrpairs.core.errors import ConfigurationError, UndefinedStatisticWarning
from corrpairs.core.types import Nuisance, NullDistribution, check_alternative
from corrpairs.core.utils import finite_2d
from corrpairs.stats.adjust import adjusted_ranks, rho_for_ranks
from corrpairs.stats.scoring import bh_fdr, simes_combine

PAIR_COLUMNS: tuple[str, ...] = ("gene1", "gene2", "rho", "p_value", "FDR", "limited")


def as_gene_matrix(matrix: Any) -> np.ndarray:
    """Dense genes x cells float matrix from a dense or scipy sparse input."""
    if sp.issparse(matrix):
        matrix = matrix.toarray()
    return finite_2d("matrix", np.asarray(matrix, dtype=float))


def resolve_pairs(
    pairs: Sequence[tuple[Any, Any]] | np.ndarray | None,
    gene_names: Sequence[str],
    n_genes: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Row indices of the genes in each pair; all unordered pairs when `pairs` is None."""
    if pairs is None:
        if n_genes < 2:
            raise ConfigurationError("At least two genes are required to form pairs.")
        i1, i2 = np.triu_indices(n_genes, k=1)
        return i1.astype(np.int64), i2.astype(np.int64)

    lookup = {str(name): i for i, name in enumerate(gene_names)}

    def _index(value: Any) -> int:
        if isinstance(value, (int, np.integer)):
            idx = int(value)
            if idx < 0 or idx >= n_genes:
                raise IndexError(f"Gene index {idx} out of range for {n_genes} genes.")
            return idx
        key = str(value)
        if key not in lookup:
            raise KeyError(f"Gene '{key}' not found in gene_names.")
        return lookup[key]

    first: list[int] = []
    second: list[int] = []
    for pair in pairs:
        if len(pair) != 2:
            raise ConfigurationError(f"Each pair must have two entries, got {pair!r}.")
        a, b = _index(pair[0]), _index(pair[1])
        if a == b:
            raise ConfigurationError(f"Pair {pair!r} correlates a gene with itself.")
        first.append(a)
        second.append(b)
    return np.asarray(first, dtype=np.int64), np.asarray(second, dtype=np.int64)


def correlate_pairs(
    matrix: Any,
    null: NullDistribution,
    nuisance: Nuisance | None = None,
    *,
    pairs: Sequence[tuple[Any, Any]] | np.ndarray | None = None,
    gene_names: Sequence[str] | None = None,
    lower_bound: float | None = None,
    alternative: str = "two-sided",
    chunk_size: int = 50_000,
) -> pd.DataFrame:
    """Test many gene pairs from a genes x cells matrix.

    Adjusted ranks are computed once per gene and pair statistics are evaluated
    in vectorized chunks against the shared `null`. Returns one row per pair
    with BH-adjusted `FDR`, sorted by p-value and then by decreasing |rho|.
    """
    alt = check_alternative(alternative)
    nz = nuisance or Nuisance.none()
    x = as_gene_matrix(matrix)
    n_genes, n_cells = x.shape
    names = (
        [str(g) for g in gene_names]
        if gene_names is not None
        else [str(i) for i in range(n_genes)]
    )
    if len(names) != n_genes:
        raise ConfigurationError(
            f"gene_names has {len(names)} entries but matrix has {n_genes} genes."
        )
    nz.check_n_obs(n_cells)
    null.check_compatible(nz, n_cells)
    if int(chunk_size) <= 0:
        raise ConfigurationError("chunk_size must be positive.")

    i1, i2 = resolve_pairs(pairs, names, n_genes)
    ranks = adjusted_ranks(x, nz, lower_bound=lower_bound)

    rho = np.empty(i1.size, dtype=float)
    step = int(chunk_size)
    for start in range(0, i1.size, step):
        stop = min(start + step, i1.size)
        rho[start:stop] = rho_for_ranks(ranks[i1[start:stop]], ranks[i2[start:stop]], nz)

    n_undefined = int(np.sum(~np.isfinite(rho)))
    if n_undefined:
        warnings.warn(
            f"{n_undefined} pair(s) involve a zero-variance gene; rho and p-values are NaN.",
            UndefinedStatisticWarning,
            stacklevel=2,
        )

    p = np.asarray(null.pvalue(rho, alt), dtype=float).reshape(-1)
    p_min = null.min_pvalue(alt)
    limited = np.isfinite(p) & (p <= p_min * (1.0 + 1e-12))
    names_arr = np.asarray(names, dtype=object)
    table = pd.DataFrame(
        {
            "gene1": names_arr[i1],
            "gene2": names_arr[i2],
            "rho": rho,
            "p_value": p,
            "FDR": bh_fdr(p),
            "limited": limited,
        }
    )
    table["_order"] = -np.abs(table["rho"].to_numpy())
    table = table.sort_values(
        ["p_value", "_order"], kind="mergesort", na_position="last"
    ).drop(columns="_order")
    return table.reset_index(drop=True)


def correlate_genes(pair_table: pd.DataFrame) -> pd.DataFrame:
    """Summarize pair results per gene.

    `rho` is the strongest correlation the gene takes part in, `p_value` is the
    Simes combination over its pairs, and `limited` flags genes with any pair
    at the minimum attainable p-value.
    """
    missing = [c for c in ("gene1", "gene2", "rho", "p_value", "limited") if c not in pair_table]
    if missing:
        raise ValueError(f"pair_table missing columns: {', '.join(missing)}.")

    cols = ["rho", "p_value", "limited"]
    long = pd.concat(
        [
            pair_table[["gene1", *cols]].rename(columns={"gene1": "gene"}),
            pair_table[["gene2", *cols]].rename(columns={"gene2": "gene"}),
        ],
        ignore_index=True,
    )

    rows: list[dict[str, Any]] = []
    for gene, grp in long.groupby("gene", sort=False):
        rho_vals = grp["rho"].to_numpy(dtype=float)
        finite = np.isfinite(rho_vals)
        if np.any(finite):
            kept = rho_vals[finite]
            best = float(kept[int(np.argmax(np.abs(kept)))])
        else:
            best = float("nan")
        rows.append(
            {
                "gene": str(gene),
                "rho": best,
                "p_value": simes_combine(grp["p_value"].to_numpy(dtype=float)),
                "limited": bool(grp["limited"].astype(bool).any()),
                "n_pairs": int(len(grp)),
            }
        )

    out = pd.DataFrame(rows, columns=["gene", "rho", "p_value", "limited", "n_pairs"])
    out["FDR"] = bh_fdr(out["p_value"].to_numpy(dtype=float))
    out = out.sort_values("p_value", kind="mergesort", na_position="last")
    return out.reset_index(drop=True)
