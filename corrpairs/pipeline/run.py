"""AnnData-driven gene-pair correlation pipeline."""

from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Sequence

import numpy as np
import pandas as pd

from corrpairs._version import __version__
from corrpairs.config import PairsConfig, load_json_config
from corrpairs.core.errors import ConfigurationError
from corrpairs.core.types import Nuisance
from corrpairs.pipeline.io import (
    detect_obs_col,
    ensure_dir,
    get_gene_matrix,
    setup_logger,
    write_json,
)
from corrpairs.plotting import apply_plot_style, plot_null_distribution, plot_style_dict
from corrpairs.stats.null import generate_null
from corrpairs.stats.pairs import correlate_genes, correlate_pairs

N_OBSERVED_MARKED = 5


def read_adata(h5ad_path: str | Path):
    path = Path(h5ad_path)
    if not path.exists():
        raise FileNotFoundError(f"Input file '{h5ad_path}' not found.")
    import scanpy as sc

    return sc.read_h5ad(path)


def build_design_frame(adata, design_cols: Sequence[str]) -> pd.DataFrame:
    """Intercept plus one column per numeric obs column and dummies for categorical ones."""
    obs = adata.obs
    parts: list[pd.Series | pd.DataFrame] = [
        pd.Series(1.0, index=obs.index, name="intercept")
    ]
    for requested in design_cols:
        col = detect_obs_col(adata, requested, [])
        s = obs[col]
        if pd.api.types.is_numeric_dtype(s) and not isinstance(s.dtype, pd.CategoricalDtype):
            parts.append(s.astype(float).rename(col))
        else:
            parts.append(
                pd.get_dummies(s.astype("category"), prefix=col, drop_first=True, dtype=float)
            )
    return pd.concat(parts, axis=1)


def build_nuisance(
    adata,
    design_cols: Sequence[str] = (),
    block_key: str | None = None,
) -> Nuisance:
    if design_cols and block_key is not None:
        raise ConfigurationError("Use either design columns or a block key, not both.")
    if block_key is not None:
        col = detect_obs_col(adata, block_key, [])
        return Nuisance.from_block(np.asarray(adata.obs[col]))
    if not design_cols:
        return Nuisance.none(int(adata.n_obs))
    design = build_design_frame(adata, design_cols)
    return Nuisance.from_design(design.to_numpy(dtype=float))


def _log_caught(logger: logging.Logger, caught: list[warnings.WarningMessage]) -> None:
    for w in caught:
        logger.warning("%s: %s", w.category.__name__, w.message)


def run_pairs_pipeline(config_path: str | Path) -> dict[str, Any]:
    cfg = PairsConfig.from_dict(load_json_config(config_path))
    outdir = Path(cfg.outdir)
    ensure_dir(outdir)
    logger = setup_logger(outdir / "logs" / "corrpairs.log", "corrpairs")
    logger.info("corrpairs %s | config %s", __version__, Path(config_path).as_posix())

    adata = read_adata(cfg.h5ad_path)
    logger.info("Loaded %s: %d cells x %d genes", cfg.h5ad_path, adata.n_obs, adata.n_vars)

    nuisance = build_nuisance(adata, cfg.design_cols, cfg.block_key)
    logger.info(
        "Nuisance kind=%s params=%d df_residual=%s",
        nuisance.kind,
        nuisance.n_params,
        nuisance.df_residual,
    )
    matrix = get_gene_matrix(adata, cfg.genes, cfg.layer)

    null = generate_null(
        nuisance,
        n_obs=int(adata.n_obs),
        iters=cfg.null.iters,
        seed=cfg.null.seed,
        method=cfg.null.method,
        chunk_size=cfg.null.chunk_size,
    )
    logger.info(
        "Null generated: method=%s iters=%d seed=%d variance=%.4g",
        null.method,
        null.iters,
        null.seed,
        null.variance(),
    )
    if cfg.lower_bound is None and nuisance.kind == "design":
        logger.warning("No lower_bound set; censored values are ranked by raw residuals.")

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        pair_table = correlate_pairs(
            matrix,
            null,
            nuisance,
            pairs=cfg.pairs,
            gene_names=cfg.genes,
            lower_bound=cfg.lower_bound,
            alternative=cfg.alternative,
        )
    _log_caught(logger, caught)
    gene_table = correlate_genes(pair_table)

    pairs_path = outdir / "pairs.csv"
    genes_path = outdir / "genes.csv"
    null_path = outdir / "null.json"
    plot_path = outdir / "figures" / "null_rho.png"
    pair_table.to_csv(pairs_path.as_posix(), index=False)
    gene_table.to_csv(genes_path.as_posix(), index=False)
    write_json(null_path, null.to_json())

    finite_rho = pair_table["rho"].to_numpy(dtype=float)
    finite_rho = finite_rho[np.isfinite(finite_rho)]
    marked = finite_rho[np.argsort(-np.abs(finite_rho))][:N_OBSERVED_MARKED]
    apply_plot_style()
    plot_null_distribution(null, plot_path, observed=marked)

    n_sig = int(np.sum(pair_table["FDR"].to_numpy(dtype=float) <= 0.05))
    n_limited = int(pair_table["limited"].sum())
    if n_limited:
        logger.warning(
            "%d pair(s) hit the minimum attainable p-value; increase iters for finer p-values.",
            n_limited,
        )
    summary = {
        "version": __version__,
        "n_cells": int(adata.n_obs),
        "n_genes": len(cfg.genes),
        "n_pairs": int(len(pair_table)),
        "n_fdr_05": n_sig,
        "n_limited": n_limited,
        "nuisance": nuisance.kind,
        "df_residual": int(null.df_residual),
        "pairs_path": pairs_path.as_posix(),
        "genes_path": genes_path.as_posix(),
        "null_path": null_path.as_posix(),
        "plot_path": plot_path.as_posix(),
        "plot_style": plot_style_dict(),
    }
    write_json(outdir / "summary.json", summary)
    logger.info("Pipeline complete. Results in %s", outdir.as_posix())
    return summary
