"""Pipeline I/O, logging, and AnnData access helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

import numpy as np
import scipy.sparse as sp


def ensure_dir(path: str | Path) -> None:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)


def write_json(path: str | Path, payload: dict[str, Any]) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def setup_logger(log_path: Path, logger_name: str) -> logging.Logger:
    ensure_dir(log_path.parent)
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger


def detect_obs_col(adata, provided: str | None, candidates: Iterable[str]) -> str:
    if provided is not None:
        if provided in adata.obs.columns:
            return str(provided)
        raise KeyError(f"adata.obs['{provided}'] not found.")
    for c in candidates:
        if c in adata.obs.columns:
            return str(c)
    raise KeyError(f"Required column not found. Tried: {', '.join(candidates)}")


def get_gene_matrix(adata, genes: Sequence[str], layer: str | None = None) -> np.ndarray:
    """Extract a dense genes x cells matrix for `genes` from X or a layer."""
    missing = [g for g in genes if g not in adata.var_names]
    if missing:
        raise KeyError(f"Genes not found in adata.var_names: {', '.join(missing)}.")
    if layer is not None and layer not in adata.layers:
        raise KeyError(f"adata.layers['{layer}'] not found.")

    sub = adata[:, list(genes)]
    mat = sub.X if layer is None else sub.layers[layer]
    if sp.issparse(mat):
        dense = mat.toarray()
    else:
        dense = np.asarray(mat)
    dense = np.asarray(dense, dtype=float).reshape(adata.n_obs, len(genes))
    if not np.all(np.isfinite(dense)):
        raise ValueError("Expression matrix for the requested genes contains NaN/inf.")
    return dense.T
