"""Statistical utilities for corrpairs."""

from corrpairs.stats.adjust import (
    adjusted_ranks,
    adjusted_rho,
    correlate,
    fit_residuals,
    floor_residuals,
    rho_for_ranks,
    snap_ties,
)
from corrpairs.stats.null import NullCache, generate_null
from corrpairs.stats.pairs import correlate_genes, correlate_pairs
from corrpairs.stats.scoring import bh_fdr, simes_combine

__all__ = [
    "fit_residuals",
    "floor_residuals",
    "adjusted_ranks",
    "adjusted_rho",
    "rho_for_ranks",
    "snap_ties",
    "correlate",
    "generate_null",
    "NullCache",
    "correlate_pairs",
    "correlate_genes",
    "bh_fdr",
    "simes_combine",
]
