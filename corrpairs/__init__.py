"""corrpairs public API."""

from corrpairs._version import __version__
from corrpairs.core.errors import (
    CensoredOrderingWarning,
    ConfigurationError,
    EmptyFloorWarning,
    UndefinedStatisticWarning,
)
from corrpairs.core.ranks import tie_corrected_rho
from corrpairs.core.types import CorrelationResult, NullConfig, NullDistribution, Nuisance
from corrpairs.stats.adjust import adjusted_rho, correlate
from corrpairs.stats.null import NullCache, generate_null
from corrpairs.stats.pairs import correlate_genes, correlate_pairs


def run_pairs_pipeline(*args, **kwargs):
    """Lazy wrapper to avoid importing scanpy at import time."""
    from corrpairs.pipeline.run import run_pairs_pipeline as _run_pairs_pipeline

    return _run_pairs_pipeline(*args, **kwargs)


__all__ = [
    "__version__",
    "ConfigurationError",
    "UndefinedStatisticWarning",
    "CensoredOrderingWarning",
    "EmptyFloorWarning",
    "Nuisance",
    "NullConfig",
    "NullDistribution",
    "CorrelationResult",
    "tie_corrected_rho",
    "adjusted_rho",
    "correlate",
    "generate_null",
    "NullCache",
    "correlate_pairs",
    "correlate_genes",
    "run_pairs_pipeline",
]
