"""Core rank-statistic subpackage."""

from corrpairs.core.errors import (
    CensoredOrderingWarning,
    ConfigurationError,
    CorrPairsWarning,
    EmptyFloorWarning,
    UndefinedStatisticWarning,
)
from corrpairs.core.ranks import (
    clamp_rho,
    rank_average,
    rank_rows,
    rho_from_ranks,
    tie_corrected_rho,
)
from corrpairs.core.types import CorrelationResult, NullConfig, NullDistribution, Nuisance

__all__ = [
    "ConfigurationError",
    "CorrPairsWarning",
    "UndefinedStatisticWarning",
    "CensoredOrderingWarning",
    "EmptyFloorWarning",
    "Nuisance",
    "NullConfig",
    "NullDistribution",
    "CorrelationResult",
    "rank_average",
    "rank_rows",
    "rho_from_ranks",
    "tie_corrected_rho",
    "clamp_rho",
]
