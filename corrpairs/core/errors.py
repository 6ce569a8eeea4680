"""Error and warning types for corrpairs computations."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Malformed nuisance design, mismatched null distribution, or invalid parameters."""


class CorrPairsWarning(RuntimeWarning):
    """Base class for corrpairs runtime warnings."""


class UndefinedStatisticWarning(CorrPairsWarning):
    """A rank correlation was requested for a zero-variance sample."""


class CensoredOrderingWarning(CorrPairsWarning):
    """Floor disabled while tied (likely censored) minimum values are present."""


class EmptyFloorWarning(CorrPairsWarning):
    """A lower bound was requested but no observation sits at it."""
