"""Small pure helpers for core computations."""

from __future__ import annotations

import hashlib

import numpy as np

from corrpairs.core.errors import ConfigurationError


def finite_1d(name: str, values: np.ndarray) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise ConfigurationError(f"{name} must be non-empty.")
    if not np.isfinite(arr).all():
        raise ConfigurationError(f"{name} must be finite.")
    return arr


def finite_2d(name: str, values: np.ndarray) -> np.ndarray:
    """Coerce to a finite float matrix, promoting 1-D input to a single row."""
    arr = np.asarray(values, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise ConfigurationError(f"{name} must be 1-D or 2-D, got shape {arr.shape}.")
    if arr.shape[1] == 0:
        raise ConfigurationError(f"{name} must have at least one observation.")
    if not np.isfinite(arr).all():
        raise ConfigurationError(f"{name} must be finite.")
    return arr


def stable_hash_array(arr: np.ndarray) -> str:
    view = np.ascontiguousarray(arr).view(np.uint8)
    return hashlib.sha256(view.tobytes()).hexdigest()
