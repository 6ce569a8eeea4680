"""Configuration loading utilities for corrpairs pipelines."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from corrpairs.core.types import ALTERNATIVES, NullConfig


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a pipeline config from a JSON file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


@dataclass(frozen=True)
class PairsConfig:
    """Validated settings for `run_pairs_pipeline`."""

    h5ad_path: str
    genes: tuple[str, ...]
    outdir: str = "corrpairs_out"
    pairs: tuple[tuple[str, str], ...] | None = None
    layer: str | None = None
    design_cols: tuple[str, ...] = ()
    block_key: str | None = None
    lower_bound: float | None = None
    alternative: str = "two-sided"
    null: NullConfig = field(default_factory=NullConfig)

    _KEYS = (
        "h5ad_path",
        "genes",
        "outdir",
        "pairs",
        "layer",
        "design_cols",
        "block_key",
        "lower_bound",
        "alternative",
        "iters",
        "seed",
        "null_method",
        "chunk_size",
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PairsConfig":
        unknown = sorted(set(data) - set(cls._KEYS))
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}.")
        if "h5ad_path" not in data:
            raise ValueError("Config requires 'h5ad_path'.")
        genes = tuple(str(g) for g in data.get("genes", ()))
        if len(genes) < 2:
            raise ValueError("Config 'genes' must list at least two genes.")
        if len(set(genes)) != len(genes):
            raise ValueError("Config 'genes' contains duplicates.")

        pairs_raw = data.get("pairs")
        pairs = None
        if pairs_raw is not None:
            parsed: list[tuple[str, str]] = []
            for item in pairs_raw:
                if not isinstance(item, (list, tuple)) or len(item) != 2:
                    raise ValueError(f"Config 'pairs' entries must be [gene1, gene2], got {item!r}.")
                parsed.append((str(item[0]), str(item[1])))
            pairs = tuple(parsed)

        alternative = str(data.get("alternative", "two-sided"))
        if alternative not in ALTERNATIVES:
            raise ValueError(f"Config 'alternative' must be one of {ALTERNATIVES}.")
        design_cols = tuple(str(c) for c in data.get("design_cols", ()))
        block_key = data.get("block_key")
        if design_cols and block_key is not None:
            raise ValueError("Config may set 'design_cols' or 'block_key', not both.")

        lower_bound = data.get("lower_bound")
        chunk_size = data.get("chunk_size")
        null = NullConfig(
            iters=int(data.get("iters", NullConfig.iters)),
            seed=int(data.get("seed", NullConfig.seed)),
            method=str(data.get("null_method", NullConfig.method)),
            chunk_size=None if chunk_size is None else int(chunk_size),
        )
        return cls(
            h5ad_path=str(data["h5ad_path"]),
            genes=genes,
            outdir=str(data.get("outdir", "corrpairs_out")),
            pairs=pairs,
            layer=None if data.get("layer") is None else str(data["layer"]),
            design_cols=design_cols,
            block_key=None if block_key is None else str(block_key),
            lower_bound=None if lower_bound is None else float(lower_bound),
            alternative=alternative,
            null=null,
        )
