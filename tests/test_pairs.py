from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp

from corrpairs.core.errors import ConfigurationError, UndefinedStatisticWarning
from corrpairs.core.types import Nuisance
from corrpairs.stats.adjust import adjusted_rho
from corrpairs.stats.null import generate_null
from corrpairs.stats.pairs import PAIR_COLUMNS, correlate_genes, correlate_pairs, resolve_pairs
from corrpairs.stats.scoring import simes_combine


def _toy_counts(n_cells: int = 40, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    base = rng.poisson(2.0, size=n_cells).astype(float)
    return np.vstack(
        [
            base,
            base + rng.poisson(0.3, size=n_cells),
            rng.poisson(1.0, size=n_cells),
            rng.poisson(1.0, size=n_cells),
        ]
    )


def test_correlate_pairs_table_layout_and_order():
    counts = _toy_counts()
    null = generate_null(n_obs=40, iters=1000, seed=0)
    table = correlate_pairs(counts, null, gene_names=["A", "B", "C", "D"])
    assert tuple(table.columns) == PAIR_COLUMNS
    assert len(table) == 6
    assert {tuple(sorted(r)) for r in table[["gene1", "gene2"]].to_numpy()} == {
        ("A", "B"),
        ("A", "C"),
        ("A", "D"),
        ("B", "C"),
        ("B", "D"),
        ("C", "D"),
    }
    assert (table.loc[0, "gene1"], table.loc[0, "gene2"]) == ("A", "B")
    assert table.loc[0, "rho"] > 0.5
    assert np.all(np.diff(table["p_value"].to_numpy()) >= 0.0)
    assert np.all(table["FDR"].to_numpy() >= table["p_value"].to_numpy() - 1e-12)


def test_correlate_pairs_matches_single_pair_statistic():
    counts = _toy_counts(n_cells=20, seed=1)
    groups = np.repeat(np.arange(4), 5)
    design = np.column_stack([np.ones(20)] + [(groups == g).astype(float) for g in range(1, 4)])
    nuisance = Nuisance.from_design(design)
    null = generate_null(nuisance, iters=300, seed=0)
    table = correlate_pairs(counts, null, nuisance, lower_bound=0.0)
    for row in table.itertuples(index=False):
        i, j = int(row.gene1), int(row.gene2)
        expected = adjusted_rho(counts[i], counts[j], nuisance, lower_bound=0.0)
        assert row.rho == pytest.approx(expected)


def test_explicit_pairs_by_name_and_index():
    counts = _toy_counts()
    null = generate_null(n_obs=40, iters=200, seed=0)
    names = ["A", "B", "C", "D"]
    by_name = correlate_pairs(counts, null, pairs=[("A", "C"), ("B", "D")], gene_names=names)
    by_index = correlate_pairs(counts, null, pairs=[(0, 2), (1, 3)], gene_names=names)
    pd.testing.assert_frame_equal(by_name, by_index)
    assert len(by_name) == 2

    with pytest.raises(KeyError, match="Z"):
        resolve_pairs([("A", "Z")], names, 4)
    with pytest.raises(IndexError):
        resolve_pairs([(0, 9)], names, 4)
    with pytest.raises(ConfigurationError, match="itself"):
        resolve_pairs([("A", "A")], names, 4)


def test_sparse_input_matches_dense():
    counts = _toy_counts()
    null = generate_null(n_obs=40, iters=200, seed=0)
    dense = correlate_pairs(counts, null)
    sparse = correlate_pairs(sp.csr_matrix(counts), null)
    pd.testing.assert_frame_equal(dense, sparse)


def test_zero_variance_gene_gives_nan_pairs():
    counts = _toy_counts()
    counts[3] = 0.0
    null = generate_null(n_obs=40, iters=200, seed=0)
    with pytest.warns(UndefinedStatisticWarning, match="3 pair"):
        table = correlate_pairs(counts, null)
    bad = table[(table["gene1"] == "3") | (table["gene2"] == "3")]
    assert bad["rho"].isna().all()
    assert bad["p_value"].isna().all()
    assert bad["FDR"].isna().all()
    assert not bad["limited"].any()
    assert table["p_value"].iloc[-3:].isna().all()


def test_correlate_pairs_checks_null_and_names():
    counts = _toy_counts()
    with pytest.raises(ConfigurationError, match="n=40"):
        correlate_pairs(counts, generate_null(n_obs=30, iters=50))
    with pytest.raises(ConfigurationError, match="gene_names"):
        correlate_pairs(counts, generate_null(n_obs=40, iters=50), gene_names=["A"])


def test_correlate_genes_summary():
    counts = _toy_counts()
    null = generate_null(n_obs=40, iters=500, seed=0)
    table = correlate_pairs(counts, null, gene_names=["A", "B", "C", "D"])
    genes = correlate_genes(table)
    assert list(genes.columns) == ["gene", "rho", "p_value", "limited", "n_pairs", "FDR"]
    assert set(genes["gene"]) == {"A", "B", "C", "D"}
    assert (genes["n_pairs"] == 3).all()

    a = genes.set_index("gene").loc["A"]
    involved = table[(table["gene1"] == "A") | (table["gene2"] == "A")]
    assert a["p_value"] == pytest.approx(simes_combine(involved["p_value"].to_numpy()))
    assert abs(a["rho"]) == pytest.approx(involved["rho"].abs().max())

    with pytest.raises(ValueError, match="missing columns"):
        correlate_genes(table.drop(columns=["limited"]))
