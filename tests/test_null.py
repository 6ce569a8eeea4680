import numpy as np
import pytest

from corrpairs.core.errors import ConfigurationError
from corrpairs.core.types import NullConfig, NullDistribution, Nuisance
from corrpairs.stats.null import NullCache, default_chunk_size, generate_null


def _paired_design(n_groups: int) -> np.ndarray:
    groups = np.repeat(np.arange(n_groups), 2)
    cols = [np.ones(groups.size)]
    cols += [(groups == g).astype(float) for g in range(1, n_groups)]
    return np.column_stack(cols)


def test_permutation_null_is_sorted_read_only_and_bounded():
    null = generate_null(n_obs=12, iters=2000, seed=0)
    assert null.size == 2000
    assert null.kind == "none"
    assert null.method == "permutation"
    assert null.df_residual == 12
    assert np.all(np.diff(null.values) >= 0)
    assert np.all(np.abs(null.values) <= 1.0 + 1e-12)
    with pytest.raises(ValueError):
        null.values[0] = 0.0


def test_permutation_null_moments():
    n = 10
    null = generate_null(n_obs=n, iters=20_000, seed=5)
    assert abs(float(np.mean(null.values))) < 0.01
    assert null.variance() == pytest.approx(1.0 / (n - 1), abs=0.01)


def test_seed_controls_reproducibility():
    a = generate_null(n_obs=15, iters=500, seed=3)
    b = generate_null(n_obs=15, iters=500, seed=3)
    c = generate_null(n_obs=15, iters=500, seed=4)
    assert np.array_equal(a.values, b.values)
    assert not np.array_equal(a.values, c.values)


def test_small_chunks_cover_all_iterations():
    a = generate_null(n_obs=8, iters=300, seed=1, chunk_size=7)
    b = generate_null(n_obs=8, iters=300, seed=1, chunk_size=7)
    assert a.size == 300
    assert np.array_equal(a.values, b.values)
    assert abs(float(np.mean(a.values))) < 0.1


def test_design_null_has_larger_variance_than_unconditioned():
    nuisance = Nuisance.from_design(_paired_design(10))
    assert nuisance.df_residual == 10
    design_null = generate_null(nuisance, iters=5000, seed=2)
    plain_null = generate_null(n_obs=20, iters=5000, seed=2)
    assert design_null.kind == "design"
    assert design_null.method == "residuals"
    assert design_null.n_obs == 20
    assert design_null.df_residual == 10
    assert design_null.variance() > 1.3 * plain_null.variance()


def test_reduced_null_permutes_at_residual_df():
    nuisance = Nuisance.from_design(_paired_design(10))
    null = generate_null(nuisance, iters=20_000, seed=0, method="reduced")
    assert null.method == "reduced"
    assert null.n_obs == 20
    assert null.df_residual == 10
    assert null.variance() == pytest.approx(1.0 / 9.0, abs=0.01)


def test_block_null_combines_weighted_blocks():
    labels = np.array(["a"] * 6 + ["b"] * 14)
    nuisance = Nuisance.from_block(labels)
    null = generate_null(nuisance, iters=20_000, seed=0)
    assert null.kind == "block"
    assert null.block_sizes == (6, 14)
    expected = (6 / 20) ** 2 / 5 + (14 / 20) ** 2 / 13
    assert null.variance() == pytest.approx(expected, abs=0.005)


def test_rank_deficient_design_rejected():
    design = _paired_design(3)
    design = np.column_stack([design, design[:, 1]])
    with pytest.raises(ConfigurationError, match="full column rank"):
        Nuisance.from_design(design)


def test_design_with_too_few_observations_rejected():
    with pytest.raises(ConfigurationError, match="fewer observations"):
        Nuisance.from_design(np.random.default_rng(0).normal(size=(3, 5)))
    with pytest.raises(ConfigurationError, match="residual degrees of freedom"):
        Nuisance.from_design(_paired_design(2)[:3])


def test_invalid_generation_parameters():
    with pytest.raises(ConfigurationError, match="iters"):
        generate_null(n_obs=10, iters=0)
    with pytest.raises(ConfigurationError, match="n_obs is required"):
        generate_null()
    with pytest.raises(ConfigurationError, match="ignores the design"):
        generate_null(Nuisance.from_design(_paired_design(5)), method="permutation")
    with pytest.raises(ConfigurationError, match="only valid with a design"):
        generate_null(n_obs=10, method="residuals")
    with pytest.raises(ConfigurationError, match="describes 10 observations"):
        generate_null(Nuisance.from_design(_paired_design(5)), n_obs=12)


def test_pvalue_queries_on_fixed_values():
    null = NullDistribution(
        values=np.array([0.5, -0.1, 0.0, 0.1, -0.5]),
        n_obs=5,
        df_residual=5,
        kind="none",
        iters=5,
        seed=0,
        method="permutation",
    )
    np.testing.assert_allclose(null.values, [-0.5, -0.1, 0.0, 0.1, 0.5])
    assert null.proportion_ge(0.1) == pytest.approx(2 / 5)
    assert null.proportion_le(-0.1) == pytest.approx(2 / 5)
    assert null.pvalue(0.5, "greater") == pytest.approx(2 / 6)
    assert null.pvalue(0.5, "less") == pytest.approx(1.0)
    assert null.pvalue(0.5) == pytest.approx(4 / 6)
    assert null.pvalue(0.9, "greater") == pytest.approx(null.min_pvalue("greater"))
    assert null.min_pvalue() == pytest.approx(2 / 6)
    assert np.isnan(null.pvalue(np.nan))
    vec = null.pvalue(np.array([0.0, np.nan]))
    assert vec.shape == (2,)
    assert np.isnan(vec[1])


def test_check_compatible_rejects_mismatched_parameterization():
    nuisance = Nuisance.from_design(_paired_design(10))
    plain = generate_null(n_obs=20, iters=50, seed=0)
    with pytest.raises(ConfigurationError, match="residual d.f."):
        plain.check_compatible(nuisance, 20)
    reduced_equivalent = generate_null(n_obs=10, iters=50, seed=0)
    reduced_equivalent.check_compatible(nuisance, 20)
    with pytest.raises(ConfigurationError, match="kind=none, n=21"):
        plain.check_compatible(Nuisance.none(), 21)
    block = Nuisance.from_block(np.array(["a"] * 10 + ["b"] * 10))
    with pytest.raises(ConfigurationError):
        generate_null(Nuisance.from_block(np.array(["a"] * 8 + ["b"] * 12)), iters=50).check_compatible(
            block, 20
        )


def test_null_cache_reuses_by_parameterization():
    cache = NullCache()
    cfg = NullConfig(iters=200, seed=1)
    a = cache.get(n_obs=10, config=cfg)
    b = cache.get(n_obs=10, config=cfg)
    assert a is b
    assert cache.hits == 1
    c = cache.get(n_obs=10, config=NullConfig(iters=200, seed=2))
    assert c is not a
    d = cache.get(Nuisance.from_design(_paired_design(5)), config=cfg)
    assert d.kind == "design"
    assert len(cache) == 3
    cache.clear()
    assert len(cache) == 0


def test_to_json_summary():
    payload = generate_null(n_obs=10, iters=100, seed=0).to_json()
    assert payload["n_obs"] == 10
    assert payload["iters"] == 100
    assert set(payload["quantiles"]) == {"0.005", "0.025", "0.5", "0.975", "0.995"}


def _interleaved_design(n_groups: int) -> np.ndarray:
    groups = np.tile(np.arange(n_groups), 2)
    cols = [np.ones(groups.size)]
    cols += [(groups == g).astype(float) for g in range(1, n_groups)]
    return np.column_stack(cols)


def test_residual_null_is_tied_to_its_design():
    design_a = Nuisance.from_design(_paired_design(10))
    design_b = Nuisance.from_design(_interleaved_design(10))
    assert design_b.n_obs == design_a.n_obs
    assert design_b.df_residual == design_a.df_residual

    null_a = generate_null(design_a, iters=100, seed=0)
    assert null_a.design_signature == design_a.signature()
    assert null_a.to_json()["design_signature"] == design_a.signature()
    null_a.check_compatible(Nuisance.from_design(_paired_design(10)), 20)
    with pytest.raises(ConfigurationError, match="different design"):
        null_a.check_compatible(design_b, 20)

    reduced_a = generate_null(design_a, iters=100, seed=0, method="reduced")
    assert reduced_a.design_signature == ""
    reduced_a.check_compatible(design_b, 20)


def test_block_null_accepts_relabelled_blocks_of_equal_sizes():
    null = generate_null(Nuisance.from_block(np.array(["a"] * 8 + ["b"] * 12)), iters=50)
    relabelled = Nuisance.from_block(np.array(["a"] * 12 + ["b"] * 8))
    assert relabelled.block_sizes == (12, 8)
    null.check_compatible(relabelled, 20)


def test_default_chunk_size_scales_with_observations():
    assert default_chunk_size(10) == 1000
    assert default_chunk_size(100_000) == 20
    assert default_chunk_size(10**8) == 1
    null = generate_null(n_obs=5000, iters=450, seed=0)
    assert null.size == 450
    assert NullConfig().chunk_size is None
