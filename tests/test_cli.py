from __future__ import annotations

import pytest

from corrpairs import cli


def test_null_main_prints_summary(capsys):
    rc = cli.null_main(["--n-obs", "12", "--iters", "200", "--seed", "3"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "n_obs=12 iters=200 seed=3" in out
    assert "variance=" in out
    assert "q0.975=" in out


def test_main_dispatches_run(monkeypatch, capsys):
    called: list[str] = []

    def _fake_run(config_path: str) -> dict:
        called.append(config_path)
        return {"n_pairs": 3, "n_fdr_05": 1, "pairs_path": "out/pairs.csv"}

    monkeypatch.setattr("corrpairs.pipeline.run.run_pairs_pipeline", _fake_run)
    rc = cli.main(["run", "--config", "tiny.json"])
    assert rc == 0
    assert called == ["tiny.json"]
    assert "n_pairs=3" in capsys.readouterr().out


def test_main_dispatches_null(capsys):
    assert cli.main(["null", "--n-obs", "6", "--iters", "50"]) == 0
    assert "n_obs=6" in capsys.readouterr().out


def test_null_main_rejects_unknown_method():
    with pytest.raises(SystemExit):
        cli.null_main(["--n-obs", "6", "--method", "bootstrap"])


@pytest.mark.parametrize("method", ["residuals", "reduced"])
def test_null_main_offers_only_design_free_methods(method):
    with pytest.raises(SystemExit):
        cli.null_main(["--n-obs", "6", "--method", method])
