"""AnnData pipeline entrypoints."""


def run_pairs_pipeline(*args, **kwargs):
    from corrpairs.pipeline.run import run_pairs_pipeline as _run_pairs_pipeline

    return _run_pairs_pipeline(*args, **kwargs)


__all__ = ["run_pairs_pipeline"]
