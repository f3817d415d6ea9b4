"""
tests/conftest.py - Shared fixtures for the cycle kernel tests
"""

import pytest

from cyclesim.context import CycleContext, ingest_inputs
from cyclesim.rng import seeded_rng
from cyclesim.types_config import MODE_LIVE


def build_ctx(cycle_id=1, mode=MODE_LIVE, inputs=None, tables=None, seed=None):
    """A fresh context for cycle_id with optional collaborator inputs."""
    seed = cycle_id if seed is None else seed
    ctx = CycleContext(
        cycle_id=cycle_id,
        timestamp="2026-01-01T00:00:00+00:00",
        seed=seed,
        mode=mode,
        rng=seeded_rng(seed),
        tables=dict(tables or {}),
    )
    if inputs:
        ingest_inputs(ctx, inputs)
    return ctx


@pytest.fixture
def make_ctx():
    return build_ctx
