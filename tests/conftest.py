"""Shared fixtures: reproducible bit sequences."""

import numpy as np
import pytest

from entropy_battery.bits import BitSequence


def _random_bits(n: int, seed: int = 0) -> BitSequence:
    return BitSequence(np.random.default_rng(seed).integers(0, 2, n, dtype=np.uint8))


@pytest.fixture
def make_bits():
    """Factory for seeded uniform bit sequences."""
    return _random_bits


@pytest.fixture(scope="session")
def million_bits():
    return _random_bits(1_000_000, seed=20240601)


@pytest.fixture
def zeros():
    return lambda n: BitSequence(np.zeros(n, dtype=np.uint8))


@pytest.fixture
def alternating():
    return lambda n: BitSequence(np.arange(n) % 2)
