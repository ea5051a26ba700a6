"""Tests for the DIEHARD battery and its reuse policies."""

import numpy as np
import pytest

from entropy_battery import diehard
from entropy_battery.diehard import ReusePolicy
from entropy_battery.results import Status

ALL = list(diehard.DIEHARD_TESTS)


class TestRegistry:
    def test_twelve_tests(self):
        assert len(ALL) == 12
        assert ALL[0] == "birthday_spacings"
        assert ALL[-1] == "craps"

    def test_aliases_resolve(self):
        assert set(diehard.ALIASES.values()) <= set(ALL)

    @pytest.mark.parametrize("name", ["overlapping_permutations", "overlapping_sums"])
    def test_disjoint_window_tests_say_so(self, name):
        test = diehard.DIEHARD_TESTS[name]
        assert test.title.endswith("(disjoint windows)")
        assert "disjoint windows" in test.description


class TestMinimumLength:
    @pytest.mark.parametrize("name", ALL)
    def test_skipped_below_minimum(self, name, make_bits):
        test = diehard.DIEHARD_TESTS[name]
        result = test.func(make_bits(test.min_bits - 1, seed=1))
        assert result.is_skipped
        assert result.diagnostics["required_bits"] == test.min_bits


class TestRandomInput:
    @pytest.fixture(scope="class")
    def results(self, million_bits):
        return {name: test.func(million_bits) for name, test in diehard.DIEHARD_TESTS.items()}

    def test_nothing_skipped(self, results):
        assert [name for name, r in results.items() if r.is_skipped] == []

    def test_p_values_bounded(self, results):
        for result in results.values():
            assert 0.0 <= result.p_value <= 1.0
            assert result.diagnostics["reuse_factor"] <= 1.0
            assert result.diagnostics["policy"] == "scale"

    def test_mostly_passes(self, results):
        assert sum(r.failed for r in results.values()) <= 2

    def test_scaled_trial_counts(self, results):
        assert results["birthday_spacings"].diagnostics["trials"] == 1_000_000 // (256 * 21)
        assert results["parking_lot"].diagnostics["trials"] == 12_000
        assert results["runs"].diagnostics["trials"] == 1_000_000 // 32


class TestDetectsBadInput:
    @pytest.mark.parametrize("name", ALL)
    def test_all_zeros_fail(self, name, zeros):
        result = diehard.DIEHARD_TESTS[name].func(zeros(400_000))
        assert result.status is Status.FAIL

    def test_constant_squeeze_takes_one_step(self, zeros):
        result = diehard.squeeze(zeros(100_000))
        assert result.diagnostics["mean_steps"] == 1.0


class TestReusePolicy:
    def test_strict_skips_short_input(self, make_bits):
        result = diehard.birthday_spacings(make_bits(100_000), reuse=ReusePolicy.STRICT)
        assert result.is_skipped
        assert "unique bits" in result.skip_reason

    def test_strict_skips_variable_simulations(self, make_bits):
        assert diehard.squeeze(make_bits(100_000), reuse="strict").is_skipped

    def test_wrap_reports_reuse(self, make_bits):
        result = diehard.birthday_spacings(make_bits(10_000, seed=4), reuse=ReusePolicy.WRAP)
        assert not result.is_skipped
        assert result.diagnostics["trials"] == 500
        assert result.diagnostics["reuse_factor"] > 1.0
        assert result.diagnostics["policy"] == "wrap"

    def test_scale_skips_fixed_size_simulation(self, make_bits):
        result = diehard.parking_lot(make_bits(200_000), reuse=ReusePolicy.SCALE)
        assert result.is_skipped

    def test_wrap_runs_fixed_size_simulation(self, make_bits):
        result = diehard.parking_lot(make_bits(50_000, seed=6), reuse=ReusePolicy.WRAP)
        assert result.diagnostics["trials"] == 12_000
        assert result.diagnostics["reuse_factor"] > 1.0

    def test_scale_shrinks_trials(self, make_bits):
        result = diehard.runs(make_bits(100_000, seed=8))
        assert result.diagnostics["trials"] == 3125
        assert result.diagnostics["reuse_factor"] == 1.0

    def test_explicit_sizes(self, make_bits):
        result = diehard.overlapping_permutations(make_bits(100_000, seed=9), windows=1000)
        assert result.diagnostics["trials"] == 1000


class TestSqueezeDistribution:
    def test_small_start_is_exact(self):
        dist = diehard.squeeze_distribution(start=3, cap=40)
        assert dist[0] == 0.0
        assert dist[1] == pytest.approx(1 / 3)
        assert dist.sum() == pytest.approx(1.0)
        assert np.dot(np.arange(41), dist) == pytest.approx(2.5, abs=1e-9)

    def test_default_mean(self):
        dist = diehard.squeeze_distribution()
        assert dist.sum() == pytest.approx(1.0)
        # H(2^31 - 2) + 1
        assert np.dot(np.arange(len(dist)), dist) == pytest.approx(23.06, abs=0.1)


class TestCrapsDistribution:
    def test_first_throw(self):
        dist = diehard.craps_throw_distribution()
        assert dist[0] == 0.0
        assert dist[1] == pytest.approx(1 / 3)
        assert dist.sum() == pytest.approx(1.0)

    def test_mean_length(self):
        dist = diehard.craps_throw_distribution(cap=400)
        assert np.dot(np.arange(len(dist)), dist) == pytest.approx(557 / 165, rel=1e-9)
