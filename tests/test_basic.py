"""Tests for the basic battery over raw integer samples."""

import numpy as np
import pytest
from scipy import stats as sp_stats

from entropy_battery import basic, nist
from entropy_battery.battery import resolve_selection, run_basic
from entropy_battery.config import BatteryConfig
from entropy_battery.errors import InvalidSampleError
from entropy_battery.results import Status

ALL = list(basic.BASIC_TESTS)


def _uniform(n: int, high: int, seed: int) -> np.ndarray:
    return np.random.default_rng(seed).integers(0, high, n, dtype=np.uint64)


class TestRegistry:
    def test_seven_tests_in_order(self):
        assert ALL == ["frequency", "runs", "chi_square", "entropy", "autocorrelation", "mean", "distribution"]

    def test_minimums_count_samples(self):
        for name, test in basic.BASIC_TESTS.items():
            assert test.unit == "samples"
            assert test.min_bits == basic.MIN_SAMPLES[name]

    def test_aliases(self):
        assert resolve_selection("chiSquare,mean", "basic") == ["chi_square", "mean"]
        assert resolve_selection("quick", "basic") == ALL


class TestMinimumLength:
    @pytest.mark.parametrize("name", ALL)
    def test_skipped_below_minimum(self, name):
        needed = basic.MIN_SAMPLES[name]
        result = basic.BASIC_TESTS[name].func(_uniform(needed - 1, 256, seed=1))
        assert result.status is Status.SKIP
        assert result.skip_reason == f"insufficient samples: need >={needed}, have {needed - 1}"

    def test_bit_tests_need_enough_bits(self):
        result = basic.frequency([0, 1] * 20)
        assert result.is_skipped
        assert result.skip_reason.startswith("insufficient bits")

    def test_rejects_bad_samples(self):
        with pytest.raises(InvalidSampleError):
            basic.mean([3, -1, 4] * 10)


class TestKnownValues:
    def test_binary_samples_are_their_own_bits(self, make_bits):
        bits = make_bits(2000, seed=5)
        result = basic.frequency(bits.array.astype(np.uint64))
        assert result.p_value == nist.frequency(bits).p_value
        assert result.name == "frequency"
        assert result.diagnostics["bit_width"] == 1
        assert result.diagnostics["bits_used"] == 2000

    def test_offsets_above_power_of_two_are_dropped(self):
        values = np.arange(100, dtype=np.uint64).repeat(3)
        result = basic.runs(values)
        # range of 100 values keeps offsets 0..63 as 6-bit words
        assert result.diagnostics["bit_width"] == 6
        assert result.diagnostics["bits_used"] == 64 * 3 * 6

    def test_perfectly_even_counts(self):
        values = np.tile(np.arange(10, dtype=np.uint64), 10)
        assert basic.chi_square(values).p_value == pytest.approx(1.0)
        assert basic.chi_square(values).statistic == 0.0
        assert basic.distribution(values).statistic == pytest.approx(0.0, abs=1e-12)
        assert basic.entropy(values).statistic == pytest.approx(1.0)
        assert basic.mean(values).p_value == pytest.approx(1.0)

    def test_chi_square_matches_scipy_per_value(self):
        values = _uniform(500, 6, seed=9)
        counts = np.bincount(values.astype(np.int64), minlength=6)
        expected = sp_stats.chisquare(counts)
        result = basic.chi_square(values)
        assert result.diagnostics["bins"] == 6
        assert result.statistic == pytest.approx(float(expected.statistic))
        assert result.p_value == pytest.approx(float(expected.pvalue))

    def test_wide_range_is_binned(self):
        values = _uniform(100, 1000, seed=2)
        result = basic.chi_square(values)
        assert result.diagnostics["bins"] == 20
        assert result.diagnostics["df"] == 19

    def test_mean_z_score(self):
        values = np.array([0, 1] * 50 + [1] * 20, dtype=np.uint64)
        result = basic.mean(values)
        n = values.size
        z = (values.mean() - 0.5) / np.sqrt(0.25 / n)
        assert result.diagnostics["z_score"] == pytest.approx(z)
        assert result.p_value == pytest.approx(2 * sp_stats.norm.sf(abs(z)))

    def test_autocorrelation_of_alternating_values(self):
        result = basic.autocorrelation(np.array([0, 9] * 100, dtype=np.uint64))
        assert result.statistic == pytest.approx(-1.0, abs=0.01)
        assert result.failed

    def test_lag_is_configurable(self):
        values = np.array([0, 0, 9, 9] * 50, dtype=np.uint64)
        assert basic.autocorrelation(values, lag=4).statistic == pytest.approx(1.0, abs=0.03)

    def test_plain_lists_accepted(self):
        result = basic.mean(list(range(256)) * 4)
        assert result.p_value == pytest.approx(1.0)


class TestDetectsBadInput:
    @pytest.mark.parametrize("name", ALL)
    def test_constant_input_fails(self, name):
        result = basic.BASIC_TESTS[name].func(np.full(500, 42, dtype=np.uint64))
        assert result.failed
        assert result.p_value == 0.0
        assert result.diagnostics["constant"] is True

    @pytest.mark.parametrize("name", ["chi_square", "entropy", "mean", "distribution"])
    def test_skewed_values_fail(self, name):
        raw = _uniform(5000, 256, seed=3)
        skewed = raw * raw // np.uint64(255)
        assert basic.BASIC_TESTS[name].func(skewed).failed

    def test_counter_fails_autocorrelation(self):
        values = np.arange(5000, dtype=np.uint64) % np.uint64(256)
        assert basic.autocorrelation(values).failed

    def test_long_bit_runs_fail_runs(self):
        # 0x00 and 0xFF alternate: one run per byte
        values = np.array([0, 255] * 500, dtype=np.uint64)
        result = basic.runs(values)
        assert result.failed
        assert result.statistic == 1000


class TestRandomInputPasses:
    @pytest.mark.parametrize("name", ALL)
    @pytest.mark.parametrize("high", [2, 10, 256, 2**32])
    def test_mostly_passes(self, name, high):
        func = basic.BASIC_TESTS[name].func
        passes = sum(func(_uniform(5000, high, seed=40 + s)).passed for s in range(10))
        assert passes >= 8


class TestOrchestration:
    def test_run_basic_report(self):
        report = run_basic(_uniform(2000, 256, seed=6).tolist())
        assert report.battery == "basic"
        assert report.names() == ALL
        assert report.sample_count == 2000
        assert report.pass_threshold == 0.7
        assert report.passed is True

    def test_bits_stand_in_for_samples(self, make_bits):
        bits = make_bits(1000, seed=8)
        report = run_basic(bits=bits, selection="mean")
        assert report.bit_count == 1000
        assert report["mean"].statistic == pytest.approx(bits.array.mean())

    def test_generator_samples(self):
        report = run_basic((v % 7 for v in range(700)), selection="chi_square")
        assert report.sample_count == 700
        assert report["chi_square"].statistic == 0.0

    def test_expansion_does_not_apply(self):
        config = BatteryConfig(expand_to=10_000)
        report = run_basic(_uniform(200, 256, seed=2).tolist(), selection="mean", config=config)
        assert not report.expanded
        assert report.sample_count == 200

    def test_threshold_from_config(self):
        config = BatteryConfig(basic_pass_fraction=0.5, alpha=0.05)
        report = run_basic(_uniform(500, 256, seed=7).tolist(), config=config)
        assert report.pass_threshold == 0.5
        assert all(r.alpha == 0.05 for r in report)

    def test_constant_input_fails_battery(self):
        report = run_basic([5] * 300)
        assert report.passed is False
        assert report.passed_tests == 0

