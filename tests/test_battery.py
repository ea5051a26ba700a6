"""Tests for selection, orchestration and aggregation."""

import threading

import pytest

from entropy_battery.battery import (
    _run_one,
    available_tests,
    minimum_bits,
    prepare_bits,
    resolve_selection,
    run_battery,
    run_diehard,
    run_nist,
)
from entropy_battery.config import BatteryConfig
from entropy_battery.errors import InvalidSampleError, UnknownTestError
from entropy_battery.results import ALPHA, BatteryTest, Status, TestResult


class TestSelection:
    def test_all_in_definition_order(self):
        names = resolve_selection("all")
        assert len(names) == 15
        assert names[:3] == ["frequency", "block_frequency", "runs"]

    def test_quick(self):
        assert resolve_selection("quick") == [
            "frequency", "block_frequency", "runs", "longest_run", "matrix_rank", "spectral",
        ]
        assert len(resolve_selection("quick", "diehard")) == 12

    def test_comma_list_reordered(self):
        assert resolve_selection("runs, frequency") == ["frequency", "runs"]

    def test_aliases(self):
        assert resolve_selection(["monobit", "dft", "frequency"]) == ["frequency", "spectral"]
        assert resolve_selection("parkingLot", "diehard") == ["parking_lot"]

    def test_same_id_in_both_batteries(self):
        assert resolve_selection("runs", "diehard") == ["runs"]

    def test_unknown_test(self):
        with pytest.raises(UnknownTestError) as exc:
            resolve_selection("frequency,bogus")
        assert str(exc.value) == "unknown nist test: 'bogus'"
        assert exc.value.name == "bogus"

    def test_unknown_battery(self):
        with pytest.raises(ValueError):
            resolve_selection("all", "dieharder")


class TestAvailability:
    def test_thousand_bits(self):
        status = available_tests(1000)
        assert status["universal"] is True
        assert status["matrix_rank"] is False
        assert sum(status.values()) == 14

    def test_diehard(self):
        assert not any(available_tests(1000, "diehard").values())
        assert all(available_tests(200_000, "diehard").values())

    def test_minimum_bits(self):
        assert minimum_bits()["longest_run"] == 128
        assert minimum_bits("diehard")["craps"] == 200_000


class TestPrepare:
    def test_exactly_one_input(self, make_bits):
        with pytest.raises(ValueError):
            prepare_bits()
        with pytest.raises(ValueError):
            prepare_bits([1, 0], make_bits(10))

    def test_samples_converted(self):
        bits, count = prepare_bits(samples=[3, 1, 2])
        assert count == 3
        assert bits.to_string() == "110110"

    def test_generator_samples(self):
        bits, count = prepare_bits(samples=(i % 2 for i in range(10)))
        assert count == 10
        assert len(bits) == 10

    def test_expansion(self, make_bits):
        bits, _ = prepare_bits(bits=make_bits(500), config=BatteryConfig(expand_to=1200))
        assert len(bits) == 1200
        assert bits.expanded


class TestRunBattery:
    def test_invalid_samples(self):
        with pytest.raises(InvalidSampleError):
            run_nist([1, -2, 3])

    def test_report_shape(self, make_bits):
        report = run_nist(bits=make_bits(1000, seed=3))
        assert report.battery == "nist"
        assert report.names() == resolve_selection("all")
        skipped = [r.name for r in report if r.is_skipped]
        assert skipped == ["matrix_rank", "universal", "random_excursions", "random_excursions_variant"]
        assert report["universal"].diagnostics["required_bits"] == 387_840
        assert report["random_excursions"].skip_reason.startswith("insufficient cycles")
        assert report.bit_count == 1000
        assert report.pass_threshold == 0.85

    def test_short_input_skips_instead_of_failing(self, make_bits):
        report = run_nist(bits=make_bits(50))
        assert report.skipped_tests == 15
        assert report.overall_score == 0
        assert report.passed is False

    def test_expanded_flag(self, make_bits):
        report = run_nist(bits=make_bits(300, seed=4), selection="frequency",
                          config=BatteryConfig(expand_to=2000))
        assert report.expanded
        assert report.bit_count == 2000

    def test_samples_reported(self):
        report = run_nist([1, 0] * 100, selection="frequency")
        assert report.sample_count == 200
        assert report.conversion == "direct"

    def test_parallel_matches_sequential(self, make_bits):
        bits = make_bits(20_000, seed=5)
        parallel = run_nist(bits=bits, selection="quick", config=BatteryConfig(parallel=True))
        sequential = run_nist(bits=bits, selection="quick", config=BatteryConfig(parallel=False))
        assert parallel.results == sequential.results

    def test_alpha_from_config(self, make_bits):
        report = run_nist(bits=make_bits(2000), selection="frequency", config=BatteryConfig(alpha=0.05))
        assert report.alpha == 0.05
        assert report["frequency"].alpha == 0.05

    def test_diehard_report_has_no_threshold(self, make_bits):
        report = run_diehard(bits=make_bits(20_000, seed=6), selection="birthday_spacings")
        assert report.pass_threshold is None
        assert report.passed is None
        assert report["birthday_spacings"].diagnostics["policy"] == "scale"

    def test_diehard_policy_from_config(self, make_bits):
        report = run_diehard(bits=make_bits(20_000, seed=6), selection="birthday_spacings",
                             config=BatteryConfig(diehard_reuse="strict"))
        assert report["birthday_spacings"].is_skipped

    def test_million_bits_end_to_end(self, million_bits):
        report = run_battery(bits=million_bits)
        skipped = {r.name for r in report if r.is_skipped}
        assert skipped <= {"random_excursions", "random_excursions_variant"}
        assert report.executed_tests >= 13
        assert report.overall_score >= 80


def _ok(bits, *, alpha):
    return TestResult.evaluated("ok", 0.5, alpha=alpha)


def _boom(bits, *, alpha):
    raise RuntimeError("boom")


@pytest.fixture
def registry():
    release = threading.Event()

    def stuck(bits, *, alpha):
        release.wait(10)
        return TestResult.evaluated("stuck", 0.5, alpha=alpha)

    yield {
        "ok": BatteryTest("ok", "Always fine", _ok, 10),
        "boom": BatteryTest("boom", "Always raises", _boom, 10),
        "stuck": BatteryTest("stuck", "Never finishes in time", stuck, 10),
    }
    release.set()


class TestIsolation:
    def test_exception_becomes_skip(self, registry, make_bits):
        report = run_battery(bits=make_bits(100), selection="ok,boom", tests=registry)
        assert report["ok"].passed
        assert report["boom"].status is Status.SKIP
        assert report["boom"].skip_reason == "error: RuntimeError: boom"
        assert report["boom"].alpha == ALPHA

    def test_exception_skip_carries_configured_alpha(self, registry, make_bits):
        report = run_battery(bits=make_bits(100), selection="boom", tests=registry,
                             config=BatteryConfig(alpha=0.05))
        assert report["boom"].alpha == 0.05

    def test_exception_skip_defaults_to_package_alpha(self, make_bits):
        def broken(bits, **kwargs):
            raise ValueError("bad")

        result = _run_one(BatteryTest("broken", "Broken", broken, 10), make_bits(100), {})
        assert result.is_skipped
        assert result.alpha == ALPHA

    def test_timeout_becomes_skip(self, registry, make_bits):
        config = BatteryConfig(test_timeout=0.2)
        report = run_battery(bits=make_bits(100), tests=registry, config=config)
        assert report.names() == ["ok", "boom", "stuck"]
        assert report["stuck"].skip_reason == "timeout after 0.2s"
        assert report["ok"].passed

    def test_timeout_with_single_worker(self, registry, make_bits):
        config = BatteryConfig(test_timeout=0.2, max_workers=1)
        report = run_battery(bits=make_bits(100), selection="stuck,ok", tests=registry, config=config)
        assert report["stuck"].is_skipped
        assert report["ok"].passed
