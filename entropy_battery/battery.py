"""Battery orchestration: convert input once, run the selected tests, aggregate.

Tests are independent pure functions over an immutable ``BitSequence`` (or,
for the basic battery, a read-only array of samples), so they run
concurrently in daemon threads. Results are always reported in the
battery's definition order, whatever order the threads finish in.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Iterable, Mapping

import numpy as np

from entropy_battery.basic import ALIASES as BASIC_ALIASES
from entropy_battery.basic import BASIC_TESTS
from entropy_battery.bits import BitSequence, expand_bits, validate_samples
from entropy_battery.config import BatteryConfig
from entropy_battery.diehard import ALIASES as DIEHARD_ALIASES
from entropy_battery.diehard import DIEHARD_TESTS
from entropy_battery.errors import UnknownTestError
from entropy_battery.nist import ALIASES as NIST_ALIASES
from entropy_battery.nist import NIST_TESTS, QUICK_TESTS
from entropy_battery.results import ALPHA, BatteryReport, BatteryTest, TestResult

logger = logging.getLogger(__name__)

BATTERIES: dict[str, Mapping[str, BatteryTest]] = {
    "nist": NIST_TESTS,
    "diehard": DIEHARD_TESTS,
    "basic": BASIC_TESTS,
}
_ALIASES = {"nist": NIST_ALIASES, "diehard": DIEHARD_ALIASES, "basic": BASIC_ALIASES}
_QUICK = {"nist": QUICK_TESTS}
_POLL_INTERVAL = 0.05  # seconds between checks on running tests


def _battery_tests(battery: str) -> Mapping[str, BatteryTest]:
    try:
        return BATTERIES[battery]
    except KeyError:
        raise ValueError(f"unknown battery {battery!r}; expected one of {sorted(BATTERIES)}") from None


def resolve_selection(
    selection: str | Iterable[str] = "all",
    battery: str = "nist",
    tests: Mapping[str, BatteryTest] | None = None,
) -> list[str]:
    """Turn a selection into test ids in definition order.

    *selection* is ``"all"``, ``"quick"`` (the six fast NIST tests; every
    test for DIEHARD), a comma-separated string or an iterable of ids.
    camelCase names used by the web front end are accepted as aliases.
    """
    tests = _battery_tests(battery) if tests is None else tests
    if isinstance(selection, str):
        key = selection.strip()
        if key == "all":
            return list(tests)
        if key == "quick":
            quick = _QUICK.get(battery)
            return list(tests) if quick is None else [name for name in tests if name in quick]
        selection = [part for part in key.split(",") if part.strip()]

    aliases = _ALIASES.get(battery, {})
    wanted = set()
    for item in selection:
        item = item.strip()
        name = aliases.get(item, item)
        if name not in tests:
            raise UnknownTestError(item, battery)
        wanted.add(name)
    return [name for name in tests if name in wanted]


def available_tests(bit_count: int, battery: str = "nist") -> dict[str, bool]:
    """Which tests of *battery* an input of *bit_count* bits is long enough for.

    The basic battery counts samples rather than bits.
    """
    return {name: bit_count >= test.min_bits for name, test in _battery_tests(battery).items()}


def minimum_bits(battery: str = "nist") -> dict[str, int]:
    return {name: test.min_bits for name, test in _battery_tests(battery).items()}


# ────────────────────────────────────────────────────────────
# Execution
# ────────────────────────────────────────────────────────────


def _run_one(test: BatteryTest, data, kwargs: dict) -> TestResult:
    t0 = time.monotonic()
    try:
        result = test.func(data, **kwargs)
    except Exception as exc:
        logger.exception("%s raised; reporting it as skipped", test.name)
        return TestResult.skipped(test.name, f"error: {type(exc).__name__}: {exc}",
                                  description=test.description, alpha=kwargs.get("alpha", ALPHA))
    logger.debug("%s: %s in %.3fs", test.name, result.status.value, time.monotonic() - t0)
    return result


def _timed_out(test: BatteryTest, timeout: float, alpha: float) -> TestResult:
    logger.warning("%s exceeded its %.1fs budget", test.name, timeout)
    return TestResult.skipped(test.name, f"timeout after {timeout:g}s", description=test.description, alpha=alpha)


def _execute(selected: list[BatteryTest], data, kwargs: dict, config: BatteryConfig) -> list[TestResult]:
    timeout = config.test_timeout
    if not selected:
        return []
    if not config.parallel and timeout is None:
        return [_run_one(test, data, kwargs) for test in selected]

    if config.parallel:
        workers = config.max_workers or min(len(selected), os.cpu_count() or 1)
    else:
        workers = 1
    slots = threading.Semaphore(workers)
    lock = threading.Lock()
    results: dict[str, TestResult] = {}
    started: dict[str, float] = {}
    abandoned: set[str] = set()

    def _worker(test: BatteryTest) -> None:
        slots.acquire()
        with lock:
            started[test.name] = time.monotonic()
        result = _run_one(test, data, kwargs)
        with lock:
            results[test.name] = result
            if test.name in abandoned:
                return
        slots.release()

    threads = {}
    for test in selected:
        t = threading.Thread(target=_worker, args=(test,), name=f"battery-{test.name}", daemon=True)
        t.start()
        threads[test.name] = t

    out: dict[str, TestResult] = {}
    while len(out) < len(selected):
        now = time.monotonic()
        for test in selected:
            if test.name in out:
                continue
            with lock:
                result = results.get(test.name)
                start = started.get(test.name)
                # the budget runs from the moment the test got a worker slot
                expired = result is None and timeout is not None and start is not None and now - start >= timeout
                if expired:
                    abandoned.add(test.name)
            if result is not None:
                out[test.name] = result
            elif expired:
                # hand the runaway's slot to the tests still waiting
                slots.release()
                out[test.name] = _timed_out(test, timeout, kwargs["alpha"])
        pending = [threads[test.name] for test in selected if test.name not in out]
        if pending:
            pending[0].join(timeout=_POLL_INTERVAL)
    return [out[test.name] for test in selected]


def prepare_bits(samples=None, bits=None, config: BatteryConfig | None = None) -> tuple[BitSequence, int | None]:
    """Convert samples (or accept bits) and apply expansion; returns bits and sample count."""
    config = config or BatteryConfig()
    if (samples is None) == (bits is None):
        raise ValueError("pass exactly one of samples or bits")
    sample_count = None
    if bits is None:
        if not hasattr(samples, "__len__"):
            samples = list(samples)
        sample_count = len(samples)
        seq = BitSequence.from_samples(samples, config.conversion)
    else:
        seq = bits if isinstance(bits, BitSequence) else BitSequence(bits)
    if config.expand_to is not None and len(seq) < config.expand_to:
        seq = expand_bits(seq, config.expand_to)
    return seq, sample_count


def _pass_threshold(battery: str, config: BatteryConfig) -> float | None:
    if battery == "nist":
        return config.nist_pass_fraction
    if battery == "basic":
        return config.basic_pass_fraction
    return None


def prepare_samples(samples, seq: BitSequence) -> np.ndarray:
    """Raw sample values for the basic battery; without samples the bits stand in as 0/1 values."""
    values = validate_samples(samples) if samples is not None else seq.array.astype(np.uint64)
    values.flags.writeable = False
    return values


def run_battery(
    samples=None,
    selection: str | Iterable[str] = "all",
    *,
    bits=None,
    battery: str = "nist",
    config: BatteryConfig | None = None,
    tests: Mapping[str, BatteryTest] | None = None,
) -> BatteryReport:
    """Run the selected tests of *battery* over one input.

    Exactly one of *samples* (non-negative integers, converted with the
    configured policy) or *bits* must be given. *tests* replaces the
    built-in registry.
    """
    config = config or BatteryConfig()
    registry = _battery_tests(battery) if tests is None else tests
    names = resolve_selection(selection, battery, registry)
    if battery == "basic":
        if samples is not None and not hasattr(samples, "__len__"):
            samples = list(samples)
        seq, sample_count = prepare_bits(samples, bits, config.model_copy(update={"expand_to": None}))
        data = prepare_samples(samples, seq)
    else:
        seq, sample_count = prepare_bits(samples, bits, config)
        data = seq

    kwargs: dict = {"alpha": config.alpha}
    if battery == "diehard":
        kwargs["reuse"] = config.diehard_reuse

    logger.info("%s battery: %d test(s) over %d bits%s", battery, len(names), len(seq),
                " (expanded)" if seq.expanded else "")
    results = _execute([registry[name] for name in names], data, kwargs, config)
    report = BatteryReport(
        battery=battery,
        results=tuple(results),
        bit_count=len(seq),
        alpha=config.alpha,
        pass_threshold=_pass_threshold(battery, config),
        sample_count=sample_count,
        expanded=seq.expanded,
        conversion=seq.conversion,
    )
    logger.info("%s battery: %d passed, %d failed, %d skipped, score %d", battery,
                report.passed_tests, report.failed_tests, report.skipped_tests, report.overall_score)
    return report


def run_nist(samples=None, selection: str | Iterable[str] = "all", **kwargs) -> BatteryReport:
    return run_battery(samples, selection, battery="nist", **kwargs)


def run_diehard(samples=None, selection: str | Iterable[str] = "all", **kwargs) -> BatteryReport:
    return run_battery(samples, selection, battery="diehard", **kwargs)


def run_basic(samples=None, selection: str | Iterable[str] = "all", **kwargs) -> BatteryReport:
    return run_battery(samples, selection, battery="basic", **kwargs)
