"""Result types shared by the NIST and DIEHARD batteries."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping

from entropy_battery.special import NEUTRAL_P

ALPHA = 0.01
NIST_PASS_FRACTION = 0.85


class Status(str, enum.Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


@dataclass(frozen=True)
class TestResult:
    """Outcome of one statistical test.

    A skipped test carries a reason and no p-value; an evaluated test always
    carries a p-value in [0, 1] and passes exactly when ``p_value >= alpha``.
    """

    __test__ = False  # not a pytest class

    name: str
    status: Status
    p_value: float | None = None
    statistic: float | None = None
    diagnostics: Mapping[str, Any] = field(default_factory=dict)
    skip_reason: str | None = None
    description: str = ""
    alpha: float = ALPHA

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", Status(self.status))
        object.__setattr__(self, "diagnostics", MappingProxyType(dict(self.diagnostics)))
        if self.status is Status.SKIP:
            if self.p_value is not None:
                raise ValueError(f"{self.name}: a skipped test has no p-value")
            if not self.skip_reason:
                raise ValueError(f"{self.name}: a skipped test needs a reason")
            return
        if self.skip_reason is not None:
            raise ValueError(f"{self.name}: only skipped tests carry a skip reason")
        if self.p_value is None or not 0.0 <= self.p_value <= 1.0:
            raise ValueError(f"{self.name}: p-value {self.p_value!r} outside [0, 1]")
        if (self.status is Status.PASS) != (self.p_value >= self.alpha):
            raise ValueError(
                f"{self.name}: status {self.status.value} disagrees with p={self.p_value} at alpha={self.alpha}"
            )

    @classmethod
    def evaluated(
        cls,
        name: str,
        p_value: float,
        statistic: float | None = None,
        *,
        alpha: float = ALPHA,
        description: str = "",
        **diagnostics: Any,
    ) -> TestResult:
        """Build a Pass/Fail result from a p-value.

        A non-finite p-value is replaced with the neutral 0.5 and flagged as
        ``degenerate`` in the diagnostics.
        """
        p = float(p_value)
        if not math.isfinite(p):
            p = NEUTRAL_P
            diagnostics["degenerate"] = True
        p = min(1.0, max(0.0, p))
        if statistic is not None:
            statistic = float(statistic)
        status = Status.PASS if p >= alpha else Status.FAIL
        return cls(name=name, status=status, p_value=p, statistic=statistic,
                   diagnostics=diagnostics, description=description, alpha=alpha)

    @classmethod
    def skipped(cls, name: str, reason: str, *, description: str = "", alpha: float = ALPHA, **diagnostics: Any) -> TestResult:
        return cls(name=name, status=Status.SKIP, skip_reason=reason, description=description,
                   alpha=alpha, diagnostics=diagnostics)

    @property
    def passed(self) -> bool:
        return self.status is Status.PASS

    @property
    def failed(self) -> bool:
        return self.status is Status.FAIL

    @property
    def is_skipped(self) -> bool:
        return self.status is Status.SKIP

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "passed": self.passed,
            "pValue": self.p_value,
        }
        if self.statistic is not None:
            out["statistic"] = self.statistic
        for key, value in self.diagnostics.items():
            out.setdefault(key, value)
        out["description"] = self.description
        if self.skip_reason is not None:
            out["skipReason"] = self.skip_reason
        return out


def insufficient(name: str, needed: int, got: int, *, description: str = "", alpha: float = ALPHA) -> TestResult:
    return TestResult.skipped(name, f"insufficient bits: need >={needed}, have {got}",
                              description=description, alpha=alpha, required_bits=needed)


@dataclass(frozen=True)
class BatteryReport:
    """Aggregate of one battery run, results in definition order."""

    battery: str
    results: tuple[TestResult, ...]
    bit_count: int
    alpha: float = ALPHA
    pass_threshold: float | None = NIST_PASS_FRACTION
    sample_count: int | None = None
    expanded: bool = False
    conversion: str = "direct"

    def __post_init__(self) -> None:
        object.__setattr__(self, "results", tuple(self.results))

    # ── counts ──

    @property
    def total_tests(self) -> int:
        return len(self.results)

    @property
    def passed_tests(self) -> int:
        return sum(1 for r in self.results if r.status is Status.PASS)

    @property
    def failed_tests(self) -> int:
        return sum(1 for r in self.results if r.status is Status.FAIL)

    @property
    def skipped_tests(self) -> int:
        return sum(1 for r in self.results if r.status is Status.SKIP)

    @property
    def executed_tests(self) -> int:
        return self.passed_tests + self.failed_tests

    @property
    def overall_score(self) -> int:
        """Percentage of executed tests that passed; skipped tests do not count."""
        executed = self.executed_tests
        if executed == 0:
            return 0
        return round(100 * self.passed_tests / executed)

    @property
    def passed(self) -> bool | None:
        """Battery verdict; ``None`` when the battery imposes no threshold."""
        if self.pass_threshold is None:
            return None
        executed = self.executed_tests
        if executed == 0:
            return False
        return self.passed_tests >= math.ceil(executed * self.pass_threshold - 1e-9)

    # ── access ──

    def __iter__(self) -> Iterator[TestResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, name: str) -> TestResult:
        for r in self.results:
            if r.name == name:
                return r
        raise KeyError(name)

    def names(self) -> list[str]:
        return [r.name for r in self.results]

    def to_dict(self) -> dict[str, Any]:
        return {
            "battery": self.battery,
            "passed": self.passed,
            "totalTests": self.total_tests,
            "passedTests": self.passed_tests,
            "failedTests": self.failed_tests,
            "skippedTests": self.skipped_tests,
            "overallScore": self.overall_score,
            "significanceLevel": self.alpha,
            "passThreshold": self.pass_threshold,
            "bits": self.bit_count,
            "sampleSize": self.sample_count,
            "expanded": self.expanded,
            "conversion": self.conversion,
            "tests": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class BatteryTest:
    """Registry entry: a test function and what it needs to run."""

    __test__ = False

    name: str
    title: str
    func: Callable[..., TestResult]
    min_bits: int
    reference: str = ""
    unit: str = "bits"  # what min_bits counts

    @property
    def description(self) -> str:
        return f"{self.title} ({self.reference})" if self.reference else self.title
