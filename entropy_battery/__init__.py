"""
entropy-battery: statistical test batteries for random bit streams.

Runs the fifteen NIST SP 800-22 tests and twelve DIEHARD-style simulations
over a sequence of bits (or integer samples converted to bits), plus a basic
battery of seven checks on the raw samples, and reports per-test p-values
with an aggregate score.
"""

__version__ = "0.1.0"
__author__ = "Amenti Labs"

from entropy_battery.basic import BASIC_TESTS
from entropy_battery.battery import (
    available_tests,
    resolve_selection,
    run_basic,
    run_battery,
    run_diehard,
    run_nist,
)
from entropy_battery.bits import BitSequence, ConversionPolicy, expand_bits
from entropy_battery.config import BatteryConfig
from entropy_battery.diehard import DIEHARD_TESTS, ReusePolicy
from entropy_battery.errors import BatteryError, InvalidSampleError, UnknownTestError
from entropy_battery.nist import NIST_TESTS, QUICK_TESTS
from entropy_battery.results import BatteryReport, Status, TestResult

__all__ = [
    "BASIC_TESTS",
    "BatteryConfig",
    "BatteryError",
    "BatteryReport",
    "BitSequence",
    "ConversionPolicy",
    "DIEHARD_TESTS",
    "InvalidSampleError",
    "NIST_TESTS",
    "QUICK_TESTS",
    "ReusePolicy",
    "Status",
    "TestResult",
    "UnknownTestError",
    "__version__",
    "available_tests",
    "expand_bits",
    "resolve_selection",
    "run_basic",
    "run_battery",
    "run_diehard",
    "run_nist",
]
