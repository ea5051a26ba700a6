"""Exceptions raised by entropy-battery.

Insufficient data and numerical degeneracy are never errors: they become
``Skip`` results or neutral p-values. Only malformed input and unknown test
names propagate to the caller.
"""

from __future__ import annotations


class BatteryError(Exception):
    """Base class for entropy-battery errors."""


class InvalidSampleError(BatteryError, ValueError):
    """A sample cannot be turned into bits (negative, non-finite, non-integral...)."""

    def __init__(self, message: str, index: int | None = None, value: object = None):
        super().__init__(message)
        self.index = index
        self.value = value


class UnknownTestError(BatteryError, KeyError):
    """A selection names a test that is not in the battery."""

    def __init__(self, name: str, battery: str):
        super().__init__(name)
        self.name = name
        self.battery = battery

    def __str__(self) -> str:
        return f"unknown {self.battery} test: {self.name!r}"


class InsufficientBitsError(BatteryError):
    """A bit stream ran out of unread bits and wrapping is disabled."""

    def __init__(self, needed: int, available: int):
        super().__init__(f"need {needed} bits, only {available} unread")
        self.needed = needed
        self.available = available
