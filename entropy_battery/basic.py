"""Basic statistics over raw integer samples.

Seven quick checks on the sample values themselves rather than on a
converted bit stream. Uniformity is judged over the observed range
``[min, max]``; a constant input has no range and fails every test.
"""

from __future__ import annotations

import dataclasses
from math import log2, sqrt

import numpy as np
from scipy import stats as sp_stats

from entropy_battery import nist
from entropy_battery.bits import BitSequence, _unpack_width, validate_samples
from entropy_battery.results import ALPHA, BatteryTest, TestResult

BASIC_PASS_FRACTION = 0.70

_TITLES = {
    "frequency": "Frequency Test",
    "runs": "Runs Test",
    "chi_square": "Chi-Square Test",
    "entropy": "Shannon Entropy",
    "autocorrelation": "Autocorrelation",
    "mean": "Mean Test",
    "distribution": "Distribution Test",
}

MIN_SAMPLES = {
    "frequency": 10,
    "runs": 10,
    "chi_square": 10,
    "entropy": 10,
    "autocorrelation": 20,
    "mean": 10,
    "distribution": 10,
}

_MAX_BINS = 256


def _values(samples) -> np.ndarray:
    if isinstance(samples, np.ndarray) and samples.dtype == np.uint64 and samples.ndim == 1:
        return samples
    return validate_samples(samples)


def _skip_short(name: str, n: int, alpha: float) -> TestResult | None:
    needed = MIN_SAMPLES[name]
    if n < needed:
        return TestResult.skipped(name, f"insufficient samples: need >={needed}, have {n}",
                                  description=_TITLES[name], alpha=alpha, required_samples=needed)
    return None


def _result(name: str, p: float, statistic: float | None, alpha: float, **diagnostics) -> TestResult:
    return TestResult.evaluated(name, p, statistic, alpha=alpha, description=_TITLES[name], **diagnostics)


def _constant(name: str, value: int, alpha: float) -> TestResult:
    return _result(name, 0.0, None, alpha, constant=True, value=value)


def _span(values: np.ndarray) -> tuple[int, int]:
    """Smallest value and the number of integers in ``[min, max]``."""
    lo = int(values.min())
    return lo, int(values.max()) - lo + 1


# ═══════════════════════ BIT-LEVEL TESTS ═══════════════════════


def _balanced_bits(values: np.ndarray, lo: int, span: int) -> BitSequence:
    """Fixed-width bits of the offsets that fall below the largest power of two in the range.

    Offsets uniform on ``[0, 2^w)`` give fair bits; the others are dropped.
    """
    width = span.bit_length() - 1
    offsets = values - np.uint64(lo)
    if width < 64:
        offsets = offsets[offsets < np.uint64(1 << width)]
    return BitSequence(_unpack_width(offsets, width))


def _bit_test(name: str, func, samples, alpha: float) -> TestResult:
    values = _values(samples)
    if (skip := _skip_short(name, values.size, alpha)) is not None:
        return skip
    lo, span = _span(values)
    if span == 1:
        return _constant(name, lo, alpha)
    bits = _balanced_bits(values, lo, span)
    result = func(bits, alpha=alpha)
    diagnostics = {**result.diagnostics, "bits_used": len(bits), "bit_width": span.bit_length() - 1}
    return dataclasses.replace(result, name=name, description=_TITLES[name], diagnostics=diagnostics)


def frequency(samples, *, alpha: float = ALPHA) -> TestResult:
    """Balance of ones and zeros in the significant bits of each sample."""
    return _bit_test("frequency", nist.frequency, samples, alpha)


def runs(samples, *, alpha: float = ALPHA) -> TestResult:
    """Runs of identical bits in the significant bits of each sample."""
    return _bit_test("runs", nist.runs, samples, alpha)


# ═══════════════════════ DISTRIBUTION TESTS ═══════════════════════


def _binned(values: np.ndarray, lo: int, span: int) -> tuple[np.ndarray, np.ndarray]:
    """Observed and expected counts over near-equal integer bins of ``[lo, lo + span)``."""
    n = values.size
    bins = min(span, _MAX_BINS, max(2, n // 5))
    edges = [lo + (j * span) // bins for j in range(bins + 1)]
    index = np.searchsorted(np.array(edges[1:-1], dtype=np.uint64), values, side="right")
    observed = np.bincount(index, minlength=bins)
    expected = n * np.array([(hi - low) / span for low, hi in zip(edges[:-1], edges[1:])])
    return observed, expected


def chi_square(samples, *, alpha: float = ALPHA) -> TestResult:
    """Goodness of fit of the binned values to the uniform law."""
    name = "chi_square"
    values = _values(samples)
    if (skip := _skip_short(name, values.size, alpha)) is not None:
        return skip
    lo, span = _span(values)
    if span == 1:
        return _constant(name, lo, alpha)
    observed, expected = _binned(values, lo, span)
    chi2, p = sp_stats.chisquare(observed, expected)
    return _result(name, float(p), float(chi2), alpha, bins=observed.size, df=observed.size - 1)


def entropy(samples, *, alpha: float = ALPHA) -> TestResult:
    """Shannon entropy of the binned values, with a G-test against the uniform law.

    The statistic is the entropy as a fraction of its uniform maximum.
    """
    name = "entropy"
    values = _values(samples)
    n = values.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    lo, span = _span(values)
    if span == 1:
        return _constant(name, lo, alpha)
    observed, expected = _binned(values, lo, span)
    probs = observed[observed > 0] / n
    h = float(-np.sum(probs * np.log2(probs)))
    q = expected / n
    h_max = float(-np.sum(q * np.log2(q)))
    g, p = sp_stats.power_divergence(observed, expected, lambda_="log-likelihood")
    return _result(name, float(p), h / h_max, alpha, entropy=h, max_entropy=h_max,
                   g_statistic=float(g), bins=observed.size, ideal_bits=log2(span))


def distribution(samples, *, alpha: float = ALPHA) -> TestResult:
    """Kolmogorov-Smirnov distance to the discrete uniform CDF on ``[min, max]``."""
    name = "distribution"
    values = _values(samples)
    n = values.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    lo, span = _span(values)
    if span == 1:
        return _constant(name, lo, alpha)
    support, counts = np.unique(values, return_counts=True)
    offsets = (support - np.uint64(lo)).astype(np.float64)
    ecdf = np.cumsum(counts) / n
    # the ECDF is flat between support points, so the supremum sits at their two sides
    d = float(max(np.max(np.abs(ecdf - (offsets + 1) / span)),
                  np.max(np.abs(ecdf - counts / n - offsets / span))))
    p = float(sp_stats.kstwo.sf(d, n))
    return _result(name, p, d, alpha, distinct_values=int(support.size))


# ═══════════════════════ MOMENT / CORRELATION TESTS ═══════════════════════


def autocorrelation(samples, *, alpha: float = ALPHA, lag: int = 1) -> TestResult:
    """Correlation between samples *lag* apart; ``r·√n`` is standard normal."""
    name = "autocorrelation"
    values = _values(samples)
    n = values.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    arr = values.astype(np.float64)
    centred = arr - np.mean(arr)
    var = float(np.mean(centred * centred))
    if var == 0.0:
        return _constant(name, int(values[0]), alpha)
    r = float(np.mean(centred[:-lag] * centred[lag:]) / var)
    z = r * sqrt(n)
    p = float(2 * sp_stats.norm.sf(abs(z)))
    return _result(name, p, r, alpha, lag=lag, z_score=z)


def mean(samples, *, alpha: float = ALPHA) -> TestResult:
    """Sample mean against the midpoint of the range."""
    name = "mean"
    values = _values(samples)
    n = values.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    lo, span = _span(values)
    if span == 1:
        return _constant(name, lo, alpha)
    observed = float(np.mean(values.astype(np.float64)))
    expected = lo + (span - 1) / 2
    # variance of the discrete uniform on span integers
    sigma = sqrt((span * span - 1) / 12 / n)
    z = (observed - expected) / sigma
    p = float(2 * sp_stats.norm.sf(abs(z)))
    return _result(name, p, observed, alpha, expected_mean=expected, z_score=z)


# ═══════════════════════ REGISTRY ═══════════════════════

_FUNCS = (frequency, runs, chi_square, entropy, autocorrelation, mean, distribution)

BASIC_TESTS: dict[str, BatteryTest] = {
    f.__name__: BatteryTest(
        name=f.__name__,
        title=_TITLES[f.__name__],
        func=f,
        min_bits=MIN_SAMPLES[f.__name__],
        unit="samples",
    )
    for f in _FUNCS
}

# names used by the HTTP front end
ALIASES = {
    "chiSquare": "chi_square",
}
