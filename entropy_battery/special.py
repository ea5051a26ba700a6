"""Special functions used to turn test statistics into p-values.

Every function is pure and total: numeric input never raises. Degenerate
arguments map to the neutral value (0.5 for probabilities) so that a single
numerical accident cannot abort a battery run. Past those guards the gamma,
Poisson and normal values come from ``scipy.special`` and ``scipy.stats``.
"""

from __future__ import annotations

import math

from scipy import special as sp_special
from scipy import stats as sp_stats

NEUTRAL_P = 0.5


def neutral_p_value(p: float) -> float:
    """Clamp *p* to [0, 1]; non-finite values become 0.5."""
    if not math.isfinite(p):
        return NEUTRAL_P
    return min(1.0, max(0.0, p))


# ── error function ──


def erfc(x: float) -> float:
    """Complementary error function (Chebyshev fit, fractional error < 1.2e-7)."""
    if math.isnan(x):
        return NEUTRAL_P
    if math.isinf(x):
        return 0.0 if x > 0 else 2.0
    z = abs(x)
    t = 1.0 / (1.0 + 0.5 * z)
    ans = t * math.exp(
        -z * z - 1.26551223 + t * (1.00002368 + t * (0.37409196 + t * (0.09678418
        + t * (-0.18628806 + t * (0.27886807 + t * (-1.13520398 + t * (1.48851587
        + t * (-0.82215223 + t * 0.17087277))))))))
    )
    return ans if x >= 0 else 2.0 - ans


def erf(x: float) -> float:
    if math.isnan(x):
        return math.nan
    return 1.0 - erfc(x)


# ── gamma family ──


def log_gamma(x: float) -> float:
    """ln|Γ(x)|; ``inf`` at the poles, ``nan`` for non-finite input."""
    if not math.isfinite(x):
        return math.nan
    return float(sp_special.gammaln(x))


def _gamma_args_invalid(a: float, x: float) -> bool:
    return math.isnan(a) or math.isnan(x) or math.isinf(a) or a <= 0 or x < 0


def igamc(a: float, x: float) -> float:
    """Regularised upper incomplete gamma Q(a, x) = Γ(a, x) / Γ(a)."""
    if _gamma_args_invalid(a, x):
        return NEUTRAL_P
    if x == 0:
        return 1.0
    if math.isinf(x):
        return 0.0
    return float(sp_special.gammaincc(a, x))


def igam(a: float, x: float) -> float:
    """Regularised lower incomplete gamma P(a, x) = 1 - Q(a, x)."""
    if _gamma_args_invalid(a, x):
        return NEUTRAL_P
    if x == 0:
        return 0.0
    if math.isinf(x):
        return 1.0
    return float(sp_special.gammainc(a, x))


def chi2_p_value(chi2: float, df: float) -> float:
    """Upper-tail probability of a chi-square statistic with *df* degrees of freedom."""
    return igamc(df / 2.0, chi2 / 2.0)


# ── distributions ──


def poisson_pmf(k: int, lam: float) -> float:
    """P(X = k) for X ~ Poisson(lam)."""
    if k < 0 or not math.isfinite(lam) or lam < 0:
        return 0.0
    if lam == 0:
        return 1.0 if k == 0 else 0.0
    return float(sp_stats.poisson.pmf(k, lam))


def poisson_cdf(k: int, lam: float) -> float:
    """P(X ≤ k) for X ~ Poisson(lam)."""
    if k < 0:
        return 0.0
    if not math.isfinite(lam) or lam < 0:
        return NEUTRAL_P
    if lam == 0:
        return 1.0
    return float(sp_stats.poisson.cdf(k, lam))


def normal_cdf(x: float, mu: float = 0.0, sigma: float = 1.0) -> float:
    if not (math.isfinite(mu) and math.isfinite(sigma)) or sigma <= 0 or math.isnan(x):
        return NEUTRAL_P
    if math.isinf(x):
        return 1.0 if x > 0 else 0.0
    return float(sp_special.ndtr((x - mu) / sigma))


def kolmogorov_smirnov_p_value(d: float) -> float:
    """Coarse asymptotic p-value for a scaled KS distance ``d = sqrt(n) * D``."""
    if not math.isfinite(d) or d < 0:
        return NEUTRAL_P
    if d < 0.5:
        return 1.0
    if d > 2.5:
        return 0.0
    return 1.0 - math.exp(-2.0 * d * d)
