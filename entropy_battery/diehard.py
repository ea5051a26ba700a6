"""DIEHARD-style test battery.

Twelve simulation tests in the spirit of Marsaglia's DIEHARD. Every test
reads its random numbers from a ``BitStream`` over the input bits. How a
test behaves when the input is too short for its nominal simulation size is
governed by ``ReusePolicy``:

* ``SCALE`` runs as many trials as the unique bits allow (fixed-size
  simulations are skipped instead);
* ``WRAP`` runs the nominal simulation and re-reads the input from the
  start when it runs out, reporting ``reuse_factor``;
* ``STRICT`` skips unless the unique bits cover the nominal simulation.
"""

from __future__ import annotations

import enum
import functools
import logging
from math import comb, exp, pi, sqrt

import numpy as np
from scipy import stats as sp_stats
from scipy.spatial import cKDTree

from entropy_battery.bits import BitSequence, BitStream, bits_to_matrices, gf2_rank, permutation_indices
from entropy_battery.errors import InsufficientBitsError
from entropy_battery.results import ALPHA, BatteryTest, TestResult, insufficient
from entropy_battery.special import (
    chi2_p_value,
    erfc,
    igam,
    kolmogorov_smirnov_p_value,
    normal_cdf,
    poisson_cdf,
)

logger = logging.getLogger(__name__)


class ReusePolicy(str, enum.Enum):
    """What a simulation does when the input holds fewer bits than it needs."""

    SCALE = "scale"
    WRAP = "wrap"
    STRICT = "strict"


_TITLES = {
    "birthday_spacings": "Birthday Spacings",
    "overlapping_permutations": "Overlapping Permutations (disjoint windows)",
    "ranks_of_matrices": "Ranks of 32x32 Binary Matrices",
    "monkey_tests": "Monkey Tests",
    "count_the_ones": "Count the 1's",
    "parking_lot": "Parking Lot",
    "minimum_distance": "Minimum Distance",
    "random_spheres": "3D Random Spheres",
    "squeeze": "Squeeze",
    "overlapping_sums": "Overlapping Sums (disjoint windows)",
    "runs": "Runs Up and Down",
    "craps": "Craps",
}

MIN_BITS = {
    "birthday_spacings": 10_000,
    "overlapping_permutations": 48_000,
    "ranks_of_matrices": 38_912,
    "monkey_tests": 100_000,
    "count_the_ones": 200_000,
    "parking_lot": 50_000,
    "minimum_distance": 100_000,
    "random_spheres": 100_000,
    "squeeze": 100_000,
    "overlapping_sums": 100_000,
    "runs": 100_000,
    "craps": 200_000,
}


def _describe(name: str) -> str:
    return f"{_TITLES[name]} (DIEHARD)"


class _Unrunnable(Exception):
    """Raised inside a test when the reuse policy forbids running it."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _diehard_test(name: str):
    """Common entry point: input coercion, minimum length and policy skips."""

    def decorate(func):
        @functools.wraps(func)
        def run(bits, *, alpha: float = ALPHA, reuse: ReusePolicy | str = ReusePolicy.SCALE, **params) -> TestResult:
            seq = bits if isinstance(bits, BitSequence) else BitSequence(bits)
            n = len(seq)
            if n < MIN_BITS[name]:
                return insufficient(name, MIN_BITS[name], n, description=_describe(name), alpha=alpha)
            try:
                return func(seq, alpha=alpha, reuse=ReusePolicy(reuse), **params)
            except _Unrunnable as exc:
                return TestResult.skipped(name, exc.reason, description=_describe(name), alpha=alpha)

        return run

    return decorate


def _plan(name: str, bits: BitSequence, reuse: ReusePolicy, *, nominal: int, bits_per_trial: int,
          min_trials: int = 1, scalable: bool = True) -> tuple[BitStream, int]:
    """Choose the trial count for a simulation with a fixed cost per trial."""
    n = len(bits)
    needed = nominal * bits_per_trial
    if needed <= n:
        return BitStream(bits), nominal
    if reuse is ReusePolicy.WRAP:
        return BitStream(bits, wrap=True), nominal
    if reuse is ReusePolicy.SCALE and scalable:
        trials = n // bits_per_trial
        if trials >= min_trials:
            return BitStream(bits), trials
        raise _Unrunnable(f"needs {min_trials * bits_per_trial} unique bits for {min_trials} trials, have {n}")
    raise _Unrunnable(f"needs {needed} unique bits for {nominal} trials, have {n}")


def _result(name: str, p: float, statistic: float | None, alpha: float, stream: BitStream,
            trials: int, reuse: ReusePolicy, **diagnostics) -> TestResult:
    if stream.wrapped:
        logger.warning("%s: input reused %.2f times (policy %s)", name, stream.reuse_factor, reuse.value)
    return TestResult.evaluated(
        name, p, statistic, alpha=alpha, description=_describe(name),
        trials=trials, reuse_factor=round(stream.reuse_factor, 4), policy=reuse.value, **diagnostics,
    )


class _Draws:
    """One word at a time from a stream, fetched in chunks."""

    def __init__(self, stream: BitStream, width: int, chunk: int = 8192):
        self._stream = stream
        self._width = width
        self._chunk = chunk
        self._buf: list[int] = []
        self._pos = 0

    def __call__(self) -> int:
        if self._pos == len(self._buf):
            count = self._chunk if self._stream.wrap else min(self._chunk, self._stream.capacity(self._width))
            if count == 0:
                raise InsufficientBitsError(self._width, self._stream.remaining)
            self._buf = self._stream.words(count, self._width).tolist()
            self._pos = 0
        value = self._buf[self._pos]
        self._pos += 1
        return value


def _variable_stream(bits: BitSequence, reuse: ReusePolicy, *, nominal: int, expected_bits: float) -> BitStream:
    """Stream for simulations whose bit cost per trial is random."""
    n = len(bits)
    if reuse is ReusePolicy.WRAP:
        return BitStream(bits, wrap=True)
    if reuse is ReusePolicy.STRICT and nominal * expected_bits > n:
        raise _Unrunnable(f"needs about {int(nominal * expected_bits)} unique bits for {nominal} trials, have {n}")
    return BitStream(bits)


def _check_completed(reuse: ReusePolicy, completed: int, nominal: int, minimum: int, n: int) -> None:
    if reuse is ReusePolicy.STRICT and completed < nominal:
        raise _Unrunnable(f"input of {n} bits exhausted after {completed} of {nominal} trials")
    if completed < minimum:
        raise _Unrunnable(f"input of {n} bits exhausted after {completed} trials, need {minimum}")


def _pooled_chi2(observed, expected, min_expected: float = 5.0) -> tuple[float, int]:
    """Chi-square after merging adjacent cells until each expects ``min_expected``."""
    bins_obs: list[float] = []
    bins_exp: list[float] = []
    acc_obs = acc_exp = 0.0
    for o, e in zip(observed, expected):
        acc_obs += float(o)
        acc_exp += float(e)
        if acc_exp >= min_expected:
            bins_obs.append(acc_obs)
            bins_exp.append(acc_exp)
            acc_obs = acc_exp = 0.0
    if acc_obs or acc_exp:
        if bins_exp:
            bins_obs[-1] += acc_obs
            bins_exp[-1] += acc_exp
        else:
            bins_obs.append(acc_obs)
            bins_exp.append(acc_exp)
    chi2 = sum((o - e) ** 2 / e for o, e in zip(bins_obs, bins_exp) if e > 0)
    return chi2, len(bins_exp) - 1


def _two_sided(cdf: float) -> float:
    return min(1.0, 2.0 * min(cdf, 1.0 - cdf))


# ═══════════════════════ SPACING / PERMUTATION TESTS ═══════════════════════

_BIRTHDAYS = 256
_DAY_BITS = 21  # lambda = 256**3 / (4 * 2**21) = 2


@_diehard_test("birthday_spacings")
def birthday_spacings(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, samples: int = 500) -> TestResult:
    """Duplicate spacings between sorted birthdays are Poisson with mean 2 per sample."""
    name = "birthday_spacings"
    stream, trials = _plan(name, bits, reuse, nominal=samples, bits_per_trial=_BIRTHDAYS * _DAY_BITS)
    days = np.sort(stream.words(trials * _BIRTHDAYS, _DAY_BITS).reshape(trials, _BIRTHDAYS), axis=1)
    spacings = np.sort(np.diff(days, axis=1, prepend=0), axis=1)
    duplicates = int(np.count_nonzero(spacings[:, 1:] == spacings[:, :-1]))
    lam = _BIRTHDAYS**3 / (4 * 2**_DAY_BITS) * trials
    lower = poisson_cdf(duplicates, lam)
    upper = igam(duplicates, lam) if duplicates > 0 else 1.0
    p = min(1.0, 2.0 * min(lower, upper))
    return _result(name, p, duplicates, alpha, stream, trials, reuse, expected=lam)


@_diehard_test("overlapping_permutations")
def overlapping_permutations(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, windows: int = 100_000) -> TestResult:
    """Relative order of five consecutive 16-bit words; all 120 orderings equally likely.

    Windows are taken end to end so the 120 cell counts are multinomial.
    """
    name = "overlapping_permutations"
    stream, trials = _plan(name, bits, reuse, nominal=windows, bits_per_trial=5 * 16, min_trials=600)
    words = stream.words(trials * 5, 16).reshape(trials, 5)
    counts = np.bincount(permutation_indices(words), minlength=120)
    expected = trials / 120
    chi2 = float(np.sum((counts - expected) ** 2) / expected)
    p = chi2_p_value(chi2, 119)
    return _result(name, p, chi2, alpha, stream, trials, reuse, df=119)


_RANK_PROBS = (0.2887880950866029, 0.5775761901732058, 0.1336357147401913)


@_diehard_test("ranks_of_matrices")
def ranks_of_matrices(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, matrices: int = 40_000) -> TestResult:
    """GF(2) ranks of 32x32 matrices against their theoretical distribution."""
    name = "ranks_of_matrices"
    stream, trials = _plan(name, bits, reuse, nominal=matrices, bits_per_trial=1024, min_trials=38)
    mats = bits_to_matrices(stream.read(trials * 1024), 32, 32)
    ranks = np.array([gf2_rank(m) for m in mats])
    observed = np.array([
        np.count_nonzero(ranks == 32), np.count_nonzero(ranks == 31), np.count_nonzero(ranks <= 30),
    ])
    expected = trials * np.asarray(_RANK_PROBS)
    chi2 = float(np.sum((observed - expected) ** 2 / expected))
    p = chi2_p_value(chi2, 2)
    return _result(name, p, chi2, alpha, stream, trials, reuse,
                   full_rank=int(observed[0]), rank_31=int(observed[1]), lower_rank=int(observed[2]))


# ═══════════════════════ WORD FREQUENCY TESTS ═══════════════════════

_MONKEY_WIDTH = 10


@_diehard_test("monkey_tests")
def monkey_tests(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, words: int = 200_000) -> TestResult:
    """How often each 10-bit word is typed: per-word counts follow Poisson(N/1024)."""
    name = "monkey_tests"
    stream, trials = _plan(name, bits, reuse, nominal=words, bits_per_trial=_MONKEY_WIDTH, min_trials=5_000)
    cells = 2**_MONKEY_WIDTH
    counts = np.bincount(stream.words(trials, _MONKEY_WIDTH).astype(np.int64), minlength=cells)
    lam = trials / cells
    top = int(max(counts.max(), lam + 10 * sqrt(lam) + 10))
    observed = np.bincount(counts, minlength=top + 1)[: top + 1]
    expected = cells * sp_stats.poisson.pmf(np.arange(top + 1), lam)
    expected[-1] += max(0.0, cells - expected.sum())
    chi2, df = _pooled_chi2(observed, expected)
    p = chi2_p_value(chi2, df)
    missing = int(np.count_nonzero(counts == 0))
    return _result(name, p, chi2, alpha, stream, trials, reuse, df=df, mean=lam, missing_words=missing)


_POPCOUNT = np.array([bin(i).count("1") for i in range(256)], dtype=np.int64)
_LETTER_PROBS = np.array([37, 56, 70, 56, 37], dtype=np.float64) / 256


def _letter_word_chi2(letters: np.ndarray, k: int) -> float:
    n = letters.size
    ext = np.concatenate([letters, letters[: k - 1]])
    codes = np.zeros(n, dtype=np.int64)
    for j in range(k):
        codes = codes * 5 + ext[j:j + n]
    counts = np.bincount(codes, minlength=5**k)
    probs = _LETTER_PROBS
    for _ in range(k - 1):
        probs = np.kron(probs, _LETTER_PROBS)
    expected = n * probs
    return float(np.sum((counts - expected) ** 2 / expected))


@_diehard_test("count_the_ones")
def count_the_ones(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, letters: int = 256_000) -> TestResult:
    """Bytes become letters by their count of ones; five-letter words are tested as Q5 - Q4."""
    name = "count_the_ones"
    stream, trials = _plan(name, bits, reuse, nominal=letters, bits_per_trial=8, min_trials=25_000)
    ones = _POPCOUNT[stream.words(trials, 8).astype(np.int64)]
    seq = np.clip(ones - 2, 0, 4)
    statistic = _letter_word_chi2(seq, 5) - _letter_word_chi2(seq, 4)
    p = chi2_p_value(statistic, 5**5 - 5**4)
    return _result(name, p, statistic, alpha, stream, trials, reuse, df=5**5 - 5**4)


# ═══════════════════════ GEOMETRIC TESTS ═══════════════════════

_PARKING_ATTEMPTS = 12_000
_PARKING_SIDE = 100.0
_PARKING_MEAN = 3523.0
_PARKING_SD = 21.9


@_diehard_test("parking_lot")
def parking_lot(bits: BitSequence, *, alpha: float, reuse: ReusePolicy) -> TestResult:
    """Park unit cars at random in a 100x100 lot; count those that avoid a crash.

    A car crashes when both coordinate distances to a parked car are at most
    1. After 12 000 attempts about 3523 cars are parked (sd 21.9), a figure
    that only holds for the full-size simulation.
    """
    name = "parking_lot"
    stream, trials = _plan(name, bits, reuse, nominal=_PARKING_ATTEMPTS, bits_per_trial=2 * 16, scalable=False)
    coords = (stream.uniforms(2 * trials, 16) * _PARKING_SIDE).reshape(trials, 2)
    lot: dict[tuple[int, int], list[tuple[float, float]]] = {}
    parked = 0
    for x, y in coords.tolist():
        cx, cy = int(x), int(y)
        crashed = any(
            abs(px - x) <= 1.0 and abs(py - y) <= 1.0
            for gx in (cx - 1, cx, cx + 1)
            for gy in (cy - 1, cy, cy + 1)
            for px, py in lot.get((gx, gy), ())
        )
        if not crashed:
            lot.setdefault((cx, cy), []).append((x, y))
            parked += 1
    z = (parked - _PARKING_MEAN) / _PARKING_SD
    p = erfc(abs(z) / sqrt(2))
    return _result(name, p, z, alpha, stream, trials, reuse, parked=parked)


def _min_neighbour_distance(points: np.ndarray) -> float:
    distances, _ = cKDTree(points).query(points, k=2)
    return float(distances[:, 1].min())


@_diehard_test("minimum_distance")
def minimum_distance(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, points: int = 8_000) -> TestResult:
    """Smallest squared distance among random points in a 10000x10000 square.

    For n points the minimum d² is close to exponential with mean
    side² / (π·C(n, 2)); both tails are significant.
    """
    name = "minimum_distance"
    side = 10_000.0
    stream, trials = _plan(name, bits, reuse, nominal=points, bits_per_trial=2 * 32, min_trials=2)
    pts = stream.uniforms(2 * trials, 32).reshape(trials, 2) * side
    d2 = _min_neighbour_distance(pts) ** 2
    mean = side**2 / (pi * comb(trials, 2))
    cdf = 1.0 - exp(-d2 / mean)
    return _result(name, _two_sided(cdf), d2, alpha, stream, trials, reuse, expected_mean=mean)


@_diehard_test("random_spheres")
def random_spheres(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, points: int = 4_000) -> TestResult:
    """Smallest nearest-neighbour distance among random points in a 1000³ cube.

    The cube of that radius is close to exponential with mean
    side³ / ((4π/3)·C(n, 2)).
    """
    name = "random_spheres"
    side = 1_000.0
    stream, trials = _plan(name, bits, reuse, nominal=points, bits_per_trial=3 * 32, min_trials=2)
    pts = stream.uniforms(3 * trials, 32).reshape(trials, 3) * side
    r3 = _min_neighbour_distance(pts) ** 3
    mean = side**3 / (4 * pi / 3 * comb(trials, 2))
    cdf = 1.0 - exp(-r3 / mean)
    return _result(name, _two_sided(cdf), r3, alpha, stream, trials, reuse, expected_mean=mean)


# ═══════════════════════ SIMULATION TESTS ═══════════════════════

_SQUEEZE_START = 2**31
_SQUEEZE_CAP = 48


@functools.lru_cache(maxsize=4)
def squeeze_distribution(start: int = _SQUEEZE_START, cap: int = _SQUEEZE_CAP, exact_below: int = 4096) -> np.ndarray:
    """P(j steps) for k -> ceil(k·U) to fall from *start* to 1; the last cell is P(j ≥ cap).

    Each state m ≤ start is visited independently with probability 1/m (the
    start always), and a visited state holds for a geometric number of
    steps with success (m-1)/m. States above *exact_below* almost never hold,
    so together they contribute a Poisson number of single steps.
    """
    size = cap + 1

    def fold(dist: np.ndarray, pmf: np.ndarray) -> np.ndarray:
        out = np.convolve(dist, pmf)[:size]
        out[-1] += max(0.0, 1.0 - out.sum())
        return out

    def holding(m: int, visit: float) -> np.ndarray:
        g = np.arange(1, size)
        pmf = np.zeros(size)
        pmf[0] = 1.0 - visit
        pmf[1:] = visit * ((m - 1) / m) * (1.0 / m) ** (g - 1)
        return pmf

    dist = np.zeros(size)
    dist[0] = 1.0
    dist = fold(dist, holding(start, 1.0))
    upper = min(exact_below, start - 1)
    for m in range(2, upper + 1):
        dist = fold(dist, holding(m, 1.0 / m))
    if start - 1 > upper:
        euler_gamma = 0.5772156649015329

        def harmonic(n: int) -> float:
            if n < 1000:
                return float(np.sum(1.0 / np.arange(1, n + 1)))
            return float(np.log(n) + euler_gamma + 1 / (2 * n) - 1 / (12 * n * n))

        lam = harmonic(start - 1) - harmonic(upper)
        dist = fold(dist, sp_stats.poisson.pmf(np.arange(size), lam))
    return dist


@_diehard_test("squeeze")
def squeeze(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, trials: int = 100_000) -> TestResult:
    """Steps for k = ceil(k·U), from k = 2³¹, to reach 1 (counts ≥ 48 pooled)."""
    name = "squeeze"
    stream = _variable_stream(bits, reuse, nominal=trials, expected_bits=23 * 32)
    draw = _Draws(stream, 32)
    steps_hist = np.zeros(_SQUEEZE_CAP + 1, dtype=np.int64)
    completed = 0
    try:
        while completed < trials:
            k, steps = _SQUEEZE_START, 0
            while k != 1 and steps < _SQUEEZE_CAP:
                k = ((k * draw()) >> 32) + 1
                steps += 1
            steps_hist[steps] += 1
            completed += 1
    except InsufficientBitsError:
        pass
    _check_completed(reuse, completed, trials, 100, len(bits))
    expected = completed * squeeze_distribution()
    chi2, df = _pooled_chi2(steps_hist, expected)
    p = chi2_p_value(chi2, df)
    mean_steps = float(np.dot(np.arange(_SQUEEZE_CAP + 1), steps_hist) / completed)
    return _result(name, p, chi2, alpha, stream, completed, reuse, df=df, mean_steps=mean_steps)


_SUM_WINDOW = 100
_SUM_WIDTH = 16


@_diehard_test("overlapping_sums")
def overlapping_sums(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, sums: int = 10_000) -> TestResult:
    """Sums of 100 consecutive uniforms are normal with mean 50 and variance 100/12.

    Sums are taken one full window apart so they are independent; the
    Kolmogorov-Smirnov distance is against the exact normal.
    """
    name = "overlapping_sums"
    stream, trials = _plan(name, bits, reuse, nominal=sums, bits_per_trial=_SUM_WINDOW * _SUM_WIDTH, min_trials=10)
    totals = stream.uniforms(trials * _SUM_WINDOW, _SUM_WIDTH).reshape(trials, _SUM_WINDOW).sum(axis=1)
    mu, sigma = _SUM_WINDOW / 2, sqrt(_SUM_WINDOW / 12)
    cdf = np.array([normal_cdf(t, mu, sigma) for t in np.sort(totals).tolist()])
    i = np.arange(1, trials + 1)
    d = float(max(np.max(i / trials - cdf), np.max(cdf - (i - 1) / trials)))
    scaled = sqrt(trials) * d
    p = kolmogorov_smirnov_p_value(scaled)
    return _result(name, p, scaled, alpha, stream, trials, reuse, ks_distance=d)


@_diehard_test("runs")
def runs(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, numbers: int = 100_000) -> TestResult:
    """Runs up and down in a sequence of 32-bit numbers."""
    name = "runs"
    stream, trials = _plan(name, bits, reuse, nominal=numbers, bits_per_trial=32, min_trials=100)
    values = stream.words(trials, 32).astype(np.int64)
    direction = np.sign(np.diff(values))
    direction = direction[direction != 0]
    if direction.size:
        turns = np.flatnonzero(direction[1:] != direction[:-1])
        total = 1 + turns.size
        starts = np.concatenate([[0], turns + 1])
        up = int(np.count_nonzero(direction[starts] > 0))
    else:
        total = up = 0
    mean = (2 * trials - 1) / 3
    var = (16 * trials - 29) / 90
    z = (total - mean) / sqrt(var)
    p = erfc(abs(z) / sqrt(2))
    return _result(name, p, z, alpha, stream, trials, reuse, runs=total, runs_up=up,
                   runs_down=total - up, expected_runs=mean)


_CRAPS_WIN = 244 / 495
_CRAPS_THROW_CAP = 21


@functools.lru_cache(maxsize=1)
def craps_throw_distribution(cap: int = _CRAPS_THROW_CAP) -> np.ndarray:
    """P(a game lasts t throws) for t = 1..cap-1, and P(t ≥ cap) in the last cell; index 0 unused."""
    ways = {s: 6 - abs(7 - s) for s in range(2, 13)}
    dist = np.zeros(cap + 1)
    dist[1] = 12 / 36
    for t in range(2, cap):
        dist[t] = sum(
            (ways[pt] / 36) * (1 - (ways[pt] + 6) / 36) ** (t - 2) * ((ways[pt] + 6) / 36)
            for pt in (4, 5, 6, 8, 9, 10)
        )
    dist[cap] = 1.0 - dist[1:cap].sum()
    return dist


@_diehard_test("craps")
def craps(bits: BitSequence, *, alpha: float, reuse: ReusePolicy, games: int = 200_000) -> TestResult:
    """Play craps; wins and throws per game are compared with their exact laws."""
    name = "craps"
    stream = _variable_stream(bits, reuse, nominal=games, expected_bits=2 * 3.38 * 16)
    word = _Draws(stream, 16)

    def roll() -> int:
        return ((word() * 6) >> 16) + ((word() * 6) >> 16) + 2

    wins = completed = 0
    throws_hist = np.zeros(_CRAPS_THROW_CAP + 1, dtype=np.int64)
    try:
        while completed < games:
            point = roll()
            throws = 1
            if point in (7, 11):
                won = True
            elif point in (2, 3, 12):
                won = False
            else:
                while True:
                    total = roll()
                    throws += 1
                    if total == point:
                        won = True
                        break
                    if total == 7:
                        won = False
                        break
            wins += won
            throws_hist[min(throws, _CRAPS_THROW_CAP)] += 1
            completed += 1
    except InsufficientBitsError:
        pass
    _check_completed(reuse, completed, games, 1_000, len(bits))

    z = (wins - completed * _CRAPS_WIN) / sqrt(completed * _CRAPS_WIN * (1 - _CRAPS_WIN))
    p_wins = erfc(abs(z) / sqrt(2))
    chi2, df = _pooled_chi2(throws_hist[1:], completed * craps_throw_distribution()[1:])
    p_throws = chi2_p_value(chi2, df)
    return _result(name, min(p_wins, p_throws), z, alpha, stream, completed, reuse,
                   wins=wins, p_value_wins=p_wins, p_value_throws=p_throws, throws_df=df)


# ═══════════════════════ REGISTRY ═══════════════════════

_FUNCS = (
    birthday_spacings, overlapping_permutations, ranks_of_matrices, monkey_tests,
    count_the_ones, parking_lot, minimum_distance, random_spheres, squeeze,
    overlapping_sums, runs, craps,
)

DIEHARD_TESTS: dict[str, BatteryTest] = {
    f.__name__: BatteryTest(
        name=f.__name__,
        title=_TITLES[f.__name__],
        func=f,
        min_bits=MIN_BITS[f.__name__],
        reference="DIEHARD",
    )
    for f in _FUNCS
}

ALIASES = {
    "birthdaySpacings": "birthday_spacings",
    "overlappingPermutations": "overlapping_permutations",
    "ranksOfMatrices": "ranks_of_matrices",
    "monkeyTests": "monkey_tests",
    "countTheOnes": "count_the_ones",
    "parkingLot": "parking_lot",
    "minimumDistance": "minimum_distance",
    "randomSpheres": "random_spheres",
    "overlappingSums": "overlapping_sums",
}
