"""NIST SP 800-22 statistical test suite.

Fifteen tests, each a pure function of a ``BitSequence`` returning a
``TestResult``. Sequences shorter than a test's minimum are skipped, never
failed. Section numbers refer to NIST SP 800-22 rev. 1a.
"""

from __future__ import annotations

from math import ceil, exp, floor, log, log2, sqrt

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.fft import fft

from entropy_battery.bits import BitSequence, berlekamp_massey, bits_to_matrices, gf2_rank
from entropy_battery.results import ALPHA, BatteryTest, TestResult, insufficient
from entropy_battery.special import erfc, igamc, normal_cdf

DEFAULT_TEMPLATE = (0, 0, 0, 0, 0, 0, 0, 0, 1)

_TITLES = {
    "frequency": ("Frequency (Monobit) Test", "SP 800-22 §2.1"),
    "block_frequency": ("Frequency Test within a Block", "SP 800-22 §2.2"),
    "runs": ("Runs Test", "SP 800-22 §2.3"),
    "longest_run": ("Test for the Longest Run of Ones in a Block", "SP 800-22 §2.4"),
    "matrix_rank": ("Binary Matrix Rank Test", "SP 800-22 §2.5"),
    "spectral": ("Discrete Fourier Transform (Spectral) Test", "SP 800-22 §2.6"),
    "non_overlapping_template": ("Non-overlapping Template Matching Test", "SP 800-22 §2.7"),
    "overlapping_template": ("Overlapping Template Matching Test", "SP 800-22 §2.8"),
    "universal": ("Maurer's Universal Statistical Test", "SP 800-22 §2.9"),
    "linear_complexity": ("Linear Complexity Test", "SP 800-22 §2.10"),
    "serial": ("Serial Test", "SP 800-22 §2.11"),
    "approximate_entropy": ("Approximate Entropy Test", "SP 800-22 §2.12"),
    "cumulative_sums": ("Cumulative Sums (Cusum) Test", "SP 800-22 §2.13"),
    "random_excursions": ("Random Excursions Test", "SP 800-22 §2.14"),
    "random_excursions_variant": ("Random Excursions Variant Test", "SP 800-22 §2.15"),
}

MIN_BITS = {
    "frequency": 100,
    "block_frequency": 100,
    "runs": 100,
    "longest_run": 128,
    "matrix_rank": 1024,
    "spectral": 1000,
    "non_overlapping_template": 1000,
    "overlapping_template": 1000,
    "universal": 1000,
    "linear_complexity": 1000,
    "serial": 1000,
    "approximate_entropy": 1000,
    "cumulative_sums": 100,
    "random_excursions": 1000,
    "random_excursions_variant": 1000,
}


def _describe(name: str) -> str:
    title, ref = _TITLES[name]
    return f"{title} ({ref})"


def _bits(bits) -> np.ndarray:
    if not isinstance(bits, BitSequence):
        bits = BitSequence(bits)
    return bits.array


def _skip_short(name: str, n: int, alpha: float) -> TestResult | None:
    if n < MIN_BITS[name]:
        return insufficient(name, MIN_BITS[name], n, description=_describe(name), alpha=alpha)
    return None


def _result(name: str, p: float, statistic: float | None, alpha: float, **diagnostics) -> TestResult:
    return TestResult.evaluated(name, p, statistic, alpha=alpha, description=_describe(name), **diagnostics)


def _chi2(observed: np.ndarray, expected: np.ndarray) -> float:
    observed = np.asarray(observed, dtype=np.float64)
    expected = np.asarray(expected, dtype=np.float64)
    return float(np.sum((observed - expected) ** 2 / expected))


# ═══════════════════════ FREQUENCY TESTS ═══════════════════════


def frequency(bits, *, alpha: float = ALPHA) -> TestResult:
    """Proportion of ones across the whole sequence."""
    name = "frequency"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    s = 2 * int(np.count_nonzero(eps)) - n
    s_obs = abs(s) / sqrt(n)
    p = erfc(s_obs / sqrt(2))
    return _result(name, p, s_obs, alpha, sum=s, n=n)


def block_frequency(bits, *, block_size: int | None = None, alpha: float = ALPHA) -> TestResult:
    """Proportion of ones within M-bit blocks.

    The default block size follows the NIST recommendations (M ≥ 20,
    M > 0.01n, fewer than 100 blocks).
    """
    name = "block_frequency"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    m = block_size or max(20, n // 100 + 1)
    num_blocks = n // m
    if num_blocks == 0:
        return TestResult.skipped(name, f"block size {m} exceeds sequence length {n}",
                                  description=_describe(name), alpha=alpha)
    blocks = eps[: num_blocks * m].reshape(num_blocks, m)
    proportions = blocks.mean(axis=1)
    chi2 = 4.0 * m * float(np.sum((proportions - 0.5) ** 2))
    p = igamc(num_blocks / 2, chi2 / 2)
    return _result(name, p, chi2, alpha, block_size=m, blocks=num_blocks)


# ═══════════════════════ RUNS TESTS ═══════════════════════


def runs(bits, *, alpha: float = ALPHA) -> TestResult:
    """Number of uninterrupted runs of identical bits.

    When the frequency prerequisite fails the runs test is not applicable
    and the sequence is failed outright with p = 0.
    """
    name = "runs"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    pi = np.count_nonzero(eps) / n
    tau = 2 / sqrt(n)
    if abs(pi - 0.5) >= tau:
        return _result(name, 0.0, None, alpha, proportion=pi, precondition_failed=True)
    v_obs = 1 + int(np.count_nonzero(eps[1:] != eps[:-1]))
    num = abs(v_obs - 2 * n * pi * (1 - pi))
    den = 2 * sqrt(2 * n) * pi * (1 - pi)
    p = erfc(num / den)
    return _result(name, p, v_obs, alpha, proportion=pi, runs=v_obs)


# (block size, first class upper bound, class probabilities)
_LONGEST_RUN_TABLE = (
    (6272, 8, 1, (0.21484375, 0.3671875, 0.23046875, 0.1875)),
    (750000, 128, 4, (0.1174035788, 0.242955959, 0.249363483, 0.17517706, 0.102701071, 0.112398847)),
    (None, 10000, 10, (0.0882, 0.2092, 0.2483, 0.1933, 0.1208, 0.0675, 0.0727)),
)


def _longest_ones(blocks: np.ndarray) -> np.ndarray:
    """Longest run of ones in each row."""
    rows, width = blocks.shape
    padded = np.zeros((rows, width + 2), dtype=np.int8)
    padded[:, 1:-1] = blocks
    edges = np.diff(padded, axis=1)
    starts = np.argwhere(edges == 1)
    ends = np.argwhere(edges == -1)
    longest = np.zeros(rows, dtype=np.int64)
    np.maximum.at(longest, starts[:, 0], ends[:, 1] - starts[:, 1])
    return longest


def longest_run(bits, *, alpha: float = ALPHA) -> TestResult:
    """Longest run of ones within M-bit blocks."""
    name = "longest_run"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    for limit, m, v_min, probs in _LONGEST_RUN_TABLE:
        if limit is None or n < limit:
            break
    k = len(probs) - 1
    num_blocks = n // m
    longest = _longest_ones(eps[: num_blocks * m].reshape(num_blocks, m))
    classes = np.clip(longest - v_min, 0, k)
    observed = np.bincount(classes, minlength=k + 1)
    chi2 = _chi2(observed, num_blocks * np.asarray(probs))
    p = igamc(k / 2, chi2 / 2)
    return _result(name, p, chi2, alpha, block_size=m, blocks=num_blocks)


# ═══════════════════════ MATRIX / SPECTRAL ═══════════════════════

# probability that a random 32x32 GF(2) matrix has rank 32, 31, <=30
_RANK_PROBS = (0.2887880950866029, 0.5775761901732058, 0.1336357147401913)


def matrix_rank(bits, *, alpha: float = ALPHA) -> TestResult:
    """Rank distribution of disjoint 32x32 binary matrices."""
    name = "matrix_rank"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    matrices = bits_to_matrices(eps, 32, 32)
    num = len(matrices)
    ranks = np.array([gf2_rank(mat) for mat in matrices])
    full = int(np.count_nonzero(ranks == 32))
    full_minus_one = int(np.count_nonzero(ranks == 31))
    rest = num - full - full_minus_one
    chi2 = _chi2([full, full_minus_one, rest], num * np.asarray(_RANK_PROBS))
    p = exp(-chi2 / 2)
    return _result(name, p, chi2, alpha, matrices=num, full_rank=full,
                   rank_31=full_minus_one, lower_rank=rest)


def spectral(bits, *, alpha: float = ALPHA) -> TestResult:
    """Peaks in the DFT of the ±1 sequence beyond the 95% threshold."""
    name = "spectral"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    x = 2.0 * eps.astype(np.float64) - 1.0
    modulus = np.abs(fft(x))[: n // 2]
    threshold = sqrt(log(1 / 0.05) * n)
    n0 = 0.95 * n / 2
    n1 = int(np.count_nonzero(modulus < threshold))
    d = (n1 - n0) / sqrt(n * 0.95 * 0.05 / 4)
    p = erfc(abs(d) / sqrt(2))
    return _result(name, p, d, alpha, peaks_below=n1, expected_below=n0, threshold=threshold)


# ═══════════════════════ TEMPLATE MATCHING ═══════════════════════


def _template(template) -> np.ndarray:
    tpl = np.asarray(template, dtype=np.uint8)
    if tpl.ndim != 1 or tpl.size == 0 or not np.isin(tpl, (0, 1)).all():
        raise ValueError(f"template must be a non-empty 0/1 sequence, got {template!r}")
    return tpl


def _match_positions(eps: np.ndarray, tpl: np.ndarray) -> np.ndarray:
    if eps.size < tpl.size:
        return np.empty(0, dtype=np.int64)
    windows = sliding_window_view(eps, tpl.size)
    return np.flatnonzero((windows == tpl).all(axis=1))


def _count_non_overlapping(eps: np.ndarray, tpl: np.ndarray) -> int:
    count, next_free = 0, 0
    for pos in _match_positions(eps, tpl).tolist():
        if pos >= next_free:
            count += 1
            next_free = pos + tpl.size
    return count


def non_overlapping_template(bits, *, template=DEFAULT_TEMPLATE, blocks: int = 8,
                             alpha: float = ALPHA) -> TestResult:
    """Occurrences of an aperiodic template, scanning past each match."""
    name = "non_overlapping_template"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    tpl = _template(template)
    m = tpl.size
    block_len = n // blocks
    if block_len < m:
        return TestResult.skipped(name, f"blocks of {block_len} bits are shorter than the template",
                                  description=_describe(name), alpha=alpha)
    mu = (block_len - m + 1) / 2**m
    var = block_len * (1 / 2**m - (2 * m - 1) / 2 ** (2 * m))
    counts = np.array([
        _count_non_overlapping(eps[j * block_len:(j + 1) * block_len], tpl) for j in range(blocks)
    ])
    chi2 = float(np.sum((counts - mu) ** 2 / var))
    p = igamc(blocks / 2, chi2 / 2)
    return _result(name, p, chi2, alpha, template="".join(map(str, tpl.tolist())),
                   blocks=blocks, mean=mu, variance=var)


def overlapping_template(bits, *, template=DEFAULT_TEMPLATE, alpha: float = ALPHA) -> TestResult:
    """Overlapping occurrences of the template across the whole sequence.

    Mean and variance are those of an aperiodic template, so the default
    ``000000001`` is the right kind of template here.
    """
    name = "overlapping_template"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    tpl = _template(template)
    m = tpl.size
    positions = n - m + 1
    observed = int(_match_positions(eps, tpl).size)
    mu = positions / 2**m
    var = positions * (1 / 2**m - (2 * m - 1) / 2 ** (2 * m))
    chi2 = (observed - mu) ** 2 / var
    p = igamc(0.5, chi2 / 2)
    return _result(name, p, chi2, alpha, template="".join(map(str, tpl.tolist())),
                   matches=observed, mean=mu, variance=var)


# ═══════════════════════ COMPRESSION / COMPLEXITY ═══════════════════════

_UNIVERSAL_EXPECTED = (
    0.0, 0.7326495, 1.5374383, 2.4016068, 3.3112247, 4.2534266, 5.2177052, 6.1962507,
    7.1836656, 8.1764248, 9.1723243, 10.170032, 11.168765, 12.168070, 13.167693,
    14.167488, 15.167379,
)
_UNIVERSAL_VARIANCE = (
    0.0, 0.690, 1.338, 1.901, 2.358, 2.705, 2.954, 3.125, 3.238, 3.311, 3.356, 3.384,
    3.401, 3.410, 3.416, 3.419, 3.421,
)


_UNIVERSAL_MIN_LENGTH = 6


def _universal_block_length(n: int) -> int | None:
    # NIST sizing: Q = 10·2^L initialisation blocks and about 1000·2^L test blocks;
    # the reference tables hold for L = 6..16 only
    for length in range(16, _UNIVERSAL_MIN_LENGTH - 1, -1):
        if n >= length * (10 + 1000) * 2**length:
            return length
    return None


_UNIVERSAL_MIN_BITS = _UNIVERSAL_MIN_LENGTH * (10 + 1000) * 2**_UNIVERSAL_MIN_LENGTH


def universal(bits, *, alpha: float = ALPHA) -> TestResult:
    """Maurer's universal test: distance between repeated L-bit patterns."""
    name = "universal"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    length = _universal_block_length(n)
    if length is None:
        return TestResult.skipped(
            name, f"insufficient bits for block length L>={_UNIVERSAL_MIN_LENGTH}: need >={_UNIVERSAL_MIN_BITS}, have {n}",
            description=_describe(name), alpha=alpha, required_bits=_UNIVERSAL_MIN_BITS,
        )
    q = 10 * 2**length
    k = n // length - q
    weights = 1 << np.arange(length - 1, -1, -1, dtype=np.int64)
    values = eps[: (q + k) * length].reshape(q + k, length).astype(np.int64) @ weights

    # index of the previous block with the same value, -1 if none
    order = np.argsort(values, kind="stable")
    same = values[order[1:]] == values[order[:-1]]
    previous = np.full(q + k, -1, dtype=np.int64)
    previous[order[1:][same]] = order[:-1][same]
    distance = np.arange(q, q + k) - previous[q:]
    fn = float(np.mean(np.log2(distance)))

    c = 0.7 - 0.8 / length + (4 + 32 / length) * k ** (-3 / length) / 15
    sigma = c * sqrt(_UNIVERSAL_VARIANCE[length] / k)
    expected = _UNIVERSAL_EXPECTED[length]
    p = erfc(abs(fn - expected) / (sqrt(2) * sigma))
    return _result(name, p, fn, alpha, block_length=length, init_blocks=q, test_blocks=k,
                   expected=expected, sigma=sigma)


_LINEAR_COMPLEXITY_PROBS = (0.010417, 0.03125, 0.125, 0.5, 0.25, 0.0625, 0.020833)
_LINEAR_COMPLEXITY_EDGES = (-2.5, -1.5, -0.5, 0.5, 1.5, 2.5)


def linear_complexity(bits, *, block_size: int = 500, alpha: float = ALPHA) -> TestResult:
    """Berlekamp-Massey linear complexity of M-bit blocks."""
    name = "linear_complexity"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    m = block_size
    num_blocks = n // m
    if num_blocks == 0:
        return TestResult.skipped(name, f"block size {m} exceeds sequence length {n}",
                                  description=_describe(name), alpha=alpha)
    mu = m / 2 + (9 + (-1) ** (m + 1)) / 36 - (m / 3 + 2 / 9) / 2**m
    complexity = np.array([berlekamp_massey(eps[i * m:(i + 1) * m]) for i in range(num_blocks)])
    t = (-1) ** m * (complexity - mu) + 2 / 9
    classes = np.searchsorted(_LINEAR_COMPLEXITY_EDGES, t, side="left")
    observed = np.bincount(classes, minlength=7)
    chi2 = _chi2(observed, num_blocks * np.asarray(_LINEAR_COMPLEXITY_PROBS))
    p = igamc(3, chi2 / 2)
    return _result(name, p, chi2, alpha, block_size=m, blocks=num_blocks, mean=mu)


# ═══════════════════════ PATTERN FREQUENCY ═══════════════════════


def _cyclic_counts(eps: np.ndarray, m: int) -> np.ndarray:
    """Counts of each m-bit pattern over n overlapping windows with wrap-around."""
    n = eps.size
    ext = np.concatenate([eps, eps[: m - 1]]).astype(np.int64)
    values = np.zeros(n, dtype=np.int64)
    for j in range(m):
        values = (values << 1) | ext[j:j + n]
    return np.bincount(values, minlength=2**m)


def _psi_squared(eps: np.ndarray, m: int) -> float:
    if m <= 0:
        return 0.0
    n = eps.size
    counts = _cyclic_counts(eps, m).astype(np.float64)
    return float(2**m / n * np.sum(counts**2) - n)


def serial(bits, *, m: int | None = None, alpha: float = ALPHA) -> TestResult:
    """Uniformity of overlapping m-bit patterns (two p-values, the smaller reported)."""
    name = "serial"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    m = m or max(2, min(16, floor(log2(n)) - 3))
    psi_m = _psi_squared(eps, m)
    psi_m1 = _psi_squared(eps, m - 1)
    psi_m2 = _psi_squared(eps, m - 2)
    delta1 = psi_m - psi_m1
    delta2 = psi_m - 2 * psi_m1 + psi_m2
    p1 = igamc(2 ** (m - 2), delta1 / 2)
    p2 = igamc(2 ** (m - 3), delta2 / 2)
    return _result(name, min(p1, p2), delta1, alpha, m=m, p_value_1=p1, p_value_2=p2,
                   delta_psi2=delta1, delta2_psi2=delta2)


def _phi(eps: np.ndarray, m: int) -> float:
    if m <= 0:
        return 0.0
    counts = _cyclic_counts(eps, m)
    freq = counts[counts > 0] / eps.size
    return float(np.sum(freq * np.log(freq)))


def approximate_entropy(bits, *, m: int | None = None, alpha: float = ALPHA) -> TestResult:
    """Frequency of overlapping m-bit versus (m+1)-bit patterns."""
    name = "approximate_entropy"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    m = m or max(1, min(10, floor(log2(n)) - 6))
    apen = _phi(eps, m) - _phi(eps, m + 1)
    chi2 = 2 * n * (log(2) - apen)
    p = igamc(2 ** (m - 1), chi2 / 2)
    return _result(name, p, chi2, alpha, m=m, apen=apen)


# ═══════════════════════ RANDOM WALK TESTS ═══════════════════════


def _cusum_p_value(n: int, z: int) -> float:
    sqrt_n = sqrt(n)
    total = 1.0
    for k in range(floor((-n / z + 1) / 4), floor((n / z - 1) / 4) + 1):
        total -= normal_cdf((4 * k + 1) * z / sqrt_n) - normal_cdf((4 * k - 1) * z / sqrt_n)
    for k in range(floor((-n / z - 3) / 4), floor((n / z - 1) / 4) + 1):
        total += normal_cdf((4 * k + 3) * z / sqrt_n) - normal_cdf((4 * k + 1) * z / sqrt_n)
    return total


def cumulative_sums(bits, *, alpha: float = ALPHA) -> TestResult:
    """Maximal excursion of the ±1 random walk, forward and backward."""
    name = "cumulative_sums"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    x = 2 * eps.astype(np.int64) - 1
    z_forward = int(np.max(np.abs(np.cumsum(x))))
    z_backward = int(np.max(np.abs(np.cumsum(x[::-1]))))
    p_forward = _cusum_p_value(n, z_forward)
    p_backward = _cusum_p_value(n, z_backward)
    return _result(name, min(p_forward, p_backward), max(z_forward, z_backward), alpha,
                   z_forward=z_forward, z_backward=z_backward,
                   p_value_forward=p_forward, p_value_backward=p_backward)


def _walk(eps: np.ndarray) -> tuple[np.ndarray, int]:
    """Random walk ``0, S_1..S_n`` closed with a trailing 0, and its cycle count."""
    s = np.cumsum(2 * eps.astype(np.int64) - 1)
    tail = [0] if s[-1] != 0 else []
    walk = np.concatenate([[0], s, tail]).astype(np.int64)
    cycles = int(np.count_nonzero(walk == 0)) - 1
    return walk, cycles


def _excursion_probs(state: int) -> np.ndarray:
    """P(a cycle visits *state* exactly k times), k = 0..4 and ≥5."""
    a = 1 / (2 * abs(state))
    probs = [1 - a]
    probs += [(1 / (4 * state * state)) * (1 - a) ** (k - 1) for k in range(1, 5)]
    probs.append(a * (1 - a) ** 4)
    return np.asarray(probs)


def _min_cycles(n: int, min_cycles: int | None) -> int:
    if min_cycles is not None:
        return max(1, min_cycles)
    return max(500, ceil(0.005 * sqrt(n)))


def _few_cycles(name: str, cycles: int, needed: int, alpha: float) -> TestResult:
    return TestResult.skipped(name, f"insufficient cycles: need >={needed}, have {cycles}",
                              description=_describe(name), alpha=alpha, cycles=cycles, required_cycles=needed)


def random_excursions(bits, *, alpha: float = ALPHA, min_cycles: int | None = None) -> TestResult:
    """Visits to states ±1..±4 per zero-to-zero cycle of the random walk.

    The χ² reference law needs at least ``max(500, 0.005·√n)`` cycles; with
    fewer the test is skipped. *min_cycles* overrides that floor.
    """
    name = "random_excursions"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    walk, cycles = _walk(eps)
    if cycles == 0:
        return _result(name, 0.0, None, alpha, cycles=0, precondition_failed=True)
    needed = _min_cycles(n, min_cycles)
    if cycles < needed:
        return _few_cycles(name, cycles, needed, alpha)

    cycle_id = (np.cumsum(walk == 0) - 1)[:-1]
    body = walk[:-1]
    p_values = {}
    worst_chi2 = 0.0
    for state in (-4, -3, -2, -1, 1, 2, 3, 4):
        visits = np.bincount(cycle_id[body == state], minlength=cycles)
        observed = np.bincount(np.minimum(visits, 5), minlength=6)
        chi2 = _chi2(observed, cycles * _excursion_probs(state))
        p_values[state] = igamc(2.5, chi2 / 2)
        worst_chi2 = max(worst_chi2, chi2)
    diagnostics = {f"p_{state:+d}": p for state, p in p_values.items()}
    return _result(name, min(p_values.values()), worst_chi2, alpha, cycles=cycles, **diagnostics)


def _variant_statistic(visits: int, cycles: int, state: int) -> float:
    """χ² with one degree of freedom for the total visits to *state*."""
    return (visits - cycles) ** 2 / (cycles * (4 * abs(state) - 2))


def random_excursions_variant(bits, *, alpha: float = ALPHA, min_cycles: int | None = None) -> TestResult:
    """Total visits to states ±1..±9 across all cycles of the random walk.

    ``igamc(1/2, χ²/2)`` here is ``erfc(|ξ − J| / √(2J(4|x| − 2)))``.
    """
    name = "random_excursions_variant"
    eps = _bits(bits)
    n = eps.size
    if (skip := _skip_short(name, n, alpha)) is not None:
        return skip
    walk, cycles = _walk(eps)
    if cycles == 0:
        return _result(name, 0.0, None, alpha, cycles=0, precondition_failed=True)
    needed = _min_cycles(n, min_cycles)
    if cycles < needed:
        return _few_cycles(name, cycles, needed, alpha)

    p_values = {}
    worst_chi2 = 0.0
    for state in (*range(-9, 0), *range(1, 10)):
        visits = int(np.count_nonzero(walk == state))
        chi2 = _variant_statistic(visits, cycles, state)
        p_values[state] = igamc(0.5, chi2 / 2)
        worst_chi2 = max(worst_chi2, chi2)
    diagnostics = {f"p_{state:+d}": p for state, p in p_values.items()}
    return _result(name, min(p_values.values()), worst_chi2, alpha, cycles=cycles, **diagnostics)


# ═══════════════════════ REGISTRY ═══════════════════════

_FUNCS = (
    frequency, block_frequency, runs, longest_run, matrix_rank, spectral,
    non_overlapping_template, overlapping_template, universal, linear_complexity,
    serial, approximate_entropy, cumulative_sums, random_excursions,
    random_excursions_variant,
)

NIST_TESTS: dict[str, BatteryTest] = {
    f.__name__: BatteryTest(
        name=f.__name__,
        title=_TITLES[f.__name__][0],
        func=f,
        min_bits=MIN_BITS[f.__name__],
        reference=_TITLES[f.__name__][1],
    )
    for f in _FUNCS
}

QUICK_TESTS = ("frequency", "block_frequency", "runs", "longest_run", "matrix_rank", "spectral")

# names used by the HTTP front end
ALIASES = {
    "monobit": "frequency",
    "blockFrequency": "block_frequency",
    "longestRun": "longest_run",
    "matrixRank": "matrix_rank",
    "dft": "spectral",
    "nonOverlappingTemplate": "non_overlapping_template",
    "overlappingTemplate": "overlapping_template",
    "maurerUniversal": "universal",
    "linearComplexity": "linear_complexity",
    "approximateEntropy": "approximate_entropy",
    "cumulativeSums": "cumulative_sums",
    "randomExcursions": "random_excursions",
    "randomExcursionsVariant": "random_excursions_variant",
}
