"""Bit sequences and the GF(2) helpers shared by both batteries.

``BitSequence`` is the single input type every test consumes: an immutable
0/1 sequence on top of a read-only ``numpy.uint8`` array, so the batteries
can hand the same object to concurrent workers.
"""

from __future__ import annotations

import enum
import hashlib
import logging
import math
from typing import Iterable, Iterator

import numpy as np

from entropy_battery.errors import InsufficientBitsError, InvalidSampleError

logger = logging.getLogger(__name__)

_MAX_SAMPLE = 2**64


class ConversionPolicy(str, enum.Enum):
    """How integer samples are turned into bits."""

    AUTO = "auto"
    DIRECT = "direct"            # samples are already 0/1
    MINIMAL_WIDTH = "minimal"    # each sample in max(samples).bit_length() bits
    FIXED_32 = "fixed32"         # each sample as a 32-bit big-endian word


# ────────────────────────────────────────────────────────────
# Sample validation and conversion
# ────────────────────────────────────────────────────────────


def _reject(index: int, value: object, why: str) -> InvalidSampleError:
    return InvalidSampleError(f"sample {index} ({value!r}) is {why}", index=index, value=value)


def _validate_objects(items: list) -> np.ndarray:
    out = []
    for i, value in enumerate(items):
        if isinstance(value, (str, bytes)):
            raise _reject(i, value, "not a number")
        try:
            as_float = float(value)
        except (TypeError, ValueError):
            raise _reject(i, value, "not a number") from None
        if not math.isfinite(as_float):
            raise _reject(i, value, "not finite")
        if as_float < 0:
            raise _reject(i, value, "negative")
        if as_float != math.floor(as_float):
            raise _reject(i, value, "not an integer")
        as_int = int(value) if isinstance(value, int) else int(as_float)
        if as_int >= _MAX_SAMPLE:
            raise _reject(i, value, "wider than 64 bits")
        out.append(as_int)
    return np.array(out, dtype=np.uint64)


def validate_samples(samples: Iterable) -> np.ndarray:
    """Check samples are finite non-negative integers; return them as ``uint64``.

    Raises ``InvalidSampleError`` naming the first offending sample.
    """
    if isinstance(samples, (str, bytes)):
        raise InvalidSampleError("samples must be a sequence of integers, not text")
    if not isinstance(samples, np.ndarray):
        samples = list(samples)
    arr = np.asarray(samples)
    if arr.ndim != 1:
        raise InvalidSampleError(f"samples must be one-dimensional, got shape {arr.shape}")
    if arr.size == 0:
        raise InvalidSampleError("no samples")

    kind = arr.dtype.kind
    if kind == "b":
        return arr.astype(np.uint64)
    if kind == "u":
        return arr.astype(np.uint64)
    if kind == "i":
        bad = np.flatnonzero(arr < 0)
        if bad.size:
            raise _reject(int(bad[0]), arr[bad[0]].item(), "negative")
        return arr.astype(np.uint64)
    if kind == "f":
        bad = np.flatnonzero(~np.isfinite(arr))
        if bad.size:
            raise _reject(int(bad[0]), arr[bad[0]].item(), "not finite")
        bad = np.flatnonzero(arr < 0)
        if bad.size:
            raise _reject(int(bad[0]), arr[bad[0]].item(), "negative")
        bad = np.flatnonzero(arr != np.floor(arr))
        if bad.size:
            raise _reject(int(bad[0]), arr[bad[0]].item(), "not an integer")
        if float(arr.max()) >= _MAX_SAMPLE:
            idx = int(np.argmax(arr))
            raise _reject(idx, arr[idx].item(), "wider than 64 bits")
        return arr.astype(np.uint64)
    # mixed input: numpy would have coerced every element to text
    return _validate_objects(list(samples))


def _unpack_width(values: np.ndarray, width: int) -> np.ndarray:
    shifts = np.arange(width - 1, -1, -1, dtype=np.uint64)
    return ((values[:, None] >> shifts) & np.uint64(1)).astype(np.uint8).ravel()


def resolve_policy(values: np.ndarray, policy: ConversionPolicy) -> ConversionPolicy:
    """Pick the concrete policy ``AUTO`` stands for, given validated samples."""
    policy = ConversionPolicy(policy)
    if policy is not ConversionPolicy.AUTO:
        return policy
    top = int(values.max())
    if top <= 1:
        return ConversionPolicy.DIRECT
    if top <= 0xFF:
        return ConversionPolicy.MINIMAL_WIDTH
    return ConversionPolicy.FIXED_32


def samples_to_bits(samples: Iterable, policy: ConversionPolicy = ConversionPolicy.AUTO) -> tuple[np.ndarray, ConversionPolicy]:
    """Validate and convert samples; return the bit array and the policy applied."""
    values = validate_samples(samples)
    policy = resolve_policy(values, policy)
    top = int(values.max())

    if policy is ConversionPolicy.DIRECT:
        if top > 1:
            idx = int(np.argmax(values))
            raise _reject(idx, top, "not a bit (direct conversion takes only 0 and 1)")
        return values.astype(np.uint8), policy
    if policy is ConversionPolicy.MINIMAL_WIDTH:
        return _unpack_width(values, max(1, top.bit_length())), policy
    if top >= 2**32:
        idx = int(np.argmax(values))
        raise _reject(idx, top, "wider than 32 bits")
    raw = np.frombuffer(values.astype(">u4").tobytes(), dtype=np.uint8)
    return np.unpackbits(raw), policy


# ────────────────────────────────────────────────────────────
# BitSequence
# ────────────────────────────────────────────────────────────


def _bit_mask(raw: np.ndarray) -> np.ndarray:
    if raw.dtype.kind == "b":
        return np.ones(raw.shape, dtype=bool)
    if raw.dtype.kind in "iuf":
        return (raw == 0) | (raw == 1)
    return np.array(
        [isinstance(v, (int, float, np.integer, np.floating)) and v in (0, 1) for v in raw.tolist()],
        dtype=bool,
    )


class BitSequence:
    """Immutable sequence of bits.

    Parameters
    ----------
    bits : iterable of 0/1
        Anything ``numpy.asarray`` accepts; every element must be 0 or 1
        (booleans are accepted).
    expanded : bool
        True when the tail of the sequence was synthesised by ``expand_bits``.
    conversion : str
        Name of the conversion policy that produced the bits.
    """

    __slots__ = ("_bits", "_expanded", "_conversion")

    def __init__(self, bits: Iterable | np.ndarray, *, expanded: bool = False, conversion: str = "direct"):
        if isinstance(bits, BitSequence):
            arr = bits._bits
        else:
            if not isinstance(bits, np.ndarray):
                bits = list(bits)
            raw = np.asarray(bits)
            if raw.ndim != 1:
                raise InvalidSampleError(f"bits must be one-dimensional, got shape {raw.shape}")
            ok = _bit_mask(raw)
            if not ok.all():
                idx = int(np.flatnonzero(~ok)[0])
                raise _reject(idx, raw.tolist()[idx], "not a bit")
            arr = raw.astype(np.uint8)
            arr.flags.writeable = False
        object.__setattr__(self, "_bits", arr)
        object.__setattr__(self, "_expanded", bool(expanded))
        object.__setattr__(self, "_conversion", str(conversion))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("BitSequence is immutable")

    # ── constructors ──

    @classmethod
    def from_samples(cls, samples: Iterable, policy: ConversionPolicy = ConversionPolicy.AUTO) -> BitSequence:
        arr, used = samples_to_bits(samples, policy)
        return cls(arr, conversion=used.value)

    @classmethod
    def from_bytes(cls, data: bytes) -> BitSequence:
        """MSB-first bits of raw bytes."""
        return cls(np.unpackbits(np.frombuffer(bytes(data), dtype=np.uint8)), conversion="bytes")

    @classmethod
    def from_string(cls, text: str) -> BitSequence:
        """Bits from ASCII ``0``/``1`` characters; whitespace is ignored."""
        cleaned = "".join(text.split())
        bad = next((i for i, ch in enumerate(cleaned) if ch not in "01"), None)
        if bad is not None:
            raise _reject(bad, cleaned[bad], "not a bit character")
        arr = np.frombuffer(cleaned.encode("ascii"), dtype=np.uint8) - ord("0")
        return cls(arr, conversion="ascii")

    # ── accessors ──

    @property
    def array(self) -> np.ndarray:
        """Read-only ``uint8`` view of the bits."""
        return self._bits

    @property
    def expanded(self) -> bool:
        return self._expanded

    @property
    def conversion(self) -> str:
        return self._conversion

    @property
    def ones(self) -> int:
        return int(np.count_nonzero(self._bits))

    def signs(self) -> np.ndarray:
        """Bits mapped to ±1 as ``int64``."""
        return 2 * self._bits.astype(np.int64) - 1

    def pack(self) -> bytes:
        return np.packbits(self._bits).tobytes()

    def to_string(self) -> str:
        return (self._bits + ord("0")).tobytes().decode("ascii")

    def __len__(self) -> int:
        return int(self._bits.size)

    def __iter__(self) -> Iterator[int]:
        return iter(self._bits.tolist())

    def __getitem__(self, item):
        if isinstance(item, slice):
            return BitSequence(self._bits[item], expanded=self._expanded, conversion=self._conversion)
        return int(self._bits[item])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitSequence):
            return NotImplemented
        return len(self) == len(other) and bool(np.array_equal(self._bits, other._bits))

    def __hash__(self) -> int:
        return hash((len(self), self.pack()))

    def __repr__(self) -> str:
        head = self.to_string()[:32] if len(self) <= 32 else self.to_string()[:32] + "..."
        flag = ", expanded" if self._expanded else ""
        return f"BitSequence({head!r}, n={len(self)}{flag})"


# ────────────────────────────────────────────────────────────
# Expansion
# ────────────────────────────────────────────────────────────


def expand_bits(bits: BitSequence, target_length: int, seed: bytes | None = None) -> BitSequence:
    """Extend *bits* to *target_length* with SHA-256 derived bits.

    Each 256-bit block is ``SHA-256(seed || position || nonce)`` with the
    current length and block counter as 8-byte big-endian integers. The
    default seed is the packed input, so the output depends only on the
    input. The result is flagged ``expanded``; it is no longer a faithful
    sample of the source and reports built on it say so.
    """
    n = len(bits)
    if n >= target_length:
        return bits
    seed = bits.pack() if seed is None else bytes(seed)
    logger.warning("expanding %d bits to %d with hash-derived bits", n, target_length)

    chunks = [bits.array]
    length, nonce = n, 0
    while length < target_length:
        digest = hashlib.sha256(seed + length.to_bytes(8, "big") + nonce.to_bytes(8, "big")).digest()
        block = np.unpackbits(np.frombuffer(digest, dtype=np.uint8))
        take = min(block.size, target_length - length)
        chunks.append(block[:take])
        length += take
        nonce += 1
    return BitSequence(np.concatenate(chunks), expanded=True, conversion=bits.conversion)


# ────────────────────────────────────────────────────────────
# GF(2) algebra
# ────────────────────────────────────────────────────────────


def bits_to_matrices(bits: np.ndarray, rows: int, cols: int) -> np.ndarray:
    """Slice consecutive bits into row-major ``(count, rows, cols)`` matrices."""
    size = rows * cols
    count = len(bits) // size
    return np.asarray(bits[: count * size], dtype=np.uint8).reshape(count, rows, cols)


def gf2_rank(matrix) -> int:
    """Rank of a 0/1 matrix over GF(2) (Gaussian elimination on a copy)."""
    m = np.array(matrix, dtype=bool)
    if m.ndim != 2:
        raise ValueError(f"expected a 2-D matrix, got shape {m.shape}")
    n_rows, n_cols = m.shape
    rank = 0
    for col in range(n_cols):
        if rank == n_rows:
            break
        candidates = np.flatnonzero(m[rank:, col])
        if candidates.size == 0:
            continue
        pivot = rank + int(candidates[0])
        if pivot != rank:
            m[[rank, pivot]] = m[[pivot, rank]]
        below = np.flatnonzero(m[rank + 1:, col]) + rank + 1
        if below.size:
            m[below] ^= m[rank]
        rank += 1
    return rank


def berlekamp_massey(bits) -> int:
    """Linear complexity of a bit sequence (length of the shortest LFSR).

    Connection polynomials are held as Python ints (bit i = coefficient of
    x^i) and the recent history as an int whose bit i is s[N-i], so each
    discrepancy is a parity of ``c & history``.
    """
    seq = bits.array.tolist() if isinstance(bits, BitSequence) else np.asarray(bits, dtype=np.uint8).tolist()
    c = b = 1
    complexity, last_change = 0, -1
    history = 0
    for n, bit in enumerate(seq):
        history = (history << 1) | bit
        if (c & history).bit_count() & 1:
            previous = c
            c ^= b << (n - last_change)
            if 2 * complexity <= n:
                complexity = n + 1 - complexity
                last_change = n
                b = previous
    return complexity


# ────────────────────────────────────────────────────────────
# Permutations
# ────────────────────────────────────────────────────────────


def permutation_index(values) -> int:
    """Lehmer-code index in [0, k!) of the relative order of *values*.

    Equal values are ordered by position.
    """
    vals = list(values)
    k = len(vals)
    index = 0
    for i in range(k):
        smaller = sum(1 for j in range(i + 1, k) if vals[j] < vals[i])
        index += smaller * math.factorial(k - 1 - i)
    return index


def permutation_indices(windows: np.ndarray) -> np.ndarray:
    """Row-wise ``permutation_index`` for a ``(count, k)`` array."""
    windows = np.asarray(windows)
    count, k = windows.shape
    index = np.zeros(count, dtype=np.int64)
    for i in range(k - 1):
        smaller = (windows[:, i + 1:] < windows[:, i:i + 1]).sum(axis=1)
        index += smaller * math.factorial(k - 1 - i)
    return index


# ────────────────────────────────────────────────────────────
# Sequential reader for simulations
# ────────────────────────────────────────────────────────────


class BitStream:
    """Read fixed-width unsigned words from a ``BitSequence`` in order.

    With ``wrap=True`` reads past the end continue from the start of the
    sequence; otherwise they raise ``InsufficientBitsError``. The amount of
    reuse is reported by ``reuse_factor``.
    """

    def __init__(self, bits: BitSequence, wrap: bool = False):
        self._bits = bits.array
        self._n = len(bits)
        self._consumed = 0
        self.wrap = wrap

    @property
    def consumed(self) -> int:
        return self._consumed

    @property
    def remaining(self) -> int:
        return max(0, self._n - self._consumed)

    @property
    def reuse_factor(self) -> float:
        return self._consumed / self._n if self._n else 0.0

    @property
    def wrapped(self) -> bool:
        return self._consumed > self._n

    def capacity(self, width: int) -> int:
        """Words of *width* bits still available without reuse."""
        return self.remaining // width

    def read(self, count: int) -> np.ndarray:
        start = self._consumed
        if start + count <= self._n:
            out = self._bits[start:start + count]
        elif not self.wrap or self._n == 0:
            raise InsufficientBitsError(count, self.remaining)
        else:
            out = self._bits[(start + np.arange(count)) % self._n]
        self._consumed += count
        return out

    def words(self, count: int, width: int) -> np.ndarray:
        """*count* unsigned integers of *width* (≤ 32) bits, MSB first."""
        chunk = self.read(count * width).reshape(count, width).astype(np.uint64)
        weights = np.uint64(1) << np.arange(width - 1, -1, -1, dtype=np.uint64)
        return chunk @ weights

    def uniforms(self, count: int, width: int = 32) -> np.ndarray:
        """*count* floats in (0, 1) from *width*-bit words."""
        return (self.words(count, width).astype(np.float64) + 0.5) / float(2**width)
