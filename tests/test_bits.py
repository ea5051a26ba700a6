"""Tests for bit sequences, conversion and GF(2) helpers."""

import itertools
import math

import numpy as np
import pytest

from entropy_battery.bits import (
    BitSequence,
    BitStream,
    ConversionPolicy,
    berlekamp_massey,
    bits_to_matrices,
    expand_bits,
    gf2_rank,
    permutation_index,
    permutation_indices,
    validate_samples,
)
from entropy_battery.errors import InsufficientBitsError, InvalidSampleError


class TestBitSequence:
    def test_accepts_bits_and_bools(self):
        assert BitSequence([0, 1, 1]).to_string() == "011"
        assert BitSequence([True, False]).to_string() == "10"
        assert len(BitSequence([])) == 0

    def test_rejects_non_bits(self):
        with pytest.raises(InvalidSampleError) as exc:
            BitSequence([0, 1, 2, 1])
        assert exc.value.index == 2
        with pytest.raises(InvalidSampleError):
            BitSequence(["0", "1"])

    def test_immutable(self):
        seq = BitSequence([0, 1])
        with pytest.raises(AttributeError):
            seq.expanded = True
        with pytest.raises(ValueError):
            seq.array[0] = 1

    def test_source_array_not_shared(self):
        raw = np.array([0, 1, 0], dtype=np.uint8)
        seq = BitSequence(raw)
        raw[0] = 1
        assert seq[0] == 0

    def test_slicing_and_equality(self):
        seq = BitSequence([1, 0, 1, 1])
        assert seq[1:3] == BitSequence([0, 1])
        assert seq[-1] == 1
        assert list(seq) == [1, 0, 1, 1]
        assert seq.ones == 3

    def test_from_bytes_is_msb_first(self):
        assert BitSequence.from_bytes(b"\x80\x01").to_string() == "1000000000000001"

    def test_from_string(self):
        assert BitSequence.from_string(" 01\n10 ").to_string() == "0110"
        with pytest.raises(InvalidSampleError):
            BitSequence.from_string("012")


class TestValidation:
    @pytest.mark.parametrize("bad,index", [
        ([1, 2, -3], 2),
        ([1.0, math.nan], 1),
        ([math.inf], 0),
        ([1, 2.5], 1),
        ([1, "a"], 1),
    ])
    def test_rejects(self, bad, index):
        with pytest.raises(InvalidSampleError) as exc:
            validate_samples(bad)
        assert exc.value.index == index

    def test_rejects_empty_and_text(self):
        with pytest.raises(InvalidSampleError):
            validate_samples([])
        with pytest.raises(InvalidSampleError):
            validate_samples("0101")

    def test_integral_floats_accepted(self):
        assert validate_samples([3.0, 4.0]).tolist() == [3, 4]

    def test_invalid_sample_is_value_error(self):
        with pytest.raises(ValueError):
            validate_samples([-1])


class TestConversion:
    def test_auto_direct(self):
        seq = BitSequence.from_samples([0, 1, 1, 0])
        assert seq.to_string() == "0110"
        assert seq.conversion == "direct"

    def test_auto_minimal_width(self):
        seq = BitSequence.from_samples([1, 2, 3])
        assert seq.to_string() == "011011"
        assert seq.conversion == "minimal"

    def test_auto_byte_width(self):
        assert len(BitSequence.from_samples([3, 5, 200])) == 24

    def test_auto_fixed_32(self):
        seq = BitSequence.from_samples([256, 1])
        assert len(seq) == 64
        assert seq.to_string()[:32] == "00000000000000000000000100000000"
        assert seq.conversion == "fixed32"

    def test_fixed_32_rejects_wide_values(self):
        with pytest.raises(InvalidSampleError):
            BitSequence.from_samples([2**32])

    def test_explicit_policy(self):
        assert len(BitSequence.from_samples([1, 0], ConversionPolicy.FIXED_32)) == 64
        with pytest.raises(InvalidSampleError):
            BitSequence.from_samples([0, 2], ConversionPolicy.DIRECT)

    def test_numpy_input(self):
        seq = BitSequence.from_samples(np.array([7, 0], dtype=np.int32))
        assert seq.to_string() == "111000"


class TestExpansion:
    def test_extends_and_flags(self, make_bits):
        base = make_bits(100, seed=1)
        out = expand_bits(base, 1000)
        assert len(out) == 1000
        assert out.expanded
        assert out[:100] == base

    def test_deterministic(self, make_bits):
        base = make_bits(100, seed=2)
        assert expand_bits(base, 777) == expand_bits(base, 777)

    def test_seed_changes_output(self, make_bits):
        base = make_bits(100, seed=3)
        assert expand_bits(base, 600, seed=b"a") != expand_bits(base, 600, seed=b"b")

    def test_long_enough_unchanged(self, make_bits):
        base = make_bits(100)
        assert expand_bits(base, 50) is base
        assert not base.expanded


class TestGF2Rank:
    def test_identity(self):
        assert gf2_rank(np.eye(8, dtype=np.uint8)) == 8

    def test_zero(self):
        assert gf2_rank(np.zeros((32, 32), dtype=np.uint8)) == 0

    def test_dependent_rows(self):
        m = np.array([[1, 1, 0], [0, 1, 1], [1, 0, 1]])
        assert gf2_rank(m) == 2

    def test_rectangular(self):
        assert gf2_rank(np.array([[1, 0, 1, 1], [0, 1, 1, 0]])) == 2

    def test_input_untouched(self):
        m = np.array([[1, 1], [1, 1]], dtype=np.uint8)
        gf2_rank(m)
        assert m.tolist() == [[1, 1], [1, 1]]

    def test_bits_to_matrices(self):
        mats = bits_to_matrices(np.arange(20) % 2, 2, 3)
        assert mats.shape == (3, 2, 3)
        assert mats[0].tolist() == [[0, 1, 0], [1, 0, 1]]


def _lfsr(n: int) -> list[int]:
    # x^5 + x^2 + 1
    s = [1, 0, 0, 0, 0]
    while len(s) < n:
        s.append(s[-3] ^ s[-5])
    return s


class TestBerlekampMassey:
    def test_zero_sequence(self):
        assert berlekamp_massey(np.zeros(100, dtype=np.uint8)) == 0
        assert berlekamp_massey([]) == 0

    def test_single_one(self):
        assert berlekamp_massey([1]) == 1
        assert berlekamp_massey([0] * 9 + [1]) == 10

    def test_alternating(self):
        assert berlekamp_massey([0, 1] * 20) == 2

    def test_lfsr_degree(self):
        assert berlekamp_massey(_lfsr(200)) == 5

    def test_random_is_about_half(self, make_bits):
        L = berlekamp_massey(make_bits(500, seed=4))
        assert 245 <= L <= 255


class TestPermutationIndex:
    def test_extremes(self):
        assert permutation_index([1, 2, 3]) == 0
        assert permutation_index([3, 2, 1]) == 5
        assert permutation_index([2, 1, 3]) == 2

    def test_bijective_on_five(self):
        indices = {permutation_index(p) for p in itertools.permutations(range(5))}
        assert indices == set(range(120))

    def test_ties_ordered_by_position(self):
        assert permutation_index([4, 4, 4]) == 0

    def test_vectorised_matches_scalar(self):
        windows = np.random.default_rng(5).integers(0, 1000, size=(50, 5))
        expected = [permutation_index(row) for row in windows.tolist()]
        assert permutation_indices(windows).tolist() == expected


class TestBitStream:
    def test_words(self):
        stream = BitStream(BitSequence.from_string("1010" "0001" "1111"))
        assert stream.words(3, 4).tolist() == [10, 1, 15]
        assert stream.remaining == 0

    def test_capacity(self, make_bits):
        stream = BitStream(make_bits(100))
        assert stream.capacity(32) == 3
        stream.read(40)
        assert stream.capacity(32) == 1

    def test_exhaustion_raises(self, make_bits):
        stream = BitStream(make_bits(64))
        stream.words(2, 16)
        with pytest.raises(InsufficientBitsError):
            stream.words(3, 16)

    def test_wrap_reuses(self):
        stream = BitStream(BitSequence.from_string("1100"), wrap=True)
        assert stream.words(3, 4).tolist() == [12, 12, 12]
        assert stream.wrapped
        assert stream.reuse_factor == 3.0

    def test_uniforms_in_open_interval(self, make_bits):
        u = BitStream(make_bits(3200)).uniforms(100)
        assert u.min() > 0.0 and u.max() < 1.0
