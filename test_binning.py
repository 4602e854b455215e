"""
Tests for Module 3 (Orientation Binning) and the soft-binning voter.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from integral_hog.binning import (Binning, SoftBinning, signed_binning,
                                  unsigned_binning)

DTYPES = [np.float32, np.float64]


@pytest.mark.parametrize('dtype', DTYPES)
@pytest.mark.parametrize('dx, dy, expected', [
    (1, 0, 0.0),
    (-1, 0, 0.0),
    (0, 1, 0.5),
    (0, -1, 0.5),
    (0, 0, 0.0),
    (1, 1, 0.25),
    (-1, 1, 0.75),
])
def test_unsigned_boundaries(dtype, dx, dy, expected):
    weight = unsigned_binning(dtype(dx), dtype(dy))

    assert weight == pytest.approx(expected, abs=1e-6)
    assert not np.signbit(weight)
    assert weight.dtype == np.dtype(dtype)


@pytest.mark.parametrize('dtype', DTYPES)
@pytest.mark.parametrize('dx, dy, expected', [
    (1, 0, 0.0),
    (-1, 0, 0.5),
    (0, 1, 0.25),
    (0, -1, 0.75),
    (0, 0, 0.0),
])
def test_signed_boundaries(dtype, dx, dy, expected):
    weight = signed_binning(dtype(dx), dtype(dy))

    assert weight == pytest.approx(expected, abs=1e-6)
    assert not np.signbit(weight)


@pytest.mark.parametrize('dtype', DTYPES)
@pytest.mark.parametrize('binning', [unsigned_binning, signed_binning])
def test_seam_wraps_to_zero(dtype, binning):
    tiny = np.nextafter(dtype(0), dtype(1))
    assert binning(dtype(1), -tiny) == 0


@pytest.mark.parametrize('binning', [unsigned_binning, signed_binning])
def test_weights_lie_in_unit_interval(binning):
    rng = np.random.default_rng(7)
    dx = rng.normal(size=1000)
    dy = rng.normal(size=1000)
    dx[:10] = 0
    dy[5:15] = 0

    weight = binning(dx, dy)

    assert weight.shape == dx.shape
    assert np.all(weight >= 0)
    assert np.all(weight < 1)


def test_unsigned_binning_has_half_turn_period():
    rng = np.random.default_rng(3)
    dx = rng.normal(size=200)
    dy = rng.normal(size=200)

    assert_allclose(unsigned_binning(dx, dy), unsigned_binning(-dx, -dy))


def test_integer_input_is_promoted():
    assert unsigned_binning(0, 3) == 0.5
    assert signed_binning(-2, 0) == 0.5


def test_binning_lookup():
    assert Binning('signed')(-1.0, 0.0) == 0.5
    assert Binning() == Binning('unsigned')
    assert repr(Binning('signed')) == "Binning('signed')"

    with pytest.raises(ValueError, match='Unknown binning'):
        Binning('octant')


def test_soft_binning_on_a_bin_center():
    voter = SoftBinning(np.array([[0.5]]), np.array([[2.0]]), 9)
    votes = voter.votes()

    expected = np.zeros(9)
    expected[4] = 2.0
    assert_array_equal(votes[0, 0], expected)


def test_soft_binning_splits_between_neighbors():
    voter = SoftBinning(np.array([[0.3]]), np.array([[2.0]]), 5)
    votes = voter.votes()

    # center = 0.3 * 4 = 1.2
    assert_allclose(votes[0, 0], [0.0, 1.6, 0.4, 0.0, 0.0])
    assert votes[0, 0].sum() == pytest.approx(2.0)


def test_last_bin_absorbs_full_weight():
    voter = SoftBinning(np.array([1.0]), np.array([3.0]), 9)
    votes = voter.votes()

    assert votes[0, 8] == 3.0
    assert votes[0, :8].sum() == 0


def test_single_bin():
    voter = SoftBinning(np.array([0.0, 0.7]), np.array([1.0, 2.0]), 1)
    assert_array_equal(voter.votes(), [[1.0], [2.0]])


def test_zero_magnitude_and_skipped_pixels_do_not_vote():
    weights = np.full((2, 2), 0.25)
    magnitudes = np.array([[0.0, 1.0], [1.0, 1.0]])
    skip = np.array([[False, True], [False, False]])

    voter = SoftBinning(weights, magnitudes, 3, skip)

    assert_array_equal(voter.valid, [[False, False], [True, True]])
    votes = voter.votes()
    assert votes[0].sum() == 0
    assert_allclose(votes[1].sum(axis=-1), [1.0, 1.0])


def test_callback_matches_dense_votes():
    rng = np.random.default_rng(11)
    weights = rng.random((4, 6))
    magnitudes = rng.random((4, 6))
    magnitudes[1, 2] = 0

    voter = SoftBinning(weights, magnitudes, 7)
    votes = voter.votes()

    for index in np.ndindex(4, 6):
        h = np.zeros(7)
        voter(h, index)
        assert_allclose(h, votes[index])


def test_votes_dtype():
    voter = SoftBinning(np.zeros((2, 2), np.float32), np.ones((2, 2), np.float32), 4)
    assert voter.votes().dtype == np.float32
    assert voter.votes(np.float64).dtype == np.float64
