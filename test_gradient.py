"""
Tests for Module 1 (Gradient Estimation) and Module 2 (Magnitude Voting).
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from integral_hog.gradient import (Gradient, gradient, make_stencil,
                                   precision_dtype, working_dtype)
from integral_hog.magnitude import (Magnitude, dominant_channel,
                                    select_channel)


ROW = np.array([[0.0, 1.0, 4.0, 9.0]])


def test_two_point_interior_with_one_sided_borders():
    dx, dy = gradient(ROW)

    # forward at 0, f(x+1) - f(x-1) inside, backward at the end
    assert_array_equal(dx, [[1.0, 4.0, 8.0, 5.0]])
    # A single row has no vertical neighbors
    assert_array_equal(dy, np.zeros_like(ROW))


def test_central_interior_halves_the_difference():
    dx, _ = gradient(ROW, interior='central')
    assert_array_equal(dx, [[1.0, 2.0, 4.0, 5.0]])


def test_forward_and_backward_everywhere():
    dx, _ = gradient(ROW, interior='forward', upper='backward')
    assert_array_equal(dx, [[1.0, 3.0, 5.0, 5.0]])

    dx, _ = gradient(ROW, interior='backward')
    assert_array_equal(dx, [[1.0, 1.0, 3.0, 5.0]])


def test_vertical_derivative_is_along_rows():
    image = ROW.T
    dx, dy = gradient(image)
    assert_array_equal(dy, [[1.0], [4.0], [8.0], [5.0]])
    assert_array_equal(dx, np.zeros_like(image))


def test_unsigned_integers_do_not_wrap():
    image = np.array([[0, 255, 0]], dtype=np.uint8)
    dx, _ = gradient(image)

    assert dx.dtype == np.float64
    assert_array_equal(dx, [[255.0, 0.0, -255.0]])


@pytest.mark.parametrize('dtype, expected', [
    (np.uint8, np.float64),
    (np.int32, np.float64),
    (np.bool_, np.float64),
    (np.float32, np.float32),
    (np.float64, np.float64),
    (np.longdouble, np.longdouble),
])
def test_working_dtype(dtype, expected):
    assert working_dtype(dtype) == np.dtype(expected)

    image = np.ones((3, 3), dtype=dtype)
    dx, dy = gradient(image)
    assert dx.dtype == np.dtype(expected)
    assert dy.dtype == np.dtype(expected)


def test_precision_dtype_is_at_least_double():
    assert precision_dtype(np.float32) == np.float64
    assert precision_dtype(np.uint8) == np.float64
    assert precision_dtype(np.longdouble) == np.longdouble


def test_multichannel_gradients_are_per_channel():
    image = np.zeros((4, 5, 3))
    image[:, :, 1] = np.arange(5)
    dx, dy = gradient(image)

    assert dx.shape == image.shape
    assert_array_equal(dx[:, :, 0], 0)
    assert_array_equal(dx[:, 1:-1, 1], 2)
    assert_array_equal(dx[:, [0, -1], 1], 1)
    assert_array_equal(dy, 0)


def test_zero_sized_image():
    dx, dy = gradient(np.zeros((0, 7)))
    assert dx.shape == (0, 7)
    assert dy.shape == (0, 7)


def test_unknown_stencil():
    with pytest.raises(ValueError, match='Unknown stencil'):
        make_stencil('sobel')
    with pytest.raises(ValueError):
        Gradient(interior='sobel')


def test_border_stencils_must_stay_inside():
    with pytest.raises(ValueError, match='before the first sample'):
        Gradient(lower='backward')
    with pytest.raises(ValueError, match='past the last sample'):
        Gradient(upper='forward')


def test_repr():
    assert repr(Gradient()) == "Gradient(interior='two-point', lower='forward', upper='backward')"


@pytest.mark.parametrize('kind, expected', [
    ('identity', 5.0),
    ('square', 25.0),
    ('sqrt', np.sqrt(5.0)),
])
def test_magnitude_profiles(kind, expected):
    vote = Magnitude(kind)(np.array([3.0]), np.array([4.0]))
    assert_allclose(vote, [expected])


def test_unknown_magnitude():
    with pytest.raises(ValueError, match='Unknown magnitude'):
        Magnitude('cube')


def test_dominant_channel_prefers_first_on_ties():
    magnitudes = np.array([[[1.0, 3.0, 2.0], [2.0, 2.0, 1.0]]])
    channel = dominant_channel(magnitudes)

    assert_array_equal(channel, [[1, 0]])
    assert_array_equal(select_channel(magnitudes, channel), [[3.0, 2.0]])
