"""
Tests for the HOG glyph rendering.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from integral_hog.descriptor import IntegralHOGDescriptor
from integral_hog.visualization import cell_histograms, render


@pytest.fixture
def features():
    img = np.zeros((128, 64))
    img[:, 32:] = 255
    desc = IntegralHOGDescriptor()
    desc.compute(img)
    return desc.features()


def test_canvas_covers_the_cells(features):
    canvas = render(features)

    assert canvas.shape == (128, 64)
    assert canvas.dtype == np.uint8


def test_scale_and_explicit_shape(features):
    assert render(features, scale=2).shape == (256, 128)
    assert render(features, shape=(130, 70)).shape == (130, 70)


def test_vertical_edge_draws_vertical_lines(features):
    canvas = render(features)

    # Only the cells along the edge carry votes; their glyph is a vertical
    # line through the cell center.
    assert canvas.max() > 0
    columns = np.nonzero(canvas.any(axis=0))[0]
    assert set(columns) <= {27, 28, 35, 36}
    assert canvas[:, :20].max() == 0


def test_zero_features_render_black():
    canvas = render(np.zeros((15, 7, 2, 2, 9)))
    assert canvas.shape == (128, 64)
    assert_array_equal(canvas, 0)


def test_empty_features():
    assert render(np.zeros((0, 0, 0, 0, 0))).size == 0


def test_cell_histograms_average_overlapping_blocks():
    features = np.zeros((2, 1, 2, 2, 1))
    features[0, 0, 1, 0] = 1.0
    features[1, 0, 0, 0] = 3.0

    cells = cell_histograms(features, (8, 8), (8, 8))

    assert cells.shape == (3, 2, 1)
    # cell (1, 0) is shared by both blocks
    assert_allclose(cells[1, 0, 0], 2.0)
    assert_allclose(cells[0, 0, 0], 0.0)


def test_invalid_arguments(features):
    with pytest.raises(ValueError, match='rank-5'):
        render(features[0])
    with pytest.raises(ValueError, match='binning'):
        render(features, binning='octant')
    with pytest.raises(ValueError, match='scale'):
        render(features, scale=0)
