import math

import numpy as np
import pytest

from facecontour.errors import InvalidCoordinateError
from facecontour.geometry import (
    as_points,
    contains,
    luminance,
    order_ring,
    pixel_luminance,
    sample_luminance,
    validate_point,
)

SQUARE = np.array([[0, 0], [10, 0], [10, 10], [0, 10]], dtype=np.float64)


class TestContains:
    def test_inside(self):
        assert contains(SQUARE, [5, 5])

    def test_on_edge_counts_as_inside(self):
        assert contains(SQUARE, [10, 5])
        assert contains(SQUARE, [0, 0])

    def test_outside(self):
        assert not contains(SQUARE, [11, 5])
        assert not contains(SQUARE, [15, 5])
        assert not contains(SQUARE, [5, -0.5])

    def test_degenerate_contour(self):
        assert not contains(SQUARE[:2], [5, 0])

    def test_concave(self):
        # "U" shape: the notch between the arms is outside
        u = np.array([[0, 0], [3, 0], [3, 6], [6, 6], [6, 0], [9, 0], [9, 9], [0, 9]], dtype=np.float64)
        assert not contains(u, [4.5, 3])
        assert contains(u, [1.5, 3])

    @pytest.mark.parametrize("bad", ["5,5", [5], [5, 5, 5], [5, "x"], [float("nan"), 1], [True, 1], None, 5])
    def test_invalid_coordinates(self, bad):
        with pytest.raises(InvalidCoordinateError):
            contains(SQUARE, bad)


class TestValidatePoint:
    def test_accepts_ints_floats_and_arrays(self):
        assert validate_point([1, 2.5]) == (1.0, 2.5)
        assert validate_point((np.float32(3), np.int64(4))) == (3.0, 4.0)
        assert validate_point(np.array([7.0, 8.0])) == (7.0, 8.0)

    def test_invalid_is_a_value_error(self):
        with pytest.raises(ValueError):
            validate_point([math.inf, 0])


class TestLuminance:
    def test_weights(self):
        img = np.zeros((2, 2, 4), dtype=np.uint8)
        img[0, 0, :3] = (255, 0, 0)
        img[1, 1, :3] = (255, 255, 255)
        lum = luminance(img)
        assert lum[0, 0] == pytest.approx(0.299 * 255)
        assert lum[1, 1] == pytest.approx(255.0)

    def test_pixel_luminance_clamps(self):
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        img[3, 3] = 200
        assert pixel_luminance(img, 10.0, 10.0) == pytest.approx(200.0)
        assert pixel_luminance(img, -3.0, 0.5) == pytest.approx(0.0)

    def test_sample_luminance_off_image(self):
        img = np.full((4, 4, 3), 100, dtype=np.uint8)
        assert sample_luminance(img, 3.9, 3.9) == pytest.approx(100.0)
        assert sample_luminance(img, 4.0, 0.0) is None
        assert sample_luminance(img, -0.1, 0.0) is None


class TestPoints:
    def test_as_points_pads_z(self):
        out = as_points([[1, 2], [3, 4]])
        assert out.shape == (2, 3)
        assert np.all(out[:, 2] == 0)

    def test_as_points_empty(self):
        assert as_points([]).shape == (0, 3)

    def test_order_ring_walks_boundary(self):
        # Corners given in a crossing order
        shuffled = np.array([[0, 0, 1], [10, 10, 2], [10, 0, 3], [0, 10, 4]], dtype=np.float64)
        ring = order_ring(shuffled)
        assert contains(ring, [5, 5])
        assert sorted(ring[:, 2].tolist()) == [1, 2, 3, 4]
