import numpy as np
import pytest

from facecontour.eyebags import EyebagConfig, detect_eyebags, fill_short_gaps, median_smooth, vertical_gradient


@pytest.fixture
def step_image():
    # Bright above y = 30, dark from y = 30 down
    img = np.full((60, 60, 4), 40, dtype=np.uint8)
    img[:30, :, :3] = 220
    img[..., 3] = 255
    return img


def _eye(x0=20.0, x1=40.0, y0=20.0, y1=24.0):
    return np.array([[x0, (y0 + y1) / 2], [(x0 + x1) / 2, y0], [x1, (y0 + y1) / 2], [(x0 + x1) / 2, y1]])


class TestDetectEyebags:
    def test_step_edge_under_eye(self, step_image):
        out = detect_eyebags(step_image, {"left": _eye(), "right": _eye()})
        assert len(out.left) > 0
        ys = out.left[:, 1]
        assert np.all((ys == 29.0) | (ys == 30.0))
        xs = out.left[:, 0]
        assert np.all(np.diff(xs) > 0)
        assert xs.min() >= 12 and xs.max() <= 48

    def test_missing_eye(self, step_image):
        out = detect_eyebags(step_image, {"left": _eye()})
        assert len(out.left) > 0
        assert out.right.shape == (0, 2)

    def test_min_width_near_right_edge(self, step_image):
        out = detect_eyebags(step_image, {"left": _eye(55, 57, 20, 22)}, EyebagConfig(padding=1.0, min_width=12))
        assert len(out.left) > 0
        assert out.left[:, 0].max() <= 59


class TestHelpers:
    def test_vertical_gradient_edges(self):
        gray = np.array([[0.0], [0.0], [10.0], [10.0]])
        g = vertical_gradient(gray)
        assert g[:, 0].tolist() == [0.0, 10.0, 10.0, 0.0]

    def test_fill_short_gaps(self):
        assert fill_short_gaps([1.0, None, None, 4.0], max_gap=6) == pytest.approx([1.0, 2.0, 3.0, 4.0])

    def test_fill_keeps_long_and_open_gaps(self):
        assert fill_short_gaps([None, 1.0, None, None, None, 5.0], max_gap=2) == [None, 1.0, None, None, None, 5.0]

    def test_median_smooth_removes_spike(self):
        out = median_smooth([10.0, 10.0, 10.0, 50.0, 10.0, 10.0, 10.0], radius=2)
        assert out == [10.0] * 7

    def test_median_smooth_skips_unknown(self):
        assert median_smooth([None, None], radius=1) == [None, None]
