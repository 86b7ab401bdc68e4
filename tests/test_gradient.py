import logging

import numpy as np
import pytest

from facecontour.gradient import refine_by_gradient


@pytest.fixture
def split_image():
    # White for x < 50, black from x = 50
    img = np.zeros((100, 100, 4), dtype=np.uint8)
    img[:, :50, :3] = 255
    img[..., 3] = 255
    return img


class TestRefineByGradient:
    def test_snaps_to_luminance_edge(self, split_image):
        landmarks = np.array([[45.0, 50.0, 3.0]])
        boundary = np.array([[55.0, 50.0]])
        out = refine_by_gradient(landmarks, boundary, split_image, snap_threshold=15, steps=10)
        assert out.shape == (1, 3)
        assert out[0, 0] == pytest.approx(49.5)
        assert out[0, 1] == pytest.approx(50.0)
        # Z is carried through unchanged
        assert out[0, 2] == pytest.approx(3.0)

    def test_point_on_boundary_is_unchanged(self, split_image):
        landmarks = np.array([[55.0, 50.0, 0.0]])
        out = refine_by_gradient(landmarks, np.array([[55.0, 50.0]]), split_image)
        np.testing.assert_allclose(out, landmarks)

    def test_far_point_is_unchanged(self, split_image):
        landmarks = np.array([[10.0, 50.0, 0.0]])
        out = refine_by_gradient(landmarks, np.array([[55.0, 50.0]]), split_image, snap_threshold=15)
        np.testing.assert_allclose(out, landmarks)

    def test_non_positive_steps_returns_input(self, split_image, caplog):
        landmarks = np.array([[45.0, 50.0, 0.0]])
        with caplog.at_level(logging.ERROR, logger="facecontour.gradient"):
            out = refine_by_gradient(landmarks, np.array([[55.0, 50.0]]), split_image, steps=0)
        assert out is landmarks
        assert "steps" in caplog.text

    def test_empty_inputs(self, split_image):
        empty = np.zeros((0, 3))
        assert refine_by_gradient(empty, np.array([[1.0, 1.0]]), split_image) is empty
        landmarks = np.array([[1.0, 1.0, 0.0]])
        assert refine_by_gradient(landmarks, np.zeros((0, 2)), split_image) is landmarks

    def test_two_dimensional_input_stays_two_dimensional(self, split_image):
        out = refine_by_gradient(np.array([[45.0, 50.0]]), np.array([[55.0, 50.0]]), split_image)
        assert out.shape == (1, 2)
        assert out[0, 0] == pytest.approx(49.5)
