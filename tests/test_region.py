import numpy as np
import pytest

from facecontour.errors import ExtractionError
from facecontour.region import crop, to_global, to_local
from facecontour.types import BBox


@pytest.fixture
def source():
    img = np.zeros((100, 100, 4), dtype=np.uint8)
    img[..., 0] = np.arange(100, dtype=np.uint8)[None, :]
    img[..., 1] = np.arange(100, dtype=np.uint8)[:, None]
    return img


class TestCrop:
    def test_rounds_half_up(self, source):
        c = crop(source, BBox(10.4, 20.5, 30, 40))
        assert c.origin == (10, 21)
        assert c.image.shape == (40, 30, 4)
        assert c.image[0, 0, 0] == 10 and c.image[0, 0, 1] == 21

    def test_clamps_to_image(self, source):
        c = crop(source, BBox(-10, -10, 30, 30))
        assert c.origin == (0, 0)
        assert c.image.shape[:2] == (20, 20)

        c = crop(source, BBox(90, 90, 30, 30))
        assert c.origin == (90, 90)
        assert c.image.shape[:2] == (10, 10)

    def test_is_a_copy(self, source):
        c = crop(source, BBox(0, 0, 10, 10))
        c.image[...] = 255
        assert source[0, 0, 2] == 0

    @pytest.mark.parametrize("bbox", [BBox(10, 10, 0, 10), BBox(10, 10, 10, 0.2), BBox(200, 200, 10, 10), BBox(-50, 0, 20, 20)])
    def test_degenerate_or_outside(self, source, bbox):
        with pytest.raises(ExtractionError):
            crop(source, bbox)


class TestTransforms:
    def test_global_local_keep_z(self):
        pts = np.array([[1.0, 2.0, 0.5], [3.0, 4.0, -0.5]])
        g = to_global(pts, (10, 20))
        assert g[:, :2].tolist() == [[11.0, 22.0], [13.0, 24.0]]
        assert g[:, 2].tolist() == [0.5, -0.5]
        np.testing.assert_allclose(to_local(g, (10, 20)), pts)

    def test_empty(self):
        assert to_global(np.zeros((0, 2)), (5, 5)).shape == (0, 2)
