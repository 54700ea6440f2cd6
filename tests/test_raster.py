import numpy as np
import pytest
from PIL import Image

from errors import InvalidParameter
from raster import Raster, luma


class TestRaster:
    def test_dimensions(self, noisy):
        assert noisy.width == 53
        assert noisy.height == 37
        assert len(noisy.tobytes()) == 53 * 37 * 4

    def test_pixels_are_read_only(self, noisy):
        with pytest.raises(ValueError):
            noisy.pixels[0, 0, 0] = 1

    def test_copies_input_buffer(self):
        arr = np.zeros((1, 1, 4), np.uint8)
        r = Raster(arr)
        arr[0, 0] = (9, 9, 9, 9)
        assert r.get_pixel(0, 0) == (0, 0, 0, 0)

    def test_rejects_wrong_shape(self):
        with pytest.raises(InvalidParameter):
            Raster(np.zeros((2, 2, 3), np.uint8))

    def test_get_pixel_is_x_y(self, checker):
        assert checker.get_pixel(1, 0) == (255, 255, 255, 255)
        assert checker.get_pixel(1, 1) == (0, 0, 0, 255)
        with pytest.raises(IndexError):
            checker.get_pixel(2, 0)

    def test_from_bytes_checks_length(self):
        with pytest.raises(InvalidParameter):
            Raster.from_bytes(2, 2, b"\x00" * 15)
        r = Raster.from_bytes(2, 1, bytes(range(8)))
        assert r.get_pixel(1, 0) == (4, 5, 6, 7)

    def test_image_round_trip_keeps_alpha(self, noisy):
        img = noisy.to_image()
        assert img.mode == "RGBA"
        assert img.size == (53, 37)
        assert Raster.from_image(img) == noisy

    def test_from_rgb_image_is_opaque(self):
        r = Raster.from_image(Image.new("RGB", (3, 2), (10, 20, 30)))
        assert r.get_pixel(2, 1) == (10, 20, 30, 255)

    def test_empty(self):
        r = Raster.blank(0, 0)
        assert r.size == (0, 0)
        assert r.tobytes() == b""
        assert r.to_image().size == (0, 0)


class TestLuma:
    def test_black_and_white(self):
        assert luma(np.array([0, 0, 0, 255])) == 0
        assert luma(np.array([255, 255, 255, 0])) == 255

    def test_integer_weighting(self):
        # (2126*150 + 7152*55 + 722*10) // 10000
        assert luma(np.array([150, 55, 10, 255])) == 71

    def test_green_outweighs_red(self):
        assert luma(np.array([0, 100, 0, 255])) > luma(np.array([100, 0, 0, 255]))

    def test_alpha_ignored(self):
        assert luma(np.array([10, 20, 30, 0])) == luma(np.array([10, 20, 30, 255]))
