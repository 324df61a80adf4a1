"""Tests for the Frame wrapper."""

import numpy as np
import pytest

from frames import Frame


class TestFrame:
    def test_bgr_passthrough(self):
        data = np.zeros((4, 6, 3), dtype=np.uint8)
        frame = Frame(data)
        assert frame.bgr is data
        assert (frame.width, frame.height, frame.area) == (6, 4, 24)

    def test_rgb_converted(self):
        data = np.zeros((2, 2, 3), dtype=np.uint8)
        data[..., 0] = 255  # red in RGB
        frame = Frame(data, pixel_format="rgb")
        assert frame.pixel_format == "RGB"
        assert tuple(frame.bgr[0, 0]) == (0, 0, 255)

    def test_rgba_and_gray(self):
        rgba = np.full((3, 3, 4), 200, dtype=np.uint8)
        assert Frame(rgba, "RGBA").bgr.shape == (3, 3, 3)
        gray = np.full((3, 3), 77, dtype=np.uint8)
        frame = Frame(gray, "GRAY")
        assert frame.gray is gray
        assert frame.bgr.shape == (3, 3, 3)

    def test_from_array_clips(self):
        data = np.array([[[-5.0, 300.0, 10.4]]])
        frame = Frame.from_array(data, timestamp_ms=12)
        assert frame.data.dtype == np.uint8
        assert tuple(frame.data[0, 0]) == (0, 255, 10)
        assert frame.timestamp_ms == 12.0

    @pytest.mark.parametrize("data,fmt", [
        (np.zeros((2, 2, 3), dtype=np.uint8), "YUV"),
        (np.zeros((2, 2), dtype=np.uint8), "BGR"),
        (np.zeros((2, 2, 4), dtype=np.uint8), "RGB"),
        (np.zeros((0, 2, 3), dtype=np.uint8), "BGR"),
    ])
    def test_rejected(self, data, fmt):
        with pytest.raises(ValueError):
            Frame(data, fmt)
