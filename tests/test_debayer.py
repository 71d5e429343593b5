from __future__ import annotations

import numpy as np
import pytest

from astroanalyzer import debayer
from astroanalyzer.io import Raster


def marker_mosaic() -> np.ndarray:
    """4x4 RGGB mosaic: distinct reds, constant greens, distinct blues."""
    mosaic = np.full((4, 4), 100.0)
    mosaic[0, 0], mosaic[0, 2], mosaic[2, 0], mosaic[2, 2] = 10.0, 30.0, 50.0, 70.0
    mosaic[1, 1], mosaic[1, 3], mosaic[3, 1], mosaic[3, 3] = 200.0, 210.0, 220.0, 230.0
    return mosaic


def tiled_mosaic(red: float, green: float, blue: float, shape=(6, 8)) -> np.ndarray:
    channel_map = debayer.cfa_channel_map("RGGB", shape)
    return np.choose(channel_map, [red, green, blue]).astype(np.float64)


@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        ("RGGB", [[0, 1], [1, 2]]),
        ("BGGR", [[2, 1], [1, 0]]),
        ("GRBG", [[1, 0], [2, 1]]),
        ("GBRG", [[1, 2], [0, 1]]),
        ("gbrg", [[1, 2], [0, 1]]),
    ],
)
def test_cfa_channel_map(pattern: str, expected) -> None:
    assert debayer.cfa_channel_map(pattern, (2, 2)).tolist() == expected


def test_cfa_channel_map_odd_shape_repeats_tile() -> None:
    channel_map = debayer.cfa_channel_map("RGGB", (3, 3))
    assert channel_map.tolist() == [[0, 1, 0], [1, 2, 1], [0, 1, 0]]


def test_unknown_pattern_uses_green_upper_left() -> None:
    channel_map = debayer.cfa_channel_map("XYZW", (2, 2))
    assert channel_map[0, 0] == debayer.GREEN
    assert channel_map.tolist() == debayer.cfa_channel_map("GRBG", (2, 2)).tolist()
    assert debayer.normalize_pattern(None) == "GRBG"


def test_native_samples_are_kept() -> None:
    planes = debayer.channel_planes(marker_mosaic(), "RGGB", 0.0)

    red, green, blue = planes
    assert red[0, 0] == 10.0 and red[2, 2] == 70.0
    assert blue[1, 1] == 200.0 and blue[3, 3] == 230.0
    assert green[0, 1] == 100.0 and green[3, 2] == 100.0


def test_missing_channels_are_neighbourhood_means() -> None:
    red, green, blue = debayer.channel_planes(marker_mosaic(), "RGGB", 0.0)

    assert red[0, 1] == pytest.approx((10.0 + 30.0) / 2)
    assert red[1, 0] == pytest.approx((10.0 + 50.0) / 2)
    assert red[1, 1] == pytest.approx((10.0 + 30.0 + 50.0 + 70.0) / 4)
    # Corner: only one red neighbour inside the frame.
    assert red[3, 3] == pytest.approx(70.0)
    assert blue[0, 0] == pytest.approx(200.0)
    assert blue[2, 2] == pytest.approx((200.0 + 210.0 + 220.0 + 230.0) / 4)
    assert green[0, 0] == pytest.approx(100.0)
    assert green[1, 1] == pytest.approx(100.0)


def test_cell_without_same_channel_neighbours_is_zero() -> None:
    red, green, blue = debayer.channel_planes(np.array([[5.0]]), "RGGB", 0.0)

    assert red[0, 0] == 5.0
    assert green[0, 0] == 0.0
    assert blue[0, 0] == 0.0


def test_non_finite_samples_become_range_min() -> None:
    mosaic = marker_mosaic()
    mosaic[0, 0] = np.nan
    mosaic[1, 1] = np.inf

    red, _, blue = debayer.channel_planes(mosaic, "RGGB", -5.0)

    assert red[0, 0] == -5.0
    assert blue[1, 1] == -5.0
    assert red[0, 1] == pytest.approx((-5.0 + 30.0) / 2)
    assert np.all(np.isfinite(red)) and np.all(np.isfinite(blue))


def test_unbalanced_output_recovers_markers() -> None:
    bgr = debayer.debayer_bilinear_array(marker_mosaic(), "RGGB", 0.0, 255.0, balance=False)

    assert bgr.shape == (4, 4, 3)
    assert bgr.dtype == np.uint8
    # (B, G, R) at a red site.
    assert abs(int(bgr[0, 0, 2]) - 10) <= 1
    assert abs(int(bgr[0, 0, 1]) - 100) <= 1
    assert abs(int(bgr[0, 0, 0]) - 200) <= 1
    # Blue site.
    assert abs(int(bgr[1, 1, 0]) - 200) <= 1
    assert abs(int(bgr[1, 1, 2]) - 40) <= 1
    # Green site between two reds.
    assert abs(int(bgr[0, 1, 2]) - 20) <= 1


def test_buffer_layout_matches_array() -> None:
    raster = Raster(pixels=marker_mosaic(), header={}, bayer_pattern="RGGB")

    buffer = debayer.debayer_bilinear(raster, "RGGB", 0.0, 255.0)
    array = debayer.debayer_bilinear_array(raster, "RGGB", 0.0, 255.0)

    assert isinstance(buffer, bytes)
    assert len(buffer) == 4 * 4 * 3
    assert buffer == array.tobytes()
    y, x = 2, 3
    offset = y * 4 * 3 + x * 3
    assert tuple(buffer[offset : offset + 3]) == tuple(int(v) for v in array[y, x])


def test_gray_world_scales_correct_green_excess() -> None:
    mosaic = tiled_mosaic(red=10.0, green=20.0, blue=10.0)
    planes = debayer.channel_planes(mosaic, "RGGB", 0.0)
    normalized = debayer.normalize_planes(planes, 0.0, 40.0)

    scale_r, scale_g, scale_b = debayer.gray_world_scales(normalized)

    assert scale_g < 1.0
    assert scale_r == pytest.approx(scale_b, abs=1e-6)
    assert scale_r == pytest.approx(4.0 / 3.0, abs=1e-6)
    assert scale_g == pytest.approx(2.0 / 3.0, abs=1e-6)


def test_balanced_output_is_neutral() -> None:
    mosaic = tiled_mosaic(red=10.0, green=20.0, blue=10.0)

    bgr = debayer.debayer_bilinear_array(mosaic, "RGGB", 0.0, 40.0)

    blue, green, red = bgr[..., 0].astype(int), bgr[..., 1].astype(int), bgr[..., 2].astype(int)
    assert np.array_equal(blue, red)
    assert np.all(np.abs(green - red) <= 1)


def test_dark_channels_keep_unit_scale() -> None:
    normalized = np.zeros((3, 2, 2))

    assert debayer.gray_world_scales(normalized).tolist() == [1.0, 1.0, 1.0]


def test_inverted_range_uses_unit_width() -> None:
    mosaic = tiled_mosaic(red=5.0, green=5.5, blue=6.0, shape=(2, 2))

    bgr = debayer.debayer_bilinear_array(mosaic, "RGGB", 5.0, 5.0, balance=False)

    assert int(bgr[0, 0, 2]) == 0
    assert abs(int(bgr[0, 1, 1]) - 127) <= 1
    assert int(bgr[1, 1, 0]) == 255


def test_values_outside_window_are_clamped() -> None:
    mosaic = tiled_mosaic(red=-100.0, green=50.0, blue=1000.0, shape=(2, 2))

    bgr = debayer.debayer_bilinear_array(mosaic, "RGGB", 0.0, 100.0, balance=False)

    assert np.all(bgr[..., 2] == 0)
    assert np.all(bgr[..., 0] == 255)


def test_empty_mosaic_gives_empty_buffer() -> None:
    assert debayer.debayer_bilinear(np.zeros((0, 0)), "RGGB", 0.0, 1.0) == b""


def test_rejects_multichannel_input() -> None:
    with pytest.raises(ValueError):
        debayer.debayer_bilinear(np.zeros((2, 2, 3)), "RGGB", 0.0, 1.0)
