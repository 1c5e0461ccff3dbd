import cv2
import numpy as np
import pytest

from processing import (
    BACKGROUND,
    INK,
    ImageDecodeError,
    PixelBuffer,
    ThresholdParams,
    clamp_channel,
    count_ink,
    decode_image,
    encode_png,
    extract_region,
    load_image,
    luminance,
    save_png,
    threshold,
)
from tests.helpers import make_buffer, random_buffer


def test_threshold_four_pixel_example():
    source = PixelBuffer.from_rgba(4, 1, [
        (10, 10, 10, 255),
        (250, 250, 250, 255),
        (0, 0, 0, 10),
        (0, 0, 0, 200),
    ])

    result = threshold(source, ThresholdParams(luminance_threshold=200, alpha_cutoff=50))

    assert result.to_rgba_list() == [INK, BACKGROUND, BACKGROUND, INK]


def test_threshold_output_is_binary():
    result = threshold(random_buffer(64, 48), ThresholdParams())

    pixels = result.pixels
    assert set(np.unique(pixels[..., 3]).tolist()) <= {0, 255}
    assert not pixels[..., :3].any()


def test_threshold_keeps_dimensions_and_source():
    source = random_buffer(17, 9, seed=3)
    before = source.to_bytes()

    result = threshold(source, ThresholdParams())

    assert result.size == (17, 9)
    assert source.to_bytes() == before


def test_threshold_is_idempotent():
    params = ThresholdParams(luminance_threshold=120, alpha_cutoff=80)
    once = threshold(random_buffer(32, 32, seed=1), params)

    assert threshold(once, params) == once


def test_either_gate_alone_makes_background():
    source = PixelBuffer.from_rgba(2, 1, [
        (255, 255, 255, 255),  # light but opaque
        (0, 0, 0, 0),          # dark but transparent
    ])

    assert threshold(source, ThresholdParams()).to_rgba_list() == [BACKGROUND, BACKGROUND]


def test_alpha_equal_to_cutoff_is_ink():
    source = make_buffer(1, 1, (0, 0, 0, 50))

    assert threshold(source, ThresholdParams(alpha_cutoff=50)).pixel(0, 0) == INK


def test_raising_luminance_threshold_only_adds_ink():
    source = random_buffer(40, 40, seed=7)
    previous = None
    for value in (0, 64, 128, 200, 255):
        ink = threshold(source, ThresholdParams(luminance_threshold=value)).pixels[..., 3] == 255
        if previous is not None:
            assert not (previous & ~ink).any()
        previous = ink


def test_threshold_applies_out_of_range_params_literally():
    source = make_buffer(2, 2, (255, 255, 255, 255))

    assert count_ink(threshold(source, ThresholdParams(luminance_threshold=1000))) == 4
    assert count_ink(threshold(source, ThresholdParams(luminance_threshold=-1))) == 0


def test_luminance_weights():
    pixels = np.array([[[100, 0, 0, 255], [0, 100, 0, 255], [0, 0, 100, 255]]], dtype=np.uint8)

    assert luminance(pixels)[0].tolist() == pytest.approx([29.9, 58.7, 11.4])


def test_params_clamped():
    assert ThresholdParams(300, -5).clamped() == ThresholdParams(255, 0)
    assert clamp_channel(12.6) == 13


def test_from_rgba_validates_length_and_range():
    with pytest.raises(ValueError):
        PixelBuffer.from_rgba(2, 2, [(0, 0, 0, 0)] * 3)
    with pytest.raises(ValueError):
        PixelBuffer.from_rgba(1, 1, [(0, 0, 0, 256)])
    with pytest.raises(ValueError):
        PixelBuffer.from_rgba(0, 1, b"")


def test_from_rgba_accepts_flat_bytes():
    buffer = PixelBuffer.from_rgba(2, 1, bytes([1, 2, 3, 4, 5, 6, 7, 8]))

    assert buffer.pixel(1, 0) == (5, 6, 7, 8)


def test_pixels_are_read_only():
    buffer = make_buffer(2, 2)

    with pytest.raises(ValueError):
        buffer.pixels[0, 0, 0] = 99


def test_extract_region_inside():
    source = random_buffer(10, 8, seed=2)

    region = extract_region(source, 2, 3, 4, 2)

    assert region.size == (4, 2)
    assert np.array_equal(region.pixels, source.pixels[3:5, 2:6])


def test_extract_region_pads_outside_with_transparent():
    source = make_buffer(4, 4, (9, 9, 9, 255))

    region = extract_region(source, 2, 2, 4, 4)

    assert region.pixel(0, 0) == (9, 9, 9, 255)
    assert region.pixel(3, 3) == (0, 0, 0, 0)
    assert count_ink(region) == 4


def test_extract_region_rejects_empty_size():
    with pytest.raises(ValueError):
        extract_region(make_buffer(4, 4), 0, 0, 0, 2)


def test_png_export_preserves_alpha(tmp_path):
    refined = threshold(random_buffer(20, 10, seed=5), ThresholdParams())

    path = save_png(refined, tmp_path / "refined.png")

    assert load_image(path) == refined


def test_decode_color_order_is_rgba():
    bgr = np.zeros((1, 1, 3), dtype=np.uint8)
    bgr[0, 0] = (0, 0, 255)  # red in OpenCV order
    ok, data = cv2.imencode(".png", bgr)
    assert ok

    assert decode_image(data.tobytes()).pixel(0, 0) == (255, 0, 0, 255)


def test_decode_grayscale_becomes_opaque_rgba():
    gray = np.full((3, 2), 77, dtype=np.uint8)
    ok, data = cv2.imencode(".png", gray)
    assert ok

    decoded = decode_image(data.tobytes())

    assert decoded.size == (2, 3)
    assert decoded.pixel(1, 2) == (77, 77, 77, 255)


def test_decode_sixteen_bit_png():
    deep = np.full((2, 2, 3), 65535, dtype=np.uint16)
    ok, data = cv2.imencode(".png", deep)
    assert ok

    assert decode_image(data.tobytes()).pixel(0, 0) == (255, 255, 255, 255)


@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_decode_rejects_bad_bytes(data):
    with pytest.raises(ImageDecodeError):
        decode_image(data)


def test_load_image_missing_file(tmp_path):
    with pytest.raises(ImageDecodeError):
        load_image(tmp_path / "missing.png")


def test_encode_png_signature():
    assert encode_png(make_buffer(1, 1)).startswith(b"\x89PNG")
