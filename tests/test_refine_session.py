import hashlib

import pytest

from crop_geometry import CropRect, InvalidCropError
from processing import BACKGROUND, INK, ImageDecodeError, ThresholdParams, load_image, save_png
from services.refine_session import RefineSession
from tests.helpers import make_buffer, random_buffer


def test_load_buffer_thresholds_immediately():
    session = RefineSession()

    session.load_buffer(make_buffer(3, 2, (10, 10, 10, 255)))

    assert session.has_image
    assert session.result.size == (3, 2)
    assert set(session.result.to_rgba_list()) == {INK}


def test_load_without_refresh_waits_for_params():
    session = RefineSession()

    session.load_buffer(make_buffer(2, 2, (150, 150, 150, 255)), refresh=False)
    assert session.has_image
    assert session.result is None

    session.set_params(ThresholdParams(100, 0))

    assert set(session.result.to_rgba_list()) == {BACKGROUND}


def test_set_params_recomputes_and_clamps():
    session = RefineSession()
    session.load_buffer(make_buffer(2, 2, (150, 150, 150, 255)))
    assert session.result.pixel(0, 0) == INK

    session.set_params(ThresholdParams(luminance_threshold=-20, alpha_cutoff=999))

    assert session.params == ThresholdParams(0, 255)
    assert session.result.pixel(0, 0) == BACKGROUND


def test_set_params_without_recompute_keeps_result():
    session = RefineSession()
    session.load_buffer(make_buffer(2, 2, (150, 150, 150, 255)))
    before = session.result

    session.set_params(ThresholdParams(luminance_threshold=0), recompute=False)

    assert session.result is before


def test_no_request_without_image():
    assert RefineSession().begin_request() is None


def test_stale_result_is_dropped():
    session = RefineSession()
    session.load_buffer(make_buffer(2, 2))
    first = session.begin_request()
    second = session.begin_request()
    newer = make_buffer(2, 2, (0, 0, 0, 255))
    older = make_buffer(2, 2, (0, 0, 0, 0))

    assert session.accept_result(second.request_id, newer)
    assert not session.accept_result(first.request_id, older)
    assert session.result is newer


def test_results_in_request_order_are_all_presented():
    session = RefineSession()
    session.load_buffer(make_buffer(2, 2))
    first = session.begin_request()
    second = session.begin_request()

    assert session.accept_result(first.request_id, make_buffer(2, 2))
    assert session.accept_result(second.request_id, make_buffer(2, 2))


def test_result_for_replaced_image_is_dropped():
    session = RefineSession()
    session.load_buffer(make_buffer(2, 2))
    pending = session.begin_request()

    session.load_buffer(make_buffer(5, 5))

    assert not session.accept_result(pending.request_id, make_buffer(2, 2))
    assert session.result.size == (5, 5)


def test_request_snapshots_params():
    session = RefineSession()
    session.load_buffer(make_buffer(2, 2))
    session.set_params(ThresholdParams(10, 20), recompute=False)

    request = session.begin_request()
    session.set_params(ThresholdParams(30, 40), recompute=False)

    assert request.params == ThresholdParams(10, 20)


def test_apply_crop_crops_source_and_result():
    session = RefineSession()
    session.load_buffer(random_buffer(10, 6))
    session.enter_crop_mode()
    session.crop.rect = CropRect(2, 1, 4, 3)

    cropped = session.apply_crop()

    assert cropped.size == (4, 3)
    assert session.source.size == (4, 3)
    assert not session.crop.cropping

    session.set_params(ThresholdParams(luminance_threshold=100))
    assert session.result.size == (4, 3)


def test_apply_crop_with_display_scale():
    session = RefineSession()
    session.load_buffer(random_buffer(100, 50))
    session.enter_crop_mode()
    session.crop.rect = CropRect(0, 0, 25, 10)

    assert session.apply_crop(2.0, 2.0).size == (50, 20)


def test_apply_crop_outside_crop_mode_fails():
    session = RefineSession()
    session.load_buffer(random_buffer(10, 6))
    before = session.result

    with pytest.raises(InvalidCropError):
        session.apply_crop()

    assert session.result is before


def test_apply_crop_without_image_fails():
    with pytest.raises(InvalidCropError):
        RefineSession().apply_crop()


def test_crop_mode_needs_image():
    session = RefineSession()

    session.enter_crop_mode()

    assert not session.crop.cropping


def test_reset_and_cancel_crop():
    session = RefineSession()
    session.load_buffer(random_buffer(10, 6))
    session.enter_crop_mode()
    session.crop.rect = CropRect(1, 1, 2, 2)

    session.reset_crop()
    assert session.crop.rect == CropRect(0, 0, 10, 6)

    session.cancel_crop()
    assert not session.crop.cropping
    assert session.crop.rect == CropRect.zero()


def test_load_file_records_hash(tmp_path):
    path = save_png(random_buffer(4, 4), tmp_path / "sig.png")
    session = RefineSession()

    session.load_file(path)

    assert session.path == path
    assert session.image_hash == hashlib.sha256(path.read_bytes()).hexdigest()


def test_bad_file_leaves_current_image(tmp_path):
    bad = tmp_path / "broken.png"
    bad.write_bytes(b"not a png")
    session = RefineSession()
    session.load_buffer(make_buffer(3, 3))
    before = session.result

    with pytest.raises(ImageDecodeError):
        session.load_file(bad)

    assert session.result is before
    assert session.path is None


def test_export_png(tmp_path):
    session = RefineSession()
    session.load_buffer(random_buffer(8, 8))

    path = session.export_png(tmp_path / "refined_signature.png")

    assert load_image(path) == session.result


def test_export_without_image_fails(tmp_path):
    with pytest.raises(ValueError):
        RefineSession().export_png(tmp_path / "out.png")
