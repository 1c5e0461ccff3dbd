from pathlib import Path

from processing import ThresholdParams
from storage import Storage


def test_params_round_trip(tmp_path):
    store = Storage(tmp_path / "settings.db")

    store.save_params("abc", ThresholdParams(120, 30))

    assert store.load_params("abc") == ThresholdParams(120, 30)
    assert store.load_params("unknown") is None


def test_save_overwrites(tmp_path):
    store = Storage(tmp_path / "settings.db")
    store.save_params("abc", ThresholdParams(120, 30))

    store.save_params("abc", ThresholdParams(90, 10))

    assert store.load_params("abc") == ThresholdParams(90, 10)
    assert store.get_stats()["image_count"] == 1


def test_partial_settings_fall_back_to_defaults(tmp_path):
    store = Storage(tmp_path / "settings.db")
    store.set_default_params(ThresholdParams(180, 40))

    store.save_settings("abc", {"luminance_threshold": 999})

    assert store.load_params("abc") == ThresholdParams(255, 40)


def test_default_params(tmp_path):
    store = Storage(tmp_path / "settings.db")
    assert store.get_default_params() == ThresholdParams(200, 50)

    store.set_default_params(ThresholdParams(-1, 300))

    assert Storage(tmp_path / "settings.db").get_default_params() == ThresholdParams(0, 255)


def test_clear_all_forgets_images_but_keeps_preferences(tmp_path):
    store = Storage(tmp_path / "settings.db")
    store.set_default_params(ThresholdParams(150, 20))
    store.save_params("a", ThresholdParams())
    store.save_params("b", ThresholdParams())
    assert store.get_stats()["image_count"] == 2

    store.clear_all()

    assert store.get_stats()["image_count"] == 0
    assert store.load_params("a") is None
    assert store.get_default_params() == ThresholdParams(150, 20)


def test_last_open_dir(tmp_path):
    store = Storage(tmp_path / "nested" / "settings.db")
    assert store.get_last_open_dir() == str(Path.home())

    store.set_last_open_dir(tmp_path)

    assert store.get_last_open_dir() == str(tmp_path)
