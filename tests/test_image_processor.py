from pathlib import Path

import numpy as np
import pytest

from processing import ThresholdParams, load_image, save_png, threshold
from workers.image_processor import MIN_ROWS_PER_BAND, refine_image_file, threshold_parallel
from tests.helpers import make_buffer, random_buffer


@pytest.mark.parametrize("workers", [1, 2, 4, 8])
def test_parallel_matches_serial(workers):
    source = random_buffer(50, MIN_ROWS_PER_BAND * 4 + 7, seed=11)
    params = ThresholdParams(150, 60)

    assert threshold_parallel(source, params, workers) == threshold(source, params)


def test_parallel_small_image_runs_serial():
    source = random_buffer(5, 5)

    assert threshold_parallel(source, ThresholdParams(), 8) == threshold(source, ThresholdParams())


def test_refine_image_file(tmp_path):
    source = save_png(make_buffer(6, 4, (20, 20, 20, 255)), tmp_path / "scan.png")
    out_dir = tmp_path / "out"

    result = refine_image_file(str(source), {"output_dir": str(out_dir)})

    assert Path(result["output"]) == out_dir / "scan_refined.png"
    assert (result["width"], result["height"]) == (6, 4)
    assert result["ink_pixels"] == 24
    assert result["luminance_threshold"] == 200
    written = load_image(result["output"])
    assert set(np.unique(written.pixels[..., 3]).tolist()) == {255}


def test_refine_image_file_uses_settings(tmp_path):
    source = save_png(make_buffer(2, 2, (20, 20, 20, 255)), tmp_path / "scan.png")

    result = refine_image_file(str(source), {
        "output_dir": str(tmp_path),
        "luminance_threshold": 10,
        "suffix": "_bg",
    })

    assert result["output"].endswith("scan_bg.png")
    assert result["ink_pixels"] == 0
