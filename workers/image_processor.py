"""
SIGNATURE REFINER - Image Processor

Standalone processing functions for thread and process pools.
These must be picklable (no class state, importable at module level).
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from processing import (
    DEFAULT_ALPHA_CUTOFF, DEFAULT_LUMINANCE_THRESHOLD, PixelBuffer, ThresholdParams,
    background_mask, threshold,
)

# Below this many rows per band the thread handoff costs more than it saves
MIN_ROWS_PER_BAND = 64


def threshold_parallel(buffer: PixelBuffer, params: ThresholdParams,
                       workers: Optional[int] = None) -> PixelBuffer:
    """Threshold ``buffer`` in horizontal bands on a thread pool.

    Pixels are independent, so the output is identical to ``threshold``.
    numpy releases the GIL for the per-band arithmetic.
    """
    if workers is None:
        from services.memory_manager import MemoryManager
        workers = MemoryManager().get_optimal_workers()

    height = buffer.height
    workers = min(workers, height // MIN_ROWS_PER_BAND)
    if workers <= 1:
        return threshold(buffer, params)

    src = buffer.pixels
    out = np.zeros_like(src)
    bounds = np.linspace(0, height, workers + 1, dtype=int)

    def _band(y0: int, y1: int):
        ink = ~background_mask(src[y0:y1], params)
        out[y0:y1][ink, 3] = 255

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(_band, int(y0), int(y1))
                   for y0, y1 in zip(bounds[:-1], bounds[1:])]
        for future in futures:
            future.result()

    return PixelBuffer(out)


def refine_image_file(path: str, settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Full refine pipeline for one file - runs in worker process.

    Args:
        path: Path to the image file
        settings: Dict with processing settings:
            - output_dir: Directory for the refined PNG (required)
            - luminance_threshold: Luminance gate (default 200)
            - alpha_cutoff: Alpha gate (default 50)
            - suffix: Appended to the file stem (default '_refined')

    Returns:
        Dict with:
            - output: Path of the written PNG
            - width, height: Image dimensions
            - ink_pixels: Number of opaque pixels in the result
    """
    # Import here to avoid issues with multiprocessing
    from processing import count_ink, load_image, save_png

    params = ThresholdParams(
        luminance_threshold=settings.get('luminance_threshold', DEFAULT_LUMINANCE_THRESHOLD),
        alpha_cutoff=settings.get('alpha_cutoff', DEFAULT_ALPHA_CUTOFF),
    ).clamped()
    suffix = settings.get('suffix', '_refined')
    output_dir = Path(settings['output_dir'])
    output_dir.mkdir(parents=True, exist_ok=True)

    img = load_image(path)
    refined = threshold(img, params)

    out_path = output_dir / f"{Path(path).stem}{suffix}.png"
    save_png(refined, out_path)

    return {
        'output': str(out_path),
        'width': refined.width,
        'height': refined.height,
        'ink_pixels': count_ink(refined),
        'luminance_threshold': params.luminance_threshold,
        'alpha_cutoff': params.alpha_cutoff,
    }
