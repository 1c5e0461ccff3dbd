import numpy as np

from processing import PixelBuffer


def make_buffer(width: int, height: int, rgba=(10, 10, 10, 255)) -> PixelBuffer:
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[...] = rgba
    return PixelBuffer(pixels)


def random_buffer(width: int, height: int, seed: int = 0) -> PixelBuffer:
    rng = np.random.default_rng(seed)
    return PixelBuffer(rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8))
