"""
SIGNATURE REFINER - Image Processing Core

Pixel buffers, signature thresholding, region extraction and PNG I/O.
Every pixel of a refined image is either pure black ink or fully transparent.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

import cv2
import numpy as np

try:
    import rawpy
    HAS_RAWPY = True
except ImportError:
    HAS_RAWPY = False

# RAW file extensions supported by rawpy/LibRaw
RAW_EXTENSIONS = {'.nef', '.cr2', '.cr3', '.arw', '.dng', '.orf', '.rw2', '.raf', '.pef', '.srw'}

# Everything the open dialog and the CLI accept
IMAGE_EXTENSIONS = RAW_EXTENSIONS | {'.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp', '.webp'}

# Broadcast luma weights (ITU-R BT.601)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

DEFAULT_LUMINANCE_THRESHOLD = 200
DEFAULT_ALPHA_CUTOFF = 50

INK = (0, 0, 0, 255)
BACKGROUND = (0, 0, 0, 0)

Pixel = Tuple[int, int, int, int]


class ImageDecodeError(Exception):
    """Raised when uploaded bytes cannot be turned into a pixel buffer."""


class PixelBuffer:
    """Immutable RGBA image: ``height x width x 4`` uint8 array.

    The wrapped array is a private read-only copy, so transforms always
    return a new buffer instead of mutating this one.
    """

    __slots__ = ('_pixels',)

    def __init__(self, pixels: np.ndarray):
        arr = np.asarray(pixels)
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Expected an HxWx4 RGBA array, got shape {arr.shape}")
        if arr.shape[0] <= 0 or arr.shape[1] <= 0:
            raise ValueError("Pixel buffer must have positive width and height")
        arr = np.array(arr, dtype=np.uint8, copy=True)
        arr.setflags(write=False)
        self._pixels = arr

    @classmethod
    def from_rgba(cls, width: int, height: int,
                  data: Union[bytes, Sequence[int], Iterable[Pixel]]) -> 'PixelBuffer':
        """Build a buffer from flat RGBA data.

        ``data`` is either raw bytes / a flat channel sequence of length
        ``width * height * 4`` or a sequence of ``(r, g, b, a)`` tuples.
        """
        if width <= 0 or height <= 0:
            raise ValueError("Pixel buffer must have positive width and height")
        if isinstance(data, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(bytes(data), dtype=np.uint8)
        else:
            flat = np.asarray(list(data), dtype=np.int64).reshape(-1)
            if flat.size and (flat.min() < 0 or flat.max() > 255):
                raise ValueError("Channel values must lie in [0, 255]")
        expected = width * height * 4
        if flat.size != expected:
            raise ValueError(f"Expected {expected} channel values for {width}x{height}, got {flat.size}")
        return cls(flat.astype(np.uint8).reshape(height, width, 4))

    @property
    def pixels(self) -> np.ndarray:
        """Read-only ``(height, width, 4)`` RGBA view."""
        return self._pixels

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def pixel(self, x: int, y: int) -> Pixel:
        r, g, b, a = self._pixels[y, x]
        return (int(r), int(g), int(b), int(a))

    def to_rgba_list(self) -> List[Pixel]:
        """Flatten to a row-major list of ``(r, g, b, a)`` tuples."""
        return [tuple(int(c) for c in px) for px in self._pixels.reshape(-1, 4)]

    def to_bytes(self) -> bytes:
        return self._pixels.tobytes()

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return np.array_equal(self._pixels, other._pixels)

    def __hash__(self):
        return hash((self.width, self.height, self._pixels.tobytes()))

    def __repr__(self):
        return f"PixelBuffer({self.width}x{self.height})"


@dataclass(frozen=True)
class ThresholdParams:
    """Two independent gates for classifying a pixel as background."""
    luminance_threshold: int = DEFAULT_LUMINANCE_THRESHOLD
    alpha_cutoff: int = DEFAULT_ALPHA_CUTOFF

    def clamped(self) -> 'ThresholdParams':
        """Return a copy with both values clamped to 0-255."""
        return ThresholdParams(
            luminance_threshold=clamp_channel(self.luminance_threshold),
            alpha_cutoff=clamp_channel(self.alpha_cutoff),
        )


def clamp_channel(value) -> int:
    """Clamp a slider value into the 0-255 channel range."""
    return int(max(0, min(255, int(round(value)))))


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Per-pixel luminance of an RGBA (or RGB) array, float64."""
    rgb = pixels[..., :3].astype(np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    return wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2]


def background_mask(pixels: np.ndarray, params: ThresholdParams) -> np.ndarray:
    """Boolean mask of pixels classified as background.

    A pixel is background when it is too light OR too transparent; either
    gate alone is enough.
    """
    too_light = luminance(pixels) > params.luminance_threshold
    too_transparent = pixels[..., 3].astype(np.int64) < params.alpha_cutoff
    return too_light | too_transparent


def threshold(buffer: PixelBuffer, params: ThresholdParams) -> PixelBuffer:
    """Binarize ``buffer`` into black ink on a transparent background.

    Params are applied literally; clamping is the caller's job.
    """
    src = buffer.pixels
    out = np.zeros_like(src)
    ink = ~background_mask(src, params)
    out[ink, 3] = 255
    return PixelBuffer(out)


def extract_region(buffer: PixelBuffer, x: int, y: int, width: int, height: int) -> PixelBuffer:
    """Copy an axis-aligned region into a new buffer.

    Any part of the region outside the source stays transparent.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Region must be at least 1x1, got {width}x{height}")
    out = np.zeros((height, width, 4), dtype=np.uint8)

    src_x0 = max(0, x)
    src_y0 = max(0, y)
    src_x1 = min(buffer.width, x + width)
    src_y1 = min(buffer.height, y + height)
    if src_x1 > src_x0 and src_y1 > src_y0:
        dst_x0 = src_x0 - x
        dst_y0 = src_y0 - y
        out[dst_y0:dst_y0 + (src_y1 - src_y0), dst_x0:dst_x0 + (src_x1 - src_x0)] = \
            buffer.pixels[src_y0:src_y1, src_x0:src_x1]
    return PixelBuffer(out)


def count_ink(buffer: PixelBuffer) -> int:
    """Number of fully opaque pixels."""
    return int(np.count_nonzero(buffer.pixels[..., 3] == 255))


def _to_rgba8(img: np.ndarray) -> np.ndarray:
    """Convert an OpenCV-decoded array (gray/BGR/BGRA, 8/16-bit) to RGBA uint8."""
    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    channels = img.shape[2]
    if channels == 1:
        return cv2.cvtColor(img[..., 0], cv2.COLOR_GRAY2RGBA)
    if channels == 2:
        # Gray + alpha (16-bit PNGs with alpha, some TIFFs)
        rgba = cv2.cvtColor(np.ascontiguousarray(img[..., 0]), cv2.COLOR_GRAY2RGBA)
        rgba[..., 3] = img[..., 1]
        return rgba
    if channels == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    return cv2.cvtColor(img[..., :4], cv2.COLOR_BGRA2RGBA)


def decode_image(data: bytes) -> PixelBuffer:
    """Decode image file bytes into an RGBA pixel buffer."""
    if not data:
        raise ImageDecodeError("Could not load image. The file is empty.")
    arr = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if img is None or img.size == 0:
        raise ImageDecodeError("Could not load image. Please ensure it is a valid image file.")
    return PixelBuffer(_to_rgba8(img))


def load_image(path: Union[str, Path]) -> PixelBuffer:
    """Load an image file as RGBA. Supports RAW formats (NEF, CR2, etc.) via rawpy."""
    path_obj = Path(path)
    ext = path_obj.suffix.lower()

    if ext in RAW_EXTENSIONS:
        if not HAS_RAWPY:
            raise ImportError(f"rawpy is required to open {ext.upper()} files. Install with: pip install rawpy")
        try:
            with rawpy.imread(str(path_obj)) as raw:
                rgb = raw.postprocess(output_bps=8)
        except (OSError, rawpy.LibRawError) as e:
            raise ImageDecodeError(f"Could not load image: {e}") from e
        return PixelBuffer(cv2.cvtColor(rgb, cv2.COLOR_RGB2RGBA))

    try:
        data = path_obj.read_bytes()
    except OSError as e:
        raise ImageDecodeError(f"Could not read file. Please try again. ({e})") from e
    return decode_image(data)


def encode_png(buffer: PixelBuffer) -> bytes:
    """Encode as lossless RGBA PNG (alpha preserved exactly)."""
    bgra = cv2.cvtColor(np.ascontiguousarray(buffer.pixels), cv2.COLOR_RGBA2BGRA)
    ok, encoded = cv2.imencode('.png', bgra)
    if not ok:
        raise ValueError("PNG encoding failed")
    return encoded.tobytes()


def save_png(buffer: PixelBuffer, path: Union[str, Path]) -> Path:
    """Write ``buffer`` to ``path`` as PNG and return the path."""
    path_obj = Path(path)
    path_obj.write_bytes(encode_png(buffer))
    return path_obj
