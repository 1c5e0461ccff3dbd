"""
SIGNATURE REFINER - Refine Session

Owns the active image: the decoded upload, its thresholded result, the
current parameters and the crop controller. All changes to the current
buffer or crop rectangle go through here.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from crop_geometry import CropController, InvalidCropError, apply_crop
from processing import PixelBuffer, ThresholdParams, load_image, save_png, threshold


@dataclass(frozen=True)
class ThresholdRequest:
    """A snapshot of what to threshold; ids grow in request order."""
    request_id: int
    source: PixelBuffer
    params: ThresholdParams


def compute_file_hash(path: Union[str, Path]) -> str:
    """Compute SHA-256 hash of a file for settings lookup."""
    hasher = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            hasher.update(chunk)
    return hasher.hexdigest()


class RefineSession:
    """Active image slot plus the recompute bookkeeping.

    Threshold passes may finish out of order when run in the background.
    A result is only presented if its request is newer than the result on
    screen, and results computed from a replaced source are dropped.
    """

    def __init__(self, params: ThresholdParams = None):
        self.params = (params or ThresholdParams()).clamped()
        self.source: Optional[PixelBuffer] = None
        self.result: Optional[PixelBuffer] = None
        self.path: Optional[Path] = None
        self.image_hash: Optional[str] = None
        self.crop = CropController()

        self._next_request_id = 0
        self._presented_id = -1
        # Requests below this id were made against a source that is gone
        self._oldest_valid_id = 0

    @property
    def has_image(self) -> bool:
        return self.source is not None

    def load_file(self, path: Union[str, Path], refresh: bool = True) -> PixelBuffer:
        """Decode and activate an image file.

        Raises ImageDecodeError without touching the current image.
        """
        buffer = load_image(path)
        image_hash = compute_file_hash(path)
        self.load_buffer(buffer, refresh)
        self.path = Path(path)
        self.image_hash = image_hash
        return buffer

    def load_buffer(self, buffer: PixelBuffer, refresh: bool = True):
        """Make ``buffer`` the active image.

        With ``refresh=False`` the result stays empty until the next
        ``set_params`` or ``refresh``.
        """
        self.source = buffer
        self.path = None
        self.image_hash = None
        self.crop.set_canvas_size(buffer.width, buffer.height)
        self._invalidate_pending()
        self.result = None
        if refresh:
            self.refresh()

    def set_params(self, params: ThresholdParams, recompute: bool = True):
        """Store new (clamped) thresholds, re-thresholding synchronously by default."""
        self.params = params.clamped()
        if recompute and self.has_image:
            self.refresh()

    def refresh(self) -> Optional[PixelBuffer]:
        """Run a threshold pass now and present it."""
        request = self.begin_request()
        if request is None:
            return None
        self.accept_result(request.request_id, threshold(request.source, request.params))
        return self.result

    def begin_request(self) -> Optional[ThresholdRequest]:
        """Snapshot the current source and params for a (possibly background) pass."""
        if self.source is None:
            return None
        request = ThresholdRequest(self._next_request_id, self.source, self.params)
        self._next_request_id += 1
        return request

    def accept_result(self, request_id: int, result: PixelBuffer) -> bool:
        """Present ``result`` unless a later request has already been presented.

        Returns True if the result became the current buffer.
        """
        if request_id < self._oldest_valid_id or request_id <= self._presented_id:
            return False
        self._presented_id = request_id
        self.result = result
        return True

    def _invalidate_pending(self):
        self._oldest_valid_id = self._next_request_id

    def enter_crop_mode(self):
        if not self.has_image:
            return
        self.crop.enter_crop_mode()

    def reset_crop(self):
        if self.crop.cropping:
            self.crop.reset()

    def cancel_crop(self):
        self.crop.cancel()

    def apply_crop(self, scale_x: float = 1.0, scale_y: float = 1.0) -> PixelBuffer:
        """Crop both the source and the result to the current rectangle.

        Raises InvalidCropError (state unchanged) when there is nothing to crop.
        """
        if self.result is None or self.source is None:
            raise InvalidCropError()
        rect = self.crop.rect
        cropped_source = apply_crop(rect, self.source, scale_x, scale_y)
        cropped_result = self.crop.apply(self.result, scale_x, scale_y)

        self.source = cropped_source
        self.result = cropped_result
        self.crop.set_canvas_size(cropped_result.width, cropped_result.height)
        self._invalidate_pending()
        return cropped_result

    def export_png(self, path: Union[str, Path]) -> Path:
        """Write the current result as a transparent PNG."""
        if self.result is None:
            raise ValueError("No refined image to export")
        return save_png(self.result, path)
