"""
SIGNATURE REFINER - Shared State

Centralized state for the threshold sliders and crop mode.
"""

from PySide6.QtCore import QObject, Signal

import storage
from processing import ThresholdParams, clamp_channel


class RefineState(QObject):
    """Threshold parameters and crop mode, shared by the controls and the canvas.

    Values coming from the sliders are clamped to 0-255 here, so the
    thresholding engine always receives in-range parameters.
    """

    # Signals for state changes
    luminanceThresholdChanged = Signal(int)  # 0-255
    alphaCutoffChanged = Signal(int)  # 0-255
    paramsChanged = Signal(object)  # ThresholdParams
    cropModeChanged = Signal(bool)
    cropResetRequested = Signal()

    def __init__(self, defaults: ThresholdParams = None):
        super().__init__()
        if defaults is None:
            defaults = storage.get_storage().get_default_params()
        defaults = defaults.clamped()
        self._defaults = defaults
        self._luminance_threshold = defaults.luminance_threshold
        self._alpha_cutoff = defaults.alpha_cutoff
        self._crop_mode = False

    @property
    def luminance_threshold(self) -> int:
        return self._luminance_threshold

    @luminance_threshold.setter
    def luminance_threshold(self, value: int):
        value = clamp_channel(value)
        if self._luminance_threshold != value:
            self._luminance_threshold = value
            self.luminanceThresholdChanged.emit(value)
            self.paramsChanged.emit(self.params)

    @property
    def alpha_cutoff(self) -> int:
        return self._alpha_cutoff

    @alpha_cutoff.setter
    def alpha_cutoff(self, value: int):
        value = clamp_channel(value)
        if self._alpha_cutoff != value:
            self._alpha_cutoff = value
            self.alphaCutoffChanged.emit(value)
            self.paramsChanged.emit(self.params)

    @property
    def params(self) -> ThresholdParams:
        return ThresholdParams(self._luminance_threshold, self._alpha_cutoff)

    def set_params(self, params: ThresholdParams):
        """Set both thresholds at once, emitting paramsChanged at most once."""
        params = params.clamped()
        if params == self.params:
            return
        lum_changed = params.luminance_threshold != self._luminance_threshold
        alpha_changed = params.alpha_cutoff != self._alpha_cutoff
        self._luminance_threshold = params.luminance_threshold
        self._alpha_cutoff = params.alpha_cutoff
        if lum_changed:
            self.luminanceThresholdChanged.emit(self._luminance_threshold)
        if alpha_changed:
            self.alphaCutoffChanged.emit(self._alpha_cutoff)
        self.paramsChanged.emit(self.params)

    def reset_params(self):
        """Return both thresholds to their defaults."""
        self.set_params(self._defaults)

    @property
    def crop_mode(self) -> bool:
        return self._crop_mode

    @crop_mode.setter
    def crop_mode(self, value: bool):
        if self._crop_mode != value:
            self._crop_mode = value
            self.cropModeChanged.emit(value)

    def request_crop_reset(self):
        """Request crop bounds reset."""
        self.cropResetRequested.emit()
