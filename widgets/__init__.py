"""
SIGNATURE REFINER - Widgets Package

Re-exports all widget classes for convenient imports.
"""

# Controls
from widgets.controls import SliderWithButtons

# Image panels
from widgets.image_panel import (
    ImagePanel,
    CropCanvas,
    buffer_to_qimage,
)

__all__ = [
    # Controls
    'SliderWithButtons',
    # Image panels
    'ImagePanel',
    'CropCanvas',
    'buffer_to_qimage',
]
