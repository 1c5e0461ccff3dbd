"""
SIGNATURE REFINER - Workers Module

Picklable processing functions for thread and process pools.
"""

from workers.image_processor import (
    threshold_parallel,
    refine_image_file,
)

__all__ = [
    'threshold_parallel',
    'refine_image_file',
]
