"""
SIGNATURE REFINER - Services Layer

Session state, background thresholding and batch operations.
"""

from services.memory_manager import MemoryManager
from services.batch_processor import BatchProcessor, BatchResult, ProcessJob
from services.refine_session import RefineSession, ThresholdRequest
from services.processing_service import ThresholdService

__all__ = [
    'MemoryManager',
    'BatchProcessor',
    'BatchResult',
    'ProcessJob',
    'RefineSession',
    'ThresholdRequest',
    'ThresholdService',
]
