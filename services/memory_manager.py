"""
SIGNATURE REFINER - Memory Manager

Monitor system memory and calculate optimal worker/batch configurations.
"""

import multiprocessing
from typing import Tuple

import psutil


class MemoryManager:
    """Monitor memory and calculate optimal worker counts for thresholding."""

    # uint8 RGBA input + uint8 RGBA output + float64 luminance + bool masks
    BYTES_PER_PIXEL = 4 + 4 + 8 + 2

    # Reserve this much RAM for system/Qt/other processes
    SAFETY_MARGIN_GB = 1.0

    # Estimated peak memory per worker process (includes OpenCV buffers, etc.)
    MEMORY_PER_WORKER_GB = 0.4

    # Maximum workers regardless of resources (diminishing returns beyond this)
    MAX_WORKERS = 8

    # Minimum workers to maintain some parallelism
    MIN_WORKERS = 2

    def get_cpu_count(self) -> int:
        """Get number of CPU cores available."""
        return multiprocessing.cpu_count()

    def get_available_memory_gb(self) -> float:
        """Get current available memory in GB."""
        return psutil.virtual_memory().available / (1024 ** 3)

    def get_total_memory_gb(self) -> float:
        """Get total system memory in GB."""
        return psutil.virtual_memory().total / (1024 ** 3)

    def get_optimal_workers(self) -> int:
        """
        Calculate optimal number of workers.

        Considers both CPU cores and available memory; one core is left
        for the UI thread.
        """
        cpu_count = self.get_cpu_count()
        available_gb = self.get_available_memory_gb()

        max_by_cpu = max(self.MIN_WORKERS, cpu_count - 1)

        usable_memory = available_gb - self.SAFETY_MARGIN_GB
        max_by_memory = max(1, int(usable_memory / self.MEMORY_PER_WORKER_GB))

        optimal = min(max_by_cpu, max_by_memory, self.MAX_WORKERS)

        return max(1, optimal)

    def get_batch_size(self, image_resolution: Tuple[int, int] = (4000, 3000)) -> int:
        """
        Calculate how many images to submit per batch.

        Args:
            image_resolution: (width, height) of images being processed

        Returns:
            Number of images to process per batch
        """
        width, height = image_resolution
        image_mb = self.estimate_image_memory_mb(width, height)

        # Target using 50% of available memory for the batch
        target_mb = (self.get_available_memory_gb() * 0.5) * 1024

        batch_size = max(1, int(target_mb / image_mb))

        return min(batch_size, 20)

    def estimate_image_memory_mb(self, width: int, height: int) -> float:
        """Estimate memory required to threshold a single image in MB."""
        pixels = width * height
        return (pixels * self.BYTES_PER_PIXEL) / (1024 ** 2)

    def get_resource_summary(self) -> dict:
        """Get a summary of available resources for display."""
        return {
            'cpu_count': self.get_cpu_count(),
            'total_memory_gb': round(self.get_total_memory_gb(), 1),
            'available_memory_gb': round(self.get_available_memory_gb(), 1),
            'optimal_workers': self.get_optimal_workers(),
        }
