"""
SIGNATURE REFINER - Batch Processor

Refines many files on a ProcessPoolExecutor for the headless CLI mode.
"""

import gc
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Any

from services.memory_manager import MemoryManager
from workers.image_processor import refine_image_file

# A run is abandoned when no job in a chunk finishes within this many seconds
ITEM_TIMEOUT_S = 300


@dataclass
class ProcessJob:
    """A single file to refine."""
    index: int
    path: str
    settings: Dict[str, Any]


@dataclass
class BatchResult:
    """Outcome of one run, keyed by job index."""
    total: int
    outputs: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    errors: Dict[int, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return len(self.outputs)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        processed = self.success_count + self.error_count
        return not self.errors and not self.cancelled and processed == self.total


class BatchProcessor:
    """
    Runs refine jobs in worker processes, a memory-sized chunk at a time.

    Callbacks are optional and are invoked on the calling thread:
        on_progress(done, total, path)
        on_item_complete(index, result)
        on_error(index, message)
        on_batch_complete(success_count, total)
    """

    def __init__(
        self,
        on_progress: Optional[Callable[[int, int, str], None]] = None,
        on_item_complete: Optional[Callable[[int, Dict[str, Any]], None]] = None,
        on_error: Optional[Callable[[int, str], None]] = None,
        on_batch_complete: Optional[Callable[[int, int], None]] = None,
        max_workers: Optional[int] = None,
        job_function: Callable[[str, Dict[str, Any]], Dict[str, Any]] = refine_image_file,
    ):
        self._on_progress = on_progress
        self._on_item_complete = on_item_complete
        self._on_error = on_error
        self._on_batch_complete = on_batch_complete
        self._max_workers = max_workers
        self._job_function = job_function
        self._memory_manager = MemoryManager()
        self._executor: Optional[ProcessPoolExecutor] = None
        self._cancelled = False
        self._stalled = False

    def run(self, jobs: List[ProcessJob]) -> BatchResult:
        """Refine every job and return the collected outcome."""
        result = BatchResult(total=len(jobs))
        self._cancelled = False
        self._stalled = False
        if not jobs:
            self._notify(self._on_batch_complete, 0, 0)
            return result

        chunk_size = self._memory_manager.get_batch_size()
        self._executor = ProcessPoolExecutor(max_workers=self.get_worker_count())
        try:
            for start in range(0, len(jobs), chunk_size):
                if self._cancelled or self._stalled:
                    break
                self._run_chunk(jobs[start:start + chunk_size], result)
                gc.collect()
        except Exception as e:
            print(f"[BatchProcessor] Unexpected error: {e}")
        finally:
            self._shutdown_executor()

        result.cancelled = self._cancelled
        self._notify(self._on_batch_complete, result.success_count, result.total)
        return result

    def _run_chunk(self, chunk: List[ProcessJob], result: BatchResult):
        futures: Dict[Future, ProcessJob] = {
            self._executor.submit(self._job_function, job.path, job.settings): job
            for job in chunk
        }

        pending = set(futures)
        while pending and not self._cancelled:
            done, pending = wait(pending, timeout=ITEM_TIMEOUT_S, return_when=FIRST_COMPLETED)
            if not done:
                self._fail_stalled(pending, futures, result)
                return
            for future in done:
                self._collect(future, futures[future], result)

        for future in pending:
            future.cancel()

    def _collect(self, future: Future, job: ProcessJob, result: BatchResult):
        try:
            output = future.result()
        except Exception as e:
            self._record_error(job, str(e), result)
        else:
            output['path'] = job.path
            result.outputs[job.index] = output
            self._notify(self._on_item_complete, job.index, output)
            self._notify_progress(job, result)

    def _fail_stalled(self, pending, futures: Dict[Future, ProcessJob], result: BatchResult):
        """Nothing finished in time: give up on the pool and fail what is left."""
        self._stalled = True
        print(f"[BatchProcessor] No job finished within {ITEM_TIMEOUT_S}s, abandoning {len(pending)}")
        for future in pending:
            future.cancel()
            self._record_error(futures[future], f"Timed out after {ITEM_TIMEOUT_S}s", result)

    def _record_error(self, job: ProcessJob, message: str, result: BatchResult):
        result.errors[job.index] = message
        self._notify(self._on_error, job.index, message)
        self._notify_progress(job, result)

    def _notify_progress(self, job: ProcessJob, result: BatchResult):
        done = result.success_count + result.error_count
        self._notify(self._on_progress, done, result.total, job.path)

    @staticmethod
    def _notify(callback, *args):
        if callback is not None:
            callback(*args)

    def _shutdown_executor(self):
        if self._executor:
            # A stalled worker would block a waiting shutdown indefinitely
            abandon = self._cancelled or self._stalled
            self._executor.shutdown(wait=not abandon, cancel_futures=abandon)
            self._executor = None

    def cancel(self):
        """Stop after the items already running; queued items are dropped."""
        self._cancelled = True
        self._shutdown_executor()

    def get_worker_count(self) -> int:
        """Worker processes a run will use."""
        if self._max_workers is not None:
            return max(1, self._max_workers)
        return self._memory_manager.get_optimal_workers()
