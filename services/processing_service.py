"""
SIGNATURE REFINER - Processing Service

Qt-compatible coordinator for background threshold passes.
Each slider change becomes one request; every request runs to completion
and the session decides which result is shown.
"""

from PySide6.QtCore import QObject, Signal, QThread
from typing import Dict, Optional, Tuple

from services.memory_manager import MemoryManager
from services.refine_session import ThresholdRequest
from workers.image_processor import threshold_parallel


class ThresholdWorker(QObject):
    """
    Worker that thresholds one request inside a QThread.
    """

    finished = Signal(int, object)   # request_id, PixelBuffer
    error = Signal(int, str)         # request_id, error message

    def __init__(self, request: ThresholdRequest, workers: int):
        super().__init__()
        self._request = request
        self._workers = workers

    def run(self):
        """Execute the threshold pass (called when thread starts)."""
        request = self._request
        try:
            result = threshold_parallel(request.source, request.params, self._workers)
        except Exception as e:
            self.error.emit(request.request_id, str(e))
            return
        self.finished.emit(request.request_id, result)


class ThresholdService(QObject):
    """
    Runs threshold requests off the UI thread.

    Requests are never cancelled. Results are forwarded in completion order;
    the receiver filters stale ones by request id.
    """

    resultReady = Signal(int, object)     # request_id, PixelBuffer
    errorOccurred = Signal(int, str)      # request_id, error message

    def __init__(self, parent: QObject = None, workers: Optional[int] = None):
        super().__init__(parent)
        self._running: Dict[int, Tuple[QThread, ThresholdWorker]] = {}
        self._memory_manager = MemoryManager()
        self._workers = workers

    def request(self, request: ThresholdRequest):
        """Start a background pass for ``request``."""
        workers = self._workers or self._memory_manager.get_optimal_workers()

        thread = QThread()
        worker = ThresholdWorker(request, workers)
        worker.moveToThread(thread)

        thread.started.connect(worker.run)
        worker.finished.connect(self._on_finished)
        worker.error.connect(self._on_error)

        self._running[request.request_id] = (thread, worker)
        thread.start()

    def _on_finished(self, request_id: int, result):
        self.resultReady.emit(request_id, result)
        self._cleanup(request_id)

    def _on_error(self, request_id: int, message: str):
        print(f"[ThresholdService] Request {request_id} failed: {message}")
        self.errorOccurred.emit(request_id, message)
        self._cleanup(request_id)

    def _cleanup(self, request_id: int):
        """Stop the thread that served ``request_id``."""
        entry = self._running.pop(request_id, None)
        if entry is None:
            return
        thread, _worker = entry
        thread.quit()
        if not thread.wait(5000):  # 5 second timeout
            print("[ThresholdService] Thread did not quit cleanly")
            thread.terminate()

    def shutdown(self):
        """Wait for every in-flight pass, then stop its thread."""
        for request_id in list(self._running):
            self._cleanup(request_id)

    @property
    def pending_count(self) -> int:
        return len(self._running)

    @property
    def is_running(self) -> bool:
        """Check if any threshold pass is in flight."""
        return any(thread.isRunning() for thread, _ in self._running.values())
