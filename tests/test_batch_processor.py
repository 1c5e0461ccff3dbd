import time

import pytest

from processing import save_png
from services import batch_processor
from services.batch_processor import BatchProcessor, BatchResult, ProcessJob
from services.memory_manager import MemoryManager
from tests.helpers import make_buffer


def _slow_job(path, settings):
    time.sleep(3)
    return {"output": path}


class Recorder:
    def __init__(self):
        self.progress = []
        self.completed = {}
        self.errors = {}
        self.summary = None

    def processor(self, **kwargs) -> BatchProcessor:
        return BatchProcessor(
            on_progress=lambda done, total, path: self.progress.append((done, total)),
            on_item_complete=lambda index, result: self.completed.__setitem__(index, result),
            on_error=lambda index, message: self.errors.__setitem__(index, message),
            on_batch_complete=lambda ok, total: setattr(self, "summary", (ok, total)),
            **kwargs,
        )


def test_batch_refines_files_and_reports_failures(tmp_path):
    good = save_png(make_buffer(3, 3), tmp_path / "good.png")
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"garbage")
    out_dir = tmp_path / "out"
    settings = {"output_dir": str(out_dir)}
    recorder = Recorder()

    result = recorder.processor(max_workers=1).run([
        ProcessJob(0, str(good), settings),
        ProcessJob(1, str(bad), settings),
    ])

    assert (result.success_count, result.error_count) == (1, 1)
    assert not result.ok
    assert (out_dir / "good_refined.png").exists()
    assert result.outputs[0]["path"] == str(good)
    assert recorder.completed[0] is result.outputs[0]
    assert recorder.errors == result.errors
    assert recorder.summary == (1, 2)
    assert sorted(recorder.progress) == [(1, 2), (2, 2)]


def test_empty_run_needs_no_pool():
    recorder = Recorder()

    result = recorder.processor().run([])

    assert result == BatchResult(total=0)
    assert result.ok
    assert recorder.summary == (0, 0)


def test_callbacks_are_optional(tmp_path):
    source = save_png(make_buffer(2, 2), tmp_path / "sig.png")

    result = BatchProcessor(max_workers=1).run([ProcessJob(0, str(source), {"output_dir": str(tmp_path)})])

    assert result.ok
    assert result.outputs[0]["output"].endswith("sig_refined.png")


def test_cancel_stops_remaining_chunks(tmp_path, monkeypatch):
    sources = [save_png(make_buffer(2, 2), tmp_path / f"sig{i}.png") for i in range(3)]
    out_dir = tmp_path / "out"
    settings = {"output_dir": str(out_dir)}
    processor = BatchProcessor(max_workers=1, on_item_complete=lambda index, result: processor.cancel())
    monkeypatch.setattr(processor._memory_manager, "get_batch_size", lambda *args: 1)

    result = processor.run([ProcessJob(i, str(path), settings) for i, path in enumerate(sources)])

    assert result.cancelled
    assert result.success_count == 1
    assert not result.ok
    assert (out_dir / "sig0_refined.png").exists()
    assert not (out_dir / "sig1_refined.png").exists()
    assert not (out_dir / "sig2_refined.png").exists()


def test_stalled_chunk_times_out(tmp_path, monkeypatch):
    monkeypatch.setattr(batch_processor, "ITEM_TIMEOUT_S", 0.5)
    recorder = Recorder()
    started = time.monotonic()

    result = recorder.processor(max_workers=1, job_function=_slow_job).run([
        ProcessJob(0, str(tmp_path / "a.png"), {}),
        ProcessJob(1, str(tmp_path / "b.png"), {}),
    ])

    assert time.monotonic() - started < 2.5
    assert set(result.errors) == {0, 1}
    assert "Timed out" in result.errors[0]
    assert recorder.errors == result.errors
    assert not result.ok


def test_result_is_not_ok_until_every_job_is_accounted_for():
    assert BatchResult(total=2, outputs={0: {}, 1: {}}).ok
    assert not BatchResult(total=2, outputs={0: {}}).ok
    assert not BatchResult(total=1, outputs={0: {}}, cancelled=True).ok


def test_worker_count_override():
    assert BatchProcessor(max_workers=3).get_worker_count() == 3
    assert BatchProcessor(max_workers=0).get_worker_count() == 1


def test_memory_manager_bounds():
    manager = MemoryManager()

    workers = manager.get_optimal_workers()

    assert 1 <= workers <= MemoryManager.MAX_WORKERS
    assert manager.get_batch_size() >= 1
    assert manager.estimate_image_memory_mb(1024, 1024) == pytest.approx(MemoryManager.BYTES_PER_PIXEL)
    assert set(manager.get_resource_summary()) == {
        "cpu_count", "total_memory_gb", "available_memory_gb", "optimal_workers",
    }
