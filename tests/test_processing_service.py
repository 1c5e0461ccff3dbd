import time

import pytest

pytest.importorskip("PySide6.QtTest", reason="Qt test utilities unavailable", exc_type=ImportError)

from PySide6.QtTest import QTest

from processing import ThresholdParams, threshold
from services.processing_service import ThresholdService
from services.refine_session import RefineSession
from tests.helpers import random_buffer


def _wait_until(condition, timeout_s=10.0):
    deadline = time.monotonic() + timeout_s
    while not condition() and time.monotonic() < deadline:
        QTest.qWait(20)
    return condition()


def test_background_pass_delivers_result(qapp):
    session = RefineSession()
    session.load_buffer(random_buffer(40, 300, seed=6))
    session.set_params(ThresholdParams(90, 70), recompute=False)
    service = ThresholdService(workers=2)
    received = []
    service.resultReady.connect(lambda request_id, result: received.append((request_id, result)))

    try:
        request = session.begin_request()
        service.request(request)

        assert _wait_until(lambda: received)
        request_id, result = received[0]
        assert request_id == request.request_id
        assert result == threshold(request.source, request.params)
        assert session.accept_result(request_id, result)
    finally:
        service.shutdown()
    assert service.pending_count == 0


def test_shutdown_without_requests(qapp):
    service = ThresholdService()

    service.shutdown()

    assert not service.is_running
