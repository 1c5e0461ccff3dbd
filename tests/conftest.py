import os

import pytest

import storage


@pytest.fixture(scope="session")
def qapp():
    pytest.importorskip("PySide6.QtWidgets", reason="Qt widgets not available", exc_type=ImportError)
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def isolated_storage(tmp_path, monkeypatch) -> storage.Storage:
    """Point the global settings database at a throwaway file."""
    store = storage.Storage(tmp_path / "settings.db")
    monkeypatch.setattr(storage, "_storage", store)
    return store
