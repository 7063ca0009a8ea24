from loguru import logger
from PyQt5.QtTest import QTest

from vizsync.control.config import Settings
from vizsync.control.layout import LayoutFeedback
from vizsync.control.storage import LocalStorage


def test_storage_persists_each_write(tmp_path):
    path = tmp_path / "nested" / "storage.json"
    storage = LocalStorage(path)
    storage.set_item("a", 1)
    storage.set_json("b", {"x": [1, 2]})

    again = LocalStorage(path)
    assert again.get_item("a") == "1"
    assert again.get_json("b") == {"x": [1, 2]}

    again.remove_item("a")
    assert "a" not in LocalStorage(path)


def test_corrupt_storage_loads_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{oops", encoding="utf-8")
    storage = LocalStorage(path)

    assert len(storage) == 0
    assert storage.get_json("missing", default=[]) == []


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("VIZSYNC_HOME", str(tmp_path))
    monkeypatch.setenv("VIZSYNC_LOG_LEVEL", "debug")
    monkeypatch.setenv("VIZSYNC_READY_INTERVAL_MS", "not-a-number")
    warnings = []
    sink = logger.add(warnings.append, level="WARNING", format="{message}")
    try:
        settings = Settings.from_env()
    finally:
        logger.remove(sink)

    assert settings.storage_path == tmp_path / "storage.json"
    assert settings.log_level == "DEBUG"
    assert settings.ready_interval_ms == 250
    assert any("not-a-number" in str(w) for w in warnings)


def test_layout_notifications_coalesce_and_respect_floor():
    sent = []
    loop = LayoutFeedback(lambda: (40, 260), lambda t, **kw: sent.append((t, kw)))
    loop.notify()
    loop.notify()
    loop.notify()

    assert sent == []
    QTest.qWait(60)
    assert sent == [("resize", {"width": 100, "height": 260})]


def test_layout_flush_reports_pending_only():
    sent = []
    loop = LayoutFeedback(lambda: (300, 20), lambda t, **kw: sent.append((t, kw)))
    loop.flush()
    assert sent == []

    loop.notify()
    loop.flush()
    assert sent == [("resize", {"width": 300, "height": 100})]
    assert loop.last_size == (300, 100)
    assert not loop.scheduled
