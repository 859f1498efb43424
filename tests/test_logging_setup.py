"""Tests for io/logging_setup — handler wiring and env-driven runtime config."""

import logging

import pytest

import realtime_devtools.io.logging_setup


@pytest.fixture(autouse=True)
def _fresh_logging(tmp_path, monkeypatch):
    monkeypatch.setenv("REALTIME_DEVTOOLS_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("REALTIME_DEVTOOLS_LOG_FILE", raising=False)
    monkeypatch.delenv("REALTIME_DEVTOOLS_LOG_LEVEL", raising=False)
    realtime_devtools.io.logging_setup.reset()
    yield
    realtime_devtools.io.logging_setup.reset()


def test_configure_writes_to_log_dir(tmp_path):
    runtime = realtime_devtools.io.logging_setup.configure(session_name="room 1", stderr=False)
    assert runtime.file_path.startswith(str(tmp_path / "logs"))
    assert "room-1-" in runtime.file_path
    assert runtime.level == logging.INFO
    assert runtime.stderr is False

    logging.getLogger("realtime_devtools.app.session").info("hello file")
    for handler in logging.getLogger("realtime_devtools").handlers:
        handler.flush()
    with open(runtime.file_path, encoding="utf-8") as f:
        assert "hello file" in f.read()


def test_configure_is_idempotent():
    first = realtime_devtools.io.logging_setup.configure(stderr=False)
    second = realtime_devtools.io.logging_setup.configure(stderr=True)
    assert second is first
    assert realtime_devtools.io.logging_setup.get_runtime() is first


def test_stderr_handler_optional():
    realtime_devtools.io.logging_setup.configure(stderr=True)
    handlers = logging.getLogger("realtime_devtools").handlers
    assert len(handlers) == 2
    realtime_devtools.io.logging_setup.reset()
    realtime_devtools.io.logging_setup.configure(stderr=False)
    assert len(logging.getLogger("realtime_devtools").handlers) == 1


def test_level_from_env(monkeypatch):
    monkeypatch.setenv("REALTIME_DEVTOOLS_LOG_LEVEL", "debug")
    runtime = realtime_devtools.io.logging_setup.configure(stderr=False)
    assert runtime.level_name == "DEBUG"
    assert logging.getLogger("realtime_devtools").level == logging.DEBUG


def test_bad_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("REALTIME_DEVTOOLS_LOG_LEVEL", "chatty")
    assert realtime_devtools.io.logging_setup.configure(stderr=False).level == logging.INFO


def test_explicit_log_file(tmp_path, monkeypatch):
    target = tmp_path / "nested" / "devtools.log"
    monkeypatch.setenv("REALTIME_DEVTOOLS_LOG_FILE", str(target))
    runtime = realtime_devtools.io.logging_setup.configure(stderr=False)
    assert runtime.file_path == str(target)
    assert target.parent.is_dir()


def test_reset_restores_propagation():
    realtime_devtools.io.logging_setup.configure(stderr=False)
    assert logging.getLogger("realtime_devtools").propagate is False
    realtime_devtools.io.logging_setup.reset()
    assert logging.getLogger("realtime_devtools").propagate is True
    assert realtime_devtools.io.logging_setup.get_runtime() is None
