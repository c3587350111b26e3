from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from slide_canvas import debug_config
from slide_canvas.logging_utils import (
    build_rotating_file_handler,
    configure_component_logger,
    resolve_log_level,
    resolve_logs_dir,
)


def test_resolve_logs_dir_honours_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("SLIDE_EDITOR_LOG_DIR", str(tmp_path / "custom"))
    target = resolve_logs_dir(tmp_path)
    assert target == tmp_path / "custom" / "SlideEditor"
    assert target.is_dir()


def test_rotating_handler_retention(tmp_path):
    handler = build_rotating_file_handler(tmp_path, "editor.log", retention=3, max_bytes=1024)
    try:
        assert isinstance(handler, RotatingFileHandler)
        assert handler.backupCount == 2
        assert handler.maxBytes == 1024
    finally:
        handler.close()


def test_resolve_log_level(monkeypatch):
    monkeypatch.delenv("SLIDE_EDITOR_LOG_LEVEL", raising=False)
    assert resolve_log_level(True) == logging.DEBUG
    assert resolve_log_level(False) == logging.INFO
    monkeypatch.setenv("SLIDE_EDITOR_LOG_LEVEL", "warning")
    assert resolve_log_level(False) == logging.WARNING
    monkeypatch.setenv("SLIDE_EDITOR_LOG_LEVEL", "nonsense")
    assert resolve_log_level(False) == logging.INFO


def test_configure_component_logger_attaches_handler_once(tmp_path, monkeypatch):
    monkeypatch.setenv("SLIDE_EDITOR_LOG_DIR", str(tmp_path))
    logger = configure_component_logger("SlideEditor.TestComponent", tmp_path, "component.log", debug_enabled=True)
    again = configure_component_logger("SlideEditor.TestComponent", tmp_path, "component.log", debug_enabled=True)
    try:
        assert logger is again
        marked = [h for h in logger.handlers if getattr(h, "_slide_editor_handler", False)]
        assert len(marked) == 1
        assert logger.level == logging.DEBUG
        logger.info("hello")
        marked[0].flush()
        assert "hello" in (tmp_path / "SlideEditor" / "component.log").read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_dev_mode_tokens():
    assert debug_config.is_dev_mode("1")
    assert debug_config.is_dev_mode(" Yes ")
    assert not debug_config.is_dev_mode("0")
    assert not debug_config.is_dev_mode("")
