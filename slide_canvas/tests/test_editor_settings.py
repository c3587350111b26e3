from __future__ import annotations

import json
from pathlib import Path

from slide_canvas import editor_settings
from slide_canvas.editor_settings import EditorSettings, load_editor_settings, resolve_port_file, resolve_settings_path


def test_missing_file_returns_defaults(tmp_path):
    settings = load_editor_settings(tmp_path / "absent.json")
    assert settings == EditorSettings()


def test_invalid_json_returns_defaults(tmp_path):
    path = tmp_path / "editor_settings.json"
    path.write_text("{broken", encoding="utf-8")
    assert load_editor_settings(path) == EditorSettings()


def test_values_are_read_and_sanitised(tmp_path):
    path = tmp_path / "editor_settings.json"
    path.write_text(
        json.dumps(
            {
                "content_dir": "slides",
                "log_retention": 0,
                "edit_mode": False,
                "writer_timeout_seconds": "abc",
                "host": " 0.0.0.0 ",
                "port": 4711,
            }
        ),
        encoding="utf-8",
    )

    settings = load_editor_settings(path)

    assert settings.content_dir == (tmp_path / "slides").resolve()
    assert settings.log_retention == 1
    assert settings.edit_mode is False
    assert settings.writer_timeout_seconds == EditorSettings().writer_timeout_seconds
    assert settings.host == "0.0.0.0"
    assert settings.port == 4711


def test_absolute_content_dir_is_kept(tmp_path):
    target = tmp_path / "elsewhere"
    path = tmp_path / "editor_settings.json"
    path.write_text(json.dumps({"content_dir": str(target)}), encoding="utf-8")
    assert load_editor_settings(path).content_dir == target.resolve()


def test_resolve_paths_prefer_explicit_then_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SLIDE_EDITOR_SETTINGS", str(tmp_path / "env.json"))
    monkeypatch.setenv("SLIDE_EDITOR_PORT_FILE", str(tmp_path / "env-port.json"))
    assert resolve_settings_path(str(tmp_path / "cli.json")) == (tmp_path / "cli.json").resolve()
    assert resolve_settings_path() == (tmp_path / "env.json").resolve()
    assert resolve_port_file() == (tmp_path / "env-port.json").resolve()

    monkeypatch.delenv("SLIDE_EDITOR_SETTINGS")
    monkeypatch.delenv("SLIDE_EDITOR_PORT_FILE")
    assert resolve_settings_path() == editor_settings.PROJECT_ROOT / "editor_settings.json"
    assert resolve_port_file() == Path(editor_settings.PROJECT_ROOT) / "port.json"
