"""Configuration helpers shared by the editor processes."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

SETTINGS_ENV_VAR = "SLIDE_EDITOR_SETTINGS"
SETTINGS_FILENAME = "editor_settings.json"
PORT_FILENAME = "port.json"
PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class EditorSettings:
    """Values read from editor_settings.json, with defaults for anything missing."""

    content_dir: Path = PROJECT_ROOT / "content" / "slide"
    log_retention: int = 5
    edit_mode: bool = True
    writer_timeout_seconds: float = 10.0
    host: str = "127.0.0.1"
    port: int = 0


def resolve_settings_path(explicit: Optional[str] = None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    env_override = os.getenv(SETTINGS_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser().resolve()
    return PROJECT_ROOT / SETTINGS_FILENAME


def resolve_port_file(explicit: Optional[str] = None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    env_override = os.getenv("SLIDE_EDITOR_PORT_FILE")
    if env_override:
        return Path(env_override).expanduser().resolve()
    return PROJECT_ROOT / PORT_FILENAME


def load_editor_settings(settings_path: Path) -> EditorSettings:
    """Read editor_settings.json; unreadable or invalid values fall back to defaults."""
    defaults = EditorSettings()
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return defaults

    try:
        data: Dict[str, Any] = json.loads(raw)
    except json.JSONDecodeError:
        return defaults
    if not isinstance(data, dict):
        return defaults

    content_dir = defaults.content_dir
    raw_dir = data.get("content_dir")
    if isinstance(raw_dir, str) and raw_dir.strip():
        candidate = Path(raw_dir).expanduser()
        content_dir = candidate if candidate.is_absolute() else (settings_path.parent / candidate)

    retention = defaults.log_retention
    try:
        retention = int(data.get("log_retention", retention))
    except (TypeError, ValueError):
        retention = defaults.log_retention

    timeout = defaults.writer_timeout_seconds
    try:
        timeout = float(data.get("writer_timeout_seconds", timeout))
    except (TypeError, ValueError):
        timeout = defaults.writer_timeout_seconds

    port = defaults.port
    try:
        port = int(data.get("port", port))
    except (TypeError, ValueError):
        port = defaults.port

    host = data.get("host", defaults.host)
    if not isinstance(host, str) or not host.strip():
        host = defaults.host

    return EditorSettings(
        content_dir=content_dir.resolve(),
        log_retention=max(1, retention),
        edit_mode=bool(data.get("edit_mode", defaults.edit_mode)),
        writer_timeout_seconds=max(1.0, timeout),
        host=host.strip(),
        port=max(0, port),
    )
