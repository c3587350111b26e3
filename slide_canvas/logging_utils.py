from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_DIR_ENV_VAR = "SLIDE_EDITOR_LOG_DIR"
LOG_LEVEL_ENV_VAR = "SLIDE_EDITOR_LOG_LEVEL"
DEFAULT_LOG_DIR_NAME = "SlideEditor"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_logs_dir(base_path: Path, log_dir_name: str = DEFAULT_LOG_DIR_NAME) -> Path:
    """
    Resolve the directory to store editor logs.

    Strategy:
    - Use SLIDE_EDITOR_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `<base_path>/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        candidates.append(Path(env_override).expanduser())

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / "slide-editor" / "logs")
    candidates.append(cache_home / "slide-editor" / "logs")
    candidates.append(base_path.resolve() / "logs")

    for base in candidates:
        try:
            target = base / log_dir_name
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler with sane defaults."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    """Return DEBUG in dev mode, the SLIDE_EDITOR_LOG_LEVEL hint if valid, else INFO."""
    if debug_enabled:
        return logging.DEBUG
    hint = (os.environ.get(LOG_LEVEL_ENV_VAR) or "").strip()
    if hint:
        if hint.isdigit():
            return int(hint)
        candidate = getattr(logging, hint.upper(), None)
        if isinstance(candidate, int):
            return candidate
    return logging.INFO


def configure_component_logger(
    name: str,
    base_path: Path,
    filename: str,
    *,
    debug_enabled: bool,
    retention: int = 5,
) -> logging.Logger:
    """Attach a rotating file handler to the component's logger, once."""

    logger = logging.getLogger(name)
    logger.setLevel(resolve_log_level(debug_enabled))
    if any(getattr(handler, "_slide_editor_handler", False) for handler in logger.handlers):
        return logger
    try:
        handler = build_rotating_file_handler(
            resolve_logs_dir(base_path),
            filename,
            retention=retention,
            formatter=logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT),
        )
    except OSError as exc:
        logger.warning("File logging unavailable (%s); continuing with console logging only", exc)
        return logger
    handler._slide_editor_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.debug(
        "Logger initialised: path=%s level=%s retention=%d",
        getattr(handler, "baseFilename", filename),
        logging.getLevelName(logger.level),
        retention,
    )
    return logger
