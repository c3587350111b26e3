"""Dev-mode switch shared by the canvas, panel and host processes."""

from __future__ import annotations

import os
from typing import Optional

DEV_MODE_ENV_VAR = "SLIDE_EDITOR_DEV_MODE"


def is_dev_mode(value: Optional[str] = None) -> bool:
    raw = os.getenv(DEV_MODE_ENV_VAR) if value is None else value
    if raw is None:
        return False
    token = raw.strip().lower()
    if token in {"1", "true", "yes", "on"}:
        return True
    return False


DEBUG_CONFIG_ENABLED = is_dev_mode()
