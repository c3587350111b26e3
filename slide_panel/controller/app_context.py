from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from slide_canvas.editor_settings import EditorSettings, load_editor_settings
from slide_panel.controller.command_emitter import CommandEmitter
from slide_panel.mirror_state import PanelMirror
from slide_panel.services.canvas_link import CanvasLink, ConnectFn

LINK_POLL_MS = 50


@dataclass
class AppContext:
    settings_path: Path
    port_path: Path
    settings: EditorSettings
    mirror: PanelMirror
    link: CanvasLink
    emitter: CommandEmitter
    link_poll_ms: int


def build_app_context(
    *,
    settings_path: Path,
    port_path: Path,
    connect: Optional[ConnectFn] = None,
    logger: Optional[logging.Logger] = None,
) -> AppContext:
    settings = load_editor_settings(settings_path)
    mirror = PanelMirror()
    link = CanvasLink(
        port_path=port_path,
        connect=connect,
        logger=logger.getChild("Link") if logger is not None else None,
    )
    emitter = CommandEmitter(
        mirror,
        link.send,
        logger=logger.getChild("Commands") if logger is not None else None,
    )
    return AppContext(
        settings_path=settings_path,
        port_path=port_path,
        settings=settings,
        mirror=mirror,
        link=link,
        emitter=emitter,
        link_poll_ms=LINK_POLL_MS,
    )
