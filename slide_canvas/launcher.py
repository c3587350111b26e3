from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from slide_canvas.canvas_session import build_canvas_session
from slide_canvas.canvas_window import SlideCanvasWindow
from slide_canvas.data_client import CanvasDataClient
from slide_canvas.debug_config import DEBUG_CONFIG_ENABLED, DEV_MODE_ENV_VAR
from slide_canvas.editor_settings import PROJECT_ROOT, load_editor_settings, resolve_port_file, resolve_settings_path
from slide_canvas.logging_utils import configure_component_logger
from slide_canvas.slide_model import SlideFormatError, load_slide_file

_LOGGER_NAME = "SlideEditor.Canvas"


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Slide overlay editor canvas")
    parser.add_argument("--slide", required=True, help="Slide JSON file to edit")
    parser.add_argument("--port-file", help="Path to port.json emitted by the editor host")
    parser.add_argument("--settings", help="Path to editor_settings.json")
    parser.add_argument("--image-root", help="Directory image src paths are resolved against")
    parser.add_argument("--view", action="store_true", help="Start with edit mode disabled")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    settings = load_editor_settings(settings_path)
    logger = configure_component_logger(
        _LOGGER_NAME,
        PROJECT_ROOT,
        "slide_canvas.log",
        debug_enabled=DEBUG_CONFIG_ENABLED,
        retention=settings.log_retention,
    )
    if not DEBUG_CONFIG_ENABLED:
        logger.debug("Release mode; export %s=1 for debug logging.", DEV_MODE_ENV_VAR)

    slide_path = Path(args.slide).expanduser().resolve()
    try:
        slide = load_slide_file(slide_path)
    except SlideFormatError as exc:
        logger.error("Cannot open slide: %s", exc)
        return 2

    port_file = resolve_port_file(args.port_file)
    image_root = Path(args.image_root).expanduser().resolve() if args.image_root else PROJECT_ROOT / "public"
    edit_mode = settings.edit_mode and not args.view
    logger.info("Starting canvas (pid=%s) for slide %s (uid=%s)", os.getpid(), slide_path, slide.uid)
    logger.debug("Resolved port file %s, image root %s, edit_mode=%s", port_file, image_root, edit_mode)

    app = QApplication(sys.argv)
    data_client = CanvasDataClient(port_file)
    session = build_canvas_session(
        slide,
        send=data_client.send,
        file_path=str(slide_path),
        logger=logging.getLogger(_LOGGER_NAME),
    )
    window = SlideCanvasWindow(session.store, session.bus, image_root=image_root, edit_mode=edit_mode)
    session.router.set_edit_mode_handler(window.set_edit_mode)
    data_client.message_received.connect(session.link.receive)
    data_client.status_changed.connect(lambda text: logger.debug("Transport status: %s", text))

    window.resize(1024, 768)
    window.show()
    data_client.start()
    session.store.publish_state()

    exit_code = app.exec()
    window.controller.teardown()
    session.close()
    data_client.stop()
    logger.info("Canvas exiting with code %s", exit_code)
    return int(exit_code)


if __name__ == "__main__":
    raise SystemExit(main())
