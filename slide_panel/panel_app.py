"""Detached control panel for the slide overlay editor."""
from __future__ import annotations

import argparse
import logging
import os
import sys
import tkinter as tk
from pathlib import Path
from typing import Optional

from slide_canvas.debug_config import DEBUG_CONFIG_ENABLED
from slide_canvas.editor_settings import PROJECT_ROOT, resolve_port_file, resolve_settings_path
from slide_canvas.logging_utils import configure_component_logger
from slide_panel.controller import AppContext, build_app_context, dispatch_payload, log_exception
from slide_panel.mirror_state import MirrorChange
from slide_panel.widgets import LayerControlsWidget, OverlayFormWidget

_LOGGER_NAME = "SlideEditor.Panel"


class SlidePanelApp(tk.Tk):
    """Mirrors the canvas state and sends commands back; never edits the slide itself."""

    def __init__(self, context: AppContext, logger: logging.Logger) -> None:
        super().__init__()
        self.title("Slide Editor Controls")
        self.geometry("640x260")
        self.minsize(520, 220)
        self.protocol("WM_DELETE_WINDOW", self.close_application)
        self._context = context
        self._logger = logger
        self._poll_handle: str | None = None
        self._closing = False
        emitter = context.emitter

        self.controls = LayerControlsWidget(
            self,
            on_select_layer=emitter.select_layer,
            on_add_layer=emitter.add_layer,
            on_remove_layer=emitter.remove_layer,
            on_add_overlay=emitter.add_overlay,
            on_remove_overlay=emitter.remove_overlay,
            on_toggle_edit=emitter.set_edit_mode,
            on_save=emitter.request_save,
            edit_mode=context.settings.edit_mode,
        )
        self.form = OverlayFormWidget(self)
        self.form.set_change_callback(emitter.update_overlay_field)
        self.controls.pack(side="bottom", fill="x", padx=12, pady=(4, 12))
        self.form.pack(side="top", fill="both", expand=True, padx=12, pady=(12, 4))
        self.controls.set_layers(context.mirror.layer_labels(), context.mirror.current_layer)

    def start(self) -> None:
        self._context.link.start()
        self._context.emitter.request_load()
        self._poll_handle = self.after(self._context.link_poll_ms, self._poll_link)

    def report_callback_exception(self, exc, val, tb) -> None:  # type: ignore[override]
        log_exception(self._logger, "Unhandled error in panel callback", val)

    def apply_change(self, change: MirrorChange) -> None:
        mirror = self._context.mirror
        if change.layers_changed:
            self.controls.set_layers(mirror.layer_labels(), mirror.current_layer)
        if change.rebuild_form:
            overlay = mirror.displayed_overlay_fields()
            if overlay is None:
                self.form.clear()
            else:
                self.form.show(overlay)
        elif change.clear_form:
            self.form.clear()
        if change.status is not None:
            self.controls.set_status(change.status)

    def close_application(self) -> None:
        if self._closing:
            return
        self._closing = True
        if self._poll_handle is not None:
            self.after_cancel(self._poll_handle)
            self._poll_handle = None
        self._context.link.stop()
        self._logger.info("Control panel closing")
        self.destroy()

    def _poll_link(self) -> None:
        self._poll_handle = None
        if self._closing:
            return
        for payload in self._context.link.poll():
            change = dispatch_payload(self._context.mirror, self._context.emitter, payload, self._logger)
            if change is not None and change.changed:
                self.apply_change(change)
        self.title("Slide Editor Controls" if self._context.link.connected else "Slide Editor Controls (offline)")
        self._poll_handle = self.after(self._context.link_poll_ms, self._poll_link)


def launch(argv: Optional[list[str]] = None) -> int:
    """Entry point used by the host launcher."""

    parser = argparse.ArgumentParser(description="Slide overlay editor control panel")
    parser.add_argument("--port-file", help="Path to port.json emitted by the editor host")
    parser.add_argument("--settings", help="Path to editor_settings.json")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    port_path = resolve_port_file(args.port_file)
    logger = logging.getLogger(_LOGGER_NAME)
    context = build_app_context(settings_path=settings_path, port_path=port_path, logger=logger)
    logger = configure_component_logger(
        _LOGGER_NAME,
        PROJECT_ROOT,
        "slide_panel.log",
        debug_enabled=DEBUG_CONFIG_ENABLED,
        retention=context.settings.log_retention,
    )
    logger.debug("Launching control panel: python=%s cwd=%s pid=%s", sys.executable, Path.cwd(), os.getpid())
    try:
        app = SlidePanelApp(context, logger)
        app.start()
        logger.info("Control panel started (port file %s)", port_path)
        app.mainloop()
    except Exception as exc:
        log_exception(logger, "Control panel launch failed", exc)
        context.link.stop()
        raise
    return 0


main = launch


if __name__ == "__main__":
    raise SystemExit(launch())
