from __future__ import annotations

import argparse
import os
import sys
import threading
from pathlib import Path
from typing import List, Optional

from slide_canvas.debug_config import DEBUG_CONFIG_ENABLED
from slide_canvas.editor_settings import PROJECT_ROOT, load_editor_settings, resolve_port_file, resolve_settings_path
from slide_canvas.logging_utils import configure_component_logger
from slide_host.child_process import ChildProcess
from slide_host.persistence import PersistenceBridge
from slide_host.relay_server import RelayServer
from slide_host.runtime import HostRuntime

_LOGGER_NAME = "SlideEditor.Host"


def _child_commands(args: argparse.Namespace, settings_path: Path, port_file: Path) -> List[tuple[str, List[str]]]:
    shared = ["--port-file", str(port_file), "--settings", str(settings_path)]
    commands: List[tuple[str, List[str]]] = []
    if args.slide and not args.no_canvas:
        canvas = [sys.executable, "-m", "slide_canvas.launcher", "--slide", str(Path(args.slide).resolve())]
        if args.view:
            canvas.append("--view")
        commands.append(("canvas", canvas + shared))
    if not args.no_panel:
        commands.append(("control panel", [sys.executable, "-m", "slide_panel.panel_app"] + shared))
    return commands


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Slide overlay editor host")
    parser.add_argument("--slide", help="Slide JSON file to open in the canvas")
    parser.add_argument("--port-file", help="Where to write port.json")
    parser.add_argument("--settings", help="Path to editor_settings.json")
    parser.add_argument("--view", action="store_true", help="Open the canvas with edit mode disabled")
    parser.add_argument("--no-canvas", action="store_true", help="Do not launch the canvas process")
    parser.add_argument("--no-panel", action="store_true", help="Do not launch the control panel process")
    args = parser.parse_args(argv)

    settings_path = resolve_settings_path(args.settings)
    settings = load_editor_settings(settings_path)
    logger = configure_component_logger(
        _LOGGER_NAME,
        PROJECT_ROOT,
        "slide_host.log",
        debug_enabled=DEBUG_CONFIG_ENABLED,
        retention=settings.log_retention,
    )
    port_file = resolve_port_file(args.port_file)
    logger.info("Starting editor host (pid=%s); content dir %s", os.getpid(), settings.content_dir)

    relay = RelayServer(host=settings.host, port=settings.port, log=logger.debug)
    bridge = PersistenceBridge(
        settings.content_dir,
        relay.publish,
        timeout=settings.writer_timeout_seconds,
        logger=logger.getChild("Persistence"),
    )
    relay.intercept = bridge.intercept
    children = [
        ChildProcess(name, command, PROJECT_ROOT, logger.info)
        for name, command in _child_commands(args, settings_path, port_file)
    ]
    runtime = HostRuntime(relay, bridge, port_file, logger, children=children)
    if not runtime.start():
        return 1

    try:
        if children:
            # The host lives as long as the first child (the canvas when one was requested).
            while children[0].wait(timeout=1.0) is None:
                pass
        else:
            stop_event = threading.Event()
            while not stop_event.wait(timeout=1.0):
                pass
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    finally:
        runtime.stop()
    logger.info("Editor host stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
