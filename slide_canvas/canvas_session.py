"""Wires the canvas-side bus, store, command router and boundary link together."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from slide_canvas import bus_messages as msg
from slide_canvas.command_router import CommandRouter
from slide_canvas.event_bus import BoundaryLink, EventBus, SendFn
from slide_canvas.slide_model import Slide
from slide_canvas.slide_store import SlideStateStore

# Notifications the canvas produces and the panel consumes.
CANVAS_OUTBOUND = (
    msg.SlideUpdated,
    msg.LayerSelected,
    msg.OverlaySelected,
    msg.OverlaySelect,
    msg.SaveSlide,
    msg.LoadSlide,
)


@dataclass
class CanvasSession:
    bus: EventBus
    store: SlideStateStore
    router: CommandRouter
    link: BoundaryLink

    def close(self) -> None:
        self.link.close()
        self.router.close()


def build_canvas_session(
    slide: Slide,
    *,
    send: SendFn,
    file_path: Optional[str] = None,
    edit_mode_fn: Optional[Callable[[bool], None]] = None,
    logger: Optional[logging.Logger] = None,
) -> CanvasSession:
    bus = EventBus(logger=logger)
    store = SlideStateStore(slide, bus, file_path=file_path, logger=logger)
    router = CommandRouter(bus, store, edit_mode_fn=edit_mode_fn, logger=logger)
    link = BoundaryLink(bus, send, CANVAS_OUTBOUND, inbound=msg.COMMAND_TYPES, logger=logger)
    return CanvasSession(bus=bus, store=store, router=router, link=link)
