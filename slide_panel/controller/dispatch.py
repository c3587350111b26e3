"""Routes payloads received from the relay into the panel mirror."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from slide_canvas import bus_messages as msg
from slide_panel.controller.command_emitter import CommandEmitter
from slide_panel.mirror_state import MirrorChange, PanelMirror

_LOGGER = logging.getLogger("SlideEditor.Panel")

# Notifications the panel reacts to; commands from other panels are ignored.
PANEL_INBOUND = {cls.topic for cls in msg.NOTIFICATION_TYPES}


def dispatch_payload(
    mirror: PanelMirror,
    emitter: CommandEmitter,
    payload: Mapping[str, Any],
    logger: Optional[logging.Logger] = None,
) -> Optional[MirrorChange]:
    log = logger or _LOGGER
    try:
        message = msg.decode_message(payload)
    except msg.MessageValidationError as exc:
        log.warning("Dropped invalid bus payload: %s", exc)
        return None
    if message.topic not in PANEL_INBOUND:
        log.debug("Ignored bus event '%s'", message.topic)
        return None
    change = mirror.apply(message)
    if change.save_request is not None and not emitter.forward_save(change.save_request):
        return MirrorChange(
            layers_changed=change.layers_changed,
            status="Save failed: editor host unavailable",
        )
    return change
