from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from slide_canvas import bus_messages as msg
from slide_panel.mirror_state import PanelMirror

JsonDict = Dict[str, Any]
SendFn = Callable[[JsonDict], bool]

# Form fields and the overlay keys they patch.
OVERLAY_FORM_FIELDS = {
    "class": "class",
    "target": "target",
    "label": "label",
    "type": "type",
}

_LOGGER = logging.getLogger("SlideEditor.Panel.Commands")


class CommandEmitter:
    """Turns panel actions into command messages, addressed from the mirror.

    Commands go out immediately; the canvas store decides whether they apply
    and the panel learns the outcome from the next broadcast.
    """

    def __init__(self, mirror: PanelMirror, send: SendFn, logger: Optional[logging.Logger] = None) -> None:
        self._mirror = mirror
        self._send = send
        self._logger = logger or _LOGGER

    def add_layer(self, layer: Optional[JsonDict] = None) -> bool:
        return self._emit(msg.AddLayer(layer=layer))

    def remove_layer(self) -> bool:
        return self._emit(msg.RemoveLayer(layer_index=self._mirror.current_layer))

    def select_layer(self, index: int) -> bool:
        self._mirror.current_layer = index
        return self._emit(msg.SelectLayer(index=index))

    def update_layer(self, fields: JsonDict) -> bool:
        return self._emit(msg.UpdateLayer(updated_layer=dict(fields), layer_index=self._mirror.current_layer))

    def add_overlay(self) -> bool:
        return self._emit(msg.AddOverlay(layer_index=self._mirror.current_layer))

    def remove_overlay(self) -> bool:
        selected = self._mirror.current_overlay
        if selected is None:
            return self._emit(msg.RemoveOverlay(layer_index=self._mirror.current_layer))
        return self._emit(msg.RemoveOverlay(layer_index=selected[0], overlay_index=selected[1]))

    def update_overlay_field(self, field: str, value: Any) -> bool:
        """Patch one property of the overlay shown in the form."""
        key = OVERLAY_FORM_FIELDS.get(field)
        if key is None:
            self._logger.warning("Ignoring edit of unknown overlay field '%s'", field)
            return False
        target = self._mirror.displayed_overlay
        if target is None:
            self._logger.debug("No overlay in the form; dropped edit of '%s'", field)
            return False
        return self._emit(
            msg.UpdateOverlay(updated_overlay={key: value}, layer_index=target[0], overlay_index=target[1])
        )

    def request_save(self) -> bool:
        return self._emit(msg.RequestSave())

    def request_load(self) -> bool:
        return self._emit(msg.RequestLoad())

    def set_edit_mode(self, enabled: bool) -> bool:
        return self._emit(msg.SetEditMode(enabled=bool(enabled)))

    def forward_save(self, request: msg.UpdateSlideData) -> bool:
        """Hand a finalised slide to the host for persistence."""
        return self._emit(request)

    def _emit(self, message: Any) -> bool:
        payload = msg.encode_message(message)
        sent = self._send(payload)
        if sent:
            self._logger.debug("Sent '%s' %s", message.topic, payload)
        else:
            self._logger.warning("Could not send '%s'; canvas link unavailable", message.topic)
        return sent
