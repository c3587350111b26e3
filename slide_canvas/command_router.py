"""Applies command messages from the bus to the slide store."""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from slide_canvas import bus_messages as msg
from slide_canvas.event_bus import EventBus, Subscription
from slide_canvas.slide_store import SlideStateStore

_LOGGER = logging.getLogger("SlideEditor.Canvas.Commands")


class CommandRouter:
    """Interprets commands locally so the store stays the only writer.

    Missing indices fall back to the current selection: the current layer for
    layer-scoped commands and the selected overlay (or 0) for overlay-scoped
    ones.
    """

    def __init__(
        self,
        bus: EventBus,
        store: SlideStateStore,
        *,
        edit_mode_fn: Optional[Callable[[bool], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._edit_mode_fn = edit_mode_fn
        self._logger = logger or _LOGGER
        handlers = (
            (msg.AddLayer, self._on_add_layer),
            (msg.RemoveLayer, self._on_remove_layer),
            (msg.UpdateLayer, self._on_update_layer),
            (msg.SelectLayer, self._on_select_layer),
            (msg.AddOverlay, self._on_add_overlay),
            (msg.RemoveOverlay, self._on_remove_overlay),
            (msg.UpdateOverlay, self._on_update_overlay),
            (msg.RequestSave, self._on_request_save),
            (msg.RequestLoad, self._on_request_load),
            (msg.SetEditMode, self._on_set_edit_mode),
        )
        self._subscriptions: List[Subscription] = [bus.subscribe(cls, handler) for cls, handler in handlers]

    def set_edit_mode_handler(self, handler: Optional[Callable[[bool], None]]) -> None:
        self._edit_mode_fn = handler

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []

    def _layer_or_current(self, layer_index: Optional[int]) -> int:
        return layer_index if layer_index is not None else self._store.current_layer_index

    def _overlay_or_selected(self, overlay_index: Optional[int]) -> int:
        if overlay_index is not None:
            return overlay_index
        selected = self._store.selection.overlay_index
        return selected if selected is not None else 0

    def _on_add_layer(self, command: msg.AddLayer) -> None:
        self._store.add_layer(command.layer)

    def _on_remove_layer(self, command: msg.RemoveLayer) -> None:
        self._store.remove_layer(self._layer_or_current(command.layer_index))

    def _on_update_layer(self, command: msg.UpdateLayer) -> None:
        self._store.update_layer(self._layer_or_current(command.layer_index), command.updated_layer)

    def _on_select_layer(self, command: msg.SelectLayer) -> None:
        self._store.select_layer(command.index)

    def _on_add_overlay(self, command: msg.AddOverlay) -> None:
        self._store.add_overlay(self._layer_or_current(command.layer_index))

    def _on_remove_overlay(self, command: msg.RemoveOverlay) -> None:
        self._store.remove_overlay(
            self._layer_or_current(command.layer_index),
            self._overlay_or_selected(command.overlay_index),
        )

    def _on_update_overlay(self, command: msg.UpdateOverlay) -> None:
        self._store.update_overlay(
            self._layer_or_current(command.layer_index),
            self._overlay_or_selected(command.overlay_index),
            command.updated_overlay,
        )

    def _on_request_save(self, _command: msg.RequestSave) -> None:
        self._store.request_save()

    def _on_request_load(self, _command: msg.RequestLoad) -> None:
        self._store.request_load()

    def _on_set_edit_mode(self, command: msg.SetEditMode) -> None:
        if self._edit_mode_fn is None:
            self._logger.debug("Edit mode change to %s ignored; no canvas attached", command.enabled)
            return
        self._edit_mode_fn(command.enabled)
