"""Control panel's read-only mirror of the canvas slide and selection.

The panel never owns the slide. It keeps the latest snapshot the canvas
broadcast, plus the selection narrowcasts, and reports after each message
what the UI has to redraw. The overlay form is rebuilt only on selection
narrowcasts (``overlay-selected``, ``layer-selected``) and ``load-slide``.
A ``slide-updated`` broadcast only refreshes the layer list, so a field the
operator is typing into is never torn down by the echo of their own edit.

Narrowcasts and broadcasts travel through the relay independently, so an
``overlay-selected`` can arrive before the snapshot that contains the
overlay. Such a selection is held as pending and the form is built when a
snapshot that resolves it arrives.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from slide_canvas import bus_messages as msg

JsonDict = Dict[str, Any]
OverlayKey = Tuple[int, int]

DEFAULT_LAYER_LABEL = "Default"


@dataclass(frozen=True)
class MirrorChange:
    """What the UI must refresh after :meth:`PanelMirror.apply`."""

    layers_changed: bool = False
    rebuild_form: bool = False
    clear_form: bool = False
    status: Optional[str] = None
    save_request: Optional[msg.UpdateSlideData] = None

    @property
    def changed(self) -> bool:
        return (
            self.layers_changed
            or self.rebuild_form
            or self.clear_form
            or self.status is not None
            or self.save_request is not None
        )


class PanelMirror:
    def __init__(self) -> None:
        self.current_slide: JsonDict = {}
        self.current_layer: Optional[int] = 0
        self.current_overlay: Optional[OverlayKey] = None
        self.displayed_overlay: Optional[OverlayKey] = None
        self.pending_overlay: Optional[OverlayKey] = None
        self.file_path: Optional[str] = None

    # Queries ----------------------------------------------------------------

    @property
    def layers(self) -> List[JsonDict]:
        layers = self.current_slide.get("layers")
        return [layer for layer in layers if isinstance(layer, dict)] if isinstance(layers, list) else []

    def layer_labels(self) -> List[str]:
        layers = self.layers
        if not layers:
            return [DEFAULT_LAYER_LABEL]
        return [str(layer.get("id") or f"Layer {index}") for index, layer in enumerate(layers)]

    def overlay_at(self, key: Optional[OverlayKey]) -> Optional[JsonDict]:
        if key is None:
            return None
        layer_index, overlay_index = key
        layers = self.layers
        if not 0 <= layer_index < len(layers):
            return None
        overlays = layers[layer_index].get("overlays")
        if not isinstance(overlays, list) or not 0 <= overlay_index < len(overlays):
            return None
        overlay = overlays[overlay_index]
        return overlay if isinstance(overlay, dict) else None

    def displayed_overlay_fields(self) -> Optional[JsonDict]:
        return self.overlay_at(self.displayed_overlay)

    # Updates ----------------------------------------------------------------

    def apply(self, message: Any) -> MirrorChange:
        if isinstance(message, msg.SlideUpdated):
            return self._apply_slide_updated(message)
        if isinstance(message, msg.LayerSelected):
            self.current_layer = message.layer_index
            self.current_overlay = None
            self.pending_overlay = None
            self.displayed_overlay = None
            return MirrorChange(layers_changed=True, clear_form=True)
        if isinstance(message, msg.OverlaySelected):
            return self._apply_overlay_selected(message)
        if isinstance(message, msg.LoadSlide):
            self.current_slide = dict(message.slide)
            if self.current_layer is not None and self.current_layer >= len(self.layers):
                self.current_layer = 0
            self.displayed_overlay = None
            self.pending_overlay = None
            return MirrorChange(layers_changed=True, clear_form=True)
        if isinstance(message, msg.SaveSlide):
            return self._apply_save_slide(message)
        if isinstance(message, msg.SaveSucceeded):
            return MirrorChange(status=f"Saved {Path(message.file_path).name}")
        if isinstance(message, msg.SaveFailed):
            return MirrorChange(status=f"Save failed: {message.error}")
        return MirrorChange()

    def _apply_slide_updated(self, message: msg.SlideUpdated) -> MirrorChange:
        self.current_slide = dict(message.slide)
        self.current_layer = message.selected_layer_index
        self.current_overlay = message.selected_overlay
        if self.pending_overlay is not None and self.overlay_at(self.pending_overlay) is not None:
            self.displayed_overlay = self.pending_overlay
            self.pending_overlay = None
            return MirrorChange(layers_changed=True, rebuild_form=True)
        if self.displayed_overlay is not None and self.overlay_at(self.displayed_overlay) is None:
            self.displayed_overlay = None
            return MirrorChange(layers_changed=True, clear_form=True)
        return MirrorChange(layers_changed=True)

    def _apply_overlay_selected(self, message: msg.OverlaySelected) -> MirrorChange:
        key = (message.layer_index, message.overlay_index)
        self.current_layer = message.layer_index
        self.current_overlay = key
        if self.overlay_at(key) is None:
            self.pending_overlay = key
            self.displayed_overlay = None
            return MirrorChange(layers_changed=True, clear_form=True)
        self.pending_overlay = None
        self.displayed_overlay = key
        return MirrorChange(layers_changed=True, rebuild_form=True)

    def _apply_save_slide(self, message: msg.SaveSlide) -> MirrorChange:
        if message.file_path:
            self.file_path = message.file_path
        if not self.file_path:
            return MirrorChange(status="Save failed: the canvas did not report a file path")
        request = msg.UpdateSlideData(file_path=self.file_path, data=dict(message.slide))
        return MirrorChange(status=f"Saving {Path(self.file_path).name}…", save_request=request)
