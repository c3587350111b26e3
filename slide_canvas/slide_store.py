"""Canonical slide document and selection, with every mutation the editor allows."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from slide_canvas.bus_messages import LayerSelected, LoadSlide, OverlaySelected, SaveSlide, SlideUpdated
from slide_canvas.event_bus import EventBus
from slide_canvas.slide_model import Layer, Overlay, Slide, SlideFormatError, new_uid, normalize_slide

_LOGGER = logging.getLogger("SlideEditor.Canvas.Store")

NEW_OVERLAY_DEFAULTS = {
    "type": "hotspot",
    "left": 45.0,
    "top": 47.5,
    "width": 10.0,
    "height": 5.0,
    "target": "",
    "style_class": "",
}


@dataclass(frozen=True)
class Selection:
    """Nothing, a layer, or one overlay of a layer."""

    layer_index: Optional[int] = None
    overlay_index: Optional[int] = None

    @classmethod
    def none(cls) -> "Selection":
        return cls()

    @classmethod
    def layer(cls, layer_index: int) -> "Selection":
        return cls(layer_index=layer_index)

    @classmethod
    def overlay(cls, layer_index: int, overlay_index: int) -> "Selection":
        return cls(layer_index=layer_index, overlay_index=overlay_index)

    @property
    def kind(self) -> str:
        if self.layer_index is None:
            return "none"
        if self.overlay_index is None:
            return "layer"
        return "overlay"

    @property
    def overlay_ref(self) -> Optional[Tuple[int, int]]:
        if self.layer_index is None or self.overlay_index is None:
            return None
        return self.layer_index, self.overlay_index


@dataclass(frozen=True)
class StoreSnapshot:
    slide: Slide
    selection: Selection


def repair_selection(slide: Slide, selection: Selection) -> Selection:
    """Re-point an overlay selection that no longer names an existing overlay."""

    if selection.layer_index is not None and not 0 <= selection.layer_index < len(slide.layers):
        return Selection.layer(len(slide.layers) - 1) if slide.layers else Selection.none()
    ref = selection.overlay_ref
    if ref is None:
        return selection
    layer_index, overlay_index = ref
    overlays = slide.layers[layer_index].overlays
    if 0 <= overlay_index < len(overlays):
        return selection
    if overlays:
        return Selection.overlay(layer_index, min(max(overlay_index, 0), len(overlays) - 1))
    return Selection.layer(layer_index)


class SlideStateStore:
    """Single writer of the slide; publishes a snapshot after every accepted change."""

    def __init__(
        self,
        slide: Slide,
        bus: EventBus,
        *,
        file_path: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._bus = bus
        self._logger = logger or _LOGGER
        self._file_path = file_path
        self._slide = normalize_slide(slide)
        self._selection = Selection.layer(0)

    # Read access ---------------------------------------------------------------

    @property
    def slide(self) -> Slide:
        return self._slide

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(slide=self._slide, selection=self._selection)

    @property
    def file_path(self) -> Optional[str]:
        return self._file_path

    @property
    def current_layer_index(self) -> int:
        return self._selection.layer_index if self._selection.layer_index is not None else 0

    def overlay_at(self, layer_index: int, overlay_index: int) -> Optional[Overlay]:
        if not 0 <= layer_index < len(self._slide.layers):
            return None
        overlays = self._slide.layers[layer_index].overlays
        if not 0 <= overlay_index < len(overlays):
            return None
        return overlays[overlay_index]

    # Layers --------------------------------------------------------------------

    def add_layer(self, partial: Optional[Mapping[str, Any]] = None) -> Layer:
        count = len(self._slide.layers)
        layer = Layer(uid=new_uid(), id=f"layer-{count + 1}", level=count + 1)
        if partial:
            patch = {key: value for key, value in partial.items() if key != "uid"}
            try:
                layer = layer.merged(patch)
            except SlideFormatError as exc:
                self._logger.warning("Ignoring invalid layer fields %s: %s", sorted(patch), exc)
        self._commit(self._slide.with_layers(self._slide.layers + (layer,)), Selection.layer(count))
        return layer

    def remove_layer(self, index: int) -> bool:
        layers = self._slide.layers
        if index == 0:
            self._logger.warning("Cannot remove the first layer.")
            return False
        if len(layers) <= 1:
            self._logger.warning("At least one layer must remain.")
            return False
        if not 0 < index < len(layers):
            self._logger.warning("Cannot remove layer %s; only %d layers exist.", index, len(layers))
            return False

        remaining = layers[:index] + layers[index + 1 :]
        selected_layer = self.current_layer_index
        if selected_layer == index:
            new_layer_index = max(index - 1, 0)
        elif selected_layer > index:
            new_layer_index = selected_layer - 1
        else:
            new_layer_index = selected_layer

        selection = Selection.layer(new_layer_index)
        ref = self._selection.overlay_ref
        if ref is not None:
            overlay_layer, overlay_index = ref
            if overlay_layer == index:
                if remaining[new_layer_index].overlays:
                    selection = Selection.overlay(new_layer_index, 0)
            elif overlay_layer > index:
                selection = Selection.overlay(overlay_layer - 1, overlay_index)
            else:
                selection = Selection.overlay(overlay_layer, overlay_index)
        self._commit(self._slide.with_layers(remaining), selection)
        return True

    def update_layer(self, layer_index: int, partial: Mapping[str, Any]) -> bool:
        layer = self._layer_or_warn(layer_index, "update")
        if layer is None:
            return False
        try:
            updated = layer.merged(partial)
        except SlideFormatError as exc:
            self._logger.warning("Rejected update for layer %d: %s", layer_index, exc)
            return False
        self._commit(self._replace_layer(layer_index, updated), self._selection)
        return True

    def select_layer(self, index: int) -> bool:
        layer = self._layer_or_warn(index, "select")
        if layer is None:
            return False
        selection = Selection.overlay(index, 0) if layer.overlays else Selection.layer(index)
        self._commit(self._slide, selection)
        return True

    # Overlays ------------------------------------------------------------------

    def add_overlay(self, layer_index: int) -> Optional[Overlay]:
        layer = self._layer_or_warn(layer_index, "add an overlay to")
        if layer is None:
            return None
        overlay = Overlay(uid=new_uid(), **NEW_OVERLAY_DEFAULTS)
        updated = layer.with_overlays(layer.overlays + (overlay,))
        selection = Selection.overlay(layer_index, len(layer.overlays))
        self._commit(self._replace_layer(layer_index, updated), selection)
        return overlay

    def remove_overlay(self, layer_index: int, overlay_index: int) -> bool:
        layer = self._layer_or_warn(layer_index, "remove an overlay from")
        if layer is None:
            return False
        if not 0 <= overlay_index < len(layer.overlays):
            self._logger.warning("Cannot remove overlay %s from layer %d; it does not exist.", overlay_index, layer_index)
            return False
        overlays = layer.overlays[:overlay_index] + layer.overlays[overlay_index + 1 :]
        self._commit(self._replace_layer(layer_index, layer.with_overlays(overlays)), self._selection)
        return True

    def update_overlay(self, layer_index: int, overlay_index: int, partial: Mapping[str, Any]) -> bool:
        overlay = self.overlay_at(layer_index, overlay_index)
        if overlay is None:
            self._logger.warning("Cannot update overlay (%s, %s); it does not exist.", layer_index, overlay_index)
            return False
        try:
            updated = overlay.merged(partial)
        except SlideFormatError as exc:
            self._logger.warning("Rejected update for overlay (%d, %d): %s", layer_index, overlay_index, exc)
            return False
        if updated == overlay:
            return True
        layer = self._slide.layers[layer_index]
        overlays = layer.overlays[:overlay_index] + (updated,) + layer.overlays[overlay_index + 1 :]
        self._commit(self._replace_layer(layer_index, layer.with_overlays(overlays)), self._selection)
        return True

    def select_overlay(self, layer_index: int, overlay_index: int) -> bool:
        if self.overlay_at(layer_index, overlay_index) is None:
            self._logger.warning("Cannot select overlay (%s, %s); it does not exist.", layer_index, overlay_index)
            return False
        self._commit(self._slide, Selection.overlay(layer_index, overlay_index))
        return True

    # Whole-document notifications -----------------------------------------------

    def publish_state(self) -> None:
        """Broadcast the current snapshot and selection, e.g. when the editor mounts."""

        self._broadcast_state()
        self._broadcast_selection()

    def request_save(self) -> None:
        self._bus.publish(SaveSlide(slide=self._slide.to_dict(), file_path=self._file_path))

    def request_load(self) -> None:
        self._bus.publish(LoadSlide(slide=self._slide.to_dict()))

    # Internal helpers ----------------------------------------------------------

    def _layer_or_warn(self, layer_index: int, action: str) -> Optional[Layer]:
        if not 0 <= layer_index < len(self._slide.layers):
            self._logger.warning("Cannot %s layer %s; only %d layers exist.", action, layer_index, len(self._slide.layers))
            return None
        return self._slide.layers[layer_index]

    def _replace_layer(self, layer_index: int, layer: Layer) -> Slide:
        layers = self._slide.layers
        return self._slide.with_layers(layers[:layer_index] + (layer,) + layers[layer_index + 1 :])

    def _commit(self, slide: Slide, selection: Selection) -> None:
        previous_selection = self._selection
        self._slide = slide
        self._selection = repair_selection(slide, selection)
        self._broadcast_state()
        if self._selection != previous_selection:
            self._broadcast_selection()

    def _broadcast_state(self) -> None:
        self._bus.publish(
            SlideUpdated(
                slide=self._slide.to_dict(),
                selected_layer_index=self._selection.layer_index,
                selected_overlay=self._selection.overlay_ref,
            )
        )

    def _broadcast_selection(self) -> None:
        ref = self._selection.overlay_ref
        if ref is not None:
            self._bus.publish(OverlaySelected(layer_index=ref[0], overlay_index=ref[1]))
        else:
            self._bus.publish(LayerSelected(layer_index=self._selection.layer_index))


__all__ = ["NEW_OVERLAY_DEFAULTS", "Selection", "SlideStateStore", "StoreSnapshot", "repair_selection"]
