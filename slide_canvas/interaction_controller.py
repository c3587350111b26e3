from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from slide_canvas.bus_messages import OverlaySelect
from slide_canvas.geometry import ContainerBounds, Rect, compute_drag, compute_resize

Point = Tuple[float, float]

_LOGGER = logging.getLogger("SlideEditor.Canvas.Interaction")


class GestureKind(enum.Enum):
    DRAG = "drag"
    RESIZE = "resize"


class GestureState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


@dataclass(frozen=True)
class _ActiveGesture:
    layer_index: int
    overlay_index: int
    origin: Point
    initial: Rect


class InteractionController:
    """Drives drag/resize gestures and owns the pointer grab they need.

    Each gesture kind is tracked on its own (idle -> active -> idle). The
    pointer grab is acquired when the first gesture becomes active and is
    released as soon as none are active, including on cancel and teardown.
    """

    def __init__(
        self,
        *,
        store,
        container_bounds_fn: Callable[[], ContainerBounds],
        acquire_pointer_fn: Callable[[], None],
        release_pointer_fn: Callable[[], None],
        publish_fn: Callable[[object], None],
        navigate_fn: Callable[[str], None],
        edit_mode: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._container_bounds = container_bounds_fn
        self._acquire_pointer = acquire_pointer_fn
        self._release_pointer = release_pointer_fn
        self._publish = publish_fn
        self._navigate = navigate_fn
        self._edit_mode = edit_mode
        self._logger = logger or _LOGGER
        self._gestures: Dict[GestureKind, _ActiveGesture] = {}
        self._pointer_held = False

    @property
    def edit_mode(self) -> bool:
        return self._edit_mode

    @property
    def pointer_held(self) -> bool:
        return self._pointer_held

    def state(self, kind: GestureKind) -> GestureState:
        return GestureState.ACTIVE if kind in self._gestures else GestureState.IDLE

    def set_edit_mode(self, enabled: bool) -> None:
        if enabled == self._edit_mode:
            return
        self._edit_mode = enabled
        self._logger.debug("Edit mode %s", "enabled" if enabled else "disabled")
        if not enabled:
            self.cancel(reason="edit mode disabled")

    # Gesture lifecycle ---------------------------------------------------------

    def begin_drag(self, layer_index: int, overlay_index: int, pos: Point) -> bool:
        return self._begin(GestureKind.DRAG, layer_index, overlay_index, pos)

    def begin_resize(self, layer_index: int, overlay_index: int, pos: Point) -> bool:
        return self._begin(GestureKind.RESIZE, layer_index, overlay_index, pos)

    def pointer_move(self, pos: Point) -> None:
        if not self._gestures:
            return
        try:
            for kind, gesture in list(self._gestures.items()):
                self._apply(kind, gesture, pos)
        except Exception:
            self._logger.exception("Gesture update failed; releasing pointer")
            self.cancel(reason="update failure")

    def pointer_release(self) -> None:
        self._end_all(reason="pointer released")

    def cancel(self, *, reason: str = "cancelled") -> None:
        """Abandon active gestures; geometry already applied is kept."""

        self._end_all(reason=reason)

    def teardown(self) -> None:
        self._end_all(reason="teardown")

    # Clicks --------------------------------------------------------------------

    def handle_click(self, layer_index: int, overlay_index: int) -> None:
        overlay = self._store.overlay_at(layer_index, overlay_index)
        if overlay is None:
            return
        if self._edit_mode:
            self._publish(OverlaySelect(overlay=overlay.to_dict()))
            return
        if overlay.target:
            self._navigate(overlay.target)

    # Internal helpers ----------------------------------------------------------

    def _begin(self, kind: GestureKind, layer_index: int, overlay_index: int, pos: Point) -> bool:
        if not self._edit_mode:
            return False
        overlay = self._store.overlay_at(layer_index, overlay_index)
        if overlay is None:
            self._logger.debug("Ignoring %s start on missing overlay (%s, %s)", kind.value, layer_index, overlay_index)
            return False
        self._gestures[kind] = _ActiveGesture(
            layer_index=layer_index,
            overlay_index=overlay_index,
            origin=(float(pos[0]), float(pos[1])),
            initial=overlay.rect,
        )
        if not self._pointer_held:
            self._acquire_pointer()
            self._pointer_held = True
        self._logger.debug(
            "%s started on overlay (%d, %d) at %s from %s",
            kind.value.capitalize(),
            layer_index,
            overlay_index,
            pos,
            overlay.rect,
        )
        return True

    def _apply(self, kind: GestureKind, gesture: _ActiveGesture, pos: Point) -> None:
        delta = (pos[0] - gesture.origin[0], pos[1] - gesture.origin[1])
        bounds = self._container_bounds()
        if kind is GestureKind.DRAG:
            patch = compute_drag(delta, bounds, gesture.initial).position_patch()
        else:
            patch = compute_resize(delta, bounds, gesture.initial).size_patch()
        self._store.update_overlay(gesture.layer_index, gesture.overlay_index, patch)

    def _end_all(self, *, reason: str) -> None:
        if not self._gestures and not self._pointer_held:
            return
        ended = sorted(kind.value for kind in self._gestures)
        self._gestures.clear()
        if self._pointer_held:
            self._release()
        if ended:
            self._logger.debug("Gesture %s finished (reason=%s)", "+".join(ended), reason)

    def _release(self) -> None:
        self._pointer_held = False
        try:
            self._release_pointer()
        except Exception:
            self._logger.exception("Failed to release pointer grab")
