"""Percent-space rectangle math for dragging and resizing overlays."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Tuple

PERCENT_SCALE = 100.0
MIN_EXTENT = 5.0

PixelDelta = Tuple[float, float]


@dataclass(frozen=True)
class Rect:
    """Overlay rectangle in percent of the canvas bounding box."""

    left: float
    top: float
    width: float
    height: float

    def position_patch(self) -> Dict[str, float]:
        return {"left": self.left, "top": self.top}

    def size_patch(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class ContainerBounds:
    """Pixel size of the canvas the percentages are relative to."""

    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return not (self.width > 0 and self.height > 0)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def _to_percent(delta: PixelDelta, container: ContainerBounds) -> Tuple[float, float]:
    dx, dy = delta
    return (dx / container.width) * PERCENT_SCALE, (dy / container.height) * PERCENT_SCALE


def compute_drag(delta: PixelDelta, container: ContainerBounds, initial: Rect) -> Rect:
    """Translate ``initial`` by a pixel delta, keeping it fully inside the canvas."""

    if container.is_degenerate:
        return initial
    dx_pct, dy_pct = _to_percent(delta, container)
    left = _clamp(initial.left + dx_pct, 0.0, PERCENT_SCALE - initial.width)
    top = _clamp(initial.top + dy_pct, 0.0, PERCENT_SCALE - initial.height)
    return replace(initial, left=left, top=top)


def compute_resize(delta: PixelDelta, container: ContainerBounds, initial: Rect) -> Rect:
    """Grow or shrink ``initial`` from its bottom-right corner; top-left stays put."""

    if container.is_degenerate:
        return initial
    dx_pct, dy_pct = _to_percent(delta, container)
    width = max(MIN_EXTENT, min(initial.width + dx_pct, PERCENT_SCALE - initial.left))
    height = max(MIN_EXTENT, min(initial.height + dy_pct, PERCENT_SCALE - initial.top))
    return replace(initial, width=width, height=height)


def clamp_rect(rect: Rect) -> Rect:
    """Return ``rect`` with every bound invariant imposed.

    Size is clamped first (at least MIN_EXTENT, at most the full canvas) and
    the position is then pulled back so the rectangle ends inside the canvas.
    """

    width = _clamp(rect.width, MIN_EXTENT, PERCENT_SCALE)
    height = _clamp(rect.height, MIN_EXTENT, PERCENT_SCALE)
    left = _clamp(rect.left, 0.0, PERCENT_SCALE - width)
    top = _clamp(rect.top, 0.0, PERCENT_SCALE - height)
    return Rect(left=left, top=top, width=width, height=height)


def rect_contains(rect: Rect, x_pct: float, y_pct: float) -> bool:
    return rect.left <= x_pct <= rect.left + rect.width and rect.top <= y_pct <= rect.top + rect.height
