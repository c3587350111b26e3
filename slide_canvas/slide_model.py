"""Immutable slide/layer/overlay records and their JSON representation."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from slide_canvas.geometry import Rect, clamp_rect

OVERLAY_TYPES = ("hotspot", "toggle")
DEFAULT_OVERLAY_TYPE = "hotspot"
DEFAULT_GEOMETRY_VALUE = 45.0
DEFAULT_LAYER_ID = "default"
DEFAULT_LAYER_LEVEL = 1
GEOMETRY_KEYS = ("left", "top", "width", "height")

JsonDict = Dict[str, Any]


class SlideFormatError(ValueError):
    """Raised when a persisted slide document cannot be interpreted."""


def new_uid() -> str:
    return str(uuid.uuid4())


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SlideFormatError(f"{key} must be a number, got {value!r}")
    return float(value)


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class Image:
    src: str
    width: int
    height: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Image":
        if not isinstance(data, Mapping) or "src" not in data:
            raise SlideFormatError(f"image must be an object with a src, got {data!r}")
        try:
            width = int(data.get("width", 0))
            height = int(data.get("height", 0))
        except (TypeError, ValueError) as exc:
            raise SlideFormatError(f"image dimensions must be integers: {exc}") from None
        return cls(src=str(data["src"]), width=width, height=height)

    def to_dict(self) -> JsonDict:
        return {"src": self.src, "width": self.width, "height": self.height}

    @property
    def aspect_ratio(self) -> Optional[float]:
        if self.width > 0 and self.height > 0:
            return self.width / self.height
        return None


def _optional_image(data: Mapping[str, Any]) -> Optional[Image]:
    raw = data.get("image")
    if raw is None:
        return None
    return Image.from_dict(raw)


@dataclass(frozen=True)
class Overlay:
    uid: str
    type: str = DEFAULT_OVERLAY_TYPE
    left: float = DEFAULT_GEOMETRY_VALUE
    top: float = DEFAULT_GEOMETRY_VALUE
    width: float = DEFAULT_GEOMETRY_VALUE
    height: float = DEFAULT_GEOMETRY_VALUE
    target: str = ""
    id: Optional[str] = None
    style_class: Optional[str] = None
    label: Optional[str] = None

    @property
    def rect(self) -> Rect:
        return Rect(left=self.left, top=self.top, width=self.width, height=self.height)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Overlay":
        if not isinstance(data, Mapping):
            raise SlideFormatError(f"overlay must be an object, got {data!r}")
        overlay_type = data.get("type", DEFAULT_OVERLAY_TYPE)
        if overlay_type not in OVERLAY_TYPES:
            raise SlideFormatError(f"overlay type must be one of {OVERLAY_TYPES}, got {overlay_type!r}")
        raw = {key: _as_float(data[key], key) if key in data else DEFAULT_GEOMETRY_VALUE for key in GEOMETRY_KEYS}
        # Hand-edited files may hold out-of-bounds rectangles; they are pulled back inside on load.
        bounded = clamp_rect(Rect(**raw))
        geometry = {key: getattr(bounded, key) for key in GEOMETRY_KEYS}
        return cls(
            uid=str(data.get("uid") or new_uid()),
            type=overlay_type,
            target=str(data.get("target") or ""),
            id=_optional_str(data, "id"),
            style_class=_optional_str(data, "class"),
            label=_optional_str(data, "label"),
            **geometry,
        )

    def to_dict(self) -> JsonDict:
        result: JsonDict = {"uid": self.uid}
        if self.id is not None:
            result["id"] = self.id
        if self.style_class is not None:
            result["class"] = self.style_class
        result.update(
            {
                "type": self.type,
                "top": self.top,
                "left": self.left,
                "width": self.width,
                "height": self.height,
                "target": self.target,
            }
        )
        if self.label is not None:
            result["label"] = self.label
        return result

    def merged(self, patch: Mapping[str, Any]) -> "Overlay":
        """Return a copy with ``patch`` (wire field names) applied.

        Geometry is re-clamped after the merge so a property edit can never
        push the rectangle outside the canvas. ``uid`` is not patchable.
        """

        changes: Dict[str, Any] = {}
        for key, value in patch.items():
            if key in GEOMETRY_KEYS:
                changes[key] = _as_float(value, key)
            elif key == "type":
                if value not in OVERLAY_TYPES:
                    raise SlideFormatError(f"overlay type must be one of {OVERLAY_TYPES}, got {value!r}")
                changes["type"] = value
            elif key == "target":
                changes["target"] = "" if value is None else str(value)
            elif key == "class":
                changes["style_class"] = None if value is None else str(value)
            elif key in ("id", "label"):
                changes[key] = None if value is None else str(value)
        updated = replace(self, **changes)
        if any(key in changes for key in GEOMETRY_KEYS):
            bounded = clamp_rect(updated.rect)
            updated = replace(
                updated, left=bounded.left, top=bounded.top, width=bounded.width, height=bounded.height
            )
        return updated


@dataclass(frozen=True)
class Layer:
    uid: str
    level: int = DEFAULT_LAYER_LEVEL
    overlays: Tuple[Overlay, ...] = ()
    display: bool = True
    id: Optional[str] = None
    image: Optional[Image] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Layer":
        if not isinstance(data, Mapping):
            raise SlideFormatError(f"layer must be an object, got {data!r}")
        raw_overlays = data.get("overlays") or []
        if not isinstance(raw_overlays, list):
            raise SlideFormatError("layer overlays must be a list")
        try:
            level = int(data.get("level", DEFAULT_LAYER_LEVEL))
        except (TypeError, ValueError):
            raise SlideFormatError(f"layer level must be an integer, got {data.get('level')!r}") from None
        return cls(
            uid=str(data.get("uid") or new_uid()),
            id=_optional_str(data, "id"),
            level=level,
            image=_optional_image(data),
            overlays=tuple(Overlay.from_dict(item) for item in raw_overlays),
            display=bool(data.get("display", True)),
        )

    def to_dict(self) -> JsonDict:
        result: JsonDict = {"uid": self.uid}
        if self.id is not None:
            result["id"] = self.id
        result["level"] = self.level
        if self.image is not None:
            result["image"] = self.image.to_dict()
        result["overlays"] = [overlay.to_dict() for overlay in self.overlays]
        result["display"] = self.display
        return result

    def merged(self, patch: Mapping[str, Any]) -> "Layer":
        changes: Dict[str, Any] = {}
        for key, value in patch.items():
            if key == "id":
                changes["id"] = None if value is None else str(value)
            elif key == "level":
                try:
                    changes["level"] = int(value)
                except (TypeError, ValueError):
                    raise SlideFormatError(f"layer level must be an integer, got {value!r}") from None
            elif key == "display":
                changes["display"] = bool(value)
            elif key == "image":
                changes["image"] = None if value is None else Image.from_dict(value)
            elif key == "overlays":
                if not isinstance(value, list):
                    raise SlideFormatError("layer overlays must be a list")
                changes["overlays"] = tuple(Overlay.from_dict(item) for item in value)
        return replace(self, **changes)

    def with_overlays(self, overlays: Tuple[Overlay, ...]) -> "Layer":
        return replace(self, overlays=overlays)


def default_layer() -> Layer:
    return Layer(uid=new_uid(), id=DEFAULT_LAYER_ID, level=DEFAULT_LAYER_LEVEL)


@dataclass(frozen=True)
class Slide:
    uid: str
    layers: Tuple[Layer, ...] = field(default_factory=tuple)
    id: Optional[str] = None
    order: Optional[int] = None
    image: Optional[Image] = None
    template: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Slide":
        if not isinstance(data, Mapping):
            raise SlideFormatError(f"slide must be an object, got {type(data).__name__}")
        uid = data.get("uid")
        if not uid:
            raise SlideFormatError("slide uid is required")
        raw_layers = data.get("layers") or []
        if not isinstance(raw_layers, list):
            raise SlideFormatError("slide layers must be a list")
        order = data.get("order")
        if order is not None:
            try:
                order = int(order)
            except (TypeError, ValueError):
                raise SlideFormatError(f"slide order must be a number, got {order!r}") from None
        slide = cls(
            uid=str(uid),
            id=_optional_str(data, "id"),
            order=order,
            image=_optional_image(data),
            layers=tuple(Layer.from_dict(item) for item in raw_layers),
            template=_optional_str(data, "template"),
        )
        return normalize_slide(slide)

    def to_dict(self) -> JsonDict:
        result: JsonDict = {"uid": self.uid}
        if self.id is not None:
            result["id"] = self.id
        if self.order is not None:
            result["order"] = self.order
        if self.image is not None:
            result["image"] = self.image.to_dict()
        result["layers"] = [layer.to_dict() for layer in self.layers]
        if self.template is not None:
            result["template"] = self.template
        return result

    def with_layers(self, layers: Tuple[Layer, ...]) -> "Slide":
        return replace(self, layers=layers)


def normalize_slide(slide: Slide) -> Slide:
    """Guarantee at least one editable layer."""

    if slide.layers:
        return slide
    return slide.with_layers((default_layer(),))


def serialize_slide(slide: Slide) -> str:
    return json.dumps(slide.to_dict(), indent=2, ensure_ascii=False) + "\n"


def parse_slide(text: str) -> Slide:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SlideFormatError(f"slide is not valid JSON: {exc}") from None
    return Slide.from_dict(data)


def load_slide_file(path: Path) -> Slide:
    """Read and normalise a persisted slide record."""

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SlideFormatError(f"cannot read slide file {path}: {exc}") from None
    return parse_slide(text)
