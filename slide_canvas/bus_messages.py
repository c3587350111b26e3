"""Typed commands and notifications exchanged between canvas, panel and host.

Every message is a frozen dataclass bound to one wire topic. On the wire a
message is a JSON object whose ``event`` key carries the topic and whose
remaining keys carry the payload, using the camelCase names the panel and the
persisted documents share.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type, Union

JsonDict = Dict[str, Any]
EVENT_KEY = "event"
# Select widgets report their value as text.
_INDEX_TEXT = re.compile(r"-?[0-9]+")


class MessageValidationError(ValueError):
    """Raised when a wire payload does not match its topic's schema."""


# Payload helpers -------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_index(payload: Mapping[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        return None
    if not _is_int(value):
        raise MessageValidationError(f"{key} must be an integer, got {value!r}")
    return value


def _required_index(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, str) and _INDEX_TEXT.fullmatch(value.strip()):
        value = int(value.strip())
    if not _is_int(value):
        raise MessageValidationError(f"{key} must be an integer, got {value!r}")
    return value


def _required_mapping(payload: Mapping[str, Any], key: str) -> JsonDict:
    value = payload.get(key)
    if not isinstance(value, Mapping):
        raise MessageValidationError(f"{key} must be an object, got {value!r}")
    return dict(value)


def _optional_mapping(payload: Mapping[str, Any], key: str) -> Optional[JsonDict]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise MessageValidationError(f"{key} must be an object, got {value!r}")
    return dict(value)


def _required_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MessageValidationError(f"{key} must be a non-empty string, got {value!r}")
    return value


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MessageValidationError(f"{key} must be a string, got {value!r}")
    return value


def _drop_none(payload: JsonDict) -> JsonDict:
    return {key: value for key, value in payload.items() if value is not None}


# Commands (panel -> canvas) ----------------------------------------------------


@dataclass(frozen=True)
class AddLayer:
    topic: ClassVar[str] = "add-layer"
    layer: Optional[JsonDict] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AddLayer":
        return cls(layer=_optional_mapping(payload, "layer"))

    def to_payload(self) -> JsonDict:
        return _drop_none({"layer": self.layer})


@dataclass(frozen=True)
class RemoveLayer:
    topic: ClassVar[str] = "remove-layer"
    layer_index: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RemoveLayer":
        return cls(layer_index=_optional_index(payload, "layerIndex"))

    def to_payload(self) -> JsonDict:
        return _drop_none({"layerIndex": self.layer_index})


@dataclass(frozen=True)
class UpdateLayer:
    topic: ClassVar[str] = "update-layer"
    updated_layer: JsonDict
    layer_index: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UpdateLayer":
        return cls(
            updated_layer=_required_mapping(payload, "updatedLayer"),
            layer_index=_optional_index(payload, "layerIndex"),
        )

    def to_payload(self) -> JsonDict:
        return _drop_none({"layerIndex": self.layer_index, "updatedLayer": self.updated_layer})


@dataclass(frozen=True)
class SelectLayer:
    topic: ClassVar[str] = "select-layer"
    index: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SelectLayer":
        return cls(index=_required_index(payload, "index"))

    def to_payload(self) -> JsonDict:
        return {"index": self.index}


@dataclass(frozen=True)
class AddOverlay:
    topic: ClassVar[str] = "add-overlay"
    layer_index: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AddOverlay":
        return cls(layer_index=_optional_index(payload, "layerIndex"))

    def to_payload(self) -> JsonDict:
        return _drop_none({"layerIndex": self.layer_index})


@dataclass(frozen=True)
class RemoveOverlay:
    topic: ClassVar[str] = "remove-overlay"
    layer_index: Optional[int] = None
    overlay_index: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RemoveOverlay":
        return cls(
            layer_index=_optional_index(payload, "layerIndex"),
            overlay_index=_optional_index(payload, "overlayIndex"),
        )

    def to_payload(self) -> JsonDict:
        return _drop_none({"layerIndex": self.layer_index, "overlayIndex": self.overlay_index})


@dataclass(frozen=True)
class UpdateOverlay:
    topic: ClassVar[str] = "update-overlay"
    updated_overlay: JsonDict
    layer_index: Optional[int] = None
    overlay_index: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UpdateOverlay":
        return cls(
            updated_overlay=_required_mapping(payload, "updatedOverlay"),
            layer_index=_optional_index(payload, "layerIndex"),
            overlay_index=_optional_index(payload, "overlayIndex"),
        )

    def to_payload(self) -> JsonDict:
        return _drop_none(
            {
                "layerIndex": self.layer_index,
                "overlayIndex": self.overlay_index,
                "updatedOverlay": self.updated_overlay,
            }
        )


@dataclass(frozen=True)
class RequestSave:
    topic: ClassVar[str] = "request-save"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RequestSave":
        return cls()

    def to_payload(self) -> JsonDict:
        return {}


@dataclass(frozen=True)
class RequestLoad:
    topic: ClassVar[str] = "request-load"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RequestLoad":
        return cls()

    def to_payload(self) -> JsonDict:
        return {}


@dataclass(frozen=True)
class SetEditMode:
    topic: ClassVar[str] = "set-edit-mode"
    enabled: bool

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SetEditMode":
        value = payload.get("enabled")
        if not isinstance(value, bool):
            raise MessageValidationError(f"enabled must be a boolean, got {value!r}")
        return cls(enabled=value)

    def to_payload(self) -> JsonDict:
        return {"enabled": self.enabled}


@dataclass(frozen=True)
class UpdateSlideData:
    """Panel -> host: persist ``data`` at ``file_path``."""

    topic: ClassVar[str] = "update-slide-data"
    file_path: str
    data: JsonDict

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UpdateSlideData":
        return cls(file_path=_required_str(payload, "filePath"), data=_required_mapping(payload, "data"))

    def to_payload(self) -> JsonDict:
        return {"filePath": self.file_path, "data": self.data}


# Notifications (canvas/host -> panel) ----------------------------------------


@dataclass(frozen=True)
class SlideUpdated:
    topic: ClassVar[str] = "slide-updated"
    slide: JsonDict
    selected_layer_index: Optional[int]
    selected_overlay: Optional[Tuple[int, int]] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SlideUpdated":
        selected_overlay = None
        raw = payload.get("selectedOverlayIndex")
        if raw is not None:
            if not isinstance(raw, Mapping):
                raise MessageValidationError(f"selectedOverlayIndex must be an object, got {raw!r}")
            selected_overlay = (_required_index(raw, "layerIndex"), _required_index(raw, "overlayIndex"))
        return cls(
            slide=_required_mapping(payload, "slide"),
            selected_layer_index=_optional_index(payload, "selectedLayerIndex"),
            selected_overlay=selected_overlay,
        )

    def to_payload(self) -> JsonDict:
        selected = None
        if self.selected_overlay is not None:
            selected = {"layerIndex": self.selected_overlay[0], "overlayIndex": self.selected_overlay[1]}
        return {
            "slide": self.slide,
            "selectedLayerIndex": self.selected_layer_index,
            "selectedOverlayIndex": selected,
        }


@dataclass(frozen=True)
class LayerSelected:
    topic: ClassVar[str] = "layer-selected"
    layer_index: Optional[int]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LayerSelected":
        return cls(layer_index=_optional_index(payload, "layerIndex"))

    def to_payload(self) -> JsonDict:
        return {"layerIndex": self.layer_index}


@dataclass(frozen=True)
class OverlaySelected:
    topic: ClassVar[str] = "overlay-selected"
    layer_index: int
    overlay_index: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "OverlaySelected":
        return cls(
            layer_index=_required_index(payload, "layerIndex"),
            overlay_index=_required_index(payload, "overlayIndex"),
        )

    def to_payload(self) -> JsonDict:
        return {"layerIndex": self.layer_index, "overlayIndex": self.overlay_index}


@dataclass(frozen=True)
class OverlaySelect:
    """Manual pick of an overlay on the canvas while editing."""

    topic: ClassVar[str] = "overlay-select"
    overlay: JsonDict

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "OverlaySelect":
        return cls(overlay=_required_mapping(payload, "overlay"))

    def to_payload(self) -> JsonDict:
        return {"overlay": self.overlay}


@dataclass(frozen=True)
class SaveSlide:
    topic: ClassVar[str] = "save-slide"
    slide: JsonDict
    file_path: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SaveSlide":
        return cls(slide=_required_mapping(payload, "slide"), file_path=_optional_str(payload, "filePath"))

    def to_payload(self) -> JsonDict:
        return _drop_none({"slide": self.slide, "filePath": self.file_path})


@dataclass(frozen=True)
class LoadSlide:
    topic: ClassVar[str] = "load-slide"
    slide: JsonDict

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "LoadSlide":
        return cls(slide=_required_mapping(payload, "slide"))

    def to_payload(self) -> JsonDict:
        return {"slide": self.slide}


@dataclass(frozen=True)
class SaveSucceeded:
    topic: ClassVar[str] = "save-succeeded"
    file_path: str
    uid: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SaveSucceeded":
        return cls(file_path=_required_str(payload, "filePath"), uid=_optional_str(payload, "uid"))

    def to_payload(self) -> JsonDict:
        return _drop_none({"filePath": self.file_path, "uid": self.uid})


@dataclass(frozen=True)
class SaveFailed:
    topic: ClassVar[str] = "save-failed"
    file_path: str
    error: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SaveFailed":
        return cls(file_path=str(payload.get("filePath") or ""), error=str(payload.get("error") or "unknown error"))

    def to_payload(self) -> JsonDict:
        return {"filePath": self.file_path, "error": self.error}


BusMessage = Union[
    AddLayer,
    RemoveLayer,
    UpdateLayer,
    SelectLayer,
    AddOverlay,
    RemoveOverlay,
    UpdateOverlay,
    RequestSave,
    RequestLoad,
    SetEditMode,
    UpdateSlideData,
    SlideUpdated,
    LayerSelected,
    OverlaySelected,
    OverlaySelect,
    SaveSlide,
    LoadSlide,
    SaveSucceeded,
    SaveFailed,
]

COMMAND_TYPES: Tuple[Type[Any], ...] = (
    AddLayer,
    RemoveLayer,
    UpdateLayer,
    SelectLayer,
    AddOverlay,
    RemoveOverlay,
    UpdateOverlay,
    RequestSave,
    RequestLoad,
    SetEditMode,
)

NOTIFICATION_TYPES: Tuple[Type[Any], ...] = (
    SlideUpdated,
    LayerSelected,
    OverlaySelected,
    OverlaySelect,
    SaveSlide,
    LoadSlide,
    SaveSucceeded,
    SaveFailed,
)

MESSAGE_TYPES: Dict[str, Type[Any]] = {
    cls.topic: cls for cls in COMMAND_TYPES + NOTIFICATION_TYPES + (UpdateSlideData,)
}


def encode_message(message: BusMessage) -> JsonDict:
    payload = message.to_payload()
    payload[EVENT_KEY] = message.topic
    return payload


def decode_message(payload: Mapping[str, Any]) -> BusMessage:
    """Validate a wire payload and build its typed message."""

    if not isinstance(payload, Mapping):
        raise MessageValidationError(f"message must be an object, got {type(payload).__name__}")
    topic = payload.get(EVENT_KEY)
    message_cls = MESSAGE_TYPES.get(topic) if isinstance(topic, str) else None
    if message_cls is None:
        raise MessageValidationError(f"unknown event {topic!r}")
    return message_cls.from_payload(payload)
