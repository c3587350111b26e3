"""JSON-lines framing shared by the relay and its clients."""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Union

# A full slide snapshot travels as one line; room for a few thousand overlays.
MAX_LINE_BYTES = 16 * 1024 * 1024


class WireFormatError(ValueError):
    """A relay line is not a single UTF-8 JSON object."""


def encode_line(payload: Mapping[str, Any]) -> bytes:
    return (json.dumps(payload, ensure_ascii=False) + "\n").encode("utf-8")


def decode_line(raw: Union[bytes, str]) -> Optional[Dict[str, Any]]:
    """Parse one relay line; blank lines give ``None``."""
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise WireFormatError(f"not UTF-8: {exc}") from None
    else:
        text = raw
    text = text.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WireFormatError(f"parse error: {exc}") from None
    if not isinstance(payload, dict):
        raise WireFormatError("not a mapping")
    return payload
