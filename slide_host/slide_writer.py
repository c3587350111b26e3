"""Out-of-process slide writer.

Run as ``python -m slide_host.slide_writer``. The request is a single JSON
document on stdin::

    {"target": "/abs/path/to/slide.json", "slide": {...}}

The writer replaces the target atomically and answers with one JSON line on
stdout, ``{"status": "ok", "target": ..., "uid": ...}`` or
``{"status": "error", "error": ...}``. The exit code is 0 on success.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Mapping, TextIO

from slide_canvas.slide_model import Slide, SlideFormatError, serialize_slide


class WriteRequestError(ValueError):
    """The request document is missing its target or slide."""


def parse_request(raw: str) -> tuple[Path, Dict[str, Any]]:
    try:
        request = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise WriteRequestError(f"request is not valid JSON: {exc}") from exc
    if not isinstance(request, Mapping):
        raise WriteRequestError("request must be a JSON object")
    target = request.get("target")
    if not isinstance(target, str) or not target.strip():
        raise WriteRequestError("request is missing 'target'")
    slide = request.get("slide")
    if not isinstance(slide, Mapping):
        raise WriteRequestError("request is missing 'slide'")
    return Path(target), dict(slide)


def write_slide(target: Path, slide: Mapping[str, Any]) -> str:
    """Validate ``slide`` and replace ``target`` with it; returns the slide uid."""
    document = Slide.from_dict(slide)
    text = serialize_slide(document)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_suffix(target.suffix + ".tmp")
    try:
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
    return document.uid


def run(stdin: TextIO, stdout: TextIO) -> int:
    try:
        target, slide = parse_request(stdin.read())
        uid = write_slide(target, slide)
    except (WriteRequestError, SlideFormatError) as exc:
        response: Dict[str, Any] = {"status": "error", "error": str(exc)}
        code = 1
    except OSError as exc:
        response = {"status": "error", "error": f"{type(exc).__name__}: {exc}"}
        code = 1
    else:
        response = {"status": "ok", "target": str(target), "uid": uid}
        code = 0
    stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
    stdout.flush()
    return code


def main() -> int:
    return run(sys.stdin, sys.stdout)


if __name__ == "__main__":
    raise SystemExit(main())
