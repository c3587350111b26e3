from __future__ import annotations

import pytest

from slide_canvas.wire import WireFormatError, decode_line, encode_line


def test_encode_line_is_one_utf8_line():
    data = encode_line({"event": "save-failed", "error": "dépassé"})
    assert data.endswith(b"\n")
    assert data.count(b"\n") == 1
    assert "dépassé" in data.decode("utf-8")


def test_decode_line_accepts_bytes_and_text():
    assert decode_line(b'{"event": "add-layer"}\r\n') == {"event": "add-layer"}
    assert decode_line('{"event": "add-layer"}\n') == {"event": "add-layer"}


def test_blank_lines_decode_to_none():
    assert decode_line(b"   \n") is None


@pytest.mark.parametrize(
    "raw, fragment",
    [
        (b"{broken\n", "parse error"),
        (b"[1, 2]\n", "not a mapping"),
        (b"\xff\xfe\n", "not UTF-8"),
    ],
)
def test_bad_lines_raise_wire_format_error(raw, fragment):
    with pytest.raises(WireFormatError, match=fragment):
        decode_line(raw)
