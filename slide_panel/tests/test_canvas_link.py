from __future__ import annotations

import json
import socket
import time
from typing import Callable

from slide_panel.services.canvas_link import CanvasLink


def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _poll_until(link: CanvasLink, count: int, timeout: float = 2.0) -> list:
    received: list = []
    deadline = time.monotonic() + timeout
    while len(received) < count and time.monotonic() < deadline:
        received.extend(link.poll())
        time.sleep(0.01)
    return received


def _write_port(tmp_path, port=4567):
    path = tmp_path / "port.json"
    path.write_text(json.dumps({"port": port, "host": "127.0.0.1", "version": 1}), encoding="utf-8")
    return path


def test_read_port_handles_missing_and_invalid_files(tmp_path):
    path = tmp_path / "port.json"
    link = CanvasLink(port_path=path)
    assert link.read_port() is None
    path.write_text("{not json", encoding="utf-8")
    assert link.read_port() is None
    path.write_text(json.dumps({"port": 0}), encoding="utf-8")
    assert link.read_port() is None
    path.write_text(json.dumps({"port": 4567}), encoding="utf-8")
    assert link.read_port() == 4567


def test_waits_for_port_file_without_connecting(tmp_path):
    calls = []

    def connect(address, timeout):
        calls.append(address)
        raise AssertionError("should not connect")

    link = CanvasLink(port_path=tmp_path / "port.json", connect=connect, retry_delay=0.02)
    link.start()
    try:
        assert _wait_for(lambda: link.status.startswith("Waiting"))
        assert not link.connected
    finally:
        link.stop()
    assert calls == []


def test_connect_failure_is_retried(tmp_path):
    attempts = []

    def connect(address, timeout):
        attempts.append(address)
        raise ConnectionRefusedError("refused")

    link = CanvasLink(port_path=_write_port(tmp_path), connect=connect, retry_delay=0.01)
    link.start()
    try:
        assert _wait_for(lambda: len(attempts) >= 2)
        assert link.status.startswith("Connect failed")
    finally:
        link.stop()
    assert attempts[0] == ("127.0.0.1", 4567)


def test_send_and_receive_over_connection(tmp_path):
    peer, link_side = socket.socketpair()
    connected_to = []

    def connect(address, timeout):
        connected_to.append(address)
        return link_side

    link = CanvasLink(port_path=_write_port(tmp_path), connect=connect, retry_delay=0.02)
    link.start()
    try:
        assert _wait_for(lambda: link.connected)
        assert link.send({"event": "request-save"})

        peer.settimeout(2.0)
        reader = peer.makefile("r", encoding="utf-8", newline="\n")
        assert json.loads(reader.readline()) == {"event": "request-save"}

        peer.sendall(b'{"event": "save-succeeded", "filePath": "/c/a.json"}\nnot json\n[1, 2]\n\n')
        peer.sendall(b'{"event": "layer-selected", "layerIndex": 1}\n')
        received = _poll_until(link, 2)
        assert received == [
            {"event": "save-succeeded", "filePath": "/c/a.json"},
            {"event": "layer-selected", "layerIndex": 1},
        ]
    finally:
        link.stop()
        peer.close()
    assert connected_to == [("127.0.0.1", 4567)]
    assert not link.connected


def test_send_reports_full_queue(tmp_path):
    link = CanvasLink(port_path=tmp_path / "port.json", max_pending=1)
    assert link.send({"event": "request-load"})
    assert link.send({"event": "request-save"}) is False


def test_poll_respects_limit(tmp_path):
    link = CanvasLink(port_path=tmp_path / "port.json")
    for index in range(5):
        link._inbound.put({"event": "layer-selected", "layerIndex": index})
    assert len(link.poll(limit=3)) == 3
    assert [payload["layerIndex"] for payload in link.poll()] == [3, 4]
