import os
import time
from types import SimpleNamespace

import pytest

pytest.importorskip("PyQt6.QtWidgets")

from PyQt6.QtWidgets import QApplication  # noqa: E402

from slide_canvas.data_client import CanvasDataClient  # noqa: E402
from slide_host.relay_server import RelayServer  # noqa: E402

pytestmark = pytest.mark.pyqt_required


@pytest.fixture(scope="module")
def qt_app():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def _pump_until(qt_app, predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        qt_app.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _write_port(tmp_path, port):
    path = tmp_path / "port.json"
    path.write_text('{"port": %d}' % port, encoding="utf-8")
    return path


def test_outbox_holds_payloads_until_connected(qt_app, tmp_path):
    client = CanvasDataClient(tmp_path / "port.json", max_outbox=2)
    assert client.send({"event": "slide-updated"})
    assert client.send({"event": "layer-selected"})
    assert client.send({"event": "overflow"}) is False


def test_read_port_validates_contents(qt_app, tmp_path):
    port_file = tmp_path / "port.json"
    client = CanvasDataClient(port_file)
    assert client.read_port() is None
    port_file.write_text('{"port": 0}', encoding="utf-8")
    assert client.read_port() is None
    port_file.write_text('{"port": true}', encoding="utf-8")
    assert client.read_port() is None
    port_file.write_text('{"port": 41234}', encoding="utf-8")
    assert client.read_port() == 41234


def test_wake_after_loop_closed_is_harmless(qt_app, tmp_path):
    class ClosedLoop:
        def call_soon_threadsafe(self, fn, *args):
            raise RuntimeError("Event loop is closed")

    client = CanvasDataClient(tmp_path / "port.json")
    client._loop = ClosedLoop()  # type: ignore[attr-defined]
    client._wakeup = SimpleNamespace(set=lambda: None)  # type: ignore[attr-defined]
    assert client.send({"event": "request-save"}) is True


def test_exchanges_lines_with_relay(qt_app, tmp_path):
    relay = RelayServer(port=0)
    assert relay.start()
    peer = CanvasDataClient(_write_port(tmp_path, relay.port), retry_delay=0.05)
    client = CanvasDataClient(_write_port(tmp_path, relay.port), retry_delay=0.05)
    received = []
    client.message_received.connect(received.append)
    peer_received = []
    peer.message_received.connect(peer_received.append)
    big_slide = {"uid": "big", "layers": [{"uid": "l0", "overlays": [{"uid": f"o{i}"} for i in range(5000)]}]}
    try:
        client.send({"event": "request-load"})
        client.start()
        peer.start()
        assert _pump_until(qt_app, lambda: client.connected and peer.connected and relay.client_count == 2)

        peer.send({"event": "load-slide", "slide": big_slide})
        assert _pump_until(qt_app, lambda: len(received) == 1)
        assert len(received[0]["slide"]["layers"][0]["overlays"]) == 5000
    finally:
        client.stop()
        peer.stop()
        relay.stop()


def test_oversized_line_is_dropped_and_connection_kept(qt_app, tmp_path):
    relay = RelayServer(port=0)
    assert relay.start()
    client = CanvasDataClient(_write_port(tmp_path, relay.port), retry_delay=0.05, line_limit=1024)
    peer = CanvasDataClient(_write_port(tmp_path, relay.port), retry_delay=0.05)
    received = []
    client.message_received.connect(received.append)
    try:
        client.start()
        peer.start()
        assert _pump_until(qt_app, lambda: client.connected and peer.connected and relay.client_count == 2)

        peer.send({"event": "load-slide", "slide": {"uid": "x" * 4096}})
        peer.send({"event": "layer-selected", "layerIndex": 0})
        assert _pump_until(qt_app, lambda: received == [{"event": "layer-selected", "layerIndex": 0}])
        assert client.connected
    finally:
        client.stop()
        peer.stop()
        relay.stop()
