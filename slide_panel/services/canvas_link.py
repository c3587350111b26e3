from __future__ import annotations

import json
import logging
import queue
import socket
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional

from slide_canvas.wire import WireFormatError, decode_line

JsonDict = dict[str, Any]
ConnectFn = Callable[[tuple[str, int], float], Any]

_LOGGER = logging.getLogger("SlideEditor.Panel.Link")


class CanvasLink:
    """Panel side of the relay connection.

    A background thread owns the socket. Outgoing payloads are queued by
    :meth:`send` and written in order once connected; incoming payloads are
    queued until the tk loop drains them with :meth:`poll`.
    """

    def __init__(
        self,
        *,
        port_path: Path,
        connect: Optional[ConnectFn] = None,
        logger: Optional[logging.Logger] = None,
        retry_delay: float = 1.0,
        max_pending: int = 256,
    ) -> None:
        self._port_path = port_path
        self._connect = connect or socket.create_connection
        self._logger = logger or _LOGGER
        self._retry_delay = retry_delay
        self._outgoing: "queue.Queue[Optional[JsonDict]]" = queue.Queue(maxsize=max_pending)
        self._inbound: "queue.Queue[JsonDict]" = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sock: Optional[Any] = None
        self._connected = threading.Event()
        self.status = "Disconnected"

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def read_port(self) -> Optional[int]:
        try:
            data = json.loads(self._port_path.read_text(encoding="utf-8"))
        except (FileNotFoundError, json.JSONDecodeError, OSError):
            return None
        port = data.get("port") if isinstance(data, dict) else None
        if not isinstance(port, int) or port <= 0:
            return None
        return port

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="SlideEditor-PanelLink", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        try:
            self._outgoing.put_nowait(None)
        except queue.Full:
            pass
        self._close_socket()
        if self._thread:
            self._thread.join(timeout=2.0)
        self._thread = None

    def send(self, payload: JsonDict) -> bool:
        try:
            self._outgoing.put_nowait(dict(payload))
        except queue.Full:
            self._logger.warning("Outgoing queue full; dropped '%s'", payload.get("event"))
            return False
        return True

    def poll(self, limit: int = 100) -> List[JsonDict]:
        """Drain up to ``limit`` received payloads; call from the UI thread."""
        received: List[JsonDict] = []
        while len(received) < limit:
            try:
                received.append(self._inbound.get_nowait())
            except queue.Empty:
                break
        return received

    # Background thread ----------------------------------------------------

    def _run(self) -> None:
        backoff = self._retry_delay
        while not self._stop.is_set():
            port = self.read_port()
            if port is None:
                self.status = "Waiting for port.json…"
                self._stop.wait(self._retry_delay)
                continue
            try:
                sock = self._connect(("127.0.0.1", port), 1.5)
            except OSError as exc:
                self.status = f"Connect failed: {exc}"
                self._logger.debug("Connect failed to 127.0.0.1:%s: %s", port, exc)
                self._stop.wait(backoff)
                backoff = min(backoff * 1.5, 10.0)
                continue
            backoff = self._retry_delay
            self._serve(sock, port)

    def _serve(self, sock: Any, port: int) -> None:
        self._sock = sock
        try:
            sock.settimeout(None)
        except OSError:
            pass
        reader = sock.makefile("r", encoding="utf-8", newline="\n")
        writer = sock.makefile("w", encoding="utf-8", newline="\n")
        reader_thread = threading.Thread(
            target=self._read_loop, args=(reader,), name="SlideEditor-PanelLinkReader", daemon=True
        )
        reader_thread.start()
        self._connected.set()
        self.status = f"Connected to 127.0.0.1:{port}"
        self._logger.info("Connected to editor host on 127.0.0.1:%s", port)
        try:
            while not self._stop.is_set() and reader_thread.is_alive():
                try:
                    payload = self._outgoing.get(timeout=0.2)
                except queue.Empty:
                    continue
                if payload is None:
                    break
                writer.write(json.dumps(payload, ensure_ascii=False))
                writer.write("\n")
                writer.flush()
        except (OSError, TypeError, ValueError) as exc:
            self._logger.warning("Failed to write outgoing payload: %s", exc)
        finally:
            self._connected.clear()
            self.status = "Disconnected"
            self._close_socket()
            for stream in (writer, reader):
                try:
                    stream.close()
                except OSError:
                    pass
            reader_thread.join(timeout=1.0)
            self._logger.info("Disconnected from editor host")

    def _read_loop(self, reader: Any) -> None:
        try:
            for line in reader:
                try:
                    payload = decode_line(line)
                except WireFormatError as exc:
                    self._logger.warning("Dropped line from host (%s): %s", exc, line[:200])
                    continue
                if payload is not None:
                    self._inbound.put(payload)
        except (OSError, ValueError) as exc:
            self._logger.debug("Reader stopped: %s", exc)

    def _close_socket(self) -> None:
        sock = self._sock
        self._sock = None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            sock.close()
        except OSError:
            pass
