"""Canvas end of the relay connection.

A daemon thread runs an asyncio loop that finds the relay through
``port.json``, reconnects with backoff and moves JSON lines both ways.
Received objects are re-emitted as a Qt signal so bus handlers run on the GUI
thread. Outgoing payloads wait in a bounded outbox while the relay is
unreachable and are written in order once a connection is up.
"""
from __future__ import annotations

import asyncio
import json
import logging
import queue
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from slide_canvas.wire import MAX_LINE_BYTES, WireFormatError, decode_line, encode_line

_LOGGER = logging.getLogger("SlideEditor.Canvas.DataClient")

MAX_BACKOFF_SECONDS = 10.0
_IDLE_POLL_SECONDS = 0.5


class CanvasDataClient(QObject):
    message_received = pyqtSignal(dict)
    status_changed = pyqtSignal(str)

    def __init__(
        self,
        port_file: Path,
        *,
        retry_delay: float = 1.0,
        line_limit: int = MAX_LINE_BYTES,
        max_outbox: int = 64,
    ) -> None:
        super().__init__()
        self._port_file = port_file
        self._retry_delay = retry_delay
        self._line_limit = line_limit
        self._outbox: "queue.Queue[Dict[str, Any]]" = queue.Queue(maxsize=max_outbox)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self.connected = False
        self.status = "Disconnected"

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._thread_main, name="SlideEditor-CanvasClient", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._wake()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._thread = None

    def send(self, payload: Mapping[str, Any]) -> bool:
        """Queue ``payload`` for the relay; False when the outbox is full."""
        try:
            self._outbox.put_nowait(dict(payload))
        except queue.Full:
            _LOGGER.warning("Outbox full; dropped outgoing '%s' payload", payload.get("event"))
            return False
        self._wake()
        return True

    def read_port(self) -> Optional[int]:
        try:
            data = json.loads(self._port_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        port = data.get("port") if isinstance(data, dict) else None
        if isinstance(port, int) and not isinstance(port, bool) and port > 0:
            return port
        return None

    def _wake(self) -> None:
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None:
            return
        try:
            loop.call_soon_threadsafe(wakeup.set)
        except RuntimeError as exc:
            # Loop already closed; the outbox is picked up by the next connection.
            _LOGGER.debug("Could not wake client loop: %s", exc)

    def _set_status(self, text: str) -> None:
        self.status = text
        self.status_changed.emit(text)

    # Background thread ----------------------------------------------------

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._run())
        finally:
            self._loop = None
            self._wakeup = None
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _run(self) -> None:
        self._wakeup = asyncio.Event()
        delay = self._retry_delay
        while not self._stop_event.is_set():
            port = self.read_port()
            if port is None:
                self._set_status("Waiting for port.json…")
                await self._pause(self._retry_delay)
                continue
            try:
                reader, writer = await asyncio.open_connection("127.0.0.1", port, limit=self._line_limit)
            except OSError as exc:
                self._set_status(f"Connect failed: {exc}")
                _LOGGER.warning("Connect failed to 127.0.0.1:%s: %s", port, exc)
                await self._pause(delay)
                delay = min(delay * 1.5, MAX_BACKOFF_SECONDS)
                continue
            delay = self._retry_delay
            self._set_status(f"Connected to 127.0.0.1:{port}")
            _LOGGER.info("Connected to editor host on 127.0.0.1:%s", port)
            await self._serve(reader, writer)
            await self._pause(delay)

    async def _pause(self, seconds: float) -> None:
        remaining = seconds
        while remaining > 0 and not self._stop_event.is_set():
            step = min(remaining, _IDLE_POLL_SECONDS)
            await asyncio.sleep(step)
            remaining -= step

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connected = True
        pump = asyncio.create_task(self._pump_outbox(writer))
        receive = asyncio.create_task(self._receive_lines(reader))
        try:
            done, _pending = await asyncio.wait({pump, receive}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    _LOGGER.warning("Disconnected from editor host: %s", task.exception())
        finally:
            self.connected = False
            for task in (pump, receive):
                task.cancel()
            await asyncio.gather(pump, receive, return_exceptions=True)
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as exc:
                _LOGGER.debug("Error closing relay connection: %s", exc)
        self._set_status("Disconnected")

    async def _receive_lines(self, reader: asyncio.StreamReader) -> None:
        while not self._stop_event.is_set():
            try:
                raw = await reader.readline()
            except ValueError as exc:
                # The stream reader has already discarded the oversized line.
                _LOGGER.warning("Dropped relay line longer than %d bytes: %s", self._line_limit, exc)
                continue
            if not raw:
                _LOGGER.warning("Editor host closed the connection")
                return
            try:
                payload = decode_line(raw)
            except WireFormatError as exc:
                _LOGGER.warning("Dropped relay line: %s", exc)
                continue
            if payload is not None:
                self.message_received.emit(payload)

    async def _pump_outbox(self, writer: asyncio.StreamWriter) -> None:
        wakeup = self._wakeup
        while not self._stop_event.is_set():
            try:
                payload = self._outbox.get_nowait()
            except queue.Empty:
                if wakeup is None:
                    await asyncio.sleep(_IDLE_POLL_SECONDS)
                    continue
                try:
                    await asyncio.wait_for(wakeup.wait(), timeout=_IDLE_POLL_SECONDS)
                except asyncio.TimeoutError:
                    pass
                wakeup.clear()
                continue
            try:
                data = encode_line(payload)
            except (TypeError, ValueError) as exc:
                _LOGGER.warning("Failed to serialise outgoing '%s' payload: %s", payload.get("event"), exc)
                continue
            writer.write(data)
            await writer.drain()
