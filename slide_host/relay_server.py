"""Threaded JSON-lines relay that connects the canvas and control panel processes."""
from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set, Tuple

from slide_canvas.wire import MAX_LINE_BYTES, WireFormatError, decode_line, encode_line

LogFunc = Callable[[str], None]
# Returns True when the host consumed the message and it must not be relayed.
InterceptFunc = Callable[[Dict[str, Any]], bool]

_Client = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


@dataclass
class RelayServer:
    """Runs a background TCP server; every line a client sends reaches all other clients."""

    host: str = "127.0.0.1"
    port: int = 0
    log: LogFunc = lambda _msg: None  # noqa: E731 - simple default noop logger
    intercept: Optional[InterceptFunc] = None
    line_limit: int = MAX_LINE_BYTES
    _loop: Optional[asyncio.AbstractEventLoop] = field(default=None, init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False)
    _stop: Optional[asyncio.Event] = field(default=None, init=False)
    _ready_event: threading.Event = field(default_factory=threading.Event, init=False)
    _clients: Set[_Client] = field(default_factory=set, init=False)
    _start_error: Optional[BaseException] = field(default=None, init=False)

    def start(self) -> bool:
        """Start the relay on a background thread; False when it could not bind."""
        if self._thread and self._thread.is_alive():
            return True

        self._ready_event.clear()
        self._start_error = None
        self._thread = threading.Thread(target=self._run, name="SlideEditor-Relay", daemon=True)
        self._thread.start()
        if not self._ready_event.wait(timeout=5.0):
            self.log("Relay server failed to start in time")
            return False
        if self._start_error is not None:
            self.log(f"Relay server unavailable on {self.host}:{self.port} ({self._start_error})")
            self._thread = None
            return False
        return True

    def stop(self) -> None:
        """Stop the server and release resources."""
        loop = self._loop
        stop_event = self._stop
        if loop is not None and stop_event is not None and loop.is_running():
            loop.call_soon_threadsafe(stop_event.set)
        if self._thread:
            self._thread.join(timeout=5.0)
        self._loop = None
        self._thread = None
        self._clients.clear()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def publish(self, payload: Dict[str, Any]) -> None:
        """Send a host-originated payload to every connected client."""
        try:
            message = encode_line(payload)
        except (TypeError, ValueError) as exc:
            self.log(f"Failed to encode payload to JSON: {exc}")
            return
        loop = self._loop
        if loop is None or not loop.is_running():
            self.log(f"Relay not running; dropped '{payload.get('event')}' payload")
            return
        asyncio.run_coroutine_threadsafe(self._broadcast(message, sender=None), loop)

    # Internal helpers -----------------------------------------------------

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._server_main())
        except OSError as exc:
            self._start_error = exc
            self._ready_event.set()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _server_main(self) -> None:
        self._stop = asyncio.Event()
        server = await asyncio.start_server(self._handle_client, self.host, self.port, limit=self.line_limit)
        sockets = server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        self.log(f"Relay server listening on {self.host}:{self.port}")
        self._ready_event.set()

        async with server:
            await self._stop.wait()

        for _reader, writer in list(self._clients):
            await self._close_writer(writer)
        self._clients.clear()

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        client = (reader, writer)
        self._clients.add(client)
        self.log(f"Client connected ({len(self._clients)} active) {peer}")
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError as exc:
                    # The stream reader has already discarded the oversized line.
                    self.log(f"Relay payload rejected (longer than {self.line_limit} bytes): {exc}")
                    continue
                if not line:
                    break
                try:
                    payload = decode_line(line)
                except WireFormatError as exc:
                    self.log(f"Relay payload rejected ({exc})")
                    continue
                if payload is None:
                    continue
                if self.intercept is not None:
                    try:
                        if self.intercept(payload):
                            continue
                    except Exception as exc:
                        self.log(f"Relay intercept raised error: {exc}")
                        continue
                await self._broadcast(line.rstrip(b"\r\n") + b"\n", sender=client)
        except (ConnectionError, OSError) as exc:
            self.log(f"Client connection error {peer}: {exc}")
        finally:
            self._clients.discard(client)
            await self._close_writer(writer)
        self.log(f"Client disconnected ({len(self._clients)} active) {peer}")

    async def _broadcast(self, payload: bytes, *, sender: Optional[_Client]) -> None:
        targets = [client for client in self._clients if client is not sender]
        if not targets:
            return
        stale = []
        for client in targets:
            _reader, writer = client
            try:
                writer.write(payload)
                await writer.drain()
            except (ConnectionError, OSError):
                stale.append(client)
        for client in stale:
            self._clients.discard(client)
            await self._close_writer(client[1])

    @staticmethod
    async def _close_writer(writer: asyncio.StreamWriter) -> None:
        try:
            writer.close()
            await writer.wait_closed()
        except (ConnectionError, OSError):
            pass
