from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from slide_host.child_process import ChildProcess
from slide_host.persistence import PersistenceBridge
from slide_host.relay_server import RelayServer

PORT_FILE_VERSION = 1


class HostRuntime:
    """Relay, persistence worker and child processes with start/stop sequencing."""

    def __init__(
        self,
        relay: RelayServer,
        bridge: PersistenceBridge,
        port_file: Path,
        logger: logging.Logger,
        children: Optional[List[ChildProcess]] = None,
    ) -> None:
        self.relay = relay
        self.bridge = bridge
        self.port_file = port_file
        self.children: List[ChildProcess] = list(children or [])
        self._logger = logger
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        if self._running:
            return True
        if not self.relay.start():
            self._logger.error("Relay server failed to start; editor host inactive.")
            self._delete_port_file()
            return False

        self._write_port_file()
        self.bridge.start()
        for child in self.children:
            if not child.start():
                self._logger.error("Could not launch %s; stopping editor host.", child.name)
                self._running = True
                self.stop()
                return False
        self._running = True
        return True

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for child in reversed(self.children):
            if child.stop():
                self._logger.debug("%s stopped cleanly", child.name)
            else:
                self._logger.warning("%s stop reported incomplete shutdown", child.name)
        self.bridge.stop()
        self.relay.stop()
        self._delete_port_file()

    def _write_port_file(self) -> None:
        data = {"port": self.relay.port, "host": self.relay.host, "version": PORT_FILE_VERSION}
        self.port_file.parent.mkdir(parents=True, exist_ok=True)
        self.port_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self._logger.info("Wrote %s with port %s", self.port_file.name, self.relay.port)

    def _delete_port_file(self) -> None:
        try:
            self.port_file.unlink()
        except FileNotFoundError:
            pass
