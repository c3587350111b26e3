"""Launches and stops the canvas and panel processes on behalf of the host."""
from __future__ import annotations

import shlex
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

LogFunc = Callable[[str], None]


class ChildProcess:
    """One supervised subprocess; ``stop`` terminates it, killing it if unresponsive."""

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        working_dir: Path,
        log: LogFunc,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.name = name
        self._command = list(command)
        self._working_dir = working_dir
        self._log = log
        self._env = dict(env) if env is not None else None
        self._process: Optional[subprocess.Popen[bytes]] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> bool:
        if self.running():
            return True
        self._log(f"Launching {self.name}: {self._format_command()}")
        try:
            self._process = subprocess.Popen(
                self._command,
                cwd=str(self._working_dir),
                env=self._env,
                creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
            )
        except FileNotFoundError:
            self._log(f"{self.name} executable not found")
            return False
        except OSError as exc:
            self._log(f"Failed to launch {self.name}: {exc}")
            return False
        self._log(f"{self.name} started (pid={self._process.pid})")
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        proc = self._process
        if proc is None:
            return None
        try:
            return proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def stop(self) -> bool:
        proc = self._process
        if proc is None:
            return True
        try:
            if proc.poll() is None:
                self._log(f"Terminating {self.name} (pid={proc.pid})")
                proc.terminate()
                try:
                    proc.wait(timeout=5.0)
                except subprocess.TimeoutExpired:
                    self._log(f"Killing unresponsive {self.name} (pid={proc.pid})")
                    proc.kill()
                    proc.wait(timeout=5.0)
            return proc.poll() is not None
        except OSError as exc:
            self._log(f"Failed to stop {self.name}: {exc}")
            return False
        finally:
            self._process = None

    def _format_command(self) -> str:
        return shlex.join(self._command)
