"""Serialised, acknowledged slide saves through the out-of-process writer."""
from __future__ import annotations

import json
import logging
import queue
import subprocess
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from slide_canvas.bus_messages import (
    EVENT_KEY,
    MessageValidationError,
    SaveFailed,
    SaveSucceeded,
    UpdateSlideData,
    encode_message,
)
from slide_canvas.editor_settings import PROJECT_ROOT

JsonDict = Dict[str, Any]
PublishFn = Callable[[JsonDict], None]
WriterRunner = Callable[[JsonDict, float], JsonDict]

WRITER_MODULE = "slide_host.slide_writer"

_LOGGER = logging.getLogger("SlideEditor.Host.Persistence")


class WriterError(RuntimeError):
    """The writer process failed, timed out or answered with garbage."""


class SubprocessWriter:
    """Runs ``python -m slide_host.slide_writer`` once per save."""

    def __init__(self, command: Optional[Sequence[str]] = None, working_dir: Path = PROJECT_ROOT) -> None:
        self._command = list(command) if command else [sys.executable, "-m", WRITER_MODULE]
        self._working_dir = working_dir

    def __call__(self, request: JsonDict, timeout: float) -> JsonDict:
        try:
            completed = subprocess.run(
                self._command,
                input=json.dumps(request, ensure_ascii=False),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=str(self._working_dir),
                timeout=timeout,
                creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
            )
        except subprocess.TimeoutExpired:
            raise WriterError(f"writer did not finish within {timeout:.1f}s") from None
        except OSError as exc:
            raise WriterError(f"failed to launch writer: {exc}") from None

        lines = [line for line in (completed.stdout or "").splitlines() if line.strip()]
        if not lines:
            detail = _tail(completed.stderr or "") or "no output"
            raise WriterError(f"writer exited with code {completed.returncode}: {detail}")
        try:
            response = json.loads(lines[-1])
        except json.JSONDecodeError:
            raise WriterError(f"writer answered with invalid JSON: {_tail(lines[-1])}") from None
        if not isinstance(response, dict):
            raise WriterError("writer response must be a JSON object")
        return response


def _tail(text: str, limit: int = 500) -> str:
    stripped = text.strip()
    return stripped if len(stripped) <= limit else stripped[-limit:]


class PersistenceBridge:
    """Queues save requests and commits them one at a time on a worker thread.

    Each outcome is reported back over the relay as ``save-succeeded`` or
    ``save-failed``. Targets outside ``content_dir`` are refused without
    starting the writer.
    """

    def __init__(
        self,
        content_dir: Path,
        publish: PublishFn,
        *,
        runner: Optional[WriterRunner] = None,
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._content_dir = Path(content_dir).resolve()
        self._publish = publish
        self._runner: WriterRunner = runner or SubprocessWriter()
        self._timeout = timeout
        self._logger = logger or _LOGGER
        self._queue: "queue.Queue[Optional[UpdateSlideData]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    @property
    def content_dir(self) -> Path:
        return self._content_dir

    def start(self) -> None:
        if self._worker and self._worker.is_alive():
            return
        worker = threading.Thread(target=self._loop, name="SlideEditor-Persistence", daemon=True)
        self._worker = worker
        worker.start()

    def stop(self) -> None:
        """Finish every save already queued, then stop the worker."""
        worker = self._worker
        if worker is None or not worker.is_alive():
            self._worker = None
            self._abandon_queued("editor host stopped before the save ran")
            return
        backlog = self._queue.qsize()
        self._queue.put(None)
        if backlog:
            self._logger.info("Completing %d queued save(s) before shutdown", backlog)
        worker.join(timeout=(self._timeout + 2.0) * (backlog + 1))
        if worker.is_alive():
            self._logger.warning("Thread %s did not exit cleanly", worker.name)
        self._worker = None

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued save has been handled."""
        done = threading.Event()

        def _join() -> None:
            self._queue.join()
            done.set()

        threading.Thread(target=_join, name="SlideEditor-PersistenceJoin", daemon=True).start()
        return done.wait(timeout)

    def intercept(self, payload: Mapping[str, Any]) -> bool:
        """Relay hook: consume ``update-slide-data`` payloads, pass everything else."""
        if payload.get(EVENT_KEY) != UpdateSlideData.topic:
            return False
        try:
            request = UpdateSlideData.from_payload(payload)
        except MessageValidationError as exc:
            self._logger.warning("Dropped invalid save request: %s", exc)
            return True
        self.submit(request)
        return True

    def submit(self, request: UpdateSlideData) -> None:
        self._logger.debug("Queued save of %s", request.file_path)
        self._queue.put(request)

    def save_now(self, request: UpdateSlideData) -> bool:
        """Run one save on the calling thread and publish its outcome."""
        try:
            target = self.resolve_target(request.file_path)
            response = self._runner({"target": str(target), "slide": request.data}, self._timeout)
        except (WriterError, ValueError) as exc:
            return self._fail(request.file_path, str(exc))

        if response.get("status") != "ok":
            return self._fail(request.file_path, str(response.get("error") or "writer reported an error"))

        uid = response.get("uid")
        self._logger.info("Saved slide %s to %s", uid, target)
        self._publish(encode_message(SaveSucceeded(file_path=str(target), uid=uid if isinstance(uid, str) else None)))
        return True

    def resolve_target(self, file_path: str) -> Path:
        candidate = Path(file_path).expanduser()
        if not candidate.is_absolute():
            candidate = self._content_dir / candidate
        resolved = candidate.resolve()
        if resolved != self._content_dir and self._content_dir not in resolved.parents:
            raise ValueError(f"{file_path} is outside the content directory {self._content_dir}")
        if resolved.suffix.lower() != ".json":
            raise ValueError(f"{file_path} is not a .json slide file")
        return resolved

    def _fail(self, file_path: str, error: str) -> bool:
        self._logger.error("Failed to save slide to %s: %s", file_path, error)
        self._publish(encode_message(SaveFailed(file_path=file_path, error=error)))
        return False

    def _abandon_queued(self, reason: str) -> None:
        while True:
            try:
                request = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if request is not None:
                    self._fail(request.file_path, reason)
            finally:
                self._queue.task_done()

    def _loop(self) -> None:
        # Saves queued ahead of the stop sentinel are still committed.
        while True:
            request = self._queue.get()
            try:
                if request is None:
                    break
                self.save_now(request)
            except Exception as exc:
                self._logger.exception("Save task failed: %s", exc)
            finally:
                self._queue.task_done()
