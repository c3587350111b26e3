"""Canvas session, panel mirror and persistence wired together without sockets."""
from __future__ import annotations

import io
import json
import logging

import pytest

from slide_canvas.canvas_session import build_canvas_session
from slide_canvas.slide_model import Layer, Overlay, Slide, load_slide_file
from slide_host import slide_writer
from slide_host.persistence import PersistenceBridge
from slide_panel.controller.command_emitter import CommandEmitter
from slide_panel.controller.dispatch import dispatch_payload
from slide_panel.mirror_state import PanelMirror


def _in_process_writer(request, timeout):
    stdout = io.StringIO()
    slide_writer.run(io.StringIO(json.dumps(request)), stdout)
    return json.loads(stdout.getvalue())


class EditorHarness:
    """Stands in for the relay: panel commands reach the canvas, saves reach the bridge."""

    def __init__(self, content_dir, slide: Slide, file_path: str):
        self.to_panel: list = []
        self.changes: list = []
        self.bridge = PersistenceBridge(
            content_dir,
            self.to_panel.append,
            runner=_in_process_writer,
            logger=logging.getLogger("test-round-trip"),
        )
        self.session = build_canvas_session(
            slide,
            send=lambda payload: self.to_panel.append(payload) or True,
            file_path=file_path,
        )
        self.mirror = PanelMirror()
        self.emitter = CommandEmitter(self.mirror, self._relay)

    def _relay(self, payload) -> bool:
        if not self.bridge.intercept(payload):
            self.session.link.receive(payload)
        return True

    def pump(self) -> None:
        while self.to_panel:
            payload = self.to_panel.pop(0)
            change = dispatch_payload(self.mirror, self.emitter, payload)
            if change is not None:
                self.changes.append(change)


@pytest.fixture
def harness(tmp_path):
    slide = Slide(
        uid="intro",
        layers=(Layer(uid="base", id="default", overlays=(Overlay(uid="o0", target="/start"),)),),
    )
    target = tmp_path / "intro.json"
    editor = EditorHarness(tmp_path, slide, str(target))
    editor.bridge.start()
    yield editor
    editor.bridge.stop()


def test_panel_mirrors_canvas_after_load(harness):
    harness.emitter.request_load()
    harness.pump()

    assert harness.mirror.current_slide["uid"] == "intro"
    assert harness.mirror.layer_labels() == ["default"]


def test_add_overlay_builds_form_for_new_overlay(harness):
    harness.session.store.publish_state()
    harness.pump()

    harness.emitter.add_overlay()
    harness.pump()

    assert harness.mirror.displayed_overlay == (0, 1)
    fields = harness.mirror.displayed_overlay_fields()
    assert fields["type"] == "hotspot"
    assert harness.changes[-1].rebuild_form


def test_form_edit_round_trips_without_rebuilding_form(harness):
    harness.session.store.select_overlay(0, 0)
    harness.pump()
    rebuilds = sum(change.rebuild_form for change in harness.changes)

    harness.emitter.update_overlay_field("target", "/next")
    harness.pump()

    assert harness.session.store.overlay_at(0, 0).target == "/next"
    assert harness.mirror.displayed_overlay_fields()["target"] == "/next"
    assert sum(change.rebuild_form for change in harness.changes) == rebuilds


def test_layer_management_from_panel(harness):
    harness.session.store.publish_state()
    harness.pump()

    harness.emitter.add_layer()
    harness.pump()
    assert harness.mirror.layer_labels() == ["default", "layer-2"]

    assert harness.mirror.current_layer == 1

    harness.emitter.remove_layer()
    harness.pump()
    assert harness.mirror.layer_labels() == ["default"]
    assert harness.mirror.current_layer == 0

    harness.emitter.select_layer(0)
    harness.pump()
    harness.emitter.remove_layer()
    harness.pump()
    assert harness.session.store.slide.layers[0].uid == "base"
    assert harness.mirror.layer_labels() == ["default"]


def test_save_round_trip_writes_file_and_reports_status(harness, tmp_path):
    harness.session.store.select_overlay(0, 0)
    harness.pump()
    harness.emitter.update_overlay_field("class", "glow")
    harness.pump()

    harness.emitter.request_save()
    harness.pump()
    assert harness.bridge.wait_idle(timeout=5.0)
    harness.pump()

    statuses = [change.status for change in harness.changes if change.status]
    assert statuses[-2:] == ["Saving intro.json…", "Saved intro.json"]
    saved = load_slide_file(tmp_path / "intro.json")
    assert saved.uid == "intro"
    assert saved.layers[0].overlays[0].style_class == "glow"


def test_save_outside_content_dir_reports_failure(tmp_path):
    content = tmp_path / "content"
    content.mkdir()
    editor = EditorHarness(content, Slide(uid="intro"), str(tmp_path / "elsewhere.json"))

    editor.emitter.request_save()
    editor.pump()
    assert editor.bridge.save_now(editor.bridge._queue.get_nowait()) is False
    editor.pump()

    assert editor.changes[-1].status.startswith("Save failed:")
    assert not (tmp_path / "elsewhere.json").exists()
