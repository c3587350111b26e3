from __future__ import annotations

import io
import json

import pytest

from slide_host import slide_writer


def _request(target, slide):
    return io.StringIO(json.dumps({"target": str(target), "slide": slide}))


def test_run_writes_slide_and_reports_uid(tmp_path):
    target = tmp_path / "slide" / "intro.json"
    stdout = io.StringIO()

    code = slide_writer.run(_request(target, {"uid": "intro", "layers": []}), stdout)

    assert code == 0
    response = json.loads(stdout.getvalue())
    assert response == {"status": "ok", "target": str(target), "uid": "intro"}
    written = json.loads(target.read_text(encoding="utf-8"))
    assert written["uid"] == "intro"
    assert len(written["layers"]) == 1
    assert not (tmp_path / "slide" / "intro.json.tmp").exists()


def test_run_replaces_existing_file(tmp_path):
    target = tmp_path / "intro.json"
    target.write_text('{"uid": "old"}', encoding="utf-8")

    slide_writer.run(_request(target, {"uid": "new", "layers": [{"uid": "l0"}]}), io.StringIO())

    assert json.loads(target.read_text(encoding="utf-8"))["uid"] == "new"


@pytest.mark.parametrize(
    "raw, fragment",
    [
        ("{broken", "not valid JSON"),
        ("[]", "JSON object"),
        (json.dumps({"slide": {"uid": "s"}}), "target"),
        (json.dumps({"target": "/tmp/x.json"}), "slide"),
    ],
)
def test_run_rejects_bad_requests(raw, fragment):
    stdout = io.StringIO()
    assert slide_writer.run(io.StringIO(raw), stdout) == 1
    response = json.loads(stdout.getvalue())
    assert response["status"] == "error"
    assert fragment in response["error"]


def test_run_rejects_invalid_slide_without_touching_target(tmp_path):
    target = tmp_path / "intro.json"
    target.write_text('{"uid": "keep"}', encoding="utf-8")
    stdout = io.StringIO()

    code = slide_writer.run(_request(target, {"layers": []}), stdout)

    assert code == 1
    assert "uid" in json.loads(stdout.getvalue())["error"]
    assert json.loads(target.read_text(encoding="utf-8")) == {"uid": "keep"}


def test_run_reports_filesystem_errors(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")
    stdout = io.StringIO()

    code = slide_writer.run(_request(blocker / "intro.json", {"uid": "s"}), stdout)

    assert code == 1
    assert json.loads(stdout.getvalue())["status"] == "error"
