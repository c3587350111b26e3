from __future__ import annotations

from slide_canvas import bus_messages as msg
from slide_panel.mirror_state import PanelMirror

SLIDE = {
    "uid": "slide",
    "layers": [
        {"uid": "l0", "id": "default", "level": 1, "overlays": [{"uid": "o0", "target": "/a"}], "display": True},
        {"uid": "l1", "id": "popup", "level": 2, "overlays": [], "display": True},
    ],
}


def _with_overlay_on_popup(slide):
    layers = [dict(layer) for layer in slide["layers"]]
    layers[1] = dict(layers[1], overlays=[{"uid": "o1", "target": "/b", "class": "glow"}])
    return dict(slide, layers=layers)


def test_slide_updated_refreshes_layers_but_not_form():
    mirror = PanelMirror()
    mirror.apply(msg.OverlaySelected(layer_index=0, overlay_index=0))
    mirror.apply(msg.SlideUpdated(slide=SLIDE, selected_layer_index=0, selected_overlay=(0, 0)))
    mirror.apply(msg.OverlaySelected(layer_index=0, overlay_index=0))

    edited = dict(SLIDE)
    change = mirror.apply(msg.SlideUpdated(slide=edited, selected_layer_index=0, selected_overlay=(0, 0)))

    assert change.layers_changed
    assert not change.rebuild_form
    assert not change.clear_form
    assert mirror.displayed_overlay == (0, 0)


def test_overlay_selected_rebuilds_form():
    mirror = PanelMirror()
    mirror.apply(msg.SlideUpdated(slide=SLIDE, selected_layer_index=0))

    change = mirror.apply(msg.OverlaySelected(layer_index=0, overlay_index=0))

    assert change.rebuild_form
    assert mirror.current_overlay == (0, 0)
    assert mirror.displayed_overlay_fields()["target"] == "/a"


def test_narrowcast_before_snapshot_is_completed_by_snapshot():
    mirror = PanelMirror()
    mirror.apply(msg.SlideUpdated(slide=SLIDE, selected_layer_index=0))

    early = mirror.apply(msg.OverlaySelected(layer_index=1, overlay_index=0))
    assert early.clear_form and not early.rebuild_form
    assert mirror.pending_overlay == (1, 0)

    late = mirror.apply(
        msg.SlideUpdated(slide=_with_overlay_on_popup(SLIDE), selected_layer_index=1, selected_overlay=(1, 0))
    )
    assert late.rebuild_form
    assert mirror.pending_overlay is None
    assert mirror.displayed_overlay_fields()["class"] == "glow"


def test_layer_selected_clears_form_and_selection():
    mirror = PanelMirror()
    mirror.apply(msg.SlideUpdated(slide=SLIDE, selected_layer_index=0))
    mirror.apply(msg.OverlaySelected(layer_index=0, overlay_index=0))

    change = mirror.apply(msg.LayerSelected(layer_index=1))

    assert change.clear_form and change.layers_changed
    assert mirror.current_layer == 1
    assert mirror.current_overlay is None
    assert mirror.displayed_overlay is None


def test_snapshot_without_displayed_overlay_clears_form():
    mirror = PanelMirror()
    mirror.apply(msg.SlideUpdated(slide=SLIDE, selected_layer_index=0))
    mirror.apply(msg.OverlaySelected(layer_index=0, overlay_index=0))
    emptied = dict(SLIDE, layers=[dict(SLIDE["layers"][0], overlays=[]), SLIDE["layers"][1]])

    change = mirror.apply(msg.SlideUpdated(slide=emptied, selected_layer_index=0))

    assert change.clear_form
    assert mirror.displayed_overlay is None


def test_load_slide_replaces_document_and_clears_form():
    mirror = PanelMirror()
    mirror.current_layer = 5
    change = mirror.apply(msg.LoadSlide(slide=SLIDE))
    assert change.layers_changed and change.clear_form
    assert mirror.current_layer == 0
    assert mirror.layer_labels() == ["default", "popup"]


def test_layer_labels_fall_back_when_empty():
    mirror = PanelMirror()
    assert mirror.layer_labels() == ["Default"]
    mirror.apply(msg.LoadSlide(slide={"uid": "s", "layers": [{"uid": "x"}]}))
    assert mirror.layer_labels() == ["Layer 0"]


def test_save_slide_becomes_save_request():
    mirror = PanelMirror()
    change = mirror.apply(msg.SaveSlide(slide=SLIDE, file_path="/content/slide/intro.json"))
    assert change.save_request == msg.UpdateSlideData(file_path="/content/slide/intro.json", data=SLIDE)
    assert "intro.json" in change.status


def test_save_slide_without_path_reports_failure():
    change = PanelMirror().apply(msg.SaveSlide(slide=SLIDE))
    assert change.save_request is None
    assert change.status.startswith("Save failed")


def test_save_outcomes_update_status():
    mirror = PanelMirror()
    assert mirror.apply(msg.SaveSucceeded(file_path="/c/intro.json", uid="slide")).status == "Saved intro.json"
    assert mirror.apply(msg.SaveFailed(file_path="/c/intro.json", error="disk full")).status == "Save failed: disk full"


def test_unrelated_messages_change_nothing():
    change = PanelMirror().apply(msg.OverlaySelect(overlay={"uid": "o0"}))
    assert not change.changed
