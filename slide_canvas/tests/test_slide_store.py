from __future__ import annotations

import types

import pytest

from slide_canvas import bus_messages as msg
from slide_canvas.event_bus import EventBus
from slide_canvas.slide_model import Layer, Overlay, Slide
from slide_canvas.slide_store import Selection, SlideStateStore, repair_selection


def _recording_store(slide: Slide | None = None, **kwargs):
    bus = EventBus()
    events = []
    for cls in msg.NOTIFICATION_TYPES:
        bus.subscribe(cls, events.append)
    store = SlideStateStore(slide or Slide.from_dict({"uid": "slide"}), bus, **kwargs)
    return store, types.SimpleNamespace(events=events, bus=bus)


def _overlay(uid: str) -> Overlay:
    return Overlay(uid=uid, left=10, top=10, width=10, height=10)


def _two_layer_slide() -> Slide:
    return Slide(
        uid="slide",
        layers=(
            Layer(uid="base", id="default", level=1, overlays=(_overlay("a0"),)),
            Layer(uid="top", id="layer-2", level=2, overlays=(_overlay("b0"), _overlay("b1"), _overlay("b2"))),
        ),
    )


def test_add_overlay_scenario_drag_and_resize():
    store, rec = _recording_store()

    overlay = store.add_overlay(0)

    assert overlay is not None
    assert store.selection == Selection.overlay(0, 0)
    placed = store.overlay_at(0, 0)
    assert (placed.left, placed.top, placed.width, placed.height, placed.type) == (45, 47.5, 10, 5, "hotspot")
    assert placed.target == "" and placed.style_class == ""
    assert [type(event) for event in rec.events] == [msg.SlideUpdated, msg.OverlaySelected]


def test_add_layer_assigns_id_level_and_selects_it():
    store, rec = _recording_store()

    layer = store.add_layer()

    assert (layer.id, layer.level, layer.overlays) == ("layer-2", 2, ())
    assert store.selection == Selection.layer(1)
    assert rec.events[-1] == msg.LayerSelected(layer_index=1)


def test_add_layer_then_remove_restores_uids():
    store, _rec = _recording_store(_two_layer_slide())
    before = [layer.uid for layer in store.slide.layers]

    store.add_layer({"id": "extra"})
    assert store.slide.layers[-1].id == "extra"
    assert store.remove_layer(len(store.slide.layers) - 1)

    assert [layer.uid for layer in store.slide.layers] == before


@pytest.mark.parametrize("layer_count", [1, 2, 5])
def test_remove_first_layer_is_always_rejected(layer_count):
    layers = tuple(Layer(uid=f"l{i}", level=i + 1) for i in range(layer_count))
    store, rec = _recording_store(Slide(uid="s", layers=layers))

    assert store.remove_layer(0) is False
    assert len(store.slide.layers) == layer_count
    assert rec.events == []


def test_remove_last_remaining_layer_is_rejected():
    store, rec = _recording_store()
    assert store.remove_layer(0) is False
    assert store.remove_layer(1) is False
    assert rec.events == []


def test_remove_layer_zero_keeps_overlay_selection():
    store, rec = _recording_store(_two_layer_slide())
    store.select_overlay(1, 0)
    snapshot = store.snapshot
    rec.events.clear()

    assert store.remove_layer(0) is False
    assert store.snapshot == snapshot
    assert rec.events == []


def test_remove_selected_layer_moves_selection_down():
    store, rec = _recording_store(_two_layer_slide())
    store.select_overlay(1, 2)
    rec.events.clear()

    assert store.remove_layer(1)

    # Layer 0 has an overlay, so its first overlay becomes selected.
    assert store.selection == Selection.overlay(0, 0)
    assert rec.events[-1] == msg.OverlaySelected(layer_index=0, overlay_index=0)


def test_remove_lower_layer_shifts_selection():
    slide = _two_layer_slide()
    slide = slide.with_layers(slide.layers + (Layer(uid="third", level=3, overlays=(_overlay("c0"),)),))
    store, _rec = _recording_store(slide)
    store.select_overlay(2, 0)

    assert store.remove_layer(1)

    assert store.selection == Selection.overlay(1, 0)
    assert store.slide.layers[1].uid == "third"


def test_remove_out_of_range_layer_is_rejected():
    store, rec = _recording_store(_two_layer_slide())
    assert store.remove_layer(7) is False
    assert store.remove_layer(-1) is False
    assert rec.events == []


def test_selection_repair_after_removing_selected_overlay():
    store, rec = _recording_store(_two_layer_slide())
    store.select_overlay(1, 2)
    rec.events.clear()

    assert store.remove_overlay(1, 2)

    assert store.selection == Selection.overlay(1, 1)
    assert rec.events[0].selected_overlay == (1, 1)
    assert rec.events[-1] == msg.OverlaySelected(layer_index=1, overlay_index=1)


def test_selection_repair_falls_back_to_layer_when_empty():
    store, _rec = _recording_store(_two_layer_slide())
    store.select_overlay(0, 0)

    assert store.remove_overlay(0, 0)

    assert store.selection == Selection.layer(0)


def test_repair_selection_clears_missing_layer():
    slide = Slide(uid="s", layers=(Layer(uid="only"),))
    assert repair_selection(slide, Selection.overlay(3, 0)) == Selection.layer(0)
    assert repair_selection(slide, Selection.none()) == Selection.none()


def test_update_overlay_reclamps_geometry():
    store, rec = _recording_store(_two_layer_slide())

    assert store.update_overlay(0, 0, {"left": 97, "width": 20})

    overlay = store.overlay_at(0, 0)
    assert overlay.width == 20
    assert overlay.left + overlay.width <= 100
    assert isinstance(rec.events[-1], msg.SlideUpdated)


def test_update_overlay_without_change_does_not_broadcast():
    store, rec = _recording_store(_two_layer_slide())
    assert store.update_overlay(0, 0, {"left": 10})
    assert rec.events == []


def test_invalid_updates_are_rejected_without_broadcast():
    store, rec = _recording_store(_two_layer_slide())
    before = store.snapshot

    assert store.update_overlay(0, 5, {"left": 1}) is False
    assert store.update_overlay(0, 0, {"type": "popup"}) is False
    assert store.update_layer(9, {"id": "x"}) is False
    assert store.update_layer(0, {"level": "high"}) is False
    assert store.add_overlay(4) is None
    assert store.remove_overlay(1, 9) is False
    assert store.select_overlay(0, 3) is False
    assert store.select_layer(2) is False

    assert store.snapshot == before
    assert rec.events == []


def test_update_layer_keeps_selection():
    store, rec = _recording_store(_two_layer_slide())
    store.select_overlay(1, 1)
    rec.events.clear()

    assert store.update_layer(1, {"id": "popup", "display": False})

    assert store.slide.layers[1].id == "popup"
    assert store.slide.layers[1].display is False
    assert store.selection == Selection.overlay(1, 1)
    assert [type(event) for event in rec.events] == [msg.SlideUpdated]


def test_select_layer_selects_first_overlay_when_present():
    store, _rec = _recording_store(_two_layer_slide())
    store.add_layer()

    assert store.select_layer(1)
    assert store.selection == Selection.overlay(1, 0)
    assert store.select_layer(2)
    assert store.selection == Selection.layer(2)


def test_request_save_and_load_publish_document():
    store, rec = _recording_store(_two_layer_slide(), file_path="/tmp/slide.json")

    store.request_save()
    store.request_load()

    save, load = rec.events
    assert save == msg.SaveSlide(slide=store.slide.to_dict(), file_path="/tmp/slide.json")
    assert load == msg.LoadSlide(slide=store.slide.to_dict())


def test_publish_state_broadcasts_snapshot_then_selection():
    store, rec = _recording_store(_two_layer_slide())
    store.publish_state()
    assert rec.events == [
        msg.SlideUpdated(slide=store.slide.to_dict(), selected_layer_index=0, selected_overlay=None),
        msg.LayerSelected(layer_index=0),
    ]


def test_store_normalises_empty_slide():
    store, _rec = _recording_store(Slide(uid="bare"))
    assert len(store.slide.layers) == 1
    assert store.slide.layers[0].id == "default"
