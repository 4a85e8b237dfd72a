import pytest

from shelter_map.engine import IsochroneEngine
from shelter_map.events import (
    BUNKER_LAYER, CLEAR_BUTTON, ISOCHRONE_LAYER, SHELTER_LAYER, SHOW_ALL_BUTTON, MapEventAdapter,
    is_new_click, locate_position
)

from conftest import CENTER, FAR


@pytest.fixture
def adapter(concentric_records):
    return MapEventAdapter(IsochroneEngine(concentric_records))


def test_marker_click_toggles(adapter):
    on = adapter.marker_clicked("offentlig tilfluktsrom", *CENTER)
    assert on.changed
    assert "3 tidssoner" in on.message
    off = adapter.marker_clicked("offentlig tilfluktsrom", *CENTER)
    assert off.message.startswith("Isokroner skjult")
    assert adapter.engine.rings() == []


def test_marker_click_nothing_found(adapter):
    resp = adapter.marker_clicked("Offentlig tilfluktsrom", *FAR)
    assert not resp.changed
    assert "Ingen isokroner funnet" in resp.message
    assert "offentlig tilfluktsrom" in resp.message


@pytest.mark.parametrize("layer", [SHELTER_LAYER, BUNKER_LAYER, ISOCHRONE_LAYER])
def test_unchecking_layers_clears_isochrones(adapter, layer):
    adapter.marker_clicked("tilfluktsrom", *CENTER)
    resp = adapter.checkbox_changed(layer, False)
    assert resp.changed
    assert adapter.engine.active_markers() == []


def test_checking_isochrone_layer_gives_hint(adapter):
    resp = adapter.checkbox_changed(ISOCHRONE_LAYER, True)
    assert "Klikk" in resp.message
    assert not resp.changed
    assert adapter.checkbox_changed("routes", False).message is None


def test_buttons(adapter):
    resp = adapter.button_pressed(SHOW_ALL_BUTTON)
    assert "3 polygoner" in resp.message
    assert adapter.engine.is_bulk
    resp = adapter.button_pressed(CLEAR_BUTTON)
    assert resp.changed
    assert not adapter.engine.is_bulk
    assert adapter.button_pressed("locate").message is None


def test_show_all_without_data():
    resp = MapEventAdapter(IsochroneEngine([])).button_pressed(SHOW_ALL_BUTTON)
    assert resp.message == "Ingen isokroner tilgjengelig"


def test_nothing_found_after_show_all_leaves_bulk(adapter):
    adapter.button_pressed(SHOW_ALL_BUTTON)
    resp = adapter.marker_clicked("offentlig tilfluktsrom", *FAR)
    assert resp.changed
    assert "Ingen isokroner funnet" in resp.message
    assert not adapter.engine.is_bulk
    assert adapter.engine.rings() == []


def test_repeat_click_after_debounce_is_new():
    click = {"lat": 58.1467, "lng": 7.9956}
    last = {"timestamp": 1000.0, **click}
    assert is_new_click(click, last, now=1010.0)
    assert not is_new_click(click, last, now=1000.2)
    assert is_new_click({"lat": 58.15, "lng": 7.9956}, last, now=1000.2)
    assert is_new_click(click, None, now=1000.2)


def test_position_report_names_closest_sites():
    bunker = {"lat": 58.001, "lng": 8.0, "label": "offentlig tilfluktsrom", "kind": "bunker",
              "address": "Gata 1", "capacity": 120, "room": "7"}
    shelter = {"lat": 58.02, "lng": 8.0, "label": "alternativt tilfluktsrom", "kind": "shelter"}
    report = locate_position(58.0, 8.0, [bunker], [shelter])

    assert report.bunker is bunker
    assert report.shelter is shelter
    assert report.bunker_distance == pytest.approx(111, rel=0.02)
    text = "\n".join(report.lines)
    assert "Nærmeste Tilfluktsrom:** 111 m" in text
    assert "Adresse: Gata 1, Kapasitet: 120 personer, Romnr: 7" in text
    assert "Nærmeste Alternative Tilfluktsrom:** 2.2 km" in text


def test_position_report_without_sites():
    report = locate_position(58.0, 8.0, [], [])
    assert report.bunker is None and report.shelter is None
    assert "**Ingen Tilfluktsrom funnet**" in report.lines
    assert "**Ingen Alternative Tilfluktsrom funnet**" in report.lines
