import itertools

import pytest

from shelter_map.config import AppConfig
from shelter_map.engine import IsochroneEngine
from shelter_map.toggle import ToggleOutcome, marker_id

from conftest import AREA_TOL, CENTER, FAR, record, same_region, square


def test_concentric_scenario(concentric_records):
    engine = IsochroneEngine(concentric_records)
    res = engine.toggle_marker(*CENTER)
    assert res.outcome is ToggleOutcome.ACTIVATED

    rings = {r.band: r.geometry for r in engine.rings()}
    small, medium, large = (square(*CENTER, h) for h in (0.002, 0.004, 0.006))
    assert same_region(rings[5], small)
    assert same_region(rings[10], medium.difference(small))
    assert same_region(rings[15], large.difference(medium))

    engine.toggle_marker(*CENTER)
    assert engine.rings() == []


def test_two_markers_scenario(two_site_records):
    engine = IsochroneEngine(two_site_records)
    engine.toggle_marker(*CENTER)
    engine.toggle_marker(*FAR)

    union5 = engine.accumulator.union_of(5)
    assert union5.geom_type == "MultiPolygon"
    assert len(union5.geoms) == 2

    engine.toggle_marker(*CENTER)
    assert same_region(engine.accumulator.union_of(5), square(*FAR, 0.002))
    assert engine.active_markers() == [marker_id(*FAR)]


def test_toggle_twice_restores_prior_state(concentric_records, two_site_records):
    engine = IsochroneEngine(concentric_records + [two_site_records[1]])
    engine.toggle_marker(*FAR)
    before = engine.accumulator.union_of(5).area

    for _ in range(2):
        engine.toggle_marker(*CENTER)
        engine.toggle_marker(*CENTER)

    assert engine.accumulator.union_of(5).area == pytest.approx(before)
    assert engine.accumulator.union_of(10) is None
    assert engine.accumulator.union_of(15) is None


def test_show_all_unions_each_band_once(concentric_records, two_site_records):
    engine = IsochroneEngine(concentric_records + two_site_records[1:], bulk_simplify_tolerance=0)
    counts = engine.show_all()
    assert counts == {5: 2, 10: 1, 15: 1}
    assert engine.is_bulk
    assert engine.active_markers() == []
    assert engine.accumulator.state(5).owners == [AppConfig.BULK_OWNER]
    assert len(engine.rings()) == 3


def test_show_all_discards_marker_state(concentric_records, two_site_records):
    engine = IsochroneEngine(concentric_records + two_site_records[1:])
    engine.toggle_marker(*CENTER)
    engine.show_all()
    for band in (5, 10, 15):
        assert {f.owner for f in engine.accumulator.contributors(band)} == {AppConfig.BULK_OWNER}


def test_bulk_then_single_marker(concentric_records, two_site_records):
    engine = IsochroneEngine(concentric_records + two_site_records[1:])
    engine.show_all(simplify_tolerance=1e-5)
    res = engine.toggle_marker(*FAR)

    assert res.left_bulk
    assert not engine.is_bulk
    assert engine.accumulator.bands() == [5]
    assert {f.owner for f in engine.accumulator.contributors(5)} == {res.marker_id}
    assert same_region(engine.accumulator.union_of(5), square(*FAR, 0.002))


def test_hide_all_resets(concentric_records):
    engine = IsochroneEngine(concentric_records)
    engine.toggle_marker(*CENTER)
    engine.hide_all()
    assert len(engine.accumulator) == 0
    assert engine.active_markers() == []
    assert engine.to_geojson() == {"type": "FeatureCollection", "features": []}


def test_load_counts_dropped_records(concentric_records):
    engine = IsochroneEngine(concentric_records + [{"aa_mins": 5}, {"geom": None, "minutes": 0}])
    assert len(engine.features) == 3
    assert engine.dropped == 2


def test_direct_contribute_and_retract():
    engine = IsochroneEngine([record(*CENTER, 0.002, 5)])
    feat = engine.features[0]
    engine.contribute(5, feat, "x")
    assert same_region(engine.accumulator.union_of(5), feat.geometry)
    assert engine.retract(5, "x") == 1
    assert engine.accumulator.union_of(5) is None


def test_rings_never_overlap_after_mixed_activity(concentric_records):
    lat, lon = CENTER
    shifted = [record(lat + 0.003, lon + 0.003, h, b) for h, b in ((0.002, 5), (0.004, 10), (0.006, 15))]
    engine = IsochroneEngine(concentric_records + shifted)
    engine.contribute(15, engine.features[0], "odd")
    engine.toggle_marker(*CENTER)

    rings = engine.rings()
    for r1, r2 in itertools.combinations(rings, 2):
        assert r1.geometry.intersection(r2.geometry).area < AREA_TOL


def test_retracting_every_band_deactivates_marker(concentric_records):
    engine = IsochroneEngine(concentric_records)
    res = engine.toggle_marker(*CENTER)
    for band in res.bands[:-1]:
        engine.retract(band, res.marker_id)
        assert engine.active_markers() == [res.marker_id]
    engine.retract(res.bands[-1], res.marker_id)

    assert engine.active_markers() == []
    again = engine.toggle_marker(*CENTER)
    assert again.outcome is ToggleOutcome.ACTIVATED
    assert again.bands == (5, 10, 15)


def test_show_all_on_empty_dataset_stays_out_of_bulk():
    engine = IsochroneEngine([])
    assert engine.show_all() == {}
    assert not engine.is_bulk
    assert engine.controller.contributions == {}
