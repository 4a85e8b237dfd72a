import itertools

import pytest
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry

from shelter_map.accumulator import BandAccumulator
from shelter_map.compositor import band_style, compose_rings

from conftest import AREA_TOL, CENTER, FAR, feature, same_region


def concentric():
    lat, lon = CENTER
    return {5: feature(lat, lon, 0.002, 5), 10: feature(lat, lon, 0.004, 10), 15: feature(lat, lon, 0.006, 15)}


def test_concentric_rings():
    feats = concentric()
    acc = BandAccumulator()
    for band in (15, 5, 10):
        acc.contribute(band, feats[band], "m")

    rings = {r.band: r.geometry for r in compose_rings(acc)}
    assert list(rings) == [5, 10, 15]
    assert same_region(rings[5], feats[5].geometry)
    assert same_region(rings[10], feats[10].geometry.difference(feats[5].geometry))
    assert same_region(rings[15], feats[15].geometry.difference(feats[10].geometry))


def test_rings_never_overlap_for_non_nested_bands():
    lat, lon = CENTER
    acc = BandAccumulator()
    acc.contribute(5, feature(lat, lon, 0.003, 5), "a")
    acc.contribute(10, feature(lat + 0.004, lon, 0.003, 10), "b")
    acc.contribute(15, feature(lat + 0.002, lon + 0.002, 0.005, 15), "c")

    rings = compose_rings(acc)
    assert len(rings) == 3
    for r1, r2 in itertools.combinations(rings, 2):
        assert r1.geometry.intersection(r2.geometry).area < AREA_TOL


def test_absent_bands_render_nothing():
    acc = BandAccumulator()
    acc.contribute(10, feature(*CENTER, 0.004, 10), "a")
    acc.retract(10, "a")
    acc.contribute(15, feature(*FAR, 0.004, 15), "b")
    rings = compose_rings(acc)
    assert [r.band for r in rings] == [15]


def test_fully_covered_band_is_dropped():
    acc = BandAccumulator()
    acc.contribute(5, feature(*CENTER, 0.006, 5), "a")
    acc.contribute(10, feature(*CENTER, 0.004, 10), "b")
    assert [r.band for r in compose_rings(acc)] == [5]


def test_failed_difference_draws_minuend(monkeypatch):
    feats = concentric()
    acc = BandAccumulator()
    acc.contribute(5, feats[5], "m")
    acc.contribute(10, feats[10], "m")

    def boom(self, other, grid_size=None):
        raise GEOSException("boom")

    monkeypatch.setattr(BaseGeometry, "difference", boom)
    rings = {r.band: r.geometry for r in compose_rings(acc)}
    assert same_region(rings[10], feats[10].geometry)


def test_band_style():
    assert band_style(5)['color'] == '#2e7d32'
    assert band_style(42)['fillColor'] == band_style(15)['fillColor']
    assert band_style(10)['fillOpacity'] == pytest.approx(0.3)
