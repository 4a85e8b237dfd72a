import pytest
from shapely.geometry import Polygon, mapping

from shelter_map.geometry import PolygonFeature

CENTER = (59.0, 10.0)
# ~10 km north of CENTER
FAR = (59.09, 10.0)

AREA_TOL = 1e-12


def square(lat, lon, half):
    return Polygon([
        (lon - half, lat - half), (lon + half, lat - half),
        (lon + half, lat + half), (lon - half, lat + half),
    ])


def record(lat, lon, half, minutes, field="aa_mins"):
    return {"geom": mapping(square(lat, lon, half)), field: minutes}


def feature(lat, lon, half, band):
    return PolygonFeature(square(lat, lon, half), band)


def same_region(a, b):
    return a.symmetric_difference(b).area < AREA_TOL


@pytest.fixture
def concentric_records():
    lat, lon = CENTER
    return [
        record(lat, lon, 0.002, 5),
        record(lat, lon, 0.004, 10),
        record(lat, lon, 0.006, 15),
    ]


@pytest.fixture
def two_site_records():
    return [
        record(CENTER[0], CENTER[1], 0.002, 5),
        record(FAR[0], FAR[1], 0.002, 5),
    ]
