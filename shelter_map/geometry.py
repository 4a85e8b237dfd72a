import json
import logging
import math
from dataclasses import dataclass, replace
from math import radians, sin, cos, sqrt, atan2
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon, Polygon, mapping, shape

from shelter_map.config import AppConfig

logger = logging.getLogger(__name__)

Band = Union[int, float]
PolygonGeometry = Union[Polygon, MultiPolygon]

POLYGON_TYPES = ("Polygon", "MultiPolygon")


@dataclass(frozen=True)
class PolygonFeature:
    """A walking-time polygon for one band, optionally tagged with the marker that owns it."""
    geometry: PolygonGeometry
    band: Band
    owner: Optional[str] = None

    def with_owner(self, owner: Optional[str]) -> "PolygonFeature":
        return replace(self, owner=owner)

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": mapping(self.geometry),
            "properties": {"band": self.band, "owner": self.owner}
        }


# ============================================================================
# RECORD NORMALIZATION
# ============================================================================

def _as_positive_number(value: Any) -> Optional[Band]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def extract_band(record: Mapping[str, Any], fields: Iterable[str] = AppConfig.BAND_FIELDS) -> Optional[Band]:
    """Return the first positive minutes value found on the record or its properties."""
    fields = tuple(fields)
    sources = [record]
    props = record.get("properties")
    if isinstance(props, Mapping):
        sources.append(props)

    for source in sources:
        for name in fields:
            if name in source:
                band = _as_positive_number(source[name])
                if band is not None:
                    return band
    return None


def _raw_geometry(record: Mapping[str, Any]) -> Any:
    if record.get("type") == "Feature":
        return record.get("geometry")
    for name in AppConfig.GEOMETRY_FIELDS:
        if record.get(name):
            return record[name]
    if "type" in record and "coordinates" in record:
        return {"type": record["type"], "coordinates": record["coordinates"]}
    return None


def parse_polygon(raw: Any) -> Optional[PolygonGeometry]:
    """Build a valid shapely (Multi)Polygon from GeoJSON geometry, or None."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, Mapping) or raw.get("type") not in POLYGON_TYPES or not raw.get("coordinates"):
        return None

    try:
        geom = shape(raw)
        if not geom.is_valid:
            geom = geom.buffer(0)
    except (ShapelyError, ValueError, TypeError, IndexError) as e:
        logger.debug("Unparseable polygon geometry: %s", e)
        return None

    if geom.is_empty or geom.geom_type not in POLYGON_TYPES:
        return None
    return geom


def to_polygon_feature(record: Any, owner: Optional[str] = None) -> Optional[PolygonFeature]:
    if not isinstance(record, Mapping):
        return None
    band = extract_band(record)
    if band is None:
        return None
    geom = parse_polygon(_raw_geometry(record))
    if geom is None:
        return None
    return PolygonFeature(geometry=geom, band=band, owner=owner)


def adapt_records(records: Optional[Iterable[Any]]) -> Tuple[List[PolygonFeature], int]:
    """Normalize raw isochrone records. Returns (features, dropped_count)."""
    features: List[PolygonFeature] = []
    dropped = 0
    for i, record in enumerate(records or []):
        feat = to_polygon_feature(record)
        if feat is None:
            dropped += 1
            logger.debug("Dropped isochrone record %d: no usable geometry or band", i)
        else:
            features.append(feat)
    if dropped:
        logger.info("Adapted %d isochrone records, dropped %d", len(features), dropped)
    return features, dropped


# ============================================================================
# DISTANCES
# ============================================================================

def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    R = 6371000
    lat1_rad, lon1_rad = radians(lat1), radians(lon1)
    lat2_rad, lon2_rad = radians(lat2), radians(lon2)
    dlat, dlon = lat2_rad - lat1_rad, lon2_rad - lon1_rad
    a = sin(dlat/2)**2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlon/2)**2
    c = 2 * atan2(sqrt(a), sqrt(1-a))
    return R * c


def feature_center(feature: PolygonFeature) -> Tuple[float, float]:
    """(lat, lon) of the feature's centroid."""
    c = feature.geometry.centroid
    return c.y, c.x
