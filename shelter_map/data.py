import json
import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

import requests
from pyproj import Transformer
from pyproj.exceptions import ProjError
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from shelter_map.config import AppConfig
from shelter_map.errors import DataSourceError
from shelter_map.geometry import distance_meters, parse_polygon

logger = logging.getLogger(__name__)

SHELTER_LABEL = "alternativt tilfluktsrom"
BUNKER_LABEL = "offentlig tilfluktsrom"


# ============================================================================
# SUPABASE REST
# ============================================================================

def _headers() -> Dict[str, str]:
    return {
        "apikey": AppConfig.SUPABASE_KEY,
        "Authorization": f"Bearer {AppConfig.SUPABASE_KEY}",
        "Accept": "application/json",
    }


def supabase_get(table: str, params: Optional[Dict[str, Any]] = None) -> List[Dict]:
    """Query a Supabase table over REST. Returns list of rows."""
    if not AppConfig.SUPABASE_URL:
        raise DataSourceError("SUPABASE_URL is not configured")
    url = f"{AppConfig.SUPABASE_URL.rstrip('/')}/rest/v1/{table}"
    try:
        resp = requests.get(url, headers=_headers(), params=params or {}, timeout=AppConfig.REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise DataSourceError(f"Supabase query failed for {table}: {e}") from e
    if resp.status_code != 200:
        raise DataSourceError(f"Supabase error {resp.status_code} for {table}: {resp.text[:80]}")
    rows = resp.json()
    logger.info("Fetched %d rows from %s", len(rows), table)
    return rows


# ============================================================================
# SITES (shelters & bunkers)
# ============================================================================

@lru_cache(maxsize=1)
def _utm_transformer() -> Transformer:
    return Transformer.from_crs(AppConfig.BUNKER_CRS, AppConfig.MAP_CRS, always_xy=True)


def utm_to_wgs84(easting: float, northing: float) -> Tuple[float, float]:
    """UTM 33N (easting, northing) -> (lat, lng)."""
    lng, lat = _utm_transformer().transform(easting, northing)
    return lat, lng


def _point_coords(row: Dict) -> Optional[Tuple[float, float]]:
    geom = row.get("geom")
    if isinstance(geom, str):
        try:
            geom = json.loads(geom)
        except ValueError:
            return None
    if not isinstance(geom, dict):
        return None
    coords = geom.get("coordinates")
    if not coords or len(coords) < 2:
        return None
    try:
        return float(coords[0]), float(coords[1])
    except (TypeError, ValueError):
        return None


def shelters_from_rows(rows: List[Dict]) -> List[Dict[str, Any]]:
    sites = []
    for row in rows:
        xy = _point_coords(row)
        if xy is None:
            continue
        sites.append({"lat": xy[1], "lng": xy[0], "label": SHELTER_LABEL, "kind": "shelter"})
    return sites


def bunkers_from_rows(rows: List[Dict]) -> List[Dict[str, Any]]:
    sites = []
    for i, row in enumerate(rows):
        xy = _point_coords(row)
        if xy is None:
            continue
        try:
            lat, lng = utm_to_wgs84(*xy)
        except ProjError as e:
            logger.error("Error converting coordinates for bunker %d: %s", i, e)
            continue
        sites.append({
            "lat": lat, "lng": lng, "label": BUNKER_LABEL, "kind": "bunker",
            "address": row.get("adresse"), "capacity": row.get("plasser"), "room": row.get("romnr")
        })
    return sites


def fetch_shelters() -> List[Dict[str, Any]]:
    rows = supabase_get(AppConfig.SHELTER_TABLE, {"select": "*", "limit": AppConfig.SHELTER_LIMIT})
    return shelters_from_rows(rows)


def fetch_bunkers() -> List[Dict[str, Any]]:
    rows = supabase_get(AppConfig.BUNKER_TABLE, {"select": "*", "limit": AppConfig.BUNKER_LIMIT})
    return bunkers_from_rows(rows)


def fetch_isochrones() -> List[Dict]:
    return supabase_get(AppConfig.ISOCHRONE_TABLE, {"select": "*"})


def find_closest_site(lat: float, lng: float, sites: List[Dict[str, Any]],
                      max_distance: float = AppConfig.CLOSEST_SITE_MAX_M) -> Tuple[Optional[Dict[str, Any]], float]:
    closest, closest_dist = None, max_distance
    for site in sites:
        d = distance_meters(lat, lng, site["lat"], site["lng"])
        if d < closest_dist:
            closest, closest_dist = site, d
    return closest, closest_dist


def format_distance(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{round(meters)} m"


# ============================================================================
# POPULATION GRID (grunnkretser)
# ============================================================================

POPULATION_FIELDS = 'geojson_geometry,"totalBefolkning",grunnkretsnummer,grunnkretsnavn,kommunenummer,kommunenavn'


def _population_count(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _keep_closed_rings(raw: Dict) -> Optional[Dict]:
    """Drop rings with fewer than 3 positions; None when no polygon survives."""
    if raw.get("type") == "Polygon":
        polygons = [raw.get("coordinates") or []]
    elif raw.get("type") == "MultiPolygon":
        polygons = raw.get("coordinates") or []
    else:
        return None
    kept = []
    for rings in polygons:
        rings = [r for r in rings if isinstance(r, list) and len(r) >= 3]
        if rings:
            kept.append(rings)
    if not kept:
        return None
    if raw["type"] == "Polygon":
        return {"type": "Polygon", "coordinates": kept[0]}
    return {"type": "MultiPolygon", "coordinates": kept}


def _area_geometry(raw: Any) -> Optional[BaseGeometry]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None
    raw = _keep_closed_rings(raw)
    geom = parse_polygon(raw) if raw else None
    if geom is None:
        return None
    minx, miny, maxx, maxy = geom.bounds
    if maxx > 180 or maxy > 90:
        # UTM 33N metres
        geom = transform(_utm_transformer().transform, geom)
    return geom


def population_areas_from_rows(rows: List[Dict]) -> Dict[str, Any]:
    """Supabase grunnkrets rows -> WGS84 GeoJSON FeatureCollection."""
    features = []
    for i, row in enumerate(rows):
        try:
            geom = _area_geometry(row.get("geojson_geometry"))
        except ProjError as e:
            logger.error("Error converting coordinates for area %d: %s", i, e)
            continue
        if geom is None:
            logger.debug("Area %d has invalid geometry", i)
            continue
        features.append({
            "type": "Feature",
            "geometry": mapping(geom),
            "properties": {
                "population": _population_count(row.get("totalBefolkning")),
                "grunnkretsnummer": row.get("grunnkretsnummer"),
                "grunnkretsnavn": row.get("grunnkretsnavn"),
                "kommunenummer": row.get("kommunenummer"),
                "kommunenavn": row.get("kommunenavn"),
            },
        })
    if len(features) < len(rows):
        logger.warning("Skipped %d of %d population areas", len(rows) - len(features), len(rows))
    return {"type": "FeatureCollection", "features": features}


def fetch_population_areas() -> Dict[str, Any]:
    rows = supabase_get(AppConfig.POPULATION_TABLE, {"select": POPULATION_FIELDS})
    if not rows:
        raise DataSourceError("No population data found")
    return population_areas_from_rows(rows)
