import os
from typing import Dict, Tuple

from dotenv import load_dotenv

load_dotenv()

# ============================================================================
# CONSTANTS & CONFIGURATION
# ============================================================================

PAGE_CONFIG = {
    "page_title": "Tilfluktsrom Agder",
    "page_icon": "🛡️",
    "layout": "wide"
}


class AppConfig:
    """Centralized Configuration for easier maintenance."""
    DEFAULT_LAT = 58.1467
    DEFAULT_LON = 7.9956
    DEFAULT_ZOOM = 12

    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
    REQUEST_TIMEOUT = 15
    CACHE_TTL = 3600

    SHELTER_TABLE = "osm_shelter_type_basic_hut_agder"
    SHELTER_LIMIT = 100
    BUNKER_TABLE = "tilfluktsrom_offentlige"
    BUNKER_LIMIT = 65
    ISOCHRONE_TABLE = os.environ.get("ISOCHRONE_TABLE", "isokroner_tilfluktsrom_agder")
    POPULATION_TABLE = "grunnkrets_populasjon_agder_2024"

    # Bunker coordinates are stored as UTM zone 33N
    BUNKER_CRS = "EPSG:25833"
    MAP_CRS = "EPSG:4326"

    # Isochrone bands (minutes)
    BAND_FIELDS: Tuple[str, ...] = ("aa_mins", "minutes", "walkingTime", "time", "mins")
    GEOMETRY_FIELDS: Tuple[str, ...] = ("geom", "GEOM", "geometry")
    PREFERRED_BANDS: Tuple[int, ...] = (5, 10, 15)
    MAX_FALLBACK_BANDS = 3
    BAND_COLORS: Dict[int, str] = {
        5: '#2E7D32',
        10: '#FFEB3B',
        15: '#F44336'
    }
    FALLBACK_BAND = 15

    # Marker -> isochrone matching
    SEARCH_RADIUS_M = 3000.0
    MIN_TOLERANCE_M = 500.0
    TOLERANCE_RATIO = 0.5
    MARKER_ID_PRECISION = 10000
    CLOSEST_SITE_MAX_M = 50000.0

    # Bulk mode
    BULK_OWNER = "bulk"
    BULK_SIMPLIFY_TOLERANCE = 0.0001

    # Population prediction
    POPULATION_BASE_YEAR = 2024
    POPULATION_GROWTH_RATE = 0.008
    POPULATION_MIN_RESIDENTS = 10

    # Population grid, residents per grunnkrets (lower bound, exclusive)
    POPULATION_COLOR_STEPS = ((2000, '#BD0026'), (1000, '#FC4E2A'), (500, '#FD8D3C'), (100, '#FEB24C'))
    POPULATION_BASE_COLOR = '#FFEDA0'

    # Custom position
    POSITION_COLOR = 'purple'
    BUNKER_ROUTE_COLOR = 'red'
    SHELTER_ROUTE_COLOR = 'blue'

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    MAP_STYLES = {
        "OpenStreetMap": {"tiles": "OpenStreetMap", "attr": None},
        "Esri Light Gray": {
            "tiles": "https://server.arcgisonline.com/ArcGIS/rest/services/Canvas/World_Light_Gray_Base/MapServer/tile/{z}/{y}/{x}",
            "attr": "Tiles &copy; Esri"
        },
        "Esri Satellite": {
            "tiles": "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}",
            "attr": "Tiles &copy; Esri"
        }
    }
