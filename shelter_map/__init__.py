from shelter_map.engine import IsochroneEngine
from shelter_map.geometry import PolygonFeature, to_polygon_feature

__all__ = ["IsochroneEngine", "PolygonFeature", "to_polygon_feature"]
