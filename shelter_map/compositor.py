from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import matplotlib.colors as colors
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from shelter_map import ops
from shelter_map.accumulator import BandAccumulator
from shelter_map.config import AppConfig
from shelter_map.geometry import Band


@dataclass(frozen=True)
class RenderedRing:
    band: Band
    geometry: BaseGeometry

    @property
    def style(self) -> Dict[str, Any]:
        return band_style(self.band)

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": mapping(self.geometry),
            "properties": {"band": self.band, "walking_minutes": self.band}
        }


def band_color(band: Band) -> str:
    color = AppConfig.BAND_COLORS.get(band, AppConfig.BAND_COLORS[AppConfig.FALLBACK_BAND])
    return colors.to_hex(color)


def band_style(band: Band) -> Dict[str, Any]:
    color = band_color(band)
    return {
        'color': color, 'weight': 2, 'opacity': 0.7,
        'fillColor': color, 'fillOpacity': 0.3
    }


def compose_rings(accumulator: BandAccumulator) -> List[RenderedRing]:
    """
    Non-overlapping shape per band, smallest band first.

    The smallest band draws its union as-is; every larger band draws its union
    minus everything already covered by the smaller bands.
    """
    rings: List[RenderedRing] = []
    covered: Optional[BaseGeometry] = None

    for band in accumulator.bands():
        band_union = accumulator.union_of(band)
        shape_ = ops.difference(band_union, covered)
        if shape_ is not None:
            rings.append(RenderedRing(band, shape_))
        covered = ops.union(covered, band_union)

    return rings
