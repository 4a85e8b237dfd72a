import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from shapely.geometry.base import BaseGeometry

from shelter_map import ops
from shelter_map.accumulator import BandAccumulator
from shelter_map.compositor import RenderedRing, compose_rings
from shelter_map.config import AppConfig
from shelter_map.geometry import Band, PolygonFeature, adapt_records
from shelter_map.toggle import MarkerContribution, MarkerToggleController, ToggleResult

logger = logging.getLogger(__name__)


class IsochroneEngine:
    """
    Isochrone ring state for one map view.

    Holds the loaded isochrone dataset, the per-band accumulator and the
    marker toggle state. Create one per view; nothing here is module-global.
    """

    def __init__(self, records: Optional[Iterable[Any]] = None,
                 bulk_simplify_tolerance: Optional[float] = AppConfig.BULK_SIMPLIFY_TOLERANCE):
        self.accumulator = BandAccumulator()
        self.controller = MarkerToggleController(self.accumulator)
        self.bulk_simplify_tolerance = bulk_simplify_tolerance
        self.features: List[PolygonFeature] = []
        self.dropped = 0
        if records is not None:
            self.load(records)

    def load(self, records: Iterable[Any]) -> int:
        self.features, self.dropped = adapt_records(records)
        logger.info("Loaded %d isochrones", len(self.features))
        return len(self.features)

    # --- Commands ---

    def contribute(self, band: Band, feature: PolygonFeature, owner_id: str) -> Optional[BaseGeometry]:
        return self.accumulator.contribute(band, feature, owner_id)

    def retract(self, band: Band, owner_id: str) -> int:
        return self.controller.release(band, owner_id)

    def toggle_marker(self, lat: float, lon: float) -> ToggleResult:
        return self.controller.toggle(lat, lon, self.features)

    def show_all(self, simplify_tolerance: Optional[float] = None) -> Dict[Band, int]:
        """Replace all marker state with every isochrone in the dataset, one union per band."""
        tolerance = self.bulk_simplify_tolerance if simplify_tolerance is None else simplify_tolerance
        self.hide_all()

        grouped: Dict[Band, List[PolygonFeature]] = defaultdict(list)
        for feat in self.features:
            grouped[feat.band].append(feat)

        owner = AppConfig.BULK_OWNER
        contribution = MarkerContribution(owner)
        for band in sorted(grouped):
            feats = grouped[band]
            if tolerance:
                feats = [PolygonFeature(ops.simplify(f.geometry, tolerance), f.band) for f in feats]
            self.accumulator.load_band(band, feats, owner)
            contribution.bands.append(band)
        if grouped:
            self.controller.contributions[owner] = contribution

        counts = {band: len(feats) for band, feats in grouped.items()}
        logger.info("Bulk mode: %d isochrones over bands %s", len(self.features), sorted(counts))
        return counts

    def hide_all(self):
        self.controller.reset()

    # --- Queries ---

    @property
    def is_bulk(self) -> bool:
        return self.controller.in_bulk

    def active_markers(self) -> List[str]:
        return self.controller.active_markers()

    def rings(self) -> List[RenderedRing]:
        return compose_rings(self.accumulator)

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": "FeatureCollection", "features": [r.to_geojson() for r in self.rings()]}
