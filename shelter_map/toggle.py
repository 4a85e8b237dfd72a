import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from shelter_map.accumulator import BandAccumulator
from shelter_map.config import AppConfig
from shelter_map.geometry import Band, PolygonFeature, distance_meters, feature_center

logger = logging.getLogger(__name__)


class MarkerState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"


class ToggleOutcome(Enum):
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    NOT_FOUND = "not_found"


@dataclass
class MarkerContribution:
    owner_id: str
    bands: List[Band] = field(default_factory=list)


@dataclass(frozen=True)
class ToggleResult:
    marker_id: str
    outcome: ToggleOutcome
    bands: Tuple[Band, ...] = ()
    left_bulk: bool = False


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def marker_id(lat: float, lon: float, precision: int = AppConfig.MARKER_ID_PRECISION) -> str:
    """Stable id for a marker location, so repeated clicks on one spot hit the same source."""
    return f"{_round_half_up(lat * precision)}_{_round_half_up(lon * precision)}"


# ============================================================================
# FEATURE SELECTION
# ============================================================================

def _closest_per_band(candidates: Sequence[Tuple[float, PolygonFeature]]) -> Dict[Band, Tuple[float, PolygonFeature]]:
    best: Dict[Band, Tuple[float, PolygonFeature]] = {}
    for dist, feat in candidates:
        if feat.band not in best or dist < best[feat.band][0]:
            best[feat.band] = (dist, feat)
    return best


def select_features(
    lat: float,
    lon: float,
    features: Sequence[PolygonFeature],
    search_radius: float = AppConfig.SEARCH_RADIUS_M,
    min_tolerance: float = AppConfig.MIN_TOLERANCE_M,
    tolerance_ratio: float = AppConfig.TOLERANCE_RATIO,
    preferred_bands: Sequence[Band] = AppConfig.PREFERRED_BANDS,
    max_fallback: int = AppConfig.MAX_FALLBACK_BANDS,
) -> List[PolygonFeature]:
    """
    Pick the isochrone group that belongs to the marker at (lat, lon).

    Candidates are features whose centre lies within ``search_radius`` metres.
    When at least two of them lie within ``max(min_tolerance, ratio * closest)``
    of the marker, the closest feature per band in that group is used.
    Otherwise the closest feature per band over all candidates is used,
    preferred bands first, topped up with the remaining bands (ascending)
    to at most ``max_fallback`` features.
    """
    candidates: List[Tuple[float, PolygonFeature]] = []
    for feat in features:
        c_lat, c_lon = feature_center(feat)
        dist = distance_meters(lat, lon, c_lat, c_lon)
        if dist <= search_radius:
            candidates.append((dist, feat))

    if not candidates:
        return []

    candidates.sort(key=lambda c: c[0])
    tolerance = max(min_tolerance, candidates[0][0] * tolerance_ratio)
    nearby = [c for c in candidates if c[0] <= tolerance]
    logger.debug("%d candidates within %.0fm, %d within tolerance %.0fm",
                 len(candidates), search_radius, len(nearby), tolerance)

    if len(nearby) >= 2:
        group = _closest_per_band(nearby)
        return [group[b][1] for b in sorted(group)]

    closest = _closest_per_band(candidates)
    selected: List[PolygonFeature] = []
    for band in preferred_bands:
        if band in closest:
            selected.append(closest.pop(band)[1])
    for band in sorted(closest):
        if len(selected) >= max_fallback:
            break
        selected.append(closest[band][1])
    return selected


# ============================================================================
# TOGGLE CONTROLLER
# ============================================================================

class MarkerToggleController:
    """Binary per-marker toggle over a shared BandAccumulator."""

    def __init__(self, accumulator: BandAccumulator):
        self.accumulator = accumulator
        self.contributions: Dict[str, MarkerContribution] = {}

    @property
    def in_bulk(self) -> bool:
        return AppConfig.BULK_OWNER in self.contributions

    def active_markers(self) -> List[str]:
        return [k for k in self.contributions if k != AppConfig.BULK_OWNER]

    def state_of(self, owner_id: str) -> MarkerState:
        return MarkerState.ACTIVE if owner_id in self.contributions else MarkerState.INACTIVE

    def reset(self):
        self.accumulator.clear()
        self.contributions.clear()

    def activate(self, owner_id: str, selected: Sequence[PolygonFeature]) -> ToggleResult:
        left_bulk = False
        if self.in_bulk:
            logger.info("Leaving bulk mode for marker %s", owner_id)
            self.reset()
            left_bulk = True

        if not selected:
            logger.info("No isochrones found for marker %s", owner_id)
            return ToggleResult(owner_id, ToggleOutcome.NOT_FOUND, left_bulk=left_bulk)

        contribution = MarkerContribution(owner_id)
        for feat in selected:
            self.accumulator.contribute(feat.band, feat, owner_id)
            if feat.band not in contribution.bands:
                contribution.bands.append(feat.band)
        self.contributions[owner_id] = contribution
        logger.info("Marker %s active on bands %s", owner_id, sorted(contribution.bands))
        return ToggleResult(owner_id, ToggleOutcome.ACTIVATED, tuple(sorted(contribution.bands)), left_bulk)

    def deactivate(self, owner_id: str) -> Optional[ToggleResult]:
        contribution = self.contributions.pop(owner_id, None)
        if contribution is None:
            return None
        for band in contribution.bands:
            self.accumulator.retract(band, owner_id)
        logger.info("Marker %s inactive", owner_id)
        return ToggleResult(owner_id, ToggleOutcome.DEACTIVATED, tuple(sorted(contribution.bands)))

    def release(self, band: Band, owner_id: str) -> int:
        """Retract one band of an owner; the owner goes inactive with its last band."""
        removed = self.accumulator.retract(band, owner_id)
        contribution = self.contributions.get(owner_id)
        if contribution is not None:
            if band in contribution.bands:
                contribution.bands.remove(band)
            if not contribution.bands:
                del self.contributions[owner_id]
                logger.info("Marker %s inactive", owner_id)
        return removed

    def toggle(self, lat: float, lon: float, features: Sequence[PolygonFeature]) -> ToggleResult:
        owner_id = marker_id(lat, lon)
        if self.state_of(owner_id) is MarkerState.ACTIVE:
            return self.deactivate(owner_id)
        return self.activate(owner_id, select_features(lat, lon, features))
