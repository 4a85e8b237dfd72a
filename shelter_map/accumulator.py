import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from shapely.geometry.base import BaseGeometry

from shelter_map import ops
from shelter_map.geometry import Band, PolygonFeature

logger = logging.getLogger(__name__)


@dataclass
class BandState:
    band: Band
    contributors: List[PolygonFeature] = field(default_factory=list)
    union: Optional[BaseGeometry] = None

    @property
    def owners(self) -> List[str]:
        seen: Dict[str, None] = {}
        for feat in self.contributors:
            if feat.owner is not None:
                seen.setdefault(feat.owner, None)
        return list(seen)

    def recompute(self) -> Optional[BaseGeometry]:
        self.union = ops.union_all(f.geometry for f in self.contributors)
        return self.union


class BandAccumulator:
    """Per-band contributor lists and their cached unions."""

    def __init__(self):
        self._states: Dict[Band, BandState] = {}

    def __contains__(self, band: Band) -> bool:
        return band in self._states

    def __len__(self) -> int:
        return len(self._states)

    def _state(self, band: Band) -> BandState:
        state = self._states.get(band)
        if state is None:
            state = self._states[band] = BandState(band)
        return state

    def state(self, band: Band) -> Optional[BandState]:
        return self._states.get(band)

    def bands(self) -> List[Band]:
        return sorted(self._states)

    def union_of(self, band: Band) -> Optional[BaseGeometry]:
        state = self._states.get(band)
        return state.union if state else None

    def contributors(self, band: Band) -> List[PolygonFeature]:
        state = self._states.get(band)
        return list(state.contributors) if state else []

    def contribute(self, band: Band, feature: PolygonFeature, owner_id: str) -> Optional[BaseGeometry]:
        state = self._state(band)
        state.contributors.append(feature.with_owner(owner_id))
        return state.recompute()

    def load_band(self, band: Band, features: Iterable[PolygonFeature], owner_id: str) -> Optional[BaseGeometry]:
        """Append many features and union them once."""
        state = self._state(band)
        state.contributors.extend(f.with_owner(owner_id) for f in features)
        return state.recompute()

    def retract(self, band: Band, owner_id: str) -> int:
        state = self._states.get(band)
        if state is None:
            return 0
        before = len(state.contributors)
        state.contributors = [f for f in state.contributors if f.owner != owner_id]
        removed = before - len(state.contributors)
        if removed:
            state.recompute()
        return removed

    def clear(self):
        self._states.clear()
