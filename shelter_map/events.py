"""
UI event adapter.

Translates discrete UI events (marker clicks, layer checkboxes, buttons) into
IsochroneEngine commands and returns the text to show in the info panel.
Also holds the map-click helpers: click debounce and the nearest-site
report for a clicked position.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shelter_map.data import find_closest_site, format_distance
from shelter_map.engine import IsochroneEngine
from shelter_map.toggle import ToggleOutcome

logger = logging.getLogger(__name__)

SHELTER_LAYER = "shelters"
BUNKER_LAYER = "bunkers"
ISOCHRONE_LAYER = "isochrones"
POPULATION_LAYER = "population"
CLEARING_LAYERS = (SHELTER_LAYER, BUNKER_LAYER, ISOCHRONE_LAYER)

SHOW_ALL_BUTTON = "show-all-isochrones"
CLEAR_BUTTON = "clear-isochrones"

CLICK_DEBOUNCE_SEC = 0.5


@dataclass(frozen=True)
class EventResponse:
    message: Optional[str] = None
    changed: bool = False


class MapEventAdapter:
    def __init__(self, engine: IsochroneEngine):
        self.engine = engine

    def marker_clicked(self, owner_label: str, lat: float, lon: float) -> EventResponse:
        result = self.engine.toggle_marker(lat, lon)
        if result.outcome is ToggleOutcome.DEACTIVATED:
            return EventResponse(f"Isokroner skjult for {owner_label}", True)
        if result.outcome is ToggleOutcome.NOT_FOUND:
            return EventResponse(f"Ingen isokroner funnet for denne {owner_label.lower()}", result.left_bulk)
        return EventResponse(f"Isokroner vist for {owner_label} ({len(result.bands)} tidssoner)", True)

    def checkbox_changed(self, layer_name: str, checked: bool) -> EventResponse:
        if checked:
            if layer_name == ISOCHRONE_LAYER:
                return EventResponse("Isokroner aktivert. Klikk på et tilfluktsrom for å se gåavstander.")
            return EventResponse()
        if layer_name in CLEARING_LAYERS:
            return self._clear()
        return EventResponse()

    def button_pressed(self, name: str) -> EventResponse:
        if name == SHOW_ALL_BUTTON:
            counts = self.engine.show_all()
            if not counts:
                return EventResponse("Ingen isokroner tilgjengelig", True)
            return EventResponse(f"Alle isokroner vist ({sum(counts.values())} polygoner)", True)
        if name == CLEAR_BUTTON:
            return self._clear()
        logger.debug("Ignoring unknown button %r", name)
        return EventResponse()

    def _clear(self) -> EventResponse:
        had_state = bool(self.engine.controller.contributions)
        self.engine.hide_all()
        return EventResponse("Alle isokroner fjernet", had_state)


# ============================================================================
# MAP CLICKS
# ============================================================================

def is_new_click(click: Dict[str, float], last: Optional[Dict[str, float]], now: float,
                 debounce: float = CLICK_DEBOUNCE_SEC) -> bool:
    """A click repeating the last processed one is dropped only inside the debounce window."""
    if not last:
        return True
    if now - last['timestamp'] >= debounce:
        return True
    return (round(last['lat'], 6), round(last['lng'], 6)) != (round(click['lat'], 6), round(click['lng'], 6))


@dataclass(frozen=True)
class PositionReport:
    lat: float
    lng: float
    bunker: Optional[Dict[str, Any]] = None
    bunker_distance: float = 0.0
    shelter: Optional[Dict[str, Any]] = None
    shelter_distance: float = 0.0

    @property
    def lines(self) -> List[str]:
        lines = ["**Din valgte posisjon**"]
        if self.bunker is not None:
            lines.append(f"**Nærmeste Tilfluktsrom:** {format_distance(self.bunker_distance)}")
            details = bunker_details(self.bunker)
            if details:
                lines.append(details)
        else:
            lines.append("**Ingen Tilfluktsrom funnet**")
        if self.shelter is not None:
            lines.append(f"**Nærmeste Alternative Tilfluktsrom:** {format_distance(self.shelter_distance)}")
        else:
            lines.append("**Ingen Alternative Tilfluktsrom funnet**")
        return lines


def bunker_details(site: Dict[str, Any]) -> str:
    parts = []
    if site.get("address"):
        parts.append(f"Adresse: {site['address']}")
    if site.get("capacity"):
        parts.append(f"Kapasitet: {site['capacity']} personer")
    if site.get("room"):
        parts.append(f"Romnr: {site['room']}")
    return ", ".join(parts)


def locate_position(lat: float, lng: float, bunkers: List[Dict[str, Any]],
                    shelters: List[Dict[str, Any]]) -> PositionReport:
    bunker, bunker_dist = find_closest_site(lat, lng, bunkers)
    shelter, shelter_dist = find_closest_site(lat, lng, shelters)
    return PositionReport(lat, lng, bunker, bunker_dist, shelter, shelter_dist)
