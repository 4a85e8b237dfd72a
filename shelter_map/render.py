from typing import Any, Dict, List, Optional, Sequence

import folium

from shelter_map.compositor import RenderedRing
from shelter_map.config import AppConfig


def base_map(lat: float = AppConfig.DEFAULT_LAT, lon: float = AppConfig.DEFAULT_LON,
             style_name: str = "OpenStreetMap", zoom: int = AppConfig.DEFAULT_ZOOM) -> folium.Map:
    style = AppConfig.MAP_STYLES.get(style_name, AppConfig.MAP_STYLES["OpenStreetMap"])
    return folium.Map(location=[lat, lon], zoom_start=zoom, tiles=style["tiles"], attr=style["attr"])


def isochrone_layer(rings: Sequence[RenderedRing], name: str = "Isokroner") -> folium.FeatureGroup:
    group = folium.FeatureGroup(name=name)
    # Largest band first so the smaller rings stay on top
    for ring in sorted(rings, key=lambda r: r.band, reverse=True):
        style = ring.style
        folium.GeoJson(
            ring.to_geojson(),
            name=f"{ring.band} min",
            style_function=lambda x, s=style: s,
            tooltip=f"Gåavstand: {ring.band} minutter",
        ).add_to(group)
    return group


def _bunker_popup(site: Dict[str, Any]) -> str:
    return (
        "<b>Offentlig tilfluktsrom</b><br>"
        f"Adresse: {site.get('address') or '-'}<br>"
        f"Kapasitet: {site.get('capacity') or '-'} personer<br>"
        f"Romnr: {site.get('room') or '-'}"
    )


def site_layer(sites: List[Dict[str, Any]], name: str, color: str, icon: str) -> folium.FeatureGroup:
    group = folium.FeatureGroup(name=name)
    for site in sites:
        popup = _bunker_popup(site) if site.get("kind") == "bunker" else site["label"].capitalize()
        folium.Marker(
            [site["lat"], site["lng"]],
            icon=folium.Icon(color=color, icon=icon, prefix='fa'),
            popup=popup,
        ).add_to(group)
    return group


# ============================================================================
# POPULATION GRID
# ============================================================================

def population_color(population: int) -> str:
    for floor, color in AppConfig.POPULATION_COLOR_STEPS:
        if population > floor:
            return color
    return AppConfig.POPULATION_BASE_COLOR


def population_style(feature: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'fillColor': population_color(feature['properties'].get('population') or 0),
        'color': '#666',
        'weight': 1,
        'opacity': 0.7,
        'fillOpacity': 0.5,
    }


def population_layer(areas: Dict[str, Any], name: str = "Befolkning") -> folium.FeatureGroup:
    group = folium.FeatureGroup(name=name)
    if not areas.get("features"):
        return group
    folium.GeoJson(
        areas,
        style_function=population_style,
        popup=folium.GeoJsonPopup(
            fields=["population", "grunnkretsnavn", "kommunenavn"],
            aliases=["Befolkning:", "Grunnkrets:", "Kommune:"],
        ),
    ).add_to(group)
    return group


def population_legend_html() -> str:
    rows, upper = [], None
    for floor, color in AppConfig.POPULATION_COLOR_STEPS:
        rows.append((color, f"{floor}+" if upper is None else f"{floor}-{upper}"))
        upper = floor
    rows.append((AppConfig.POPULATION_BASE_COLOR, f"0-{upper}"))
    items = "".join(
        f'<div><i style="background:{color};width:18px;height:18px;float:left;margin-right:8px;opacity:0.7"></i>{label}</div>'
        for color, label in rows
    )
    return (
        '<div style="position:fixed;bottom:30px;left:30px;z-index:1000;background:white;'
        'padding:8px 10px;border-radius:5px;box-shadow:0 0 15px rgba(0,0,0,0.2);font-size:13px;line-height:18px">'
        f'<h4 style="margin:0 0 6px">Befolkning</h4>{items}</div>'
    )


def add_population_legend(m: folium.Map) -> folium.Map:
    m.get_root().html.add_child(folium.Element(population_legend_html()))
    return m


# ============================================================================
# CUSTOM POSITION
# ============================================================================

def position_layer(lat: float, lng: float, bunker: Optional[Dict[str, Any]] = None,
                   shelter: Optional[Dict[str, Any]] = None, name: str = "Din posisjon") -> folium.FeatureGroup:
    """Clicked position with a line to the closest bunker and shelter."""
    group = folium.FeatureGroup(name=name)
    folium.Marker(
        [lat, lng],
        icon=folium.Icon(color=AppConfig.POSITION_COLOR, icon='user', prefix='fa'),
        tooltip="Din valgte posisjon",
    ).add_to(group)
    for site, color in ((bunker, AppConfig.BUNKER_ROUTE_COLOR), (shelter, AppConfig.SHELTER_ROUTE_COLOR)):
        if site is None:
            continue
        folium.PolyLine(
            [[lat, lng], [site["lat"], site["lng"]]],
            color=color, weight=4, opacity=0.8, dash_array="8",
            tooltip=f"Nærmeste {site['label']}",
        ).add_to(group)
    return group
