import time
from typing import Any, Dict

import folium
import streamlit as st
from streamlit_folium import st_folium

from shelter_map.config import AppConfig, PAGE_CONFIG
from shelter_map.data import (
    fetch_bunkers, fetch_isochrones, fetch_population_areas, fetch_shelters, find_closest_site
)
from shelter_map.engine import IsochroneEngine
from shelter_map.errors import DataSourceError, PredictionError
from shelter_map.events import (
    BUNKER_LAYER, CLEAR_BUTTON, ISOCHRONE_LAYER, POPULATION_LAYER, SHELTER_LAYER, SHOW_ALL_BUTTON,
    MapEventAdapter, is_new_click, locate_position
)
from shelter_map.logging_config import setup_logging
from shelter_map.population import fetch_area_population, predict_population
from shelter_map.render import (
    add_population_legend, base_map, isochrone_layer, population_layer, position_layer, site_layer
)

MARKER_HIT_M = 15

logger = setup_logging(AppConfig.LOG_LEVEL)

# ============================================================================
# DATA (cached per process)
# ============================================================================

@st.cache_data(show_spinner=False, ttl=AppConfig.CACHE_TTL)
def load_sites() -> Dict[str, Any]:
    errors = []
    out: Dict[str, Any] = {"shelters": [], "bunkers": [], "isochrones": []}
    for key, fetch in (("shelters", fetch_shelters), ("bunkers", fetch_bunkers), ("isochrones", fetch_isochrones)):
        try:
            out[key] = fetch()
        except DataSourceError as e:
            logger.error(str(e))
            errors.append(str(e))
    out["errors"] = errors
    return out


@st.cache_data(show_spinner="Laster befolkningsdata...", ttl=AppConfig.CACHE_TTL)
def load_population() -> Dict[str, Any]:
    return fetch_population_areas()

# ============================================================================
# STATE
# ============================================================================

def init_state(data: Dict[str, Any]):
    if 'engine' not in st.session_state:
        st.session_state.engine = IsochroneEngine(data["isochrones"])
    defaults = {
        'info': None,
        'last_processed_click': None, 'map_key': 0, 'map_view': None, 'position': None,
        'show_shelters': True, 'show_bunkers': True, 'show_isochrones': True, 'show_population': False,
        'map_style_name': "OpenStreetMap",
    }
    for k, v in defaults.items():
        st.session_state.setdefault(k, v)


def adapter() -> MapEventAdapter:
    return MapEventAdapter(st.session_state.engine)


def on_layer_change(layer: str, key: str):
    resp = adapter().checkbox_changed(layer, st.session_state[key])
    if resp.message:
        st.session_state.info = resp.message

# ============================================================================
# UI
# ============================================================================

def render_sidebar(data: Dict[str, Any]):
    engine: IsochroneEngine = st.session_state.engine
    with st.sidebar:
        st.header("🛡️ Kartlag")
        st.checkbox("Alternative tilfluktsrom", key="show_shelters",
                    on_change=on_layer_change, args=(SHELTER_LAYER, "show_shelters"))
        st.checkbox("Offentlige tilfluktsrom", key="show_bunkers",
                    on_change=on_layer_change, args=(BUNKER_LAYER, "show_bunkers"))
        st.checkbox("Isokroner", key="show_isochrones",
                    on_change=on_layer_change, args=(ISOCHRONE_LAYER, "show_isochrones"))
        st.checkbox("Befolkning", key="show_population",
                    on_change=on_layer_change, args=(POPULATION_LAYER, "show_population"))
        st.selectbox("Kartstil", list(AppConfig.MAP_STYLES.keys()), key="map_style_name")

        st.markdown("---")
        c1, c2 = st.columns(2)
        if c1.button("🗺️ Vis alle", use_container_width=True):
            st.session_state.info = adapter().button_pressed(SHOW_ALL_BUTTON).message
        if c2.button("🗑️ Fjern", use_container_width=True):
            st.session_state.info = adapter().button_pressed(CLEAR_BUTTON).message
        if st.session_state.position and st.button("📍 Fjern posisjon", use_container_width=True):
            st.session_state.position = None
            st.session_state.map_key += 1

        st.caption(f"📍 Aktive tilfluktsrom: **{len(engine.active_markers())}**"
                   + (" · alle isokroner vist" if engine.is_bulk else ""))
        st.caption(f"Isokroner lastet: {len(engine.features)} (forkastet: {engine.dropped})")

        with st.expander("👥 Befolkningsprognose", expanded=False):
            area = st.text_input("Grunnkretsnummer", key="pred_area")
            year = st.number_input("År", min_value=AppConfig.POPULATION_BASE_YEAR, max_value=2100, value=2030, step=1)
            if st.button("Beregn", use_container_width=True) and area:
                try:
                    pred = predict_population(fetch_area_population(area.strip()), int(year))
                    st.metric("Befolkning", pred["predicted_population"],
                              f"{pred['predicted_growth']:+d} ({pred['growth_percentage']:.1f}%)")
                except (PredictionError, DataSourceError) as e:
                    st.error(str(e))

        for err in data["errors"]:
            st.error(err)


def build_map(data: Dict[str, Any]) -> folium.Map:
    engine: IsochroneEngine = st.session_state.engine
    view = st.session_state.map_view or {}
    m = base_map(view.get('lat', AppConfig.DEFAULT_LAT), view.get('lng', AppConfig.DEFAULT_LON),
                 style_name=st.session_state.map_style_name, zoom=view.get('zoom', AppConfig.DEFAULT_ZOOM))

    if st.session_state.show_population:
        try:
            population_layer(load_population()).add_to(m)
            add_population_legend(m)
        except DataSourceError as e:
            logger.error(str(e))
            st.error(str(e))
    if st.session_state.show_isochrones:
        isochrone_layer(engine.rings()).add_to(m)
    if st.session_state.show_shelters:
        site_layer(data["shelters"], "Alternative tilfluktsrom", "green", "home").add_to(m)
    if st.session_state.show_bunkers:
        site_layer(data["bunkers"], "Offentlige tilfluktsrom", "red", "shield").add_to(m)

    pos = st.session_state.position
    if pos:
        report = locate_position(pos['lat'], pos['lng'], data["bunkers"], data["shelters"])
        position_layer(report.lat, report.lng, report.bunker, report.shelter).add_to(m)
        st.markdown("  \n".join(report.lines))

    folium.LayerControl().add_to(m)
    return m


def remember_view(map_out: Dict[str, Any]):
    center = map_out.get('center')
    if center and map_out.get('zoom'):
        st.session_state.map_view = {'lat': center['lat'], 'lng': center['lng'], 'zoom': map_out['zoom']}


def main():
    st.set_page_config(**PAGE_CONFIG)
    data = load_sites()
    init_state(data)
    render_sidebar(data)

    if st.session_state.info:
        st.info(st.session_state.info)

    m = build_map(data)
    map_out = st_folium(m, height=750, use_container_width=True, key=f"main_map_{st.session_state.map_key}")
    if not map_out:
        return

    clicked = map_out.get('last_object_clicked')
    if clicked and is_new_click(clicked, st.session_state.last_processed_click, time.time()):
        st.session_state.last_processed_click = {'timestamp': time.time(), **clicked}
        visible = (data["shelters"] if st.session_state.show_shelters else []) + \
                  (data["bunkers"] if st.session_state.show_bunkers else [])
        site, _ = find_closest_site(clicked['lat'], clicked['lng'], visible, max_distance=MARKER_HIT_M)
        if site is not None and st.session_state.show_isochrones:
            st.session_state.info = adapter().marker_clicked(site["label"], site["lat"], site["lng"]).message
            # Fresh map component so the handled click is not reported again on later reruns
            remember_view(map_out)
            st.session_state.map_key += 1
            st.rerun()

    point = map_out.get('last_clicked')
    if point and point != st.session_state.position:
        st.session_state.position = {'lat': point['lat'], 'lng': point['lng']}
        st.rerun()


if __name__ == "__main__":
    main()
