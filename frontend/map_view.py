# frontend/map_view.py
# Map widget helpers for the dashboard: folium drawing map in, pydeck layers out.
# Nothing here touches streamlit so the data contract can be tested directly.
from typing import Any, Dict, List, Optional, Sequence

import folium
import pydeck as pdk
from folium.plugins import Draw
from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from backend.app.geometry import bounding_box, centroid, validate_ring

DEFAULT_CENTER = (20.5937, 78.9629)  # India center
GEOCODER_AGENT = "drone_survey_planner"

AREA_COLOR = [0, 100, 255]
PLANNED_COLOR = [255, 150, 0]
TRAIL_COLOR = [0, 200, 100]
DRONE_COLOR = [255, 50, 50]


# -------------------------------
# 🗺️ Folium: polygon drawing + location picking
# -------------------------------
def create_draw_map(center=None, zoom: int = 5, survey_area=None, markers: Sequence[Dict[str, Any]] = ()):
    """Folium map with polygon/rectangle Draw controls, the current area and drone markers."""
    if survey_area and center is None:
        lng, lat = centroid(survey_area)
        center, zoom = (lat, lng), 15
    lat, lng = center or DEFAULT_CENTER
    m = folium.Map(location=[lat, lng], zoom_start=zoom)

    Draw(
        draw_options={
            "polyline": False,
            "rectangle": True,
            "polygon": True,
            "circle": False,
            "marker": False,
            "circlemarker": False,
        },
        edit_options={"edit": False},
    ).add_to(m)

    if survey_area:
        folium.Polygon(
            locations=[[p_lat, p_lng] for p_lng, p_lat in validate_ring(survey_area)],
            color="blue",
            fill=True,
            fill_opacity=0.2,
        ).add_to(m)

    for marker in markers:
        if marker.get("latitude") is None or marker.get("longitude") is None:
            continue
        folium.Marker(
            [marker["latitude"], marker["longitude"]],
            popup=marker.get("name", ""),
            icon=folium.Icon(color="blue", icon="info-sign"),
        ).add_to(m)
    return m


def drawn_polygon(map_state: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    ``{"polygon": GeoJSON Polygon}`` from a finished Draw in ``st_folium``
    output, or ``None`` while nothing is drawn. Invalid rings raise
    ``InvalidGeometry``.
    """
    if not map_state:
        return None
    drawing = map_state.get("last_active_drawing")
    if not drawing:
        drawings = map_state.get("all_drawings") or []
        drawing = drawings[-1] if drawings else None
    if not drawing:
        return None

    geometry = drawing.get("geometry", drawing)
    if geometry.get("type") != "Polygon":
        return None
    ring = validate_ring(geometry)
    return {"polygon": {"type": "Polygon", "coordinates": [[[lng, lat] for lng, lat in ring]]}}


def coordinate_label(lat: float, lng: float) -> str:
    return f"{lat:.5f}, {lng:.5f}"


def reverse_geocode(lat: float, lng: float, geocoder=None) -> str:
    """Address for a point, or its coordinate label when the lookup fails."""
    geocoder = geocoder or Nominatim(user_agent=GEOCODER_AGENT, timeout=5)
    try:
        location = geocoder.reverse((lat, lng), exactly_one=True)
    except (GeopyError, ValueError):
        return coordinate_label(lat, lng)
    if location is None or not getattr(location, "address", None):
        return coordinate_label(lat, lng)
    return location.address


def clicked_location(map_state: Optional[Dict[str, Any]], geocoder=None) -> Optional[Dict[str, Any]]:
    """``{lng, lat, location_name}`` for the last map click, or ``None``."""
    if not map_state or not map_state.get("last_clicked"):
        return None
    lat = float(map_state["last_clicked"]["lat"])
    lng = float(map_state["last_clicked"]["lng"])
    return {"lng": lng, "lat": lat, "location_name": reverse_geocode(lat, lng, geocoder)}


# -------------------------------
# 🌍 Pydeck: planned path, trail and drone marker
# -------------------------------
def _path(points: Sequence[Dict[str, float]]) -> List[List[float]]:
    return [[p["lng"], p["lat"], p.get("altitude", 0)] for p in points]


def polygon_layer(survey_area) -> pdk.Layer:
    ring = validate_ring(survey_area)
    return pdk.Layer(
        "PolygonLayer",
        data=[{"polygon": [[lng, lat] for lng, lat in ring]}],
        get_polygon="polygon",
        get_fill_color=AREA_COLOR + [40],
        get_line_color=AREA_COLOR,
        line_width_min_pixels=2,
        stroked=True,
        filled=True,
    )


def path_layer(points: Sequence[Dict[str, float]], color=PLANNED_COLOR, width: int = 3) -> pdk.Layer:
    return pdk.Layer(
        "PathLayer",
        data=[{"path": _path(points)}],
        get_path="path",
        get_color=color,
        width_min_pixels=width,
        get_width=5,
        opacity=0.7,
    )


def marker_layer(position: Dict[str, float]) -> pdk.Layer:
    return pdk.Layer(
        "ScatterplotLayer",
        data=[{"lon": position["lng"], "lat": position["lat"], "alt": position.get("altitude", 0)}],
        get_position="[lon, lat]",
        get_fill_color=DRONE_COLOR,
        get_radius=12,
        radius_min_pixels=6,
        pickable=True,
    )


def view_state_for(survey_area, zoom: int = 16, pitch: int = 45) -> pdk.ViewState:
    bbox = bounding_box(survey_area)
    return pdk.ViewState(
        latitude=(bbox.min_lat + bbox.max_lat) / 2,
        longitude=(bbox.min_lng + bbox.max_lng) / 2,
        zoom=zoom,
        pitch=pitch,
        bearing=0,
    )


def map_layers(payload: Dict[str, Any]) -> List[pdk.Layer]:
    """Layers for a monitoring payload, drawn bottom to top."""
    layers = []
    if payload.get("survey_area"):
        layers.append(polygon_layer(payload["survey_area"]))
    if payload.get("flight_path"):
        layers.append(path_layer(payload["flight_path"], PLANNED_COLOR, width=2))
    if len(payload.get("trail") or []) > 1:
        layers.append(path_layer(payload["trail"], TRAIL_COLOR, width=4))
    if payload.get("drone_position"):
        layers.append(marker_layer(payload["drone_position"]))
    return layers


def monitoring_deck(payload: Dict[str, Any]) -> Optional[pdk.Deck]:
    if not payload.get("survey_area"):
        return None
    return pdk.Deck(
        layers=map_layers(payload),
        initial_view_state=view_state_for(payload["survey_area"]),
        tooltip={"text": "Altitude: {alt} m"},
    )


def preview_deck(survey_area, waypoints: Sequence[Dict[str, float]]) -> pdk.Deck:
    """Planner preview: polygon plus the generated flight path."""
    return monitoring_deck({"survey_area": survey_area, "flight_path": list(waypoints)})
