# ===============================================================
# backend/app/geometry.py
# ===============================================================
"""
Polygon geometry helpers for survey areas.

Survey areas arrive as GeoJSON Polygons (``[[[lng, lat], ...]]``) drawn on
the map. Everything here is a pure function over ``(lng, lat)`` pairs:
ring extraction and validation, bounding boxes, an approximate area in km²
and great-circle distances for reporting.
"""

import math
from typing import Any, List, NamedTuple, Sequence, Tuple

from .errors import DegeneratePolygon, InvalidGeometry

EARTH_RADIUS_M = 6371000  # mean Earth radius (m)

Point = Tuple[float, float]


class BoundingBox(NamedTuple):
    min_lng: float
    max_lng: float
    min_lat: float
    max_lat: float

    @property
    def width(self) -> float:
        return self.max_lng - self.min_lng

    @property
    def height(self) -> float:
        return self.max_lat - self.min_lat


# ===============================================================
# 📐 RING EXTRACTION & VALIDATION
# ===============================================================

def extract_ring(polygon: Any) -> List[Point]:
    """
    Return the outer ring of ``polygon`` as a list of ``(lng, lat)`` tuples.

    Accepts a GeoJSON Polygon (or Feature wrapping one), an object with a
    ``coordinates`` attribute, a list of rings or a bare ring. Extra values
    per position (e.g. altitude) are ignored.
    """
    coords = polygon
    if isinstance(coords, dict):
        if coords.get("type") == "Feature":
            coords = coords.get("geometry") or {}
        coords = coords.get("coordinates")
    elif hasattr(coords, "coordinates"):
        coords = coords.coordinates

    if not coords:
        raise InvalidGeometry("Polygon has no coordinates")

    first = coords[0]
    if isinstance(first, (list, tuple)) and first and isinstance(first[0], (list, tuple)):
        coords = first  # list of rings -> outer ring

    ring = []
    for position in coords:
        try:
            ring.append((float(position[0]), float(position[1])))
        except (TypeError, ValueError, IndexError):
            raise InvalidGeometry(f"Invalid coordinate pair: {position!r}")
    return ring


def open_ring(ring: Sequence[Point]) -> List[Point]:
    """Drop the closing position of a closed ring."""
    ring = list(ring)
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring


def close_ring(ring: Sequence[Point]) -> List[Point]:
    ring = list(ring)
    if ring and ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def distinct_vertices(ring: Sequence[Point]) -> List[Point]:
    """Unique vertices in first-seen order."""
    seen = set()
    unique = []
    for point in ring:
        if point not in seen:
            seen.add(point)
            unique.append(point)
    return unique


def validate_ring(polygon: Any) -> List[Point]:
    """
    Validate a survey polygon and return its closed outer ring.

    Raises ``InvalidGeometry`` for out-of-range coordinates and
    ``DegeneratePolygon`` when fewer than 3 distinct vertices remain.
    """
    ring = extract_ring(polygon)
    for lng, lat in ring:
        if not (math.isfinite(lng) and math.isfinite(lat)):
            raise InvalidGeometry(f"Non-finite coordinate: ({lng}, {lat})")
        if not -180.0 <= lng <= 180.0:
            raise InvalidGeometry(f"Longitude out of range: {lng}")
        if not -90.0 <= lat <= 90.0:
            raise InvalidGeometry(f"Latitude out of range: {lat}")

    if len(distinct_vertices(ring)) < 3:
        raise DegeneratePolygon("Survey polygon needs at least 3 distinct vertices")
    return close_ring(ring)


# ===============================================================
# 📦 BOUNDS & SHAPE
# ===============================================================

def bounding_box(polygon: Any) -> BoundingBox:
    ring = validate_ring(polygon)
    lngs = [lng for lng, _ in ring]
    lats = [lat for _, lat in ring]
    return BoundingBox(min(lngs), max(lngs), min(lats), max(lats))


def centroid(polygon: Any) -> Point:
    """Mean of the distinct vertices (not the area centroid)."""
    vertices = distinct_vertices(open_ring(extract_ring(polygon)))
    n = len(vertices)
    return (sum(p[0] for p in vertices) / n, sum(p[1] for p in vertices) / n)


def planar_area(ring: Sequence[Point]) -> float:
    """Signed shoelace area in square degrees."""
    pts = open_ring(ring)
    total = 0.0
    for i, (x1, y1) in enumerate(pts):
        x2, y2 = pts[(i + 1) % len(pts)]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def is_degenerate(ring: Sequence[Point]) -> bool:
    """True for rings with fewer than 3 distinct vertices or no enclosed area."""
    vertices = distinct_vertices(open_ring(ring))
    if len(vertices) < 3:
        return True
    lngs = [p[0] for p in vertices]
    lats = [p[1] for p in vertices]
    span = (max(lngs) - min(lngs)) ** 2 + (max(lats) - min(lats)) ** 2
    return abs(planar_area(vertices)) <= 1e-12 * span


# ===============================================================
# 🌍 AREA
# ===============================================================

def estimate_area(polygon: Any) -> float:
    """
    Approximate geographic area of ``polygon`` in km².

    Latitude-weighted shoelace summation over the closed ring:
    ``sum((lon2 - lon1) * (2 + sin(lat1) + sin(lat2))) * R² / 2``.
    Good enough for survey-sized polygons. Degenerate rings (fewer than 3
    distinct vertices, collinear vertices) give 0.
    """
    try:
        ring = extract_ring(polygon)
    except InvalidGeometry:
        return 0.0
    if is_degenerate(ring):
        return 0.0

    pts = open_ring(ring)
    total = 0.0
    for i, (lng1, lat1) in enumerate(pts):
        lng2, lat2 = pts[(i + 1) % len(pts)]
        total += math.radians(lng2 - lng1) * (
            2 + math.sin(math.radians(lat1)) + math.sin(math.radians(lat2))
        )

    area_m2 = abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)
    return area_m2 / 1_000_000


def format_area(sq_km: float) -> str:
    """Human-readable area: m², hectares or km² depending on magnitude."""
    if sq_km < 0.0001:
        return f"{sq_km * 1_000_000:.1f} m²"
    if sq_km < 0.01:
        return f"{round(sq_km * 1_000_000)} m²"
    if sq_km < 1:
        return f"{sq_km * 100:.2f} hectares"
    return f"{sq_km:.2f} km²"


# ===============================================================
# 🔢 DISTANCES
# ===============================================================

def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return great-circle distance between two GPS points in meters."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def path_length_m(points: Sequence[Sequence[float]]) -> float:
    """Total length of a ``(lng, lat, ...)`` polyline in meters."""
    total = 0.0
    for (lng1, lat1, *_), (lng2, lat2, *_) in zip(points, points[1:]):
        total += haversine_distance_m(lat1, lng1, lat2, lng2)
    return total
