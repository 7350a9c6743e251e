# ===============================================================
# backend/app/flight_path.py
# ===============================================================
"""
Flight path generation for survey missions.

Turns a survey polygon + flight pattern + altitude into an ordered list of
waypoints. Spacing is simple planar step arithmetic over the polygon's
bounding box (degrees, not meters), which is fine for the dashboard preview
and the monitoring simulation. Every path starts at the polygon's first
vertex and returns to it.
"""

from enum import Enum
from typing import Any, List, NamedTuple, Sequence, Tuple

from .errors import DegeneratePolygon
from .geometry import BoundingBox, Point, bounding_box, centroid, is_degenerate, validate_ring

# Tunable presentation constants
GRID_RESOLUTION = 10      # grid uses resolution + 1 scan lines
INNER_PASSES = 3          # perimeter rings inside the outer one
SHRINK_FACTOR = 0.2       # perimeter ring k is scaled by 1 - k * SHRINK_FACTOR


class FlightPattern(str, Enum):
    GRID = "grid"
    PERIMETER = "perimeter"
    CROSSHATCH = "crosshatch"


class Waypoint(NamedTuple):
    lng: float
    lat: float
    altitude: float


Line = Tuple[Point, Point]


# ===============================================================
# 🧭 SWEEP HELPERS
# ===============================================================

def _step(lo: float, hi: float, i: int, n: int) -> float:
    # snap the last step to the bound so the sweep covers the full box
    return hi if i == n else lo + (hi - lo) * i / n


def scan_lines(bbox: BoundingBox, count: int) -> List[Line]:
    """
    ``count`` horizontal lines from min_lat to max_lat (lawnmower order).

    Even lines fly west -> east, odd lines east -> west.
    """
    if count < 2:
        raise ValueError("A sweep needs at least 2 lines")
    lines = []
    for i in range(count):
        lat = _step(bbox.min_lat, bbox.max_lat, i, count - 1)
        west, east = (bbox.min_lng, lat), (bbox.max_lng, lat)
        lines.append((west, east) if i % 2 == 0 else (east, west))
    return lines


def vertical_lines(bbox: BoundingBox, count: int, start: Point) -> List[Line]:
    """
    ``count`` north/south lines, boustrophedon, beginning on the bounding-box
    side and edge closest to ``start`` so the join is an edge move.
    """
    if count < 2:
        raise ValueError("A sweep needs at least 2 lines")
    from_east = abs(start[0] - bbox.max_lng) <= abs(start[0] - bbox.min_lng)
    downward = abs(start[1] - bbox.max_lat) <= abs(start[1] - bbox.min_lat)
    lines = []
    for j in range(count):
        k = count - 1 - j if from_east else j
        lng = _step(bbox.min_lng, bbox.max_lng, k, count - 1)
        top, bottom = (lng, bbox.max_lat), (lng, bbox.min_lat)
        lines.append((top, bottom) if (j % 2 == 0) == downward else (bottom, top))
    return lines


def diagonals(bbox: BoundingBox, start: Point) -> List[Point]:
    """Both corner-to-corner diagonals, the first one from the corner nearest ``start``."""
    sw = (bbox.min_lng, bbox.min_lat)
    ne = (bbox.max_lng, bbox.max_lat)
    nw = (bbox.min_lng, bbox.max_lat)
    se = (bbox.max_lng, bbox.min_lat)
    opposite = {sw: ne, ne: sw, nw: se, se: nw}

    def distance_from(origin):
        return lambda p: (p[0] - origin[0]) ** 2 + (p[1] - origin[1]) ** 2

    first = min((sw, ne, nw, se), key=distance_from(start))
    first_end = opposite[first]
    remaining = [c for c in (sw, ne, nw, se) if c not in (first, first_end)]
    second = min(remaining, key=distance_from(first_end))
    return [first, first_end, second, opposite[second]]


def _flatten(lines: Sequence[Line]) -> List[Point]:
    return [point for line in lines for point in line]


# ===============================================================
# ✈️ PATTERNS
# ===============================================================

def _grid(bbox, resolution) -> List[Point]:
    return _flatten(scan_lines(bbox, resolution + 1))


def _crosshatch(bbox, resolution) -> List[Point]:
    count = max(2, resolution // 2)
    points = _flatten(scan_lines(bbox, count))
    points += _flatten(vertical_lines(bbox, count, points[-1]))
    points += diagonals(bbox, points[-1])
    return points


def _perimeter(ring, inner_passes=INNER_PASSES, shrink_factor=SHRINK_FACTOR) -> List[Point]:
    points = list(ring)
    cx, cy = centroid(ring)
    for k in range(1, inner_passes + 1):
        factor = 1 - k * shrink_factor
        if factor <= 0:
            break
        points += [(cx + (lng - cx) * factor, cy + (lat - cy) * factor) for lng, lat in ring]
    return points


# ===============================================================
# 🛰️ PUBLIC API
# ===============================================================

def generate_flight_path(
    polygon: Any,
    pattern: str,
    altitude: float,
    resolution: int = GRID_RESOLUTION,
    inner_passes: int = INNER_PASSES,
    shrink_factor: float = SHRINK_FACTOR,
) -> List[Waypoint]:
    """
    Build the waypoint sequence for ``pattern`` over ``polygon``.

    Raises ``InvalidGeometry`` for malformed coordinates and
    ``DegeneratePolygon`` for rings with fewer than 3 distinct vertices,
    zero bounding-box extent or zero area.
    """
    pattern = FlightPattern(pattern)
    ring = validate_ring(polygon)
    bbox = bounding_box(ring)
    if bbox.width == 0 or bbox.height == 0 or is_degenerate(ring):
        raise DegeneratePolygon("Survey polygon has no area to cover")

    home = Waypoint(ring[0][0], ring[0][1], altitude)
    if pattern is FlightPattern.PERIMETER:
        # the closed outer ring already starts at home
        points = _perimeter(ring, inner_passes=inner_passes, shrink_factor=shrink_factor)
        return [Waypoint(lng, lat, altitude) for lng, lat in points] + [home]

    if pattern is FlightPattern.GRID:
        points = _grid(bbox, resolution)
    else:
        points = _crosshatch(bbox, resolution)
    return [home] + [Waypoint(lng, lat, altitude) for lng, lat in points] + [home]


def path_for_mission(mission: Any, **kwargs) -> List[Waypoint]:
    """Generate the flight path for a mission record (ORM row or read schema)."""
    params = mission.flight_parameters
    if isinstance(params, dict):
        pattern = params.get("flight_pattern", FlightPattern.GRID)
        altitude = params["altitude"]
    else:
        pattern, altitude = params.flight_pattern, params.altitude
    return generate_flight_path(mission.survey_area, pattern, altitude, **kwargs)
