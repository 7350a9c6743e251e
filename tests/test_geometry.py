# tests/test_geometry.py
import math

import pytest

from backend.app.errors import DegeneratePolygon, InvalidGeometry
from backend.app.geometry import (
    BoundingBox,
    bounding_box,
    centroid,
    close_ring,
    estimate_area,
    extract_ring,
    format_area,
    haversine_distance_m,
    is_degenerate,
    open_ring,
    path_length_m,
    validate_ring,
)

RING = [[10.0, 50.0], [10.01, 50.0], [10.01, 50.01], [10.0, 50.01], [10.0, 50.0]]


def test_extract_ring_accepts_geojson_feature_and_bare_ring():
    polygon = {"type": "Polygon", "coordinates": [RING]}
    feature = {"type": "Feature", "geometry": polygon, "properties": {}}

    expected = [tuple(p) for p in RING]
    assert extract_ring(polygon) == expected
    assert extract_ring(feature) == expected
    assert extract_ring([RING]) == expected
    assert extract_ring(RING) == expected


def test_extract_ring_ignores_altitude():
    assert extract_ring([[1, 2, 30], [3, 4, 30], [5, 6, 30]]) == [(1.0, 2.0), (3.0, 4.0), (5.0, 6.0)]


@pytest.mark.parametrize("bad", [None, [], {"type": "Polygon"}, [["a", "b"], [1, 2], [3, 4]], [[1], [2], [3]]])
def test_extract_ring_rejects_malformed_input(bad):
    with pytest.raises(InvalidGeometry):
        extract_ring(bad)


def test_validate_ring_closes_an_open_ring():
    ring = validate_ring(RING[:-1])
    assert ring[0] == ring[-1]
    assert len(ring) == 5


def test_validate_ring_rejects_out_of_range_coordinates():
    with pytest.raises(InvalidGeometry):
        validate_ring([[0, 0], [181, 0], [0, 1]])
    with pytest.raises(InvalidGeometry):
        validate_ring([[0, 0], [1, 91], [0, 1]])
    with pytest.raises(InvalidGeometry):
        validate_ring([[0, 0], [math.nan, 0], [0, 1]])


def test_validate_ring_needs_three_distinct_vertices():
    with pytest.raises(DegeneratePolygon):
        validate_ring([[0, 0], [1, 1], [0, 0], [1, 1]])


def test_degenerate_polygon_is_an_invalid_geometry():
    assert issubclass(DegeneratePolygon, InvalidGeometry)
    assert DegeneratePolygon.status_code == 422


def test_open_and_close_ring():
    closed = [(0, 0), (1, 0), (1, 1), (0, 0)]
    assert open_ring(closed) == [(0, 0), (1, 0), (1, 1)]
    assert close_ring(open_ring(closed)) == closed
    assert close_ring(closed) == closed


def test_bounding_box_and_centroid():
    bbox = bounding_box({"type": "Polygon", "coordinates": [RING]})
    assert bbox == BoundingBox(10.0, 10.01, 50.0, 50.01)
    assert bbox.width == pytest.approx(0.01)
    assert bbox.height == pytest.approx(0.01)
    assert centroid(RING) == pytest.approx((10.005, 50.005))


def test_is_degenerate():
    assert is_degenerate([(0, 0), (1, 1), (2, 2), (0, 0)])
    assert is_degenerate([(0, 0), (1, 1)])
    assert not is_degenerate([(0, 0), (1, 0), (1, 1), (0, 0)])


# -------------------------
# Area
# -------------------------
def test_estimate_area_of_small_square_near_equator():
    # 0.01° x 0.01° at the equator is about 1.11 km x 1.11 km
    area = estimate_area([[0, 0], [0.01, 0], [0.01, 0.01], [0, 0.01], [0, 0]])
    assert area == pytest.approx(1.2364, rel=1e-2)


def test_estimate_area_shrinks_with_latitude():
    near_equator = estimate_area([[0, 0], [0.01, 0], [0.01, 0.01], [0, 0.01]])
    at_sixty = estimate_area([[0, 60], [0.01, 60], [0.01, 60.01], [0, 60.01]])
    assert at_sixty == pytest.approx(near_equator * 0.5, rel=1e-2)


def test_estimate_area_is_orientation_independent():
    assert estimate_area(RING) == pytest.approx(estimate_area(list(reversed(RING))))


@pytest.mark.parametrize("shift", [1, 2, 3])
def test_estimate_area_is_invariant_under_rotation(shift):
    pentagon = [(10.0, 50.0), (10.02, 50.0), (10.03, 50.015), (10.01, 50.03), (9.99, 50.015)]
    rotated = pentagon[shift:] + pentagon[:shift]
    assert estimate_area(close_ring(rotated)) == pytest.approx(estimate_area(close_ring(pentagon)), rel=1e-9)


@pytest.mark.parametrize("ring", [
    [[0, 0], [1, 1]],
    [[0, 0], [1, 1], [2, 2], [0, 0]],
    [[5, 5], [5, 6], [5, 7]],
    [],
])
def test_estimate_area_is_zero_for_degenerate_input(ring):
    assert estimate_area(ring) == 0.0


@pytest.mark.parametrize("sq_km, label", [
    (0.00005, "50.0 m²"),
    (0.005, "5000 m²"),
    (0.25, "25.00 hectares"),
    (3.14159, "3.14 km²"),
])
def test_format_area(sq_km, label):
    assert format_area(sq_km) == label


# -------------------------
# Distances
# -------------------------
def test_haversine_one_degree_of_latitude():
    assert haversine_distance_m(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)


def test_path_length_sums_segments():
    points = [(0, 0, 50), (0, 1, 50), (0, 2, 50)]
    assert path_length_m(points) == pytest.approx(2 * haversine_distance_m(0, 0, 1, 0))
    assert path_length_m(points[:1]) == 0.0
