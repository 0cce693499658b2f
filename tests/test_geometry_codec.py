"""Tests for polygon text parsing and bounding boxes."""

import pytest
from shapely.geometry import Polygon

from plotguard.errors import GeometryError
from plotguard.utils.geometry_codec import (
    BoundingBox,
    bounding_box,
    parse_polygon,
    serialize_polygon,
    to_odk_shape,
)


def test_parse_odk_vertices_uses_lon_as_x_and_closes_ring() -> None:
    """ODK ``lat lon`` vertices should map to ``x=lon, y=lat`` in a closed ring."""
    polygon = parse_polygon("9.0 38.0 0 0; 9.001 38.0 0 0; 9.001 38.001 0 0")

    coords = list(polygon.exterior.coords)
    assert coords[0] == (38.0, 9.0)
    assert coords[1] == (38.0, 9.001)
    assert coords[0] == coords[-1]
    assert len(coords) == 4


def test_parse_odk_accepts_already_closed_ring_and_trailing_separator() -> None:
    """A closed input ring and a trailing ``;`` should not add vertices."""
    text = "9.0 38.0 0 0; 9.001 38.0 0 0; 9.001 38.001 0 0; 9.0 38.0 0 0;"

    polygon = parse_polygon(text)

    assert len(polygon.exterior.coords) == 4


def test_parse_odk_ignores_missing_altitude_and_accuracy() -> None:
    polygon = parse_polygon("9.0 38.0; 9.001 38.0; 9.001 38.001")

    assert polygon.area > 0


@pytest.mark.parametrize(
    "text",
    [
        "9.0 38.0 0 0; 9.001 38.0 0 0",
        "9.0 38.0 0 0; 9.001 38.0 0 0; 9.0 38.0 0 0",
        "9.0 38.0 0 0",
    ],
)
def test_parse_rejects_fewer_than_three_vertices(text: str) -> None:
    """Minimum vertex count is checked after the ring is closed."""
    with pytest.raises(GeometryError, match="at least 3 vertices"):
        parse_polygon(text)


@pytest.mark.parametrize("text", ["", "   ", None])
def test_parse_rejects_blank_text(text) -> None:
    with pytest.raises(GeometryError):
        parse_polygon(text)


def test_parse_rejects_non_numeric_coordinate() -> None:
    """Errors should name the offending token."""
    with pytest.raises(GeometryError) as exc_info:
        parse_polygon("9.0 38.0 0 0; north 38.0 0 0; 9.001 38.001 0 0")

    assert "north" in exc_info.value.reason


def test_parse_rejects_non_finite_coordinate() -> None:
    with pytest.raises(GeometryError):
        parse_polygon("nan 38.0 0 0; 9.001 38.0 0 0; 9.001 38.001 0 0")


def test_parse_rejects_vertex_with_single_number() -> None:
    with pytest.raises(GeometryError, match="malformed vertex"):
        parse_polygon("9.0 38.0 0 0; 9.001; 9.001 38.001 0 0")


def test_parse_rejects_collinear_vertices() -> None:
    """Vertices on one line span no area and are degenerate."""
    with pytest.raises(GeometryError, match="degenerate"):
        parse_polygon("0 0 0 0; 1 1 0 0; 2 2 0 0")


def test_parse_accepts_self_intersecting_bowtie() -> None:
    """A bowtie has zero signed area but is still a parseable outline."""
    polygon = parse_polygon("0 0 0 0; 0 1 0 0; 1 0 0 0; 1 1 0 0")

    assert isinstance(polygon, Polygon)
    assert not polygon.is_valid
    assert len(polygon.exterior.coords) == 5


def test_parse_wkt_polygon() -> None:
    """WKT input keeps its own axis order (x=lon, y=lat)."""
    polygon = parse_polygon("POLYGON ((38 9, 38.001 9, 38.001 9.001, 38 9.001, 38 9))")

    assert polygon.bounds == (38.0, 9.0, 38.001, 9.001)


def test_parse_wkt_rejects_malformed_text() -> None:
    with pytest.raises(GeometryError, match="unparseable WKT"):
        parse_polygon("POLYGON ((38 9, 38.001 9")


def test_parse_wkt_rejects_degenerate_polygon() -> None:
    with pytest.raises(GeometryError):
        parse_polygon("POLYGON ((0 0, 1 1, 2 2, 0 0))")


def test_bounding_box_is_exact_over_all_vertices() -> None:
    """Bounding box should be the exact min/max of every vertex."""
    polygon = parse_polygon("-1.5 -70.25 0 0; 2.0 -70.0 0 0; 0.5 -69.5 0 0; -1.0 -69.75 0 0")

    box = bounding_box(polygon)

    assert box == BoundingBox(min_lat=-1.5, max_lat=2.0, min_lon=-70.25, max_lon=-69.5)


def test_bounding_box_rejects_empty_geometry() -> None:
    with pytest.raises(GeometryError):
        bounding_box(Polygon())


def test_bounding_box_intersects_is_inclusive() -> None:
    """Touching edges count as intersecting, separated boxes do not."""
    base = BoundingBox(0.0, 1.0, 0.0, 1.0)

    assert base.intersects(BoundingBox(1.0, 2.0, 0.5, 0.6))
    assert base.intersects(BoundingBox(0.2, 0.3, 0.2, 0.3))
    assert not base.intersects(BoundingBox(1.0001, 2.0, 0.0, 1.0))
    assert not base.intersects(BoundingBox(0.0, 1.0, -2.0, -0.0001))


def test_serialize_and_odk_rendering_keep_vertices() -> None:
    """Serialized WKT and ODK text should both reparse to the same outline."""
    polygon = parse_polygon("9.123456789 38.987654321 0 0; 9.2 38.9 0 0; 9.25 39.1 0 0")

    from_wkt = parse_polygon(serialize_polygon(polygon))
    from_odk = parse_polygon(to_odk_shape(polygon))

    assert from_wkt.equals_exact(polygon, tolerance=1e-12)
    assert from_odk.equals_exact(polygon, tolerance=1e-12)
