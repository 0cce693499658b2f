"""Polygon text codec for ODK geoshape strings and WKT."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import shapely.wkt
from shapely.errors import ShapelyError
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from plotguard.errors import GeometryError

MIN_RING_COORDS = 4
WKT_PREFIX = "POLYGON"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box in geographic degrees.

    Parameters
    ----------
    min_lat, max_lat : float
        Latitude extent.
    min_lon, max_lon : float
        Longitude extent.

    Examples
    --------
    >>> a = BoundingBox(0.0, 1.0, 0.0, 1.0)
    >>> a.intersects(BoundingBox(1.0, 2.0, 1.0, 2.0))
    True
    """

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def intersects(self, other: BoundingBox) -> bool:
        """Return ``True`` when both boxes overlap or touch."""
        return (
            self.min_lat <= other.max_lat
            and self.max_lat >= other.min_lat
            and self.min_lon <= other.max_lon
            and self.max_lon >= other.min_lon
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        """Return ``(min_lat, max_lat, min_lon, max_lon)``."""
        return (self.min_lat, self.max_lat, self.min_lon, self.max_lon)


def _parse_coordinate(token: str, axis: str, vertex: str) -> float:
    try:
        value = float(token)
    except ValueError as exc:
        raise GeometryError(f"invalid {axis} '{token}' in vertex '{vertex}'") from exc
    if not math.isfinite(value):
        raise GeometryError(f"invalid {axis} '{token}' in vertex '{vertex}'")
    return value


def _parse_odk_vertices(text: str) -> list[tuple[float, float]]:
    """Parse ``"lat lon alt acc; ..."`` into ``(lon, lat)`` pairs.

    Parameters
    ----------
    text : str
        ODK geoshape/geotrace value. Altitude and accuracy are optional and
        ignored.

    Returns
    -------
    list[tuple[float, float]]
        Vertices in ``(x=lon, y=lat)`` order, not yet closed.
    """
    coords: list[tuple[float, float]] = []
    for segment in text.split(";"):
        vertex = segment.strip()
        if not vertex:
            continue
        parts = vertex.split()
        if len(parts) < 2:
            raise GeometryError(f"malformed vertex '{vertex}'")
        lat = _parse_coordinate(parts[0], "lat", vertex)
        lon = _parse_coordinate(parts[1], "lon", vertex)
        coords.append((lon, lat))
    return coords


def _close_ring(coords: list[tuple[float, float]]) -> list[tuple[float, float]]:
    """Append the first vertex when the path is not already closed."""
    if coords and coords[0] != coords[-1]:
        return coords + [coords[0]]
    return coords


def _check_ring(polygon: Polygon) -> Polygon:
    if polygon.is_empty:
        raise GeometryError("polygon is empty")
    ring_size = len(polygon.exterior.coords)
    if ring_size < MIN_RING_COORDS:
        raise GeometryError(
            f"polygon needs at least {MIN_RING_COORDS - 1} vertices, got {max(ring_size - 1, 0)}"
        )
    # Collinear or repeated vertices span no area, even as a hull.
    if polygon.convex_hull.area <= 0.0:
        raise GeometryError("polygon is degenerate (zero area)")
    return polygon


def _parse_wkt(text: str) -> Polygon:
    try:
        geometry = shapely.wkt.loads(text)
    except (ShapelyError, ValueError) as exc:
        raise GeometryError(f"unparseable WKT: {exc}") from exc
    if geometry.geom_type != "Polygon":
        raise GeometryError(f"expected Polygon, got {geometry.geom_type}")
    return geometry


def parse_polygon(text: str | None) -> Polygon:
    """Parse polygon text in ODK vertex-list or WKT form.

    The ODK form describes an open path; the ring is closed here by repeating
    the first vertex when needed, and the minimum vertex count is checked
    after closure.

    Parameters
    ----------
    text : str | None
        ``"lat lon alt acc;..."`` or ``"POLYGON ((lon lat, ...))"``.

    Returns
    -------
    shapely.geometry.Polygon
        Polygon with ``x=lon`` and ``y=lat``.

    Raises
    ------
    GeometryError
        Raised for blank, malformed, non-numeric, too-small or zero-area input.

    Examples
    --------
    >>> poly = parse_polygon("9.0 38.0 0 0; 9.001 38.0 0 0; 9.001 38.001 0 0")
    >>> len(poly.exterior.coords)
    4
    """
    if text is None or not str(text).strip():
        raise GeometryError("polygon text is empty")
    stripped = str(text).strip()
    if stripped.upper().startswith(WKT_PREFIX):
        return _check_ring(_parse_wkt(stripped))

    coords = _close_ring(_parse_odk_vertices(stripped))
    if len(coords) < MIN_RING_COORDS:
        raise GeometryError(
            f"polygon needs at least {MIN_RING_COORDS - 1} vertices, got {max(len(coords) - 1, 0)}"
        )
    return _check_ring(Polygon(coords))


def bounding_box(geometry: BaseGeometry) -> BoundingBox:
    """Compute the exact bounding box over all exterior vertices.

    Parameters
    ----------
    geometry : shapely.geometry.base.BaseGeometry
        Polygon in ``(lon, lat)`` axis order.

    Returns
    -------
    BoundingBox
        Min/max latitude and longitude.
    """
    if geometry.is_empty:
        raise GeometryError("cannot compute bounding box of empty geometry")
    if not isinstance(geometry, Polygon):
        min_lon, min_lat, max_lon, max_lat = geometry.bounds
        return BoundingBox(min_lat, max_lat, min_lon, max_lon)
    coord_array = np.asarray(geometry.exterior.coords, dtype=np.float64)
    lon_array = coord_array[:, 0]
    lat_array = coord_array[:, 1]
    return BoundingBox(
        min_lat=float(lat_array.min()),
        max_lat=float(lat_array.max()),
        min_lon=float(lon_array.min()),
        max_lon=float(lon_array.max()),
    )


def serialize_polygon(geometry: BaseGeometry) -> str:
    """Serialize geometry to full-precision WKT."""
    return shapely.wkt.dumps(geometry, trim=True)


def to_odk_shape(polygon: Polygon) -> str:
    """Render a polygon as an ODK geoshape vertex list.

    Examples
    --------
    >>> to_odk_shape(parse_polygon("POLYGON ((38 9, 39 9, 39 10, 38 9))"))
    '9.0 38.0 0 0; 9.0 39.0 0 0; 10.0 39.0 0 0; 9.0 38.0 0 0'
    """
    return "; ".join(
        f"{float(lat)!r} {float(lon)!r} 0 0" for lon, lat in polygon.exterior.coords
    )
