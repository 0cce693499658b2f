"""Single-polygon shape quality checks run before the overlap check."""

from __future__ import annotations

from enum import Enum
from typing import Protocol

import geopandas as gpd
from shapely.geometry import Polygon

WGS84 = "EPSG:4326"


class ShapeIssue(str, Enum):
    """Shape-quality failures."""

    TOO_FEW_VERTICES = "too_few_vertices"
    TOO_SMALL_AREA = "too_small_area"
    SELF_INTERSECTING = "self_intersecting"


ISSUE_MESSAGES = {
    ShapeIssue.TOO_FEW_VERTICES: "Polygon must have at least 3 distinct vertices",
    ShapeIssue.TOO_SMALL_AREA: "Polygon area is too small",
    ShapeIssue.SELF_INTERSECTING: "Polygon edges must not cross each other",
}


class ShapeValidator(Protocol):
    def validate(self, polygon: Polygon) -> ShapeIssue | None: ...


def projected_area_m2(polygon: Polygon) -> float:
    """Area in square metres using the local UTM zone of the polygon."""
    series = gpd.GeoSeries([polygon], crs=WGS84)
    utm_crs = series.estimate_utm_crs()
    return float(series.to_crs(utm_crs).area.iloc[0])


class PolygonShapeValidator:
    """Default validator: vertex count, UTM area, simple ring.

    Parameters
    ----------
    min_vertices : int
        Minimum distinct vertex count.
    min_area_m2 : float
        Minimum area in square metres.

    Examples
    --------
    >>> from shapely.geometry import box
    >>> PolygonShapeValidator().validate(box(38.0, 9.0, 38.001, 9.001)) is None
    True
    """

    def __init__(self, min_vertices: int = 3, min_area_m2: float = 10.0) -> None:
        self.min_vertices = min_vertices
        self.min_area_m2 = min_area_m2

    def validate(self, polygon: Polygon) -> ShapeIssue | None:
        distinct = set(polygon.exterior.coords)
        if len(distinct) < self.min_vertices:
            return ShapeIssue.TOO_FEW_VERTICES
        if not polygon.exterior.is_simple:
            return ShapeIssue.SELF_INTERSECTING
        if projected_area_m2(polygon) < self.min_area_m2:
            return ShapeIssue.TOO_SMALL_AREA
        return None
