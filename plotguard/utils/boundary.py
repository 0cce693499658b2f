"""Region boundary loading and vertex containment checks."""

from __future__ import annotations

from pathlib import Path

import geopandas as gpd
from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry

WGS84 = "EPSG:4326"


def _validate_boundary(boundary_gdf: gpd.GeoDataFrame) -> None:
    """Validate boundary data holds exactly one polygon-like geometry.

    Raises
    ------
    ValueError
        Raised when boundary is empty, multi-row, or non-polygon.
    """
    if len(boundary_gdf) != 1:
        raise ValueError(
            f"Boundary must contain exactly one polygon, got {len(boundary_gdf)}"
        )
    geom = boundary_gdf.geometry.iloc[0]
    if geom is None or geom.is_empty:
        raise ValueError("boundary contains empty geometry")
    if geom.geom_type not in {"Polygon", "MultiPolygon"}:
        raise ValueError(f"Boundary geometry must be polygon-like, got {geom.geom_type}")


class RegionBoundary:
    """Permitted survey area; plot vertices must fall inside it.

    Parameters
    ----------
    geometry : shapely geometry
        Polygon or MultiPolygon in WGS84 ``(lon, lat)``.
    """

    def __init__(self, geometry: BaseGeometry) -> None:
        self.geometry = geometry

    @classmethod
    def from_file(cls, path: str | Path) -> RegionBoundary:
        """Load a one-feature GeoJSON/shapefile boundary, reprojected to WGS84."""
        boundary_gdf = gpd.read_file(Path(path))
        _validate_boundary(boundary_gdf)
        if boundary_gdf.crs is not None and boundary_gdf.crs != WGS84:
            boundary_gdf = boundary_gdf.to_crs(WGS84)
        return cls(boundary_gdf.geometry.iloc[0])

    def first_vertex_outside(self, polygon: Polygon) -> int | None:
        """Return the 1-based index of the first uncovered vertex, else ``None``."""
        coords = list(polygon.exterior.coords)[:-1]
        for index, (lon, lat) in enumerate(coords, start=1):
            if not self.geometry.covers(Point(lon, lat)):
                return index
        return None
