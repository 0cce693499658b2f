"""GeoPandas and shapefile helpers for exporting and previewing plots."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import geopandas as gpd
import numpy as np
import shapefile
import shapely.wkt

if TYPE_CHECKING:
    from plotguard.core.entities import Plot

WGS84 = "EPSG:4326"
PLOT_COLUMNS = [
    "plot_id",
    "name",
    "instance",
    "form_id",
    "region",
    "sub_region",
    "is_draft",
    "submission",
]
# ESRI WKT for EPSG:4326, written next to shapefiles.
WGS84_PRJ = (
    'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137.0,'
    '298.257223563]],PRIMEM["Greenwich",0.0],UNIT["Degree",0.0174532925199433]]'
)

_DRIVERS = {".geojson": "GeoJSON", ".json": "GeoJSON", ".gpkg": "GPKG"}


def plots_to_gdf(plots: Sequence[Plot]) -> gpd.GeoDataFrame:
    """Convert plots into a WGS84 GeoDataFrame.

    Parameters
    ----------
    plots : Sequence[Plot]
        Plots to convert.

    Returns
    -------
    geopandas.GeoDataFrame
        One row per plot with :data:`PLOT_COLUMNS` and ``geometry``.
    """
    data = {
        "plot_id": [plot.id for plot in plots],
        "name": [plot.display_name for plot in plots],
        "instance": [plot.instance_name for plot in plots],
        "form_id": [plot.form_id for plot in plots],
        "region": [plot.region for plot in plots],
        "sub_region": [plot.sub_region for plot in plots],
        "is_draft": [plot.is_draft for plot in plots],
        "submission": [plot.submission_id or "" for plot in plots],
    }
    geometries = [plot.polygon for plot in plots]
    return gpd.GeoDataFrame(data, columns=PLOT_COLUMNS, geometry=geometries, crs=WGS84)


def _normalize_shp_base_path(path: Path) -> Path:
    if path.suffix.lower() != ".shp":
        return path
    return path.with_suffix("")


def _save_plots_shp(plots: Sequence[Plot], out_path: Path) -> None:
    base_path = _normalize_shp_base_path(out_path)
    base_path.parent.mkdir(parents=True, exist_ok=True)
    with shapefile.Writer(str(base_path), shapeType=shapefile.POLYGON) as shp_writer:
        shp_writer.field("plot_id", "C", size=36)
        shp_writer.field("name", "C", size=120)
        shp_writer.field("instance", "C", size=80)
        shp_writer.field("region", "C", size=80)
        shp_writer.field("sub_region", "C", size=80)
        shp_writer.field("is_draft", "L")
        shp_writer.field("submission", "C", size=80)
        for plot in plots:
            # Shapefile outer rings run clockwise.
            ring = [[float(x), float(y)] for x, y in plot.polygon.exterior.coords]
            if plot.polygon.exterior.is_ccw:
                ring.reverse()
            shp_writer.poly([ring])
            shp_writer.record(
                plot.id,
                plot.display_name,
                plot.instance_name,
                plot.region,
                plot.sub_region,
                plot.is_draft,
                plot.submission_id or "",
            )
    base_path.with_suffix(".prj").write_text(WGS84_PRJ, encoding="utf-8")


def save_plots(plots: Sequence[Plot], out_path: str | Path) -> Path:
    """Write plots to a shapefile, GeoJSON or GeoPackage by suffix.

    Parameters
    ----------
    plots : Sequence[Plot]
        Plots to write.
    out_path : str | Path
        Destination. ``.shp`` is written with pyshp, ``.geojson``/``.json``
        and ``.gpkg`` through geopandas.

    Returns
    -------
    pathlib.Path
        Written path.

    Raises
    ------
    ValueError
        Raised when the suffix is not supported.
    """
    path_obj = Path(out_path)
    suffix = path_obj.suffix.lower()
    if suffix == ".shp":
        _save_plots_shp(plots, path_obj)
        return path_obj
    if suffix not in _DRIVERS:
        raise ValueError(f"Unsupported export format: {path_obj.suffix or '(none)'}")
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    plots_to_gdf(plots).to_file(path_obj, driver=_DRIVERS[suffix])
    return path_obj


def build_overlap_preview(
    current_wkt: str,
    current_name: str,
    overlapping_plots: Sequence[Plot],
) -> gpd.GeoDataFrame:
    """Build the layer shown when a new plot is rejected for overlap.

    The first row is the candidate (``role="current"``), followed by one
    ``role="overlap"`` row per conflicting plot.
    """
    rows = [{"role": "current", "name": current_name, "plot_id": ""}]
    geometries = [shapely.wkt.loads(current_wkt)]
    for plot in overlapping_plots:
        rows.append({"role": "overlap", "name": plot.display_name, "plot_id": plot.id})
        geometries.append(plot.polygon)
    return gpd.GeoDataFrame(rows, geometry=geometries, crs=WGS84)


def preview_bounds(preview_gdf: gpd.GeoDataFrame) -> dict[str, float]:
    """Compute the frame of a preview layer.

    Returns
    -------
    dict[str, float]
        ``min_lat, max_lat, min_lon, max_lon, center_lat, center_lon``.

    Raises
    ------
    ValueError
        Raised when the layer has no geometry.
    """
    if preview_gdf.empty:
        raise ValueError("preview layer is empty")
    min_lon, min_lat, max_lon, max_lat = (float(v) for v in preview_gdf.total_bounds)
    if not np.all(np.isfinite([min_lon, min_lat, max_lon, max_lat])):
        raise ValueError("preview layer has no finite bounds")
    return {
        "min_lat": min_lat,
        "max_lat": max_lat,
        "min_lon": min_lon,
        "max_lon": max_lon,
        "center_lat": (min_lat + max_lat) / 2.0,
        "center_lon": (min_lon + max_lon) / 2.0,
    }
