"""Region + bounding-box pre-filtered polygon overlap checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import geopandas as gpd
import numpy as np
from loguru import logger
from shapely.geometry.base import BaseGeometry

from plotguard.core.entities import Plot
from plotguard.utils.geometry_codec import BoundingBox, bounding_box, parse_polygon


class OverlapCandidateSource(Protocol):
    """Store query answering the region and bounding-box stages."""

    def find_overlap_candidates(
        self,
        region: str,
        box: BoundingBox,
        exclude_id: str | None = None,
    ) -> list[Plot]: ...


@dataclass
class OverlapReport:
    """Result of one overlap check.

    Parameters
    ----------
    overlaps : list[Plot]
        Plots that truly intersect the candidate.
    bbox_candidates : int
        Same-region plots that survived the bounding-box stage.
    """

    overlaps: list[Plot] = field(default_factory=list)
    bbox_candidates: int = 0

    @property
    def has_overlap(self) -> bool:
        return bool(self.overlaps)

    @property
    def overlapping_ids(self) -> list[str]:
        return [plot.id for plot in self.overlaps]


def intersecting_mask(candidate: BaseGeometry, plots: list[Plot]) -> np.ndarray:
    """Precise intersection test of ``candidate`` against each plot.

    Returns
    -------
    numpy.ndarray
        Boolean mask aligned with ``plots``.
    """
    if not plots:
        return np.zeros(0, dtype=np.bool_)
    polygon_series = gpd.GeoSeries([plot.polygon for plot in plots])
    return np.asarray(polygon_series.intersects(candidate).to_numpy(), dtype=np.bool_)


class OverlapChecker:
    """Find existing plots that overlap a new candidate polygon.

    Stage 1 (same region) and stage 2 (inclusive bbox intersection) run as
    one indexed store query; stage 3 runs the exact intersects test only on
    what survives. Plots in other regions are never compared.

    Examples
    --------
    >>> checker = OverlapChecker(stores.plots)
    >>> checker.find_overlaps("POLYGON ((38 9, 38.1 9, 38.1 9.1, 38 9))", region="W-05")
    []
    """

    def __init__(self, plot_store: OverlapCandidateSource) -> None:
        self._plot_store = plot_store

    def check(
        self,
        candidate: BaseGeometry | str,
        region: str,
        exclude_id: str | None = None,
    ) -> OverlapReport:
        """Run all stages and report per-stage counts."""
        candidate_geom = parse_polygon(candidate) if isinstance(candidate, str) else candidate
        box = bounding_box(candidate_geom)
        candidates = self._plot_store.find_overlap_candidates(
            region, box, exclude_id=exclude_id
        )
        candidates = [plot for plot in candidates if plot.id != exclude_id]
        if not candidates:
            return OverlapReport(overlaps=[], bbox_candidates=0)

        mask = intersecting_mask(candidate_geom, candidates)
        overlaps = [plot for plot, hit in zip(candidates, mask) if hit]
        logger.debug(
            f"Overlap check region='{region}': {len(candidates)} bbox candidates, "
            f"{len(overlaps)} overlaps"
        )
        return OverlapReport(overlaps=overlaps, bbox_candidates=len(candidates))

    def find_overlaps(
        self,
        candidate: BaseGeometry | str,
        region: str,
        exclude_id: str | None = None,
    ) -> list[Plot]:
        """Return plots in ``region`` that intersect ``candidate``.

        Parameters
        ----------
        candidate : shapely geometry | str
            Candidate outline, or polygon text accepted by the codec.
        region : str
            Region partition key of the candidate.
        exclude_id : str | None
            Plot being re-validated; never reported.

        Returns
        -------
        list[Plot]
            Truly intersecting plots in store order.

        Raises
        ------
        GeometryError
            Raised when ``candidate`` is text that does not parse.
        """
        return self.check(candidate, region, exclude_id=exclude_id).overlaps
