"""Validate a new geoshape and persist it as a draft plot."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import anyio.to_thread
from loguru import logger
from shapely.geometry import Polygon

from plotguard.core.entities import UNKNOWN_PLOT_NAME, Plot
from plotguard.core.overlap_checker import OverlapCandidateSource, OverlapChecker
from plotguard.errors import GeometryError
from plotguard.utils.boundary import RegionBoundary
from plotguard.utils.geometry_codec import parse_polygon
from plotguard.utils.shape_validator import ISSUE_MESSAGES, ShapeValidator


class DraftPlotStore(OverlapCandidateSource, Protocol):
    def find_by_instance_name(self, instance_name: str) -> Plot | None: ...

    def insert(self, plot: Plot) -> None: ...

    def update_polygon(self, plot_id: str, polygon: Polygon) -> bool: ...


@dataclass
class ValidationRequest:
    """Inputs handed over by the form-filling host.

    Parameters
    ----------
    shape : str
        Polygon text as captured by the form.
    plot_name : str
        Display name of the new plot.
    region, sub_region : str
        Partition keys.
    instance_name : str
        Form instance name used later to match the draft to its submission.
    form_id : str
        Form (asset uid) the draft belongs to.
    """

    shape: str
    plot_name: str = ""
    region: str = ""
    sub_region: str = ""
    instance_name: str = ""
    form_id: str = ""


@dataclass
class ValidationOutcome:
    """Result returned to the host.

    On success ``value`` echoes the original shape text. On failure
    ``message`` carries the error to show and ``value`` is ``None``.
    """

    ok: bool
    value: str | None = None
    message: str | None = None
    overlapping_ids: list[str] = field(default_factory=list)
    plot_id: str | None = None

    @classmethod
    def failure(cls, message: str, overlapping_ids: list[str] | None = None) -> ValidationOutcome:
        return cls(ok=False, message=message, overlapping_ids=list(overlapping_ids or []))


def overlap_message(new_name: str, existing_name: str) -> str:
    return f"New plot for {new_name} overlaps with plot for {existing_name}"


class PlotValidationService:
    """Shape check, optional boundary check, overlap check, then draft insert.

    A draft is stored only when every check passes. Re-validating the same
    form instance excludes its own plot from the overlap check. A draft is
    replaced in place; a plot already matched to a submission only has its
    polygon updated and keeps its submission link.

    Parameters
    ----------
    plot_store : DraftPlotStore
        Plot persistence.
    shape_validator : ShapeValidator | None
        Single-polygon quality checker; skipped when ``None``.
    boundary : RegionBoundary | None
        Permitted survey area; skipped when ``None``.
    """

    def __init__(
        self,
        plot_store: DraftPlotStore,
        shape_validator: ShapeValidator | None = None,
        boundary: RegionBoundary | None = None,
    ) -> None:
        self._plot_store = plot_store
        self._shape_validator = shape_validator
        self._boundary = boundary
        self._checker = OverlapChecker(plot_store)

    async def validate_and_create_draft(self, request: ValidationRequest) -> ValidationOutcome:
        """Run :meth:`validate_sync` in a worker thread."""
        return await anyio.to_thread.run_sync(self.validate_sync, request)

    def validate_sync(self, request: ValidationRequest) -> ValidationOutcome:
        if request.shape is None or not request.shape.strip():
            return ValidationOutcome.failure("invalid input: missing 'shape' extra")
        if not request.instance_name or not request.instance_name.strip():
            return ValidationOutcome.failure("invalid input: missing instance name")

        try:
            polygon = parse_polygon(request.shape)
        except GeometryError as e:
            return ValidationOutcome.failure(f"invalid input: {e.reason}")

        problem = self._check_shape(polygon)
        if problem is not None:
            return ValidationOutcome.failure(problem)

        plot_name = request.plot_name.strip() or UNKNOWN_PLOT_NAME
        existing = self._plot_store.find_by_instance_name(request.instance_name)
        exclude_id = existing.id if existing is not None else None
        report = self._checker.check(polygon, request.region, exclude_id=exclude_id)
        if report.has_overlap:
            first = report.overlaps[0]
            logger.info(
                f"Plot '{plot_name}' overlaps {len(report.overlaps)} plots in "
                f"region '{request.region}'"
            )
            return ValidationOutcome.failure(
                overlap_message(plot_name, first.display_name),
                overlapping_ids=report.overlapping_ids,
            )

        if existing is not None and not existing.is_draft:
            self._plot_store.update_polygon(existing.id, polygon)
            logger.info(
                f"Updated polygon of matched plot {existing.id} for instance "
                f"{request.instance_name}"
            )
            return ValidationOutcome(ok=True, value=request.shape, plot_id=existing.id)

        draft = Plot(
            polygon=polygon,
            instance_name=request.instance_name,
            form_id=request.form_id,
            display_name=plot_name,
            region=request.region,
            sub_region=request.sub_region,
            plot_id=exclude_id,
            created_at=existing.created_at if existing is not None else None,
        )
        self._plot_store.insert(draft)
        action = "Updated" if existing is not None else "Created"
        logger.info(f"{action} draft plot {draft.id} for instance {request.instance_name}")
        return ValidationOutcome(ok=True, value=request.shape, plot_id=draft.id)

    def _check_shape(self, polygon: Polygon) -> str | None:
        if self._shape_validator is not None:
            issue = self._shape_validator.validate(polygon)
            if issue is not None:
                return f"invalid: {ISSUE_MESSAGES[issue]}"
        if self._boundary is not None:
            index = self._boundary.first_vertex_outside(polygon)
            if index is not None:
                return f"invalid: vertex {index} outside polygon"
        return None
