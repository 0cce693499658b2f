"""Persistent plot collection with batched writes and bbox range queries."""

from __future__ import annotations

from collections.abc import Sequence

import shapely.wkt
from loguru import logger
from shapely.geometry import Polygon
from sqlalchemy import and_, bindparam, func, select, update
from sqlalchemy.orm import sessionmaker

from plotguard.core.entities import Plot
from plotguard.storage._sql import chunked, upsert_statement
from plotguard.storage.tables import PlotRow
from plotguard.utils.geometry_codec import BoundingBox, bounding_box, serialize_polygon


def _row_to_plot(row: PlotRow) -> Plot:
    return Plot(
        polygon=shapely.wkt.loads(row.polygon_wkt),
        instance_name=row.instance_name,
        form_id=row.form_id,
        display_name=row.display_name,
        region=row.region,
        sub_region=row.sub_region,
        submission_id=row.submission_id,
        plot_id=row.id,
        created_at=row.created_at,
    )


class PlotStore:
    """Plot table access; each method is one transaction.

    Batch methods issue a single statement (``executemany`` where rows are
    written) so the number of round trips does not grow with the batch size.

    Parameters
    ----------
    session_factory : sqlalchemy.orm.sessionmaker
        Factory bound to the PlotGuard database.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def insert(self, plot: Plot) -> None:
        """Insert or replace one plot."""
        self.upsert_many([plot])

    def upsert_many(self, plots: Sequence[Plot]) -> int:
        """Insert or update plots by id in one statement.

        Returns
        -------
        int
            Number of rows written.
        """
        if not plots:
            return 0
        records = [plot.to_record() for plot in plots]
        with self._session_factory.begin() as session:
            stmt = upsert_statement(session, PlotRow.__table__, ["id"])
            session.execute(stmt, records)
        return len(records)

    def get(self, plot_id: str) -> Plot | None:
        with self._session_factory() as session:
            row = session.get(PlotRow, plot_id)
            return _row_to_plot(row) if row is not None else None

    def get_by_ids(self, plot_ids: Sequence[str]) -> list[Plot]:
        """Load plots by id, preserving the order of ``plot_ids``."""
        if not plot_ids:
            return []
        unique_ids = list(dict.fromkeys(plot_ids))
        found: dict[str, Plot] = {}
        with self._session_factory() as session:
            for chunk in chunked(unique_ids):
                rows = session.scalars(select(PlotRow).where(PlotRow.id.in_(chunk)))
                found.update({row.id: _row_to_plot(row) for row in rows})
        return [found[plot_id] for plot_id in unique_ids if plot_id in found]

    def get_all(self, region: str | None = None) -> list[Plot]:
        stmt = select(PlotRow).order_by(PlotRow.created_at)
        if region is not None:
            stmt = stmt.where(PlotRow.region == region)
        with self._session_factory() as session:
            return [_row_to_plot(row) for row in session.scalars(stmt)]

    def count(self) -> int:
        with self._session_factory() as session:
            return int(session.scalar(select(func.count()).select_from(PlotRow)) or 0)

    def get_all_drafts(self) -> list[Plot]:
        stmt = (
            select(PlotRow)
            .where(PlotRow.submission_id.is_(None))
            .order_by(PlotRow.created_at)
        )
        with self._session_factory() as session:
            return [_row_to_plot(row) for row in session.scalars(stmt)]

    def find_by_instance_name(self, instance_name: str) -> Plot | None:
        """Return the plot recorded for a form instance, preferring a draft.

        When the instance has no draft left the oldest matched plot is
        returned, so an edited submission finds its own synced plot.
        """
        stmt = (
            select(PlotRow)
            .where(PlotRow.instance_name == instance_name)
            .order_by(PlotRow.submission_id.is_not(None), PlotRow.created_at)
            .limit(1)
        )
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _row_to_plot(row) if row is not None else None

    def update_polygon(self, plot_id: str, polygon: Polygon) -> bool:
        """Replace a plot's polygon and its cached bounding box together."""
        box = bounding_box(polygon)
        stmt = (
            update(PlotRow)
            .where(PlotRow.id == plot_id)
            .values(
                polygon_wkt=serialize_polygon(polygon),
                min_lat=box.min_lat,
                max_lat=box.max_lat,
                min_lon=box.min_lon,
                max_lon=box.max_lon,
            )
        )
        with self._session_factory.begin() as session:
            result = session.execute(stmt)
        return bool(result.rowcount)

    def mark_drafts_matched(self, matches: Sequence[tuple[str, str]]) -> int:
        """Link drafts to submissions in one batched update.

        Rows that are no longer drafts are left untouched, so a plot is never
        re-linked or reverted.

        Parameters
        ----------
        matches : Sequence[tuple[str, str]]
            ``(plot_id, submission_id)`` pairs.

        Returns
        -------
        int
            Number of pairs submitted.
        """
        if not matches:
            return 0
        table = PlotRow.__table__
        stmt = (
            update(table)
            .where(table.c.id == bindparam("b_plot_id"))
            .where(table.c.submission_id.is_(None))
            .values(submission_id=bindparam("b_submission_id"), is_draft=False)
        )
        params = [
            {"b_plot_id": plot_id, "b_submission_id": submission_id}
            for plot_id, submission_id in matches
        ]
        with self._session_factory.begin() as session:
            session.execute(stmt, params)
        return len(params)

    def find_existing_submission_ids(self, submission_ids: Sequence[str]) -> set[str]:
        """Return the subset of ``submission_ids`` that already own a plot."""
        if not submission_ids:
            return set()
        existing: set[str] = set()
        with self._session_factory() as session:
            for chunk in chunked(list(dict.fromkeys(submission_ids))):
                stmt = select(PlotRow.submission_id).where(
                    PlotRow.submission_id.in_(chunk)
                )
                existing.update(value for value in session.scalars(stmt) if value)
        return existing

    def find_overlap_candidates(
        self,
        region: str,
        box: BoundingBox,
        exclude_id: str | None = None,
    ) -> list[Plot]:
        """Same-region plots whose stored bbox intersects ``box``.

        The comparison is inclusive, so touching boxes are kept.
        """
        conditions = [
            PlotRow.region == region,
            PlotRow.min_lat <= box.max_lat,
            PlotRow.max_lat >= box.min_lat,
            PlotRow.min_lon <= box.max_lon,
            PlotRow.max_lon >= box.min_lon,
        ]
        if exclude_id is not None:
            conditions.append(PlotRow.id != exclude_id)
        stmt = select(PlotRow).where(and_(*conditions)).order_by(PlotRow.created_at)
        with self._session_factory() as session:
            plots = [_row_to_plot(row) for row in session.scalars(stmt)]
        logger.debug(
            f"Overlap candidates region='{region}' bbox={box.as_tuple()}: {len(plots)}"
        )
        return plots
