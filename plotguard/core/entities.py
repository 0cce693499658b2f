"""Plot, submission and sync-state records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from shapely.geometry import Polygon

from plotguard.utils.geometry_codec import BoundingBox, bounding_box, serialize_polygon
from plotguard.utils.payload import SubmissionPayload

UNKNOWN_PLOT_NAME = "Unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_plot_id() -> str:
    return str(uuid.uuid4())


class Plot:
    """One surveyed land polygon.

    The bounding box is derived from ``polygon`` and recomputed on every
    assignment. A plot is a draft exactly while ``submission_id`` is ``None``;
    :meth:`mark_matched` is the only way to leave the draft state.

    Parameters
    ----------
    polygon : shapely.geometry.Polygon
        Plot outline with ``x=lon`` and ``y=lat``.
    instance_name : str
        Join key to a submission.
    form_id : str
        Owning form (Kobo asset uid).
    display_name : str
        Human label, ``"Unknown"`` when empty.
    region, sub_region : str
        Partition keys.
    submission_id : str | None
        Matched submission, ``None`` for drafts.
    plot_id : str | None
        Identity; generated when omitted.
    created_at : datetime | None
        Creation time; now (UTC) when omitted.

    Examples
    --------
    >>> from shapely.geometry import box
    >>> plot = Plot(box(38.0, 9.0, 38.1, 9.1), instance_name="uuid:1", form_id="a1")
    >>> plot.is_draft
    True
    >>> plot.bounding_box.max_lat
    9.1
    """

    def __init__(
        self,
        polygon: Polygon,
        instance_name: str,
        form_id: str,
        display_name: str = UNKNOWN_PLOT_NAME,
        region: str = "",
        sub_region: str = "",
        submission_id: str | None = None,
        plot_id: str | None = None,
        created_at: datetime | None = None,
    ) -> None:
        if instance_name is None:
            raise ValueError("instance_name must not be None")
        self._id = plot_id or new_plot_id()
        self.display_name = display_name or UNKNOWN_PLOT_NAME
        self.instance_name = instance_name
        self.form_id = form_id
        self.region = region or ""
        self.sub_region = sub_region or ""
        self.created_at = created_at or utc_now()
        self._submission_id = submission_id
        self.polygon = polygon

    @property
    def id(self) -> str:
        return self._id

    @property
    def polygon(self) -> Polygon:
        return self._polygon

    @polygon.setter
    def polygon(self, value: Polygon) -> None:
        self._bounding_box = bounding_box(value)
        self._polygon = value

    @property
    def bounding_box(self) -> BoundingBox:
        return self._bounding_box

    @property
    def polygon_wkt(self) -> str:
        return serialize_polygon(self._polygon)

    @property
    def submission_id(self) -> str | None:
        return self._submission_id

    @property
    def is_draft(self) -> bool:
        return self._submission_id is None

    def mark_matched(self, submission_id: str) -> None:
        """Link the plot to its confirmed submission.

        Raises
        ------
        ValueError
            Raised when the plot is already linked to a different submission.
        """
        if not submission_id:
            raise ValueError("submission_id must be non-empty")
        if self._submission_id is not None and self._submission_id != submission_id:
            raise ValueError(
                f"plot {self._id} already matched to {self._submission_id}"
            )
        self._submission_id = submission_id

    def to_record(self) -> dict[str, Any]:
        """Flatten to a row dict keyed by table column name."""
        box = self._bounding_box
        return {
            "id": self._id,
            "display_name": self.display_name,
            "instance_name": self.instance_name,
            "polygon_wkt": self.polygon_wkt,
            "min_lat": box.min_lat,
            "max_lat": box.max_lat,
            "min_lon": box.min_lon,
            "max_lon": box.max_lon,
            "is_draft": self.is_draft,
            "form_id": self.form_id,
            "region": self.region,
            "sub_region": self.sub_region,
            "created_at": self.created_at,
            "submission_id": self._submission_id,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Plot):
            return NotImplemented
        return self.to_record() == other.to_record()

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        state = "draft" if self.is_draft else f"submission={self._submission_id}"
        return (
            f"Plot(id={self._id!r}, name={self.display_name!r}, "
            f"region={self.region!r}, {state})"
        )


@dataclass(frozen=True)
class Submission:
    """Remote form response as stored locally."""

    id: str
    form_id: str
    external_id: str
    submitted_at: datetime
    raw_payload: SubmissionPayload | None
    submitted_by: str | None = None
    instance_name: str | None = None
    auxiliary_data: dict[str, Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class FormSyncState:
    """Delta-sync watermark of one form."""

    form_id: str
    last_sync_timestamp: datetime
