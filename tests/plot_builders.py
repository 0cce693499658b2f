"""Builders shared by the test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from shapely.geometry import Polygon, box

from plotguard.core.entities import Plot, Submission
from plotguard.utils.payload import SubmissionPayload

BASE_TIME = datetime(2024, 3, 15, 7, 0, 0, tzinfo=timezone.utc)


def square(lon: float, lat: float, size: float = 0.001) -> Polygon:
    """Axis-aligned square with its lower-left corner at ``(lon, lat)``."""
    return box(lon, lat, lon + size, lat + size)


def odk_square(lon: float, lat: float, size: float = 0.001) -> str:
    """Same square as :func:`square` in ODK ``lat lon alt acc`` form."""
    corners = [
        (lat, lon),
        (lat, lon + size),
        (lat + size, lon + size),
        (lat + size, lon),
    ]
    return "; ".join(f"{la!r} {lo!r} 0 0" for la, lo in corners)


def make_plot(
    lon: float = 38.0,
    lat: float = 9.0,
    size: float = 0.001,
    region: str = "Adama",
    instance_name: str = "uuid:draft",
    submission_id: str | None = None,
    display_name: str = "Abebe Kebede",
    created_offset_s: int = 0,
) -> Plot:
    return Plot(
        polygon=square(lon, lat, size),
        instance_name=instance_name,
        form_id="aForm1",
        display_name=display_name,
        region=region,
        sub_region="Kebele 01",
        submission_id=submission_id,
        created_at=BASE_TIME + timedelta(seconds=created_offset_s),
    )


def kobo_row(
    index: int,
    shape: str | None = None,
    instance_name: str | None = None,
    submitted_at: datetime | None = None,
    extra: dict | None = None,
) -> dict:
    """Raw ``/data/`` result row as returned by Kobo."""
    when = submitted_at or BASE_TIME + timedelta(minutes=index)
    row = {
        "_id": 1000 + index,
        "_uuid": f"sub-{index:04d}",
        "_submission_time": when.replace(tzinfo=None).isoformat(),
        "_submitted_by": "enumerator1",
        "_geolocation": [9.0, 38.0],
        "_tags": [],
        "First_Name": "Abebe",
        "Father_s_Name": "Kebede",
        "woreda": "Adama",
        "kebele": "Kebele 01",
    }
    if instance_name is not None:
        row["meta/instanceName"] = instance_name
    if shape is not None:
        row["Open_Area_GeoMapping"] = shape
    if extra:
        row.update(extra)
    return row


def make_submission(
    submission_id: str = "sub-0001",
    payload: dict | None = None,
    instance_name: str | None = "uuid:inst-1",
    submitted_at: datetime = BASE_TIME,
    form_id: str = "aForm1",
    submitted_by: str | None = "enumerator1",
) -> Submission:
    return Submission(
        id=submission_id,
        form_id=form_id,
        external_id="1001",
        submitted_at=submitted_at,
        raw_payload=SubmissionPayload(payload or {}),
        submitted_by=submitted_by,
        instance_name=instance_name,
    )
