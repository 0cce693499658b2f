"""Transform raw Kobo submission JSON into :class:`Submission` records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from plotguard.core.entities import Submission
from plotguard.utils.payload import SubmissionPayload

UUID_FIELD = "_uuid"
ID_FIELD = "_id"
SUBMISSION_TIME_FIELD = "_submission_time"
SUBMITTED_BY_FIELD = "_submitted_by"
INSTANCE_NAME_FIELD = "meta/instanceName"
GEOLOCATION_FIELD = "_geolocation"
TAGS_FIELD = "_tags"


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_submission_time(text: str | None) -> datetime | None:
    """Parse Kobo ``_submission_time``; naive values are taken as UTC.

    Examples
    --------
    >>> parse_submission_time("2024-03-15T07:45:53").isoformat()
    '2024-03-15T07:45:53+00:00'
    """
    if not text or not text.strip():
        return None
    raw = text.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return to_utc(parsed)


def format_watermark(value: datetime) -> str:
    """Format a watermark as naive-UTC ISO text for Kobo queries.

    Examples
    --------
    >>> format_watermark(datetime(2024, 3, 15, 7, 45, 53, tzinfo=timezone.utc))
    '2024-03-15T07:45:53'
    """
    return to_utc(value).replace(tzinfo=None).isoformat()


def _extract_id(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _build_auxiliary_data(payload: SubmissionPayload) -> dict[str, Any] | None:
    auxiliary: dict[str, Any] = {}
    geolocation = payload.get_float_list(GEOLOCATION_FIELD)
    if geolocation:
        auxiliary["geolocation"] = geolocation
    tags = payload.get_string_list(TAGS_FIELD)
    if tags:
        auxiliary["tags"] = tags
    return auxiliary or None


def transform_submission(form_id: str, row: dict[str, Any]) -> Submission | None:
    """Build a submission from one API result row.

    Rows without ``_uuid``, ``_id`` or a parseable ``_submission_time`` are
    rejected with ``None``.
    """
    if not isinstance(row, dict):
        return None
    try:
        payload = SubmissionPayload(row)
    except TypeError:
        return None
    submission_id = payload.get_string_or_none(UUID_FIELD)
    external_id = _extract_id(row.get(ID_FIELD))
    submitted_at = parse_submission_time(payload.get_string_or_none(SUBMISSION_TIME_FIELD))
    if submission_id is None or external_id is None or submitted_at is None:
        return None
    return Submission(
        id=submission_id,
        form_id=form_id,
        external_id=external_id,
        submitted_at=submitted_at,
        raw_payload=payload,
        submitted_by=payload.get_string_or_none(SUBMITTED_BY_FIELD),
        instance_name=payload.get_string_or_none(INSTANCE_NAME_FIELD),
        auxiliary_data=_build_auxiliary_data(payload),
    )
