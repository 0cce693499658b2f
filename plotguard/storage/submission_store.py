"""Persistent submission collection keyed by id and instance name."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.orm import sessionmaker

from plotguard.core.entities import Submission
from plotguard.storage._sql import chunked, upsert_statement
from plotguard.storage.tables import SubmissionRow
from plotguard.utils.payload import SubmissionPayload


def _submission_to_record(submission: Submission) -> dict:
    payload = submission.raw_payload
    return {
        "id": submission.id,
        "form_id": submission.form_id,
        "external_id": submission.external_id,
        "submitted_at": submission.submitted_at,
        "submitted_by": submission.submitted_by,
        "instance_name": submission.instance_name,
        "raw_payload": payload.to_json() if payload is not None else "",
        "auxiliary_data": (
            json.dumps(submission.auxiliary_data)
            if submission.auxiliary_data
            else None
        ),
    }


def _row_to_submission(row: SubmissionRow) -> Submission:
    auxiliary = json.loads(row.auxiliary_data) if row.auxiliary_data else None
    return Submission(
        id=row.id,
        form_id=row.form_id,
        external_id=row.external_id,
        submitted_at=row.submitted_at,
        raw_payload=SubmissionPayload.from_json(row.raw_payload),
        submitted_by=row.submitted_by,
        instance_name=row.instance_name,
        auxiliary_data=auxiliary,
    )


class SubmissionStore:
    """Submission table access; one transaction per method."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def upsert_many(self, submissions: Sequence[Submission]) -> int:
        """Insert or replace submissions by id in one statement."""
        if not submissions:
            return 0
        records = [_submission_to_record(item) for item in submissions]
        with self._session_factory.begin() as session:
            stmt = upsert_statement(session, SubmissionRow.__table__, ["id"])
            session.execute(stmt, records)
        return len(records)

    def get(self, submission_id: str) -> Submission | None:
        with self._session_factory() as session:
            row = session.get(SubmissionRow, submission_id)
            return _row_to_submission(row) if row is not None else None

    def get_by_form(self, form_id: str) -> list[Submission]:
        """All submissions of a form, oldest first."""
        stmt = (
            select(SubmissionRow)
            .where(SubmissionRow.form_id == form_id)
            .order_by(SubmissionRow.submitted_at, SubmissionRow.id)
        )
        with self._session_factory() as session:
            return [_row_to_submission(row) for row in session.scalars(stmt)]

    def find_by_instance_names(self, instance_names: Sequence[str]) -> list[Submission]:
        """Batch lookup; submissions without an instance name never match."""
        names = [name for name in dict.fromkeys(instance_names) if name]
        if not names:
            return []
        found: list[Submission] = []
        with self._session_factory() as session:
            for chunk in chunked(names):
                stmt = select(SubmissionRow).where(
                    SubmissionRow.instance_name.in_(chunk)
                )
                found.extend(_row_to_submission(row) for row in session.scalars(stmt))
        return found

    def latest_submitted_at(self, form_id: str) -> datetime | None:
        stmt = select(func.max(SubmissionRow.submitted_at)).where(
            SubmissionRow.form_id == form_id
        )
        with self._session_factory() as session:
            return session.scalar(stmt)

    def count_by_form(self, form_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(SubmissionRow)
            .where(SubmissionRow.form_id == form_id)
        )
        with self._session_factory() as session:
            return int(session.scalar(stmt) or 0)

    def search(
        self,
        form_id: str,
        query: str = "",
        limit: int = 10,
        offset: int = 0,
    ) -> list[Submission]:
        """Newest-first page of a form's submissions.

        A non-blank ``query`` keeps rows whose submitter, id or
        ``YYYY-MM-DD HH:MM`` submission time contains it, case-insensitively.
        """
        stmt = select(SubmissionRow).where(SubmissionRow.form_id == form_id)
        needle = query.strip().lower()
        if needle:
            stmt = stmt.where(
                or_(
                    func.lower(func.coalesce(SubmissionRow.submitted_by, ""), type_=String).contains(
                        needle, autoescape=True
                    ),
                    func.lower(SubmissionRow.id, type_=String).contains(needle, autoescape=True),
                    cast(SubmissionRow.submitted_at, String).contains(
                        needle, autoescape=True
                    ),
                )
            )
        stmt = (
            stmt.order_by(SubmissionRow.submitted_at.desc(), SubmissionRow.id)
            .limit(limit)
            .offset(offset)
        )
        with self._session_factory() as session:
            return [_row_to_submission(row) for row in session.scalars(stmt)]
