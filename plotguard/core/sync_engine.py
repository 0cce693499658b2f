"""Full/delta submission sync with draft matching and plot extraction."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, TypeVar

import anyio
import anyio.to_thread
from loguru import logger

from plotguard.core.entities import FormSyncState, Plot, Submission
from plotguard.core.plot_extractor import PlotExtractor
from plotguard.core.submission_mapper import (
    SUBMISSION_TIME_FIELD,
    format_watermark,
    transform_submission,
)
from plotguard.remote.kobo_client import (
    DEFAULT_PAGE_SIZE,
    SubmissionBackend,
    build_since_query,
)

T = TypeVar("T")


class SubmissionRepository(Protocol):
    def upsert_many(self, submissions: Sequence[Submission]) -> int: ...

    def get_by_form(self, form_id: str) -> list[Submission]: ...

    def find_by_instance_names(self, instance_names: Sequence[str]) -> list[Submission]: ...

    def latest_submitted_at(self, form_id: str) -> datetime | None: ...


class PlotRepository(Protocol):
    def get_all_drafts(self) -> list[Plot]: ...

    def mark_drafts_matched(self, matches: Sequence[tuple[str, str]]) -> int: ...

    def find_existing_submission_ids(self, submission_ids: Sequence[str]) -> set[str]: ...

    def upsert_many(self, plots: Sequence[Plot]) -> int: ...


class SyncStateRepository(Protocol):
    def get(self, form_id: str) -> FormSyncState | None: ...

    def advance(self, form_id: str, timestamp: datetime) -> FormSyncState: ...


@dataclass
class SyncResult:
    """Outcome of one sync attempt.

    Parameters
    ----------
    ok : bool
        ``False`` when paging or storage failed; pages committed before the
        failure stay committed.
    mode : str
        ``"full"`` or ``"delta"``; ``"unknown"`` when the sync state could
        not be read so no mode was chosen.
    fetched : int
        Submissions stored by this attempt.
    matched_drafts : int
        Drafts linked to a submission.
    extracted_plots : int
        Plots extracted from newly stored submissions.
    watermark : datetime | None
        Watermark after the attempt.
    error : str | None
        Failure description when ``ok`` is ``False``.
    """

    ok: bool
    mode: str
    fetched: int = 0
    matched_drafts: int = 0
    extracted_plots: int = 0
    watermark: datetime | None = None
    error: str | None = None


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class SyncEngine:
    """Drive the per-form sync pipeline.

    Each :meth:`sync` pass is sequential: fetch pages (one batch write per
    page), advance the watermark, match drafts once, extract plots once.
    Passes for the same form are serialized by a per-form lock. Store calls
    run in worker threads.

    Parameters
    ----------
    backend : SubmissionBackend
        Remote paging client.
    submission_store, plot_store, sync_state_store
        Persistence collaborators.
    extractor : PlotExtractor | None
        Plot extractor; default field mapping when omitted.
    page_size : int
        Rows requested per page.
    """

    def __init__(
        self,
        backend: SubmissionBackend,
        submission_store: SubmissionRepository,
        plot_store: PlotRepository,
        sync_state_store: SyncStateRepository,
        extractor: PlotExtractor | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._backend = backend
        self._submissions = submission_store
        self._plots = plot_store
        self._sync_state = sync_state_store
        self._extractor = extractor or PlotExtractor()
        self.page_size = page_size
        self._form_locks: dict[str, anyio.Lock] = {}

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        return await anyio.to_thread.run_sync(functools.partial(func, *args))

    def _lock_for(self, form_id: str) -> anyio.Lock:
        lock = self._form_locks.get(form_id)
        if lock is None:
            lock = anyio.Lock()
            self._form_locks[form_id] = lock
        return lock

    async def sync(self, form_id: str) -> SyncResult:
        """Delta sync when a watermark exists, otherwise a full fetch."""
        async with self._lock_for(form_id):
            try:
                state = await self._call(self._sync_state.get, form_id)
            except Exception as e:
                logger.error(f"Sync of form {form_id} aborted reading state: {e}")
                return SyncResult(ok=False, mode="unknown", error=str(e))
            if state is None:
                logger.info(f"No previous sync for form {form_id}; running full fetch")
                return await self._run(form_id, query=None, mode="full", previous=None)
            query = build_since_query(
                SUBMISSION_TIME_FIELD, format_watermark(state.last_sync_timestamp)
            )
            return await self._run(
                form_id, query=query, mode="delta", previous=state.last_sync_timestamp
            )

    async def fetch_all(self, form_id: str) -> SyncResult:
        """Page through every submission of the form regardless of watermark."""
        async with self._lock_for(form_id):
            try:
                state = await self._call(self._sync_state.get, form_id)
            except Exception as e:
                logger.error(f"Sync of form {form_id} aborted reading state: {e}")
                return SyncResult(ok=False, mode="full", error=str(e))
            previous = state.last_sync_timestamp if state is not None else None
            return await self._run(form_id, query=None, mode="full", previous=previous)

    async def _run(
        self,
        form_id: str,
        query: dict[str, Any] | None,
        mode: str,
        previous: datetime | None,
    ) -> SyncResult:
        start = time.perf_counter()
        fetched = 0
        try:
            fetched = await self._fetch_pages(form_id, query)
            if fetched == 0:
                logger.info(f"Form {form_id} ({mode}): no new submissions")
                return SyncResult(ok=True, mode=mode, watermark=previous)

            watermark = await self._advance_watermark(form_id, previous)
            matched = await self.match_drafts()
            extracted = await self.extract_plots(form_id)
        except Exception as e:
            logger.error(
                f"Sync of form {form_id} ({mode}) failed after {fetched} submissions: {e}"
            )
            return SyncResult(ok=False, mode=mode, fetched=fetched, error=str(e))

        logger.info(
            f"Form {form_id} ({mode}): fetched {fetched}, matched {matched} drafts, "
            f"extracted {extracted} plots in {_elapsed_ms(start)}ms"
        )
        return SyncResult(
            ok=True,
            mode=mode,
            fetched=fetched,
            matched_drafts=matched,
            extracted_plots=extracted,
            watermark=watermark,
        )

    async def _fetch_pages(self, form_id: str, query: dict[str, Any] | None) -> int:
        """Fetch all pages, persisting each page before requesting the next."""
        total = 0
        offset = 0
        while True:
            page = await self._backend.fetch_page(
                form_id, query=query, limit=self.page_size, start=offset
            )
            submissions = [
                submission
                for submission in (transform_submission(form_id, row) for row in page.results)
                if submission is not None
            ]
            skipped = len(page.results) - len(submissions)
            if skipped:
                logger.warning(
                    f"Form {form_id}: skipped {skipped} rows without _uuid/_id/_submission_time"
                )
            if submissions:
                await self._call(self._submissions.upsert_many, submissions)
                total += len(submissions)
            offset += self.page_size
            if not page.next_page_exists:
                return total
            if not page.results:
                logger.warning(
                    f"Form {form_id}: empty page at offset {offset - self.page_size} "
                    "still reports a next page; stopping"
                )
                return total

    async def _advance_watermark(
        self, form_id: str, previous: datetime | None
    ) -> datetime | None:
        latest = await self._call(self._submissions.latest_submitted_at, form_id)
        if latest is None:
            return previous
        state = await self._call(self._sync_state.advance, form_id, latest)
        return state.last_sync_timestamp

    async def match_drafts(self) -> int:
        """Link drafts to synced submissions by instance name.

        One draft query, one batched submission lookup and one batched update,
        whatever the number of drafts.

        Returns
        -------
        int
            Number of drafts matched.
        """
        start = time.perf_counter()
        drafts = await self._call(self._plots.get_all_drafts)
        if not drafts:
            logger.debug("match_drafts: no drafts to match")
            return 0

        instance_names = sorted({draft.instance_name for draft in drafts})
        submissions = await self._call(self._submissions.find_by_instance_names, instance_names)
        submission_by_name = {
            submission.instance_name: submission
            for submission in submissions
            if submission.instance_name
        }
        matches = [
            (draft.id, submission_by_name[draft.instance_name].id)
            for draft in drafts
            if draft.instance_name in submission_by_name
        ]
        if matches:
            await self._call(self._plots.mark_drafts_matched, matches)
        logger.debug(
            f"match_drafts: processed {len(drafts)} drafts, matched {len(matches)} "
            f"in {_elapsed_ms(start)}ms"
        )
        return len(matches)

    async def extract_plots(self, form_id: str) -> int:
        """Extract plots for submissions of ``form_id`` that have none yet.

        Returns
        -------
        int
            Number of plots written.
        """
        start = time.perf_counter()
        submissions = await self._call(self._submissions.get_by_form, form_id)
        if not submissions:
            logger.debug(f"extract_plots: no submissions for {form_id}")
            return 0

        existing_ids = await self._call(
            self._plots.find_existing_submission_ids,
            [submission.id for submission in submissions],
        )
        pending = [s for s in submissions if s.id not in existing_ids]
        if not pending:
            logger.debug(
                f"extract_plots: all {len(submissions)} submissions already have plots "
                f"({_elapsed_ms(start)}ms)"
            )
            return 0

        plots = await self._call(self._extract_all, pending)
        if plots:
            await self._call(self._plots.upsert_many, plots)
        logger.debug(
            f"extract_plots: processed {len(pending)} submissions, extracted "
            f"{len(plots)} plots in {_elapsed_ms(start)}ms "
            f"(skipped {len(existing_ids)} existing)"
        )
        return len(plots)

    def _extract_all(self, submissions: list[Submission]) -> list[Plot]:
        plots = []
        for submission in submissions:
            plot = self._extractor.extract(submission)
            if plot is None:
                logger.debug(f"extract_plots: no plot in submission {submission.id}")
                continue
            plots.append(plot)
        return plots
