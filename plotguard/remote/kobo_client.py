"""Async KoboToolbox data API client implementing the paging contract."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from loguru import logger

from plotguard.errors import SyncError

DEFAULT_PAGE_SIZE = 50


@dataclass
class SubmissionPage:
    """One page of raw submission rows.

    Parameters
    ----------
    count : int
        Total rows matching the query on the server.
    next_page_exists : bool
        ``True`` while more pages follow.
    results : list[dict[str, Any]]
        Raw submission JSON objects.
    """

    count: int
    next_page_exists: bool
    results: list[dict[str, Any]] = field(default_factory=list)


class SubmissionBackend(Protocol):
    """Remote paging contract consumed by the sync engine."""

    async def fetch_page(
        self,
        form_id: str,
        query: dict[str, Any] | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        start: int = 0,
    ) -> SubmissionPage: ...


def build_since_query(field_name: str, iso_timestamp: str) -> dict[str, Any]:
    """Mongo-style filter selecting rows strictly after ``iso_timestamp``.

    Examples
    --------
    >>> build_since_query("_submission_time", "2024-03-15T07:45:53")
    {'_submission_time': {'$gt': '2024-03-15T07:45:53'}}
    """
    return {field_name: {"$gt": iso_timestamp}}


def parse_page(payload: Any) -> SubmissionPage:
    """Validate a decoded ``/data/`` response body.

    Raises
    ------
    SyncError
        Raised when the body is not the expected object.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise SyncError("unexpected response body: missing 'results' list")
    rows = [row for row in payload["results"] if isinstance(row, dict)]
    count = payload.get("count")
    return SubmissionPage(
        count=int(count) if isinstance(count, int) else len(rows),
        next_page_exists=payload.get("next") is not None,
        results=rows,
    )


class KoboClient:
    """Fetch submission pages from ``/api/v2/assets/<uid>/data/``.

    Parameters
    ----------
    server_url : str
        Kobo server base URL, e.g. ``https://kf.kobotoolbox.org``.
    username, password : str
        Basic-auth credentials; ignored when ``token`` is set.
    token : str
        API token sent as ``Authorization: Token <token>``.
    timeout : float
        Request timeout in seconds.
    transport : httpx.AsyncBaseTransport | None
        Custom transport, used by tests.
    """

    def __init__(
        self,
        server_url: str,
        username: str = "",
        password: str = "",
        token: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        auth = None
        if token:
            headers["Authorization"] = f"Token {token}"
        elif username:
            auth = httpx.BasicAuth(username, password)
        self._client = httpx.AsyncClient(
            base_url=server_url.rstrip("/"),
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> KoboClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_page(
        self,
        form_id: str,
        query: dict[str, Any] | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        start: int = 0,
    ) -> SubmissionPage:
        """Fetch one page of submissions.

        Raises
        ------
        SyncError
            Raised on transport failure, HTTP error status or a body that is
            not a JSON page object.
        """
        params: dict[str, Any] = {"format": "json", "limit": limit, "start": start}
        if query:
            params["query"] = json.dumps(query, separators=(",", ":"))
        path = f"/api/v2/assets/{form_id}/data/"
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise SyncError(f"request to {path} failed: {exc}", cause=exc) from exc

        if response.status_code >= 400:
            raise SyncError(
                f"Kobo API error status={response.status_code} path={path}: "
                f"{response.text[:300]}"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise SyncError(f"response from {path} is not JSON", cause=exc) from exc

        page = parse_page(body)
        logger.debug(
            f"Fetched page form={form_id} start={start} rows={len(page.results)} "
            f"next={page.next_page_exists}"
        )
        return page
