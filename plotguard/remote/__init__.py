"""Remote survey backend clients."""

from plotguard.remote.kobo_client import (
    KoboClient,
    SubmissionBackend,
    SubmissionPage,
    build_since_query,
)

__all__ = ["KoboClient", "SubmissionBackend", "SubmissionPage", "build_since_query"]
