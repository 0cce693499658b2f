"""SQLAlchemy-backed stores for plots, submissions and sync state."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine

from plotguard.storage.database import create_db_engine, create_session_factory, init_db
from plotguard.storage.plot_store import PlotStore
from plotguard.storage.submission_store import SubmissionStore
from plotguard.storage.sync_state_store import SyncStateStore


@dataclass
class Stores:
    """Store bundle sharing one engine."""

    engine: Engine
    plots: PlotStore
    submissions: SubmissionStore
    sync_state: SyncStateStore


def open_stores(database_url: str) -> Stores:
    """Create the engine, ensure the schema and build all stores.

    Examples
    --------
    >>> stores = open_stores("sqlite://")
    >>> stores.plots.count()
    0
    """
    engine = create_db_engine(database_url)
    init_db(engine)
    session_factory = create_session_factory(engine)
    return Stores(
        engine=engine,
        plots=PlotStore(session_factory),
        submissions=SubmissionStore(session_factory),
        sync_state=SyncStateStore(session_factory),
    )


__all__ = [
    "PlotStore",
    "Stores",
    "SubmissionStore",
    "SyncStateStore",
    "open_stores",
]
