from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .utils import resolve_sqlite_url
from ..config import ROOT_DIR, Settings


def default_database_url() -> str:
    return resolve_sqlite_url(Settings.from_env().database_url, ROOT_DIR)


def make_engine(database_url: Optional[str] = None, echo: bool = False):
    url = database_url or default_database_url()
    kwargs = {}
    if url.startswith("sqlite") and ":memory:" in url:
        # A single shared connection so the watcher thread sees the same database.
        kwargs = {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        **kwargs,
    )
    return engine


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Keep objects accessible after commit
        future=True,
    )
