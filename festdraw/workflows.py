from typing import Iterable, Optional

from .config import ROOT_DIR, Settings
from .db.engine import make_engine
from .db.utils import resolve_sqlite_url
from .models import Base, LotteryAggregate
from .session import DEFAULT_PRIZES, LotteryController, PrizeSeed, build_aggregate
from .storage.local import LocalCache, LocalTier
from .storage.remote import RemoteBackend, RestDocumentBackend, SqlDocumentBackend
from .storage.store import StateStore


def build_remote_backend(settings: Settings, engine=None) -> RemoteBackend:
    """Create the authoritative backend described by ``settings``.

    A REST backend is used when ``settings.remote_url`` is set; otherwise the
    document lives in the SQL database at ``settings.database_url`` (or the
    supplied ``engine``), whose tables are created on demand.

    Parameters
    ----------
    settings : Settings
        Resolved configuration.
    engine : Optional[Engine]
        Pre-built SQLAlchemy engine, mainly for tests with in-memory SQLite.

    Returns
    -------
    RemoteBackend
        Backend ready for reads and writes.
    """
    if settings.remote_url:
        return RestDocumentBackend(
            settings.remote_url,
            auth=settings.remote_auth,
            timeout=settings.http_timeout,
        )

    if engine is None:
        engine = make_engine(resolve_sqlite_url(settings.database_url, ROOT_DIR))
    Base.metadata.create_all(engine)
    return SqlDocumentBackend(engine)


def build_store(
    settings: Optional[Settings] = None,
    *,
    engine=None,
    local: Optional[LocalTier] = None,
) -> StateStore:
    """Assemble a :class:`StateStore` from ``settings`` (default: environment).

    The local tier defaults to a :class:`LocalCache` in ``settings.cache_dir``.
    """
    settings = settings or Settings.from_env()
    remote = build_remote_backend(settings, engine=engine)
    if local is None:
        local = LocalCache(settings.cache_dir)
    return StateStore(
        remote,
        local,
        key=settings.doc_key,
        poll_interval=settings.poll_interval,
    )


def open_controller(
    settings: Optional[Settings] = None,
    *,
    store: Optional[StateStore] = None,
    default_prizes: Iterable[PrizeSeed] = DEFAULT_PRIZES,
    sync: bool = True,
) -> LotteryController:
    """Create a controller and, by default, start listening for remote updates.

    When the local cache is empty but the remote tier holds a valid document,
    that document is written through to the cache first so the controller
    starts from the shared state instead of the defaults.
    """
    store = store or build_store(settings)
    if store.load() is None:
        remote_state = store.load_remote()
        if remote_state is not None:
            store.prime_cache(remote_state)

    controller = LotteryController(store, default_prizes=default_prizes)
    if sync:
        controller.start_sync()
    return controller


def seed_remote(
    store: StateStore,
    seeds: Iterable[PrizeSeed] = DEFAULT_PRIZES,
    *,
    overwrite: bool = False,
) -> LotteryAggregate:
    """Write a fresh aggregate built from ``seeds`` unless one already exists.

    Parameters
    ----------
    store : StateStore
        Store to seed.
    seeds : Iterable[PrizeSeed]
        Prize set to install.
    overwrite : bool, default: False
        Replace an existing valid document as well.

    Returns
    -------
    LotteryAggregate
        The aggregate now held by the remote tier.
    """
    if not overwrite:
        existing = store.load_remote()
        if existing is not None:
            return existing
    aggregate = build_aggregate(seeds)
    store.save(aggregate)
    return aggregate
