"""Authoritative remote tier and polling based change notification.

Two backends are provided:

* :class:`SqlDocumentBackend` stores the document in the
  ``lottery_documents`` table through SQLAlchemy.
* :class:`RestDocumentBackend` talks to an HTTP JSON document store laid out
  like the Firebase Realtime Database REST API (``GET``/``PUT`` on
  ``{base}/{key}.json``).

Both convert their library errors into :class:`~festdraw.errors.PersistenceError`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Callable, Hashable, Optional
from urllib.parse import urljoin

import requests
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..db.engine import get_sessionmaker
from ..errors import PersistenceError
from ..models.document import LotteryDocument

logger = logging.getLogger(__name__)

DocumentCallback = Callable[[Optional[dict], Optional[Hashable]], None]


class DocumentWatch:
    """Polls the document's revision marker and reports every observed change.

    The marker captured at construction is the baseline, so only changes
    made afterwards are reported. The callback receives the document and the
    marker read together with it. :meth:`poll_once` can be driven manually;
    :meth:`start` runs it on a daemon thread every ``interval`` seconds.
    A callback that raises is logged and polling carries on.
    """

    def __init__(
        self,
        backend: "RemoteBackend",
        key: str,
        callback: DocumentCallback,
        interval: float = 1.0,
    ) -> None:
        self._backend = backend
        self._key = key
        self._callback = callback
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._last_marker: Optional[Hashable] = backend.revision(key)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def poll_once(self) -> bool:
        """Check for a change; invoke the callback and return ``True`` if one was seen."""
        with self._lock:
            if self.stopped:
                return False
            marker, document = self._backend.snapshot(self._key)
            if marker == self._last_marker:
                return False
            self._last_marker = marker
        if self.stopped:
            return False
        try:
            self._callback(document, marker)
        except Exception:
            logger.exception(f"Subscriber of '{self._key}' failed on revision {marker!r}")
        return True

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.poll_once()
            except PersistenceError as exc:
                logger.error(f"Polling '{self._key}' failed: {exc}")

    def start(self) -> "DocumentWatch":
        if self._thread is None and not self.stopped:
            self._thread = threading.Thread(
                target=self._run, name=f"watch-{self._key}", daemon=True
            )
            self._thread.start()
        return self

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._interval + 1.0)


class RemoteBackend:
    """Capability surface of the authoritative tier.

    A revision marker is any hashable value that changes whenever the
    document under a key changes. :meth:`write` returns the marker of the
    document it stored, so writers can recognise their own changes.
    """

    def read(self, key: str) -> Optional[dict]:
        return self.snapshot(key)[1]

    def write(self, key: str, document: dict) -> Hashable:
        raise NotImplementedError

    def snapshot(self, key: str) -> tuple[Optional[Hashable], Optional[dict]]:
        """Return the marker and the document under ``key``, read together."""
        raise NotImplementedError

    def revision(self, key: str) -> Optional[Hashable]:
        return self.snapshot(key)[0]

    def watch(
        self, key: str, callback: DocumentCallback, interval: float = 1.0
    ) -> DocumentWatch:
        return DocumentWatch(self, key, callback, interval)


class SqlDocumentBackend(RemoteBackend):
    """Stores documents as rows of :class:`~festdraw.models.document.LotteryDocument`.

    The row's integer ``revision`` is the marker.
    """

    def __init__(self, engine) -> None:
        self._engine = engine
        self._Session = get_sessionmaker(engine)

    def snapshot(self, key: str) -> tuple[Optional[int], Optional[dict]]:
        try:
            with self._Session() as session:
                document = LotteryDocument.get_by_key(session, key)
                if document is None:
                    return None, None
                return document.revision, dict(document.payload)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read document '{key}': {exc}") from exc

    def write(self, key: str, document: dict) -> int:
        try:
            with self._Session.begin() as session:
                row = LotteryDocument.upsert(session, key, document)
                revision = row.revision
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to write document '{key}': {exc}") from exc
        logger.debug(f"Stored document '{key}' at revision {revision}")
        return revision

    def revision(self, key: str) -> Optional[int]:
        try:
            with self._Session() as session:
                return session.scalar(
                    select(LotteryDocument.revision).where(LotteryDocument.key == key)
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read revision of '{key}': {exc}") from exc


def content_digest(document: Optional[dict]) -> Optional[str]:
    """Return the sha256 of ``document`` in canonical JSON form (``None`` stays ``None``)."""
    if document is None:
        return None
    canonical = json.dumps(document, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class RestDocumentBackend(RemoteBackend):
    """HTTP JSON document store client.

    The store keeps no revision counter, so the marker is the
    :func:`content_digest` of the document. Two writes of identical content
    share a marker.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth: Optional[str] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must not be empty")
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def _request(self, method: str, key: str, *, json_body: Any = None) -> Any:
        url = urljoin(self.base_url + "/", f"{key}.json")
        params = {"auth": self.auth} if self.auth else None
        try:
            r = self.session.request(
                method=method.upper(),
                url=url,
                headers=self.headers,
                params=params,
                json=json_body,
                timeout=self.timeout,
            )
            r.raise_for_status()
            return r.json() if r.content else None
        except (requests.RequestException, ValueError) as exc:
            raise PersistenceError(f"{method.upper()} {key} failed: {exc}") from exc

    def snapshot(self, key: str) -> tuple[Optional[str], Optional[dict]]:
        document = self._request("GET", key)
        return content_digest(document), document

    def write(self, key: str, document: dict) -> Optional[str]:
        self._request("PUT", key, json_body=document)
        logger.debug(f"PUT document '{key}'")
        return content_digest(document)


__all__ = [
    "DocumentWatch",
    "RemoteBackend",
    "RestDocumentBackend",
    "SqlDocumentBackend",
    "content_digest",
]
