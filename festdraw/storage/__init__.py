"""Persistence tiers, schema validation and the synchronising store."""

from .channel import SnapshotChannel, Subscription
from .local import LocalCache, LocalTier, MemoryCache
from .remote import DocumentWatch, RemoteBackend, RestDocumentBackend, SqlDocumentBackend
from .schema import Accepted, Rejected, parse_aggregate, parse_aggregate_text
from .store import StateStore

__all__ = [
    "Accepted",
    "DocumentWatch",
    "LocalCache",
    "LocalTier",
    "MemoryCache",
    "Rejected",
    "RemoteBackend",
    "RestDocumentBackend",
    "SnapshotChannel",
    "SqlDocumentBackend",
    "StateStore",
    "Subscription",
    "parse_aggregate",
    "parse_aggregate_text",
]
