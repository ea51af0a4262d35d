"""Record store backends and identity providers."""
from rcc.store.base import (
    IdentityProvider,
    NotAuthenticatedError,
    RecordStore,
    StaticIdentity,
    StoreError,
    Subscription,
    create_store,
)
from rcc.store.memory import InMemoryStore

__all__ = [
    "IdentityProvider",
    "InMemoryStore",
    "NotAuthenticatedError",
    "RecordStore",
    "StaticIdentity",
    "StoreError",
    "Subscription",
    "create_store",
]
