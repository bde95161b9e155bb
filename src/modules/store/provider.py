"""
Store selection.

`StoreProvider.store_for(user_id)` is the only place that knows the demo
account is special: the demo user gets the in-memory store, everyone else
the SQL store. Without a persistent store (unit tests, local demo mode)
every user is served from memory.
"""

from __future__ import annotations

from typing import AsyncContextManager, Optional

from src.modules.store.base import DataStore, StoreSession
from src.modules.store.demo_store import DemoDataStore


class StoreProvider:
    def __init__(
        self,
        demo_store: DemoDataStore,
        persistent_store: Optional[DataStore] = None,
        demo_user_id: str = "demo_user",
    ) -> None:
        self.demo_store = demo_store
        self.persistent_store = persistent_store
        self.demo_user_id = demo_user_id

    @classmethod
    def in_memory(cls, demo_user_id: str = "demo_user") -> StoreProvider:
        return cls(DemoDataStore(seeded_users=[demo_user_id]), None, demo_user_id)

    def is_demo(self, user_id: Optional[str]) -> bool:
        return user_id == self.demo_user_id

    def store_for(self, user_id: Optional[str]) -> DataStore:
        if self.persistent_store is None or self.is_demo(user_id):
            return self.demo_store
        return self.persistent_store

    def unit_of_work(self, user_id: Optional[str]) -> AsyncContextManager[StoreSession]:
        return self.store_for(user_id).unit_of_work(user_id)
