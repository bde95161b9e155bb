"""Persistence strategies behind one unit-of-work interface."""

from src.modules.store.base import DataStore, StoreSession
from src.modules.store.demo_store import DemoDataStore
from src.modules.store.provider import StoreProvider
from src.modules.store.sql_store import SqlDataStore

__all__ = [
    "DataStore",
    "StoreSession",
    "DemoDataStore",
    "SqlDataStore",
    "StoreProvider",
]
