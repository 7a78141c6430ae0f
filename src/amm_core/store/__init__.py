"""Reserve persistence — in-memory and SQL-backed stores."""

from amm_core.store.base import ReserveStore, StoredMarket
from amm_core.store.memory import InMemoryReserveStore
from amm_core.store.sql import SqlReserveStore

__all__ = ["InMemoryReserveStore", "ReserveStore", "SqlReserveStore", "StoredMarket"]
