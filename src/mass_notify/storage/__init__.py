"""Endpoint, stats and schedule stores."""

from mass_notify.storage.memory import InMemoryEndpointStore, InMemoryScheduleStore, InMemoryStatsStore
from mass_notify.storage.sql import SQLEndpointStore, SQLScheduleStore, SQLStatsStore, create_database

__all__ = [
    "InMemoryEndpointStore",
    "InMemoryScheduleStore",
    "InMemoryStatsStore",
    "SQLEndpointStore",
    "SQLScheduleStore",
    "SQLStatsStore",
    "create_database",
]
