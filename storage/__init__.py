"""Datenablage (JSON) und Echtzeit-Kanäle."""

from .events import CHANGES_CHANNEL, IMPORT_CHANNEL, ChannelEvent, EventBus
from .store import (
    CampusData,
    CampusStore,
    CampusStoreError,
    DuplicateScheduleError,
    RecordNotFoundError,
    RoomConflictError,
)

__all__ = [
    "CHANGES_CHANNEL",
    "IMPORT_CHANNEL",
    "ChannelEvent",
    "EventBus",
    "CampusData",
    "CampusStore",
    "CampusStoreError",
    "DuplicateScheduleError",
    "RecordNotFoundError",
    "RoomConflictError",
]
