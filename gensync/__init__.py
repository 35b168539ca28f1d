"""GenSync: set reconciliation between peers with pluggable sync methods."""

from .communicants import Communicant, SocketCommunicant
from .data import DataObject
from .exceptions import (
    CommunicantError,
    ConstructionError,
    GenSyncError,
    ProtocolMismatch,
    SizeExceeded,
    SyncFailure,
    UnimplementedOperation,
)
from .gen_sync import GenSync, SyncResult, read_data_file
from .methods import FullSync, SyncMethod, create_method, register_method
from .stats import StatID, SyncStats, TimerError

__version__ = "0.1.0"

__all__ = [
    "Communicant",
    "CommunicantError",
    "ConstructionError",
    "DataObject",
    "FullSync",
    "GenSync",
    "GenSyncError",
    "ProtocolMismatch",
    "SizeExceeded",
    "SocketCommunicant",
    "StatID",
    "SyncFailure",
    "SyncMethod",
    "SyncResult",
    "SyncStats",
    "TimerError",
    "UnimplementedOperation",
    "create_method",
    "read_data_file",
    "register_method",
]
