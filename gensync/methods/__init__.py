"""Pluggable reconciliation methods."""

from .base import SYNC_FAIL_FLAG, SYNC_OK_FLAG, SyncMethod
from .full_sync import FullSync
from .registry import available_methods, create_method, register_method

__all__ = [
    "SYNC_FAIL_FLAG",
    "SYNC_OK_FLAG",
    "FullSync",
    "SyncMethod",
    "available_methods",
    "create_method",
    "register_method",
]
