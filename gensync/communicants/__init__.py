"""Peer handles used by GenSync to reach other nodes."""

from .base import Communicant
from .tcp import SocketCommunicant

__all__ = ["Communicant", "SocketCommunicant"]
