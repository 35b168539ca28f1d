"""Base class for peer handles (communicants)."""

import json
import logging
import struct
import time
import uuid
from abc import ABC, abstractmethod

from ..data import DataObject
from ..exceptions import CommunicantError

logger = logging.getLogger(__name__)

_INT = struct.Struct("!q")
_DOUBLE = struct.Struct("!d")

DEFAULT_MAX_FRAME_SIZE = 64 * 1024 * 1024


class Communicant(ABC):
    """A reachable peer with byte accounting and typed send/receive primitives.

    Subclasses provide the transport (connect/listen/close and raw byte
    I/O). Everything sent or received through the comm_* primitives is
    counted in ``xmit_bytes``/``recv_bytes`` until the next
    reset_comm_counters().
    """

    def __init__(
        self,
        peer_id: str | None = None,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ):
        """Initialize the communicant.

        Args:
            peer_id: Stable identifier for this peer. A random one is
                generated if omitted.
            max_frame_size: Largest length-prefixed frame accepted from the
                peer, in bytes.
        """
        self.peer_id = peer_id or uuid.uuid4().hex
        self.max_frame_size = max_frame_size
        self.xmit_bytes = 0
        self.recv_bytes = 0
        self.last_reset: float | None = None
        self.port: int | None = None

    # Transport hooks

    @abstractmethod
    def connect(self) -> None:
        """Connect to the peer in the client role."""
        pass

    @abstractmethod
    def listen(self) -> None:
        """Wait for the peer to connect in the server role."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection and any listening socket."""
        pass

    @property
    @abstractmethod
    def connected(self) -> bool:
        pass

    @abstractmethod
    def _send_raw(self, data: bytes) -> None:
        pass

    @abstractmethod
    def _recv_raw(self, size: int) -> bytes:
        """Read exactly ``size`` bytes."""
        pass

    # Accounting

    def reset_comm_counters(self) -> None:
        """Zero the byte counters and stamp the time of the reset."""
        self.xmit_bytes = 0
        self.recv_bytes = 0
        self.last_reset = time.monotonic()

    def comm_send(self, data: bytes) -> None:
        try:
            self._send_raw(data)
        except OSError as e:
            logger.error(f"Send to peer {self.peer_id} failed: {e}")
            self.close()
            raise CommunicantError(f"Send to peer {self.peer_id} failed: {e}") from e
        self.xmit_bytes += len(data)

    def comm_recv(self, size: int) -> bytes:
        if size == 0:
            return b""
        try:
            data = self._recv_raw(size)
        except OSError as e:
            logger.error(f"Receive from peer {self.peer_id} failed: {e}")
            self.close()
            raise CommunicantError(f"Receive from peer {self.peer_id} failed: {e}") from e
        if len(data) != size:
            self.close()
            raise CommunicantError(
                f"Connection to peer {self.peer_id} closed after "
                f"{len(data)} of {size} bytes"
            )
        self.recv_bytes += len(data)
        return data

    # Typed primitives

    def comm_send_int(self, value: int) -> None:
        self.comm_send(_INT.pack(value))

    def comm_recv_int(self) -> int:
        return _INT.unpack(self.comm_recv(_INT.size))[0]

    def comm_send_double(self, value: float) -> None:
        self.comm_send(_DOUBLE.pack(value))

    def comm_recv_double(self) -> float:
        return _DOUBLE.unpack(self.comm_recv(_DOUBLE.size))[0]

    def comm_send_bytes(self, data: bytes) -> None:
        self.comm_send(_INT.pack(len(data)) + data)

    def comm_recv_bytes(self) -> bytes:
        size = self.comm_recv_int()
        if size < 0 or size > self.max_frame_size:
            self.close()
            raise CommunicantError(
                f"Frame length {size} from peer {self.peer_id} outside 0..{self.max_frame_size}"
            )
        return self.comm_recv(size)

    def comm_send_string(self, value: str) -> None:
        self.comm_send_bytes(value.encode("utf-8"))

    def comm_recv_string(self) -> str:
        raw = self.comm_recv_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CommunicantError(f"Corrupt string from peer {self.peer_id}: {e}") from e

    def comm_send_json(self, value) -> None:
        self.comm_send_string(json.dumps(value, sort_keys=True))

    def comm_recv_json(self):
        text = self.comm_recv_string()
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CommunicantError(f"Corrupt JSON from peer {self.peer_id}: {e}") from e

    def comm_send_data_object(self, datum: DataObject) -> None:
        self.comm_send_bytes(datum.to_bytes())

    def comm_recv_data_object(self) -> DataObject:
        return DataObject(self.comm_recv_string())

    def comm_send_data_list(self, data: list[DataObject] | tuple[DataObject, ...]) -> None:
        self.comm_send_int(len(data))
        for datum in data:
            self.comm_send_data_object(datum)

    def comm_recv_data_list(self) -> list[DataObject]:
        count = self.comm_recv_int()
        if count < 0:
            self.close()
            raise CommunicantError(f"Negative list length {count} from peer {self.peer_id}")
        return [self.comm_recv_data_object() for _ in range(count)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(peer_id={self.peer_id!r}, port={self.port!r})"
