"""TCP socket communicant."""

import logging
import socket

from ..exceptions import CommunicantError
from .base import DEFAULT_MAX_FRAME_SIZE, Communicant

logger = logging.getLogger(__name__)

_RECV_CHUNK = 65536


class SocketCommunicant(Communicant):
    """Communicant over a TCP stream.

    In the client role connect() dials ``(host, port)``; in the server role
    bind() + listen() accept one connection on ``(host, port)``. An
    established connection is kept across sync attempts until close().
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 0,
        timeout: float | None = None,
        peer_id: str | None = None,
        sock: socket.socket | None = None,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ):
        """Initialize the communicant.

        Args:
            host: Remote host (client role) or bind address (server role).
            port: Remote port (client role) or bind port, 0 for ephemeral.
            timeout: Socket timeout in seconds, None to block forever.
            peer_id: Stable identifier for this peer.
            sock: Already-connected socket to use instead of dialing.
            max_frame_size: Largest frame accepted from the peer, in bytes.
        """
        super().__init__(peer_id=peer_id, max_frame_size=max_frame_size)
        self.host = host
        self.remote_port = port
        self.timeout = timeout
        self._sock = sock
        self._server: socket.socket | None = None
        if sock is not None:
            sock.settimeout(timeout)

    @classmethod
    def pair(
        cls,
        timeout: float | None = None,
        peer_ids: tuple[str, str] | None = None,
    ) -> tuple["SocketCommunicant", "SocketCommunicant"]:
        """Create two communicants connected to each other in-process.

        Each end gets a fresh random peer_id unless peer_ids is given.
        """
        left_id, right_id = peer_ids or (None, None)
        left, right = socket.socketpair()
        return (
            cls(timeout=timeout, peer_id=left_id, sock=left),
            cls(timeout=timeout, peer_id=right_id, sock=right),
        )

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        if self._sock is not None:
            return
        try:
            self._sock = socket.create_connection(
                (self.host, self.remote_port), timeout=self.timeout
            )
        except OSError as e:
            raise CommunicantError(
                f"Cannot connect to {self.host}:{self.remote_port}: {e}"
            ) from e
        self._sock.settimeout(self.timeout)
        logger.debug(f"Connected to {self.host}:{self.remote_port}")

    def bind(self) -> int:
        """Bind the listening socket and return the bound port."""
        if self._server is None:
            try:
                self._server = socket.create_server((self.host, self.remote_port))
            except OSError as e:
                raise CommunicantError(
                    f"Cannot listen on {self.host}:{self.remote_port}: {e}"
                ) from e
            self._server.settimeout(self.timeout)
            self.port = self._server.getsockname()[1]
            logger.info(f"Listening on {self.host}:{self.port}")
        return self.port

    def listen(self) -> None:
        if self._sock is not None:
            return
        self.bind()
        try:
            conn, addr = self._server.accept()
        except OSError as e:
            raise CommunicantError(f"No peer connected on port {self.port}: {e}") from e
        conn.settimeout(self.timeout)
        self._sock = conn
        logger.debug(f"Accepted connection from {addr}")

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        if self._server is not None:
            self._server.close()
            self._server = None
        self.port = None

    def _send_raw(self, data: bytes) -> None:
        if self._sock is None:
            raise CommunicantError(f"Peer {self.peer_id} is not connected")
        self._sock.sendall(data)

    def _recv_raw(self, size: int) -> bytes:
        if self._sock is None:
            raise CommunicantError(f"Peer {self.peer_id} is not connected")
        chunks = []
        remaining = size
        while remaining > 0:
            chunk = self._sock.recv(min(remaining, _RECV_CHUNK))
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)
