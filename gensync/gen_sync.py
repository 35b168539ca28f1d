"""GenSync: coordinates peers, sync methods and the local element store."""

import logging
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO, TYPE_CHECKING

from .communicants import Communicant, SocketCommunicant
from .data import DataObject
from .exceptions import (
    ConstructionError,
    GenSyncError,
    SizeExceeded,
    SyncFailure,
    UnimplementedOperation,
)
from .methods import SyncMethod, create_method

if TYPE_CHECKING:
    from .config import Config

logger = logging.getLogger(__name__)


def read_data_file(path: str | Path, max_element_size: int = sys.maxsize) -> list[DataObject]:
    """Parse an element log without opening it for writing.

    A missing file holds no elements.

    Raises:
        ConstructionError: On an unreadable file, a malformed line or an
            element larger than max_element_size.
    """
    path = Path(path).expanduser()
    if not path.exists():
        return []

    try:
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise ConstructionError(f"Cannot read data file {path}: {e}") from e

    elements = []
    for lineno, line in enumerate(lines, start=1):
        if not line:
            continue
        try:
            datum = DataObject.from_line(line)
        except ValueError as e:
            raise ConstructionError(f"{path}:{lineno}: {e}") from e
        if datum.size() > max_element_size:
            raise ConstructionError(
                f"{path}:{lineno}: element of {datum.size()} bytes exceeds the "
                f"{max_element_size}-byte limit"
            )
        elements.append(datum)
    return elements


@dataclass
class SyncResult:
    """Outcome of the latest sync attempt with one peer."""

    success: bool
    self_minus_other: list[DataObject] = field(default_factory=list)
    other_minus_self: list[DataObject] = field(default_factory=list)
    error: str | None = None
    stats: dict[str, float] = field(default_factory=dict)
    timestamp: datetime | None = None


class GenSync:
    """A local element collection kept reconcilable with remote peers.

    A GenSync object holds:
    - the communicants (peers) it may synchronize with, in sync order;
    - the sync methods it is prepared to use, addressed by index;
    - the elements it stores, optionally backed by an append-only file.

    Every element added is also added to each registered method, so the
    methods' indexes mirror the store.

    No internal locking is done; callers must serialize access across threads.
    """

    def __init__(
        self,
        peers: list[Communicant] | None = None,
        methods: list[SyncMethod] | None = None,
        data: list[Any] | None = None,
        file_name: str | Path | None = None,
        max_element_size: int = sys.maxsize,
    ):
        """Initialize the GenSync object.

        Args:
            peers: Communicants to synchronize with. Order is the sync order.
            methods: Sync methods this object can use.
            data: Initial elements. Mutually exclusive with file_name.
            file_name: File read line by line for the initial elements;
                every later add_element() appends a line to it.
            max_element_size: Largest accepted serialized element, in bytes.

        Raises:
            ConstructionError: On malformed data or an unreadable file.
        """
        if data is not None and file_name is not None:
            raise ConstructionError("Supply either initial data or a data file, not both")

        self.max_element_size = max_element_size
        self._peers: list[Communicant] = []
        self._methods: list[SyncMethod] = []
        self._elements: list[DataObject] = []
        self._element_counts: Counter[DataObject] = Counter()
        self._last_results: dict[str, SyncResult] = {}
        self._out_file: TextIO | None = None
        self._file_path: Path | None = None
        self._created_at = time.monotonic()

        for peer in peers or []:
            try:
                self.add_peer(peer)
            except ValueError as e:
                raise ConstructionError(str(e)) from e
        for method in methods or []:
            self.add_method(method)

        if file_name is not None:
            self._load_file(Path(file_name).expanduser())
        else:
            for value in data or []:
                try:
                    self.add_element(value)
                except (ValueError, SizeExceeded) as e:
                    raise ConstructionError(f"Invalid initial element {value!r}: {e}") from e

    @classmethod
    def from_config(cls, config: "Config") -> "GenSync":
        """Build peers, methods and the store from a loaded Config."""
        peers = [
            SocketCommunicant(
                host=peer.host,
                port=peer.port,
                timeout=peer.timeout,
                peer_id=peer.peer_id,
                max_frame_size=peer.max_frame_size,
            )
            for peer in config.peers
        ]
        try:
            methods = [create_method(m.name, m.params) for m in config.methods]
        except ValueError as e:
            raise ConstructionError(str(e)) from e

        return cls(
            peers=peers,
            methods=methods,
            file_name=config.node.data_file,
            max_element_size=config.node.max_element_size,
        )

    def _load_file(self, path: Path) -> None:
        """Replay the element log, then open it for appending."""
        for datum in read_data_file(path, self.max_element_size):
            self._store(datum)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._out_file = open(path, "a", encoding="utf-8")
        except OSError as e:
            raise ConstructionError(f"Cannot open data file {path} for appending: {e}") from e

        self._file_path = path
        logger.info(f"Loaded {len(self._elements)} elements from {path}")

    # Data manipulation

    def add_element(self, value: Any) -> DataObject:
        """Add a datum to the store and to every registered method.

        Args:
            value: A DataObject, or any value DataObject.from_value() accepts.

        Returns:
            The stored DataObject.

        Raises:
            SizeExceeded: If the serialized datum is larger than max_element_size.
            GenSyncError: If the data file has already been closed.
        """
        if self._file_path is not None and self._out_file is None:
            raise GenSyncError(f"Data file {self._file_path} is closed")

        datum = DataObject.from_value(value)
        self._check_size(datum)
        self._store(datum)

        if self._out_file is not None:
            self._out_file.write(datum.to_line() + "\n")
            self._out_file.flush()

        logger.debug(f"Added element {datum.data!r}")
        return datum

    def remove_element(self, value: Any) -> bool:
        """Remove the first matching datum from the store and every method.

        Returns:
            True iff the store held the datum.

        Raises:
            UnimplementedOperation: If the store is backed by an append-only file.
        """
        if self._file_path is not None:
            raise UnimplementedOperation(
                f"Cannot remove elements from the append-only data file {self._file_path}"
            )

        datum = DataObject.from_value(value)
        try:
            self._elements.remove(datum)
        except ValueError:
            return False
        self._element_counts[datum] -= 1

        for method in self._methods:
            method.remove_element(datum)
        logger.debug(f"Removed element {datum.data!r}")
        return True

    def dump_elements(self) -> tuple[DataObject, ...]:
        """Snapshot of the stored elements."""
        return tuple(self._elements)

    def _check_size(self, datum: DataObject) -> None:
        size = datum.size()
        if size > self.max_element_size:
            raise SizeExceeded(
                f"Element of {size} bytes exceeds the {self.max_element_size}-byte limit"
            )

    def _store(self, datum: DataObject) -> None:
        self._elements.append(datum)
        self._element_counts[datum] += 1
        for method in self._methods:
            method.add_element(datum)

    # Peers

    def add_peer(self, peer: Communicant, index: int | None = None) -> int:
        """Register a peer. Peers are synchronized in list order.

        Args:
            peer: The communicant to add.
            index: Position to insert at; appended if None.

        Returns:
            The peer's index.

        Raises:
            ValueError: If a peer with the same peer_id is already registered.
        """
        if any(p.peer_id == peer.peer_id for p in self._peers):
            raise ValueError(f"Peer {peer.peer_id} is already registered")
        if index is None:
            self._peers.append(peer)
            return len(self._peers) - 1
        if not 0 <= index <= len(self._peers):
            raise IndexError(f"Peer index {index} out of range")
        self._peers.insert(index, peer)
        return index

    def remove_peer(self, peer: Communicant | int) -> int:
        """Remove a peer by index, or the peer sharing its peer_id.

        Returns:
            Number of peers removed.
        """
        if isinstance(peer, int):
            removed = self._peers.pop(peer)
            self._last_results.pop(removed.peer_id, None)
            return 1

        before = len(self._peers)
        self._peers = [p for p in self._peers if p.peer_id != peer.peer_id]
        self._last_results.pop(peer.peer_id, None)
        return before - len(self._peers)

    def num_peers(self) -> int:
        return len(self._peers)

    def get_peer(self, index: int) -> Communicant:
        return self._peers[index]

    # Methods

    def add_method(self, method: SyncMethod, index: int | None = None) -> int:
        """Register a sync method, seeding its index with the stored elements.

        Returns:
            The method's index.
        """
        for datum in self._elements:
            method.add_element(datum)

        if index is None:
            self._methods.append(method)
            return len(self._methods) - 1
        if not 0 <= index <= len(self._methods):
            raise IndexError(f"Method index {index} out of range")
        self._methods.insert(index, method)
        return index

    def remove_method(self, index: int) -> SyncMethod:
        return self._methods.pop(index)

    def get_method(self, index: int) -> SyncMethod:
        return self._methods[index]

    def num_methods(self) -> int:
        return len(self._methods)

    # Synchronization

    def start_sync(self, method_index: int = 0) -> bool:
        """Sequentially run the client side of a method against every peer.

        Args:
            method_index: Index of the sync method to use.

        Returns:
            True iff every peer synchronized successfully.
        """
        return self._sync_all(method_index, client=True)

    def listen_sync(self, method_index: int = 0) -> bool:
        """Sequentially wait for each peer's sync request and serve it.

        Args:
            method_index: Index of the sync method to listen for.

        Returns:
            True iff every peer synchronized successfully.
        """
        return self._sync_all(method_index, client=False)

    def _sync_all(self, method_index: int, client: bool) -> bool:
        method = self._methods[method_index]
        role = "client" if client else "server"
        all_succeeded = True

        for position, peer in enumerate(list(self._peers)):
            self_minus_other: list[DataObject] = []
            other_minus_self: list[DataObject] = []
            entry = method.sync_client if client else method.sync_server
            error = None

            try:
                success = entry(peer, self_minus_other, other_minus_self)
                if not success:
                    error = f"{method.name} {role} reported failure"
            except SyncFailure as e:
                success = False
                error = str(e)
            except Exception as e:
                logger.error(
                    f"Unexpected error syncing with peer {position} ({peer.peer_id}): {e}",
                    exc_info=True,
                )
                success = False
                error = str(e)

            self._last_results[peer.peer_id] = SyncResult(
                success=success,
                self_minus_other=self_minus_other,
                other_minus_self=other_minus_self,
                error=error,
                stats=method.stats.snapshot(),
                timestamp=datetime.now(),
            )

            if not success:
                all_succeeded = False
                logger.warning(f"Sync with peer {position} ({peer.peer_id}) failed: {error}")
                continue

            added = self._merge(method, other_minus_self)
            logger.info(
                f"Synced with peer {position} ({peer.peer_id}) as {role}: "
                f"{len(self_minus_other)} local-only, {len(other_minus_self)} remote-only, "
                f"{added} merged"
            )

        return all_succeeded

    def _merge(self, method: SyncMethod, other_minus_self: list[DataObject]) -> int:
        """Add the peer's elements we lack, for set-semantics methods only."""
        if method.multiset:
            logger.debug(f"{method.name} is a multiset method; not merging results")
            return 0

        added = 0
        for datum in other_minus_self:
            if self._element_counts[datum] > 0:
                continue
            try:
                self.add_element(datum)
            except SizeExceeded as e:
                logger.warning(f"Dropping received element: {e}")
                continue
            added += 1
        return added

    # Informational

    def get_xmit_bytes(self, peer_index: int) -> int:
        return self._peers[peer_index].xmit_bytes

    def get_recv_bytes(self, peer_index: int) -> int:
        return self._peers[peer_index].recv_bytes

    def get_sync_time(self, peer_index: int) -> float:
        """Seconds since the last sync with the peer, or since this object was created."""
        last = self._peers[peer_index].last_reset
        return time.monotonic() - (last if last is not None else self._created_at)

    def get_port(self, peer_index: int) -> int | None:
        """Port the peer's server is listening on, or None if it is not listening."""
        return self._peers[peer_index].port

    def last_result(self, peer_index: int) -> SyncResult | None:
        """Result of the latest sync attempt with the peer, if any."""
        return self._last_results.get(self._peers[peer_index].peer_id)

    def info(self) -> str:
        return (
            f"GenSync with {len(self._elements)} elements, "
            f"{len(self._peers)} peers, {len(self._methods)} methods"
        )

    # Lifecycle

    def close(self) -> None:
        """Close the data file and every peer connection."""
        if self._out_file is not None:
            self._out_file.close()
            self._out_file = None
        for peer in self._peers:
            peer.close()

    def __enter__(self) -> "GenSync":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
