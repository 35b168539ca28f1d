"""Base class for reconciliation methods."""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import Any

from ..communicants import Communicant
from ..data import DataObject
from ..exceptions import ProtocolMismatch, SyncFailure
from ..stats import StatID, SyncStats

logger = logging.getLogger(__name__)

SYNC_OK_FLAG = 1
SYNC_FAIL_FLAG = 0


class SyncMethod(ABC):
    """Abstract reconciliation protocol.

    A method keeps its own index of the elements it reconciles and a
    SyncStats describing its most recent attempt. Concrete methods
    override sync_client()/sync_server(), call the base implementation
    first (it resets the stats and the peer's byte counters) and then run
    their exchange. Results are *added* to the two output lists.

    Instances are single-writer: a sync resets shared stats and peer
    counters, so one method object must not run two syncs at once.

    Example:
        class MySync(SyncMethod):
            key = "mine"
            sync_id = 42

            @property
            def name(self) -> str:
                return "MySync"

            @property
            def multiset(self) -> bool:
                return False

            def sync_client(self, peer, self_minus_other, other_minus_self):
                super().sync_client(peer, self_minus_other, other_minus_self)
                ...
    """

    key: str = ""
    """Name used to select this method from configuration"""

    sync_id: int = 0
    """Number uniquely identifying the protocol on the wire"""

    config_schema: dict[str, Any] = {"type": "object", "additionalProperties": True}
    """JSON Schema for the method's constructor parameters"""

    def __init__(self) -> None:
        self._elements: list[DataObject] = []
        self.stats = SyncStats()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the method."""
        pass

    @property
    @abstractmethod
    def multiset(self) -> bool:
        """True if the index allows duplicates, False for set semantics.

        Set-semantics results are re-added through the orchestrator after a
        sync; multiset results are not.
        """
        pass

    def sync_params(self) -> dict[str, Any]:
        """Tunable parameters that both peers must agree on."""
        return {}

    # Sync entrypoints

    def sync_client(
        self,
        peer: Communicant,
        self_minus_other: list[DataObject],
        other_minus_self: list[DataObject],
    ) -> bool:
        """Reconcile with a peer running sync_server().

        Args:
            peer: The communicant to connect through.
            self_minus_other: Receives elements we have that the peer lacks.
            other_minus_self: Receives elements the peer has that we lack.

        Returns:
            True iff the exchange appears to have succeeded.
        """
        self.stats.reset(StatID.ALL)
        peer.reset_comm_counters()
        return True

    def sync_server(
        self,
        peer: Communicant,
        self_minus_other: list[DataObject],
        other_minus_self: list[DataObject],
    ) -> bool:
        """Wait for a peer running sync_client() and reconcile with it."""
        self.stats.reset(StatID.ALL)
        peer.reset_comm_counters()
        return True

    # Parameter negotiation

    def send_sync_param(self, peer: Communicant, one_way: bool = False) -> None:
        """Send the protocol id and parameters to the peer.

        Raises:
            ProtocolMismatch: If the peer rejects them (two-way mode only).
        """
        peer.comm_send_int(self.sync_id)
        peer.comm_send_json(self.sync_params())
        if one_way:
            return

        flag = peer.comm_recv_int()
        if flag == SYNC_FAIL_FLAG:
            raise ProtocolMismatch(f"Peer {peer.peer_id} rejected {self.name} parameters")
        if flag != SYNC_OK_FLAG:
            raise SyncFailure(f"Unexpected negotiation flag {flag} from peer {peer.peer_id}")

    def recv_sync_param(self, peer: Communicant, one_way: bool = False) -> None:
        """Receive the peer's protocol id and parameters and compare them to ours.

        Raises:
            ProtocolMismatch: If they differ.
        """
        their_id = peer.comm_recv_int()
        their_params = peer.comm_recv_json()
        ours = json.loads(json.dumps(self.sync_params(), sort_keys=True))
        match = their_id == self.sync_id and their_params == ours

        if not one_way:
            peer.comm_send_int(SYNC_OK_FLAG if match else SYNC_FAIL_FLAG)

        if not match:
            raise ProtocolMismatch(
                f"{self.name} (id={self.sync_id}, params={ours}) does not match "
                f"peer {peer.peer_id} (id={their_id}, params={their_params})"
            )

    # Element index

    def add_element(self, datum: DataObject) -> bool:
        self._elements.append(datum)
        return True

    def remove_element(self, datum: DataObject) -> bool:
        """Remove the first element equal to datum.

        Returns:
            True iff the index shrank.
        """
        try:
            self._elements.remove(datum)
        except ValueError:
            return False
        return True

    def element_count(self) -> int:
        return len(self._elements)

    @property
    def elements(self) -> tuple[DataObject, ...]:
        return tuple(self._elements)

    def __iter__(self) -> Iterator[DataObject]:
        return iter(tuple(self._elements))

    def __len__(self) -> int:
        return len(self._elements)

    # Instrumentation

    def local_timer(self, stat_id: StatID) -> AbstractContextManager[None]:
        """Scoped timer on this method's stats.

        Usage:
            with self.local_timer(StatID.COMP_TIME):
                ...
        """
        return self.stats.timer(stat_id)

    def record_comm_bytes(self, peer: Communicant) -> None:
        """Copy the peer's byte counters into this method's stats."""
        self.stats.increment(StatID.XMIT, peer.xmit_bytes)
        self.stats.increment(StatID.RECV, peer.recv_bytes)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(elements={len(self._elements)})"
