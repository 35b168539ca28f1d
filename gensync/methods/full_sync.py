"""Reconciliation by exchanging complete element collections."""

import logging
from collections import Counter
from collections.abc import Iterable

from ..communicants import Communicant
from ..data import DataObject
from ..exceptions import SyncFailure
from ..stats import StatID
from .base import SyncMethod
from .registry import register_method

logger = logging.getLogger(__name__)


def difference(left: Iterable[DataObject], right: Iterable[DataObject]) -> list[DataObject]:
    """Elements of left not matched by an equal element of right, in left's order."""
    remaining = Counter(right)
    result = []
    for datum in left:
        if remaining[datum] > 0:
            remaining[datum] -= 1
        else:
            result.append(datum)
    return result


@register_method
class FullSync(SyncMethod):
    """Sends the client's entire collection to the server.

    The server computes both halves of the difference and returns them, so
    one round trip settles the sync at the cost of transmitting everything.
    """

    key = "full"
    sync_id = 1
    config_schema = {"type": "object", "properties": {}, "additionalProperties": False}

    @property
    def name(self) -> str:
        return "FullSync"

    @property
    def multiset(self) -> bool:
        return False

    def sync_client(
        self,
        peer: Communicant,
        self_minus_other: list[DataObject],
        other_minus_self: list[DataObject],
    ) -> bool:
        super().sync_client(peer, self_minus_other, other_minus_self)
        logger.info(f"{self.name} client starting with peer {peer.peer_id}")

        try:
            with self.local_timer(StatID.COMM_TIME):
                peer.connect()
                self.send_sync_param(peer)
                peer.comm_send_data_list(self.elements)

            # The first answer arrives once the server has finished computing
            with self.local_timer(StatID.IDLE_TIME):
                mine = peer.comm_recv_data_list()

            with self.local_timer(StatID.COMM_TIME):
                theirs = peer.comm_recv_data_list()
        except SyncFailure as e:
            logger.warning(f"{self.name} client sync with peer {peer.peer_id} failed: {e}")
            return False
        finally:
            self.record_comm_bytes(peer)

        self_minus_other.extend(mine)
        other_minus_self.extend(theirs)
        logger.info(
            f"{self.name} client done: {len(mine)} local-only, "
            f"{len(theirs)} remote-only, {self.stats.total_time():.4f}s"
        )
        return True

    def sync_server(
        self,
        peer: Communicant,
        self_minus_other: list[DataObject],
        other_minus_self: list[DataObject],
    ) -> bool:
        super().sync_server(peer, self_minus_other, other_minus_self)
        logger.info(f"{self.name} server waiting for peer {peer.peer_id}")

        try:
            with self.local_timer(StatID.IDLE_TIME):
                peer.listen()

            with self.local_timer(StatID.COMM_TIME):
                self.recv_sync_param(peer)
                client_elements = peer.comm_recv_data_list()

            with self.local_timer(StatID.COMP_TIME):
                client_lacks = difference(self.elements, client_elements)
                server_lacks = difference(client_elements, self.elements)

            with self.local_timer(StatID.COMM_TIME):
                peer.comm_send_data_list(server_lacks)
                peer.comm_send_data_list(client_lacks)
        except SyncFailure as e:
            logger.warning(f"{self.name} server sync with peer {peer.peer_id} failed: {e}")
            return False
        finally:
            self.record_comm_bytes(peer)

        self_minus_other.extend(client_lacks)
        other_minus_self.extend(server_lacks)
        logger.info(
            f"{self.name} server done: {len(client_lacks)} local-only, "
            f"{len(server_lacks)} remote-only"
        )
        return True
