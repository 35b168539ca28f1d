"""Tests for sync methods and parameter negotiation."""

import threading

import pytest

from gensync.communicants import SocketCommunicant
from gensync.data import DataObject
from gensync.exceptions import ProtocolMismatch
from gensync.methods import (
    FullSync,
    SyncMethod,
    available_methods,
    create_method,
)
from gensync.methods.full_sync import difference
from gensync.stats import StatID


class TunedSync(FullSync):
    """FullSync variant with a negotiated parameter."""

    def __init__(self, error_prob: float = 0.01):
        super().__init__()
        self.error_prob = error_prob

    def sync_params(self):
        return {"error_prob": self.error_prob}


def run_in_thread(func, *args):
    """Run func in a daemon thread; return (thread, result holder)."""
    holder = {}

    def target():
        holder["value"] = func(*args)

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, holder


def elements(*values):
    return [DataObject(v) for v in values]


@pytest.fixture
def pair():
    left, right = SocketCommunicant.pair(timeout=5.0)
    yield left, right
    left.close()
    right.close()


def populated(method, *values):
    for datum in elements(*values):
        method.add_element(datum)
    return method


def reconcile(client, server, pair):
    """Run one client/server exchange and return both sides' results."""
    left, right = pair
    server_out = ([], [])
    thread, holder = run_in_thread(server.sync_server, right, *server_out)
    client_out = ([], [])
    client_ok = client.sync_client(left, *client_out)
    thread.join(timeout=10)
    return client_ok, client_out, holder["value"], server_out


class TestSyncMethodIndex:
    """Tests for the default element index."""

    def test_abstract(self):
        """Test the base class cannot be instantiated."""
        with pytest.raises(TypeError):
            SyncMethod()

    def test_add_and_iterate(self):
        """Test elements are kept in insertion order."""
        method = populated(FullSync(), "a", "b", "a")

        assert method.element_count() == 3
        assert len(method) == 3
        assert list(method) == elements("a", "b", "a")

    def test_remove_first_match(self):
        """Test removal drops only the first equal element."""
        method = populated(FullSync(), "a", "b", "a")

        assert method.remove_element(DataObject("a")) is True
        assert list(method) == elements("b", "a")

    def test_remove_missing(self):
        """Test removing an absent element reports no change."""
        method = populated(FullSync(), "a")

        assert method.remove_element(DataObject("z")) is False
        assert method.element_count() == 1

    def test_full_sync_is_set_semantics(self):
        """Test FullSync declares set semantics."""
        assert FullSync().multiset is False
        assert FullSync().name == "FullSync"


class TestDifference:
    """Tests for the value difference helper."""

    def test_preserves_order(self):
        """Test results follow the left side's order."""
        assert difference(elements("c", "a", "b"), elements("a")) == elements("c", "b")

    def test_counts_duplicates(self):
        """Test duplicates are matched one for one."""
        assert difference(elements("a", "a", "b"), elements("a")) == elements("a", "b")


class TestNegotiation:
    """Tests for send_sync_param/recv_sync_param."""

    def test_matching_params(self, pair):
        """Test agreeing peers complete the handshake."""
        left, right = pair
        server = TunedSync(0.01)
        thread, holder = run_in_thread(server.recv_sync_param, right)

        TunedSync(0.01).send_sync_param(left)
        thread.join(timeout=10)

        assert "value" in holder

    def test_mismatched_params(self, pair):
        """Test disagreeing parameters fail on both sides."""
        left, right = pair
        errors = []

        def serve():
            try:
                TunedSync(0.02).recv_sync_param(right)
            except ProtocolMismatch as e:
                errors.append(e)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()

        with pytest.raises(ProtocolMismatch):
            TunedSync(0.01).send_sync_param(left)
        thread.join(timeout=10)

        assert len(errors) == 1

    def test_mismatched_protocol(self, pair):
        """Test different protocol ids are rejected."""
        left, right = pair

        class OtherSync(FullSync):
            sync_id = 99

        errors = []

        def serve():
            try:
                FullSync().recv_sync_param(right)
            except ProtocolMismatch as e:
                errors.append(e)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()

        with pytest.raises(ProtocolMismatch):
            OtherSync().send_sync_param(left)
        thread.join(timeout=10)

        assert "id=99" in str(errors[0])

    def test_one_way_sends_no_ack(self, pair):
        """Test one-way negotiation neither waits for nor sends a flag."""
        left, right = pair

        TunedSync(0.01).send_sync_param(left, one_way=True)
        with pytest.raises(ProtocolMismatch):
            TunedSync(0.5).recv_sync_param(right, one_way=True)

        assert right.xmit_bytes == 0


class TestFullSync:
    """Tests for full-collection reconciliation."""

    def test_differences(self, pair):
        """Test both sides learn both halves of the difference."""
        client = populated(FullSync(), "a1", "a2", "shared")
        server = populated(FullSync(), "b1", "shared")

        client_ok, client_out, server_ok, server_out = reconcile(client, server, pair)

        assert client_ok and server_ok
        assert client_out == (elements("a1", "a2"), elements("b1"))
        assert server_out == (elements("b1"), elements("a1", "a2"))

    def test_results_accumulate(self, pair):
        """Test results are appended to existing list contents."""
        left, right = pair
        client = populated(FullSync(), "a")
        server = populated(FullSync(), "b")
        self_minus_other = elements("earlier")
        other_minus_self = []

        thread, _ = run_in_thread(server.sync_server, right, [], [])
        assert client.sync_client(left, self_minus_other, other_minus_self)
        thread.join(timeout=10)

        assert self_minus_other == elements("earlier", "a")
        assert other_minus_self == elements("b")

    def test_deterministic(self):
        """Test identical inputs give identical results across runs."""
        runs = []
        for _ in range(2):
            left, right = SocketCommunicant.pair(timeout=5.0)
            try:
                client = populated(FullSync(), "x", "y", "z")
                server = populated(FullSync(), "y", "w", "v")
                _, client_out, _, _ = reconcile(client, server, (left, right))
                runs.append(client_out)
            finally:
                left.close()
                right.close()

        assert runs[0] == runs[1]
        assert runs[0] == (elements("x", "z"), elements("w", "v"))

    def test_stats_recorded(self, pair):
        """Test bytes and times are recorded for the attempt."""
        left, _ = pair
        client = populated(FullSync(), "a", "b")
        server = populated(FullSync(), "c")

        reconcile(client, server, pair)

        assert client.stats.get_stat(StatID.XMIT) == left.xmit_bytes > 0
        assert client.stats.get_stat(StatID.RECV) == left.recv_bytes > 0
        assert client.stats.total_time() > 0
        assert not client.stats.is_running(StatID.COMM_TIME)

    def test_stats_reset_each_attempt(self, pair):
        """Test a new attempt starts from zeroed stats and counters."""
        left, _ = pair
        client = populated(FullSync(), "a")
        server = populated(FullSync(), "b")
        client.stats.increment(StatID.XMIT, 1_000_000)
        left.xmit_bytes = 1_000_000

        reconcile(client, server, pair)

        assert client.stats.get_stat(StatID.XMIT) < 1_000_000
        assert left.xmit_bytes < 1_000_000

    def test_mismatch_fails_both(self, pair):
        """Test mismatched parameters make both entrypoints return False."""
        client_ok, client_out, server_ok, server_out = reconcile(
            TunedSync(0.01), TunedSync(0.02), pair
        )

        assert client_ok is False
        assert server_ok is False
        assert client_out == ([], [])
        assert server_out == ([], [])

    def test_transport_fault(self, pair):
        """Test a dropped connection is reported as failure."""
        left, right = pair
        right.close()

        assert FullSync().sync_client(left, [], []) is False

    def test_corrupt_frame_length(self, pair):
        """Test a huge length prefix from the server fails the attempt."""
        left, right = pair

        def serve():
            FullSync().recv_sync_param(right)
            right.comm_recv_data_list()
            right.comm_send_int(1)
            right.comm_send_int(2**62)

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()

        assert FullSync().sync_client(left, [], []) is False
        thread.join(timeout=10)
        assert not left.connected


class TestRegistry:
    """Tests for creating methods by name."""

    def test_full_registered(self):
        """Test FullSync is available by key."""
        assert "full" in available_methods()
        assert isinstance(create_method("full"), FullSync)

    def test_unknown_method(self):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown sync method"):
            create_method("nope")

    def test_invalid_params(self):
        """Test parameters are validated against the method's schema."""
        with pytest.raises(ValueError, match="Invalid parameters"):
            create_method("full", {"unexpected": 1})
