"""Error taxonomy for GenSync."""


class GenSyncError(Exception):
    """Base class for all GenSync errors."""


class ConstructionError(GenSyncError):
    """Malformed initial data or unreadable data file at construction."""


class SizeExceeded(GenSyncError):
    """A datum's serialized form exceeds the supported length limit."""


class SyncFailure(GenSyncError):
    """A reconciliation attempt with a single peer failed."""


class ProtocolMismatch(SyncFailure):
    """Negotiated parameters disagree between the two peers."""


class CommunicantError(SyncFailure):
    """Transport fault on a peer handle (dropped connection, timeout, short read)."""


class UnimplementedOperation(GenSyncError, NotImplementedError):
    """Operation intentionally left undefined."""
