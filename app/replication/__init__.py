from .driver import SchemaReplicator
from .events import ItemOutcome, ProgressEvent, ReplicationResult, ReplicationState

__all__ = [
    "SchemaReplicator",
    "ItemOutcome",
    "ProgressEvent",
    "ReplicationResult",
    "ReplicationState",
]
