"""Remote status/dialogue service client."""

from .client import (
    AgentStatus,
    ChatReply,
    NpcDirectory,
    NpcInfo,
    SyncClient,
    SyncClientConfig,
    SyncDecodeError,
    SyncError,
    SyncHttpStatusError,
    SyncResult,
    SyncTransportError,
)

__all__ = [
    "AgentStatus",
    "ChatReply",
    "NpcDirectory",
    "NpcInfo",
    "SyncClient",
    "SyncClientConfig",
    "SyncDecodeError",
    "SyncError",
    "SyncHttpStatusError",
    "SyncResult",
    "SyncTransportError",
]
