"""caller: async client for gateway operations."""

from caller.client import OperationClient, RemoteOperationError

__all__ = ["OperationClient", "RemoteOperationError"]
