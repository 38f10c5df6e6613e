"""Synchronization between the local store and the remote backend."""

from .engine import LIKED_IDS_KEY, SyncEngine

__all__ = ["LIKED_IDS_KEY", "SyncEngine"]
