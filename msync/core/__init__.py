"""Core sync orchestration and tree modules."""

from .main import run_sync, SyncReport

__all__ = ["run_sync", "SyncReport"]
