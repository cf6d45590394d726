"""
msync - mirror a music library, transcoding files above a bit-rate ceiling.
"""

__version__ = "1.0.0"

from .config import SyncConfig, get_config, load_env_file
from .errors import (
    MsyncError, FilesystemError, ProbeError, TranscodeError, DeletionError, ConfigError,
)


def get_sync_functions():
    """Get the orchestration entry points (imported on-demand)."""
    from .core.main import run_sync, SyncReport
    return {
        'run_sync': run_sync,
        'SyncReport': SyncReport,
    }


__all__ = [
    "SyncConfig",
    "get_config",
    "load_env_file",
    "get_sync_functions",
    "MsyncError",
    "FilesystemError",
    "ProbeError",
    "TranscodeError",
    "DeletionError",
    "ConfigError",
]
