"""Error types raised by msync.

Every fatal condition surfaces as a subclass of MsyncError so the CLI can
print a single message and exit non-zero. Warnings (skipped entries, name
collisions) are never raised; they are logged and returned by the scanner.
"""


class MsyncError(Exception):
    """Base class for all fatal msync errors."""


class FilesystemError(MsyncError):
    """stat/list/open/copy/symlink/mkdir failure."""


class ProbeError(MsyncError):
    """Bit-rate probe missing, failed, or produced unparsable output."""


class TranscodeError(MsyncError):
    """Transcoder missing or exited non-zero."""


class DeletionError(MsyncError):
    """Removing a destination item failed; the tree no longer matches disk."""


class ConfigError(MsyncError):
    """Invalid configuration value (raised before any tree work begins)."""
