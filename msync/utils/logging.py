"""
Centralized logging utilities for msync

Provides consistent logging patterns with configurable verbosity:
- [INFO] for general information
- [WARN] for warnings
- [ERROR] for errors
- [RESULT] for final results
- [DEBUG] for verbose details
- [SCAN], [PRUNE], [SYNC], [TRANSCODE] for per-phase detail (verbose only)
- [DRY-RUN] for actions that would have been taken

Usage:
    from msync.utils.logging import get_logger, set_verbose_mode

    set_verbose_mode(True)  # Enable detail messages

    logger = get_logger("tree_builder")
    logger.info("Scanning ...")
    logger.scan("Scanning '/music/Album' ...")  # Only shows in verbose mode

All output goes through tqdm.write so log lines never tear a progress bar.
"""

import sys
from typing import Optional

from tqdm import tqdm

# Global logging configuration
_VERBOSE_ENABLED = False
_QUIET_MODE = False


def set_verbose_mode(enabled: bool):
    """Enable or disable verbose (detail) messages globally"""
    global _VERBOSE_ENABLED
    _VERBOSE_ENABLED = enabled


def set_quiet_mode(enabled: bool):
    """Enable or disable quiet mode (suppress INFO and detail messages)"""
    global _QUIET_MODE
    _QUIET_MODE = enabled


def _write(line: str, stream=None):
    tqdm.write(line, file=stream or sys.stdout)


class Logger:
    """Tagged line logger; one instance per module."""

    def __init__(self, module_name: str = ""):
        self.module_name = module_name

    def _emit(self, tag: str, message: str, stream=None):
        _write(f"[{tag}] {message}", stream)

    def _detail(self, tag: str, message: str):
        if _VERBOSE_ENABLED:
            self._emit(tag, message, sys.stderr)

    def debug(self, message: str):
        """Log a detail message (verbose mode only)"""
        self._detail("DEBUG", message)

    def info(self, message: str):
        """Log informational message"""
        if not _QUIET_MODE:
            self._emit("INFO", message)

    def warn(self, message: str):
        """Log warning message"""
        self._emit("WARN", message)

    def error(self, message: str):
        """Log error message"""
        self._emit("ERROR", message, sys.stderr)

    def result(self, message: str):
        """Log result message"""
        if not _QUIET_MODE:
            self._emit("RESULT", message)

    # Domain-specific detail methods
    def scan(self, message: str):
        self._detail("SCAN", message)

    def prune(self, message: str):
        self._detail("PRUNE", message)

    def sync(self, message: str):
        self._detail("SYNC", message)

    def transcode(self, message: str):
        self._detail("TRANSCODE", message)

    def dry_run(self, message: str):
        """Log a would-be action during a dry run (verbose mode only)"""
        self._detail("DRY-RUN", message)


def get_logger(module_name: str = "") -> Logger:
    """Get a logger instance for a module"""
    return Logger(module_name)


def create_progress_bar(total: Optional[int] = None, desc: str = "", unit: str = "it",
                        leave: bool = False) -> tqdm:
    """Create a progress bar with consistent styling.

    Bars are hidden in verbose mode (the detail log replaces them) and when
    output is not a terminal.
    """
    disable = True if _VERBOSE_ENABLED or _QUIET_MODE else None
    return tqdm(total=total, desc=desc, unit=unit, leave=leave, disable=disable)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to a human-readable string"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
