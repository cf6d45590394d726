"""
System utilities for msync.

This module provides system-level utilities including:
- Process execution for the external media tools
- Filesystem primitives (copy, mkdir -p, symlink) with msync error types
- The recoverable deletion service (send to trash)
- Human readable sizes
- Signal handling and terminal cursor restore
"""

import os
import sys
import shlex
import shutil
import signal
import tempfile
import subprocess
from pathlib import Path
from typing import Optional

from send2trash import send2trash

from ....errors import DeletionError, FilesystemError
from ....utils.logging import get_logger

logger = get_logger("system_utils")

SHOW_CURSOR = "\033[?25h"


def run_command(cmd: list[str], timeout: Optional[int] = None, capture_output: bool = True,
                text: bool = True, check: bool = False) -> subprocess.CompletedProcess:
    """
    Standardized subprocess command runner with consistent error handling.

    Args:
        cmd: Command as list of strings
        timeout: Timeout in seconds (default: none; external tools may run long)
        capture_output: Whether to capture stdout/stderr (default: True)
        text: Whether to use text mode (default: True)
        check: Whether to raise exception on non-zero exit (default: False)

    Returns:
        CompletedProcess object

    Raises:
        FileNotFoundError if the executable is not on PATH.
    """
    logger.debug("Command: " + " ".join(shlex.quote(c) for c in cmd))
    try:
        return subprocess.run(
            cmd,
            capture_output=capture_output,
            text=text,
            timeout=timeout,
            check=check
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd[:3])}...")
        raise


def copy_file(source: Path, dest: Path, mode: int) -> None:
    """Copy ``source`` to ``dest``, creating ``dest`` with the given permissions."""
    try:
        with open(source, "rb") as fsrc:
            fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
            with os.fdopen(fd, "wb") as fdst:
                shutil.copyfileobj(fsrc, fdst)
    except OSError as e:
        raise FilesystemError(f"failed to copy '{source}' to '{dest}': {e}") from e


def make_dirs(path: Path, mode: int) -> None:
    """mkdir -p with the given mode."""
    try:
        os.makedirs(path, mode=mode & 0o7777, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"failed to create directory '{path}': {e}") from e


def make_symlink(target: Path, link_path: Path) -> None:
    try:
        os.symlink(target, link_path)
    except OSError as e:
        raise FilesystemError(f"failed to symlink '{link_path}' to '{target}': {e}") from e


def trash_path(path: Path) -> None:
    """Move ``path`` to the platform trash so the removal can be undone."""
    try:
        send2trash(str(path))
    except OSError as e:
        raise DeletionError(f"failed to trash '{path}': {e}") from e


def ask_trash_permission(deleter=trash_path) -> None:
    """Trash a throwaway file so any OS permission prompt appears up front."""
    fd, temp_path = tempfile.mkstemp(prefix="msync")
    os.close(fd)
    deleter(Path(temp_path))


def format_size(bytes_size: int, unit_base: int = 1024, units: str = "KMGTPE", suffix: str = "iB") -> str:
    """Convert bytes to human readable format, e.g. '1.5 MiB'."""
    if abs(bytes_size) < unit_base:
        return f"{bytes_size} B"
    size = float(bytes_size)
    exp = -1
    while abs(size) >= unit_base and exp < len(units) - 1:
        size /= unit_base
        exp += 1
    return f"{size:.1f} {units[exp]}{suffix}"


def format_size_si(bytes_size: int) -> str:
    """Base-10 units: '1.5 MB'."""
    return format_size(bytes_size, 1000, "kMGTPE", "B")


def format_size_iec(bytes_size: int) -> str:
    """Base-2 units: '1.4 MiB'."""
    return format_size(bytes_size, 1024, "KMGTPE", "iB")


def format_size_both(bytes_size: int) -> str:
    """Both styles: '1.5 MB (1.4 MiB)'."""
    if bytes_size == 0:
        return "0 B"
    return f"{format_size_si(bytes_size)} ({format_size_iec(bytes_size)})"


def show_terminal_cursor(stream=None) -> None:
    """Emit the show-cursor escape if ``stream`` is a terminal."""
    stream = stream or sys.stdout
    try:
        if stream.isatty():
            stream.write(SHOW_CURSOR)
            stream.flush()
    except (OSError, ValueError):
        pass


def _terminate(signum, frame):
    show_terminal_cursor()
    # In-flight transcodes are abandoned; partial output is cleaned up next run.
    os._exit(1)


def install_signal_handlers() -> None:
    """Restore the terminal and exit immediately on SIGINT/SIGTERM/SIGQUIT."""
    for name in ("SIGINT", "SIGTERM", "SIGQUIT"):
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _terminate)
