"""
Tree scanning for msync.

TreeBuilder stats a root path and everything beneath it (following
symlinks), classifies each entry as directory / file / media file, and then
resolves the bit rate of every media file with a bounded pool of probe
workers. Entries that are neither directories nor regular files (sockets,
FIFOs, devices) are skipped with a warning, and sibling names that collide
after normalization keep the last one listed, also with a warning.
"""

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .music_tree import MusicTreeNode, NodeKind, is_media_file, normalize_name
from ..processing.work_pool import run_workers
from ....config import SyncConfig
from ....errors import FilesystemError
from ....utils.logging import get_logger

logger = get_logger("tree_builder")


@dataclass
class BuildResult:
    """Result of scanning one tree."""
    root: MusicTreeNode
    warnings: List[str] = field(default_factory=list)
    probed: int = 0


class TreeBuilder:
    """Scans a directory tree into MusicTreeNodes."""

    def __init__(self, config: SyncConfig, probe: Callable[[Path], int],
                 progress: Optional[Callable[[int], None]] = None):
        self.config = config
        self.probe = probe
        self.progress = progress
        self._warnings: List[str] = []
        self._scanned = 0

    def _warn(self, message: str):
        logger.warn(message)
        self._warnings.append(message)

    def _tick(self):
        self._scanned += 1
        if self.progress is not None:
            self.progress(self._scanned)

    def build(self, root_path: Path, resolve_bitrates: bool = True) -> BuildResult:
        """
        Scan ``root_path`` into a tree.

        Args:
            root_path: Directory (or file) to scan.
            resolve_bitrates: Probe every media file whose bit rate is unknown.

        Returns:
            BuildResult with the tree root and any warnings emitted.

        Raises:
            FilesystemError if the root or any entry cannot be stat'd/listed.
            ProbeError if any bit-rate probe fails.
        """
        self._warnings = []
        self._scanned = 0
        root = self._make_node(Path(root_path), (), is_root=True)
        if root is None:
            raise FilesystemError(f"'{root_path}' is not a directory or regular file")

        probed = 0
        if resolve_bitrates:
            probed = self.resolve_bitrates(root)
        return BuildResult(root=root, warnings=list(self._warnings), probed=probed)

    def _make_node(self, path: Path, parent_segments: Tuple[str, ...],
                   is_root: bool = False) -> Optional[MusicTreeNode]:
        logger.scan(f"Scanning '{path}' ...")
        try:
            info = os.stat(path)
        except OSError as e:
            raise FilesystemError(f"failed to stat '{path}': {e}") from e
        self._tick()

        name = path.name
        extensions = self.config.media_extensions
        segments = () if is_root else parent_segments + (normalize_name(name, extensions),)

        if stat.S_ISDIR(info.st_mode):
            node = MusicTreeNode(NodeKind.DIRECTORY, path, name, segments, mode=info.st_mode)
            self._scan_children(node)
            return node
        if stat.S_ISREG(info.st_mode):
            kind = NodeKind.MEDIA_FILE if is_media_file(name, extensions) else NodeKind.FILE
            return MusicTreeNode(kind, path, name, segments, size=info.st_size, mode=info.st_mode)

        self._warn(f"Skipping '{path}': it is not a regular file.")
        return None

    def _scan_children(self, node: MusicTreeNode):
        try:
            names = sorted(os.listdir(node.absolute_path))
        except OSError as e:
            raise FilesystemError(f"failed to list '{node.absolute_path}': {e}") from e

        for name in names:
            child = self._make_node(node.absolute_path / name, node.path_segments)
            if child is None:
                continue
            previous = node.add_child(child.normalized_name, child)
            if previous is not None:
                self._warn(
                    f"Normalized name collision in '{node.absolute_path}': "
                    f"'{previous.display_name}' and '{child.display_name}'; keeping '{child.display_name}'."
                )

    def resolve_bitrates(self, root: MusicTreeNode,
                         on_done: Optional[Callable[[int], None]] = None) -> int:
        """Probe every media file with an unknown bit rate; returns the number probed."""
        pending = [n for n in root.iter_nodes() if n.is_media_file and n.bit_rate == 0]
        if not pending:
            return 0
        workers = self.config.probe_workers
        logger.debug(f"will run {workers} workers to check {len(pending)} file bitrates")

        def probe_node(node: MusicTreeNode):
            node.bit_rate = self.probe(node.absolute_path)

        return run_workers(pending, probe_node, workers, on_done=on_done, name="probe")
