"""
Source-to-destination sync walk for msync.

SyncPlanner walks the source tree once (children before parents) and, for
every media file or directory without a counterpart at the same identity
path in the destination tree:

- creates missing destination directories (once per directory path),
- copies or symlinks media files within the bit-rate ceiling, or
- queues a TranscodeOperation for files above it, inserting a placeholder
  node so later lookups see the file as planned.

Non-media files are never synced. Existing destination files are not
re-checked here; bit-rate drift is handled by the prune pass.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Set

from ..tree.music_tree import MusicTreeNode, NodeKind, normalize_name, remove_ext
from ..system.system_utils import copy_file, make_dirs, make_symlink
from ....config import SyncConfig
from ....errors import FilesystemError
from ....utils.logging import get_logger

logger = get_logger("sync_planner")


@dataclass
class TranscodeOperation:
    """A source media file and the placeholder destination node it will fill."""
    source: MusicTreeNode
    dest: MusicTreeNode


@dataclass
class SyncResult:
    queue: List[TranscodeOperation] = field(default_factory=list)
    synced_count: int = 0


class SyncPlanner:
    """Mirrors missing source entries into the destination tree and disk."""

    def __init__(self, config: SyncConfig,
                 copier: Callable[[Path, Path, int], None] = copy_file,
                 linker: Callable[[Path, Path], None] = make_symlink,
                 mkdir: Callable[[Path, int], None] = make_dirs,
                 progress: Optional[Callable[[int], None]] = None):
        self.config = config
        self.copier = copier
        self.linker = linker
        self.mkdir = mkdir
        self.progress = progress

    def sync(self, source: MusicTreeNode, dest: MusicTreeNode) -> SyncResult:
        """
        Walk ``source`` and bring ``dest`` (tree and disk) up to date.

        Returns:
            SyncResult with the transcode queue and the number of media files
            synced or enqueued.

        Raises:
            FilesystemError on the first failed copy, symlink, mkdir or stat.
            Work already done stays on disk.
        """
        result = SyncResult()
        created_dirs: Set[Path] = set()
        visited = 0

        def visit(node: MusicTreeNode):
            nonlocal visited
            visited += 1
            if self.progress is not None:
                self.progress(visited)
            if self._sync_node(node, source, dest, created_dirs, result.queue):
                result.synced_count += 1

        source.walk(visit)
        return result

    def _dest_path_for(self, node: MusicTreeNode, source: MusicTreeNode, dest: MusicTreeNode) -> Path:
        relative = node.absolute_path.relative_to(source.absolute_path)
        return dest.absolute_path / relative

    def _sync_node(self, node: MusicTreeNode, source: MusicTreeNode, dest: MusicTreeNode,
                   created_dirs: Set[Path], queue: List[TranscodeOperation]) -> bool:
        if node.is_file and not node.is_media_file:
            return False
        if dest.has_node_at(node.path_segments):
            return False

        config = self.config
        dest_path = self._dest_path_for(node, source, dest)
        needs_transcode = node.is_media_file and node.bit_rate > config.max_dest_bitrate
        if needs_transcode:
            dest_path = dest_path.with_name(remove_ext(dest_path.name) + config.transcode_extension)
            logger.sync(f"{node.absolute_path} is missing from destination; will be transcoded to {dest_path}")
        elif node.is_file:
            verb = "symlinked" if config.symlink else "copied"
            logger.sync(f"{node.absolute_path} is missing from destination; will be {verb} to {dest_path}")

        dest_dir_path = dest_path.parent if node.is_file else dest_path
        if dest_dir_path not in created_dirs:
            if config.dry_run:
                logger.dry_run(f"Would mkdir -p '{dest_dir_path}'")
            else:
                logger.sync(f"mkdir -p '{dest_dir_path}'")
                self.mkdir(dest_dir_path, dest.mode)
            created_dirs.add(dest_dir_path)

        dest_dir_node = self._ensure_directory_nodes(dest, dest_dir_path)
        if node.is_directory:
            return False

        dest_name = dest_path.name
        dest_key = normalize_name(dest_name, config.media_extensions)

        if needs_transcode:
            logger.sync(f"Queueing transcode of '{node.absolute_path}' to '{dest_path}' at {config.target_kbps}k ...")
            placeholder = MusicTreeNode(
                NodeKind.MEDIA_FILE, dest_path, dest_name, dest_dir_node.child_path(dest_key),
                size=0, bit_rate=config.target_bitrate,
            )
            dest_dir_node.add_child(dest_key, placeholder)
            queue.append(TranscodeOperation(source=node, dest=placeholder))
            return True

        size, mode = self._place_file(node, dest_path)
        dest_dir_node.add_child(dest_key, MusicTreeNode(
            NodeKind.MEDIA_FILE, dest_path, dest_name, dest_dir_node.child_path(dest_key),
            size=size, bit_rate=node.bit_rate, mode=mode,
        ))
        return True

    def _place_file(self, node: MusicTreeNode, dest_path: Path):
        """Copy or symlink ``node`` to ``dest_path``; returns the resulting (size, mode)."""
        config = self.config
        if config.dry_run:
            verb = "symlink" if config.symlink else "copy"
            logger.dry_run(f"Would {verb} '{node.absolute_path}' to '{dest_path}'")
            return node.size, config.file_mode

        if config.symlink:
            logger.sync(f"Symlinking '{dest_path}' to '{node.absolute_path}'")
            self.linker(node.absolute_path, dest_path)
        else:
            logger.sync(f"Copying '{node.absolute_path}' to '{dest_path}'")
            self.copier(node.absolute_path, dest_path, config.file_mode)
        try:
            info = os.stat(dest_path)
        except OSError as e:
            raise FilesystemError(f"failed to stat '{dest_path}': {e}") from e
        return info.st_size, info.st_mode

    def _ensure_directory_nodes(self, dest: MusicTreeNode, dest_dir_path: Path) -> MusicTreeNode:
        """Walk (creating as needed) Directory nodes from ``dest`` down to ``dest_dir_path``."""
        current = dest
        current_path = dest.absolute_path
        for part in dest_dir_path.relative_to(dest.absolute_path).parts:
            current_path = current_path / part
            key = normalize_name(part, self.config.media_extensions)
            child = current.child(key)
            if child is None:
                child = MusicTreeNode(NodeKind.DIRECTORY, current_path, part,
                                      current.child_path(key), mode=dest.mode)
                current.add_child(key, child)
            current = child
        return current
