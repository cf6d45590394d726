"""
Destination pruning for msync.

remove_matching() walks a tree bottom-up and removes every child for which a
predicate holds, both from its parent's ``children`` map and (outside a dry
run) from disk through the deletion service. A child's own descendants are
processed before the predicate is evaluated on the child, but the predicate
is not re-evaluated on a directory after its children change: directories
emptied by a pass are removed by the separate empty-directory pass.

In a dry run the tree is still mutated, so later passes and the final size
estimate see the hypothetical post-prune state.
"""

from pathlib import Path
from typing import Callable, Optional

from .music_tree import MusicTreeNode
from ....config import SyncConfig
from ....utils.logging import get_logger

logger = get_logger("pruner")

Predicate = Callable[[MusicTreeNode], bool]

GONE_FROM_SOURCE_REASON = "item is gone from source directory"
NOT_MEDIA_REASON = "file is not a music file"
EMPTY_DIRECTORY_REASON = "directory is empty"


def remove_matching(root: MusicTreeNode, predicate: Predicate, reason: str,
                    config: SyncConfig, deleter: Optional[Callable[[Path], None]] = None) -> int:
    """
    Remove every descendant of ``root`` matching ``predicate``.

    Args:
        root: Tree to prune in place. ``root`` itself is never removed.
        predicate: Called once per visited descendant.
        reason: Human readable reason, used in log lines.
        config: Supplies the dry-run switch.
        deleter: Deletion service; required unless ``config.dry_run``.

    Returns:
        Number of nodes removed.

    Raises:
        DeletionError (or whatever ``deleter`` raises) on the first failed
        removal; the remaining tree is left as-is.
    """
    if not config.dry_run and deleter is None:
        raise ValueError("a deleter is required outside of a dry run")
    return _remove_children_matching(root, predicate, reason, config.dry_run, deleter)


def _remove_children_matching(node: MusicTreeNode, predicate: Predicate, reason: str,
                              dry_run: bool, deleter) -> int:
    if not node.children:
        return 0
    removed = 0
    for key, child in list(node.children.items()):
        removed += _remove_children_matching(child, predicate, reason, dry_run, deleter)

        if not predicate(child):
            continue
        node.remove_child(key)
        if dry_run:
            logger.dry_run(f"Would remove '{child.absolute_path}' because {reason}.")
        else:
            logger.prune(f"Removing '{child.absolute_path}' because {reason}.")
            deleter(child.absolute_path)
        removed += 1
    return removed


def missing_from(source_root: MusicTreeNode) -> Predicate:
    """Node has no counterpart at the same identity path in ``source_root``."""
    return lambda n: not source_root.has_node_at(n.path_segments)


def is_non_media_file(node: MusicTreeNode) -> bool:
    return node.is_file and not node.is_media_file


def exceeds_bitrate(max_bitrate: int) -> Predicate:
    """Media file whose bit rate (bps) is above ``max_bitrate``."""
    return lambda n: n.is_media_file and n.bit_rate > max_bitrate


def is_empty_directory(node: MusicTreeNode) -> bool:
    return node.is_directory and not node.children


def bitrate_reason(max_kbps: int) -> str:
    return f"its bitrate exceeds {max_kbps} Kbps"
