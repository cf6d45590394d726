"""
Main sync orchestration module for msync.

This module owns the source and destination trees for the duration of one
run and hands the destination tree to each phase in turn:

1. Scan source and destination (with concurrent bit-rate probing)
2. Prune destination: gone from source, non-media (optional), over ceiling
3. Sync walk: mkdir / copy / symlink, queue transcodes
4. Drain the transcode queue on a worker pool
5. Prune now-empty destination directories
6. Report the resulting destination size
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional

from .modules.tree.music_tree import MusicTreeNode, calculate_size, count_nodes
from .modules.tree.tree_builder import TreeBuilder
from .modules.tree import pruner
from .modules.processing.sync_planner import SyncPlanner
from .modules.processing.transcode_scheduler import TranscodeScheduler
from .modules.analysis.media_utils import get_bitrate_probe, transcode_file
from .modules.system.system_utils import ask_trash_permission, format_size_both, trash_path
from ..config import SyncConfig
from ..utils.logging import get_logger, create_progress_bar, format_duration

logger = get_logger("sync_main")


@dataclass
class SyncReport:
    """What a run did (or, in a dry run, would have done)."""
    source_size: int = 0
    dest_size_before: int = 0
    dest_size_after: int = 0
    removed: Dict[str, int] = field(default_factory=dict)
    synced_count: int = 0
    transcoded_count: int = 0
    warnings: list = field(default_factory=list)


def _scan(label: str, root_path: Path, config: SyncConfig, probe) -> tuple:
    logger.info(f"Scanning {label} directory ({root_path}) ...")
    with create_progress_bar(desc="scanning", unit="items") as bar:
        builder = TreeBuilder(config, probe, progress=lambda n: bar.update(1))
        result = builder.build(root_path, resolve_bitrates=False)

    pending = sum(1 for n in result.root.iter_nodes() if n.is_media_file and n.bit_rate == 0)
    if pending:
        with create_progress_bar(total=pending, desc="checking bitrates", unit="files") as bar:
            builder.resolve_bitrates(result.root, on_done=lambda n: bar.update(1))

    size = calculate_size(result.root)
    logger.info(f"{label.capitalize()} tree ({root_path}) size is {format_size_both(size)}")
    return result.root, result.warnings, size


def _prune_pass(dest_tree: MusicTreeNode, predicate, reason: str, config: SyncConfig,
                deleter, removed_label: str) -> int:
    total = count_nodes(dest_tree)
    with create_progress_bar(total=total, desc="checking", unit="items") as bar:
        def counted(node):
            bar.update(1)
            return predicate(node)
        count = pruner.remove_matching(dest_tree, counted, reason, config, deleter)

    if count > 0:
        if config.dry_run:
            logger.result(f"[dry run] Would remove {count} {removed_label}")
        else:
            logger.result(f"Removed {count} {removed_label}")
    else:
        logger.info("0 files/directories affected.")
    return count


def run_sync(config: SyncConfig,
             probe: Optional[Callable[[Path], int]] = None,
             transcoder: Optional[Callable[..., None]] = None,
             deleter: Optional[Callable[[Path], None]] = None,
             planner: Optional[SyncPlanner] = None) -> SyncReport:
    """
    Run one full sync of ``config.source_root`` into ``config.dest_root``.

    Collaborators default to the configured bit-rate probe, ffmpeg and the
    platform trash; pass fakes to run without external tools.

    Raises:
        MsyncError subclasses on the first fatal error of any phase.
    """
    started = time.time()
    probe = probe or get_bitrate_probe(config.probe)
    transcoder = transcoder or transcode_file
    deleter = deleter or trash_path
    report = SyncReport()

    if config.ask_trash_permission and not config.dry_run:
        ask_trash_permission(deleter)

    source_tree, warnings, report.source_size = _scan("source", config.source_root, config, probe)
    report.warnings.extend(warnings)
    dest_tree, warnings, report.dest_size_before = _scan("destination", config.dest_root, config, probe)
    report.warnings.extend(warnings)

    source_desc = f"source directory ({config.source_root})"
    dest_desc = f"destination ({config.dest_root})"

    logger.info("Removing files/directories from the destination directory tree that are missing in source directory tree ...")
    report.removed["missing"] = _prune_pass(
        dest_tree, pruner.missing_from(source_tree), pruner.GONE_FROM_SOURCE_REASON, config, deleter,
        f"files/directories from {dest_desc} because the equivalent item is gone from {source_desc}")

    if config.remove_non_media:
        logger.info("Removing non-music files from the destination directory tree ...")
        report.removed["non_media"] = _prune_pass(
            dest_tree, pruner.is_non_media_file, pruner.NOT_MEDIA_REASON, config, deleter,
            f"non-music files from {dest_desc}")

    logger.info(f"Removing music files that exceed {config.max_kbps} Kbps from the destination directory tree ...")
    report.removed["bitrate"] = _prune_pass(
        dest_tree, pruner.exceeds_bitrate(config.max_dest_bitrate), pruner.bitrate_reason(config.max_kbps),
        config, deleter, f"files from {dest_desc} because their bitrate exceeded {config.max_kbps} Kbps")

    other = "symlinked" if config.symlink else "copied"
    logger.info(f"Syncing music files from source to destination. Files over {config.max_kbps} Kbps "
                f"will be queued for transcoding; others will be {other}.")
    with create_progress_bar(total=count_nodes(source_tree), desc="syncing", unit="items") as bar:
        planner = planner or SyncPlanner(config)
        planner.progress = lambda n: bar.update(1)
        sync_result = planner.sync(source_tree, dest_tree)
    report.synced_count = sync_result.synced_count
    if config.dry_run:
        logger.result(f"[dry run] Would synchronize or enqueue {sync_result.synced_count} music files.")
    else:
        logger.result(f"Synchronized or enqueued {sync_result.synced_count} music files.")

    queue = sync_result.queue
    logger.info(f"Transcoding {len(queue)} music files from source to destination ...")
    with create_progress_bar(total=len(queue), desc="transcoding", unit="files") as bar:
        scheduler = TranscodeScheduler(config, transcoder=transcoder)
        report.transcoded_count = scheduler.run(queue, on_done=lambda n: bar.update(1))
    if queue:
        if config.dry_run:
            logger.result(f"[dry run] Would transcode {len(queue)} music files.")
        else:
            logger.result(f"Transcoded {len(queue)} music files.")
    else:
        logger.info("Nothing to transcode.")

    logger.info("Removing empty directories from the destination directory tree ...")
    report.removed["empty"] = _prune_pass(
        dest_tree, pruner.is_empty_directory, pruner.EMPTY_DIRECTORY_REASON, config, deleter,
        f"empty directories from {dest_desc}")

    report.dest_size_after = calculate_size(dest_tree)
    symlink_note = " (after resolving symlinks created during sync)" if config.symlink else ""
    if config.dry_run:
        logger.result(f"[dry run] Destination library size is estimated to be "
                      f"{format_size_both(report.dest_size_after)}{symlink_note}.")
    else:
        logger.result(f"Destination library size is now {format_size_both(report.dest_size_after)}{symlink_note}.")
    logger.info(f"Completed in {format_duration(time.time() - started)}!")
    return report
