"""
Transcode queue draining for msync.

A fixed pool of workers claims TranscodeOperations one at a time. Each
operation's destination node is owned by exactly one worker, so results are
written back to the tree without further locking. The first failure stops
new claims and is re-raised once all workers have exited.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional

from .sync_planner import TranscodeOperation
from .work_pool import run_workers
from ..analysis.media_utils import remove_partial_output, transcode_file
from ....config import SyncConfig
from ....errors import FilesystemError, TranscodeError
from ....utils.logging import get_logger

logger = get_logger("transcode_scheduler")

Transcoder = Callable[..., None]


def estimate_transcoded_size(source_size: int, source_bitrate: int, target_bitrate: int) -> int:
    """Scale ``source_size`` linearly by target/source bit rate."""
    if source_bitrate <= 0:
        return source_size
    return int(round(source_size / source_bitrate * target_bitrate))


class TranscodeScheduler:
    """Runs queued transcodes on a bounded worker pool."""

    def __init__(self, config: SyncConfig, transcoder: Transcoder = transcode_file,
                 cleanup: Callable[[Path], None] = remove_partial_output):
        self.config = config
        self.transcoder = transcoder
        self.cleanup = cleanup

    def run(self, queue: List[TranscodeOperation], concurrency: Optional[int] = None,
            on_done: Optional[Callable[[int], None]] = None) -> int:
        """
        Drain ``queue``.

        Args:
            queue: Operations produced by SyncPlanner.
            concurrency: Worker count (default: processing units + 1).
            on_done: Progress callback with the running completion count.

        Returns:
            Number of operations completed.

        Raises:
            TranscodeError or FilesystemError from the first failed operation.
        """
        workers = concurrency or self.config.transcode_workers
        logger.debug(f"using {workers} parallel transcode tasks")
        return run_workers(queue, self._process, workers, on_done=on_done, name="transcode")

    def _process(self, op: TranscodeOperation):
        config = self.config
        source_path = op.source.absolute_path
        dest_path = op.dest.absolute_path
        bitrate_str = f"{config.target_kbps}k"

        if config.dry_run:
            logger.dry_run(f"Would transcode '{source_path}' to '{dest_path}' at {bitrate_str}")
            op.dest.mode = config.file_mode
            op.dest.size = estimate_transcoded_size(op.source.size, op.source.bit_rate, config.target_bitrate)
            return

        logger.transcode(f"Transcoding '{source_path}' to '{dest_path}' at {bitrate_str} ...")
        try:
            self.transcoder(source_path, dest_path, config.target_kbps, discard_non_audio=False)
        except TranscodeError as first_error:
            self.cleanup(dest_path)
            logger.transcode(f"Transcoding of '{source_path}' failed. Trying again without video. Error was: {first_error}")
            try:
                self.transcoder(source_path, dest_path, config.target_kbps, discard_non_audio=True)
            except TranscodeError:
                self.cleanup(dest_path)
                raise

        try:
            info = os.stat(dest_path)
        except OSError as e:
            self.cleanup(dest_path)
            raise FilesystemError(f"failed to stat transcoded file '{dest_path}': {e}") from e
        op.dest.size = info.st_size
        op.dest.mode = info.st_mode
