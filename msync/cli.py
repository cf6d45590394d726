"""CLI entry point for msync."""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import SyncConfig, get_config, parse_extensions, parse_file_mode
from .errors import ConfigError, MsyncError
from .core.modules.analysis.media_utils import BITRATE_PROBES
from .core.modules.system.system_utils import install_signal_handlers, show_terminal_cursor
from .utils.logging import get_logger, set_quiet_mode, set_verbose_mode

logger = get_logger("cli")


def create_parser(defaults: Optional[dict] = None) -> argparse.ArgumentParser:
    """Create argument parser; ``defaults`` come from get_config()."""
    defaults = defaults or get_config()
    parser = argparse.ArgumentParser(
        prog="msync",
        description="Sync a music library from a source to dest, re-encoding files with bitrates over "
                    "--max-kbps and copying or making symlinks for other files. Symbolic links in both "
                    "the source and destination directories are followed.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables (or .env):
  MSYNC_MAX_KBPS, MSYNC_FILE_MODE, MSYNC_MEDIA_EXTENSIONS, MSYNC_PROBE, MSYNC_JOBS
        """
    )
    parser.add_argument("--from", dest="source", help="Source directory with music library. (Required)")
    parser.add_argument("--to", dest="dest", help="Destination directory for mirrored/re-encoded music library. (Required)")
    parser.add_argument("--max-kbps", type=int, default=defaults['max_kbps'],
                        help="Maximum bitrate, in Kbps, for destination music library (default: %(default)s)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Do not modify anything on the filesystem.")
    parser.add_argument("--symlink", action="store_true",
                        help="Make symlinks from the destination to the source for music files below the "
                             "maximum bitrate instead of copying them.")
    parser.add_argument("--remove-nonmusic-from-dest", action="store_true",
                        help="Remove any non-music files from the destination.")
    parser.add_argument("--file-mode", default=defaults['file_mode'],
                        help="Octal mode for copied music files. Must begin with '0' or '0o' (default: %(default)s)")
    parser.add_argument("--extensions", default=defaults['extensions'],
                        help="Comma-separated music file extensions (default: %(default)s)")
    parser.add_argument("--probe", choices=sorted(BITRATE_PROBES), default=defaults['probe'],
                        help="Tool used to read file bitrates (default: %(default)s)")
    parser.add_argument("--jobs", type=int, default=defaults['jobs'],
                        help="Parallel probe/transcode workers (default: one probe per processing unit, "
                             "one more for transcodes)")
    parser.add_argument("--ask-trash-permission", action="store_true",
                        help="Trash a temporary file before starting so the OS permission prompt appears immediately.")

    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument("--verbose", action="store_true", default=defaults['debug'],
                                 help="Log detailed output to stderr. Suppresses progress indicators.")
    verbosity_group.add_argument("--quiet", action="store_true",
                                 help="Only print warnings, errors and results.")
    parser.add_argument("--version", action="store_true", help="Print version and exit.")
    return parser


def build_config(args: argparse.Namespace) -> SyncConfig:
    """Turn parsed arguments into a SyncConfig (raises ConfigError)."""
    return SyncConfig(
        source_root=Path(args.source),
        dest_root=Path(args.dest),
        max_kbps=args.max_kbps,
        dry_run=args.dry_run,
        symlink=args.symlink,
        remove_non_media=args.remove_nonmusic_from_dest,
        file_mode=parse_file_mode(args.file_mode),
        verbose=args.verbose,
        media_extensions=parse_extensions(args.extensions),
        probe=args.probe,
        jobs=args.jobs,
        ask_trash_permission=args.ask_trash_permission,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the msync command. Returns the process exit code."""
    try:
        parser = create_parser()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0
    if not args.source or not args.dest:
        parser.print_usage()
        return 1

    set_verbose_mode(args.verbose)
    set_quiet_mode(args.quiet)

    from .core.main import run_sync

    try:
        config = build_config(args)
        install_signal_handlers()
        run_sync(config)
    except (MsyncError, OSError) as e:
        show_terminal_cursor()
        if args.verbose:
            logger.error(str(e))
        print(f"Error: {e}")
        return 1
    return 0


def run():
    """Console-script wrapper."""
    sys.exit(main())


if __name__ == "__main__":
    run()
