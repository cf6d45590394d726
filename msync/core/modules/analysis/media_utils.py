"""
Media utilities for msync.

This module wraps the external media tools:
- Bit-rate probing with ffprobe (any platform) or afinfo (macOS)
- AAC transcoding with ffmpeg, with a degraded audio-only invocation
"""

import os
import re
from pathlib import Path
from typing import Callable, Dict

from ..system.system_utils import run_command
from ....errors import ProbeError, TranscodeError
from ....utils.logging import get_logger

logger = get_logger("media_utils")

AFINFO_BITRATE_RE = re.compile(r"bit rate: (\d+) bits per second")


def _probe_output(tool: str, cmd: list[str], path: Path) -> str:
    try:
        result = run_command(cmd)
    except FileNotFoundError as e:
        raise ProbeError(f"could not run {tool} to get bitrate: {e}") from e
    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise ProbeError(f"{tool} failed for '{path}' (exit code {result.returncode}): {detail}")
    out = (result.stdout or "").strip()
    if not out:
        raise ProbeError(f"{tool} returned no output for '{path}'")
    return out


def _parse_bitrate(tool: str, value: str, path: Path) -> int:
    try:
        bitrate = int(value)
    except ValueError:
        raise ProbeError(f"failed to parse bitrate '{value}' from {tool} for '{path}'") from None
    if bitrate <= 0:
        raise ProbeError(f"{tool} reported a non-positive bitrate ({bitrate}) for '{path}'")
    return bitrate


def probe_bitrate_ffprobe(path: Path) -> int:
    """Return the container bit rate of ``path`` in bits per second, via ffprobe."""
    cmd = [
        "ffprobe", "-v", "error",
        "-show_entries", "format=bit_rate",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    out = _probe_output("ffprobe", cmd, path)
    first_line = out.splitlines()[0].strip()
    if first_line.lower() == "n/a":
        raise ProbeError(f"ffprobe could not determine a bitrate for '{path}'")
    return _parse_bitrate("ffprobe", first_line, path)


def probe_bitrate_afinfo(path: Path) -> int:
    """Return the bit rate of ``path`` in bits per second, via macOS afinfo."""
    out = _probe_output("afinfo", ["afinfo", str(path)], path)
    match = AFINFO_BITRATE_RE.search(out)
    if not match:
        raise ProbeError(f"failed to parse output from afinfo for '{path}'")
    return _parse_bitrate("afinfo", match.group(1), path)


BITRATE_PROBES: Dict[str, Callable[[Path], int]] = {
    "ffprobe": probe_bitrate_ffprobe,
    "afinfo": probe_bitrate_afinfo,
}


def get_bitrate_probe(name: str) -> Callable[[Path], int]:
    try:
        return BITRATE_PROBES[name]
    except KeyError:
        raise ProbeError(f"unknown bitrate probe '{name}' (choose from {', '.join(sorted(BITRATE_PROBES))})") from None


def build_transcode_cmd(source: Path, dest: Path, target_kbps: int, discard_non_audio: bool = False) -> list[str]:
    """Build the ffmpeg command for an AAC transcode.

    The first attempt copies any video stream (embedded album art) as-is;
    the degraded attempt drops it with -vn.
    """
    cmd = ["ffmpeg", "-loglevel", "warning", "-hide_banner", "-nostdin", "-y", "-i", str(source)]
    if discard_non_audio:
        cmd += ["-vn"]
    else:
        cmd += ["-c:v", "copy"]
    cmd += ["-c:a", "aac", "-b:a", f"{target_kbps}k", str(dest)]
    return cmd


def remove_partial_output(dest: Path) -> None:
    try:
        os.remove(dest)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warn(f"could not remove partial output '{dest}': {e}")


def transcode_file(source: Path, dest: Path, target_kbps: int, discard_non_audio: bool = False) -> None:
    """
    Transcode ``source`` to AAC at ``target_kbps`` into ``dest``.

    Raises:
        TranscodeError if ffmpeg is missing or fails. ``dest`` is removed on
        failure so it is never left behind as a truncated file.
    """
    cmd = build_transcode_cmd(source, dest, target_kbps, discard_non_audio)
    try:
        result = run_command(cmd)
    except FileNotFoundError as e:
        raise TranscodeError(f"could not run ffmpeg: {e}") from e
    if result.returncode != 0:
        remove_partial_output(dest)
        output = "\n".join(s.strip() for s in (result.stdout, result.stderr) if s and s.strip())
        raise TranscodeError(f"transcode '{source}' failed (exit code {result.returncode}): {output}")
