"""Configuration management for msync."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, FrozenSet

import psutil

from .errors import ConfigError

DEFAULT_MEDIA_EXTENSIONS = "mp3,m4a,flac,alac"
TRANSCODE_EXTENSION = ".m4a"

# ffmpeg's aac encoder lands a little above the requested rate, so the encoder
# is asked for (ceiling - 1 kbps) and destination files may reach ceiling + 2 kbps.
ENCODER_UNDERSHOOT_BPS = 1000
ENCODER_TOLERANCE_BPS = 3000


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load environment variables from .env file."""
    if env_path is None:
        # Look for .env in current directory, then in package directory
        candidates = [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for candidate in candidates:
            if candidate.exists():
                env_path = candidate
                break

    env_vars = {}

    if env_path and env_path.exists():
        with open(env_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    if '=' in line:
                        key, value = line.split('=', 1)
                        env_vars[key.strip()] = value.strip()

    return env_vars


def default_worker_count() -> int:
    """Number of available processing units."""
    return psutil.cpu_count(logical=True) or 1


def get_config(env_path: Optional[Path] = None) -> Dict[str, Any]:
    """Get CLI defaults from environment variables and .env file."""
    env_vars = load_env_file(env_path)

    def lookup(key: str, default: Optional[str]) -> Optional[str]:
        return env_vars.get(key, os.getenv(key, default))

    def lookup_int(key: str, default: Optional[str]) -> Optional[int]:
        value = lookup(key, default)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            raise ConfigError(f"{key} must be an integer, got '{value}'") from None

    config = {
        'max_kbps': lookup_int('MSYNC_MAX_KBPS', '192'),
        'file_mode': lookup('MSYNC_FILE_MODE', '0644'),
        'extensions': lookup('MSYNC_MEDIA_EXTENSIONS', DEFAULT_MEDIA_EXTENSIONS),
        'probe': lookup('MSYNC_PROBE', 'ffprobe'),
        # None means one worker per processing unit
        'jobs': lookup_int('MSYNC_JOBS', None),
        'debug': lookup('DEBUG', 'false').lower() in ('true', '1', 'yes'),
    }

    return config


def parse_file_mode(text: str) -> int:
    """Parse an octal file mode such as '0644' or '0o644'."""
    value = text.strip().lower()
    if not value.startswith("0"):
        raise ConfigError(f"file mode must be an octal value beginning with '0' or '0o', got '{text}'")
    digits = value[2:] if value.startswith("0o") else value[1:]
    try:
        mode = int(digits or "0", 8)
    except ValueError:
        raise ConfigError(f"file mode must be an octal value, got '{text}'") from None
    if mode > 0o7777:
        raise ConfigError(f"file mode out of range: '{text}'")
    return mode


def parse_extensions(text: str) -> FrozenSet[str]:
    """Normalize 'mp3, .FLAC' into {'.mp3', '.flac'}."""
    extensions = set()
    for part in text.split(","):
        part = part.strip().lower()
        if not part:
            continue
        extensions.add(part if part.startswith(".") else f".{part}")
    if not extensions:
        raise ConfigError("at least one media extension is required")
    return frozenset(extensions)


@dataclass
class SyncConfig:
    """Settings for one sync run, passed explicitly to every component."""
    source_root: Path
    dest_root: Path
    max_kbps: int = 192
    dry_run: bool = False
    symlink: bool = False
    remove_non_media: bool = False
    file_mode: int = 0o644
    verbose: bool = False
    media_extensions: FrozenSet[str] = field(
        default_factory=lambda: parse_extensions(DEFAULT_MEDIA_EXTENSIONS))
    probe: str = "ffprobe"
    jobs: Optional[int] = None
    ask_trash_permission: bool = False

    def __post_init__(self):
        if self.max_kbps <= 1:
            raise ConfigError(f"max kbps must be greater than 1, got {self.max_kbps}")
        if self.jobs is not None and self.jobs < 1:
            raise ConfigError(f"jobs must be at least 1, got {self.jobs}")
        # Transcoded output must always be recognized as media on the next scan
        self.media_extensions = frozenset(self.media_extensions) | {TRANSCODE_EXTENSION}
        self.source_root = Path(os.path.abspath(self.source_root))
        self.dest_root = Path(os.path.abspath(self.dest_root))

    @property
    def target_bitrate(self) -> int:
        """Bit rate (bps) the encoder is asked for."""
        return self.max_kbps * 1000 - ENCODER_UNDERSHOOT_BPS

    @property
    def target_kbps(self) -> int:
        return self.target_bitrate // 1000

    @property
    def max_dest_bitrate(self) -> int:
        """Highest bit rate (bps) tolerated for a destination media file."""
        return self.target_bitrate + ENCODER_TOLERANCE_BPS

    @property
    def transcode_extension(self) -> str:
        return TRANSCODE_EXTENSION

    @property
    def probe_workers(self) -> int:
        return self.jobs or default_worker_count()

    @property
    def transcode_workers(self) -> int:
        return self.jobs or default_worker_count() + 1
