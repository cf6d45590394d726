"""
Test package for msync.

Unit tests live in tests/unit, end-to-end runs against temporary directories
in tests/integration, and guards for previously fixed behavior in
tests/regression. External tools (ffprobe, afinfo, ffmpeg) and the platform
trash are always replaced with fakes.
"""

# Test configuration
TEST_CONFIG = {
    'mock_subprocess': True,  # Never run the real media tools
}

__version__ = "1.0.0"
