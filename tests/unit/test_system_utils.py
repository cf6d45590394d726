"""
Unit tests for system_utils module.

Tests filesystem primitives, the trash-backed deletion service, size
formatting and process execution.
"""

import io
import os
import shutil
import stat
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from msync.core.modules.system.system_utils import (
    SHOW_CURSOR, ask_trash_permission, copy_file, format_size_both, format_size_iec,
    format_size_si, make_dirs, make_symlink, run_command, show_terminal_cursor, trash_path,
)
from msync.errors import DeletionError, FilesystemError


class TestFilesystemPrimitives(unittest.TestCase):
    """Test copy, mkdir and symlink wrappers."""

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        if self.test_dir.exists():
            shutil.rmtree(self.test_dir)

    def test_copy_file_sets_mode(self):
        source = self.test_dir / "a.mp3"
        source.write_bytes(b"music")
        dest = self.test_dir / "b.mp3"

        copy_file(source, dest, 0o600)

        self.assertEqual(dest.read_bytes(), b"music")
        self.assertEqual(stat.S_IMODE(os.stat(dest).st_mode), 0o600)

    def test_copy_file_overwrites(self):
        source = self.test_dir / "a.mp3"
        source.write_bytes(b"new")
        dest = self.test_dir / "b.mp3"
        dest.write_bytes(b"old contents")

        copy_file(source, dest, 0o644)

        self.assertEqual(dest.read_bytes(), b"new")

    def test_copy_missing_source(self):
        with self.assertRaises(FilesystemError):
            copy_file(self.test_dir / "missing.mp3", self.test_dir / "b.mp3", 0o644)

    def test_make_dirs_nested_and_idempotent(self):
        target = self.test_dir / "a" / "b" / "c"
        make_dirs(target, stat.S_IFDIR | 0o755)
        make_dirs(target, 0o755)
        self.assertTrue(target.is_dir())

    def test_make_dirs_over_file(self):
        blocker = self.test_dir / "file"
        blocker.write_text("x")
        with self.assertRaises(FilesystemError):
            make_dirs(blocker / "sub", 0o755)

    def test_make_symlink(self):
        target = self.test_dir / "a.mp3"
        target.write_bytes(b"x")
        link = self.test_dir / "link.mp3"
        make_symlink(target, link)
        self.assertTrue(link.is_symlink())
        with self.assertRaises(FilesystemError):
            make_symlink(target, link)


class TestTrash(unittest.TestCase):
    """Test the deletion service."""

    @patch('msync.core.modules.system.system_utils.send2trash')
    def test_trash_path(self, mock_send):
        trash_path(Path("/music/dest/old.mp3"))
        mock_send.assert_called_once_with("/music/dest/old.mp3")

    @patch('msync.core.modules.system.system_utils.send2trash', side_effect=OSError("denied"))
    def test_trash_failure(self, mock_send):
        with self.assertRaises(DeletionError):
            trash_path(Path("/music/dest/old.mp3"))

    def test_ask_trash_permission_trashes_temp_file(self):
        deleter = MagicMock()
        ask_trash_permission(deleter)
        deleter.assert_called_once()
        temp_path = deleter.call_args[0][0]
        self.assertTrue(temp_path.name.startswith("msync"))
        # The fake deleter leaves the file behind
        os.remove(temp_path)


class TestSizeFormatting(unittest.TestCase):

    def test_small_values(self):
        self.assertEqual(format_size_si(999), "999 B")
        self.assertEqual(format_size_iec(1023), "1023 B")

    def test_si(self):
        self.assertEqual(format_size_si(1500), "1.5 kB")
        self.assertEqual(format_size_si(2_000_000), "2.0 MB")

    def test_iec(self):
        self.assertEqual(format_size_iec(1536), "1.5 KiB")
        self.assertEqual(format_size_iec(3 * 1024 ** 3), "3.0 GiB")

    def test_both(self):
        self.assertEqual(format_size_both(0), "0 B")
        self.assertEqual(format_size_both(1_500_000), "1.5 MB (1.4 MiB)")


class TestProcessAndTerminal(unittest.TestCase):

    @patch('msync.core.modules.system.system_utils.subprocess.run')
    def test_run_command(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="ok")
        result = run_command(["ffprobe", "-version"])
        self.assertEqual(result.stdout, "ok")
        mock_run.assert_called_once_with(["ffprobe", "-version"], capture_output=True, text=True,
                                         timeout=None, check=False)

    def test_cursor_only_written_to_terminal(self):
        stream = io.StringIO()
        show_terminal_cursor(stream)
        self.assertEqual(stream.getvalue(), "")

        tty = MagicMock()
        tty.isatty.return_value = True
        show_terminal_cursor(tty)
        tty.write.assert_called_once_with(SHOW_CURSOR)


if __name__ == '__main__':
    unittest.main()
