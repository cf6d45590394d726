"""
Unit tests for destination pruning.
"""

import unittest
from pathlib import Path
from unittest.mock import MagicMock

from msync.config import SyncConfig, parse_extensions
from msync.core.modules.tree import pruner
from msync.core.modules.tree.music_tree import (
    MusicTreeNode, NodeKind, count_nodes, is_media_file, normalize_name,
)
from msync.errors import DeletionError

EXTS = parse_extensions("mp3,m4a,flac,alac")


def build_tree(root_path, entries):
    """Build a tree from {"Album/01.mp3": bit_rate, "Empty/": None, ...}."""
    root = MusicTreeNode(NodeKind.DIRECTORY, Path(root_path), Path(root_path).name)
    for rel, bit_rate in entries.items():
        parts = [p for p in rel.split("/") if p]
        node = root
        for i, part in enumerate(parts):
            key = normalize_name(part, EXTS)
            child = node.child(key)
            if child is None:
                is_dir = i < len(parts) - 1 or rel.endswith("/")
                if is_dir:
                    kind = NodeKind.DIRECTORY
                elif is_media_file(part, EXTS):
                    kind = NodeKind.MEDIA_FILE
                else:
                    kind = NodeKind.FILE
                child = MusicTreeNode(kind, node.absolute_path / part, part, node.child_path(key),
                                      size=10, bit_rate=bit_rate or 0)
                node.add_child(key, child)
            node = child
    return root


class TestRemoveMatching(unittest.TestCase):
    """Test the generic bottom-up removal pass."""

    def setUp(self):
        self.config = SyncConfig(source_root=Path("/src"), dest_root=Path("/dst"))
        self.dry_config = SyncConfig(source_root=Path("/src"), dest_root=Path("/dst"), dry_run=True)
        self.tree = build_tree("/dst", {
            "Album/01.mp3": 128_000,
            "Album/02.flac": 900_000,
            "Album/cover.jpg": None,
            "Other/": None,
        })

    def test_never_matching_predicate_changes_nothing(self):
        deleter = MagicMock()
        before = count_nodes(self.tree)

        count = pruner.remove_matching(self.tree, lambda n: False, "no reason", self.config, deleter)

        self.assertEqual(count, 0)
        self.assertEqual(count_nodes(self.tree), before)
        deleter.assert_not_called()

    def test_removes_from_tree_and_disk(self):
        deleter = MagicMock()

        count = pruner.remove_matching(self.tree, pruner.is_non_media_file,
                                       pruner.NOT_MEDIA_REASON, self.config, deleter)

        self.assertEqual(count, 1)
        self.assertFalse(self.tree.has_node_at(("album", "cover.jpg")))
        deleter.assert_called_once_with(Path("/dst/Album/cover.jpg"))

    def test_children_evaluated_before_parent(self):
        order = []

        def record(node):
            order.append(node.path_segments)
            return False

        pruner.remove_matching(self.tree, record, "r", self.config, MagicMock())

        self.assertLess(order.index(("album", "01")), order.index(("album",)))
        self.assertNotIn((), order)

    def test_removed_directory_is_not_descended_twice(self):
        deleter = MagicMock()

        count = pruner.remove_matching(self.tree, lambda n: n.is_directory and n.display_name == "Album",
                                       "r", self.config, deleter)

        self.assertEqual(count, 1)
        deleter.assert_called_once_with(Path("/dst/Album"))

    def test_directory_emptied_by_a_pass_is_kept_until_empty_pass(self):
        deleter = MagicMock()
        pruner.remove_matching(self.tree, lambda n: n.is_file, "r", self.config, deleter)
        self.assertEqual(self.tree.child("album").children, {})

        count = pruner.remove_matching(self.tree, pruner.is_empty_directory,
                                       pruner.EMPTY_DIRECTORY_REASON, self.config, deleter)

        self.assertEqual(count, 2)
        self.assertEqual(self.tree.children, {})

    def test_dry_run_mutates_tree_without_deleting(self):
        deleter = MagicMock()

        count = pruner.remove_matching(self.tree, pruner.exceeds_bitrate(self.dry_config.max_dest_bitrate),
                                       pruner.bitrate_reason(192), self.dry_config, deleter)

        self.assertEqual(count, 1)
        self.assertFalse(self.tree.has_node_at(("album", "02")))
        deleter.assert_not_called()

    def test_dry_run_needs_no_deleter(self):
        count = pruner.remove_matching(self.tree, pruner.is_non_media_file, "r", self.dry_config)
        self.assertEqual(count, 1)

    def test_deleter_required_outside_dry_run(self):
        with self.assertRaises(ValueError):
            pruner.remove_matching(self.tree, pruner.is_non_media_file, "r", self.config)

    def test_deletion_error_propagates(self):
        deleter = MagicMock(side_effect=DeletionError("permission denied"))

        with self.assertRaises(DeletionError):
            pruner.remove_matching(self.tree, pruner.is_non_media_file, "r", self.config, deleter)


class TestPredicates(unittest.TestCase):
    """Test the four prune predicates."""

    def setUp(self):
        self.source = build_tree("/src", {"Album/01.flac": 900_000, "Album/cover.jpg": None})
        self.dest = build_tree("/dst", {
            "Album/01.m4a": 191_000,
            "Album/02.mp3": 128_000,
            "Album/cover.jpg": None,
            "Gone/": None,
        })

    def test_missing_from_source(self):
        missing = pruner.missing_from(self.source)
        self.assertFalse(missing(self.dest.node_at(("album", "01"))))
        self.assertFalse(missing(self.dest.node_at(("album", "cover.jpg"))))
        self.assertTrue(missing(self.dest.node_at(("album", "02"))))
        self.assertTrue(missing(self.dest.node_at(("gone",))))

    def test_missing_pass_counts_stale_file(self):
        deleter = MagicMock()
        config = SyncConfig(source_root=Path("/src"), dest_root=Path("/dst"))

        count = pruner.remove_matching(self.dest, pruner.missing_from(self.source),
                                       pruner.GONE_FROM_SOURCE_REASON, config, deleter)

        self.assertEqual(count, 2)
        self.assertFalse(self.dest.has_node_at(("album", "02")))
        self.assertTrue(self.dest.has_node_at(("album", "01")))

    def test_non_media(self):
        self.assertTrue(pruner.is_non_media_file(self.dest.node_at(("album", "cover.jpg"))))
        self.assertFalse(pruner.is_non_media_file(self.dest.node_at(("album", "01"))))
        self.assertFalse(pruner.is_non_media_file(self.dest.node_at(("gone",))))

    def test_exceeds_bitrate_uses_tolerance(self):
        config = SyncConfig(source_root=Path("/src"), dest_root=Path("/dst"), max_kbps=192)
        exceeds = pruner.exceeds_bitrate(config.max_dest_bitrate)
        track = self.dest.node_at(("album", "01"))

        for rate, expected in ((191_000, False), (194_000, False), (194_001, True), (320_000, True)):
            with self.subTest(rate=rate):
                track.bit_rate = rate
                self.assertEqual(exceeds(track), expected)
        self.assertFalse(exceeds(self.dest.node_at(("album", "cover.jpg"))))

    def test_empty_directory(self):
        self.assertTrue(pruner.is_empty_directory(self.dest.node_at(("gone",))))
        self.assertFalse(pruner.is_empty_directory(self.dest.node_at(("album",))))
        self.assertFalse(pruner.is_empty_directory(self.dest.node_at(("album", "02"))))

    def test_bitrate_reason(self):
        self.assertEqual(pruner.bitrate_reason(192), "its bitrate exceeds 192 Kbps")


if __name__ == '__main__':
    unittest.main()
