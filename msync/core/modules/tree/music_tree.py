"""
Music tree model for msync.

A MusicTreeNode represents one file or directory found while scanning a
library root. Nodes are keyed in their parent's ``children`` map by a
normalized name (lowercased, media extension stripped) so that two
independently scanned trees can be compared by identity path: a lossless
``01.flac`` in the source matches a previously transcoded ``01.m4a`` in the
destination.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple, FrozenSet


class NodeKind(Enum):
    DIRECTORY = "directory"
    FILE = "file"
    MEDIA_FILE = "media_file"


def remove_ext(name: str) -> str:
    """Remove the extension, if any, from the given file name."""
    stem, _ = os.path.splitext(name)
    return stem


def is_media_file(name: str, media_extensions: FrozenSet[str]) -> bool:
    return os.path.splitext(name)[1].lower() in media_extensions


def normalize_name(name: str, media_extensions: FrozenSet[str]) -> str:
    """Normalize a base name for cross-tree comparison.

    >>> normalize_name("Track.MP3", frozenset({".mp3"}))
    'track'
    >>> normalize_name("notes.pdf", frozenset({".mp3"}))
    'notes.pdf'
    """
    name = name.lower()
    if is_media_file(name, media_extensions):
        name = remove_ext(name)
    return name


class MusicTreeNode:
    """A file or directory in a scanned music tree.

    ``children`` is a dict only for directories and None for files; that is
    what separates a file from an empty directory.
    """

    __slots__ = ("kind", "path_segments", "absolute_path", "display_name",
                 "size", "bit_rate", "mode", "children")

    def __init__(self, kind: NodeKind, absolute_path: Path, display_name: str,
                 path_segments: Tuple[str, ...] = (), size: int = 0, bit_rate: int = 0,
                 mode: int = 0):
        self.kind = kind
        self.path_segments = tuple(path_segments)
        self.absolute_path = Path(absolute_path)
        self.display_name = display_name
        self.size = size
        self.bit_rate = bit_rate
        self.mode = mode
        self.children: Optional[Dict[str, "MusicTreeNode"]] = {} if kind is NodeKind.DIRECTORY else None

    def __repr__(self):
        return f"MusicTreeNode({self.kind.value}, {'/'.join(self.path_segments) or '<root>'!r})"

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is not NodeKind.DIRECTORY

    @property
    def is_media_file(self) -> bool:
        return self.kind is NodeKind.MEDIA_FILE

    @property
    def normalized_name(self) -> str:
        return self.path_segments[-1] if self.path_segments else ""

    def child_path(self, normalized_name: str) -> Tuple[str, ...]:
        return self.path_segments + (normalized_name,)

    def add_child(self, key: str, child: "MusicTreeNode") -> Optional["MusicTreeNode"]:
        """Insert ``child`` under ``key``; returns the node it replaced, if any."""
        if self.children is None:
            raise TypeError(f"file node '{self.absolute_path}' cannot have children")
        previous = self.children.get(key)
        self.children[key] = child
        return previous

    def remove_child(self, key: str) -> Optional["MusicTreeNode"]:
        if self.children is None:
            return None
        return self.children.pop(key, None)

    def child(self, key: str) -> Optional["MusicTreeNode"]:
        if self.children is None:
            return None
        return self.children.get(key)

    def node_at(self, normalized_path: Iterable[str]) -> Optional["MusicTreeNode"]:
        """Return the node at the given identity path below this node, or None."""
        node: Optional[MusicTreeNode] = self
        for segment in normalized_path:
            node = node.child(segment)
            if node is None:
                return None
        return node

    def has_node_at(self, normalized_path: Iterable[str]) -> bool:
        return self.node_at(normalized_path) is not None

    def walk(self, callback: Callable[["MusicTreeNode"], None]):
        """Call ``callback`` on every node, children before their parent."""
        if self.children:
            for child in list(self.children.values()):
                child.walk(callback)
        callback(self)

    def iter_nodes(self):
        """Yield every node, children before their parent."""
        if self.children:
            for child in list(self.children.values()):
                yield from child.iter_nodes()
        yield self


def calculate_size(node: MusicTreeNode) -> int:
    """Total bytes of all file nodes under and including ``node``."""
    if node.is_file:
        return node.size
    return sum(calculate_size(child) for child in node.children.values())


def count_nodes(node: MusicTreeNode) -> int:
    """Number of nodes under and including ``node``."""
    if node.is_file:
        return 1
    return 1 + sum(count_nodes(child) for child in node.children.values())
