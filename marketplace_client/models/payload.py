"""Request payload tree.

Outbound payloads are classified once, at the gateway boundary, into a tree of
tagged nodes (primitive leaf, file leaf, sequence, mapping). Each node knows
whether it contains a file, so the gateway can pick the wire encoding and the
multipart encoder can walk the tree without re-inspecting raw values.
"""

from __future__ import annotations

import mimetypes
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union


@dataclass(frozen=True)
class UploadFile:
    """An in-memory binary file handle destined for a multipart upload."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        """Lower-cased extension including the leading dot, or ``""``."""
        suffix = Path(self.filename).suffix
        return suffix.lower()

    @property
    def mime_type(self) -> str:
        if self.content_type:
            return self.content_type.lower()
        guessed, _ = mimetypes.guess_type(self.filename)
        return (guessed or "application/octet-stream").lower()

    @classmethod
    def from_path(cls, path: str | Path, content_type: str | None = None) -> UploadFile:
        """Read a file from disk into an UploadFile."""
        file_path = Path(path)
        return cls(
            filename=file_path.name,
            content=file_path.read_bytes(),
            content_type=content_type,
        )

    def __repr__(self) -> str:
        return f"UploadFile(filename={self.filename!r}, size={self.size}, content_type={self.mime_type!r})"


@dataclass
class PrimitiveLeaf:
    value: Any
    has_files: bool = field(default=False, init=False)

    def to_plain(self) -> Any:
        return self.value


@dataclass
class FileLeaf:
    file: UploadFile
    has_files: bool = field(default=True, init=False)

    def to_plain(self) -> Any:
        return self.file.filename


@dataclass
class SequenceNode:
    items: list[PayloadNode]
    has_files: bool = field(init=False)

    def __post_init__(self) -> None:
        self.has_files = any(item.has_files for item in self.items)

    @property
    def is_file_list(self) -> bool:
        """True when every item is a file (and there is at least one)."""
        return bool(self.items) and all(isinstance(item, FileLeaf) for item in self.items)

    def to_plain(self) -> list:
        return [item.to_plain() for item in self.items]


@dataclass
class MappingNode:
    entries: list[tuple[str, PayloadNode]]
    has_files: bool = field(init=False)

    def __post_init__(self) -> None:
        self.has_files = any(node.has_files for _, node in self.entries)

    def to_plain(self) -> dict:
        return {key: node.to_plain() for key, node in self.entries}


PayloadNode = Union[PrimitiveLeaf, FileLeaf, SequenceNode, MappingNode]


def build_tree(obj: Any) -> PayloadNode:
    """Classify a raw payload into a tree of tagged nodes.

    ``None`` values are dropped wherever they appear; a ``None`` root becomes
    an empty mapping.
    """
    node = _build(obj)
    return MappingNode([]) if node is None else node


def _build(obj: Any) -> PayloadNode | None:
    if obj is None:
        return None
    if isinstance(obj, UploadFile):
        return FileLeaf(obj)
    if isinstance(obj, Mapping):
        entries = []
        for key, value in obj.items():
            child = _build(value)
            if child is not None:
                entries.append((str(key), child))
        return MappingNode(entries)
    if isinstance(obj, (list, tuple)):
        items = [child for child in (_build(item) for item in obj) if child is not None]
        return SequenceNode(items)
    return PrimitiveLeaf(obj)
