"""Multipart/form-data encoder.

Flattens an arbitrarily nested payload into form fields and file parts:

- ``{"a": {"b": [{"c": 1}]}}`` becomes ``a[b][0][c]=1`` (or ``a.b.0.c=1``
  with ``array_brackets=False``); root keys are left untouched.
- ``None`` is skipped everywhere, booleans become ``"1"``/``"0"``, dates and
  datetimes become ISO-8601 strings.
- Files are optionally validated against a FileUploadConfig (size, type,
  count). A violation raises FileValidationError; invalid files are never
  dropped silently.

Encoding is a pure function of (payload, options).
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from marketplace_client.config.upload_profiles import MB, FileUploadConfig
from marketplace_client.errors import EncodingError, FileValidationError
from marketplace_client.models.payload import (
    FileLeaf,
    MappingNode,
    PayloadNode,
    PrimitiveLeaf,
    SequenceNode,
    UploadFile,
    build_tree,
)
from marketplace_client.models.requests import EncodingOptions

_BRACKET_KEY = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_BRACKET_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


@dataclass
class MultipartPayload:
    """Flat multipart body: ordered text fields plus ordered file parts."""

    fields: list[tuple[str, str]] = field(default_factory=list)
    files: list[tuple[str, UploadFile]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.fields) + len(self.files)

    def to_httpx(self) -> dict[str, Any]:
        """Return ``data``/``files`` keyword arguments for an httpx request."""
        data: dict[str, str | list[str]] = {}
        for key, value in self.fields:
            existing = data.get(key)
            if existing is None:
                data[key] = value
            elif isinstance(existing, list):
                existing.append(value)
            else:
                data[key] = [existing, value]
        files = [
            (key, (upload.filename, upload.content, upload.mime_type))
            for key, upload in self.files
        ]
        return {"data": data, "files": files}


# ---------------------------------------------------------------------------
# File validation
# ---------------------------------------------------------------------------


def validate_file(file: UploadFile, config: FileUploadConfig | None) -> list[str]:
    """Check a single file against *config*; return the violated rules."""
    errors: list[str] = []
    if config is None:
        return errors

    if config.max_size and file.size > config.max_size:
        errors.append(f"File size exceeds {config.max_size / MB:.1f}MB limit")

    if config.allowed_types:
        extension = file.extension
        mime_type = file.mime_type
        allowed = False
        for allowed_type in config.allowed_types:
            candidate = allowed_type.lower()
            if candidate == extension or candidate == mime_type:
                allowed = True
            elif "*" in candidate and mime_type.startswith(candidate.replace("*", "")):
                allowed = True
            if allowed:
                break
        if not allowed:
            errors.append(f"File type {extension or mime_type} is not allowed")

    return errors


def validate_files(files: list[UploadFile], config: FileUploadConfig | None) -> list[str]:
    """Check a list of files (count, then each file) against *config*."""
    errors: list[str] = []
    if config is None:
        return errors

    if config.max_files and len(files) > config.max_files:
        errors.append(f"Maximum {config.max_files} files allowed")

    for index, upload in enumerate(files):
        for error in validate_file(upload, config):
            errors.append(f"File {index + 1}: {error}")

    return errors


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def contains_files(obj: Any) -> bool:
    """Return True if *obj* holds an UploadFile anywhere in its structure."""
    return build_tree(obj).has_files


def encode(obj: Any, options: EncodingOptions | None = None) -> MultipartPayload:
    """Encode a mapping (or a pre-built MappingNode) as multipart form data.

    Raises
    ------
    FileValidationError
        If ``options.validate_files`` is set and a file breaks its constraints.
    EncodingError
        If the payload root is not a mapping.
    """
    options = options or EncodingOptions()
    tree = obj if isinstance(obj, (MappingNode, SequenceNode, FileLeaf, PrimitiveLeaf)) else build_tree(obj)
    if not isinstance(tree, MappingNode):
        raise EncodingError("Multipart payload must be a mapping")

    payload = MultipartPayload()
    _encode_mapping(tree, None, options, payload)
    return payload


def _child_key(parent: str | None, key: str, array_brackets: bool) -> str:
    if parent is None:
        return key
    return f"{parent}[{key}]" if array_brackets else f"{parent}.{key}"


def _encode_mapping(
    node: MappingNode,
    parent_key: str | None,
    options: EncodingOptions,
    out: MultipartPayload,
) -> None:
    for key, child in node.entries:
        form_key = _child_key(parent_key, key, options.array_brackets)
        _encode_node(key, form_key, child, options, out)


def _encode_node(
    field_name: str,
    form_key: str,
    node: PayloadNode,
    options: EncodingOptions,
    out: MultipartPayload,
) -> None:
    if isinstance(node, FileLeaf):
        _check(field_name, validate_file(node.file, options.config_for(field_name)), options)
        out.files.append((form_key, node.file))

    elif isinstance(node, SequenceNode):
        if not node.items and options.exclude_empty_files and "file" in field_name:
            return
        if node.is_file_list:
            files = [item.file for item in node.items]  # type: ignore[union-attr]
            _check(field_name, validate_files(files, options.config_for(field_name)), options)
        for index, item in enumerate(node.items):
            item_key = _child_key(form_key, str(index), options.array_brackets)
            if isinstance(item, FileLeaf):
                if not node.is_file_list:
                    _check(
                        f"{field_name}[{index}]",
                        validate_file(item.file, options.config_for(field_name)),
                        options,
                    )
                out.files.append((item_key, item.file))
            else:
                _encode_node(field_name, item_key, item, options, out)

    elif isinstance(node, MappingNode):
        if options.nested_objects:
            _encode_mapping(node, form_key, options, out)
        else:
            out.fields.append((form_key, json.dumps(node.to_plain(), default=str)))

    else:
        out.fields.append((form_key, _stringify(node.value)))


def _check(field_name: str, errors: list[str], options: EncodingOptions) -> None:
    if errors and options.validate_files:
        raise FileValidationError(field_name, errors)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


# ---------------------------------------------------------------------------
# Inspection helpers
# ---------------------------------------------------------------------------


def extract_files(payload: MultipartPayload) -> dict[str, list[UploadFile]]:
    """Group the file parts of *payload* by their form key."""
    files: dict[str, list[UploadFile]] = {}
    for key, upload in payload.files:
        files.setdefault(key, []).append(upload)
    return files


def decode(
    entries: MultipartPayload | Iterable[tuple[str, Any]],
    array_brackets: bool = True,
) -> dict[str, Any]:
    """Rebuild the nested structure from flattened form keys.

    Numeric key segments become list indices. Values are returned as encoded
    (strings for fields, UploadFile for file parts).
    """
    if isinstance(entries, MultipartPayload):
        pairs: Iterable[tuple[str, Any]] = [*entries.fields, *entries.files]
    else:
        pairs = entries

    result: dict[str, Any] = {}
    for key, value in pairs:
        _insert(result, _split_key(key, array_brackets), value)
    return result


def _split_key(key: str, array_brackets: bool) -> list[str]:
    if not array_brackets:
        return key.split(".")
    match = _BRACKET_KEY.match(key)
    if match is None:
        return [key]
    root, rest = match.groups()
    return [root, *_BRACKET_SEGMENT.findall(rest)]


def _insert(container: Any, path: list[str], value: Any) -> None:
    head, *tail = path
    slot: Any = int(head) if isinstance(container, list) else head

    if isinstance(container, list):
        while len(container) <= slot:
            container.append(None)

    if not tail:
        container[slot] = value
        return

    existing = container[slot] if isinstance(container, list) else container.get(slot)
    if existing is None:
        existing = [] if tail[0].isdigit() else {}
        container[slot] = existing
    _insert(existing, tail, value)
