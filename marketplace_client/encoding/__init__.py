"""Multipart/form-data encoding for outbound payloads."""

from marketplace_client.encoding.form_data import (
    MultipartPayload,
    contains_files,
    decode,
    encode,
    extract_files,
    validate_file,
    validate_files,
)

__all__ = [
    "MultipartPayload",
    "contains_files",
    "decode",
    "encode",
    "extract_files",
    "validate_file",
    "validate_files",
]
