"""File upload profile models and YAML loader.

Provides typed Pydantic models for per-field file constraints (size, type,
count) and a loader that parses the YAML config into those models.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class FileUploadConfig(BaseModel):
    """Constraints checked against each file of an upload field."""

    max_size: int | None = Field(default=None, ge=1)  # bytes
    allowed_types: list[str] = Field(default_factory=list)
    max_files: int | None = Field(default=None, ge=1)


DEFAULT_FILE_CONFIG = FileUploadConfig(
    max_size=10 * MB,
    max_files=10,
    allowed_types=[
        # Images
        "image/*", ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
        # Documents
        ".pdf", ".doc", ".docx", ".txt", ".rtf",
        # Archives
        ".zip", ".rar",
    ],
)

IMAGE_FILE_CONFIG = FileUploadConfig(
    max_size=5 * MB,
    max_files=10,
    allowed_types=["image/*", ".jpg", ".jpeg", ".png", ".gif", ".webp"],
)

DOCUMENT_FILE_CONFIG = FileUploadConfig(
    max_size=10 * MB,
    max_files=5,
    allowed_types=[".pdf", ".doc", ".docx", ".txt", ".rtf"],
)

IMPORT_FILE_CONFIG = FileUploadConfig(
    max_size=10 * MB,
    allowed_types=[
        "text/csv",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ],
)

_BUILTIN_PROFILES: dict[str, FileUploadConfig] = {
    "default": DEFAULT_FILE_CONFIG,
    "image": IMAGE_FILE_CONFIG,
    "document": DOCUMENT_FILE_CONFIG,
    "import": IMPORT_FILE_CONFIG,
}


def builtin_profiles() -> dict[str, FileUploadConfig]:
    """Return a fresh copy of the built-in upload profiles."""
    return dict(_BUILTIN_PROFILES)


def load_upload_profiles(yaml_path: str) -> dict[str, FileUploadConfig]:
    """Parse an upload profiles YAML file into typed FileUploadConfig objects.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        A dict mapping profile names to FileUploadConfig instances. Built-in
        profiles fill in any name the file does not define. If the file is not
        found or cannot be parsed, returns just the built-in profiles.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Upload profiles file not found at %s, using built-in defaults", yaml_path)
        return builtin_profiles()

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse upload profiles YAML at %s: %s", yaml_path, exc)
        return builtin_profiles()

    if not isinstance(raw, dict) or not isinstance(raw.get("profiles"), dict):
        logger.warning("Upload profiles YAML missing 'profiles' key, using built-in defaults")
        return builtin_profiles()

    profiles: dict[str, FileUploadConfig] = {}
    for name, config in raw["profiles"].items():
        try:
            profiles[name] = FileUploadConfig.model_validate(config)
        except Exception as exc:
            logger.error("Invalid upload profile '%s': %s, skipping", name, exc)

    for name, config in _BUILTIN_PROFILES.items():
        profiles.setdefault(name, config)

    return profiles
