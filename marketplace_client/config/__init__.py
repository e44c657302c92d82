"""Configuration module: settings and upload profiles."""

from marketplace_client.config.settings import ClientSettings
from marketplace_client.config.upload_profiles import (
    DEFAULT_FILE_CONFIG,
    DOCUMENT_FILE_CONFIG,
    IMAGE_FILE_CONFIG,
    IMPORT_FILE_CONFIG,
    FileUploadConfig,
    builtin_profiles,
    load_upload_profiles,
)

__all__ = [
    "ClientSettings",
    "DEFAULT_FILE_CONFIG",
    "DOCUMENT_FILE_CONFIG",
    "FileUploadConfig",
    "IMAGE_FILE_CONFIG",
    "IMPORT_FILE_CONFIG",
    "builtin_profiles",
    "load_upload_profiles",
]
