"""Outbound request models: HTTP method, request options and encoder options."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from marketplace_client.config.upload_profiles import FileUploadConfig


class HttpMethod(str, Enum):
    """HTTP methods accepted by the request gateway."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class EncodingOptions(BaseModel):
    """Options controlling multipart/form-data encoding of a payload."""

    array_brackets: bool = True  # key[0] vs key.0
    nested_objects: bool = True  # Recurse into nested mappings
    file_config: FileUploadConfig | None = None  # Applies to every file field
    file_fields: dict[str, FileUploadConfig] = Field(default_factory=dict)
    validate_files: bool = False
    exclude_empty_files: bool = False

    def config_for(self, field: str) -> FileUploadConfig | None:
        """Return the upload constraints for *field*, or the global config."""
        return (
            self.file_fields.get(field)
            or self.file_fields.get(f"{field}[]")
            or self.file_config
        )


class RequestOptions(BaseModel):
    """Per-request options for the gateway."""

    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = Field(default=None, gt=0)
    encoding: EncodingOptions = Field(default_factory=EncodingOptions)
