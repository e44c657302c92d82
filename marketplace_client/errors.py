"""Error hierarchy for the marketplace client.

All client-specific errors extend MarketplaceClientError. The request gateway
converts encoding and transport errors into a failure envelope
``{ success: false, message }`` so they never reach store callers; stores
raise application and precondition errors internally and surface them as
``state.error`` strings.
"""

from __future__ import annotations


class MarketplaceClientError(Exception):
    """Base error for all marketplace client errors."""

    message: str = "Something went wrong"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class EncodingError(MarketplaceClientError):
    """Payload could not be converted to multipart/form-data."""

    message = "Failed to encode request payload"


class FileValidationError(EncodingError):
    """A file failed size, type or count validation during encoding."""

    message = "File validation failed"

    def __init__(self, field: str, violations: list[str]) -> None:
        self.field = field
        self.violations = list(violations)
        super().__init__(
            f"File validation failed for {field}: {', '.join(self.violations)}",
            field=field,
            violations=self.violations,
        )


# ---------------------------------------------------------------------------
# Transport / application
# ---------------------------------------------------------------------------


class TransportError(MarketplaceClientError):
    """Network failure, timeout or non-2xx HTTP status."""

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, status_code=status_code)


class ApplicationError(MarketplaceClientError):
    """Server answered with ``success: false`` inside a well-formed envelope."""

    message = "Request was rejected by the server"

    def __init__(
        self,
        message: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> None:
        self.errors = errors
        super().__init__(message, errors=errors)


# ---------------------------------------------------------------------------
# Local preconditions
# ---------------------------------------------------------------------------


class LocalPreconditionError(MarketplaceClientError):
    """A store-level check failed before any network call."""

    message = "Precondition failed"


class EntityNotFoundError(LocalPreconditionError):
    """Target entity is not present in the store."""

    message = "Entity not found"
