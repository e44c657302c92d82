"""Request gateway for the marketplace backend API.

Wraps every outbound HTTP call made by the client:

- Payloads are classified once into a payload tree. File-bearing payloads are
  encoded as multipart/form-data; everything else is sent as JSON (or as query
  parameters for GET/DELETE).
- Concurrent identical GET requests share one transport call through an
  InFlightTracker owned by the gateway.
- Every response is normalized into an ApiResponse envelope. Encoding
  failures, network errors, timeouts and non-2xx statuses become
  ``{ success: false, message }``; ``send`` never raises.

No retries are performed here; retrying is a caller concern.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from marketplace_client.encoding.form_data import encode
from marketplace_client.errors import EncodingError, TransportError
from marketplace_client.integration.inflight import InFlightTracker
from marketplace_client.models.payload import build_tree
from marketplace_client.models.requests import HttpMethod, RequestOptions
from marketplace_client.models.responses import ApiResponse

if TYPE_CHECKING:
    from marketplace_client.config.settings import ClientSettings

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Something went wrong"
MALFORMED_BODY_MESSAGE = "Malformed response body"

_json_adapter: TypeAdapter[Any] = TypeAdapter(Any)


class RequestGateway:
    """Async HTTP gateway returning normalized response envelopes.

    Parameters
    ----------
    base_url:
        Backend API root (e.g. "https://api.example.com/api"). Request URLs
        are resolved relative to it.
    headers:
        Default headers sent with every request.
    timeout:
        Default transport timeout in seconds (overridable per request).
    dedupe_get_requests:
        Share one transport call between concurrent identical GETs.
    transport:
        Optional httpx transport (mock or ASGI transports in tests).
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        dedupe_get_requests: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json", **dict(headers or {})},
            timeout=timeout,
            transport=transport,
        )
        self._dedupe_get_requests = dedupe_get_requests
        self._inflight = InFlightTracker()

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RequestGateway:
        """Build a gateway from ClientSettings (base URL, auth, language, timeout)."""
        headers = {"Accept-Language": settings.accept_language}
        if settings.auth_token:
            headers["Authorization"] = f"Bearer {settings.auth_token}"
        return cls(
            settings.base_url,
            headers=headers,
            timeout=settings.timeout_seconds,
            dedupe_get_requests=settings.dedupe_get_requests,
            transport=transport,
        )

    @property
    def in_flight_count(self) -> int:
        """Number of GET requests currently being shared."""
        return len(self._inflight)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RequestGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(
        self,
        method: HttpMethod | str,
        url: str,
        payload: Any = None,
        options: RequestOptions | None = None,
    ) -> ApiResponse[Any]:
        """Send a request and return its normalized envelope. Never raises."""
        try:
            http_method = HttpMethod(method.upper() if isinstance(method, str) else method)
        except ValueError:
            return ApiResponse.failure(f"Unsupported HTTP method: {method}")
        options = options or RequestOptions()

        key = None
        if http_method is HttpMethod.GET and self._dedupe_get_requests:
            key = self._dedupe_key(url, payload)
        if key is not None:
            if key in self._inflight:
                logger.info(
                    "Returning in-flight request for %s",
                    url,
                    extra={"method": http_method.value, "url": url, "deduplicated": True},
                )
            return await self._inflight.get_or_create(
                key, lambda: self._execute(http_method, url, payload, options)
            )

        return await self._execute(http_method, url, payload, options)

    async def get(self, url: str, params: Any = None, options: RequestOptions | None = None) -> ApiResponse[Any]:
        return await self.send(HttpMethod.GET, url, params, options)

    async def post(self, url: str, payload: Any = None, options: RequestOptions | None = None) -> ApiResponse[Any]:
        return await self.send(HttpMethod.POST, url, payload, options)

    async def put(self, url: str, payload: Any = None, options: RequestOptions | None = None) -> ApiResponse[Any]:
        return await self.send(HttpMethod.PUT, url, payload, options)

    async def patch(self, url: str, payload: Any = None, options: RequestOptions | None = None) -> ApiResponse[Any]:
        return await self.send(HttpMethod.PATCH, url, payload, options)

    async def delete(self, url: str, payload: Any = None, options: RequestOptions | None = None) -> ApiResponse[Any]:
        return await self.send(HttpMethod.DELETE, url, payload, options)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _dedupe_key(url: str, payload: Any) -> str | None:
        """Key for sharing a GET: the URL with the query params it will carry.

        Returns None when the payload cannot become a query string; such a
        request is sent on its own and fails in ``_prepare``.
        """
        if payload is None:
            return f"GET:{url}"
        if not isinstance(payload, Mapping):
            return None
        try:
            params = _json_adapter.dump_python(dict(payload), mode="json")
            return f"GET:{httpx.URL(url).copy_merge_params(params)}"
        except (TypeError, ValueError, PydanticSerializationError):
            return None

    async def _execute(
        self,
        method: HttpMethod,
        url: str,
        payload: Any,
        options: RequestOptions,
    ) -> ApiResponse[Any]:
        log_extra: dict[str, Any] = {"method": method.value, "url": url}
        logger.info("Starting %s request to %s", method.value, url, extra=log_extra)
        start = time.monotonic()

        try:
            request_kwargs = self._prepare(method, payload, options)
            response = await self._client.request(method.value, url, **request_kwargs)
            response.raise_for_status()
        except EncodingError as exc:
            logger.warning("Failed to encode %s %s: %s", method.value, url, exc.message, extra=log_extra)
            return ApiResponse.failure(exc.message)
        except httpx.HTTPStatusError as exc:
            error = TransportError(
                f"Request failed with status code {exc.response.status_code}",
                status_code=exc.response.status_code,
            )
            log_extra.update(
                status_code=error.status_code,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            logger.warning("%s %s failed: %s", method.value, url, error.message, extra=log_extra)
            return self._error_envelope(exc.response, error)
        except httpx.HTTPError as exc:
            error = TransportError(str(exc) or None)
            log_extra["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
            logger.warning(
                "%s %s failed (%s): %s",
                method.value,
                url,
                type(exc).__name__,
                error.message,
                extra=log_extra,
            )
            return ApiResponse.failure(error.message)
        except Exception as exc:
            logger.exception("Unexpected error during %s %s", method.value, url, extra=log_extra)
            return ApiResponse.failure(str(exc) or FALLBACK_MESSAGE)

        log_extra.update(
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        envelope = self._success_envelope(response)
        logger.info(
            "Request completed for %s (success=%s, has_data=%s, has_meta=%s)",
            url,
            envelope.success,
            envelope.payload is not None,
            envelope.meta is not None,
            extra=log_extra,
        )
        return envelope

    def _prepare(
        self,
        method: HttpMethod,
        payload: Any,
        options: RequestOptions,
    ) -> dict[str, Any]:
        """Build httpx request kwargs, switching to multipart when files are present."""
        headers = dict(options.headers)
        kwargs: dict[str, Any] = {"headers": headers}
        if options.timeout is not None:
            kwargs["timeout"] = options.timeout
        if payload is None:
            return kwargs

        tree = build_tree(payload)
        if tree.has_files:
            multipart = encode(tree, options.encoding)
            # httpx supplies multipart/form-data with its boundary
            for name in [h for h in headers if h.lower() == "content-type"]:
                del headers[name]
            kwargs.update(multipart.to_httpx())
            logger.debug(
                "Detected files in request, encoded %d multipart entries (%d files)",
                len(multipart),
                len(multipart.files),
            )
        elif method in (HttpMethod.GET, HttpMethod.DELETE):
            if not isinstance(payload, Mapping):
                raise EncodingError("Query parameters must be a mapping")
            kwargs["params"] = _json_adapter.dump_python(dict(payload), mode="json")
        else:
            kwargs["json"] = _json_adapter.dump_python(payload, mode="json")
        return kwargs

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return MALFORMED_BODY_MESSAGE

    def _success_envelope(self, response: httpx.Response) -> ApiResponse[Any]:
        body = self._parse_body(response)
        if body is None:
            return ApiResponse(success=True)
        if not isinstance(body, dict):
            return ApiResponse.failure(MALFORMED_BODY_MESSAGE)
        try:
            return ApiResponse.model_validate(body)
        except ValidationError as exc:
            logger.warning("Response envelope failed validation: %s", exc)
            return ApiResponse.failure(MALFORMED_BODY_MESSAGE)

    def _error_envelope(self, response: httpx.Response, error: TransportError) -> ApiResponse[Any]:
        body = self._parse_body(response)
        if not isinstance(body, dict):
            return ApiResponse.failure(error.message)

        server_message = body.get("message")
        message = server_message if isinstance(server_message, str) and server_message else error.message
        try:
            return ApiResponse.model_validate({**body, "success": False, "message": message})
        except ValidationError:
            return ApiResponse.failure(message)
