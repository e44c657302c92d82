"""Product catalog endpoint layer.

Maps supplier product operations onto backend endpoints and request shapes.
File fields are never sent with create/update bodies; media goes through the
upload-files endpoint, which validates files against the image and document
upload profiles before anything is sent.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from marketplace_client.config.upload_profiles import (
    DOCUMENT_FILE_CONFIG,
    IMAGE_FILE_CONFIG,
    IMPORT_FILE_CONFIG,
    FileUploadConfig,
)
from marketplace_client.integration.gateway import RequestGateway
from marketplace_client.models.payload import UploadFile
from marketplace_client.models.product import ProductFilters, ProductFormData
from marketplace_client.models.requests import EncodingOptions, RequestOptions
from marketplace_client.models.responses import ApiResponse

logger = logging.getLogger(__name__)

INVALID_FILTERS_MESSAGE = "Invalid product filters"


class ProductEndpoints:
    """URL builders for the supplier product API."""

    LIST = "/supplier/products/my-products"
    CREATE = "/supplier/products"

    @staticmethod
    def get(product_id: int | str) -> str:
        return f"/supplier/products/{product_id}"

    @staticmethod
    def update(product_id: int | str) -> str:
        return f"/supplier/products/{product_id}/update"

    @staticmethod
    def delete(product_id: int | str) -> str:
        return f"/supplier/products/{product_id}"

    @staticmethod
    def upload_files(product_id: int | str) -> str:
        return f"/supplier/products/{product_id}/upload-files"

    @staticmethod
    def delete_media(product_id: int | str, media_id: int | str) -> str:
        return f"/supplier/products/{product_id}/media/{media_id}"


class ProductApi:
    """Supplier product operations on top of a RequestGateway.

    Parameters
    ----------
    gateway:
        Gateway used for every call.
    upload_profiles:
        Optional profile overrides (``image``, ``document``, ``import``),
        typically from ``load_upload_profiles``.
    """

    def __init__(
        self,
        gateway: RequestGateway,
        upload_profiles: Mapping[str, FileUploadConfig] | None = None,
    ) -> None:
        self._gateway = gateway
        profiles = dict(upload_profiles or {})
        self._image_config = profiles.get("image", IMAGE_FILE_CONFIG)
        self._document_config = profiles.get("document", DOCUMENT_FILE_CONFIG)
        self._import_config = profiles.get("import", IMPORT_FILE_CONFIG)

    # ------------------------------------------------------------------
    # Core CRUD
    # ------------------------------------------------------------------

    async def get_my_products(
        self, filters: ProductFilters | Mapping[str, Any] | None = None
    ) -> ApiResponse[Any]:
        """List the supplier's products, filtered and paginated."""
        url = ProductEndpoints.LIST
        if filters is not None:
            if not isinstance(filters, ProductFilters):
                try:
                    filters = ProductFilters.model_validate(
                        {k: v for k, v in filters.items() if v not in (None, "")}
                    )
                except ValidationError as exc:
                    logger.warning("Rejected product filters: %s", exc)
                    return ApiResponse.failure(INVALID_FILTERS_MESSAGE)
            query = urlencode(filters.to_query())
            if query:
                url = f"{url}?{query}"
        return await self._gateway.get(url)

    async def get_product(self, product_id: int | str) -> ApiResponse[Any]:
        return await self._gateway.get(ProductEndpoints.get(product_id))

    async def create_product(self, data: ProductFormData) -> ApiResponse[Any]:
        """Create a product (files are uploaded separately)."""
        return await self._gateway.post(ProductEndpoints.CREATE, data.to_request_body())

    async def update_product(self, product_id: int | str, data: ProductFormData) -> ApiResponse[Any]:
        """Update a product (files are uploaded separately)."""
        return await self._gateway.post(ProductEndpoints.update(product_id), data.to_request_body())

    async def delete_product(self, product_id: int | str) -> ApiResponse[Any]:
        return await self._gateway.delete(ProductEndpoints.delete(product_id))

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def upload_product_files(
        self,
        product_id: int | str,
        images: list[UploadFile] | None = None,
        documents: list[UploadFile] | None = None,
    ) -> ApiResponse[Any]:
        """Upload additional images and documents to an existing product."""
        options = RequestOptions(
            encoding=EncodingOptions(
                file_fields={
                    "product_images": self._image_config,
                    "product_documents": self._document_config,
                },
                validate_files=True,
                exclude_empty_files=True,
            )
        )
        payload = {
            "product_images": list(images or []),
            "product_documents": list(documents or []),
        }
        logger.debug(
            "Uploading %d images and %d documents to product %s",
            len(payload["product_images"]),
            len(payload["product_documents"]),
            product_id,
        )
        return await self._gateway.post(ProductEndpoints.upload_files(product_id), payload, options)

    async def delete_product_media(self, product_id: int | str, media_id: int | str) -> ApiResponse[Any]:
        return await self._gateway.delete(ProductEndpoints.delete_media(product_id, media_id))

    # ------------------------------------------------------------------
    # Bulk and auxiliary operations
    # ------------------------------------------------------------------

    async def batch_update_products(self, updates: list[tuple[int, Mapping[str, Any]]]) -> ApiResponse[Any]:
        """Apply partial updates to several products in one call."""
        body = {"updates": [{"id": product_id, "data": dict(data)} for product_id, data in updates]}
        return await self._gateway.patch(f"{ProductEndpoints.LIST}/batch", body)

    async def toggle_product_status(self, product_id: int | str, is_active: bool) -> ApiResponse[Any]:
        return await self._gateway.patch(ProductEndpoints.update(product_id), {"is_active": is_active})

    async def duplicate_product(
        self, product_id: int | str, modifications: Mapping[str, Any] | None = None
    ) -> ApiResponse[Any]:
        return await self._gateway.post(
            f"{ProductEndpoints.get(product_id)}/duplicate", dict(modifications or {})
        )

    async def get_product_stats(self) -> ApiResponse[Any]:
        """Totals by status and category for the supplier dashboard."""
        return await self._gateway.get(f"{ProductEndpoints.LIST}/stats")

    async def export_products(self, filters: ProductFilters | None = None) -> ApiResponse[Any]:
        """Request an export; the envelope carries a ``download_url``."""
        body = filters.to_query() if filters is not None else {}
        return await self._gateway.post(f"{ProductEndpoints.LIST}/export", body)

    async def import_products(self, file: UploadFile) -> ApiResponse[Any]:
        """Import products from a CSV/Excel file."""
        options = RequestOptions(
            encoding=EncodingOptions(
                file_fields={"import_file": self._import_config},
                validate_files=True,
            )
        )
        return await self._gateway.post(f"{ProductEndpoints.LIST}/import", {"import_file": file}, options)

    async def reorder_products(self, product_ids: list[int]) -> ApiResponse[Any]:
        return await self._gateway.patch(f"{ProductEndpoints.LIST}/reorder", {"product_ids": list(product_ids)})
