"""Supplier product catalog store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx

from marketplace_client.config.upload_profiles import load_upload_profiles
from marketplace_client.errors import ApplicationError
from marketplace_client.integration.gateway import RequestGateway
from marketplace_client.models.payload import UploadFile
from marketplace_client.models.product import ProductFormData
from marketplace_client.models.responses import ApiResponse
from marketplace_client.services.product_api import ProductApi
from marketplace_client.stores.entity_store import Entity, EntityStore, same_id

if TYPE_CHECKING:
    from marketplace_client.config.settings import ClientSettings

logger = logging.getLogger(__name__)

MEDIA_LISTS = {"image": "images", "document": "documents"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProductsStore(EntityStore):
    """Optimistic store for the supplier's own products."""

    name = "products"

    messages = {
        "list": "Failed to load products",
        "get": "Failed to load product details",
        "create": "Failed to create product",
        "update": "Failed to update product",
        "delete": "Failed to delete product",
        "not_found": "Product not found",
        "upload": "Failed to upload product files",
        "delete_media": "Failed to delete product file",
        "toggle_status": "Failed to change product status",
        "duplicate": "Failed to duplicate product",
        "reorder": "Failed to reorder products",
    }

    def __init__(
        self,
        api: ProductApi,
        *,
        per_page: int = 12,
        initial_filters: dict[str, Any] | None = None,
    ) -> None:
        filters = {"search": "", "page": 1, "per_page": per_page}
        if initial_filters is not None:
            filters = dict(initial_filters)
        super().__init__(filters)
        self._api = api

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> ProductsStore:
        """Wire gateway, upload profiles and API from ClientSettings."""
        gateway = RequestGateway.from_settings(settings, transport=transport)
        profiles = load_upload_profiles(settings.upload_profiles_path)
        return cls(ProductApi(gateway, profiles), per_page=settings.products_per_page)

    # ------------------------------------------------------------------
    # Transport hooks
    # ------------------------------------------------------------------

    async def _request_list(self, filters: dict[str, Any]) -> ApiResponse[Any]:
        return await self._api.get_my_products(filters)

    async def _request_get(self, entity_id: Any) -> ApiResponse[Any]:
        return await self._api.get_product(entity_id)

    async def _request_create(self, data: ProductFormData) -> ApiResponse[Any]:
        return await self._api.create_product(data)

    async def _request_update(self, entity_id: Any, data: ProductFormData) -> ApiResponse[Any]:
        return await self._api.update_product(entity_id, data)

    async def _request_delete(self, entity_id: Any) -> ApiResponse[Any]:
        return await self._api.delete_product(entity_id)

    # ------------------------------------------------------------------
    # Optimistic shapes
    # ------------------------------------------------------------------

    def _build_placeholder(self, data: ProductFormData) -> Entity:
        now = _now_iso()
        return {
            "name": data.name_ar or data.name_en,
            "name_ar": data.name_ar,
            "name_en": data.name_en,
            "description": data.description_ar or data.description_en,
            "description_ar": data.description_ar or "",
            "description_en": data.description_en or "",
            "main_category_id": data.main_category_id,
            "sub_category_id": data.sub_category_id,
            "micro_category_id": data.micro_category_id,
            "price": data.price,
            "discount_type": data.discount_type.value,
            "discount_value": data.discount_value or 0,
            "final_price": data.price,  # Recalculated by the server
            "label": data.label.value,
            "is_active": data.is_active,
            "display_order": data.display_order,
            "images": [],
            "documents": [],
            "created_at": now,
            "updated_at": now,
        }

    def _merge_optimistic(self, existing: Entity, data: ProductFormData) -> Entity:
        return {
            **existing,
            "name_ar": data.name_ar,
            "name_en": data.name_en,
            "description_ar": data.description_ar or existing.get("description_ar"),
            "description_en": data.description_en or existing.get("description_en"),
            "main_category_id": data.main_category_id,
            "sub_category_id": data.sub_category_id or existing.get("sub_category_id"),
            "micro_category_id": data.micro_category_id or existing.get("micro_category_id"),
            "price": data.price,
            "discount_type": data.discount_type.value,
            "discount_value": data.discount_value or existing.get("discount_value"),
            "final_price": data.price,  # Recalculated by the server
            "label": data.label.value,
            "is_active": data.is_active,
            "display_order": data.display_order or existing.get("display_order"),
            "updated_at": _now_iso(),
        }

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def upload_files(
        self,
        product_id: int | str,
        images: list[UploadFile] | None = None,
        documents: list[UploadFile] | None = None,
    ) -> list[Entity] | None:
        """Upload media; appends it to ``selected`` when that is the same product."""
        self._set(error=None)
        try:
            response = await self._api.upload_product_files(product_id, images, documents)
            uploaded = self._require(response, self.messages["upload"])
            if not isinstance(uploaded, list) or not all(isinstance(media, dict) for media in uploaded):
                raise ApplicationError(self.messages["upload"])
        except ApplicationError as exc:
            self._set(error=exc.message)
            self._log(logging.WARNING, "upload", product_id, "Upload failed: %s", exc.message)
            return None

        selected = self._state.selected
        if selected is not None and same_id(selected.get("id"), product_id):
            media_lists = {key: list(selected.get(key) or []) for key in MEDIA_LISTS.values()}
            for media in uploaded:
                target = MEDIA_LISTS.get(media.get("type"))
                if target is not None:
                    media_lists[target].append(media)
            self._set(selected={**selected, **media_lists})
        return uploaded

    async def delete_media(self, product_id: int | str, media_id: int | str) -> bool:
        """Delete one media file; drops it from ``selected`` when that is the same product."""
        self._set(error=None)
        try:
            response = await self._api.delete_product_media(product_id, media_id)
            self._require_success(response, self.messages["delete_media"])
        except ApplicationError as exc:
            self._set(error=exc.message)
            self._log(logging.WARNING, "delete_media", product_id, "Media delete failed: %s", exc.message)
            return False

        selected = self._state.selected
        if selected is not None and same_id(selected.get("id"), product_id):
            media_lists = {
                key: [media for media in selected.get(key) or [] if not same_id(media.get("id"), media_id)]
                for key in MEDIA_LISTS.values()
            }
            self._set(selected={**selected, **media_lists})
        return True

    # ------------------------------------------------------------------
    # Catalog management
    # ------------------------------------------------------------------

    async def toggle_status(self, product_id: int | str, is_active: bool) -> Entity | None:
        """Flip ``is_active`` optimistically."""
        return await self._mutate(
            "toggle_status",
            product_id,
            lambda existing: {**existing, "is_active": is_active, "updated_at": _now_iso()},
            lambda: self._api.toggle_product_status(product_id, is_active),
        )

    async def duplicate(self, product_id: int | str) -> Entity | None:
        """Ask the server for a copy and prepend it once confirmed."""
        self._begin("is_creating")
        try:
            response = await self._api.duplicate_product(product_id)
            copy = self._require_entity(response, self.messages["duplicate"])
        except ApplicationError as exc:
            self._set(error=exc.message)
            self._log(logging.WARNING, "duplicate", product_id, "Duplicate failed: %s", exc.message)
            return None
        else:
            self._set(items=[copy, *self._state.items], pagination=self._set_total(+1))
            return copy
        finally:
            self._end("is_creating")

    async def reorder(self, product_ids: list[int]) -> bool:
        """Apply a new display order optimistically; restore the old order on failure."""
        previous_order = [item.get("id") for item in self._state.items]
        self._set(items=self._ordered(self._state.items, product_ids), error=None)
        try:
            response = await self._api.reorder_products(product_ids)
            self._require_success(response, self.messages["reorder"])
        except ApplicationError as exc:
            self._set(items=self._ordered(self._state.items, previous_order), error=exc.message)
            self._log(logging.WARNING, "reorder", None, "Rolled back reorder: %s", exc.message)
            return False
        return True

    @staticmethod
    def _ordered(items: list[Entity], order: list[Any]) -> list[Entity]:
        """Items listed in *order* first (in that order), the rest after."""
        rank = {str(entity_id): index for index, entity_id in enumerate(order)}
        return sorted(items, key=lambda item: rank.get(str(item.get("id")), len(rank)))
