"""Product catalog models: form data, list filters and enums."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from marketplace_client.models.payload import UploadFile

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000
MAX_PRICE = 999999.99

# Form fields that are uploaded separately and never sent with create/update
FILE_FIELDS = frozenset({"product_images", "product_documents", "files_to_delete"})


class ProductLabel(str, Enum):
    """Merchandising label shown on a product card."""

    NONE = "none"
    BEST_SELLER = "best_seller"
    SPECIAL_OFFER = "special_offer"


class DiscountType(str, Enum):
    """How ``discount_value`` is applied to the price."""

    NONE = "none"
    PERCENT = "percent"
    FIXED = "fixed"


class ProductFormData(BaseModel):
    """Validated input for creating or updating a product."""

    name_ar: str = Field(..., min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)
    name_en: str = Field(..., min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)
    description_ar: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    description_en: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    main_category_id: int = Field(..., ge=1)
    sub_category_id: int | None = None
    micro_category_id: int | None = None
    price: float = Field(..., ge=0.01, le=MAX_PRICE)
    discount_type: DiscountType = DiscountType.NONE
    discount_value: float | None = Field(default=None, ge=0)
    label: ProductLabel = ProductLabel.NONE
    is_active: bool = True
    display_order: int | None = Field(default=None, ge=0)

    # Uploaded through the upload-files endpoint, not the create/update body
    product_images: list[UploadFile] | None = None
    product_documents: list[UploadFile] | None = None
    files_to_delete: list[int] | None = None

    @model_validator(mode="after")
    def _check_discount(self) -> ProductFormData:
        if self.discount_type is DiscountType.NONE:
            return self
        value = self.discount_value
        if not value or value <= 0:
            raise ValueError("discount_value: must be greater than zero when a discount is set")
        if self.discount_type is DiscountType.PERCENT and value > 100:
            raise ValueError("discount_value: percent discount cannot exceed 100")
        if self.discount_type is DiscountType.FIXED and value >= self.price:
            raise ValueError("discount_value: fixed discount must be lower than the price")
        return self

    def to_request_body(self) -> dict:
        """JSON-safe body for create/update, without file fields or unset values."""
        return self.model_dump(mode="json", exclude=set(FILE_FIELDS), exclude_none=True)


class ProductFilters(BaseModel):
    """Query filters for the supplier's product list."""

    search: str | None = None
    category_id: int | None = None
    sub_category_id: int | None = None
    micro_category_id: int | None = None
    label: ProductLabel | None = None
    is_active: bool | None = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=12, ge=1)

    def to_query(self) -> dict[str, str]:
        """Render non-empty filters as query parameters."""
        params: dict[str, str] = {}
        if self.search:
            params["search"] = self.search
        for name in ("category_id", "sub_category_id", "micro_category_id"):
            value = getattr(self, name)
            if value:
                params[name] = str(value)
        if self.label is not None and self.label is not ProductLabel.NONE:
            params["label"] = self.label.value
        if self.is_active is not None:
            params["is_active"] = "true" if self.is_active else "false"
        params["page"] = str(self.page)
        params["per_page"] = str(self.per_page)
        return params
