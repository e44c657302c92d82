"""Public models for the marketplace client."""

from marketplace_client.models.payload import (
    FileLeaf,
    MappingNode,
    PayloadNode,
    PrimitiveLeaf,
    SequenceNode,
    UploadFile,
    build_tree,
)
from marketplace_client.models.product import (
    DiscountType,
    ProductFilters,
    ProductFormData,
    ProductLabel,
)
from marketplace_client.models.requests import EncodingOptions, HttpMethod, RequestOptions
from marketplace_client.models.responses import ApiResponse, PaginationLink, PaginationMeta

__all__ = [
    "ApiResponse",
    "DiscountType",
    "EncodingOptions",
    "FileLeaf",
    "HttpMethod",
    "MappingNode",
    "PaginationLink",
    "PaginationMeta",
    "PayloadNode",
    "PrimitiveLeaf",
    "ProductFilters",
    "ProductFormData",
    "ProductLabel",
    "RequestOptions",
    "SequenceNode",
    "UploadFile",
    "build_tree",
]
