"""Async client for the construction marketplace API."""

from marketplace_client.config.settings import ClientSettings
from marketplace_client.integration.gateway import RequestGateway
from marketplace_client.models.payload import UploadFile
from marketplace_client.models.responses import ApiResponse
from marketplace_client.services.product_api import ProductApi
from marketplace_client.stores.products_store import ProductsStore

__all__ = [
    "ApiResponse",
    "ClientSettings",
    "ProductApi",
    "ProductsStore",
    "RequestGateway",
    "UploadFile",
]
