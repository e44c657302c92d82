"""Endpoint services built on the request gateway."""

from marketplace_client.services.product_api import ProductApi, ProductEndpoints

__all__ = ["ProductApi", "ProductEndpoints"]
