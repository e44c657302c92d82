"""Subscribable entity stores with optimistic mutations."""

from marketplace_client.stores.entity_store import (
    ActionFlags,
    Entity,
    EntityStore,
    Pagination,
    StoreState,
)
from marketplace_client.stores.products_store import ProductsStore

__all__ = [
    "ActionFlags",
    "Entity",
    "EntityStore",
    "Pagination",
    "ProductsStore",
    "StoreState",
]
