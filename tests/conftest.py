"""Shared test fixtures, fake backend and hypothesis strategies."""

from __future__ import annotations

import asyncio
import itertools
import os
from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from hypothesis import strategies as st
from starlette.datastructures import UploadFile as StarletteUploadFile

from marketplace_client.config.settings import ClientSettings
from marketplace_client.integration.gateway import RequestGateway
from marketplace_client.models.payload import UploadFile
from marketplace_client.models.product import ProductFormData
from marketplace_client.models.responses import ApiResponse
from marketplace_client.services.product_api import ProductApi
from marketplace_client.stores.entity_store import Pagination
from marketplace_client.stores.products_store import ProductsStore

BASE_URL = "http://testserver"


# ---------------------------------------------------------------------------
# Ensure required env vars are set for ClientSettings in tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _set_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set minimal env vars so ClientSettings can be instantiated in tests."""
    if "MARKETPLACE_BASE_URL" not in os.environ:
        monkeypatch.setenv("MARKETPLACE_BASE_URL", BASE_URL)


@pytest.fixture
def settings() -> ClientSettings:
    """Test settings with safe defaults."""
    return ClientSettings(
        base_url=BASE_URL,
        auth_token="test-token",
        timeout_seconds=5.0,
        products_per_page=12,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_file(name: str = "photo.png", size: int = 16, content_type: str | None = None) -> UploadFile:
    """Create an in-memory UploadFile of *size* bytes."""
    return UploadFile(filename=name, content=b"x" * size, content_type=content_type)


def make_product(product_id: int, name: str = "Cement bag", **overrides: object) -> dict:
    product = {
        "id": product_id,
        "name": name,
        "name_ar": name,
        "name_en": name,
        "price": "25.00",
        "discount_type": "none",
        "label": "none",
        "is_active": True,
        "images": [],
        "documents": [],
        "created_at": "2025-01-01T00:00:00Z",
        "updated_at": "2025-01-01T00:00:00Z",
    }
    product.update(overrides)
    return product


def make_form(**overrides: object) -> ProductFormData:
    data: dict = {
        "name_ar": "اسمنت",
        "name_en": "Cement",
        "main_category_id": 1,
        "price": 25.0,
    }
    data.update(overrides)
    return ProductFormData(**data)


# ---------------------------------------------------------------------------
# Fake backend
# ---------------------------------------------------------------------------

def create_fake_backend(products: list[dict] | None = None) -> FastAPI:
    """In-memory supplier product API returning envelope-shaped responses.

    ``app.state.failures[op] = (status, message)`` makes the next call of that
    operation fail; ``app.state.calls`` records (method, path) per request.
    """
    app = FastAPI()
    app.state.products = [dict(p) for p in (products or [])]
    app.state.calls = []
    app.state.failures = {}
    ids = itertools.count(1000)
    media_ids = itertools.count(5000)

    @app.middleware("http")
    async def record_calls(request: Request, call_next):  # noqa: ANN001, ANN202
        app.state.calls.append((request.method, request.url.path))
        return await call_next(request)

    def fail(op: str) -> JSONResponse | None:
        failure = app.state.failures.pop(op, None)
        if failure is None:
            return None
        status, message = failure
        return JSONResponse(status_code=status, content={"success": False, "message": message})

    def find(product_id: int) -> dict | None:
        return next((p for p in app.state.products if p["id"] == product_id), None)

    def not_found() -> JSONResponse:
        return JSONResponse(status_code=404, content={"success": False, "message": "Product not found"})

    @app.get("/supplier/products/my-products")
    async def list_products(page: int = 1, per_page: int = 12, search: str | None = None):  # noqa: ANN202
        if (resp := fail("list")) is not None:
            return resp
        items = app.state.products
        if search:
            items = [p for p in items if search.lower() in p["name"].lower()]
        start = (page - 1) * per_page
        total = len(items)
        return {
            "success": True,
            "data": items[start:start + per_page],
            "meta": {
                "current_page": page,
                "last_page": max(1, -(-total // per_page)),
                "per_page": per_page,
                "total": total,
            },
        }

    @app.patch("/supplier/products/my-products/reorder")
    async def reorder(request: Request):  # noqa: ANN202
        if (resp := fail("reorder")) is not None:
            return resp
        body = await request.json()
        rank = {pid: i for i, pid in enumerate(body["product_ids"])}
        app.state.products.sort(key=lambda p: rank.get(p["id"], len(rank)))
        return {"success": True, "message": "Reordered"}

    @app.get("/supplier/products/{product_id}")
    async def get_product(product_id: int):  # noqa: ANN202
        if (resp := fail("get")) is not None:
            return resp
        product = find(product_id)
        if product is None:
            return not_found()
        return {"success": True, "data": product}

    @app.post("/supplier/products")
    async def create_product(request: Request):  # noqa: ANN202
        if (resp := fail("create")) is not None:
            return resp
        body = await request.json()
        product = {**body, "id": next(ids), "name": body["name_ar"], "images": [], "documents": []}
        app.state.products.insert(0, product)
        return {"success": True, "data": product, "message": "Product created"}

    @app.post("/supplier/products/{product_id}/update")
    async def update_product(product_id: int, request: Request):  # noqa: ANN202
        if (resp := fail("update")) is not None:
            return resp
        product = find(product_id)
        if product is None:
            return not_found()
        product.update(await request.json())
        return {"success": True, "data": product}

    @app.patch("/supplier/products/{product_id}/update")
    async def toggle_status(product_id: int, request: Request):  # noqa: ANN202
        if (resp := fail("toggle_status")) is not None:
            return resp
        product = find(product_id)
        if product is None:
            return not_found()
        product.update(await request.json())
        return {"success": True, "response": product}

    @app.delete("/supplier/products/{product_id}")
    async def delete_product(product_id: int):  # noqa: ANN202
        if (resp := fail("delete")) is not None:
            return resp
        product = find(product_id)
        if product is None:
            return not_found()
        app.state.products.remove(product)
        return {"success": True, "message": "Product deleted"}

    @app.post("/supplier/products/{product_id}/upload-files")
    async def upload_files(product_id: int, request: Request):  # noqa: ANN202
        if (resp := fail("upload")) is not None:
            return resp
        form = await request.form()
        media = []
        for key, value in form.multi_items():
            if isinstance(value, StarletteUploadFile):
                content = await value.read()
                media.append({
                    "id": next(media_ids),
                    "type": "image" if key.startswith("product_images") else "document",
                    "file_name": value.filename,
                    "size": len(content),
                    "created_at": "2025-01-01T00:00:00Z",
                })
        return {"success": True, "data": media}

    @app.delete("/supplier/products/{product_id}/media/{media_id}")
    async def delete_media(product_id: int, media_id: int):  # noqa: ANN202
        if (resp := fail("delete_media")) is not None:
            return resp
        return {"success": True}

    @app.post("/supplier/products/{product_id}/duplicate")
    async def duplicate(product_id: int):  # noqa: ANN202
        if (resp := fail("duplicate")) is not None:
            return resp
        product = find(product_id)
        if product is None:
            return not_found()
        copy = {**product, "id": next(ids), "name": f"{product['name']} (copy)"}
        app.state.products.insert(0, copy)
        return {"success": True, "data": copy}

    return app


class ControlledApi:
    """ProductApi stand-in whose calls block until the test resolves them.

    Each call appends ``(operation, args, future)`` to ``calls``; the test
    completes it with ``resolve(index, envelope)`` in whatever order it needs.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple, asyncio.Future]] = []

    def _call(self, operation: str, *args: object) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((operation, args, future))
        return future

    def operations(self) -> list[str]:
        return [operation for operation, _, _ in self.calls]

    def resolve(self, index: int, envelope: ApiResponse) -> None:
        self.calls[index][2].set_result(envelope)

    async def get_my_products(self, filters=None):  # noqa: ANN001, ANN201
        return await self._call("list", filters)

    async def get_product(self, product_id):  # noqa: ANN001, ANN201
        return await self._call("get", product_id)

    async def create_product(self, data):  # noqa: ANN001, ANN201
        return await self._call("create", data)

    async def update_product(self, product_id, data):  # noqa: ANN001, ANN201
        return await self._call("update", product_id, data)

    async def delete_product(self, product_id):  # noqa: ANN001, ANN201
        return await self._call("delete", product_id)

    async def toggle_product_status(self, product_id, is_active):  # noqa: ANN001, ANN201
        return await self._call("toggle_status", product_id, is_active)

    async def reorder_products(self, product_ids):  # noqa: ANN001, ANN201
        return await self._call("reorder", product_ids)

    async def upload_product_files(self, product_id, images=None, documents=None):  # noqa: ANN001, ANN201
        return await self._call("upload", product_id, images, documents)


def ok(data: object = None, **extra: object) -> ApiResponse:
    return ApiResponse.model_validate({"success": True, "data": data, **extra})


def failed(message: str) -> ApiResponse:
    return ApiResponse.failure(message)


async def settle() -> None:
    """Let pending tasks run up to their next blocking await."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def controlled_api() -> ControlledApi:
    return ControlledApi()


@pytest.fixture
def controlled_store(controlled_api: ControlledApi) -> ProductsStore:
    """Store preloaded with two products, backed by a ControlledApi."""
    store = ProductsStore(controlled_api)  # type: ignore[arg-type]
    store._set(
        items=[make_product(1, "Cement bag"), make_product(2, "Steel rebar")],
        pagination=Pagination(current_page=1, total_pages=1, total_items=2),
    )
    return store


@pytest.fixture
def backend() -> FastAPI:
    return create_fake_backend([make_product(1, "Cement bag"), make_product(2, "Steel rebar")])


@pytest_asyncio.fixture
async def gateway(backend: FastAPI) -> AsyncIterator[RequestGateway]:
    async with RequestGateway(BASE_URL, transport=httpx.ASGITransport(app=backend)) as gw:
        yield gw


@pytest.fixture
def product_api(gateway: RequestGateway) -> ProductApi:
    return ProductApi(gateway)


@pytest.fixture
def store(product_api: ProductApi) -> ProductsStore:
    return ProductsStore(product_api)


# ---------------------------------------------------------------------------
# Hypothesis strategies (reusable across property tests)
# ---------------------------------------------------------------------------

# Keys without bracket/dot characters and not purely numeric
form_keys = st.from_regex(r"[a-z][a-z_]{0,8}", fullmatch=True)

primitive_values = st.one_of(
    st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=20),
    st.integers(min_value=-10**6, max_value=10**6),
    st.booleans(),
    st.dates(),
)

nested_payloads = st.recursive(
    primitive_values,
    lambda children: st.one_of(
        st.lists(children, min_size=1, max_size=4),
        st.dictionaries(form_keys, children, min_size=1, max_size=4),
    ),
    max_leaves=12,
)

payload_mappings = st.dictionaries(form_keys, nested_payloads, min_size=1, max_size=5)

file_sizes = st.integers(min_value=1, max_value=4096)
