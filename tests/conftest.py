import json
from decimal import Decimal
from typing import Any, Callable, Optional

import httpx
import pytest

from dutyfree_pos_server.auth import SessionContext
from dutyfree_pos_server.models import Product, User, UserRole
from dutyfree_pos_server.pos_client import DutyFreeClient


def make_product(
    product_id: str = "1",
    name: str = "Parfum",
    xof: Optional[str] = "1000",
    eur: Optional[str] = "2",
    usd: Optional[str] = "3",
    tax: str = "18",
    barcode: str = "",
) -> Product:
    return Product(
        id=product_id,
        name_fr=name,
        name_en=f"{name} EN",
        barcode=barcode,
        price_xof=Decimal(xof) if xof is not None else None,
        price_eur=Decimal(eur) if eur is not None else None,
        price_usd=Decimal(usd) if usd is not None else None,
        tax_rate=Decimal(tax),
    )


def api_product(product_id: int, name: str, xof: Any, eur: Any, usd: Any, tax: Any = 18) -> dict:
    """A product record shaped like the API returns it."""
    return {
        "id": product_id,
        "code": f"P{product_id}",
        "nameFr": name,
        "nameEn": f"{name} EN",
        "barcode": f"3000000{product_id}",
        "categoryName": "Parfums",
        "sellingPriceXOF": xof,
        "sellingPriceEUR": eur,
        "sellingPriceUSD": usd,
        "taxRate": tax,
        "active": True,
        "currentStock": 10,
        "minStockLevel": 2,
    }


class FakeApi:
    """Routes requests to canned responses and records what was sent."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json=body)

        self.routes[(method, path)] = respond

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == f"/api{path}"]

    def json_body(self, request: httpx.Request) -> Any:
        return json.loads(request.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"success": False, "message": f"No route {path}"})
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def session(tmp_path) -> SessionContext:
    return SessionContext(str(tmp_path / "session.json"))


@pytest.fixture
def cashier() -> User:
    return User(id="7", username="awa", role=UserRole.CASHIER)


@pytest.fixture
def fake_api() -> FakeApi:
    api = FakeApi()
    api.add(
        "GET",
        "/products",
        body={
            "success": True,
            "data": [
                api_product(1, "Parfum", 1000, 2, 3, 18),
                api_product(2, "Chocolat", 500, None, 1, 0),
            ],
        },
    )
    return api


@pytest.fixture
def client(session, fake_api) -> DutyFreeClient:
    return DutyFreeClient(session, base_url="http://pos.test/api", transport=fake_api.transport)
