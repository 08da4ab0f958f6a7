from decimal import Decimal

import pytest
import pytest_asyncio

from dutyfree_pos_server.checkout import CheckoutState
from dutyfree_pos_server.exceptions import CheckoutValidationError, TransportError
from dutyfree_pos_server.models import Currency, PaymentMethod
from dutyfree_pos_server.terminal import PosTerminal

from .conftest import api_product


@pytest_asyncio.fixture
async def terminal(client) -> PosTerminal:
    terminal = PosTerminal(client)
    await terminal.load_catalog()
    return terminal


@pytest.mark.asyncio
async def test_load_catalog_indexes_products(terminal):
    assert set(terminal.catalog) == {"1", "2"}


@pytest.mark.asyncio
async def test_load_catalog_failure_empties_catalog(terminal, fake_api):
    fake_api.add("GET", "/products", status=502, body={"message": "bad gateway"})

    with pytest.raises(TransportError):
        await terminal.load_catalog()
    assert terminal.catalog == {}


@pytest.mark.asyncio
async def test_search_by_name_and_barcode(terminal):
    assert [p.id for p in terminal.search("parf")] == ["1"]
    assert [p.id for p in terminal.search("CHOCOLAT en")] == ["2"]
    assert [p.id for p in terminal.search("30000002")] == ["2"]
    assert len(terminal.search("")) == 2
    assert terminal.search("vodka") == []


@pytest.mark.asyncio
async def test_add_unknown_product(terminal):
    with pytest.raises(CheckoutValidationError):
        terminal.add_product("404")


@pytest.mark.asyncio
async def test_currency_switch_reprices_cart(terminal):
    terminal.add_product("1")
    terminal.update_quantity("1", 2)

    terminal.set_currency(Currency.EUR)

    line = terminal.ledger.get("1")
    assert line.unit_price == Decimal("2")
    assert line.total_price == Decimal("6")
    assert terminal.totals().subtotal == Decimal("6")


@pytest.mark.asyncio
async def test_catalog_reload_reprices_cart(terminal, fake_api):
    terminal.add_product("1")
    fake_api.add("GET", "/products", body={"data": [api_product(1, "Parfum", 1200, 2, 3)]})

    await terminal.load_catalog()

    assert terminal.ledger.get("1").unit_price == Decimal("1200")


@pytest.mark.asyncio
async def test_checkout_uses_selected_currency_and_method(terminal, fake_api):
    fake_api.add("POST", "/sales", body={"data": {"id": 3}})
    terminal.set_currency(Currency.USD)
    terminal.add_product("1")

    outcome = await terminal.checkout(PaymentMethod.CARD)

    assert outcome.state is CheckoutState.SUCCESS
    assert terminal.payment_method is PaymentMethod.CARD
    body = fake_api.json_body(fake_api.calls("POST", "/sales")[0])
    assert body["currency"] == "USD"
    assert body["payments"][0]["method"] == "CARD"
    assert body["payments"][0]["amount"] == pytest.approx(3.54)
    assert terminal.ledger.is_empty


@pytest.mark.asyncio
async def test_logout_drops_cart(terminal, session, cashier, fake_api):
    session.save_session("jwt-token", cashier)
    fake_api.add("POST", "/auth/logout", body={"success": True})
    terminal.add_product("1")

    await terminal.client.logout()

    assert terminal.ledger.is_empty


@pytest.mark.asyncio
async def test_expired_token_at_checkout_keeps_cart(terminal, session, cashier, fake_api):
    session.save_session("expired", cashier)
    fake_api.add("POST", "/sales", status=401, body={"message": "Token expired"})
    terminal.add_product("1")
    terminal.add_product("2")

    outcome = await terminal.checkout()

    assert outcome.state is CheckoutState.FAILED
    assert not session.is_authenticated()
    assert [line.product_id for line in terminal.ledger] == ["1", "2"]

    session.save_session("fresh", cashier)
    fake_api.add("POST", "/sales", body={"data": {"id": 4}})
    retry = await terminal.checkout()

    assert retry.succeeded
    assert len(fake_api.calls("POST", "/sales")) == 2
    assert terminal.ledger.is_empty


@pytest.mark.asyncio
async def test_summary(terminal):
    terminal.add_product("1")

    summary = terminal.summary()

    assert summary["currency"] == "XOF"
    assert summary["payment_method"] == "CASH"
    assert summary["items"][0]["total_price"] == 1000
    assert summary["totals"] == {"subtotal": 1000, "tax_amount": 180, "total": 1180, "item_count": 1}
