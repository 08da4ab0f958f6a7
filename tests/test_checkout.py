from decimal import Decimal

import httpx
import pytest

from dutyfree_pos_server.cart import CartLedger
from dutyfree_pos_server.checkout import CheckoutState, CheckoutSubmitter
from dutyfree_pos_server.models import Currency, PaymentMethod

from .conftest import make_product


@pytest.fixture
def ledger() -> CartLedger:
    ledger = CartLedger()
    ledger.add_item(make_product("1", xof="1000", tax="18"), Currency.XOF)
    ledger.update_quantity("1", 1)
    return ledger


@pytest.fixture
def submitter(client, ledger) -> CheckoutSubmitter:
    return CheckoutSubmitter(client, ledger)


def cart_state(ledger):
    return [(line.product_id, line.quantity, line.unit_price) for line in ledger]


@pytest.mark.asyncio
async def test_successful_checkout_sends_single_payment_and_clears_cart(submitter, ledger, fake_api):
    fake_api.add(
        "POST",
        "/sales",
        status=201,
        body={"success": True, "data": {"id": 42, "saleNumber": "S-0042", "status": "COMPLETED"}},
    )

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.state is CheckoutState.SUCCESS
    assert outcome.succeeded
    assert outcome.sale.id == "42"
    assert outcome.sale.sale_number == "S-0042"
    assert ledger.is_empty
    assert submitter.state is CheckoutState.SUCCESS
    assert submitter.submitting is False

    [request] = fake_api.calls("POST", "/sales")
    body = fake_api.json_body(request)
    assert body["currency"] == "XOF"
    assert body["payments"] == [{"method": "CASH", "amount": 2360, "currency": "XOF"}]
    assert len(body["items"]) == 1
    assert body["items"][0]["productId"] == "1"
    assert body["items"][0]["quantity"] == 2
    assert body["items"][0]["totalPrice"] == 2000


@pytest.mark.asyncio
async def test_empty_cart_is_rejected_without_network(client, fake_api):
    submitter = CheckoutSubmitter(client, CartLedger())

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.state is CheckoutState.IDLE
    assert outcome.error_kind == "validation"
    assert submitter.state is CheckoutState.IDLE
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_rejection_preserves_cart(submitter, ledger, fake_api):
    fake_api.add("POST", "/sales", status=400, body={"success": False, "message": "Insufficient stock"})
    before = cart_state(ledger)

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CARD)

    assert outcome.state is CheckoutState.FAILED
    assert outcome.error_kind == "rejection"
    assert "Insufficient stock" in outcome.message
    assert cart_state(ledger) == before
    assert submitter.submitting is False


@pytest.mark.asyncio
async def test_server_error_preserves_cart(submitter, ledger, fake_api):
    fake_api.add("POST", "/sales", status=503, body={"message": "Service unavailable"})
    before = cart_state(ledger)

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.state is CheckoutState.FAILED
    assert outcome.error_kind == "transport"
    assert cart_state(ledger) == before


@pytest.mark.asyncio
async def test_network_failure_preserves_cart_and_allows_retry(submitter, ledger, fake_api):
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    fake_api.add_handler("POST", "/sales", unreachable)
    before = cart_state(ledger)

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.MOBILE_MONEY)

    assert outcome.state is CheckoutState.FAILED
    assert outcome.error_kind == "transport"
    assert cart_state(ledger) == before
    assert len(fake_api.calls("POST", "/sales")) == 1

    fake_api.add("POST", "/sales", body={"data": {"id": 1}})
    retry = await submitter.submit(Currency.XOF, PaymentMethod.MOBILE_MONEY)

    assert retry.succeeded
    assert ledger.is_empty


@pytest.mark.asyncio
async def test_second_submit_while_pending_is_refused(submitter, fake_api):
    submitter.submitting = True
    submitter.state = CheckoutState.SUBMITTING

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.error_kind == "validation"
    assert outcome.state is CheckoutState.SUBMITTING
    assert fake_api.requests == []


def test_build_request_uses_active_currency(submitter, ledger):
    ledger.reprice_all(Currency.EUR, {"1": make_product("1", eur="2", tax="18")})

    request = submitter.build_request(Currency.EUR, PaymentMethod.CARD)

    assert request.currency is Currency.EUR
    assert request.payments[0].amount == Decimal("4.72")
    assert request.payments[0].currency is Currency.EUR
    assert request.payments[0].method is PaymentMethod.CARD


@pytest.mark.asyncio
async def test_unauthorized_sale_preserves_cart_and_drops_token(submitter, ledger, session, cashier, fake_api):
    session.save_session("expired", cashier)
    fake_api.add("POST", "/sales", status=401, body={"message": "Token expired"})
    before = cart_state(ledger)

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.state is CheckoutState.FAILED
    assert outcome.error_kind == "rejection"
    assert "Token expired" in outcome.message
    assert cart_state(ledger) == before
    assert not session.is_authenticated()


@pytest.mark.asyncio
async def test_off_type_acknowledgement_still_counts_as_recorded(submitter, ledger, fake_api):
    fake_api.add(
        "POST",
        "/sales",
        status=201,
        body={"data": {"id": 9, "saleNumber": 1009, "status": 1, "totalAmount": {"value": 2360}}},
    )

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.succeeded
    assert outcome.sale.sale_number == "1009"
    assert outcome.sale.status == "1"
    assert outcome.sale.total_amount is None
    assert ledger.is_empty


@pytest.mark.asyncio
async def test_unexpected_error_preserves_cart(submitter, ledger, monkeypatch):
    async def broken(request):
        raise RuntimeError("boom")

    monkeypatch.setattr(submitter.client, "create_sale", broken)
    before = cart_state(ledger)

    outcome = await submitter.submit(Currency.XOF, PaymentMethod.CASH)

    assert outcome.state is CheckoutState.FAILED
    assert outcome.error_kind == "unexpected"
    assert cart_state(ledger) == before
    assert submitter.state is CheckoutState.FAILED
    assert submitter.submitting is False
