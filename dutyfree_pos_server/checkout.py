"""Checkout submission: turns the cart into a single sale request."""

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .cart import CartLedger, total
from .exceptions import CheckoutValidationError, PosError
from .models import Currency, Payment, PaymentMethod, Sale, SaleRequest
from .pos_client import DutyFreeClient

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "IDLE"
    SUBMITTING = "SUBMITTING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class CheckoutOutcome(BaseModel):
    """User-facing result of a checkout attempt."""

    state: CheckoutState
    message: str
    error_kind: Optional[str] = None
    sale: Optional[Sale] = None

    @property
    def succeeded(self) -> bool:
        return self.state is CheckoutState.SUCCESS


class CheckoutSubmitter:
    """
    Submits the cart as one sale and clears it on success.

    State machine: IDLE -> SUBMITTING -> SUCCESS | FAILED. Every error, from
    validation to an unreadable server reply, is turned into a
    CheckoutOutcome. On failure the cart is left exactly as it was so the
    cashier can retry.
    """

    def __init__(self, client: DutyFreeClient, ledger: CartLedger) -> None:
        self.client = client
        self.ledger = ledger
        self.state = CheckoutState.IDLE
        self.submitting = False
        self.last_outcome: Optional[CheckoutOutcome] = None

    def build_request(self, currency: Currency, method: PaymentMethod) -> SaleRequest:
        """Package the cart lines and a single payment for the full total."""
        lines = self.ledger.snapshot()
        currency = Currency(currency)
        return SaleRequest(
            items=lines,
            currency=currency,
            payments=[
                Payment(method=PaymentMethod(method), amount=total(lines), currency=currency)
            ],
        )

    async def submit(self, currency: Currency, method: PaymentMethod) -> CheckoutOutcome:
        """Validate, send and settle one checkout attempt."""
        try:
            self._validate()
        except CheckoutValidationError as e:
            logger.warning(f"Checkout refused: {e.message}")
            if not self.submitting:
                self.state = CheckoutState.IDLE
            return self._finish(CheckoutOutcome(state=self.state, message=e.message, error_kind=e.kind))

        request = self.build_request(currency, method)
        self.submitting = True
        self.state = CheckoutState.SUBMITTING
        try:
            sale = await self.client.create_sale(request)
        except PosError as e:
            logger.error(f"Checkout failed ({e.kind}): {e.message}")
            self.state = CheckoutState.FAILED
            return self._finish(
                CheckoutOutcome(
                    state=self.state,
                    message=f"Could not record the sale: {e.message}",
                    error_kind=e.kind,
                )
            )
        except Exception as e:
            logger.error(f"Checkout failed unexpectedly: {e}", exc_info=True)
            self.state = CheckoutState.FAILED
            return self._finish(
                CheckoutOutcome(
                    state=self.state,
                    message=f"Could not record the sale: {e}",
                    error_kind="unexpected",
                )
            )
        finally:
            self.submitting = False
            if self.state is CheckoutState.SUBMITTING:
                # cancelled mid-flight
                self.state = CheckoutState.FAILED

        self.ledger.clear()
        self.state = CheckoutState.SUCCESS
        logger.info(f"✓ Sale recorded ({sale.sale_number or sale.id or 'no number'})")
        return self._finish(
            CheckoutOutcome(state=self.state, message="Sale recorded successfully", sale=sale)
        )

    def _validate(self) -> None:
        if self.submitting:
            raise CheckoutValidationError("A checkout is already in progress")
        if self.ledger.is_empty:
            raise CheckoutValidationError("Cart is empty, add products before checkout")

    def _finish(self, outcome: CheckoutOutcome) -> CheckoutOutcome:
        self.last_outcome = outcome
        return outcome
