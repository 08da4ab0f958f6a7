"""Point-of-sale terminal: catalog, cart, currency and payment selection."""

import logging
from decimal import Decimal
from typing import Any, Optional

from .auth import SessionContext
from .cart import CartLedger, compute_totals
from .checkout import CheckoutOutcome, CheckoutSubmitter
from .exceptions import CheckoutValidationError
from .models import CartLine, CartTotals, Currency, PaymentMethod, Product, SessionData
from .pos_client import DutyFreeClient
from .pricing import price_for

logger = logging.getLogger(__name__)


class PosTerminal:
    """State of one till: the loaded catalog and the transaction in progress."""

    def __init__(
        self,
        client: DutyFreeClient,
        currency: Currency = Currency.XOF,
        payment_method: PaymentMethod = PaymentMethod.CASH,
    ) -> None:
        self.client = client
        self.currency = Currency(currency)
        self.payment_method = PaymentMethod(payment_method)
        self.catalog: dict[str, Product] = {}
        self.ledger = CartLedger()
        self.submitter = CheckoutSubmitter(client, self.ledger)
        client.session.add_listener(self._on_session_cleared)

    def _on_session_cleared(self, previous: SessionData) -> None:
        """A logout ends the sale in progress."""
        if not self.ledger.is_empty:
            logger.info(f"Session ended, dropping {len(self.ledger)} cart line(s)")
        self.ledger.clear()

    @property
    def session(self) -> SessionContext:
        return self.client.session

    async def load_catalog(self) -> list[Product]:
        """Fetch products and reprice the cart against the fresh catalog."""
        try:
            products = await self.client.get_products()
        except Exception:
            self.catalog = {}
            raise
        self.catalog = {product.id: product for product in products}
        self.ledger.reprice_all(self.currency, self.catalog)
        logger.info(f"Loaded {len(products)} product(s)")
        return products

    def search(self, query: Optional[str] = None) -> list[Product]:
        """Match French/English names (case-insensitive) or a barcode fragment."""
        products = list(self.catalog.values())
        if not query:
            return products
        needle = query.lower()
        return [
            product
            for product in products
            if needle in product.name_fr.lower()
            or needle in product.name_en.lower()
            or (product.barcode and query in product.barcode)
        ]

    def price_of(self, product: Product) -> Decimal:
        return price_for(product, self.currency)

    def add_product(self, product_id: str) -> CartLine:
        product = self.catalog.get(str(product_id))
        if product is None:
            raise CheckoutValidationError(f"Unknown product: {product_id}")
        return self.ledger.add_item(product, self.currency)

    def update_quantity(self, product_id: str, delta: int) -> Optional[CartLine]:
        return self.ledger.update_quantity(str(product_id), delta)

    def remove_item(self, product_id: str) -> None:
        self.ledger.remove_item(str(product_id))

    def clear_cart(self) -> None:
        self.ledger.clear()

    def set_currency(self, currency: Currency) -> None:
        """Switch the active currency and reprice every line."""
        self.currency = Currency(currency)
        self.ledger.reprice_all(self.currency, self.catalog)
        logger.info(f"Currency set to {self.currency.value}")

    def set_payment_method(self, method: PaymentMethod) -> None:
        self.payment_method = PaymentMethod(method)

    def totals(self) -> CartTotals:
        return compute_totals(self.ledger)

    async def checkout(self, method: Optional[PaymentMethod] = None) -> CheckoutOutcome:
        """Submit the cart with the active currency and chosen payment method."""
        if method is not None:
            self.set_payment_method(method)
        return await self.submitter.submit(self.currency, self.payment_method)

    def summary(self) -> dict[str, Any]:
        """Serializable view of the cart for display."""
        return {
            "currency": self.currency.value,
            "payment_method": self.payment_method.value,
            "items": [line.model_dump(mode="json") for line in self.ledger],
            "totals": self.totals().model_dump(mode="json"),
        }
