"""In-memory cart ledger and checkout arithmetic."""

import logging
from decimal import Decimal
from typing import Iterable, Iterator, Mapping, Optional

from .exceptions import CheckoutValidationError
from .models import CartLine, CartTotals, Currency, Product
from .pricing import price_for

logger = logging.getLogger(__name__)


class CartLedger:
    """
    Ordered collection of cart lines, unique by product id.

    Line totals are derived from quantity and unit price, so every mutation
    keeps ``total_price == quantity * unit_price``.
    """

    def __init__(self) -> None:
        self._lines: list[CartLine] = []

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(list(self._lines))

    @property
    def lines(self) -> list[CartLine]:
        """Current lines, in insertion order."""
        return list(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def get(self, product_id: str) -> Optional[CartLine]:
        """Find the line for a product, if any."""
        product_id = str(product_id)
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def snapshot(self) -> list[CartLine]:
        """Deep copy of the lines."""
        return [line.model_copy(deep=True) for line in self._lines]

    def add_item(self, product: Product, currency: Currency) -> CartLine:
        """
        Add one unit of a product.

        An existing line is incremented; otherwise a new line is appended with
        the product's price in ``currency`` and its current tax rate.
        """
        if product is None or not product.id:
            raise CheckoutValidationError("Cannot add a product without an id")

        line = self.get(product.id)
        if line is not None:
            line.quantity += 1
            logger.debug(f"Incremented {product.id} to {line.quantity}")
            return line

        line = CartLine(
            product_id=product.id,
            product_name=product.display_name,
            quantity=1,
            unit_price=price_for(product, currency),
            tax_rate=product.tax_rate,
        )
        self._lines.append(line)
        logger.debug(f"Added {product.id} at {line.unit_price} {Currency(currency).value}")
        return line

    def update_quantity(self, product_id: str, delta: int) -> Optional[CartLine]:
        """
        Change a line's quantity by ``delta``.

        A resulting quantity of zero or less removes the line. Returns the
        updated line, or None if it was removed or never existed.
        """
        line = self.get(product_id)
        if line is None:
            return None

        new_quantity = line.quantity + delta
        if new_quantity <= 0:
            self.remove_item(product_id)
            return None

        line.quantity = new_quantity
        return line

    def remove_item(self, product_id: str) -> None:
        """Remove a product's line; no-op when absent."""
        product_id = str(product_id)
        self._lines = [line for line in self._lines if line.product_id != product_id]

    def reprice_all(self, currency: Currency, products_by_id: Mapping[str, Product]) -> None:
        """Re-read every line's unit price from its product in ``currency``."""
        for line in self._lines:
            product = products_by_id.get(line.product_id)
            if product is None:
                logger.warning(
                    f"Product {line.product_id} not in catalog, keeping price {line.unit_price}"
                )
                continue
            line.unit_price = price_for(product, currency)

    def clear(self) -> None:
        """Empty the cart."""
        self._lines = []


def subtotal(lines: Iterable[CartLine]) -> Decimal:
    """Sum of line totals."""
    return sum((line.total_price for line in lines), Decimal("0"))


def tax_amount(lines: Iterable[CartLine]) -> Decimal:
    """Tax of each line at its own captured rate, summed."""
    return sum(
        (line.total_price * line.tax_rate / Decimal("100") for line in lines),
        Decimal("0"),
    )


def total(lines: Iterable[CartLine]) -> Decimal:
    lines = list(lines)
    return subtotal(lines) + tax_amount(lines)


def compute_totals(lines: Iterable[CartLine]) -> CartTotals:
    """Bundle subtotal, tax, total and item count."""
    lines = list(lines)
    sub = subtotal(lines)
    tax = tax_amount(lines)
    return CartTotals(
        subtotal=sub,
        tax_amount=tax,
        total=sub + tax,
        item_count=sum(line.quantity for line in lines),
    )
