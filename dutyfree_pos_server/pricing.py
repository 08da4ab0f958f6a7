"""Per-currency price lookup."""

from decimal import Decimal

from .models import Currency, Product


def price_for(product: Product, currency: Currency) -> Decimal:
    """
    Return the unit price of a product in the given currency.

    Each currency is an independently configured price on the product; no
    exchange rate is applied. A missing price counts as zero.
    """
    currency = Currency(currency)
    if currency is Currency.XOF:
        price = product.price_xof
    elif currency is Currency.EUR:
        price = product.price_eur
    else:
        price = product.price_usd
    return price if price is not None else Decimal("0")
