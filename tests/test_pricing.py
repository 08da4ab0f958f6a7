from decimal import Decimal

import pytest

from dutyfree_pos_server.models import Currency
from dutyfree_pos_server.pricing import price_for

from .conftest import make_product


@pytest.mark.parametrize(
    "currency, expected",
    [(Currency.XOF, Decimal("1000")), (Currency.EUR, Decimal("2")), (Currency.USD, Decimal("3"))],
)
def test_price_for_reads_the_currency_field(currency, expected):
    assert price_for(make_product(), currency) == expected


def test_price_for_accepts_currency_code():
    assert price_for(make_product(), "EUR") == Decimal("2")


def test_missing_price_is_zero():
    product = make_product(eur=None)
    assert price_for(product, Currency.EUR) == Decimal("0")


def test_prices_are_not_converted():
    product = make_product(xof="655.957", eur="0", usd="0")
    assert price_for(product, Currency.EUR) == Decimal("0")
