from decimal import Decimal

import pytest

from storefront.services.currency_service import (
    convert,
    convert_to,
    find_currency,
    format_amount,
    from_minor_units,
    get_currency,
    price_tolerance,
    to_minor_units,
)
from storefront.services.errors import UnsupportedCurrency


def test_convert_rounds_half_up_to_cents():
    assert convert(Decimal("10.00"), Decimal("0.93")) == Decimal("9.30")
    assert convert(Decimal("0.05"), Decimal("0.93")) == Decimal("0.05")  # 0.0465
    assert convert_to("20.00", "JPY") == Decimal("3024.00")
    assert convert_to("20.00", "usd") == Decimal("20.00")


def test_unknown_currency():
    with pytest.raises(UnsupportedCurrency):
        get_currency("XYZ")
    assert find_currency("XYZ").code == "USD"
    assert find_currency("gbp").symbol == "£"


def test_format_amount():
    assert format_amount(Decimal("18.6"), get_currency("EUR")) == "€18.60"
    assert format_amount(Decimal("3024.40"), get_currency("JPY")) == "¥3024"


def test_minor_units():
    assert to_minor_units(Decimal("20.00"), "USD") == 2000
    assert to_minor_units(Decimal("3024.00"), "JPY") == 3024
    assert from_minor_units(1860, "EUR") == Decimal("18.60")


def test_tolerance_never_below_processor_unit():
    assert price_tolerance("USD") == Decimal("0.01")
    assert price_tolerance("JPY") == Decimal("0.5")


def test_currencies_endpoint(client):
    res = client.get("/api/currencies")
    assert res.status_code == 200
    codes = [c["code"] for c in res.json()]
    assert codes == ["USD", "EUR", "GBP", "JPY", "CAD", "AUD", "CNY", "INR"]
