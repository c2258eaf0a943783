"""
Display-currency conversion.

Every stored amount is in ``settings.BASE_CURRENCY``; the helpers here turn a
base amount into what the customer sees (or is charged) in another currency
and never write anything back.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Union

from storefront.config import settings
from storefront.services.errors import UnsupportedCurrency

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")
ZERO_DECIMAL_CURRENCIES = {"JPY"}


@dataclass(frozen=True)
class Currency:
    code: str
    name: str
    symbol: str
    rate: Decimal  # units of this currency per 1 base unit


CURRENCIES: Dict[str, Currency] = {
    c.code: c
    for c in [
        Currency("USD", "US Dollar", "$", Decimal("1")),
        Currency("EUR", "Euro", "€", Decimal("0.93")),
        Currency("GBP", "British Pound", "£", Decimal("0.82")),
        Currency("JPY", "Japanese Yen", "¥", Decimal("151.2")),
        Currency("CAD", "Canadian Dollar", "C$", Decimal("1.38")),
        Currency("AUD", "Australian Dollar", "A$", Decimal("1.52")),
        Currency("CNY", "Chinese Yuan", "¥", Decimal("7.24")),
        Currency("INR", "Indian Rupee", "₹", Decimal("83.42")),
    ]
}


def _dec(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def list_currencies() -> List[Currency]:
    return list(CURRENCIES.values())


def get_currency(code: str) -> Currency:
    cur = CURRENCIES.get((code or "").upper())
    if cur is None:
        raise UnsupportedCurrency(f"Currency not supported: {code}", currency=code)
    return cur


def find_currency(code: str) -> Currency:
    """Lenient lookup for display: unknown codes fall back to the base currency."""
    return CURRENCIES.get((code or "").upper()) or CURRENCIES[settings.BASE_CURRENCY]


def convert(amount: Number, rate: Number) -> Decimal:
    """Base amount -> target amount, rounded half-up to 2 places."""
    return (_dec(amount) * _dec(rate)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def convert_to(amount: Number, code: str) -> Decimal:
    return convert(amount, get_currency(code).rate)


def format_amount(amount: Number, currency: Currency) -> str:
    symbol = currency.symbol or currency.code
    if currency.code in ZERO_DECIMAL_CURRENCIES:
        return f"{symbol}{_dec(amount).quantize(Decimal('1'), rounding=ROUND_HALF_UP)}"
    return f"{symbol}{_dec(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)}"


def minor_unit(code: str) -> Decimal:
    return Decimal("1") if code.upper() in ZERO_DECIMAL_CURRENCIES else TWO_PLACES


def to_minor_units(amount: Number, code: str) -> int:
    """Amount in the processor's integer unit (cents; whole yen for JPY)."""
    unit = minor_unit(code)
    return int((_dec(amount) / unit).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(minor: int, code: str) -> Decimal:
    return (Decimal(minor) * minor_unit(code)).quantize(TWO_PLACES)


def price_tolerance(code: str) -> Decimal:
    # the processor cannot charge finer than its minor unit
    return max(_dec(settings.PRICE_TOLERANCE), minor_unit(code) / 2)
