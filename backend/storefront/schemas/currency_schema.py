from decimal import Decimal

from storefront.schemas.base import ApiModel


class CurrencyOut(ApiModel):
    code: str
    name: str
    symbol: str
    rate: Decimal
