# minimarket/utils/money.py
# CLP has no minor unit: every stored or emitted amount is a whole peso.

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))

def round_clp(x) -> int:
    return int(D(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def percent_of(amount, rate) -> int:
    return round_clp(D(amount) * D(rate))

CURRENCY = "CLP"
TAX_RATE = Decimal("0.19")   # Chilean IVA
