# minimarket/services/order_number.py
import random
import string
from datetime import datetime

ORDER_PREFIX = "MM"
SUFFIX_LENGTH = 4
_ALPHABET = string.digits + string.ascii_uppercase   # base 36


def generate_order_number(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """``MM-YYMMDD-XXXX``: store prefix, order date, random base-36 suffix.

    Uniqueness is probabilistic (36**4 suffixes per day); callers that need
    a guarantee check against stored orders.
    """
    now = now or datetime.now()
    rng = rng or random.SystemRandom()
    suffix = "".join(rng.choice(_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{ORDER_PREFIX}-{now:%y%m%d}-{suffix}"
