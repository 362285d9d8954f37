import random
import re
from datetime import datetime

from minimarket.services.order_number import generate_order_number

ORDER_NUMBER_RE = re.compile(r"^MM-\d{6}-[0-9A-Z]{4}$")


def test_format():
    assert ORDER_NUMBER_RE.match(generate_order_number())


def test_date_part_is_yymmdd():
    number = generate_order_number(now=datetime(2026, 3, 7, 23, 59))
    assert number.startswith("MM-260307-")


def test_suffix_is_uppercase_base36():
    rng = random.Random(1234)
    suffixes = {generate_order_number(rng=rng)[-4:] for _ in range(200)}
    assert all(re.fullmatch(r"[0-9A-Z]{4}", s) for s in suffixes)
    assert len(suffixes) > 190


def test_seeded_rng_is_deterministic():
    now = datetime(2026, 10, 18)
    assert generate_order_number(now, random.Random(7)) == generate_order_number(now, random.Random(7))
