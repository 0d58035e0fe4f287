"""
Unit tests for reference generation, clock and money helpers
"""

import random
import re
from datetime import datetime
from decimal import Decimal

from restoflow.core.identifiers import generate_reference, local_now
from restoflow.core.money import money_sum, to_money, within_tolerance


def test_reference_format():
    ref = generate_reference("ORD", now=datetime(2024, 3, 9, 14, 5, 7))

    assert re.fullmatch(r"ORD20240309140507[A-Z]{4}", ref)


def test_reference_uses_given_random_source():
    now = datetime(2024, 3, 9, 14, 5, 7)

    first = generate_reference("GRP", now=now, rng=random.Random(42))
    second = generate_reference("GRP", now=now, rng=random.Random(42))

    assert first == second
    assert first.startswith("GRP20240309140507")


def test_reference_defaults_to_local_clock():
    ref = generate_reference("KT")

    assert re.fullmatch(r"KT\d{14}[A-Z]{4}", ref)


def test_local_now_is_naive():
    assert local_now().tzinfo is None


def test_to_money_rounds_half_even():
    assert to_money("2.345") == Decimal("2.34")
    assert to_money("2.355") == Decimal("2.36")
    assert to_money(None) == Decimal("0.00")
    assert to_money(0.1) == Decimal("0.10")


def test_money_sum_and_tolerance():
    assert money_sum(["333.33", "333.33", "333.34"]) == Decimal("1000.00")
    assert within_tolerance(Decimal("999.99"), Decimal("1000.00"), Decimal("0.01"))
    assert not within_tolerance(Decimal("999.98"), Decimal("1000.00"), Decimal("0.01"))
