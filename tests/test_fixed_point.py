import math

import pytest

from poolkeeper.engine.fixed_point import apply_fee_bps
from poolkeeper.engine.fixed_point import bps_of
from poolkeeper.engine.fixed_point import ceil_div
from poolkeeper.engine.fixed_point import isqrt
from poolkeeper.engine.fixed_point import ratio_div
from poolkeeper.engine.fixed_point import scaled_price


@pytest.mark.parametrize(
    "amount,fee_bps,expected",
    [
        (10_000_000, 30, 9_970_000),
        (999, 30, 996),
        (1, 30, 0),
        (12345, 0, 12345),
        (12345, 10000, 0),
    ],
)
def test_apply_fee_bps(amount: int, fee_bps: int, expected: int):
    assert apply_fee_bps(amount, fee_bps) == expected


def test_apply_fee_bps_floors():
    # 3 * 9999 / 10000 = 2.9997
    assert apply_fee_bps(3, 1) == 2


@pytest.mark.parametrize("amount,fee_bps", [(-1, 30), (100, -1), (100, 10001)])
def test_apply_fee_bps_rejects_bad_input(amount: int, fee_bps: int):
    with pytest.raises(ValueError):
        apply_fee_bps(amount, fee_bps)


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, 0),
        (1, 1),
        (2, 1),
        (3, 1),
        (4, 2),
        (15, 3),
        (16, 4),
        (40_000, 200),
        (10**40, 10**20),
        ((2**64 - 1) ** 2, 2**64 - 1),
        ((2**64 - 1) ** 2 - 1, 2**64 - 2),
    ],
)
def test_isqrt(value: int, expected: int):
    assert isqrt(value) == expected


def test_isqrt_is_floor_root(subtests):
    for value in list(range(0, 2000)) + [10**18 + k for k in range(-3, 4)]:
        with subtests.test(value=value):
            root = isqrt(value)
            assert root == math.isqrt(value)
            assert root * root <= value < (root + 1) * (root + 1)


def test_isqrt_negative():
    with pytest.raises(ValueError):
        isqrt(-1)


def test_ratio_div():
    assert ratio_div(7, 3, 2) == 10
    assert ratio_div(10**30, 10**30, 10**45) == 10**15

    with pytest.raises(ZeroDivisionError):
        ratio_div(1, 1, 0)


def test_ceil_div():
    assert ceil_div(7, 2) == 4
    assert ceil_div(8, 2) == 4
    assert ceil_div(0, 5) == 0

    with pytest.raises(ZeroDivisionError):
        ceil_div(1, 0)


def test_bps_of():
    assert bps_of(10_000, 30) == 30
    assert bps_of(10_000_000, 5) == 5_000
    assert bps_of(333, 30) == 0


def test_scaled_price():
    assert scaled_price(2_000_000, 1_000_000) == 2_000_000
    assert scaled_price(1, 3) == 333_333
    assert scaled_price(100, 0) == 0
