"""Auction price grid."""

from creator_vault.auction import (
    DEFAULT_FLOOR_PRICE_WEI,
    MIN_TICK_SPACING_Q96,
    Q96,
    align_to_tick_spacing,
    compute_tick_spacing,
    get_price_grid,
    q96_to_wei_per_token,
    wei_per_token_to_q96,
)


def test_default_floor_price():
    grid = get_price_grid()
    assert grid.floor_price_q96 == DEFAULT_FLOOR_PRICE_WEI * Q96 // 10**18
    assert grid.tick_spacing_q96 == grid.floor_price_q96 // 100
    assert grid.aligned_floor_price_q96 % grid.tick_spacing_q96 == 0
    assert grid.aligned_floor_price_q96 <= grid.floor_price_q96


def test_one_eth_per_token_is_q96():
    assert wei_per_token_to_q96(10**18) == Q96
    assert q96_to_wei_per_token(Q96) == 10**18


def test_round_trip_rounds_down():
    price = 123_456_789
    assert q96_to_wei_per_token(wei_per_token_to_q96(price)) <= price


def test_tick_spacing_minimum():
    assert compute_tick_spacing(0) == MIN_TICK_SPACING_Q96
    assert compute_tick_spacing(199) == MIN_TICK_SPACING_Q96
    assert compute_tick_spacing(300) == 3


def test_align():
    assert align_to_tick_spacing(1005, 10) == 1000
    assert align_to_tick_spacing(1000, 10) == 1000
