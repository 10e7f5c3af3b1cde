"""Continuous clearing auction price grid helpers.

The launch strategy runs a continuous clearing auction (CCA) where prices are
Q96 fixed point numbers on a grid of ``tick_spacing`` wide buckets.

.. note ::

    These conversions are integer approximations: floor division everywhere,
    spacing is 1% of the floor price clamped to a minimum of 2.
    Prices sitting exactly on a bucket boundary are not given any special rounding treatment.
"""

from dataclasses import dataclass


#: Uniswap fixed point 2**96
Q96 = 2**96

#: 0.001 ETH per token
DEFAULT_FLOOR_PRICE_WEI = 10**15

#: Smallest tick spacing the auction accepts
MIN_TICK_SPACING_Q96 = 2

#: Spacing is floor price divided by this
TICK_SPACING_DIVISOR = 100


@dataclass(slots=True, frozen=True)
class AuctionPriceGrid:
    """Floor price and bucket width of an auction, all Q96."""

    floor_price_q96: int
    tick_spacing_q96: int

    @property
    def aligned_floor_price_q96(self) -> int:
        return align_to_tick_spacing(self.floor_price_q96, self.tick_spacing_q96)


def wei_per_token_to_q96(price_wei: int, token_decimals: int = 18) -> int:
    """Convert ETH wei per one whole token to a Q96 price per token base unit."""
    assert type(price_wei) == int and price_wei > 0, f"Bad price: {price_wei}"
    return price_wei * Q96 // 10**token_decimals


def q96_to_wei_per_token(price_q96: int, token_decimals: int = 18) -> int:
    """Inverse of :py:func:`wei_per_token_to_q96`, rounds down."""
    return price_q96 * 10**token_decimals // Q96


def compute_tick_spacing(floor_price_q96: int) -> int:
    """Default bucket width for a floor price.

    1% of the floor, at least :py:data:`MIN_TICK_SPACING_Q96`.
    """
    raw = floor_price_q96 // TICK_SPACING_DIVISOR
    if raw > 1:
        return raw
    return MIN_TICK_SPACING_Q96


def align_to_tick_spacing(price_q96: int, tick_spacing_q96: int) -> int:
    """Round a price down to the grid."""
    assert tick_spacing_q96 > 0, f"Bad tick spacing: {tick_spacing_q96}"
    return price_q96 // tick_spacing_q96 * tick_spacing_q96


def get_price_grid(floor_price_wei: int = DEFAULT_FLOOR_PRICE_WEI) -> AuctionPriceGrid:
    """Compute auction grid parameters from a human floor price.

    :param floor_price_wei:
        ETH wei per one whole creator share token
    """
    floor_price_q96 = wei_per_token_to_q96(floor_price_wei)
    return AuctionPriceGrid(
        floor_price_q96=floor_price_q96,
        tick_spacing_q96=compute_tick_spacing(floor_price_q96),
    )
