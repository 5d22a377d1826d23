"""Index valuation: weighted sum of cached price times held balance."""

import structlog

from weightedindex.models import AssetEntry, PortfolioState
from weightedindex.fixed_point import (
    BASIS_POINTS,
    checked_add,
    checked_mul,
    require_unsigned,
)
from weightedindex.sources.base import BalanceSource

logger = structlog.get_logger(__name__)


def asset_contribution(entry: AssetEntry, balance: int) -> int:
    """floor(cached_price * balance * weight / 10000) for one asset."""
    require_unsigned(balance, f"balance of {entry.asset}")
    return checked_mul(entry.cached_price, balance, entry.weight) // BASIS_POINTS


def value_breakdown(state: PortfolioState, balances: BalanceSource) -> dict[str, int]:
    """Weighted value contribution of every asset, in portfolio order."""
    return {
        entry.asset: asset_contribution(entry, balances.balance_of(entry.asset))
        for entry in state.entries
    }


def compute_index_value(state: PortfolioState, balances: BalanceSource) -> int:
    """Compute the total index value from cached prices, balances and weights.

    The result keeps the raw scale of ``price * balance``: with 18-decimal
    prices and balances it carries 36 decimals. An empty portfolio is worth 0.

    Raises:
        ArithmeticOverflow: If any product or the running sum leaves uint256.
    """
    total = 0
    for contribution in value_breakdown(state, balances).values():
        total = checked_add(total, contribution)
    return total
