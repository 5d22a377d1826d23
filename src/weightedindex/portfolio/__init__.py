"""Portfolio valuation, price refresh and rebalancing."""

from weightedindex.portfolio.pricing import refresh_prices
from weightedindex.portfolio.rebalance import (
    RemainderPolicy,
    build_portfolio,
    compute_rebalanced_weights,
    equal_weights,
    rebalance,
    set_weights,
    value_contributions,
)
from weightedindex.portfolio.valuation import (
    asset_contribution,
    compute_index_value,
    value_breakdown,
)

__all__ = [
    "RemainderPolicy",
    "asset_contribution",
    "build_portfolio",
    "compute_index_value",
    "compute_rebalanced_weights",
    "equal_weights",
    "rebalance",
    "refresh_prices",
    "set_weights",
    "value_breakdown",
    "value_contributions",
]
