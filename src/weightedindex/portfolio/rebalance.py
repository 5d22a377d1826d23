"""Value-driven rebalancing: each weight tracks the asset's share of total value."""

from typing import Literal, Optional

import structlog

from weightedindex.errors import UndefinedRebalance
from weightedindex.models import AssetEntry, PortfolioState
from weightedindex.fixed_point import (
    BASIS_POINTS,
    checked_add,
    checked_mul,
    require_unsigned,
)
from weightedindex.sources.base import BalanceSource

logger = structlog.get_logger(__name__)

RemainderPolicy = Literal["none", "largest"]


def equal_weights(count: int) -> list[int]:
    """Split 10000 basis points evenly; the first ``10000 % count`` assets get one extra."""
    if count < 1:
        raise ValueError("At least one asset is required")
    base, extra = divmod(BASIS_POINTS, count)
    return [base + 1 if i < extra else base for i in range(count)]


def _check_weights(weights: list[int], count: int) -> None:
    if len(weights) != count:
        raise ValueError(f"Expected {count} weights, got {len(weights)}")
    for weight in weights:
        if isinstance(weight, bool) or not isinstance(weight, int):
            raise TypeError(f"Weight must be an int, got {type(weight).__name__}")
        if not 0 <= weight <= BASIS_POINTS:
            raise ValueError(f"Weight {weight} outside 0..{BASIS_POINTS}")
    if sum(weights) != BASIS_POINTS:
        raise ValueError(f"Weights must sum to {BASIS_POINTS}, got {sum(weights)}")


def build_portfolio(assets: list[str], weights: Optional[list[int]] = None) -> PortfolioState:
    """Create the revision-0 portfolio with zero cached prices.

    Args:
        assets: Ordered asset identifiers, fixed for the portfolio's lifetime
        weights: Initial weights in basis points summing to exactly 10000.
            Defaults to an equal split.

    Raises:
        ValueError: On empty or duplicate assets, or weights that do not sum to 10000
    """
    if weights is None:
        weights = equal_weights(len(assets))
    _check_weights(weights, len(assets))

    return PortfolioState(
        entries=tuple(
            AssetEntry(asset=asset, weight=weight)
            for asset, weight in zip(assets, weights)
        ),
    )


def set_weights(state: PortfolioState, weights: list[int]) -> PortfolioState:
    """Return the next revision with operator-chosen weights.

    Unlike ``rebalance`` the weights must sum to exactly 10000.
    """
    _check_weights(weights, len(state.entries))
    return state.with_weights(list(weights))


def value_contributions(state: PortfolioState, balances: BalanceSource) -> list[int]:
    """Unweighted ``cached_price * balance`` per asset, in portfolio order."""
    values = []
    for entry in state.entries:
        balance = require_unsigned(balances.balance_of(entry.asset), f"balance of {entry.asset}")
        values.append(checked_mul(entry.cached_price, balance))
    return values


def compute_rebalanced_weights(
    values: list[int],
    remainder_policy: RemainderPolicy = "none",
) -> list[int]:
    """Derive basis-point weights proportional to each value.

    Each weight is ``floor(v_i * 10000 / total)``. With the ``none`` policy
    the floor shortfall (at most N-1 basis points) is left unallocated. With
    ``largest`` it goes to the asset with the largest value, first on ties.

    Raises:
        UndefinedRebalance: If the total value is zero.
        ArithmeticOverflow: If ``v_i * 10000`` or the total leaves uint256.
    """
    total = 0
    for value in values:
        total = checked_add(total, value)
    if total == 0:
        raise UndefinedRebalance("Total portfolio value is zero; cannot derive weights")

    weights = [checked_mul(value, BASIS_POINTS) // total for value in values]

    if remainder_policy == "largest":
        shortfall = BASIS_POINTS - sum(weights)
        largest = max(range(len(values)), key=values.__getitem__)
        weights[largest] += shortfall
    elif remainder_policy != "none":
        raise ValueError(f"Unknown remainder policy: '{remainder_policy}'")

    return weights


def rebalance(
    state: PortfolioState,
    balances: BalanceSource,
    remainder_policy: RemainderPolicy = "none",
) -> PortfolioState:
    """Return the next revision with weights recomputed from value contributions.

    Uses the cached prices as they are. Refreshing them first is the caller's
    job; this function never consults the price source.
    """
    values = value_contributions(state, balances)
    weights = compute_rebalanced_weights(values, remainder_policy)
    rebalanced = state.with_weights(weights)

    logger.debug(
        "portfolio.rebalanced",
        revision=rebalanced.revision,
        weights=dict(zip(rebalanced.assets, weights)),
        total_weight=sum(weights),
    )
    return rebalanced
