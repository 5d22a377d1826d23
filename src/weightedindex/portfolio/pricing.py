"""Price cache refresh: pull every asset's price into a new portfolio revision."""

import structlog

from weightedindex.errors import ArithmeticOverflow, PriceUnavailable
from weightedindex.models import PortfolioState
from weightedindex.fixed_point import require_unsigned
from weightedindex.sources.base import PriceSource

logger = structlog.get_logger(__name__)


def refresh_prices(state: PortfolioState, source: PriceSource) -> PortfolioState:
    """Query the price source for every asset and return the refreshed state.

    All prices are collected before the new state is built, so a failure for
    any asset leaves the caller holding the untouched input state.

    Raises:
        PriceUnavailable: If the source fails or returns an invalid price.
    """
    prices = []
    for asset in state.assets:
        price = source.get_price(asset)
        try:
            prices.append(require_unsigned(price, f"price of {asset}"))
        except (TypeError, ValueError, ArithmeticOverflow) as e:
            raise PriceUnavailable(asset, str(e)) from e

    refreshed = state.with_prices(prices)
    logger.debug(
        "prices.refreshed",
        revision=refreshed.revision,
        prices=dict(zip(refreshed.assets, refreshed.prices)),
    )
    return refreshed
