"""Price and balance collaborators."""

from weightedindex.sources.base import BalanceSource, PriceSource
from weightedindex.sources.static import StaticBalanceSource, StaticPriceSource

__all__ = [
    "BalanceSource",
    "PriceSource",
    "StaticBalanceSource",
    "StaticPriceSource",
]
