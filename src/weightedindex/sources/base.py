"""Abstract base classes for the price and balance collaborators."""

from abc import ABC, abstractmethod


class PriceSource(ABC):
    """Interface for the price oracle consulted by a price refresh."""

    @abstractmethod
    def get_price(self, asset: str) -> int:
        """Return the latest price for an asset.

        Args:
            asset: Asset identifier (ticker or address)

        Returns:
            Price as an integer scaled by 10**18.

        Raises:
            PriceUnavailable: If no price can be supplied for the asset.
        """
        ...


class BalanceSource(ABC):
    """Interface for the custody side: how much of each asset the index holds."""

    @abstractmethod
    def balance_of(self, asset: str) -> int:
        """Return the quantity of an asset held by the portfolio (unsigned, 18 decimals)."""
        ...
