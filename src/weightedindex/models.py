"""Domain models for the weighted index."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, model_validator

from weightedindex.fixed_point import BASIS_POINTS


class AssetEntry(BaseModel):
    """One held asset with its target weight and last-refreshed price."""

    asset: str = Field(min_length=1)
    weight: int = Field(ge=0, le=BASIS_POINTS)  # basis points
    cached_price: int = Field(default=0, ge=0)  # 18-decimal fixed point

    model_config = {"frozen": True}


class PortfolioState(BaseModel):
    """Immutable snapshot of the portfolio.

    Every refresh or rebalance produces a new state with ``revision``
    incremented by one. The asset order is fixed at construction.
    """

    entries: tuple[AssetEntry, ...] = ()
    revision: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def assets_must_be_unique(self):
        assets = [entry.asset for entry in self.entries]
        if len(set(assets)) != len(assets):
            raise ValueError(f"Duplicate assets in portfolio: {assets}")
        return self

    @property
    def assets(self) -> list[str]:
        return [entry.asset for entry in self.entries]

    @property
    def weights(self) -> list[int]:
        return [entry.weight for entry in self.entries]

    @property
    def prices(self) -> list[int]:
        return [entry.cached_price for entry in self.entries]

    @property
    def total_weight(self) -> int:
        return sum(self.weights)

    def with_prices(self, prices: list[int]) -> "PortfolioState":
        """Return the next revision with every cached price replaced."""
        if len(prices) != len(self.entries):
            raise ValueError(
                f"Expected {len(self.entries)} prices, got {len(prices)}"
            )
        entries = tuple(
            AssetEntry(asset=e.asset, weight=e.weight, cached_price=p)
            for e, p in zip(self.entries, prices)
        )
        return PortfolioState(entries=entries, revision=self.revision + 1)

    def with_weights(self, weights: list[int]) -> "PortfolioState":
        """Return the next revision with every weight replaced."""
        if len(weights) != len(self.entries):
            raise ValueError(
                f"Expected {len(self.entries)} weights, got {len(weights)}"
            )
        entries = tuple(
            AssetEntry(asset=e.asset, weight=w, cached_price=e.cached_price)
            for e, w in zip(self.entries, weights)
        )
        return PortfolioState(entries=entries, revision=self.revision + 1)


class IndexSnapshot(BaseModel):
    """Point-in-time view of the index for logging and reporting."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    revision: int
    assets: list[str]
    weights: list[int]
    prices: list[int]
    index_value: int
    total_supply: int
