"""In-memory price and balance sources backed by plain dicts."""

from weightedindex.config import AppConfig, Secrets
from weightedindex.errors import PriceUnavailable
from weightedindex.fixed_point import require_unsigned, to_fixed
from weightedindex.sources.base import BalanceSource, PriceSource


class StaticPriceSource(PriceSource):
    """Deterministic price oracle. Unknown assets raise ``PriceUnavailable``."""

    def __init__(self, prices: dict[str, int] | None = None):
        self._prices: dict[str, int] = {}
        for asset, price in (prices or {}).items():
            self.set_price(asset, price)

    @classmethod
    def from_config(cls, config: AppConfig, secrets: Secrets) -> "StaticPriceSource":
        return cls({
            asset: to_fixed(price)
            for asset, price in config.static_sources.prices.items()
        })

    def set_price(self, asset: str, price: int) -> None:
        self._prices[asset] = require_unsigned(price, f"price of {asset}")

    def remove_price(self, asset: str) -> None:
        self._prices.pop(asset, None)

    def get_price(self, asset: str) -> int:
        if asset not in self._prices:
            raise PriceUnavailable(asset, "not quoted by static source")
        return self._prices[asset]


class StaticBalanceSource(BalanceSource):
    """Deterministic balances. Assets never set report a zero balance."""

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = {}
        for asset, amount in (balances or {}).items():
            self.set_balance(asset, amount)

    @classmethod
    def from_config(cls, config: AppConfig, secrets: Secrets) -> "StaticBalanceSource":
        return cls({
            asset: to_fixed(amount)
            for asset, amount in config.static_sources.balances.items()
        })

    def set_balance(self, asset: str, amount: int) -> None:
        self._balances[asset] = require_unsigned(amount, f"balance of {asset}")

    def balance_of(self, asset: str) -> int:
        return self._balances.get(asset, 0)
