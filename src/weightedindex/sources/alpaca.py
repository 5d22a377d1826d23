"""Alpaca-backed price and balance sources."""

from decimal import Decimal

import structlog
from alpaca.common.exceptions import APIError
from alpaca.data.historical import StockHistoricalDataClient
from alpaca.data.requests import StockLatestTradeRequest
from alpaca.trading.client import TradingClient
from tenacity import retry, stop_after_attempt, wait_exponential

from weightedindex.config import AppConfig, Secrets
from weightedindex.errors import PriceUnavailable
from weightedindex.fixed_point import to_fixed
from weightedindex.sources.base import BalanceSource, PriceSource

logger = structlog.get_logger(__name__)


class AlpacaPriceSource(PriceSource):
    """Latest trade price from the Alpaca market data API, as 18-decimal fixed point."""

    def __init__(self, api_key: str, secret_key: str):
        self._client = StockHistoricalDataClient(
            api_key=api_key,
            secret_key=secret_key,
        )

    @classmethod
    def from_config(cls, config: AppConfig, secrets: Secrets) -> "AlpacaPriceSource":
        return cls(secrets.alpaca_api_key, secrets.alpaca_secret_key)

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(min=1, max=10), reraise=True)
    def _latest_trade_price(self, asset: str) -> Decimal:
        trade = self._client.get_stock_latest_trade(
            StockLatestTradeRequest(symbol_or_symbols=asset)
        )
        return Decimal(str(trade[asset].price))

    def get_price(self, asset: str) -> int:
        try:
            price = self._latest_trade_price(asset)
        except Exception as e:
            logger.error("alpaca.price_fetch_failed", asset=asset, error=str(e))
            raise PriceUnavailable(asset, str(e)) from e

        try:
            return to_fixed(price)
        except ValueError as e:
            raise PriceUnavailable(asset, str(e)) from e


class AlpacaBalanceSource(BalanceSource):
    """Position quantities from the Alpaca trading API, as 18-decimal fixed point."""

    def __init__(self, api_key: str, secret_key: str, paper: bool = True):
        self._client = TradingClient(
            api_key=api_key,
            secret_key=secret_key,
            paper=paper,
        )

    @classmethod
    def from_config(cls, config: AppConfig, secrets: Secrets) -> "AlpacaBalanceSource":
        return cls(secrets.alpaca_api_key, secrets.alpaca_secret_key, paper=secrets.alpaca_paper)

    def balance_of(self, asset: str) -> int:
        try:
            position = self._client.get_open_position(asset)
        except APIError as e:
            # Alpaca answers 404 when nothing is held
            if e.status_code == 404:
                logger.debug("alpaca.no_position", asset=asset)
                return 0
            logger.error("alpaca.position_fetch_failed", asset=asset, error=str(e))
            raise
        return to_fixed(Decimal(str(position.qty)))
