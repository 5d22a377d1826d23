"""Tests for the Alpaca price and balance sources."""

from unittest.mock import MagicMock, patch

import pytest
from alpaca.common.exceptions import APIError

from weightedindex.errors import PriceUnavailable
from weightedindex.fixed_point import FIXED_POINT_SCALE
from weightedindex.sources.alpaca import AlpacaBalanceSource, AlpacaPriceSource

ONE = FIXED_POINT_SCALE


def _api_error(status_code: int) -> APIError:
    http_error = MagicMock()
    http_error.response.status_code = status_code
    return APIError('{"code": 40410000, "message": "position does not exist"}', http_error)


class TestAlpacaPriceSource:
    @pytest.fixture
    def source(self):
        with patch("weightedindex.sources.alpaca.StockHistoricalDataClient"):
            s = AlpacaPriceSource("key", "secret")
            s._client = MagicMock()
            return s

    def test_latest_trade_to_fixed_point(self, source):
        trade = MagicMock()
        trade.price = 187.25
        source._client.get_stock_latest_trade.return_value = {"AAPL": trade}

        assert source.get_price("AAPL") == 18725 * ONE // 100

    def test_failure_becomes_price_unavailable(self, source):
        with patch.object(
            AlpacaPriceSource, "_latest_trade_price", side_effect=RuntimeError("timeout")
        ):
            with pytest.raises(PriceUnavailable, match="AAPL"):
                source.get_price("AAPL")


class TestAlpacaBalanceSource:
    @pytest.fixture
    def source(self):
        with patch("weightedindex.sources.alpaca.TradingClient"):
            s = AlpacaBalanceSource("key", "secret")
            s._client = MagicMock()
            return s

    def test_position_quantity(self, source):
        position = MagicMock()
        position.qty = "12.5"
        source._client.get_open_position.return_value = position

        assert source.balance_of("AAPL") == 125 * ONE // 10

    def test_no_position_is_zero(self, source):
        source._client.get_open_position.side_effect = _api_error(404)
        assert source.balance_of("AAPL") == 0

    def test_other_api_errors_propagate(self, source):
        source._client.get_open_position.side_effect = _api_error(500)
        with pytest.raises(APIError):
            source.balance_of("AAPL")
