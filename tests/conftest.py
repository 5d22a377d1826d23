"""Shared test fixtures."""

import pytest

from weightedindex.config import AppConfig, Secrets
from weightedindex.engine import IndexEngine
from weightedindex.fixed_point import FIXED_POINT_SCALE
from weightedindex.sources.static import StaticBalanceSource, StaticPriceSource
from weightedindex.state.memory import MemoryStateBackend

ONE = FIXED_POINT_SCALE


@pytest.fixture
def test_config() -> AppConfig:
    """Two-asset index with 50/50 starting weights."""
    return AppConfig(
        index={
            "name": "test-index",
            "assets": ["TK1", "TK2"],
            "initial_weights": [5000, 5000],
        },
        logging={
            "level": "DEBUG",
            "app_log": "/tmp/test_weightedindex.log",
            "ledger_log": "/tmp/test_ledger.log",
            "rebalance_log": "/tmp/test_rebalances.log",
        },
    )


@pytest.fixture
def mock_secrets() -> Secrets:
    """Provide fake API keys for unit tests."""
    return Secrets(
        alpaca_api_key="test-alpaca-key",
        alpaca_secret_key="test-alpaca-secret",
    )


@pytest.fixture
def price_source() -> StaticPriceSource:
    """$2 for TK1, $1 for TK2."""
    return StaticPriceSource({"TK1": 2 * ONE, "TK2": 1 * ONE})


@pytest.fixture
def balance_source() -> StaticBalanceSource:
    """500 tokens of each asset."""
    return StaticBalanceSource({"TK1": 500 * ONE, "TK2": 500 * ONE})


@pytest.fixture
def state_backend() -> MemoryStateBackend:
    return MemoryStateBackend()


@pytest.fixture
def engine(test_config, mock_secrets, price_source, balance_source, state_backend) -> IndexEngine:
    return IndexEngine(
        test_config,
        mock_secrets,
        price_source=price_source,
        balance_source=balance_source,
        state_backend=state_backend,
    )
