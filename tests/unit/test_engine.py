"""Tests for the index engine."""

import json
import threading
from unittest.mock import MagicMock, patch

import pytest
from structlog.testing import capture_logs

from weightedindex.config import AppConfig
from weightedindex.engine import IndexEngine
from weightedindex.errors import InsufficientBalance, PriceUnavailable, UndefinedRebalance
from weightedindex.fixed_point import FIXED_POINT_SCALE
from weightedindex.sources.static import StaticBalanceSource, StaticPriceSource
from weightedindex.state.memory import MemoryStateBackend
from weightedindex.state.redis_backend import RedisStateBackend

ONE = FIXED_POINT_SCALE


class FlakyStateBackend(MemoryStateBackend):
    """Memory backend whose writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.fail = False

    def save_state(self, portfolio: dict, shares: dict) -> None:
        if self.fail:
            raise ConnectionError("backend unavailable")
        super().save_state(portfolio, shares)


def _make_engine(config, secrets, prices=None, balances=None, backend=None) -> IndexEngine:
    return IndexEngine(
        config,
        secrets,
        price_source=prices or StaticPriceSource({"TK1": 2 * ONE, "TK2": ONE}),
        balance_source=balances or StaticBalanceSource({"TK1": 500 * ONE, "TK2": 500 * ONE}),
        state_backend=backend or MemoryStateBackend(),
    )


class TestConstruction:
    def test_initial_state(self, engine):
        assert engine.get_weights() == [5000, 5000]
        assert engine.get_prices() == [0, 0]
        assert engine.revision == 0
        assert engine.total_supply == 0

    def test_zero_balances_value_zero(self, test_config, mock_secrets):
        engine = _make_engine(test_config, mock_secrets, balances=StaticBalanceSource())
        engine.refresh_prices()
        assert engine.get_index_value() == 0

    def test_default_weights_equal_split(self, mock_secrets):
        config = AppConfig(index={"assets": ["A", "B", "C"]})
        engine = _make_engine(
            config,
            mock_secrets,
            prices=StaticPriceSource({"A": ONE, "B": ONE, "C": ONE}),
            balances=StaticBalanceSource(),
        )
        assert engine.get_weights() == [3334, 3333, 3333]

    def test_derive_initial_weights(self, mock_secrets):
        config = AppConfig(index={"assets": ["TK1", "TK2"], "derive_initial_weights": True})
        engine = _make_engine(config, mock_secrets)
        assert engine.get_weights() == [6666, 3333]
        assert engine.get_prices() == [2 * ONE, ONE]
        assert engine.revision == 2

    def test_derive_initial_weights_without_price_fails(self, mock_secrets):
        config = AppConfig(index={"assets": ["TK1", "TK2"], "derive_initial_weights": True})
        with pytest.raises(PriceUnavailable):
            _make_engine(config, mock_secrets, prices=StaticPriceSource({"TK1": ONE}))

    def test_initial_state_persisted(self, engine, state_backend):
        saved = state_backend.load_state()
        assert saved["portfolio"]["revision"] == 0
        assert saved["shares"]["total_supply"] == 0


class TestValuation:
    def test_reference_scenario(self, engine):
        engine.refresh_prices()
        expected = (2 * ONE * 500 * ONE * 5000) // 10000 + (ONE * 500 * ONE * 5000) // 10000
        assert engine.get_index_value() == expected == 750 * 10**36

    def test_value_breakdown(self, engine):
        engine.refresh_prices()
        assert engine.get_value_breakdown() == {"TK1": 500 * 10**36, "TK2": 250 * 10**36}

    def test_snapshot(self, engine):
        engine.refresh_prices()
        engine.mint(100 * ONE, "alice")
        snapshot = engine.snapshot()
        assert snapshot.revision == 1
        assert snapshot.assets == ["TK1", "TK2"]
        assert snapshot.weights == [5000, 5000]
        assert snapshot.prices == [2 * ONE, ONE]
        assert snapshot.index_value == 750 * 10**36
        assert snapshot.total_supply == 100 * ONE


class TestRefresh:
    def test_refresh_twice_is_idempotent(self, engine):
        engine.refresh_prices()
        prices, value = engine.get_prices(), engine.get_index_value()
        engine.refresh_prices()
        assert engine.get_prices() == prices
        assert engine.get_index_value() == value
        assert engine.revision == 2

    def test_failed_refresh_keeps_every_cached_price(self, engine, price_source):
        engine.refresh_prices()
        price_source.set_price("TK1", 9 * ONE)
        price_source.remove_price("TK2")

        with pytest.raises(PriceUnavailable):
            engine.refresh_prices()

        assert engine.get_prices() == [2 * ONE, ONE]
        assert engine.revision == 1

    def test_failed_persist_keeps_state(self, test_config, mock_secrets):
        backend = FlakyStateBackend()
        engine = _make_engine(test_config, mock_secrets, backend=backend)
        backend.fail = True

        with pytest.raises(ConnectionError):
            engine.refresh_prices()

        assert engine.get_prices() == [0, 0]
        assert engine.revision == 0


class TestRebalance:
    def test_rebalance_tracks_value(self, engine):
        engine.refresh_prices()
        engine.rebalance()
        assert engine.get_weights() == [6666, 3333]
        assert engine.revision == 2

    def test_zero_value_rebalance_leaves_weights(self, test_config, mock_secrets):
        engine = _make_engine(test_config, mock_secrets, balances=StaticBalanceSource())
        engine.refresh_prices()
        with pytest.raises(UndefinedRebalance):
            engine.rebalance()
        assert engine.get_weights() == [5000, 5000]
        assert engine.revision == 1

    def test_rebalance_uses_cached_prices_only(self, engine, price_source):
        engine.refresh_prices()
        price_source.set_price("TK2", 100 * ONE)
        engine.rebalance()
        assert engine.get_weights() == [6666, 3333]

    def test_price_rise_increases_weight_and_value(self, engine, price_source):
        engine.refresh_prices()
        engine.rebalance()
        weight_before = engine.get_weights()[0]
        value_before = engine.get_index_value()
        assert value_before == 83325 * 10**34

        price_source.set_price("TK1", 3 * ONE)
        engine.refresh_prices()
        engine.rebalance()

        assert engine.get_weights() == [7500, 2500]
        assert engine.get_weights()[0] >= weight_before
        assert engine.get_index_value() >= value_before

    def test_largest_remainder_policy(self, test_config, mock_secrets):
        test_config.rebalancing.remainder_policy = "largest"
        engine = _make_engine(test_config, mock_secrets)
        engine.refresh_prices()
        engine.rebalance()
        assert engine.get_weights() == [6667, 3333]


class TestSetWeights:
    def test_explicit_weights(self, engine, state_backend):
        engine.refresh_prices()
        updated = engine.set_weights([7000, 3000])
        assert updated.weights == [7000, 3000]
        assert engine.get_weights() == [7000, 3000]
        assert engine.get_prices() == [2 * ONE, ONE]
        assert engine.revision == 2
        assert state_backend.load_state()["portfolio"]["revision"] == 2

    def test_explicit_weights_change_value(self, engine):
        engine.refresh_prices()
        engine.set_weights([10000, 0])
        assert engine.get_index_value() == 1000 * 10**36

    def test_wrong_sum_rejected(self, engine):
        with pytest.raises(ValueError, match="sum to 10000"):
            engine.set_weights([6000, 3000])
        assert engine.get_weights() == [5000, 5000]
        assert engine.revision == 0

    def test_wrong_length_rejected(self, engine):
        with pytest.raises(ValueError, match="Expected 2 weights"):
            engine.set_weights([10000])
        assert engine.revision == 0

    def test_failed_persist_keeps_weights(self, test_config, mock_secrets):
        backend = FlakyStateBackend()
        engine = _make_engine(test_config, mock_secrets, backend=backend)
        backend.fail = True

        with pytest.raises(ConnectionError):
            engine.set_weights([7000, 3000])
        assert engine.get_weights() == [5000, 5000]


class TestShares:
    def test_mint_then_burn(self, engine):
        engine.mint(100, "alice")
        engine.burn(50, "alice")
        assert engine.balance_of("alice") == 50
        assert engine.total_supply == 50

    def test_over_burn_leaves_balance(self, engine):
        engine.mint(100, "alice")
        with pytest.raises(InsufficientBalance):
            engine.burn(150, "alice")
        assert engine.balance_of("alice") == 100

    def test_mint_independent_of_value(self, engine):
        engine.mint(100, "alice")
        engine.refresh_prices()
        engine.mint(100, "bob")
        assert engine.balance_of("alice") == engine.balance_of("bob") == 100

    def test_failed_persist_rolls_back_mint(self, test_config, mock_secrets):
        backend = FlakyStateBackend()
        engine = _make_engine(test_config, mock_secrets, backend=backend)
        engine.mint(100, "alice")
        backend.fail = True

        with pytest.raises(ConnectionError):
            engine.mint(50, "alice")

        assert engine.balance_of("alice") == 100
        assert engine.total_supply == 100

    def test_failed_persist_leaves_no_ledger_entry(self, test_config, mock_secrets):
        backend = FlakyStateBackend()
        engine = _make_engine(test_config, mock_secrets, backend=backend)
        backend.fail = True

        with capture_logs() as logs:
            with pytest.raises(ConnectionError):
                engine.mint(50, "alice")

        events = [entry["event"] for entry in logs]
        assert "shares.minted" not in events
        assert "index.state_persist_failed" in events
        assert engine.balance_of("alice") == 0

    def test_ledger_entries_after_commit(self, engine):
        with capture_logs() as logs:
            engine.mint(100, "alice")
            engine.burn(40, "alice")

        ledger_entries = [e for e in logs if e["event"].startswith("shares.")]
        assert [e["event"] for e in ledger_entries] == ["shares.minted", "shares.burned"]
        assert ledger_entries[1]["balance"] == 60
        assert ledger_entries[1]["total_supply"] == 60

    def test_rejected_burn_leaves_no_ledger_entry(self, engine):
        engine.mint(10, "alice")
        with capture_logs() as logs:
            with pytest.raises(InsufficientBalance):
                engine.burn(20, "alice")
        assert "shares.burned" not in [e["event"] for e in logs]


class TestPersistence:
    def test_restore_from_backend(self, test_config, mock_secrets, state_backend, engine):
        engine.refresh_prices()
        engine.rebalance()
        engine.mint(10**30, "alice")

        restored = _make_engine(test_config, mock_secrets, backend=state_backend)
        assert restored.revision == 2
        assert restored.get_weights() == [6666, 3333]
        assert restored.get_prices() == [2 * ONE, ONE]
        assert restored.balance_of("alice") == 10**30

    def test_restore_skips_weight_derivation(self, mock_secrets, state_backend):
        config = AppConfig(index={"assets": ["TK1", "TK2"], "derive_initial_weights": True})
        first = _make_engine(config, mock_secrets, backend=state_backend)
        first.mint(1, "alice")

        second = _make_engine(config, mock_secrets, backend=state_backend)
        assert second.revision == first.revision

    def test_restore_rejects_other_assets(self, test_config, mock_secrets, state_backend, engine):
        other = AppConfig(index={"assets": ["TK1", "TK3"]})
        with pytest.raises(ValueError, match="do not match"):
            _make_engine(other, mock_secrets, backend=state_backend)

    def test_corrupt_document_left_untouched(self, test_config, mock_secrets):
        saved = json.dumps(
            {
                "version": 1,
                "portfolio": {"entries": [], "revision": 7},
                "shares": {"balances": {"alice": 100}, "total_supply": 100},
            }
        )
        with patch("weightedindex.state.redis_backend.redis.Redis") as mock_redis_cls:
            client = MagicMock()
            client.get.return_value = saved[:-20]
            mock_redis_cls.return_value = client
            backend = RedisStateBackend("test-index")

            with pytest.raises(ValueError, match="Corrupt persisted state"):
                _make_engine(test_config, mock_secrets, backend=backend)

        client.set.assert_not_called()
        client.setex.assert_not_called()


class TestConcurrency:
    def test_concurrent_mints_all_land(self, engine):
        def mint_many():
            for _ in range(50):
                engine.mint(1, "alice")

        threads = [threading.Thread(target=mint_many) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert engine.balance_of("alice") == 400
        assert engine.total_supply == 400

    def test_concurrent_refreshes_serialize(self, engine):
        threads = [threading.Thread(target=engine.refresh_prices) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert engine.revision == 20
        assert engine.get_prices() == [2 * ONE, ONE]

    def test_snapshot_sees_one_commit(self, engine):
        # The writer alternates mint and refresh, so supply leads revision by at most one.
        done = threading.Event()

        def writer():
            try:
                for _ in range(200):
                    engine.mint(1, "alice")
                    engine.refresh_prices()
            finally:
                done.set()

        thread = threading.Thread(target=writer)
        thread.start()
        while not done.is_set():
            snapshot = engine.snapshot()
            assert 0 <= snapshot.total_supply - snapshot.revision <= 1
        thread.join()

        assert engine.revision == engine.total_supply == 200
