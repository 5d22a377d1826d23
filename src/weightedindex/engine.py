"""Index engine: owns the portfolio state and share ledger, serializes every mutation."""

import threading
from typing import Optional

import structlog

from weightedindex.config import AppConfig, Secrets
from weightedindex.errors import WeightedIndexError
from weightedindex.logging_config import get_ledger_logger, get_rebalance_logger
from weightedindex.models import IndexSnapshot, PortfolioState
from weightedindex.portfolio import (
    build_portfolio,
    compute_index_value,
    rebalance,
    refresh_prices,
    set_weights,
    value_breakdown,
)
from weightedindex.providers import (
    create_balance_source,
    create_price_source,
    create_state_backend,
)
from weightedindex.shares import ShareLedger
from weightedindex.sources.base import BalanceSource, PriceSource
from weightedindex.state.base import StateBackend

logger = structlog.get_logger(__name__)



class IndexEngine:
    """Coordinates valuation, price refresh, rebalancing and share issuance.

    Mutations run one at a time under a single lock. Each builds a new
    ``PortfolioState`` (or a ledger copy), persists it, and only then swaps
    it in, so a failure at any step leaves the last-known-good state in
    place. The state and ledger are swapped together as one pair; readers
    take that pair without locking and always see one consistent revision.
    """

    def __init__(
        self,
        config: AppConfig,
        secrets: Secrets,
        *,
        price_source: Optional[PriceSource] = None,
        balance_source: Optional[BalanceSource] = None,
        state_backend: Optional[StateBackend] = None,
    ):
        self._config = config
        self._price_source = (
            price_source if price_source is not None else create_price_source(config, secrets)
        )
        self._balance_source = (
            balance_source if balance_source is not None else create_balance_source(config, secrets)
        )
        self._state_backend = (
            state_backend if state_backend is not None else create_state_backend(config)
        )
        self._remainder_policy = config.rebalancing.remainder_policy
        self._rebalance_log = get_rebalance_logger()
        self._ledger_log = get_ledger_logger()
        self._write_lock = threading.Lock()

        state = build_portfolio(config.index.assets, config.index.initial_weights)
        self._current: tuple[PortfolioState, ShareLedger] = (state, ShareLedger())

        if not self._restore_state():
            if config.index.derive_initial_weights:
                state = self._derive_initial_weights(state)
            self._commit(state, self._current[1])

        state = self._current[0]
        logger.info(
            "index.initialized",
            index_name=config.index.name,
            assets=state.assets,
            weights=state.weights,
            revision=state.revision,
        )

    # Queries

    @property
    def state(self) -> PortfolioState:
        return self._current[0]

    @property
    def revision(self) -> int:
        return self.state.revision

    @property
    def total_supply(self) -> int:
        return self._current[1].total_supply

    def get_weights(self) -> list[int]:
        return self.state.weights

    def get_prices(self) -> list[int]:
        return self.state.prices

    def get_index_value(self) -> int:
        """Total weighted value from cached prices and current balances."""
        return compute_index_value(self.state, self._balance_source)

    def get_value_breakdown(self) -> dict[str, int]:
        return value_breakdown(self.state, self._balance_source)

    def balance_of(self, holder: str) -> int:
        return self._current[1].balance_of(holder)

    def snapshot(self) -> IndexSnapshot:
        state, ledger = self._current
        return IndexSnapshot(
            revision=state.revision,
            assets=state.assets,
            weights=state.weights,
            prices=state.prices,
            index_value=compute_index_value(state, self._balance_source),
            total_supply=ledger.total_supply,
        )

    # Mutations

    def refresh_prices(self) -> PortfolioState:
        """Pull every asset's price into the cache as one new revision.

        Raises:
            PriceUnavailable: If any asset has no price; no cached price changes.
        """
        with self._write_lock:
            state, ledger = self._current
            try:
                refreshed = refresh_prices(state, self._price_source)
            except WeightedIndexError as e:
                logger.error(
                    "index.refresh_failed",
                    revision=state.revision,
                    error=str(e),
                )
                raise

            self._commit(refreshed, ledger)

        self._rebalance_log.info(
            "prices.refreshed",
            revision=refreshed.revision,
            prices=dict(zip(refreshed.assets, refreshed.prices)),
        )
        return refreshed

    def rebalance(self) -> PortfolioState:
        """Recompute weights from each asset's share of total value.

        Uses the cached prices as they are; call ``refresh_prices`` first if
        they should be current.

        Raises:
            UndefinedRebalance: If total value is zero; weights stay unchanged.
            ArithmeticOverflow: If values leave the uint256 range.
        """
        with self._write_lock:
            previous, ledger = self._current
            try:
                rebalanced = rebalance(previous, self._balance_source, self._remainder_policy)
            except WeightedIndexError as e:
                logger.error(
                    "index.rebalance_failed",
                    revision=previous.revision,
                    error=str(e),
                )
                raise

            self._commit(rebalanced, ledger)

        self._rebalance_log.info(
            "weights.rebalanced",
            revision=rebalanced.revision,
            previous_weights=dict(zip(previous.assets, previous.weights)),
            weights=dict(zip(rebalanced.assets, rebalanced.weights)),
            total_weight=rebalanced.total_weight,
            remainder_policy=self._remainder_policy,
        )
        return rebalanced

    def set_weights(self, weights: list[int]) -> PortfolioState:
        """Replace every weight with operator-chosen values.

        Args:
            weights: One basis-point weight per asset, in portfolio order,
                summing to exactly 10000

        Raises:
            ValueError: On a wrong count, a weight outside 0..10000, or a bad sum
        """
        with self._write_lock:
            previous, ledger = self._current
            updated = set_weights(previous, weights)
            self._commit(updated, ledger)

        self._rebalance_log.info(
            "weights.set",
            revision=updated.revision,
            previous_weights=dict(zip(previous.assets, previous.weights)),
            weights=dict(zip(updated.assets, updated.weights)),
        )
        return updated

    def mint(self, amount: int, holder: str) -> int:
        """Issue shares to ``holder``. Returns the holder's new balance."""
        with self._write_lock:
            state, current = self._current
            ledger = current.copy()
            balance = ledger.mint(amount, holder)
            self._commit(state, ledger)

        self._ledger_log.info(
            "shares.minted",
            holder=holder,
            amount=amount,
            balance=balance,
            total_supply=ledger.total_supply,
        )
        return balance

    def burn(self, amount: int, holder: str) -> int:
        """Destroy shares held by ``holder``. Returns the holder's new balance.

        Raises:
            InsufficientBalance: If the holder has fewer than ``amount`` shares.
        """
        with self._write_lock:
            state, current = self._current
            ledger = current.copy()
            balance = ledger.burn(amount, holder)
            self._commit(state, ledger)

        self._ledger_log.info(
            "shares.burned",
            holder=holder,
            amount=amount,
            balance=balance,
            total_supply=ledger.total_supply,
        )
        return balance

    def close(self) -> None:
        self._state_backend.close()

    # Internals

    def _derive_initial_weights(self, state: PortfolioState) -> PortfolioState:
        """Initial valuation pass: refresh prices, then weight by value."""
        refreshed = refresh_prices(state, self._price_source)
        derived = rebalance(refreshed, self._balance_source, self._remainder_policy)
        logger.info(
            "index.weights_derived",
            weights=dict(zip(derived.assets, derived.weights)),
            total_weight=derived.total_weight,
        )
        return derived

    def _commit(self, state: PortfolioState, ledger: ShareLedger) -> None:
        self._persist(state, ledger)
        self._current = (state, ledger)

    def _persist(self, state: PortfolioState, ledger: ShareLedger) -> None:
        try:
            self._state_backend.save_state(
                portfolio=state.model_dump(mode="json"),
                shares=ledger.to_state_dict(),
            )
        except Exception as e:
            logger.error(
                "index.state_persist_failed",
                revision=state.revision,
                error=str(e),
                exc_info=True,
            )
            raise

    def _restore_state(self) -> bool:
        """Adopt persisted state if any. Returns True when state was restored.

        Raises:
            ValueError: If the persisted document is unreadable or its assets
                differ from the configured ones. Nothing is written back.
        """
        saved = self._state_backend.load_state()
        if not saved:
            logger.info("index.no_state_found", index_name=self._config.index.name)
            return False

        configured = self._current[0]
        portfolio = PortfolioState.model_validate(saved.get("portfolio", {}))
        if portfolio.assets != configured.assets:
            raise ValueError(
                f"Persisted assets {portfolio.assets} do not match "
                f"configured assets {configured.assets}"
            )

        ledger = ShareLedger()
        ledger.restore_from_state(saved.get("shares", {}))

        self._current = (portfolio, ledger)
        logger.info(
            "index.state_restored",
            last_saved=saved.get("last_saved"),
            revision=portfolio.revision,
            total_supply=ledger.total_supply,
        )
        return True
