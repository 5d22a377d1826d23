"""Index share issuance: per-holder balances and total supply."""

import structlog

from weightedindex.errors import InsufficientBalance
from weightedindex.fixed_point import checked_add, require_unsigned

logger = structlog.get_logger(__name__)


class ShareLedger:
    """Tracks issued index shares per holder.

    Mint and burn amounts are taken as given; they are not priced against
    the index value. Holders whose balance reaches zero are dropped, so the
    sum of ``holders().values()`` always equals ``total_supply``.

    Not thread-safe on its own. ``IndexEngine`` serializes access.
    """

    def __init__(self):
        self._balances: dict[str, int] = {}
        self._total_supply = 0

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def holders(self) -> dict[str, int]:
        """Copy of the holder -> share balance mapping."""
        return dict(self._balances)

    def mint(self, amount: int, to: str) -> int:
        """Issue ``amount`` shares to ``to``. Returns the holder's new balance."""
        require_unsigned(amount, "mint amount")
        new_supply = checked_add(self._total_supply, amount)
        new_balance = checked_add(self.balance_of(to), amount)

        if new_balance:
            self._balances[to] = new_balance
        self._total_supply = new_supply
        return new_balance

    def burn(self, amount: int, from_: str) -> int:
        """Destroy ``amount`` shares held by ``from_``. Returns the holder's new balance.

        Raises:
            InsufficientBalance: If the holder has fewer than ``amount`` shares.
        """
        require_unsigned(amount, "burn amount")
        available = self.balance_of(from_)
        if available < amount:
            logger.warning(
                "shares.burn_rejected",
                holder=from_,
                requested=amount,
                available=available,
            )
            raise InsufficientBalance(from_, amount, available)

        new_balance = available - amount
        if new_balance:
            self._balances[from_] = new_balance
        else:
            self._balances.pop(from_, None)
        self._total_supply -= amount
        return new_balance

    def copy(self) -> "ShareLedger":
        clone = ShareLedger.__new__(ShareLedger)
        clone._balances = dict(self._balances)
        clone._total_supply = self._total_supply
        return clone

    def to_state_dict(self) -> dict:
        """Serialize for state persistence."""
        return {
            "balances": dict(self._balances),
            "total_supply": self._total_supply,
        }

    def restore_from_state(self, state: dict) -> None:
        """Restore from persisted state."""
        balances = {
            holder: require_unsigned(int(amount), f"balance of {holder}")
            for holder, amount in state.get("balances", {}).items()
            if int(amount)
        }
        total_supply = int(state.get("total_supply", sum(balances.values())))
        if total_supply != sum(balances.values()):
            raise ValueError(
                f"Persisted total_supply {total_supply} does not match "
                f"sum of balances {sum(balances.values())}"
            )
        self._balances = balances
        self._total_supply = total_supply
        logger.info("shares.restored", holders=len(balances), total_supply=total_supply)
