"""Process-local state backend."""

import copy
from datetime import datetime, timezone
from typing import Optional

from weightedindex.state.base import StateBackend


class MemoryStateBackend(StateBackend):
    """Keeps the last saved document in memory. State dies with the process."""

    def __init__(self):
        self._state: Optional[dict] = None

    def save_state(self, portfolio: dict, shares: dict) -> None:
        self._state = {
            "version": 1,
            "last_saved": datetime.now(timezone.utc).isoformat(),
            "portfolio": copy.deepcopy(portfolio),
            "shares": copy.deepcopy(shares),
        }

    def load_state(self) -> Optional[dict]:
        return copy.deepcopy(self._state)
