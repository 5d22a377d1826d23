"""Abstract base class for index state persistence."""

from abc import ABC, abstractmethod
from typing import Optional


class StateBackend(ABC):
    """Stores the portfolio state and share ledger between operations."""

    @abstractmethod
    def save_state(self, portfolio: dict, shares: dict) -> None:
        """Persist both halves of the index state in one write.

        Raises on failure so the caller can keep its last-known-good state.
        """
        ...

    @abstractmethod
    def load_state(self) -> Optional[dict]:
        """Return the last saved document, or None if nothing was saved."""
        ...

    def close(self) -> None:
        """Release any connection held by the backend."""
