"""Index state persistence backends."""

from weightedindex.state.base import StateBackend
from weightedindex.state.memory import MemoryStateBackend

__all__ = ["MemoryStateBackend", "StateBackend"]
