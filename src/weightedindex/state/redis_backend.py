"""Redis-based state management backend."""

import json
import os
from datetime import datetime, timezone
from typing import Optional

import redis
import structlog

from weightedindex.state.base import StateBackend

logger = structlog.get_logger(__name__)


class RedisStateBackend(StateBackend):
    """Redis-backed state persistence, one JSON document per index."""

    KEY_PREFIX = "weightedindex:state"

    def __init__(self, index_name: str, ttl_seconds: Optional[int] = None):
        """
        Initialize Redis connection.

        Args:
            index_name: Unique identifier for this index (e.g., "tk1-tk2")
            ttl_seconds: Optional expiry for the state key. None keeps it forever.
        """
        self._index_name = index_name
        self._state_key = f"{self.KEY_PREFIX}:{index_name}"
        self._ttl_seconds = ttl_seconds

        redis_host = os.getenv("REDIS_HOST", "localhost")
        redis_port = int(os.getenv("REDIS_PORT", "6379"))
        redis_password = os.getenv("REDIS_PASSWORD")

        self._client = redis.Redis(
            host=redis_host,
            port=redis_port,
            password=redis_password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

        logger.info(
            "redis.backend_initialized",
            index_name=index_name,
            host=redis_host,
            port=redis_port,
            state_key=self._state_key,
        )

    def save_state(self, portfolio: dict, shares: dict) -> None:
        """
        Persist portfolio and share ledger to Redis in a single SET.

        Args:
            portfolio: PortfolioState dump (entries, revision)
            shares: Share ledger state dict
        """
        state = {
            "version": 1,
            "last_saved": datetime.now(timezone.utc).isoformat(),
            "portfolio": portfolio,
            "shares": shares,
        }

        try:
            # Prices and balances exceed 64 bits; json keeps Python ints exact
            state_json = json.dumps(state)

            if self._ttl_seconds:
                self._client.setex(self._state_key, self._ttl_seconds, state_json)
            else:
                self._client.set(self._state_key, state_json)

            logger.debug(
                "redis.state_saved",
                index_name=self._index_name,
                revision=portfolio.get("revision"),
            )

        except Exception as e:
            logger.error(
                "redis.save_failed",
                index_name=self._index_name,
                error=str(e),
                exc_info=True,
            )
            raise

    def load_state(self) -> Optional[dict]:
        """
        Load state from Redis.

        Returns:
            State dict if found, None otherwise

        Raises:
            ValueError: If the stored document is not valid JSON
        """
        try:
            state_json = self._client.get(self._state_key)

            if state_json is None:
                logger.info(
                    "redis.no_state_found",
                    index_name=self._index_name,
                    state_key=self._state_key,
                )
                return None

            state = json.loads(state_json)

            logger.info(
                "redis.state_loaded",
                index_name=self._index_name,
                last_saved=state.get("last_saved"),
                revision=state.get("portfolio", {}).get("revision"),
            )

            return state

        except json.JSONDecodeError as e:
            logger.error(
                "redis.state_parse_failed",
                index_name=self._index_name,
                error=str(e),
            )
            raise ValueError(
                f"Corrupt persisted state at {self._state_key}: {e}"
            ) from e
        except Exception as e:
            logger.error(
                "redis.load_failed",
                index_name=self._index_name,
                error=str(e),
                exc_info=True,
            )
            raise

    def close(self) -> None:
        """Close Redis connection."""
        try:
            self._client.close()
            logger.debug("redis.connection_closed", index_name=self._index_name)
        except Exception as e:
            logger.warning("redis.close_failed", error=str(e))
