"""Provider factory: creates the right collaborator implementation based on config."""

import importlib

from weightedindex.config import AppConfig, Secrets
from weightedindex.sources.base import BalanceSource, PriceSource
from weightedindex.state.base import StateBackend

PRICE_SOURCES = {
    "static": "weightedindex.sources.static:StaticPriceSource",
    "alpaca": "weightedindex.sources.alpaca:AlpacaPriceSource",
}

BALANCE_SOURCES = {
    "static": "weightedindex.sources.static:StaticBalanceSource",
    "alpaca": "weightedindex.sources.alpaca:AlpacaBalanceSource",
}


def _import_class(path: str):
    """Import a class from a 'module:ClassName' string."""
    module_path, class_name = path.split(":")
    module = importlib.import_module(module_path)
    return getattr(module, class_name)


def create_price_source(config: AppConfig, secrets: Secrets) -> PriceSource:
    """Create a price source based on config.providers.prices."""
    name = config.providers.prices
    if name not in PRICE_SOURCES:
        raise ValueError(
            f"Unknown price source: '{name}'. Available: {list(PRICE_SOURCES.keys())}"
        )
    cls = _import_class(PRICE_SOURCES[name])
    return cls.from_config(config, secrets)


def create_balance_source(config: AppConfig, secrets: Secrets) -> BalanceSource:
    """Create a balance source based on config.providers.balances."""
    name = config.providers.balances
    if name not in BALANCE_SOURCES:
        raise ValueError(
            f"Unknown balance source: '{name}'. Available: {list(BALANCE_SOURCES.keys())}"
        )
    cls = _import_class(BALANCE_SOURCES[name])
    return cls.from_config(config, secrets)


def create_state_backend(config: AppConfig) -> StateBackend:
    """Create the state backend based on config.state.backend."""
    if config.state.backend == "redis":
        from weightedindex.state.redis_backend import RedisStateBackend

        return RedisStateBackend(config.index.name, ttl_seconds=config.state.ttl_seconds)

    from weightedindex.state.memory import MemoryStateBackend

    return MemoryStateBackend()
