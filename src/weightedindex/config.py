"""Configuration loading and validation using Pydantic."""

from decimal import Decimal
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from weightedindex.fixed_point import BASIS_POINTS


class IndexConfig(BaseModel):
    """Asset universe and initial allocation of the index."""

    name: str = Field(default="weighted-index", min_length=1)
    assets: list[str] = Field(min_length=1)
    initial_weights: Optional[list[int]] = None
    derive_initial_weights: bool = False

    @field_validator("assets")
    @classmethod
    def assets_unique(cls, v):
        if len(set(v)) != len(v):
            raise ValueError(f"assets must be unique, got {v}")
        if any(not asset for asset in v):
            raise ValueError("asset identifiers must be non-empty")
        return v

    @model_validator(mode="after")
    def weights_match_assets(self):
        if self.initial_weights is None:
            return self
        if self.derive_initial_weights:
            raise ValueError("initial_weights and derive_initial_weights are mutually exclusive")
        if len(self.initial_weights) != len(self.assets):
            raise ValueError(
                f"initial_weights has {len(self.initial_weights)} entries "
                f"for {len(self.assets)} assets"
            )
        if any(w < 0 or w > BASIS_POINTS for w in self.initial_weights):
            raise ValueError(f"initial_weights must each be within 0..{BASIS_POINTS}")
        if sum(self.initial_weights) != BASIS_POINTS:
            raise ValueError(
                f"initial_weights must sum to {BASIS_POINTS}, got {sum(self.initial_weights)}"
            )
        return self


class RebalancingConfig(BaseModel):
    """How leftover basis points from floor division are handled."""

    remainder_policy: Literal["none", "largest"] = "none"


class ProvidersConfig(BaseModel):
    prices: str = "static"
    balances: str = "static"


class StaticSourcesConfig(BaseModel):
    """Human-readable amounts for the static providers, e.g. ``"2.5"``."""

    prices: dict[str, Decimal] = Field(default_factory=dict)
    balances: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("prices", "balances")
    @classmethod
    def non_negative(cls, v):
        negative = [asset for asset, amount in v.items() if amount < 0]
        if negative:
            raise ValueError(f"amounts must be >= 0, negative for {negative}")
        return v


class StateConfig(BaseModel):
    backend: Literal["memory", "redis"] = "memory"
    ttl_seconds: Optional[int] = Field(default=None, gt=0)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    app_log: str = "logs/weightedindex.log"
    ledger_log: str = "logs/ledger.log"
    rebalance_log: str = "logs/rebalances.log"
    max_bytes: int = 10485760
    backup_count: int = 5


class AppConfig(BaseModel):
    index: IndexConfig
    rebalancing: RebalancingConfig = Field(default_factory=RebalancingConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    static_sources: StaticSourcesConfig = Field(default_factory=StaticSourcesConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Secrets(BaseSettings):
    """Loaded from .env file automatically. Only needed for the Alpaca providers."""

    alpaca_api_key: str = ""
    alpaca_secret_key: str = ""
    alpaca_paper: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def load_config(config_path: Path = Path("config/settings.yaml")) -> AppConfig:
    """Load and validate application configuration from YAML."""
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return AppConfig(**raw)
