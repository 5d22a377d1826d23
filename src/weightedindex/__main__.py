"""Entry point: python -m weightedindex [refresh|rebalance|value|cycle]"""

import argparse
import sys
from pathlib import Path

from weightedindex.config import Secrets, load_config
from weightedindex.engine import IndexEngine
from weightedindex.errors import WeightedIndexError
from weightedindex.fixed_point import PRICE_DECIMALS, from_fixed
from weightedindex.logging_config import configure_logging


def _print_summary(engine: IndexEngine) -> None:
    snapshot = engine.snapshot()
    print(f"Revision:    {snapshot.revision}")
    for asset, weight, price in zip(snapshot.assets, snapshot.weights, snapshot.prices):
        print(f"  {asset:<12} weight {weight / 100:>6.2f}%  price {from_fixed(price)}")
    print(f"Total weight: {sum(snapshot.weights)} bps")
    # price * balance carries 36 decimals
    print(f"Index value: {from_fixed(snapshot.index_value, 2 * PRICE_DECIMALS)}")
    print(f"Shares:      {from_fixed(snapshot.total_supply)}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="weightedindex")
    parser.add_argument(
        "command",
        nargs="?",
        default="cycle",
        choices=["refresh", "rebalance", "value", "cycle"],
    )
    parser.add_argument("--config", type=Path, default=Path("config/settings.yaml"))
    args = parser.parse_args(argv)

    config = load_config(args.config)
    secrets = Secrets()
    configure_logging(config.logging)

    try:
        engine = IndexEngine(config, secrets)
    except (WeightedIndexError, ValueError) as e:
        print(f"Failed to initialize index '{config.index.name}': {e}")
        return 1

    try:
        if args.command in ("refresh", "cycle"):
            engine.refresh_prices()
        if args.command in ("rebalance", "cycle"):
            engine.rebalance()
        _print_summary(engine)
        return 0
    except WeightedIndexError as e:
        print(f"ERROR: {e}")
        return 1
    finally:
        engine.close()


if __name__ == "__main__":
    sys.exit(main())
