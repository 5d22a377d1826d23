"""Domain errors raised by the valuation, rebalancing and share ledger core."""


class WeightedIndexError(Exception):
    """Base class for all index errors surfaced to callers."""


class PriceUnavailable(WeightedIndexError):
    """Raised when the price source cannot supply a price for a registered asset."""

    def __init__(self, asset: str, reason: str = ""):
        self.asset = asset
        self.reason = reason
        message = f"No price available for {asset}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ArithmeticOverflow(WeightedIndexError, ArithmeticError):
    """Raised when an intermediate value leaves the unsigned 256-bit range."""


class UndefinedRebalance(WeightedIndexError):
    """Raised when weights cannot be derived because total portfolio value is zero."""


class InsufficientBalance(WeightedIndexError):
    """Raised when a burn exceeds the holder's share balance."""

    def __init__(self, holder: str, requested: int, available: int):
        self.holder = holder
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot burn {requested} shares from {holder}: balance is {available}"
        )
