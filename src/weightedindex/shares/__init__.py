"""Index share issuance."""

from weightedindex.shares.ledger import ShareLedger

__all__ = ["ShareLedger"]
