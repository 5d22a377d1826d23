"""Weighted index valuation and value-driven rebalancing."""
