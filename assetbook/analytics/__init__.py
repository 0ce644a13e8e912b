"""Ledger analytics package."""

from assetbook.analytics.aggregator import LedgerAggregator, safe_ratio

__all__ = ["LedgerAggregator", "safe_ratio"]
