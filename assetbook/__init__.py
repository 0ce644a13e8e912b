"""
Assetbook - Source Package

A personal asset ledger: dated asset snapshots, monthly income and
expenses, memos and a FIRE target, kept as one JSON document and
stored as ordered chunks in a hosted document database.

DESIGN PRINCIPLES:
1. The in-memory ledger is the source of truth; storage follows it
2. Fail visibly: partial saves and recovered reads are always reported
3. Never overwrite data that could not be read back
4. Statistics are recomputed from the ledger, never stored
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Assetbook Team"
