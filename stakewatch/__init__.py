"""
Stakewatch: decentralization analytics for Solana stake delegation snapshots.

Turns already-fetched stake accounts, validator directory rows and vote
accounts into a deterministic report: Nakamoto coefficient, HHI, Gini,
top-N shares, geographic / infrastructure breakdowns and stake buckets.
Fetching and persistence live outside the analysis engine.
"""

__version__ = "0.1.0"
