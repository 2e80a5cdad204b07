"""
Stake aggregation: fold delegations into one record per validator.

Each delegation adds its SOL to exactly one of active or deactivating
stake and bumps the stake account count. Accumulation is local to
aggregate_delegations(); callers only ever see frozen ValidatorAggregate
values, ordered by active stake descending (stable on first sighting).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

from stakewatch.analysis_engine.models import NormalizedDelegation
from stakewatch.analysis_engine.normalizer import EMPTY_PROFILE, ValidatorProfile


@dataclass(frozen=True)
class ValidatorAggregate:
    """
    Stake delegated to one vote account within a single source.

    active_stake and deactivating_stake are SOL; stake_account_count counts
    every delegation folded in, active or deactivating.
    """

    voter: str
    active_stake: float = 0.0
    deactivating_stake: float = 0.0
    stake_account_count: int = 0
    profile: ValidatorProfile = EMPTY_PROFILE

    @property
    def total_stake(self) -> float:
        return self.active_stake + self.deactivating_stake

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "voter": self.voter,
            "activeStake": self.active_stake,
            "deactivatingStake": self.deactivating_stake,
            "stakeAccounts": self.stake_account_count,
        }
        out.update(self.profile.to_dict())
        return out


class _StakeAccumulator:
    """Mutable per-voter counters; never leaves aggregate_delegations()."""

    __slots__ = ("active", "deactivating", "accounts")

    def __init__(self) -> None:
        self.active = 0.0
        self.deactivating = 0.0
        self.accounts = 0

    def add(self, delegation: NormalizedDelegation) -> None:
        self.accounts += 1
        if delegation.deactivating:
            self.deactivating += delegation.stake
        else:
            self.active += delegation.stake


def aggregate_delegations(
    delegations: Iterable[NormalizedDelegation],
    profile_for: Callable[[str], ValidatorProfile] | None = None,
) -> tuple[ValidatorAggregate, ...]:
    """
    Group delegations by voter and attach each voter's merged profile.

    Args:
        delegations: Normalized delegations of one source, any order.
        profile_for: Resolves a voter to its ValidatorProfile; EMPTY_PROFILE if None.

    Returns:
        Aggregates sorted by active stake descending; ties keep first-sighting order.
    """
    accumulators: dict[str, _StakeAccumulator] = {}
    for delegation in delegations:
        acc = accumulators.get(delegation.voter)
        if acc is None:
            acc = accumulators[delegation.voter] = _StakeAccumulator()
        acc.add(delegation)

    aggregates = [
        ValidatorAggregate(
            voter=voter,
            active_stake=acc.active,
            deactivating_stake=acc.deactivating,
            stake_account_count=acc.accounts,
            profile=profile_for(voter) if profile_for is not None else EMPTY_PROFILE,
        )
        for voter, acc in accumulators.items()
    ]
    aggregates.sort(key=lambda a: a.active_stake, reverse=True)
    return tuple(aggregates)


def total_active_stake(aggregates: Iterable[ValidatorAggregate]) -> float:
    return sum(a.active_stake for a in aggregates)


def total_deactivating_stake(aggregates: Iterable[ValidatorAggregate]) -> float:
    return sum(a.deactivating_stake for a in aggregates)
