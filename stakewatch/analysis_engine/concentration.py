"""
Concentration metrics over a stake distribution.

Nakamoto coefficient, superminority, HHI, Gini and top-N shares are pure
functions of the descending distribution of positive stakes and its sum.
Empty or zero-stake inputs yield 0 rather than raising. Percentages are
ratios * 100 and are never rounded here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from fractions import Fraction
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

NAKAMOTO_THRESHOLD = Fraction(1, 3)
SUPERMINORITY_THRESHOLD = Fraction(33, 100)
TOP_N_LEVELS = (10, 20, 50)


def stake_distribution(stakes: Iterable[float]) -> list[float]:
    """Positive stakes sorted descending; zero-stake entries are dropped."""
    return sorted((s for s in stakes if s > 0), reverse=True)


def threshold_prefix_count(
    distribution: Sequence[float],
    total: float,
    threshold: Fraction,
) -> int:
    """
    Smallest k such that sum(distribution[:k]) >= threshold * total.

    The comparison is done on exact rationals of the float running sum so
    1/3 and 0.33 are compared as the fractions they denote, not as their
    nearest doubles.
    """
    if not distribution or total <= 0:
        return 0
    target = Fraction(total) * threshold
    running = 0.0
    for count, stake in enumerate(distribution, start=1):
        running += stake
        if Fraction(running) >= target:
            return count
    return len(distribution)


def nakamoto_coefficient(
    distribution: Sequence[float],
    total: float,
    threshold: Fraction = NAKAMOTO_THRESHOLD,
) -> int:
    return threshold_prefix_count(distribution, total, threshold)


def superminority_count(distribution: Sequence[float], total: float) -> int:
    return threshold_prefix_count(distribution, total, SUPERMINORITY_THRESHOLD)


def herfindahl_hirschman_index(distribution: Sequence[float], total: float) -> float:
    """HHI = sum of squared shares (0-1 scale); 0.0 for an empty distribution."""
    if not distribution or total <= 0:
        return 0.0
    shares = np.asarray(distribution, dtype=float) / total
    return float(np.sum(np.square(shares)))


def gini_coefficient(stakes: Sequence[float]) -> float:
    """
    Gini over an explicit ascending sort of the stakes.

    gini = sum((2*(i+1) - n - 1) * a[i]) / (n * sum(a)), a ascending.
    """
    values = np.sort(np.asarray(stakes, dtype=float))
    n = len(values)
    if n == 0:
        return 0.0
    denominator = n * values.sum()
    if denominator <= 0:
        return 0.0
    weights = 2 * np.arange(1, n + 1) - n - 1
    return float(np.sum(weights * values) / denominator)


def top_n_pct(distribution: Sequence[float], total: float, n: int) -> float:
    """Share of total held by the first n entries, as a percentage."""
    if total <= 0:
        return 0.0
    return sum(distribution[:n]) / total * 100


@dataclass(frozen=True)
class ConcentrationMetrics:
    """Scalar concentration indices for one stake distribution."""

    nakamoto_coefficient_33: int = 0
    superminority_count: int = 0
    hhi: float = 0.0
    gini: float = 0.0
    top_validator_pct: float = 0.0
    top_n_pct: Mapping[int, float] = field(default_factory=dict, hash=False)
    validator_count: int = 0
    total_stake: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "top_n_pct", MappingProxyType(dict(self.top_n_pct)))

    @property
    def effective_validators(self) -> float:
        """1 / HHI; the number of equal-stake validators with the same HHI."""
        return 1 / self.hhi if self.hhi > 0 else float(self.validator_count)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "nakamotoCoeff33": self.nakamoto_coefficient_33,
            "superminorityCount": self.superminority_count,
            "hhi": self.hhi,
            "gini": self.gini,
            "topValidatorPct": self.top_validator_pct,
        }
        for n, pct in sorted(self.top_n_pct.items()):
            out[f"top{n}Pct"] = pct
        out["effectiveValidators"] = self.effective_validators
        return out


def compute_concentration(
    stakes: Iterable[float],
    top_n_levels: Sequence[int] = TOP_N_LEVELS,
) -> ConcentrationMetrics:
    """Build every concentration index from raw stakes (any order, zeros allowed)."""
    distribution = stake_distribution(stakes)
    total = sum(distribution)
    return ConcentrationMetrics(
        nakamoto_coefficient_33=nakamoto_coefficient(distribution, total),
        superminority_count=superminority_count(distribution, total),
        hhi=herfindahl_hirschman_index(distribution, total),
        gini=gini_coefficient(distribution),
        top_validator_pct=top_n_pct(distribution, total, 1),
        top_n_pct={n: top_n_pct(distribution, total, n) for n in top_n_levels},
        validator_count=len(distribution),
        total_stake=total,
    )


@dataclass(frozen=True)
class StakeStats:
    """
    Summary statistics of the descending distribution.

    Percentile fields index the descending order at floor(n * q), so p10 is
    near the top of the distribution and p90 near the bottom.
    """

    mean: float = 0.0
    median: float = 0.0
    max: float = 0.0
    min: float = 0.0
    p10: float = 0.0
    p90: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "mean": self.mean,
            "median": self.median,
            "max": self.max,
            "min": self.min,
            "p10": self.p10,
            "p90": self.p90,
        }


def compute_stake_stats(stakes: Iterable[float]) -> StakeStats:
    distribution = stake_distribution(stakes)
    n = len(distribution)
    if n == 0:
        return StakeStats()
    return StakeStats(
        mean=sum(distribution) / n,
        median=distribution[n // 2],
        max=distribution[0],
        min=distribution[-1],
        p10=distribution[math.floor(n * 0.1)],
        p90=distribution[math.floor(n * 0.9)],
    )
