"""
Dimensional breakdowns and stake-size buckets.

Groups validators with positive active stake by a categorical dimension
(country, continent, city, ASN, software version, commission) into
count / stake / pct tallies sorted by stake, and partitions them into
fixed half-open stake buckets. Any object exposing `active_stake` and
`profile` (ValidatorAggregate, CombinedValidator) can be tallied.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from stakewatch.analysis_engine.continents import DEFAULT_COUNTRY_CONTINENT, OTHER_CONTINENT

UNKNOWN = "Unknown"

DIMENSION_COUNTRY = "country"
DIMENSION_CITY = "city"
DIMENSION_ASN = "asn"
DIMENSION_VERSION = "version"
DIMENSION_COMMISSION = "commission"
DIMENSION_CONTINENT = "continent"


def _category_key(value: Any) -> str:
    """Render a raw field as a category name; null and empty become Unknown."""
    if value is None or value == "":
        return UNKNOWN
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


DIMENSION_FIELDS: dict[str, Callable[[Any], Any]] = {
    DIMENSION_COUNTRY: lambda v: v.profile.country,
    DIMENSION_CITY: lambda v: v.profile.city,
    DIMENSION_ASN: lambda v: v.profile.asn_label,
    DIMENSION_VERSION: lambda v: v.profile.version,
    DIMENSION_COMMISSION: lambda v: v.profile.commission,
}


@dataclass(frozen=True)
class CategoryTally:
    name: str
    count: int
    stake: float
    pct: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "count": self.count, "stake": self.stake, "pct": self.pct}


@dataclass(frozen=True)
class DimensionalBreakdown:
    """Tallies for one dimension, sorted by stake descending."""

    dimension: str
    entries: tuple[CategoryTally, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def top(self, n: int) -> tuple[CategoryTally, ...]:
        return self.entries[:n]

    def top_pct(self, n: int) -> float:
        """Combined share of the n largest categories, as a percentage."""
        return sum(t.pct for t in self.entries[:n])

    def get(self, name: str) -> CategoryTally | None:
        for tally in self.entries:
            if tally.name == name:
                return tally
        return None

    def to_list(self, limit: int | None = None) -> list[dict[str, Any]]:
        entries = self.entries if limit is None else self.entries[:limit]
        return [t.to_dict() for t in entries]


def tally_by(
    validators: Iterable[Any],
    key: Callable[[Any], Any],
    total_active_stake: float,
    dimension: str,
) -> DimensionalBreakdown:
    """
    Count and sum active stake per category for validators with stake > 0.

    pct is stake / total_active_stake * 100, or 0.0 when the total is 0.
    Equal-stake categories keep first-seen order.
    """
    counts: dict[str, int] = {}
    stakes: dict[str, float] = {}
    for v in validators:
        if v.active_stake <= 0:
            continue
        name = _category_key(key(v))
        counts[name] = counts.get(name, 0) + 1
        stakes[name] = stakes.get(name, 0.0) + v.active_stake

    entries = [
        CategoryTally(
            name=name,
            count=counts[name],
            stake=stake,
            pct=stake / total_active_stake * 100 if total_active_stake > 0 else 0.0,
        )
        for name, stake in stakes.items()
    ]
    entries.sort(key=lambda t: t.stake, reverse=True)
    return DimensionalBreakdown(dimension=dimension, entries=tuple(entries))


def build_breakdown(
    validators: Iterable[Any],
    dimension: str,
    total_active_stake: float,
) -> DimensionalBreakdown:
    """Tally one of the built-in profile dimensions (see DIMENSION_FIELDS)."""
    try:
        key = DIMENSION_FIELDS[dimension]
    except KeyError:
        raise ValueError(f"unknown dimension {dimension!r}") from None
    return tally_by(validators, key, total_active_stake, dimension)


def build_continent_breakdown(
    validators: Iterable[Any],
    total_active_stake: float,
    country_continent: Mapping[str, str] | None = None,
) -> DimensionalBreakdown:
    """Tally by continent via a country -> continent table; unmapped -> Other."""
    table = DEFAULT_COUNTRY_CONTINENT if country_continent is None else country_continent
    return tally_by(
        validators,
        lambda v: table.get(v.profile.country or "", OTHER_CONTINENT),
        total_active_stake,
        DIMENSION_CONTINENT,
    )


@dataclass(frozen=True)
class StakeBucket:
    """Half-open stake range [min, max) in SOL."""

    label: str
    min: float
    max: float = math.inf

    def contains(self, stake: float) -> bool:
        return self.min <= stake < self.max


AUTHORITY_STAKE_BUCKETS: tuple[StakeBucket, ...] = (
    StakeBucket("<1K", 0, 1_000),
    StakeBucket("1K-10K", 1_000, 10_000),
    StakeBucket("10K-50K", 10_000, 50_000),
    StakeBucket("50K-100K", 50_000, 100_000),
    StakeBucket("100K-500K", 100_000, 500_000),
    StakeBucket("500K+", 500_000),
)

NETWORK_STAKE_BUCKETS: tuple[StakeBucket, ...] = (
    StakeBucket("<10K", 0, 10_000),
    StakeBucket("10K-50K", 10_000, 50_000),
    StakeBucket("50K-100K", 50_000, 100_000),
    StakeBucket("100K-500K", 100_000, 500_000),
    StakeBucket("500K-1M", 500_000, 1_000_000),
    StakeBucket("1M-5M", 1_000_000, 5_000_000),
    StakeBucket("5M+", 5_000_000),
)


@dataclass(frozen=True)
class BucketTally:
    bucket: StakeBucket
    count: int
    stake: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.bucket.label,
            "min": self.bucket.min,
            "max": None if math.isinf(self.bucket.max) else self.bucket.max,
            "count": self.count,
            "stake": self.stake,
        }


def validate_buckets(buckets: Sequence[StakeBucket]) -> None:
    """Raise ValueError unless buckets are non-empty ranges in ascending, non-overlapping order."""
    previous_max = -math.inf
    for bucket in buckets:
        if bucket.min >= bucket.max:
            raise ValueError(f"bucket {bucket.label!r} is empty: [{bucket.min}, {bucket.max})")
        if bucket.min < previous_max:
            raise ValueError(f"bucket {bucket.label!r} overlaps or is out of order")
        previous_max = bucket.max


def bucket_stakes(
    stakes: Iterable[float],
    buckets: Sequence[StakeBucket] = AUTHORITY_STAKE_BUCKETS,
) -> tuple[BucketTally, ...]:
    """
    Assign each positive stake to the first bucket with min <= stake < max.

    Buckets are scanned in ascending order; stakes falling in a gap between
    configured ranges are not counted.
    """
    validate_buckets(buckets)
    counts = [0] * len(buckets)
    totals = [0.0] * len(buckets)
    for stake in stakes:
        if stake <= 0:
            continue
        for i, bucket in enumerate(buckets):
            if bucket.contains(stake):
                counts[i] += 1
                totals[i] += stake
                break
    return tuple(
        BucketTally(bucket=b, count=c, stake=s) for b, c, s in zip(buckets, counts, totals)
    )
