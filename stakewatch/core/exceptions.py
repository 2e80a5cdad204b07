"""
Application-level exceptions.

DataFormatError is the engine's only data error: a record whose numeric
fields cannot be trusted. It is never swallowed or replaced by zero stake.
"""

from __future__ import annotations

from typing import Any


class StakewatchError(Exception):
    """Base class for Stakewatch errors."""


class DataFormatError(StakewatchError, ValueError):
    """
    A delegation or collaborator record carries a malformed field.

    record: stake account pubkey, vote identity, or positional index.
    field: name of the offending field as it appears in the payload.
    value: the raw value that failed to parse.
    """

    def __init__(self, record: str | int | None, field: str, value: Any, reason: str = "malformed") -> None:
        self.record = record
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"record {record!r}: field {field!r} is {reason} (got {value!r})")
