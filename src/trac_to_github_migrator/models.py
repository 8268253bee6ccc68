"""Data models for migration from Trac to GitHub.

Raw records are plain mappings as read from the Trac database. The output
records mirror the shape GitHub's issue import expects; optional fields are
dropped from ``to_dict()`` when the Trac data had no value for them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

RawValue = str | int | None
RawRecord = Mapping[str, RawValue]

State = Literal["open", "closed"]


def _without_none(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class Milestone:
    """A milestone for grouping issues."""

    number: int
    state: State
    title: str
    description: str
    creator: str
    due_on: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _without_none(asdict(self))


@dataclass(frozen=True)
class Issue:
    """A Trac ticket renumbered and translated into a GitHub issue."""

    number: int
    title: str
    body: str
    user: str
    assignee: str
    state: State
    labels: frozenset[str] = field(default_factory=frozenset)
    milestone: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    closed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["labels"] = sorted(self.labels)
        return _without_none(data)


@dataclass(frozen=True)
class Comment:
    """A ticket comment, attached to the issue with the same new number."""

    user: str
    body: str
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _without_none(asdict(self))
