"""
Label classification for the Trac to GitHub migration tool.

Trac keeps categorical data in separate ticket fields (type, component, priority,
keywords, ...). GitHub only has labels, so each configured field contributes
labels through a small decision table:

1. an override for the exact ``(field, value)`` pair,
2. a default for the whole field,
3. the value itself.

An override or default configured as the empty string suppresses the value.
"""

from __future__ import annotations

import logging
import re
from collections import Counter, defaultdict
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .models import RawRecord

logger: logging.Logger = logging.getLogger(__name__)

_SPLIT_PATTERN = re.compile(r"[\s,]+")


class LabelFieldSpec(NamedTuple):
    """A ticket field whose values become labels."""

    name: str
    split: bool = False
    """Split the value into words at commas and whitespace (like a keyword list)."""


class LabelMapping:
    """Prioritised lookup from a field value to an output label."""

    overrides: dict[tuple[str, str], str]
    defaults: dict[str, str]

    def __init__(
        self,
        overrides: Mapping[tuple[str, str], str] | None = None,
        defaults: Mapping[str, str] | None = None,
    ) -> None:
        self.overrides = {key: value.strip() for key, value in (overrides or {}).items()}
        self.defaults = {key: value.strip() for key, value in (defaults or {}).items()}

    def resolve(self, field: str, token: str) -> str | None:
        """Return the label for ``token`` of ``field``, or None if it is suppressed."""
        if (field, token) in self.overrides:
            return self.overrides[(field, token)] or None
        if field in self.defaults:
            return self.defaults[field] or None
        return token


class LabelTally:
    """Counts which labels were produced from which fields and values."""

    _counts: Counter[tuple[str, str]]
    _sources: defaultdict[str, set[tuple[str, str]]]

    def __init__(self) -> None:
        self._counts = Counter()
        self._sources = defaultdict(set)

    def record(self, field: str, token: str, label: str) -> None:
        self._counts[(field, label)] += 1
        self._sources[label].add((field, token))

    def counts(self) -> dict[tuple[str, str], int]:
        """Usage per ``(field, label)``, sorted for stable reporting."""
        return dict(sorted(self._counts.items()))

    def sources(self, label: str) -> list[tuple[str, str]]:
        """The ``(field, value)`` pairs that produced ``label``."""
        return sorted(self._sources.get(label, ()))

    def clashes(self) -> dict[str, list[str]]:
        """Labels produced by more than one distinct field.

        Returns:
            Mapping of label to the sorted names of the fields producing it
        """
        clashes: dict[str, list[str]] = {}
        for label in sorted(self._sources):
            fields = sorted({field for field, _ in self._sources[label]})
            if len(fields) > 1:
                clashes[label] = fields
        return clashes


class LabelClassifier:
    """Derives the label set of a ticket from its categorical fields."""

    fields: list[LabelFieldSpec]
    mapping: LabelMapping
    tally: LabelTally

    def __init__(
        self,
        fields: Sequence[LabelFieldSpec],
        mapping: LabelMapping,
        tally: LabelTally | None = None,
    ) -> None:
        self.fields = list(fields)
        self.mapping = mapping
        self.tally = tally if tally is not None else LabelTally()

    @staticmethod
    def tokenize(value: str, *, split: bool) -> list[str]:
        if split:
            return [token for token in _SPLIT_PATTERN.split(value) if token]
        value = value.strip()
        return [value] if value else []

    def extract_labels(self, record: RawRecord) -> frozenset[str]:
        """Return the deduplicated labels for ``record``, recording usage in the tally."""
        labels: set[str] = set()
        for spec in self.fields:
            value = record.get(spec.name)
            if value is None or value == "":
                continue

            for token in self.tokenize(str(value), split=spec.split):
                label = self.mapping.resolve(spec.name, token)
                if not label:
                    logger.debug(f"Suppressed {spec.name}={token!r}")
                    continue
                self.tally.record(spec.name, token, label)
                labels.add(label)

        return frozenset(labels)
