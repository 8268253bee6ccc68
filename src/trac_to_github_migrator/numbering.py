"""Sequential renumbering of Trac milestones and tickets.

GitHub numbers issues and milestones from 1 without gaps, while Trac ticket ids
may be sparse and milestones are keyed by name. An ``IdentifierMap`` is built
once over the full, ordered record set of one kind and is read-only afterwards,
so every cross-reference in every translated text resolves through the same
numbering that the output records use.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import UnknownIdentifierError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping

    from .models import RawRecord

logger: logging.Logger = logging.getLogger(__name__)

Key = str | int


def _normalize(key: Key) -> str:
    # Ticket ids arrive as ints from the database and as strings from text.
    return str(key).strip()


class IdentifierMap:
    """Immutable mapping from original identifiers to new sequential numbers."""

    kind: str
    start: int
    _numbers: dict[str, int]

    def __init__(self, numbers: Mapping[str, int], *, kind: str, start: int) -> None:
        self.kind = kind
        self.start = start
        self._numbers = dict(numbers)

    @classmethod
    def build(
        cls,
        records: Iterable[RawRecord],
        keyfn: Callable[[RawRecord], Key],
        start: int = 1,
        *,
        kind: str = "identifier",
    ) -> IdentifierMap:
        """Assign ``start, start + 1, ...`` to the records' keys in input order.

        Args:
            records: Raw records of one kind, already in migration order
            keyfn: Extracts the natural key (ticket id, milestone name)
            start: First number to assign
            kind: Name of the entity kind, used in log and error messages

        Raises:
            ValueError: If two records share the same key
        """
        numbers: dict[str, int] = {}
        next_number = start
        for record in records:
            key = _normalize(keyfn(record))
            if key in numbers:
                msg = f"Duplicate {kind} {key!r} in input"
                raise ValueError(msg)
            numbers[key] = next_number
            next_number += 1

        logger.debug(f"Numbered {len(numbers)} {kind}s starting at {start}")
        return cls(numbers, kind=kind, start=start)

    def lookup(self, key: Key) -> int:
        """Return the new number for ``key``.

        Raises:
            UnknownIdentifierError: If ``key`` was not part of the build set
        """
        try:
            return self._numbers[_normalize(key)]
        except KeyError:
            msg = f"Unknown {self.kind}: {key}"
            raise UnknownIdentifierError(msg) from None

    def get(self, key: Key, default: int | None = None) -> int | None:
        return self._numbers.get(_normalize(key), default)

    def items(self) -> Iterator[tuple[str, int]]:
        return iter(self._numbers.items())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str | int):
            return False
        return _normalize(key) in self._numbers

    def __len__(self) -> int:
        return len(self._numbers)

    def __repr__(self) -> str:
        return f"IdentifierMap(kind={self.kind!r}, start={self.start}, size={len(self)})"
