"""Read milestones, tickets and comments from a Trac SQLite database."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from .exceptions import SourceError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from .models import RawRecord

logger: logging.Logger = logging.getLogger(__name__)

_MILESTONE_QUERY = "SELECT name, due, completed, description FROM milestone"

_TICKET_QUERY = """
SELECT id, type, time, changetime, component, severity, priority, owner, reporter, cc,
       version, milestone, status, resolution, summary, description, keywords
FROM ticket
"""

# Comments are ticket changes of field "comment"; edited-away or empty ones are skipped
_COMMENT_QUERY = """
SELECT ticket, time, author, oldvalue, newvalue
FROM ticket_change
WHERE field = 'comment' AND newvalue IS NOT NULL AND newvalue != ''
ORDER BY ticket, time
"""


class TracSource:
    """Rows of a Trac database as plain dictionaries.

    Usage:
        with TracSource("trac.db") as source:
            tickets = source.tickets(first=10, last=20)
    """

    path: Path
    encoding: str
    _connection: sqlite3.Connection | None

    def __init__(self, path: str | Path, *, encoding: str = "UTF-8") -> None:
        self.path = Path(path)
        self.encoding = encoding
        self._connection = None

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> None:
        if not self.path.is_file():
            msg = f"Trac database not found: {self.path}"
            raise SourceError(msg)
        try:
            # Opened read-only; the migration never writes to Trac
            self._connection = sqlite3.connect(f"{self.path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            msg = f"Cannot open Trac database {self.path}: {e}"
            raise SourceError(msg) from e
        self._connection.text_factory = bytes
        logger.info(f"Opened Trac database {self.path}")

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _decode(self, value: Any) -> str | int | None:  # noqa: ANN401 - sqlite values are untyped
        if isinstance(value, bytes):
            return value.decode(self.encoding, errors="replace")
        return value

    def _query(self, sql: str, parameters: Iterable[Any] = ()) -> list[RawRecord]:
        if self._connection is None:
            msg = "Trac database is not open"
            raise SourceError(msg)
        try:
            cursor = self._connection.execute(sql, tuple(parameters))
            columns = [description[0] for description in cursor.description]
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            msg = f"Failed to read Trac database {self.path}: {e}"
            raise SourceError(msg) from e
        return [{column: self._decode(value) for column, value in zip(columns, row, strict=True)} for row in rows]

    def milestones(self) -> list[RawRecord]:
        """All milestones, in database order."""
        milestones = self._query(_MILESTONE_QUERY)
        logger.debug(f"Read {len(milestones)} milestones")
        return milestones

    def tickets(self, *, first: int | None = None, last: int | None = None) -> list[RawRecord]:
        """Tickets ordered by id, optionally restricted to ``first <= id <= last``."""
        conditions: list[str] = []
        parameters: list[int] = []
        if first is not None:
            conditions.append("id >= ?")
            parameters.append(first)
        if last is not None:
            conditions.append("id <= ?")
            parameters.append(last)

        sql = _TICKET_QUERY
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY id"

        tickets = self._query(sql, parameters)
        logger.debug(f"Read {len(tickets)} tickets")
        return tickets

    def comments(self, ticket_ids: Iterable[int] | None = None) -> list[RawRecord]:
        """Comments ordered by ticket and time, optionally only for ``ticket_ids``."""
        comments = self._query(_COMMENT_QUERY)
        if ticket_ids is not None:
            wanted = {int(ticket_id) for ticket_id in ticket_ids}
            comments = [comment for comment in comments if int(comment["ticket"] or 0) in wanted]
        logger.debug(f"Read {len(comments)} comments")
        return comments
