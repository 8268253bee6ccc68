"""Build GitHub milestones, issues and comments from Trac records."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .markup import escape_non_bmp
from .models import Comment, Issue, Milestone

if TYPE_CHECKING:
    from .labels import LabelClassifier
    from .markup import MarkupTranslator
    from .models import RawRecord, RawValue
    from .numbering import IdentifierMap
    from .users import UserResolver

logger: logging.Logger = logging.getLogger(__name__)

# Trac 0.12 and later store microseconds since the epoch, older versions seconds
MICROSECOND_THRESHOLD = 10**11

GITHUB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class BuildContext:
    """Services shared by all assemblers of one migration run."""

    milestone_map: IdentifierMap
    ticket_map: IdentifierMap
    users: UserResolver
    labels: LabelClassifier
    translator: MarkupTranslator
    timezone: dt.tzinfo = dt.UTC


def parse_timestamp(value: RawValue, timezone: dt.tzinfo = dt.UTC) -> dt.datetime | None:
    """Convert a Trac time value to an aware datetime, keeping microseconds.

    Args:
        value: Epoch seconds or microseconds, or an ISO 8601 date string
        timezone: Zone assumed for date strings without an offset

    Returns:
        The moment in UTC, or None when Trac has no date (null, empty or 0)

    Raises:
        ValueError: If a date string cannot be parsed
    """
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    if isinstance(value, int) or text.isdigit():
        number = int(text)
        if number == 0:
            return None
        if number > MICROSECOND_THRESHOLD:
            seconds, microseconds = divmod(number, 1_000_000)
            return dt.datetime.fromtimestamp(seconds, tz=dt.UTC) + dt.timedelta(microseconds=microseconds)
        return dt.datetime.fromtimestamp(number, tz=dt.UTC)

    moment = dt.datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone)
    return moment.astimezone(dt.UTC)


def format_timestamp(value: RawValue, timezone: dt.tzinfo = dt.UTC) -> str | None:
    """Format a Trac time value as a GitHub UTC timestamp.

    Returns:
        Timestamp such as "2024-01-15T10:30:45Z", or None when Trac has no date
        or the value cannot be parsed (logged as a warning).
    """
    try:
        moment = parse_timestamp(value, timezone)
    except ValueError:
        logger.warning(f"Ignoring unparseable date {str(value).strip()!r}")
        return None
    if moment is None:
        return None
    return moment.strftime(GITHUB_TIMESTAMP_FORMAT)


def _text(record: RawRecord, field: str) -> str:
    value = record.get(field)
    return "" if value is None else str(value)


def build_milestone(record: RawRecord, ctx: BuildContext) -> Milestone:
    """Build a GitHub milestone from a Trac milestone row."""
    name = _text(record, "name")
    context = f"milestone {name!r}"
    completed = format_timestamp(record.get("completed"), ctx.timezone)

    return Milestone(
        number=ctx.milestone_map.lookup(name),
        state="closed" if completed else "open",
        title=escape_non_bmp(name, context),
        description=ctx.translator.translate(escape_non_bmp(_text(record, "description"), context)),
        creator=ctx.users.default_user,
        due_on=format_timestamp(record.get("due"), ctx.timezone),
    )


def build_issue(record: RawRecord, ctx: BuildContext) -> Issue:
    """Build a GitHub issue from a Trac ticket row.

    The ticket's categorical fields become labels, its reporter the issue author
    and its owner the assignee. Closed tickets are closed at their last change.
    """
    ticket_id = _text(record, "id")
    context = f"ticket #{ticket_id}"
    closed = _text(record, "status").strip() == "closed"

    milestone_number: int | None = None
    milestone_name = _text(record, "milestone").strip()
    if milestone_name:
        milestone_number = ctx.milestone_map.get(milestone_name)
        if milestone_number is None:
            logger.warning(f"Ticket #{ticket_id} refers to unknown milestone {milestone_name!r}")

    updated_at = format_timestamp(record.get("changetime"), ctx.timezone)

    return Issue(
        number=ctx.ticket_map.lookup(ticket_id),
        title=escape_non_bmp(_text(record, "summary"), context),
        body=ctx.translator.translate(escape_non_bmp(_text(record, "description"), context)),
        user=ctx.users.resolve(_text(record, "reporter")),
        assignee=ctx.users.resolve(_text(record, "owner")),
        state="closed" if closed else "open",
        labels=ctx.labels.extract_labels(record),
        milestone=milestone_number,
        created_at=format_timestamp(record.get("time"), ctx.timezone),
        updated_at=updated_at,
        closed_at=updated_at if closed else None,
    )


def build_comment(record: RawRecord, ctx: BuildContext) -> Comment:
    """Build a GitHub comment from a Trac ticket change of type comment.

    Authors without a GitHub account are named in the first line, since the
    comment itself is posted as the default user.
    """
    author = _text(record, "author").strip()
    context = f"comment on ticket #{_text(record, 'ticket')}"
    body = ctx.translator.translate(escape_non_bmp(_text(record, "newvalue"), context))
    if author and not ctx.users.has_mapping(author):
        body = f"**Comment by** {author}\n\n{body}"

    return Comment(
        user=ctx.users.resolve(author),
        body=body,
        created_at=format_timestamp(record.get("time"), ctx.timezone),
        updated_at=format_timestamp(record.get("updated"), ctx.timezone),
    )
