"""Migration orchestrator that turns Trac records into GitHub records.

Migration Flow
--------------
Phase 1: Numbering
    - Order milestones by due date (undated last, then by name) and tickets by id
    - Build the milestone and ticket identifier maps over the complete record sets
      (Every cross-reference in every text is resolved through these maps, so
      they must be complete before any text is translated)

Phase 2: Milestones
    - One GitHub milestone per Trac milestone, descriptions translated

Phase 3: Issues
    - One GitHub issue per ticket: labels classified, description translated,
      reporter/owner resolved, milestone renumbered

Phase 4: Comments
    - Comments grouped by the new number of their ticket, chronological within
      a ticket; comments of tickets outside the migrated range are skipped

Phase 5: Report
    - Unmapped users, label usage and label clashes, collected from the
      run-scoped resolver and tally

The migrator holds no state between runs; everything is returned in a
``MigrationResult``.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .issue_builder import BuildContext, build_comment, build_issue, build_milestone, parse_timestamp
from .labels import LabelClassifier, LabelTally
from .markup import MarkupTranslator
from .numbering import IdentifierMap
from .users import UserResolver

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .config import MigrationConfig
    from .models import Comment, Issue, Milestone, RawRecord, RawValue
    from .trac_source import TracSource

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """What the migration did, and what may need attention."""

    milestones_created: int = 0
    issues_created: int = 0
    comments_created: int = 0
    comments_skipped: int = 0
    unmapped_users: list[str] = field(default_factory=list)
    label_usage: dict[tuple[str, str], int] = field(default_factory=dict)
    label_clashes: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "statistics": {
                "milestones_created": self.milestones_created,
                "issues_created": self.issues_created,
                "comments_created": self.comments_created,
                "comments_skipped": self.comments_skipped,
            },
            "unmapped_users": self.unmapped_users,
            "label_usage": [
                {"field": field_name, "label": label, "count": count}
                for (field_name, label), count in self.label_usage.items()
            ],
            "label_clashes": self.label_clashes,
        }


@dataclass
class MigrationResult:
    """Result of a migration run."""

    milestones: list[Milestone]
    issues: list[Issue]
    comments: dict[int, list[Comment]]  # new issue number -> comments in chronological order
    milestone_map: IdentifierMap
    ticket_map: IdentifierMap
    report: MigrationReport


_UNDATED = dt.datetime.min.replace(tzinfo=dt.UTC)


def _sort_time(value: RawValue, timezone: dt.tzinfo) -> dt.datetime | None:
    # Unparseable dates are reported once, when the record itself is built
    try:
        return parse_timestamp(value, timezone)
    except ValueError:
        return None


def milestone_order_key(record: RawRecord, timezone: dt.tzinfo = dt.UTC) -> tuple[bool, dt.datetime, str]:
    due = _sort_time(record.get("due"), timezone)
    return (due is None, due or _UNDATED, str(record.get("name") or ""))


def comment_order_key(record: RawRecord, timezone: dt.tzinfo = dt.UTC) -> tuple[int, dt.datetime]:
    return (int(record.get("ticket") or 0), _sort_time(record.get("time"), timezone) or _UNDATED)


def ticket_order_key(record: RawRecord) -> int:
    return int(record.get("id") or 0)


class Migrator:
    """Translates Trac milestones, tickets and comments into GitHub records.

    Usage:
        migrator = Migrator(config)
        result = migrator.migrate(milestones, tickets, comments)
    """

    _config: MigrationConfig

    def __init__(self, config: MigrationConfig) -> None:
        self._config = config

    def migrate_source(self, source: TracSource) -> MigrationResult:
        """Read everything from ``source`` (within the configured ticket range) and migrate it."""
        tickets = source.tickets(first=self._config.first_ticket, last=self._config.last_ticket)
        ticket_ids = [ticket_order_key(ticket) for ticket in tickets]
        return self.migrate(source.milestones(), tickets, source.comments(ticket_ids))

    def migrate(
        self,
        milestones: Iterable[RawRecord],
        tickets: Iterable[RawRecord],
        comments: Iterable[RawRecord] = (),
    ) -> MigrationResult:
        """Execute the full translation.

        Args:
            milestones: Trac milestone rows, in any order
            tickets: Trac ticket rows, in any order
            comments: Trac comment rows, in any order

        Returns:
            MigrationResult with the output records, the identifier maps and a report
        """
        config = self._config
        ordered_milestones = sorted(milestones, key=lambda m: milestone_order_key(m, config.tzinfo))
        ordered_tickets = sorted(tickets, key=ticket_order_key)

        milestone_map = IdentifierMap.build(
            ordered_milestones, lambda m: str(m.get("name") or ""), config.milestone_start, kind="milestone"
        )
        ticket_map = IdentifierMap.build(ordered_tickets, ticket_order_key, config.issue_start, kind="ticket")
        logger.info(f"Numbered {len(milestone_map)} milestones and {len(ticket_map)} tickets")

        users = UserResolver(config.users, config.owner)
        tally = LabelTally()
        ctx = BuildContext(
            milestone_map=milestone_map,
            ticket_map=ticket_map,
            users=users,
            labels=LabelClassifier(config.label_fields, config.label_mapping(), tally),
            translator=MarkupTranslator(ticket_map, users),
            timezone=config.tzinfo,
        )
        report = MigrationReport()

        milestone_records = [build_milestone(record, ctx) for record in ordered_milestones]
        report.milestones_created = len(milestone_records)
        logger.info(f"Migrated {report.milestones_created} milestones")

        issue_records: list[Issue] = []
        for record in ordered_tickets:
            issue = build_issue(record, ctx)
            issue_records.append(issue)
            logger.debug(f"Ticket #{record.get('id')} -> issue #{issue.number}: {issue.title}")
        report.issues_created = len(issue_records)
        logger.info(f"Migrated {report.issues_created} issues")

        comment_records = self._migrate_comments(comments, ctx, report)
        logger.info(f"Migrated {report.comments_created} comments")

        report.unmapped_users = users.unmapped_users()
        report.label_usage = tally.counts()
        report.label_clashes = tally.clashes()
        for label, fields in report.label_clashes.items():
            logger.info(f"Label {label!r} is produced by several fields: {', '.join(fields)}")

        return MigrationResult(
            milestones=milestone_records,
            issues=issue_records,
            comments=comment_records,
            milestone_map=milestone_map,
            ticket_map=ticket_map,
            report=report,
        )

    @staticmethod
    def _migrate_comments(
        comments: Iterable[RawRecord],
        ctx: BuildContext,
        report: MigrationReport,
    ) -> dict[int, list[Comment]]:
        """Build comments grouped by new issue number, chronological within each issue."""
        grouped: defaultdict[int, list[Comment]] = defaultdict(list)
        # Stable sort: comments with the same time keep their input order
        ordered = sorted(comments, key=lambda c: comment_order_key(c, ctx.timezone))
        for record in ordered:
            number = ctx.ticket_map.get(record.get("ticket") or "")
            if number is None:
                report.comments_skipped += 1
                logger.debug(f"Skipping comment on ticket #{record.get('ticket')} outside the migrated range")
                continue
            grouped[number].append(build_comment(record, ctx))
            report.comments_created += 1

        return dict(sorted(grouped.items()))
