"""
Tests for building GitHub milestones, issues and comments from Trac records.
"""

from __future__ import annotations

import datetime as dt
import logging
from zoneinfo import ZoneInfo

import pytest

from trac_to_github_migrator.issue_builder import (
    BuildContext,
    build_comment,
    build_issue,
    build_milestone,
    format_timestamp,
    parse_timestamp,
)
from trac_to_github_migrator.labels import LabelClassifier, LabelFieldSpec, LabelMapping
from trac_to_github_migrator.markup import MarkupTranslator
from trac_to_github_migrator.numbering import IdentifierMap
from trac_to_github_migrator.users import UserResolver


@pytest.fixture
def ctx() -> BuildContext:
    milestone_map = IdentifierMap.build([{"name": "1.0"}, {"name": "2.0"}], lambda m: m["name"], kind="milestone")
    ticket_map = IdentifierMap.build([{"id": 3}, {"id": 57}], lambda t: t["id"], kind="ticket")
    users = UserResolver({"alice": "alice-gh", "bob": "bobby"}, default_user="owner")
    labels = LabelClassifier(
        [LabelFieldSpec("type"), LabelFieldSpec("keywords", split=True)],
        LabelMapping({("type", "defect"): "bug"}),
    )
    return BuildContext(
        milestone_map=milestone_map,
        ticket_map=ticket_map,
        users=users,
        labels=labels,
        translator=MarkupTranslator(ticket_map, users),
    )


@pytest.mark.unit
class TestFormatTimestamp:
    """Test conversion of Trac time values."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1262304000, "2010-01-01T00:00:00Z"),
            (1262304000000000, "2010-01-01T00:00:00Z"),
            (1262304000123456, "2010-01-01T00:00:00Z"),
            ("1262304000000000", "2010-01-01T00:00:00Z"),
            ("2010-01-01T12:30:00+02:00", "2010-01-01T10:30:00Z"),
            ("2010-01-01 12:30:00", "2010-01-01T12:30:00Z"),
        ],
    )
    def test_formats(self, value: str | int, expected: str) -> None:
        assert format_timestamp(value) == expected

    @pytest.mark.parametrize("value", [None, "", "  ", 0, "0"])
    def test_missing_dates(self, value: str | int | None) -> None:
        """Trac uses 0 and empty values for 'no date'."""
        assert format_timestamp(value) is None

    def test_naive_date_uses_configured_zone(self) -> None:
        berlin = ZoneInfo("Europe/Berlin")
        assert format_timestamp("2010-01-01 12:00:00", berlin) == "2010-01-01T11:00:00Z"

    def test_epoch_values_ignore_configured_zone(self) -> None:
        berlin = ZoneInfo("Europe/Berlin")
        assert format_timestamp(1262304000, berlin) == "2010-01-01T00:00:00Z"

    def test_parse_keeps_microseconds(self) -> None:
        moment = parse_timestamp(1262304000_250_000)
        assert moment == dt.datetime(2010, 1, 1, 0, 0, 0, 250_000, tzinfo=dt.UTC)

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp("next tuesday")

    def test_unparseable_date_is_dropped_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert format_timestamp("next tuesday", dt.UTC) is None
        assert "next tuesday" in caplog.text


@pytest.mark.unit
class TestBuildMilestone:
    def test_completed_milestone_is_closed(self, ctx: BuildContext) -> None:
        record = {"name": "1.0", "due": 1262304000000000, "completed": 1262390400000000, "description": "''First''"}
        milestone = build_milestone(record, ctx)

        assert milestone.number == 1
        assert milestone.state == "closed"
        assert milestone.title == "1.0"
        assert milestone.description == "*First*"
        assert milestone.creator == "owner"
        assert milestone.due_on == "2010-01-01T00:00:00Z"

    def test_open_milestone_without_due_date(self, ctx: BuildContext) -> None:
        milestone = build_milestone({"name": "2.0", "due": 0, "completed": 0, "description": None}, ctx)

        assert milestone.state == "open"
        assert milestone.due_on is None
        assert milestone.description == ""
        assert "due_on" not in milestone.to_dict()


@pytest.mark.unit
class TestBuildIssue:
    def _ticket(self, **fields: str | int | None) -> dict[str, str | int | None]:
        ticket: dict[str, str | int | None] = {
            "id": 57,
            "type": "defect",
            "time": 1262304000000000,
            "changetime": 1262476800000000,
            "owner": "bob",
            "reporter": "alice",
            "milestone": "2.0",
            "status": "closed",
            "summary": "Crash on start",
            "description": "Duplicate of #3",
            "keywords": "crash startup",
        }
        ticket.update(fields)
        return ticket

    def test_closed_ticket(self, ctx: BuildContext) -> None:
        issue = build_issue(self._ticket(), ctx)

        assert issue.number == 2
        assert issue.title == "Crash on start"
        assert issue.body == "Duplicate of #1"
        assert issue.user == "alice-gh"
        assert issue.assignee == "bobby"
        assert issue.state == "closed"
        assert issue.labels == {"bug", "crash", "startup"}
        assert issue.milestone == 2
        assert issue.created_at == "2010-01-01T00:00:00Z"
        assert issue.updated_at == "2010-01-03T00:00:00Z"
        assert issue.closed_at == "2010-01-03T00:00:00Z"

    @pytest.mark.parametrize("status", ["new", "assigned", "reopened", "accepted"])
    def test_non_closed_statuses_are_open(self, ctx: BuildContext, status: str) -> None:
        issue = build_issue(self._ticket(status=status), ctx)

        assert issue.state == "open"
        assert issue.closed_at is None

    def test_unknown_users_fall_back_to_default(self, ctx: BuildContext) -> None:
        issue = build_issue(self._ticket(reporter="dave", owner=""), ctx)

        assert issue.user == "owner"
        assert issue.assignee == "owner"
        assert ctx.users.unmapped_users() == ["dave"]

    def test_ticket_without_milestone(self, ctx: BuildContext) -> None:
        issue = build_issue(self._ticket(milestone=""), ctx)
        assert issue.milestone is None
        assert "milestone" not in issue.to_dict()

    def test_unknown_milestone_is_dropped_with_warning(
        self, ctx: BuildContext, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            issue = build_issue(self._ticket(milestone="someday"), ctx)

        assert issue.milestone is None
        assert "someday" in caplog.text

    def test_ticket_outside_map_is_an_error(self, ctx: BuildContext) -> None:
        with pytest.raises(LookupError):
            build_issue(self._ticket(id=999), ctx)

    def test_astral_characters_in_title_are_escaped(self, ctx: BuildContext) -> None:
        issue = build_issue(self._ticket(summary="Crash \U0001f4a5"), ctx)
        assert issue.title == "Crash U+1F4A5"

    def test_to_dict_sorts_labels(self, ctx: BuildContext) -> None:
        data = build_issue(self._ticket(), ctx).to_dict()
        assert data["labels"] == ["bug", "crash", "startup"]
        assert data["state"] == "closed"


@pytest.mark.unit
class TestBuildComment:
    def test_mapped_author(self, ctx: BuildContext) -> None:
        comment = build_comment(
            {"ticket": 57, "time": 1262390400000000, "author": "bob", "newvalue": "See #57"}, ctx
        )

        assert comment.user == "bobby"
        assert comment.body == "See #2"
        assert comment.created_at == "2010-01-02T00:00:00Z"
        assert comment.updated_at is None

    def test_unmapped_author_is_named_in_body(self, ctx: BuildContext) -> None:
        """The comment is posted by the default user, so the original author is kept in the text."""
        comment = build_comment({"ticket": 57, "time": 1262390400, "author": "dave", "newvalue": "'''Yes'''"}, ctx)

        assert comment.user == "owner"
        assert comment.body == "**Comment by** dave\n\n**Yes**"
        assert ctx.users.unmapped_users() == ["dave"]

    def test_anonymous_comment_has_no_attribution(self, ctx: BuildContext) -> None:
        comment = build_comment({"ticket": 57, "time": 1262390400, "author": "", "newvalue": "text"}, ctx)

        assert comment.user == "owner"
        assert comment.body == "text"

    def test_edited_comment_keeps_update_time(self, ctx: BuildContext) -> None:
        comment = build_comment(
            {"ticket": 57, "time": 1262390400, "updated": 1262476800, "author": "bob", "newvalue": "x"}, ctx
        )
        assert comment.updated_at == "2010-01-03T00:00:00Z"
