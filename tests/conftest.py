"""
Pytest configuration and fixtures.

Integration tests fail on any WARNING logged by the code under test; unit tests
allow warnings.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from typing_extensions import override

import pytest

from trac_to_github_migrator.config import MigrationConfig, parse_config

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path

# Store warning records during test execution
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}

SAMPLE_CONFIG = """\
[github]
owner = projectowner

[Trac]
source = dbi:SQLite:dbname=trac.db
timezone = GMT

[Milestones]
start = 1

[Issues]
start = 1

[Users]
alice = alice-gh
bob = bobby
carol =

[Label]
field = type, component, priority, severity, keywords
keywords.split = true

[LabelMap]
severity.blocker = major
severity.normal =
priority.high = major
priority.normal =
priority.low = minor
type.defect = bug
type.task =
"""


class IntegrationTestWarningHandler(logging.Handler):
    """Custom logging handler to capture warnings during integration tests."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__()
        self.test_nodeid = test_nodeid
        self.setLevel(logging.WARNING)

    @override
    def emit(self, record: logging.LogRecord) -> None:
        """Capture WARNING and above level logs."""
        _integration_test_warnings.setdefault(self.test_nodeid, []).append(record)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(
    request: pytest.FixtureRequest,
) -> Generator[None]:
    """Capture logger warnings during integration tests so the report hook can fail them."""
    if request.node.get_closest_marker("integration") is None:
        yield
        return

    test_nodeid = request.node.nodeid
    _integration_test_warnings[test_nodeid] = []

    handler = IntegrationTestWarningHandler(test_nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """Mark a passed integration test as failed if it logged warnings."""
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        test_nodeid = item.nodeid
        warning_records = _integration_test_warnings.get(test_nodeid, [])

        if warning_records:
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        _integration_test_warnings.pop(test_nodeid, None)


@pytest.fixture
def config_text() -> str:
    return SAMPLE_CONFIG


@pytest.fixture
def config() -> MigrationConfig:
    return parse_config(SAMPLE_CONFIG)


@pytest.fixture
def trac_db(tmp_path: Path) -> Path:
    """A small Trac database with three milestones, four tickets and their comments."""
    path = tmp_path / "trac.db"
    connection = sqlite3.connect(path)
    connection.executescript(
        """
        CREATE TABLE milestone (name TEXT PRIMARY KEY, due INTEGER, completed INTEGER, description TEXT);
        CREATE TABLE ticket (
            id INTEGER PRIMARY KEY, type TEXT, time INTEGER, changetime INTEGER, component TEXT,
            severity TEXT, priority TEXT, owner TEXT, reporter TEXT, cc TEXT, version TEXT,
            milestone TEXT, status TEXT, resolution TEXT, summary TEXT, description TEXT, keywords TEXT
        );
        CREATE TABLE ticket_change (
            ticket INTEGER, time INTEGER, author TEXT, field TEXT, oldvalue TEXT, newvalue TEXT,
            UNIQUE (ticket, time, field)
        );
        """
    )
    connection.executemany(
        "INSERT INTO milestone VALUES (?, ?, ?, ?)",
        [
            ("later", 0, 0, "No due date yet"),
            ("2.0", 1293840000000000, 0, "Second release, see #57"),
            ("1.0", 1262304000000000, 1262390400000000, "''First'' release"),
        ],
    )
    connection.executemany(
        "INSERT INTO ticket VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [
            (
                57, "defect", 1262304000000000, 1262476800000000, "core", "blocker", "normal", "bob", "alice",
                "", "", "1.0", "closed", "fixed", "Crash on start",
                "Fails at startup:\n{{{\n#!python\nraise SystemExit(#3)\n}}}\nSee #60 and #999.", "crash, startup",
            ),
            (
                3, "task", 1230768000000000, 1230768000000000, "docs", "normal", "low", "", "dave",
                "", "", "", "new", "", "Write docs", "'''Docs''' for [http://example.com the site]", "",
            ),
            (
                60, "enhancement", 1262563200000000, 1262563200000000, "core", "normal", "high", "alice", "bob",
                "", "", "2.0", "assigned", "", "Faster startup", "Follow-up of ticket:57", "startup",
            ),
            (
                61, "defect", 1262649600000000, 1262649600000000, "core", "normal", "normal", "", "carol",
                "", "", "later", "new", "", "Outside range", "", "",
            ),
        ],
    )
    connection.executemany(
        "INSERT INTO ticket_change VALUES (?, ?, ?, ?, ?, ?)",
        [
            (57, 1262390400000000, "bob", "comment", "1", "Confirmed, see #60."),
            (57, 1262394000000000, "dave", "comment", "2", "Replying to [comment:1 bob]:\n> Confirmed\nThanks"),
            (57, 1262395000000000, "alice", "status", "new", "closed"),
            (57, 1262396000000000, "alice", "comment", "3", ""),
            (3, 1230768500000000, "alice", "comment", "1", "@bob please review"),
            (61, 1262649700000000, "carol", "comment", "1", "Not migrated"),
        ],
    )
    connection.commit()
    connection.close()
    return path
