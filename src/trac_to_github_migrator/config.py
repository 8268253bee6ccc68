"""
Configuration loading for the Trac to GitHub migration tool.

The configuration is an INI file::

    [github]
    owner = YourNameHere

    [Trac]
    source = dbi:SQLite:dbname=trac.db
    timezone = GMT

    [Milestones]
    start = 1

    [Issues]
    start = 1

    [Users]
    tracname = githubname

    [Label]
    field = type, component, priority, keywords
    keywords.split = true

    [LabelMap]
    priority.high = major
    type.task =
"""

from __future__ import annotations

import configparser
import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ConfigurationError
from .labels import LabelFieldSpec, LabelMapping

if TYPE_CHECKING:
    from collections.abc import Mapping

logger: logging.Logger = logging.getLogger(__name__)

_DBI_SQLITE_PREFIX = re.compile(r"^dbi:SQLite:(?:dbname=)?", re.IGNORECASE)
_UTC_NAMES = frozenset({"GMT", "UTC", "Z"})


@dataclass(frozen=True)
class MigrationConfig:
    """Settings for one migration run."""

    owner: str
    """GitHub user that stands in for unmapped Trac users and creates milestones."""
    source: Path | None = None
    timezone: str = "GMT"
    encoding: str = "UTF-8"
    milestone_start: int = 1
    issue_start: int = 1
    first_ticket: int | None = None
    last_ticket: int | None = None
    users: dict[str, str] = field(default_factory=dict)
    label_fields: tuple[LabelFieldSpec, ...] = ()
    label_overrides: dict[tuple[str, str], str] = field(default_factory=dict)
    label_defaults: dict[str, str] = field(default_factory=dict)

    @property
    def tzinfo(self) -> dt.tzinfo:
        if self.timezone.upper() in _UTC_NAMES:
            return dt.UTC
        return ZoneInfo(self.timezone)

    def label_mapping(self) -> LabelMapping:
        return LabelMapping(self.label_overrides, self.label_defaults)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, object]]) -> MigrationConfig:
        """Build the configuration from a nested section -> option -> value mapping."""
        parser = _new_parser()
        sections = {
            section: {key: "" if value is None else str(value) for key, value in options.items()}
            for section, options in data.items()
        }
        try:
            parser.read_dict(sections)
        except configparser.Error as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e
        return _from_parser(parser)


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None)
    # Trac user names and field values are case sensitive
    parser.optionxform = str  # type: ignore[assignment]
    return parser


def _get_int(parser: configparser.ConfigParser, section: str, option: str, default: int | None) -> int | None:
    raw = parser.get(section, option, fallback="").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        msg = f"[{section}] {option} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from e


def _get_start(parser: configparser.ConfigParser, section: str) -> int:
    start = _get_int(parser, section, "start", 1)
    assert start is not None
    if start < 1:
        msg = f"[{section}] start must be positive, got {start}"
        raise ConfigurationError(msg)
    return start


def _parse_source(raw: str) -> Path | None:
    raw = raw.strip()
    if not raw:
        return None
    if raw.lower().startswith("dbi:") and not _DBI_SQLITE_PREFIX.match(raw):
        msg = f"Only SQLite Trac databases are supported, got {raw!r}"
        raise ConfigurationError(msg)
    return Path(_DBI_SQLITE_PREFIX.sub("", raw))


def _parse_labels(
    parser: configparser.ConfigParser,
) -> tuple[tuple[LabelFieldSpec, ...], dict[tuple[str, str], str], dict[str, str]]:
    names = [name for name in re.split(r"[\s,]+", parser.get("Label", "field", fallback="")) if name]
    fields: list[LabelFieldSpec] = []
    for name in names:
        try:
            split = parser.getboolean("Label", f"{name}.split", fallback=False)
        except ValueError as e:
            msg = f"[Label] {name}.split must be a boolean"
            raise ConfigurationError(msg) from e
        fields.append(LabelFieldSpec(name, split=split))

    overrides: dict[tuple[str, str], str] = {}
    defaults: dict[str, str] = {}
    if parser.has_section("LabelMap"):
        for key, value in parser.items("LabelMap"):
            field_name, dot, token = key.partition(".")
            if dot:
                overrides[(field_name, token)] = value.strip()
            else:
                defaults[field_name] = value.strip()

    return tuple(fields), overrides, defaults


def _from_parser(parser: configparser.ConfigParser) -> MigrationConfig:
    owner = parser.get("github", "owner", fallback="").strip()
    if not owner:
        msg = "Missing required option [github] owner"
        raise ConfigurationError(msg)

    timezone = parser.get("Trac", "timezone", fallback="GMT").strip() or "GMT"
    first_ticket = _get_int(parser, "Issues", "first", None)
    last_ticket = _get_int(parser, "Issues", "last", None)
    if first_ticket is not None and last_ticket is not None and first_ticket > last_ticket:
        msg = f"[Issues] first ({first_ticket}) is after last ({last_ticket})"
        raise ConfigurationError(msg)

    users = dict(parser.items("Users")) if parser.has_section("Users") else {}
    label_fields, label_overrides, label_defaults = _parse_labels(parser)

    config = MigrationConfig(
        owner=owner,
        source=_parse_source(parser.get("Trac", "source", fallback="")),
        timezone=timezone,
        encoding=parser.get("Trac", "encoding", fallback="UTF-8").strip() or "UTF-8",
        milestone_start=_get_start(parser, "Milestones"),
        issue_start=_get_start(parser, "Issues"),
        first_ticket=first_ticket,
        last_ticket=last_ticket,
        users={name: target.strip() for name, target in users.items()},
        label_fields=label_fields,
        label_overrides=label_overrides,
        label_defaults=label_defaults,
    )

    try:
        _ = config.tzinfo
    except (ZoneInfoNotFoundError, ValueError) as e:
        msg = f"Unknown time zone [Trac] timezone = {timezone!r}"
        raise ConfigurationError(msg) from e

    logger.debug(
        f"Loaded configuration: {len(config.users)} users, {len(config.label_fields)} label fields, "
        f"{len(config.label_overrides)} label overrides"
    )
    return config


def parse_config(text: str) -> MigrationConfig:
    """Parse configuration from INI text.

    Raises:
        ConfigurationError: If the text is not valid INI or a required value is missing or malformed
    """
    parser = _new_parser()
    try:
        parser.read_string(text)
    except configparser.Error as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigurationError(msg) from e
    return _from_parser(parser)


def load_config(path: str | Path) -> MigrationConfig:
    """Load configuration from an INI file."""
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read configuration file {config_path}: {e}"
        raise ConfigurationError(msg) from e
    logger.info(f"Loading configuration from {config_path}")
    return parse_config(text)
