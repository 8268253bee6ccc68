"""
Command-line interface for the Trac to GitHub migration tool.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from . import github_utils as ghu
from .config import MigrationConfig, load_config
from .exceptions import ConfigurationError, MigrationError
from .orchestrator import MigrationReport, Migrator
from .trac_source import TracSource
from .utils import PassError, setup_logging
from .writer import write_output

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Convert Trac tickets, milestones and comments into GitHub issue import files"
    )

    # Positional arguments
    _ = parser.add_argument("config", help="Path to the migration configuration (INI file)")
    _ = parser.add_argument("output_dir", help="Directory to write the JSON files to")

    # Optional arguments
    _ = parser.add_argument("--source", help="Path to the Trac SQLite database (overrides [Trac] source)")
    _ = parser.add_argument("--first", type=int, help="First ticket id to migrate (overrides [Issues] first)")
    _ = parser.add_argument("--last", type=int, help="Last ticket id to migrate (overrides [Issues] last)")

    _ = parser.add_argument(
        "--check-users",
        action="store_true",
        help="Verify that all mapped GitHub users exist before migrating",
    )
    _ = parser.add_argument(
        "--github-pass-token", help="Path for GitHub token in pass utility (default: github/cli/token)"
    )

    _ = parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase console verbosity (-v info, -vv debug)"
    )

    return parser.parse_args(argv)


def _apply_overrides(config: MigrationConfig, args: argparse.Namespace) -> MigrationConfig:
    overrides: dict[str, object] = {}
    if args.source:
        overrides["source"] = Path(args.source)
    if args.first is not None:
        overrides["first_ticket"] = args.first
    if args.last is not None:
        overrides["last_ticket"] = args.last
    config = dataclasses.replace(config, **overrides)  # type: ignore[arg-type]

    if config.source is None:
        msg = "No Trac database given: set [Trac] source or pass --source"
        raise ConfigurationError(msg)
    if config.first_ticket is not None and config.last_ticket is not None and config.first_ticket > config.last_ticket:
        msg = f"First ticket ({config.first_ticket}) is after last ticket ({config.last_ticket})"
        raise ConfigurationError(msg)
    return config


def _check_users(config: MigrationConfig, pass_path: str | None) -> list[str]:
    client = ghu.get_client(ghu.get_token(pass_path))
    usernames = [config.owner, *(name for name in config.users.values() if name)]
    return ghu.find_missing_users(client, usernames)


def _print_report(report: MigrationReport, output_dir: str) -> None:
    """Print a human-readable summary of the migration."""
    print("\n" + "=" * 50)
    print("MIGRATION REPORT")
    print("=" * 50)
    print(f"Output:     {output_dir}")
    print(f"Milestones: {report.milestones_created}")
    print(f"Issues:     {report.issues_created}")
    print(f"Comments:   {report.comments_created} (skipped {report.comments_skipped} outside ticket range)")

    if report.unmapped_users:
        print(f"\nTrac users without GitHub account ({len(report.unmapped_users)}):")
        for name in report.unmapped_users:
            print(f"  - {name}")

    if report.label_usage:
        print("\nLabel usage:")
        for (field_name, label), count in report.label_usage.items():
            print(f"  {field_name:>12} -> {label}: {count}")

    if report.label_clashes:
        print("\nLabels produced by more than one field:")
        for label, fields in report.label_clashes.items():
            print(f"  - {label}: {', '.join(fields)}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    # Setup logging
    setup_logging(verbosity=args.verbose)

    try:
        config = _apply_overrides(load_config(args.config), args)

        if args.check_users:
            missing = _check_users(config, args.github_pass_token)
            if missing:
                msg = f"GitHub users do not exist: {', '.join(missing)}"
                raise ConfigurationError(msg)
            logger.info("All mapped GitHub users exist")

        assert config.source is not None
        with TracSource(config.source, encoding=config.encoding) as source:
            result = Migrator(config).migrate_source(source)

        write_output(result, args.output_dir)
        _print_report(result.report, args.output_dir)

    except (MigrationError, PassError):
        logger.exception("Migration failed")
        sys.exit(1)

    sys.exit(0)
