"""Write migration results as JSON files.

Layout of the output directory::

    milestones/<number>.json
    issues/<number>.json
    issues/<number>.comments.json   (only for issues with comments)
    report.json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .exceptions import MigrationError

if TYPE_CHECKING:
    from .orchestrator import MigrationResult

logger: logging.Logger = logging.getLogger(__name__)


def _write_json(path: Path, data: Any) -> Path:  # noqa: ANN401 - any JSON-serialisable value
    # Sorted keys and a fixed layout keep repeated runs byte-identical
    path.write_text(json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def write_output(result: MigrationResult, directory: str | Path) -> list[Path]:
    """Write all records of ``result`` below ``directory``.

    Returns:
        The written files, in writing order

    Raises:
        MigrationError: If the directory or a file cannot be written
    """
    root = Path(directory)
    milestones_dir = root / "milestones"
    issues_dir = root / "issues"
    written: list[Path] = []

    try:
        milestones_dir.mkdir(parents=True, exist_ok=True)
        issues_dir.mkdir(parents=True, exist_ok=True)

        for milestone in result.milestones:
            written.append(_write_json(milestones_dir / f"{milestone.number}.json", milestone.to_dict()))

        for issue in result.issues:
            written.append(_write_json(issues_dir / f"{issue.number}.json", issue.to_dict()))
            comments = result.comments.get(issue.number)
            if comments:
                written.append(
                    _write_json(
                        issues_dir / f"{issue.number}.comments.json",
                        [comment.to_dict() for comment in comments],
                    )
                )

        written.append(_write_json(root / "report.json", result.report.to_dict()))
    except OSError as e:
        msg = f"Failed to write output to {root}: {e}"
        raise MigrationError(msg) from e

    logger.info(f"Wrote {len(written)} files to {root}")
    return written
