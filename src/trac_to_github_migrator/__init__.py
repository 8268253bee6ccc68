"""
Trac to GitHub Migration Tool

Converts Trac tickets, milestones and comments into GitHub issue records,
renumbering cross-references, mapping users and labels, and translating
Trac wiki markup into GitHub Markdown.
"""

from __future__ import annotations

from .cli import main
from .config import MigrationConfig, load_config, parse_config
from .exceptions import ConfigurationError, MigrationError, SourceError, UnknownIdentifierError
from .labels import LabelClassifier, LabelMapping, LabelTally
from .markup import MarkupTranslator
from .numbering import IdentifierMap
from .orchestrator import MigrationResult, Migrator
from .users import UserResolver

# Package version
__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "IdentifierMap",
    "LabelClassifier",
    "LabelMapping",
    "LabelTally",
    "MarkupTranslator",
    "MigrationConfig",
    "MigrationError",
    "MigrationResult",
    "Migrator",
    "SourceError",
    "UnknownIdentifierError",
    "UserResolver",
    "load_config",
    "main",
    "parse_config",
]
