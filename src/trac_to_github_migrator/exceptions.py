"""
Custom exception classes for the Trac to GitHub migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised when the migration configuration is missing or malformed."""


class SourceError(MigrationError):
    """Raised when the Trac database cannot be read."""


class UnknownIdentifierError(MigrationError, LookupError):
    """Raised when an identifier was never assigned a new number."""
