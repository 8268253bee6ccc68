"""Trac username to GitHub username resolution."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

logger: logging.Logger = logging.getLogger(__name__)


class UserResolver:
    """Maps Trac usernames to GitHub usernames.

    Names without a (non-empty) mapping resolve to the default user, normally the
    repository owner. Such names are remembered so the end-of-run report can list
    them; the set belongs to this resolver and therefore to a single run.
    """

    default_user: str
    unmapped: set[str]
    _user_map: dict[str, str]

    def __init__(self, user_map: Mapping[str, str], default_user: str) -> None:
        self._user_map = {name: target.strip() for name, target in user_map.items() if target and target.strip()}
        self.default_user = default_user
        self.unmapped = set()

    def mapping_for(self, original: str | None) -> str | None:
        """Return the configured GitHub name, or None. Does not record anything."""
        if not original:
            return None
        return self._user_map.get(original.strip())

    def has_mapping(self, original: str | None) -> bool:
        return self.mapping_for(original) is not None

    def resolve(self, original: str | None) -> str:
        """Return the GitHub username for ``original``, falling back to the default user."""
        mapped = self.mapping_for(original)
        if mapped is not None:
            return mapped

        if original and original.strip():
            name = original.strip()
            if name not in self.unmapped:
                logger.debug(f"No GitHub user for Trac user {name!r}, using {self.default_user!r}")
            self.unmapped.add(name)
        return self.default_user

    def unmapped_users(self) -> list[str]:
        return sorted(self.unmapped)
