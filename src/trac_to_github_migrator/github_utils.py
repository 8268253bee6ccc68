from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Final

from github import Auth, Github, GithubException, UnknownObjectException

from . import utils
from .exceptions import MigrationError

if TYPE_CHECKING:
    from collections.abc import Iterable

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

_TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"  # noqa: S105
_DEFAULT_TOKEN_PASS_PATH: Final[str] = "github/cli/token"  # noqa: S105


def get_token(pass_path: str | None = None) -> str | None:
    """Get GitHub token from pass path, env var GITHUB_TOKEN, or default pass location."""
    # Try pass path first
    if pass_path:
        return utils.get_pass_value(pass_path)

    # Try environment variable
    token: str | None = os.environ.get(_TOKEN_ENV_VAR)
    if token:
        return token

    # Try default pass path
    try:
        return utils.get_pass_value(_DEFAULT_TOKEN_PASS_PATH)
    except utils.PassError:
        logger.warning("No GitHub token specified nor found, using anonymous access")
        return None


def get_client(token: str | None = None) -> Github:
    """Get a GitHub client using the token."""
    if token:
        return Github(auth=Auth.Token(token))
    return Github()


def find_missing_users(client: Github, usernames: Iterable[str]) -> list[str]:
    """Return the usernames that do not exist on GitHub.

    Args:
        client: GitHub client
        usernames: GitHub usernames to check; duplicates are checked once

    Returns:
        Sorted list of usernames GitHub does not know

    Raises:
        MigrationError: If GitHub cannot be queried (other than a missing user)
    """
    missing: list[str] = []
    for username in sorted(set(usernames)):
        try:
            client.get_user(username)
        except UnknownObjectException:
            missing.append(username)
            logger.debug(f"GitHub user {username!r} does not exist")
        except GithubException as e:
            msg = f"Failed to look up GitHub user {username!r}: {e}"
            raise MigrationError(msg) from e
    return missing
