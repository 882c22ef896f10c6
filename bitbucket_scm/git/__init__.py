"""git CLI engine for full checkouts."""

from bitbucket_scm.git.engine import (
    CleanBeforeCheckout,
    GitChangeLogParser,
    GitCommandError,
    GitEngine,
    GitExtension,
)

__all__ = [
    "CleanBeforeCheckout",
    "GitChangeLogParser",
    "GitCommandError",
    "GitEngine",
    "GitExtension",
]
