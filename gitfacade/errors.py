"""Exceptions raised by the repository facade."""

from __future__ import annotations

import git


class GitFacadeError(Exception):
    """Base class for facade errors."""


class NoRepository(GitFacadeError):
    """The handle's path holds no git repository (checked lazily, never cached)."""


class UnresolvedRef(GitFacadeError, LookupError):
    """A ref or commit name could not be resolved to a commit."""

    def __init__(self, ref: str) -> None:
        super().__init__(f"unable to resolve ref: {ref}")
        self.ref = ref


# Engine errors propagate unchanged; this alias lets callers catch them by one name.
EngineFailure = git.exc.GitError


__all__ = ["EngineFailure", "GitFacadeError", "NoRepository", "UnresolvedRef"]
