"""Path helpers and temporary repositories for the facade and its tests."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

import git


def safe_abs_path(path: str | Path) -> str:
    """Return a resolved absolute path using the platform's native separators."""

    return str(Path(path).resolve())


class GitTemporaryDirectory(tempfile.TemporaryDirectory):
    """Temporary directory that initialises an empty Git repository on entry.

    ``initial_branch`` names the unborn branch HEAD points at.
    """

    def __init__(self, initial_branch: str = "master", **kwargs) -> None:
        super().__init__(**kwargs)
        self.initial_branch = initial_branch

    def __enter__(self) -> str:
        path = super().__enter__()
        repo = git.Repo.init(path)
        repo.git.symbolic_ref("HEAD", f"refs/heads/{self.initial_branch}")
        return path

    def cleanup(self) -> None:  # pragma: no cover - exercised indirectly in tests
        try:
            super().cleanup()
        except (PermissionError, OSError):
            shutil.rmtree(self.name, ignore_errors=True)


__all__ = [
    "GitTemporaryDirectory",
    "safe_abs_path",
]
