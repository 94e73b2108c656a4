"""Value types handed out by the repository facade."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

import git


class RefKind(str, Enum):
    BRANCH = "branch"
    TAG = "tag"
    HEAD = "head"
    REMOTE = "remote"


@dataclass(frozen=True)
class Ref:
    """Snapshot of a named pointer to a commit, as reported by the engine."""

    name: str
    target: str
    kind: RefKind

    @classmethod
    def from_git(cls, ref: git.SymbolicReference, kind: RefKind) -> "Ref":
        # Tag refs peel to the tagged commit.
        return cls(name=ref.name, target=ref.commit.hexsha, kind=kind)


@dataclass(frozen=True)
class Commit:
    """Read-only decoration of a raw GitPython commit.

    Only metadata is copied out; the engine object stays reachable through
    :attr:`raw` for callers that need trees, stats or diffs.
    """

    id: str
    message: str
    author_name: str
    author_email: str
    authored_date: datetime
    committer_name: str
    committer_email: str
    committed_date: datetime
    parent_ids: Tuple[str, ...] = ()
    raw: Optional[git.Commit] = field(default=None, repr=False, compare=False)

    @classmethod
    def decorate(cls, commit: git.Commit) -> "Commit":
        return cls(
            id=commit.hexsha,
            message=commit.message,
            author_name=commit.author.name or "",
            author_email=commit.author.email or "",
            authored_date=commit.authored_datetime,
            committer_name=commit.committer.name or "",
            committer_email=commit.committer.email or "",
            committed_date=commit.committed_datetime,
            parent_ids=tuple(parent.hexsha for parent in commit.parents),
            raw=commit,
        )

    @property
    def short_id(self) -> str:
        return self.id[:10]

    @property
    def title(self) -> str:
        lines = self.message.strip().splitlines()
        return lines[0] if lines else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "short_id": self.short_id,
            "title": self.title,
            "message": self.message,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "authored_date": self.authored_date.isoformat(),
            "committer_name": self.committer_name,
            "committer_email": self.committer_email,
            "committed_date": self.committed_date.isoformat(),
            "parent_ids": list(self.parent_ids),
        }


@dataclass
class BlobSnippet:
    """A run of lines around a content-search hit."""

    ref: str
    lines: List[str]
    startline: int
    filename: str
    binary: bool = False

    @property
    def data(self) -> str:
        return "\n".join(self.lines)

    @property
    def lastline(self) -> int:
        return self.startline + max(len(self.lines) - 1, 0)


@dataclass(frozen=True)
class ArchiveFormat:
    extension: str
    git_format: str
    compression: Optional[str] = None


__all__ = ["ArchiveFormat", "BlobSnippet", "Commit", "Ref", "RefKind"]
