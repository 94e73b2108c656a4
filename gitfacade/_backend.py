"""Internal bridge onto GitPython, the engine behind every repository query."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterable, List, Optional, Sequence, Union

import git
from git.exc import BadName, BadObject

logger = logging.getLogger(__name__)

ANY_GIT_ERROR = (
    git.exc.ODBError,
    git.exc.GitError,
    git.exc.InvalidGitRepositoryError,
    git.exc.GitCommandNotFound,
)

# Raised by rev-parse style lookups when a name does not resolve.
UNRESOLVED_ERRORS = (BadName, BadObject, ValueError, IndexError)

_MISSING_REPO_ERRORS = (git.exc.NoSuchPathError, git.exc.InvalidGitRepositoryError)

_UNRESOLVED_MARKERS = (
    "bad revision",
    "unknown revision",
    "bad object",
    "malformed object name",
    "not a valid object name",
    "no such commit",
)


def is_unresolved_revision(err: git.exc.GitCommandError) -> bool:
    """Tell whether a failed command only failed because a revision did not resolve."""

    stderr = str(err.stderr or "").lower()
    return any(marker in stderr for marker in _UNRESOLVED_MARKERS)


class Engine:
    """Thin wrapper exposing the bits of GitPython the facade relies on."""

    def __init__(self, repo: git.Repo) -> None:
        self.repo = repo

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------
    def list_branches(self) -> List[git.Head]:
        return list(self.repo.heads)

    def list_tags(self) -> List[git.TagReference]:
        return list(self.repo.tags)

    def list_remote_refs(self) -> List[git.RemoteReference]:
        refs: List[git.RemoteReference] = []
        for remote in self.repo.remotes:
            refs.extend(remote.refs)
        return refs

    def current_head_branch_name(self) -> Optional[str]:
        head = self.repo.head
        if head.is_detached:
            return None
        try:
            return head.reference.name
        except TypeError:
            return None

    def head_commit(self) -> Optional[git.Commit]:
        try:
            return self.repo.head.commit
        except UNRESOLVED_ERRORS:
            return None

    def resolve(self, ref: str) -> Optional[git.Commit]:
        """Return the commit *ref* points at, or ``None`` if it does not resolve."""

        try:
            obj = self.repo.rev_parse(ref)
        except UNRESOLVED_ERRORS:
            return None
        # Annotated tags resolve to tag objects; peel them.
        while obj.type == "tag":
            obj = obj.object
        if obj.type != "commit":
            return None
        return obj

    def refs_containing(self, kind: str, commit: str) -> str:
        """Return the engine listing of *kind* refs (``branch``/``tag``) containing *commit*."""

        namespaces = {"branch": "refs/heads", "tag": "refs/tags"}
        if kind not in namespaces:
            raise ValueError(f"Unsupported ref kind: {kind}")
        # for-each-ref never lists a detached HEAD, unlike `git branch --contains`.
        return self.repo.git.for_each_ref(namespaces[kind], contains=commit, format="%(refname:lstrip=2)")

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def rev_list(
        self,
        revs: Optional[Sequence[str]],
        paths: Union[str, Sequence[str], None] = None,
        **flags,
    ) -> List[git.Commit]:
        return list(git.Commit.iter_items(self.repo, list(revs) if revs else None, paths or "", **flags))

    def log(
        self,
        ref: str,
        path: Optional[str] = None,
        max_count: int = 10,
        skip: int = 0,
        follow: bool = False,
    ) -> List[git.Commit]:
        args: List[str] = [ref, "--"]
        if path:
            args.append(path)
        output = self.repo.git.log(
            *args,
            format="%H",
            max_count=max_count,
            skip=skip,
            follow=follow,
        )
        return [self.repo.commit(sha) for sha in output.split()]

    def commits_between(self, start: str, end: str) -> List[git.Commit]:
        return list(self.repo.iter_commits(f"{start}..{end}"))

    def merge_base(self, start: str, end: str) -> str:
        return self.repo.git.merge_base(end, start).strip()

    def diff(self, start: str, end: str, paths: Iterable[str] = ()) -> git.DiffIndex:
        paths = list(paths)
        return self.repo.commit(start).diff(end, paths=paths or None)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------
    def grep(self, query: str, context_lines: int, ref: str) -> str:
        try:
            return self.repo.git.grep(
                "-n",
                "-E",
                "-i",
                "-z",
                "--heading",
                "--break",
                f"-C{context_lines}",
                "-e",
                query,
                ref,
            )
        except git.exc.GitCommandError as err:
            # git grep exits with 1 when nothing matched.
            if err.status == 1:
                return ""
            raise

    def archive_to_stream(self, stream: BinaryIO, commit: str, prefix: str, archive_format: str) -> None:
        self.repo.archive(stream, treeish=commit, prefix=prefix, format=archive_format)


@dataclass(frozen=True)
class Ready:
    engine: Engine


@dataclass(frozen=True)
class Missing:
    reason: str


def open_engine(path: str) -> Union[Ready, Missing]:
    """Open the repository at *path*; report absence instead of raising."""

    try:
        repo = git.Repo(path)
    except _MISSING_REPO_ERRORS as err:
        logger.debug("No repository at %s: %s", path, err)
        return Missing(reason=f"no repository for such path: {path}")
    logger.debug("Opened repository at %s", path)
    return Ready(engine=Engine(repo))


__all__ = [
    "ANY_GIT_ERROR",
    "UNRESOLVED_ERRORS",
    "Engine",
    "Missing",
    "Ready",
    "is_unresolved_revision",
    "open_engine",
]
