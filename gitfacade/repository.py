"""Repository handle: the host-facing entry point to a git repository."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from pathlib import Path
from typing import Any, List, Optional, Sequence

import git

from . import archive, search
from ._backend import Engine, Missing, is_unresolved_revision, open_engine
from .errors import NoRepository, UnresolvedRef
from .history import CommitQuery, build_commit_query, merge_log_options
from .models import BlobSnippet, Commit, Ref
from .refs import RefCatalog, RefIndex
from .utils import safe_abs_path

logger = logging.getLogger(__name__)

_UNSET = object()


def pick_default_branch(branch_names: Sequence[str], head_name: Optional[str]) -> Optional[str]:
    """Best-effort guess at a repository's default branch.

    - no branches: ``None``
    - one branch: that branch
    - otherwise the branch HEAD points at, else ``master``, else the first
      branch name in sorted order
    """

    if not branch_names:
        return None
    if len(branch_names) == 1:
        return branch_names[0]
    if head_name and head_name in branch_names:
        return head_name
    if "master" in branch_names:
        return "master"
    return sorted(branch_names)[0]


class Repository:
    """Read-oriented facade over the git repository stored at *path*.

    Creating a handle never touches the filesystem. The engine is opened on
    first use; a missing repository raises :class:`NoRepository` and is
    retried on the next call.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = safe_abs_path(path)
        self._name = os.path.basename(self._path.rstrip(os.sep))
        self._root_ref: Any = _UNSET
        self._engine: Optional[Engine] = None
        self._engine_lock = threading.Lock()
        self.catalog = RefCatalog(self.engine)

    def __repr__(self) -> str:
        return f"<Repository {self._path}>"

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return self._name

    # ------------------------------------------------------------------
    # Engine
    # ------------------------------------------------------------------
    def engine(self) -> Engine:
        if self._engine is None:
            with self._engine_lock:
                if self._engine is None:
                    state = open_engine(self._path)
                    if isinstance(state, Missing):
                        raise NoRepository(state.reason)
                    self._engine = state.engine
        return self._engine

    @property
    def raw(self) -> git.Repo:
        return self.engine().repo

    # ------------------------------------------------------------------
    # Default branch and emptiness
    # ------------------------------------------------------------------
    @property
    def root_ref(self) -> Optional[str]:
        if self._root_ref is _UNSET:
            self._root_ref = self.discover_default_branch()
        return self._root_ref

    @root_ref.setter
    def root_ref(self, value: Optional[str]) -> None:
        self._root_ref = value

    def discover_default_branch(self) -> Optional[str]:
        names = self.branch_names()
        head_name = self.engine().current_head_branch_name() if len(names) > 1 else None
        return pick_default_branch(names, head_name)

    def find_commit(self, ref: Optional[str]) -> Optional[Commit]:
        if not ref:
            return None
        commit = self.engine().resolve(ref)
        return Commit.decorate(commit) if commit is not None else None

    def get_commit(self, ref: str) -> Commit:
        commit = self.find_commit(ref)
        if commit is None:
            raise UnresolvedRef(ref)
        return commit

    def last_commit(self) -> Optional[Commit]:
        return self.find_commit(self.root_ref)

    def has_commits(self) -> bool:
        try:
            return self.last_commit() is not None
        except NoRepository:
            return False

    def is_empty(self) -> bool:
        return not self.has_commits()

    @property
    def size(self) -> float:
        """Size of the repository directory in megabytes."""

        result = subprocess.run(["du", "-s", self._path], capture_output=True, text=True, check=True)
        kilobytes = int(result.stdout.split()[0])
        return round(kilobytes / 1024, 2)

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------
    def branches(self) -> List[Ref]:
        return self.catalog.branches()

    def tags(self) -> List[Ref]:
        return self.catalog.tags()

    def heads(self) -> List[Ref]:
        return self.catalog.heads()

    def branch_names(self) -> List[str]:
        return self.catalog.branch_names()

    def tag_names(self) -> List[str]:
        return self.catalog.tag_names()

    def ref_names(self) -> List[str]:
        return self.catalog.ref_names()

    def refs_by_commit(self) -> RefIndex:
        return self.catalog.refs_by_commit()

    def branch_names_containing(self, commit: str) -> List[str]:
        return self.catalog.branch_names_containing(commit)

    def tag_names_containing(self, commit: str) -> List[str]:
        return self.catalog.tag_names_containing(commit)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def find_commits(self, **options: Any) -> List[Commit]:
        """Return commits matching *options*.

        Usage::

            repo.find_commits(ref="master", max_count=10, skip=5, order="date")

        Recognised options:

        - ``ref``: ref or sha to start from
        - ``contains``: start from every branch whose history includes this commit
        - ``max_count``: maximum number of commits to return
        - ``skip``: number of commits to skip
        - ``order``: ``"date"`` (default) or ``"topo"``

        Other keys are ignored. An unresolvable ``ref`` or ``contains`` target
        yields an empty list.
        """

        try:
            query = build_commit_query(options, self.branch_names_containing)
            return self._run_commit_query(query)
        except git.exc.GitCommandError as err:
            if is_unresolved_revision(err):
                logger.debug("History query on an unresolvable revision: %s", err)
                return []
            raise

    def _run_commit_query(self, query: CommitQuery) -> List[Commit]:
        if query.is_empty:
            return []
        raw_commits = self.engine().rev_list(query.revs, **query.flags)
        return [Commit.decorate(commit) for commit in raw_commits]

    def log(self, **options: Any) -> List[Commit]:
        """Delegate to ``git log`` for a single ref.

        Usage::

            repo.log(ref="master", path="app/models", limit=10, offset=5)
        """

        merged = merge_log_options(options, self.root_ref)
        raw_commits = self.engine().log(
            merged["ref"],
            merged["path"],
            max_count=merged["limit"],
            skip=merged["offset"],
            follow=merged["follow"],
        )
        return [Commit.decorate(commit) for commit in raw_commits]

    def commits_between(self, start: str, end: str) -> List[Commit]:
        """Commits reachable from *end* but not *start*, oldest first."""

        raw_commits = self.engine().commits_between(start, end)
        return [Commit.decorate(commit) for commit in reversed(raw_commits)]

    def merge_base_commit(self, start: str, end: str) -> str:
        return self.engine().merge_base(start, end)

    def diff(self, start: str, end: str, *paths: str) -> git.DiffIndex:
        return self.engine().diff(start, end, paths)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------
    def search_files(self, query: str, ref: Optional[str] = None) -> List[BlobSnippet]:
        if not ref:
            ref = self.root_ref
        if not ref:
            return []
        return search.search_files(self.engine(), query, ref)

    def archive_repo(
        self,
        ref: Optional[str],
        storage_path: str | Path,
        format: Optional[str] = archive.DEFAULT_FORMAT,
    ) -> Optional[Path]:
        """Return the path of an archive of *ref*, packaging it on first request.

        Archives are cached at
        ``storage_path/<name>/<name without .git>-<commit id><extension>``.
        Returns ``None`` when *ref* does not resolve.
        """

        ref = ref or self.root_ref
        commit = self.find_commit(ref)
        if commit is None:
            return None
        return archive.export_archive(self.engine(), self._name, commit.id, storage_path, format)


__all__ = ["Repository", "pick_default_branch"]
