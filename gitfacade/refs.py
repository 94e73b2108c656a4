"""Branch/tag enumeration and the commit id -> refs reverse index."""

from __future__ import annotations

import logging
import re
import threading
from collections import defaultdict
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ._backend import UNRESOLVED_ERRORS, Engine
from .models import Ref, RefKind

logger = logging.getLogger(__name__)

_REF_TOKEN = re.compile(r"[^* \n]+")

RefIndex = Mapping[str, Tuple[Ref, ...]]


def parse_ref_listing(output: str) -> List[str]:
    """Extract ref names from ``git branch``/``git tag`` style output.

    The listing looks like::

          fix-aaa
          fix-bbb
        * master

    The ``*`` marking the checked out ref is dropped.
    """

    return _REF_TOKEN.findall(output or "")


def _snapshot(refs: Iterable, kind: RefKind) -> List[Ref]:
    snapshot: List[Ref] = []
    for ref in refs:
        try:
            snapshot.append(Ref.from_git(ref, kind))
        except UNRESOLVED_ERRORS:
            # Unborn branches and tags of trees or blobs have no commit to point at.
            logger.debug("Skipping ref without a commit target: %s", ref)
    return snapshot


class RefCatalog:
    """Enumerates refs through the engine and caches the reverse index."""

    def __init__(self, engine: Callable[[], Engine]) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._heads: Optional[List[Ref]] = None
        self._refs_by_commit: Optional[RefIndex] = None

    def branches(self) -> List[Ref]:
        """Local branches sorted by name, ascending."""

        return sorted(_snapshot(self._engine().list_branches(), RefKind.BRANCH), key=lambda ref: ref.name)

    def tags(self) -> List[Ref]:
        """Tags sorted by name, descending."""

        return sorted(
            _snapshot(self._engine().list_tags(), RefKind.TAG),
            key=lambda ref: ref.name,
            reverse=True,
        )

    def heads(self) -> List[Ref]:
        if self._heads is None:
            self._heads = self.branches()
        return list(self._heads)

    def branch_names(self) -> List[str]:
        return [ref.name for ref in self.branches()]

    def tag_names(self) -> List[str]:
        return [ref.name for ref in self.tags()]

    def ref_names(self) -> List[str]:
        return self.branch_names() + self.tag_names()

    def refs_by_commit(self) -> RefIndex:
        """Return the commit id -> refs mapping, built on first call only."""

        if self._refs_by_commit is None:
            with self._lock:
                if self._refs_by_commit is None:
                    self._refs_by_commit = self._build_index()
        return self._refs_by_commit

    def branch_names_containing(self, commit: str) -> List[str]:
        return parse_ref_listing(self._engine().refs_containing("branch", commit))

    def tag_names_containing(self, commit: str) -> List[str]:
        return parse_ref_listing(self._engine().refs_containing("tag", commit))

    def _build_index(self) -> RefIndex:
        engine = self._engine()
        refs: List[Ref] = []
        refs.extend(_snapshot(engine.list_branches(), RefKind.BRANCH))
        refs.extend(_snapshot(engine.list_remote_refs(), RefKind.REMOTE))
        refs.extend(_snapshot(engine.list_tags(), RefKind.TAG))

        head = engine.head_commit()
        if head is not None:
            refs.append(Ref(name="HEAD", target=head.hexsha, kind=RefKind.HEAD))

        grouped: Dict[str, List[Ref]] = defaultdict(list)
        for ref in refs:
            grouped[ref.target].append(ref)

        logger.debug("Indexed %d refs across %d commits", len(refs), len(grouped))
        return MappingProxyType({commit_id: tuple(items) for commit_id, items in grouped.items()})


__all__ = ["RefCatalog", "RefIndex", "parse_ref_listing"]
