"""High-level service shared by the command line tool and the MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .archive import DEFAULT_FORMAT
from .repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIRNAME = ".gitfacade-archives"


@dataclass
class RepositoryService:
    """Wraps a :class:`Repository` and returns plain, serialisable results.

    ``storage_root`` is where archives are cached; it defaults to a
    ``.gitfacade-archives`` directory next to the repository so repeated
    exports of the same commit reuse one file.
    """

    root: Path | str | None = None
    storage_root: Path | str | None = None
    root_ref: Optional[str] = None
    repository: Optional[Repository] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root or Path.cwd()).resolve()
        if self.storage_root is None:
            self.storage_root = self.root.parent / DEFAULT_STORAGE_DIRNAME
        self.storage_root = Path(self.storage_root).resolve()

        if self.repository is None:
            self.repository = Repository(self.root)
        if self.root_ref:
            self.repository.root_ref = self.root_ref

    def describe(self) -> Dict[str, Any]:
        repo = self.repository
        empty = repo.is_empty()
        return {
            "path": repo.path,
            "name": repo.name,
            "default_branch": None if empty else repo.root_ref,
            "empty": empty,
        }

    def list_refs(self, kind: str = "all") -> Dict[str, List[Dict[str, str]]]:
        repo = self.repository
        result: Dict[str, List[Dict[str, str]]] = {}
        if kind in ("all", "branches"):
            result["branches"] = [_ref_to_dict(ref) for ref in repo.branches()]
        if kind in ("all", "tags"):
            result["tags"] = [_ref_to_dict(ref) for ref in repo.tags()]
        return result

    def refs_for_commit(self, commit: str) -> List[Dict[str, str]]:
        resolved = self.repository.get_commit(commit)
        return [_ref_to_dict(ref) for ref in self.repository.refs_by_commit().get(resolved.id, ())]

    def containing(self, commit: str) -> Dict[str, List[str]]:
        return {
            "branches": self.repository.branch_names_containing(commit),
            "tags": self.repository.tag_names_containing(commit),
        }

    def find_commits(self, **options: Any) -> List[Dict[str, Any]]:
        return [commit.to_dict() for commit in self.repository.find_commits(**options)]

    def log(self, **options: Any) -> List[Dict[str, Any]]:
        return [commit.to_dict() for commit in self.repository.log(**options)]

    def search(self, query: str, ref: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            {
                "ref": snippet.ref,
                "filename": snippet.filename,
                "startline": snippet.startline,
                "lastline": snippet.lastline,
                "data": snippet.data,
                "binary": snippet.binary,
            }
            for snippet in self.repository.search_files(query, ref)
        ]

    def archive(self, ref: Optional[str] = None, format: Optional[str] = DEFAULT_FORMAT) -> Optional[Path]:
        path = self.repository.archive_repo(ref, self.storage_root, format)
        if path is None:
            logger.info("Nothing to archive for ref %r in %s", ref, self.repository.path)
        return path


def _ref_to_dict(ref) -> Dict[str, str]:
    return {"name": ref.name, "target": ref.target, "kind": ref.kind.value}


__all__ = ["DEFAULT_STORAGE_DIRNAME", "RepositoryService"]
