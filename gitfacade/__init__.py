"""Read-oriented facade over git repositories: refs, history, search and archives."""

from .errors import EngineFailure, GitFacadeError, NoRepository, UnresolvedRef
from .models import BlobSnippet, Commit, Ref, RefKind
from .repository import Repository
from .service import RepositoryService

__all__ = [
    "BlobSnippet",
    "Commit",
    "EngineFailure",
    "GitFacadeError",
    "NoRepository",
    "Ref",
    "RefKind",
    "Repository",
    "RepositoryService",
    "UnresolvedRef",
]
