"""Model Context Protocol integration for :mod:`gitfacade`."""

from .server import CommitSummary, RefEntry, SearchSnippet, app, create_server, main

__all__ = [
    "CommitSummary",
    "RefEntry",
    "SearchSnippet",
    "app",
    "create_server",
    "main",
]
