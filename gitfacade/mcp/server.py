"""Expose :mod:`gitfacade` as an MCP server."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Annotated, Iterable, Literal

import anyio
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import BaseModel, Field

from ..history import ORDER_FLAGS
from ..service import RepositoryService

RefKindFilter = Literal["all", "branches", "tags"]
RootParam = Annotated[str | None, Field(description="Repository path; falls back to the server root, then the cwd.")]

_DEFAULT_ROOT: Path | None = None
_DEFAULT_STORAGE: Path | None = None
_LOG_LEVELS: tuple[str, ...] = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


# Extra per-parameter hints carried in ToolAnnotations.
_SHARED_PARAMETER_DESCRIPTIONS: dict[str, dict[str, str]] = {
    "root": {
        "summary": "Working tree or bare repository to open.",
        "details": "Relative paths resolve against the server process; omitted means --root, then the cwd.",
        "tips": "Pass it explicitly when several repositories are in play.",
    },
    "ref": {
        "summary": "Branch, tag or commit sha.",
        "details": "Defaults to the repository's default branch when omitted.",
        "tips": "Use a full sha when branch names may have moved since the last call.",
    },
}

_COMMIT_PARAMETER_DESCRIPTIONS: dict[str, dict[str, str]] = {
    **_SHARED_PARAMETER_DESCRIPTIONS,
    "contains": {
        "summary": "Start from branches containing this commit.",
        "details": (
            "Ignored when 'ref' is given. Expands to every branch whose history"
            " includes the commit; yields nothing when no branch does."
        ),
        "tips": "Useful to see what landed around a fix on every branch carrying it.",
    },
    "order": {
        "summary": "Commit ordering.",
        "details": "'date' (default) or 'topo'.",
        "tips": "Use 'topo' when parent/child adjacency matters more than time.",
    },
}


class RefEntry(BaseModel):
    """A branch or tag and the commit it points at."""

    name: str = Field(description="Short ref name.")
    target: str = Field(description="Commit sha the ref points at.")
    kind: str = Field(description="One of 'branch', 'tag', 'head' or 'remote'.")


class CommitSummary(BaseModel):
    """Structured representation of a commit."""

    id: str = Field(description="Full commit sha.")
    short_id: str = Field(description="Abbreviated sha.")
    title: str = Field(description="First line of the commit message.")
    message: str = Field(description="Full commit message.")
    author_name: str
    author_email: str
    authored_date: str = Field(description="ISO 8601 authoring timestamp.")
    committer_name: str
    committer_email: str
    committed_date: str = Field(description="ISO 8601 commit timestamp.")
    parent_ids: list[str] = Field(default_factory=list)


class SearchSnippet(BaseModel):
    """A run of lines around a content match."""

    ref: str
    filename: str = Field(description="Repository-relative path of the matching file.")
    startline: int = Field(description="Line number of the first line in 'data'.")
    lastline: int = Field(description="Line number of the last line in 'data'.")
    data: str = Field(description="Matching lines plus surrounding context.")
    binary: bool = False


def _normalise_log_level(value: str | None) -> str:
    level = (value or "INFO").upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level: {value}")
    return level


def _set_defaults(root: Path | None, storage: Path | None) -> None:
    global _DEFAULT_ROOT, _DEFAULT_STORAGE
    _DEFAULT_ROOT = root
    _DEFAULT_STORAGE = storage


def _resolve_root(root: str | Path | None) -> Path:
    if root is not None:
        path = Path(root).expanduser().resolve()
    else:
        path = (_DEFAULT_ROOT or Path.cwd()).resolve()
    if not path.is_dir():
        raise ValueError(f"Not a directory: {path}")
    return path


def _normalise_order(value: str | None) -> str:
    if value is None:
        return "date"
    if value not in ORDER_FLAGS:
        raise ValueError(f"Invalid order: {value}")
    return value


def _create_service(root: str | None) -> RepositoryService:
    return RepositoryService(root=_resolve_root(root), storage_root=_DEFAULT_STORAGE)


def list_refs_tool(
    *,
    root: RootParam = None,
    kind: Annotated[
        RefKindFilter,
        Field(description="Restrict the listing to 'branches' or 'tags'."),
    ] = "all",
) -> list[RefEntry]:
    """List branches (ascending) followed by tags (descending)."""

    listing = _create_service(root).list_refs(kind)
    return [RefEntry(**entry) for entries in listing.values() for entry in entries]


def find_commits_tool(
    *,
    root: RootParam = None,
    ref: Annotated[
        str | None,
        Field(description="Ref or sha to start from. Omit to query every ref."),
    ] = None,
    contains: Annotated[
        str | None,
        Field(description="Start from every branch containing this commit."),
    ] = None,
    max_count: Annotated[
        int | None,
        Field(ge=0, description="Maximum number of commits to return."),
    ] = None,
    skip: Annotated[
        int | None,
        Field(ge=0, description="Number of commits to skip."),
    ] = None,
    order: Annotated[
        str | None,
        Field(description="'date' (default) or 'topo'."),
    ] = None,
) -> list[CommitSummary]:
    """Query commit history.

    Example call::

        find_commits(ref="master", max_count=5, order="topo")

    An unknown ``ref`` or ``contains`` target returns an empty list.
    """

    service = _create_service(root)
    commits = service.find_commits(
        ref=ref,
        contains=contains,
        max_count=max_count,
        skip=skip,
        order=_normalise_order(order),
    )
    return [CommitSummary(**commit) for commit in commits]


def commit_log_tool(
    *,
    root: RootParam = None,
    ref: Annotated[
        str | None,
        Field(description="Ref to walk. Defaults to the default branch."),
    ] = None,
    path: Annotated[
        str | None,
        Field(description="Only include commits touching this repository-relative path."),
    ] = None,
    limit: Annotated[int, Field(ge=0, description="Maximum number of commits.")] = 10,
    offset: Annotated[int, Field(ge=0, description="Number of commits to skip.")] = 0,
    follow: Annotated[bool, Field(description="Follow renames of 'path'.")] = False,
) -> list[CommitSummary]:
    """Return the log of a single ref, optionally filtered to a path."""

    commits = _create_service(root).log(ref=ref, path=path, limit=limit, offset=offset, follow=follow)
    return [CommitSummary(**commit) for commit in commits]


def search_files_tool(
    *,
    query: Annotated[str, Field(description="Case-insensitive extended regular expression.")],
    root: RootParam = None,
    ref: Annotated[
        str | None,
        Field(description="Ref whose tree is searched. Defaults to the default branch."),
    ] = None,
    limit: Annotated[
        int | None,
        Field(ge=0, description="Optional maximum number of snippets to return."),
    ] = None,
) -> list[SearchSnippet]:
    """Search file contents at a ref and return matching snippets with context."""

    snippets = _create_service(root).search(query, ref)
    if limit is not None:
        snippets = snippets[:limit]
    return [SearchSnippet(**snippet) for snippet in snippets]


def export_archive_tool(
    *,
    root: RootParam = None,
    ref: Annotated[
        str | None,
        Field(description="Ref to export. Defaults to the default branch."),
    ] = None,
    format: Annotated[
        str | None,
        Field(description="tar.gz (default), tar.bz2 (or tbz, tbz2, tb2, bz2), tar or zip."),
    ] = "tar.gz",
) -> str:
    """Export an archive of a ref and return its path on disk.

    Archives are cached per commit and format; repeated calls return the same file.
    """

    path = _create_service(root).archive(ref, format)
    if path is None:
        raise ValueError(f"Ref does not resolve to a commit: {ref}")
    return str(path)


def register_tools(server: FastMCP) -> FastMCP:
    """Attach repository tools to *server* and return it."""

    read_only = dict(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False)

    server.tool(
        name="list_refs",
        title="List branches and tags",
        description="List the repository's branches and tags with the commits they point at.",
        annotations=ToolAnnotations(
            title="List branches and tags",
            parameterDescriptions=_SHARED_PARAMETER_DESCRIPTIONS,
            **read_only,
        ),
        structured_output=True,
    )(list_refs_tool)

    server.tool(
        name="find_commits",
        title="Query commit history",
        description=(
            "Query commits starting from a ref, from every branch containing a commit, "
            "or across all refs, in date or topological order."
        ),
        annotations=ToolAnnotations(
            title="Query commit history",
            usageExamples=[
                {
                    "description": "Latest five commits on master",
                    "arguments": {"ref": "master", "max_count": 5},
                },
                {
                    "description": "History of every branch carrying a fix",
                    "arguments": {"contains": "1a2b3c4d", "order": "topo"},
                },
            ],
            parameterDescriptions=_COMMIT_PARAMETER_DESCRIPTIONS,
            **read_only,
        ),
        structured_output=True,
    )(find_commits_tool)

    server.tool(
        name="commit_log",
        title="Show ref log",
        description="Show the log of a single ref, optionally filtered to one path.",
        annotations=ToolAnnotations(
            title="Show ref log",
            parameterDescriptions=_SHARED_PARAMETER_DESCRIPTIONS,
            **read_only,
        ),
        structured_output=True,
    )(commit_log_tool)

    server.tool(
        name="search_files",
        title="Search file contents",
        description="Search the tree at a ref and return matching snippets with three lines of context.",
        annotations=ToolAnnotations(
            title="Search file contents",
            parameterDescriptions=_SHARED_PARAMETER_DESCRIPTIONS,
            **read_only,
        ),
        structured_output=True,
    )(search_files_tool)

    server.tool(
        name="export_archive",
        title="Export archive",
        description="Package a ref into a cached archive file and return its path.",
        annotations=ToolAnnotations(
            title="Export archive",
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
            parameterDescriptions=_SHARED_PARAMETER_DESCRIPTIONS,
        ),
    )(export_archive_tool)

    return server


def create_server(
    *,
    default_root: str | Path | None = None,
    storage_root: str | Path | None = None,
    log_level: str | None = None,
    **kwargs,
) -> FastMCP:
    """Create a :class:`FastMCP` server with the repository tools registered."""

    resolved = _resolve_root(default_root) if default_root is not None else None
    storage = Path(storage_root).expanduser().resolve() if storage_root is not None else None
    _set_defaults(resolved, storage)

    server = FastMCP(
        name="gitfacade",
        instructions=(
            "Use gitfacade to inspect a git repository: list refs, query commit "
            "history, search file contents at a ref, or export cached archives. "
            "Supply a repository root when working outside the default."
        ),
        log_level=_normalise_log_level(log_level),
        **kwargs,
    )
    return register_tools(server)


app = create_server()


_TRANSPORTS = ("stdio", "sse", "http")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitfacade-mcp",
        description="Serve gitfacade repository tools over the Model Context Protocol.",
    )
    parser.add_argument("--transport", choices=_TRANSPORTS, default="stdio", help="MCP transport (default: stdio).")
    parser.add_argument("--host", help="Bind address for sse/http (FastMCP default: 127.0.0.1).")
    parser.add_argument("--port", type=int, help="Bind port for sse/http (FastMCP default: 8000).")
    parser.add_argument("--mount-path", help="Mount path for the sse transport.")
    parser.add_argument("--root", help="Repository used when a tool call gives no root (default: cwd).")
    parser.add_argument("--storage", help="Archive cache directory (default: .gitfacade-archives beside the repository).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=_normalise_log_level,
        choices=_LOG_LEVELS,
        help="Server log level (default: INFO).",
    )
    parser.add_argument("--debug", action="store_true", help="Run FastMCP in debug mode.")
    return parser


def _banner(server: FastMCP, transport: str, mount_path: str | None) -> str:
    settings = server.settings
    if transport == "stdio":
        return "gitfacade-mcp awaiting MCP client handshake on stdio"
    if transport == "sse":
        where = mount_path or settings.mount_path
        kind = "SSE"
    else:
        where = settings.streamable_http_path
        kind = "streamable HTTP"
    return f"gitfacade-mcp serving {kind} transport at http://{settings.host}:{settings.port}{where}"


def _runner(server: FastMCP, transport: str, mount_path: str | None):
    if transport == "sse":
        return server.run_sse_async, (mount_path,)
    if transport == "http":
        return server.run_streamable_http_async, ()
    return server.run_stdio_async, ()


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    default_root = None
    if args.root is not None:
        try:
            default_root = _resolve_root(args.root)
        except ValueError as exc:
            parser.error(str(exc))

    overrides = {key: value for key, value in (("host", args.host), ("port", args.port)) if value is not None}
    server = create_server(
        default_root=default_root,
        storage_root=args.storage,
        log_level=args.log_level,
        debug=args.debug,
        **overrides,
    )

    banner = _banner(server, args.transport, args.mount_path)
    if default_root is not None:
        banner += f" (default repository root: {default_root})"
    print(banner, file=sys.stderr, flush=True)

    func, func_args = _runner(server, args.transport, args.mount_path)
    try:
        anyio.run(func, *func_args)
    except KeyboardInterrupt:
        print("gitfacade-mcp interrupted by user", file=sys.stderr, flush=True)
        return 130
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
