"""Command line tool for browsing refs, history, content and archives of a repository."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List

from ._backend import ANY_GIT_ERROR
from .errors import GitFacadeError
from .service import RepositoryService

KIND_LABELS = {"branches": "branch", "tags": "tag"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Query refs, history and content of a git repository, or export archives.",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Repository path (defaults to current working directory).",
    )
    parser.add_argument(
        "--storage",
        type=Path,
        default=None,
        help="Directory for cached archives (defaults to .gitfacade-archives beside the repository).",
    )
    parser.add_argument(
        "--default-branch",
        default=None,
        help="Override the discovered default branch.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit machine-readable JSON instead of text.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print diagnostic information while running.",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("info", help="Show the repository name, default branch and emptiness.")
    commands.add_parser("size", help="Show the repository size in megabytes.")

    refs = commands.add_parser("refs", help="List branches and tags.")
    refs.add_argument("--kind", choices=["all", "branches", "tags"], default="all")

    at = commands.add_parser("refs-at", help="List refs pointing at a commit.")
    at.add_argument("commit")

    contains = commands.add_parser("contains", help="List branches and tags containing a commit.")
    contains.add_argument("commit")

    commits = commands.add_parser("commits", help="Query commit history across refs.")
    commits.add_argument("--ref", default=None, help="Ref or sha to start from.")
    commits.add_argument("--contains", default=None, help="Start from every branch containing this commit.")
    commits.add_argument("--max-count", type=int, default=None)
    commits.add_argument("--skip", type=int, default=None)
    commits.add_argument("--order", choices=["date", "topo"], default="date")

    log = commands.add_parser("log", help="Show the log of a single ref.")
    log.add_argument("--ref", default=None)
    log.add_argument("--path", default=None, help="Only commits touching this path.")
    log.add_argument("--limit", type=int, default=10)
    log.add_argument("--offset", type=int, default=0)
    log.add_argument("--follow", action="store_true", help="Follow renames of --path.")

    search = commands.add_parser("search", help="Search file contents at a ref.")
    search.add_argument("query")
    search.add_argument("--ref", default=None)

    archive = commands.add_parser("archive", help="Export (or reuse) an archive of a ref.")
    archive.add_argument("--ref", default=None)
    archive.add_argument("--format", default="tar.gz", help="tar.gz (default), tar.bz2, tar or zip.")

    return parser


def _print_commits(commits: List[dict]) -> None:
    for commit in commits:
        print(f"{commit['short_id']} {commit['title']}")


def _run(service: RepositoryService, args) -> Any:
    if args.command == "info":
        return service.describe()
    if args.command == "size":
        return {"size_mb": service.repository.size}
    if args.command == "refs":
        return service.list_refs(args.kind)
    if args.command == "refs-at":
        return service.refs_for_commit(args.commit)
    if args.command == "contains":
        return service.containing(args.commit)
    if args.command == "commits":
        return service.find_commits(
            ref=args.ref,
            contains=args.contains,
            max_count=args.max_count,
            skip=args.skip,
            order=args.order,
        )
    if args.command == "log":
        return service.log(
            ref=args.ref,
            path=args.path,
            limit=args.limit,
            offset=args.offset,
            follow=args.follow,
        )
    if args.command == "search":
        return service.search(args.query, args.ref)
    if args.command == "archive":
        path = service.archive(args.ref, args.format)
        return {"path": str(path) if path else None}
    raise ValueError(f"Unknown command: {args.command}")  # pragma: no cover


def _render(command: str, result: Any) -> None:
    if command in ("commits", "log"):
        _print_commits(result)
    elif command == "refs":
        for kind, refs in result.items():
            for ref in refs:
                print(f"{ref['target'][:10]} {KIND_LABELS[kind]} {ref['name']}")
    elif command == "refs-at":
        for ref in result:
            print(f"{ref['kind']} {ref['name']}")
    elif command == "contains":
        for kind, names in result.items():
            for name in names:
                print(f"{KIND_LABELS[kind]} {name}")
    elif command == "search":
        for snippet in result:
            print(f"{snippet['filename']}:{snippet['startline']}")
            print(snippet["data"])
            print("--")
    else:
        for key, value in result.items():
            print(f"{key}: {value}")


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    service = RepositoryService(
        root=args.root,
        storage_root=args.storage,
        root_ref=args.default_branch,
    )

    try:
        result = _run(service, args)
    except (GitFacadeError, *ANY_GIT_ERROR) as exc:
        print(f"gitfacade: {exc}", file=sys.stderr)
        return 1

    if args.command == "archive" and result["path"] is None:
        print("Nothing to archive: the ref does not resolve to a commit.", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result, indent=2, default=str))
    else:
        _render(args.command, result)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
