"""Content search over the tree at a ref."""

from __future__ import annotations

import re
from typing import List, Optional

from ._backend import Engine
from .models import BlobSnippet

CONTEXT_LINES = 3

_BINARY_MATCH = re.compile(r"^Binary file (.+) matches$")


def parse_grep_output(output: str, ref: str) -> List[BlobSnippet]:
    """Split ``git grep -n -z --heading --break`` output into snippets.

    Files are separated by a blank line and start with a heading line
    (``<ref>:<path>``); hunks within a file are separated by ``--``; each
    content line is ``<lineno>\\0<text>``.
    """

    snippets: List[BlobSnippet] = []
    prefix = f"{ref}:"

    for block in output.split("\n\n"):
        lines = block.strip("\n").split("\n")
        if not lines or not lines[0]:
            continue

        heading = lines.pop(0)
        binary = _BINARY_MATCH.match(heading)
        filename = binary.group(1) if binary else heading
        if filename.startswith(prefix):
            filename = filename[len(prefix):]

        if binary:
            snippets.append(BlobSnippet(ref=ref, lines=[], startline=0, filename=filename, binary=True))
            continue

        hunk: List[str] = []
        startline: Optional[int] = None
        for line in lines + ["--"]:
            if line == "--":
                if startline is not None:
                    snippets.append(BlobSnippet(ref=ref, lines=hunk, startline=startline, filename=filename))
                hunk, startline = [], None
                continue
            number, _, text = line.partition("\0")
            if startline is None:
                startline = int(number) if number.isdigit() else 0
            hunk.append(text)

    return snippets


def search_files(engine: Engine, query: str, ref: str) -> List[BlobSnippet]:
    return parse_grep_output(engine.grep(query, CONTEXT_LINES, ref), ref)


__all__ = ["CONTEXT_LINES", "parse_grep_output", "search_files"]
