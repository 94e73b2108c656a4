"""Translate history query options into rev-list parameters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

ALLOWED_OPTIONS = ("ref", "max_count", "skip", "contains", "order")
ORDER_FLAGS = {"date": "date_order", "topo": "topo_order"}
DEFAULT_ORDER = "date"

LOG_DEFAULTS: Dict[str, Any] = {
    "limit": 10,
    "offset": 0,
    "path": None,
    "ref": None,
    "follow": False,
}


@dataclass
class CommitQuery:
    """Parameters for one rev-list call.

    ``revs`` is ``None`` when the query spans every ref (``all`` flag set) and
    an empty list when no starting point exists, in which case nothing is
    queried at all.
    """

    revs: Optional[List[str]]
    flags: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.revs is not None and not self.revs


def _order_flag(order: Any) -> Optional[str]:
    key = getattr(order, "value", order)
    if isinstance(key, str):
        key = key.lstrip(":").lower()
    return ORDER_FLAGS.get(key)


def build_commit_query(
    options: Mapping[str, Any],
    branch_names_containing: Callable[[str], List[str]],
) -> CommitQuery:
    """Build the rev-list parameters for ``find_commits``.

    Unknown option keys are dropped. ``order`` accepts ``"date"`` (default) or
    ``"topo"``; any other value sets no ordering flag. Starting points are
    picked from ``ref``, then ``contains`` (expanded to the branches holding
    that commit), then every ref.
    """

    actual = {key: value for key, value in options.items() if key in ALLOWED_OPTIONS}

    flags: Dict[str, Any] = {}
    order_flag = _order_flag(actual.pop("order", DEFAULT_ORDER))
    if order_flag:
        flags[order_flag] = True

    for key in ("max_count", "skip"):
        value = actual.get(key)
        if value is not None:
            flags[key] = int(value)

    ref = actual.get("ref")
    containing_commit = actual.get("contains")

    if ref:
        return CommitQuery(revs=[ref], flags=flags)
    if containing_commit:
        return CommitQuery(revs=list(branch_names_containing(containing_commit)), flags=flags)

    flags["all"] = True
    return CommitQuery(revs=None, flags=flags)


def merge_log_options(options: Mapping[str, Any], root_ref: Optional[str]) -> Dict[str, Any]:
    merged = dict(LOG_DEFAULTS)
    merged["ref"] = root_ref
    merged.update({key: value for key, value in options.items() if key in LOG_DEFAULTS})
    merged["ref"] = merged["ref"] or root_ref
    merged["limit"] = int(merged["limit"])
    merged["offset"] = int(merged["offset"])
    merged["follow"] = bool(merged["follow"])
    return merged


__all__ = [
    "ALLOWED_OPTIONS",
    "CommitQuery",
    "DEFAULT_ORDER",
    "LOG_DEFAULTS",
    "build_commit_query",
    "merge_log_options",
]
