from __future__ import annotations

import threading
import time
from types import MappingProxyType

import pytest

from gitfacade import Ref, RefKind, Repository
from gitfacade._backend import Engine
from gitfacade.refs import parse_ref_listing

from repo_samples import commit_file, seed_repository


def test_parse_ref_listing_drops_current_marker():
    output = "  fix-aaa\n  fix-bbb\n* master\n"

    assert parse_ref_listing(output) == ["fix-aaa", "fix-bbb", "master"]
    assert parse_ref_listing("") == []
    assert parse_ref_listing("v1.4\nv1.4.1\nv1.4.2") == ["v1.4", "v1.4.1", "v1.4.2"]


def test_branches_sorted_ascending_tags_descending(tmp_path):
    raw = seed_repository(tmp_path)
    for name in ("zeta", "alpha", "middle"):
        raw.create_head(name)
    for name in ("v2", "v3", "v1"):
        raw.create_tag(name)
    repo = Repository(tmp_path)

    assert repo.branch_names() == ["alpha", "master", "middle", "zeta"]
    assert repo.tag_names() == ["v3", "v2", "v1"]
    assert repo.ref_names() == ["alpha", "master", "middle", "zeta", "v3", "v2", "v1"]


def test_refs_are_snapshots_with_kinds(tmp_path):
    raw = seed_repository(tmp_path)
    raw.create_tag("v1", message="annotated release")
    head = raw.head.commit.hexsha
    repo = Repository(tmp_path)

    assert repo.branches() == [Ref(name="master", target=head, kind=RefKind.BRANCH)]
    # Annotated tags peel to the commit they tag.
    assert repo.tags() == [Ref(name="v1", target=head, kind=RefKind.TAG)]
    assert repo.heads() == repo.branches()


def test_heads_are_cached_for_handle_lifetime(tmp_path):
    raw = seed_repository(tmp_path)
    repo = Repository(tmp_path)
    before = repo.heads()

    raw.create_head("late")

    assert repo.heads() == before
    assert "late" in repo.branch_names()


def test_refs_by_commit_groups_every_ref_kind(tmp_path):
    raw = seed_repository(tmp_path)
    first = raw.head.commit.parents[0].hexsha
    head = raw.head.commit.hexsha
    raw.create_head("old", first)
    raw.create_tag("v0", ref=first)
    raw.create_tag("v1")
    repo = Repository(tmp_path)

    index = repo.refs_by_commit()

    assert isinstance(index, MappingProxyType)
    assert {(ref.kind, ref.name) for ref in index[first]} == {
        (RefKind.BRANCH, "old"),
        (RefKind.TAG, "v0"),
    }
    assert {(ref.kind, ref.name) for ref in index[head]} == {
        (RefKind.BRANCH, "master"),
        (RefKind.TAG, "v1"),
        (RefKind.HEAD, "HEAD"),
    }
    with pytest.raises(TypeError):
        index["deadbeef"] = ()


def test_refs_by_commit_includes_remote_refs(tmp_path):
    origin_path = tmp_path / "origin"
    origin_path.mkdir()
    seed_repository(origin_path)
    clone = tmp_path / "clone"
    raw = Repository(origin_path).raw.clone(str(clone))

    index = Repository(clone).refs_by_commit()

    kinds = {(ref.kind, ref.name) for ref in index[raw.head.commit.hexsha]}
    assert (RefKind.REMOTE, "origin/master") in kinds


def test_refs_by_commit_is_built_once(tmp_path, monkeypatch):
    raw = seed_repository(tmp_path)
    repo = Repository(tmp_path)
    calls = []
    original = Engine.list_branches

    def counting(self):
        calls.append(1)
        return original(self)

    monkeypatch.setattr(Engine, "list_branches", counting)

    first = repo.refs_by_commit()
    commit_file(raw, "late.txt", "late\n", "late commit")
    raw.create_tag("late")
    second = repo.refs_by_commit()

    assert first is second
    assert len(calls) == 1
    # Stale by contract: the new tag only shows up on a fresh handle.
    assert raw.head.commit.hexsha not in second
    assert raw.head.commit.hexsha in Repository(tmp_path).refs_by_commit()


def test_names_containing_commit(tmp_path):
    raw = seed_repository(tmp_path)
    first = raw.head.commit.parents[0].hexsha
    raw.create_head("old", first)
    raw.create_tag("v0", ref=first)
    raw.create_tag("v1")
    repo = Repository(tmp_path)

    assert repo.branch_names_containing(first) == ["master", "old"]
    assert repo.branch_names_containing("master") == ["master"]
    assert repo.tag_names_containing(first) == ["v0", "v1"]
    assert repo.tag_names_containing("master") == ["v1"]


def test_branch_names_containing_ignores_detached_head(tmp_path):
    raw = seed_repository(tmp_path)
    raw.git.checkout("--detach")

    assert Repository(tmp_path).branch_names_containing("HEAD") == ["master"]


def test_names_containing_are_bare_when_branch_and_tag_share_a_name(tmp_path):
    raw = seed_repository(tmp_path)
    raw.create_head("v1")
    raw.create_tag("v1")
    repo = Repository(tmp_path)

    assert repo.branch_names() == ["master", "v1"]
    assert repo.branch_names_containing("master") == ["master", "v1"]
    assert repo.tag_names_containing("master") == ["v1"]


def test_refs_by_commit_concurrent_first_calls_build_once(tmp_path, monkeypatch):
    seed_repository(tmp_path)
    repo = Repository(tmp_path)
    repo.engine()
    calls = []
    original = Engine.list_branches

    def slow_counting(self):
        calls.append(1)
        time.sleep(0.05)
        return original(self)

    monkeypatch.setattr(Engine, "list_branches", slow_counting)

    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(repo.refs_by_commit())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(result is results[0] for result in results)
