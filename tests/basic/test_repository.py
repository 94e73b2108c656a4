from __future__ import annotations

import threading
import time
import unittest
from pathlib import Path

import git
import pytest

from gitfacade import Commit, NoRepository, Repository, UnresolvedRef
from gitfacade import repository as repository_module
from gitfacade.repository import pick_default_branch
from gitfacade.utils import GitTemporaryDirectory

from repo_samples import commit_file, init_repository, seed_repository


def test_pick_default_branch_heuristics():
    assert pick_default_branch([], "master") is None
    assert pick_default_branch(["only"], None) == "only"
    assert pick_default_branch(["feature", "master"], "feature") == "feature"
    assert pick_default_branch(["feature", "master"], None) == "master"
    assert pick_default_branch(["zeta", "alpha"], None) == "alpha"
    # A HEAD naming a branch that does not exist is ignored.
    assert pick_default_branch(["feature", "master"], "main") == "master"


def test_handle_creation_does_not_touch_filesystem(tmp_path):
    missing = tmp_path / "nowhere" / "project.git"

    repo = Repository(missing)

    assert repo.path == str(missing.resolve())
    assert repo.name == "project.git"
    assert not missing.exists()


def test_missing_repository_is_empty_not_an_error(tmp_path):
    repo = Repository(tmp_path / "missing")

    assert repo.is_empty() is True
    assert repo.has_commits() is False
    with pytest.raises(NoRepository):
        repo.engine()


def test_missing_repository_is_retried(tmp_path):
    path = tmp_path / "later"
    repo = Repository(path)
    with pytest.raises(NoRepository):
        repo.branch_names()

    path.mkdir()
    seed_repository(path)

    assert repo.branch_names() == ["master"]
    assert repo.engine() is repo.engine()


def test_concurrent_first_engine_calls_open_once(tmp_path, monkeypatch):
    seed_repository(tmp_path)
    repo = Repository(tmp_path)
    opened = []
    original = repository_module.open_engine

    def slow_open(path):
        opened.append(path)
        time.sleep(0.05)
        return original(path)

    monkeypatch.setattr(repository_module, "open_engine", slow_open)

    barrier = threading.Barrier(8)
    engines = []

    def worker():
        barrier.wait()
        engines.append(repo.engine())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(opened) == 1
    assert len(engines) == 8
    assert all(engine is engines[0] for engine in engines)


def test_plain_directory_is_not_a_repository(tmp_path):
    repo = Repository(tmp_path)

    with pytest.raises(NoRepository):
        repo.tags()


def test_empty_repository(tmp_path):
    init_repository(tmp_path)
    repo = Repository(tmp_path)

    assert repo.branch_names() == []
    assert repo.root_ref is None
    assert repo.is_empty()
    assert repo.archive_repo(None, tmp_path / "storage") is None
    assert repo.search_files("anything") == []


def test_single_branch_is_default(tmp_path):
    seed_repository(tmp_path)
    repo = Repository(tmp_path)

    assert repo.root_ref == "master"
    assert repo.has_commits()
    assert not repo.is_empty()


def test_default_branch_prefers_current_head(tmp_path):
    raw = seed_repository(tmp_path)
    raw.create_head("feature")
    raw.git.checkout("feature")

    assert Repository(tmp_path).root_ref == "feature"


def test_default_branch_falls_back_to_master_when_detached(tmp_path):
    raw = seed_repository(tmp_path)
    raw.create_head("feature")
    raw.git.checkout("--detach")

    assert Repository(tmp_path).root_ref == "master"


def test_default_branch_falls_back_to_first_name(tmp_path):
    raw = init_repository(tmp_path, branch="zeta")
    commit_file(raw, "a.txt", "a\n", "first")
    raw.create_head("alpha")
    raw.git.checkout("--detach")

    assert Repository(tmp_path).root_ref == "alpha"


def test_root_ref_can_be_overridden(tmp_path):
    raw = seed_repository(tmp_path)
    raw.create_head("feature")
    repo = Repository(tmp_path)

    repo.root_ref = "feature"

    assert repo.root_ref == "feature"
    assert repo.last_commit().id == raw.heads.feature.commit.hexsha


def test_find_commit_and_get_commit(tmp_path):
    raw = seed_repository(tmp_path)
    repo = Repository(tmp_path)

    commit = repo.find_commit("master")
    assert isinstance(commit, Commit)
    assert commit.id == raw.head.commit.hexsha
    assert commit.title == "add beta"
    assert commit.short_id == commit.id[:10]
    assert commit.raw is not None

    assert repo.find_commit("no-such-ref") is None
    with pytest.raises(UnresolvedRef):
        repo.get_commit("no-such-ref")


def test_raw_exposes_engine_repo(tmp_path):
    seed_repository(tmp_path)

    assert isinstance(Repository(tmp_path).raw, git.Repo)


def test_size_reports_megabytes(tmp_path):
    seed_repository(tmp_path)

    size = Repository(tmp_path).size

    assert isinstance(size, float)
    assert size >= 0
    assert round(size, 2) == size


def test_log_defaults_to_root_ref(tmp_path):
    raw = seed_repository(tmp_path)
    raw.create_head("feature")
    raw.git.checkout("feature")
    commit_file(raw, "gamma.py", "gamma = 1\n", "add gamma")
    raw.git.checkout("master")
    repo = Repository(tmp_path)

    titles = [commit.title for commit in repo.log()]
    assert titles == ["add beta", "add alpha"]

    feature = [commit.title for commit in repo.log(ref="feature", limit=1)]
    assert feature == ["add gamma"]


def test_log_limit_offset_and_path(tmp_path):
    seed_repository(tmp_path)
    repo = Repository(tmp_path)

    assert [c.title for c in repo.log(limit=1, offset=1)] == ["add alpha"]
    assert [c.title for c in repo.log(path="beta.py")] == ["add beta"]


def test_log_follows_renames(tmp_path):
    raw = seed_repository(tmp_path)
    raw.git.mv("beta.py", "renamed.py")
    raw.git.commit("-m", "rename beta")
    repo = Repository(tmp_path)

    plain = [c.title for c in repo.log(path="renamed.py")]
    followed = [c.title for c in repo.log(path="renamed.py", follow=True)]

    assert plain == ["rename beta"]
    assert followed == ["rename beta", "add beta"]


def test_commits_between_and_merge_base(tmp_path):
    raw = seed_repository(tmp_path)
    base = raw.head.commit.hexsha
    raw.create_head("feature")
    raw.git.checkout("feature")
    commit_file(raw, "one.txt", "1\n", "one")
    commit_file(raw, "two.txt", "2\n", "two")
    raw.git.checkout("master")
    commit_file(raw, "three.txt", "3\n", "three")
    repo = Repository(tmp_path)

    between = repo.commits_between("master", "feature")

    assert [c.title for c in between] == ["one", "two"]
    assert repo.merge_base_commit("master", "feature") == base


def test_diff_between_refs(tmp_path):
    raw = seed_repository(tmp_path)
    first = raw.head.commit.parents[0].hexsha
    repo = Repository(tmp_path)

    changes = repo.diff(first, "master")
    assert [change.b_path for change in changes] == ["beta.py"]

    assert len(repo.diff(first, "master", "alpha.py")) == 0


class TestRepositoryInTemporaryDirectory(unittest.TestCase):
    def test_fresh_repository_has_no_default_branch(self):
        with GitTemporaryDirectory() as temp_dir:
            repo = Repository(temp_dir)
            self.assertIsNone(repo.root_ref)
            self.assertTrue(repo.is_empty())
            self.assertEqual(repo.name, Path(temp_dir).name)

    def test_first_commit_makes_initial_branch_default(self):
        with GitTemporaryDirectory(initial_branch="trunk") as temp_dir:
            raw = git.Repo(temp_dir)
            commit_file(raw, "readme.md", "hello\n", "initial commit")
            repo = Repository(temp_dir)
            self.assertEqual(repo.root_ref, "trunk")
            self.assertFalse(repo.is_empty())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
