"""Tests for repository discovery and the state directory."""

import subprocess
from pathlib import Path

import pytest

from core.errors import ConfigError
from indexer.repo import (
    ensure_state_dir,
    find_git_root,
    list_tracked_files,
    models_dir_for,
    remove_state_dir,
    require_git_root,
    state_dir_for,
)


@pytest.fixture
def git_repo(tmp_path):
    """A git repository with a few staged files."""
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / "a.py").write_text("def foo():\n    pass\n")
    (repo / "src" / "b.rs").write_text("fn baz() {}\n")
    (repo / "untracked.py").write_text("def ignored():\n    pass\n")
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True, capture_output=True)
    subprocess.run(["git", "add", "a.py", "src/b.rs"], cwd=repo, check=True, capture_output=True)
    return repo.resolve()


def test_find_git_root_from_subdirectory(git_repo):
    """The root is found from nested directories and files."""
    assert find_git_root(git_repo) == git_repo
    assert find_git_root(git_repo / "src") == git_repo
    assert find_git_root(git_repo / "src" / "b.rs") == git_repo


def test_find_git_root_outside_repository(tmp_path):
    """Paths outside any repository have no root."""
    if find_git_root(tmp_path) is not None:
        pytest.skip("temporary directory is itself inside a git repository")

    assert find_git_root(tmp_path) is None
    with pytest.raises(ConfigError):
        require_git_root(tmp_path)


def test_git_file_marks_root(tmp_path):
    """A `.git` file (worktree) counts as a repository marker."""
    (tmp_path / "wt").mkdir()
    (tmp_path / "wt" / ".git").write_text("gitdir: /elsewhere\n")
    assert find_git_root(tmp_path / "wt") == (tmp_path / "wt").resolve()


def test_list_tracked_files(git_repo):
    """Only tracked files are listed, as absolute paths."""
    files = list_tracked_files(git_repo)

    assert sorted(files) == [git_repo / "a.py", git_repo / "src" / "b.rs"]
    assert all(path.is_absolute() for path in files)


def test_list_tracked_files_requires_root(git_repo):
    """Listing from a non-root directory is a configuration error."""
    with pytest.raises(ConfigError):
        list_tracked_files(git_repo / "src")


def test_state_dir_lifecycle(tmp_path):
    """The state directory can be created and removed repeatedly."""
    state_dir = state_dir_for(tmp_path, ".cearch")
    assert state_dir == tmp_path / ".cearch"

    ensure_state_dir(state_dir)
    assert models_dir_for(state_dir).is_dir()
    (state_dir / "index.sqlite").write_bytes(b"")

    assert remove_state_dir(state_dir) is True
    assert not state_dir.exists()


def test_remove_absent_state_dir_succeeds(tmp_path):
    """Cleaning with nothing to clean is not an error."""
    assert remove_state_dir(tmp_path / ".cearch") is False
    assert remove_state_dir(Path(tmp_path / "never" / "there")) is False
