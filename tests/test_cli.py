"""Tests for the cearch command line."""

import logging
import subprocess

import pytest
from typer.testing import CliRunner

from cli import SETUP_ERROR_EXIT, app
from indexer.repo import find_git_root

runner = CliRunner()

CONFIG = """
[embeddings]
backend = "hash"
dimension = 64

[index]
workers = 1
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the handler the CLI callback installs on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def home(tmp_path, monkeypatch):
    """A home directory with a config selecting the hash embedder."""
    home = tmp_path / "home"
    home.mkdir()
    (home / ".cearch.toml").write_text(CONFIG)
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def repo(tmp_path, home, monkeypatch):
    """A git repository as the working directory."""
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "a.py").write_text("def foo():\n    return 1\n\n\nclass Bar:\n    pass\n")
    (repo / "b.rs").write_text("fn baz() -> u32 {\n    7\n}\n")
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True, capture_output=True)
    subprocess.run(["git", "add", "."], cwd=repo, check=True, capture_output=True)
    monkeypatch.chdir(repo)
    return repo


def test_index_query_clean(repo):
    """Full round trip through the CLI."""
    result = runner.invoke(app, ["index"])
    assert result.exit_code == 0, result.output
    assert "Indexed 3 symbols from 2 files" in result.output
    assert (repo / ".cearch" / "index.sqlite").is_file()

    result = runner.invoke(app, ["query", "fn baz() -> u32 {\n    7\n}", "-n", "1"])
    assert result.exit_code == 0, result.output
    lines = [line for line in result.output.splitlines() if line.strip()]
    assert lines == ["b.rs:1 baz 0.000"]

    result = runner.invoke(app, ["query", "return", "--num-results", "5"])
    assert result.exit_code == 0, result.output
    assert len([line for line in result.output.splitlines() if line.strip()]) == 3

    result = runner.invoke(app, ["clean"])
    assert result.exit_code == 0, result.output
    assert not (repo / ".cearch").exists()


def test_index_force_is_accepted(repo):
    """--force is accepted."""
    result = runner.invoke(app, ["index", "--force"])
    assert result.exit_code == 0, result.output


def test_init_prepares_state_dir(repo):
    """init creates the state directory without indexing."""
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    assert (repo / ".cearch" / "models").is_dir()
    assert not (repo / ".cearch" / "index.sqlite").exists()


def test_clean_without_index(repo):
    """Cleaning a repository that was never indexed succeeds."""
    result = runner.invoke(app, ["clean"])
    assert result.exit_code == 0, result.output
    assert "Nothing to clean" in result.output


def test_query_without_index_fails(repo):
    """Querying before indexing is a setup error."""
    result = runner.invoke(app, ["query", "anything"])
    assert result.exit_code == SETUP_ERROR_EXIT


def test_outside_repository_fails(tmp_path, home, monkeypatch):
    """Commands outside a git repository exit with the setup error code."""
    outside = tmp_path / "plain"
    outside.mkdir()
    if find_git_root(outside) is not None:
        pytest.skip("temporary directory is itself inside a git repository")
    monkeypatch.chdir(outside)

    for args in (["index"], ["query", "x"], ["clean"], ["init"]):
        result = runner.invoke(app, args)
        assert result.exit_code == SETUP_ERROR_EXIT, args


@pytest.mark.parametrize("setting", ["batch_size = 0", "workers = 0"])
def test_index_rejects_invalid_index_settings(repo, home, setting):
    """Out-of-range index settings are a setup error and create no state."""
    (home / ".cearch.toml").write_text(CONFIG.replace("workers = 1", setting))

    result = runner.invoke(app, ["index"])

    assert result.exit_code == SETUP_ERROR_EXIT
    assert "error:" in result.output
    assert not (repo / ".cearch").exists()
