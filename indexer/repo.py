"""Repository discovery and the per-repository state directory."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from core.errors import ConfigError, FileAccessError

logger = logging.getLogger(__name__)

MODELS_DIRNAME = "models"


def find_git_root(start: Path) -> Optional[Path]:
    """
    Walk upward from start to the directory containing `.git`.

    `.git` may be a directory or a file (worktrees, submodules).

    Returns:
        The repository root, or None when start is not inside a repository.
    """
    start = Path(start)
    try:
        start = start.resolve()
    except OSError:
        pass

    current = start if start.is_dir() else start.parent
    for directory in (current, *current.parents):
        if (directory / ".git").exists():
            return directory
    return None


def require_git_root(start: Path) -> Path:
    """Like find_git_root, but raise ConfigError outside a repository."""
    root = find_git_root(start)
    if root is None:
        raise ConfigError(f"{start} is not inside a git repository")
    return root


def list_tracked_files(repo_root: Path) -> List[Path]:
    """
    Absolute paths of every file git tracks under repo_root, in git's order.

    Raises:
        ConfigError: If repo_root is not a repository root.
        FileAccessError: If git cannot be run or fails.
    """
    repo_root = Path(repo_root)
    if not (repo_root / ".git").exists():
        raise ConfigError(f"{repo_root} is not a git repository root (missing .git)")

    try:
        result = subprocess.run(
            ["git", "-C", str(repo_root), "ls-files", "-z"],
            capture_output=True,
            check=False,
        )
    except OSError as e:
        raise FileAccessError(f"failed to invoke git: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise FileAccessError(f"git ls-files failed with status {result.returncode}: {stderr}")

    return [
        repo_root / rel.decode("utf-8", errors="replace")
        for rel in result.stdout.split(b"\0")
        if rel
    ]


def state_dir_for(repo_root: Path, dirname: str = ".cearch") -> Path:
    """The state directory of a repository."""
    return Path(repo_root) / dirname


def models_dir_for(state_dir: Path) -> Path:
    """Model cache directory inside a state directory."""
    return Path(state_dir) / MODELS_DIRNAME


def ensure_state_dir(state_dir: Path) -> Path:
    """
    Create the state directory and its model cache.

    Raises:
        FileAccessError: If the directories cannot be created.
    """
    try:
        models_dir_for(state_dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileAccessError(f"failed to create {state_dir}: {e}") from e
    return Path(state_dir)


def remove_state_dir(state_dir: Path) -> bool:
    """
    Delete the state directory wholesale.

    Returns:
        True if something was removed, False if it was already absent.

    Raises:
        FileAccessError: If the directory exists but cannot be removed.
    """
    state_dir = Path(state_dir)
    if not state_dir.exists():
        return False
    try:
        shutil.rmtree(state_dir)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FileAccessError(f"failed to remove {state_dir}: {e}") from e
    logger.info(f"Removed {state_dir}")
    return True
