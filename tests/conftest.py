"""Shared fixtures for Tether tests."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest


def git(repo: Path, *args: str) -> str:
    """Run git in a test repository and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


def init_repo(path: Path) -> Path:
    """Create a repository with one commit and a local identity."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "config", "user.email", "dev@example.com")
    git(path, "config", "user.name", "Test Dev")
    git(path, "config", "commit.gpgsign", "false")
    (path / "README.md").write_text("# demo\n")
    git(path, "add", "-A")
    git(path, "commit", "-q", "-m", "initial")
    return path


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A throwaway git repository with an initial commit."""
    return init_repo(tmp_path / "repo")


@pytest.fixture
def kb_root(tmp_path: Path) -> Path:
    """An empty knowledge base directory."""
    root = tmp_path / "kb"
    root.mkdir()
    return root


def write_doc(root: Path, relative: str, content: str) -> Path:
    """Write a knowledge base document, creating parent directories."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path
