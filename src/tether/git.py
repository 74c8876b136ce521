"""Git operations: change inspection, guarded commits, rollback and history."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path

from .exceptions import GitCommandError, NotARepoError

COMMIT_MARKER = "[tether]"
HISTORY_LIMIT = 20

DEFAULT_MESSAGE_TEMPLATE = "{type}({scope}): {description} " + COMMIT_MARKER
DEFAULT_COMMIT_TYPE = "feat"
DEFAULT_DESCRIPTION = "tether: AI-generated changes"

DEFAULT_PROTECTED_PATTERNS = (
    ".env",
    ".env.*",
    "*.key",
    "*.pem",
    "secrets.json",
    "credentials.json",
    "*.p12",
    "*.pfx",
)

ConfirmFn = Callable[[str], bool]


def is_protected(path: str, patterns: Iterable[str] = DEFAULT_PROTECTED_PATTERNS) -> bool:
    """Test a repository-relative path against shell glob patterns.

    The whole path must match; ``*`` also crosses ``/`` the way bash
    ``[[ $path == $pattern ]]`` does.
    """
    return any(fnmatchcase(path, pattern) for pattern in patterns)


def generate_commit_message(
    type_: str = DEFAULT_COMMIT_TYPE,
    scope: str = "",
    description: str = DEFAULT_DESCRIPTION,
    template: str = DEFAULT_MESSAGE_TEMPLATE,
) -> str:
    """Render a commit message; an empty scope drops the ``(scope)`` part."""
    if not scope:
        template = template.replace("({scope})", "")
    return template.format(type=type_, scope=scope, description=description)


class GitRunner:
    """Thin subprocess wrapper around the git binary."""

    def __init__(self, executable: str = "git") -> None:
        self.executable = executable

    def run(
        self,
        args: list[str],
        cwd: Path | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command and capture its output.

        Raises:
            GitCommandError: If ``check`` is set and git exits non-zero,
                or if git is not installed
        """
        command = [self.executable, *args]
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            msg = f"git executable not found: {self.executable}"
            raise GitCommandError(msg) from e

        if check and result.returncode != 0:
            msg = result.stderr.strip() or f"git {args[0]} failed"
            raise GitCommandError(
                msg,
                details={"command": command, "returncode": result.returncode},
            )
        return result


class ChangeKind(str, Enum):
    """Simplified working-tree status of a path."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    UNTRACKED = "untracked"


@dataclass
class FileChange:
    """One changed path from ``git status``."""

    status: str
    path: str

    @property
    def kind(self) -> ChangeKind:
        code = self.status.strip()
        if code == "??":
            return ChangeKind.UNTRACKED
        if "R" in code or "C" in code:
            return ChangeKind.RENAMED
        if "D" in code:
            return ChangeKind.DELETED
        if "A" in code:
            return ChangeKind.ADDED
        return ChangeKind.MODIFIED


class CommitOutcome(str, Enum):
    """Result of a commit attempt."""

    COMMITTED = "committed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    NO_CHANGES = "no_changes"


@dataclass
class CommitResult:
    """Commit attempt outcome plus what it saw."""

    outcome: CommitOutcome
    message: str = ""
    changes: list[FileChange] = field(default_factory=list)
    blocked_paths: list[str] = field(default_factory=list)
    commit_sha: str | None = None


class RollbackMode(str, Enum):
    """How much of the undone commit to keep."""

    SOFT = "soft"  # keep changes in the working tree
    HARD = "hard"  # discard changes


class RollbackOutcome(str, Enum):
    """Result of a rollback attempt."""

    ROLLED_BACK = "rolled_back"
    CANCELLED = "cancelled"


@dataclass
class RollbackResult:
    """Rollback outcome and the commit it concerned."""

    outcome: RollbackOutcome
    commit: str
    marked: bool


@dataclass
class HistoryEntry:
    """One tether-marked commit."""

    sha: str
    subject: str


def _parse_porcelain(output: str) -> list[FileChange]:
    """Parse ``git status --porcelain -z`` output."""
    changes: list[FileChange] = []
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        status, path = entry[:2], entry[3:]
        if "R" in status or "C" in status:
            i += 1  # the following entry is the source path
        changes.append(FileChange(status=status, path=path))
    return changes


class CommitManager:
    """Inspects the working tree and commits, rolls back or lists history."""

    def __init__(
        self,
        repo_root: Path,
        confirm: ConfirmFn,
        git: GitRunner | None = None,
        extra_protected: Iterable[str] = (),
    ) -> None:
        """Initialize the commit manager.

        Args:
            repo_root: Directory git commands run in
            confirm: Asks the user a yes/no question
            git: Git runner
            extra_protected: Patterns added to the built-in denylist
        """
        self.root = Path(repo_root)
        self._confirm = confirm
        self._git = git or GitRunner()
        self._extra_protected = tuple(extra_protected)

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        return self._git.run(list(args), cwd=self.root, check=check)

    def is_repo(self) -> bool:
        try:
            return self._run("rev-parse", "--git-dir", check=False).returncode == 0
        except GitCommandError:
            return False

    def _require_repo(self) -> None:
        if not self.is_repo():
            msg = f"Not a git repository: {self.root}"
            raise NotARepoError(msg, details={"path": str(self.root)})

    def protected_paths(self) -> set[str]:
        """Glob patterns that may never be committed automatically."""
        return set(DEFAULT_PROTECTED_PATTERNS) | set(self._extra_protected)

    def is_protected(self, path: str) -> bool:
        return is_protected(path, self.protected_paths())

    def changes(self) -> list[FileChange]:
        """Staged, unstaged and untracked paths."""
        self._require_repo()
        result = self._run("status", "--porcelain", "-z", "--untracked-files=all")
        return _parse_porcelain(result.stdout)

    def has_changes(self) -> bool:
        return bool(self.changes())

    def diff(self, color: bool = False, paths: Iterable[str] = ()) -> str:
        self._require_repo()
        args = ["diff", "--color=always" if color else "--no-color"]
        paths = list(paths)
        if paths:
            args += ["--", *paths]
        return self._run(*args).stdout

    def status_short(self) -> str:
        self._require_repo()
        return self._run("status", "--short").stdout

    def commit(self, message: str, auto: bool = False) -> CommitResult:
        """Stage everything and commit, unless a protected path is present.

        A single protected path blocks the whole commit; nothing is staged.

        Args:
            message: Commit message
            auto: Skip the confirmation prompt

        Raises:
            NotARepoError: Outside a git repository
        """
        changes = self.changes()
        if not changes:
            return CommitResult(outcome=CommitOutcome.NO_CHANGES, message=message)

        blocked = [c.path for c in changes if self.is_protected(c.path)]
        if blocked:
            return CommitResult(
                outcome=CommitOutcome.BLOCKED,
                message=message,
                changes=changes,
                blocked_paths=blocked,
            )

        if not auto and not self._confirm("Commit these changes?"):
            return CommitResult(outcome=CommitOutcome.CANCELLED, message=message, changes=changes)

        self._run("add", "-A")
        self._run("commit", "--quiet", "-m", message)
        sha = self._run("rev-parse", "--short", "HEAD").stdout.strip()
        return CommitResult(
            outcome=CommitOutcome.COMMITTED,
            message=message,
            changes=changes,
            commit_sha=sha,
        )

    def last_commit(self) -> str:
        """One-line summary of HEAD."""
        self._require_repo()
        return self._run("log", "-1", "--oneline").stdout.strip()

    def rollback(self, mode: RollbackMode = RollbackMode.SOFT) -> RollbackResult:
        """Undo the most recent commit only.

        Asks first when HEAD does not carry the tether marker, then asks to
        confirm the rollback itself.

        Raises:
            NotARepoError: Outside a git repository
            GitCommandError: If HEAD has no parent commit
        """
        self._require_repo()
        last_message = self._run("log", "-1", "--pretty=%B").stdout
        summary = self._run("log", "-1", "--oneline").stdout.strip()
        marked = COMMIT_MARKER in last_message

        if not marked and not self._confirm(
            "Last commit was not generated by Tether. Rollback anyway?",
        ):
            return RollbackResult(outcome=RollbackOutcome.CANCELLED, commit=summary, marked=marked)

        if not self._confirm(f"Rollback this commit? ({summary})"):
            return RollbackResult(outcome=RollbackOutcome.CANCELLED, commit=summary, marked=marked)

        if self._run("rev-parse", "--verify", "--quiet", "HEAD~1", check=False).returncode != 0:
            msg = "Cannot roll back the root commit"
            raise GitCommandError(msg, details={"commit": summary})

        mode = RollbackMode(mode)
        self._run("reset", f"--{mode.value}", "HEAD~1")
        return RollbackResult(outcome=RollbackOutcome.ROLLED_BACK, commit=summary, marked=marked)

    def history(self, limit: int = HISTORY_LIMIT) -> tuple[list[HistoryEntry], int]:
        """Tether-marked commits across all refs.

        Returns:
            Up to ``limit`` newest entries and the total count
        """
        self._require_repo()
        output = self._run(
            "log", "--all", "--fixed-strings", f"--grep={COMMIT_MARKER}", "--oneline",
        ).stdout
        entries = []
        for line in output.splitlines():
            sha, _, subject = line.partition(" ")
            entries.append(HistoryEntry(sha=sha, subject=subject))
        return entries[:limit], len(entries)

    def current_branch(self) -> str:
        self._require_repo()
        return self._run("branch", "--show-current").stdout.strip()

    def push(self) -> bool:
        """Push the current branch to origin; False on failure."""
        branch = self.current_branch()
        if not branch:
            return False
        result = self._run("push", "origin", branch, "--quiet", check=False)
        return result.returncode == 0
