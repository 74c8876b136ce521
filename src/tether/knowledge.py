"""Local knowledge base of rule and style documents, seeded from a git remote."""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from . import __version__
from .exceptions import FetchError, GitCommandError, InvalidSourceError, KnowledgeBaseError
from .git import GitRunner

DEFAULT_SOURCE = "https://github.com/na-ive/tether-cli.git"
VERSION_FILE = ".version"

SOURCE_PATTERN = re.compile(r"^(?:https?://|ssh://|file://|git@[\w.-]+:)\S+$")


class Category(str, Enum):
    """Document categories, as directories relative to the knowledge base root."""

    GLOBAL = "global"
    BASE = "base"  # legacy name for global
    STACKS_WEB = "stacks/web"
    STACKS_MOBILE = "stacks/mobile"
    DESIGN_SYSTEMS = "designs/systems"
    DESIGN_FOUNDATIONS = "designs/foundations"


class StackPlatform(str, Enum):
    """Which stack namespace a framework resolved in."""

    WEB = "web"
    MOBILE = "mobile"


STACK_CATEGORIES = [
    (StackPlatform.WEB, Category.STACKS_WEB),
    (StackPlatform.MOBILE, Category.STACKS_MOBILE),
]


@dataclass
class StackDocument:
    """Stack rules resolved for one framework."""

    platform: StackPlatform
    name: str
    body: str


@dataclass
class SyncResult:
    """Outcome of a best-effort refresh."""

    ok: bool
    message: str


def validate_source(source: str) -> str:
    """Check that a knowledge base source looks like a git remote.

    Raises:
        InvalidSourceError: If the URL is malformed
    """
    source = source.strip()
    if not SOURCE_PATTERN.match(source):
        msg = f"Invalid repository URL: {source!r}"
        raise InvalidSourceError(msg, details={"source": source})
    return source


def _safe_name(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\\" not in name


class KnowledgeBase:
    """Read access to the document tree plus clone/pull maintenance."""

    def __init__(self, root: Path, git: GitRunner | None = None) -> None:
        """Initialize the knowledge base handle.

        Args:
            root: Local checkout location
            git: Runner used for clone and pull
        """
        self.root = Path(root)
        self._git = git or GitRunner()

    def exists(self) -> bool:
        """Check whether a git checkout is present."""
        return (self.root / ".git").is_dir()

    def version(self) -> str | None:
        """Tool version that created the checkout, if stamped."""
        path = self.root / VERSION_FILE
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace").strip() or None

    def initialize(self, source: str = DEFAULT_SOURCE) -> Path:
        """Shallow-clone the document tree.

        Args:
            source: Remote repository URL

        Returns:
            The local checkout path

        Raises:
            InvalidSourceError: If the URL is malformed
            KnowledgeBaseError: If a checkout already exists
            FetchError: If cloning fails
        """
        source = validate_source(source)
        if self.root.exists() and not self.root.is_dir():
            msg = f"Knowledge base path is not a directory: {self.root}"
            raise KnowledgeBaseError(msg, details={"path": str(self.root)})
        if self.root.is_dir() and any(self.root.iterdir()):
            msg = f"Knowledge base already exists at {self.root}"
            raise KnowledgeBaseError(msg, details={"path": str(self.root)})

        self.root.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._git.run(
                ["clone", "--depth", "1", "--quiet", source, str(self.root)],
                cwd=self.root.parent,
            )
        except GitCommandError as e:
            msg = f"Clone failed: {source}"
            raise FetchError(msg, details={"source": source, **e.details}) from e

        (self.root / VERSION_FILE).write_text(f"{__version__}\n", encoding="utf-8")
        return self.root

    def replace(self, source: str = DEFAULT_SOURCE) -> Path:
        """Delete the local checkout and clone again."""
        source = validate_source(source)
        if self.root.exists():
            shutil.rmtree(self.root)
        return self.initialize(source)

    def sync(self) -> SyncResult:
        """Pull the latest documents; failure leaves the local copy in place."""
        if not self.exists():
            return SyncResult(ok=False, message=f"No git repo in {self.root}")
        try:
            self._git.run(["pull", "--quiet"], cwd=self.root)
        except GitCommandError as e:
            return SyncResult(ok=False, message=f"Sync failed, using local version ({e})")
        return SyncResult(ok=True, message="Knowledge base updated")

    def has_category(self, category: Category) -> bool:
        return (self.root / category.value).is_dir()

    @staticmethod
    def _read_file(path: Path) -> str:
        return path.read_text(encoding="utf-8", errors="replace")

    def _read_directory(self, directory: Path) -> list[str]:
        if not directory.is_dir():
            return []
        files = sorted(p for p in directory.glob("*.md") if p.is_file())
        return [self._read_file(p) for p in files]

    def lookup(self, category: Category, name: str) -> str | None:
        """Read ``<category>/<name>.md``, or None when absent."""
        if not _safe_name(name):
            return None
        path = self.root / category.value / f"{name}.md"
        if not path.is_file():
            return None
        return self._read_file(path)

    def lookup_all(self, category: Category) -> list[str]:
        """Every document directly under a category, in filename order."""
        return self._read_directory(self.root / category.value)

    def global_rules(self) -> str | None:
        """Concatenated global rules, falling back to the legacy ``base`` category.

        Returns:
            The text (possibly empty) when either directory exists, else None
        """
        for category in (Category.GLOBAL, Category.BASE):
            if self.has_category(category):
                return "".join(self.lookup_all(category))
        return None

    def resolve_stack(self, framework: str) -> StackDocument | None:
        """Find stack rules for a framework, web namespace first.

        Within a namespace a single ``<name>.md`` wins over a ``<name>/``
        directory of documents.
        """
        if not _safe_name(framework):
            return None
        for platform, category in STACK_CATEGORIES:
            body = self.lookup(category, framework)
            if body is not None:
                return StackDocument(platform=platform, name=framework, body=body)
            directory = self.root / category.value / framework
            if directory.is_dir():
                return StackDocument(
                    platform=platform,
                    name=framework,
                    body="".join(self._read_directory(directory)),
                )
        return None
