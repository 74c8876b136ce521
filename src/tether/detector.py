"""Project detection from manifest and lockfiles.

Every field is resolved by an ordered cascade of file-existence and
dependency checks; the first rule that matches wins. Detection only
reads the filesystem, persistence is the ConfigStore's job.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from .models import NONE, UNKNOWN, ProjectSettings

MANIFEST_FILE = "package.json"

# (lockfile, package manager) in priority order
LOCKFILES = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("package-lock.json", "npm"),
]

# (manifest, language) in priority order
LANGUAGE_MANIFESTS = [
    ("tsconfig.json", "typescript"),
    ("go.mod", "go"),
    ("Cargo.toml", "rust"),
    (MANIFEST_FILE, "javascript"),
]

EXPO_CONFIG_FILES = ("app.json", "app.config.js")

# (dependency, styling foundation) in priority order
STYLING_DEPENDENCIES = [
    ("nativewind", "nativewind"),
    ("tailwindcss", "tailwind"),
    ("styled-components", "styled-components"),
    ("@emotion", "emotion"),
    ("sass", "sass"),
]

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


class PackageManifest:
    """Declared dependencies of a ``package.json``.

    A manifest that is not valid JSON falls back to a quoted-name search
    over the raw text, so a half-edited file still detects something.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.dependencies: set[str] | None = None
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return
        if not isinstance(data, dict):
            return
        names: set[str] = set()
        for section in DEPENDENCY_SECTIONS:
            entries = data.get(section)
            if isinstance(entries, dict):
                names.update(entries)
        self.dependencies = names

    @classmethod
    def load(cls, root: Path) -> PackageManifest | None:
        """Read the manifest under ``root``, or None when there is none."""
        path = root / MANIFEST_FILE
        if not path.is_file():
            return None
        try:
            return cls(path.read_text(encoding="utf-8", errors="replace"))
        except OSError:
            return None

    def declares(self, name: str) -> bool:
        """Check whether a dependency is declared.

        A bare npm scope such as ``@emotion`` matches any package in it.
        """
        if self.dependencies is None:
            if name.startswith("@") and "/" not in name:
                return f'"{name}/' in self.text or f'"{name}"' in self.text
            return f'"{name}"' in self.text
        if name in self.dependencies:
            return True
        if name.startswith("@") and "/" not in name:
            return any(dep.startswith(f"{name}/") for dep in self.dependencies)
        return False


class ProjectDetector:
    """Derives ProjectSettings from the files present in a project root."""

    def __init__(
        self,
        root: Path,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the detector.

        Args:
            root: Project root to inspect
            clock: Source of the detection timestamp
        """
        self.root = Path(root)
        self._clock = clock

    def _exists(self, relative: str) -> bool:
        return (self.root / relative).is_file()

    def detect_package_manager(self) -> str:
        for lockfile, manager in LOCKFILES:
            if self._exists(lockfile):
                return manager
        return UNKNOWN

    def detect_language(self) -> str:
        for manifest, language in LANGUAGE_MANIFESTS:
            if self._exists(manifest):
                return language
        return UNKNOWN

    def detect_framework(self, manifest: PackageManifest | None = None) -> str:
        """Resolve the framework: mobile first, then the web cascade."""
        if manifest is None:
            manifest = PackageManifest.load(self.root)

        if any(self._exists(name) for name in EXPO_CONFIG_FILES):
            if manifest is not None and manifest.declares("expo"):
                return "expo"
        if self._exists("android/build.gradle") and self._exists("ios/Podfile"):
            return "react-native"

        if manifest is None:
            return NONE

        if manifest.declares("next"):
            has_app_dir = (self.root / "app").is_dir() or (self.root / "src" / "app").is_dir()
            return "next-app" if has_app_dir else "next-pages"
        if manifest.declares("nuxt"):
            return "nuxt"
        if manifest.declares("vite"):
            if manifest.declares("react"):
                return "react-vite"
            if manifest.declares("vue"):
                return "vue-vite"
            return "vite"
        if manifest.declares("@angular/core"):
            return "angular"
        if manifest.declares("react"):
            return "react"
        if manifest.declares("vue"):
            return "vue"
        return UNKNOWN

    def detect_styling_foundation(self, manifest: PackageManifest | None = None) -> str:
        if manifest is None:
            manifest = PackageManifest.load(self.root)
        if manifest is None:
            return NONE
        for dependency, foundation in STYLING_DEPENDENCIES:
            if manifest.declares(dependency):
                return foundation
        return "css"

    def detect(self) -> ProjectSettings:
        """Run every detection rule.

        Returns:
            Fresh settings; ``design_system`` is always ``none``
        """
        manifest = PackageManifest.load(self.root)
        return ProjectSettings(
            package_manager=self.detect_package_manager(),
            language=self.detect_language(),
            framework=self.detect_framework(manifest),
            styling_foundation=self.detect_styling_foundation(manifest),
            design_system=NONE,
            detected_at=self._clock().replace(microsecond=0),
        )
