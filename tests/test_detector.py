"""Tests for project detection."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from tether.detector import PackageManifest, ProjectDetector
from tether.models import NONE, UNKNOWN


def write_manifest(root: Path, dependencies: dict[str, str] | None = None, **sections: dict) -> None:
    data = {"name": "demo", "dependencies": dependencies or {}}
    data.update(sections)
    (root / "package.json").write_text(json.dumps(data))


class TestEmptyProject:
    """Test detection in a directory without manifests."""

    def test_everything_falls_back(self, tmp_path: Path) -> None:
        settings = ProjectDetector(tmp_path).detect()
        assert settings.package_manager == UNKNOWN
        assert settings.language == UNKNOWN
        assert settings.framework == NONE
        assert settings.styling_foundation == NONE
        assert settings.design_system == NONE

    def test_detection_timestamp_from_clock(self, tmp_path: Path) -> None:
        fixed = datetime(2026, 1, 2, 3, 4, 5, 678)
        settings = ProjectDetector(tmp_path, clock=lambda: fixed).detect()
        assert settings.detected_at == datetime(2026, 1, 2, 3, 4, 5)


class TestPackageManager:
    """Test lockfile priority."""

    @pytest.mark.parametrize(
        ("lockfiles", "expected"),
        [
            (["package-lock.json"], "npm"),
            (["bun.lockb", "package-lock.json"], "bun"),
            (["yarn.lock", "bun.lockb"], "yarn"),
            (["pnpm-lock.yaml", "yarn.lock", "package-lock.json"], "pnpm"),
        ],
    )
    def test_priority(self, tmp_path: Path, lockfiles: list[str], expected: str) -> None:
        for name in lockfiles:
            (tmp_path / name).write_text("")
        assert ProjectDetector(tmp_path).detect_package_manager() == expected


class TestLanguage:
    """Test language manifest priority."""

    @pytest.mark.parametrize(
        ("manifests", "expected"),
        [
            (["package.json"], "javascript"),
            (["Cargo.toml", "package.json"], "rust"),
            (["go.mod", "Cargo.toml"], "go"),
            (["tsconfig.json", "go.mod", "package.json"], "typescript"),
        ],
    )
    def test_priority(self, tmp_path: Path, manifests: list[str], expected: str) -> None:
        for name in manifests:
            (tmp_path / name).write_text("{}")
        assert ProjectDetector(tmp_path).detect_language() == expected


class TestFramework:
    """Test the framework cascade."""

    def test_next_beats_react_without_app_dir(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, {"next": "14.0.0", "react": "18.0.0"})
        assert ProjectDetector(tmp_path).detect().framework == "next-pages"

    def test_next_app_router(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, {"next": "14.0.0", "react": "18.0.0"})
        (tmp_path / "app").mkdir()
        assert ProjectDetector(tmp_path).detect_framework() == "next-app"

    def test_next_app_router_under_src(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, {"next": "14.0.0"})
        (tmp_path / "src" / "app").mkdir(parents=True)
        assert ProjectDetector(tmp_path).detect_framework() == "next-app"

    @pytest.mark.parametrize(
        ("dependencies", "expected"),
        [
            ({"nuxt": "3", "vue": "3"}, "nuxt"),
            ({"vite": "5", "react": "18"}, "react-vite"),
            ({"vite": "5", "vue": "3"}, "vue-vite"),
            ({"vite": "5"}, "vite"),
            ({"@angular/core": "17", "react": "18"}, "angular"),
            ({"react": "18"}, "react"),
            ({"vue": "3"}, "vue"),
            ({"express": "4"}, UNKNOWN),
        ],
    )
    def test_web_cascade(self, tmp_path: Path, dependencies: dict[str, str], expected: str) -> None:
        write_manifest(tmp_path, dependencies)
        assert ProjectDetector(tmp_path).detect_framework() == expected

    def test_dev_dependencies_count(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, {}, devDependencies={"vite": "5", "react": "18"})
        assert ProjectDetector(tmp_path).detect_framework() == "react-vite"

    def test_expo_requires_config_and_dependency(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, {"expo": "50", "react": "18"})
        assert ProjectDetector(tmp_path).detect_framework() == "react"

        (tmp_path / "app.json").write_text("{}")
        assert ProjectDetector(tmp_path).detect_framework() == "expo"

    def test_react_native_without_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "android").mkdir()
        (tmp_path / "android" / "build.gradle").write_text("")
        (tmp_path / "ios").mkdir()
        (tmp_path / "ios" / "Podfile").write_text("")
        assert ProjectDetector(tmp_path).detect_framework() == "react-native"

    def test_android_alone_is_not_mobile(self, tmp_path: Path) -> None:
        (tmp_path / "android").mkdir()
        (tmp_path / "android" / "build.gradle").write_text("")
        assert ProjectDetector(tmp_path).detect_framework() == NONE

    def test_name_must_match_exactly(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, {"next-auth": "4", "preact": "10"})
        assert ProjectDetector(tmp_path).detect_framework() == UNKNOWN


class TestStylingFoundation:
    """Test the styling cascade."""

    @pytest.mark.parametrize(
        ("dependencies", "expected"),
        [
            ({"nativewind": "4", "tailwindcss": "3"}, "nativewind"),
            ({"tailwindcss": "3", "sass": "1"}, "tailwind"),
            ({"styled-components": "6", "sass": "1"}, "styled-components"),
            ({"@emotion/react": "11"}, "emotion"),
            ({"sass": "1"}, "sass"),
            ({"react": "18"}, "css"),
        ],
    )
    def test_cascade(self, tmp_path: Path, dependencies: dict[str, str], expected: str) -> None:
        write_manifest(tmp_path, dependencies)
        assert ProjectDetector(tmp_path).detect_styling_foundation() == expected

    def test_no_manifest(self, tmp_path: Path) -> None:
        assert ProjectDetector(tmp_path).detect_styling_foundation() == NONE


class TestPackageManifest:
    """Test dependency lookup."""

    def test_invalid_json_falls_back_to_text(self) -> None:
        manifest = PackageManifest('{ "dependencies": { "next": "14", ')
        assert manifest.dependencies is None
        assert manifest.declares("next")
        assert not manifest.declares("nuxt")

    def test_scope_match(self) -> None:
        manifest = PackageManifest('{"dependencies": {"@emotion/styled": "11"}}')
        assert manifest.declares("@emotion")
        assert not manifest.declares("@angular/core")
