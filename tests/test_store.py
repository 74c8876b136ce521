"""Tests for the per-project configuration store."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from tether.detector import ProjectDetector
from tether.models import NONE, Conventions, ProjectSettings, QuoteStyle
from tether.store import (
    DESIGN_TOKENS_TEMPLATE,
    ConfigStore,
    parse_settings,
    render_settings,
    scan_record,
)

SAMPLE = ProjectSettings(
    package_manager="pnpm",
    language="typescript",
    framework="next-app",
    styling_foundation="tailwind",
    design_system="brutalism",
    detected_at=datetime(2026, 10, 18, 9, 30, 0),
)


def _without_timestamp(text: str) -> list[str]:
    return [line for line in text.splitlines() if not line.startswith("detected_at:")]


class TestRecordFormat:
    """Test rendering and tolerant parsing of the settings record."""

    def test_render_shape(self) -> None:
        text = render_settings(SAMPLE)
        assert "detected_at: 2026-10-18 09:30:00\n" in text
        assert "project:\n  package_manager: pnpm\n  language: typescript\n" in text
        assert "  framework: next-app\n" in text
        assert "  styling_foundation: tailwind\n" in text
        assert "  design_system: brutalism" in text
        assert "conventions:\n  indent: 2\n  quotes: single\n  semi: true\n" in text

    def test_parse_rendered_record(self) -> None:
        parsed = parse_settings(render_settings(SAMPLE))
        assert parsed == SAMPLE

    def test_inline_comment_is_stripped(self) -> None:
        text = "project:\n  design_system: material-you  # Edit this manually\n"
        assert parse_settings(text).design_system == "material-you"

    def test_missing_keys_degrade_to_empty(self) -> None:
        parsed = parse_settings("project:\n  framework: nuxt\n")
        assert parsed.framework == "nuxt"
        assert parsed.package_manager == ""
        assert parsed.design_system == ""
        assert parsed.detected_at is None
        assert parsed.conventions == Conventions()

    def test_malformed_values_use_defaults(self) -> None:
        text = (
            "detected_at: yesterday\n"
            "conventions:\n"
            "  indent: four\n"
            "  quotes: backtick\n"
            "  semi: maybe\n"
        )
        parsed = parse_settings(text)
        assert parsed.detected_at is None
        assert parsed.conventions == Conventions()

    def test_conventions_parsed(self) -> None:
        text = "conventions:\n  indent: 4\n  quotes: \"double\"\n  semi: false\n"
        conventions = parse_settings(text).conventions
        assert conventions.indent == 4
        assert conventions.quotes == QuoteStyle.DOUBLE
        assert conventions.semi is False

    def test_scan_ignores_noise_and_other_indents(self) -> None:
        text = (
            "# comment\n"
            "project:\n"
            "  framework: vue\n"
            "    framework: nested-too-deep\n"
            "not a key line\n"
            "  framework: duplicate\n"
        )
        sections = scan_record(text)
        assert sections["project"] == {"framework": "vue"}


class TestConfigStore:
    """Test reading and writing project documents."""

    def test_absent_documents(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path)
        assert store.read_settings() is None
        assert store.read_settings_text() is None
        assert store.read_design_tokens() is None
        assert store.read_project_goal() is None

    def test_write_and_read_settings(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path)
        path = store.write_settings(SAMPLE)
        assert path == tmp_path / ".tether" / "project.yaml"
        assert store.read_settings() == SAMPLE

    def test_project_goal_location(self, tmp_path: Path) -> None:
        (tmp_path / ".tether-context.md").write_text("Build a shop")
        assert ConfigStore(tmp_path).read_project_goal() == "Build a shop"

    def test_ensure_design_tokens_preserves_custom_content(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path)
        assert store.ensure_design_tokens() is True
        assert store.read_design_tokens() == DESIGN_TOKENS_TEMPLATE

        store.tokens_path.write_text("# Our tokens\n- Primary: hotpink\n")
        assert store.ensure_design_tokens() is False
        assert store.read_design_tokens() == "# Our tokens\n- Primary: hotpink\n"


class TestRecordDetection:
    """Test persisting detection results."""

    def test_first_run_writes_record_and_template(self, tmp_path: Path) -> None:
        record = ConfigStore(tmp_path).record_detection(ProjectDetector(tmp_path).detect())
        assert record.settings_path.exists()
        assert record.tokens_created is True
        assert record.settings.design_system == NONE

    def test_rerun_is_idempotent_apart_from_timestamp(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text('{"dependencies": {"vue": "3"}}')
        store = ConfigStore(tmp_path)

        clocks = iter([datetime(2026, 1, 1, 8, 0, 0), datetime(2026, 1, 2, 9, 0, 0)])
        store.record_detection(ProjectDetector(tmp_path, clock=lambda: next(clocks)).detect())
        first = store.read_settings_text()
        store.record_detection(ProjectDetector(tmp_path, clock=lambda: next(clocks)).detect())
        second = store.read_settings_text()

        assert first != second
        assert _without_timestamp(first) == _without_timestamp(second)

    def test_rerun_keeps_custom_tokens(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path)
        store.record_detection(ProjectDetector(tmp_path).detect())
        store.tokens_path.write_text("custom")

        record = store.record_detection(ProjectDetector(tmp_path).detect())
        assert record.tokens_created is False
        assert store.tokens_path.read_text() == "custom"

    def test_rerun_keeps_hand_edited_design_system(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path)
        store.record_detection(ProjectDetector(tmp_path).detect())
        text = store.settings_path.read_text().replace(
            "design_system: none", "design_system: brutalism",
        )
        store.settings_path.write_text(text)

        record = store.record_detection(ProjectDetector(tmp_path).detect())
        assert record.settings.design_system == "brutalism"
        assert store.read_settings().design_system == "brutalism"

    def test_rerun_over_damaged_record(self, tmp_path: Path) -> None:
        store = ConfigStore(tmp_path)
        store.config_dir.mkdir()
        store.settings_path.write_bytes(b"project:\n  design_system: caf\xe9\n")

        record = store.record_detection(ProjectDetector(tmp_path).detect())

        assert record.settings.design_system == "caf�"
        assert store.read_settings().package_manager == "unknown"
