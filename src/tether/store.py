"""Per-project configuration store under ``.tether/``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .models import NONE, Conventions, ProjectSettings, QuoteStyle

CONFIG_DIR = ".tether"
SETTINGS_FILE = "project.yaml"
TOKENS_FILE = "design-tokens.md"
GOAL_FILE = ".tether-context.md"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

DESIGN_TOKENS_TEMPLATE = """\
# Design Tokens & Theming
This file contains project-specific styling rules. The AI will use this context.

## Colors
- Primary: #000000
- Secondary: #ffffff
- Accent: #3b82f6

## Typography
- Font Family: Inter, sans-serif
- Base Size: 16px

## Components
(Add specific component rules here, e.g., "Buttons should always have rounded-md")
"""

_KEY_LINE = re.compile(r"^(?P<indent> *)(?P<key>[A-Za-z_][\w-]*):(?P<value>.*)$")
_INLINE_COMMENT = re.compile(r"(^|\s+)#.*$")


def _clean_value(raw: str) -> str:
    value = _INLINE_COMMENT.sub("", raw).strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return value


def scan_record(text: str) -> dict[str, dict[str, str]]:
    """Line-oriented scan of the settings record.

    Top-level keys land under ``""``; two-space indented keys land under the
    section that opened them. The first occurrence of a key wins and lines
    that do not look like ``key: value`` are skipped.
    """
    sections: dict[str, dict[str, str]] = {"": {}}
    current: str | None = None
    for line in text.splitlines():
        match = _KEY_LINE.match(line)
        if not match:
            continue
        indent = len(match.group("indent"))
        key = match.group("key")
        value = _clean_value(match.group("value"))
        if indent == 0:
            sections[""].setdefault(key, value)
            current = key if not value else None
        elif indent == 2 and current is not None:
            sections.setdefault(current, {}).setdefault(key, value)
    return sections


def parse_settings(text: str) -> ProjectSettings:
    """Build ProjectSettings from record text, defaulting anything missing."""
    sections = scan_record(text)
    project = sections.get("project", {})
    conventions = sections.get("conventions", {})

    detected_at = None
    raw_timestamp = sections[""].get("detected_at", "")
    if raw_timestamp:
        try:
            detected_at = datetime.strptime(raw_timestamp, TIMESTAMP_FORMAT)
        except ValueError:
            detected_at = None

    defaults = Conventions()
    try:
        indent = int(conventions.get("indent", defaults.indent))
    except ValueError:
        indent = defaults.indent
    quotes_raw = conventions.get("quotes", "")
    quotes = (
        QuoteStyle(quotes_raw)
        if quotes_raw in {q.value for q in QuoteStyle}
        else defaults.quotes
    )
    semi_raw = conventions.get("semi", "").lower()
    semi = defaults.semi if semi_raw not in {"true", "false"} else semi_raw == "true"

    return ProjectSettings(
        package_manager=project.get("package_manager", ""),
        language=project.get("language", ""),
        framework=project.get("framework", ""),
        styling_foundation=project.get("styling_foundation", ""),
        design_system=project.get("design_system", ""),
        detected_at=detected_at,
        conventions=Conventions(indent=indent, quotes=quotes, semi=semi),
    )


def render_settings(settings: ProjectSettings) -> str:
    """Serialize settings in the fixed record shape."""
    detected_at = (
        settings.detected_at.strftime(TIMESTAMP_FORMAT) if settings.detected_at else ""
    )
    conventions = settings.conventions
    return (
        "# Auto-detected project configuration\n"
        f"detected_at: {detected_at}\n"
        "\n"
        "project:\n"
        f"  package_manager: {settings.package_manager}\n"
        f"  language: {settings.language}\n"
        f"  framework: {settings.framework}\n"
        f"  styling_foundation: {settings.styling_foundation}\n"
        f"  design_system: {settings.design_system}"
        "  # Edit this manually (e.g., brutalism, material-you)\n"
        "\n"
        "conventions:\n"
        f"  indent: {conventions.indent}\n"
        f"  quotes: {conventions.quotes.value}\n"
        f"  semi: {'true' if conventions.semi else 'false'}\n"
    )


@dataclass
class DetectionRecord:
    """What a detection run wrote to disk."""

    settings: ProjectSettings
    settings_path: Path
    tokens_path: Path
    tokens_created: bool


class ConfigStore:
    """Reads and writes the settings record and the hand-edited documents."""

    def __init__(self, project_root: Path) -> None:
        """Initialize the store.

        Args:
            project_root: Root of the project being worked on
        """
        self.root = Path(project_root)
        self.config_dir = self.root / CONFIG_DIR
        self.settings_path = self.config_dir / SETTINGS_FILE
        self.tokens_path = self.config_dir / TOKENS_FILE
        self.goal_path = self.root / GOAL_FILE

    @staticmethod
    def _read(path: Path) -> str | None:
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

    def read_settings_text(self) -> str | None:
        """Raw settings record, or None when absent."""
        return self._read(self.settings_path)

    def read_settings(self) -> ProjectSettings | None:
        """Parsed settings record, or None when absent."""
        text = self.read_settings_text()
        if text is None:
            return None
        return parse_settings(text)

    def write_settings(self, settings: ProjectSettings) -> Path:
        """Overwrite the settings record."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.settings_path.write_text(render_settings(settings), encoding="utf-8")
        return self.settings_path

    def read_design_tokens(self) -> str | None:
        return self._read(self.tokens_path)

    def read_project_goal(self) -> str | None:
        return self._read(self.goal_path)

    def ensure_design_tokens(self) -> bool:
        """Write the tokens template unless the document already exists.

        Returns:
            True if the template was created
        """
        if self.tokens_path.exists():
            return False
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.tokens_path.write_text(DESIGN_TOKENS_TEMPLATE, encoding="utf-8")
        return True

    def record_detection(self, detected: ProjectSettings) -> DetectionRecord:
        """Persist a detection result.

        A design system already chosen by hand survives re-detection; every
        other field is replaced.
        """
        previous = self.read_settings()
        settings = detected
        if previous is not None and ProjectSettings.is_set(previous.design_system):
            settings = detected.model_copy(update={"design_system": previous.design_system})
        elif not settings.design_system:
            settings = detected.model_copy(update={"design_system": NONE})

        self.write_settings(settings)
        created = self.ensure_design_tokens()
        return DetectionRecord(
            settings=settings,
            settings_path=self.settings_path,
            tokens_path=self.tokens_path,
            tokens_created=created,
        )
