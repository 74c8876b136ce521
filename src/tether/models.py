"""Core data models for Tether."""

from __future__ import annotations

import re
import shlex
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

UNKNOWN = "unknown"
NONE = "none"

SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*(B|KB|MB)?\s*$", re.IGNORECASE)


class QuoteStyle(str, Enum):
    """Preferred string quote style for generated code."""

    SINGLE = "single"
    DOUBLE = "double"


class Conventions(BaseModel):
    """Fixed-shape code style conventions recorded with the project settings."""

    indent: int = Field(default=2, description="Indent width in spaces")
    quotes: QuoteStyle = Field(default=QuoteStyle.SINGLE, description="Quote style")
    semi: bool = Field(default=True, description="Whether statements end with semicolons")


class ProjectSettings(BaseModel):
    """Auto-detected and hand-edited configuration for one project root.

    Every categorical field is an open enumeration. Detection fills in the
    ``unknown``/``none`` sentinels; a value read back from a damaged record
    degrades to the empty string, which consumers treat as "not configured".
    ``design_system`` is never derived from the filesystem.
    """

    package_manager: str = Field(default=UNKNOWN, description="Lockfile-derived package manager")
    language: str = Field(default=UNKNOWN, description="Primary language")
    framework: str = Field(default=NONE, description="Application framework / stack name")
    styling_foundation: str = Field(default=NONE, description="Styling tool")
    design_system: str = Field(default=NONE, description="Design philosophy, edited by hand")
    detected_at: datetime | None = Field(default=None, description="Last detection run")
    conventions: Conventions = Field(default_factory=Conventions)

    @staticmethod
    def is_set(value: str) -> bool:
        """Return True when a categorical value selects something."""
        return bool(value) and value != NONE


class GitSettings(BaseModel):
    """Commit behaviour loaded from ``git.yaml`` and the environment."""

    auto: bool = Field(default=True, description="Commit automatically after a run")
    auto_push: bool = Field(default=False, description="Push after committing")
    require_review: bool = Field(
        default=False,
        description="Always ask before committing, even when auto is on",
    )
    message_template: str = Field(
        default="{type}({scope}): {description} [tether]",
        description="Commit message template",
    )
    protected_files: list[str] = Field(
        default_factory=list,
        description="Extra glob patterns added to the built-in denylist",
    )

    @field_validator("message_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """Ensure the template can carry a description."""
        if "{description}" not in v:
            msg = "message_template must contain a {description} placeholder"
            raise ValueError(msg)
        return v


class ContextSettings(BaseModel):
    """Context assembly and assistant settings loaded from ``context.yaml``."""

    max_context_size: str = Field(
        default="100KB",
        description="Warn when the assembled context grows beyond this size",
    )
    assistant_command: str = Field(
        default="claude",
        description="Command that receives the assembled payload on stdin",
    )

    @field_validator("max_context_size")
    @classmethod
    def validate_size(cls, v: str) -> str:
        """Validate size strings such as 100KB or 1MB."""
        if not SIZE_PATTERN.match(v):
            msg = "max_context_size must look like 512B, 100KB or 1MB"
            raise ValueError(msg)
        return v

    @field_validator("assistant_command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        """Ensure the command names an executable and parses as shell words."""
        try:
            argv = shlex.split(v)
        except ValueError as e:
            msg = f"assistant_command cannot be parsed: {e}"
            raise ValueError(msg) from e
        if not argv:
            msg = "assistant_command must not be empty"
            raise ValueError(msg)
        return v

    @property
    def max_context_bytes(self) -> int:
        """Size limit in bytes."""
        return parse_size(self.max_context_size)


class TetherConfig(BaseModel):
    """Explicit configuration handed to every component by the CLI."""

    cache_dir: Path = Field(..., description="Local knowledge base checkout")
    config_dir: Path = Field(..., description="Directory holding git.yaml / context.yaml")
    git: GitSettings = Field(default_factory=GitSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)


def parse_size(value: str) -> int:
    """Parse ``100KB`` style sizes into a byte count."""
    match = SIZE_PATTERN.match(value)
    if not match:
        msg = f"Invalid size: {value!r}"
        raise ValueError(msg)
    amount = int(match.group(1))
    unit = (match.group(2) or "B").upper()
    return amount * {"B": 1, "KB": 1024, "MB": 1024 * 1024}[unit]


def format_size(size: int) -> str:
    """Render a byte count as B, KB or MB using integer division."""
    if size < 1024:
        return f"{size}B"
    if size < 1048576:
        return f"{size // 1024}KB"
    return f"{size // 1048576}MB"
