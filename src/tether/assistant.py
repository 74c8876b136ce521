"""Hands the assembled payload to the external AI assistant."""

from __future__ import annotations

import shlex
import shutil
import subprocess
from pathlib import Path

from .exceptions import AssistantError


class AssistantRunner:
    """Runs the assistant command with the payload on stdin.

    The assistant inherits the terminal for its own output and the call
    blocks until it exits.
    """

    def __init__(self, command: str = "claude") -> None:
        try:
            self.argv = shlex.split(command)
        except ValueError as e:
            msg = f"Cannot parse assistant command: {command}"
            raise AssistantError(msg, details={"command": command}) from e
        if not self.argv:
            msg = "Assistant command is empty"
            raise AssistantError(msg)

    @property
    def executable(self) -> str:
        return self.argv[0]

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def run(self, payload: str, cwd: Path | None = None) -> int:
        """Pipe the payload to the assistant.

        Raises:
            AssistantError: If the command is missing or exits non-zero
        """
        try:
            result = subprocess.run(
                self.argv,
                input=payload,
                text=True,
                cwd=cwd,
                check=False,
            )
        except FileNotFoundError as e:
            msg = f"Assistant not found: {self.executable}"
            raise AssistantError(msg, details={"command": self.argv}) from e

        if result.returncode != 0:
            msg = f"Assistant exited with status {result.returncode}"
            raise AssistantError(
                msg,
                details={"command": self.argv, "returncode": result.returncode},
            )
        return result.returncode
