"""Tether command-line interface."""

from __future__ import annotations

import re
import shutil
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from . import ui
from .assembler import ContextAssembler, build_payload
from .assistant import AssistantRunner
from .config import default_paths, load_config, write_default_config
from .detector import ProjectDetector
from .exceptions import TetherError
from .git import (
    ChangeKind,
    CommitManager,
    CommitOutcome,
    FileChange,
    RollbackMode,
    RollbackOutcome,
    generate_commit_message,
)
from .knowledge import DEFAULT_SOURCE, KnowledgeBase
from .models import ProjectSettings, TetherConfig, format_size
from .store import ConfigStore
from .ui import console

DEFAULT_COMMAND = "run"
GROUP_OPTIONS = {"--help", "-h", "--version"}


class DefaultCommandGroup(TyperGroup):
    """Command group that routes a bare prompt to the ``run`` command."""

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        if args and args[0] not in self.commands and args[0] not in GROUP_OPTIONS:
            args = [DEFAULT_COMMAND, *args]
        return super().parse_args(ctx, args)


app = typer.Typer(
    name="tether",
    cls=DefaultCommandGroup,
    help="Tether: Context Engine for AI-Powered Development",
    add_completion=False,
    no_args_is_help=True,
)


def _get_version_string() -> str:
    """Get version string from package metadata or pyproject.toml."""
    try:
        return get_version("tether-cli")
    except PackageNotFoundError:
        pass

    # Development checkout without an installed distribution
    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    if pyproject_path.exists():
        content = pyproject_path.read_text()
        match = re.search(r'version\s*=\s*["\']([^"\']+)["\']', content)
        if match:
            return f"{match.group(1)} (development)"

    return "unknown"


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"Tether version {_get_version_string()}")
        console.print("Context Engine for AI Development")
        raise typer.Exit


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Tether: Context Engine for AI-Powered Development.

    Run `tether "your prompt"` to send the prompt to the assistant together
    with your rules, stack notes and project settings.
    """


def _load_config() -> TetherConfig:
    try:
        return load_config()
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


def _confirm(prompt: str) -> bool:
    return typer.confirm(prompt, default=False)


def _commit_manager(config: TetherConfig, root: Path) -> CommitManager:
    return CommitManager(root, confirm=_confirm, extra_protected=config.git.protected_files)


def _commit_message(config: TetherConfig) -> str:
    return generate_commit_message(template=config.git.message_template)


_CHANGE_STYLES = {
    ChangeKind.ADDED: ("green", "[+]"),
    ChangeKind.MODIFIED: ("yellow", "[~]"),
    ChangeKind.DELETED: ("red", "[-]"),
}


def _show_changes(changes: list[FileChange]) -> None:
    """Print a change summary table followed by the file list."""
    counts: dict[ChangeKind, int] = {}
    for change in changes:
        counts[change.kind] = counts.get(change.kind, 0) + 1

    table = Table(title="Changes Summary")
    table.add_column("Change", style="cyan")
    table.add_column("Files", style="green")
    for kind in ChangeKind:
        if counts.get(kind):
            table.add_row(kind.value.capitalize(), str(counts[kind]))
    console.print(table)

    for change in changes:
        style, icon = _CHANGE_STYLES.get(change.kind, ("cyan", "[?]"))
        console.print(f"  [{style}]{escape(icon)} {escape(change.path)}[/{style}]")


def _commit(
    manager: CommitManager,
    config: TetherConfig,
    message: str,
    auto: bool,
) -> None:
    """Commit with user-facing reporting; exits non-zero when blocked or cancelled."""
    if not auto:
        changes = manager.changes()
        if changes and not any(manager.is_protected(c.path) for c in changes):
            _show_changes(changes)
            console.print()

    result = manager.commit(message, auto=auto)

    if result.outcome == CommitOutcome.NO_CHANGES:
        ui.info("No changes to commit")
        return
    if result.outcome == CommitOutcome.BLOCKED:
        for path in result.blocked_paths:
            ui.error(f"Protected file detected: {path}")
        ui.error("Cannot commit protected files")
        raise typer.Exit(1)
    if result.outcome == CommitOutcome.CANCELLED:
        ui.info("Commit cancelled")
        raise typer.Exit(1)

    ui.success(f"Changes committed ({result.commit_sha})")

    if config.git.auto_push:
        branch = manager.current_branch()
        ui.info(f"Pushing to {branch}...")
        if manager.push():
            ui.success("Pushed to remote")
        else:
            ui.warn("Push failed (check remote/credentials)")


def _dry_run(manager: CommitManager, config: TetherConfig) -> None:
    """Preview the current change set without touching anything."""
    console.print("[bold]DRY RUN - No changes will be made[/bold]\n")
    if not manager.is_repo():
        ui.warn("Not a git repository")
        return

    changes = manager.changes()
    if not changes:
        ui.info("No changes to preview")
        return

    _show_changes(changes)
    console.print("\n[bold]Git commit message:[/bold]")
    console.print(f"  {escape(_commit_message(config))}")
    console.print()
    if typer.confirm("View detailed diff?", default=False):
        typer.echo(manager.diff(color=sys.stdout.isatty()), nl=False)


def _settings_summary(settings: ProjectSettings) -> str:
    return (
        f"Context: {settings.framework} | Sys: {settings.design_system} "
        f"| Fnd: {settings.styling_foundation}"
    )


@app.command()
def run(
    ctx: typer.Context,
    prompt: list[str] | None = typer.Argument(
        None,
        help="Task for the assistant",
        show_default=False,
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Preview current changes only",
    ),
    review: bool = typer.Option(
        False,
        "--review",
        help="Review changes before committing",
    ),
    no_commit: bool = typer.Option(
        False,
        "--no-commit",
        help="Skip the git commit",
    ),
    auto_commit: bool = typer.Option(
        False,
        "--auto-commit",
        help="Commit changes without asking",
    ),
) -> None:
    """Execute a prompt with the assembled project context (default command)."""
    config = _load_config()
    root = Path.cwd()
    manager = _commit_manager(config, root)

    try:
        if dry_run:
            _dry_run(manager, config)
            return

        task = " ".join(prompt or []).strip()
        if not task:
            typer.echo((ctx.parent or ctx).get_help())
            raise typer.Exit(1)

        store = ConfigStore(root)
        settings = store.read_settings()
        if settings is None:
            ui.warn("No project settings found (run 'tether detect')")
            settings = ProjectSettings()
        elif settings.framework:
            ui.info(_settings_summary(settings))

        knowledge = KnowledgeBase(config.cache_dir)
        if not knowledge.root.is_dir():
            ui.warn(f"Knowledge base not found at {knowledge.root} (run 'tether setup')")

        assembled = ContextAssembler(knowledge, store).assemble(settings)
        if assembled.size > config.context.max_context_bytes:
            ui.warn(
                f"Context is {format_size(assembled.size)}, "
                f"above the {config.context.max_context_size} limit",
            )

        ui.step("Processing with assistant")
        AssistantRunner(config.context.assistant_command).run(
            build_payload(assembled, task),
            cwd=root,
        )

        if no_commit or not manager.is_repo():
            return
        if not manager.has_changes():
            ui.info("No changes to commit")
            return

        message = _commit_message(config)
        if review or config.git.require_review:
            _commit(manager, config, message, auto=False)
        elif auto_commit or config.git.auto:
            _commit(manager, config, message, auto=True)

    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command()
def detect() -> None:
    """Re-detect project settings and save them to .tether/project.yaml."""
    root = Path.cwd()
    ui.step("Analyzing Project")

    detected = ProjectDetector(root).detect()
    console.print(f"  Package Manager: {escape(detected.package_manager)}")
    console.print(f"  Language: {escape(detected.language)}")
    console.print(f"  Framework: {escape(detected.framework)}")
    console.print(f"  Styling Foundation: {escape(detected.styling_foundation)}")

    try:
        record = ConfigStore(root).record_detection(detected)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to save project configuration: {e}")
        raise typer.Exit(1) from e

    if ProjectSettings.is_set(record.settings.design_system):
        ui.info(f"Keeping design system: {record.settings.design_system}")

    tokens = record.tokens_path.relative_to(root)
    if record.tokens_created:
        ui.info(f"Created template: {tokens}")
    else:
        ui.info(f"Existing tokens file found: {tokens}")

    ui.success("Project configuration saved")


@app.command()
def status() -> None:
    """Show project settings and git status."""
    config = _load_config()
    root = Path.cwd()
    settings = ConfigStore(root).read_settings()

    if settings is None:
        ui.warn("No project settings found (run 'tether detect')")
    else:
        table = Table(title="Tether Project Status")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Package Manager", settings.package_manager)
        table.add_row("Language", settings.language)
        table.add_row("Framework", settings.framework)
        table.add_row("Styling Foundation", settings.styling_foundation)
        table.add_row("Design System", settings.design_system)
        table.add_row(
            "Detected At",
            settings.detected_at.isoformat(sep=" ") if settings.detected_at else "-",
        )
        console.print(table)

    manager = _commit_manager(config, root)
    if not manager.is_repo():
        ui.warn("Not a git repository")
        return
    try:
        typer.echo(manager.status_short() or "Working tree clean")
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command()
def context(
    size: bool = typer.Option(
        False,
        "--size",
        help="Only print the size of the assembled context",
    ),
) -> None:
    """Print the assembled context without calling the assistant."""
    config = _load_config()
    root = Path.cwd()
    store = ConfigStore(root)
    settings = store.read_settings() or ProjectSettings()

    assembled = ContextAssembler(KnowledgeBase(config.cache_dir), store).assemble(settings)
    if size:
        typer.echo(format_size(assembled.size))
        return
    typer.echo(assembled.render(), nl=False)


@app.command()
def commit(
    auto_commit: bool = typer.Option(
        False,
        "--auto-commit",
        help="Commit without asking",
    ),
) -> None:
    """Commit current changes."""
    config = _load_config()
    manager = _commit_manager(config, Path.cwd())
    try:
        _commit(manager, config, _commit_message(config), auto=auto_commit)
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command()
def rollback(
    hard: bool = typer.Option(
        False,
        "--hard",
        help="Discard the undone changes instead of keeping them",
    ),
) -> None:
    """Undo the last Tether commit."""
    config = _load_config()
    manager = _commit_manager(config, Path.cwd())
    mode = RollbackMode.HARD if hard else RollbackMode.SOFT

    try:
        result = manager.rollback(mode)
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if result.outcome == RollbackOutcome.CANCELLED:
        ui.info("Rollback cancelled")
        raise typer.Exit(1)

    if mode == RollbackMode.SOFT:
        ui.success("Commit undone (changes kept)")
    else:
        ui.success("Commit undone (changes discarded)")


@app.command()
def history() -> None:
    """Show Tether commit history."""
    config = _load_config()
    manager = _commit_manager(config, Path.cwd())
    try:
        entries, total = manager.history()
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    ui.step("Tether Commit History")
    for entry in entries:
        console.print(f"  [yellow]{entry.sha}[/yellow] {escape(entry.subject)}")
    console.print()
    ui.info(f"Total Tether commits: {total}")


@app.command()
def diff() -> None:
    """Show current changes."""
    config = _load_config()
    manager = _commit_manager(config, Path.cwd())
    try:
        typer.echo(manager.diff(color=sys.stdout.isatty()), nl=False)
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


@app.command()
def setup(
    source: str | None = typer.Option(
        None,
        "--source",
        help="Knowledge base repository URL (defaults to the Starter Kit)",
    ),
) -> None:
    """Set up the knowledge base of rules and style documents."""
    config = _load_config()
    knowledge = KnowledgeBase(config.cache_dir)
    ui.step("Setting Up Knowledge Base")

    try:
        if knowledge.exists():
            ui.info("Existing knowledge base found")
            console.print("\nOptions:")
            console.print("  1. Keep existing (recommended)")
            console.print("  2. Sync from remote")
            console.print("  3. Replace with new repo\n")
            choice = typer.prompt("Choice [1-3]", default="1", show_default=False)

            if choice.strip() == "2":
                result = knowledge.sync()
                if result.ok:
                    ui.success(result.message)
                else:
                    ui.warn(result.message)
            elif choice.strip() == "3":
                ui.warn("This will DELETE existing rules!")
                if typer.prompt("Type 'yes' to confirm", default="") != "yes":
                    ui.info("Using existing knowledge base")
                    return
                url = source or typer.prompt("Repo URL", default=DEFAULT_SOURCE)
                ui.info(f"Cloning: {url}")
                knowledge.replace(url)
                ui.success("Knowledge base replaced")
            else:
                ui.info("Using existing knowledge base")
            return

        url = source or typer.prompt("Repo URL", default=DEFAULT_SOURCE)
        ui.info(f"Cloning: {url}")
        knowledge.initialize(url)
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    ui.success(f"Knowledge base initialized at {knowledge.root}")
    if url == DEFAULT_SOURCE:
        ui.info("You're using the Starter Kit (examples only)")
        console.print("\n  To customize:")
        console.print("  1. Fork this repo to create your own")
        console.print("  2. Add your team's conventions")
        console.print("  3. Run 'tether setup' again with your repo URL")


@app.command("update-rules")
def update_rules() -> None:
    """Update the knowledge base from its remote."""
    config = _load_config()
    knowledge = KnowledgeBase(config.cache_dir)
    if not knowledge.exists():
        ui.error(f"No git repo in {knowledge.root}")
        raise typer.Exit(1)

    ui.info("Updating knowledge base...")
    result = knowledge.sync()
    if result.ok:
        ui.success("Rules updated")
    else:
        ui.warn(result.message)


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration files",
    ),
) -> None:
    """Write default git.yaml and context.yaml configuration files."""
    _, config_dir = default_paths()
    try:
        written = write_default_config(config_dir, force=force)
    except OSError as e:
        console.print(f"[red]Error:[/red] Failed to write configuration: {e}")
        raise typer.Exit(1) from e

    if not written:
        ui.info(f"Configuration already present in {config_dir}")
        return
    for path in written:
        console.print(f"  • {escape(str(path))}")
    ui.success("Config files created")


@app.command()
def doctor() -> None:
    """Check dependencies, configuration and knowledge base state."""
    config = _load_config()
    knowledge = KnowledgeBase(config.cache_dir)
    try:
        assistant = AssistantRunner(config.context.assistant_command)
    except TetherError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    git_ok = shutil.which("git") is not None
    assistant_ok = assistant.is_available()

    table = Table(title="Tether Doctor")
    table.add_column("Check", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Version", _get_version_string())
    table.add_row("git", "found" if git_ok else "MISSING")
    table.add_row(f"assistant ({assistant.executable})", "found" if assistant_ok else "MISSING")
    table.add_row("Knowledge Base", str(knowledge.root))
    table.add_row(
        "Knowledge Base Status",
        f"ready (v{knowledge.version() or '?'})" if knowledge.exists() else "not set up",
    )
    table.add_row("Config Dir", str(config.config_dir))
    table.add_row("Auto Commit", str(config.git.auto).lower())
    table.add_row("Max Context Size", config.context.max_context_size)
    table.add_row(
        "Project Settings",
        "present" if ConfigStore(Path.cwd()).settings_path.exists() else "missing",
    )
    console.print(table)

    if not (git_ok and assistant_ok):
        ui.error("Missing dependencies")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show Tether version information."""
    console.print(f"Tether version {_get_version_string()}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
