"""Context assembly: ordered concatenation of knowledge and project documents."""

from __future__ import annotations

from dataclasses import dataclass, field

from .knowledge import Category, KnowledgeBase, StackPlatform
from .models import ProjectSettings
from .store import ConfigStore

TASK_SEPARATOR = "---"
TASK_PREFIX = "CURRENT TASK: "


@dataclass
class ContextSection:
    """One delimited section of the assembled context."""

    label: str
    body: str

    def render(self) -> str:
        return f"=== {self.label} ===\n{self.body}\n\n"


@dataclass
class AssembledContext:
    """Ordered sections handed to the assistant, rebuilt on every run."""

    sections: list[ContextSection] = field(default_factory=list)

    def render(self) -> str:
        return "".join(section.render() for section in self.sections)

    @property
    def labels(self) -> list[str]:
        return [section.label for section in self.sections]

    @property
    def size(self) -> int:
        """Rendered size in bytes."""
        return len(self.render().encode("utf-8"))

    def __bool__(self) -> bool:
        return bool(self.sections)


def build_payload(context: AssembledContext, prompt: str) -> str:
    """Append the task trailer the assistant reads after the context."""
    return f"{context.render()}{TASK_SEPARATOR}\n{TASK_PREFIX}{prompt}\n"


class ContextAssembler:
    """Builds the context for a project from its settings.

    Sections always come out in this order, each only when its source exists:

    1. global rules (header kept even when the directory is empty)
    2. web or mobile stack rules for the framework
    3. design philosophy for the design system
    4. styling tool notes for the styling foundation
    5. project design tokens
    6. project goal
    7. the raw settings record
    """

    def __init__(self, knowledge: KnowledgeBase, store: ConfigStore) -> None:
        self.knowledge = knowledge
        self.store = store

    def assemble(self, settings: ProjectSettings) -> AssembledContext:
        context = AssembledContext()

        global_rules = self.knowledge.global_rules()
        if global_rules is not None:
            context.sections.append(ContextSection("GLOBAL RULES", global_rules))

        if ProjectSettings.is_set(settings.framework):
            stack = self.knowledge.resolve_stack(settings.framework)
            if stack is not None:
                prefix = "WEB STACK" if stack.platform == StackPlatform.WEB else "MOBILE STACK"
                context.sections.append(ContextSection(f"{prefix}: {stack.name}", stack.body))

        if ProjectSettings.is_set(settings.design_system):
            philosophy = self.knowledge.lookup(Category.DESIGN_SYSTEMS, settings.design_system)
            if philosophy is not None:
                context.sections.append(
                    ContextSection(f"DESIGN PHILOSOPHY: {settings.design_system}", philosophy),
                )

        if ProjectSettings.is_set(settings.styling_foundation):
            foundation = self.knowledge.lookup(
                Category.DESIGN_FOUNDATIONS, settings.styling_foundation,
            )
            if foundation is not None:
                context.sections.append(
                    ContextSection(f"STYLING TOOL: {settings.styling_foundation}", foundation),
                )

        tokens = self.store.read_design_tokens()
        if tokens is not None:
            context.sections.append(ContextSection("PROJECT DESIGN TOKENS & THEMING", tokens))

        goal = self.store.read_project_goal()
        if goal is not None:
            context.sections.append(ContextSection("PROJECT GOAL", goal))

        record = self.store.read_settings_text()
        if record is not None:
            context.sections.append(ContextSection("TECHNICAL CONFIG", record))

        return context
