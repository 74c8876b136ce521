"""Tether: Context Engine for AI-Powered Development."""

__version__ = "1.0.0"
__author__ = "Tether Contributors"
__description__ = "Context Engine for AI-Powered Development"

from .assembler import AssembledContext, ContextAssembler
from .detector import ProjectDetector
from .git import CommitManager
from .knowledge import KnowledgeBase
from .models import ProjectSettings, TetherConfig
from .store import ConfigStore

__all__ = [
    "AssembledContext",
    "CommitManager",
    "ConfigStore",
    "ContextAssembler",
    "KnowledgeBase",
    "ProjectDetector",
    "ProjectSettings",
    "TetherConfig",
]
