"""
Core modules for code-manager.

This package contains the orchestration engine:
- Repository URL normalization and branch name sanitization
- Project mode detection
- The persistent status registry
- The hook pipeline
- The CodeManager operations
"""

from code_manager.core.hooks import FunctionHook, Hook, HookContext, HookKind, HookManager
from code_manager.core.manager import CodeManager
from code_manager.core.project_detector import ProjectModeDetector
from code_manager.core.status import StatusRegistry

__all__ = [
    "CodeManager",
    "FunctionHook",
    "Hook",
    "HookContext",
    "HookKind",
    "HookManager",
    "ProjectModeDetector",
    "StatusRegistry",
]
