"""
code-manager - Git clone and worktree orchestration tool.

This package clones repositories into a predictable layout, carves
worktrees out of them, and tracks everything in a persistent registry.
"""

__version__ = "0.1.0"

from code_manager.config import Config, load_config
from code_manager.core.manager import CodeManager

__all__ = [
    "__version__",
    "CodeManager",
    "Config",
    "load_config",
]
