"""
Hook pipeline wrapped around every orchestration operation.

Hooks are registered against an operation name (or ``"*"`` for all
operations) with a HookKind:

- PRE hooks run before the operation body; a failure aborts the operation
- POST hooks run after the body succeeded
- ERROR hooks run after the body failed
- GLOBAL hooks run at all three stages

HookManager.run() drives one invocation: pre stage, body, then either the
post or the error stage, never both. Unexpected exceptions raised by the
body are converted into OperationFaultError so callers only ever see
CodeManagerError subclasses.
"""

import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, TypeVar

from code_manager.exceptions import (
    CodeManagerError,
    HookAlreadyRegisteredError,
    HookExecutionError,
    HookNotFoundError,
    OperationFaultError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

GLOBAL_OPERATION = "*"
DEFAULT_PRIORITY = 100

# Operation names
CLONE = "Clone"
CREATE_WORKTREE = "CreateWorkTree"
DELETE_WORKTREE = "DeleteWorkTree"
DELETE_ALL_WORKTREES = "DeleteAllWorktrees"
OPEN_WORKTREE = "OpenWorktree"
LIST_WORKTREES = "ListWorktrees"
LOAD_WORKTREE = "LoadWorktree"
INIT = "Init"
LIST_REPOSITORIES = "ListRepositories"
DELETE_REPOSITORY = "DeleteRepository"


class HookKind(str, Enum):
    """Stage a hook is bound to."""

    PRE = "pre"
    POST = "post"
    ERROR = "error"
    GLOBAL = "global"


@dataclass
class HookContext:
    """State shared by the hooks of one operation invocation."""

    operation_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    results: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    error: Optional[Exception] = None


class Hook:
    """
    Base class for hooks.

    Subclasses set ``name`` and override the stage methods they care about.
    Lower ``priority`` runs first; equal priorities keep registration order.
    """

    name: str = ""
    priority: int = DEFAULT_PRIORITY

    def pre_execute(self, ctx: HookContext) -> None:
        pass

    def post_execute(self, ctx: HookContext) -> None:
        pass

    def on_error(self, ctx: HookContext) -> None:
        pass


class FunctionHook(Hook):
    """Adapts a plain callable into a hook; the callable runs at every stage it is bound to."""

    def __init__(
        self,
        name: str,
        func: Callable[[HookContext], None],
        priority: int = DEFAULT_PRIORITY,
    ):
        self.name = name
        self.func = func
        self.priority = priority

    def pre_execute(self, ctx: HookContext) -> None:
        self.func(ctx)

    def post_execute(self, ctx: HookContext) -> None:
        self.func(ctx)

    def on_error(self, ctx: HookContext) -> None:
        self.func(ctx)


class LoggingHook(Hook):
    """Logs the start, outcome and failure of every operation it is bound to."""

    name = "logging"

    def __init__(self, hook_logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = hook_logger or logger
        self.level = level

    def pre_execute(self, ctx: HookContext) -> None:
        self.logger.log(self.level, f"Starting {ctx.operation_name} with {ctx.parameters}")

    def post_execute(self, ctx: HookContext) -> None:
        result = ctx.results.get("result")
        self.logger.log(self.level, f"Completed {ctx.operation_name}: {result!r}")

    def on_error(self, ctx: HookContext) -> None:
        self.logger.log(self.level, f"{ctx.operation_name} failed: {ctx.error}")


_STAGE_METHODS = {
    HookKind.PRE: "pre_execute",
    HookKind.POST: "post_execute",
    HookKind.ERROR: "on_error",
}


@dataclass
class _Registration:
    hook: Hook
    kind: HookKind
    sequence: int


class HookManager:
    """Registry of hooks and executor of the hook pipeline."""

    def __init__(self) -> None:
        self._registrations: dict[str, list[_Registration]] = {}
        self._sequence = itertools.count()
        self._lock = threading.RLock()

    def register(self, operation: str, hook: Hook, kind: HookKind | str) -> None:
        """
        Register a hook for an operation.

        Args:
            operation: Operation name, or "*" for every operation.
            hook: Hook instance with a non-empty name.
            kind: Stage(s) the hook is bound to.

        Raises:
            HookAlreadyRegisteredError: If the name is taken for this operation and kind.
            ValueError: If the hook has no name or the kind is unknown.
        """
        kind = HookKind(kind)
        if not hook.name:
            raise ValueError("hook name cannot be empty")

        with self._lock:
            registrations = self._registrations.setdefault(operation, [])
            for registration in registrations:
                if registration.kind == kind and registration.hook.name == hook.name:
                    raise HookAlreadyRegisteredError(
                        f"{kind.value} hook '{hook.name}' is already registered for {operation}"
                    )
            registrations.append(_Registration(hook, kind, next(self._sequence)))

        logger.debug(f"Registered {kind.value} hook '{hook.name}' for {operation}")

    def register_pre(self, operation: str, hook: Hook) -> None:
        self.register(operation, hook, HookKind.PRE)

    def register_post(self, operation: str, hook: Hook) -> None:
        self.register(operation, hook, HookKind.POST)

    def register_error(self, operation: str, hook: Hook) -> None:
        self.register(operation, hook, HookKind.ERROR)

    def register_global(self, operation: str, hook: Hook) -> None:
        self.register(operation, hook, HookKind.GLOBAL)

    def unregister(
        self,
        operation: str,
        name: str,
        kind: Optional[HookKind | str] = None,
    ) -> None:
        """
        Remove a hook by name.

        Without a kind, the first hook with that name is removed whatever
        its kind.

        Raises:
            HookNotFoundError: If no such hook is registered.
        """
        wanted = HookKind(kind) if kind is not None else None

        with self._lock:
            registrations = self._registrations.get(operation, [])
            for index, registration in enumerate(registrations):
                if registration.hook.name != name:
                    continue
                if wanted is not None and registration.kind != wanted:
                    continue
                del registrations[index]
                logger.debug(f"Unregistered hook '{name}' from {operation}")
                return

        raise HookNotFoundError(f"hook '{name}' is not registered for {operation}")

    def get_hooks(self, operation: str, kind: HookKind | str) -> list[Hook]:
        """Hooks registered for exactly this operation and kind, in run order."""
        kind = HookKind(kind)
        with self._lock:
            matching = [r for r in self._registrations.get(operation, []) if r.kind == kind]
        return [r.hook for r in self._ordered(matching)]

    def _ordered(self, registrations: list[_Registration]) -> list[_Registration]:
        return sorted(registrations, key=lambda r: (r.hook.priority, r.sequence))

    def _stage_hooks(self, operation: str, stage: HookKind) -> list[Hook]:
        """Hooks to run for a stage: global ones around operation-specific ones."""

        def collect(name: str) -> list[_Registration]:
            return self._ordered(
                [
                    r
                    for r in self._registrations.get(name, [])
                    if r.kind in (stage, HookKind.GLOBAL)
                ]
            )

        with self._lock:
            specific = collect(operation) if operation != GLOBAL_OPERATION else []
            everywhere = collect(GLOBAL_OPERATION)

        if stage == HookKind.PRE:
            ordered = everywhere + specific
        else:
            ordered = specific + everywhere
        return [r.hook for r in ordered]

    def _execute_stage(self, stage: HookKind, ctx: HookContext, result: Any = None) -> None:
        method_name = _STAGE_METHODS[stage]
        for hook in self._stage_hooks(ctx.operation_name, stage):
            try:
                getattr(hook, method_name)(ctx)
            except Exception as e:
                raise HookExecutionError(
                    ctx.operation_name, stage.value, hook.name, e, result=result
                ) from e

    def run(
        self,
        operation: str,
        parameters: Optional[dict[str, Any]],
        body: Callable[[], T],
    ) -> T:
        """
        Run body inside the hook pipeline.

        Args:
            operation: Operation name hooks are looked up by.
            parameters: Input snapshot exposed to hooks as ctx.parameters.
            body: Zero-argument callable doing the actual work.

        Returns:
            Whatever body returned.

        Raises:
            HookExecutionError: If a pre hook fails (body is not run), or a
                post hook fails after body succeeded (``result`` holds the
                operation result).
            CodeManagerError: The operation error when body fails. If an
                error hook failed too, it is attached as ``hook_error``.
        """
        ctx = HookContext(operation_name=operation, parameters=dict(parameters or {}))
        logger.debug(f"Running {operation} with {ctx.parameters}")

        self._execute_stage(HookKind.PRE, ctx)

        error: Optional[CodeManagerError] = None
        result: Any = None
        try:
            result = body()
        except CodeManagerError as e:
            error = e
        except Exception as e:
            logger.error(f"Unexpected error in {operation}: {type(e).__name__}: {e}")
            error = OperationFaultError(operation, e)
            error.__cause__ = e

        if error is None:
            ctx.results["success"] = True
            ctx.results["result"] = result
            self._execute_stage(HookKind.POST, ctx, result=result)
            return result

        ctx.results["success"] = False
        ctx.error = error
        try:
            self._execute_stage(HookKind.ERROR, ctx)
        except HookExecutionError as hook_error:
            logger.warning(f"{hook_error} (while handling: {error})")
            error.hook_error = hook_error
        raise error
