"""Tests for the hook pipeline."""

import logging

import pytest

from code_manager.core.hooks import (
    GLOBAL_OPERATION,
    FunctionHook,
    Hook,
    HookContext,
    HookKind,
    HookManager,
    LoggingHook,
)
from code_manager.exceptions import (
    CloneError,
    HookAlreadyRegisteredError,
    HookExecutionError,
    HookNotFoundError,
    OperationFaultError,
)


class RecordingHook(Hook):
    """Appends "<name>:<stage>" to a shared list at every stage."""

    def __init__(self, name: str, calls: list, priority: int = 100, fail_at: str = ""):
        self.name = name
        self.calls = calls
        self.priority = priority
        self.fail_at = fail_at

    def _record(self, stage: str) -> None:
        self.calls.append(f"{self.name}:{stage}")
        if stage == self.fail_at:
            raise RuntimeError(f"{self.name} failed")

    def pre_execute(self, ctx: HookContext) -> None:
        self._record("pre")

    def post_execute(self, ctx: HookContext) -> None:
        self._record("post")

    def on_error(self, ctx: HookContext) -> None:
        self._record("error")


@pytest.fixture
def hooks() -> HookManager:
    return HookManager()


@pytest.fixture
def calls() -> list:
    return []


class TestHookRegistration:
    """Test suite for registering and unregistering hooks."""

    def test_register_by_kind(self, hooks: HookManager, calls: list):
        hooks.register("Clone", RecordingHook("a", calls), HookKind.PRE)
        hooks.register("Clone", RecordingHook("b", calls), "post")

        assert [h.name for h in hooks.get_hooks("Clone", HookKind.PRE)] == ["a"]
        assert [h.name for h in hooks.get_hooks("Clone", HookKind.POST)] == ["b"]

    def test_duplicate_name_same_kind_fails(self, hooks: HookManager, calls: list):
        hooks.register_pre("Clone", RecordingHook("a", calls))

        with pytest.raises(HookAlreadyRegisteredError):
            hooks.register_pre("Clone", RecordingHook("a", calls))

    def test_same_name_different_kind_or_operation(self, hooks: HookManager, calls: list):
        """Test names only need to be unique per operation and kind."""
        hooks.register_pre("Clone", RecordingHook("a", calls))
        hooks.register_post("Clone", RecordingHook("a", calls))
        hooks.register_pre("Init", RecordingHook("a", calls))

    def test_unknown_kind_rejected(self, hooks: HookManager, calls: list):
        with pytest.raises(ValueError):
            hooks.register("Clone", RecordingHook("a", calls), "sometimes")

    def test_empty_name_rejected(self, hooks: HookManager):
        with pytest.raises(ValueError):
            hooks.register_pre("Clone", Hook())

    def test_unregister(self, hooks: HookManager, calls: list):
        hooks.register_pre("Clone", RecordingHook("a", calls))

        hooks.unregister("Clone", "a")

        assert hooks.get_hooks("Clone", HookKind.PRE) == []

    def test_unregister_by_kind(self, hooks: HookManager, calls: list):
        hooks.register_pre("Clone", RecordingHook("a", calls))
        hooks.register_post("Clone", RecordingHook("a", calls))

        hooks.unregister("Clone", "a", HookKind.POST)

        assert [h.name for h in hooks.get_hooks("Clone", HookKind.PRE)] == ["a"]
        assert hooks.get_hooks("Clone", HookKind.POST) == []

    def test_unregister_missing_raises(self, hooks: HookManager):
        """Test removing an unknown hook is an explicit not-found error."""
        with pytest.raises(HookNotFoundError):
            hooks.unregister("Clone", "ghost")

    def test_managers_are_independent(self, calls: list):
        """Test hook registrations do not leak between instances."""
        first, second = HookManager(), HookManager()
        first.register_pre("Clone", RecordingHook("a", calls))

        assert second.get_hooks("Clone", HookKind.PRE) == []


class TestHookPipeline:
    """Test suite for HookManager.run."""

    def test_success_runs_pre_body_post(self, hooks: HookManager, calls: list):
        hooks.register_pre("Clone", RecordingHook("pre", calls))
        hooks.register_post("Clone", RecordingHook("post", calls))
        hooks.register_error("Clone", RecordingHook("err", calls))

        def body():
            calls.append("body")
            return "/path"

        assert hooks.run("Clone", {"url": "x"}, body) == "/path"
        assert calls == ["pre:pre", "body", "post:post"]

    def test_failure_runs_error_hooks_not_post(self, hooks: HookManager, calls: list):
        hooks.register_post("Clone", RecordingHook("post", calls))
        hooks.register_error("Clone", RecordingHook("err", calls))

        def body():
            raise CloneError("network down")

        with pytest.raises(CloneError, match="network down"):
            hooks.run("Clone", {}, body)

        assert calls == ["err:error"]

    def test_pre_hook_failure_skips_body(self, hooks: HookManager, calls: list):
        hooks.register_pre("Clone", RecordingHook("guard", calls, fail_at="pre"))
        hooks.register_error("Clone", RecordingHook("err", calls))

        def body():
            calls.append("body")

        with pytest.raises(HookExecutionError) as exc_info:
            hooks.run("Clone", {}, body)

        assert exc_info.value.stage == "pre"
        assert exc_info.value.hook_name == "guard"
        assert exc_info.value.operation == "Clone"
        assert calls == ["guard:pre"]

    def test_unexpected_exception_becomes_operation_fault(self, hooks: HookManager, calls: list):
        """Test faults inside the body surface as regular errors tagged with the operation."""
        hooks.register_error("Clone", RecordingHook("err", calls))

        def body():
            return {}["missing"]

        with pytest.raises(OperationFaultError) as exc_info:
            hooks.run("Clone", {}, body)

        assert exc_info.value.operation == "Clone"
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert "Clone" in str(exc_info.value)
        assert calls == ["err:error"]

    def test_context_records_outcome(self, hooks: HookManager):
        seen = {}

        def capture(ctx: HookContext) -> None:
            seen["ctx"] = ctx

        hooks.register_post("Clone", FunctionHook("capture", capture))

        hooks.run("Clone", {"url": "u"}, lambda: 42)

        ctx = seen["ctx"]
        assert ctx.operation_name == "Clone"
        assert ctx.parameters == {"url": "u"}
        assert ctx.results == {"success": True, "result": 42}
        assert ctx.error is None

    def test_context_records_error(self, hooks: HookManager):
        seen = {}
        hooks.register_error("Clone", FunctionHook("capture", lambda ctx: seen.update(ctx=ctx)))

        error = CloneError("nope")

        def body():
            raise error

        with pytest.raises(CloneError):
            hooks.run("Clone", {}, body)

        assert seen["ctx"].results["success"] is False
        assert seen["ctx"].error is error

    def test_fresh_context_per_run(self, hooks: HookManager):
        contexts = []
        hooks.register_pre("Clone", FunctionHook("capture", contexts.append))

        params = {"url": "u"}
        hooks.run("Clone", params, lambda: None)
        hooks.run("Clone", params, lambda: None)

        assert contexts[0] is not contexts[1]
        contexts[0].parameters["url"] = "changed"
        assert params["url"] == "u"

    def test_post_hook_failure_overrides_success(self, hooks: HookManager):
        """Test a failing post hook is raised and still carries the result."""
        hooks.register_post("Clone", FunctionHook("boom", lambda ctx: 1 / 0))

        with pytest.raises(HookExecutionError) as exc_info:
            hooks.run("Clone", {}, lambda: "/cloned")

        assert exc_info.value.stage == "post"
        assert exc_info.value.result == "/cloned"
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_error_hook_failure_keeps_operation_error(self, hooks: HookManager):
        """Test the operation error wins but the hook failure stays visible."""
        hooks.register_error("Clone", FunctionHook("boom", lambda ctx: 1 / 0))

        def body():
            raise CloneError("network down")

        with pytest.raises(CloneError) as exc_info:
            hooks.run("Clone", {}, body)

        hook_error = exc_info.value.hook_error
        assert isinstance(hook_error, HookExecutionError)
        assert hook_error.stage == "error"

    def test_other_operations_hooks_do_not_run(self, hooks: HookManager, calls: list):
        hooks.register_pre("Init", RecordingHook("init", calls))

        hooks.run("Clone", {}, lambda: None)

        assert calls == []


class TestHookOrdering:
    """Test suite for hook ordering across global and specific registrations."""

    def test_registration_order(self, hooks: HookManager, calls: list):
        for name in ("first", "second", "third"):
            hooks.register_pre("Clone", RecordingHook(name, calls))

        hooks.run("Clone", {}, lambda: None)

        assert calls == ["first:pre", "second:pre", "third:pre"]

    def test_priority_before_registration_order(self, hooks: HookManager, calls: list):
        hooks.register_pre("Clone", RecordingHook("late", calls, priority=200))
        hooks.register_pre("Clone", RecordingHook("early", calls, priority=10))

        hooks.run("Clone", {}, lambda: None)

        assert calls == ["early:pre", "late:pre"]

    def test_wildcard_hooks_wrap_specific_ones(self, hooks: HookManager, calls: list):
        """Test "*" hooks run first in pre and last in post."""
        hooks.register_pre(GLOBAL_OPERATION, RecordingHook("all-pre", calls))
        hooks.register_post(GLOBAL_OPERATION, RecordingHook("all-post", calls))
        hooks.register_pre("Clone", RecordingHook("clone-pre", calls))
        hooks.register_post("Clone", RecordingHook("clone-post", calls))

        hooks.run("Clone", {}, lambda: None)

        assert calls == ["all-pre:pre", "clone-pre:pre", "clone-post:post", "all-post:post"]

    def test_global_kind_runs_at_every_stage(self, hooks: HookManager, calls: list):
        hooks.register_global(GLOBAL_OPERATION, RecordingHook("audit", calls))

        def failing():
            raise CloneError("x")

        hooks.run("Clone", {}, lambda: None)
        with pytest.raises(CloneError):
            hooks.run("Init", {}, failing)

        assert calls == ["audit:pre", "audit:post", "audit:pre", "audit:error"]

    def test_global_kind_for_one_operation(self, hooks: HookManager, calls: list):
        hooks.register_global("Clone", RecordingHook("clone-audit", calls))

        hooks.run("Clone", {}, lambda: None)
        hooks.run("Init", {}, lambda: None)

        assert calls == ["clone-audit:pre", "clone-audit:post"]

    def test_error_stage_order(self, hooks: HookManager, calls: list):
        hooks.register_error(GLOBAL_OPERATION, RecordingHook("all", calls))
        hooks.register_error("Clone", RecordingHook("clone", calls))

        def body():
            raise CloneError("x")

        with pytest.raises(CloneError):
            hooks.run("Clone", {}, body)

        assert calls == ["clone:error", "all:error"]


class TestLoggingHook:
    """Test suite for the built-in logging hook."""

    def test_logs_successful_operation(self, hooks: HookManager, caplog):
        hooks.register_global(GLOBAL_OPERATION, LoggingHook())

        with caplog.at_level(logging.INFO, logger="code_manager"):
            hooks.run("Clone", {"url": "u"}, lambda: "/repos/x")

        messages = [record.getMessage() for record in caplog.records]
        assert "Starting Clone with {'url': 'u'}" in messages
        assert "Completed Clone: '/repos/x'" in messages

    def test_logs_failure(self, hooks: HookManager, caplog):
        hooks.register_global(GLOBAL_OPERATION, LoggingHook())

        def failing():
            raise CloneError("auth failed")

        with caplog.at_level(logging.INFO, logger="code_manager"):
            with pytest.raises(CloneError):
                hooks.run("Clone", {}, failing)

        assert "Clone failed: auth failed" in caplog.text
        assert "Completed" not in caplog.text

    def test_custom_logger_and_level(self, hooks: HookManager, caplog):
        custom = logging.getLogger("tests.audit")
        hooks.register_pre("Init", LoggingHook(custom, level=logging.DEBUG))

        with caplog.at_level(logging.DEBUG, logger="tests.audit"):
            hooks.run("Init", {}, lambda: None)

        [record] = [r for r in caplog.records if r.name == "tests.audit"]
        assert record.levelno == logging.DEBUG
