"""Tests for the agent loop state machine."""

import asyncio

import pytest

from toolwarden.agent import AgentLoop, AgentSession
from toolwarden.agent.models import FinalAnswer, ToolCallBatch
from toolwarden.audit import AuditLog
from toolwarden.config import Settings
from toolwarden.core.models import (
    ConfirmationOutcome,
    FailureKind,
    LoopState,
    MessageRole,
    PolicyLevel,
    RiskClass,
    SessionFailureKind,
    SessionStatus,
)
from toolwarden.exceptions import ModelCommunicationError, SessionStateError, ToolRegistrationError


def roles(outcome):
    return [m.role for m in outcome.transcript]


class TestTermination:
    @pytest.mark.asyncio
    async def test_final_answer_without_tools(self, registry, client_factory):
        client = client_factory(FinalAnswer(text="All done"))
        loop = AgentLoop(client, registry)

        outcome = await loop.run_task("say hi")

        assert outcome.status == SessionStatus.DONE
        assert outcome.succeeded
        assert outcome.final_text == "All done"
        assert outcome.iterations == 0
        assert roles(outcome) == [MessageRole.USER, MessageRole.ASSISTANT]
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_one_tool_round_then_answer(self, registry, tool_factory, client_factory, call_factory):
        registry.register(tool_factory("list_files", handler=lambda args: ["a.py"]))
        client = client_factory(
            ToolCallBatch(requests=[call_factory("list_files", call_id="t1")], text="Looking"),
            FinalAnswer(text="Found a.py"),
        )
        loop = AgentLoop(client, registry)

        outcome = await loop.run_task("what files are there?")

        assert outcome.status == SessionStatus.DONE
        assert outcome.final_text == "Found a.py"
        assert outcome.iterations == 1
        assert roles(outcome) == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL_RESULT,
            MessageRole.ASSISTANT,
        ]
        assistant = outcome.transcript.messages[1]
        assert assistant.text == "Looking"
        assert [r.call_id for r in assistant.tool_calls] == ["t1"]
        results = outcome.transcript.messages[2].results
        assert [r.call_id for r in results] == ["t1"]
        assert results[0].value == ["a.py"]
        assert client.calls[1]["messages"] == ["user", "assistant", "tool_result"]

    @pytest.mark.asyncio
    async def test_empty_batch_counts_as_final(self, registry, client_factory):
        client = client_factory(ToolCallBatch(requests=[], text="nothing to do"))
        outcome = await AgentLoop(client, registry).run_task("task")

        assert outcome.status == SessionStatus.DONE
        assert outcome.final_text == "nothing to do"

    @pytest.mark.asyncio
    async def test_failed_tool_results_go_back_to_the_model(self, registry, client_factory, call_factory):
        client = client_factory(
            ToolCallBatch(requests=[call_factory("missing_tool")]),
            FinalAnswer(text="Sorry"),
        )
        outcome = await AgentLoop(client, registry).run_task("task")

        assert outcome.status == SessionStatus.DONE
        result = outcome.transcript.messages[2].results[0]
        assert result.failure.kind == FailureKind.UNKNOWN_TOOL


class TestIterationLimit:
    @pytest.mark.asyncio
    async def test_cap_is_enforced(self, registry, tool_factory, client_factory, call_factory):
        registry.register(tool_factory("list_files"))
        client = client_factory(ToolCallBatch(requests=[call_factory("list_files")]))
        loop = AgentLoop(client, registry, max_iterations=3)

        outcome = await loop.run_task("loop forever")

        assert outcome.status == SessionStatus.FAILED
        assert outcome.failure_kind == SessionFailureKind.ITERATION_LIMIT_EXCEEDED
        assert outcome.iterations == 3
        assert len(client.calls) == 3
        assert roles(outcome).count(MessageRole.TOOL_RESULT) == 3
        assert len(outcome.transcript) == 7

    def test_cap_must_be_positive(self, registry, client_factory):
        with pytest.raises(ValueError):
            AgentLoop(client_factory(FinalAnswer()), registry, max_iterations=0)


class TestSessionFailures:
    @pytest.mark.asyncio
    async def test_model_failure_ends_session(self, registry, client_factory):
        error = ModelCommunicationError("claude", "connection reset", retryable=True)
        client = client_factory(error)

        outcome = await AgentLoop(client, registry).run_task("task")

        assert outcome.status == SessionStatus.FAILED
        assert outcome.failure_kind == SessionFailureKind.MODEL_COMMUNICATION_FAILURE
        assert "connection reset" in outcome.message
        assert roles(outcome) == [MessageRole.USER]

    @pytest.mark.asyncio
    async def test_model_failure_after_tools_keeps_transcript(self, registry, tool_factory, client_factory, call_factory):
        registry.register(tool_factory("list_files"))
        client = client_factory(
            ToolCallBatch(requests=[call_factory("list_files")]),
            ModelCommunicationError("claude", "overloaded"),
        )

        outcome = await AgentLoop(client, registry).run_task("task")

        assert outcome.failure_kind == SessionFailureKind.MODEL_COMMUNICATION_FAILURE
        assert outcome.iterations == 1
        assert len(outcome.transcript) == 3

    @pytest.mark.asyncio
    async def test_unexpected_client_error_ends_session(self, registry, client_factory):
        audit_log = AuditLog()
        client = client_factory(ConnectionError("provider unreachable"))
        session = AgentSession("task", session_id="sess-broken")

        outcome = await AgentLoop(client, registry, audit_log=audit_log).run(session)

        assert outcome.status == SessionStatus.FAILED
        assert outcome.failure_kind == SessionFailureKind.MODEL_COMMUNICATION_FAILURE
        assert outcome.message == "ConnectionError: provider unreachable"
        assert session.state == LoopState.FAILED
        assert session.outcome is outcome
        types = [e.event.event_type for e in audit_log.get_events(session_id="sess-broken")]
        assert types[-1] == "SESSION_END"

    @pytest.mark.asyncio
    async def test_operator_cancel_ends_session(self, registry, tool_factory, client_factory, prompt_factory, call_factory):
        ran = []
        registry.register(
            tool_factory("write_file", RiskClass.MUTATES_WORKSPACE, handler=lambda args: ran.append(1))
        )
        client = client_factory(
            ToolCallBatch(
                requests=[
                    call_factory("write_file", call_id="a"),
                    call_factory("write_file", call_id="b"),
                ]
            )
        )
        loop = AgentLoop(
            client,
            registry,
            prompt=prompt_factory(ConfirmationOutcome.CANCEL),
        )

        outcome = await loop.run_task("task")

        assert outcome.status == SessionStatus.FAILED
        assert outcome.failure_kind == SessionFailureKind.CANCELLED
        assert ran == []
        assert len(client.calls) == 1
        results = outcome.transcript.messages[2].results
        assert [r.failure.kind for r in results] == [FailureKind.CANCELLED] * 2

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, registry, client_factory):
        client = client_factory(FinalAnswer(text="never"))
        session = AgentSession("task")
        session.cancel()

        outcome = await AgentLoop(client, registry).run(session)

        assert outcome.failure_kind == SessionFailureKind.CANCELLED
        assert client.calls == []
        assert session.terminal
        assert session.state == LoopState.FAILED

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self, registry):
        started = asyncio.Event()

        class HangingClient:
            async def complete(self, transcript, tools, model=None):
                started.set()
                await asyncio.Event().wait()

        session = AgentSession("task")
        task = asyncio.create_task(AgentLoop(HangingClient(), registry).run(session))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.outcome is not None
        assert session.outcome.failure_kind == SessionFailureKind.CANCELLED


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_session_runs_once(self, registry, client_factory):
        loop = AgentLoop(client_factory(FinalAnswer(text="ok")), registry)
        session = AgentSession("task", session_id="sess-fixed")

        outcome = await loop.run(session)
        assert outcome.session_id == "sess-fixed"
        assert session.outcome is outcome

        with pytest.raises(SessionStateError):
            await loop.run(session)

    @pytest.mark.asyncio
    async def test_registry_is_sealed_for_the_session(self, registry, tool_factory, client_factory):
        registry.register(tool_factory("a"))
        await AgentLoop(client_factory(FinalAnswer()), registry).run_task("task")

        with pytest.raises(ToolRegistrationError):
            registry.register(tool_factory("b"))

    @pytest.mark.asyncio
    async def test_tools_and_model_passed_to_client(self, registry, tool_factory, client_factory):
        registry.register(tool_factory("a"))
        registry.register(tool_factory("b", RiskClass.RUNS_ARBITRARY_CODE))
        client = client_factory(FinalAnswer())

        await AgentLoop(client, registry, model="test-model").run_task("task")

        assert client.calls[0]["tools"] == ["a", "b"]
        assert client.calls[0]["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_disabled_policy_offers_no_tools(self, registry, tool_factory, client_factory, call_factory):
        ran = []
        registry.register(tool_factory("a", handler=lambda args: ran.append(1)))
        client = client_factory(
            ToolCallBatch(requests=[call_factory("a")]),
            FinalAnswer(text="ok"),
        )

        outcome = await AgentLoop(client, registry, policy=PolicyLevel.DISABLED).run_task("task")

        assert client.calls[0]["tools"] == []
        assert ran == []
        result = outcome.transcript.messages[2].results[0]
        assert result.failure.kind == FailureKind.POLICY_FORBIDDEN


class TestLoopAudit:
    @pytest.mark.asyncio
    async def test_session_events_are_recorded(self, registry, tool_factory, client_factory, call_factory):
        registry.register(tool_factory("a"))
        audit_log = AuditLog()
        client = client_factory(ToolCallBatch(requests=[call_factory("a")]), FinalAnswer(text="ok"))
        session = AgentSession("task", session_id="sess-audit")

        await AgentLoop(client, registry, audit_log=audit_log).run(session)

        types = [e.event.event_type for e in audit_log.get_events(session_id="sess-audit")]
        assert types[0] == "SESSION_START"
        assert "MODEL_TURN" in types
        assert "TOOL_EXECUTED" in types
        assert types[-1] == "SESSION_END"
        assert audit_log.verify_integrity()[0]


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_settings_snapshot_is_applied(self, registry, tool_factory, client_factory, call_factory, tmp_path):
        registry.register(tool_factory("w", RiskClass.MUTATES_WORKSPACE))
        settings = Settings(
            policy="read-only",
            max_iterations=2,
            model="configured-model",
            workspace=tmp_path,
        )
        client = client_factory(ToolCallBatch(requests=[call_factory("w")]))
        loop = AgentLoop.from_settings(settings, client, registry)

        outcome = await loop.run_task("task")

        assert loop.policy == PolicyLevel.READ_ONLY
        assert outcome.failure_kind == SessionFailureKind.ITERATION_LIMIT_EXCEEDED
        assert len(client.calls) == 2
        assert client.calls[0]["model"] == "configured-model"
        result = outcome.transcript.messages[2].results[0]
        assert result.failure.kind == FailureKind.POLICY_FORBIDDEN
