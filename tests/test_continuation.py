"""
Continuation controller tests
Tests: follow-up prompting on truncation, retry budget, verbatim concatenation
"""

import pytest

from thr8fix.continuation import CONTINUE_INSTRUCTION, complete_with_continuation
from thr8fix.state import Completion, CompletionRequest, StopReason


class ScriptedModel:
    """Returns the queued completions in order and keeps every request."""

    def __init__(self, *completions: Completion):
        self.queue = list(completions)
        self.requests: list[CompletionRequest] = []

    async def __call__(self, request: CompletionRequest) -> Completion:
        self.requests.append(request)
        return self.queue.pop(0)


@pytest.fixture
def request_():
    return CompletionRequest(
        system="system prompt",
        messages=[{"role": "user", "content": "Fix V-001"}],
        max_output_tokens=100,
    )


class TestCompleteWithContinuation:
    """Bounded continuation loop"""

    @pytest.mark.asyncio
    async def test_single_call_when_complete(self, request_):
        model = ScriptedModel(Completion(text='{"a": 1}', stop_reason=StopReason.COMPLETE))

        text = await complete_with_continuation(model, request_)

        assert text == '{"a": 1}'
        assert len(model.requests) == 1

    @pytest.mark.asyncio
    async def test_continues_after_truncation(self, request_):
        model = ScriptedModel(
            Completion(text='{"a": 1, ', stop_reason=StopReason.TRUNCATED),
            Completion(text='"b": 2}', stop_reason=StopReason.COMPLETE),
        )

        text = await complete_with_continuation(model, request_)

        assert text == '{"a": 1, "b": 2}'
        follow_up = model.requests[1]
        assert follow_up.system == "system prompt"
        assert follow_up.messages == [
            {"role": "user", "content": "Fix V-001"},
            {"role": "assistant", "content": '{"a": 1, '},
            {"role": "user", "content": CONTINUE_INSTRUCTION},
        ]
        # the original request is left untouched
        assert len(request_.messages) == 1

    @pytest.mark.asyncio
    async def test_follow_up_carries_all_accumulated_text(self, request_):
        model = ScriptedModel(
            Completion(text="AB", stop_reason=StopReason.TRUNCATED),
            Completion(text="CD", stop_reason=StopReason.TRUNCATED),
            Completion(text="EF", stop_reason=StopReason.COMPLETE),
        )

        text = await complete_with_continuation(model, request_, max_continuations=2)

        assert text == "ABCDEF"
        assert model.requests[2].messages[1]["content"] == "ABCD"

    @pytest.mark.asyncio
    async def test_budget_caps_follow_ups(self, request_):
        model = ScriptedModel(
            *[Completion(text=str(i), stop_reason=StopReason.TRUNCATED) for i in range(5)]
        )

        text = await complete_with_continuation(model, request_, max_continuations=2)

        assert text == "012"
        assert len(model.requests) == 3

    @pytest.mark.asyncio
    async def test_zero_budget_means_single_call(self, request_):
        model = ScriptedModel(Completion(text="x", stop_reason=StopReason.TRUNCATED))

        assert await complete_with_continuation(model, request_, max_continuations=0) == "x"
        assert len(model.requests) == 1

    @pytest.mark.asyncio
    async def test_other_stop_reason_ends_loop(self, request_):
        model = ScriptedModel(
            Completion(text="partial", stop_reason=StopReason.OTHER),
            Completion(text="never", stop_reason=StopReason.COMPLETE),
        )

        assert await complete_with_continuation(model, request_) == "partial"
        assert len(model.requests) == 1

    @pytest.mark.asyncio
    async def test_repeated_content_passed_through(self, request_):
        model = ScriptedModel(
            Completion(text='{"a": 1,', stop_reason=StopReason.TRUNCATED),
            Completion(text='{"a": 1, "b": 2}', stop_reason=StopReason.COMPLETE),
        )

        text = await complete_with_continuation(model, request_)

        assert text == '{"a": 1,{"a": 1, "b": 2}'

    @pytest.mark.asyncio
    async def test_custom_truncation_predicate(self, request_):
        model = ScriptedModel(
            Completion(text="one", stop_reason=StopReason.OTHER),
            Completion(text="two", stop_reason=StopReason.COMPLETE),
        )

        text = await complete_with_continuation(
            model, request_, is_truncated=lambda c: c.stop_reason != StopReason.COMPLETE,
        )

        assert text == "onetwo"
