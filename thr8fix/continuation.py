"""Continuation loop for completions cut short by the output-token limit."""

import logging
from typing import Awaitable, Callable

from .state import Completion, CompletionRequest, StopReason

logger = logging.getLogger(__name__)

CONTINUE_INSTRUCTION = (
    "Continue the JSON output exactly where you left off. Do not repeat any content."
)

CallFn = Callable[[CompletionRequest], Awaitable[Completion]]


def stopped_at_token_limit(completion: Completion) -> bool:
    return completion.stop_reason == StopReason.TRUNCATED


async def complete_with_continuation(
    call_fn: CallFn,
    request: CompletionRequest,
    max_continuations: int = 2,
    is_truncated: Callable[[Completion], bool] = stopped_at_token_limit,
) -> str:
    """Call the model, re-prompting while the output is truncated.

    At most ``max_continuations`` follow-up calls are made. Text is concatenated
    verbatim in call order; overlap between continuations is not removed.
    """
    buffer: list[str] = []
    calls = 0

    while True:
        if calls == 0:
            current = request
        else:
            current = request.model_copy(update={
                "messages": [
                    *request.messages,
                    {"role": "assistant", "content": "".join(buffer)},
                    {"role": "user", "content": CONTINUE_INSTRUCTION},
                ],
            })

        completion = await call_fn(current)
        calls += 1
        buffer.append(completion.text)

        if not is_truncated(completion):
            break
        if calls > max_continuations:
            logger.warning(
                f"[LLM] Output still truncated after {max_continuations} continuation(s); "
                "returning partial text"
            )
            break
        logger.info(f"[LLM] Response truncated (call {calls}), continuing...")

    return "".join(buffer)
