"""Fix generation: ask the LLM for a FixProposal for one finding."""

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from .continuation import complete_with_continuation
from .errors import DecodeError
from .prompts.fix import FIX_SYSTEM_PROMPT, build_fix_user_message
from .response_parser import decode
from .state import (
    CompletionRequest,
    FixProposal,
    Recommendation,
    Risk,
    ScannedFile,
    Vulnerability,
)

logger = logging.getLogger(__name__)


class FixGenerator(Protocol):
    async def propose_fix(
        self,
        vuln: Vulnerability,
        risk: Optional[Risk],
        recommendation: Optional[Recommendation],
        files: list[ScannedFile],
    ) -> Optional[FixProposal]: ...


class LLMFixGenerator:
    """Builds the fix prompt, runs it with continuation and decodes the reply.

    Raises DecodeError when the reply holds no usable proposal; LLM failures
    surface as ExternalServiceError from the completion service.
    """

    def __init__(self, completion_service, max_output_tokens: int = 8192,
                 max_continuations: int = 2):
        self.completion_service = completion_service
        self.max_output_tokens = max_output_tokens
        self.max_continuations = max_continuations

    async def propose_fix(
        self,
        vuln: Vulnerability,
        risk: Optional[Risk],
        recommendation: Optional[Recommendation],
        files: list[ScannedFile],
    ) -> Optional[FixProposal]:
        user_message = build_fix_user_message(vuln, risk, recommendation, files)
        logger.debug(f"[FIX PROMPT] {vuln.id} ({len(user_message)} chars)\n{user_message[:3000]}")

        request = CompletionRequest(
            system=FIX_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": user_message}],
            max_output_tokens=self.max_output_tokens,
        )
        text = await complete_with_continuation(
            self.completion_service.complete, request, self.max_continuations,
        )

        data = decode(text)
        if not isinstance(data, dict):
            raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")
        try:
            proposal = FixProposal.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Fix proposal does not match schema: {e}") from e

        logger.info(
            f"[FIX] {vuln.id}: confidence={proposal.confidence.value}, "
            f"files={[f.path for f in proposal.files]}"
        )
        return proposal
