"""LangChain-backed completion service with provider routing."""

import logging
import os

from .errors import ExternalServiceError
from .state import Completion, CompletionRequest, StopReason

logger = logging.getLogger(__name__)

COMPLETE_STOP_REASONS = {"end_turn", "stop", "stop_sequence", "complete"}
TRUNCATED_STOP_REASONS = {"max_tokens", "length", "max_output_tokens"}


# Prefixed identifiers name their provider; bare "claude-*" goes to Anthropic,
# anything else to OpenAI.
PROVIDER_PREFIXES = ("openai_compat/", "openrouter/", "bedrock/")
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


def parse_model_provider(model_name: str) -> tuple[str, str]:
    """Split a model identifier into (provider, api_model)."""
    for prefix in PROVIDER_PREFIXES:
        if model_name.startswith(prefix):
            return prefix.rstrip("/"), model_name[len(prefix):]
    if model_name.startswith("claude-"):
        return "anthropic", model_name
    return "openai", model_name


def _require_env(model: str, *names: str) -> list[str]:
    missing = [n for n in names if not os.environ.get(n)]
    if missing:
        raise ValueError(f"{' and '.join(missing)} must be set for model '{model}'")
    return [os.environ[n] for n in names]


def init_llm(model: str, max_tokens: int = 8192):
    """Build a LangChain chat model for the provider the identifier names."""
    provider, api_model = parse_model_provider(model)
    logger.info(f"[LLM] {model}: provider={provider}, api_model={api_model}, max_tokens={max_tokens}")
    common = {"model": api_model, "temperature": 0, "max_tokens": max_tokens}

    if provider == "anthropic":
        (api_key,) = _require_env(model, "ANTHROPIC_API_KEY")
        from langchain_anthropic import ChatAnthropic
        return ChatAnthropic(api_key=api_key, **common)

    if provider == "bedrock":
        _require_env(model, "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY")
        from langchain_aws import ChatBedrockConverse
        return ChatBedrockConverse(
            region_name=os.environ.get("AWS_DEFAULT_REGION", "us-east-1"), **common,
        )

    from langchain_openai import ChatOpenAI
    if provider == "openrouter":
        (api_key,) = _require_env(model, "OPENROUTER_API_KEY")
        return ChatOpenAI(api_key=api_key, base_url=OPENROUTER_BASE_URL,
                          default_headers={"X-Title": "thr8fix"}, **common)
    if provider == "openai_compat":
        (base_url,) = _require_env(model, "OPENAI_COMPAT_BASE_URL")
        # local servers (Ollama, vLLM) accept any key
        return ChatOpenAI(api_key=os.environ.get("OPENAI_COMPAT_API_KEY") or "ollama",
                          base_url=base_url, **common)
    (api_key,) = _require_env(model, "OPENAI_API_KEY")
    return ChatOpenAI(api_key=api_key, **common)


def map_stop_reason(response_metadata: dict) -> StopReason:
    """Normalise provider-specific stop reasons."""
    raw = (
        response_metadata.get("stop_reason")
        or response_metadata.get("finish_reason")
        or response_metadata.get("stopReason")
        or ""
    )
    raw = str(raw).lower()
    if raw in TRUNCATED_STOP_REASONS:
        return StopReason.TRUNCATED
    if raw in COMPLETE_STOP_REASONS:
        return StopReason.COMPLETE
    return StopReason.OTHER


def _content_text(content) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
        elif isinstance(block, str):
            parts.append(block)
    return "".join(parts)


class LangChainCompletionService:
    """Completion service over any LangChain chat model."""

    def __init__(self, llm):
        self.llm = llm

    async def complete(self, request: CompletionRequest) -> Completion:
        from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

        lc_messages = [SystemMessage(content=request.system)]
        for msg in request.messages:
            if msg["role"] == "assistant":
                lc_messages.append(AIMessage(content=msg["content"]))
            else:
                lc_messages.append(HumanMessage(content=msg["content"]))

        llm = self.llm.bind(max_tokens=request.max_output_tokens)
        try:
            response = await llm.ainvoke(lc_messages)
        except Exception as e:
            raise ExternalServiceError(f"LLM call failed: {type(e).__name__}: {e}") from e

        metadata = getattr(response, "response_metadata", None) or {}
        completion = Completion(
            text=_content_text(response.content),
            stop_reason=map_stop_reason(metadata),
        )
        logger.debug(
            f"[LLM] {len(completion.text)} chars, stop_reason={completion.stop_reason.value}"
        )
        return completion
