"""
Model response generation.

A generator turns (model descriptor, transcript) into a lazy, finite stream
of text fragments. `generate()` consumes that stream, forwards every fragment
to a callback in arrival order, and returns the concatenated text. It either
completes or raises `ModelBackendError`; it never returns a partial answer.

Output starting with `ERROR_PREFIX` is a soft failure reported by the
backend itself (e.g. a content filter stop). It is returned like any other
text.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Sequence

from langchain.chat_models import init_chat_model
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_openai import ChatOpenAI

from app.config import Settings, get_settings
from app.middleware.llm_rate_limiter import LLMConcurrencyManager
from app.models.chat import Message, ModelDescriptor, Role
from app.utils.http_client import get_http_client

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error:"

# Stop reasons reported when a provider blocks the response
CONTENT_FILTER_STOP_REASONS = {"content_filter", "content_filtered", "guardrail_intervened"}

ChunkCallback = Callable[[str], Awaitable[None]]


class ModelBackendError(Exception):
    """A backend call could not be completed."""

    def __init__(self, model_id: str, reason: Optional[str] = None):
        self.model_id = model_id
        self.reason = reason
        super().__init__(reason or f"Backend call failed for {model_id}")


class ModelResponseGenerator(ABC):
    """Abstract single call to a language-model backend."""

    @abstractmethod
    def stream(
        self,
        descriptor: ModelDescriptor,
        transcript: Sequence[Message],
    ) -> AsyncGenerator[str, None]:
        """Yield text fragments for one completion, in arrival order."""

    async def generate(
        self,
        descriptor: ModelDescriptor,
        transcript: Sequence[Message],
        on_chunk: ChunkCallback,
    ) -> str:
        """
        Run one completion, forwarding each fragment to `on_chunk`.

        Args:
            descriptor: Model to call
            transcript: Ordered conversation so far
            on_chunk: Awaited once per non-empty fragment

        Returns:
            The full concatenated text

        Raises:
            ModelBackendError: if the backend call fails at any point.
                Exceptions raised by `on_chunk` propagate unchanged.
        """
        parts: list[str] = []
        fragments = self.stream(descriptor, transcript)
        try:
            while True:
                try:
                    fragment = await fragments.__anext__()
                except StopAsyncIteration:
                    break
                except ModelBackendError:
                    raise
                except Exception as e:
                    raise ModelBackendError(descriptor.id, str(e) or None) from e

                if not fragment:
                    continue
                parts.append(fragment)
                await on_chunk(fragment)
        finally:
            # Releases the backend's concurrency slot even when on_chunk fails
            await fragments.aclose()

        return "".join(parts)


# =============================================================================
# LANGCHAIN BACKEND
# =============================================================================

def to_langchain_messages(transcript: Sequence[Message]) -> list[BaseMessage]:
    """Convert the transcript to LangChain messages."""
    messages: list[BaseMessage] = []
    for message in transcript:
        if message.role == Role.USER:
            messages.append(HumanMessage(content=message.content))
        else:
            messages.append(AIMessage(content=message.content, name=message.model_id))
    return messages


def extract_text(content: Any) -> str:
    """
    Extract plain text from a chunk's content.

    Content is either a string or a list of content blocks; only `text`
    blocks are kept (reasoning blocks are not part of the answer).
    """
    if isinstance(content, str):
        return content
    text = ""
    if isinstance(content, list):
        for block in content:
            if isinstance(block, str):
                text += block
            elif isinstance(block, dict) and block.get("type") == "text":
                text += block.get("text", "")
    return text


def get_stop_reason(chunk: Any) -> Optional[str]:
    metadata = getattr(chunk, "response_metadata", None) or {}
    return metadata.get("finish_reason") or metadata.get("stopReason") or metadata.get("stop_reason")


class LangChainResponseGenerator(ModelResponseGenerator):
    """Streams completions through LangChain chat models."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._models: dict[str, BaseChatModel] = {}

    def get_model(self, descriptor: ModelDescriptor) -> BaseChatModel:
        """Get (or build and cache) the chat model for a descriptor."""
        model = self._models.get(descriptor.id)
        if model is None:
            model = self._build_model(descriptor)
            self._models[descriptor.id] = model
        return model

    def _build_model(self, descriptor: ModelDescriptor) -> BaseChatModel:
        provider = descriptor.provider or self.settings.default_model_provider
        params = descriptor.parameters

        if provider == "openai":
            logger.info(f"Using ChatOpenAI for {descriptor.id}: {descriptor.model_ref}")
            return ChatOpenAI(
                model=descriptor.model_ref,
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
                temperature=params.temperature,
                max_tokens=params.max_tokens,
                streaming=True,
                http_async_client=get_http_client(),
            )

        model_kwargs: dict[str, Any] = {
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }
        if provider.startswith("bedrock"):
            model_kwargs["region_name"] = self.settings.aws_region

        logger.info(f"Using {provider} for {descriptor.id}: {descriptor.model_ref}")
        return init_chat_model(f"{provider}:{descriptor.model_ref}", **model_kwargs)

    async def stream(
        self,
        descriptor: ModelDescriptor,
        transcript: Sequence[Message],
    ) -> AsyncGenerator[str, None]:
        model = self.get_model(descriptor)
        messages = to_langchain_messages(transcript)
        manager = await LLMConcurrencyManager.get_instance(
            max_concurrent=self.settings.llm_max_concurrent,
            requests_per_second=self.settings.llm_requests_per_second,
        )

        produced_text = False
        stop_reason: Optional[str] = None
        async with manager.slot():
            async for chunk in model.astream(messages):
                stop_reason = get_stop_reason(chunk) or stop_reason
                text = extract_text(chunk.content)
                if text:
                    produced_text = True
                    yield text

        if not produced_text and stop_reason in CONTENT_FILTER_STOP_REASONS:
            logger.warning(f"Response from {descriptor.id} blocked (stop reason: {stop_reason})")
            yield f"{ERROR_PREFIX} Response blocked by content filter"
