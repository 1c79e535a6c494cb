"""Middleware components for the chat service."""

from app.middleware.llm_rate_limiter import (
    LLMConcurrencyManager,
    configure_global_rate_limits,
)

__all__ = [
    "LLMConcurrencyManager",
    "configure_global_rate_limits",
]
