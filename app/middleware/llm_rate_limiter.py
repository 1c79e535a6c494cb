"""
LLM Rate Limiter - Process-wide concurrency control for model backend calls.

Sessions are answered concurrently, each one running its models strictly in
sequence. This module bounds how many backend streams are open at once across
all of them:

1. **Global concurrency limit**: Max parallel backend calls across all sessions
2. **Request pacing**: Token bucket smoothing of call starts

Calls wait their turn instead of failing. Nothing here retries: a failed
backend call is reported once and the sequence moves on.

Usage:
    from app.middleware.llm_rate_limiter import LLMConcurrencyManager

    manager = await LLMConcurrencyManager.get_instance()
    async with manager.slot():
        async for chunk in model.astream(messages):
            ...
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from aiolimiter import AsyncLimiter

logger = logging.getLogger(__name__)


class LLMConcurrencyManager:
    """
    Singleton manager for backend call concurrency.

    Provides a global semaphore and rate limiter that all model calls share.
    """

    _instance: Optional[LLMConcurrencyManager] = None
    _lock: Optional[asyncio.Lock] = None

    def __init__(
        self,
        max_concurrent: int = 5,
        requests_per_second: float = 3.0,
    ):
        """
        Initialize the concurrency manager.

        Args:
            max_concurrent: Maximum parallel backend calls (default: 5)
            requests_per_second: Max call starts per second (default: 3.0)
        """
        self.max_concurrent = max_concurrent
        self.requests_per_second = requests_per_second

        # Semaphore for concurrent request limiting
        self._semaphore = asyncio.Semaphore(max_concurrent)

        # Token bucket rate limiter for smoothing request rate
        self._rate_limiter = AsyncLimiter(
            max_rate=requests_per_second,
            time_period=1.0,
        )

        # Stats for monitoring
        self._active_calls = 0
        self._total_calls = 0
        self._failed_calls = 0

        logger.info(
            f"LLM Concurrency Manager initialized: "
            f"max_concurrent={max_concurrent}, rps={requests_per_second}"
        )

    @classmethod
    def _get_lock(cls) -> asyncio.Lock:
        """Get or create the class-level lock."""
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_instance(
        cls,
        max_concurrent: int = 5,
        requests_per_second: float = 3.0,
    ) -> LLMConcurrencyManager:
        """Get or create the singleton instance."""
        if cls._instance is None:
            lock = cls._get_lock()
            async with lock:
                if cls._instance is None:
                    cls._instance = cls(
                        max_concurrent=max_concurrent,
                        requests_per_second=requests_per_second,
                    )
        return cls._instance

    @classmethod
    def get_instance_sync(
        cls,
        max_concurrent: int = 5,
        requests_per_second: float = 3.0,
    ) -> LLMConcurrencyManager:
        """Get or create the singleton instance (sync version for init)."""
        if cls._instance is None:
            cls._instance = cls(
                max_concurrent=max_concurrent,
                requests_per_second=requests_per_second,
            )
        return cls._instance

    @classmethod
    def current(cls) -> Optional[LLMConcurrencyManager]:
        """Return the configured manager, or None if none was created yet."""
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the singleton so the next call reconfigures it."""
        cls._instance = None
        cls._lock = None

    async def acquire(self) -> None:
        """
        Acquire a slot for making a backend call.

        Waits for a semaphore slot (concurrency limit), then for the
        rate limiter (requests per second).
        """
        await self._semaphore.acquire()
        self._active_calls += 1
        self._total_calls += 1

        try:
            await self._rate_limiter.acquire()
        except BaseException:
            self.release()
            raise

        logger.debug(
            f"LLM call acquired: active={self._active_calls}/{self.max_concurrent}, "
            f"total={self._total_calls}"
        )

    def release(self) -> None:
        """Release the slot after a backend call completes."""
        self._semaphore.release()
        self._active_calls -= 1
        logger.debug(f"LLM call released: active={self._active_calls}/{self.max_concurrent}")

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a call slot for the duration of the block."""
        await self.acquire()
        try:
            yield
        except Exception:
            self._failed_calls += 1
            raise
        finally:
            self.release()

    def get_stats(self) -> dict[str, Any]:
        """Get current stats for monitoring."""
        return {
            "active_calls": self._active_calls,
            "max_concurrent": self.max_concurrent,
            "total_calls": self._total_calls,
            "failed_calls": self._failed_calls,
            "requests_per_second": self.requests_per_second,
        }


def configure_global_rate_limits(
    max_concurrent: int = 5,
    requests_per_second: float = 3.0,
) -> LLMConcurrencyManager:
    """
    Configure the global limits before any model is called.

    This should be called once at application startup.

    Args:
        max_concurrent: Maximum parallel backend calls
        requests_per_second: Maximum call starts per second
    """
    manager = LLMConcurrencyManager.get_instance_sync(
        max_concurrent=max_concurrent,
        requests_per_second=requests_per_second,
    )
    logger.info(
        f"Global LLM rate limits configured: "
        f"max_concurrent={max_concurrent}, rps={requests_per_second}"
    )
    return manager
