"""
Ordered provider fallback: try each provider in turn under its own timeout,
return the first non-None answer.
"""
import asyncio
from typing import Any, Awaitable, Callable, Sequence, TypeVar
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

Provider = Callable[..., Awaitable[T | None]]


def provider_name(provider: Callable) -> str:
    return getattr(provider, "__qualname__", None) or getattr(provider, "__name__", repr(provider))


async def first_success(
    providers: Sequence[Provider],
    *args: Any,
    timeout: float,
    label: str = "lookup",
) -> T | None:
    """Run providers in order; the first one returning a non-None value wins.

    A provider that raises or exceeds `timeout` is logged and skipped.
    Cancellation of the caller is propagated.
    """
    for provider in providers:
        name = provider_name(provider)
        try:
            result = await asyncio.wait_for(provider(*args), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("provider_timeout", label=label, provider=name, timeout=timeout)
            continue
        except Exception as e:
            logger.debug("provider_failed", label=label, provider=name, error=str(e))
            continue
        if result is not None:
            return result
    return None


async def first_success_over(
    providers: Sequence[Provider],
    queries: Sequence[Any],
    *,
    timeout: float,
    label: str = "lookup",
) -> T | None:
    """first_success for each query variant in order, stopping at the first hit."""
    for query in queries:
        result = await first_success(providers, query, timeout=timeout, label=label)
        if result is not None:
            return result
    return None
