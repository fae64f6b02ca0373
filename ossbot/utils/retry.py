"""Retry helper for outbound HTTP calls.

Both raised exceptions and unacceptable results can trigger a retry, so a
5xx response from Mailgun is retried the same way as a dropped connection.

Example:
    >>> @async_retry(
    ...     exceptions=(httpx.TransportError,),
    ...     retry_if=lambda response: response.status_code >= 500,
    ... )
    ... async def post_message(client, data):
    ...     return await client.post("/messages", data=data)

The delay before retry N is ``backoff_factor ** N`` seconds.
"""

import asyncio
import functools
from collections.abc import Callable
from typing import Any

import structlog

log = structlog.get_logger(__name__)


def server_error(response: Any) -> bool:
    """True for HTTP responses with a 5xx status."""
    return getattr(response, "status_code", 0) >= 500


def async_retry(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Any], bool] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Retry an async function with exponential backoff.

    Args:
        max_attempts: Maximum number of calls before giving up
        backoff_factor: Base for the exponential delay between attempts
        exceptions: Exception types that trigger a retry. Anything else
            propagates immediately.
        retry_if: Optional predicate on the return value. When it returns
            True the call is retried; after the last attempt the value is
            returned as is so the caller can report it.

    Raises:
        The last caught exception if all attempts are exhausted.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        name = getattr(func, "__name__", repr(func))

        async def backoff(attempt: int, **context: Any) -> None:
            delay = backoff_factor**attempt
            log.warning(
                "retry_attempt",
                function=name,
                attempt=attempt,
                max_attempts=max_attempts,
                delay=delay,
                **context,
            )
            await asyncio.sleep(delay)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        log.error("retry_exhausted", function=name, attempts=attempt, error=str(e))
                        raise
                    await backoff(attempt, error=str(e))
                else:
                    if retry_if is None or not retry_if(result):
                        return result
                    if attempt >= max_attempts:
                        log.error("retry_exhausted", function=name, attempts=attempt, result=repr(result))
                        return result
                    await backoff(attempt, result=repr(result))
                attempt += 1

        return wrapper

    return decorator
