"""In-process single-flight for expensive per-key computations.

Concurrent callers asking for the same key share one execution: the first
caller runs the coroutine, later callers await its result. Once the call
settles the key is forgotten, so a later call computes afresh.

Only coordinates coroutines within one event loop. Celery workers and other
server processes are not covered.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight:
    """Coalesce concurrent calls that share a key.

    Example:
        >>> flight = SingleFlight("duration")
        >>> duration = await flight.do(video_id, resolve, video_id)
    """

    def __init__(self, name: str = "singleflight"):
        self.name = name
        self._calls: dict[str, asyncio.Future] = {}

    def in_flight(self, key: str) -> bool:
        """Whether a call for ``key`` is currently running."""
        return key in self._calls

    async def do(
        self,
        key: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run ``func(*args, **kwargs)`` once per concurrent ``key``.

        Args:
            key: Coalescing key, typically a video ID
            func: Coroutine function producing the value

        Returns:
            The leader's result; waiters get the same object

        Raises:
            Whatever the leader's call raised, re-raised in every waiter
        """
        call = self._calls.get(key)
        if call is not None:
            logger.debug(f"{self.name}: joining in-flight call for {key}")
            return await asyncio.shield(call)

        call = asyncio.get_running_loop().create_future()
        self._calls[key] = call
        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            call.cancel()
            raise
        except Exception as e:
            call.set_exception(e)
            # Mark retrieved so an unobserved failure is not reported twice.
            call.exception()
            raise
        else:
            call.set_result(result)
            return result
        finally:
            self._calls.pop(key, None)
