from collections.abc import Awaitable, Callable
from logging import Logger, getLogger
from typing import TypeVar

from gitready.clients.errors.github import ClientError, TimeoutExceededError
from gitready.utilities.clock import SYSTEM_CLOCK, Clock

logger: Logger = getLogger(__name__)

T = TypeVar("T")


async def poll_until(
    check: Callable[[float], Awaitable[T]],
    *,
    until: Callable[[T], bool],
    interval: float,
    timeout: float,
    description: str,
    clock: Clock | None = None,
    retry_on: tuple[type[BaseException], ...] = (ClientError,),
) -> T:
    """Call `check` every `interval` seconds until `until` accepts its result or `timeout` seconds elapse.

    Errors listed in `retry_on` are remembered and the check is retried. When the deadline passes, the last
    error observed is raised; if the check never failed, a `TimeoutExceededError` is raised instead.

    Args:
        check: The coroutine function to call on each attempt. It receives the absolute deadline (seconds since
            the epoch) so that its own retries can stop there too.
        until: The predicate that decides whether a result ends the wait.
        interval: The number of seconds to sleep between attempts.
        timeout: The overall deadline, in seconds, measured from the first attempt.
        description: What is being waited on, used in logs and the timeout error.
        clock: The clock used to measure the deadline and to sleep.
        retry_on: The exception types that are treated as "not ready yet".
    """

    clock = clock or SYSTEM_CLOCK

    deadline: float = clock.now() + timeout
    last_error: BaseException | None = None

    while clock.now() < deadline:
        try:
            result: T = await check(deadline)
        except retry_on as e:
            logger.debug(f"Still waiting for {description}: {e}")
            last_error = e
        else:
            if until(result):
                return result

        # Never sleep up to or past the deadline.
        if clock.now() + interval >= deadline:
            break

        await clock.sleep(interval)

    if last_error is not None:
        raise last_error

    raise TimeoutExceededError(action=description, timeout=timeout)
