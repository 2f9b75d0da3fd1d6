import asyncio
from collections.abc import Awaitable, Callable, Mapping
from logging import Logger, getLogger
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gitready.clients.errors.github import ClientError, QuotaExhaustedError
from gitready.settings import get_quota_threshold
from gitready.utilities.clock import SYSTEM_CLOCK, Clock
from gitready.utilities.polling import poll_until

REMAINING_HEADER = "x-ratelimit-remaining"
LIMIT_HEADER = "x-ratelimit-limit"
RESET_HEADER = "x-ratelimit-reset"

SNAPSHOT_TTL_SECONDS = 60.0
REFRESH_INTERVAL_SECONDS = 1.0
REFRESH_TIMEOUT_SECONDS = 5.0

QuotaFetcher = Callable[[], Awaitable["QuotaSnapshot"]]


class QuotaSnapshot(BaseModel):
    """The last observed state of the API request quota."""

    model_config = ConfigDict(frozen=True)

    remaining: int = Field(description="The number of requests left in the current window.")
    limit: int = Field(description="The number of requests allowed per window.")
    reset_epoch_seconds: int = Field(description="When the current window ends, in seconds since the epoch.")
    observed_at: float = Field(description="When the snapshot was taken, in seconds since the epoch.")

    @model_validator(mode="before")
    @classmethod
    def clamp_remaining(cls, data: Any) -> Any:  # pyright: ignore[reportAny]
        if isinstance(data, dict) and "remaining" in data and "limit" in data:
            return {**data, "remaining": min(int(data["remaining"]), int(data["limit"]))}  # pyright: ignore[reportUnknownArgumentType]
        return data  # pyright: ignore[reportAny]

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], observed_at: float) -> Self | None:
        """Build a snapshot from response headers, or None if any of the quota headers is missing or malformed."""

        lowered: dict[str, str] = {key.lower(): value for key, value in headers.items()}

        try:
            return cls(
                remaining=int(lowered[REMAINING_HEADER]),
                limit=int(lowered[LIMIT_HEADER]),
                reset_epoch_seconds=int(lowered[RESET_HEADER]),
                observed_at=observed_at,
            )
        except (KeyError, ValueError):
            return None

    def has_reset(self, now: float) -> bool:
        return now > self.reset_epoch_seconds

    def is_stale(self, now: float, ttl: float = SNAPSHOT_TTL_SECONDS) -> bool:
        return now - self.observed_at > ttl or self.has_reset(now)

    def effective_remaining(self, now: float) -> int:
        """Once the reset time has passed the quota is full again, whatever was last observed."""
        return self.limit if self.has_reset(now) else self.remaining


class RateGovernor:
    """Tracks the remaining request quota and refuses calls that would run it dry.

    Snapshots come primarily from the quota headers on every response (`observe`). When no snapshot is known, or
    the one we have is stale, a refresh is scheduled in the background using the injected fetcher. A failing
    refresh never blocks traffic: the governor logs and lets calls through.
    """

    fetcher: QuotaFetcher | None
    clock: Clock
    threshold: int
    ttl: float
    refresh_timeout: float
    logger: Logger

    _snapshot: QuotaSnapshot | None
    _refresh_task: asyncio.Task[QuotaSnapshot | None] | None

    def __init__(
        self,
        fetcher: QuotaFetcher | None = None,
        clock: Clock | None = None,
        threshold: int | None = None,
        ttl: float = SNAPSHOT_TTL_SECONDS,
        refresh_timeout: float = REFRESH_TIMEOUT_SECONDS,
        logger: Logger | None = None,
    ):
        self.fetcher = fetcher
        self.clock = clock or SYSTEM_CLOCK
        self.threshold = threshold if threshold is not None else get_quota_threshold()
        self.ttl = ttl
        self.refresh_timeout = refresh_timeout
        self.logger = logger or getLogger(__name__)

        self._snapshot = None
        self._refresh_task = None
        self._refresh_lock = asyncio.Lock()

    @property
    def snapshot(self) -> QuotaSnapshot | None:
        return self._snapshot

    def current(self, now: float | None = None) -> QuotaSnapshot | None:
        """The snapshot as it stands at `now`: a snapshot whose reset time has passed reports a full quota."""

        snapshot: QuotaSnapshot | None = self._snapshot

        if snapshot is None:
            return None

        now = now if now is not None else self.clock.now()

        if snapshot.has_reset(now):
            return snapshot.model_copy(update={"remaining": snapshot.limit})

        return snapshot

    def remaining(self) -> int | None:
        """The effective remaining quota, or None when nothing has been observed yet."""

        if self._snapshot is None:
            return None

        return self._snapshot.effective_remaining(now=self.clock.now())

    async def check_before_call(self, action: str = "Check rate limit") -> None:
        """Raise `QuotaExhaustedError` if the known quota is below the safety threshold and has not reset yet."""

        now: float = self.clock.now()
        snapshot: QuotaSnapshot | None = self._snapshot

        if snapshot is not None and not snapshot.has_reset(now) and snapshot.remaining < self.threshold:
            raise QuotaExhaustedError(action=action, remaining=snapshot.remaining, reset_epoch_seconds=snapshot.reset_epoch_seconds)

        if snapshot is None or snapshot.is_stale(now=now, ttl=self.ttl):
            self._schedule_refresh()

    def observe(self, headers: Mapping[str, str]) -> QuotaSnapshot | None:
        """Replace the snapshot with the quota reported by a response, if the response reported one."""

        if snapshot := QuotaSnapshot.from_headers(headers=headers, observed_at=self.clock.now()):
            self._snapshot = snapshot

        return snapshot

    async def refresh(self) -> QuotaSnapshot | None:
        """Fetch a fresh snapshot. Failures are logged and leave the current snapshot in place."""

        if self.fetcher is None:
            return None

        fetcher: QuotaFetcher = self.fetcher

        async with self._refresh_lock:
            try:
                snapshot: QuotaSnapshot = await poll_until(
                    lambda _deadline: fetcher(),
                    until=lambda _: True,
                    interval=REFRESH_INTERVAL_SECONDS,
                    timeout=self.refresh_timeout,
                    description="Refresh rate limit",
                    clock=self.clock,
                )
            except ClientError as e:
                self.logger.warning(f"Failed to refresh the rate limit, allowing requests to proceed: {e}")
                return None

            self._snapshot = snapshot

            return snapshot

    async def wait_for_refresh(self) -> None:
        """Wait for a scheduled background refresh, if one is running."""

        if self._refresh_task is not None:
            _ = await self._refresh_task

    def _schedule_refresh(self) -> None:
        if self.fetcher is None:
            return

        if self._refresh_task is not None and not self._refresh_task.done():
            return

        self._refresh_task = asyncio.create_task(self.refresh())
