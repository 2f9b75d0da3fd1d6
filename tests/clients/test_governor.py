import pytest

from gitready.clients.errors.github import QuotaExhaustedError, RequestError
from gitready.clients.governor import QuotaSnapshot, RateGovernor
from tests.conftest import START_TIME, FakeClock, quota_headers

RESET = int(START_TIME) + 600


def snapshot_at(remaining: int, limit: int = 5000, reset: int = RESET, observed_at: float = START_TIME) -> QuotaSnapshot:
    return QuotaSnapshot(remaining=remaining, limit=limit, reset_epoch_seconds=reset, observed_at=observed_at)


class TestQuotaSnapshot:
    def test_remaining_is_clamped_to_limit(self):
        snapshot = snapshot_at(remaining=7000, limit=5000)
        assert snapshot.remaining == 5000

    def test_from_headers_is_case_insensitive(self):
        snapshot = QuotaSnapshot.from_headers(headers=quota_headers(remaining=42, reset=RESET), observed_at=START_TIME)
        assert snapshot == snapshot_at(remaining=42)

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"x-ratelimit-remaining": "10", "x-ratelimit-limit": "60"},
            {"x-ratelimit-remaining": "ten", "x-ratelimit-limit": "60", "x-ratelimit-reset": "1"},
        ],
    )
    def test_from_headers_missing_or_malformed(self, headers: dict[str, str]):
        assert QuotaSnapshot.from_headers(headers=headers, observed_at=START_TIME) is None

    def test_stale_after_ttl(self):
        snapshot = snapshot_at(remaining=100)
        assert not snapshot.is_stale(now=START_TIME + 60)
        assert snapshot.is_stale(now=START_TIME + 61)

    def test_full_after_reset(self):
        snapshot = snapshot_at(remaining=0)
        assert snapshot.effective_remaining(now=RESET) == 0
        assert snapshot.effective_remaining(now=RESET + 1) == 5000
        assert snapshot.is_stale(now=RESET + 1)


class TestRateGovernor:
    async def test_unknown_quota_proceeds(self, governor: RateGovernor):
        await governor.check_before_call()
        assert governor.snapshot is None
        assert governor.remaining() is None

    async def test_refuses_below_threshold(self, governor: RateGovernor):
        _ = governor.observe(quota_headers(remaining=9, reset=RESET))

        with pytest.raises(QuotaExhaustedError) as exc_info:
            await governor.check_before_call(action="Get repository")

        assert exc_info.value.remaining == 9
        assert exc_info.value.reset_epoch_seconds == RESET

    async def test_allows_at_threshold(self, governor: RateGovernor):
        _ = governor.observe(quota_headers(remaining=10, reset=RESET))
        await governor.check_before_call()

    async def test_allows_after_reset(self, governor: RateGovernor, clock: FakeClock):
        _ = governor.observe(quota_headers(remaining=0, reset=RESET))

        clock.current = RESET + 1

        await governor.check_before_call()
        assert governor.remaining() == 5000

        current = governor.current()
        assert current is not None
        assert current.remaining == 5000

    async def test_observe_ignores_responses_without_quota(self, governor: RateGovernor):
        _ = governor.observe(quota_headers(remaining=100, reset=RESET))
        assert governor.observe({"content-type": "application/json"}) is None
        assert governor.remaining() == 100

    async def test_last_observation_wins(self, governor: RateGovernor):
        _ = governor.observe(quota_headers(remaining=100, reset=RESET))
        _ = governor.observe(quota_headers(remaining=4000, reset=RESET))
        assert governor.remaining() == 4000


class TestRefresh:
    async def test_refresh_when_unknown(self, clock: FakeClock):
        calls: list[float] = []

        async def fetcher() -> QuotaSnapshot:
            calls.append(clock.now())
            return snapshot_at(remaining=3000, observed_at=clock.now())

        governor = RateGovernor(fetcher=fetcher, clock=clock, threshold=10)

        await governor.check_before_call()
        await governor.check_before_call()
        await governor.wait_for_refresh()

        assert len(calls) == 1
        assert governor.remaining() == 3000

    async def test_refresh_when_stale(self, clock: FakeClock):
        calls: list[float] = []

        async def fetcher() -> QuotaSnapshot:
            calls.append(clock.now())
            return snapshot_at(remaining=2000, observed_at=clock.now())

        governor = RateGovernor(fetcher=fetcher, clock=clock, threshold=10)
        _ = governor.observe(quota_headers(remaining=4000, reset=RESET))

        await governor.check_before_call()
        await governor.wait_for_refresh()
        assert calls == []

        clock.current += 120

        await governor.check_before_call()
        await governor.wait_for_refresh()
        assert len(calls) == 1
        assert governor.remaining() == 2000

    async def test_refresh_failure_fails_open(self, clock: FakeClock, caplog: pytest.LogCaptureFixture):
        async def fetcher() -> QuotaSnapshot:
            raise RequestError(action="Get rate limit", message="connection reset")

        governor = RateGovernor(fetcher=fetcher, clock=clock, threshold=10, refresh_timeout=3)

        assert await governor.refresh() is None
        assert governor.snapshot is None
        assert "allowing requests to proceed" in caplog.text

        await governor.check_before_call()
        await governor.wait_for_refresh()
        assert governor.snapshot is None
