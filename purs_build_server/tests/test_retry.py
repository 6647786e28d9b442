import pytest

from ..server.utils.retry import retry


class Flaky:
    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"attempt {self.calls}")
        return "ready"


class Sleeper:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_succeeds_after_failures():
    operation = Flaky(2)
    sleep = Sleeper()

    outcome = await retry(operation, retries=9, delay=0.333, sleep=sleep)

    assert outcome.succeeded
    assert outcome.value == "ready"
    assert outcome.attempts == 3
    assert sleep.delays == [0.333, 0.333]


@pytest.mark.asyncio
async def test_exhaustion_is_reported_not_raised():
    operation = Flaky(100)
    sleep = Sleeper()

    outcome = await retry(operation, retries=9, delay=0.333, sleep=sleep)

    assert not outcome.succeeded
    assert outcome.attempts == 10
    assert operation.calls == 10
    assert sleep.delays == [0.333] * 9
    assert isinstance(outcome.error, ConnectionError)


@pytest.mark.asyncio
async def test_no_delay_before_first_attempt():
    sleep = Sleeper()

    outcome = await retry(Flaky(0), retries=3, delay=1, sleep=sleep)

    assert outcome.attempts == 1
    assert sleep.delays == []
