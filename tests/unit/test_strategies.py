# tests/unit/test_strategies.py
"""
Tests for the serial, grid and parallel batching strategies.

A fake client and compositor stand in for Gemini and Pillow so the tests
count requests and composites directly.

Tests cover:
    - Grid: request and composite counts, batch atomicity, quota pause
    - Serial: cooldown retries, error demotion, inter-item pacing
    - Parallel: whole-batch retry skipping successes, non-retryable failure
    - Idempotent resume and credential failures for every strategy
"""

import time

import pytest

from sticker_studio.cancellation import CancellationToken
from sticker_studio.config.schema import (
    GridConfig,
    ParallelConfig,
    SchedulerConfig,
    SerialConfig,
)
from sticker_studio.generation.errors import (
    InvalidCredential,
    QuotaExceeded,
    SafetyBlocked,
)
from sticker_studio.models.images import ImagePayload
from sticker_studio.models.items import GenerationStatus, PlanItem
from sticker_studio.models.ledger import ResultLedger
from sticker_studio.scheduling.context import RunContext, RunRuntime
from sticker_studio.scheduling.strategies import (
    GridStrategy,
    ParallelBatchStrategy,
    SerialStrategy,
    chunked,
    create_strategy,
)


class FakeClient:
    """Records calls; failures are queued per caption (or for every grid call)."""

    def __init__(self, single_failures=None, grid_failures=None):
        self.single_calls: list[str] = []
        self.grid_calls: list[list[str]] = []
        self.single_failures = {k: list(v) for k, v in (single_failures or {}).items()}
        self.grid_failures = list(grid_failures or [])

    async def generate_single(self, caption, style_prompt, reference_image=None, token=None):
        self.single_calls.append(caption)
        failures = self.single_failures.get(caption)
        if failures:
            raise failures.pop(0)
        return ImagePayload(data=f"raw:{caption}".encode())

    async def generate_grid(self, captions, style_prompt, reference_image=None, token=None):
        self.grid_calls.append(list(captions))
        if self.grid_failures:
            raise self.grid_failures.pop(0)
        return ImagePayload(data=b"grid")


class FakeCompositor:
    def __init__(self):
        self.processed: list[str] = []

    async def process(self, raw, caption):
        self.processed.append(caption)
        return ImagePayload(data=b"sticker:" + raw.data)

    def slice(self, grid, n):
        return [ImagePayload(data=f"tile{i}".encode()) for i in range(n)]


def _plan(n: int) -> list[PlanItem]:
    return [PlanItem(id=i, caption=f"c{i}") for i in range(n)]


async def _setup(n: int, client: FakeClient | None = None):
    plan = _plan(n)
    ledger = ResultLedger()
    await ledger.reset(plan)
    client = client or FakeClient()
    compositor = FakeCompositor()
    runtime = RunRuntime(client=client, compositor=compositor, ledger=ledger)
    context = RunContext(run_id="abc123def456", token=CancellationToken(), style_prompt="chibi")
    return plan, ledger, client, compositor, runtime, context


def _statuses(ledger: ResultLedger) -> list[str]:
    return [r.status.value for r in ledger.snapshot()]


def test_chunked_preserves_order():
    plan = _plan(7)
    assert [[i.id for i in b] for b in chunked(plan, 3)] == [[0, 1, 2], [3, 4, 5], [6]]


def test_create_strategy_by_name():
    config = SchedulerConfig()
    assert create_strategy(config).name == "grid"
    assert create_strategy(config, "serial").name == "serial"
    assert create_strategy(config, "parallel").name == "parallel"
    with pytest.raises(ValueError):
        create_strategy(config, "turbo")


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_grid_eight_captions_two_requests():
    """8 captions -> 2 grid requests, 8 composites, 8 successes."""
    plan, ledger, client, compositor, runtime, context = await _setup(8)
    strategy = GridStrategy(GridConfig(batch_delay=0, quota_pause=0))

    await strategy.run(plan, context, runtime)

    assert client.grid_calls == [["c0", "c1", "c2", "c3"], ["c4", "c5", "c6", "c7"]]
    assert sorted(compositor.processed) == [f"c{i}" for i in range(8)]
    assert _statuses(ledger) == ["success"] * 8
    assert ledger.get(5).raw_image == ImagePayload(data=b"tile1")


@pytest.mark.asyncio
async def test_grid_partial_last_batch():
    plan, ledger, client, compositor, runtime, context = await _setup(6)
    await GridStrategy(GridConfig(batch_delay=0)).run(plan, context, runtime)

    assert [len(c) for c in client.grid_calls] == [4, 2]
    assert ledger.is_complete()


@pytest.mark.asyncio
async def test_grid_batch_failure_is_atomic():
    """A failed grid request marks all of its members error and none success."""
    client = FakeClient(grid_failures=[SafetyBlocked("SAFETY")])
    plan, ledger, client, compositor, runtime, context = await _setup(8, client)

    await GridStrategy(GridConfig(batch_delay=0, quota_pause=0)).run(plan, context, runtime)

    assert _statuses(ledger) == ["error"] * 4 + ["success"] * 4
    details = {ledger.get(i).error_detail for i in range(4)}
    assert len(details) == 1
    assert "SAFETY" in details.pop()
    assert sorted(compositor.processed) == [f"c{i}" for i in range(4, 8)]


@pytest.mark.asyncio
async def test_grid_quota_failure_pauses(monkeypatch):
    client = FakeClient(grid_failures=[QuotaExceeded("429")])
    plan, ledger, client, compositor, runtime, context = await _setup(8, client)
    sleeps: list[float] = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(context.token, "sleep", fake_sleep)
    await GridStrategy(GridConfig(batch_delay=10, quota_pause=7)).run(plan, context, runtime)

    assert sleeps == [7, 10]
    assert "wait about a minute" in ledger.get(0).error_detail.lower()


# ---------------------------------------------------------------------------
# Serial
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_serial_retries_after_cooldown():
    """Item 3 fails twice retryably, then succeeds after two cooldowns."""
    cooldown = 0.1
    client = FakeClient(single_failures={"c2": [QuotaExceeded("429"), QuotaExceeded("429")]})
    plan, ledger, client, compositor, runtime, context = await _setup(4, client)
    strategy = SerialStrategy(SerialConfig(cooldown=cooldown, max_retries=2, item_delay=0))

    start = time.monotonic()
    await strategy.run(plan, context, runtime)
    elapsed = time.monotonic() - start

    assert _statuses(ledger) == ["success"] * 4
    assert client.single_calls.count("c2") == 3
    assert elapsed >= 2 * cooldown


@pytest.mark.asyncio
async def test_serial_exhausted_retries_demote_to_error():
    client = FakeClient(single_failures={"c1": [QuotaExceeded("429")] * 5})
    plan, ledger, client, compositor, runtime, context = await _setup(3, client)

    await SerialStrategy(SerialConfig(cooldown=0, max_retries=2, item_delay=0)).run(plan, context, runtime)

    assert _statuses(ledger) == ["success", "error", "success"]
    assert client.single_calls.count("c1") == 3


@pytest.mark.asyncio
async def test_serial_non_retryable_not_retried():
    client = FakeClient(single_failures={"c0": [SafetyBlocked("SAFETY")]})
    plan, ledger, client, compositor, runtime, context = await _setup(2, client)

    await SerialStrategy(SerialConfig(cooldown=0, item_delay=0)).run(plan, context, runtime)

    assert client.single_calls == ["c0", "c1"]
    assert _statuses(ledger) == ["error", "success"]


@pytest.mark.asyncio
async def test_serial_paces_items(monkeypatch):
    plan, ledger, client, compositor, runtime, context = await _setup(3)
    sleeps: list[float] = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(context.token, "sleep", fake_sleep)
    await SerialStrategy(SerialConfig(item_delay=5)).run(plan, context, runtime)

    assert sleeps == [5, 5]


# ---------------------------------------------------------------------------
# Parallel
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_parallel_retries_whole_batch_skipping_successes():
    client = FakeClient(single_failures={"c1": [QuotaExceeded("429")]})
    plan, ledger, client, compositor, runtime, context = await _setup(3, client)
    strategy = ParallelBatchStrategy(ParallelConfig(backoff=0, batch_delay=0))

    await strategy.run(plan, context, runtime)

    assert _statuses(ledger) == ["success"] * 3
    # First attempt: all three; retry: only the failed member
    assert sorted(client.single_calls) == ["c0", "c1", "c1", "c2"]


@pytest.mark.asyncio
async def test_parallel_non_retryable_marks_unresolved_error():
    client = FakeClient(single_failures={"c1": [SafetyBlocked("SAFETY")]})
    plan, ledger, client, compositor, runtime, context = await _setup(3, client)

    await ParallelBatchStrategy(ParallelConfig(backoff=0, batch_delay=0)).run(plan, context, runtime)

    assert _statuses(ledger) == ["success", "error", "success"]
    assert "SAFETY" in ledger.get(1).error_detail
    assert client.single_calls.count("c1") == 1


@pytest.mark.asyncio
async def test_parallel_retry_budget_exhausted():
    client = FakeClient(single_failures={"c0": [QuotaExceeded("429")] * 10})
    plan, ledger, client, compositor, runtime, context = await _setup(2, client)

    await ParallelBatchStrategy(ParallelConfig(backoff=0, max_retries=2, batch_delay=0)).run(
        plan, context, runtime
    )

    assert _statuses(ledger) == ["error", "success"]
    assert client.single_calls.count("c0") == 3


def test_parallel_batch_delay_scales_with_plan_size():
    strategy = ParallelBatchStrategy(ParallelConfig())
    assert strategy.batch_delay(8) == 5
    assert strategy.batch_delay(9) == 10


# ---------------------------------------------------------------------------
# Shared contract
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "strategy",
    [
        SerialStrategy(SerialConfig(cooldown=0, item_delay=0)),
        GridStrategy(GridConfig(batch_delay=0)),
        ParallelBatchStrategy(ParallelConfig(backoff=0, batch_delay=0)),
    ],
    ids=["serial", "grid", "parallel"],
)
async def test_resume_skips_successful_items(strategy):
    """Running again over a partly successful ledger only requests the rest."""
    plan, ledger, client, compositor, runtime, context = await _setup(4)
    for item in plan[:2]:
        await ledger.record_success(item, ImagePayload(data=b"old"), ImagePayload(data=b"old"))

    await strategy.run(plan, context, runtime)

    requested = client.single_calls + [c for call in client.grid_calls for c in call]
    assert sorted(requested) == ["c2", "c3"]
    assert ledger.get(0).processed_image == ImagePayload(data=b"old")
    assert _statuses(ledger) == ["success"] * 4


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "strategy",
    [
        SerialStrategy(SerialConfig(cooldown=0, item_delay=0)),
        ParallelBatchStrategy(ParallelConfig(backoff=0, batch_delay=0, batch_size=1)),
    ],
    ids=["serial", "parallel"],
)
async def test_invalid_credential_stops_run(strategy):
    bad_key = InvalidCredential("401", user_message="API key rejected.")
    client = FakeClient(single_failures={"c0": [bad_key]})
    plan, ledger, client, compositor, runtime, context = await _setup(3, client)

    with pytest.raises(InvalidCredential):
        await strategy.run(plan, context, runtime)

    assert client.single_calls == ["c0"]
    assert ledger.get(0).status is GenerationStatus.ERROR
    assert ledger.get(0).error_detail == "API key rejected."
    assert _statuses(ledger)[1:] == ["pending", "pending"]


@pytest.mark.asyncio
async def test_grid_invalid_credential_stops_run():
    client = FakeClient(grid_failures=[InvalidCredential("401")])
    plan, ledger, client, compositor, runtime, context = await _setup(8, client)

    with pytest.raises(InvalidCredential):
        await GridStrategy(GridConfig(batch_delay=0)).run(plan, context, runtime)

    assert len(client.grid_calls) == 1
    assert _statuses(ledger) == ["error"] * 4 + ["pending"] * 4
