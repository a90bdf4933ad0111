"""
Unit tests for the queue scheduler.
"""

import asyncio

import pytest

from lider_gateway.constants import JobOutcome, QueueName, SchedulerState
from lider_gateway.jobs.store import QueueStore
from lider_gateway.scheduler.cron import CronSchedule
from lider_gateway.scheduler.main import Scheduler
from lider_gateway.types.events import JobEvent

QUEUE = str(QueueName.ETA_LIDER_TASK)


class TestRunPass:
    """Tests for a single processing pass."""

    async def test_empty_queue(self, scheduler: Scheduler, dispatcher):
        summary = await scheduler.run_pass()

        assert summary.skipped is False
        assert summary.processed == 0
        assert dispatcher.calls == []
        assert scheduler.last_pass is summary

    async def test_success_dequeues(self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload):
        job, _ = store.add_job(QUEUE, read_payload("m1"))

        summary = await scheduler.run_pass()

        assert summary.outcomes == {job.id: JobOutcome.SUCCESS}
        assert store.queue_depth(QUEUE) == 0
        assert dispatcher.calls == [("read", "m1")]

    async def test_update_variants_are_written(
        self,
        scheduler: Scheduler,
        store: QueueStore,
        dispatcher,
        eta_update_payload,
        lider_update_payload,
    ):
        store.add_job(QUEUE, eta_update_payload("m1"))
        store.add_job(QUEUE, lider_update_payload("m2"))

        await scheduler.run_pass()

        assert dispatcher.calls == [("write", "m1"), ("write", "m2")]

    async def test_retry_budget_decrements_each_pass(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        dispatcher.fail_keys.add("m1")
        job, _ = store.add_job(QUEUE, read_payload("m1"), retries=3)

        seen = []
        for _ in range(3):
            summary = await scheduler.run_pass()
            assert summary.outcomes[job.id] == JobOutcome.RETRY
            seen.append(store.get_job(QUEUE, job.id).retries_remaining)

        assert seen == [2, 1, 0]

        summary = await scheduler.run_pass()

        assert summary.outcomes[job.id] == JobOutcome.DROPPED
        assert not store.has_job(QUEUE, job.id)
        assert len(dispatcher.calls) == 4

    async def test_zero_retries_dropped_on_first_failure(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        dispatcher.fail_keys.add("m1")
        job, _ = store.add_job(QUEUE, read_payload("m1"), retries=0)

        summary = await scheduler.run_pass()

        assert summary.outcomes[job.id] == JobOutcome.DROPPED
        assert store.queue_depth(QUEUE) == 0

    async def test_partial_failure_keeps_order(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        a, _ = store.add_job(QUEUE, read_payload("a"), retries=3)
        b, _ = store.add_job(QUEUE, read_payload("b"), retries=3)
        c, _ = store.add_job(QUEUE, read_payload("c"), retries=3)
        dispatcher.fail_keys.add("b")

        summary = await scheduler.run_pass()

        assert dispatcher.dispatched_keys() == ["a", "b", "c"]
        assert summary.count(JobOutcome.SUCCESS) == 2
        assert summary.count(JobOutcome.RETRY) == 1
        assert [job.id for job in store.get_queue(QUEUE)] == [b.id]
        assert store.get_job(QUEUE, b.id).retries_remaining == 2
        assert not store.has_job(QUEUE, a.id)
        assert not store.has_job(QUEUE, c.id)

    async def test_failed_job_keeps_position_among_later_jobs(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        store.add_job(QUEUE, read_payload("a"))
        dispatcher.fail_keys.update({"a", "b"})
        store.add_job(QUEUE, read_payload("b"))

        await scheduler.run_pass()
        store.add_job(QUEUE, read_payload("c"))

        dispatcher.calls.clear()
        await scheduler.run_pass()

        assert dispatcher.dispatched_keys() == ["a", "b", "c"]

    async def test_transient_failure_then_success(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        dispatcher.fail_times["m1"] = 1
        job, _ = store.add_job(QUEUE, read_payload("m1"), retries=3)

        first = await scheduler.run_pass()
        second = await scheduler.run_pass()

        assert first.outcomes[job.id] == JobOutcome.RETRY
        assert second.outcomes[job.id] == JobOutcome.SUCCESS
        assert store.queue_depth(QUEUE) == 0

    async def test_unexpected_error_is_isolated(self, store: QueueStore, clock, metrics, read_payload):
        class BrokenDispatcher:
            def __init__(self):
                self.calls = []

            async def perform_read(self, correlation_key, target_domain):
                self.calls.append(correlation_key)
                if correlation_key == "a":
                    raise KeyError("boom")

            async def perform_write(self, target_domain, update_payload):
                raise AssertionError("not used")

        broken = BrokenDispatcher()
        scheduler = Scheduler(store, broken, clock=clock, metrics=metrics)
        a, _ = store.add_job(QUEUE, read_payload("a"), retries=1)
        store.add_job(QUEUE, read_payload("b"))

        summary = await scheduler.run_pass()

        assert broken.calls == ["a", "b"]
        assert summary.outcomes[a.id] == JobOutcome.RETRY
        assert [job.id for job in store.get_queue(QUEUE)] == [a.id]

    async def test_dispatch_timeout_counts_as_failure(
        self, store: QueueStore, dispatcher, clock, metrics, read_payload
    ):
        dispatcher.gate = asyncio.Event()
        scheduler = Scheduler(store, dispatcher, clock=clock, metrics=metrics, dispatch_timeout=0.01)
        job, _ = store.add_job(QUEUE, read_payload("m1"), retries=2)

        summary = await scheduler.run_pass()

        assert summary.outcomes[job.id] == JobOutcome.RETRY
        assert store.get_job(QUEUE, job.id).retries_remaining == 1
        assert scheduler.state == SchedulerState.IDLE

    async def test_job_removed_mid_pass_is_skipped(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        a, _ = store.add_job(QUEUE, read_payload("a"))
        b, _ = store.add_job(QUEUE, read_payload("b"))

        def remove_b(event: JobEvent) -> None:
            if event.job_id == a.id:
                store.dequeue_job(QUEUE, b.id)

        scheduler.add_listener(remove_b)

        summary = await scheduler.run_pass()

        assert dispatcher.dispatched_keys() == ["a"]
        assert b.id not in summary.outcomes

    async def test_job_added_mid_pass_waits_for_next_pass(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        a, _ = store.add_job(QUEUE, read_payload("a"))

        def add_job(event: JobEvent) -> None:
            store.add_job(QUEUE, read_payload("late"))

        scheduler.add_listener(add_job)

        await scheduler.run_pass()

        assert dispatcher.dispatched_keys() == ["a"]
        assert store.queue_depth(QUEUE) == 1

    async def test_passes_do_not_overlap(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        dispatcher.gate = asyncio.Event()
        scheduler.dispatch_timeout = 5.0
        job, _ = store.add_job(QUEUE, read_payload("m1"))

        first = asyncio.create_task(scheduler.run_pass())
        while not dispatcher.calls:
            await asyncio.sleep(0)

        assert scheduler.state == SchedulerState.PROCESSING
        second = await scheduler.run_pass()

        dispatcher.gate.set()
        first_summary = await first

        assert second.skipped is True
        assert second.processed == 0
        assert first_summary.outcomes == {job.id: JobOutcome.SUCCESS}
        assert dispatcher.calls == [("read", "m1")]
        assert scheduler.state == SchedulerState.IDLE


class TestEvents:
    """Tests for job event delivery."""

    async def test_listener_receives_every_outcome(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        events: list[JobEvent] = []
        scheduler.add_listener(events.append)
        dispatcher.fail_keys.update({"retry", "drop"})
        store.add_job(QUEUE, read_payload("ok"))
        store.add_job(QUEUE, read_payload("retry"), retries=1)
        store.add_job(QUEUE, read_payload("drop"), retries=0)

        await scheduler.run_pass()

        assert [event.outcome for event in events] == [
            JobOutcome.SUCCESS,
            JobOutcome.RETRY,
            JobOutcome.DROPPED,
        ]
        assert events[1].retries_remaining == 0
        assert events[1].error is not None
        assert events[2].error is not None
        assert all(event.queue_name == QUEUE for event in events)

    async def test_failing_listener_does_not_break_pass(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, read_payload
    ):
        def explode(event: JobEvent) -> None:
            raise RuntimeError("listener failure")

        scheduler.add_listener(explode)
        store.add_job(QUEUE, read_payload("a"))
        store.add_job(QUEUE, read_payload("b"))

        summary = await scheduler.run_pass()

        assert summary.count(JobOutcome.SUCCESS) == 2


class TestMetrics:
    """Tests for metrics recorded by passes."""

    async def test_outcomes_and_depth_recorded(
        self, scheduler: Scheduler, store: QueueStore, dispatcher, metrics, read_payload
    ):
        dispatcher.fail_keys.add("b")
        store.add_job(QUEUE, read_payload("a"))
        store.add_job(QUEUE, read_payload("b"))

        await scheduler.run_pass()

        assert metrics.job_outcomes.labels(queue_name=QUEUE, outcome="success")._value.get() == 1
        assert metrics.job_outcomes.labels(queue_name=QUEUE, outcome="retry")._value.get() == 1
        assert metrics.passes.labels(queue_name=QUEUE, status="completed")._value.get() == 1
        assert metrics.queue_depth.labels(queue_name=QUEUE)._value.get() == 1


class TestLoop:
    """Tests for the cron-driven lifecycle."""

    async def test_loop_runs_pass_on_each_tick(
        self, store: QueueStore, dispatcher, clock, metrics, read_payload
    ):
        sleeps: list[float] = []
        ticked = asyncio.Event()

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)
            clock.advance(seconds)
            if len(sleeps) > 2:
                ticked.set()
                await asyncio.Event().wait()

        scheduler = Scheduler(
            store,
            dispatcher,
            schedule=CronSchedule("*/10 * * * * *"),
            clock=clock,
            sleep=fake_sleep,
            metrics=metrics,
        )
        store.add_job(QUEUE, read_payload("m1"))

        await scheduler.start()
        assert scheduler.running is True

        await asyncio.wait_for(ticked.wait(), timeout=1)
        await scheduler.stop()

        assert scheduler.running is False
        # Clock starts on a tick boundary: fire now, then every 10 seconds
        assert sleeps == [0.0, 10.0, 10.0]
        assert dispatcher.calls == [("read", "m1")]
        assert store.queue_depth(QUEUE) == 0

    async def test_start_twice_is_noop(self, scheduler: Scheduler):
        await scheduler.start()
        task = scheduler._task

        await scheduler.start()

        assert scheduler._task is task
        await scheduler.stop()

    async def test_stop_without_start(self, scheduler: Scheduler):
        await scheduler.stop()

        assert scheduler.running is False

    def test_default_schedule_from_settings(self, store: QueueStore, dispatcher, metrics, monkeypatch):
        from lider_gateway.config import get_settings

        monkeypatch.setenv("JOB_CRON_EXPRESSION", "*/5 * * * *")
        get_settings.cache_clear()

        scheduler = Scheduler(store, dispatcher, metrics=metrics)

        assert scheduler.schedule.expression == "*/5 * * * *"

    def test_invalid_schedule_rejected(self):
        with pytest.raises(ValueError):
            CronSchedule("not a cron")
