import asyncio
import re

import pytest

from summarizer_core.domain.exceptions import BackendAuthError, JobNotFound, ValidationError
from summarizer_core.domain.models import Job, LLMResponse
from summarizer_core.tasks.registry import RequestRegistry


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now


def test_request_id_format():
    registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)
    ids = {registry.generate_request_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(re.match(r"^req_\d+_[a-z0-9]{9}$", i) for i in ids)


def test_submit_pending_then_completed():
    async def scenario():
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)

        async def work():
            return LLMResponse(payload="done")

        job_id = registry.submit(work, origin_key="https://a")
        assert registry.get_status(job_id).status == "pending"
        job = await registry.wait(job_id)
        assert job.status == "completed"
        assert job.result.payload == "done"
        assert job.to_dict()["result"] == {"payload": "done", "fromCache": False}

    asyncio.run(scenario())


def test_failure_becomes_error_status():
    async def scenario():
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)

        async def work():
            raise BackendAuthError(code="AUTH_ERROR", message="Portkey API request failed (401)")

        job_id = registry.submit(work)
        job = await registry.wait(job_id)
        assert job.status == "error"
        assert "401" in job.error
        assert job.result is None

    asyncio.run(scenario())


def test_status_never_regresses():
    async def scenario():
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)
        gate = asyncio.Event()

        async def work():
            await gate.wait()
            return LLMResponse(payload="ok")

        job_id = registry.submit(work)
        seen = [registry.get_status(job_id).status]
        for _ in range(3):
            await asyncio.sleep(0)
            seen.append(registry.get_status(job_id).status)
        gate.set()
        await registry.wait(job_id)
        seen.append(registry.get_status(job_id).status)

        order = ["pending", "processing", "completed"]
        assert [order.index(s) for s in seen] == sorted(order.index(s) for s in seen)
        assert seen[0] == "pending"
        assert seen[-1] == "completed"

    asyncio.run(scenario())


def test_snapshot_is_a_copy():
    async def scenario():
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)

        async def work():
            return LLMResponse(payload="ok")

        job_id = registry.submit(work)
        snapshot = registry.get_status(job_id)
        await registry.wait(job_id)
        assert snapshot.status == "pending"

    asyncio.run(scenario())


def test_invalid_transition_rejected():
    job = Job(id="req_1_abc", origin_key="")
    with pytest.raises(ValidationError):
        job.advance("completed")
    job.advance("processing")
    job.advance("error")
    with pytest.raises(ValidationError):
        job.advance("processing")


def test_unknown_id_raises_not_found():
    registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)
    with pytest.raises(JobNotFound) as exc:
        registry.get_status("req_0_missing")
    assert exc.value.http_status == 404


def test_sweep_removes_old_jobs_even_while_processing():
    async def scenario():
        clock = FakeClock()
        registry = RequestRegistry(max_age_seconds=30 * 60, sweep_interval_seconds=60, clock=clock)
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return LLMResponse(payload="late")

        async def fast():
            return LLMResponse(payload="fast")

        old_id = registry.submit(slow)
        await asyncio.sleep(0)
        assert registry.get_status(old_id).status == "processing"

        clock.now += 30 * 60 * 1000 + 1
        new_id = registry.submit(fast)
        assert registry.sweep() == 1

        with pytest.raises(JobNotFound):
            registry.get_status(old_id)
        assert registry.get_status(new_id).status in ("pending", "processing", "completed")

        # 被清理后才完成的任务不会重新出现
        gate.set()
        await asyncio.sleep(0.01)
        with pytest.raises(JobNotFound):
            registry.get_status(old_id)

    asyncio.run(scenario())


def test_sweeper_task_runs_periodically():
    async def scenario():
        clock = FakeClock()
        registry = RequestRegistry(max_age_seconds=1, sweep_interval_seconds=0.01, clock=clock)

        async def work():
            return LLMResponse(payload="ok")

        job_id = registry.submit(work)
        await registry.wait(job_id)
        registry.start_sweeper()
        clock.now += 2000
        await asyncio.sleep(0.05)
        await registry.stop()
        # 已完成但未被轮询的记录同样被清理
        assert len(registry) == 0

    asyncio.run(scenario())


def test_identical_submissions_are_not_deduplicated():
    async def scenario():
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)
        calls = []

        async def work():
            calls.append(1)
            return LLMResponse(payload="same")

        first = registry.submit(work, origin_key="https://a")
        second = registry.submit(work, origin_key="https://a")
        assert first != second
        await registry.wait(first)
        await registry.wait(second)
        assert len(calls) == 2

    asyncio.run(scenario())


def test_reused_request_id_gets_a_fresh_id():
    async def scenario():
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60)
        gate = asyncio.Event()

        async def first():
            await gate.wait()
            return LLMResponse(payload="first")

        async def second():
            return LLMResponse(payload="second")

        first_id = registry.submit(first, request_id="req_x")
        second_id = registry.submit(second, request_id="req_x")
        assert first_id == "req_x"
        assert second_id != "req_x"

        assert (await registry.wait(second_id)).result.payload == "second"
        assert registry.get_status("req_x").status in ("pending", "processing")

        gate.set()
        assert (await registry.wait("req_x")).result.payload == "first"
        assert registry.get_status(second_id).result.payload == "second"

        # 已完成但未清理的 ID 同样不能复用
        third_id = registry.submit(second, request_id="req_x")
        assert third_id != "req_x"
        await registry.wait(third_id)
        assert registry.get_status("req_x").result.payload == "first"

    asyncio.run(scenario())


def test_id_reused_after_sweep_is_not_touched_by_old_task():
    async def scenario():
        clock = FakeClock()
        registry = RequestRegistry(max_age_seconds=60, sweep_interval_seconds=60, clock=clock)
        old_gate = asyncio.Event()
        new_gate = asyncio.Event()

        async def old():
            await old_gate.wait()
            return LLMResponse(payload="old")

        async def new():
            await new_gate.wait()
            return LLMResponse(payload="new")

        registry.submit(old, request_id="req_y")
        await asyncio.sleep(0)
        clock.now += 61_000
        assert registry.sweep() == 1

        assert registry.submit(new, request_id="req_y") == "req_y"
        await asyncio.sleep(0)

        # 旧任务结束后既不能完成新任务，也不能让 wait 失去对新任务的跟踪
        old_gate.set()
        await asyncio.sleep(0.01)
        assert registry.get_status("req_y").status == "processing"

        new_gate.set()
        job = await registry.wait("req_y")
        assert job.status == "completed"
        assert job.result.payload == "new"

    asyncio.run(scenario())
