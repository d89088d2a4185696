"""请求生命周期跟踪。

submit() 立即返回请求 ID，实际工作在独立的 asyncio.Task 中执行；
调用方通过 get_status() 轮询，直到看到 completed / error。
后台清理任务每 sweep_interval 秒删除一次创建时间超过 max_age 的记录（不论状态）。

单线程事件循环内不加锁；但工作协程在 await 之后必须重新确认记录仍然存在，
因为清理任务可能已在挂起期间把它删掉。
"""

from __future__ import annotations

import asyncio
import random
import string
from dataclasses import replace
from typing import Awaitable, Callable, Dict, Optional

from summarizer_core.config.settings import settings
from summarizer_core.domain.exceptions import JobNotFound
from summarizer_core.domain.models import Job, LLMResponse, now_ms
from summarizer_core.infrastructure.logging.logger import logger


Work = Callable[[], Awaitable[LLMResponse]]

_ID_ALPHABET = string.ascii_lowercase + string.digits


class RequestRegistry:
    def __init__(
        self,
        max_age_seconds: Optional[float] = None,
        sweep_interval_seconds: Optional[float] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._jobs: Dict[str, Job] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._max_age_ms = int((max_age_seconds or settings.job_max_age_seconds) * 1000)
        self._sweep_interval = sweep_interval_seconds or settings.job_sweep_interval_seconds
        self._clock = clock
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._jobs)

    def generate_request_id(self) -> str:
        suffix = "".join(random.choices(_ID_ALPHABET, k=9))
        return f"req_{self._clock()}_{suffix}"

    def submit(self, work: Work, origin_key: str = "", request_id: Optional[str] = None) -> str:
        """登记一个 pending 任务并在后台启动它，立即返回请求 ID。

        必须在运行中的事件循环内调用。
        """

        job_id = request_id or self.generate_request_id()
        if job_id in self._jobs:
            # 外部 ID 仍被占用时改用新 ID，不能覆盖正在跟踪的任务
            fresh = self.generate_request_id()
            logger.warning(
                "Request id already in use, assigned a new one",
                extra={"extra": {"requested": job_id, "job_id": fresh}},
            )
            job_id = fresh
        job = Job(id=job_id, origin_key=origin_key, created_at=self._clock())
        self._jobs[job_id] = job
        task = asyncio.get_running_loop().create_task(self._run(job, work), name=job_id)
        self._tasks[job_id] = task
        task.add_done_callback(self._forget_task)
        logger.info("Request submitted", extra={"extra": {"job_id": job_id, "origin": origin_key}})
        return job_id

    def _forget_task(self, task: asyncio.Task) -> None:
        job_id = task.get_name()
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]

    async def _run(self, job: Job, work: Work) -> None:
        if self._jobs.get(job.id) is not job:
            return
        job.advance("processing")
        try:
            result = await work()
        except Exception as exc:  # noqa: BLE001 - 所有失败都转换为 error 状态
            self._finish(job, error=str(exc) or exc.__class__.__name__)
            return
        self._finish(job, result=result)

    def _finish(self, job: Job, result: Optional[LLMResponse] = None, error: Optional[str] = None) -> None:
        job_id = job.id
        if self._jobs.get(job_id) is not job or job.is_terminal:
            # 挂起期间已被清理任务删除（该 ID 也可能已分配给新任务）
            logger.warning("Request finished after cleanup", extra={"extra": {"job_id": job_id}})
            return
        if error is not None:
            job.advance("error")
            job.error = error
            logger.error("Request failed", extra={"extra": {"job_id": job_id, "error": error}})
        else:
            job.advance("completed")
            job.result = result
            logger.info(
                "Request completed",
                extra={"extra": {"job_id": job_id, "from_cache": bool(result and result.from_cache)}},
            )

    def get_status(self, job_id: str) -> Job:
        """返回任务快照；未知或已清理的 ID 抛出 JobNotFound。"""

        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return replace(job)

    async def wait(self, job_id: str) -> Job:
        """等待任务执行结束并返回最终快照。"""

        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_status(job_id)

    def sweep(self) -> int:
        """删除所有超过 max_age 的记录，返回删除数量。"""

        now = self._clock()
        expired = [jid for jid, job in self._jobs.items() if now - job.created_at > self._max_age_ms]
        for jid in expired:
            logger.info(
                "Cleaning up old request",
                extra={"extra": {"job_id": jid, "status": self._jobs[jid].status}},
            )
            del self._jobs[jid]
        return len(expired)

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        """停止清理任务。正在执行的请求不会被取消。"""

        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception as e:  # noqa: BLE001 - 清理失败不能终止循环
                logger.error("Request cleanup error", extra={"extra": {"error": str(e)}})
