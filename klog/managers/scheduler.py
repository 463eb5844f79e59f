"""Interval scheduler for background maintenance jobs."""

from asyncio import Event, Task, create_task, gather, wait_for
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from logging import getLogger
from time import perf_counter

from klog.configs import file_logger
from klog.utils.helpers import time_taken

logger = file_logger(getLogger(__name__))

type JobFunc = Callable[[], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class ScheduledJob:
    """
    A coroutine function run every ``interval`` seconds.

    Attributes
    ----------
        name: Job name for logs.
        interval: Seconds between the end of one run and the start of the next.
        func: Coroutine function to run.
        run_on_start: Run once immediately instead of after the first interval.
    """

    name: str
    interval: float
    func: JobFunc
    run_on_start: bool = False


class Scheduler:
    """
    Runs registered jobs on fixed intervals until stopped.

    A failing run is logged and the job keeps its schedule. Stopping sets a
    shared event, so waiting jobs wake at once and a running job finishes its
    current run.
    """

    def __init__(self, stop: Event | None = None) -> None:
        self._stop = stop or Event()
        self._jobs: list[ScheduledJob] = []
        self._tasks: list[Task[None]] = []

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs)

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def add_job(
        self,
        name: str,
        interval: float,
        func: JobFunc,
        *,
        run_on_start: bool = False,
    ) -> None:
        if interval <= 0:
            mssg = f"Interval for job '{name}' must be positive"
            raise ValueError(mssg)
        self._jobs.append(ScheduledJob(name, interval, func, run_on_start))

    def start(self) -> None:
        """Start one task per job."""
        for job in self._jobs:
            self._tasks.append(create_task(self._run_job(job), name=f"job:{job.name}"))
            logger.info(f"Scheduled job '{job.name}' every {job.interval:.0f}s")

    async def stop(self) -> None:
        """Signal every job to stop and wait for them."""
        self._stop.set()
        if self._tasks:
            await gather(*self._tasks)
        self._tasks.clear()
        logger.info("Scheduler stopped")

    async def run_job_once(self, job: ScheduledJob) -> None:
        """Run a job, logging instead of propagating its failure."""
        start = perf_counter()
        try:
            await job.func()
        except Exception:
            logger.exception(f"Job '{job.name}' failed")
            return
        logger.info(f"Job '{job.name}' finished in {time_taken(start)}")

    async def _run_job(self, job: ScheduledJob) -> None:
        if job.run_on_start:
            await self.run_job_once(job)
        while not self._stop.is_set():
            try:
                await wait_for(self._stop.wait(), timeout=job.interval)
            except TimeoutError:
                await self.run_job_once(job)
