"""Tick scheduler running the job table."""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from tycoon.exceptions import UnknownJobError
from tycoon.jobs import JobSpec, setup_jobs
from tycoon.jobs.base import JobContext, JobResult

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    generation: int
    started_at: datetime
    results: List[JobResult] = field(default_factory=list)
    not_due: List[str] = field(default_factory=list)
    overlapping: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    def summary(self) -> str:
        failed = [r.name for r in self.results if not r.ok]
        text = f"tick #{self.generation}: ran={len(self.results)} not_due={len(self.not_due)}"
        text += f" overlapping={len(self.overlapping)} failed={len(failed)}"
        if failed:
            text += " (" + ", ".join(failed) + ")"
        return text


class TickScheduler:
    """Run the job table once per tick, sequentially and in order.

    Every tick gets a generation number. A job whose previous run has not
    finished is skipped for the new generation instead of running twice.
    """

    def __init__(self, ctx: JobContext, jobs: Optional[Sequence[JobSpec]] = None) -> None:
        self.ctx = ctx
        self.jobs = list(jobs if jobs is not None else setup_jobs(ctx.settings))
        self.generation = 0
        self.missed_ticks = 0
        self._running: Dict[str, int] = {}
        self._stop = asyncio.Event()

    def get(self, name: str) -> JobSpec:
        for spec in self.jobs:
            if spec.name == name:
                return spec
        raise UnknownJobError(name)

    async def run_job(self, spec: JobSpec, generation: int) -> Optional[JobResult]:
        """Run one job unless an earlier generation of it is still running."""

        if spec.name in self._running:
            logger.warning(
                "Job still running, skipped",
                extra={"job": spec.name, "generation": generation, "running_since": self._running[spec.name]},
            )
            return None
        self._running[spec.name] = generation
        try:
            return await spec.run(self.ctx)
        except Exception:
            logger.exception("Job crashed", extra={"job": spec.name, "generation": generation})
            return JobResult(spec.name, failed=1)
        finally:
            self._running.pop(spec.name, None)

    async def run_tick(self) -> TickReport:
        self.generation += 1
        generation = self.generation
        report = TickReport(generation=generation, started_at=self.ctx.now())
        for spec in self.jobs:
            if (generation - 1) % max(1, spec.every) != 0:
                report.not_due.append(spec.name)
                continue
            result = await self.run_job(spec, generation)
            if result is None:
                report.overlapping.append(spec.name)
            else:
                report.results.append(result)
        logger.info("Tick finished", extra={"generation": generation, "summary": report.summary()})
        return report

    def stop(self) -> None:
        self._stop.set()

    async def run_forever(self, interval: Optional[float] = None) -> None:
        """Tick every ``interval`` seconds until :meth:`stop` is called.

        When a tick overruns, the slots it overlapped are skipped rather than
        run back to back.
        """

        interval = interval or self.ctx.settings.TICK_INTERVAL_SECONDS
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while not self._stop.is_set():
            await self.run_tick()
            next_at += interval
            now = loop.time()
            if now > next_at:
                missed = math.ceil((now - next_at) / interval)
                self.missed_ticks += missed
                next_at += missed * interval
                logger.warning("Tick overran, skipping slots", extra={"missed": missed})
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, next_at - loop.time()))
            except asyncio.TimeoutError:
                continue
