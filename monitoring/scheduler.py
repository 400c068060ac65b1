"""
============================================================================
SERVICE CHECK - CHECK SCHEDULER
============================================================================
A lightweight, asyncio-native scheduler.  Every configured service gets its
own timer task that fires the service's probe-then-publish cycle right
away and then every ``interval`` seconds until shutdown.

Timers are fixed-rate: the next firing is due one interval after the
previous *due time*, not after the previous check finished.  Each firing
runs as its own task, so a hung probe never delays the next firing of the
same or any other service.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import functools
import time
from datetime import datetime
from typing import Optional, Dict, Any, Awaitable, Callable, Iterable, List, Set
from dataclasses import dataclass, field

from config.constants import Protocol
from config.settings import ServiceDescriptor
from exceptions import InvalidServiceError
from utils.logger import get_logger


logger = get_logger("Scheduler")


# ============================================================================
# JOB DEFINITION
# ============================================================================

@dataclass
class ScheduledJob:
    """
    Describes a single periodic job.

    Attributes
    ----------
    name : str
        Identifier used in logs (the service name).
    interval_seconds : float
        Period between firings.
    coroutine_factory : Callable
        Async callable (no arguments) performing one cycle.
    run_immediately : bool
        Fire once at start instead of waiting one interval first.
    last_run : Optional[float]
        Epoch timestamp of the last completed execution.
    next_run : Optional[float]
        Epoch timestamp when the job fires next.
    run_count : int
        Completed executions since startup.
    error_count : int
        Executions that raised since startup.
    """
    name: str
    interval_seconds: float
    coroutine_factory: Callable[[], Awaitable[Any]]
    run_immediately: bool = True
    last_run: Optional[float] = None
    next_run: Optional[float] = None
    run_count: int = 0
    error_count: int = 0
    task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)


# ============================================================================
# SCHEDULER
# ============================================================================

class Scheduler:
    """
    Asyncio-based periodic job scheduler.

    Usage
    -----
        scheduler = Scheduler()
        scheduler.schedule_services(config.services, engine)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    def __init__(self):
        self._jobs: Dict[str, ScheduledJob] = {}
        self._running = False
        self._in_flight: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # SERVICE REGISTRATION
    # ------------------------------------------------------------------

    def schedule_service(self, service: ServiceDescriptor, engine: Any) -> ScheduledJob:
        """
        Register the probe-then-publish cycle of one service.

        Raises
        ------
        InvalidServiceError
            Unknown protocol, or a TCP check without a port.
        """
        check_type = service.check_type
        if check_type is None:
            raise InvalidServiceError(
                f"protocol {service.protocol!r} is not one of dns, http, https, tcp",
                service=service.name,
                reason="unknown_protocol",
            )
        if check_type == Protocol.TCP and service.port is None:
            raise InvalidServiceError(
                "TCP checks need a port",
                service=service.name,
                reason="missing_port",
            )

        logger.info(
            f"Scheduling {check_type.label} check for {service.describe()} "
            f"every {service.interval} seconds as MQTT topic {engine.topic_for(service)}."
        )
        return self.register_job(
            service.name,
            interval_seconds=service.interval,
            coroutine_factory=functools.partial(engine.run_check, service),
        )

    def schedule_services(self, services: Iterable[ServiceDescriptor], engine: Any) -> int:
        """
        Register every service that can be checked; skip the rest with a
        warning.  Returns the number of services scheduled.
        """
        scheduled = 0
        for service in services:
            try:
                self.schedule_service(service, engine)
                scheduled += 1
            except InvalidServiceError as e:
                logger.warning(f"Skipping service '{service.name}': {e.message}")
        return scheduled

    # ------------------------------------------------------------------
    # JOB REGISTRATION
    # ------------------------------------------------------------------

    def register_job(
        self,
        name: str,
        interval_seconds: float,
        coroutine_factory: Callable[[], Awaitable[Any]],
        run_immediately: bool = True,
    ) -> ScheduledJob:
        """
        Register a new periodic job.  If the scheduler is already running
        the job's timer starts right away.

        Parameters
        ----------
        name : str
            Unique job name.
        interval_seconds : float
            Period in seconds, must be positive.
        coroutine_factory : Callable
            An async callable that takes no arguments.
        run_immediately : bool
            Fire at start instead of after the first interval.
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval for job '{name}' must be positive, got {interval_seconds}")

        if name in self._jobs:
            logger.warning(f"[Scheduler] Job '{name}' already registered, overwriting")
            previous = self._jobs[name]
            if previous.task:
                previous.task.cancel()

        job = ScheduledJob(
            name=name,
            interval_seconds=interval_seconds,
            coroutine_factory=coroutine_factory,
            run_immediately=run_immediately,
        )
        self._jobs[name] = job
        if self._running:
            job.task = asyncio.create_task(self._job_loop(job))

        logger.debug(f"[Scheduler] Registered job '{name}' (interval={interval_seconds}s)")
        return job

    @property
    def jobs(self) -> List[ScheduledJob]:
        return list(self._jobs.values())

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start one timer task per registered job."""
        if self._running:
            logger.warning("Scheduler is already running")
            return
        self._running = True
        for job in self._jobs.values():
            job.task = asyncio.create_task(self._job_loop(job))
        logger.info(f"✓ Scheduler started with {len(self._jobs)} job(s)")

    async def stop(self) -> None:
        """Cancel every timer and every cycle still running."""
        self._running = False

        tasks = [job.task for job in self._jobs.values() if job.task]
        tasks.extend(self._in_flight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for job in self._jobs.values():
            job.task = None
        self._in_flight.clear()
        logger.info("✓ Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # TIMER LOOP
    # ------------------------------------------------------------------

    async def _job_loop(self, job: ScheduledJob) -> None:
        """
        Fire *job* at fixed-rate due times until the scheduler stops.
        """
        loop = asyncio.get_running_loop()
        due = loop.time()
        if not job.run_immediately:
            due += job.interval_seconds

        while self._running:
            delay = due - loop.time()
            job.next_run = time.time() + max(delay, 0.0)
            if delay > 0:
                try:
                    await asyncio.sleep(delay)
                except asyncio.CancelledError:
                    break

            run = asyncio.create_task(self._execute_job(job))
            self._in_flight.add(run)
            run.add_done_callback(self._in_flight.discard)

            due += job.interval_seconds
            # After a stall (suspended laptop, blocked loop) skip the missed
            # firings instead of running them back to back.
            now = loop.time()
            if due <= now:
                skipped = int((now - due) // job.interval_seconds) + 1
                due += skipped * job.interval_seconds
                logger.debug(f"[Scheduler] Job '{job.name}' skipped {skipped} missed run(s)")

    # ------------------------------------------------------------------
    # JOB EXECUTION
    # ------------------------------------------------------------------

    async def _execute_job(self, job: ScheduledJob) -> None:
        """
        Run a single job, capture timing and errors.
        """
        start_time = time.time()
        try:
            logger.debug(f"[Scheduler] Running job '{job.name}'…")
            await job.coroutine_factory()
            elapsed = time.time() - start_time

            job.run_count += 1
            job.last_run = time.time()
            logger.debug(
                f"[Scheduler] Job '{job.name}' completed in {elapsed:.2f}s "
                f"(run #{job.run_count})"
            )

        except Exception as e:
            job.error_count += 1
            elapsed = time.time() - start_time
            logger.opt(exception=True).error(
                f"[Scheduler] Job '{job.name}' FAILED after {elapsed:.2f}s: {e}"
            )

    # ------------------------------------------------------------------
    # DIAGNOSTICS
    # ------------------------------------------------------------------

    def get_job_stats(self) -> List[Dict[str, Any]]:
        """Return status of all registered jobs."""
        stats = []
        for job in self._jobs.values():
            stats.append({
                "name": job.name,
                "interval_seconds": job.interval_seconds,
                "run_immediately": job.run_immediately,
                "run_count": job.run_count,
                "error_count": job.error_count,
                "last_run": (
                    datetime.fromtimestamp(job.last_run).isoformat()
                    if job.last_run else None
                ),
                "next_run": (
                    datetime.fromtimestamp(job.next_run).isoformat()
                    if job.next_run else None
                ),
            })
        return stats
