"""Cycle orchestrator -- runs report profiles on their triggers.

Startup and steady state are two explicit calls over the same cycle
function:
  1. ``run_startup()``: one immediate cycle per scheduled profile
  2. ``run_forever()``: one waiting loop per (profile, trigger) schedule

Cycles never overlap: every cycle, whichever schedule fired it, runs
under one orchestrator-wide lock, so two reports never hit the provider
at the same time. A cycle that raises or exceeds its deadline is logged
and reported to the notification channel as an execution error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from perpwatch.exceptions import CycleTimeoutError
from perpwatch.logging import bind_cycle, get_logger
from perpwatch.models import CycleContext
from perpwatch.notify.dispatcher import NotificationDispatcher
from perpwatch.pipeline.cycle import ReportCycle, new_cycle_id
from perpwatch.profiles import ReportProfile
from perpwatch.trigger import Trigger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Schedule:
    """A report profile bound to the trigger that fires it."""

    profile: ReportProfile
    trigger: Trigger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """Drives ReportCycle runs from one or more schedules.

    Args:
        cycle: The report pipeline.
        dispatcher: Used for execution-error alerts.
        schedules: Profiles with their triggers.
        provider_name: Shown in execution-error alerts.
        cycle_timeout: Deadline in seconds for one whole cycle.
        clock: Current time source (injectable for tests).
        sleep: Awaitable sleep function (injectable for tests).
    """

    def __init__(
        self,
        cycle: ReportCycle,
        dispatcher: NotificationDispatcher,
        schedules: list[Schedule],
        provider_name: str = "",
        cycle_timeout: float = 600.0,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._cycle = cycle
        self._dispatcher = dispatcher
        self._schedules = list(schedules)
        self._provider_name = provider_name
        self._cycle_timeout = cycle_timeout
        self._clock = clock
        self._sleep = sleep
        self._cycle_lock = asyncio.Lock()
        self._running = False
        self._stop_requested = False
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def schedules(self) -> list[Schedule]:
        return list(self._schedules)

    async def run_once(self, profile: ReportProfile) -> CycleContext | None:
        """Run one cycle for ``profile``; returns None if the cycle failed.

        Waits for any cycle already in progress to finish first.
        """
        async with self._cycle_lock:
            cycle_id = new_cycle_id()
            with bind_cycle(profile.name, cycle_id):
                try:
                    return await asyncio.wait_for(
                        self._cycle.run(profile, cycle_id=cycle_id),
                        timeout=self._cycle_timeout,
                    )
                except asyncio.TimeoutError:
                    error = CycleTimeoutError(
                        f"{profile.name} cycle exceeded {self._cycle_timeout:g}s"
                    )
                    logger.error("cycle_timeout", timeout=self._cycle_timeout)
                    await self._report_failure(error, profile)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("cycle_failed", error=str(e), exc_info=True)
                    await self._report_failure(e, profile)
        return None

    async def _report_failure(self, error: BaseException, profile: ReportProfile) -> None:
        source = f"{self._provider_name} {profile.name}".strip()
        await self._dispatcher.send_error(error, source)

    async def run_startup(self) -> None:
        """Fire every scheduled profile once, immediately, in order.

        Profiles not yet started when a stop is requested are skipped.
        """
        for schedule in self._schedules:
            if self._stop_requested:
                logger.info("startup_interrupted", skipped=schedule.profile.name)
                return
            await self.run_once(schedule.profile)

    async def _schedule_loop(self, schedule: Schedule) -> None:
        fire_at = schedule.trigger.next_fire(self._clock())
        while self._running:
            delay = max((fire_at - self._clock()).total_seconds(), 0.0)
            logger.info(
                "next_cycle_scheduled",
                profile=schedule.profile.name,
                fire_at=fire_at.isoformat(),
                in_seconds=round(delay, 1),
            )
            await self._sleep(delay)
            if not self._running:
                break
            await self.run_once(schedule.profile)
            # advance past the slot just served even if the sleep woke early
            fire_at = schedule.trigger.next_fire(max(fire_at, self._clock()))

    async def run_forever(self) -> None:
        """Run every schedule until ``stop()`` is called.

        Returns at once if a stop was already requested. Cancellation from
        outside (not via ``stop()``) propagates to the caller.
        """
        if self._stop_requested:
            logger.info("orchestrator_stop_already_requested")
            return
        if self._running:
            logger.warning("orchestrator_already_running")
            return
        if not self._schedules:
            logger.warning("no_schedules_configured")
            return

        self._running = True
        logger.info(
            "orchestrator_started",
            schedules={s.profile.name: repr(s.trigger) for s in self._schedules},
        )
        self._tasks = [
            asyncio.create_task(self._schedule_loop(schedule))
            for schedule in self._schedules
        ]
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            if not self._stop_requested:
                for task in self._tasks:
                    task.cancel()
                raise
        finally:
            self._running = False
            self._tasks = []
            logger.info("orchestrator_stopped")

    def request_stop(self) -> None:
        """Stop scheduling; an in-flight cycle is cancelled.

        Safe to call from a signal handler and before ``run_forever()``
        has started, in which case it never schedules.
        """
        logger.info("orchestrator_stopping")
        self._stop_requested = True
        self._running = False
        for task in self._tasks:
            task.cancel()

    async def stop(self) -> None:
        self.request_stop()
