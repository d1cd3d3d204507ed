"""
Task abstraction and the periodic two-phase state machine shared by
Blink and Flipflop.

A periodic task alternates between an OFF phase lasting
period * (1 - duty_cycle) and an ON phase lasting period * duty_cycle.
It always starts in OFF, so nothing lights up at the instant of start().
Each running task owns one asyncio task (its loop) that waits on either
the stop event or the end of the current phase, whichever comes first.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from src.tasks.errors import (
    AlreadyRunningError,
    InvalidDutyCycleError,
    InvalidPeriodError,
    NotRunningError,
)


logger = logging.getLogger(__name__)

DEFAULT_DUTY_CYCLE = 0.5


class TaskType(str, Enum):
    """Kind of task; the value doubles as the published start event name."""
    BLINK = 'blink'
    FLIPFLOP = 'flipflop'


class Phase(Enum):
    OFF = 'off'
    ON = 'on'


def validate_timing(period: Optional[float], duty_cycle: Optional[float]) -> float:
    """
    Validate period and duty cycle.

    Args:
        period: Cycle length in seconds; must be > 0
        duty_cycle: Fraction of the period spent on; None selects the default

    Returns:
        The effective duty cycle

    Raises:
        InvalidPeriodError: If period is missing or not positive
        InvalidDutyCycleError: If duty_cycle is outside [0, 1]
    """
    if period is None or period <= 0:
        raise InvalidPeriodError()
    if duty_cycle is None:
        return DEFAULT_DUTY_CYCLE
    if duty_cycle < 0 or duty_cycle > 1:
        raise InvalidDutyCycleError()
    return float(duty_cycle)


class Task(ABC):
    """A long-running switch operation owned by the task manager."""

    task_type: TaskType

    @abstractmethod
    async def start(self):
        pass

    @abstractmethod
    async def stop(self):
        pass

    @abstractmethod
    def is_running(self) -> bool:
        pass

    @abstractmethod
    def get_period(self) -> float:
        pass

    @abstractmethod
    def get_duty_cycle(self) -> float:
        pass


class PeriodicTask(Task):
    """
    Two-phase (OFF/ON) periodic task.

    Subclasses implement _enter_on, _enter_off and _force_off. I/O errors
    raised while entering a phase are logged and the schedule carries on:
    the failed toggle is skipped and the next phase is armed as usual.
    """

    def __init__(self, period: float, duty_cycle: Optional[float] = None):
        self._duty_cycle = validate_timing(period, duty_cycle)
        self._period = float(period)
        self._phase = Phase.OFF
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def on_duration(self) -> float:
        return self._period * self._duty_cycle

    @property
    def off_duration(self) -> float:
        return self._period * (1 - self._duty_cycle)

    def get_period(self) -> float:
        return self._period

    def get_duty_cycle(self) -> float:
        return self._duty_cycle

    def get_phase(self) -> Phase:
        return self._phase

    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """
        Start the toggle loop and return immediately.

        Raises:
            AlreadyRunningError: If the task is already running
        """
        async with self._lock:
            if self._running:
                raise AlreadyRunningError(f"{self.task_type.value} is already running")

            self._phase = Phase.OFF
            self._stop_event = asyncio.Event()
            self._running = True
            self._loop_task = asyncio.create_task(
                self._run_loop(self._stop_event),
                name=f"{self.task_type.value}:{self}"
            )
            logger.debug(f"Started {self.task_type.value} {self} (period={self._period}s, duty={self._duty_cycle})")

    async def stop(self):
        """
        Stop the loop, wait for it to exit, then force everything off.

        The task is no longer running once this returns or raises, and may be
        started again.

        Raises:
            NotRunningError: If the task is not running
            Exception: Whatever the final turn-off raised
        """
        async with self._lock:
            if not self._running:
                raise NotRunningError(f"{self.task_type.value} is not running")

            self._stop_event.set()
            try:
                await self._loop_task
            finally:
                self._loop_task = None
                self._stop_event = None
                self._running = False
                self._phase = Phase.OFF
                self._reset()

            await self._force_off()
            logger.debug(f"Stopped {self.task_type.value} {self}")

    async def _run_loop(self, stop_event: asyncio.Event):
        delay = self.off_duration
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
                return
            except asyncio.TimeoutError:
                pass

            if stop_event.is_set():
                return

            if self._phase is Phase.OFF:
                self._phase = Phase.ON
                delay = self.on_duration
                transition = self._enter_on
            else:
                self._phase = Phase.OFF
                delay = self.off_duration
                transition = self._enter_off

            try:
                await transition()
            except Exception as e:
                logger.warning(
                    f"{self.task_type.value} {self} failed entering {self._phase.value} phase: {e}; "
                    f"skipping this toggle"
                )

    def _reset(self):
        """Hook to clear subclass state after the loop has exited."""
        pass

    @abstractmethod
    async def _enter_on(self):
        pass

    @abstractmethod
    async def _enter_off(self):
        pass

    @abstractmethod
    async def _force_off(self):
        pass
