"""
Switch controller: the orchestrator between the HTTP API and the task engine.

All switch I/O, tasks and timers run on the controller's asyncio loop, which
is owned by a dedicated service thread. Other threads (the Flask server)
submit work with run_coro_in_loop.
"""

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
from typing import Any, Dict, List, Optional

from src.config.config_loader import ALL_TARGET
from src.switches.base import Switch, SwitchCollection
from src.switches.errors import ErrorCollector
from src.switches.group import ResolvedSwitch, SwitchGroup
from src.tasks.blink import Blink
from src.tasks.flipflop import Flipflop
from src.tasks.task_manager import OFF_EVENT, TaskManager
from src.tasks.timers import TimerEntry, TimerRegistry


logger = logging.getLogger(__name__)

STATE_ON = 'on'
STATE_OFF = 'off'
STATE_BLINK = 'blink'
STATE_FLIPFLOP = 'flipflop'
VALID_STATES = (STATE_ON, STATE_OFF, STATE_BLINK, STATE_FLIPFLOP)


class ControllerError(Exception):
    """Switch controller error exception."""
    pass


class UnknownTargetError(ControllerError):
    """Requested switch or group does not exist."""
    pass


class InvalidRequestError(ControllerError):
    """Request parameters are invalid."""
    pass


class ControllerUnavailableError(ControllerError):
    """The controller event loop is not running."""
    pass


class ControllerTimeoutError(ControllerError):
    """A submitted operation did not finish in time and was cancelled."""
    pass


class SwitchController:
    """Resolves targets and applies on/off/blink/flipflop requests to them."""

    def __init__(self, collections: Dict[str, SwitchCollection],
                 switches: Dict[str, ResolvedSwitch],
                 groups: Dict[str, SwitchGroup],
                 publisher=None):
        """
        Initialize switch controller.

        Args:
            collections: Driver collections keyed by name (owned by the controller)
            switches: Named switches keyed by name
            groups: Named groups keyed by name
            publisher: Optional object with publish(name, event) and close()
        """
        self.collections = collections
        self.switches = switches
        self.groups = groups
        self.all_group = SwitchGroup(ALL_TARGET, dict(switches))
        self.publisher = publisher

        self.task_manager = TaskManager(publish=self.publish_event)
        self.timers = TimerRegistry()
        self._target_locks: Dict[str, asyncio.Lock] = {}

        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._ready = threading.Event()

    # Targets

    def list_targets(self) -> Dict[str, List[str]]:
        return {
            'switches': list(self.switches),
            'groups': list(self.groups),
        }

    def resolve_target(self, name: str) -> Switch:
        """
        Look up a switch, group, or the reserved "all" target.

        Raises:
            UnknownTargetError: If no such target exists
        """
        if name == ALL_TARGET:
            return self.all_group
        if name in self.switches:
            return self.switches[name].switch
        if name in self.groups:
            return self.groups[name]
        raise UnknownTargetError(f"unknown switch or group: {name}")

    def publish_event(self, name: str, event: str):
        if self.publisher is not None:
            self.publisher.publish(name, event)

    def _lock_for(self, name: str) -> asyncio.Lock:
        lock = self._target_locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._target_locks[name] = lock
        return lock

    @contextlib.asynccontextmanager
    async def _target_lock(self, name: str):
        if name != ALL_TARGET:
            async with self._lock_for(name):
                yield
            return

        # "all" excludes every other request; acquire in a fixed order
        names = sorted(set(self.switches) | set(self.groups) | {ALL_TARGET})
        async with contextlib.AsyncExitStack() as stack:
            for lock_name in names:
                await stack.enter_async_context(self._lock_for(lock_name))
            yield

    # Task and timer composition

    async def setup_auto_off_timer(self, name: str, duration: float, target: Switch) -> TimerEntry:
        """
        Arm an auto-off timer; on expiry the task is stopped, the target
        turned off and a single "off" event published.
        """
        async def cleanup():
            stopped = False
            try:
                stopped = await self.task_manager.stop_task(name)
            finally:
                await target.turn_off()
            # Stopping a task already published "off"
            if not stopped:
                self.publish_event(name, OFF_EVENT)
            logger.info(f"Auto-off completed for {name} after {duration}s")

        return await self.timers.setup_timer(name, duration, cleanup)

    async def cancel_timer(self, name: str) -> bool:
        return await self.timers.cancel_timer(name)

    async def cancel_tasks_and_timers(self, name: str):
        """Cancel the timer, then stop the task, for one target."""
        if await self.timers.cancel_timer(name):
            logger.info(f"Cancelled timer on {name}")
        await self.task_manager.stop_task(name)

    async def cancel_all_tasks_and_timers(self):
        """
        Cancel every timer and stop every task.

        Raises:
            AggregateError: If one or more tasks failed to stop
        """
        count = await self.timers.cancel_all_timers()
        if count:
            logger.info(f"Cancelled {count} timer(s)")
        await self.task_manager.stop_all_tasks()

    # Requests

    def validate_request(self, name: str, state: str, duration: Optional[float] = None,
                         period: Optional[float] = None, duty_cycle: Optional[float] = None) -> Switch:
        """
        Validate a request and return its resolved target.

        Raises:
            UnknownTargetError: If the target does not exist
            InvalidRequestError: If the parameters are invalid
        """
        if state not in VALID_STATES:
            raise InvalidRequestError(f"invalid state: {state} (must be one of {', '.join(VALID_STATES)})")
        if duration is not None and duration <= 0:
            raise InvalidRequestError("duration must be a positive number of seconds")
        if state in (STATE_BLINK, STATE_FLIPFLOP) and period is None:
            raise InvalidRequestError(f"period is required for {state}")

        target = self.resolve_target(name)
        if state == STATE_FLIPFLOP and not isinstance(target, SwitchGroup):
            raise InvalidRequestError(f"flipflop requires a group, {name} is a single switch")
        return target

    async def handle_request(self, name: str, state: str, duration: Optional[float] = None,
                             period: Optional[float] = None,
                             duty_cycle: Optional[float] = None) -> Dict[str, Any]:
        """
        Apply a request to a switch or group.

        Any task or timer already governing the target is cancelled first;
        for "all" every task and timer is cancelled.

        Args:
            name: Switch, group, or "all"
            state: on, off, blink or flipflop
            duration: Optional auto-off delay in seconds (ignored for off)
            period: Cycle length for blink/flipflop
            duty_cycle: On fraction for blink/flipflop (default 0.5)

        Returns:
            Status of the target after the request

        Raises:
            UnknownTargetError: If the target does not exist
            InvalidRequestError: If the parameters are invalid
            TaskConfigurationError: If period or duty cycle are out of range
            TaskManagerError: If the previous task could not be stopped
            SwitchError: If the target could not be switched
        """
        target = self.validate_request(name, state, duration, period, duty_cycle)

        task = None
        if state == STATE_BLINK:
            task = Blink(target, period, duty_cycle)
        elif state == STATE_FLIPFLOP:
            task = Flipflop(target.list_switches(), period, duty_cycle)

        async with self._target_lock(name):
            if name == ALL_TARGET:
                await self.cancel_all_tasks_and_timers()
            else:
                await self.cancel_tasks_and_timers(name)

            if state == STATE_ON:
                await target.turn_on()
                self.publish_event(name, STATE_ON)
            elif state == STATE_OFF:
                await target.turn_off()
                self.publish_event(name, STATE_OFF)
            else:
                await self.task_manager.start_task(name, task)

            if duration is not None and state != STATE_OFF:
                await self.setup_auto_off_timer(name, duration, target)

        logger.info(f"Applied {state} to {name}" + (f" for {duration}s" if duration else ""))
        return await self.get_status(name)

    # Status

    def _task_status(self, name: str, status: Dict[str, Any]):
        task = self.task_manager.get_task(name)
        if task is not None and task.is_running():
            status['state'] = task.task_type.value
            status['period'] = task.get_period()
            status['duty_cycle'] = task.get_duty_cycle()

        timer = self.timers.get_timer(name)
        if timer is not None:
            status['duration'] = timer.duration
            status['remaining'] = round(timer.remaining(), 3)
            status['expires_at'] = timer.expires_at.isoformat()

    async def get_status(self, name: str) -> Dict[str, Any]:
        """
        Report state, running task and pending timer for a target.

        Raises:
            UnknownTargetError: If the target does not exist
            SwitchError: If the state could not be read
        """
        target = self.resolve_target(name)

        if isinstance(target, SwitchGroup):
            detailed = await target.get_detailed_state()
            summary = len(detailed) > 0 and all(detailed)
            status = {
                'name': name,
                'state': STATE_ON if summary else STATE_OFF,
                'current_state': summary,
                'summary': summary,
            }
            self._task_status(name, status)

            members = []
            for member_name, is_on in zip(target.list_member_names(), detailed):
                member = {
                    'name': member_name,
                    'state': STATE_ON if is_on else STATE_OFF,
                    'current_state': is_on,
                }
                self._task_status(member_name, member)
                members.append(member)
            status['switches'] = members
            return status

        current = await target.get_state()
        status = {
            'name': name,
            'state': STATE_ON if current else STATE_OFF,
            'current_state': current,
        }
        self._task_status(name, status)
        return status

    # Lifecycle

    async def initialize(self):
        """Initialize every collection and turn all switches off; failures are logged."""
        for name, collection in self.collections.items():
            try:
                await collection.init()
            except Exception as e:
                logger.error(f"Failed to initialize collection {name}: {e}")
                continue
            try:
                await collection.turn_off()
            except Exception as e:
                logger.warning(f"Failed to turn off collection {name} during startup: {e}")
        logger.info(f"Controller initialized with {len(self.switches)} switch(es) and {len(self.groups)} group(s)")

    async def shutdown(self):
        """
        Cancel everything, close collections and disconnect the publisher.

        Raises:
            AggregateError: If tasks failed to stop or collections failed to close
        """
        logger.info("Shutting down switch controller...")
        collector = ErrorCollector()
        try:
            await self.cancel_all_tasks_and_timers()
        except Exception as e:
            collector.add("tasks", e)

        for name, collection in self.collections.items():
            try:
                await collection.close()
            except Exception as e:
                logger.error(f"Failed to close collection {name}: {e}")
                collector.add(f"collection {name}", e)

        if self.publisher is not None:
            try:
                self.publisher.close()
            except Exception as e:
                logger.error(f"Failed to close event publisher: {e}")
                collector.add("publisher", e)

        collector.raise_if_errors("errors during shutdown")

    async def run(self):
        """Own the event loop until request_shutdown() is called."""
        self.loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        logger.info(f"Controller event loop initialized: {self.loop}")

        try:
            await self.initialize()
            self._ready.set()
            await self._shutdown_event.wait()
        finally:
            try:
                await self.shutdown()
            except Exception as e:
                logger.error(f"Errors during controller shutdown: {e}")
            self._ready.clear()
            self.loop = None
            logger.info("Controller stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block the calling thread until run() has finished initializing."""
        return self._ready.wait(timeout)

    def is_running(self) -> bool:
        return self.loop is not None and self._ready.is_set()

    def request_shutdown(self):
        """Ask run() to exit; safe to call from any thread."""
        loop = self.loop
        if loop is None or self._shutdown_event is None:
            return
        loop.call_soon_threadsafe(self._shutdown_event.set)

    def run_coro_in_loop(self, coro, timeout: Optional[float] = None):
        """
        Execute a coroutine on the controller's event loop from another thread.

        Args:
            coro: Coroutine to execute
            timeout: Seconds to wait for the result

        Returns:
            Result of the coroutine execution

        Raises:
            ControllerUnavailableError: If the controller loop is not running
            ControllerTimeoutError: If the coroutine did not finish within timeout;
                it is cancelled on the loop
        """
        if self.loop is None:
            coro.close()
            raise ControllerUnavailableError(
                "Controller event loop not initialized. "
                "Ensure the controller is running before calling this method."
            )

        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            # A finished future raised TimeoutError from inside the coroutine
            if future.done():
                raise
            future.cancel()
            raise ControllerTimeoutError(f"operation did not complete within {timeout}s") from None
