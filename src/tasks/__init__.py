"""Periodic switch tasks, the task manager and auto-off timers."""

from .base import DEFAULT_DUTY_CYCLE, Phase, PeriodicTask, Task, TaskType, validate_timing
from .blink import Blink
from .errors import (
    AlreadyRunningError,
    InvalidDutyCycleError,
    InvalidPeriodError,
    NoSwitchesError,
    NotRunningError,
    SwitchRequiredError,
    TaskConfigurationError,
    TaskError,
    TaskManagerError,
    TaskStateError,
)
from .flipflop import Flipflop
from .task_manager import OFF_EVENT, TaskManager
from .timers import TimerEntry, TimerRegistry

__all__ = [
    'DEFAULT_DUTY_CYCLE',
    'Phase',
    'PeriodicTask',
    'Task',
    'TaskType',
    'validate_timing',
    'Blink',
    'Flipflop',
    'TaskManager',
    'OFF_EVENT',
    'TimerEntry',
    'TimerRegistry',
    'TaskError',
    'TaskConfigurationError',
    'SwitchRequiredError',
    'NoSwitchesError',
    'InvalidPeriodError',
    'InvalidDutyCycleError',
    'TaskStateError',
    'AlreadyRunningError',
    'NotRunningError',
    'TaskManagerError',
]
