"""Task errors."""


class TaskError(Exception):
    """Base class for task errors."""
    pass


class TaskConfigurationError(TaskError):
    """Invalid task construction parameters."""
    pass


class SwitchRequiredError(TaskConfigurationError):
    def __init__(self, message: str = "switch is required"):
        super().__init__(message)


class NoSwitchesError(TaskConfigurationError):
    def __init__(self, message: str = "at least one switch is required"):
        super().__init__(message)


class InvalidPeriodError(TaskConfigurationError):
    def __init__(self, message: str = "period must be greater than 0"):
        super().__init__(message)


class InvalidDutyCycleError(TaskConfigurationError):
    def __init__(self, message: str = "duty cycle must be between 0 and 1"):
        super().__init__(message)


class TaskStateError(TaskError):
    """Lifecycle misuse, e.g. starting a running task."""
    pass


class AlreadyRunningError(TaskStateError):
    pass


class NotRunningError(TaskStateError):
    pass


class TaskManagerError(TaskError):
    """A task owned by the task manager could not be stopped."""
    pass
