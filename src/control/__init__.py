"""Switch controller: target resolution and request handling."""

from .switch_controller import (
    ControllerError,
    InvalidRequestError,
    SwitchController,
    UnknownTargetError,
    VALID_STATES,
)

__all__ = [
    'ControllerError',
    'InvalidRequestError',
    'SwitchController',
    'UnknownTargetError',
    'VALID_STATES',
]
