"""
Core infrastructure for camsync: the device gateway, parameter groups, the
user-facing ports and the event bus they publish on.

The session orchestrator lives in :mod:`camsync.core.orchestrator`; it is not
imported here because it depends on the section modules.
"""

from .bus import EventBus, Subscription
from .config import ConfigError, ConfigService, ConfigSnapshot
from .contracts import BasePayload, BaseSection, CamsyncError, FieldValidationError
from .gateway import Endpoint, NetworkError, RequestGateway, ResultCode

__all__ = [
    "BasePayload",
    "BaseSection",
    "CamsyncError",
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "Endpoint",
    "EventBus",
    "FieldValidationError",
    "NetworkError",
    "RequestGateway",
    "ResultCode",
    "Subscription",
]
