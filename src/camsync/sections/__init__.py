"""
Configuration sections. Each section owns its parameter groups and talks to
the device only through the request gateway.
"""

from .capture import CaptureSection, TriggerModeMemory
from .cellular import CellularSection
from .credentials import CredentialKind, CredentialLifecycleManager, CredentialValidationError
from .device import DeviceSection
from .image import ImageSection
from .mqtt import MqttSection
from .upload import UploadSection
from .wlan import ConnectionStateMachine

__all__ = [
    "CaptureSection",
    "CellularSection",
    "ConnectionStateMachine",
    "CredentialKind",
    "CredentialLifecycleManager",
    "CredentialValidationError",
    "DeviceSection",
    "ImageSection",
    "MqttSection",
    "TriggerModeMemory",
    "UploadSection",
]
