"""
Parameter groups as the device reports them.

Field aliases are the device's JSON keys; in-memory names are snake_case.
Device booleans travel as 0/1 integers, so :data:`Flag` validates either form
and always serialises back to an integer.
"""

from __future__ import annotations

from typing import Annotated, Any, Self

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

Flag = Annotated[bool, PlainSerializer(int, return_type=int)]


class ParameterGroup(BaseModel):
    """Base class: one in-memory copy per device group, owned by one section."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, validate_assignment=True)

    def to_device(self) -> dict[str, Any]:
        """Serialise with device keys, dropping read-only extras."""
        return self.model_dump(by_alias=True, exclude=self._read_only())

    def edited(self, **changes: Any) -> Self:
        """Validated deep copy with ``changes`` applied; ``self`` is left untouched."""
        draft = self.model_copy(deep=True)
        for name, value in changes.items():
            setattr(draft, name, value)
        return draft

    @classmethod
    def _read_only(cls) -> set[str]:
        return set()


class TimedNode(BaseModel):
    """One scheduled capture/upload slot. ``day`` is 0 (Sun) .. 6 (Sat), 7 daily."""

    model_config = ConfigDict(frozen=True)

    day: int = Field(ge=0, le=7)
    time: str = Field(pattern=r"^\d{2}:\d{2}:\d{2}$")


class CaptureParams(ParameterGroup):
    scheduled: Flag = Field(default=True, alias="bScheCap")
    mode: int = Field(default=0, ge=0, le=1, alias="scheCapMode")
    timed_nodes: list[TimedNode] = Field(default_factory=list, alias="timedNodes")
    interval_value: int = Field(default=8, alias="intervalValue")
    interval_unit: int = Field(default=1, ge=0, le=2, alias="intervalUnit")
    alarm_in: Flag = Field(default=True, alias="bAlarmInCap")
    button: Flag = Field(default=True, alias="bButtonCap")
    warmup_ms: int = Field(default=5000, alias="camWarmupMs")

    def to_device(self) -> dict[str, Any]:
        payload = super().to_device()
        payload["timedCount"] = len(self.timed_nodes)
        return payload


class TriggerParams(ParameterGroup):
    """PIR trigger registers; every value here is a register encoding."""

    trigger_mode: int | None = Field(default=None, ge=0, le=2)
    sens: int | None = None
    blind: int | None = None
    pulse: int | None = None
    window: int | None = None


class UploadParams(ParameterGroup):
    mode: int = Field(default=0, ge=0, le=1, alias="uploadMode")
    timed_nodes: list[TimedNode] = Field(default_factory=list, alias="timedNodes")
    retry_count: int = Field(default=3, ge=0, alias="retryCount")

    def to_device(self) -> dict[str, Any]:
        payload = super().to_device()
        payload["timedCount"] = len(self.timed_nodes)
        return payload


class LightParams(ParameterGroup):
    mode: int = Field(default=0, ge=0, le=3, alias="lightMode")
    value: int = Field(default=60, description="Measured luminance; read only.")
    threshold: int = 58
    duty: int = 50
    start_time: str = Field(default="23:00", alias="startTime")
    end_time: str = Field(default="07:00", alias="endTime")

    @classmethod
    def _read_only(cls) -> set[str]:
        return {"value"}


class CameraParams(ParameterGroup):
    brightness: int = 0
    contrast: int = 0
    saturation: int = 0
    ae_level: int = Field(default=0, alias="aeLevel")
    agc: Flag = Field(default=True, alias="bAgc")
    gain_ceiling: int = Field(default=3, alias="gainCeiling")
    gain: int = 15
    # The firmware spells the horizontal flip key this way.
    flip_horizontal: Flag = Field(default=True, alias="bHorizonetal")
    flip_vertical: Flag = Field(default=True, alias="bVertical")
    frame_size: int = Field(default=14, alias="frameSize")
    quality: int = Field(default=12, ge=0, le=63)
    hdr: Flag = Field(default=False, alias="hdrEnable")


class MqttPlatform(ParameterGroup):
    host: str = "192.168.1.1"
    port: int | str = Field(default=1883, alias="mqttPort")
    topic: str = "NE101SensingCam/Snapshot"
    client_id: str = Field(default="", alias="clientId")
    qos: int = Field(default=0, ge=0, le=2)
    username: str = ""
    password: str = ""
    connected: Flag = Field(default=False, alias="isConnected")
    tls: Flag = Field(default=False, alias="ssl")
    ca_name: str = Field(default="", alias="caName")
    cert_name: str = Field(default="", alias="certName")
    key_name: str = Field(default="", alias="keyName")

    @classmethod
    def _read_only(cls) -> set[str]:
        return {"connected"}


class DataReport(ParameterGroup):
    platform_type: int = Field(default=1, alias="currentPlatformType")
    mqtt: MqttPlatform = Field(default_factory=MqttPlatform, alias="mqttPlatform")

    def to_device(self) -> dict[str, Any]:
        payload = self.model_dump(by_alias=True, exclude={"mqtt"})
        payload["mqttPlatform"] = self.mqtt.to_device()
        return payload


class NetworkEntry(ParameterGroup):
    """A scanned Wi-Fi network. ``status``: -1 not connected, 0 connecting, 1 connected."""

    ssid: str
    rssi: int = -100
    encrypted: Flag = Field(default=False, alias="bAuthenticate")
    status: int = Field(default=-1, ge=-1, le=1)


class WifiList(ParameterGroup):
    nodes: list[NetworkEntry] = Field(default_factory=list)


class WifiParams(ParameterGroup):
    """Last-known connection parameters."""

    ssid: str = ""
    connected: Flag = Field(default=False, alias="isConnected")


class CellularParams(ParameterGroup):
    apn: str = ""
    user: str = ""
    password: str = ""
    pin: str = ""
    authentication: int = Field(default=0, ge=0, le=3)


class CellularStatus(ParameterGroup):
    network_status: str = Field(default="-", alias="networkStatus")
    modem_status: str = Field(default="-", alias="modemStatus")
    model: str = "-"
    version: str = "-"
    signal_level: str = Field(default="-", alias="signalLevel")
    register_status: str = Field(default="-", alias="registerStatus")
    imei: str = "-"
    imsi: str = "-"
    iccid: str = "-"
    isp: str = "-"
    network_type: str = Field(default="-", alias="networkType")


class DeviceInfo(ParameterGroup):
    netmod: str = ""
    name: str = ""
    mac: str = ""
    sn: str = ""
    hard_version: str = Field(default="", alias="hardVersion")
    soft_version: str = Field(default="", alias="softVersion")
    country_code: str = Field(default="", alias="countryCode")
    camera: str = "CSI"


class BatteryInfo(ParameterGroup):
    free_percent: int = Field(default=0, alias="freePercent")
    has_battery: Flag = Field(default=False, alias="bBattery")


class NtpSync(ParameterGroup):
    enable: Flag = False


__all__ = [
    "BatteryInfo",
    "CameraParams",
    "CaptureParams",
    "CellularParams",
    "CellularStatus",
    "DataReport",
    "DeviceInfo",
    "Flag",
    "LightParams",
    "MqttPlatform",
    "NetworkEntry",
    "NtpSync",
    "ParameterGroup",
    "TimedNode",
    "TriggerParams",
    "UploadParams",
    "WifiList",
    "WifiParams",
]
