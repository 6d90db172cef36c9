"""
Single-channel HTTP gateway to the camera's configuration API.

The device's embedded HTTP server corrupts state when it receives concurrent
requests, so every call in this module goes through one ``asyncio.Lock``: a
second caller waits until the first request has fully resolved. The gateway
never retries and applies no timeout unless one is configured.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from enum import IntEnum, StrEnum
from typing import Any, TypeVar, overload

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from .contracts import CamsyncError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
FILE_NAME_HEADER = "X-File-Name"

ModelT = TypeVar("ModelT", bound=BaseModel)


class Endpoint(StrEnum):
    """Device API paths relative to :data:`API_PREFIX`."""

    GET_CAM_PARAM = "/image/getCamParam"
    SET_CAM_PARAM = "/image/setCamParam"
    GET_LIGHT_PARAM = "/image/getLightParam"
    SET_LIGHT_PARAM = "/image/setLightParam"
    GET_CAP_PARAM = "/capture/getCapParam"
    SET_CAP_PARAM = "/capture/setCapParam"
    GET_TRIGGER_PARAM = "/capture/getTriggerParam"
    SET_TRIGGER_PARAM = "/capture/setTriggerParam"
    GET_UPLOAD_PARAM = "/capture/getUploadParam"
    SET_UPLOAD_PARAM = "/capture/setUploadParam"
    GET_DATA_REPORT = "/network/getPlatformParam"
    SET_DATA_REPORT = "/network/setPlatformParam"
    GET_WIFI_LIST = "/network/getWifiList"
    GET_WIFI_PARAM = "/network/getWifiParam"
    SET_WIFI_PARAM = "/network/setWifiParam"
    GET_CELLULAR_PARAM = "/network/getCellularParam"
    SET_CELLULAR_PARAM = "/network/setCellularParam"
    SEND_CELLULAR_COMMAND = "/network/sendCellularCommand"
    GET_CELLULAR_STATUS = "/network/getCellularStatus"
    UPLOAD_MQTT_CA = "/network/uploadMqttCa"
    UPLOAD_MQTT_CERT = "/network/uploadMqttCert"
    UPLOAD_MQTT_KEY = "/network/uploadMqttKey"
    DELETE_MQTT_CA = "/network/deleteMqttCa"
    DELETE_MQTT_CERT = "/network/deleteMqttCert"
    DELETE_MQTT_KEY = "/network/deleteMqttKey"
    GET_DEV_INFO = "/system/getDevInfo"
    SET_DEV_INFO = "/system/setDevInfo"
    GET_DEV_BATTERY = "/system/getDevBattery"
    SET_DEV_UPGRADE = "/system/setDevUpgrade"
    GET_DEV_NTP_SYNC = "/system/getDevNtpSync"
    SET_DEV_NTP_SYNC = "/system/setDevNtpSync"
    SET_DEV_SLEEP = "/system/setDevSleep"
    SET_DEV_TIME = "/system/setDevTime"


class ResultCode(IntEnum):
    """Result codes carried in the ``result`` field of device acknowledgements."""

    OK = 1000
    WIFI_CONNECTED = 1001
    WIFI_DISCONNECTED = 1002
    UPGRADE_FAILED = 1003


class NetworkError(CamsyncError):
    """Transport failure, malformed response, or non-success HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.detail = detail


class Ack(BaseModel):
    """Acknowledgement body returned by device writes."""

    model_config = ConfigDict(extra="allow", frozen=True)

    result: int | None = None

    @property
    def ok(self) -> bool:
        return self.result in (None, ResultCode.OK)


class RequestGateway:
    """Serialise all device reads and writes through one logical channel."""

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = API_PREFIX,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._lock = asyncio.Lock()
        self._in_flight: str | None = None
        self._request_total = 0

    @property
    def in_flight(self) -> str | None:
        """Path of the request currently on the wire, if any."""
        return self._in_flight

    @property
    def request_total(self) -> int:
        return self._request_total

    def url_for(self, endpoint: Endpoint | str) -> str:
        return f"{self._api_prefix}{endpoint}"

    @overload
    async def read(self, endpoint: Endpoint | str) -> dict[str, Any]: ...

    @overload
    async def read(self, endpoint: Endpoint | str, model: type[ModelT]) -> ModelT: ...

    async def read(
        self, endpoint: Endpoint | str, model: type[ModelT] | None = None
    ) -> dict[str, Any] | ModelT:
        """GET a parameter group, optionally validating it against ``model``."""
        body = await self._send("GET", endpoint)
        if not isinstance(body, dict):
            raise NetworkError(
                "Expected a JSON object from the device", endpoint=str(endpoint), detail=body
            )
        if model is None:
            return body
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise NetworkError(
                f"Malformed {model.__name__} response", endpoint=str(endpoint), detail=body
            ) from exc

    async def write(self, endpoint: Endpoint | str, payload: Mapping[str, Any] | None = None) -> Ack:
        """POST a JSON payload and return the device acknowledgement."""
        body = await self._send("POST", endpoint, json=dict(payload) if payload is not None else {})
        return self._ack(endpoint, body)

    async def upload_bytes(
        self,
        endpoint: Endpoint | str,
        content: bytes = b"",
        *,
        file_name: str | None = None,
    ) -> Ack:
        """POST a raw octet-stream body, naming the file in a custom header."""
        headers = {"Content-Type": "application/octet-stream"}
        if file_name:
            headers[FILE_NAME_HEADER] = file_name
        body = await self._send("POST", endpoint, content=content, headers=headers)
        return self._ack(endpoint, body)

    async def upload_form(
        self, endpoint: Endpoint | str, files: Mapping[str, tuple[str, bytes]]
    ) -> Ack:
        """POST files as ``multipart/form-data``."""
        body = await self._send("POST", endpoint, files=dict(files))
        return self._ack(endpoint, body)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, endpoint: Endpoint | str, **kwargs: Any) -> Any:
        path = self.url_for(endpoint)
        async with self._lock:
            self._in_flight = path
            self._request_total += 1
            logger.debug("%s %s", method, path)
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.HTTPError as exc:
                raise NetworkError(f"{method} {path} failed: {exc}", endpoint=path) from exc
            finally:
                self._in_flight = None
        return self._decode(path, response)

    def _decode(self, path: str, response: httpx.Response) -> Any:
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = None
        if not response.is_success:
            raise NetworkError(
                f"{path} returned HTTP {response.status_code}",
                endpoint=path,
                status_code=response.status_code,
                detail=body if body is not None else response.text,
            )
        if body is None:
            raise NetworkError(
                f"{path} returned a non-JSON body", endpoint=path, detail=response.text
            )
        return body

    def _ack(self, endpoint: Endpoint | str, body: Any) -> Ack:
        if not isinstance(body, dict):
            raise NetworkError(
                "Expected a JSON acknowledgement", endpoint=str(endpoint), detail=body
            )
        try:
            return Ack.model_validate(body)
        except ValidationError as exc:
            raise NetworkError(
                "Malformed acknowledgement", endpoint=str(endpoint), detail=body
            ) from exc


__all__ = [
    "API_PREFIX",
    "Ack",
    "Endpoint",
    "FILE_NAME_HEADER",
    "NetworkError",
    "RequestGateway",
    "ResultCode",
]
