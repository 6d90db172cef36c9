from __future__ import annotations

import asyncio

import httpx
import pytest

from camsync.core.gateway import (
    FILE_NAME_HEADER,
    Endpoint,
    NetworkError,
    RequestGateway,
    ResultCode,
)
from camsync.core.groups import CameraParams, DeviceInfo


@pytest.mark.asyncio
async def test_read_validates_into_parameter_group(device, gateway) -> None:
    device.responses[Endpoint.GET_CAM_PARAM] = {"frameSize": 8, "quality": 20, "bAgc": 0}

    camera = await gateway.read(Endpoint.GET_CAM_PARAM, CameraParams)

    assert camera.frame_size == 8
    assert camera.agc is False
    assert device.paths == ["/image/getCamParam"]


@pytest.mark.asyncio
async def test_requests_never_overlap(device, gateway) -> None:
    gate = asyncio.Event()
    device.gates[Endpoint.GET_DEV_INFO] = gate
    device.responses[Endpoint.GET_DEV_INFO] = {"name": "cam"}
    device.responses[Endpoint.GET_CAM_PARAM] = {}

    first = asyncio.create_task(gateway.read(Endpoint.GET_DEV_INFO, DeviceInfo))
    second = asyncio.create_task(gateway.read(Endpoint.GET_CAM_PARAM, CameraParams))
    await asyncio.sleep(0.01)

    assert gateway.in_flight == "/api/v1/system/getDevInfo"
    assert device.paths == ["/system/getDevInfo"]

    gate.set()
    await asyncio.gather(first, second)

    assert device.max_concurrent == 1
    assert device.paths == ["/system/getDevInfo", "/image/getCamParam"]
    assert gateway.in_flight is None


@pytest.mark.asyncio
async def test_http_error_carries_status_and_body(device, gateway) -> None:
    device.responses[Endpoint.SET_CAM_PARAM] = httpx.Response(500, json={"error": "busy"})

    with pytest.raises(NetworkError) as excinfo:
        await gateway.write(Endpoint.SET_CAM_PARAM, {"quality": 10})

    assert excinfo.value.status_code == 500
    assert excinfo.value.detail == {"error": "busy"}


@pytest.mark.asyncio
async def test_transport_failure_is_network_error(device, gateway) -> None:
    device.responses[Endpoint.GET_DEV_INFO] = httpx.ConnectError("unreachable")

    with pytest.raises(NetworkError):
        await gateway.read(Endpoint.GET_DEV_INFO)


@pytest.mark.asyncio
async def test_malformed_responses_are_network_errors(device, gateway) -> None:
    device.responses[Endpoint.GET_CAM_PARAM] = {"quality": "very high"}
    device.responses[Endpoint.GET_DEV_INFO] = httpx.Response(200, text="<html>")
    device.responses[Endpoint.GET_WIFI_LIST] = httpx.Response(200, json=[1, 2])

    with pytest.raises(NetworkError, match="Malformed CameraParams"):
        await gateway.read(Endpoint.GET_CAM_PARAM, CameraParams)
    with pytest.raises(NetworkError, match="non-JSON"):
        await gateway.read(Endpoint.GET_DEV_INFO)
    with pytest.raises(NetworkError, match="JSON object"):
        await gateway.read(Endpoint.GET_WIFI_LIST)


@pytest.mark.asyncio
async def test_write_returns_device_result(device, gateway) -> None:
    device.responses[Endpoint.SET_WIFI_PARAM] = {"result": 1002}

    ack = await gateway.write(Endpoint.SET_WIFI_PARAM, {"ssid": "lab", "password": ""})

    assert ack.result == ResultCode.WIFI_DISCONNECTED
    assert not ack.ok
    assert device.bodies("/network/setWifiParam") == [{"ssid": "lab", "password": ""}]


@pytest.mark.asyncio
async def test_upload_bytes_sends_octet_stream_with_file_name(device, gateway) -> None:
    ack = await gateway.upload_bytes(Endpoint.UPLOAD_MQTT_CA, b"PEM", file_name="ca.pem")

    assert ack.ok
    assert device.bodies("/network/uploadMqttCa") == [b"PEM"]
    headers = device.headers[-1]
    assert headers["content-type"] == "application/octet-stream"
    assert headers[FILE_NAME_HEADER] == "ca.pem"


@pytest.mark.asyncio
async def test_upload_form_posts_multipart(device, gateway) -> None:
    await gateway.upload_form(Endpoint.SET_DEV_UPGRADE, {"file": ("fw.bin", b"\x00\x01")})

    assert device.headers[-1]["content-type"].startswith("multipart/form-data")


@pytest.mark.asyncio
async def test_injected_client_is_not_closed() -> None:
    client = httpx.AsyncClient(base_url="http://camera.test")
    gateway = RequestGateway("http://camera.test", client=client)

    await gateway.aclose()

    assert not client.is_closed
    await client.aclose()
