from __future__ import annotations

import asyncio
import json
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from camsync.core.config import ConfigService
from camsync.core.gateway import API_PREFIX, RequestGateway

BASE_URL = "http://camera.test"


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


class DeviceStub:
    """
    Fake camera behind ``httpx.MockTransport``.

    ``responses`` maps an endpoint path (without the API prefix) to a JSON
    body, a list of bodies served in order, an exception to raise, an
    ``httpx.Response`` or a callable taking the request. Writes without a
    configured response are acknowledged with result 1000. ``gates`` holds
    requests for a path until the event is set.
    """

    def __init__(self) -> None:
        self.responses: dict[str, Any] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.headers: list[httpx.Headers] = []
        self.concurrent = 0
        self.max_concurrent = 0

    @property
    def paths(self) -> list[str]:
        return [path for _, path, _ in self.requests]

    def bodies(self, path: str) -> list[Any]:
        return [body for _, request_path, body in self.requests if request_path == path]

    def count(self, path: str) -> int:
        return self.paths.count(path)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix(API_PREFIX)
        content = await request.aread()
        body: Any
        if request.headers.get("content-type") == "application/json":
            body = json.loads(content) if content else None
        else:
            body = content
        self.requests.append((request.method, path, body))
        self.headers.append(request.headers)
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            gate = self.gates.get(path)
            if gate is not None:
                await gate.wait()
            return self._respond(request, path)
        finally:
            self.concurrent -= 1

    def _respond(self, request: httpx.Request, path: str) -> httpx.Response:
        if path not in self.responses:
            if request.method == "POST":
                return httpx.Response(200, json={"result": 1000})
            return httpx.Response(404, json={"error": f"no stub for {path}"})
        value = self.responses[path]
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        if isinstance(value, Exception):
            raise value
        if isinstance(value, httpx.Response):
            return value
        if callable(value):
            return value(request)
        return httpx.Response(200, json=value)


class RecordingNotifier:
    def __init__(self) -> None:
        self.alerts: list[str] = []

    def alert(self, kind: str = "error") -> None:
        self.alerts.append(kind)


class ScriptedDialogs:
    """
    Dialog port with canned answers.

    Tips are confirmed unless ``tip_answers`` says otherwise; password
    prompts return queued answers, then ``None`` (cancel).
    """

    def __init__(
        self,
        *,
        tip_answers: list[bool] | None = None,
        passwords: list[str | None] | None = None,
    ) -> None:
        self.tip_answers = list(tip_answers or [])
        self.passwords = list(passwords or [])
        self.tips: list[tuple[str, bool]] = []
        self.prompts: list[tuple[str, bool]] = []
        self.upgrades: list[str] = []
        self.closed = 0
        self.on_prompt: Callable[[str, bool], Any] | None = None

    async def tip(self, message: str, *, show_cancel: bool = False) -> bool:
        self.tips.append((message, show_cancel))
        return self.tip_answers.pop(0) if self.tip_answers else True

    async def prompt_password(self, ssid: str, *, show_error: bool = False) -> str | None:
        self.prompts.append((ssid, show_error))
        if self.on_prompt is not None:
            result = self.on_prompt(ssid, show_error)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return self.passwords.pop(0) if self.passwords else None

    async def show_upgrade(self, message: str) -> None:
        self.upgrades.append(message)

    def close(self) -> None:
        self.closed += 1


class RecordingLoading:
    def __init__(self) -> None:
        self.events: list[str] = []

    def show(self, message: str = "Loading...") -> None:
        self.events.append(f"show:{message}")

    def hide(self) -> None:
        self.events.append("hide")


@pytest.fixture
def device() -> DeviceStub:
    return DeviceStub()


@pytest.fixture
def gateway(device: DeviceStub) -> RequestGateway:
    return RequestGateway(BASE_URL, transport=httpx.MockTransport(device))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dialogs() -> ScriptedDialogs:
    return ScriptedDialogs()


@pytest.fixture
def loading() -> RecordingLoading:
    return RecordingLoading()


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary configuration directory for tests.
    """

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_yaml = f"""
    device:
      base_url: "http://192.168.4.1/"
      request_timeout: 15

    session:
      timezone: "UTC-8"
      notification_clear_seconds: 3
      mqtt_status_interval: 0.5
      upgrade_settle_seconds: 0

    preferences:
      language: "zh_CN"
      state_file: "{(tmp_path / 'state' / 'prefs.json').as_posix()}"

    logging:
      level: "DEBUG"
      max_mb: 2
      backup_count: 1
    """
    secrets_yaml = """
    credentials:
      max_file_mb: 64
    """
    _write_yaml(config_dir / "config.yaml", config_yaml)
    _write_yaml(config_dir / "secrets.yaml", secrets_yaml)
    return config_dir


@pytest.fixture
def sample_config_service(sample_config_dir: Path) -> ConfigService:
    """Return a ConfigService wired to the temporary configuration."""

    return ConfigService(config_dir=sample_config_dir)

