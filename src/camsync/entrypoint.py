"""
CLI entrypoint: connect to a camera, run the startup sync and optionally keep
the session open.

Dialogs are answered on the terminal; notifications, step outcomes and MQTT
status changes arrive over the event bus and are logged.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import logging.handlers
import signal
from collections.abc import Sequence
from pathlib import Path

from .core.bus import EventBus
from .core.config import ConfigError, ConfigService, ConfigSnapshot
from .core.contracts import BasePayload, MqttStatus, Notification, StepOutcome
from .core.notifications import NOTIFICATION_TOPIC
from .core.orchestrator import MQTT_STATUS_TOPIC, STEP_TOPIC, SessionOrchestrator
from .preferences import LanguagePreference

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore")


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing) == log_file:
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def configure_logging(
    level: str,
    *,
    log_file: Path | None = None,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if log_file is not None:
        _ensure_rotating_file_handler(log_file, max_mb=max_mb, backup_count=backup_count)


class ConsoleDialogs:
    """Dialog port that asks on the terminal without blocking the event loop."""

    def __init__(self, *, assume_yes: bool = False) -> None:
        self.assume_yes = assume_yes

    async def tip(self, message: str, *, show_cancel: bool = False) -> bool:
        if not show_cancel:
            print(message)
            return True
        if self.assume_yes:
            print(f"{message} [y]")
            return True
        answer = await asyncio.to_thread(input, f"{message} [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    async def prompt_password(self, ssid: str, *, show_error: bool = False) -> str | None:
        if show_error:
            print("Password incorrect or missing, try again.")
        try:
            return await asyncio.to_thread(getpass.getpass, f"Password for {ssid}: ")
        except EOFError:
            return None

    async def show_upgrade(self, message: str) -> None:
        print(message)

    def close(self) -> None:
        return None


def _log_bus_payload(topic: str, payload: BasePayload) -> None:
    if isinstance(payload, Notification) and payload.kind is not None:
        LOGGER.info("[%s] %s", topic, payload.kind)
    elif isinstance(payload, StepOutcome):
        if payload.ok:
            LOGGER.info("Step %s ok", payload.step)
        else:
            LOGGER.warning("Step %s failed: %s", payload.step, payload.error)
    elif isinstance(payload, MqttStatus):
        LOGGER.info("MQTT broker %s", "connected" if payload.connected else "disconnected")


async def run_session(
    snapshot: ConfigSnapshot,
    *,
    watch: bool = False,
    assume_yes: bool = False,
) -> int:
    """Run the startup sequence; with ``watch`` keep polling until a signal arrives."""
    bus = EventBus()
    for topic in (NOTIFICATION_TOPIC, STEP_TOPIC, MQTT_STATUS_TOPIC):
        bus.subscribe(topic, _log_bus_payload)
    orchestrator = SessionOrchestrator.from_config(
        snapshot, bus=bus, dialogs=ConsoleDialogs(assume_yes=assume_yes)
    )
    preference = LanguagePreference(
        state_file=snapshot.preferences.state_file,
        default=snapshot.preferences.language,
        on_change=orchestrator.reload,
    )
    LOGGER.info(
        "Connecting to %s (language %s)", snapshot.device.base_url, preference.language
    )

    try:
        report = await orchestrator.start()
        await bus.drain()
        if watch:
            stop_event = asyncio.Event()
            _install_signal_handlers(stop_event)
            LOGGER.info("Session running. Press Ctrl+C to stop.")
            await stop_event.wait()
    finally:
        await orchestrator.stop()
    return 0 if report.ok else 1


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str) -> None:
        if not stop_event.is_set():
            LOGGER.info("Received %s, beginning graceful shutdown.", sig_name)
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
        except NotImplementedError:  # Windows Proactor loop
            signal.signal(  # type: ignore[arg-type]
                sig,
                lambda signum, _frame, sig_name=sig.name: loop.call_soon_threadsafe(
                    _request_shutdown, sig_name or str(signum)
                ),
            )


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync configuration with a snapshot camera.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains config.yaml/secrets.yaml.",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Device address, overriding device.base_url (e.g. http://192.168.1.1).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: logging.level from config, else INFO).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file, rotated by size.",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep the session open and poll MQTT status until interrupted.",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Answer confirmation dialogs with yes.",
    )
    return parser.parse_args(argv)


def load_snapshot(args: argparse.Namespace) -> ConfigSnapshot:
    overrides: dict[str, dict[str, object]] = {}
    if args.base_url:
        overrides["device"] = {"base_url": args.base_url}
    return ConfigService(config_dir=args.config_dir, overrides=overrides).snapshot


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        snapshot = load_snapshot(args)
    except ConfigError as exc:
        configure_logging(args.log_level or "INFO")
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    configure_logging(
        args.log_level or snapshot.logging.level,
        log_file=args.log_file or snapshot.logging.file,
        max_mb=snapshot.logging.max_mb,
        backup_count=snapshot.logging.backup_count,
    )
    try:
        return asyncio.run(run_session(snapshot, watch=args.watch, assume_yes=args.yes))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("camsync session crashed.")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["ConsoleDialogs", "configure_logging", "main", "parse_args", "run_session"]
