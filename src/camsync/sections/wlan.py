"""
Wi-Fi network selection and connection state.

The network list is owned here. At most one entry is ever "connecting" (0)
or "connected" (1); every other entry is -1. Selecting a network creates a
:class:`PendingConnectionAttempt`. A newer selection supersedes it, and any
result that arrives for a superseded attempt is dropped.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

from .. import codec
from ..core.contracts import BaseSection, FieldValidationError, SectionStatus
from ..core.gateway import Endpoint, NetworkError, RequestGateway, ResultCode
from ..core.groups import NetworkEntry, WifiList, WifiParams
from ..core.notifications import DialogPort, LoadingPort, NotificationPort

logger = logging.getLogger(__name__)

STATUS_DISCONNECTED = -1
STATUS_CONNECTING = 0
STATUS_CONNECTED = 1

CONNECT_FAILED_TIP = "Connection failed. Please check the network and try again."

FCC_REGIONS = ("AU", "KR", "NZ", "SG", "US")
CE_REGIONS = ("EU", "IN")


def region_options_for_firmware(soft_version: str | None) -> tuple[str, ...]:
    """
    Region codes offered for a firmware build.

    The second dot-separated field of the version names the certification:
    1 is FCC, 2 is CE. Anything else offers no regions.
    """
    parts = (soft_version or "").split(".")
    if len(parts) < 2:
        return ()
    try:
        family = int(parts[1])
    except ValueError:
        return ()
    if family == 1:
        return FCC_REGIONS
    if family == 2:
        return CE_REGIONS
    return ()


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Connecting:
    ssid: str


@dataclass(frozen=True)
class Connected:
    ssid: str


@dataclass(frozen=True)
class Failed:
    ssid: str


ConnectionState = Idle | Connecting | Connected | Failed


@dataclass(eq=False)
class PendingConnectionAttempt:
    entry: NetworkEntry
    attempt_id: int
    show_error: bool = False
    submissions: int = 0


class ConnectionStateMachine(BaseSection):
    """Network list, password prompt loop and region selection."""

    name = "wlan"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.networks: list[NetworkEntry] = []
        self.state: ConnectionState = Idle()
        self.region = ""
        self.region_options: tuple[str, ...] = ()
        self.list_loading = False
        self.region_loading = False
        self._current: NetworkEntry | None = None
        self._attempt: PendingConnectionAttempt | None = None
        self._attempt_ids = itertools.count(1)

    @property
    def current(self) -> NetworkEntry | None:
        """The entry holding the connecting/connected slot, if any."""
        return self._current

    @property
    def attempt(self) -> PendingConnectionAttempt | None:
        return self._attempt

    async def read_all(self) -> None:
        await self.get_wlan_info()

    def status(self) -> SectionStatus:
        return SectionStatus(
            loaded=self.loaded,
            details={"state": type(self.state).__name__, "networks": len(self.networks)},
        )

    @staticmethod
    def signal_level(entry: NetworkEntry) -> int:
        return codec.rssi_to_level(entry.rssi)

    def set_region_options(self, soft_version: str | None, country_code: str = "") -> None:
        self.region_options = region_options_for_firmware(soft_version)
        if country_code:
            self.region = country_code

    # -- Network list --------------------------------------------------------------

    async def get_wlan_info(self) -> bool:
        """
        Fetch the network list, then the last connection, and reconcile them.

        Only one fetch runs at a time; an overlapping call returns ``False``
        without issuing requests.
        """
        if self.list_loading:
            return False
        self.list_loading = True
        try:
            self.networks = []
            listing = await self.gateway.read(Endpoint.GET_WIFI_LIST, WifiList)
            self.networks = list(listing.nodes)
            last = await self.gateway.read(Endpoint.GET_WIFI_PARAM, WifiParams)
        finally:
            self.list_loading = False

        self._attempt = None
        self._current = None
        self.state = Idle()
        for entry in self.networks:
            entry.status = STATUS_DISCONNECTED
        match = next((entry for entry in self.networks if entry.ssid == last.ssid), None)
        if match is not None:
            self._current = match
            if last.connected:
                match.status = STATUS_CONNECTED
                self.state = Connected(match.ssid)
        self.loaded = True
        return True

    def _lookup(self, network: NetworkEntry | str) -> NetworkEntry:
        if isinstance(network, NetworkEntry):
            for entry in self.networks:
                if entry is network:
                    return entry
            ssid = network.ssid
        else:
            ssid = network
        for entry in self.networks:
            if entry.ssid == ssid:
                return entry
        raise FieldValidationError("ssid", f"unknown network {ssid!r}")

    # -- Connecting ------------------------------------------------------------------

    async def select(self, network: NetworkEntry | str) -> ConnectionState:
        """
        Start connecting to ``network``.

        Encrypted networks go through the password prompt first. Selecting the
        network that is already connected does nothing.
        """
        entry = self._lookup(network)
        if entry.status == STATUS_CONNECTED:
            return self.state
        attempt = PendingConnectionAttempt(entry=entry, attempt_id=next(self._attempt_ids))
        if self._attempt is not None:
            logger.debug(
                "Attempt %s for %s superseded", self._attempt.attempt_id, self._attempt.entry.ssid
            )
        self._attempt = attempt
        if not entry.encrypted:
            return await self._submit(attempt, "")
        return await self._prompt(attempt)

    async def _prompt(self, attempt: PendingConnectionAttempt) -> ConnectionState:
        while True:
            password = await self.dialogs.prompt_password(
                attempt.entry.ssid, show_error=attempt.show_error
            )
            if attempt is not self._attempt:
                return self.state
            if password is None:
                logger.debug("Password prompt for %s cancelled", attempt.entry.ssid)
                self._attempt = None
                return self.state
            if not password:
                attempt.show_error = True
                continue
            state = await self._submit(attempt, password)
            if attempt is not self._attempt or not isinstance(state, Failed):
                return state
            attempt.show_error = True

    async def _submit(self, attempt: PendingConnectionAttempt, password: str) -> ConnectionState:
        entry = attempt.entry
        # The old slot holder is released before the request resolves.
        if self._current is not None and self._current is not entry:
            self._current.status = STATUS_DISCONNECTED
        self._current = entry
        entry.status = STATUS_CONNECTING
        self.state = Connecting(entry.ssid)
        attempt.submissions += 1

        result: int | None
        try:
            ack = await self.gateway.write(
                Endpoint.SET_WIFI_PARAM, {"ssid": entry.ssid, "password": password}
            )
            result = ack.result
        except NetworkError as exc:
            logger.warning("Connecting to %s failed: %s", entry.ssid, exc)
            result = None

        if attempt is not self._attempt:
            logger.info("Ignoring late result %s for superseded attempt on %s", result, entry.ssid)
            return self.state

        if result == ResultCode.WIFI_CONNECTED:
            entry.status = STATUS_CONNECTED
            self.state = Connected(entry.ssid)
            self._attempt = None
            logger.info("Connected to %s", entry.ssid)
            return self.state

        if result not in (ResultCode.WIFI_DISCONNECTED, None):
            logger.warning("Unexpected result %s connecting to %s", result, entry.ssid)
        entry.status = STATUS_DISCONNECTED
        self.state = Failed(entry.ssid)
        if not entry.encrypted:
            self._attempt = None
            await self.dialogs.tip(CONNECT_FAILED_TIP)
        return self.state

    # -- Region ------------------------------------------------------------------------

    async def change_region(self, code: str) -> bool:
        """Write the region code; a confirmed change refetches the network list."""
        if self.region_loading:
            return False
        if self.region_options and code not in self.region_options:
            raise FieldValidationError("country_code", f"region {code!r} is not offered")
        self.region_loading = True
        try:
            ack = await self.gateway.write(Endpoint.SET_DEV_INFO, {"countryCode": code})
            if ack.result != ResultCode.OK:
                logger.warning("Region change to %s returned %s", code, ack.result)
                self.notifier.alert("error")
                return False
            self.region = code
            await self.get_wlan_info()
        except NetworkError as exc:
            self._report_failure("region change", exc)
            return False
        finally:
            self.region_loading = False
        return True


__all__ = [
    "CE_REGIONS",
    "CONNECT_FAILED_TIP",
    "Connected",
    "Connecting",
    "ConnectionState",
    "ConnectionStateMachine",
    "FCC_REGIONS",
    "Failed",
    "Idle",
    "PendingConnectionAttempt",
    "region_options_for_firmware",
]
