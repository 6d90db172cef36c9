"""
Cellular (Cat-1 modem) settings, status and AT command console.
"""

from __future__ import annotations

import logging

from ..core.contracts import BaseSection, SectionStatus
from ..core.gateway import Endpoint, NetworkError, RequestGateway
from ..core.groups import CellularParams, CellularStatus
from ..core.notifications import DialogPort, LoadingPort, NotificationPort

logger = logging.getLogger(__name__)

SAVE_TIP = "The modem restarts to apply the new settings; this can take a minute."
AUTHENTICATION_TYPES = {0: "None", 1: "PAP", 2: "CHAP", 3: "PAP or CHAP"}


class CellularSection(BaseSection):
    name = "cellular"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.params = CellularParams()
        self.modem = CellularStatus()
        self.command = ""
        self.last_response: str | None = None
        self.save_loading = False
        self.send_loading = False

    async def read_all(self) -> None:
        await self.get_cellular_info()

    def status(self) -> SectionStatus:
        return SectionStatus(
            loaded=self.loaded, details={"network_status": self.modem.network_status}
        )

    async def get_cellular_info(self) -> None:
        self.params = await self.gateway.read(Endpoint.GET_CELLULAR_PARAM, CellularParams)
        await self.get_cellular_status()
        self.loaded = True

    async def get_cellular_status(self) -> None:
        self.modem = await self.gateway.read(Endpoint.GET_CELLULAR_STATUS, CellularStatus)

    async def set_cellular_info(self) -> bool:
        """Save the modem settings and read everything back; one save at a time."""
        if self.save_loading:
            return False
        self.save_loading = True
        try:
            await self.dialogs.tip(SAVE_TIP)
            await self.gateway.write(Endpoint.SET_CELLULAR_PARAM, self.params.to_device())
            await self.get_cellular_info()
        except NetworkError as exc:
            self._report_failure("settings write", exc)
            return False
        finally:
            self.save_loading = False
        return True

    async def send_cellular_command(self, command: str | None = None) -> str | None:
        """
        Send an AT command and show the modem's reply in a tip.

        Nothing is sent for an empty command or while a save or another send
        is in progress.
        """
        if command is not None:
            self.command = command
        if not self.command.strip() or self.send_loading or self.save_loading:
            return None
        self.send_loading = True
        try:
            ack = await self.gateway.write(
                Endpoint.SEND_CELLULAR_COMMAND, {"command": self.command}
            )
        except NetworkError as exc:
            self._report_failure("AT command", exc)
            return None
        finally:
            self.send_loading = False
        message = str(getattr(ack, "message", "") or "")
        self.last_response = message
        logger.debug("AT %s -> %s", self.command, message)
        await self.dialogs.tip(message)
        return message


__all__ = ["AUTHENTICATION_TYPES", "CellularSection"]
