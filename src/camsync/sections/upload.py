"""
Upload schedule: immediate or scheduled upload of captured snapshots.
"""

from __future__ import annotations

import logging
from typing import Any

from ..core.contracts import BaseSection, FieldValidationError
from ..core.gateway import Endpoint, NetworkError, RequestGateway
from ..core.groups import TimedNode, UploadParams
from ..core.notifications import DialogPort, LoadingPort, NotificationPort
from .schedule import DAILY, ClockField, TimeOfDayDraft, parse_ranged_int

logger = logging.getLogger(__name__)

UPLOAD_IMMEDIATE = 0
UPLOAD_SCHEDULED = 1
DEFAULT_RETRY_COUNT = 3
RETRY_RANGE = (0, 10)


class UploadSection(BaseSection):
    """
    Owns the upload group.

    ``retry_count`` is stored and written back as plain data; the client
    never retries anything itself.
    """

    name = "upload"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.upload = UploadParams()
        self.upload_time = TimeOfDayDraft()
        self.upload_day = DAILY
        self.retry_error = False

    async def read_all(self) -> None:
        await self.get_upload_info()

    async def get_upload_info(self) -> None:
        self.upload = await self.gateway.read(Endpoint.GET_UPLOAD_PARAM, UploadParams)
        self.loaded = True

    async def set_upload_info(self, upload: UploadParams | None = None) -> bool:
        """Write ``upload`` (default: the current group); it is kept only once acknowledged."""
        draft = self.upload if upload is None else upload
        try:
            await self.gateway.write(Endpoint.SET_UPLOAD_PARAM, draft.to_device())
        except NetworkError as exc:
            self._report_failure("upload write", exc)
            return False
        self.upload = draft
        return True

    async def change_upload_mode(self, mode: int, *, initial: bool = False) -> bool:
        if mode not in (UPLOAD_IMMEDIATE, UPLOAD_SCHEDULED):
            raise FieldValidationError("upload_mode", f"unknown upload mode {mode}")
        changes: dict[str, Any] = {"mode": mode}
        reset_retry = mode == UPLOAD_SCHEDULED and self.retry_error
        if reset_retry:
            changes["retry_count"] = DEFAULT_RETRY_COUNT
        draft = self.upload.edited(**changes)
        if initial:
            self.upload = draft
        elif not await self.set_upload_info(draft):
            return False
        if reset_retry:
            self.retry_error = False
        return True

    async def input_retry_count(self, raw: Any) -> bool:
        value = parse_ranged_int(raw, *RETRY_RANGE)
        if value is None:
            self.retry_error = True
            return False
        self.retry_error = False
        return await self.set_upload_info(self.upload.edited(retry_count=value))

    def input_upload_time(self, field: ClockField, raw: Any) -> str:
        return self.upload_time.normalize(field, raw)

    async def add_time_setting(self) -> bool:
        node = TimedNode(day=self.upload_day, time=self.upload_time.clock)
        nodes = [*self.upload.timed_nodes, node]
        return await self.set_upload_info(self.upload.edited(timed_nodes=nodes))

    async def delete_time_setting(self, index: int) -> bool:
        nodes = list(self.upload.timed_nodes)
        if not 0 <= index < len(nodes):
            raise FieldValidationError("timed_nodes", f"no scheduled upload at {index}")
        del nodes[index]
        return await self.set_upload_info(self.upload.edited(timed_nodes=nodes))


__all__ = ["UPLOAD_IMMEDIATE", "UPLOAD_SCHEDULED", "UploadSection"]
