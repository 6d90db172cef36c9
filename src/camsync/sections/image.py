"""
Image and supplementary light settings.

The light group is read before the camera group. Light start/end times are
edited as separate hour/minute fields and written back as ``"HH:MM"``.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from .. import codec
from ..core.contracts import BaseSection, FieldValidationError
from ..core.gateway import Endpoint, NetworkError, RequestGateway
from ..core.groups import CameraParams, LightParams
from ..core.notifications import DialogPort, LoadingPort, NotificationPort

logger = logging.getLogger(__name__)

LightTimeField = Literal["start_hour", "start_minute", "end_hour", "end_minute"]

LIGHT_MODES = {0: "auto", 1: "custom", 2: "always on", 3: "always off"}
DEFAULT_START_HOUR = "23"
DEFAULT_END_HOUR = "07"


class ImageSection(BaseSection):
    name = "image"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.light = LightParams()
        self.camera = CameraParams()
        self.light_loaded = False
        self.camera_loaded = False

    async def read_all(self) -> None:
        await self.get_light_info()
        await self.get_cam_info()

    # -- Light -------------------------------------------------------------------

    async def get_light_info(self) -> None:
        self.light = await self.gateway.read(Endpoint.GET_LIGHT_PARAM, LightParams)
        self.light_loaded = True

    async def refresh_luminance(self) -> int | None:
        """Re-read the light group for its measured luminance value."""
        try:
            fresh = await self.gateway.read(Endpoint.GET_LIGHT_PARAM, LightParams)
        except NetworkError as exc:
            self._report_failure("luminance read", exc)
            return None
        self.light.value = fresh.value
        return fresh.value

    async def set_light_info(self, light: LightParams | None = None) -> bool:
        draft = self.light if light is None else light
        try:
            await self.gateway.write(Endpoint.SET_LIGHT_PARAM, draft.to_device())
        except NetworkError as exc:
            self._report_failure("light write", exc)
            return False
        # Keep a luminance reading that landed while the write was in flight.
        draft.value = self.light.value
        self.light = draft
        return True

    async def change_light_mode(self, mode: int) -> bool:
        if mode not in LIGHT_MODES:
            raise FieldValidationError("light_mode", f"unknown light mode {mode}")
        return await self.set_light_info(self.light.edited(mode=mode))

    async def set_light_threshold(self, value: Any) -> bool:
        threshold = int(codec.clamp(value, 0, 100))
        return await self.set_light_info(self.light.edited(threshold=threshold))

    async def set_light_duty(self, value: Any) -> bool:
        duty = int(codec.clamp(value, 0, 100))
        return await self.set_light_info(self.light.edited(duty=duty))

    def light_window(self) -> tuple[str, str, str, str]:
        start_hour, start_minute = codec.split_clock(self.light.start_time, "23:00")
        end_hour, end_minute = codec.split_clock(self.light.end_time, "07:00")
        return start_hour, start_minute, end_hour, end_minute

    async def input_light_time(self, field: LightTimeField, raw: Any) -> bool:
        """
        Normalise one light time field and write the light group.

        An empty hour falls back to 23 (start) or 07 (end). A window whose
        start equals its end is widened by advancing the end one minute.
        """
        start_hour, start_minute, end_hour, end_minute = self.light_window()
        empty = raw is None or not str(raw).strip()
        if field == "start_hour":
            start_hour = DEFAULT_START_HOUR if empty else codec.format_time_number("hour", raw)
        elif field == "end_hour":
            end_hour = DEFAULT_END_HOUR if empty else codec.format_time_number("hour", raw)
        elif field == "start_minute":
            start_minute = codec.format_time_number("minute", raw)
        elif field == "end_minute":
            end_minute = codec.format_time_number("minute", raw)
        else:
            raise FieldValidationError(field, "unknown light time field")

        if (start_hour, start_minute) == (end_hour, end_minute):
            end_hour, end_minute = codec.increase_one_minute(end_hour, end_minute)
        draft = self.light.edited(
            start_time=f"{start_hour}:{start_minute}", end_time=f"{end_hour}:{end_minute}"
        )
        return await self.set_light_info(draft)

    # -- Camera ------------------------------------------------------------------

    async def get_cam_info(self) -> None:
        self.camera = await self.gateway.read(Endpoint.GET_CAM_PARAM, CameraParams)
        self.camera_loaded = True
        self.loaded = True

    async def set_cam_info(self, camera: CameraParams | None = None) -> bool:
        draft = self.camera if camera is None else camera
        try:
            await self.gateway.write(Endpoint.SET_CAM_PARAM, draft.to_device())
        except NetworkError as exc:
            self._report_failure("camera write", exc)
            return False
        self.camera = draft
        return True

    async def update_camera(self, **changes: Any) -> bool:
        """Apply snake_case field changes (validated) and write the camera group."""
        for key in changes:
            if key not in CameraParams.model_fields:
                raise FieldValidationError(key, "unknown camera field")
        return await self.set_cam_info(self.camera.edited(**changes))

    async def change_frame_size(self, frame_size: codec.FrameSize | int | str) -> bool:
        if isinstance(frame_size, str) and not frame_size.isdigit():
            try:
                size = codec.FrameSize.from_label(frame_size)
            except ValueError as exc:
                raise FieldValidationError("frame_size", str(exc)) from exc
        else:
            try:
                size = codec.FrameSize(int(frame_size))
            except ValueError as exc:
                raise FieldValidationError("frame_size", str(exc)) from exc
        return await self.set_cam_info(self.camera.edited(frame_size=int(size)))

    async def change_quality(self, value: Any) -> bool:
        return await self.set_cam_info(self.camera.edited(quality=codec.clamp_quality(value)))

    async def reset_image_defaults(self) -> bool:
        draft = self.camera.edited(
            brightness=0, contrast=0, saturation=0, flip_horizontal=False, flip_vertical=False
        )
        return await self.set_cam_info(draft)


__all__ = ["ImageSection", "LIGHT_MODES"]
