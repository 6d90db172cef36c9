"""
TLS credential files for the MQTT connection.

Three independent slots (CA certificate, client certificate, client key)
each hold the file name the device reports. Files are validated locally
before any upload; a rejected file only produces a tip dialog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from ..core.contracts import CamsyncError
from ..core.gateway import Endpoint, NetworkError, RequestGateway
from ..core.notifications import DialogPort, LoadingPort, NotificationPort
from ..files import LocalFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES = 512 * 1024 * 1024


class CredentialKind(StrEnum):
    CA = "ca"
    CERT = "cert"
    KEY = "key"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    CredentialKind.CA: "CA certificate",
    CredentialKind.CERT: "client certificate",
    CredentialKind.KEY: "client key",
}

ALLOWED_EXTENSIONS: dict[CredentialKind, tuple[str, ...]] = {
    CredentialKind.CA: (".pem", ".crt", ".cer"),
    CredentialKind.CERT: (".pem", ".crt", ".cer", ".cert"),
    CredentialKind.KEY: (".key", ".pem"),
}

UPLOAD_ENDPOINTS = {
    CredentialKind.CA: Endpoint.UPLOAD_MQTT_CA,
    CredentialKind.CERT: Endpoint.UPLOAD_MQTT_CERT,
    CredentialKind.KEY: Endpoint.UPLOAD_MQTT_KEY,
}

DELETE_ENDPOINTS = {
    CredentialKind.CA: Endpoint.DELETE_MQTT_CA,
    CredentialKind.CERT: Endpoint.DELETE_MQTT_CERT,
    CredentialKind.KEY: Endpoint.DELETE_MQTT_KEY,
}


class CredentialValidationError(CamsyncError):
    """A credential file was rejected before upload."""

    def __init__(self, kind: CredentialKind, reason: str) -> None:
        super().__init__(f"{kind.label}: {reason}")
        self.kind = kind
        self.reason = reason


@dataclass
class CredentialSlot:
    kind: CredentialKind
    file_name: str = ""
    pending_file: LocalFile | None = None

    @property
    def present(self) -> bool:
        return bool(self.file_name.strip())


class CredentialLifecycleManager:
    """Select, upload and clear the three credential slots."""

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort,
        loading: LoadingPort | None = None,
        *,
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
    ) -> None:
        self.gateway = gateway
        self.notifier = notifier
        self.dialogs = dialogs
        self.loading = loading
        self.max_file_bytes = max_file_bytes
        self.slots = {kind: CredentialSlot(kind) for kind in CredentialKind}

    def slot(self, kind: CredentialKind | str) -> CredentialSlot:
        return self.slots[CredentialKind(kind)]

    def names(self) -> dict[CredentialKind, str]:
        return {kind: slot.file_name for kind, slot in self.slots.items()}

    def adopt_names(self, *, ca: str = "", cert: str = "", key: str = "") -> None:
        """Take over the file names reported by the device."""
        self.slots[CredentialKind.CA].file_name = ca or ""
        self.slots[CredentialKind.CERT].file_name = cert or ""
        self.slots[CredentialKind.KEY].file_name = key or ""

    def validate(self, kind: CredentialKind, file: LocalFile) -> None:
        if file.size == 0:
            raise CredentialValidationError(kind, "The selected file is empty.")
        if file.size > self.max_file_bytes:
            limit_mb = self.max_file_bytes // (1024 * 1024)
            raise CredentialValidationError(
                kind, f"The selected file is too large (maximum {limit_mb} MB)."
            )
        allowed = ALLOWED_EXTENSIONS[kind]
        if file.extension not in allowed:
            raise CredentialValidationError(
                kind,
                f"Unsupported file type {file.extension or '(none)'}; "
                f"expected one of {', '.join(allowed)}.",
            )

    async def select(self, kind: CredentialKind | str, file: LocalFile) -> bool:
        """Validate ``file`` for the slot and upload it when it passes."""
        kind = CredentialKind(kind)
        try:
            self.validate(kind, file)
        except CredentialValidationError as exc:
            logger.info("Rejected %s %s: %s", kind.label, file.name, exc.reason)
            await self.dialogs.tip(exc.reason)
            return False
        self.slots[kind].pending_file = file
        return await self.upload(kind, file)

    async def upload(self, kind: CredentialKind | str, file: LocalFile) -> bool:
        kind = CredentialKind(kind)
        slot = self.slots[kind]
        if self.loading is not None:
            self.loading.show("Uploading...")
        try:
            content = await file.read()
            ack = await self.gateway.upload_bytes(
                UPLOAD_ENDPOINTS[kind], content, file_name=file.name
            )
        except (NetworkError, OSError) as exc:
            logger.error("Uploading %s %s failed: %s", kind.label, file.name, exc)
            self.notifier.alert("error")
            return False
        finally:
            slot.pending_file = None
            if self.loading is not None:
                self.loading.hide()
        if not ack.ok:
            logger.error("Device rejected %s %s (result %s)", kind.label, file.name, ack.result)
            self.notifier.alert("error")
            return False
        slot.file_name = file.name
        logger.info("Uploaded %s %s", kind.label, file.name)
        self.notifier.alert("success")
        return True

    async def clear(self, kind: CredentialKind | str) -> bool:
        """
        Clear a slot.

        An empty slot is cleared locally without a request. An occupied slot
        asks for confirmation; once confirmed the local name is cleared even
        when the delete request fails. Returns ``False`` when cancelled.
        """
        kind = CredentialKind(kind)
        slot = self.slots[kind]
        if not slot.present:
            slot.file_name = ""
            slot.pending_file = None
            return True
        confirmed = await self.dialogs.tip(
            f"Clear the {kind.label} {slot.file_name}?", show_cancel=True
        )
        if not confirmed:
            return False
        try:
            await self.gateway.upload_bytes(DELETE_ENDPOINTS[kind])
        except NetworkError as exc:
            logger.error("Deleting %s failed: %s", kind.label, exc)
            self.notifier.alert("error")
        else:
            self.notifier.alert("success")
        finally:
            slot.file_name = ""
            slot.pending_file = None
        return True


__all__ = [
    "ALLOWED_EXTENSIONS",
    "CredentialKind",
    "CredentialLifecycleManager",
    "CredentialSlot",
    "CredentialValidationError",
    "DEFAULT_MAX_FILE_BYTES",
]
