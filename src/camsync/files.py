"""
Files picked on the host for upload to the device.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class LocalFile:
    """
    A file chosen for upload.

    Name and size are known up front; the body is only read when the upload
    starts, so local validation never touches the content.
    """

    name: str
    size: int
    opener: Callable[[], bytes] = field(repr=False)

    @classmethod
    def from_path(cls, path: str | Path) -> LocalFile:
        file_path = Path(path)
        return cls(name=file_path.name, size=file_path.stat().st_size, opener=file_path.read_bytes)

    @classmethod
    def from_bytes(cls, name: str, content: bytes) -> LocalFile:
        return cls(name=name, size=len(content), opener=lambda: content)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    async def read(self) -> bytes:
        return await asyncio.to_thread(self.opener)


__all__ = ["LocalFile"]
