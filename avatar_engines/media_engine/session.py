from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from pydantic import BaseModel

from avatar_engines.common.errors import OutputReadError, VirtualFileWriteError
from avatar_engines.media_engine.adapter import MediaEngineAdapter

logger = logging.getLogger(__name__)


class VirtualFile(BaseModel):
    name: str
    size_bytes: int


class VirtualFileSession:
    """Operation-scoped file names inside the engine namespace.

    Every name carries the session token, so two operations never address the
    same file. All names handed out are deleted when the session closes,
    whether the operation succeeded or not.
    """

    def __init__(self, adapter: MediaEngineAdapter, token: Optional[str] = None) -> None:
        self.adapter = adapter
        self.token = token or uuid.uuid4().hex[:12]
        self._names: List[str] = []

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def name_for(self, role: str, ext: str) -> str:
        name = f"{role}-{self.token}.{ext}"
        if name not in self._names:
            self._names.append(name)
        return name

    async def write(self, role: str, ext: str, data: bytes) -> VirtualFile:
        name = self.name_for(role, ext)
        try:
            await self.adapter.write_file(name, data)
        except Exception as exc:
            raise VirtualFileWriteError(name, f"Could not write {name} to the engine: {exc}") from exc
        return VirtualFile(name=name, size_bytes=len(data))

    async def read(self, name: str) -> bytes:
        try:
            data = await self.adapter.read_file(name)
        except Exception as exc:
            raise OutputReadError(name, f"Could not read {name} from the engine: {exc}") from exc
        if not data:
            raise OutputReadError(name, f"Engine produced an empty file at {name}")
        return bytes(data)

    async def close(self) -> None:
        while self._names:
            name = self._names.pop()
            try:
                await self.adapter.delete_file(name)
            except Exception as exc:
                logger.warning("Failed to remove %s from engine namespace: %s", name, exc)

    async def __aenter__(self) -> "VirtualFileSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
