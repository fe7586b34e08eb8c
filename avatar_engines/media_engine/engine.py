"""Media engine handle: a command runner with a private file namespace."""
from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from pydantic import BaseModel

from avatar_engines.config import runtime_config

logger = logging.getLogger(__name__)


class EngineRunResult(BaseModel):
    returncode: int
    stdout: str = ""
    stderr: str = ""


class MediaEngine(Protocol):
    async def write_file(self, name: str, data: bytes) -> None:
        ...

    async def exec(self, args: Sequence[str]) -> EngineRunResult:
        ...

    async def read_file(self, name: str) -> bytes:
        ...

    async def delete_file(self, name: str) -> None:
        ...


class FFmpegEngine:
    """Runs the ffmpeg CLI against a private working directory.

    The working directory is the engine's namespace: names passed to
    ``write_file``/``read_file`` and inside ``exec`` arguments are plain file
    names resolved relative to it.
    """

    def __init__(
        self,
        binary: Optional[str] = None,
        workdir: Optional[str] = None,
        loglevel: Optional[str] = None,
    ) -> None:
        self.binary = binary or runtime_config.get_ffmpeg_binary()
        self.loglevel = loglevel or runtime_config.get_ffmpeg_loglevel()
        configured = workdir or runtime_config.get_engine_workdir()
        if configured:
            self.workdir = Path(configured)
            self.workdir.mkdir(parents=True, exist_ok=True)
            self._owns_workdir = False
        else:
            self.workdir = Path(tempfile.mkdtemp(prefix="avatar-engine-"))
            self._owns_workdir = True

    def _path(self, name: str) -> Path:
        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise ValueError(f"Invalid engine file name: {name!r}")
        return self.workdir / name

    async def write_file(self, name: str, data: bytes) -> None:
        path = self._path(name)
        await asyncio.to_thread(path.write_bytes, bytes(data))

    async def read_file(self, name: str) -> bytes:
        path = self._path(name)
        return await asyncio.to_thread(path.read_bytes)

    async def delete_file(self, name: str) -> None:
        path = self._path(name)
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def exec(self, args: Sequence[str]) -> EngineRunResult:
        cmd = [self.binary, "-hide_banner", "-nostdin", "-y", "-loglevel", self.loglevel, *args]
        logger.debug("ffmpeg %s", " ".join(cmd[1:]))
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(self.workdir),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise
        return EngineRunResult(
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )

    def list_files(self) -> List[str]:
        return sorted(p.name for p in self.workdir.iterdir() if p.is_file())

    def close(self) -> None:
        if self._owns_workdir:
            shutil.rmtree(self.workdir, ignore_errors=True)


def ffmpeg_available(binary: Optional[str] = None) -> bool:
    return shutil.which(binary or runtime_config.get_ffmpeg_binary()) is not None
