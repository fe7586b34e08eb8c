from __future__ import annotations

import asyncio
import io
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from PIL import Image

from avatar_engines.media_engine.engine import EngineRunResult


class RecordingEngine:
    """In-memory engine that records every call in order."""

    def __init__(
        self,
        output: bytes = b"GIF89a-engine-output",
        returncode: int = 0,
        stderr: str = "",
        exec_error: Optional[Exception] = None,
        produce_output: bool = True,
        label: str = "",
        log: Optional[List[Tuple[str, str, str]]] = None,
    ) -> None:
        self.files: Dict[str, bytes] = {}
        self.calls: List[Tuple[str, str]] = []
        self.exec_args: List[List[str]] = []
        self.output = output
        self.returncode = returncode
        self.stderr = stderr
        self.exec_error = exec_error
        self.produce_output = produce_output
        self.label = label
        self.log = log

    def _record(self, method: str, target: str) -> None:
        self.calls.append((method, target))
        if self.log is not None:
            self.log.append((self.label, method, target))

    async def write_file(self, name: str, data: bytes) -> None:
        self._record("write", name)
        await asyncio.sleep(0)
        self.files[name] = bytes(data)

    async def exec(self, args: Sequence[str]) -> EngineRunResult:
        self._record("exec", args[-1])
        self.exec_args.append(list(args))
        await asyncio.sleep(0)
        if self.exec_error is not None:
            raise self.exec_error
        if self.returncode != 0:
            return EngineRunResult(returncode=self.returncode, stderr=self.stderr)
        if self.produce_output:
            self.files[args[-1]] = self.output
        return EngineRunResult(returncode=0)

    async def read_file(self, name: str) -> bytes:
        self._record("read", name)
        await asyncio.sleep(0)
        if name not in self.files:
            raise FileNotFoundError(name)
        return self.files[name]

    async def delete_file(self, name: str) -> None:
        self._record("delete", name)
        self.files.pop(name, None)


def encode_image(img: Image.Image, fmt: str) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def recording_engine_cls():
    return RecordingEngine


@pytest.fixture
def png_bytes() -> bytes:
    return encode_image(Image.new("RGB", (64, 48), (200, 30, 30)), "PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return encode_image(Image.new("RGB", (40, 80), (30, 200, 30)), "JPEG")


@pytest.fixture
def gif_bytes() -> bytes:
    frames = [Image.new("RGB", (32, 32), color) for color in [(255, 0, 0), (0, 0, 255)]]
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    return buf.getvalue()
