from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from avatar_engines.common.errors import EngineExecutionError
from avatar_engines.filter_graph.compiler import GraphValidationError, compile_graph
from avatar_engines.filter_graph.models import FilterGraph
from avatar_engines.media_engine.engine import EngineRunResult, MediaEngine

logger = logging.getLogger(__name__)

DIAGNOSTIC_TAIL_LINES = 20


class EngineOperation(BaseModel):
    name: str
    input_files: List[str]
    input_options: Dict[str, List[str]] = Field(default_factory=dict)  # per input name, placed before its -i
    graph: Optional[FilterGraph] = None
    extra_args: List[str] = Field(default_factory=list)
    output_file: str
    output_mime_type: str


def _diagnostic(text: str) -> str:
    lines = [line for line in (text or "").splitlines() if line.strip()]
    return "\n".join(lines[-DIAGNOSTIC_TAIL_LINES:])


class MediaEngineAdapter:
    """Argument assembly, failure typing and the execution queue for one engine.

    Only one logical operation may hold ``exclusive()`` at a time, so the
    write/exec/read sequences of different operations never interleave on the
    shared engine namespace.
    """

    def __init__(self, engine: MediaEngine) -> None:
        self.engine = engine
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator["MediaEngineAdapter"]:
        async with self._lock:
            yield self

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def build_argv(self, op: EngineOperation) -> List[str]:
        argv: List[str] = []
        for name in op.input_files:
            argv.extend(op.input_options.get(name, []))
            argv.extend(["-i", name])
        if op.graph is not None:
            if op.graph.input_count != len(op.input_files):
                raise GraphValidationError(
                    f"Graph expects {op.graph.input_count} input(s), operation declares {len(op.input_files)}"
                )
            argv.extend(["-filter_complex", compile_graph(op.graph)])
            if op.graph.output_label:
                argv.extend(["-map", f"[{op.graph.output_label}]"])
        argv.extend(op.extra_args)
        argv.append(op.output_file)
        return argv

    async def execute(self, op: EngineOperation) -> EngineRunResult:
        try:
            argv = self.build_argv(op)
        except GraphValidationError as exc:
            raise EngineExecutionError(op.name, diagnostic=f"Invalid filter graph: {exc}") from exc
        logger.debug("Executing %s: %s", op.name, argv)
        try:
            result: Union[EngineRunResult, int] = await self.engine.exec(argv)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise EngineExecutionError(op.name, diagnostic=str(exc)) from exc
        if isinstance(result, int):
            result = EngineRunResult(returncode=result)
        if result.returncode != 0:
            raise EngineExecutionError(op.name, result.returncode, _diagnostic(result.stderr))
        return result

    async def write_file(self, name: str, data: bytes) -> None:
        await self.engine.write_file(name, data)

    async def read_file(self, name: str) -> bytes:
        return await self.engine.read_file(name)

    async def delete_file(self, name: str) -> None:
        await self.engine.delete_file(name)


_adapters: "weakref.WeakKeyDictionary[object, MediaEngineAdapter]" = weakref.WeakKeyDictionary()


def get_engine_adapter(engine: Union[MediaEngine, MediaEngineAdapter]) -> MediaEngineAdapter:
    """Return the one adapter (and so the one queue) bound to an engine instance."""
    if isinstance(engine, MediaEngineAdapter):
        return engine
    adapter = _adapters.get(engine)
    if adapter is None:
        adapter = MediaEngineAdapter(engine)
        _adapters[engine] = adapter
    return adapter
