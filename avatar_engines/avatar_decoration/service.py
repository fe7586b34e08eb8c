from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, List, Optional, Set, Union

import httpx

from avatar_engines.avatar_decoration.graphs import build_decoration_graph, build_square_crop_graph
from avatar_engines.avatar_decoration.models import AvatarImageResult, AvatarOperation, GraphPreview
from avatar_engines.common.data_uri import decode_data_uri, encode_data_uri
from avatar_engines.common.errors import OperationTimeoutError, UnrecognizedFormatError
from avatar_engines.common.sources import MediaAsset, Source, load_asset
from avatar_engines.config import runtime_config
from avatar_engines.filter_graph.compiler import compile_graph
from avatar_engines.media_engine.adapter import EngineOperation, MediaEngineAdapter, get_engine_adapter
from avatar_engines.media_engine.engine import FFmpegEngine, MediaEngine
from avatar_engines.media_engine.session import VirtualFileSession

logger = logging.getLogger(__name__)

DECORATION_EXT = "gif"
DECORATION_MIME = "image/gif"

EngineHandle = Union[MediaEngine, MediaEngineAdapter]


def _require_format(asset: MediaAsset, role: str) -> str:
    if asset.mime_type is None:
        raise UnrecognizedFormatError(role)
    return asset.mime_type


async def _load_all(*loads: Awaitable[MediaAsset]) -> List[MediaAsset]:
    """Load sources concurrently; the first failure cancels the loads still running."""
    tasks = [asyncio.ensure_future(load) for load in loads]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def crop_to_square(
    engine: EngineHandle,
    image_source: Source,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Crop an image to a centred 236x236 square; returns a data URI in the input's format."""
    asset = await load_asset(image_source, client)
    mime_type = _require_format(asset, "image")
    ext = asset.extension
    logger.info("crop_to_square starting on %d bytes of %s", asset.size_bytes, mime_type)

    adapter = get_engine_adapter(engine)
    async with adapter.exclusive():
        async with VirtualFileSession(adapter) as session:
            source = await session.write("input-image", ext, asset.data)
            op = EngineOperation(
                name="crop_to_square",
                input_files=[source.name],
                graph=build_square_crop_graph(),
                output_file=session.name_for("output", ext),
                output_mime_type=mime_type,
            )
            await adapter.execute(op)
            output = await session.read(op.output_file)

    logger.info("crop_to_square produced %d bytes of %s", len(output), mime_type)
    return encode_data_uri(output, op.output_mime_type)


async def add_decoration(
    engine: EngineHandle,
    avatar_source: Source,
    decoration_source: Source,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Circular-crop the avatar, centre it on a 288x288 canvas, overlay the decoration.

    The result is always an animated GIF data URI. The decoration is written
    with a .gif extension whatever it sniffs as, since the engine picks the
    animated demuxer from the extension.
    """
    avatar, decoration = await _load_all(
        load_asset(avatar_source, client),
        load_asset(decoration_source, client),
    )
    avatar_mime = _require_format(avatar, "avatar")
    decoration_mime = _require_format(decoration, "decoration")
    logger.info("add_decoration starting: avatar %s, decoration %s", avatar_mime, decoration_mime)
    if decoration_mime != DECORATION_MIME:
        logger.info("Decoration sniffed as %s, writing it as .%s", decoration_mime, DECORATION_EXT)

    adapter = get_engine_adapter(engine)
    async with adapter.exclusive():
        async with VirtualFileSession(adapter) as session:
            base = await session.write("input-base", avatar.extension, avatar.data)
            deco = await session.write("input-decoration", DECORATION_EXT, decoration.data)
            op = EngineOperation(
                name="add_decoration",
                input_files=[base.name, deco.name],
                graph=build_decoration_graph(),
                output_file=session.name_for("output", DECORATION_EXT),
                output_mime_type=DECORATION_MIME,
            )
            await adapter.execute(op)
            output = await session.read(op.output_file)

    logger.info("add_decoration produced %d bytes", len(output))
    return encode_data_uri(output, op.output_mime_type)


def preview_graph(operation: AvatarOperation) -> GraphPreview:
    if operation == "crop":
        graph = build_square_crop_graph()
    elif operation == "decoration":
        graph = build_decoration_graph()
    else:
        raise ValueError(f"Unknown operation: {operation}")
    return GraphPreview(
        operation=operation,
        input_count=graph.input_count,
        filter_complex=compile_graph(graph),
        stages=graph.stages,
    )


def _log_late_outcome(name: str, task: "asyncio.Task[Any]") -> None:
    if task.cancelled():
        logger.warning("%s was cancelled after its timeout", name)
    elif task.exception() is not None:
        logger.warning("%s failed after its timeout: %s", name, task.exception())
    else:
        logger.info("%s completed after its timeout; result discarded", name)


class AvatarDecorationService:
    """Runs the avatar operations against one engine, with an optional timeout.

    A timed-out operation is not cancelled: it keeps its place on the engine
    queue and runs to completion, its late outcome is only logged.
    """

    def __init__(
        self,
        engine: Optional[MediaEngine] = None,
        client: Optional[httpx.AsyncClient] = None,
        operation_timeout: Optional[float] = None,
    ) -> None:
        self._engine = engine
        self.client = client
        self.operation_timeout = operation_timeout if operation_timeout is not None else runtime_config.get_operation_timeout()
        self._pending: Set["asyncio.Task[Any]"] = set()

    @property
    def engine(self) -> MediaEngine:
        if self._engine is None:
            self._engine = FFmpegEngine()
        return self._engine

    async def crop(self, source: Source) -> AvatarImageResult:
        uri = await self._guard("crop_to_square", crop_to_square(self.engine, source, client=self.client))
        return self._result("crop", uri)

    async def decorate(self, avatar_source: Source, decoration_source: Source) -> AvatarImageResult:
        uri = await self._guard(
            "add_decoration",
            add_decoration(self.engine, avatar_source, decoration_source, client=self.client),
        )
        return self._result("decoration", uri)

    async def drain(self) -> None:
        """Wait for operations that outlived their timeout."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _guard(self, name: str, coro: Awaitable[str]) -> str:
        timeout = self.operation_timeout
        if not timeout:
            return await coro
        task = asyncio.ensure_future(coro)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            task.add_done_callback(partial(_log_late_outcome, name))
            logger.warning("%s exceeded %.1fs, leaving it to settle in the background", name, timeout)
            raise OperationTimeoutError(name, timeout)

    @staticmethod
    def _result(operation: AvatarOperation, uri: str) -> AvatarImageResult:
        mime_type, data = decode_data_uri(uri)
        return AvatarImageResult(operation=operation, data_uri=uri, mime_type=mime_type, size_bytes=len(data))


_default_service: Optional[AvatarDecorationService] = None


def get_avatar_service() -> AvatarDecorationService:
    global _default_service
    if _default_service is None:
        _default_service = AvatarDecorationService()
    return _default_service


def set_avatar_service(service: Optional[AvatarDecorationService]) -> None:
    global _default_service
    _default_service = service
