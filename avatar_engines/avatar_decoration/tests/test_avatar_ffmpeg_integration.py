"""End-to-end checks against a real ffmpeg binary; skipped when none is installed."""
import asyncio
import io
import math

import pytest
from PIL import Image, ImageSequence

from avatar_engines.avatar_decoration.service import add_decoration, crop_to_square
from avatar_engines.common.data_uri import decode_data_uri
from avatar_engines.media_engine.engine import FFmpegEngine, ffmpeg_available

pytestmark = pytest.mark.skipif(not ffmpeg_available(), reason="ffmpeg binary not available")

CANVAS = 288


def _png(size, color=(220, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def _decoration_gif(colors) -> bytes:
    """Transparent 288x288 frames, each marked by a small coloured square in the top-left corner."""
    frames = []
    for color in colors:
        frame = Image.new("RGBA", (CANVAS, CANVAS), (0, 0, 0, 0))
        for x in range(4):
            for y in range(4):
                frame.putpixel((x, y), color + (255,))
        frames.append(frame)
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0, disposal=2)
    return buf.getvalue()


def _decode(uri: str) -> Image.Image:
    _, data = decode_data_uri(uri)
    return Image.open(io.BytesIO(data))


@pytest.fixture
def engine(tmp_path):
    eng = FFmpegEngine(workdir=str(tmp_path / "engine"))
    yield eng
    eng.close()


@pytest.mark.parametrize("size", [(300, 300), (640, 360), (120, 500), (50, 30)])
def test_crop_is_always_236_square(engine, size):
    img = _decode(asyncio.run(crop_to_square(engine, _png(size))))
    assert img.size == (236, 236)
    assert engine.list_files() == []


def test_crop_is_deterministic(engine):
    source = _png((400, 250), (10, 120, 200))
    first = asyncio.run(crop_to_square(engine, source))
    second = asyncio.run(crop_to_square(engine, source))
    assert first == second


def _alpha_frames(uri: str):
    img = _decode(uri)
    assert img.format == "GIF"
    return [frame.convert("RGBA") for frame in ImageSequence.Iterator(img)]


def _opaque_box(frame: Image.Image, margin: int = 8):
    """Bounding box of opaque pixels, ignoring the decoration's corner marker."""
    alpha = frame.getchannel("A")
    alpha = alpha.crop((margin, margin, CANVAS - margin, CANVAS - margin))
    box = alpha.getbbox()
    assert box is not None
    return (box[0] + margin, box[1] + margin, box[2] + margin, box[3] + margin)


def test_circular_mask_coverage(engine):
    w = h = 200
    uri = asyncio.run(add_decoration(engine, _png((w, h)), _decoration_gif([(0, 255, 0), (0, 0, 255)])))
    frame = _alpha_frames(uri)[0]
    left, top = (CANVAS - w) // 2, (CANVAS - h) // 2
    region = frame.getchannel("A").crop((left, top, left + w, top + h))
    covered = sum(1 for value in region.getdata() if value > 0)
    expected = math.pi * (min(w, h) / 2) ** 2 / (w * h)
    assert abs(covered / (w * h) - expected) < 0.02


def test_small_avatar_is_centred(engine):
    uri = asyncio.run(add_decoration(engine, _png((100, 60)), _decoration_gif([(0, 255, 0), (0, 0, 255)])))
    frame = _alpha_frames(uri)[0]
    x0, y0, x1, y1 = _opaque_box(frame)
    assert abs((x0 + x1) / 2 - CANVAS / 2) <= 1.5
    assert abs((y0 + y1) / 2 - CANVAS / 2) <= 1.5
    # circle of radius 30 inside a 100x60 avatar
    assert abs((x1 - x0) - 60) <= 2


def test_palette_is_shared_across_frames(engine):
    colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]
    uri = asyncio.run(add_decoration(engine, _png((288, 288), (90, 60, 200)), _decoration_gif(colors)))
    frames = _alpha_frames(uri)
    assert len(frames) >= 2
    seen = set()
    for frame in frames:
        seen.update(color for _, color in frame.convert("RGB").getcolors(maxcolors=CANVAS * CANVAS))
    assert len(seen) <= 256


def test_decoration_is_deterministic(engine):
    avatar = _png((150, 150), (30, 160, 90))
    deco = _decoration_gif([(255, 0, 0), (0, 0, 255)])
    assert asyncio.run(add_decoration(engine, avatar, deco)) == asyncio.run(add_decoration(engine, avatar, deco))
    assert engine.list_files() == []


DECORATION_COLORS = [
    (255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0),
    (0, 255, 255), (255, 0, 255), (255, 128, 0), (128, 0, 255),
]
DECORATION_FRAME_MS = 100


def _gif_avatar(frames: int, duration: int = 60) -> bytes:
    images = [Image.new("RGB", (120, 120), (40 * i % 256, 90, 160)) for i in range(frames)]
    buf = io.BytesIO()
    images[0].save(buf, format="GIF", save_all=True, append_images=images[1:], duration=duration, loop=0)
    return buf.getvalue()


def _jpeg_avatar() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (180, 120), (200, 160, 40)).save(buf, format="JPEG")
    return buf.getvalue()


def _total_duration_ms(uri: str) -> int:
    img = _decode(uri)
    return sum(frame.info.get("duration", 0) for frame in ImageSequence.Iterator(img))


@pytest.mark.parametrize(
    "avatar",
    [
        pytest.param(lambda: _png((600, 400)), id="png"),
        pytest.param(_jpeg_avatar, id="jpeg"),
        pytest.param(lambda: _gif_avatar(1), id="still-gif"),
        pytest.param(lambda: _gif_avatar(5), id="animated-gif"),
    ],
)
def test_decoration_sets_animation_length(engine, avatar):
    uri = asyncio.run(add_decoration(engine, avatar(), _decoration_gif(DECORATION_COLORS)))
    expected = len(DECORATION_COLORS) * DECORATION_FRAME_MS
    assert len(_alpha_frames(uri)) > 1
    assert abs(_total_duration_ms(uri) - expected) <= 120


def test_mask_keeps_avatar_transparency_inside_circle(engine):
    w = h = 200
    avatar = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    for x in range(w // 2, w):
        for y in range(h):
            avatar.putpixel((x, y), (220, 40, 40, 255))
    buf = io.BytesIO()
    avatar.save(buf, format="PNG")

    uri = asyncio.run(add_decoration(engine, buf.getvalue(), _decoration_gif([(0, 255, 0), (0, 0, 255)])))
    frame = _alpha_frames(uri)[0]
    left, top = (CANVAS - w) // 2, (CANVAS - h) // 2
    alpha = frame.getchannel("A")
    transparent_half = alpha.crop((left, top, left + w // 2, top + h))
    opaque_half = alpha.crop((left + w // 2, top, left + w, top + h))
    assert transparent_half.getbbox() is None
    covered = sum(1 for value in opaque_half.getdata() if value > 0)
    expected = math.pi * (w / 2) ** 2 / 2
    assert abs(covered - expected) / expected < 0.03
