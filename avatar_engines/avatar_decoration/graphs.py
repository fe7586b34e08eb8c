"""Filter graphs for the two avatar operations."""
from __future__ import annotations

from avatar_engines.filter_graph.models import FilterGraph

SQUARE_SIZE = 236
DECORATION_CANVAS_SIZE = 288
BACKGROUND_DURATION_S = 100

CENTER_X = "(main_w-overlay_w)/2"
CENTER_Y = "(main_h-overlay_h)/2"

# r^2 = min(W/2,H/2)^2 in register 1, squared distance from the centre in register 3.
# Inside the circle the source alpha is kept rather than forced to 255, so
# pixels already transparent in the avatar stay transparent.
CIRCLE_ALPHA_EXPR = (
    "st(1,pow(min(W/2,H/2),2))"
    "+st(3,pow(X-(W/2),2)+pow(Y-(H/2),2));"
    "if(lte(ld(3),ld(1)),alpha(X,Y),0)"
)


def build_square_crop_graph(size: int = SQUARE_SIZE) -> FilterGraph:
    """Scale so the shorter side is ``size``, then crop the centre to size x size."""
    graph = FilterGraph(input_count=1)
    graph.add_stage(
        "scale",
        inputs=["0:v"],
        params={"w": size, "h": size, "force_original_aspect_ratio": "increase"},
        outputs=["scaled"],
    )
    graph.add_stage(
        "crop",
        inputs=["scaled"],
        params={"w": size, "h": size, "x": "(in_w-out_w)/2", "y": "(in_h-out_h)/2"},
    )
    return graph


def build_decoration_graph(canvas: int = DECORATION_CANVAS_SIZE) -> FilterGraph:
    """Circular avatar on a transparent canvas, decoration on top, one shared palette.

    Input 0 is the base avatar, input 1 the animated decoration.
    """
    graph = FilterGraph(input_count=2)

    # Transparent canvas, so avatars smaller than it are centred rather than stretched.
    graph.add_stage("color", params={"s": f"{canvas}x{canvas}", "d": BACKGROUND_DURATION_S})
    graph.add_stage("format", params={"pix_fmts": "argb"})
    graph.add_stage("colorchannelmixer", params={"aa": 0.0}, outputs=["background"])

    # Circular mask: alpha outside the inscribed circle drops to 0.
    graph.add_stage("format", inputs=["0:v"], params={"pix_fmts": "yuva444p"})
    graph.add_stage("geq", params={"lum": "p(X,Y)", "a": CIRCLE_ALPHA_EXPR}, outputs=["rounded_avatar"])

    graph.add_stage(
        "overlay",
        inputs=["background", "rounded_avatar"],
        params={"x": CENTER_X, "y": CENTER_Y, "shortest": 1, "format": "auto"},
        outputs=["avatar"],
    )
    # no shortest: the decoration sets the length whatever the avatar's frame count
    graph.add_stage(
        "overlay",
        inputs=["avatar", "1:v"],
        params={"x": CENTER_X, "y": CENTER_Y, "format": "auto"},
        outputs=["merged"],
    )

    graph.add_stage("split", inputs=["merged"], outputs=["s0", "s1"])
    graph.add_stage("palettegen", inputs=["s0"], outputs=["palette"])
    graph.add_stage("paletteuse", inputs=["s1", "palette"])
    return graph
