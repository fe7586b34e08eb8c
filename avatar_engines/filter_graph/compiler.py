from __future__ import annotations

import re
from typing import Any, Dict, List, Set

from avatar_engines.filter_graph.models import PAD_LABEL_RE, RAW_INPUT_RE, FilterGraph, FilterStage

# Filters that generate frames and so may start a chain without an input pad.
SOURCE_FILTERS = {"color", "nullsrc", "testsrc", "testsrc2", "smptebars", "rgbtestsrc"}

_OPTION_SPECIALS = re.compile(r"([\\':])")
_GRAPH_SPECIALS = re.compile(r"([\\'\[\],;])")


class GraphValidationError(ValueError):
    pass


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def escape_option_value(value: Any) -> str:
    """First escaping level: a single option value inside a filter's argument list."""
    return _OPTION_SPECIALS.sub(r"\\\1", format_value(value))


def escape_filter_args(args: str) -> str:
    """Second escaping level: a filter's whole argument string inside the graph."""
    return _GRAPH_SPECIALS.sub(r"\\\1", args)


def _filter_args(params: Dict[str, Any]) -> str:
    return ":".join(f"{key}={escape_option_value(val)}" for key, val in params.items())


class GraphCompiler:
    """Validates a FilterGraph and serializes it into ffmpeg filtergraph syntax.

    Stages are emitted in order. A stage without inputs that follows a stage
    without labeled outputs joins that stage's chain (``a,b``); everything
    else starts a new chain (``;``).
    """

    def compile(self, graph: FilterGraph) -> str:
        if not graph.stages:
            raise GraphValidationError("Filter graph has no stages")

        available: Dict[str, int] = {}  # label -> producing stage index, not yet consumed
        seen_labels: Set[str] = set()
        chains: List[List[str]] = []

        for idx, stage in enumerate(graph.stages):
            prev = graph.stages[idx - 1] if idx > 0 else None
            chained = prev is not None and not prev.outputs and not stage.inputs

            if prev is not None and not prev.outputs and stage.inputs:
                raise GraphValidationError(
                    f"Unlabeled output of stage {idx - 1} ({prev.filter_name}) is never consumed"
                )
            if not stage.inputs and not chained and stage.filter_name not in SOURCE_FILTERS:
                raise GraphValidationError(f"Stage {idx} ({stage.filter_name}) has no input")

            in_pads = [self._consume(ref, idx, graph, available, seen_labels) for ref in stage.inputs]

            for label in stage.outputs:
                if not PAD_LABEL_RE.match(label) or RAW_INPUT_RE.match(label):
                    raise GraphValidationError(f"Invalid pad label {label!r}")
                if label in seen_labels:
                    raise GraphValidationError(f"Duplicate pad label {label!r}")
                seen_labels.add(label)
                available[label] = idx

            text = self._stage_text(stage, in_pads)
            if chained:
                chains[-1].append(text)
            else:
                chains.append([text])

        last = graph.stages[-1]
        if graph.output_label is not None:
            if graph.output_label not in available:
                raise GraphValidationError(f"Output pad {graph.output_label!r} is not produced")
            available.pop(graph.output_label)
        elif last.outputs:
            raise GraphValidationError("Final stage is labeled but the graph declares no output_label")

        if available:
            dangling = ", ".join(sorted(available))
            raise GraphValidationError(f"Pads produced but never consumed: {dangling}")

        return ";".join(",".join(chain) for chain in chains)

    def _consume(
        self,
        ref: str,
        idx: int,
        graph: FilterGraph,
        available: Dict[str, int],
        seen_labels: Set[str],
    ) -> str:
        raw = RAW_INPUT_RE.match(ref)
        if raw:
            if int(raw.group("index")) >= graph.input_count:
                raise GraphValidationError(
                    f"Stage {idx} references input {ref} but the graph has {graph.input_count} input(s)"
                )
            return f"[{ref}]"
        if ref in available:
            available.pop(ref)
            return f"[{ref}]"
        if ref in seen_labels:
            raise GraphValidationError(f"Pad {ref!r} consumed more than once")
        raise GraphValidationError(f"Stage {idx} references unknown pad {ref!r}")

    def _stage_text(self, stage: FilterStage, in_pads: List[str]) -> str:
        args = _filter_args(stage.params)
        body = stage.filter_name + (f"={escape_filter_args(args)}" if args else "")
        return "".join(in_pads) + body + "".join(f"[{label}]" for label in stage.outputs)


def compile_graph(graph: FilterGraph) -> str:
    return GraphCompiler().compile(graph)
