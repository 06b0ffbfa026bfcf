"""
ir_reachables.report
====================

Informational listings of a :class:`~ir_reachables.reachability.ReachabilityResult`.

Output formats
--------------
``text``
    ``+++name`` for reachable, ``---name`` for unreachable functions.
``json``
    Machine-readable summary, call-graph statistics included.
``dot``
    Call graph with indirect edges, reachable functions highlighted.

None of this is part of the analysis contract; it exists for tooling and
debugging.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, Optional, TextIO

from termcolor import colored

from .callgraph import add_indirect_edges, build_callgraph
from .reachability import ReachabilityResult
from .signatures import build_signature_index


def use_color(stream: TextIO = sys.stdout, color: Optional[bool] = None) -> bool:
    """Decide whether to colour output written to *stream*."""
    if color is not None:
        return color
    if os.environ.get("NO_COLOR") is not None:
        return False
    try:
        return hasattr(stream, "isatty") and stream.isatty()
    except ValueError:      # closed stream
        return False


def format_text(result: ReachabilityResult, color: bool = False) -> str:
    def paint(text: str, hue: str) -> str:
        return colored(text, hue, force_color=True) if color else text

    indirect = set(result.indirect_only)
    lines = [f"Functions reachable from {result.entry.name} are"]
    for func in sorted(result.reachable):
        note = "  (indirect)" if func in indirect else ""
        lines.append(paint(f"+++{func.name}", "green") + note)
    lines.append("Non reachable functions")
    for func in result.unreachable:
        lines.append(paint(f"---{func.name}", "red"))
    return "\n".join(lines)


def to_dict(result: ReachabilityResult) -> Dict[str, Any]:
    return {
        "program": result.program.name,
        "entry": result.entry.name,
        "reachable": result.names(),
        "unreachable": [f.name for f in result.unreachable],
        "indirect_only": [f.name for f in result.indirect_only],
        "counts": {
            "defined": sum(1 for _ in result.program.defined_functions()),
            "reachable": len(result.reachable),
            "direct": len(result.direct),
        },
        "statistics": result.statistics,
    }


def format_json(result: ReachabilityResult) -> str:
    return json.dumps(to_dict(result), indent=2)


def format_dot(result: ReachabilityResult) -> str:
    """DOT call graph of the program, indirect edges included."""
    program = result.program
    cg = add_indirect_edges(build_callgraph(program),
                            build_signature_index(program))
    return cg.to_dot(title=f"reachable from {result.entry.name}",
                     highlight=result.reachable)


FORMATTERS = {
    "text": format_text,
    "json": format_json,
    "dot": format_dot,
}


def render(result: ReachabilityResult, fmt: str = "text", color: bool = False) -> str:
    """Render *result* in format *fmt* (one of :data:`FORMATTERS`)."""
    if fmt == "text":
        return format_text(result, color=color)
    formatter = FORMATTERS.get(fmt)
    if formatter is None:
        raise ValueError(f"unknown report format {fmt!r}")
    return formatter(result)
