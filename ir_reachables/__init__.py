"""
ir_reachables — Reachable-function analysis for compiled program models
=======================================================================

Computes the functions reachable from an entry point (conventionally
``main``), following direct calls as well as calls through function pointers
and callbacks.  Indirect targets are resolved by exact signature match, so
the result may contain functions that are never invoked but never misses one
that can be.

Core modules
------------
program
    Program model: types, functions, basic blocks, call sites.
signatures
    Signature → defined-functions index.
resolution
    Per-call-site resolution of indirect and callback targets.
callgraph
    Direct call graph with Tarjan SCC detection and DOT export.
reachability
    The reachability query (direct walk + indirect fixpoint).
config
    Run options.
passes
    Pass-style driver that reports failures instead of raising.
reader
    S-expression program-model reader.
report
    Text / JSON / DOT listings.

Quick start
-----------
>>> from ir_reachables import ProgramModel, signature, compute_reachable
>>> prog = ProgramModel()
>>> foo = prog.define("foo", signature("void"))
>>> _ = foo.add_block("entry")
>>> main = prog.define("main", signature("i32"))
>>> _ = main.add_block("entry").add_call(foo)
>>> sorted(f.name for f in compute_reachable(prog, "main"))
['foo', 'main']
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

__version__ = "0.1.0"
__all__: List[str] = ["__version__"]

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Re-export registry: module name -> public names
# ---------------------------------------------------------------------------

_MODULES = {
    "errors": [
        "ReachabilityError",
        "MissingEntryError",
        "MalformedCallSiteError",
        "ConfigError",
        "ModelError",
        "ModelParseError",
    ],
    "program": [
        "ProgramModel",
        "Function",
        "BasicBlock",
        "CallSite",
        "CallKind",
        "FunctionSignature",
        "ScalarType",
        "PointerType",
        "FunctionRef",
        "Operand",
        "signature",
        "as_type",
    ],
    "signatures": [
        "SignatureIndex",
        "build_signature_index",
    ],
    "callgraph": [
        "CallGraph",
        "CallGraphNode",
        "CallGraphEdge",
        "CallResolutionKind",
        "NodeKind",
        "build_callgraph",
        "add_indirect_edges",
    ],
    "config": [
        "ReachabilityConfig",
    ],
    "reachability": [
        "ReachableFunctions",
        "ReachabilityResult",
        "compute_reachable",
    ],
    "passes": [
        "ReachablesPass",
    ],
    "reader": [
        "parse_program",
        "load_program",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"ir_reachables: submodule '{module_rel_name}' failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)


for _mod, _names in _MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


if TYPE_CHECKING:
    from .errors import (
        ReachabilityError as ReachabilityError,
        MissingEntryError as MissingEntryError,
        MalformedCallSiteError as MalformedCallSiteError,
        ConfigError as ConfigError,
        ModelError as ModelError,
        ModelParseError as ModelParseError,
    )
    from .program import (
        ProgramModel as ProgramModel,
        Function as Function,
        BasicBlock as BasicBlock,
        CallSite as CallSite,
        CallKind as CallKind,
        FunctionSignature as FunctionSignature,
        ScalarType as ScalarType,
        PointerType as PointerType,
        FunctionRef as FunctionRef,
        Operand as Operand,
        signature as signature,
        as_type as as_type,
    )
    from .signatures import (
        SignatureIndex as SignatureIndex,
        build_signature_index as build_signature_index,
    )
    from .callgraph import (
        CallGraph as CallGraph,
        CallGraphNode as CallGraphNode,
        CallGraphEdge as CallGraphEdge,
        CallResolutionKind as CallResolutionKind,
        NodeKind as NodeKind,
        build_callgraph as build_callgraph,
        add_indirect_edges as add_indirect_edges,
    )
    from .config import ReachabilityConfig as ReachabilityConfig
    from .reachability import (
        ReachableFunctions as ReachableFunctions,
        ReachabilityResult as ReachabilityResult,
        compute_reachable as compute_reachable,
    )
    from .passes import ReachablesPass as ReachablesPass
    from .reader import (
        parse_program as parse_program,
        load_program as load_program,
    )
