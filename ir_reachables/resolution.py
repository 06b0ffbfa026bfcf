"""
ir_reachables.resolution
========================

Per-call-site resolution of indirectly invoked functions.

Two sources of candidates are considered for a call site:

``indirect_targets``
    The call has no static callee.  Every defined function whose signature
    equals the call's called type may be the target.
``callback_targets``
    Regardless of how the call itself is resolved, function values handed
    over as arguments may be invoked later by the callee.  A direct
    reference contributes that function; an operand of function type (or
    pointer-to-function type) contributes every defined function of that
    signature, because the concrete value is unknown at this point.

Both over-approximate.  A called type with no defined function of that shape
simply contributes nothing.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Set

from .errors import MalformedCallSiteError
from .program import (
    CallSite,
    Function,
    FunctionRef,
    FunctionSignature,
    Operand,
    function_type_of,
)
from .signatures import SignatureIndex

_log = logging.getLogger(__name__)


def check_call_site(cs: CallSite) -> None:
    """Raise :class:`MalformedCallSiteError` if *cs* is inconsistent."""
    if cs.callee is not None and not isinstance(cs.callee, Function):
        raise MalformedCallSiteError(cs, f"callee {cs.callee!r} is not a function")
    if cs.callee is None and not isinstance(cs.called_type, FunctionSignature):
        raise MalformedCallSiteError(cs, "indirect call without a function type")
    for pos, arg in enumerate(cs.arguments):
        if not isinstance(arg, (FunctionRef, Operand)):
            raise MalformedCallSiteError(
                cs, f"argument {pos} is neither a function reference nor an operand"
            )


def indirect_targets(cs: CallSite, index: SignatureIndex) -> FrozenSet[Function]:
    """Possible targets of *cs* when it is an indirect call."""
    if cs.callee is not None:
        return frozenset()
    targets = index.lookup(cs.called_type)
    if not targets:
        _log.debug("%r: no defined function of type %s", cs, cs.called_type)
    return targets


def callback_targets(cs: CallSite, index: SignatureIndex) -> Set[Function]:
    """Functions passed (or possibly passed) as arguments of *cs*."""
    callbacks: Set[Function] = set()
    for arg in cs.arguments:
        if isinstance(arg, FunctionRef):
            if not arg.function.is_declaration:
                callbacks.add(arg.function)
            continue
        fn_type = function_type_of(arg.type)
        if fn_type is not None:
            callbacks.update(index.lookup(fn_type))
    return callbacks


def indirectly_called_functions(
    function: Function,
    index: SignatureIndex,
    include_callbacks: bool = True,
) -> Set[Function]:
    """Union of indirect and callback candidates over *function*'s body."""
    called: Set[Function] = set()
    for cs in function.call_sites():
        check_call_site(cs)
        called.update(indirect_targets(cs, index))
        if include_callbacks:
            called.update(callback_targets(cs, index))
    return called


def resolved_call_sites(
    functions: Iterable[Function],
    index: SignatureIndex,
):
    """Yield ``(call_site, indirect, callbacks)`` for every call site.

    Used to annotate call graphs; sites contributing nothing are included
    so unresolved indirect calls stay visible.  Malformed sites are logged
    and left out, since they may sit in functions no query ever reaches.
    """
    for func in functions:
        for cs in func.call_sites():
            try:
                check_call_site(cs)
            except MalformedCallSiteError as exc:
                _log.warning("%s; not annotated", exc)
                continue
            yield cs, indirect_targets(cs, index), callback_targets(cs, index)
