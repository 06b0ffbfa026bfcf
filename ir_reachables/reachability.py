"""
ir_reachables.reachability
==========================

Functions reachable from an entry point, including through indirect calls.

The query runs in two phases:

1. **Direct reachability** -- depth-first walk of the direct call graph from
   the entry function.  Declarations are never entered and a function
   already in the result is never walked twice, which is what stops the
   walk on recursive and mutually recursive call graphs.  The walk uses an
   explicit stack, so deep call chains cannot exhaust the interpreter stack.

2. **Indirect closure** -- a FIFO worklist over the reachable functions.
   Each function's body is scanned once for indirect calls and function
   values passed as arguments (see :mod:`ir_reachables.resolution`).  Every
   newly found candidate is added, together with everything directly
   reachable from it, and queued in turn.  The reachable set only grows and
   the set of defined functions is finite, so the loop terminates.

The result over-approximates: a function may be reported reachable although
it is never invoked, but a function that can be invoked is never missed.

All state of a query (reachable set, signature index, processed set, work
queue) is local to :meth:`ReachableFunctions.compute_reachable`; concurrent
queries on an unmodified program do not interfere.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Deque, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from .callgraph import CallGraph, add_indirect_edges, build_callgraph
from .config import ReachabilityConfig
from .errors import MalformedCallSiteError, MissingEntryError, ModelError
from .program import Function, ProgramModel
from .resolution import indirectly_called_functions
from .signatures import SignatureIndex, build_signature_index

_log = logging.getLogger(__name__)

EntryLike = Union[str, Function]


@dataclass(frozen=True)
class ReachabilityResult:
    """Outcome of one query, with the direct-only set kept for comparison."""

    program: ProgramModel
    entry: Function
    reachable: FrozenSet[Function]
    direct: FrozenSet[Function]

    @property
    def unreachable(self) -> List[Function]:
        """Defined functions not in :attr:`reachable`, in program order."""
        return [f for f in self.program.defined_functions()
                if f not in self.reachable]

    @property
    def indirect_only(self) -> List[Function]:
        """Functions reachable only via indirect calls or callbacks."""
        return sorted(self.reachable - self.direct)

    @cached_property
    def statistics(self) -> Dict[str, Any]:
        """Call-graph figures of the program plus the size of the result.

        Taken from the call graph annotated with every resolved indirect and
        callback edge, so the recursion counts cover indirect cycles too.
        """
        program = self.program
        cg = add_indirect_edges(build_callgraph(program),
                                build_signature_index(program))
        stats = cg.statistics()
        stats.update(
            reachable=len(self.reachable),
            direct=len(self.direct),
            indirect_only=len(self.reachable - self.direct),
            unreachable=len(self.unreachable),
        )
        return stats

    def names(self) -> List[str]:
        return sorted(f.name for f in self.reachable)

    def __contains__(self, item) -> bool:
        if isinstance(item, str):
            return any(f.name == item for f in self.reachable)
        return item in self.reachable

    def __len__(self) -> int:
        return len(self.reachable)


class ReachableFunctions:
    """Reachability queries over one :class:`ProgramModel`.

    Parameters
    ----------
    program : ProgramModel
    callgraph : CallGraph, optional
        A prebuilt direct call graph of *program*.  Built on demand when
        omitted, and rebuilt whenever the program has changed since.
    use_callgraph : bool
        Walk the call graph for direct reachability.  When ``False`` the
        call sites are scanned directly; the result is the same.
    resolve_callbacks : bool
        Follow function values passed as call arguments.  Turning this off
        makes the analysis unsound.
    """

    def __init__(
        self,
        program: ProgramModel,
        callgraph: Optional[CallGraph] = None,
        *,
        use_callgraph: bool = True,
        resolve_callbacks: bool = True,
    ) -> None:
        if callgraph is not None and callgraph.program is not program:
            raise ModelError("call graph was built for a different program")
        self.program = program
        self.use_callgraph = use_callgraph
        self.resolve_callbacks = resolve_callbacks
        self._callgraph = callgraph

    @classmethod
    def from_config(
        cls,
        program: ProgramModel,
        config: ReachabilityConfig,
        callgraph: Optional[CallGraph] = None,
    ) -> "ReachableFunctions":
        return cls(program, callgraph,
                   use_callgraph=config.use_callgraph,
                   resolve_callbacks=config.resolve_callbacks)

    # ----- public API -------------------------------------------------------

    def compute_reachable(self, entry: EntryLike) -> FrozenSet[Function]:
        """Return every defined function reachable from *entry*.

        Raises
        ------
        MissingEntryError
            *entry* is unknown or has no body.
        MalformedCallSiteError
            A reachable function contains an inconsistent call site; the
            exception's ``partial`` holds what was found before.
        """
        return self.analyze(entry).reachable

    def analyze(self, entry: EntryLike) -> ReachabilityResult:
        """Like :meth:`compute_reachable` but returns a :class:`ReachabilityResult`."""
        entry_fn = self.resolve_entry(entry)
        direct, reachable = self._query(entry_fn)
        _log.info("%d function(s) reachable from %s (%d directly)",
                  len(reachable), entry_fn.name, len(direct))
        return ReachabilityResult(self.program, entry_fn, reachable, direct)

    def direct_reachable(self, entry: EntryLike) -> FrozenSet[Function]:
        """Functions reachable over statically known calls only."""
        reachable: Set[Function] = set()
        self._collect_reachable([self.resolve_entry(entry)], reachable)
        return frozenset(reachable)

    def resolve_entry(self, entry: EntryLike) -> Function:
        if isinstance(entry, Function):
            if entry not in self.program:
                raise MissingEntryError(entry.name, "not part of the program")
            func = entry
        else:
            func = self.program.get_function(entry)
            if func is None:
                raise MissingEntryError(entry)
        if func.is_declaration:
            raise MissingEntryError(func.name, "declaration without a body")
        return func

    @property
    def callgraph(self) -> Optional[CallGraph]:
        """The direct call graph in use, or ``None`` in scanning mode."""
        if not self.use_callgraph:
            return None
        if self._callgraph is None or self._callgraph.is_stale():
            if self._callgraph is not None:
                _log.info("program %s changed; rebuilding call graph",
                          self.program.name)
            self._callgraph = build_callgraph(self.program)
        return self._callgraph

    # ----- internals --------------------------------------------------------

    def _query(self, entry: Function) -> Tuple[FrozenSet[Function], FrozenSet[Function]]:
        index = build_signature_index(self.program)
        _log.debug("signature index: %r", index)

        reachable: Set[Function] = set()
        self._collect_reachable([entry], reachable)
        direct = frozenset(reachable)
        try:
            self._collect_indirectly_reachable(reachable, index)
        except MalformedCallSiteError as exc:
            raise MalformedCallSiteError(
                exc.call_site, exc.reason, frozenset(reachable)
            ) from exc
        return direct, frozenset(reachable)

    def _direct_callees(self, func: Function) -> List[Function]:
        """Statically known callees of *func*; none if it has no node."""
        graph = self.callgraph
        if graph is None:
            return [cs.callee for cs in func.call_sites()
                    if isinstance(cs.callee, Function)]
        node = graph.node_for(func)
        if node is None:
            return []
        return [n.function for n in graph.direct_callees(node)
                if n.function is not None]

    def _collect_reachable(
        self,
        roots: Iterable[Function],
        out: Set[Function],
    ) -> List[Function]:
        """Depth-first walk from *roots*; returns the newly inserted functions."""
        added: List[Function] = []
        stack: List[Function] = list(roots)
        stack.reverse()
        while stack:
            func = stack.pop()
            if func.is_declaration or func in out:
                continue
            out.add(func)
            added.append(func)
            stack.extend(reversed(self._direct_callees(func)))
        return added

    def _collect_indirectly_reachable(
        self,
        reachable: Set[Function],
        index: SignatureIndex,
    ) -> None:
        working_list: Deque[Function] = deque(sorted(reachable))
        processed: Set[Function] = set()

        while working_list:
            func = working_list.popleft()
            if func in processed:
                continue
            processed.add(func)
            called = indirectly_called_functions(func, index, self.resolve_callbacks)
            for indirect in sorted(called):
                if indirect in reachable:
                    continue
                _log.debug("%s may call %s indirectly", func.name, indirect.name)
                reachable.add(indirect)
                working_list.append(indirect)
                callees = self._direct_callees(indirect)
                working_list.extend(self._collect_reachable(callees, reachable))


def compute_reachable(
    program: ProgramModel,
    entry: EntryLike = "main",
    callgraph: Optional[CallGraph] = None,
) -> FrozenSet[Function]:
    """Functions of *program* reachable from *entry* (default ``main``)."""
    return ReachableFunctions(program, callgraph).compute_reachable(entry)
