"""
ir_reachables.callgraph
=======================

Direct call graph of a :class:`~ir_reachables.program.ProgramModel`.

The call graph is a directed graph where:

- **Nodes** are functions (defined ones are ``FUNCTION`` nodes, declarations
  are ``EXTERNAL`` nodes) plus a synthetic ``UNKNOWN`` sink.
- **Edges** represent call relationships annotated with the call site and
  the resolution method.

Resolution methods
------------------
``DIRECT``
    The callee is statically known.  These are the only edges
    :func:`build_callgraph` creates, and the only ones the reachability
    walk follows.
``FUNCTION_POINTER``
    Candidate target of an indirect call, matched by signature.
``CALLBACK``
    Function value (or function-typed operand) passed as an argument.
``UNRESOLVED``
    Indirect call whose type matches no defined function; routed to the
    ``UNKNOWN`` node.

The last three kinds are only added by :func:`add_indirect_edges`, for
display purposes.

Public API
----------
    CallGraphNode       - a node in the call graph
    CallGraphEdge       - a directed edge (call site)
    CallGraph           - the whole-program call graph
    build_callgraph     - build from a ProgramModel
    add_indirect_edges  - annotate with resolved indirect edges
    CallResolutionKind  - enum of resolution methods

Typical usage::

    from ir_reachables.callgraph import build_callgraph

    cg = build_callgraph(program)
    for node in cg.nodes.values():
        print(f"{node.name}: calls {[e.callee.name for e in node.out_edges]}")
    print(cg.to_dot())
"""

from __future__ import annotations

import enum
from collections import OrderedDict, deque
from typing import (
    Any,
    Deque,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
)

from .program import CallSite, Function, ProgramModel
from .resolution import resolved_call_sites
from .signatures import SignatureIndex


# ---------------------------------------------------------------------------
# Resolution kinds
# ---------------------------------------------------------------------------

class CallResolutionKind(enum.Enum):
    """How a call edge was resolved."""

    DIRECT           = "direct"
    FUNCTION_POINTER = "function-pointer"
    CALLBACK         = "callback"
    UNRESOLVED       = "unresolved"


# ---------------------------------------------------------------------------
# Node kinds
# ---------------------------------------------------------------------------

class NodeKind(enum.Enum):
    """Classification of a call-graph node."""

    FUNCTION  = "function"      # defined in the module
    EXTERNAL  = "external"      # declaration only
    UNKNOWN   = "unknown"       # synthetic sink for unresolved calls


# ---------------------------------------------------------------------------
# CallGraphNode
# ---------------------------------------------------------------------------

class CallGraphNode:
    """A node in the call graph.

    Attributes
    ----------
    id : str
        Unique identifier; the function name for real functions.
    kind : NodeKind
    function : Function or None
        ``None`` only for the synthetic ``UNKNOWN`` node.
    out_edges / in_edges : list[CallGraphEdge]
    """

    __slots__ = ("id", "kind", "function", "out_edges", "in_edges")

    def __init__(
        self,
        node_id: str,
        kind: NodeKind = NodeKind.FUNCTION,
        function: Optional[Function] = None,
    ) -> None:
        self.id: str = node_id
        self.kind: NodeKind = kind
        self.function = function
        self.out_edges: List[CallGraphEdge] = []
        self.in_edges: List[CallGraphEdge] = []

    @property
    def name(self) -> str:
        return self.function.name if self.function is not None else f"<{self.id}>"

    @property
    def callees(self) -> List[CallGraphNode]:
        return [e.callee for e in self.out_edges]

    @property
    def callers(self) -> List[CallGraphNode]:
        return [e.caller for e in self.in_edges]

    @property
    def is_recursive(self) -> bool:
        """Does this function call itself (directly)?"""
        return any(e.callee is self for e in self.out_edges)

    def __repr__(self) -> str:
        return f"CallGraphNode({self.name!r}, kind={self.kind.value})"

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, CallGraphNode):
            return self.id == other.id
        return NotImplemented


# ---------------------------------------------------------------------------
# CallGraphEdge
# ---------------------------------------------------------------------------

class CallGraphEdge:
    """A directed edge in the call graph representing a call site."""

    __slots__ = ("caller", "callee", "call_site", "resolution")

    def __init__(
        self,
        caller: CallGraphNode,
        callee: CallGraphNode,
        call_site: Optional[CallSite] = None,
        resolution: CallResolutionKind = CallResolutionKind.DIRECT,
    ) -> None:
        self.caller = caller
        self.callee = callee
        self.call_site = call_site
        self.resolution = resolution

    def __repr__(self) -> str:
        return (
            f"CallGraphEdge({self.caller.name} -> {self.callee.name}, "
            f"{self.resolution.value})"
        )


# ---------------------------------------------------------------------------
# CallGraph
# ---------------------------------------------------------------------------

class CallGraph:
    """Whole-module call graph.

    Attributes
    ----------
    nodes : OrderedDict[str, CallGraphNode]
        All nodes, keyed by node id.
    edges : list[CallGraphEdge]
    unknown : CallGraphNode
        The synthetic UNKNOWN sink node.
    program : ProgramModel
    revision : int
        ``program.revision`` at build time; see :meth:`is_stale`.
    """

    def __init__(self, program: ProgramModel) -> None:
        self.program = program
        self.revision = program.revision
        self.nodes: OrderedDict[str, CallGraphNode] = OrderedDict()
        self.edges: List[CallGraphEdge] = []
        self.unknown = CallGraphNode("__UNKNOWN__", kind=NodeKind.UNKNOWN)
        self.nodes[self.unknown.id] = self.unknown

    # ----- node / edge management -------------------------------------------

    def get_or_create_node(self, function: Function) -> CallGraphNode:
        node = self.nodes.get(function.name)
        if node is not None:
            return node
        kind = NodeKind.EXTERNAL if function.is_declaration else NodeKind.FUNCTION
        node = CallGraphNode(function.name, kind=kind, function=function)
        self.nodes[node.id] = node
        return node

    def add_edge(
        self,
        caller: CallGraphNode,
        callee: CallGraphNode,
        call_site: Optional[CallSite] = None,
        resolution: CallResolutionKind = CallResolutionKind.DIRECT,
    ) -> CallGraphEdge:
        """Create a call edge and wire it up."""
        edge = CallGraphEdge(caller, callee, call_site, resolution)
        self.edges.append(edge)
        caller.out_edges.append(edge)
        callee.in_edges.append(edge)
        return edge

    # ----- lookups ----------------------------------------------------------

    def node_for(self, function: Function) -> Optional[CallGraphNode]:
        node = self.nodes.get(function.name)
        if node is not None and node.function is function:
            return node
        return None

    def __getitem__(self, function: Function) -> Optional[CallGraphNode]:
        return self.node_for(function)

    def is_stale(self) -> bool:
        """True when the program changed after this graph was built."""
        return self.revision != self.program.revision

    def direct_callees(self, node: CallGraphNode) -> List[CallGraphNode]:
        return [e.callee for e in node.out_edges
                if e.resolution is CallResolutionKind.DIRECT]

    # ----- whole-graph queries ----------------------------------------------

    def transitive_callees(self, node: CallGraphNode) -> Set[CallGraphNode]:
        """Return all nodes transitively reachable from *node* over any edge."""
        visited: Set[CallGraphNode] = set()
        worklist: Deque[CallGraphNode] = deque([node])
        while worklist:
            n = worklist.popleft()
            if n in visited:
                continue
            visited.add(n)
            for e in n.out_edges:
                worklist.append(e.callee)
        visited.discard(node)
        return visited

    def strongly_connected_components(self) -> List[List[CallGraphNode]]:
        """Compute SCCs with an iterative Tarjan's algorithm.

        SCCs are returned callees first.  An SCC with more than one node
        represents mutual recursion.
        """
        counter = 0
        index: Dict[str, int] = {}
        lowlink: Dict[str, int] = {}
        stack: List[CallGraphNode] = []
        on_stack: Set[str] = set()
        result: List[List[CallGraphNode]] = []

        for root in self.nodes.values():
            if root.id in index:
                continue
            work: List[Tuple[CallGraphNode, int]] = [(root, 0)]
            while work:
                v, i = work.pop()
                if i == 0:
                    index[v.id] = lowlink[v.id] = counter
                    counter += 1
                    stack.append(v)
                    on_stack.add(v.id)
                recurse = False
                while i < len(v.out_edges):
                    w = v.out_edges[i].callee
                    i += 1
                    if w.id not in index:
                        work.append((v, i))
                        work.append((w, 0))
                        recurse = True
                        break
                    if w.id in on_stack:
                        lowlink[v.id] = min(lowlink[v.id], index[w.id])
                if recurse:
                    continue
                if lowlink[v.id] == index[v.id]:
                    scc: List[CallGraphNode] = []
                    while True:
                        w = stack.pop()
                        on_stack.discard(w.id)
                        scc.append(w)
                        if w is v:
                            break
                    result.append(scc)
                if work:
                    parent = work[-1][0]
                    lowlink[parent.id] = min(lowlink[parent.id], lowlink[v.id])
        return result

    # ----- statistics -------------------------------------------------------

    def statistics(self) -> Dict[str, Any]:
        """Return a dict with summary statistics."""
        def count_edges(kind: CallResolutionKind) -> int:
            return sum(1 for e in self.edges if e.resolution is kind)

        sccs = self.strongly_connected_components()
        return {
            "functions": sum(1 for n in self.nodes.values()
                             if n.kind is NodeKind.FUNCTION),
            "external_functions": sum(1 for n in self.nodes.values()
                                      if n.kind is NodeKind.EXTERNAL),
            "total_edges": len(self.edges),
            "direct_calls": count_edges(CallResolutionKind.DIRECT),
            "function_pointer_calls": count_edges(CallResolutionKind.FUNCTION_POINTER),
            "callback_edges": count_edges(CallResolutionKind.CALLBACK),
            "unresolved_calls": count_edges(CallResolutionKind.UNRESOLVED),
            "recursive_sccs": sum(1 for scc in sccs if len(scc) > 1),
            "self_recursive_functions": sum(1 for n in self.nodes.values()
                                            if n.is_recursive),
        }

    # ----- serialisation ----------------------------------------------------

    def to_dot(
        self,
        title: Optional[str] = None,
        highlight: Optional[Iterable[Function]] = None,
    ) -> str:
        """Return a Graphviz DOT representation.

        Functions in *highlight* (e.g. a reachable set) are drawn green.
        """
        marked = {f.name for f in highlight} if highlight is not None else set()
        lines = ["digraph CallGraph {"]
        lines.append("  rankdir=TB;")
        if title:
            lines.append(f'  label="{title}";')
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')

        kind_attrs = {
            NodeKind.FUNCTION: 'style=filled, fillcolor="#ddeeff"',
            NodeKind.EXTERNAL: 'style=filled, fillcolor="#fff3cd", shape=ellipse',
            NodeKind.UNKNOWN:  'style=filled, fillcolor="#ffcccc", shape=diamond',
        }
        for n in self.nodes.values():
            if n.kind is NodeKind.UNKNOWN and not n.in_edges:
                continue
            attrs = kind_attrs[n.kind]
            if n.id in marked:
                attrs = 'style=filled, fillcolor="#ccffcc"'
            escaped = n.name.replace('"', '\\"')
            lines.append(f'  "{n.id}" [label="{escaped}", {attrs}];')

        res_attrs = {
            CallResolutionKind.DIRECT: "",
            CallResolutionKind.FUNCTION_POINTER: ", style=dashed, color=blue",
            CallResolutionKind.CALLBACK: ", style=dashed, color=darkgreen",
            CallResolutionKind.UNRESOLVED: ", style=dotted, color=red",
        }
        for e in self.edges:
            lines.append(
                f'  "{e.caller.id}" -> "{e.callee.id}" '
                f'[label="{e.resolution.value}"{res_attrs[e.resolution]}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CallGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"


# ===========================================================================
# PUBLIC API
# ===========================================================================

def build_callgraph(program: ProgramModel) -> CallGraph:
    """Build the direct call graph of *program*.

    Every function gets a node.  Each call site with a static callee adds one
    ``DIRECT`` edge; indirect call sites add nothing here.
    """
    cg = CallGraph(program)
    for func in program:
        cg.get_or_create_node(func)
    for func in program.defined_functions():
        caller = cg.nodes[func.name]
        for cs in func.call_sites():
            if isinstance(cs.callee, Function):
                cg.add_edge(caller, cg.get_or_create_node(cs.callee), cs)
    return cg


def add_indirect_edges(cg: CallGraph, index: SignatureIndex) -> CallGraph:
    """Annotate *cg* with edges for indirect-call and callback candidates.

    Unresolvable indirect calls get an ``UNRESOLVED`` edge to the unknown
    node.  Returns *cg* for chaining.
    """
    for cs, indirect, callbacks in resolved_call_sites(
        cg.program.defined_functions(), index
    ):
        caller = cg.nodes[cs.function.name]
        if cs.is_indirect and not indirect:
            cg.add_edge(caller, cg.unknown, cs, CallResolutionKind.UNRESOLVED)
        for target in sorted(indirect):
            cg.add_edge(caller, cg.get_or_create_node(target), cs,
                        CallResolutionKind.FUNCTION_POINTER)
        for target in sorted(callbacks):
            cg.add_edge(caller, cg.get_or_create_node(target), cs,
                        CallResolutionKind.CALLBACK)
    return cg
