"""
ir_reachables.program
=====================

In-memory program model consumed by the reachability analysis.

The model mirrors the shape of a compiled module's intermediate
representation, reduced to what call-graph reasoning needs:

- **Types** (``ScalarType``, ``PointerType``, ``FunctionSignature``) are
  frozen dataclasses, so two independently built descriptors of the same
  shape compare (and hash) equal.
- **Function** has a unique name, a signature and either a body (an ordered
  list of ``BasicBlock``) or no body at all (a declaration / external).
- **CallSite** lives in a basic block and holds an optional static callee,
  the called type, the call kind and the argument values.
- **ProgramModel** owns the functions and keeps a ``revision`` counter that
  changes on every mutation, so derived data (call graphs, signature
  indexes) can be tied to a snapshot.

Typical usage::

    from ir_reachables.program import ProgramModel, signature

    prog = ProgramModel("demo")
    inc = prog.define("inc", signature("i32", "i32"))
    inc.add_block("entry")
    main = prog.define("main", signature("i32"))
    main.add_block("entry").add_call(inc)
"""

from __future__ import annotations

import enum
from collections import OrderedDict
from dataclasses import dataclass
from typing import (
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .errors import ModelError


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ScalarType:
    """A named non-function type (``i32``, ``double``, ``struct.foo`` ...)."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class PointerType:
    """Pointer to *pointee*."""

    pointee: "Type"

    def __str__(self) -> str:
        return f"{self.pointee}*"


@dataclass(frozen=True, slots=True)
class FunctionSignature:
    """Structural function type: return type, parameter types, variadic flag.

    Used as a lookup key only; it never identifies a particular function.
    """

    return_type: "Type"
    params: Tuple["Type", ...] = ()
    variadic: bool = False

    @property
    def arity(self) -> int:
        return len(self.params)

    def __str__(self) -> str:
        parts = [str(p) for p in self.params]
        if self.variadic:
            parts.append("...")
        return f"{self.return_type} ({', '.join(parts)})"


Type = Union[ScalarType, PointerType, FunctionSignature]

_QUALIFIERS = ("const", "volatile", "restrict", "__restrict", "__volatile",
               "__const")


def _normalize_type_str(type_str: str) -> str:
    """Strip qualifiers and collapse whitespace in a type spelling."""
    words = [w for w in type_str.split() if w not in _QUALIFIERS]
    return " ".join(words)


def as_type(spec: Union[str, Type]) -> Type:
    """Coerce *spec* to a :data:`Type`.

    Strings name scalar types; each trailing ``*`` wraps the result in a
    :class:`PointerType` (``"i8*"`` is a pointer to ``i8``).  Type objects
    are returned unchanged.
    """
    if isinstance(spec, (ScalarType, PointerType, FunctionSignature)):
        return spec
    if not isinstance(spec, str):
        raise TypeError(f"Cannot interpret {spec!r} as a type")
    text = _normalize_type_str(spec)
    depth = 0
    while text.endswith("*"):
        depth += 1
        text = text[:-1].rstrip()
    if not text:
        raise ValueError(f"Empty type spelling: {spec!r}")
    result: Type = ScalarType(text)
    for _ in range(depth):
        result = PointerType(result)
    return result


def signature(
    return_type: Union[str, Type],
    *params: Union[str, Type],
    variadic: bool = False,
) -> FunctionSignature:
    """Build a :class:`FunctionSignature` from type specs.

    >>> signature("i32", "i32") == signature("i32", "const i32")
    True
    """
    return FunctionSignature(
        return_type=as_type(return_type),
        params=tuple(as_type(p) for p in params),
        variadic=variadic,
    )


def function_type_of(ty: Type) -> Optional[FunctionSignature]:
    """Return the signature a function-valued type refers to, if any.

    Both a function type and a pointer to one denote a function-valued slot.
    """
    if isinstance(ty, FunctionSignature):
        return ty
    if isinstance(ty, PointerType) and isinstance(ty.pointee, FunctionSignature):
        return ty.pointee
    return None


# ---------------------------------------------------------------------------
# Argument values
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FunctionRef:
    """A direct reference to a function used as a value (``&onEvent``)."""

    function: "Function"

    @property
    def type(self) -> Type:
        return PointerType(self.function.signature)

    def __str__(self) -> str:
        return f"@{self.function.name}"


@dataclass(frozen=True, slots=True)
class Operand:
    """Any other argument value; only its static type is known."""

    type: Type
    name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.type} %{self.name}" if self.name else str(self.type)


Value = Union[FunctionRef, Operand]


# ---------------------------------------------------------------------------
# Call sites, blocks, functions
# ---------------------------------------------------------------------------

class CallKind(enum.Enum):
    """Call instruction flavour.  Both are treated alike for reachability."""

    CALL   = "call"
    INVOKE = "invoke"     # may unwind to an exception handler


class CallSite:
    """A call instruction inside a basic block.

    Attributes
    ----------
    callee : Function or None
        The statically known target; ``None`` for indirect calls.
    called_type : FunctionSignature or None
        Type of the callee expression.  Defaults to the callee's signature
        for direct calls.
    arguments : tuple[Value, ...]
        Argument operands in order.
    kind : CallKind
    block : BasicBlock
        Enclosing block.
    """

    __slots__ = ("callee", "called_type", "arguments", "kind", "block")

    def __init__(
        self,
        block: "BasicBlock",
        callee: Optional["Function"] = None,
        arguments: Sequence[Value] = (),
        called_type: Optional[FunctionSignature] = None,
        kind: CallKind = CallKind.CALL,
    ) -> None:
        self.block = block
        self.callee = callee
        if called_type is None and isinstance(callee, Function):
            called_type = callee.signature
        self.called_type = called_type
        self.arguments: Tuple[Value, ...] = tuple(arguments)
        self.kind = kind

    @property
    def function(self) -> "Function":
        """The function containing this call site."""
        return self.block.function

    @property
    def is_indirect(self) -> bool:
        return self.callee is None

    def __repr__(self) -> str:
        target = (self.callee.name if isinstance(self.callee, Function)
                  else f"<indirect {self.called_type}>")
        args = ", ".join(str(a) for a in self.arguments)
        return (f"CallSite({self.kind.value} {target}({args}) "
                f"in {self.block.function.name}:{self.block.name})")


class BasicBlock:
    """An ordered sequence of call sites belonging to one function."""

    __slots__ = ("name", "function", "call_sites")

    def __init__(self, name: str, function: "Function") -> None:
        self.name = name
        self.function = function
        self.call_sites: List[CallSite] = []

    def add_call(
        self,
        callee: Optional["Function"] = None,
        arguments: Sequence[Value] = (),
        called_type: Optional[FunctionSignature] = None,
        kind: CallKind = CallKind.CALL,
    ) -> CallSite:
        """Append a call site and return it."""
        cs = CallSite(self, callee=callee, arguments=arguments,
                      called_type=called_type, kind=kind)
        self.call_sites.append(cs)
        self.function._touch()
        return cs

    def add_invoke(self, callee=None, arguments=(), called_type=None) -> CallSite:
        return self.add_call(callee, arguments, called_type, CallKind.INVOKE)

    def __repr__(self) -> str:
        return f"BasicBlock({self.function.name}:{self.name}, calls={len(self.call_sites)})"


class Function:
    """A function of the program.

    ``blocks`` is ``None`` for declarations; a defined function always has a
    (possibly empty) block list.  Identity is the name, which is unique
    within one :class:`ProgramModel`.
    """

    __slots__ = ("name", "signature", "blocks", "program")

    def __init__(
        self,
        name: str,
        signature: FunctionSignature,
        defined: bool = True,
    ) -> None:
        self.name = name
        self.signature = signature
        self.blocks: Optional[List[BasicBlock]] = [] if defined else None
        self.program: Optional[ProgramModel] = None

    @property
    def is_declaration(self) -> bool:
        return self.blocks is None

    def add_block(self, name: Optional[str] = None) -> BasicBlock:
        if self.blocks is None:
            raise ModelError(f"Cannot add a block to declaration {self.name!r}")
        bb = BasicBlock(name or f"bb{len(self.blocks)}", self)
        self.blocks.append(bb)
        self._touch()
        return bb

    def call_sites(self) -> Iterator[CallSite]:
        """Yield every call site of the body in block order."""
        for bb in self.blocks or ():
            yield from bb.call_sites

    def _touch(self) -> None:
        if self.program is not None:
            self.program.revision += 1

    def __repr__(self) -> str:
        kind = "declare" if self.is_declaration else "define"
        return f"Function({kind} {self.name}: {self.signature})"

    def __hash__(self) -> int:
        return hash(self.name)

    def __eq__(self, other) -> bool:
        if isinstance(other, Function):
            return self is other or (
                self.name == other.name and self.program is other.program
            )
        return NotImplemented

    def __lt__(self, other: "Function") -> bool:
        return self.name < other.name


class ProgramModel:
    """A whole module: the set of functions, in insertion order."""

    def __init__(self, name: str = "<module>") -> None:
        self.name = name
        self.revision = 0
        self._functions: "OrderedDict[str, Function]" = OrderedDict()

    # ----- construction -----------------------------------------------------

    def add_function(self, function: Function) -> Function:
        if function.name in self._functions:
            raise ModelError(f"Duplicate function {function.name!r}")
        if function.program is not None and function.program is not self:
            raise ModelError(
                f"Function {function.name!r} already belongs to "
                f"{function.program.name!r}"
            )
        function.program = self
        self._functions[function.name] = function
        self.revision += 1
        return function

    def define(self, name: str, sig: FunctionSignature) -> Function:
        """Create and add a function with a (still empty) body."""
        return self.add_function(Function(name, sig, defined=True))

    def declare(self, name: str, sig: FunctionSignature) -> Function:
        """Create and add an external declaration."""
        return self.add_function(Function(name, sig, defined=False))

    # ----- queries ----------------------------------------------------------

    def get_function(self, name: str) -> Optional[Function]:
        return self._functions.get(name)

    @property
    def functions(self) -> List[Function]:
        return list(self._functions.values())

    def defined_functions(self) -> Iterator[Function]:
        return (f for f in self._functions.values() if not f.is_declaration)

    def declarations(self) -> Iterator[Function]:
        return (f for f in self._functions.values() if f.is_declaration)

    def call_sites(self) -> Iterator[CallSite]:
        for f in self._functions.values():
            yield from f.call_sites()

    def validate(self) -> None:
        """Check that every function referenced by a call site belongs here.

        Raises :class:`ModelError` on the first dangling reference.
        """
        for cs in self.call_sites():
            refs: List[Function] = []
            if isinstance(cs.callee, Function):
                refs.append(cs.callee)
            refs.extend(a.function for a in cs.arguments
                        if isinstance(a, FunctionRef))
            for ref in refs:
                if self._functions.get(ref.name) is not ref:
                    raise ModelError(
                        f"{cs!r} refers to {ref.name!r}, which is not a "
                        f"function of {self.name!r}"
                    )

    def __contains__(self, item) -> bool:
        if isinstance(item, Function):
            return self._functions.get(item.name) is item
        return item in self._functions

    def __iter__(self) -> Iterator[Function]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def __repr__(self) -> str:
        n_def = sum(1 for _ in self.defined_functions())
        return (f"ProgramModel({self.name!r}, functions={len(self)}, "
                f"defined={n_def})")
