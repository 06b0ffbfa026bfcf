"""
ir_reachables.reader
====================

S-expression reader producing a :class:`~ir_reachables.program.ProgramModel`.

Reads the textual program-model format used by the command-line tool and
the test-suite.  Parsing is delegated to ``sexpdata``; this module maps the
resulting nested lists onto :mod:`ir_reachables.program` objects.

Design principles
-----------------
* **Head-symbol dispatch** – every list ``(tag ...)`` is dispatched on
  ``tag`` to a dedicated ``_read_<tag>`` helper.
* **Two passes** – all functions are created first, bodies are filled in
  second, so calls may refer to functions defined later in the file.
* **Fail-fast** – anything unexpected raises ``ModelParseError``; nothing is
  silently ignored.

Surface syntax
--------------
::

    (program <name>?
      (declare <fname> <sig>)
      (define  <fname> <sig>
        (block <bname>
          (call   <callee> <arg> ...)
          (invoke <callee> <arg> ...))))

    <callee> := <fname> | (indirect <sig>)
    <arg>    := (ref <fname>) | (operand <type> <vname>?)
    <type>   := <symbol> | (ptr <type>) | <sig>
    <sig>    := (fn <ret-type> <param-type> ... [...])

Comments start with ``;``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

try:
    import sexpdata
    from sexpdata import Symbol
except ImportError:  # pragma: no cover
    raise ImportError(
        "The 'sexpdata' package is required to read program models. "
        "Install it with:  pip install sexpdata"
    )

from .errors import ModelParseError
from .program import (
    BasicBlock,
    CallKind,
    Function,
    FunctionRef,
    FunctionSignature,
    Operand,
    PointerType,
    ProgramModel,
    Type,
    Value,
    as_type,
)

Sexp = Any  # Union[list, Symbol, str, int, float]


class _Reader:
    """State of one parse: file name for messages and the function table."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        self.program: Optional[ProgramModel] = None

    # ----- helpers ------------------------------------------------------

    def error(self, message: str, form: Sexp = None) -> ModelParseError:
        return ModelParseError(
            message, self.filename, sexpdata.dumps(form) if form is not None else None
        )

    def name(self, s: Sexp) -> str:
        """Accept a symbol or a string literal as a name."""
        if isinstance(s, Symbol):
            value = getattr(s, "value", None)
            return value() if callable(value) else str(s)
        if isinstance(s, str):
            return s
        raise self.error(f"expected a name, got {s!r}", s)

    def expect_list(self, s: Sexp, tag: str, min_len: int = 1) -> list:
        if not isinstance(s, list) or not s:
            raise self.error(f"expected ({tag} ...)", s)
        head = self.head(s)
        if head != tag:
            raise self.error(f"expected ({tag} ...), got ({head} ...)", s)
        if len(s) < min_len:
            raise self.error(f"({tag} ...) needs at least {min_len - 1} operand(s)", s)
        return s

    def head(self, s: list) -> str:
        if not isinstance(s[0], Symbol):
            raise self.error("form must start with a symbol", s)
        return self.name(s[0])

    def function(self, s: Sexp) -> Function:
        fname = self.name(s)
        func = self.program.get_function(fname)
        if func is None:
            raise self.error(f"unknown function {fname!r}", s)
        return func

    # ----- types --------------------------------------------------------

    def type(self, s: Sexp) -> Type:
        if isinstance(s, list):
            if not s:
                raise self.error("empty type", s)
            tag = self.head(s)
            if tag == "fn":
                return self.signature(s)
            if tag == "ptr":
                if len(s) != 2:
                    raise self.error("(ptr T) takes exactly one type", s)
                return PointerType(self.type(s[1]))
            raise self.error(f"unknown type constructor {tag!r}", s)
        try:
            return as_type(self.name(s))
        except ValueError as exc:
            raise self.error(str(exc), s) from exc

    def signature(self, s: Sexp) -> FunctionSignature:
        s = self.expect_list(s, "fn", min_len=2)
        params = list(s[2:])
        variadic = False
        if params and isinstance(params[-1], Symbol) and self.name(params[-1]) == "...":
            variadic = True
            params.pop()
        return FunctionSignature(
            return_type=self.type(s[1]),
            params=tuple(self.type(p) for p in params),
            variadic=variadic,
        )

    # ----- program structure --------------------------------------------

    def read_program(self, s: Sexp) -> ProgramModel:
        s = self.expect_list(s, "program")
        items = list(s[1:])
        pname = "<module>"
        if items and not isinstance(items[0], list):
            pname = self.name(items.pop(0))
        self.program = ProgramModel(pname)

        bodies = []
        for item in items:
            if not isinstance(item, list) or not item:
                raise self.error("expected (declare ...) or (define ...)", item)
            reader = _ITEM_DISPATCH.get(self.head(item))
            if reader is None:
                raise self.error(f"unknown program item {self.head(item)!r}", item)
            bodies.append(reader(self, item))

        for func, blocks in bodies:
            for block in blocks:
                self.read_block(func, block)
        return self.program

    def add(self, func: Function, form: Sexp) -> Function:
        if func.name in self.program:
            raise self.error(f"duplicate function {func.name!r}", form)
        return self.program.add_function(func)

    def read_block(self, func: Function, s: Sexp) -> BasicBlock:
        s = self.expect_list(s, "block", min_len=2)
        bb = func.add_block(self.name(s[1]))
        for call in s[2:]:
            if not isinstance(call, list) or not call:
                raise self.error("expected (call ...) or (invoke ...)", call)
            kind = _CALL_KINDS.get(self.head(call))
            if kind is None:
                raise self.error(f"unknown instruction {self.head(call)!r}", call)
            if len(call) < 2:
                raise self.error("call without a callee", call)
            self.read_call(bb, call, kind)
        return bb

    def read_call(self, bb: BasicBlock, s: list, kind: CallKind) -> None:
        target = s[1]
        args = [self.argument(a) for a in s[2:]]
        if isinstance(target, list):
            ind = self.expect_list(target, "indirect", min_len=2)
            bb.add_call(arguments=args, called_type=self.signature(ind[1]), kind=kind)
        else:
            bb.add_call(self.function(target), arguments=args, kind=kind)

    def argument(self, s: Sexp) -> Value:
        if not isinstance(s, list) or not s:
            raise self.error("expected (ref ...) or (operand ...)", s)
        tag = self.head(s)
        if tag == "ref":
            self.expect_list(s, "ref", min_len=2)
            return FunctionRef(self.function(s[1]))
        if tag == "operand":
            self.expect_list(s, "operand", min_len=2)
            vname = self.name(s[2]) if len(s) > 2 else None
            return Operand(self.type(s[1]), vname)
        raise self.error(f"unknown argument form {tag!r}", s)


def _read_declare(r: _Reader, s: list):
    s = r.expect_list(s, "declare", min_len=3)
    if len(s) > 3:
        raise r.error("a declaration has no body", s)
    return r.add(Function(r.name(s[1]), r.signature(s[2]), defined=False), s), []


def _read_define(r: _Reader, s: list):
    s = r.expect_list(s, "define", min_len=3)
    func = r.add(Function(r.name(s[1]), r.signature(s[2]), defined=True), s)
    return func, list(s[3:])


_ITEM_DISPATCH: Dict[str, Callable[[_Reader, list], Any]] = {
    "declare": _read_declare,
    "define": _read_define,
}

_CALL_KINDS: Dict[str, CallKind] = {
    "call": CallKind.CALL,
    "invoke": CallKind.INVOKE,
}


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def parse_program(text: str, *, filename: str = "<string>") -> ProgramModel:
    """Parse a program model from S-expression *text*.

    Raises
    ------
    ModelParseError
        If the text is not well-formed or refers to unknown functions.
    """
    try:
        forms: List[Sexp] = sexpdata.loads(f"({text}\n)", nil=None, true=None, false=None)
    except Exception as exc:
        raise ModelParseError(f"invalid S-expression: {exc}", filename) from exc
    if len(forms) != 1:
        raise ModelParseError(
            f"expected exactly one (program ...) form, found {len(forms)}", filename
        )
    return _Reader(filename).read_program(forms[0])


def load_program(path: Union[str, Path]) -> ProgramModel:
    """Read a program model from a file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ModelParseError(f"not UTF-8: {exc}", str(p)) from exc
    return parse_program(text, filename=str(p))
