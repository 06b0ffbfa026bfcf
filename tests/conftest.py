# tests/conftest.py
"""
Shared fixtures for the ir_reachables test-suite.

``builder`` gives each test a fresh ``ModelBuilder`` for assembling small
program models without the S-expression reader; ``sample_text`` is a model
exercising every kind of edge the analysis follows.
"""

import pytest

from ir_reachables.program import (
    CallKind,
    FunctionRef,
    Operand,
    ProgramModel,
    as_type,
    signature,
)

VOID = signature("void")
INT_TO_INT = signature("i32", "i32")
HANDLER = signature("void", "i32")


class ModelBuilder:
    """Thin helper over ``ProgramModel``: one ``entry`` block per function."""

    def __init__(self, name="test"):
        self.program = ProgramModel(name)

    def define(self, name, sig=VOID):
        func = self.program.define(name, sig)
        func.add_block("entry")
        return func

    def declare(self, name, sig=VOID):
        return self.program.declare(name, sig)

    def call(self, caller, callee, *args, kind=CallKind.CALL):
        return caller.blocks[0].add_call(callee, args, kind=kind)

    def call_indirect(self, caller, called_type, *args):
        return caller.blocks[0].add_call(arguments=args, called_type=called_type)

    @staticmethod
    def ref(func):
        return FunctionRef(func)

    @staticmethod
    def operand(ty, name=None):
        return Operand(as_type(ty), name)


@pytest.fixture
def builder():
    return ModelBuilder()


SAMPLE_MODEL = """
; every edge kind the analysis follows
(program sample
  (declare puts (fn i32 (ptr i8)))
  (declare qsort (fn void (ptr i8) i64 i64 (ptr (fn i32 (ptr i8) (ptr i8)))))
  (define main (fn i32)
    (block entry
      (call setup)
      (call (indirect (fn i32 i32)) (operand i32 x))
      (invoke register (ref on_event))
      (call puts (operand (ptr i8)))))
  (define setup (fn void)
    (block entry))
  (define inc (fn i32 i32)
    (block entry))
  (define dec (fn i32 i32)
    (block entry (call log_value)))
  (define log_value (fn void)
    (block entry (call puts (operand (ptr i8)))))
  (define register (fn void (ptr (fn void i32)))
    (block entry))
  (define on_event (fn void i32)
    (block entry (call handle)))
  (define handle (fn void)
    (block entry))
  (define ping (fn void)
    (block entry (call pong)))
  (define pong (fn void)
    (block entry (call ping))))
"""


@pytest.fixture
def sample_text():
    return SAMPLE_MODEL
