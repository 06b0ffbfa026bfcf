# tests/test_reader.py
"""Tests for the S-expression program-model reader."""

import pytest

from ir_reachables.errors import ModelParseError
from ir_reachables.program import (
    CallKind,
    FunctionRef,
    Operand,
    PointerType,
    ScalarType,
    signature,
)
from ir_reachables.reader import load_program, parse_program


class TestStructure:

    def test_sample(self, sample_text):
        program = parse_program(sample_text, filename="sample.ir")
        assert program.name == "sample"
        assert len(program) == 12
        assert program.get_function("puts").is_declaration
        main = program.get_function("main")
        assert main.signature == signature("i32")
        assert [bb.name for bb in main.blocks] == ["entry"]
        assert len(list(main.call_sites())) == 4

    def test_unnamed_program(self):
        program = parse_program("(program (define main (fn void)))")
        assert program.name == "<module>"
        assert program.get_function("main").blocks == []

    def test_forward_reference(self):
        program = parse_program("""
            (program
              (define main (fn void) (block entry (call later)))
              (define later (fn void)))
        """)
        cs = next(program.get_function("main").call_sites())
        assert cs.callee is program.get_function("later")

    def test_call_forms(self):
        program = parse_program("""
            (program
              (define cb (fn void i32))
              (define main (fn void)
                (block entry
                  (invoke (indirect (fn i32 i32)) (operand i32 x))
                  (call cb (ref cb) (operand (ptr (fn void i32)))))))
        """)
        indirect, direct = program.get_function("main").call_sites()
        assert indirect.kind is CallKind.INVOKE
        assert indirect.is_indirect
        assert indirect.called_type == signature("i32", "i32")
        assert indirect.arguments == (Operand(ScalarType("i32"), "x"),)
        cb = program.get_function("cb")
        assert direct.callee is cb
        assert direct.arguments == (
            FunctionRef(cb), Operand(PointerType(signature("void", "i32"))),
        )

    def test_variadic_signature(self):
        program = parse_program("(program (declare printf (fn i32 (ptr i8) ...)))")
        assert program.get_function("printf").signature == signature(
            "i32", "i8*", variadic=True)

    def test_names_t_and_nil_are_symbols(self):
        program = parse_program("(program (define t (fn nil)))")
        assert program.get_function("t").signature == signature("nil")

    def test_comments(self):
        program = parse_program("""
            ; leading comment
            (program (define main (fn void))) ; trailing
        """)
        assert "main" in program

    def test_load_program(self, tmp_path, sample_text):
        path = tmp_path / "sample.ir"
        path.write_text(sample_text, encoding="utf-8")
        assert load_program(path).get_function("main") is not None


class TestErrors:

    @pytest.mark.parametrize("text, fragment", [
        ("(program", "invalid S-expression"),
        ("", "exactly one"),
        ("(program) (program)", "exactly one"),
        ("(module)", "expected (program ...)"),
        ("(program (define main (fn void) (block entry (call nowhere))))",
         "unknown function 'nowhere'"),
        ("(program (declare f (fn void)) (define f (fn void)))",
         "duplicate function 'f'"),
        ("(program (export f))", "unknown program item"),
        ("(program (define f (fn void) (block b (jump x))))", "unknown instruction"),
        ("(program (define f (fn void) (block b (call))))", "without a callee"),
        ("(program (define f (fn void) (block b (call f (value 1)))))",
         "unknown argument form"),
        ("(program (define f (fn (array i8))))", "unknown type constructor"),
        ("(program (define f (fn (ptr i8 i8))))", "exactly one type"),
        ("(program (declare f (fn void) (block b)))", "no body"),
        ("(program (define f i32))", "expected (fn ...)"),
        ("(program (define f (fn void) (block b (call (direct f)))))",
         "expected (indirect ...)"),
    ])
    def test_rejected(self, text, fragment):
        with pytest.raises(ModelParseError) as exc_info:
            parse_program(text, filename="bad.ir")
        assert fragment in str(exc_info.value)
        assert exc_info.value.filename == "bad.ir"
