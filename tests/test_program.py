# tests/test_program.py
"""
Tests for the program model: structural types, functions, call sites and
the revision counter.
"""

import pytest

from ir_reachables.errors import ModelError
from ir_reachables.program import (
    CallKind,
    FunctionRef,
    FunctionSignature,
    Operand,
    PointerType,
    ProgramModel,
    ScalarType,
    as_type,
    function_type_of,
    signature,
)


class TestTypes:

    def test_signatures_compare_structurally(self):
        a = signature("i32", "i32", "i8*")
        b = FunctionSignature(ScalarType("i32"),
                              (ScalarType("i32"), PointerType(ScalarType("i8"))))
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_qualifiers_and_whitespace_ignored(self):
        assert signature("int", "const  int") == signature("int", "int")

    def test_return_type_distinguishes(self):
        assert signature("i32", "i32") != signature("i64", "i32")

    def test_variadic_distinguishes(self):
        assert signature("i32", "i8*") != signature("i32", "i8*", variadic=True)

    def test_pointer_spelling(self):
        assert as_type("i8 **") == PointerType(PointerType(ScalarType("i8")))

    def test_empty_spelling_rejected(self):
        with pytest.raises(ValueError):
            as_type("*")

    def test_function_type_of(self):
        sig = signature("void", "i32")
        assert function_type_of(sig) is sig
        assert function_type_of(PointerType(sig)) is sig
        assert function_type_of(PointerType(ScalarType("i8"))) is None
        assert function_type_of(ScalarType("i32")) is None

    def test_str(self):
        assert str(signature("i32", "i8*", variadic=True)) == "i32 (i8*, ...)"


class TestFunctions:

    def test_define_and_declare(self):
        prog = ProgramModel("m")
        main = prog.define("main", signature("i32"))
        puts = prog.declare("puts", signature("i32", "i8*"))
        assert not main.is_declaration
        assert puts.is_declaration
        assert list(prog.defined_functions()) == [main]
        assert list(prog.declarations()) == [puts]
        assert "main" in prog and main in prog
        assert len(prog) == 2

    def test_duplicate_name_rejected(self):
        prog = ProgramModel()
        prog.define("f", signature("void"))
        with pytest.raises(ModelError, match="Duplicate"):
            prog.declare("f", signature("void"))

    def test_declaration_has_no_blocks(self):
        prog = ProgramModel()
        ext = prog.declare("ext", signature("void"))
        with pytest.raises(ModelError):
            ext.add_block()
        assert list(ext.call_sites()) == []

    def test_call_sites_in_block_order(self):
        prog = ProgramModel()
        f = prog.define("f", signature("void"))
        g = prog.define("g", signature("void"))
        first = f.add_block("a").add_call(g)
        second = f.add_block("b").add_invoke(g)
        assert list(f.call_sites()) == [first, second]
        assert second.kind is CallKind.INVOKE
        assert first.function is f

    def test_direct_call_takes_callee_type(self):
        prog = ProgramModel()
        g = prog.define("g", signature("i32", "i32"))
        cs = prog.define("f", signature("void")).add_block().add_call(
            g, [Operand(as_type("i32"))])
        assert not cs.is_indirect
        assert cs.called_type == g.signature

    def test_indirect_call(self):
        prog = ProgramModel()
        f = prog.define("f", signature("void"))
        cs = f.add_block().add_call(called_type=signature("i32", "i32"))
        assert cs.is_indirect
        assert "indirect" in repr(cs)

    def test_function_ref_type(self):
        prog = ProgramModel()
        g = prog.define("g", signature("void", "i32"))
        assert FunctionRef(g).type == PointerType(g.signature)
        assert str(FunctionRef(g)) == "@g"

    def test_functions_sort_by_name(self):
        prog = ProgramModel()
        b = prog.define("b", signature("void"))
        a = prog.define("a", signature("void"))
        assert sorted([b, a]) == [a, b]


class TestRevision:

    def test_every_mutation_bumps_revision(self):
        prog = ProgramModel()
        seen = [prog.revision]
        f = prog.define("f", signature("void"))
        seen.append(prog.revision)
        bb = f.add_block()
        seen.append(prog.revision)
        bb.add_call(f)
        seen.append(prog.revision)
        assert seen == sorted(set(seen))


class TestValidate:

    def test_valid_program(self):
        prog = ProgramModel()
        g = prog.define("g", signature("void"))
        prog.define("f", signature("void")).add_block().add_call(g, [FunctionRef(g)])
        prog.validate()

    def test_foreign_callee_rejected(self):
        other = ProgramModel("other")
        foreign = other.define("g", signature("void"))
        prog = ProgramModel("mine")
        prog.define("f", signature("void")).add_block().add_call(foreign)
        with pytest.raises(ModelError, match="not a function of 'mine'"):
            prog.validate()

    def test_foreign_callback_rejected(self):
        other = ProgramModel("other")
        foreign = other.define("cb", signature("void"))
        prog = ProgramModel("mine")
        g = prog.define("g", signature("void"))
        prog.define("f", signature("void")).add_block().add_call(g, [FunctionRef(foreign)])
        with pytest.raises(ModelError):
            prog.validate()
