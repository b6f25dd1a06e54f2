# =============================================================================
# test_vm_codegen.py - Code Generator Unit Tests
# =============================================================================
# Tests for the Hack assembly generated per VM command.
#
# Test coverage includes:
#   - Exact instruction sequences for push/pop per addressing scheme
#   - Label and call-site counters and their uniqueness across units
#   - Function label qualification
#   - The call/return frame protocol ordering
#   - Bootstrap and halt
#   - Segment errors and the return-underflow check
# =============================================================================

import re

import pytest

from hack_sdk.errors import (
    CommandArgumentError,
    InvalidConstantUsageError,
    InvalidSegmentIndexError,
    StackUnderflowError,
)
from hack_sdk.vm.codegen import CodeGenerator
from hack_sdk.vm.commands import CommandKind, Segment, push, pop, call, function
from hack_sdk.vm.parser import parse_source


# =============================================================================
# Helper Functions
# =============================================================================

PUSH_D = ["@SP", "A=M", "M=D", "@SP", "M=M+1"]

LABEL_PATTERN = re.compile(r"^\((.+)\)$")


def generate(source: str, unit: str = "Test", generator: CodeGenerator = None) -> list[str]:
    """Translate source with a fresh (or given) generator and return its lines."""
    gen = generator or CodeGenerator()
    gen.set_unit(unit)
    for command in parse_source(source):
        gen.translate(command)
    return gen.lines


def defined_labels(lines: list[str]) -> list[str]:
    return [m.group(1) for line in lines if (m := LABEL_PATTERN.match(line))]


def stores(lines: list[str], symbols: tuple[str, ...]) -> list[str]:
    """Symbols written by '@X' / 'M=D' pairs, in order."""
    return [
        lines[i][1:] for i in range(len(lines) - 1)
        if lines[i][1:] in symbols and lines[i + 1] == "M=D"
    ]


def loads(lines: list[str], symbols: tuple[str, ...]) -> list[str]:
    """Symbols read by '@X' / 'D=M' pairs, in order."""
    return [
        lines[i][1:] for i in range(len(lines) - 1)
        if lines[i][1:] in symbols and lines[i + 1] == "D=M"
    ]


POINTERS = ("LCL", "ARG", "THIS", "THAT")


# =============================================================================
# Dispatch
# =============================================================================

class TestDispatch:
    """Every command kind has a translation."""

    def test_handler_for_every_kind(self):
        gen = CodeGenerator()
        assert set(gen._handlers) == set(CommandKind)

    def test_translate_returns_emitted_lines(self):
        gen = CodeGenerator()
        first = gen.translate(push(Segment.CONSTANT, 1))
        second = gen.translate(push(Segment.CONSTANT, 2))
        assert gen.lines == first + second


# =============================================================================
# Push and Pop
# =============================================================================

class TestPush:
    """push sequences per addressing scheme."""

    def test_constant(self):
        lines = generate("push constant 7")
        assert lines == ["@7", "D=A"] + PUSH_D

    def test_largest_constant(self):
        assert generate("push constant 32767")[:2] == ["@32767", "D=A"]

    def test_constant_wider_than_a_instruction(self):
        gen = CodeGenerator()
        with pytest.raises(InvalidSegmentIndexError) as exc_info:
            generate("push constant 32768", generator=gen)
        assert exc_info.value.valid_range == (0, 32767)
        assert gen.lines == []

    def test_base_offset_uses_repeated_increments(self):
        lines = generate("push local 3")
        assert lines == ["@LCL", "A=M", "A=A+1", "A=A+1", "A=A+1", "D=M"] + PUSH_D

    def test_base_offset_index_zero(self):
        lines = generate("push argument 0")
        assert lines == ["@ARG", "A=M", "D=M"] + PUSH_D

    @pytest.mark.parametrize("segment, base", [
        ("local", "LCL"), ("argument", "ARG"), ("this", "THIS"), ("that", "THAT"),
    ])
    def test_base_symbols(self, segment, base):
        lines = generate(f"push {segment} 1")
        assert lines[0] == f"@{base}"

    def test_temp(self):
        assert generate("push temp 2")[:2] == ["@R7", "D=M"]

    def test_pointer(self):
        assert generate("push pointer 0")[:2] == ["@THIS", "D=M"]
        assert generate("push pointer 1")[:2] == ["@THAT", "D=M"]

    def test_static_scoped_by_unit(self):
        assert generate("push static 4", unit="Foo")[:2] == ["@Foo.4", "D=M"]


class TestPop:
    """pop sequences and segment errors."""

    def test_fixed_cell(self):
        lines = generate("pop temp 0")
        assert lines == ["@SP", "AM=M-1", "D=M", "@R5", "M=D"]

    def test_base_offset(self):
        lines = generate("pop that 2")
        assert lines == ["@SP", "AM=M-1", "D=M", "@THAT", "A=M", "A=A+1", "A=A+1", "M=D"]

    def test_static(self):
        assert generate("pop static 0", unit="Bar")[-2:] == ["@Bar.0", "M=D"]

    def test_pop_constant_rejected(self):
        with pytest.raises(InvalidConstantUsageError):
            generate("pop constant 3")

    @pytest.mark.parametrize("source", ["push pointer 2", "pop pointer 5"])
    def test_pointer_index_out_of_range(self, source):
        with pytest.raises(InvalidSegmentIndexError) as exc_info:
            generate(source)
        assert exc_info.value.valid_range == (0, 1)

    def test_temp_index_out_of_range(self):
        with pytest.raises(InvalidSegmentIndexError):
            generate("push temp 8")

    def test_failed_command_leaves_no_output(self):
        gen = CodeGenerator(comments=True)
        gen.translate(push(Segment.CONSTANT, 1))
        before = gen.lines
        with pytest.raises(InvalidConstantUsageError):
            gen.translate(pop(Segment.CONSTANT, 0))
        assert gen.lines == before


# =============================================================================
# Arithmetic
# =============================================================================

class TestArithmetic:
    """Arithmetic sequences and comparison labels."""

    def test_binary_pops_y_into_d(self):
        assert generate("sub") == ["@SP", "AM=M-1", "D=M", "A=A-1", "M=M-D"]

    def test_unary_in_place(self):
        assert generate("neg") == ["@SP", "A=M-1", "M=-M"]
        assert generate("not") == ["@SP", "A=M-1", "M=!M"]

    def test_comparison_uses_two_labels(self):
        gen = CodeGenerator()
        lines = generate("eq", generator=gen)
        assert gen.label_counter == 2
        assert defined_labels(lines) == ["VM$EQ_TRUE.0", "VM$EQ_END.1"]
        assert "D;JEQ" in lines

    @pytest.mark.parametrize("op, jump", [("eq", "JEQ"), ("gt", "JGT"), ("lt", "JLT")])
    def test_comparison_jumps(self, op, jump):
        assert f"D;{jump}" in generate(op)

    def test_comparison_labels_unique(self):
        lines = generate("eq\ngt\nlt\neq\neq")
        labels = defined_labels(lines)
        assert len(labels) == 10
        assert len(set(labels)) == 10


# =============================================================================
# Program Flow
# =============================================================================

class TestProgramFlow:
    """Labels are emitted exactly as given."""

    def test_label(self):
        assert generate("label Main.main$LOOP") == ["(Main.main$LOOP)"]

    def test_goto(self):
        assert generate("goto LOOP") == ["@LOOP", "0;JMP"]

    def test_if_goto_jumps_on_nonzero(self):
        assert generate("if-goto LOOP") == ["@SP", "AM=M-1", "D=M", "@LOOP", "D;JNE"]


# =============================================================================
# Function Protocol
# =============================================================================

class TestFunction:
    """function entry labels and local initialization."""

    def test_qualified_name_used_as_is(self):
        lines = generate("function Foo.bar 0\npush constant 0\nreturn", unit="Foo")
        assert lines[0] == "(Foo.bar)"

    def test_bare_name_qualified_with_unit(self):
        lines = generate("function bar 0\npush constant 0\nreturn", unit="Foo")
        assert lines[0] == "(Foo.bar)"

    def test_locals_zeroed(self):
        lines = generate("function Foo.bar 2", unit="Foo")
        assert lines == ["(Foo.bar)"] + (["@0", "D=A"] + PUSH_D) * 2


class TestCall:
    """call saves the frame and repositions ARG and LCL."""

    def test_saves_pointers_in_order(self):
        lines = generate("call Foo.bar 2")
        assert loads(lines, POINTERS) == ["LCL", "ARG", "THIS", "THAT"]

    def test_return_address_pushed_first(self):
        lines = generate("call Foo.bar 2")
        return_label = defined_labels(lines)[-1]
        assert lines[:2] == [f"@{return_label}", "D=A"]
        assert lines[2:7] == PUSH_D

    def test_arg_offset(self):
        """ARG = SP - (3 + 5), then LCL = SP."""
        lines = generate("call Foo.bar 3")
        at = lines.index("@8")
        assert lines[at - 2:at + 8] == [
            "@SP", "D=M", "@8", "D=D-A", "@ARG", "M=D",
            "@SP", "D=M", "@LCL", "M=D",
        ]

    def test_jump_then_return_label(self):
        lines = generate("call Foo.bar 0")
        assert lines[-3:-1] == ["@Foo.bar", "0;JMP"]
        assert lines[-1] == "(VM$ret.Foo.bar.0)"

    def test_repeated_calls_get_distinct_return_labels(self):
        gen = CodeGenerator()
        lines = generate("call Foo.bar 0\ncall Foo.bar 0\ncall Foo.bar 0", generator=gen)
        labels = defined_labels(lines)
        assert len(set(labels)) == 3
        assert gen.call_counter == 3

    def test_bare_callee_qualified_with_unit(self):
        lines = generate("call helper 0", unit="Util")
        assert "@Util.helper" in lines


class TestReturn:
    """return restores the caller's frame."""

    def test_restores_in_order(self):
        lines = generate("function Foo.bar 0\npush constant 1\nreturn")
        ret = lines[lines.index("@LCL", 1):]
        assert stores(ret, POINTERS) == ["THAT", "THIS", "ARG", "LCL"]

    def test_return_address_read_before_return_value_written(self):
        lines = generate("function Foo.bar 0\npush constant 1\nreturn")
        ret = lines[lines.index("@LCL", 1):]
        assert ret.index("@R14") < ret.index("@ARG")
        assert ret[-3:] == ["@R14", "A=M", "0;JMP"]

    def test_return_with_empty_stack_rejected(self):
        with pytest.raises(StackUnderflowError, match="Foo.bar"):
            generate("function Foo.bar 0\nreturn")

    def test_return_after_pop_of_only_value_rejected(self):
        with pytest.raises(StackUnderflowError):
            generate("function Foo.bar 0\npush constant 1\npop temp 0\nreturn")

    def test_return_of_local_allowed(self):
        """With locals on the stack the pop takes the last local."""
        lines = generate("function Foo.bar 2\nreturn")
        assert lines[-1] == "0;JMP"

    def test_return_after_label_not_checked(self):
        """Depth is unknown once another path may join."""
        generate("function Foo.bar 0\nlabel X\nreturn")

    def test_call_result_counts_as_value(self):
        generate("function Foo.bar 0\ncall Foo.baz 0\nreturn")


# =============================================================================
# Counters Across Units
# =============================================================================

class TestUnits:
    """Counters carry over unit boundaries."""

    def test_counters_not_reset(self):
        gen = CodeGenerator()
        generate("eq\ncall A.f 0", unit="A", generator=gen)
        generate("eq\ncall B.f 0", unit="B", generator=gen)
        assert gen.label_counter == 4
        assert gen.call_counter == 2

    def test_labels_unique_across_units(self):
        gen = CodeGenerator()
        source = "function {0}.f 0\npush constant 1\npush constant 2\nlt\n" \
                 "call {0}.f 0\nreturn"
        generate(source.format("A"), unit="A", generator=gen)
        generate(source.format("B"), unit="B", generator=gen)
        generate(source.format("A"), unit="C", generator=gen)
        generated = [
            label for label in defined_labels(gen.lines) if label.startswith("VM$")
        ]
        assert len(generated) == len(set(generated)) == 9

    def test_namespaces_keep_generators_apart(self):
        first = generate("eq\ncall F.f 0", generator=CodeGenerator(namespace="VM0"))
        second = generate("eq\ncall F.f 0", generator=CodeGenerator(namespace="VM1"))
        assert not set(defined_labels(first)) & set(defined_labels(second))


# =============================================================================
# Bootstrap and Halt
# =============================================================================

class TestBootstrap:
    """Program prologue and terminal loop."""

    def test_sets_stack_pointer(self):
        gen = CodeGenerator()
        lines = gen.write_bootstrap()
        assert lines[:4] == ["@256", "D=A", "@SP", "M=D"]

    def test_calls_entry_with_no_arguments(self):
        gen = CodeGenerator()
        lines = gen.write_bootstrap(entry="Sys.init")
        assert lines[-3:-1] == ["@Sys.init", "0;JMP"]
        assert "@5" in lines  # ARG = SP - (0 + 5)

    def test_poison(self):
        gen = CodeGenerator()
        lines = gen.write_bootstrap(poison=True)
        assert stores(lines, POINTERS)[:4] == ["LCL", "ARG", "THIS", "THAT"]
        assert lines.count("D=-A") == 4

    def test_no_poison(self):
        gen = CodeGenerator()
        lines = gen.write_bootstrap(poison=False)
        assert "D=-A" not in lines

    def test_custom_stack_base(self):
        gen = CodeGenerator()
        assert gen.write_bootstrap(stack_base=512)[0] == "@512"

    def test_halt_is_self_jump(self):
        gen = CodeGenerator()
        assert gen.write_halt() == ["(VM$halt)", "@VM$halt", "0;JMP"]

    def test_comments(self):
        gen = CodeGenerator(comments=True)
        gen.write_bootstrap()
        gen.translate(push(Segment.CONSTANT, 7))
        assert gen.lines[0] == "// bootstrap"
        assert "// push constant 7" in gen.lines


# =============================================================================
# Hand-built Commands
# =============================================================================

class TestCommands:
    """Commands built without the parser."""

    def test_function_and_call_builders(self):
        gen = CodeGenerator(unit_name="Main")
        gen.translate(function("Main.main", 0))
        gen.translate(call("Main.helper", 1))
        assert gen.lines[0] == "(Main.main)"
        assert "@Main.helper" in gen.lines

    def test_index_on_label_rejected(self):
        command = parse_source("label X")[0]
        with pytest.raises(CommandArgumentError):
            command.index
