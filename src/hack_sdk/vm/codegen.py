"""
Hack Assembly Code Generator for the VM Language
=================================================

This module emits Hack symbolic assembly for VM commands. It realizes the
VM's stack machine and function-call protocol on a computer that has two
registers (A and D), one memory operand (M = RAM[A]) and no indexed
addressing.

Memory Map
----------
| Address  | Symbol     | Usage                                      |
|----------|------------|--------------------------------------------|
| 0        | SP         | Stack pointer (next free cell)             |
| 1        | LCL        | Base of the current function's locals      |
| 2        | ARG        | Base of the current function's arguments   |
| 3        | THIS       | Base of the 'this' segment (pointer 0)     |
| 4        | THAT       | Base of the 'that' segment (pointer 1)     |
| 5-12     | R5-R12     | temp 0-7                                   |
| 13-14    | R13-R14    | Scratch cells used by 'return'             |
| 16-255   | Unit.i     | static variables (allocated by assembler)  |
| 256-     |            | Global stack                               |

Stack Frame Layout
------------------
'call f n' pushes the return address and the caller's four base pointers
above the n arguments already on the stack:

    +----------------+ <- ARG (callee's argument 0)
    | argument 0..n-1|
    +----------------+
    | return address |  FRAME - 5
    | saved LCL      |  FRAME - 4
    | saved ARG      |  FRAME - 3
    | saved THIS     |  FRAME - 2
    | saved THAT     |  FRAME - 1
    +----------------+ <- LCL = FRAME
    | local 0..k-1   |  (zeroed by 'function f k')
    +----------------+
    | working stack  |
    +----------------+ <- SP

'return' copies the top of the working stack to ARG[0], sets SP to
ARG + 1 and restores THAT, THIS, ARG and LCL from the frame, in that
order, before jumping to the saved return address.

Labels
------
Generated labels live in a namespace ("VM" by default) so they cannot
collide with the names a VM producer chooses:

    VM$EQ_TRUE.4 / VM$EQ_END.5     comparison branches (label counter)
    VM$ret.Main.fib.2              return address of a call site
    VM$halt                        terminal loop

Both counters are monotonic and never reset between units, so labels
stay unique across a whole program. Generators that translate units in
parallel are given distinct namespaces instead of sharing counters.

Function entry labels are the function's program-wide name. A name
written as Unit.function (Math.multiply) is used as it is; a bare name
(multiply) is prefixed with the current unit name. 'call' follows the
same rule, so a call resolves to the label its definition produced.

Usage
-----
>>> from hack_sdk.vm.parser import parse_source
>>> gen = CodeGenerator()
>>> gen.set_unit("Main")
>>> for command in parse_source("push constant 7\\npush constant 8\\nadd"):
...     _ = gen.translate(command)
>>> gen.assembly.splitlines()[:2]
['@7', 'D=A']
"""

import logging
from typing import Callable, Optional

from hack_sdk.errors import (
    InvalidConstantUsageError,
    InvalidSegmentIndexError,
    StackUnderflowError,
    VMTranslationError,
)
from hack_sdk.vm.commands import (
    Addressing,
    ArithmeticOp,
    Command,
    CommandKind,
    Segment,
    call,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Machine Constants
# =============================================================================

STACK_BASE = 256
TEMP_BASE = 5
TEMP_SIZE = 8
MAX_CONSTANT = 32767  # widest value an A-instruction can load
FRAME_SIZE = 5  # return address + LCL, ARG, THIS, THAT

FRAME_REGISTER = "R13"
RETURN_REGISTER = "R14"

DEFAULT_ENTRY = "Sys.init"
DEFAULT_NAMESPACE = "VM"

# Out-of-range values stored in the base pointers by the bootstrap, so that
# code touching a segment before any frame exists reads obvious garbage.
POISON_VALUES = {"LCL": -1, "ARG": -2, "THIS": -3, "THAT": -4}

# Saved pointers, in the order 'call' pushes them
SAVED_POINTERS = ("LCL", "ARG", "THIS", "THAT")

BINARY_COMPUTATIONS = {
    ArithmeticOp.ADD: "M=D+M",
    ArithmeticOp.SUB: "M=M-D",
    ArithmeticOp.AND: "M=D&M",
    ArithmeticOp.OR: "M=D|M",
}

UNARY_COMPUTATIONS = {
    ArithmeticOp.NEG: "M=-M",
    ArithmeticOp.NOT: "M=!M",
}

COMPARISON_JUMPS = {
    ArithmeticOp.EQ: "JEQ",
    ArithmeticOp.GT: "JGT",
    ArithmeticOp.LT: "JLT",
}


# =============================================================================
# Code Generator Class
# =============================================================================

class CodeGenerator:
    """
    Translates VM commands into Hack assembly.

    One generator is used for a whole program so that its counters give
    every generated label a program-wide unique name. The unit name is
    changed at each source file boundary with set_unit().

    Attributes:
        unit_name: Current source unit; scopes static symbols and qualifies
                   unqualified function names
        label_counter: Next comparison label number
        call_counter: Next call-site number
        namespace: Prefix of every generated label
        comments: Emit each VM command as a '//' comment before its code
    """

    def __init__(
        self,
        unit_name: str = "Main",
        namespace: str = DEFAULT_NAMESPACE,
        comments: bool = False,
    ):
        self.unit_name = unit_name
        self.namespace = namespace
        self.comments = comments

        self.label_counter: int = 0
        self.call_counter: int = 0

        self._output: list[str] = []

        # Working-stack depth since the current function's entry, or None
        # once control flow makes it unknown.
        self._depth: Optional[int] = None
        self._function: Optional[str] = None

        self._handlers: dict[CommandKind, Callable[[Command], None]] = {
            CommandKind.ARITHMETIC: self._write_arithmetic,
            CommandKind.PUSH: self._write_push_command,
            CommandKind.POP: self._write_pop_command,
            CommandKind.LABEL: self._write_label,
            CommandKind.GOTO: self._write_goto,
            CommandKind.IF_GOTO: self._write_if_goto,
            CommandKind.FUNCTION: self._write_function,
            CommandKind.CALL: self._write_call,
            CommandKind.RETURN: self._write_return,
        }

    # =========================================================================
    # Public Interface
    # =========================================================================

    @property
    def assembly(self) -> str:
        """All output so far, one instruction per line."""
        if not self._output:
            return ""
        return "\n".join(self._output) + "\n"

    @property
    def lines(self) -> list[str]:
        return list(self._output)

    def set_unit(self, unit_name: str) -> None:
        """Start a new source unit. Counters carry over."""
        logger.debug(f"Unit {unit_name} (labels from {self.label_counter}, "
                     f"calls from {self.call_counter})")
        self.unit_name = unit_name
        self._depth = None
        self._function = None

    def translate(self, command: Command) -> list[str]:
        """
        Emit the translation of one command.

        Args:
            command: The command to translate

        Returns:
            The lines emitted for this command

        Raises:
            VMTranslationError: If the command is illegal for its segment
                or would return with nothing on the stack
        """
        start = len(self._output)
        try:
            if self.comments:
                self._emit_comment(str(command))
            self._handlers[command.kind](command)
        except VMTranslationError:
            del self._output[start:]
            raise
        return self._output[start:]

    def write_bootstrap(
        self,
        entry: str = DEFAULT_ENTRY,
        stack_base: int = STACK_BASE,
        poison: bool = True,
    ) -> list[str]:
        """
        Emit the program prologue: SP = stack_base, then 'call entry 0'.

        Args:
            entry: Function to call (normally Sys.init, which never returns)
            stack_base: Address of the first stack cell
            poison: Store out-of-range values in LCL/ARG/THIS/THAT first
        """
        start = len(self._output)
        if self.comments:
            self._emit_comment("bootstrap")
        self._emit(f"@{stack_base}", "D=A", "@SP", "M=D")
        if poison:
            for symbol, value in POISON_VALUES.items():
                self._emit(f"@{-value}", "D=-A", f"@{symbol}", "M=D")
        self._write_call(call(entry, 0))
        logger.debug(f"Bootstrap: SP={stack_base}, entry {entry}")
        return self._output[start:]

    def write_halt(self) -> list[str]:
        """Emit an infinite loop so execution never runs past the program."""
        start = len(self._output)
        label = f"{self.namespace}$halt"
        if self.comments:
            self._emit_comment("halt")
        self._emit(f"({label})", f"@{label}", "0;JMP")
        return self._output[start:]

    def qualify(self, name: str) -> str:
        """
        Program-wide name of a function.

        Names already written as Unit.function are used as they are; a bare
        name is qualified with the current unit.
        """
        if "." in name:
            return name
        return f"{self.unit_name}.{name}"

    # =========================================================================
    # Emission Helpers
    # =========================================================================

    def _emit(self, *lines: str) -> None:
        self._output.extend(lines)

    def _emit_comment(self, comment: str) -> None:
        self._emit(f"// {comment}")

    def _new_label(self, kind: str) -> str:
        """Generate a unique label."""
        label = f"{self.namespace}${kind}.{self.label_counter}"
        self.label_counter += 1
        return label

    def _emit_push_d(self) -> None:
        """*SP = D; SP++"""
        self._emit("@SP", "A=M", "M=D", "@SP", "M=M+1")

    def _emit_pop_d(self) -> None:
        """SP--; D = *SP"""
        self._emit("@SP", "AM=M-1", "D=M")

    def _emit_segment_address(self, segment: Segment, index: int) -> None:
        """Leave A pointing at segment[index]; D is preserved."""
        if segment.addressing is Addressing.BASE_OFFSET:
            self._emit(f"@{segment.base_symbol}", "A=M")
            self._emit(*(["A=A+1"] * index))
        else:
            self._emit(f"@{self._fixed_symbol(segment, index)}")

    def _fixed_symbol(self, segment: Segment, index: int) -> str:
        if segment is Segment.TEMP:
            if index >= TEMP_SIZE:
                raise InvalidSegmentIndexError(
                    "temp", index, (0, TEMP_SIZE - 1)
                )
            return f"R{TEMP_BASE + index}"
        if segment is Segment.POINTER:
            if index > 1:
                raise InvalidSegmentIndexError("pointer", index, (0, 1))
            return "THIS" if index == 0 else "THAT"
        if segment is Segment.STATIC:
            return f"{self.unit_name}.{index}"
        raise VMTranslationError(f"segment '{segment.value}' has no fixed cell")

    def _adjust_depth(self, delta: int) -> None:
        if self._depth is not None:
            self._depth += delta

    # =========================================================================
    # Arithmetic and Logical Commands
    # =========================================================================

    def _write_arithmetic(self, command: Command) -> None:
        op = command.operator or ArithmeticOp(command.op)

        if op.is_unary:
            self._emit("@SP", "A=M-1", UNARY_COMPUTATIONS[op])
            return

        # y into D, A left on x, which receives the result in place
        self._emit_pop_d()
        self._emit("A=A-1")
        self._adjust_depth(-1)

        if op.is_comparison:
            self._write_comparison(op)
        else:
            self._emit(BINARY_COMPUTATIONS[op])

    def _write_comparison(self, op: ArithmeticOp) -> None:
        """x = (x op y) ? -1 : 0, with A on x and y in D."""
        jump = COMPARISON_JUMPS[op]
        true_label = self._new_label(f"{jump[1:]}_TRUE")
        end_label = self._new_label(f"{jump[1:]}_END")
        self._emit(
            "D=M-D",
            f"@{true_label}",
            f"D;{jump}",
            "@SP",
            "A=M-1",
            "M=0",
            f"@{end_label}",
            "0;JMP",
            f"({true_label})",
            "@SP",
            "A=M-1",
            "M=-1",
            f"({end_label})",
        )

    # =========================================================================
    # Memory Access Commands
    # =========================================================================

    def _write_push_command(self, command: Command) -> None:
        self._write_push(command.segment or Segment(command.op), command.index)

    def _write_pop_command(self, command: Command) -> None:
        self._write_pop(command.segment or Segment(command.op), command.index)

    def _write_push(self, segment: Segment, index: int) -> None:
        if segment.addressing is Addressing.IMMEDIATE:
            if index > MAX_CONSTANT:
                raise InvalidSegmentIndexError(
                    "constant", index, (0, MAX_CONSTANT)
                )
            self._emit(f"@{index}", "D=A")
        else:
            self._emit_segment_address(segment, index)
            self._emit("D=M")
        self._emit_push_d()
        self._adjust_depth(1)

    def _write_pop(self, segment: Segment, index: int) -> None:
        if segment.addressing is Addressing.IMMEDIATE:
            raise InvalidConstantUsageError(
                f"cannot pop into the constant segment (index {index})",
                hint="constants have no memory cell; pop into temp or a "
                     "variable segment instead",
            )
        # Resolve the target first so a bad index fails before any output
        if segment.addressing is Addressing.FIXED:
            self._fixed_symbol(segment, index)
        self._emit_pop_d()
        self._emit_segment_address(segment, index)
        self._emit("M=D")
        self._adjust_depth(-1)

    # =========================================================================
    # Program Flow Commands
    # =========================================================================

    def _write_label(self, command: Command) -> None:
        self._emit(f"({command.name})")
        # Another path may join here with a different depth
        self._depth = None

    def _write_goto(self, command: Command) -> None:
        self._emit(f"@{command.name}", "0;JMP")
        self._depth = None

    def _write_if_goto(self, command: Command) -> None:
        self._emit_pop_d()
        self._emit(f"@{command.name}", "D;JNE")
        self._adjust_depth(-1)

    # =========================================================================
    # Function Commands
    # =========================================================================

    def _write_function(self, command: Command) -> None:
        name = self.qualify(command.name)
        n_locals = command.index
        logger.debug(f"Function {name} ({n_locals} locals)")

        self._emit(f"({name})")
        for _ in range(n_locals):
            self._write_push(Segment.CONSTANT, 0)

        self._function = name
        self._depth = n_locals

    def _write_call(self, command: Command) -> None:
        callee = self.qualify(command.name)
        n_args = command.index
        return_label = f"{self.namespace}$ret.{callee}.{self.call_counter}"
        self.call_counter += 1
        logger.debug(f"Call site {return_label} ({n_args} args)")

        self._emit(f"@{return_label}", "D=A")
        self._emit_push_d()
        for pointer in SAVED_POINTERS:
            self._emit(f"@{pointer}", "D=M")
            self._emit_push_d()

        # ARG = SP - (n_args + 5)
        self._emit("@SP", "D=M", f"@{n_args + FRAME_SIZE}", "D=D-A", "@ARG", "M=D")
        # LCL = SP
        self._emit("@SP", "D=M", "@LCL", "M=D")

        self._emit(f"@{callee}", "0;JMP")
        self._emit(f"({return_label})")
        self._adjust_depth(1 - n_args)

    def _write_return(self, command: Command) -> None:
        if self._depth is not None and self._depth < 1:
            where = f" in {self._function}" if self._function else ""
            raise StackUnderflowError(
                f"return{where} with no value on the stack",
                hint="push the return value (push constant 0 for void "
                     "functions) before 'return'",
            )

        # FRAME = LCL; RET = *(FRAME - 5)
        self._emit("@LCL", "D=M", f"@{FRAME_REGISTER}", "M=D")
        self._emit(f"@{FRAME_SIZE}", "A=D-A", "D=M", f"@{RETURN_REGISTER}", "M=D")

        # *ARG = pop(); SP = ARG + 1
        self._emit_pop_d()
        self._emit("@ARG", "A=M", "M=D")
        self._emit("@ARG", "D=M+1", "@SP", "M=D")

        # THAT, THIS, ARG, LCL = *(FRAME - 1), ..., *(FRAME - 4)
        for pointer in reversed(SAVED_POINTERS):
            self._emit(f"@{FRAME_REGISTER}", "AM=M-1", "D=M", f"@{pointer}", "M=D")

        self._emit(f"@{RETURN_REGISTER}", "A=M", "0;JMP")
        self._depth = None
