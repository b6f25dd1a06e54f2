"""
VM Command Model
================

Typed representation of one VM language command. The parser maps the raw
text of each line into these values exactly once; everything downstream
dispatches on the enums below rather than comparing strings.

Command Kinds
-------------
| Mnemonic(s)                       | Kind       | Operands            |
|-----------------------------------|------------|---------------------|
| add sub neg eq gt lt and or not   | ARITHMETIC | none                |
| push / pop                        | PUSH / POP | segment, index      |
| label / goto / if-goto            | LABEL ...  | label name          |
| function                          | FUNCTION   | name, local count   |
| call                              | CALL       | name, argument count|
| return                            | RETURN     | none                |

Segments
--------
| Segment  | Addressing   | Backing cells                     |
|----------|--------------|-----------------------------------|
| local    | base+offset  | RAM[LCL] + i                      |
| argument | base+offset  | RAM[ARG] + i                      |
| this     | base+offset  | RAM[THIS] + i                     |
| that     | base+offset  | RAM[THAT] + i                     |
| temp     | fixed        | RAM[5 + i], i in 0..7             |
| pointer  | fixed        | THIS (i=0) or THAT (i=1)          |
| static   | fixed        | assembler symbol Unit.i           |
| constant | immediate    | none                              |
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from hack_sdk.errors import CommandArgumentError


class CommandKind(Enum):
    """The nine kinds of VM command."""
    ARITHMETIC = auto()
    PUSH = auto()
    POP = auto()
    LABEL = auto()
    GOTO = auto()
    IF_GOTO = auto()
    FUNCTION = auto()
    CALL = auto()
    RETURN = auto()

    @property
    def has_index(self) -> bool:
        """True for the kinds whose second operand is an integer."""
        return self in (
            CommandKind.PUSH,
            CommandKind.POP,
            CommandKind.FUNCTION,
            CommandKind.CALL,
        )

    @property
    def has_name(self) -> bool:
        """True for the kinds whose first operand is a name."""
        return self not in (CommandKind.ARITHMETIC, CommandKind.RETURN)


class ArithmeticOp(Enum):
    """Arithmetic and logical operators, valued by their mnemonic."""
    ADD = "add"
    SUB = "sub"
    NEG = "neg"
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    AND = "and"
    OR = "or"
    NOT = "not"

    @property
    def is_unary(self) -> bool:
        return self in (ArithmeticOp.NEG, ArithmeticOp.NOT)

    @property
    def is_comparison(self) -> bool:
        return self in (ArithmeticOp.EQ, ArithmeticOp.GT, ArithmeticOp.LT)


class Addressing(Enum):
    """How a segment maps an index onto memory."""
    FIXED = auto()        # a cell known at translation time
    BASE_OFFSET = auto()  # base pointer cell plus index
    IMMEDIATE = auto()    # the index itself, no memory


class Segment(Enum):
    """Memory segments, valued by their VM language name."""
    LOCAL = "local"
    ARGUMENT = "argument"
    THIS = "this"
    THAT = "that"
    TEMP = "temp"
    POINTER = "pointer"
    STATIC = "static"
    CONSTANT = "constant"

    @property
    def addressing(self) -> Addressing:
        return _SEGMENT_ADDRESSING[self]

    @property
    def base_symbol(self) -> Optional[str]:
        """Base pointer symbol for base+offset segments, else None."""
        return _SEGMENT_BASES.get(self)


_SEGMENT_ADDRESSING = {
    Segment.LOCAL: Addressing.BASE_OFFSET,
    Segment.ARGUMENT: Addressing.BASE_OFFSET,
    Segment.THIS: Addressing.BASE_OFFSET,
    Segment.THAT: Addressing.BASE_OFFSET,
    Segment.TEMP: Addressing.FIXED,
    Segment.POINTER: Addressing.FIXED,
    Segment.STATIC: Addressing.FIXED,
    Segment.CONSTANT: Addressing.IMMEDIATE,
}

_SEGMENT_BASES = {
    Segment.LOCAL: "LCL",
    Segment.ARGUMENT: "ARG",
    Segment.THIS: "THIS",
    Segment.THAT: "THAT",
}


@dataclass(frozen=True)
class Command:
    """
    One parsed VM command.

    Attributes:
        kind: Which of the nine command kinds this is
        op: The operator mnemonic for ARITHMETIC, otherwise the first
            operand (segment name, label name or function name); empty
            for RETURN
        segment: Parsed segment for PUSH and POP
        operator: Parsed operator for ARITHMETIC
        text: The normalized source text, used for output comments
        line: 1-indexed source line number (0 when built by hand)
    """
    kind: CommandKind
    op: str = ""
    _index: Optional[int] = None
    segment: Optional[Segment] = None
    operator: Optional[ArithmeticOp] = None
    text: str = ""
    line: int = 0

    @property
    def index(self) -> int:
        """
        The numeric operand of push, pop, function and call.

        Raises:
            CommandArgumentError: For any other command kind
        """
        if not self.kind.has_index or self._index is None:
            raise CommandArgumentError(
                f"'{self.kind.name.lower()}' command has no numeric argument"
            )
        return self._index

    @property
    def name(self) -> str:
        """
        The name operand of label, goto, if-goto, function and call.

        Raises:
            CommandArgumentError: For any other command kind
        """
        if not self.kind.has_name:
            raise CommandArgumentError(
                f"'{self.kind.name.lower()}' command has no name argument"
            )
        return self.op

    def __str__(self) -> str:
        if self.text:
            return self.text
        parts = [self.op] if self.kind is CommandKind.ARITHMETIC else [
            self.kind.name.lower().replace("_", "-"), self.op
        ]
        if self._index is not None:
            parts.append(str(self._index))
        return " ".join(p for p in parts if p)


# =============================================================================
# Convenience Constructors
# =============================================================================
# Used by the bootstrap and by tests to build commands without parsing.
# =============================================================================

def arithmetic(op: ArithmeticOp) -> Command:
    return Command(CommandKind.ARITHMETIC, op.value, operator=op)


def push(segment: Segment, index: int) -> Command:
    return Command(CommandKind.PUSH, segment.value, index, segment=segment)


def pop(segment: Segment, index: int) -> Command:
    return Command(CommandKind.POP, segment.value, index, segment=segment)


def call(name: str, n_args: int) -> Command:
    return Command(CommandKind.CALL, name, n_args)


def function(name: str, n_locals: int) -> Command:
    return Command(CommandKind.FUNCTION, name, n_locals)
