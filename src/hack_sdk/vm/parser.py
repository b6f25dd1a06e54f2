"""
VM Language Parser
==================

This module turns VM source text into a stream of typed Command values.
It is the only place where raw mnemonics and segment names are compared
as strings; everything after it works on the enums in
hack_sdk.vm.commands.

Line Grammar
------------
    mnemonic [operand1] [operand2]   [// comment]

- Fields are separated by any run of whitespace.
- A line whose first non-blank characters are '//' is a comment.
- Text after '//' on a command line is ignored as well.
- Blank lines are skipped.

The parser checks that each mnemonic is known and that it has the right
number of well-formed operands. It does NOT check operand ranges (for
example 'push pointer 2' or 'pop constant 0'); the code generator owns
those rules because they depend on the segment's addressing scheme.

Usage
-----
>>> parser = VMParser("push constant 7\\npush constant 8\\nadd\\n", "Main.vm")
>>> while (command := parser.advance()) is not None:
...     print(command.kind, command.op)
CommandKind.PUSH constant
CommandKind.PUSH constant
CommandKind.ARITHMETIC add
"""

from typing import Iterator, Optional

from hack_sdk.errors import (
    SourceLocation,
    MalformedOperandError,
    UnknownCommandError,
    UnknownSegmentError,
)
from hack_sdk.vm.commands import ArithmeticOp, Command, CommandKind, Segment


COMMENT_MARKER = "//"

# Mnemonic -> command kind. Arithmetic mnemonics are added from ArithmeticOp.
MNEMONICS: dict[str, CommandKind] = {
    "push": CommandKind.PUSH,
    "pop": CommandKind.POP,
    "label": CommandKind.LABEL,
    "goto": CommandKind.GOTO,
    "if-goto": CommandKind.IF_GOTO,
    "function": CommandKind.FUNCTION,
    "call": CommandKind.CALL,
    "return": CommandKind.RETURN,
}
MNEMONICS.update({op.value: CommandKind.ARITHMETIC for op in ArithmeticOp})

# Number of operands after the mnemonic, per kind
OPERAND_COUNTS: dict[CommandKind, int] = {
    CommandKind.ARITHMETIC: 0,
    CommandKind.PUSH: 2,
    CommandKind.POP: 2,
    CommandKind.LABEL: 1,
    CommandKind.GOTO: 1,
    CommandKind.IF_GOTO: 1,
    CommandKind.FUNCTION: 2,
    CommandKind.CALL: 2,
    CommandKind.RETURN: 0,
}

SEGMENTS: dict[str, Segment] = {seg.value: seg for seg in Segment}


class VMParser:
    """
    Sequential reader of VM commands.

    The parser holds the source lines and a read position, nothing else.
    Each call to advance() consumes lines until it finds the next command.

    Attributes:
        filename: Source name used in error locations
        current: The most recently read command (None before the first
                 advance() and after the end of input)
    """

    def __init__(self, source: str, filename: str = "<input>"):
        self.filename = filename
        self._lines = source.splitlines()
        self._position = 0
        self.current: Optional[Command] = None

    def has_more_lines(self) -> bool:
        """True while unread lines remain (they may all be blank)."""
        return self._position < len(self._lines)

    def advance(self) -> Optional[Command]:
        """
        Read the next command.

        Returns:
            The next Command, or None at end of input

        Raises:
            UnknownCommandError: If the mnemonic is not recognized
            MalformedOperandError: If operands are missing, extra or
                not integers where integers are required
        """
        while self.has_more_lines():
            raw = self._lines[self._position]
            self._position += 1
            text = raw.split(COMMENT_MARKER, 1)[0].strip()
            if not text:
                continue
            self.current = self._parse_line(text, raw, self._position)
            return self.current

        self.current = None
        return None

    def __iter__(self) -> Iterator[Command]:
        while (command := self.advance()) is not None:
            yield command

    def parse(self) -> list[Command]:
        """Read every remaining command."""
        return list(self)

    # =========================================================================
    # Line Parsing
    # =========================================================================

    def _parse_line(self, text: str, raw: str, line_number: int) -> Command:
        fields = text.split()
        mnemonic = fields[0]
        operands = fields[1:]

        kind = MNEMONICS.get(mnemonic)
        if kind is None:
            raise UnknownCommandError(
                mnemonic,
                location=self._location(raw, line_number, mnemonic),
                source_line=raw.rstrip(),
                similar=_similar_mnemonics(mnemonic),
            )

        expected = OPERAND_COUNTS[kind]
        if len(operands) != expected:
            if len(operands) > expected:
                where = operands[expected]
                problem = f"unexpected operand '{where}'"
            else:
                where = mnemonic
                problem = "missing operand"
            raise MalformedOperandError(
                f"{problem}: '{mnemonic}' takes {expected} operand"
                f"{'' if expected == 1 else 's'}",
                location=self._location(raw, line_number, where),
                source_line=raw.rstrip(),
                hint=_usage(mnemonic, kind),
            )

        normalized = " ".join(fields)

        if kind is CommandKind.ARITHMETIC:
            return Command(
                kind,
                mnemonic,
                operator=ArithmeticOp(mnemonic),
                text=normalized,
                line=line_number,
            )

        if kind is CommandKind.RETURN:
            return Command(kind, text=normalized, line=line_number)

        name = operands[0]
        segment = None
        index = None

        if kind in (CommandKind.PUSH, CommandKind.POP):
            segment = SEGMENTS.get(name)
            if segment is None:
                raise UnknownSegmentError(
                    name,
                    location=self._location(raw, line_number, name),
                    source_line=raw.rstrip(),
                    valid_segments=list(SEGMENTS),
                )

        if kind.has_index:
            index = self._parse_count(operands[1], raw, line_number)

        return Command(
            kind,
            name,
            index,
            segment=segment,
            text=normalized,
            line=line_number,
        )

    def _parse_count(self, token: str, raw: str, line_number: int) -> int:
        """Parse a non-negative decimal index or count."""
        if not (token.isascii() and token.isdigit()):
            raise MalformedOperandError(
                f"expected a non-negative integer, got '{token}'",
                location=self._location(raw, line_number, token),
                source_line=raw.rstrip(),
            )
        return int(token)

    def _location(self, raw: str, line_number: int, token: str) -> SourceLocation:
        column = raw.find(token) + 1
        return SourceLocation(self.filename, line_number, max(column, 1))


# =============================================================================
# Helpers
# =============================================================================

def _usage(mnemonic: str, kind: CommandKind) -> str:
    usages = {
        CommandKind.ARITHMETIC: mnemonic,
        CommandKind.PUSH: "push <segment> <index>",
        CommandKind.POP: "pop <segment> <index>",
        CommandKind.LABEL: "label <name>",
        CommandKind.GOTO: "goto <name>",
        CommandKind.IF_GOTO: "if-goto <name>",
        CommandKind.FUNCTION: "function <name> <n-locals>",
        CommandKind.CALL: "call <name> <n-args>",
        CommandKind.RETURN: "return",
    }
    return f"usage: {usages[kind]}"


def _similar_mnemonics(word: str) -> list[str]:
    """Mnemonics within a small edit distance of word, for error hints."""
    word_lower = word.lower()
    similar = []
    for mnemonic in MNEMONICS:
        if mnemonic == word_lower or (
            abs(len(mnemonic) - len(word)) <= 1
            and _edit_distance(word_lower, mnemonic) <= 2
        ):
            similar.append(mnemonic)
    return similar[:3]


def _edit_distance(typed: str, mnemonic: str) -> int:
    """
    Number of single-character edits between two words.

    Swapping two adjacent characters counts as one edit, so the common
    typing slip 'psuh' is one edit away from 'push'.
    """
    rows = len(typed) + 1
    cols = len(mnemonic) + 1
    table = [[0] * cols for _ in range(rows)]
    for i in range(rows):
        table[i][0] = i
    for j in range(cols):
        table[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            cost = 0 if typed[i - 1] == mnemonic[j - 1] else 1
            table[i][j] = min(
                table[i - 1][j] + 1,         # drop a typed character
                table[i][j - 1] + 1,         # insert a missing one
                table[i - 1][j - 1] + cost,  # substitute
            )
            if (i > 1 and j > 1
                    and typed[i - 1] == mnemonic[j - 2]
                    and typed[i - 2] == mnemonic[j - 1]):
                table[i][j] = min(table[i][j], table[i - 2][j - 2] + 1)

    return table[-1][-1]


def parse_source(source: str, filename: str = "<input>") -> list[Command]:
    """Parse VM source text into a list of commands."""
    return VMParser(source, filename).parse()
