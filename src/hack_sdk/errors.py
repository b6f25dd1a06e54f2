"""
Hack SDK Error Hierarchy
========================

This module defines the exception hierarchy for the entire Hack SDK.
All exceptions inherit from HackError, allowing callers to catch all
SDK-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
HackError (base)
└── VMTranslationError (VM translator)
    ├── UnknownCommandError - unrecognized mnemonic
    ├── MalformedOperandError - missing operand or non-integer count
    │   └── UnknownSegmentError - segment name not recognized
    ├── InvalidSegmentIndexError - index outside the segment's range
    ├── InvalidConstantUsageError - pop into the constant segment
    ├── CommandArgumentError - argument read from a command without one
    └── StackUnderflowError - return with nothing on the working stack

Design Philosophy
-----------------
Every translation error is fatal. A stack machine is only correct when
the stack depth and frame layout hold for every instruction that follows,
so the translator never emits partial output after an error.

Each exception captures source location information (filename, line,
column) when available. Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class HackError(Exception):
    """
    Base exception for all Hack SDK errors.

    All exceptions in the SDK inherit from this class, allowing callers
    to catch all SDK-related errors with a single except clause:

        try:
            translator.translate_path("Prog/")
        except HackError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in VM source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int = 1

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# VM Translator Exceptions
# =============================================================================

class VMTranslationError(HackError):
    """
    Base exception for all VM translation errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def with_context(
        self,
        location: SourceLocation,
        source_line: Optional[str] = None,
    ) -> "VMTranslationError":
        """
        Attach a source location to an error raised without one.

        The code generator works on Command values and does not know
        where they came from; the translator calls this before the
        error leaves the translation loop. Errors that already carry a
        location are left untouched.
        """
        if self.location is None:
            self.location = location
            self.source_line = source_line
            self.args = (self._format_message(),)
        return self

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            Main.vm:12:1: error: unknown command 'psuh'
                psuh constant 7
                ^
            hint: did you mean 'push'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class UnknownCommandError(VMTranslationError):
    """
    Unrecognized VM mnemonic.

    Raised by the parser when the first field of a line is not one of the
    VM language's commands. Similar mnemonics are offered as a hint to
    catch typos.
    """

    def __init__(
        self,
        mnemonic: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        similar: Optional[list[str]] = None,
    ):
        self.mnemonic = mnemonic
        self.similar = similar or []

        hint = None
        if self.similar:
            suggestions = ", ".join(f"'{s}'" for s in self.similar[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"unknown command '{mnemonic}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MalformedOperandError(VMTranslationError):
    """
    Missing or ill-formed operand.

    Examples:
        push constant          // missing index
        function Main.main x   // non-integer local count
        goto                   // missing label
        add 3                  // operand on a zero-operand command
    """
    pass


class UnknownSegmentError(MalformedOperandError):
    """
    Segment name not recognized.

    Example:
        push locals 0   // should be 'local'
    """

    def __init__(
        self,
        segment: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        valid_segments: Optional[list[str]] = None,
    ):
        self.segment = segment
        self.valid_segments = valid_segments or []

        hint = None
        if self.valid_segments:
            hint = f"valid segments: {', '.join(self.valid_segments)}"

        super().__init__(
            f"unknown segment '{segment}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class InvalidSegmentIndexError(VMTranslationError):
    """
    Segment index outside the range the segment supports.

    The pointer segment only has cells 0 (THIS) and 1 (THAT); the temp
    segment has cells 0-7 (RAM[5..12]). A constant must fit the 15 bits
    an A-instruction can load (0-32767).
    """

    def __init__(
        self,
        segment: str,
        index: int,
        valid_range: tuple[int, int],
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.segment = segment
        self.index = index
        self.valid_range = valid_range

        low, high = valid_range
        super().__init__(
            f"{segment} index {index} is out of range",
            location=location,
            hint=f"{segment} accepts indices {low} to {high}",
            source_line=source_line,
        )


class InvalidConstantUsageError(VMTranslationError):
    """
    The constant segment used as a destination.

    Constants are immediate values with no backing memory, so
    'pop constant n' means the VM producer emitted something it should
    not have.
    """
    pass


class CommandArgumentError(VMTranslationError):
    """
    An argument was read from a command kind that does not carry one.

    Only push, pop, function and call carry a numeric index, and return
    carries no operand at all.
    """
    pass


class StackUnderflowError(VMTranslationError):
    """
    A return that would pop from an empty working stack.

    Raised when the generator can prove, from straight-line code since
    the function entry, that nothing is available as the return value.
    Without a value the pop would read the caller's saved THAT pointer.
    """
    pass
