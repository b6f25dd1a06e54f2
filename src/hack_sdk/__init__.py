"""
Hack SDK - Back-End Toolchain for the Hack Computer
===================================================

This package provides the back end of the toolchain for the Hack computer,
the 16-bit teaching machine with two registers (A and D), a single memory
operand and a symbolic assembly language.

Main Components
---------------
- **vm**: VM translator (hvmt)
    Converts stack-based VM programs (.vm) into Hack assembly (.asm)

- **cli**: Command-line front ends

Quick Start
-----------
Translate a program held in a directory:
    >>> from hack_sdk.vm import VMTranslator
    >>> result = VMTranslator().translate_path("StaticsTest")
    >>> Path("StaticsTest/StaticsTest.asm").write_text(result.assembly)

Or use the command-line tool:
    $ hvmt StaticsTest/
    $ hvmt SimpleAdd.vm -o SimpleAdd.asm

Version History
---------------
1.0.0 - Initial release with the VM translator
"""

__version__ = "1.0.0"
__author__ = "Hack SDK Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from hack_sdk.errors import (
    HackError,
    SourceLocation,
    VMTranslationError,
    UnknownCommandError,
    MalformedOperandError,
    UnknownSegmentError,
    InvalidSegmentIndexError,
    InvalidConstantUsageError,
    CommandArgumentError,
    StackUnderflowError,
)
from hack_sdk.vm import (
    VMTranslator,
    TranslatorOptions,
    TranslationResult,
    translate_vm,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Translator
    "VMTranslator",
    "TranslatorOptions",
    "TranslationResult",
    "translate_vm",
    # Exception hierarchy
    "HackError",
    "SourceLocation",
    "VMTranslationError",
    "UnknownCommandError",
    "MalformedOperandError",
    "UnknownSegmentError",
    "InvalidSegmentIndexError",
    "InvalidConstantUsageError",
    "CommandArgumentError",
    "StackUnderflowError",
]
