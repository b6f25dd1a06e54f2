"""
Hack VM Translator
==================

This package translates the stack-based VM language into Hack symbolic
assembly. It is the back end of the Hack toolchain: a high-level compiler
emits .vm files, this translator turns them into a single .asm program,
and the Hack assembler turns that into machine code.

Pipeline
--------
    VM source → VMParser → Command → CodeGenerator → Hack assembly

Usage
-----
>>> from hack_sdk.vm import translate_vm
>>> asm = translate_vm('''
... push constant 7
... push constant 8
... add
... ''')

Whole programs:
>>> from hack_sdk.vm import VMTranslator
>>> result = VMTranslator().translate_path("FibonacciElement")
>>> result.units
['Main', 'Sys']
"""

from hack_sdk.vm.commands import (
    Addressing,
    ArithmeticOp,
    Command,
    CommandKind,
    Segment,
)
from hack_sdk.vm.parser import VMParser, parse_source
from hack_sdk.vm.codegen import CodeGenerator
from hack_sdk.vm.translator import (
    TranslationResult,
    TranslatorOptions,
    VMTranslator,
    default_output_path,
    find_vm_files,
    translate_vm,
)

__all__ = [
    # Commands
    "Addressing",
    "ArithmeticOp",
    "Command",
    "CommandKind",
    "Segment",
    # Parser
    "VMParser",
    "parse_source",
    # Code Generator
    "CodeGenerator",
    # Translator
    "TranslationResult",
    "TranslatorOptions",
    "VMTranslator",
    "default_output_path",
    "find_vm_files",
    "translate_vm",
]
