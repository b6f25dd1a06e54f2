"""
VM Translator Main Module
=========================

This module provides the main translator interface. It orchestrates the
complete translation of a VM program:

    .vm files → Parser → Commands → CodeGenerator → Hack assembly (.asm)

Usage
-----
Command line:
    $ hvmt Prog/             # all Prog/*.vm -> Prog/Prog.asm, with bootstrap
    $ hvmt Main.vm           # Main.vm -> Main.asm, halt loop, no bootstrap

Programmatic:
    >>> from hack_sdk.vm import translate_vm
    >>> asm = translate_vm("push constant 7\\npush constant 8\\nadd")

Program Structure
-----------------
A program is one or more source units (one per .vm file). The unit name is
the file's stem; it scopes 'static' variables and qualifies bare function
names. Units are concatenated in sorted filename order after an optional
bootstrap that sets SP and calls Sys.init. Without a bootstrap a halt loop
is appended so execution never falls through into unwritten memory.

Error Handling
--------------
Any error aborts the whole run: no assembly is returned for a program
that failed to translate, and errors are raised with the file and line of
the offending command.

Parallel Translation
--------------------
With jobs > 1 the units are translated concurrently. Each unit gets its
own generator whose labels carry the unit's index (VM0$..., VM1$...), so
the per-generator counters never produce colliding names.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from hack_sdk.errors import SourceLocation, VMTranslationError
from hack_sdk.vm.codegen import (
    CodeGenerator,
    DEFAULT_ENTRY,
    DEFAULT_NAMESPACE,
    STACK_BASE,
)
from hack_sdk.vm.parser import VMParser

logger = logging.getLogger(__name__)

VM_SUFFIX = ".vm"
ASM_SUFFIX = ".asm"


@dataclass
class TranslatorOptions:
    """
    Translator configuration options.

    Attributes:
        bootstrap: Emit the SP/Sys.init prologue. None means decide per
                   input: on for directories, off for single files.
        comments: Emit each VM command as a '//' comment in the output
        poison_segments: Have the bootstrap store out-of-range values in
                         LCL, ARG, THIS and THAT before calling the entry
        entry_function: Function the bootstrap calls
        stack_base: Address of the first stack cell
        jobs: Number of units translated concurrently (1 = sequential)
    """
    bootstrap: Optional[bool] = None
    comments: bool = True
    poison_segments: bool = True
    entry_function: str = DEFAULT_ENTRY
    stack_base: int = STACK_BASE
    jobs: int = 1

    @classmethod
    def from_env(cls) -> "TranslatorOptions":
        """
        Create TranslatorOptions from environment variables.

        Environment variables (all optional):
            HVMT_BOOTSTRAP: "1"/"0" to force the bootstrap on or off
            HVMT_COMMENTS: "1"/"0" to turn source comments on or off
            HVMT_JOBS: Number of concurrent units (integer)
            HVMT_ENTRY: Entry function for the bootstrap

        Returns:
            TranslatorOptions with values from environment variables
        """
        options = cls()

        if (bootstrap := _env_flag("HVMT_BOOTSTRAP")) is not None:
            options.bootstrap = bootstrap

        if (comments := _env_flag("HVMT_COMMENTS")) is not None:
            options.comments = comments

        if jobs := os.environ.get("HVMT_JOBS"):
            try:
                options.jobs = max(1, int(jobs))
            except ValueError:
                pass  # Ignore invalid values

        if entry := os.environ.get("HVMT_ENTRY"):
            options.entry_function = entry

        return options


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return None


@dataclass
class TranslationResult:
    """
    Result of a translation.

    Attributes:
        assembly: Generated Hack assembly
        units: Unit names, in output order
        command_count: Number of VM commands translated
        bootstrap: Whether the bootstrap prologue was emitted
    """
    assembly: str = ""
    units: list[str] = field(default_factory=list)
    command_count: int = 0
    bootstrap: bool = False

    @property
    def line_count(self) -> int:
        return len(self.assembly.splitlines())


class VMTranslator:
    """
    VM-to-Hack translator for whole programs.

    Example:
        translator = VMTranslator()
        result = translator.translate_path("FibonacciElement/")
        Path("FibonacciElement.asm").write_text(result.assembly)

    Attributes:
        options: Translator configuration options
    """

    def __init__(self, options: Optional[TranslatorOptions] = None):
        self.options = options or TranslatorOptions()

    # =========================================================================
    # Entry Points
    # =========================================================================

    def translate_source(
        self,
        source: str,
        unit_name: str = "Main",
        bootstrap: bool = False,
    ) -> TranslationResult:
        """
        Translate one unit of VM source text.

        Args:
            source: VM source code
            unit_name: Name that scopes static variables
            bootstrap: Emit the bootstrap prologue instead of a halt loop

        Raises:
            VMTranslationError: If translation fails
        """
        return self.translate_units([(unit_name, source)], bootstrap=bootstrap)

    def translate_units(
        self,
        units: list[tuple[str, str]],
        bootstrap: bool = True,
    ) -> TranslationResult:
        """
        Translate several units into one program.

        Args:
            units: (unit_name, source) pairs, in output order
            bootstrap: Emit the bootstrap prologue instead of a halt loop

        Returns:
            TranslationResult with the combined assembly

        Raises:
            VMTranslationError: If any unit fails; nothing is returned
        """
        if self.options.jobs > 1 and len(units) > 1:
            result = self._translate_parallel(units, bootstrap)
        else:
            result = self._translate_sequential(units, bootstrap)

        logger.info(
            f"Translated {len(units)} unit(s), {result.command_count} commands "
            f"-> {result.line_count} lines"
        )
        return result

    def translate_file(self, path: Path) -> TranslationResult:
        """
        Translate a single .vm file.

        The bootstrap is off unless options.bootstrap forces it on.

        Raises:
            VMTranslationError: If translation fails
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a .vm file
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Source file not found: {path}")
        if path.suffix != VM_SUFFIX:
            raise ValueError(f"Not a VM source file (expected {VM_SUFFIX}): {path}")

        bootstrap = bool(self.options.bootstrap)
        return self.translate_units([self._read_unit(path)], bootstrap=bootstrap)

    def translate_directory(self, path: Path) -> TranslationResult:
        """
        Translate every .vm file in a directory as one program.

        Files are taken in sorted order. The bootstrap is on unless
        options.bootstrap forces it off.

        Raises:
            VMTranslationError: If translation fails
            FileNotFoundError: If the directory holds no .vm files
        """
        files = find_vm_files(path)
        if not files:
            raise FileNotFoundError(f"No {VM_SUFFIX} files found in {path}")

        bootstrap = self.options.bootstrap is not False
        return self.translate_units(
            [self._read_unit(f) for f in files], bootstrap=bootstrap
        )

    def translate_path(self, path: Path) -> TranslationResult:
        """Translate a file or a directory, whichever path names."""
        path = Path(path)
        if path.is_dir():
            return self.translate_directory(path)
        return self.translate_file(path)

    # =========================================================================
    # Translation
    # =========================================================================

    def _new_generator(self, namespace: str = DEFAULT_NAMESPACE) -> CodeGenerator:
        return CodeGenerator(namespace=namespace, comments=self.options.comments)

    def _write_prologue(self, generator: CodeGenerator, bootstrap: bool) -> None:
        if bootstrap:
            generator.write_bootstrap(
                entry=self.options.entry_function,
                stack_base=self.options.stack_base,
                poison=self.options.poison_segments,
            )

    def _translate_sequential(
        self,
        units: list[tuple[str, str]],
        bootstrap: bool,
    ) -> TranslationResult:
        generator = self._new_generator()
        self._write_prologue(generator, bootstrap)

        count = 0
        for unit_name, source in units:
            count += self._translate_unit(generator, unit_name, source)

        if not bootstrap:
            generator.write_halt()

        return TranslationResult(
            assembly=generator.assembly,
            units=[name for name, _ in units],
            command_count=count,
            bootstrap=bootstrap,
        )

    def _translate_parallel(
        self,
        units: list[tuple[str, str]],
        bootstrap: bool,
    ) -> TranslationResult:
        logger.debug(f"Translating {len(units)} units with {self.options.jobs} jobs")

        def work(indexed: tuple[int, tuple[str, str]]) -> tuple[str, int]:
            index, (unit_name, source) = indexed
            generator = self._new_generator(f"{DEFAULT_NAMESPACE}{index}")
            count = self._translate_unit(generator, unit_name, source)
            return generator.assembly, count

        with ThreadPoolExecutor(max_workers=self.options.jobs) as pool:
            # map() re-raises the first failure here, in unit order
            outputs = list(pool.map(work, enumerate(units)))

        head = self._new_generator()
        self._write_prologue(head, bootstrap)
        tail = self._new_generator()
        if not bootstrap:
            tail.write_halt()

        return TranslationResult(
            assembly=head.assembly + "".join(asm for asm, _ in outputs) + tail.assembly,
            units=[name for name, _ in units],
            command_count=sum(count for _, count in outputs),
            bootstrap=bootstrap,
        )

    def _translate_unit(
        self,
        generator: CodeGenerator,
        unit_name: str,
        source: str,
    ) -> int:
        """Stream one unit through the parser into generator."""
        filename = f"{unit_name}{VM_SUFFIX}"
        generator.set_unit(unit_name)
        parser = VMParser(source, filename)

        count = 0
        for command in parser:
            try:
                generator.translate(command)
            except VMTranslationError as e:
                raise e.with_context(
                    SourceLocation(filename, command.line), command.text
                )
            count += 1

        logger.debug(f"Unit {unit_name}: {count} commands")
        return count

    @staticmethod
    def _read_unit(path: Path) -> tuple[str, str]:
        return path.stem, path.read_text(encoding="utf-8")


# =============================================================================
# Utility Functions
# =============================================================================

def find_vm_files(directory: Path) -> list[Path]:
    """Sorted .vm files directly inside directory."""
    return sorted(
        p for p in Path(directory).iterdir()
        if p.is_file() and p.suffix == VM_SUFFIX
    )


def default_output_path(path: Path) -> Path:
    """
    Where the assembly for path goes by default.

    Foo.vm -> Foo.asm beside it; directory Prog -> Prog/Prog.asm.
    """
    path = Path(path)
    if path.is_dir():
        return path / f"{path.resolve().name}{ASM_SUFFIX}"
    return path.with_suffix(ASM_SUFFIX)


def translate_vm(
    source: str,
    unit_name: str = "Main",
    bootstrap: bool = False,
    comments: bool = False,
) -> str:
    """
    Translate VM source text to Hack assembly.

    Args:
        source: VM source code
        unit_name: Name that scopes static variables
        bootstrap: Emit the bootstrap prologue instead of a halt loop
        comments: Emit VM commands as comments in the output

    Returns:
        Hack assembly text

    Raises:
        VMTranslationError: If translation fails
    """
    translator = VMTranslator(TranslatorOptions(comments=comments))
    return translator.translate_source(source, unit_name, bootstrap=bootstrap).assembly
