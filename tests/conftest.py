"""
VM Translator Test Configuration
================================

pytest fixtures shared by the translator tests.

It provides:
- HackMachine: a small interpreter for Hack symbolic assembly, so tests
  can check what generated code does rather than only what it looks like
- run_vm: translate VM source and run it to completion
"""

from typing import Callable, Optional

import pytest

from hack_sdk.vm.translator import TranslatorOptions, VMTranslator


# ═══════════════════════════════════════════════════════════════════════════════
# HACK MACHINE
# ═══════════════════════════════════════════════════════════════════════════════

PREDEFINED_SYMBOLS = {
    "SP": 0, "LCL": 1, "ARG": 2, "THIS": 3, "THAT": 4,
    "SCREEN": 16384, "KBD": 24576,
    **{f"R{i}": i for i in range(16)},
}

FIRST_VARIABLE = 16


def _signed(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def _compute(comp: str, a: int, d: int, m: int) -> int:
    table = {
        "0": lambda: 0,
        "1": lambda: 1,
        "-1": lambda: -1,
        "D": lambda: d,
        "!D": lambda: ~d,
        "-D": lambda: -d,
        "D+1": lambda: d + 1,
        "D-1": lambda: d - 1,
    }
    for name, x in (("A", a), ("M", m)):
        table.update({
            name: lambda x=x: x,
            f"!{name}": lambda x=x: ~x,
            f"-{name}": lambda x=x: -x,
            f"{name}+1": lambda x=x: x + 1,
            f"{name}-1": lambda x=x: x - 1,
            f"D+{name}": lambda x=x: d + x,
            f"{name}+D": lambda x=x: d + x,
            f"D-{name}": lambda x=x: d - x,
            f"{name}-D": lambda x=x: x - d,
            f"D&{name}": lambda x=x: d & x,
            f"{name}&D": lambda x=x: d & x,
            f"D|{name}": lambda x=x: d | x,
            f"{name}|D": lambda x=x: d | x,
        })
    return _signed(table[comp]())


JUMPS = {
    "JGT": lambda v: v > 0,
    "JEQ": lambda v: v == 0,
    "JGE": lambda v: v >= 0,
    "JLT": lambda v: v < 0,
    "JNE": lambda v: v != 0,
    "JLE": lambda v: v <= 0,
    "JMP": lambda v: True,
}


class HackMachine:
    """
    Interpreter for Hack symbolic assembly.

    Labels are resolved in a first pass and variables are allocated from
    RAM[16] upwards, as the Hack assembler does. RAM cells hold signed
    16-bit values.
    """

    def __init__(self, assembly: str):
        self.ram: dict[int, int] = {}
        self.a = 0
        self.d = 0
        self.pc = 0
        self.steps = 0
        self.halted = False
        self.symbols = dict(PREDEFINED_SYMBOLS)
        self.program: list[str] = []
        self._load(assembly)

    def _load(self, assembly: str) -> None:
        for raw in assembly.splitlines():
            line = raw.split("//", 1)[0].strip()
            if not line:
                continue
            if line.startswith("("):
                label = line[1:-1]
                assert label not in self.symbols, f"duplicate label {label}"
                self.symbols[label] = len(self.program)
            else:
                self.program.append(line)

        next_variable = FIRST_VARIABLE
        for line in self.program:
            if line.startswith("@") and not line[1:].isdigit():
                name = line[1:]
                if name not in self.symbols:
                    self.symbols[name] = next_variable
                    next_variable += 1

    def __getitem__(self, address: int) -> int:
        return self.ram.get(address, 0)

    def __setitem__(self, address: int, value: int) -> None:
        self.ram[address] = _signed(value)

    def address_of(self, symbol: str) -> int:
        return self.symbols[symbol]

    @property
    def sp(self) -> int:
        return self[0]

    def stack(self, base: int = 256) -> list[int]:
        """Cells from base up to (not including) SP."""
        return [self[i] for i in range(base, self.sp)]

    def step(self) -> None:
        line = self.program[self.pc]
        self.steps += 1

        if line.startswith("@"):
            operand = line[1:]
            self.a = int(operand) if operand.isdigit() else self.symbols[operand]
            self.pc += 1
            return

        dest, _, rest = line.rpartition("=") if "=" in line else ("", "", line)
        comp, _, jump = rest.partition(";")
        old_a = self.a
        value = _compute(comp, self.a, self.d, self[self.a])

        if "M" in dest:
            self[old_a] = value
        if "A" in dest:
            self.a = value
        if "D" in dest:
            self.d = value

        if jump and JUMPS[jump](value):
            # @L / 0;JMP with (L) on the '@': a halt loop
            if old_a == self.pc - 1:
                self.halted = True
            self.pc = old_a
        else:
            self.pc += 1

    def run(self, until: Optional[str] = None, max_steps: int = 200_000) -> "HackMachine":
        """Run until halted, past the end, at label 'until', or max_steps."""
        stop = self.symbols[until] if until else None
        while not self.halted and self.pc < len(self.program):
            if self.pc == stop:
                break
            if self.steps >= max_steps:
                raise AssertionError(f"no halt after {max_steps} steps (pc={self.pc})")
            self.step()
        return self


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def hack_machine() -> type[HackMachine]:
    """Fixture: the HackMachine class, for tests that load assembly directly."""
    return HackMachine


@pytest.fixture
def run_vm() -> Callable[..., HackMachine]:
    """
    Fixture: translate VM source and run it.

    Single units run without bootstrap from a hand-built machine state
    (SP=256 unless setup says otherwise). Passing units=[(name, source)...]
    translates a whole program with the bootstrap.
    """
    def _run(
        source: str = "",
        setup: Optional[dict[int, int]] = None,
        units: Optional[list[tuple[str, str]]] = None,
        until: Optional[str] = None,
        jobs: int = 1,
        max_steps: int = 200_000,
    ) -> HackMachine:
        translator = VMTranslator(TranslatorOptions(comments=True, jobs=jobs))
        if units is not None:
            assembly = translator.translate_units(units, bootstrap=True).assembly
        else:
            assembly = translator.translate_source(source, "Test").assembly

        machine = HackMachine(assembly)
        machine[0] = 256
        for address, value in (setup or {}).items():
            machine[address] = value
        return machine.run(until=until, max_steps=max_steps)

    return _run
