"""
hvmt - VM Translator Command-Line Interface
===========================================

This module implements the command-line interface for the VM translator.
It translates one .vm file, or every .vm file in a directory, into a single
Hack assembly file.

Usage Examples
--------------
Whole program (bootstrap + Sys.init call):
    $ hvmt FibonacciElement/          # -> FibonacciElement/FibonacciElement.asm

Single file (no bootstrap, terminal halt loop):
    $ hvmt SimpleAdd.vm               # -> SimpleAdd.asm

With output file:
    $ hvmt Prog/ -o prog.asm

Force the bootstrap for a single file:
    $ hvmt --bootstrap Sys.vm

Verbose mode:
    $ hvmt -v Prog/
"""

import logging
from pathlib import Path
from typing import Optional

import click

from hack_sdk import __version__
from hack_sdk.cli.errors import handle_cli_exception
from hack_sdk.vm.translator import (
    TranslatorOptions,
    VMTranslator,
    default_output_path,
)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "path",
    type=click.Path(exists=True, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output assembly file (default: Foo.asm for Foo.vm, Dir/Dir.asm for Dir/)",
)
@click.option(
    "--bootstrap/--no-bootstrap",
    default=None,
    help="Emit the bootstrap that sets SP and calls the entry function. "
         "Default: on for directories, off for single files.",
)
@click.option(
    "--comments/--no-comments",
    default=None,
    help="Emit each VM command as a comment in the output. Default: on.",
)
@click.option(
    "--poison/--no-poison",
    default=True,
    help="Have the bootstrap fill LCL/ARG/THIS/THAT with out-of-range "
         "values before the first call. Default: on.",
)
@click.option(
    "-e", "--entry",
    default=None,
    help="Function called by the bootstrap. Default: Sys.init.",
)
@click.option(
    "-j", "--jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Translate up to N files concurrently. Default: 1.",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="hvmt")
def main(
    path: Path,
    output: Optional[Path],
    bootstrap: Optional[bool],
    comments: Optional[bool],
    poison: bool,
    entry: Optional[str],
    jobs: Optional[int],
    verbose: bool,
) -> None:
    """
    Translate VM code into Hack assembly.

    PATH is a single .vm file or a directory of .vm files. A directory is
    translated as one program: all its files are concatenated behind one
    bootstrap.

    \b
    Examples:
        hvmt Prog/                   # Outputs Prog/Prog.asm
        hvmt Main.vm                 # Outputs Main.asm
        hvmt Prog/ -o out.asm        # Specify output file
        hvmt --no-comments Main.vm   # Bare instructions only

    \b
    Environment:
        HVMT_BOOTSTRAP, HVMT_COMMENTS, HVMT_JOBS, HVMT_ENTRY provide
        defaults that command-line options override.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )

    options = TranslatorOptions.from_env()
    if bootstrap is not None:
        options.bootstrap = bootstrap
    if comments is not None:
        options.comments = comments
    if entry is not None:
        options.entry_function = entry
    if jobs is not None:
        options.jobs = jobs
    options.poison_segments = poison

    try:
        if output is None:
            output = default_output_path(path)

        if verbose:
            kind = "directory" if path.is_dir() else "file"
            click.echo(f"Translating {kind} {path}...")

        result = VMTranslator(options).translate_path(path)

        # Only a complete translation is written
        output.write_text(result.assembly, encoding="utf-8")

        if verbose:
            click.echo(f"Units: {', '.join(result.units)}")
            click.echo(f"Bootstrap: {'yes' if result.bootstrap else 'no (halt loop)'}")
            click.echo(
                f"Translated {result.command_count} commands "
                f"into {result.line_count} lines"
            )

        click.echo(f"Translated {path} -> {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Translation")


if __name__ == "__main__":
    main()
