"""
uf2tool - UF2 Image Command-Line Interface
==========================================

This module implements the command-line interface for producing UF2
flashing images.

Commands
--------
- **generate**: Convert a raw binary image into a UF2 file
- **combine**: Join single-block UF2 files into one file

Usage Examples
--------------
Convert an image byte by byte:
    $ uf2tool generate -i firmware.bin -o firmware.uf2

Convert an image for a device with 256-byte pages, tagged with a family:
    $ uf2tool generate -i firmware.bin -o firmware.uf2 -p 256 -f 0xe48bff56

Join blocks produced separately:
    $ uf2tool combine -o joined.uf2 block0.uf2 block1.uf2 block2.uf2

Exit Codes
----------
0 - Success
1 - Encoding or file error
2 - Invalid arguments
3 - Internal error
"""

import logging
from pathlib import Path
from typing import Optional

import click

from uf2_tools import __version__
from uf2_tools.cli.errors import handle_cli_exception
from uf2_tools.uf2 import CHUNK_SIZE, combine_files, generate_file
from uf2_tools.uf2.records import U32_MAX


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


# =============================================================================
# Family ID Parameter Type
# =============================================================================

class FamilyIdType(click.ParamType):
    """
    Click parameter type for UF2 family IDs.

    Accepts decimal or hexadecimal with a 0x prefix, e.g. 7 or 0xe48bff56.
    The value must fit in 32 bits.
    """
    name = "family_id"

    def convert(self, value, param: Optional[click.Parameter],
                ctx: Optional[click.Context]) -> int:
        """Convert string to an unsigned 32-bit family ID."""
        if isinstance(value, int):
            family = value
        else:
            text = value.strip()
            try:
                if text.lower().startswith("0x"):
                    family = int(text, 16)
                else:
                    family = int(text)
            except ValueError:
                self.fail(f"Invalid family ID '{value}'", param, ctx)

        if not 0 <= family <= U32_MAX:
            self.fail(
                f"Family ID '{value}' does not fit in 32 bits", param, ctx
            )
        return family


FAMILY_ID = FamilyIdType()


# =============================================================================
# Main CLI Group
# =============================================================================

@click.group()
@click.version_option(__version__, "--version", "-V", prog_name="uf2tool")
def main() -> None:
    """
    UF2 image tool.

    Convert raw firmware images to UF2 and join UF2 blocks.

    \b
    Commands:
      generate  Convert a raw image into a UF2 file
      combine   Join single-block UF2 files

    \b
    Examples:
      uf2tool generate -i firmware.bin -o firmware.uf2 -p 256
      uf2tool combine -o joined.uf2 block0.uf2 block1.uf2
    """
    pass


# =============================================================================
# Generate Command
# =============================================================================

@main.command("generate")
@click.option(
    "-i", "--input", "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="Raw binary image (required)",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Output UF2 file path (required)",
)
@click.option(
    "-p", "--page-size",
    type=click.IntRange(1, U32_MAX),
    default=1,
    show_default=True,
    help="Device page size in bytes; sizes above 476 fall back to 1",
)
@click.option(
    "-f", "--family",
    type=FAMILY_ID,
    default=None,
    help="Family ID stored in every block (decimal or 0x-prefixed hex)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
def cmd_generate(
    input_file: Path,
    output: Path,
    page_size: int,
    family: Optional[int],
    verbose: bool,
) -> None:
    """
    Convert a raw binary image into a UF2 file.

    The image size must be a multiple of the page size. Each block carries
    the largest multiple of the page size that fits in 476 bytes.

    \b
    Examples:
      uf2tool generate -i firmware.bin -o firmware.uf2
      uf2tool generate -i firmware.bin -o firmware.uf2 -p 256 -f 0xe48bff56
    """
    setup_logging(verbose)
    try:
        if verbose:
            click.echo(f"Encoding {input_file} with page size {page_size}")
            if family is not None:
                click.echo(f"  Family ID: 0x{family:08X}")

        count = generate_file(input_file, output, page_size=page_size, family=family)

        click.echo(
            f"Wrote {count} blocks ({count * CHUNK_SIZE} bytes) to {output}"
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Generate")


# =============================================================================
# Combine Command
# =============================================================================

@main.command("combine")
@click.argument(
    "input_files",
    nargs=-1,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="Output UF2 file path (required)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
def cmd_combine(
    input_files: tuple[Path, ...],
    output: Path,
    verbose: bool,
) -> None:
    """
    Join single-block UF2 files into one file.

    The first 512 bytes of each of INPUT_FILES are copied, in order, into
    the output. Block contents are not checked.

    \b
    Example:
      uf2tool combine -o joined.uf2 block0.uf2 block1.uf2
    """
    setup_logging(verbose)
    try:
        if verbose:
            for path in input_files:
                click.echo(f"  Adding {path.name}...")

        written = combine_files(input_files, output)

        click.echo(
            f"Wrote {written // CHUNK_SIZE} blocks ({written} bytes) to {output}"
        )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Combine")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
