"""
UF2 Tools - Firmware Image to UF2 Converter
===========================================

This package converts raw firmware images into UF2 flashing images and
joins individually produced UF2 blocks into a single file.

A UF2 file is a sequence of 512-byte blocks. Each block carries up to 476
bytes of the image together with its target address, its block number and
the total block count, framed by fixed magic numbers so a bootloader can
recognise blocks regardless of how the host filesystem stores them.

Main Components
---------------
- **uf2**: Block layout, encoder and combiner
- **cli**: The uf2tool command-line tool

Quick Start
-----------
Encode an image for a device with 256-byte pages:

    >>> from uf2_tools import generate_file
    >>> generate_file("firmware.bin", "firmware.uf2", page_size=256)

Or use the command-line tool:
    $ uf2tool generate -i firmware.bin -o firmware.uf2 -p 256
    $ uf2tool combine -o joined.uf2 block0.uf2 block1.uf2

Reference Documentation
-----------------------
- UF2 specification: https://github.com/microsoft/uf2
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from uf2_tools.errors import (
    UF2Error,
    UF2FormatError,
    UF2SizeError,
    IncompatibleLengthError,
    UF2IOError,
    ShortReadError,
)

from uf2_tools.uf2 import (
    CHUNK_SIZE,
    MAX_PAYLOAD_SIZE,
    Block,
    BlockFlags,
    TotalSize,
    FamilyId,
    BlockEncoder,
    encode_bytes,
    generate_file,
    combine_chunks,
    combine_files,
)

__all__ = [
    # Version info
    "__version__",
    # Exception hierarchy
    "UF2Error",
    "UF2FormatError",
    "UF2SizeError",
    "IncompatibleLengthError",
    "UF2IOError",
    "ShortReadError",
    # UF2
    "CHUNK_SIZE",
    "MAX_PAYLOAD_SIZE",
    "Block",
    "BlockFlags",
    "TotalSize",
    "FamilyId",
    "BlockEncoder",
    "encode_bytes",
    "generate_file",
    "combine_chunks",
    "combine_files",
]
