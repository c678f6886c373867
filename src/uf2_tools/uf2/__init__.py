"""
UF2 File Handling
=================

This module provides support for producing UF2 flashing images. UF2 is a
block-based transfer format used by USB mass-storage bootloaders: the
image is split into fixed 512-byte blocks that can be written to the
device in any order.

This module provides:
- **Block**: The 512-byte block record and its serialization
- **BlockEncoder**: Converts a raw image into a block stream
- **combine_files**: Concatenates single-block files into one stream

Quick Start
-----------
Converting a raw image for a device with 256-byte pages:

    >>> from uf2_tools.uf2 import generate_file
    >>> generate_file("firmware.bin", "firmware.uf2", page_size=256)

Joining individually generated blocks:

    >>> from uf2_tools.uf2 import combine_files
    >>> combine_files(["b0.uf2", "b1.uf2"], "joined.uf2")
    1024

Reference
---------
- UF2 specification: https://github.com/microsoft/uf2
"""

# =============================================================================
# Public API Exports
# =============================================================================

# Block layout and records
from uf2_tools.uf2.records import (
    # Constants
    CHUNK_SIZE,
    MAX_PAYLOAD_SIZE,
    HEADER_SIZE,
    MAGIC_START_0,
    MAGIC_START_1,
    MAGIC_END,
    UF2_STRUCT,
    # Data structures
    BlockFlags,
    TotalSize,
    FamilyId,
    SizeOrFamily,
    Block,
)

# Encoder
from uf2_tools.uf2.builder import (
    BlockEncoder,
    normalize_page_size,
    compute_payload_size,
    compute_block_count,
    encode_bytes,
    generate_file,
)

# Combiner
from uf2_tools.uf2.combiner import (
    combine_chunks,
    combine_files,
)

# =============================================================================
# Module-level __all__ for explicit exports
# =============================================================================

__all__ = [
    # Constants
    "CHUNK_SIZE",
    "MAX_PAYLOAD_SIZE",
    "HEADER_SIZE",
    "MAGIC_START_0",
    "MAGIC_START_1",
    "MAGIC_END",
    "UF2_STRUCT",
    # Data structures
    "BlockFlags",
    "TotalSize",
    "FamilyId",
    "SizeOrFamily",
    "Block",
    # Encoder
    "BlockEncoder",
    "normalize_page_size",
    "compute_payload_size",
    "compute_block_count",
    "encode_bytes",
    "generate_file",
    # Combiner
    "combine_chunks",
    "combine_files",
]
