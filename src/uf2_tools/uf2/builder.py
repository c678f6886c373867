"""
UF2 Block Encoder
=================

This module converts a raw firmware image into a UF2 block stream.

The image is cut into payloads whose size is the largest multiple of the
target page size that fits in a block's 476-byte data area, so every block
writes whole device pages. Each payload is framed as a 512-byte block
carrying its target address, its block number and the total block count.

Usage
-----
Encode an in-memory image:

    >>> from uf2_tools.uf2 import encode_bytes
    >>> uf2_data = encode_bytes(bytes(1024), page_size=256)
    >>> len(uf2_data)
    2048

Encode a file, tagging every block with a family ID:

    >>> from uf2_tools.uf2 import generate_file
    >>> generate_file("firmware.bin", "firmware.uf2", page_size=256,
    ...               family=0xE48BFF56)
    4

Stream frames from any binary file object:

    >>> encoder = BlockEncoder(length=1024, page_size=256)
    >>> for frame in encoder.iter_frames(source):
    ...     output.write(frame)

Page Size Handling
------------------
- Page sizes above 476 cannot divide a block payload and silently fall
  back to 1 (byte granularity).
- The image length must be a multiple of the page size; otherwise
  IncompatibleLengthError is raised before any output is written.
"""

from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union
import logging

from uf2_tools.errors import (
    IncompatibleLengthError,
    ShortReadError,
    UF2IOError,
    UF2SizeError,
)
from uf2_tools.uf2.records import (
    Block,
    TotalSize,
    MAX_PAYLOAD_SIZE,
    U32_MAX,
)

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Payload Size Negotiation
# =============================================================================

def normalize_page_size(page_size: int) -> int:
    """
    Apply the page size fallback rule.

    Page sizes larger than the 476-byte data area fall back to 1.

    Args:
        page_size: Requested device page size in bytes

    Returns:
        The page size actually used for encoding

    Raises:
        ValueError: If page_size is less than 1
    """
    if page_size < 1:
        raise ValueError(f"Page size must be at least 1, got {page_size}")
    if page_size > MAX_PAYLOAD_SIZE:
        logger.debug(
            f"Page size {page_size} exceeds {MAX_PAYLOAD_SIZE} bytes, "
            f"falling back to 1"
        )
        return 1
    return page_size


def compute_payload_size(page_size: int) -> int:
    """
    Largest multiple of page_size that fits in one block.

    Example:
        >>> compute_payload_size(256)
        256
        >>> compute_payload_size(100)
        400
        >>> compute_payload_size(1000)  # falls back to page size 1
        476
    """
    page_size = normalize_page_size(page_size)
    return page_size * (MAX_PAYLOAD_SIZE // page_size)


def compute_block_count(length: int, payload_size: int) -> int:
    """Number of blocks needed to carry length bytes (ceiling division)."""
    return -(-length // payload_size)


# =============================================================================
# Block Encoder
# =============================================================================

@dataclass
class BlockEncoder:
    """
    Encodes an image of known length into UF2 frames.

    All validation happens at construction time, so a caller can create
    the encoder before opening any output and be sure no partial output
    is produced for an invalid request.

    Attributes:
        length: Total image length in bytes
        page_size: Device page size (values above 476 fall back to 1)
        family: Optional family ID stored in every block
        payload_size: Nominal payload per block (computed)
        num_blocks: Total block count (computed)

    Raises:
        IncompatibleLengthError: If length is not a multiple of page_size
        UF2SizeError: If length does not fit in a 32-bit field
        UF2FormatError: If family does not fit in a 32-bit field
    """
    length: int
    page_size: int = 1
    family: Optional[int] = None

    payload_size: int = field(init=False)
    num_blocks: int = field(init=False)

    def __post_init__(self) -> None:
        self.page_size = normalize_page_size(self.page_size)

        if self.length > U32_MAX:
            raise UF2SizeError(
                f"Image of {self.length} bytes is too large for UF2 "
                f"(maximum {U32_MAX} bytes)"
            )
        if self.length % self.page_size != 0:
            raise IncompatibleLengthError(self.length, self.page_size)

        self.payload_size = compute_payload_size(self.page_size)
        self.num_blocks = compute_block_count(self.length, self.payload_size)

        # Build once so an out-of-range family fails before any output
        self.new_block()

        logger.debug(
            f"Encoding {self.length} bytes: page size {self.page_size}, "
            f"payload {self.payload_size}, {self.num_blocks} blocks"
        )

    def new_block(self) -> Block:
        """Create the reusable block for one stream."""
        block = Block(
            payload_size=self.payload_size,
            num_blocks=self.num_blocks,
            size_or_family=TotalSize(self.length),
        )
        if self.family is not None:
            block.set_family(self.family)
        return block

    def iter_frames(self, source: BinaryIO,
                    source_name: str = "<input>") -> Iterator[bytes]:
        """
        Read the image from source and yield one 512-byte frame per block.

        Args:
            source: Binary stream positioned at the start of the image
            source_name: Name used in error messages

        Raises:
            ShortReadError: If source ends before length bytes are read
        """
        block = self.new_block()
        remaining = self.length

        while remaining > 0:
            size = min(remaining, self.payload_size)
            payload = source.read(size)
            if len(payload) != size:
                offset = self.length - remaining
                raise ShortReadError(
                    source_name, size, len(payload),
                    f"Short read from {source_name} at offset {offset}: "
                    f"expected {size} bytes, got {len(payload)}"
                )
            block.set_payload(payload)

            yield block.to_bytes()

            remaining -= size
            block.block_no += 1
            block.target_addr += size

    def write_frames(self, source: BinaryIO, output: BinaryIO,
                     source_name: str = "<input>") -> int:
        """
        Encode source into output.

        Returns:
            Number of frames written
        """
        count = 0
        for frame in self.iter_frames(source, source_name):
            output.write(frame)
            count += 1
        return count


# =============================================================================
# Convenience Functions
# =============================================================================

def encode_bytes(
    data: bytes,
    page_size: int = 1,
    family: Optional[int] = None,
) -> bytes:
    """
    Encode an in-memory image to UF2.

    Args:
        data: The raw image
        page_size: Device page size in bytes
        family: Optional family ID

    Returns:
        The concatenated 512-byte frames (empty for an empty image)
    """
    encoder = BlockEncoder(length=len(data), page_size=page_size, family=family)
    return b"".join(encoder.iter_frames(BytesIO(data)))


def generate_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    page_size: int = 1,
    family: Optional[int] = None,
) -> int:
    """
    Encode a binary file to a UF2 file.

    The request is validated against the input's size before the output
    is created, so an incompatible length leaves no output behind. A
    failure while writing frames leaves a partial output in place.

    Args:
        input_path: Raw image file
        output_path: UF2 file to create or overwrite
        page_size: Device page size in bytes
        family: Optional family ID

    Returns:
        Number of blocks written

    Raises:
        IncompatibleLengthError: If the input size is not a multiple of
            page_size
        UF2IOError: If a file cannot be opened, read or written
    """
    input_path = Path(input_path)
    output_path = Path(output_path)

    try:
        with open(input_path, "rb") as source:
            length = input_path.stat().st_size
            encoder = BlockEncoder(length=length, page_size=page_size, family=family)

            with open(output_path, "wb") as output:
                count = encoder.write_frames(source, output, str(input_path))
    except OSError as e:
        raise UF2IOError(f"{e.strerror or e}: {e.filename or input_path}") from e

    logger.debug(f"Wrote {count} blocks to {output_path}")
    return count
