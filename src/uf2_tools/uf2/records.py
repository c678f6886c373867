"""
UF2 Block Definitions
=====================

This module defines the UF2 block, the fixed-size record that makes up a
UF2 transfer stream. A UF2 file is nothing more than a sequence of these
512-byte blocks, each carrying a slice of the firmware image together with
its target address and position in the stream.

Block Structure
---------------
All fields are 32-bit little-endian words except the data area:

    Offset  Size    Description
    ------  ----    -----------
    0       4       First magic number (0x0A324655, "UF2\\n")
    4       4       Second magic number (0x9E5D5157)
    8       4       Flags
    12      4       Target address of the payload
    16      4       Payload size (bytes of data used, <= 476)
    20      4       Block number (zero-based)
    24      4       Total number of blocks in the stream
    28      4       File size, or family ID when flag 0x2000 is set
    32      476     Data, zero-padded beyond the payload size
    508     4       Final magic number (0x0AB16F30)

The word at offset 28 is overloaded: it holds the total image size unless
the family flag is set, in which case it holds the family ID instead. Here
that slot is modelled as a tagged union of TotalSize and FamilyId.

Reference
---------
- UF2 specification: https://github.com/microsoft/uf2
"""

from dataclasses import dataclass, field
from enum import IntFlag
from typing import Optional, Union
import struct

from uf2_tools.errors import UF2FormatError


# =============================================================================
# Frame Layout Constants
# =============================================================================

CHUNK_SIZE = 512            # Size of one serialized block
MAX_PAYLOAD_SIZE = 476      # Data area size (512 - 32 header - 4 trailer)
HEADER_SIZE = 32

MAGIC_START_0 = 0x0A324655
MAGIC_START_1 = 0x9E5D5157
MAGIC_END = 0x0AB16F30

U32_MAX = 0xFFFFFFFF

# magic0, magic1, flags, addr, size, block_no, num_blocks, size/family,
# data, magic_end
UF2_STRUCT = struct.Struct(f"<8I{MAX_PAYLOAD_SIZE}sI")


class BlockFlags(IntFlag):
    """Bits of the flags word. Only the family flag is produced here."""
    NONE = 0x00000000
    HAS_FAMILY_ID = 0x00002000


# =============================================================================
# Size / Family Slot
# =============================================================================

@dataclass(frozen=True)
class TotalSize:
    """Slot variant carrying the total source length in bytes."""
    value: int


@dataclass(frozen=True)
class FamilyId:
    """Slot variant carrying the target device family identifier."""
    value: int


SizeOrFamily = Union[TotalSize, FamilyId]


def _check_u32(name: str, value: int) -> None:
    if not 0 <= value <= U32_MAX:
        raise UF2FormatError(
            f"{name} value {value} does not fit in an unsigned 32-bit field"
        )


# =============================================================================
# Block
# =============================================================================

@dataclass
class Block:
    """
    One UF2 block.

    An encoder creates a single Block per stream and mutates it in place
    (payload, block number, target address) before serializing each frame.

    Attributes:
        payload_size: Number of valid bytes in data (<= 476)
        num_blocks: Total number of blocks in the stream
        size_or_family: TotalSize or FamilyId for the word at offset 28
        flags: Flag bits; HAS_FAMILY_ID tracks the size_or_family variant
        target_addr: Address of this block's payload
        block_no: Zero-based index of this block in the stream
        data: Fixed 476-byte data area

    Example:
        >>> block = Block(payload_size=256, num_blocks=4,
        ...               size_or_family=TotalSize(1024))
        >>> block.set_payload(bytes(256))
        >>> len(block.to_bytes())
        512
    """
    payload_size: int
    num_blocks: int
    size_or_family: SizeOrFamily
    flags: int = BlockFlags.NONE
    target_addr: int = 0
    block_no: int = 0
    data: bytearray = field(
        default_factory=lambda: bytearray(MAX_PAYLOAD_SIZE), repr=False
    )

    def __post_init__(self) -> None:
        if self.payload_size > MAX_PAYLOAD_SIZE:
            raise UF2FormatError(
                f"Payload size {self.payload_size} exceeds "
                f"maximum of {MAX_PAYLOAD_SIZE} bytes"
            )
        if isinstance(self.size_or_family, FamilyId):
            self.flags |= BlockFlags.HAS_FAMILY_ID

    # =========================================================================
    # Mutation
    # =========================================================================

    def set_family(self, family: int) -> None:
        """Tag the block with a family ID, replacing the total size."""
        _check_u32("Family ID", family)
        self.flags |= BlockFlags.HAS_FAMILY_ID
        self.size_or_family = FamilyId(family)

    def set_payload(self, payload: bytes) -> None:
        """
        Copy payload into the data area and update payload_size.

        Bytes beyond the payload are zeroed so a short final block never
        carries stale data from the previous one.

        Raises:
            UF2FormatError: If the payload is larger than 476 bytes
        """
        size = len(payload)
        if size > MAX_PAYLOAD_SIZE:
            raise UF2FormatError(
                f"Payload size {size} exceeds maximum of "
                f"{MAX_PAYLOAD_SIZE} bytes"
            )
        self.data[:size] = payload
        self.data[size:] = bytes(MAX_PAYLOAD_SIZE - size)
        self.payload_size = size

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def file_size(self) -> Optional[int]:
        """Total source size, or None when the slot holds a family ID."""
        if isinstance(self.size_or_family, TotalSize):
            return self.size_or_family.value
        return None

    @property
    def family_id(self) -> Optional[int]:
        """Family ID, or None when the slot holds the total size."""
        if isinstance(self.size_or_family, FamilyId):
            return self.size_or_family.value
        return None

    @property
    def payload(self) -> bytes:
        """The valid part of the data area."""
        return bytes(self.data[:self.payload_size])

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize the block to exactly 512 bytes.

        Raises:
            UF2FormatError: If payload_size exceeds 476 or a header field
                does not fit in 32 bits
        """
        if self.payload_size > MAX_PAYLOAD_SIZE:
            raise UF2FormatError(
                f"Payload size {self.payload_size} exceeds "
                f"maximum of {MAX_PAYLOAD_SIZE} bytes"
            )
        header = (
            ("Flags", self.flags),
            ("Target address", self.target_addr),
            ("Payload size", self.payload_size),
            ("Block number", self.block_no),
            ("Block count", self.num_blocks),
            ("File size/family", self.size_or_family.value),
        )
        for name, value in header:
            _check_u32(name, value)

        return UF2_STRUCT.pack(
            MAGIC_START_0,
            MAGIC_START_1,
            *(int(value) for _, value in header),
            bytes(self.data),
            MAGIC_END,
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Block":
        """
        Parse a single 512-byte frame.

        The slot at offset 28 is read as a FamilyId when the family flag
        is set, and as a TotalSize otherwise.

        Raises:
            UF2FormatError: If the frame has the wrong size, bad magic
                numbers, or a payload size over 476
        """
        if len(raw) != CHUNK_SIZE:
            raise UF2FormatError(
                f"Expected UF2 block size of {CHUNK_SIZE}, got: {len(raw)}"
            )
        (
            magic0, magic1, flags, target_addr, payload_size,
            block_no, num_blocks, size_or_family, data, magic_end,
        ) = UF2_STRUCT.unpack(raw)

        if (magic0, magic1, magic_end) != (MAGIC_START_0, MAGIC_START_1, MAGIC_END):
            raise UF2FormatError(
                f"Invalid magic numbers: 0x{magic0:08X} 0x{magic1:08X} "
                f"0x{magic_end:08X}"
            )
        if payload_size > MAX_PAYLOAD_SIZE:
            raise UF2FormatError(
                f"Payload size {payload_size} exceeds maximum of "
                f"{MAX_PAYLOAD_SIZE} bytes"
            )

        if flags & BlockFlags.HAS_FAMILY_ID:
            slot: SizeOrFamily = FamilyId(size_or_family)
        else:
            slot = TotalSize(size_or_family)

        return cls(
            payload_size=payload_size,
            num_blocks=num_blocks,
            size_or_family=slot,
            flags=flags,
            target_addr=target_addr,
            block_no=block_no,
            data=bytearray(data),
        )
