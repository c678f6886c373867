"""
UF2 Module Unit Tests
=====================

This module contains tests for the UF2 block layout, encoder and combiner.

Test Categories
---------------
1. Records: Block layout, serialization and the size/family slot
2. Payload: Page size fallback, payload size and block count
3. Encoder: Frame sequence produced for a source image
4. Files: File-level generation and combining
"""

import struct
from io import BytesIO
from pathlib import Path

import pytest

from uf2_tools.uf2 import (
    # Records
    CHUNK_SIZE,
    MAX_PAYLOAD_SIZE,
    MAGIC_START_0,
    MAGIC_START_1,
    MAGIC_END,
    Block,
    BlockFlags,
    TotalSize,
    FamilyId,
    # Encoder
    BlockEncoder,
    normalize_page_size,
    compute_payload_size,
    compute_block_count,
    encode_bytes,
    generate_file,
    # Combiner
    combine_chunks,
    combine_files,
)
from uf2_tools.errors import (
    UF2Error,
    UF2FormatError,
    UF2SizeError,
    IncompatibleLengthError,
    UF2IOError,
    ShortReadError,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def sample_image() -> bytes:
    """1000-byte image with a recognisable byte pattern."""
    return bytes(i % 251 for i in range(1000))


@pytest.fixture
def sample_block() -> Block:
    """A block carrying 256 bytes of 0xAA as block 2 of 4."""
    block = Block(payload_size=256, num_blocks=4, size_or_family=TotalSize(1024))
    block.set_payload(b"\xAA" * 256)
    block.block_no = 2
    block.target_addr = 512
    return block


def split_frames(data: bytes) -> list[Block]:
    """Parse a UF2 stream into blocks."""
    assert len(data) % CHUNK_SIZE == 0
    return [
        Block.from_bytes(data[i:i + CHUNK_SIZE])
        for i in range(0, len(data), CHUNK_SIZE)
    ]


# =============================================================================
# Record Tests
# =============================================================================

class TestBlockLayout:
    """Tests for the 512-byte frame layout."""

    def test_to_bytes_length(self, sample_block: Block):
        assert len(sample_block.to_bytes()) == CHUNK_SIZE

    def test_magic_numbers(self, sample_block: Block):
        frame = sample_block.to_bytes()
        assert frame[0:4] == bytes([0x55, 0x46, 0x32, 0x0A])  # "UF2\n"
        assert struct.unpack_from("<I", frame, 0)[0] == 0x0A324655
        assert struct.unpack_from("<I", frame, 4)[0] == 0x9E5D5157
        assert struct.unpack_from("<I", frame, 508)[0] == 0x0AB16F30

    def test_header_field_offsets(self, sample_block: Block):
        frame = sample_block.to_bytes()
        fields = struct.unpack_from("<6I", frame, 8)
        # flags, target_addr, payload_size, block_no, num_blocks, file_size
        assert fields == (0, 512, 256, 2, 4, 1024)

    def test_data_area(self, sample_block: Block):
        frame = sample_block.to_bytes()
        assert frame[32:32 + 256] == b"\xAA" * 256
        assert frame[32 + 256:508] == bytes(MAX_PAYLOAD_SIZE - 256)

    def test_from_bytes_roundtrip(self, sample_block: Block):
        parsed = Block.from_bytes(sample_block.to_bytes())
        assert parsed.payload_size == 256
        assert parsed.block_no == 2
        assert parsed.target_addr == 512
        assert parsed.num_blocks == 4
        assert parsed.size_or_family == TotalSize(1024)
        assert parsed.payload == b"\xAA" * 256

    def test_from_bytes_wrong_size(self):
        with pytest.raises(UF2FormatError, match="block size"):
            Block.from_bytes(bytes(511))

    def test_from_bytes_bad_magic(self, sample_block: Block):
        frame = bytearray(sample_block.to_bytes())
        frame[508] ^= 0xFF
        with pytest.raises(UF2FormatError, match="magic"):
            Block.from_bytes(bytes(frame))


class TestBlockPayload:
    """Tests for the 476-byte payload cap."""

    def test_max_payload(self):
        block = Block(payload_size=0, num_blocks=1, size_or_family=TotalSize(476))
        block.set_payload(b"\x01" * MAX_PAYLOAD_SIZE)
        assert block.payload_size == MAX_PAYLOAD_SIZE
        assert block.to_bytes()[32:508] == b"\x01" * MAX_PAYLOAD_SIZE

    def test_payload_over_cap_rejected(self):
        block = Block(payload_size=0, num_blocks=1, size_or_family=TotalSize(477))
        with pytest.raises(UF2FormatError):
            block.set_payload(bytes(MAX_PAYLOAD_SIZE + 1))

    def test_constructor_over_cap_rejected(self):
        with pytest.raises(UF2FormatError):
            Block(payload_size=477, num_blocks=1, size_or_family=TotalSize(477))

    def test_serialize_over_cap_rejected(self):
        block = Block(payload_size=10, num_blocks=1, size_or_family=TotalSize(10))
        block.payload_size = 500
        with pytest.raises(UF2FormatError):
            block.to_bytes()

    def test_shorter_payload_clears_tail(self):
        block = Block(payload_size=0, num_blocks=2, size_or_family=TotalSize(500))
        block.set_payload(b"\xFF" * MAX_PAYLOAD_SIZE)
        block.set_payload(b"\x11" * 24)
        assert block.data[:24] == b"\x11" * 24
        assert block.data[24:] == bytes(MAX_PAYLOAD_SIZE - 24)

    def test_field_out_of_range(self, sample_block: Block):
        sample_block.target_addr = 0x1_0000_0000
        with pytest.raises(UF2FormatError, match="32-bit"):
            sample_block.to_bytes()


class TestSizeOrFamily:
    """Tests for the overloaded file size / family ID slot."""

    def test_total_size_by_default(self, sample_block: Block):
        assert sample_block.file_size == 1024
        assert sample_block.family_id is None
        assert not sample_block.flags & BlockFlags.HAS_FAMILY_ID

    def test_set_family(self, sample_block: Block):
        sample_block.set_family(0xE48BFF56)
        assert sample_block.family_id == 0xE48BFF56
        assert sample_block.file_size is None
        assert sample_block.flags & 0x2000

        frame = sample_block.to_bytes()
        flags, = struct.unpack_from("<I", frame, 8)
        slot, = struct.unpack_from("<I", frame, 28)
        assert flags == 0x2000
        assert slot == 0xE48BFF56

    def test_family_variant_sets_flag(self):
        block = Block(payload_size=4, num_blocks=1, size_or_family=FamilyId(7))
        assert block.flags == BlockFlags.HAS_FAMILY_ID

    def test_from_bytes_reads_family(self, sample_block: Block):
        sample_block.set_family(7)
        parsed = Block.from_bytes(sample_block.to_bytes())
        assert parsed.size_or_family == FamilyId(7)

    def test_family_out_of_range(self, sample_block: Block):
        with pytest.raises(UF2FormatError):
            sample_block.set_family(-1)


# =============================================================================
# Payload Size Tests
# =============================================================================

class TestPayloadSize:
    """Tests for page size fallback and payload negotiation."""

    @pytest.mark.parametrize("page_size,expected", [
        (1, 476),
        (2, 476),
        (3, 474),
        (100, 400),
        (238, 476),
        (256, 256),
        (476, 476),
    ])
    def test_largest_page_multiple(self, page_size, expected):
        assert compute_payload_size(page_size) == expected
        assert expected % page_size == 0

    def test_large_page_falls_back_to_one(self):
        assert normalize_page_size(477) == 1
        assert normalize_page_size(1000) == 1
        assert compute_payload_size(1000) == 476

    def test_page_size_kept(self):
        assert normalize_page_size(476) == 476
        assert normalize_page_size(64) == 64

    def test_zero_page_size_rejected(self):
        with pytest.raises(ValueError):
            normalize_page_size(0)

    def test_block_count_is_ceiling(self):
        assert compute_block_count(0, 476) == 0
        assert compute_block_count(1, 476) == 1
        assert compute_block_count(100, 476) == 1
        assert compute_block_count(476, 476) == 1
        assert compute_block_count(477, 476) == 2
        assert compute_block_count(1024, 256) == 4


# =============================================================================
# Encoder Tests
# =============================================================================

class TestBlockEncoder:
    """Tests for the frame sequence produced by the encoder."""

    def test_page_256_scenario(self):
        blocks = split_frames(encode_bytes(bytes(1024), page_size=256))
        assert len(blocks) == 4
        assert [b.payload_size for b in blocks] == [256] * 4
        assert [b.target_addr for b in blocks] == [0, 256, 512, 768]
        assert [b.block_no for b in blocks] == [0, 1, 2, 3]
        assert all(b.num_blocks == 4 for b in blocks)
        assert all(b.file_size == 1024 for b in blocks)

    def test_payload_sum_and_short_final_block(self, sample_image: bytes):
        blocks = split_frames(encode_bytes(sample_image))
        assert len(blocks) == 3
        assert [b.payload_size for b in blocks] == [476, 476, 48]
        assert sum(b.payload_size for b in blocks) == len(sample_image)

    def test_sequential_addressing(self, sample_image: bytes):
        blocks = split_frames(encode_bytes(sample_image, page_size=4))
        address = 0
        for index, block in enumerate(blocks):
            assert block.block_no == index
            assert block.target_addr == address
            assert block.num_blocks == len(blocks)
            address += block.payload_size
        assert address == len(sample_image)

    def test_payload_contents(self, sample_image: bytes):
        blocks = split_frames(encode_bytes(sample_image, page_size=8))
        assert b"".join(b.payload for b in blocks) == sample_image

    def test_final_block_tail_is_zero(self):
        blocks = split_frames(encode_bytes(b"\xFF" * 500))
        last = blocks[-1]
        assert last.payload_size == 24
        assert last.data[24:] == bytes(MAX_PAYLOAD_SIZE - 24)

    def test_every_frame_has_magic(self, sample_image: bytes):
        data = encode_bytes(sample_image)
        for offset in range(0, len(data), CHUNK_SIZE):
            frame = data[offset:offset + CHUNK_SIZE]
            assert struct.unpack_from("<2I", frame, 0) == (MAGIC_START_0, MAGIC_START_1)
            assert struct.unpack_from("<I", frame, 508)[0] == MAGIC_END

    def test_page_size_fallback_matches_page_one(self, sample_image: bytes):
        assert encode_bytes(sample_image, page_size=1000) == encode_bytes(sample_image, page_size=1)

    def test_family_tag(self, sample_image: bytes):
        blocks = split_frames(encode_bytes(sample_image, family=7))
        for block in blocks:
            assert block.flags & 0x2000
            assert block.size_or_family == FamilyId(7)
            assert block.file_size is None

    def test_incompatible_length(self):
        with pytest.raises(IncompatibleLengthError) as exc_info:
            encode_bytes(bytes(10), page_size=3)
        assert exc_info.value.length == 10
        assert exc_info.value.page_size == 3
        assert "Cannot write binary of len: 10" in str(exc_info.value)

    def test_validation_before_iteration(self):
        # Raised by the constructor, not lazily by the generator
        with pytest.raises(IncompatibleLengthError):
            BlockEncoder(length=10, page_size=3)

    def test_empty_image(self):
        encoder = BlockEncoder(length=0, page_size=256)
        assert encoder.num_blocks == 0
        assert encode_bytes(b"") == b""

    def test_exact_multiple_of_payload(self):
        blocks = split_frames(encode_bytes(bytes(476 * 2)))
        assert len(blocks) == 2
        assert all(b.num_blocks == 2 for b in blocks)

    def test_short_source(self):
        encoder = BlockEncoder(length=1000)
        with pytest.raises(ShortReadError) as exc_info:
            list(encoder.iter_frames(BytesIO(bytes(600)), "image.bin"))
        assert exc_info.value.source == "image.bin"
        assert exc_info.value.expected == 476
        assert exc_info.value.actual == 124

    def test_image_too_large(self):
        with pytest.raises(UF2SizeError):
            BlockEncoder(length=0x1_0000_0000)

    def test_family_out_of_range(self):
        with pytest.raises(UF2FormatError):
            BlockEncoder(length=4, family=0x1_0000_0000)

    def test_write_frames_count(self, sample_image: bytes):
        encoder = BlockEncoder(length=len(sample_image), page_size=2)
        output = BytesIO()
        assert encoder.write_frames(BytesIO(sample_image), output) == 3
        assert len(output.getvalue()) == 3 * CHUNK_SIZE


# =============================================================================
# File Tests
# =============================================================================

class TestGenerateFile:
    """Tests for file-level encoding."""

    def test_generate(self, tmp_path: Path, sample_image: bytes):
        source = tmp_path / "firmware.bin"
        source.write_bytes(sample_image)
        output = tmp_path / "firmware.uf2"

        count = generate_file(source, output, page_size=4)

        assert count == 3
        assert output.read_bytes() == encode_bytes(sample_image, page_size=4)

    def test_incompatible_length_creates_no_output(self, tmp_path: Path):
        source = tmp_path / "firmware.bin"
        source.write_bytes(bytes(10))
        output = tmp_path / "firmware.uf2"

        with pytest.raises(IncompatibleLengthError):
            generate_file(source, output, page_size=3)
        assert not output.exists()

    def test_incompatible_length_keeps_existing_output(self, tmp_path: Path):
        source = tmp_path / "firmware.bin"
        source.write_bytes(bytes(10))
        output = tmp_path / "firmware.uf2"
        output.write_bytes(b"previous")

        with pytest.raises(IncompatibleLengthError):
            generate_file(source, output, page_size=3)
        assert output.read_bytes() == b"previous"

    def test_empty_input(self, tmp_path: Path):
        source = tmp_path / "empty.bin"
        source.write_bytes(b"")
        output = tmp_path / "empty.uf2"

        assert generate_file(source, output) == 0
        assert output.read_bytes() == b""

    def test_missing_input(self, tmp_path: Path):
        with pytest.raises(UF2IOError):
            generate_file(tmp_path / "missing.bin", tmp_path / "out.uf2")


class TestCombine:
    """Tests for the chunk combiner."""

    @pytest.fixture
    def block_files(self, tmp_path: Path) -> list[Path]:
        paths = []
        for index in range(3):
            path = tmp_path / f"block{index}.uf2"
            path.write_bytes(bytes([index + 1]) * CHUNK_SIZE)
            paths.append(path)
        return paths

    def test_combine_three_files(self, tmp_path: Path, block_files: list[Path]):
        output = tmp_path / "joined.uf2"

        written = combine_files(block_files, output)

        assert written == 3 * CHUNK_SIZE
        data = output.read_bytes()
        assert len(data) == 1536
        assert data == b"".join(p.read_bytes() for p in block_files)

    def test_argument_order_preserved(self, tmp_path: Path, block_files: list[Path]):
        output = tmp_path / "joined.uf2"
        combine_files(list(reversed(block_files)), output)
        data = output.read_bytes()
        assert data[0] == 3
        assert data[CHUNK_SIZE] == 2
        assert data[2 * CHUNK_SIZE] == 1

    def test_only_first_chunk_copied(self):
        output = BytesIO()
        combine_chunks([("long", BytesIO(b"\x01" * 700))], output)
        assert output.getvalue() == b"\x01" * CHUNK_SIZE

    def test_contents_not_interpreted(self):
        # Arbitrary bytes pass through unchecked
        output = BytesIO()
        combine_chunks([("junk", BytesIO(b"junk" * 128))], output)
        assert output.getvalue() == b"junk" * 128

    def test_short_input(self):
        sources = [
            ("full", BytesIO(bytes(CHUNK_SIZE))),
            ("short", BytesIO(bytes(100))),
        ]
        with pytest.raises(ShortReadError) as exc_info:
            combine_chunks(sources, BytesIO())
        assert exc_info.value.source == "short"
        assert exc_info.value.actual == 100
        assert isinstance(exc_info.value, UF2IOError)

    def test_short_input_file(self, tmp_path: Path, block_files: list[Path]):
        short = tmp_path / "short.uf2"
        short.write_bytes(bytes(511))
        with pytest.raises(ShortReadError):
            combine_files([block_files[0], short], tmp_path / "joined.uf2")

    def test_missing_input_file(self, tmp_path: Path):
        with pytest.raises(UF2IOError):
            combine_files([tmp_path / "missing.uf2"], tmp_path / "joined.uf2")

    def test_errors_share_base(self):
        assert issubclass(ShortReadError, UF2Error)
        assert issubclass(IncompatibleLengthError, UF2Error)
