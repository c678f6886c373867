"""
UF2 Tools Error Hierarchy
=========================

This module defines the exception hierarchy for the UF2 tools package.
All exceptions inherit from UF2Error, allowing callers to catch every
package error with a single except clause if desired.

Exception Hierarchy
-------------------
UF2Error (base)
├── UF2FormatError - frame layout violation (payload cap, field range, parse)
├── UF2SizeError - source too large for the 32-bit wire fields
├── IncompatibleLengthError - source length not a multiple of the page size
└── UF2IOError - open/read/write failure on a source or destination
    └── ShortReadError - source ended before the required bytes were read

Validation errors (IncompatibleLengthError, UF2SizeError) are raised before
any output is produced. I/O errors may leave a partially written
destination behind; no rollback is attempted.
"""

from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class UF2Error(Exception):
    """
    Base exception for all UF2 tools errors.

        try:
            generate_file("firmware.bin", "firmware.uf2", page_size=256)
        except UF2Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Format and Validation Exceptions
# =============================================================================

class UF2FormatError(UF2Error):
    """
    Invalid UF2 frame contents.

    Raised when:
    - A payload larger than 476 bytes is written into a block
    - A header field does not fit in an unsigned 32-bit integer
    - A frame being parsed has the wrong size or magic numbers
    """
    pass


class UF2SizeError(UF2Error):
    """
    Source image too large.

    The file size and target address fields are 32 bits wide, so images
    of 4 GiB or more cannot be described.
    """
    pass


class IncompatibleLengthError(UF2Error):
    """
    Source length is not a multiple of the target page size.

    The device writes whole pages, so a partial final page cannot be
    addressed. Detected from the source length alone, before any output
    file is created.
    """

    def __init__(self, length: int, page_size: int):
        self.length = length
        self.page_size = page_size
        super().__init__(
            f"Cannot write binary of len: {length} to device "
            f"with page size: {page_size}"
        )


# =============================================================================
# I/O Exceptions
# =============================================================================

class UF2IOError(UF2Error):
    """
    I/O failure on a source or destination.

    Wraps the underlying OSError (available as __cause__) so callers only
    need to handle UF2Error.
    """
    pass


class ShortReadError(UF2IOError):
    """
    A source provided fewer bytes than required.

    Raised by the combiner when an input holds less than one full frame,
    and by the encoder when the source shrinks while it is being read.
    """

    def __init__(self, source: str, expected: int, actual: int,
                 message: Optional[str] = None):
        self.source = source
        self.expected = expected
        self.actual = actual
        if not message:
            message = (
                f"Short read from {source}: expected {expected} bytes, "
                f"got {actual}"
            )
        super().__init__(message)
