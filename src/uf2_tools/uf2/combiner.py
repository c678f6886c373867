"""
UF2 Chunk Combiner
==================

Concatenates single-block inputs into one stream. Each input contributes
exactly its first 512 bytes, copied verbatim in input order; anything
after that is ignored. Frame contents are not inspected, so inputs are
trusted to already be valid UF2 blocks.
"""

from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Union
import logging

from uf2_tools.errors import ShortReadError, UF2IOError
from uf2_tools.uf2.records import CHUNK_SIZE

logger = logging.getLogger(__name__)


def combine_chunks(
    sources: Iterable[tuple[str, BinaryIO]],
    output: BinaryIO,
) -> int:
    """
    Copy the first 512 bytes of each source to output.

    Args:
        sources: (name, stream) pairs in output order
        output: Destination stream

    Returns:
        Number of bytes written

    Raises:
        ShortReadError: If a source holds fewer than 512 bytes
    """
    written = 0
    for name, stream in sources:
        chunk = stream.read(CHUNK_SIZE)
        if len(chunk) < CHUNK_SIZE:
            raise ShortReadError(name, CHUNK_SIZE, len(chunk))
        output.write(chunk)
        written += CHUNK_SIZE
        logger.debug(f"Appended {name}")
    return written


def _open_inputs(paths: Iterable[Path]) -> Iterator[tuple[str, BinaryIO]]:
    """Open inputs one at a time so only a single input is held open."""
    for path in paths:
        with open(path, "rb") as stream:
            yield str(path), stream


def combine_files(
    input_paths: Iterable[Union[str, Path]],
    output_path: Union[str, Path],
) -> int:
    """
    Combine single-block files into output_path.

    The output is created before the inputs are opened; on failure it is
    left partially written.

    Returns:
        Number of bytes written

    Raises:
        ShortReadError: If an input holds fewer than 512 bytes
        UF2IOError: If a file cannot be opened, read or written
    """
    paths = [Path(p) for p in input_paths]
    inputs = _open_inputs(paths)
    try:
        with open(output_path, "wb") as output:
            written = combine_chunks(inputs, output)
    except OSError as e:
        raise UF2IOError(f"{e.strerror or e}: {e.filename or output_path}") from e
    finally:
        inputs.close()

    logger.debug(f"Combined {len(paths)} blocks into {output_path}")
    return written
