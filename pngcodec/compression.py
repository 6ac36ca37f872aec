import logging
import zlib
from pngcodec.errors import CompressionFailure


logger = logging.getLogger(__name__)

DEFAULT_MEM_LEVEL = 8


def compress(raw: bytes, level: int) -> bytes:
    """
    Deflates the filtered scanline stream into a zlib datastream for the IDAT payload.

    Raises:
        CompressionFailure: zlib could not process the stream. The zlib.error is chained.
    """
    try:
        compressor = zlib.compressobj(
            level, zlib.DEFLATED, zlib.MAX_WBITS, DEFAULT_MEM_LEVEL, zlib.Z_DEFAULT_STRATEGY
        )
        compressed = compressor.compress(raw) + compressor.flush(zlib.Z_FINISH)
    except zlib.error as e:
        raise CompressionFailure(f"Failed to compress {len(raw)} bytes of scanline data at level {level}") from e

    logger.debug("Compressed %d bytes to %d bytes at level %d", len(raw), len(compressed), level)
    return compressed
