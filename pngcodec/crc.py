import zlib


def crc32(data: bytes, crc: int = 0) -> int:
    """
    Calculates the CRC-32 used by PNG chunks, polynomial 0xEDB88320 reflected with the register complemented.
    Passing the result of a previous call as crc continues the checksum over another span,
    so crc32(b, crc32(a)) == crc32(a + b).

    Returns:
        int: unsigned 32 bit checksum, 0 for empty input.
    """
    return zlib.crc32(data, crc) & 0xFFFFFFFF
