from __future__ import annotations
from typing import NamedTuple, Iterable
import struct
from pngcodec.crc import crc32
from pngcodec.errors import ChunkTooLarge


# https://www.w3.org/TR/png-3/#5Chunk-layout

MAX_CHUNK_LENGTH = 2**31 - 1


class IHDRData(NamedTuple):
    width: int
    height: int
    bit_depth: int
    colour_type: int
    compression_method: int
    filter_method: int
    interlace_method: int

    def __bytes__(self) -> bytes:
        return struct.pack(">IIBBBBB", *self)

    @classmethod
    def from_bytes(cls, data: bytes):
        return cls(*struct.unpack(">IIBBBBB", data))

    @property
    def dimensions(self) -> tuple[int, int]:
        return self.width, self.height


class Chunk:
    chunk_type: bytes
    chunk_data: bytes

    def __init__(self, chunk_type: bytes, chunk_data: bytes = b"") -> None:
        if len(chunk_type) != 4 or not bytes(chunk_type).isalpha():
            raise ValueError(f"Chunk type must be 4 ASCII letters. Got: {chunk_type!r}")
        if len(chunk_data) > MAX_CHUNK_LENGTH:
            raise ChunkTooLarge(
                f"Chunk {chunk_type!r} payload of {len(chunk_data)} bytes exceeds the maximum of {MAX_CHUNK_LENGTH}"
            )
        self.chunk_type = bytes(chunk_type)
        self.chunk_data = bytes(chunk_data)

    @property
    def length(self) -> int:
        return len(self.chunk_data)

    @property
    def crc(self) -> int:
        return Chunk.calc_crc(self.chunk_data, self.chunk_type)

    def __bytes__(self) -> bytes:
        l = struct.pack(">I", self.length)
        ct = struct.pack(">4s", self.chunk_type)
        crc = struct.pack(">I", self.crc)
        return l + ct + self.chunk_data + crc

    def __repr__(self) -> str:
        return f"Chunk({self.chunk_type!r}, length={self.length}, crc=0x{self.crc:08X})"

    @staticmethod
    def calc_crc(chunk_data: bytes, chunk_type: bytes) -> int:
        return crc32(chunk_data, crc32(struct.pack(">4s", chunk_type)))


def write_chunk(output: bytearray, chunk_type: bytes, chunk_data: bytes) -> None:
    # the complete chunk is framed before anything touches output
    output.extend(bytes(Chunk(chunk_type, chunk_data)))


def ihdr_chunk(ihdr_data: IHDRData) -> Chunk:
    return Chunk(b"IHDR", bytes(ihdr_data))


def plte_chunk(palette: Iterable[tuple[int, int, int]]) -> Chunk:
    return Chunk(b"PLTE", b"".join(struct.pack(">BBB", *rgb) for rgb in palette))


def idat_chunks(compressed: bytes, max_size: int | None = None) -> list[Chunk]:
    if max_size is None or len(compressed) <= max_size:
        return [Chunk(b"IDAT", compressed)]

    return [
        Chunk(b"IDAT", compressed[i:i + max_size])
        for i in range(0, len(compressed), max_size)
    ]


def iend_chunk() -> Chunk:
    return Chunk(b"IEND")


IEND_BYTES = bytes.fromhex("0000000049454E44AE426082")
