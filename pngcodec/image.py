from __future__ import annotations
from typing import Iterable, NamedTuple, Sequence
from pngcodec.errors import MalformedImage
from pngcodec.options import EncodeOptions


MAX_DIMENSION = 2**31 - 1


def stride_for(width: int, options: EncodeOptions) -> int:
    # scanlines are padded to a whole byte when pixels are smaller than a byte
    return (width * options.bits_per_pixel + 7) // 8


def infer_width(stride: int, options: EncodeOptions) -> int:
    return stride * 8 // options.bits_per_pixel


class RawImage(NamedTuple):
    width: int
    height: int
    scanlines: tuple[bytes, ...]

    @property
    def dimensions(self) -> tuple[int, int]:
        return self.width, self.height

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Sequence[int] | bytes],
        options: EncodeOptions,
        width: int | None = None,
    ) -> RawImage:
        """
        Collects the pixel rows into scanlines and works out the image geometry.
        Width is inferred from the first row unless given, and every row is checked against it.

        Raises:
            MalformedImage: The grid is empty, a row is not a sequence of byte values,
                            rows differ in length, or the row length does not match the width.
        """
        scanlines = tuple(cls._row_to_bytes(i, row) for i, row in enumerate(rows))
        if not scanlines:
            raise MalformedImage("Image has no rows")

        stride = len(scanlines[0])
        for i, scanline in enumerate(scanlines):
            if len(scanline) != stride:
                raise MalformedImage(
                    f"Rows must all be the same length: Row 0 has {stride} bytes, row {i} has {len(scanline)}"
                )

        if width is None:
            width = infer_width(stride, options)

        if width < 1 or stride_for(width, options) != stride:
            raise MalformedImage(
                f"Row length of {stride} bytes does not fit a width of {width} pixels "
                f"at {options.bits_per_pixel} bits per pixel"
            )

        height = len(scanlines)
        if width > MAX_DIMENSION or height > MAX_DIMENSION:
            raise MalformedImage(f"Image dimensions {width}x{height} exceed the PNG maximum of {MAX_DIMENSION}")

        return cls(width, height, scanlines)

    @staticmethod
    def _row_to_bytes(i: int, row: Sequence[int] | bytes) -> bytes:
        if isinstance(row, (bytes, bytearray, memoryview)):
            return bytes(row)
        if isinstance(row, (int, str)):
            raise MalformedImage(f"Row {i} is not a sequence of samples. Got: {type(row).__name__}")
        try:
            return bytes(row)
        except (TypeError, ValueError) as e:
            raise MalformedImage(f"Row {i} contains values that are not bytes (0-255)") from e
