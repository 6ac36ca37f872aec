from __future__ import annotations
from enum import Enum, auto
from pathlib import Path
from typing import Iterable, Sequence
import logging
from pngcodec.chunks import IHDRData, Chunk, ihdr_chunk, plte_chunk, idat_chunks, iend_chunk, write_chunk
from pngcodec.compression import compress
from pngcodec.image import RawImage, stride_for
from pngcodec.options import ColourMode, EncodeOptions
from pngcodec.scanlines import Transformer


logger = logging.getLogger(__name__)


class EncoderState(Enum):
    START = auto()
    SIGNATURE_WRITTEN = auto()
    HEADER_WRITTEN = auto()
    DATA_WRITTEN = auto()
    FINALIZED = auto()


class PNGEncoder:
    PNG_SIGNATURE = bytes.fromhex("89504E470D0A1A0A")

    def __init__(
        self,
        rows: Iterable[Sequence[int] | bytes],
        options: EncodeOptions | None = None,
        width: int | None = None,
    ) -> None:
        # options are checked before the rows so a bad option is reported even for a bad image
        self.options = (options or EncodeOptions()).validate()
        self.image = RawImage.from_rows(rows, self.options, width)
        self.width, self.height = self.image.dimensions
        self.bytes_per_pixel = self.options.bytes_per_pixel
        self.stride = stride_for(self.width, self.options) # stride is width in bytes
        self.state = EncoderState.START

    def prepare_ihdr(self) -> Chunk:
        compression_method = 0
        filter_method = 0
        interlace_method = int(self.options.interlace)
        ihdr_data = IHDRData(
            self.width,
            self.height,
            self.options.bit_depth,
            self.options.colour_mode.colour_type,
            compression_method,
            filter_method,
            interlace_method,
        )
        return ihdr_chunk(ihdr_data)

    def apply_filtering(self) -> bytearray:
        """
        Filters every scanline in row order.

        Returns:
            bytearray: the filtered scanline stream, a filter byte then stride bytes for each row.
                       This is exactly what gets compressed into the IDAT data.
        """
        filtered_data = Transformer.filter(
            self.image.scanlines,
            self.bytes_per_pixel,
            self.options.filter_byte,
            self.options.adaptive,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Filter bytes per scanline: %s", list(filtered_data[::self.stride + 1]))
        return filtered_data

    def _compress_to_idat_chunks(self, filtered_data: bytes) -> list[Chunk]:
        compressed = compress(filtered_data, self.options.compression_level)
        return idat_chunks(compressed, self.options.idat_chunk_size)

    def _advance(self, expected: EncoderState, next_state: EncoderState):
        if self.state is not expected:
            raise RuntimeError(f"Cannot move to {next_state.name} from {self.state.name}, expected {expected.name}")
        logger.debug("%s -> %s", self.state.name, next_state.name)
        self.state = next_state

    def write_signature(self, output: bytearray):
        self._advance(EncoderState.START, EncoderState.SIGNATURE_WRITTEN)
        output.extend(self.PNG_SIGNATURE)

    def write_header(self, output: bytearray):
        self._advance(EncoderState.SIGNATURE_WRITTEN, EncoderState.HEADER_WRITTEN)
        output.extend(bytes(self.prepare_ihdr()))
        if self.options.colour_mode is ColourMode.INDEXED:
            output.extend(bytes(plte_chunk(self.options.palette)))

    def write_data(self, output: bytearray):
        self._advance(EncoderState.HEADER_WRITTEN, EncoderState.DATA_WRITTEN)
        filtered_data = self.apply_filtering()
        for chunk in self._compress_to_idat_chunks(filtered_data):
            write_chunk(output, chunk.chunk_type, chunk.chunk_data)

    def write_end(self, output: bytearray):
        self._advance(EncoderState.DATA_WRITTEN, EncoderState.FINALIZED)
        output.extend(bytes(iend_chunk()))

    def final_datastream(self) -> bytes:
        output = bytearray()
        self.write_signature(output)
        self.write_header(output)
        self.write_data(output)
        self.write_end(output)

        logger.debug(
            "Encoded %dx%d %s image at bit depth %d into %d bytes",
            self.width, self.height, self.options.colour_mode.value, self.options.bit_depth, len(output),
        )
        return bytes(output)

    @staticmethod
    def to_file(fp: str | Path, final_datastream: bytes):
        with Path(fp).open("wb") as file:
            file.write(final_datastream)


def encode(
    rows: Iterable[Sequence[int] | bytes],
    options: EncodeOptions | None = None,
    width: int | None = None,
) -> bytes:
    """
    Encodes rows of sample bytes into a complete PNG datastream.

    Raises:
        InvalidOption: An option is out of range, checked before anything is encoded.
        MalformedImage: The rows are empty, ragged, or do not match the width.
        CompressionFailure: zlib failed while deflating the scanlines.

    Returns:
        bytes: signature, IHDR, PLTE for indexed images, IDAT, IEND.
    """
    return PNGEncoder(rows, options, width).final_datastream()
