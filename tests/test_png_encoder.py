from io import BytesIO
import logging
import struct
import zlib
from PIL import Image
from pngcodec.chunks import IEND_BYTES, IHDRData
from pngcodec.errors import CompressionFailure, InvalidOption, MalformedImage
from pngcodec.options import ColourMode, EncodeOptions, FilterType
from pngcodec.png_encoder import EncoderState, PNGEncoder, encode
from pngcodec.scanlines import Transformer
import pytest


PNG_SIGNATURE = bytes([137, 80, 78, 71, 13, 10, 26, 10])


def read_chunks(data: bytes) -> list[tuple[bytes, bytes, int]]:
    chunks = []
    pos = len(PNG_SIGNATURE)
    while pos < len(data):
        length, chunk_type = struct.unpack(">I4s", data[pos:pos + 8])
        chunk_data = data[pos + 8:pos + 8 + length]
        crc, = struct.unpack(">I", data[pos + 8 + length:pos + 12 + length])
        chunks.append((chunk_type, chunk_data, crc))
        pos += 12 + length
    assert pos == len(data)
    return chunks


def idat_data(data: bytes) -> bytes:
    return b"".join(chunk_data for chunk_type, chunk_data, _ in read_chunks(data) if chunk_type == b"IDAT")


def rgba_fixture(width=5, height=4) -> list[bytes]:
    return [
        bytes(
            v
            for x in range(width)
            for v in ((x * 60) & 0xFF, (y * 70) & 0xFF, (x * y * 13) & 0xFF, 255 - x)
        )
        for y in range(height)
    ]


def test_filtered_stream_for_none_filter():
    options = EncodeOptions(ColourMode.GREYSCALE, 8, filter_type=FilterType.NONE)
    encoder = PNGEncoder([[0, 255], [128, 64]], options)

    assert encoder.apply_filtering() == bytes([0, 0, 255, 0, 128, 64])


def test_unset_filter_is_none_filter():
    encoder = PNGEncoder([[0, 255], [128, 64]], EncodeOptions(ColourMode.GREYSCALE, 8))
    assert encoder.apply_filtering() == bytes([0, 0, 255, 0, 128, 64])


def test_idat_is_compressed_filtered_stream():
    options = EncodeOptions(ColourMode.GREYSCALE, 8)
    data = encode([[0, 255], [128, 64]], options)
    assert zlib.decompress(idat_data(data)) == bytes([0, 0, 255, 0, 128, 64])


def test_compression_level_out_of_range():
    output = None
    with pytest.raises(InvalidOption, match="Invalid compression level: Expected 0-9, Got: 10"):
        output = encode([[0, 255]], EncodeOptions(ColourMode.GREYSCALE, compression_level=10))
    assert output is None


def test_options_checked_before_image():
    with pytest.raises(InvalidOption):
        encode([], EncodeOptions(compression_level=10))


def test_empty_image():
    with pytest.raises(MalformedImage):
        encode([])


def test_ragged_image():
    with pytest.raises(MalformedImage):
        encode([[0, 1], [2]], EncodeOptions(ColourMode.GREYSCALE))


@pytest.mark.parametrize("filter_type", [None, *FilterType])
@pytest.mark.parametrize("level", (0, 6, 9))
def test_signature_and_iend(filter_type, level):
    data = encode(rgba_fixture(), EncodeOptions(compression_level=level, filter_type=filter_type))

    assert data[:8] == PNG_SIGNATURE
    assert data[-12:] == IEND_BYTES
    assert [chunk_type for chunk_type, _, _ in read_chunks(data)] == [b"IHDR", b"IDAT", b"IEND"]


@pytest.mark.parametrize(["colour_mode", "bit_depth", "colour_type"], (
    (ColourMode.GREYSCALE, 8, 0),
    (ColourMode.GREYSCALE, 16, 0),
    (ColourMode.TRUECOLOUR, 8, 2),
    (ColourMode.GREYSCALE_ALPHA, 8, 4),
    (ColourMode.TRUECOLOUR_ALPHA, 16, 6),
))
def test_ihdr(colour_mode, bit_depth, colour_type):
    options = EncodeOptions(colour_mode, bit_depth)
    row = bytes(3 * options.bytes_per_pixel)
    data = encode([row, row], options)

    chunk_type, chunk_data, crc = read_chunks(data)[0]
    assert chunk_type == b"IHDR"
    assert len(chunk_data) == 13
    assert zlib.crc32(chunk_type + chunk_data) == crc
    assert IHDRData.from_bytes(chunk_data) == IHDRData(3, 2, bit_depth, colour_type, 0, 0, 0)


@pytest.mark.parametrize("filter_type", [None, *FilterType])
def test_every_chunk_crc_is_consistent(filter_type):
    data = encode(rgba_fixture(), EncodeOptions(filter_type=filter_type, idat_chunk_size=16))
    for chunk_type, chunk_data, crc in read_chunks(data):
        assert zlib.crc32(chunk_type + chunk_data) == crc, chunk_type


@pytest.mark.parametrize("filter_type", [None, *FilterType])
@pytest.mark.parametrize(["colour_mode", "pil_mode"], (
    (ColourMode.GREYSCALE, "L"),
    (ColourMode.GREYSCALE_ALPHA, "LA"),
    (ColourMode.TRUECOLOUR, "RGB"),
    (ColourMode.TRUECOLOUR_ALPHA, "RGBA"),
))
def test_pillow_decodes_what_we_encode(filter_type, colour_mode, pil_mode):
    # Arrange
    width, height = 7, 5
    channels = colour_mode.channels
    rows = [
        bytes((x * 31 + y * 17 + c * 101) & 0xFF for x in range(width) for c in range(channels))
        for y in range(height)
    ]

    # Act
    data = encode(rows, EncodeOptions(colour_mode, 8, filter_type=filter_type))

    # Assert
    with Image.open(BytesIO(data)) as img:
        assert img.size == (width, height)
        assert img.mode == pil_mode
        assert img.tobytes() == b"".join(rows)


def test_pillow_decodes_adaptive_filtering():
    rows = rgba_fixture(16, 9)
    data = encode(rows, EncodeOptions(adaptive=True))

    with Image.open(BytesIO(data)) as img:
        assert img.tobytes() == b"".join(rows)


def test_adaptive_filtering_varies_per_scanline():
    # a ramp suits sub, a repeat of the row above suits up
    ramp = bytes(range(0, 200, 10))
    encoder = PNGEncoder([ramp, ramp], EncodeOptions(ColourMode.GREYSCALE, adaptive=True))
    filtered = encoder.apply_filtering()

    assert filtered[0] == FilterType.SUB
    assert filtered[len(ramp) + 1] == FilterType.UP


def test_one_bit_greyscale():
    # pixels 1 0 1 / 0 1 0, padded to a byte
    data = encode([b"\xa0", b"\x40"], EncodeOptions(ColourMode.GREYSCALE, 1), width=3)

    with Image.open(BytesIO(data)) as img:
        assert img.size == (3, 2)
        assert list(img.getdata()) == [255, 0, 255, 0, 255, 0]


@pytest.mark.parametrize("filter_type", [*FilterType])
def test_sixteen_bit_scanlines_survive(filter_type):
    options = EncodeOptions(ColourMode.TRUECOLOUR, 16, filter_type=filter_type)
    rows = [bytes((i * 7 + y * 3) & 0xFF for i in range(4 * 6)) for y in range(3)]
    data = encode(rows, options)

    filtered = zlib.decompress(idat_data(data))
    stride = len(rows[0])
    assert filtered[::stride + 1] == bytes([filter_type] * 3)
    assert Transformer.reconstruct(filtered, stride, options.bytes_per_pixel) == b"".join(rows)


@pytest.mark.parametrize("bit_depth", (2, 4, 8))
def test_indexed_writes_palette(bit_depth):
    palette = ((255, 0, 0), (0, 255, 0), (0, 0, 255))
    options = EncodeOptions(ColourMode.INDEXED, bit_depth, palette=palette)
    pixels_per_byte = 8 // bit_depth
    # indices 0 1 2 0 ... packed most significant bits first
    indices = [i % 3 for i in range(8)]
    row = bytearray()
    for i in range(0, len(indices), pixels_per_byte):
        packed = 0
        for index in indices[i:i + pixels_per_byte]:
            packed = (packed << bit_depth) | index
        row.append(packed)

    data = encode([row, row], options)

    chunks = read_chunks(data)
    assert [chunk_type for chunk_type, _, _ in chunks] == [b"IHDR", b"PLTE", b"IDAT", b"IEND"]
    assert chunks[1][1] == bytes([255, 0, 0, 0, 255, 0, 0, 0, 255])
    with Image.open(BytesIO(data)) as img:
        assert img.mode == "P"
        assert img.size == (8, 2)
        assert list(img.getdata()) == indices * 2
        assert img.getpalette()[:9] == [255, 0, 0, 0, 255, 0, 0, 0, 255]


def test_split_idat():
    rows = rgba_fixture(32, 32)
    data = encode(rows, EncodeOptions(compression_level=0, idat_chunk_size=100))

    chunk_types = [chunk_type for chunk_type, _, _ in read_chunks(data)]
    assert chunk_types.count(b"IDAT") > 1
    assert chunk_types[0] == b"IHDR" and chunk_types[-1] == b"IEND"
    with Image.open(BytesIO(data)) as img:
        assert img.tobytes() == b"".join(rows)


def test_encode_is_deterministic():
    rows = rgba_fixture()
    assert encode(rows) == encode(rows)


def test_states_are_linear():
    encoder = PNGEncoder(rgba_fixture())
    output = bytearray()
    assert encoder.state is EncoderState.START

    with pytest.raises(RuntimeError, match="Cannot move to HEADER_WRITTEN from START"):
        encoder.write_header(output)
    assert output == b""

    encoder.write_signature(output)
    encoder.write_header(output)
    with pytest.raises(RuntimeError):
        encoder.write_end(output)
    encoder.write_data(output)
    encoder.write_end(output)
    assert encoder.state is EncoderState.FINALIZED

    with pytest.raises(RuntimeError):
        encoder.final_datastream()


def test_compression_failure_is_propagated(monkeypatch):
    def broken_compressobj(*args, **kwargs):
        raise zlib.error("out of memory")

    monkeypatch.setattr(zlib, "compressobj", broken_compressobj)
    with pytest.raises(CompressionFailure) as exc_info:
        encode(rgba_fixture())
    assert isinstance(exc_info.value.__cause__, zlib.error)


def test_to_file(tmp_path):
    data = encode(rgba_fixture())
    fp = tmp_path / "out.png"
    PNGEncoder.to_file(fp, data)

    assert fp.read_bytes() == data
    with Image.open(fp) as img:
        assert img.tobytes() == b"".join(rgba_fixture())


def test_filter_bytes_logged_at_debug(caplog):
    encoder = PNGEncoder([[0, 255], [128, 64]], EncodeOptions(ColourMode.GREYSCALE, filter_type=FilterType.UP))

    with caplog.at_level(logging.DEBUG, logger="pngcodec.png_encoder"):
        encoder.apply_filtering()
    assert "Filter bytes per scanline: [2, 2]" in caplog.text


def test_filter_bytes_not_logged_above_debug(caplog):
    encoder = PNGEncoder([[0, 255], [128, 64]], EncodeOptions(ColourMode.GREYSCALE))

    with caplog.at_level(logging.INFO, logger="pngcodec.png_encoder"):
        encoder.apply_filtering()
    assert "Filter bytes" not in caplog.text
