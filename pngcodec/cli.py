#!/usr/bin/env python
import argparse
import json
import logging
from pathlib import Path
from PIL import Image, UnidentifiedImageError
from pngcodec.errors import PNGEncodeError
from pngcodec.options import ColourMode, EncodeOptions
from pngcodec.png_encoder import PNGEncoder


logger = logging.getLogger(__name__)

PIL_MODES = {
    "L": ColourMode.GREYSCALE,
    "LA": ColourMode.GREYSCALE_ALPHA,
    "RGB": ColourMode.TRUECOLOUR,
    "RGBA": ColourMode.TRUECOLOUR_ALPHA,
    "P": ColourMode.INDEXED,
}


def load_rows(path: str | Path) -> tuple[list[bytes], dict]:
    """
    Opens any image Pillow can read and splits it into 8 bit scanlines.
    Modes without a PNG colour type counterpart are converted to RGBA.

    Returns:
        tuple: the scanlines, and the colour_mode / palette config values describing them.
    """
    with Image.open(path) as img:
        if img.mode not in PIL_MODES:
            logger.debug("Converting %s image to RGBA", img.mode)
            img = img.convert("RGBA")

        colour_mode = PIL_MODES[img.mode]
        config = {"colour_mode": colour_mode.value}
        if colour_mode is ColourMode.INDEXED:
            flat = img.getpalette()[:256 * 3]
            config["palette"] = [flat[i:i + 3] for i in range(0, len(flat), 3)]

        width, height = img.size
        stride = width * colour_mode.channels
        data = img.tobytes()

    rows = [data[i:i + stride] for i in range(0, stride * height, stride)]
    return rows, config


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="pngcodec", description="Re-encode an image as a PNG.")
    parser.add_argument("input", help="image to read, any format Pillow understands")
    parser.add_argument("output", help="path of the PNG to write")
    parser.add_argument("--config", help="JSON file of encode options")
    parser.add_argument("--level", type=int, dest="compression_level", help="zlib compression level 0-9")
    parser.add_argument(
        "--filter",
        dest="filter_type",
        choices=["none", "sub", "up", "average", "paeth", "adaptive"],
        help="scanline filter, adaptive picks one per scanline",
    )
    parser.add_argument("--idat-chunk-size", type=int, dest="idat_chunk_size", help="split IDAT data into chunks of at most this many bytes")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = {}
    if args.config:
        config.update(json.loads(Path(args.config).read_text()))

    for key in ("compression_level", "filter_type", "idat_chunk_size"):
        value = getattr(args, key)
        if value is not None:
            config[key] = value

    try:
        rows, image_config = load_rows(args.input)
    except (OSError, UnidentifiedImageError) as e:
        logger.error("Could not read %s: %s", args.input, e)
        return 1
    config.update(image_config)

    try:
        options = EncodeOptions.from_dict(config)
        datastream = PNGEncoder(rows, options).final_datastream()
    except PNGEncodeError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    PNGEncoder.to_file(args.output, datastream)
    logger.info("Wrote %d bytes to %s", len(datastream), args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
