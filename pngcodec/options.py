from __future__ import annotations
from enum import Enum, IntEnum
from typing import Any, Mapping, NamedTuple, Sequence
from pngcodec.chunks import MAX_CHUNK_LENGTH
from pngcodec.errors import InvalidOption


class FilterType(IntEnum):
    NONE = 0
    SUB = 1
    UP = 2
    AVERAGE = 3
    PAETH = 4


class ColourMode(Enum):
    GREYSCALE = "greyscale"
    GREYSCALE_ALPHA = "greyscale_alpha"
    TRUECOLOUR = "truecolour"
    TRUECOLOUR_ALPHA = "truecolour_alpha"
    INDEXED = "indexed"

    @property
    def colour_type(self) -> int:
        return COLOUR_TYPES[self][0]

    @property
    def channels(self) -> int:
        return COLOUR_TYPES[self][1]

    @property
    def bit_depths(self) -> tuple[int, ...]:
        return COLOUR_TYPES[self][2]

    @property
    def has_alpha(self) -> bool:
        return self in (ColourMode.GREYSCALE_ALPHA, ColourMode.TRUECOLOUR_ALPHA)


# https://www.w3.org/TR/png-3/#table111
# colour type, channels, allowed bit depths
COLOUR_TYPES = {
    ColourMode.GREYSCALE: (0, 1, (1, 2, 4, 8, 16)),
    ColourMode.TRUECOLOUR: (2, 3, (8, 16)),
    ColourMode.INDEXED: (3, 1, (1, 2, 4, 8)),
    ColourMode.GREYSCALE_ALPHA: (4, 2, (8, 16)),
    ColourMode.TRUECOLOUR_ALPHA: (6, 4, (8, 16)),
}


class EncodeOptions(NamedTuple):
    colour_mode: ColourMode = ColourMode.TRUECOLOUR_ALPHA
    bit_depth: int = 8
    interlace: bool = False
    compression_level: int = 6
    filter_type: FilterType | None = None
    adaptive: bool = False
    palette: tuple[tuple[int, int, int], ...] | None = None
    idat_chunk_size: int | None = None

    @property
    def bytes_per_pixel(self) -> int:
        # sub-byte depths still filter against the previous whole byte
        return max(1, self.colour_mode.channels * self.bit_depth // 8)

    @property
    def bits_per_pixel(self) -> int:
        return self.colour_mode.channels * self.bit_depth

    @property
    def filter_byte(self) -> int:
        if self.filter_type is None:
            return FilterType.NONE
        return int(self.filter_type)

    def validate(self) -> EncodeOptions:
        """
        Checks every option before any encoding work begins.
        Out of range values are rejected rather than clamped.

        Raises:
            InvalidOption: Colour Mode - Must be a ColourMode member.
            InvalidOption: Bit Depth - Must be one the PNG spec permits for the colour mode.
            InvalidOption: Compression Level - zlib levels 0 to 9.
            InvalidOption: Filter Type - None or one of the five PNG filter types.
            InvalidOption: Interlace - Adam7 interlacing is not implemented.
            InvalidOption: Palette - Required for indexed colour, forbidden otherwise.
            InvalidOption: IDAT Chunk Size - None or a positive chunk length.

        Returns:
            EncodeOptions: self, to allow chaining.
        """
        if not isinstance(self.colour_mode, ColourMode):
            raise InvalidOption(f"Invalid colour mode: Expected a ColourMode, Got: {self.colour_mode!r}")

        if (
            isinstance(self.bit_depth, bool)
            or not isinstance(self.bit_depth, int)
            or self.bit_depth not in self.colour_mode.bit_depths
        ):
            raise InvalidOption(
                f"Invalid bit depth for {self.colour_mode.value}: Expected one of {self.colour_mode.bit_depths}, Got: {self.bit_depth!r}"
            )

        if (
            isinstance(self.compression_level, bool)
            or not isinstance(self.compression_level, int)
            or self.compression_level not in range(10)
        ):
            raise InvalidOption(f"Invalid compression level: Expected 0-9, Got: {self.compression_level!r}")

        if self.filter_type is not None and (
            isinstance(self.filter_type, bool)
            or not isinstance(self.filter_type, int)
            or self.filter_type not in range(5)
        ):
            raise InvalidOption(f"Invalid filter type: Expected None or 0-4, Got: {self.filter_type!r}")

        if self.adaptive and self.filter_type is not None:
            raise InvalidOption(f"Adaptive filtering picks the filter per scanline, it cannot be combined with filter type {self.filter_type!r}")

        if self.interlace:
            raise InvalidOption("Interlaced encoding is not supported. Got interlace=True")

        self._validate_palette()

        if self.idat_chunk_size is not None and (
            isinstance(self.idat_chunk_size, bool)
            or not isinstance(self.idat_chunk_size, int)
            or not 0 < self.idat_chunk_size <= MAX_CHUNK_LENGTH
        ):
            raise InvalidOption(
                f"Invalid IDAT chunk size: Expected None or 1-{MAX_CHUNK_LENGTH}, Got: {self.idat_chunk_size!r}"
            )

        return self

    def _validate_palette(self):
        if self.colour_mode is not ColourMode.INDEXED:
            if self.palette is not None:
                raise InvalidOption(f"A palette is only valid for indexed colour. Got colour mode {self.colour_mode.value}")
            return

        if self.palette is not None and not isinstance(self.palette, Sequence):
            raise InvalidOption(f"Invalid palette: Expected a sequence of (r, g, b) entries, Got: {self.palette!r}")

        if not self.palette:
            raise InvalidOption("Indexed colour requires a palette of at least one entry")

        max_entries = min(256, 2**self.bit_depth)
        if len(self.palette) > max_entries:
            raise InvalidOption(
                f"Palette too large for bit depth {self.bit_depth}: Expected at most {max_entries} entries, Got: {len(self.palette)}"
            )

        for i, entry in enumerate(self.palette):
            if not isinstance(entry, Sequence) or len(entry) != 3 or not all(isinstance(v, int) and not isinstance(v, bool) and v in range(256) for v in entry):
                raise InvalidOption(f"Invalid palette entry {i}: Expected (r, g, b) bytes, Got: {entry!r}")

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> EncodeOptions:
        """
        Builds options from plain config values, such as those loaded from a JSON file.
        Enums are given by name: "colour_mode": "indexed", "filter_type": "paeth".
        The filter type "adaptive" selects a filter per scanline.
        """
        unknown = set(config) - set(cls._fields)
        if unknown:
            raise InvalidOption(f"Unknown options: {sorted(unknown)}")

        values = dict(config)

        if isinstance(values.get("colour_mode"), str):
            try:
                values["colour_mode"] = ColourMode(values["colour_mode"].lower())
            except ValueError:
                raise InvalidOption(f"Unknown colour mode: {values['colour_mode']!r}") from None

        filter_type = values.get("filter_type")
        if isinstance(filter_type, str):
            if filter_type.lower() == "adaptive":
                values["filter_type"] = None
                values["adaptive"] = True
            else:
                try:
                    values["filter_type"] = FilterType[filter_type.upper()]
                except KeyError:
                    raise InvalidOption(f"Unknown filter type: {filter_type!r}") from None

        palette = values.get("palette")
        if isinstance(palette, list):
            values["palette"] = tuple(tuple(entry) if isinstance(entry, list) else entry for entry in palette)

        return cls(**values).validate()
