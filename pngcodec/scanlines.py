from typing import Generator, Iterable, Sequence
from pngcodec.filters import Filters
from pngcodec.square import Square


FILTER_TYPES = range(5)


def gen_line_pairs(scanlines: Iterable[bytes]) -> Generator[tuple[bytes | None, bytes], None, None]:
    previous = None
    for current in scanlines:
        yield previous, current
        previous = current


class Transformer:
    @staticmethod
    def filter_row(
        current: Sequence[int],
        previous: Sequence[int] | None,
        bytes_per_pixel: int,
        filter_byte: int,
    ) -> bytearray:
        """
        Filters one scanline.
        previous is the unfiltered scanline above, or None for the first scanline of the image.

        Returns:
            bytearray: the filter byte followed by one filtered byte per input byte.
        """
        filter_func = Filters.select_filter_func(filter_byte)
        filtered = bytearray([filter_byte])
        for i, x in enumerate(current):
            square = Square.sample(x, i, current, previous, bytes_per_pixel)
            filtered.append(filter_func(square) & 0xFF)

        return filtered

    @staticmethod
    def unfilter_row(
        filtered: Sequence[int],
        previous: Sequence[int] | None,
        bytes_per_pixel: int,
        filter_byte: int,
    ) -> bytearray:
        # filtered excludes the filter byte, previous is the reconstructed scanline above
        reconstruction_func = Filters.select_reconstruction_func(filter_byte)
        recon = bytearray()
        for i, filt_x in enumerate(filtered):
            square = Square.sample(filt_x, i, recon, previous, bytes_per_pixel)
            recon.append(reconstruction_func(square) & 0xFF)

        return recon

    @staticmethod
    def best_filter(current: Sequence[int], previous: Sequence[int] | None, bytes_per_pixel: int) -> bytearray:
        candidates = [
            Transformer.filter_row(current, previous, bytes_per_pixel, filter_byte)
            for filter_byte in FILTER_TYPES
        ]
        scores = [Filters.sum_of_absolute_differences(c) for c in candidates]
        return candidates[scores.index(min(scores))]

    @staticmethod
    def filter_scanlines(
        scanlines: Iterable[bytes],
        bytes_per_pixel: int,
        filter_byte: int = 0,
        adaptive: bool = False,
    ) -> Generator[bytearray, None, None]:
        for previous, current in gen_line_pairs(scanlines):
            if adaptive:
                yield Transformer.best_filter(current, previous, bytes_per_pixel)
            else:
                yield Transformer.filter_row(current, previous, bytes_per_pixel, filter_byte)

    @staticmethod
    def filter(scanlines: Iterable[bytes], bytes_per_pixel: int, filter_byte: int = 0, adaptive: bool = False) -> bytearray:
        filter_data = bytearray()
        for filtered_scanline in Transformer.filter_scanlines(scanlines, bytes_per_pixel, filter_byte, adaptive):
            filter_data.extend(filtered_scanline)

        return filter_data

    @staticmethod
    def reconstruct(filter_data: bytes, stride: int, bytes_per_pixel: int) -> bytearray:
        recon_data = bytearray()
        previous = None
        filter_stride = stride + 1
        for line in range(0, len(filter_data), filter_stride):
            filter_byte = filter_data[line]
            filt_scan = filter_data[line + 1:line + filter_stride]
            recon_scan = Transformer.unfilter_row(filt_scan, previous, bytes_per_pixel, filter_byte)
            recon_data.extend(recon_scan)
            previous = recon_scan

        return recon_data
