from pngcodec.square import Square


def as_signed_byte(val: int) -> int:
    i = val & 0xFF
    if i > 127:
        i -= 256
    return i


class Filters:
    @staticmethod
    def none_filter(square: Square) -> int:
        return square.x

    @staticmethod
    def none_recon(square: Square) -> int:
        return square.x

    @staticmethod
    def sub_filter(square: Square) -> int:
        return square.x - square.a

    @staticmethod
    def sub_recon(square: Square) -> int:
        return square.x + square.a

    @staticmethod
    def up_filter(square: Square) -> int:
        return square.x - square.b

    @staticmethod
    def up_recon(square: Square) -> int:
        return square.x + square.b

    @staticmethod
    def average_filter(square: Square) -> int:
        return square.x - (square.a + square.b) // 2

    @staticmethod
    def average_recon(square: Square) -> int:
        return square.x + (square.a + square.b) // 2

    @staticmethod
    def paeth_filter(square: Square) -> int:
        return square.x - Filters.paeth_predictor(square.a, square.b, square.c)

    @staticmethod
    def paeth_recon(square: Square) -> int:
        return square.x + Filters.paeth_predictor(square.a, square.b, square.c)

    @staticmethod
    def paeth_predictor(a: int, b: int, c: int) -> int:
        p = a + b - c
        pa = abs(p - a)
        pb = abs(p - b)
        pc = abs(p - c)
        # ties go to a, then b, then c
        if pa <= pb and pa <= pc:
            Pr = a
        elif pb <= pc:
            Pr = b
        else:
            Pr = c
        return Pr

    @staticmethod
    def select_filter_func(filter_byte: int):
        if filter_byte not in range(5):
            raise ValueError(f"Unknown filter type: {filter_byte}")
        return [
            Filters.none_filter,
            Filters.sub_filter,
            Filters.up_filter,
            Filters.average_filter,
            Filters.paeth_filter,
        ][filter_byte]

    @staticmethod
    def select_reconstruction_func(filter_byte: int):
        if filter_byte not in range(5):
            raise ValueError(f"Unknown filter type: {filter_byte}")
        return [
            Filters.none_recon,
            Filters.sub_recon,
            Filters.up_recon,
            Filters.average_recon,
            Filters.paeth_recon,
        ][filter_byte]

    @staticmethod
    def sum_of_absolute_differences(filtered_scanline: bytes) -> int:
        """Score for adaptive filter selection, lower is better. Excludes the leading filter byte."""
        return sum(abs(as_signed_byte(b)) for b in filtered_scanline[1:])
