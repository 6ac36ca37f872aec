from typing import NamedTuple, Self, Sequence


class Square(NamedTuple):
    """
    The byte being filtered or reconstructed, x, and its three neighbours:

        c b
        a x

    a is one pixel to the left on the same scanline, b is directly above, c is above and left.
    Neighbours that fall outside the image are 0.
    """
    x: int
    a: int
    b: int
    c: int

    @classmethod
    def sample(
        cls,
        x: int,
        x_idx: int,
        scanline: Sequence[int],
        previous_scanline: Sequence[int] | None,
        bytes_per_pixel: int,
    ) -> Self:
        # scanline holds raw bytes when filtering and reconstructed bytes when reconstructing,
        # either way only indices before x_idx are read from it.
        left_idx = x_idx - bytes_per_pixel

        a = 0
        if left_idx >= 0:
            a = scanline[left_idx]

        b = 0
        c = 0
        if previous_scanline is not None:
            b = previous_scanline[x_idx]
            if left_idx >= 0:
                c = previous_scanline[left_idx]

        return cls(x, a, b, c)
