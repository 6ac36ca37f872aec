class PNGEncodeError(Exception):
    """Base class for everything the encoder raises on bad input or failure."""


class InvalidOption(PNGEncodeError, ValueError):
    pass


class MalformedImage(PNGEncodeError, ValueError):
    pass


class CompressionFailure(PNGEncodeError):
    pass


class ChunkTooLarge(PNGEncodeError):
    pass
