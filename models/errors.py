"""Codec exception taxonomy.

Three families, all ``ValueError`` subclasses so callers that only care
about "bad input" can catch one type:

- ``InputValidationError``: rejected encoder arguments.
- ``FormatViolation``: the container structure is wrong or unsupported.
- ``StreamCorruption``: entropy-coded data cannot be decoded.
"""


class JPEGError(Exception):
    """Base class for all codec errors."""


class InputValidationError(JPEGError, ValueError):
    pass


class InvalidDimensions(InputValidationError):
    pass


class InvalidComponentCount(InputValidationError):
    pass


class InvalidQuality(InputValidationError):
    pass


class FormatViolation(JPEGError, ValueError):
    pass


class MissingRequiredMarker(FormatViolation):
    pass


class MalformedSegment(FormatViolation):
    pass


class UnsupportedFeature(FormatViolation):
    pass


class InvalidHuffmanTable(FormatViolation):
    pass


class StreamCorruption(JPEGError, ValueError):
    pass


class CorruptEntropyStream(StreamCorruption):
    pass


class InvalidCode(CorruptEntropyStream):
    """No Huffman code of length <= 16 matched the input bits."""


class UnknownSymbol(JPEGError, KeyError):
    """Symbol has no code in the Huffman table used for encoding."""
