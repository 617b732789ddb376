"""Data models: parameters, frame geometry, results and errors."""

from .errors import (
    JPEGError,
    InputValidationError,
    InvalidDimensions,
    InvalidComponentCount,
    InvalidQuality,
    FormatViolation,
    MissingRequiredMarker,
    MalformedSegment,
    UnsupportedFeature,
    InvalidHuffmanTable,
    StreamCorruption,
    CorruptEntropyStream,
    InvalidCode,
    UnknownSymbol,
)
from .codec_params import EncoderParams, DecoderParams
from .frame import Component, ScanComponent, Frame, JFIFHeader, DecodedImage
from .compression_result import CompressionResult

__all__ = [
    'JPEGError',
    'InputValidationError',
    'InvalidDimensions',
    'InvalidComponentCount',
    'InvalidQuality',
    'FormatViolation',
    'MissingRequiredMarker',
    'MalformedSegment',
    'UnsupportedFeature',
    'InvalidHuffmanTable',
    'StreamCorruption',
    'CorruptEntropyStream',
    'InvalidCode',
    'UnknownSymbol',
    'EncoderParams',
    'DecoderParams',
    'Component',
    'ScanComponent',
    'Frame',
    'JFIFHeader',
    'DecodedImage',
    'CompressionResult',
]
