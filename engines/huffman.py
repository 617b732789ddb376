"""Canonical Huffman tables and magnitude category coding."""

from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

from engines.bitstream import BitReader
from models.errors import InvalidCode, InvalidHuffmanTable, UnknownSymbol
from utils.constants import (
    AC_CHROMA_BITS, AC_CHROMA_VALUES, AC_LUMA_BITS, AC_LUMA_VALUES,
    DC_CHROMA_BITS, DC_CHROMA_VALUES, DC_LUMA_BITS, DC_LUMA_VALUES,
    MAX_CODE_LENGTH,
)


@dataclass(frozen=True)
class HuffmanTable:
    """
    Huffman table in JPEG DHT form.

    Args:
        bits: number of codes of each length 1..16
        values: symbols in order of increasing code length (HUFFVAL)

    Codes are assigned canonically (T.81 Annex C): consecutive integers
    within a length, and the first code of the next length is the previous
    code plus one, shifted left. Instances are immutable and safe to share
    between encode/decode calls.
    """

    bits: Tuple[int, ...]
    values: Tuple[int, ...]
    codes: Dict[int, Tuple[int, int]] = field(init=False, repr=False, compare=False)
    _mincode: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    _maxcode: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    _valptr: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        bits = tuple(int(b) for b in self.bits)
        values = tuple(int(v) for v in self.values)
        if len(bits) != MAX_CODE_LENGTH:
            raise InvalidHuffmanTable(f"expected 16 code-length counts, got {len(bits)}")
        if any(b < 0 for b in bits):
            raise InvalidHuffmanTable("code-length counts must be non-negative")
        if sum(bits) != len(values):
            raise InvalidHuffmanTable(
                f"counts declare {sum(bits)} symbols but {len(values)} were given"
            )
        if len(set(values)) != len(values):
            raise InvalidHuffmanTable("duplicate symbol in Huffman table")
        if any(not 0 <= v <= 0xFF for v in values):
            raise InvalidHuffmanTable("Huffman symbols must fit in one byte")

        codes = {}
        mincode = [0] * MAX_CODE_LENGTH
        maxcode = [-1] * MAX_CODE_LENGTH
        valptr = [0] * MAX_CODE_LENGTH
        code = 0
        k = 0
        for length in range(1, MAX_CODE_LENGTH + 1):
            count = bits[length - 1]
            if count:
                valptr[length - 1] = k
                mincode[length - 1] = code
                maxcode[length - 1] = code + count - 1
                # the 16-bit all-ones code is reserved so it never collides with fill bits
                if code + count > (1 << length) - (1 if length == MAX_CODE_LENGTH else 0):
                    raise InvalidHuffmanTable(f"too many codes of length {length}")
            for _ in range(count):
                codes[values[k]] = (code, length)
                code += 1
                k += 1
            code <<= 1

        object.__setattr__(self, 'bits', bits)
        object.__setattr__(self, 'values', values)
        object.__setattr__(self, 'codes', codes)
        object.__setattr__(self, '_mincode', tuple(mincode))
        object.__setattr__(self, '_maxcode', tuple(maxcode))
        object.__setattr__(self, '_valptr', tuple(valptr))

    def encode(self, symbol: int) -> Tuple[int, int]:
        """Return ``(code, length)`` for a symbol."""
        try:
            return self.codes[symbol]
        except KeyError:
            raise UnknownSymbol(f"symbol 0x{symbol:02X} not in Huffman table") from None

    def decode(self, reader: BitReader) -> int:
        """Read one symbol, a bit at a time (T.81 F.16)."""
        code = reader.read_bit()
        for i in range(MAX_CODE_LENGTH):
            if code <= self._maxcode[i]:
                return self.values[self._valptr[i] + code - self._mincode[i]]
            if i + 1 < MAX_CODE_LENGTH:
                code = (code << 1) | reader.read_bit()
        raise InvalidCode("no Huffman code of length <= 16 matches the input")

    def code_lengths(self) -> Dict[int, int]:
        return {symbol: length for symbol, (_, length) in self.codes.items()}

    def __len__(self):
        return len(self.values)


def magnitude_category(value: int) -> int:
    """Number of bits needed for |value| (SSSS, T.81 Table F.1/F.2)."""
    return int(abs(int(value))).bit_length()


def encode_magnitude(value: int, size: int) -> int:
    """Amplitude bits: value itself if positive, one's complement if negative."""
    if value < 0:
        return value + (1 << size) - 1
    return value


def extend(bits: int, size: int) -> int:
    """Inverse of :func:`encode_magnitude` (T.81 F.12 EXTEND)."""
    if size == 0:
        return 0
    if bits < (1 << (size - 1)):
        return bits - (1 << size) + 1
    return bits


def build_table(bits: Sequence[int], values: Sequence[int]) -> HuffmanTable:
    return HuffmanTable(tuple(bits), tuple(values))


STD_DC_LUMA = build_table(DC_LUMA_BITS, DC_LUMA_VALUES)
STD_AC_LUMA = build_table(AC_LUMA_BITS, AC_LUMA_VALUES)
STD_DC_CHROMA = build_table(DC_CHROMA_BITS, DC_CHROMA_VALUES)
STD_AC_CHROMA = build_table(AC_CHROMA_BITS, AC_CHROMA_VALUES)
