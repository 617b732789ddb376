"""Bit-level writer/reader for entropy-coded segments with 0xFF byte stuffing."""

from utils.constants import RST0
from models.errors import CorruptEntropyStream


class BitWriter:
    """Packs bits MSB-first into bytes, stuffing 0x00 after every 0xFF.

    Use as a context manager to guarantee the trailing partial byte is
    flushed (padded with 1-bits) on exit.
    """

    def __init__(self):
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.flush()
        return False

    def write_bits(self, value: int, num_bits: int) -> None:
        if num_bits == 0:
            return
        self.bit_buffer = (self.bit_buffer << num_bits) | (value & ((1 << num_bits) - 1))
        self.bit_count += num_bits

        while self.bit_count >= 8:
            self.bit_count -= 8
            byte = (self.bit_buffer >> self.bit_count) & 0xFF
            self.buffer.append(byte)
            self.bit_buffer &= (1 << self.bit_count) - 1
            if byte == 0xFF:
                self.buffer.append(0x00)

    def flush(self) -> None:
        """Pad the pending partial byte with 1s."""
        if self.bit_count > 0:
            padding = 8 - self.bit_count
            self.write_bits((1 << padding) - 1, padding)

    def write_restart_marker(self, index: int) -> None:
        """Byte-align and emit RSTn (n = index mod 8), unstuffed."""
        self.flush()
        self.buffer += bytes((0xFF, RST0 + index % 8))

    def getvalue(self) -> bytes:
        self.flush()
        return bytes(self.buffer)

    @property
    def bits_written(self) -> int:
        return len(self.buffer) * 8 + self.bit_count


class BitReader:
    """Reads bits MSB-first from an entropy-coded segment.

    ``0xFF 0x00`` is read as a literal 0xFF. Any other marker inside the
    data is only accepted through :meth:`read_restart_marker`; running into
    one (or off the end) while bits are still needed means the stream is
    corrupt.
    """

    def __init__(self, data: bytes, start: int = 0, end: int = None):
        self.data = data
        self.pos = start
        self.end = len(data) if end is None else end
        self._byte = 0
        self._bits_left = 0

    def _next_byte(self) -> int:
        while True:
            if self.pos >= self.end:
                raise CorruptEntropyStream("entropy-coded data ended before all blocks were decoded")
            byte = self.data[self.pos]
            if byte != 0xFF:
                self.pos += 1
                return byte
            nxt = self.data[self.pos + 1] if self.pos + 1 < self.end else None
            if nxt == 0x00:
                self.pos += 2
                return 0xFF
            if nxt == 0xFF:
                # fill byte
                self.pos += 1
                continue
            if nxt is None:
                raise CorruptEntropyStream("entropy-coded data ends with a dangling 0xFF")
            raise CorruptEntropyStream(
                f"unexpected marker 0xFF{nxt:02X} inside entropy-coded data"
            )

    def read_bit(self) -> int:
        if self._bits_left == 0:
            self._byte = self._next_byte()
            self._bits_left = 8
        self._bits_left -= 1
        return (self._byte >> self._bits_left) & 1

    def receive(self, num_bits: int) -> int:
        """Read ``num_bits`` as an unsigned integer (T.81 F.17 RECEIVE)."""
        value = 0
        for _ in range(num_bits):
            value = (value << 1) | self.read_bit()
        return value

    def align(self) -> None:
        """Discard the padding bits of the current byte."""
        self._bits_left = 0

    def read_restart_marker(self, expected_index: int) -> None:
        self.align()
        while self.pos + 1 < self.end and self.data[self.pos] == 0xFF and self.data[self.pos + 1] == 0xFF:
            self.pos += 1
        if self.pos + 1 >= self.end or self.data[self.pos] != 0xFF:
            raise CorruptEntropyStream("expected a restart marker")
        marker = self.data[self.pos + 1]
        expected = RST0 + expected_index % 8
        if marker != expected:
            raise CorruptEntropyStream(
                f"expected restart marker 0xFF{expected:02X}, found 0xFF{marker:02X}"
            )
        self.pos += 2
