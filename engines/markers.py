"""JPEG/JFIF container: segment writers and the marker parser."""

import logging
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from engines.huffman import HuffmanTable
from engines.quantizer import QuantizationTable
from models.errors import MalformedSegment, MissingRequiredMarker, UnsupportedFeature
from models.frame import Component, Frame, JFIFHeader, ScanComponent
from utils.constants import (
    APP0, COM, DAC, DHT, DNL, DQT, DRI, EOI, MAX_CODE_LENGTH, RST0, SOF0, SOF1,
    SOI, SOS, STANDALONE_MARKERS, UNSUPPORTED_SOF,
)

logger = logging.getLogger(__name__)

JFIF_IDENTIFIER = b'JFIF\x00'


# =============================================================================
# Writers
# =============================================================================

def _segment(marker: int, payload: bytes) -> bytes:
    """Marker, 2-byte length (counting itself) and payload."""
    length = len(payload) + 2
    if length > 0xFFFF:
        raise ValueError(f"Segment 0xFF{marker:02X} payload too long ({len(payload)} bytes)")
    return struct.pack('>BBH', 0xFF, marker, length) + payload


def write_soi() -> bytes:
    return bytes((0xFF, SOI))


def write_eoi() -> bytes:
    return bytes((0xFF, EOI))


def write_app0(jfif: JFIFHeader) -> bytes:
    payload = JFIF_IDENTIFIER + struct.pack(
        '>BBBHHBB',
        jfif.version[0], jfif.version[1],
        jfif.units,
        jfif.x_density, jfif.y_density,
        0, 0,  # no thumbnail
    )
    return _segment(APP0, payload)


def write_comment(comment: Union[str, bytes]) -> bytes:
    if isinstance(comment, str):
        comment = comment.encode('utf-8')
    return _segment(COM, comment)


def write_dqt(table_id: int, table: QuantizationTable) -> bytes:
    header = bytes(((table.precision << 4) | table_id,))
    if table.precision:
        body = struct.pack('>64H', *table.zigzag)
    else:
        body = bytes(table.zigzag)
    return _segment(DQT, header + body)


def write_sof0(frame: Frame) -> bytes:
    payload = struct.pack('>BHHB', frame.precision, frame.height, frame.width, len(frame.components))
    for c in frame.components:
        payload += struct.pack('>BBB', c.component_id, (c.h_sampling << 4) | c.v_sampling, c.quant_table_id)
    return _segment(SOF0, payload)


def write_dht(table_class: int, table_id: int, table: HuffmanTable) -> bytes:
    payload = bytes(((table_class << 4) | table_id,)) + bytes(table.bits) + bytes(table.values)
    return _segment(DHT, payload)


def write_dri(restart_interval: int) -> bytes:
    return _segment(DRI, struct.pack('>H', restart_interval))


def write_sos(scan_components: Sequence[ScanComponent]) -> bytes:
    payload = bytes((len(scan_components),))
    for sc in scan_components:
        payload += bytes((sc.component.component_id, (sc.dc_table_id << 4) | sc.ac_table_id))
    # Ss=0, Se=63, Ah=Al=0 for sequential DCT
    payload += bytes((0, 63, 0))
    return _segment(SOS, payload)


def build_stream(
    frame: Frame,
    quant_tables: Dict[int, QuantizationTable],
    dc_tables: Dict[int, HuffmanTable],
    ac_tables: Dict[int, HuffmanTable],
    scan_components: Sequence[ScanComponent],
    scan_data: bytes,
    restart_interval: int = 0,
    jfif: Optional[JFIFHeader] = None,
    comment: Optional[Union[str, bytes]] = None
) -> bytes:
    """Assemble a complete single-scan baseline JPEG byte stream."""
    parts = [write_soi()]
    if jfif is not None:
        parts.append(write_app0(jfif))
    if comment:
        parts.append(write_comment(comment))
    for table_id in sorted(quant_tables):
        parts.append(write_dqt(table_id, quant_tables[table_id]))
    parts.append(write_sof0(frame))
    for table_id in sorted(dc_tables):
        parts.append(write_dht(0, table_id, dc_tables[table_id]))
    for table_id in sorted(ac_tables):
        parts.append(write_dht(1, table_id, ac_tables[table_id]))
    if restart_interval:
        parts.append(write_dri(restart_interval))
    parts.append(write_sos(scan_components))
    parts.append(scan_data)
    parts.append(write_eoi())
    return b''.join(parts)


# =============================================================================
# Parser
# =============================================================================

@dataclass
class Scan:
    """One SOS with the table state it must be decoded with."""

    components: List[ScanComponent]
    dc_tables: Dict[int, HuffmanTable]
    ac_tables: Dict[int, HuffmanTable]
    restart_interval: int = 0
    start: int = 0
    end: int = 0


@dataclass
class ParsedStream:
    frame: Optional[Frame] = None
    quant_tables: Dict[int, QuantizationTable] = field(default_factory=dict)
    dc_tables: Dict[int, HuffmanTable] = field(default_factory=dict)
    ac_tables: Dict[int, HuffmanTable] = field(default_factory=dict)
    restart_interval: int = 0
    scans: List[Scan] = field(default_factory=list)
    jfif: Optional[JFIFHeader] = None
    comments: List[bytes] = field(default_factory=list)
    # (marker, offset of 0xFF, declared length) for every length-carrying segment
    segments: List[Tuple[int, int, int]] = field(default_factory=list)
    found_eoi: bool = False


def _next_marker(data: bytes, pos: int) -> Tuple[Optional[int], int]:
    """Read the marker at ``pos``, skipping 0xFF fill bytes."""
    if pos >= len(data):
        return None, pos
    if data[pos] != 0xFF:
        raise MalformedSegment(f"Expected a marker at offset {pos}, found 0x{data[pos]:02X}")
    while pos < len(data) and data[pos] == 0xFF:
        pos += 1
    if pos >= len(data):
        return None, pos
    return data[pos], pos + 1


def _find_scan_end(data: bytes, pos: int) -> int:
    """Offset of the first marker after entropy-coded data (RSTn and 0xFF00 belong to it)."""
    n = len(data)
    while True:
        pos = data.find(b'\xff', pos)
        if pos < 0 or pos + 1 >= n:
            return n
        nxt = data[pos + 1]
        if nxt == 0x00 or RST0 <= nxt <= RST0 + 7:
            pos += 2
        elif nxt == 0xFF:
            pos += 1
        else:
            return pos


def _parse_app0(stream: ParsedStream, payload: bytes) -> None:
    if payload[:5] == JFIF_IDENTIFIER and len(payload) >= 14:
        major, minor, units, x_density, y_density, x_thumb, y_thumb = struct.unpack_from('>BBBHHBB', payload, 5)
        stream.jfif = JFIFHeader((major, minor), units, x_density, y_density, (x_thumb, y_thumb))
        logger.debug("  JFIF %d.%02d, units=%d, density=(%d, %d)", major, minor, units, x_density, y_density)
    else:
        logger.debug("  APP0 identifier %r ignored", payload[:5])


def _parse_dqt(stream: ParsedStream, payload: bytes) -> None:
    # Several tables may share one segment
    offset = 0
    while offset < len(payload):
        precision, table_id = payload[offset] >> 4, payload[offset] & 0x0F
        if precision > 1 or table_id > 3:
            raise MalformedSegment(f"Bad DQT table header 0x{payload[offset]:02X}")
        size = 64 * (precision + 1)
        body = payload[offset + 1:offset + 1 + size]
        if len(body) != size:
            raise MalformedSegment("DQT segment is too short")
        values = struct.unpack('>64H', body) if precision else tuple(body)
        try:
            stream.quant_tables[table_id] = QuantizationTable.from_zigzag(values)
        except ValueError as e:
            raise MalformedSegment(f"Invalid quantization table {table_id}: {e}") from e
        logger.debug("  DQT id=%d precision=%d-bit", table_id, 8 * (precision + 1))
        offset += 1 + size


def _parse_dht(stream: ParsedStream, payload: bytes) -> None:
    offset = 0
    while offset < len(payload):
        table_class, table_id = payload[offset] >> 4, payload[offset] & 0x0F
        if table_class > 1 or table_id > 3:
            raise MalformedSegment(f"Bad DHT table header 0x{payload[offset]:02X}")
        bits = payload[offset + 1:offset + 1 + MAX_CODE_LENGTH]
        if len(bits) != MAX_CODE_LENGTH:
            raise MalformedSegment("DHT segment is too short")
        count = sum(bits)
        values = payload[offset + 1 + MAX_CODE_LENGTH:offset + 1 + MAX_CODE_LENGTH + count]
        if len(values) != count:
            raise MalformedSegment("DHT segment is too short")
        table = HuffmanTable(tuple(bits), tuple(values))
        if table_class == 0:
            stream.dc_tables[table_id] = table
        else:
            stream.ac_tables[table_id] = table
        logger.debug("  DHT class=%s id=%d symbols=%d", 'AC' if table_class else 'DC', table_id, count)
        offset += 1 + MAX_CODE_LENGTH + count


def _parse_sof(stream: ParsedStream, payload: bytes) -> None:
    if stream.frame is not None:
        raise UnsupportedFeature("Multiple frames in one stream are not supported")
    if len(payload) < 6:
        raise MalformedSegment("SOF segment is too short")
    precision, height, width, n_components = struct.unpack_from('>BHHB', payload, 0)
    if precision != 8:
        raise UnsupportedFeature(f"Only 8-bit samples are supported, got {precision}-bit")
    if height == 0:
        raise UnsupportedFeature("Height defined by DNL is not supported")
    if width == 0:
        raise MalformedSegment("Frame width is zero")
    if n_components not in (1, 3):
        raise UnsupportedFeature(f"Only 1 or 3 components are supported, got {n_components}")
    if len(payload) < 6 + 3 * n_components:
        raise MalformedSegment("SOF segment is too short")

    components = []
    for i in range(n_components):
        component_id, sampling, quant_table_id = struct.unpack_from('>BBB', payload, 6 + 3 * i)
        try:
            components.append(Component(component_id, sampling >> 4, sampling & 0x0F, quant_table_id))
        except ValueError as e:
            raise MalformedSegment(f"Invalid component {component_id}: {e}") from e
    if len({c.component_id for c in components}) != n_components:
        raise MalformedSegment("Duplicate component id in SOF")

    stream.frame = Frame(width, height, components, precision)
    logger.debug("  frame %dx%d, %d component(s), sampling %s", width, height, n_components,
                 [(c.h_sampling, c.v_sampling) for c in components])


def _parse_sos(stream: ParsedStream, payload: bytes) -> Scan:
    frame = stream.frame
    if frame is None:
        raise MissingRequiredMarker("Start of scan before frame header (SOF)")
    if not payload:
        raise MalformedSegment("SOS segment is empty")
    n = payload[0]
    if not 1 <= n <= len(frame.components):
        raise MalformedSegment(f"Scan declares {n} components, frame has {len(frame.components)}")
    if len(payload) < 1 + 2 * n + 3:
        raise MalformedSegment("SOS segment is too short")

    components = []
    for i in range(n):
        component_id, tables = payload[1 + 2 * i], payload[2 + 2 * i]
        component = frame.component_by_id(component_id)
        if component is None:
            raise MalformedSegment(f"Scan references unknown component {component_id}")
        dc_id, ac_id = tables >> 4, tables & 0x0F
        if dc_id not in stream.dc_tables:
            raise MissingRequiredMarker(f"DC Huffman table {dc_id} (DHT) not defined before scan")
        if ac_id not in stream.ac_tables:
            raise MissingRequiredMarker(f"AC Huffman table {ac_id} (DHT) not defined before scan")
        if component.quant_table_id not in stream.quant_tables:
            raise MissingRequiredMarker(
                f"Quantization table {component.quant_table_id} (DQT) not defined before scan"
            )
        components.append(ScanComponent(component, dc_id, ac_id))

    ss, se, approx = payload[1 + 2 * n:4 + 2 * n]
    if (ss, se, approx) != (0, 63, 0):
        raise UnsupportedFeature(f"Scan parameters Ss={ss} Se={se} Ah/Al=0x{approx:02X} are not baseline")
    if n > 1 and sum(sc.component.h_sampling * sc.component.v_sampling for sc in components) > 10:
        raise MalformedSegment("Interleaved MCU has more than 10 blocks")

    logger.debug("  scan components %s", [sc.component.component_id for sc in components])
    return Scan(components, dict(stream.dc_tables), dict(stream.ac_tables), stream.restart_interval)


def parse(data: bytes) -> ParsedStream:
    """Parse markers and tables; locate each scan's entropy-coded data."""
    data = bytes(data)
    if len(data) < 2 or data[0] != 0xFF or data[1] != SOI:
        raise MissingRequiredMarker("Stream does not start with SOI")

    stream = ParsedStream()
    pos = 2
    while True:
        marker, pos = _next_marker(data, pos)
        if marker is None:
            break
        if marker == EOI:
            stream.found_eoi = True
            break
        if marker in STANDALONE_MARKERS:
            logger.debug("Stray marker 0xFF%02X ignored", marker)
            continue

        if pos + 2 > len(data):
            raise MalformedSegment(f"Truncated length for marker 0xFF{marker:02X}")
        length = struct.unpack_from('>H', data, pos)[0]
        if length < 2 or pos + length > len(data):
            raise MalformedSegment(f"Segment 0xFF{marker:02X} declares invalid length {length}")
        payload = data[pos + 2:pos + length]
        stream.segments.append((marker, pos - 2, length))
        logger.debug("Marker 0xFF%02X at %d (length = %d)", marker, pos - 2, length)
        pos += length

        if marker in (SOF0, SOF1):
            _parse_sof(stream, payload)
        elif marker in UNSUPPORTED_SOF:
            raise UnsupportedFeature(f"{UNSUPPORTED_SOF[marker].capitalize()} JPEG is not supported")
        elif marker == DAC:
            raise UnsupportedFeature("Arithmetic coding is not supported")
        elif marker == DNL:
            raise UnsupportedFeature("DNL marker is not supported")
        elif marker == DQT:
            _parse_dqt(stream, payload)
        elif marker == DHT:
            _parse_dht(stream, payload)
        elif marker == DRI:
            if len(payload) < 2:
                raise MalformedSegment("DRI segment is too short")
            stream.restart_interval = struct.unpack_from('>H', payload, 0)[0]
            logger.debug("  restart interval = %d", stream.restart_interval)
        elif marker == SOS:
            scan = _parse_sos(stream, payload)
            scan.start = pos
            scan.end = _find_scan_end(data, pos)
            stream.scans.append(scan)
            pos = scan.end
        elif marker == APP0:
            _parse_app0(stream, payload)
        elif marker == COM:
            stream.comments.append(payload)
        elif APP0 < marker <= APP0 + 15:
            logger.debug("  APP%d segment skipped", marker - APP0)
        else:
            logger.warning("Skipping unknown marker 0xFF%02X (length = %d)", marker, length)

    if stream.frame is None:
        raise MissingRequiredMarker("No frame header (SOF) found")
    if not stream.scans:
        raise MissingRequiredMarker("No start of scan (SOS) found")
    if not stream.found_eoi:
        logger.warning("Stream ended without EOI")
    return stream
