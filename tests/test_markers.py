"""Tests for JPEG/JFIF segment writing and marker parsing."""

import logging
import struct

import numpy as np
import pytest
from engines.markers import parse, write_dht, write_dqt
from engines.huffman import STD_AC_LUMA, STD_DC_LUMA
from engines.pipeline import decode, encode
from engines.quantizer import QuantizationTable
from models.codec_params import EncoderParams
from models.errors import (
    CorruptEntropyStream, FormatViolation, MalformedSegment, MissingRequiredMarker, UnsupportedFeature,
)
from utils.constants import DHT, DQT, SOF0, SOS
from utils.test_images import generate_gradient


@pytest.fixture
def color_jpeg():
    return encode(generate_gradient(24, 40), params=EncoderParams(quality=80, comment='made by tests'))


@pytest.fixture
def noisy_gray_jpeg():
    rng = np.random.default_rng(9)
    return encode(rng.integers(0, 256, (32, 32), dtype=np.uint8), quality=90)


def _segment_offset(data, marker):
    for m, offset, length in parse(data).segments:
        if m == marker:
            return offset, length
    raise AssertionError(f"no segment 0xFF{marker:02X}")


def _strip(data, marker):
    out = data
    for m, offset, length in reversed(parse(data).segments):
        if m == marker:
            out = out[:offset] + out[offset + 2 + length:]
    return out


def _insert_after_soi(data, segment):
    return data[:2] + segment + data[2:]


def test_stream_framing(color_jpeg):
    """SOI first, EOI last, declared lengths chain up to SOS."""
    data = color_jpeg
    assert data[:2] == b'\xff\xd8'
    assert data[-2:] == b'\xff\xd9'

    pos = 2
    markers = []
    while True:
        assert data[pos] == 0xFF
        marker = data[pos + 1]
        length = struct.unpack('>H', data[pos + 2:pos + 4])[0]
        assert length >= 2
        markers.append(marker)
        pos += 2 + length
        if marker == SOS:
            break
    assert markers[:2] == [0xE0, 0xFE]
    assert SOF0 in markers and DQT in markers and DHT in markers

    # entropy data: every 0xFF is stuffed
    scan = data[pos:-2]
    for i, byte in enumerate(scan):
        if byte == 0xFF:
            assert scan[i + 1] == 0x00


def test_parse_collects_tables(color_jpeg):
    stream = parse(color_jpeg)
    assert stream.frame.width == 40
    assert stream.frame.height == 24
    assert sorted(stream.quant_tables) == [0, 1]
    assert sorted(stream.dc_tables) == [0, 1]
    assert sorted(stream.ac_tables) == [0, 1]
    assert stream.dc_tables[0] == STD_DC_LUMA
    assert len(stream.scans) == 1
    assert stream.found_eoi


def test_jfif_and_comment(color_jpeg):
    decoded = decode(color_jpeg)
    assert decoded.jfif.version == (1, 1)
    assert decoded.jfif.x_density == 1
    assert decoded.comments == [b'made by tests']


def test_jfif_can_be_omitted():
    data = encode(generate_gradient(8, 8), params=EncoderParams(write_jfif=False))
    assert data[2:4] != b'\xff\xe0'
    assert decode(data).jfif is None


def test_missing_soi():
    with pytest.raises(MissingRequiredMarker):
        parse(b'\x00\x00\xff\xd9')


def test_missing_sof(color_jpeg):
    with pytest.raises(MissingRequiredMarker):
        decode(_strip(color_jpeg, SOF0))


def test_missing_dht(color_jpeg):
    with pytest.raises(MissingRequiredMarker):
        decode(_strip(color_jpeg, DHT))


def test_missing_dqt(color_jpeg):
    with pytest.raises(MissingRequiredMarker):
        decode(_strip(color_jpeg, DQT))


def test_missing_sos(color_jpeg):
    offset, _ = _segment_offset(color_jpeg, SOS)
    with pytest.raises(MissingRequiredMarker):
        decode(color_jpeg[:offset] + b'\xff\xd9')


@pytest.mark.parametrize('sof', [0xC2, 0xC3, 0xC9])
def test_unsupported_frame_types(color_jpeg, sof):
    offset, _ = _segment_offset(color_jpeg, SOF0)
    data = bytearray(color_jpeg)
    data[offset + 1] = sof
    with pytest.raises(UnsupportedFeature):
        decode(bytes(data))


def test_extended_sequential_header_accepted(color_jpeg):
    """SOF1 with 8-bit samples and Huffman coding decodes like SOF0."""
    offset, _ = _segment_offset(color_jpeg, SOF0)
    data = bytearray(color_jpeg)
    data[offset + 1] = 0xC1
    assert np.array_equal(decode(bytes(data)).pixels, decode(color_jpeg).pixels)


def test_arithmetic_coding_rejected(color_jpeg):
    with pytest.raises(UnsupportedFeature):
        decode(_insert_after_soi(color_jpeg, b'\xff\xcc\x00\x04\x00\x00'))


def test_twelve_bit_precision_rejected(color_jpeg):
    offset, _ = _segment_offset(color_jpeg, SOF0)
    data = bytearray(color_jpeg)
    data[offset + 4] = 12
    with pytest.raises(UnsupportedFeature):
        decode(bytes(data))


def test_truncated_segment(color_jpeg):
    offset, _ = _segment_offset(color_jpeg, DQT)
    with pytest.raises(MalformedSegment):
        decode(color_jpeg[:offset + 10])


def test_format_errors_are_value_errors(color_jpeg):
    with pytest.raises(ValueError):
        decode(_strip(color_jpeg, SOF0))
    assert issubclass(MalformedSegment, FormatViolation)


def test_unknown_app_segment_skipped(color_jpeg):
    data = _insert_after_soi(color_jpeg, b'\xff\xe5\x00\x06abcd')
    assert np.array_equal(decode(data).pixels, decode(color_jpeg).pixels)


def test_unknown_marker_warns(color_jpeg, caplog):
    data = _insert_after_soi(color_jpeg, b'\xff\xf0\x00\x04\x00\x00')
    with caplog.at_level(logging.WARNING):
        decode(data)
    assert 'unknown marker' in caplog.text


def test_missing_eoi_tolerated(color_jpeg, caplog):
    with caplog.at_level(logging.WARNING):
        decoded = decode(color_jpeg[:-2])
    assert np.array_equal(decoded.pixels, decode(color_jpeg).pixels)
    assert 'without EOI' in caplog.text


def test_truncated_entropy_data(noisy_gray_jpeg):
    scan = parse(noisy_gray_jpeg).scans[0]
    cut = scan.start + (scan.end - scan.start) // 2
    with pytest.raises(CorruptEntropyStream):
        decode(noisy_gray_jpeg[:cut] + b'\xff\xd9')


def test_sixteen_bit_quant_table_parsed():
    table = QuantizationTable((300,) + tuple(range(1, 64)))
    segment = write_dqt(2, table)
    assert segment[4] == 0x12
    assert len(segment) == 4 + 1 + 128

    data = encode(np.zeros((8, 8), dtype=np.uint8))
    stream = parse(_insert_after_soi(data, segment))
    assert stream.quant_tables[2] == table


def test_several_tables_in_one_segment():
    dc = write_dht(0, 3, STD_DC_LUMA)
    ac = write_dht(1, 2, STD_AC_LUMA)
    # merge two DHT payloads under one header
    payload = dc[4:] + ac[4:]
    segment = b'\xff\xc4' + struct.pack('>H', len(payload) + 2) + payload

    data = encode(np.zeros((8, 8), dtype=np.uint8))
    stream = parse(_insert_after_soi(data, segment))
    assert stream.dc_tables[3] == STD_DC_LUMA
    assert stream.ac_tables[2] == STD_AC_LUMA


def test_bad_dht_rejected():
    # 3 codes of length 1 cannot exist
    payload = bytes([0x00, 3] + [0] * 15 + [0, 1, 2])
    segment = b'\xff\xc4' + struct.pack('>H', len(payload) + 2) + payload
    data = encode(np.zeros((8, 8), dtype=np.uint8))
    with pytest.raises(FormatViolation):
        parse(_insert_after_soi(data, segment))


def test_scan_before_frame():
    data = encode(np.zeros((8, 8), dtype=np.uint8))
    sos_offset, sos_length = _segment_offset(data, SOS)
    sos = data[sos_offset:sos_offset + 2 + sos_length]
    with pytest.raises(MissingRequiredMarker):
        parse(_insert_after_soi(data, sos))


def test_progressive_scan_parameters_rejected():
    data = bytearray(encode(np.zeros((8, 8), dtype=np.uint8)))
    offset, length = _segment_offset(bytes(data), SOS)
    # Se byte sits two before the end of the SOS segment
    data[offset + 2 + length - 2] = 5
    with pytest.raises(UnsupportedFeature):
        parse(bytes(data))
