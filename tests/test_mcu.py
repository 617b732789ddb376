"""Tests for block entropy coding and MCU ordering."""

import numpy as np
import pytest
from engines.bitstream import BitReader, BitWriter
from engines.huffman import HuffmanTable, STD_AC_LUMA, STD_DC_LUMA
from engines.quantizer import QuantizationTable
from engines.mcu import (
    MCUPipeline, decode_block, encode_block, inverse_zigzag, run_length_encode, zigzag_scan,
)
from models.errors import CorruptEntropyStream
from models.frame import Component, Frame, ScanComponent


def test_all_zero_ac_is_single_eob():
    zz = np.zeros(64, dtype=np.int32)
    zz[0] = 42
    assert run_length_encode(zz) == [(0, 0, 0)]


def test_all_zero_block_bits():
    """DC diff 0 ('00'), EOB ('1010'), then two 1-bits of padding."""
    writer = BitWriter()
    pred = encode_block(writer, np.zeros(64, dtype=np.int32), 0, STD_DC_LUMA, STD_AC_LUMA)
    assert pred == 0
    assert writer.getvalue() == b'\x2b'


def test_long_zero_run_uses_zrl():
    zz = np.zeros(64, dtype=np.int32)
    zz[20] = 5
    assert run_length_encode(zz) == [(15, 0, 0), (3, 3, 5), (0, 0, 0)]


def test_no_eob_when_last_coefficient_set():
    zz = np.zeros(64, dtype=np.int32)
    zz[63] = -1
    symbols = run_length_encode(zz)
    assert symbols[-1] == (14, 1, -1)
    assert symbols[:3] == [(15, 0, 0)] * 3


def test_zigzag_order():
    block = np.arange(64).reshape(8, 8)
    zz = zigzag_scan(block)
    assert list(zz[:6]) == [0, 1, 8, 16, 9, 2]
    assert zz[-1] == 63
    assert np.array_equal(inverse_zigzag(zz), block)


def test_block_round_trip():
    rng = np.random.default_rng(5)
    blocks = []
    for _ in range(4):
        zz = np.zeros(64, dtype=np.int32)
        idx = rng.choice(np.arange(1, 64), size=10, replace=False)
        zz[idx] = rng.integers(-300, 300, size=10)
        zz[0] = rng.integers(-1000, 1000)
        blocks.append(zz)

    writer = BitWriter()
    pred = 0
    for zz in blocks:
        pred = encode_block(writer, zz, pred, STD_DC_LUMA, STD_AC_LUMA)

    reader = BitReader(writer.getvalue())
    pred = 0
    for zz in blocks:
        decoded, pred = decode_block(reader, pred, STD_DC_LUMA, STD_AC_LUMA)
        assert np.array_equal(decoded, zz)


def test_dc_is_differential():
    writer = BitWriter()
    first = np.zeros(64, dtype=np.int32)
    first[0] = 10
    second = first.copy()
    pred = encode_block(writer, first, 0, STD_DC_LUMA, STD_AC_LUMA)
    after_first = writer.bits_written
    encode_block(writer, second, pred, STD_DC_LUMA, STD_AC_LUMA)
    # DC diff 0 and EOB
    assert writer.bits_written - after_first == 6


def _zrl_stream(count, tail=None):
    writer = BitWriter()
    writer.write_bits(*STD_DC_LUMA.encode(0))
    for _ in range(count):
        writer.write_bits(*STD_AC_LUMA.encode(0xF0))
    if tail is not None:
        writer.write_bits(*STD_AC_LUMA.encode(tail))
        writer.write_bits(1, 1)
    return writer.getvalue()


def test_zero_run_overrun_detected():
    reader = BitReader(_zrl_stream(4))
    with pytest.raises(CorruptEntropyStream):
        decode_block(reader, 0, STD_DC_LUMA, STD_AC_LUMA)


def test_ac_run_overrun_detected():
    reader = BitReader(_zrl_stream(3, tail=0xF1))
    with pytest.raises(CorruptEntropyStream):
        decode_block(reader, 0, STD_DC_LUMA, STD_AC_LUMA)


def test_dc_category_out_of_range():
    table = HuffmanTable((1,) + (0,) * 15, (12,))
    with pytest.raises(CorruptEntropyStream):
        decode_block(BitReader(b'\x00'), 0, table, STD_AC_LUMA)


def _frame_420(width=32, height=16):
    return Frame(width, height, [Component(1, 2, 2, 0), Component(2, 1, 1, 1), Component(3, 1, 1, 1)])


def test_interleaved_mcu_order():
    frame = _frame_420()
    scs = [ScanComponent(c) for c in frame.components]
    units = list(MCUPipeline(frame).mcu_units(scs))
    assert len(units) == 2
    first = [(sc.component.component_id, row, col) for sc, row, col in units[0]]
    assert first == [(1, 0, 0), (1, 0, 1), (1, 1, 0), (1, 1, 1), (2, 0, 0), (3, 0, 0)]
    assert units[1][0][1:] == (0, 2)


def test_single_component_scan_uses_own_grid():
    """Non-interleaved luma of a 40x24 4:2:0 frame codes 3x5 blocks, not the 4x6 MCU grid."""
    frame = _frame_420(40, 24)
    luma = ScanComponent(frame.components[0])
    assert frame.block_grid(luma.component) == (4, 6)
    units = list(MCUPipeline(frame).mcu_units([luma]))
    assert len(units) == 3 * 5
    assert units[5][0][1:] == (1, 0)

    chroma = list(MCUPipeline(frame).mcu_units([ScanComponent(frame.components[1])]))
    assert len(chroma) == 2 * 3


def _gray_coefficients(frame):
    pipeline = MCUPipeline(frame)
    coefficients = pipeline.allocate_coefficients()
    rng = np.random.default_rng(2)
    zz = coefficients[1]
    zz[..., 0] = rng.integers(-50, 50, zz.shape[:2])
    zz[..., 1:4] = rng.integers(-5, 5, zz.shape[:2] + (3,))
    return pipeline, coefficients


def test_scan_round_trip_with_restarts():
    frame = Frame(32, 32, [Component(1)])
    pipeline, coefficients = _gray_coefficients(frame)
    scs = [ScanComponent(frame.components[0])]
    data = pipeline.encode_scan(coefficients, scs, {0: STD_DC_LUMA}, {0: STD_AC_LUMA}, restart_interval=5)
    # 16 blocks, one MCU each: markers after MCUs 5 and 10 and 15
    assert data.count(b'\xff\xd0') == 1
    assert data.count(b'\xff\xd1') == 1
    assert data.count(b'\xff\xd2') == 1

    decoded = pipeline.allocate_coefficients()
    pipeline.decode_scan(data, scs, {0: STD_DC_LUMA}, {0: STD_AC_LUMA}, decoded, restart_interval=5)
    assert np.array_equal(decoded[1], coefficients[1])


def test_restart_interval_from_pipeline_default():
    frame = Frame(16, 16, [Component(1)])
    pipeline = MCUPipeline(frame, restart_interval=1)
    coefficients = pipeline.allocate_coefficients()
    scs = [ScanComponent(frame.components[0])]
    data = pipeline.encode_scan(coefficients, scs, {0: STD_DC_LUMA}, {0: STD_AC_LUMA})
    assert b'\xff\xd2' in data
    assert b'\xff\xd3' not in data


def test_transform_clips_ac_range():
    frame = Frame(8, 8, [Component(1)])
    pipeline = MCUPipeline(frame)
    checker = np.indices((8, 8)).sum(axis=0) % 2 * 255.0
    table = {0: QuantizationTable((1,) * 64)}
    zz = pipeline.transform([checker], table)[1]
    assert np.abs(zz[..., 1:]).max() <= 1023
