"""MCU-ordered block coding: transform, quantize, zig-zag and entropy code."""

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from engines.bitstream import BitReader, BitWriter
from engines.block_processor import merge_blocks, split_into_blocks
from engines.dct_engine import decode_block as inverse_transform
from engines.dct_engine import encode_block as forward_transform
from engines.huffman import HuffmanTable, encode_magnitude, extend, magnitude_category
from engines.quantizer import QuantizationTable
from models.errors import CorruptEntropyStream
from models.frame import Frame, ScanComponent
from utils.constants import INVERSE_ZIGZAG_ORDER, ZIGZAG_ORDER

logger = logging.getLogger(__name__)

# 8-bit baseline: AC amplitudes fit category 10, DC differences category 11
AC_LIMIT = 1023
MAX_DC_CATEGORY = 11

ACSymbol = Tuple[int, int, int]


def zigzag_scan(blocks: np.ndarray) -> np.ndarray:
    """(..., 8, 8) natural-order blocks -> (..., 64) zig-zag vectors."""
    flat = blocks.reshape(blocks.shape[:-2] + (64,))
    return flat[..., ZIGZAG_ORDER]


def inverse_zigzag(zz: np.ndarray) -> np.ndarray:
    """(..., 64) zig-zag vectors -> (..., 8, 8) natural-order blocks."""
    return zz[..., INVERSE_ZIGZAG_ORDER].reshape(zz.shape[:-1] + (8, 8))


def run_length_encode(zz: Sequence[int]) -> List[ACSymbol]:
    """AC coefficients of one zig-zag block as (run, size, amplitude) symbols.

    (15, 0, 0) is ZRL, sixteen zeros with a nonzero coefficient still to
    come; (0, 0, 0) is EOB, emitted when the block ends in zeros.
    """
    zz = np.asarray(zz)
    symbols = []
    last = 0
    for k in np.flatnonzero(zz[1:64]) + 1:
        run = k - last - 1
        while run > 15:
            symbols.append((15, 0, 0))
            run -= 16
        value = int(zz[k])
        symbols.append((int(run), magnitude_category(value), value))
        last = k
    if last < 63:
        symbols.append((0, 0, 0))
    return symbols


def encode_block(
    writer: BitWriter,
    zz: Sequence[int],
    pred: int,
    dc_table: HuffmanTable,
    ac_table: HuffmanTable
) -> int:
    """Entropy code one block; returns the DC value as the next predictor."""
    dc = int(zz[0])
    diff = dc - pred
    size = magnitude_category(diff)
    writer.write_bits(*dc_table.encode(size))
    writer.write_bits(encode_magnitude(diff, size), size)

    for run, size, value in run_length_encode(zz):
        writer.write_bits(*ac_table.encode((run << 4) | size))
        writer.write_bits(encode_magnitude(value, size), size)
    return dc


def decode_block(
    reader: BitReader,
    pred: int,
    dc_table: HuffmanTable,
    ac_table: HuffmanTable
) -> Tuple[np.ndarray, int]:
    """Decode one block; returns (zig-zag coefficients, DC predictor)."""
    zz = np.zeros(64, dtype=np.int32)

    size = dc_table.decode(reader)
    if size > MAX_DC_CATEGORY:
        raise CorruptEntropyStream(f"DC magnitude category {size} is out of range")
    dc = pred + extend(reader.receive(size), size)
    zz[0] = dc

    k = 1
    while k < 64:
        rs = ac_table.decode(reader)
        run, size = rs >> 4, rs & 0x0F
        if size == 0:
            if run != 15:
                break
            k += 16
            if k > 64:
                raise CorruptEntropyStream("zero run overruns the 64-coefficient block")
            continue
        k += run
        if k > 63:
            raise CorruptEntropyStream("AC run overruns the 64-coefficient block")
        zz[k] = extend(reader.receive(size), size)
        k += 1
    return zz, dc


class MCUPipeline:
    """
    Walks a frame in MCU order.

    Coefficients are kept per component id as ``(block_rows, block_cols, 64)``
    integer arrays in zig-zag order, sized to whole MCUs. DC predictors are
    a per-component dict local to each scan and reset at restart markers.
    """

    def __init__(self, frame: Frame, dct_method: str = 'float', restart_interval: int = 0):
        self.frame = frame
        self.dct_method = dct_method
        self.restart_interval = restart_interval

    def allocate_coefficients(self) -> Dict[int, np.ndarray]:
        coefficients = {}
        for component in self.frame.components:
            rows, cols = self.frame.block_grid(component)
            coefficients[component.component_id] = np.zeros((rows, cols, 64), dtype=np.int32)
        return coefficients

    def mcu_units(self, scan_components: Sequence[ScanComponent]) -> Iterator[List[Tuple[ScanComponent, int, int]]]:
        """Yield, per MCU in raster order, its (scan component, block row, block col) list."""
        if len(scan_components) == 1:
            # Non-interleaved: one block per MCU over the component's own grid
            sc = scan_components[0]
            rows, cols = self.frame.scan_block_grid(sc.component)
            for row in range(rows):
                for col in range(cols):
                    yield [(sc, row, col)]
            return

        for mcu_y in range(self.frame.mcus_y):
            for mcu_x in range(self.frame.mcus_x):
                units = []
                for sc in scan_components:
                    c = sc.component
                    for by in range(c.v_sampling):
                        for bx in range(c.h_sampling):
                            units.append((sc, mcu_y * c.v_sampling + by, mcu_x * c.h_sampling + bx))
                yield units

    def transform(self, planes: Sequence[np.ndarray], quant_tables: Dict[int, QuantizationTable]) -> Dict[int, np.ndarray]:
        """Forward DCT, quantize and zig-zag MCU-padded planes (frame component order)."""
        coefficients = {}
        for component, plane in zip(self.frame.components, planes):
            blocks = split_into_blocks(plane)
            expected = self.frame.block_grid(component)
            if blocks.shape[:2] != expected:
                raise ValueError(
                    f"Component {component.component_id} has {blocks.shape[:2]} blocks, expected {expected}"
                )
            table = quant_tables[component.quant_table_id]
            levels = table.quantize(forward_transform(blocks, self.dct_method))
            zz = zigzag_scan(levels)
            zz[..., 1:] = np.clip(zz[..., 1:], -AC_LIMIT, AC_LIMIT)
            coefficients[component.component_id] = zz
        return coefficients

    def encode_scan(
        self,
        coefficients: Dict[int, np.ndarray],
        scan_components: Sequence[ScanComponent],
        dc_tables: Dict[int, HuffmanTable],
        ac_tables: Dict[int, HuffmanTable],
        restart_interval: Optional[int] = None
    ) -> bytes:
        """Entropy-coded segment for one scan, byte-stuffed and flushed."""
        interval = self.restart_interval if restart_interval is None else restart_interval
        preds = {sc.component.component_id: 0 for sc in scan_components}
        restarts = 0

        with BitWriter() as writer:
            for mcu_index, units in enumerate(self.mcu_units(scan_components)):
                if interval and mcu_index and mcu_index % interval == 0:
                    writer.write_restart_marker(restarts)
                    restarts += 1
                    preds = dict.fromkeys(preds, 0)
                for sc, row, col in units:
                    cid = sc.component.component_id
                    preds[cid] = encode_block(
                        writer, coefficients[cid][row, col], preds[cid],
                        dc_tables[sc.dc_table_id], ac_tables[sc.ac_table_id]
                    )

        data = writer.getvalue()
        logger.debug("Encoded scan of %d component(s): %d bytes, %d restart marker(s)",
                     len(scan_components), len(data), restarts)
        return data

    def decode_scan(
        self,
        data: bytes,
        scan_components: Sequence[ScanComponent],
        dc_tables: Dict[int, HuffmanTable],
        ac_tables: Dict[int, HuffmanTable],
        coefficients: Dict[int, np.ndarray],
        start: int = 0,
        end: Optional[int] = None,
        restart_interval: Optional[int] = None
    ) -> None:
        """Decode one scan's entropy-coded segment into ``coefficients``."""
        interval = self.restart_interval if restart_interval is None else restart_interval
        reader = BitReader(data, start, end)
        preds = {sc.component.component_id: 0 for sc in scan_components}
        restarts = 0

        for mcu_index, units in enumerate(self.mcu_units(scan_components)):
            if interval and mcu_index and mcu_index % interval == 0:
                reader.read_restart_marker(restarts)
                restarts += 1
                preds = dict.fromkeys(preds, 0)
            for sc, row, col in units:
                cid = sc.component.component_id
                zz, preds[cid] = decode_block(
                    reader, preds[cid], dc_tables[sc.dc_table_id], ac_tables[sc.ac_table_id]
                )
                coefficients[cid][row, col] = zz

        logger.debug("Decoded scan of %d component(s), %d restart marker(s)", len(scan_components), restarts)

    def reconstruct(self, coefficients: Dict[int, np.ndarray], quant_tables: Dict[int, QuantizationTable]) -> List[np.ndarray]:
        """Dequantize, inverse DCT and level shift into MCU-padded sample planes."""
        planes = []
        for component in self.frame.components:
            zz = coefficients[component.component_id]
            table = quant_tables[component.quant_table_id]
            blocks = inverse_transform(table.dequantize(inverse_zigzag(zz)), self.dct_method)
            planes.append(merge_blocks(blocks))
        return planes
