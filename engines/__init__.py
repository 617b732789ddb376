"""Baseline JPEG engines - pure computation over in-memory buffers."""

from .color_space import rgb_to_ycbcr, ycbcr_to_rgb, subsample_chroma, upsample_chroma
from .block_processor import pad_to_shape, split_into_blocks, merge_blocks
from .dct_engine import dct2, idct2, dct2_fixed, idct2_fixed, encode_block, decode_block
from .quantizer import QuantizationTable, scale_quant_matrix, quantize, dequantize
from .bitstream import BitReader, BitWriter
from .huffman import HuffmanTable
from .mcu import MCUPipeline, run_length_encode
from .markers import parse as parse_markers
from .pipeline import encode, decode, compress_reconstruct

__all__ = [
    'rgb_to_ycbcr',
    'ycbcr_to_rgb',
    'subsample_chroma',
    'upsample_chroma',
    'pad_to_shape',
    'split_into_blocks',
    'merge_blocks',
    'dct2',
    'idct2',
    'dct2_fixed',
    'idct2_fixed',
    'encode_block',
    'decode_block',
    'QuantizationTable',
    'scale_quant_matrix',
    'quantize',
    'dequantize',
    'BitReader',
    'BitWriter',
    'HuffmanTable',
    'MCUPipeline',
    'run_length_encode',
    'parse_markers',
    'encode',
    'decode',
    'compress_reconstruct',
]
