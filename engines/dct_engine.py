"""DCT/IDCT operations with level shift.

All functions accept a single 8x8 block or any stack of blocks whose last
two axes are 8x8. The 2D transform is applied as two separable 1D passes:
rows first, then columns.
"""

from typing import Callable, Tuple

import numpy as np
from scipy.fft import dct, idct

from utils.constants import BLOCK_SIZE


def dct2(block: np.ndarray) -> np.ndarray:
    """2D DCT-II with orthonormal normalization."""
    rows = dct(np.asarray(block, dtype=np.float64), type=2, axis=-1, norm='ortho')
    return dct(rows, type=2, axis=-2, norm='ortho')


def idct2(coeffs: np.ndarray) -> np.ndarray:
    """2D inverse DCT (Type-III)."""
    rows = idct(np.asarray(coeffs, dtype=np.float64), type=2, axis=-1, norm='ortho')
    return idct(rows, type=2, axis=-2, norm='ortho')


def _dct_matrix(n: int = BLOCK_SIZE) -> np.ndarray:
    """Orthonormal DCT-II basis, C[k, x] = c(k) cos((2x+1) k pi / 2n)."""
    k = np.arange(n).reshape(-1, 1)
    x = np.arange(n).reshape(1, -1)
    C = np.sqrt(2.0 / n) * np.cos((2 * x + 1) * k * np.pi / (2 * n))
    C[0, :] = np.sqrt(1.0 / n)
    return C


# Fixed-point constants: 13 fractional bits, plus 2 bits kept between passes
CONST_BITS = 13
PASS1_BITS = 2
DCT_MATRIX_FIXED = np.round(_dct_matrix() * (1 << CONST_BITS)).astype(np.int64)


def _descale(x: np.ndarray, n: int) -> np.ndarray:
    """Right shift by n with round-half-up."""
    return (x + (1 << (n - 1))) >> n


def dct2_fixed(block: np.ndarray) -> np.ndarray:
    """Integer-arithmetic 2D DCT-II.

    Input samples are rounded to integers. Output keeps PASS1_BITS of
    fraction so that a following :func:`idct2_fixed` lands within one level
    of the original samples.
    """
    x = np.rint(block).astype(np.int64)
    M = DCT_MATRIX_FIXED
    rows = _descale(x @ M.T, CONST_BITS - PASS1_BITS)
    cols = _descale(np.swapaxes(rows, -1, -2) @ M.T, CONST_BITS)
    return np.swapaxes(cols, -1, -2).astype(np.float64) / (1 << PASS1_BITS)


def idct2_fixed(coeffs: np.ndarray) -> np.ndarray:
    """Integer-arithmetic 2D inverse DCT, returns integer-valued samples."""
    F = np.rint(np.asarray(coeffs, dtype=np.float64) * (1 << PASS1_BITS)).astype(np.int64)
    M = DCT_MATRIX_FIXED
    rows = _descale(F @ M, CONST_BITS)
    cols = _descale(np.swapaxes(rows, -1, -2) @ M, CONST_BITS + PASS1_BITS)
    return np.swapaxes(cols, -1, -2).astype(np.float64)


_DCT_METHODS = {
    'float': (dct2, idct2),
    'fixed': (dct2_fixed, idct2_fixed),
}


def get_dct_pair(method: str) -> Tuple[Callable, Callable]:
    """Forward/inverse transform functions for 'float' or 'fixed'."""
    try:
        return _DCT_METHODS[method]
    except KeyError:
        raise ValueError(f"Unknown DCT method: {method}") from None


def encode_block(block: np.ndarray, method: str = 'float') -> np.ndarray:
    """Level shift (-128) then DCT."""
    forward, _ = get_dct_pair(method)
    shifted = np.asarray(block, dtype=np.float64) - 128.0
    return forward(shifted)


def decode_block(coeffs: np.ndarray, method: str = 'float') -> np.ndarray:
    """IDCT then reverse level shift (+128), round and clip to [0,255]."""
    _, inverse = get_dct_pair(method)
    spatial = inverse(coeffs)
    unshifted = np.round(spatial + 128.0)
    return np.clip(unshifted, 0, 255)
