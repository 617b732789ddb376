"""Quantization operations."""

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from models.errors import InvalidQuality
from utils.constants import INVERSE_ZIGZAG_ORDER, ZIGZAG_ORDER


def scale_quant_matrix(base_matrix: np.ndarray, quality: int) -> np.ndarray:
    """Scale quantization matrix by quality factor (1-100)."""
    if not 1 <= quality <= 100:
        raise InvalidQuality(f"Quality must be 1-100, got {quality}")

    # IJG scaling formula; quality 50 gives the base table back
    if quality < 50:
        scale = 5000.0 / quality
    else:
        scale = 200.0 - 2.0 * quality

    Q = np.floor((np.asarray(base_matrix, dtype=np.float64) * scale + 50.0) / 100.0)
    Q = np.clip(Q, 1, 255)
    return Q.astype(np.float64)


def quantize(dct_coeffs: np.ndarray, Q_matrix: np.ndarray) -> np.ndarray:
    """Quantize DCT coefficients."""
    return np.round(dct_coeffs / Q_matrix).astype(np.int32)


def dequantize(quantized: np.ndarray, Q_matrix: np.ndarray) -> np.ndarray:
    """Dequantize coefficients."""
    return quantized.astype(np.float64) * Q_matrix


@dataclass(frozen=True)
class QuantizationTable:
    """64 quantization factors stored in zig-zag order, as DQT carries them."""

    zigzag: Tuple[int, ...]

    def __post_init__(self):
        values = tuple(int(v) for v in self.zigzag)
        if len(values) != 64:
            raise ValueError(f"Quantization table needs 64 entries, got {len(values)}")
        if any(v <= 0 for v in values):
            raise ValueError("Quantization factors must be positive")
        if any(v > 0xFFFF for v in values):
            raise ValueError("Quantization factors must fit in 16 bits")
        object.__setattr__(self, 'zigzag', values)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> 'QuantizationTable':
        flat = np.asarray(matrix).reshape(64)
        return cls(tuple(int(v) for v in flat[ZIGZAG_ORDER]))

    @classmethod
    def from_zigzag(cls, values: Sequence[int]) -> 'QuantizationTable':
        return cls(tuple(values))

    @classmethod
    def from_quality(cls, base_matrix: np.ndarray, quality: int) -> 'QuantizationTable':
        return cls.from_matrix(scale_quant_matrix(base_matrix, quality))

    @property
    def matrix(self) -> np.ndarray:
        """Factors as a natural-order 8x8 float matrix."""
        zz = np.asarray(self.zigzag, dtype=np.float64)
        return zz[INVERSE_ZIGZAG_ORDER].reshape(8, 8)

    @property
    def precision(self) -> int:
        """DQT Pq: 0 for 8-bit factors, 1 for 16-bit."""
        return 1 if max(self.zigzag) > 255 else 0

    def quantize(self, dct_coeffs: np.ndarray) -> np.ndarray:
        return quantize(dct_coeffs, self.matrix)

    def dequantize(self, quantized: np.ndarray) -> np.ndarray:
        return dequantize(quantized, self.matrix)
