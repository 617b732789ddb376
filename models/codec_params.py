"""Encoder and decoder parameters."""

from dataclasses import dataclass, field
from typing import Literal, Optional

import numpy as np

from models.errors import InvalidQuality
from utils.constants import JPEG_CHROMA_Q50, JPEG_LUMA_Q50


@dataclass
class EncoderParams:
    """Baseline JPEG encoder parameters."""

    quality: int = 75
    subsampling_mode: Literal['4:4:4', '4:2:2', '4:2:0'] = '4:2:0'
    dct_method: Literal['float', 'fixed'] = 'float'
    use_prefilter: bool = False
    restart_interval: int = 0
    write_jfif: bool = True
    comment: Optional[str] = None
    luma_base_table: np.ndarray = field(default_factory=lambda: JPEG_LUMA_Q50.copy(), repr=False)
    chroma_base_table: np.ndarray = field(default_factory=lambda: JPEG_CHROMA_Q50.copy(), repr=False)

    def __post_init__(self):
        if isinstance(self.quality, bool) or not isinstance(self.quality, (int, np.integer)):
            raise InvalidQuality(f"Quality must be an integer, got {self.quality!r}")
        if not (1 <= self.quality <= 100):
            raise InvalidQuality(f"Quality must be 1-100, got {self.quality}")
        if self.subsampling_mode not in ('4:4:4', '4:2:2', '4:2:0'):
            raise ValueError(f"Subsampling mode must be 4:4:4, 4:2:2 or 4:2:0, got {self.subsampling_mode}")
        if self.dct_method not in ('float', 'fixed'):
            raise ValueError(f"DCT method must be 'float' or 'fixed', got {self.dct_method}")
        if not (0 <= self.restart_interval <= 0xFFFF):
            raise ValueError(f"Restart interval must be 0-65535, got {self.restart_interval}")
        for name in ('luma_base_table', 'chroma_base_table'):
            table = np.asarray(getattr(self, name), dtype=np.float64)
            if table.shape != (8, 8):
                raise ValueError(f"{name} must be 8x8, got shape {table.shape}")
            if np.any(table <= 0):
                raise ValueError(f"{name} entries must be positive")
            setattr(self, name, table)


@dataclass
class DecoderParams:
    """Baseline JPEG decoder parameters."""

    dct_method: Literal['float', 'fixed'] = 'float'
    upsampling: Literal['bilinear', 'nearest'] = 'bilinear'

    def __post_init__(self):
        if self.dct_method not in ('float', 'fixed'):
            raise ValueError(f"DCT method must be 'float' or 'fixed', got {self.dct_method}")
        if self.upsampling not in ('bilinear', 'nearest'):
            raise ValueError(f"Upsampling must be 'bilinear' or 'nearest', got {self.upsampling}")
