"""Round-trip result with metrics."""

from dataclasses import dataclass
import numpy as np


@dataclass
class CompressionResult:
    """Results from an encode/decode round trip."""

    original_image: np.ndarray
    reconstructed_image: np.ndarray
    encoded: bytes

    # Quality metrics
    psnr_y: float
    ssim_y: float
    psnr_rgb: float
    ssim_rgb: float

    # Compression stats
    bpp: float
    compression_ratio: float

    # Runtime
    encode_time_ms: float
    decode_time_ms: float

    @property
    def encoded_size(self) -> int:
        return len(self.encoded)
