"""Metrics: PSNR, SSIM, bitrate."""

import time
import numpy as np
from skimage.metrics import peak_signal_noise_ratio, structural_similarity
from typing import Dict, Tuple


def _luma(rgb: np.ndarray) -> np.ndarray:
    # BT.601
    rgb = rgb.astype(np.float64)
    return 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]


def _psnr(original: np.ndarray, reconstructed: np.ndarray) -> float:
    if np.array_equal(original, reconstructed):
        return float('inf')
    return float(peak_signal_noise_ratio(original, reconstructed, data_range=255))


def compute_psnr_ssim(original: np.ndarray, reconstructed: np.ndarray) -> Dict[str, float]:
    """Compute PSNR and SSIM on the full image and its Y channel.

    Grayscale (H, W) input reports the same values for both.
    """
    if original.ndim == 2:
        psnr = _psnr(original, reconstructed)
        ssim = float(structural_similarity(original, reconstructed, data_range=255))
        return {'psnr_rgb': psnr, 'ssim_rgb': ssim, 'psnr_y': psnr, 'ssim_y': ssim}

    psnr_rgb = _psnr(original, reconstructed)
    ssim_rgb = structural_similarity(
        original, reconstructed, channel_axis=2, data_range=255
    )

    original_y = _luma(original)
    recon_y = _luma(reconstructed)

    psnr_y = _psnr(original_y, recon_y)
    ssim_y = structural_similarity(original_y, recon_y, data_range=255)

    return {
        'psnr_rgb': psnr_rgb,
        'ssim_rgb': float(ssim_rgb),
        'psnr_y': psnr_y,
        'ssim_y': float(ssim_y)
    }


class Timer:
    """Simple timer for encode/decode runtime."""

    def __init__(self):
        self.encode_time_ms = 0.0
        self.decode_time_ms = 0.0

    def measure_encode(self, func, *args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        self.encode_time_ms = (time.perf_counter() - start) * 1000.0
        return result

    def measure_decode(self, func, *args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        self.decode_time_ms = (time.perf_counter() - start) * 1000.0
        return result


def compute_bitrate(encoded_bytes: int, image_shape: Tuple[int, ...]) -> Dict[str, float]:
    """Bits per pixel and compression ratio of an encoded stream."""
    h, w = image_shape[:2]
    channels = image_shape[2] if len(image_shape) == 3 else 1
    num_pixels = h * w
    original_bits = num_pixels * channels * 8
    encoded_bits = encoded_bytes * 8
    return {
        'bpp': float(encoded_bits / num_pixels),
        'compression_ratio': float(original_bits / max(encoded_bits, 1)),
    }
