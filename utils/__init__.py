"""Shared utilities."""

from .constants import JPEG_LUMA_Q50, JPEG_CHROMA_Q50, ZIGZAG_ORDER
from .metrics import compute_psnr_ssim, Timer, compute_bitrate
from .test_images import generate_colored_checkerboard, generate_thin_stripes, generate_demo_image
from .image_io import load_image, save_image

__all__ = [
    'JPEG_LUMA_Q50',
    'JPEG_CHROMA_Q50',
    'ZIGZAG_ORDER',
    'compute_psnr_ssim',
    'Timer',
    'compute_bitrate',
    'generate_colored_checkerboard',
    'generate_thin_stripes',
    'generate_demo_image',
    'load_image',
    'save_image',
]
