"""Color space conversion and chroma subsampling."""

import numpy as np
import cv2
from typing import Dict, Literal, Tuple

from models.errors import InvalidComponentCount

SubsamplingMode = Literal['4:4:4', '4:2:2', '4:2:0']

# (h, v) sampling factors for Y; chroma components are always 1x1
_LUMA_FACTORS: Dict[str, Tuple[int, int]] = {
    '4:4:4': (1, 1),
    '4:2:2': (2, 1),
    '4:2:0': (2, 2),
}


def validate_component_count(count: int) -> int:
    if count not in (1, 3):
        raise InvalidComponentCount(f"Component count must be 1 or 3, got {count}")
    return count


def sampling_factors(mode: str, component_count: int = 3) -> Tuple[Tuple[int, int], ...]:
    """Per-component (h, v) sampling factors for a subsampling mode."""
    validate_component_count(component_count)
    if mode not in _LUMA_FACTORS:
        raise ValueError(f"Unknown subsampling mode: {mode}")
    if component_count == 1:
        return ((1, 1),)
    return (_LUMA_FACTORS[mode], (1, 1), (1, 1))


def rgb_to_ycbcr(rgb: np.ndarray) -> np.ndarray:
    """RGB to YCbCr using ITU-R BT.601, clamped to [0, 255]."""
    R, G, B = rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]
    Y = 0.299 * R + 0.587 * G + 0.114 * B
    Cb = -0.168736 * R - 0.331264 * G + 0.5 * B + 128.0
    Cr = 0.5 * R - 0.418688 * G - 0.081312 * B + 128.0
    return np.clip(np.stack([Y, Cb, Cr], axis=-1), 0, 255)


def ycbcr_to_rgb(ycbcr: np.ndarray) -> np.ndarray:
    """YCbCr to RGB using ITU-R BT.601."""
    Y, Cb, Cr = ycbcr[:, :, 0], ycbcr[:, :, 1], ycbcr[:, :, 2]
    R = Y + 1.402 * (Cr - 128.0)
    G = Y - 0.344136 * (Cb - 128.0) - 0.714136 * (Cr - 128.0)
    B = Y + 1.772 * (Cb - 128.0)
    rgb = np.stack([R, G, B], axis=-1)
    return np.clip(rgb, 0, 255)


def subsample_chroma(
    cb: np.ndarray,
    cr: np.ndarray,
    mode: SubsamplingMode,
    use_prefilter: bool = False
) -> Tuple[np.ndarray, np.ndarray]:
    """Subsample chroma channels according to mode."""
    if mode == '4:4:4':
        return cb.copy(), cr.copy()

    cb = np.ascontiguousarray(cb, dtype=np.float32)
    cr = np.ascontiguousarray(cr, dtype=np.float32)

    # Anti-alias blur before downsampling
    if use_prefilter:
        cb = cv2.GaussianBlur(cb, (3, 3), sigmaX=0.75)
        cr = cv2.GaussianBlur(cr, (3, 3), sigmaX=0.75)

    if mode == '4:2:2':
        # Horizontal 2x downsample
        size = (cb.shape[1] // 2, cb.shape[0])
    elif mode == '4:2:0':
        # 2x2 downsample
        size = (cb.shape[1] // 2, cb.shape[0] // 2)
    else:
        raise ValueError(f"Unknown subsampling mode: {mode}")

    cb_sub = cv2.resize(cb, size, interpolation=cv2.INTER_AREA)
    cr_sub = cv2.resize(cr, size, interpolation=cv2.INTER_AREA)
    return cb_sub.astype(np.float64), cr_sub.astype(np.float64)


def upsample_chroma(
    cb_sub: np.ndarray,
    cr_sub: np.ndarray,
    target_shape: Tuple[int, int],
    method: str = 'bilinear'
) -> Tuple[np.ndarray, np.ndarray]:
    """Upsample chroma channels to target resolution."""
    return upsample_plane(cb_sub, target_shape, method), upsample_plane(cr_sub, target_shape, method)


def upsample_plane(
    plane: np.ndarray,
    target_shape: Tuple[int, int],
    method: str = 'bilinear'
) -> np.ndarray:
    """Resize one component plane to (rows, cols); no-op if already that size."""
    if plane.shape == tuple(target_shape):
        return plane
    interp = cv2.INTER_LINEAR if method == 'bilinear' else cv2.INTER_NEAREST
    size = (target_shape[1], target_shape[0])
    up = cv2.resize(np.ascontiguousarray(plane, dtype=np.float32), size, interpolation=interp)
    return up.astype(np.float64)
