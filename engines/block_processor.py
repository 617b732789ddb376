"""Block processing: padding, splitting, merging."""

import numpy as np
from typing import Tuple

from utils.constants import BLOCK_SIZE


def pad_to_shape(channel: np.ndarray, shape: Tuple[int, int]) -> np.ndarray:
    """Pad channel bottom/right to shape by replicating the edge samples."""
    h, w = channel.shape
    pad_h = shape[0] - h
    pad_w = shape[1] - w
    if pad_h < 0 or pad_w < 0:
        raise ValueError(f"Cannot pad {channel.shape} down to {shape}")
    if pad_h > 0 or pad_w > 0:
        return np.pad(channel, ((0, pad_h), (0, pad_w)), mode='edge')
    return channel.copy()


def split_into_blocks(channel: np.ndarray, block_size: int = BLOCK_SIZE) -> np.ndarray:
    """Split 2D channel (dims divisible by block_size) into a (rows, cols, B, B) grid."""
    h, w = channel.shape
    if h % block_size or w % block_size:
        raise ValueError(f"Channel shape {channel.shape} is not a multiple of {block_size}")
    grid = channel.reshape(h // block_size, block_size, w // block_size, block_size)
    return grid.swapaxes(1, 2).copy()


def merge_blocks(blocks: np.ndarray) -> np.ndarray:
    """Merge a (rows, cols, B, B) block grid back into a 2D channel."""
    rows, cols, bh, bw = blocks.shape
    return blocks.swapaxes(1, 2).reshape(rows * bh, cols * bw)
