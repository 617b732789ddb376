"""Image I/O using OpenCV."""

import cv2
import numpy as np


def load_image(path: str, grayscale: bool = False) -> np.ndarray:
    """Load image as RGB (or single-channel) uint8."""
    if grayscale:
        img = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
    else:
        img = cv2.imread(path, cv2.IMREAD_COLOR)
    if img is None:
        raise ValueError(f"Could not load image from {path}")
    if grayscale:
        return img
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def save_image(image: np.ndarray, path: str) -> None:
    """Save RGB or grayscale image; format follows the file extension."""
    if image.ndim == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    if not cv2.imwrite(path, image):
        raise ValueError(f"Could not write image to {path}")
