"""Frame geometry, components and decoded image containers."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from utils.constants import BLOCK_SIZE


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


@dataclass
class Component:
    """One frame component as declared in SOF."""

    component_id: int
    h_sampling: int = 1
    v_sampling: int = 1
    quant_table_id: int = 0

    def __post_init__(self):
        if not (1 <= self.h_sampling <= 4 and 1 <= self.v_sampling <= 4):
            raise ValueError(
                f"Sampling factors must be 1-4, got ({self.h_sampling}, {self.v_sampling})"
            )
        if not 0 <= self.quant_table_id <= 3:
            raise ValueError(f"Quantization table id must be 0-3, got {self.quant_table_id}")


@dataclass
class ScanComponent:
    """Component selector plus its entropy table ids, as declared in SOS."""

    component: Component
    dc_table_id: int = 0
    ac_table_id: int = 0


@dataclass
class Frame:
    """Frame header (SOF) with the MCU geometry derived from it."""

    width: int
    height: int
    components: List[Component]
    precision: int = 8

    @property
    def max_h(self) -> int:
        return max(c.h_sampling for c in self.components)

    @property
    def max_v(self) -> int:
        return max(c.v_sampling for c in self.components)

    @property
    def mcu_width(self) -> int:
        return BLOCK_SIZE * self.max_h

    @property
    def mcu_height(self) -> int:
        return BLOCK_SIZE * self.max_v

    @property
    def mcus_x(self) -> int:
        return _ceil_div(self.width, self.mcu_width)

    @property
    def mcus_y(self) -> int:
        return _ceil_div(self.height, self.mcu_height)

    @property
    def padded_shape(self) -> Tuple[int, int]:
        """Full-resolution (rows, cols) covered by whole MCUs."""
        return self.mcus_y * self.mcu_height, self.mcus_x * self.mcu_width

    def component_shape(self, component: Component) -> Tuple[int, int]:
        """Unpadded (rows, cols) of a component plane (T.81 A.1.1)."""
        return (
            _ceil_div(self.height * component.v_sampling, self.max_v),
            _ceil_div(self.width * component.h_sampling, self.max_h),
        )

    def block_grid(self, component: Component) -> Tuple[int, int]:
        """(rows, cols) of blocks stored for a component, covering whole MCUs."""
        return self.mcus_y * component.v_sampling, self.mcus_x * component.h_sampling

    def scan_block_grid(self, component: Component) -> Tuple[int, int]:
        """(rows, cols) of blocks coded in a single-component scan."""
        rows, cols = self.component_shape(component)
        return _ceil_div(rows, BLOCK_SIZE), _ceil_div(cols, BLOCK_SIZE)

    def component_by_id(self, component_id: int) -> Optional[Component]:
        for component in self.components:
            if component.component_id == component_id:
                return component
        return None


@dataclass
class JFIFHeader:
    """APP0 JFIF fields."""

    version: Tuple[int, int] = (1, 1)
    units: int = 0
    x_density: int = 1
    y_density: int = 1
    thumbnail_size: Tuple[int, int] = (0, 0)


@dataclass
class DecodedImage:
    """Decoder output: grayscale (H, W) or RGB (H, W, 3) uint8 pixels."""

    pixels: np.ndarray
    width: int
    height: int
    component_count: int
    jfif: Optional[JFIFHeader] = None
    comments: List[bytes] = field(default_factory=list)

    def tobytes(self) -> bytes:
        """Row-major, one byte per channel per sample."""
        return np.ascontiguousarray(self.pixels, dtype=np.uint8).tobytes()
