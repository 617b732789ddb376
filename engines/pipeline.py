"""Encode/decode entry points and the round-trip analysis pipeline."""

import dataclasses
import logging
from typing import List, Optional, Union

import numpy as np

from engines.block_processor import pad_to_shape
from engines.color_space import (
    rgb_to_ycbcr, ycbcr_to_rgb, sampling_factors, subsample_chroma,
    upsample_plane, validate_component_count,
)
from engines.huffman import STD_AC_CHROMA, STD_AC_LUMA, STD_DC_CHROMA, STD_DC_LUMA
from engines.markers import build_stream, parse
from engines.mcu import MCUPipeline
from engines.quantizer import QuantizationTable
from models.codec_params import DecoderParams, EncoderParams
from models.compression_result import CompressionResult
from models.errors import InvalidDimensions
from models.frame import Component, DecodedImage, Frame, JFIFHeader, ScanComponent
from utils.constants import BLOCK_SIZE
from utils.metrics import Timer, compute_bitrate, compute_psnr_ssim

logger = logging.getLogger(__name__)

MAX_DIMENSION = 0xFFFF

PixelInput = Union[np.ndarray, bytes, bytearray, memoryview]


def _check_dimensions(width: int, height: int) -> None:
    if not (1 <= width <= MAX_DIMENSION and 1 <= height <= MAX_DIMENSION):
        raise InvalidDimensions(f"Width and height must be 1-{MAX_DIMENSION}, got {width}x{height}")


def _as_image_array(
    pixels: PixelInput,
    width: Optional[int],
    height: Optional[int],
    component_count: Optional[int]
) -> np.ndarray:
    """Validate input and return an (H, W, C) uint8 view."""
    if isinstance(pixels, np.ndarray):
        image = pixels[:, :, np.newaxis] if pixels.ndim == 2 else pixels
        if image.ndim != 3:
            raise InvalidDimensions(f"Pixel array must be 2D or 3D, got shape {pixels.shape}")
        h, w, c = image.shape
        if (width is not None and width != w) or (height is not None and height != h):
            raise InvalidDimensions(f"Declared size {width}x{height} does not match array {w}x{h}")
        if component_count is not None and component_count != c:
            validate_component_count(component_count)
            raise InvalidDimensions(f"Declared {component_count} components, array has {c}")
        validate_component_count(c)
        _check_dimensions(w, h)
        if image.dtype != np.uint8:
            if not np.issubdtype(image.dtype, np.integer) or image.min() < 0 or image.max() > 255:
                raise ValueError(f"Pixels must be 8-bit samples, got dtype {image.dtype}")
            image = image.astype(np.uint8)
        return image

    if width is None or height is None or component_count is None:
        raise InvalidDimensions("Raw buffers need explicit width, height and component count")
    validate_component_count(component_count)
    _check_dimensions(width, height)
    buffer = memoryview(pixels).cast('B')
    expected = width * height * component_count
    if len(buffer) != expected:
        raise InvalidDimensions(
            f"Buffer holds {len(buffer)} bytes, {width}x{height}x{component_count} needs {expected}"
        )
    return np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, component_count)


def _build_frame(width: int, height: int, component_count: int, mode: str) -> Frame:
    components = [
        Component(i + 1, h, v, 0 if i == 0 else 1)
        for i, (h, v) in enumerate(sampling_factors(mode, component_count))
    ]
    return Frame(width, height, components)


def _prepare_planes(image: np.ndarray, frame: Frame, params: EncoderParams) -> List[np.ndarray]:
    """Color convert, pad to whole MCUs (edge replication) and subsample chroma."""
    image_float = image.astype(np.float64)
    if image.shape[2] == 3:
        ycbcr = rgb_to_ycbcr(image_float)
        channels = [ycbcr[:, :, i] for i in range(3)]
    else:
        channels = [image_float[:, :, 0]]

    padded = [pad_to_shape(ch, frame.padded_shape) for ch in channels]
    if len(padded) == 3:
        cb, cr = subsample_chroma(padded[1], padded[2], params.subsampling_mode, params.use_prefilter)
        padded = [padded[0], cb, cr]
    return padded


def encode(
    pixels: PixelInput,
    width: Optional[int] = None,
    height: Optional[int] = None,
    component_count: Optional[int] = None,
    quality: Optional[int] = None,
    params: Optional[EncoderParams] = None
) -> bytes:
    """
    Encode 8-bit grayscale or RGB samples as a baseline JPEG.

    ``pixels`` is an (H, W), (H, W, 1) or (H, W, 3) uint8 array, or a raw
    row-major buffer together with width, height and component count.
    ``quality`` overrides ``params.quality`` when both are given.

    Raises InvalidDimensions, InvalidComponentCount or InvalidQuality before
    producing any output.
    """
    image = _as_image_array(pixels, width, height, component_count)
    if params is None:
        params = EncoderParams(quality=75 if quality is None else quality)
    elif quality is not None:
        params = dataclasses.replace(params, quality=quality)

    h, w, c = image.shape
    frame = _build_frame(w, h, c, params.subsampling_mode)

    quant_tables = {0: QuantizationTable.from_quality(params.luma_base_table, params.quality)}
    dc_tables = {0: STD_DC_LUMA}
    ac_tables = {0: STD_AC_LUMA}
    if c == 3:
        quant_tables[1] = QuantizationTable.from_quality(params.chroma_base_table, params.quality)
        dc_tables[1] = STD_DC_CHROMA
        ac_tables[1] = STD_AC_CHROMA
    scan_components = [
        ScanComponent(component, 0 if i == 0 else 1, 0 if i == 0 else 1)
        for i, component in enumerate(frame.components)
    ]

    planes = _prepare_planes(image, frame, params)
    pipeline = MCUPipeline(frame, params.dct_method, params.restart_interval)
    coefficients = pipeline.transform(planes, quant_tables)
    scan_data = pipeline.encode_scan(coefficients, scan_components, dc_tables, ac_tables)

    data = build_stream(
        frame, quant_tables, dc_tables, ac_tables, scan_components, scan_data,
        restart_interval=params.restart_interval,
        jfif=JFIFHeader() if params.write_jfif else None,
        comment=params.comment,
    )
    logger.info("Encoded %dx%d, %d component(s), quality %d, %s: %d bytes",
                w, h, c, params.quality, params.subsampling_mode if c == 3 else 'gray', len(data))
    return data


def decode(data: bytes, params: Optional[DecoderParams] = None) -> DecodedImage:
    """
    Decode a baseline (sequential, Huffman) JPEG.

    Returns (H, W) uint8 pixels for grayscale and (H, W, 3) RGB otherwise.
    Raises MissingRequiredMarker, MalformedSegment, UnsupportedFeature or
    CorruptEntropyStream; no partial image is returned.
    """
    params = params or DecoderParams()
    data = bytes(data)
    stream = parse(data)
    frame = stream.frame

    pipeline = MCUPipeline(frame, params.dct_method, stream.restart_interval)
    coefficients = pipeline.allocate_coefficients()
    seen = set()
    for scan in stream.scans:
        pipeline.decode_scan(
            data, scan.components, scan.dc_tables, scan.ac_tables, coefficients,
            start=scan.start, end=scan.end, restart_interval=scan.restart_interval,
        )
        seen.update(sc.component.component_id for sc in scan.components)
    missing = [c.component_id for c in frame.components if c.component_id not in seen]
    if missing:
        logger.warning("Components %s never appear in a scan", missing)

    planes = pipeline.reconstruct(coefficients, stream.quant_tables)
    full = []
    for component, plane in zip(frame.components, planes):
        rows, cols = frame.component_shape(component)
        # Re-pad from the coded area so uncoded blocks never bleed into the image
        grid_rows, grid_cols = frame.block_grid(component)
        plane = pad_to_shape(plane[:rows, :cols], (grid_rows * BLOCK_SIZE, grid_cols * BLOCK_SIZE))
        plane = upsample_plane(plane, frame.padded_shape, params.upsampling)
        full.append(plane[:frame.height, :frame.width])

    if len(full) == 3:
        rgb = ycbcr_to_rgb(np.stack(full, axis=-1))
        pixels = np.round(rgb).astype(np.uint8)
    else:
        pixels = np.clip(np.round(full[0]), 0, 255).astype(np.uint8)

    logger.info("Decoded %dx%d, %d component(s), %d scan(s)",
                frame.width, frame.height, len(frame.components), len(stream.scans))
    return DecodedImage(
        pixels=pixels,
        width=frame.width,
        height=frame.height,
        component_count=len(frame.components),
        jfif=stream.jfif,
        comments=list(stream.comments),
    )


def compress_reconstruct(
    image: np.ndarray,
    params: Optional[EncoderParams] = None,
    decoder_params: Optional[DecoderParams] = None
) -> CompressionResult:
    """Encode and decode an image, measuring quality, size and runtime."""
    params = params or EncoderParams()
    timer = Timer()

    encoded = timer.measure_encode(encode, image, params=params)
    decoded = timer.measure_decode(decode, encoded, decoder_params)
    reconstructed = decoded.pixels

    original = image[:, :, 0] if image.ndim == 3 and image.shape[2] == 1 else image
    metrics = compute_psnr_ssim(original, reconstructed)
    bitrate = compute_bitrate(len(encoded), original.shape)

    return CompressionResult(
        original_image=original,
        reconstructed_image=reconstructed,
        encoded=encoded,
        psnr_y=metrics['psnr_y'],
        ssim_y=metrics['ssim_y'],
        psnr_rgb=metrics['psnr_rgb'],
        ssim_rgb=metrics['ssim_rgb'],
        bpp=bitrate['bpp'],
        compression_ratio=bitrate['compression_ratio'],
        encode_time_ms=timer.encode_time_ms,
        decode_time_ms=timer.decode_time_ms,
    )
