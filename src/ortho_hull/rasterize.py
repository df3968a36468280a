"""Raster decoding and silhouette binarization."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import cv2
import numpy as np

from ortho_hull.contracts import ReconstructionConfig
from ortho_hull.errors import ImageDecodeError

logger = logging.getLogger(__name__)

ImageSource = Union[np.ndarray, bytes, bytearray, str, Path]


def _ensure_uint8(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image // 257).astype(np.uint8)
    max_val = float(np.max(image)) if image.size else 0.0
    if max_val <= 1.0:
        return (image.astype(np.float32) * 255.0).clip(0, 255).astype(np.uint8)
    return np.clip(image, 0, 255).astype(np.uint8)


def decode_image(data: Union[bytes, bytearray]) -> np.ndarray:
    """Decode encoded image bytes to an RGB(A) or gray uint8 array."""
    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED) if buffer.size else None
    if image is None:
        raise ImageDecodeError(f"could not decode {len(data)} bytes of image data")

    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    elif image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return _ensure_uint8(image)


def load_image(path: Union[str, Path]) -> np.ndarray:
    """Read and decode an image file."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ImageDecodeError(f"could not read {path}: {exc}") from exc
    try:
        return decode_image(data)
    except ImageDecodeError as exc:
        raise ImageDecodeError(f"{path.name}: {exc.message}") from exc


def coerce_image(source: ImageSource) -> np.ndarray:
    """Accept an array, encoded bytes or a file path."""
    if isinstance(source, np.ndarray):
        if source.ndim not in (2, 3) or source.size == 0:
            raise ImageDecodeError(f"unsupported image array shape {source.shape}")
        if source.ndim == 3 and source.shape[2] == 1:
            source = np.ascontiguousarray(source[:, :, 0])
        return _ensure_uint8(source)
    if isinstance(source, (bytes, bytearray)):
        return decode_image(source)
    return load_image(source)


def has_meaningful_alpha(image: np.ndarray, opaque_cutoff: int = 250) -> bool:
    """True if the image is RGBA and any pixel is less than near-opaque."""
    if image.ndim != 3 or image.shape[2] != 4:
        return False
    return bool(np.any(image[:, :, 3] < opaque_cutoff))


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    raise ImageDecodeError(f"unsupported channel count: {image.shape[2]}")


def _odd_kernel(size: int) -> int:
    size = int(size)
    return size if size % 2 == 1 else size + 1


def binarize(image: np.ndarray, config: Optional[ReconstructionConfig] = None) -> np.ndarray:
    """Return a uint8 mask (255 = foreground) with the image's width/height.

    Alpha-matted input uses alpha alone. Otherwise luminance is blurred,
    thresholded (Otsu or fixed) and inverted when foreground is the majority.
    Opening then closing removes specks and fills pinholes in either case.
    """
    if config is None:
        config = ReconstructionConfig()
    image = coerce_image(image)

    if has_meaningful_alpha(image, config.opaque_alpha_cutoff):
        alpha = image[:, :, 3]
        binary = np.where(alpha > config.alpha_threshold, 255, 0).astype(np.uint8)
        logger.debug("Binarized %dx%d image from alpha", image.shape[1], image.shape[0])
    else:
        gray = _to_gray(image)
        if config.blur_kernel_size >= 3:
            k = _odd_kernel(config.blur_kernel_size)
            gray = cv2.GaussianBlur(gray, (k, k), 0)

        if config.use_otsu_threshold:
            level, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        else:
            level, binary = cv2.threshold(gray, config.threshold, 255, cv2.THRESH_BINARY)

        inverted = False
        if config.auto_invert and cv2.countNonZero(binary) > binary.size * 0.5:
            binary = cv2.bitwise_not(binary)
            inverted = True
        logger.debug(
            "Binarized %dx%d image from luminance (level=%.1f, inverted=%s)",
            image.shape[1], image.shape[0], level, inverted,
        )

    if config.morphology_kernel_size >= 3 and config.morphology_iterations > 0:
        k = int(config.morphology_kernel_size)
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (k, k))
        iterations = int(config.morphology_iterations)
        binary = cv2.morphologyEx(binary, cv2.MORPH_OPEN, kernel, iterations=iterations)
        binary = cv2.morphologyEx(binary, cv2.MORPH_CLOSE, kernel, iterations=iterations)

    return binary


class MaskHandle:
    """Owns a binary mask buffer until released."""

    def __init__(self, array: np.ndarray):
        self._array: Optional[np.ndarray] = array
        self.width = int(array.shape[1])
        self.height = int(array.shape[0])

    @property
    def released(self) -> bool:
        return self._array is None

    @property
    def array(self) -> np.ndarray:
        if self._array is None:
            raise RuntimeError("mask buffer has been released")
        return self._array

    def release(self) -> None:
        self._array = None


@contextmanager
def acquire_mask(
    image: ImageSource, config: Optional[ReconstructionConfig] = None
) -> Iterator[MaskHandle]:
    """Binarize *image* and release the mask when the block exits."""
    handle = MaskHandle(binarize(coerce_image(image), config))
    try:
        yield handle
    finally:
        handle.release()


def cutout_preview(image: ImageSource, mask: np.ndarray) -> np.ndarray:
    """RGBA copy of *image* that is transparent wherever *mask* is background."""
    image = coerce_image(image)
    if image.shape[:2] != mask.shape[:2]:
        raise ValueError(
            f"mask shape {mask.shape[:2]} does not match image shape {image.shape[:2]}"
        )
    if image.ndim == 2:
        rgb = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    else:
        rgb = image[:, :, :3]
    alpha = np.where(mask > 0, 255, 0).astype(np.uint8)
    return np.dstack([rgb, alpha])
