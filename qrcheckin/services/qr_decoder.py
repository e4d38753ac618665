# qrcheckin/services/qr_decoder.py
"""
QR decoding with image-recovery fallbacks.

The decoder walks an ordered list of strategies and stops at the first one
that yields a payload:

    direct                      raw pixels
    sharpen                     3x3 sharpening kernel
    scale-<f>                   down-scaled by f (0.9 … 0.2)
    scale-<f>+contrast          down-scaled, contrast stretched
    scale-<f>+grayscale         down-scaled, luminance grayscale

Scales that would shrink either side below SCANNER_MIN_DIMENSION are
skipped. Every attempt tries the image as-is and colour-inverted.

Nothing here keeps per-call state, so one decoder can serve concurrent
requests.
"""

import io
import logging
import math
from dataclasses import dataclass
from typing import Callable

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from qrcheckin.exceptions import InvalidImageError, QRNotFoundError

logger = logging.getLogger(__name__)

SHARPEN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0],
], dtype=np.float32)

DEFAULT_SCALE_FACTORS = (0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2)
DEFAULT_MAX_PIXELS    = 16_000_000
DEFAULT_MAX_DIMENSION = 2048
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


# ── Frames ────────────────────────────────────────────────────────────────────

class RasterFrame:
    """An RGB uint8 image (H x W x 3) handed to the decoder."""

    def __init__(self, pixels):
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise InvalidImageError(f"Expected an H x W x 3 array, got shape {pixels.shape}")
        self.pixels = np.ascontiguousarray(pixels, dtype=np.uint8)

    @property
    def width(self):
        return self.pixels.shape[1]

    @property
    def height(self):
        return self.pixels.shape[0]

    @classmethod
    def from_array(cls, array):
        """Accept grey (H x W), RGB or RGBA arrays. Alpha is dropped."""
        array = np.asarray(array)
        if array.ndim == 2:
            array = np.stack([array] * 3, axis=-1)
        elif array.ndim == 3 and array.shape[2] == 4:
            array = array[:, :, :3]
        return cls(array)

    @classmethod
    def from_bgr(cls, array):
        """Camera frames from OpenCV arrive as BGR."""
        return cls(cv2.cvtColor(np.asarray(array), cv2.COLOR_BGR2RGB))

    @classmethod
    def from_image(cls, image):
        return cls(np.asarray(image.convert('RGB')))

    @classmethod
    def from_bytes(cls, data, max_pixels=DEFAULT_MAX_PIXELS, max_dimension=DEFAULT_MAX_DIMENSION):
        """
        Decode any Pillow-readable image (PNG, JPEG, GIF...).

        The declared size is checked before any pixel data is decoded:
        images over `max_pixels` are refused, larger sides than
        `max_dimension` are shrunk to fit (aspect ratio kept).
        """
        if not data:
            raise InvalidImageError('Uploaded image is empty')
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                if max_pixels and width * height > max_pixels:
                    raise InvalidImageError(
                        f'Image is too large ({width}x{height}); '
                        f'at most {max_pixels} pixels are accepted')
                rgb = img.convert('RGB')
        except Image.DecompressionBombError as e:
            raise InvalidImageError(f'Image is too large: {e}')
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise InvalidImageError(f'Could not read the uploaded image: {e}')

        if max_dimension and max(rgb.size) > max_dimension:
            rgb.thumbnail((max_dimension, max_dimension), Image.BILINEAR)
        return cls.from_image(rgb)


# ── Transforms ────────────────────────────────────────────────────────────────
#
# Each transform takes and returns an RGB uint8 array.

def sharpen(pixels):
    """
    Apply SHARPEN_KERNEL to interior pixels of each RGB channel.
    The 1-pixel border has no full neighbourhood and is left black.
    """
    h, w = pixels.shape[:2]
    out = np.zeros_like(pixels)
    if h < 3 or w < 3:
        return out

    acc = cv2.filter2D(pixels, cv2.CV_16S, SHARPEN_KERNEL)
    out[1:-1, 1:-1] = np.clip(acc[1:-1, 1:-1], 0, 255).astype(np.uint8)
    return out


def scale(pixels, factor):
    h, w = pixels.shape[:2]
    size = (math.floor(w * factor), math.floor(h * factor))
    return np.asarray(Image.fromarray(pixels).resize(size, Image.BILINEAR))


def stretch_contrast(pixels, gain=1.5):
    """out = clamp(floor(((in / 255 - 0.5) * gain + 0.5) * 255))"""
    stretched = np.floor(((pixels / 255.0 - 0.5) * gain + 0.5) * 255)
    return np.clip(stretched, 0, 255).astype(np.uint8)


def to_grayscale(pixels):
    """Luminance 0.299R + 0.587G + 0.114B, replicated into all three channels."""
    gray = np.round(pixels.astype(np.float64) @ LUMA_WEIGHTS)
    gray = np.clip(gray, 0, 255).astype(np.uint8)
    return np.stack([gray] * 3, axis=-1)


# ── Detector ──────────────────────────────────────────────────────────────────

def opencv_detector(pixels):
    """Run OpenCV's QR detector on an RGB array; return text or None."""
    gray = cv2.cvtColor(pixels, cv2.COLOR_RGB2GRAY)
    try:
        text, points, _ = cv2.QRCodeDetector().detectAndDecode(gray)
    except cv2.error as e:
        logger.debug("OpenCV detector error: %s", e)
        return None
    if points is None or not text:
        return None
    return text


# ── Strategies ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DecodeStrategy:
    name: str
    transform: Callable


@dataclass(frozen=True)
class DecodeResult:
    text: str
    strategy: str


class QRDecoder:

    def __init__(self, detector=None, scale_factors=DEFAULT_SCALE_FACTORS,
                 min_dimension=100, contrast_gain=1.5,
                 max_pixels=DEFAULT_MAX_PIXELS, max_dimension=DEFAULT_MAX_DIMENSION):
        self.detector      = detector or opencv_detector
        self.scale_factors = tuple(scale_factors)
        self.min_dimension = min_dimension
        self.contrast_gain = contrast_gain
        self.max_pixels    = max_pixels
        self.max_dimension = max_dimension

    @classmethod
    def from_config(cls, config, detector=None):
        return cls(
            detector=detector,
            scale_factors=config.get('SCANNER_SCALE_FACTORS', DEFAULT_SCALE_FACTORS),
            min_dimension=config.get('SCANNER_MIN_DIMENSION', 100),
            contrast_gain=config.get('SCANNER_CONTRAST_GAIN', 1.5),
            max_pixels=config.get('SCANNER_MAX_PIXELS', DEFAULT_MAX_PIXELS),
            max_dimension=config.get('SCANNER_MAX_DIMENSION', DEFAULT_MAX_DIMENSION),
        )

    def read_image(self, data):
        """Load uploaded image bytes within this decoder's size limits."""
        return RasterFrame.from_bytes(
            data, max_pixels=self.max_pixels, max_dimension=self.max_dimension)

    def strategies(self, frame):
        """Yield the ordered strategies that apply to a frame of this size."""
        yield DecodeStrategy('direct', lambda px: px)
        yield DecodeStrategy('sharpen', sharpen)

        gain = self.contrast_gain
        for factor in self.scale_factors:
            if (math.floor(frame.width * factor) < self.min_dimension or
                    math.floor(frame.height * factor) < self.min_dimension):
                continue
            yield DecodeStrategy(
                f'scale-{factor}',
                lambda px, f=factor: scale(px, f))
            yield DecodeStrategy(
                f'scale-{factor}+contrast',
                lambda px, f=factor: stretch_contrast(scale(px, f), gain))
            yield DecodeStrategy(
                f'scale-{factor}+grayscale',
                lambda px, f=factor: to_grayscale(scale(px, f)))

    def _attempt(self, pixels):
        """Try the image as-is, then colour-inverted."""
        text = self.detector(pixels)
        if text:
            return text
        return self.detector(255 - pixels)

    def decode(self, frame, fallback=True):
        """
        Extract the QR payload from a frame.

        Args:
            frame   : RasterFrame
            fallback: False runs only the direct attempt (live camera frames)

        Returns:
            DecodeResult

        Raises:
            QRNotFoundError: every strategy failed.
        """
        for strategy in self.strategies(frame):
            text = self._attempt(strategy.transform(frame.pixels))
            if text:
                if strategy.name != 'direct':
                    logger.info("QR code found with %s (%dx%d)",
                                strategy.name, frame.width, frame.height)
                return DecodeResult(text=text, strategy=strategy.name)
            if not fallback:
                break

        logger.debug("No QR code found in %dx%d frame", frame.width, frame.height)
        raise QRNotFoundError()
