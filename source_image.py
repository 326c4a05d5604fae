# =============================
# SourceImage — read-only background texture
# =============================
"""
CPU stand-in for a ``sampler2D`` with LINEAR filtering and
CLAMP_TO_EDGE wrapping.

Pixels are stored as float32 RGBA, row 0 at v = 0, and the backing
array is flagged read-only so any number of render tasks can share one
instance without locking.
"""

import os

import numpy as np
import cv2

# 8/16-bit → 0..1
_INT_SCALE = {np.dtype(np.uint8): 1.0 / 255.0,
              np.dtype(np.uint16): 1.0 / 65535.0}


class SourceImage:
    """Immutable RGBA grid sampled with bilinear, clamp-to-edge reads."""

    __slots__ = ('_pixels', 'width', 'height')

    def __init__(self, pixels):
        arr = np.array(pixels, dtype=np.float32, copy=True)
        if arr.ndim == 2:
            arr = np.repeat(arr[:, :, None], 3, axis=2)
        if arr.ndim != 3 or arr.shape[0] < 1 or arr.shape[1] < 1:
            raise ValueError(f"expected (H, W, C) pixels, got {arr.shape}")
        if arr.shape[2] == 3:
            alpha = np.ones(arr.shape[:2] + (1,), dtype=np.float32)
            arr = np.concatenate([arr, alpha], axis=2)
        if arr.shape[2] != 4:
            raise ValueError(f"expected 3 or 4 channels, got {arr.shape[2]}")
        arr = np.ascontiguousarray(arr)
        arr.flags.writeable = False
        self._pixels = arr
        self.height, self.width = arr.shape[:2]

    # ────────────── Constructors ──────────────

    @classmethod
    def from_bgr(cls, img):
        """Wrap an OpenCV image (gray, BGR or BGRA; uint8/uint16/float)."""
        if img.ndim == 2:
            rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
        elif img.shape[2] == 3:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
        else:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        scale = _INT_SCALE.get(rgba.dtype)
        if scale is not None:
            rgba = rgba.astype(np.float32) * scale
        return cls(rgba)

    @classmethod
    def load(cls, path):
        img = cv2.imread(os.fspath(path), cv2.IMREAD_UNCHANGED)
        if img is None:
            raise FileNotFoundError(f"cannot read image: {path}")
        return cls.from_bgr(img)

    @classmethod
    def solid(cls, width, height, rgba=(0.0, 0.0, 0.0, 1.0)):
        arr = np.empty((height, width, 4), dtype=np.float32)
        arr[:] = rgba
        return cls(arr)

    # ────────────── Access ──────────────

    @property
    def pixels(self) -> np.ndarray:
        """Read-only (H, W, 4) float32 view."""
        return self._pixels

    @property
    def size(self):
        return (self.width, self.height)

    def crop(self, x, y, w, h):
        """Region (x, y, w, h) as a new image; outside parts replicate edges."""
        x, y, w, h = int(round(x)), int(round(y)), int(round(w)), int(round(h))
        if w < 1 or h < 1:
            raise ValueError(f"crop size must be positive, got {w}x{h}")
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + w, self.width), min(y + h, self.height)
        if x0 >= x1 or y0 >= y1:
            # Fully outside: nearest edge pixel fills the region
            cx = min(max(x, 0), self.width - 1)
            cy = min(max(y, 0), self.height - 1)
            return SourceImage.solid(w, h, tuple(self._pixels[cy, cx]))
        region = self._pixels[y0:y1, x0:x1]
        pad = (y0 - y, (y + h) - y1, x0 - x, (x + w) - x1)
        if any(pad):
            region = cv2.copyMakeBorder(
                np.ascontiguousarray(region), pad[0], pad[1], pad[2], pad[3],
                cv2.BORDER_REPLICATE)
        return SourceImage(region)

    # ────────────── Sampling ──────────────

    def sample(self, uv):
        """Bilinear sample at ``uv`` (shape (..., 2)) → (..., 4) float64.

        Coordinates outside [0, 1] clamp to the edge texels.
        """
        uv = np.asarray(uv, dtype=np.float64)
        px = self._pixels
        w, h = self.width, self.height

        x = uv[..., 0] * w - 0.5
        y = uv[..., 1] * h - 0.5
        x0 = np.floor(x)
        y0 = np.floor(y)
        fx = np.expand_dims(x - x0, -1)
        fy = np.expand_dims(y - y0, -1)

        x0i = np.asarray(x0, dtype=np.intp)
        y0i = np.asarray(y0, dtype=np.intp)
        x1i = np.clip(x0i + 1, 0, w - 1)
        y1i = np.clip(y0i + 1, 0, h - 1)
        x0i = np.clip(x0i, 0, w - 1)
        y0i = np.clip(y0i, 0, h - 1)

        top = px[y0i, x0i] * (1.0 - fx) + px[y0i, x1i] * fx
        bot = px[y1i, x0i] * (1.0 - fx) + px[y1i, x1i] * fx
        return top * (1.0 - fy) + bot * fy
