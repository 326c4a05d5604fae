# =============================
# CPUPipeline — parallel-for over the destination grid
# =============================
"""
Runs the glass kernel over every pixel of a surface without a GPU:

    uv grid → row tiles → ThreadPoolExecutor → evaluate_pixels → RGBA

Each task reads the shared, read-only ``SourceImage`` and writes only
its own slice of the output array, so tiles need no locking and can
finish in any order.  numpy releases the GIL inside its array loops,
which is what lets threads overlap here.

The uv grid is cached per surface size, the same way the viewer used
to cache its textures per resolution.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np

import config
from config import TILE_ROWS, DEFAULT_WORKERS
from glass_kernel import evaluate_pixels, get_blur_kernel
from perf_metrics import PerfMetrics

log = logging.getLogger(__name__)


def uv_grid(width, height):
    """Texel-centre uv for a (height, width) grid → (H, W, 2) float64."""
    u = (np.arange(width, dtype=np.float64) + 0.5) / width
    v = (np.arange(height, dtype=np.float64) + 0.5) / height
    grid = np.empty((height, width, 2), dtype=np.float64)
    grid[..., 0] = u[None, :]
    grid[..., 1] = v[:, None]
    return grid


def to_uint8_bgra(rgba):
    """Float RGBA → uint8 BGRA for OpenCV; clamping happens here."""
    out = np.clip(rgba, 0.0, 1.0) * 255.0 + 0.5
    out = out.astype(np.uint8)
    return out[..., [2, 1, 0, 3]]


class CPUPipeline:
    """Tile-parallel CPU evaluation of the glass kernel."""

    def __init__(self, workers=DEFAULT_WORKERS, tile_rows=TILE_ROWS,
                 blur=None, metrics=None):
        self.workers = max(1, int(workers or os.cpu_count() or 1))
        self.tile_rows = max(1, int(tile_rows))
        self.blur = get_blur_kernel(blur or config.settings["blur_kernel"])
        self.metrics = metrics if metrics is not None else PerfMetrics(
            enabled=False)
        self._grid = None
        self._grid_size = (0, 0)
        self._pool = None
        log.info("CPU pipeline: %d worker(s), %d-row tiles, %s blur",
                 self.workers, self.tile_rows, self.blur.name)

    # ────────────────── Grid cache ──────────────────

    def ensure_grid(self, width, height):
        """Rebuild the uv grid if the surface size changed."""
        if self._grid_size != (width, height):
            self._grid = uv_grid(width, height)
            self._grid.flags.writeable = False
            self._grid_size = (width, height)
        return self._grid

    def ensure_pool(self):
        """Worker pool, created on first threaded render and reused after."""
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="glass-tile")
        return self._pool

    def tiles(self, height):
        return [(y, min(y + self.tile_rows, height))
                for y in range(0, height, self.tile_rows)]

    # ────────────────── Render ──────────────────

    def render(self, source, geometry, params, time):
        """Evaluate the kernel for every pixel of ``geometry.full_size``.

        Returns (H, W, 4) float32 RGBA.  ``time`` is read once and shared
        by every tile.
        """
        geometry.validate()
        t = float(time)
        w, h = geometry.width, geometry.height
        if w < 1 or h < 1:
            raise ValueError(
                f"surface rounds to an empty grid: {geometry.full_size}")

        grid = self.ensure_grid(w, h)
        out = np.empty((h, w, 4), dtype=np.float32)

        def _run(rows):
            y0, y1 = rows
            out[y0:y1] = evaluate_pixels(
                grid[y0:y1], source, geometry, params, t, blur=self.blur)

        with self.metrics.section("kernel"):
            tiles = self.tiles(h)
            if self.workers == 1 or len(tiles) == 1:
                for rows in tiles:
                    _run(rows)
            else:
                # list() re-raises the first tile exception, if any
                list(self.ensure_pool().map(_run, tiles))

        log.debug("CPU pass %dx%d, %d tile(s), t=%.3f", w, h, len(tiles), t)
        return out

    def release(self):
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None
        self._grid = None
        self._grid_size = (0, 0)
