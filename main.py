# =============================
# Liquid Glass — offline host
# =============================
"""
Command-line host for the glass kernel.

The kernel itself never touches files or windows; this module does the
host's half of the contract:

  * load the background with OpenCV,
  * place the surface (``--rect``) and cut the background under it,
  * advance the animation clock per frame,
  * render through ``GlassRenderer`` (GPU) or ``CPUPipeline``,
  * blend the surface over the background with its opacity and save.

Example::

    python main.py wallpaper.jpg -o out.png --rect 80 60 400 240 --radius 36
    python main.py wallpaper.jpg -o anim.png --frames 90 --fps 30 --gpu
"""

import argparse
import logging
import os
import sys
import time

import numpy as np
import cv2

import config
from config import settings, DEFAULT_FPS, TILE_ROWS
from cpu_pipeline import to_uint8_bgra
from glass_kernel import BLUR_KERNELS
from glass_params import SurfaceGeometry, MaterialParameters
from perf_metrics import PerfMetrics
from renderer import create_renderer
from source_image import SourceImage

log = logging.getLogger(__name__)

_MATERIAL_FLAGS = [
    ("blur_strength", "--blur-strength"),
    ("refraction_strength", "--refraction"),
    ("chromatic_aberration", "--chromatic"),
    ("fresnel_strength", "--fresnel"),
    ("specular_strength", "--specular"),
    ("glass_opacity", "--opacity"),
    ("edge_thickness", "--edge-thickness"),
]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Render a liquid-glass surface over a background image.")
    parser.add_argument("background", help="background image path")
    parser.add_argument("-o", "--output", default="glass_output.png",
                        help="output PNG (frame index appended for --frames > 1)")
    parser.add_argument("--rect", type=int, nargs=4,
                        metavar=("X", "Y", "W", "H"),
                        default=list(settings["surface_rect"]),
                        help="surface placement in background pixels")
    parser.add_argument("--radius", type=float,
                        default=settings["corner_radius"],
                        help="corner radius in pixels")
    for key, flag in _MATERIAL_FLAGS:
        parser.add_argument(flag, dest=key, type=float, default=None,
                            help=f"default {settings[key]}")
    parser.add_argument("--blur", choices=sorted(BLUR_KERNELS),
                        default=settings["blur_kernel"])
    parser.add_argument("--time", type=float, default=0.0,
                        help="animation clock at the first frame (seconds)")
    parser.add_argument("--frames", type=int, default=1)
    parser.add_argument("--fps", type=float, default=DEFAULT_FPS)
    parser.add_argument("--gpu", action="store_true",
                        help="render with OpenGL (falls back to CPU)")
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--tile-rows", type=int, default=TILE_ROWS)
    parser.add_argument("--profile", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def composite_over(background, rgba, geometry):
    """Blend surface RGBA over a copy of ``background`` at ``top_left``.

    Parts of the surface outside the background are dropped.  Colours and
    alpha are clamped here, at display time.
    """
    out = np.array(background, dtype=np.float32, copy=True)
    bh, bw = out.shape[:2]
    x, y = (int(round(c)) for c in geometry.top_left)
    h, w = rgba.shape[:2]

    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + w, bw), min(y + h, bh)
    if x0 >= x1 or y0 >= y1:
        return out

    src = np.clip(rgba[y0 - y:y1 - y, x0 - x:x1 - x], 0.0, 1.0)
    alpha = src[..., 3:4]
    dst = out[y0:y1, x0:x1]
    dst[..., :3] = dst[..., :3] * (1.0 - alpha) + src[..., :3] * alpha
    dst[..., 3:4] = alpha + dst[..., 3:4] * (1.0 - alpha)
    return out


def frame_path(output, index, frames):
    if frames <= 1:
        return output
    root, ext = os.path.splitext(output)
    return f"{root}_{index:04d}{ext or '.png'}"


class Application:
    """Loads inputs, renders N frames and writes them to disk."""

    def __init__(self, args):
        self.args = args
        if not cv2.haveImageWriter(frame_path(args.output, 0, args.frames)):
            raise ValueError(f"no image writer for output: {args.output}")

        # ── Material (CLI overrides on top of config.settings) ──
        values = dict(settings)
        for key, _ in _MATERIAL_FLAGS:
            v = getattr(args, key)
            if v is not None:
                values[key] = v
        self.params = MaterialParameters.from_settings(values)
        for name in self.params.out_of_range():
            lo, hi = config.PARAM_RANGES[name]
            log.warning("%s=%g outside documented range [%g, %g]",
                        name, getattr(self.params, name), lo, hi)

        # ── Background + surface ──
        self.background = SourceImage.load(args.background)
        x, y, w, h = args.rect
        self.geometry = SurfaceGeometry.from_rect(
            x, y, w, h, args.radius).validate()
        self.source = self.background.crop(x, y, w, h)
        log.info("Background %dx%d, surface %dx%d at (%d, %d), r=%.1f",
                 self.background.width, self.background.height,
                 w, h, x, y, args.radius)

        # ── Renderer ──
        self.metrics = PerfMetrics(enabled=args.profile)
        self.renderer = create_renderer(
            prefer_gpu=args.gpu, blur=args.blur, metrics=self.metrics,
            workers=args.workers, tile_rows=args.tile_rows)

    def run(self):
        a = self.args
        frames = max(1, a.frames)
        dt = 1.0 / a.fps if a.fps > 0 else 0.0
        t_start = time.perf_counter()
        try:
            for i in range(frames):
                clock = a.time + i * dt
                with self.metrics.section("frame"):
                    rgba = self.renderer.render(
                        self.source, self.geometry, self.params, clock)
                    img = composite_over(
                        self.background.pixels, rgba, self.geometry)
                path = frame_path(a.output, i, frames)
                try:
                    ok = cv2.imwrite(path, to_uint8_bgra(img))
                except cv2.error as e:
                    raise OSError(f"cannot write image: {path}: {e}") from e
                if not ok:
                    raise OSError(f"cannot write image: {path}")
                log.info("Frame %d/%d (t=%.3f) → %s", i + 1, frames, clock, path)
        finally:
            self.renderer.release()

        log.info("Done: %d frame(s) in %.2f s",
                 frames, time.perf_counter() - t_start)
        for line in self.metrics.summary():
            log.info(line)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        app = Application(args)
    except (FileNotFoundError, ValueError) as e:
        log.critical("%s", e)
        raise SystemExit(1)
    try:
        app.run()
    except OSError as e:
        log.critical("%s", e)
        raise SystemExit(1)
    return 0


# ── Entry point ──
if __name__ == "__main__":
    sys.exit(main())
