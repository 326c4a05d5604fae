# =============================
# GlassRenderer — moderngl path for the glass kernel
# =============================
"""
Owns the shader program, the source texture and an offscreen float
framebuffer sized to the surface.  One ``render()`` call is one
fullscreen-triangle draw followed by a readback, so its output has the
same shape and meaning as ``CPUPipeline.render()``.

Textures and FBOs are only recreated when the source image or surface
size changes.
"""

import logging

import numpy as np
import moderngl

import config
from cpu_pipeline import CPUPipeline
from glass_kernel import get_blur_kernel, QualityBlur
from perf_metrics import PerfMetrics
from shaders import FULLSCREEN_VERTEX_SHADER, GLASS_FRAGMENT_SHADER

log = logging.getLogger(__name__)


class GlassRenderer:
    """OpenGL 3.3 rendering of the glass kernel into an offscreen FBO."""

    def __init__(self, ctx=None, blur=None, metrics=None):
        """
        Parameters
        ----------
        ctx : moderngl.Context, optional
            Existing context; a standalone one is created when omitted.
        blur : str or BlurKernel, optional
            ``"fast"`` or ``"quality"``; defaults to ``settings["blur_kernel"]``.
        metrics : PerfMetrics, optional
        """
        self._owns_ctx = ctx is None
        self.ctx = ctx if ctx is not None else (
            moderngl.create_standalone_context(require=330))
        self.blur = get_blur_kernel(blur or config.settings["blur_kernel"])
        self.metrics = metrics if metrics is not None else PerfMetrics(
            enabled=False)
        self.prog = None
        self._screen_quad_vbo = None
        self._vao = None
        try:
            self.prog = self.ctx.program(
                vertex_shader=FULLSCREEN_VERTEX_SHADER,
                fragment_shader=GLASS_FRAGMENT_SHADER)

            # ── Screen quad VBO (single overdraw triangle) ──
            self._screen_quad_vbo = self.ctx.buffer(np.array([
                -1.0, -1.0, 0.0, 0.0,
                 3.0, -1.0, 2.0, 0.0,
                -1.0,  3.0, 0.0, 2.0,
            ], dtype='f4'))
            self._vao = self.ctx.vertex_array(
                self.prog,
                [(self._screen_quad_vbo, '2f 2f', 'in_pos', 'in_uv')])
        except Exception:
            self._release_pipeline()
            raise
        if self.metrics.ctx is None:
            self.metrics.ctx = self.ctx

        self._fbo = None
        self._target_tex = None
        self._fbo_size = (0, 0)
        self._source_tex = None
        self._source = None

        log.info("GPU renderer: OK (%s, %s blur)",
                 self.ctx.info.get("GL_RENDERER", "?"), self.blur.name)

    # ────────────────── Resources ──────────────────

    def _ensure_fbo(self, w, h):
        """Recreate the target FBO when the surface size changes."""
        if self._fbo_size == (w, h) and self._fbo is not None:
            return
        if self._fbo is not None:
            self._fbo.release()
            self._target_tex.release()
        self._target_tex = self.ctx.texture((w, h), 4, dtype='f4')
        self._target_tex.filter = (moderngl.NEAREST, moderngl.NEAREST)
        self._fbo = self.ctx.framebuffer(color_attachments=[self._target_tex])
        self._fbo_size = (w, h)

    def _ensure_source(self, source):
        """Upload ``source`` unless it is the image already bound."""
        if self._source is source:
            return
        if self._source_tex is not None:
            self._source_tex.release()
        tex = self.ctx.texture(source.size, 4, dtype='f4')
        tex.write(source.pixels.tobytes())
        tex.filter = (moderngl.LINEAR, moderngl.LINEAR)
        # CLAMP_TO_EDGE
        tex.repeat_x = False
        tex.repeat_y = False
        self._source_tex = tex
        self._source = source

    # ────────────────── Render ──────────────────

    def render(self, source, geometry, params, time):
        """Render one pass → (H, W, 4) float32 RGBA (row 0 at v = 0)."""
        geometry.validate()
        w, h = geometry.width, geometry.height
        if w < 1 or h < 1:
            raise ValueError(
                f"surface rounds to an empty grid: {geometry.full_size}")

        with self.metrics.section("upload"):
            self._ensure_fbo(w, h)
            self._ensure_source(source)

        self._fbo.use()
        self.ctx.viewport = (0, 0, w, h)
        self.ctx.disable(moderngl.BLEND | moderngl.DEPTH_TEST)
        self._fbo.clear(0.0, 0.0, 0.0, 0.0)

        self._source_tex.use(location=0)
        p = self.prog
        p['source_tex'].value = 0
        p['texel_size'].value = geometry.texel_size
        p['corner_radius'].value = float(geometry.corner_radius_uv)
        p['time'].value = float(time)
        p['blur_strength'].value = float(params.blur_strength)
        p['refraction_strength'].value = float(params.refraction_strength)
        p['chromatic_aberration'].value = float(params.chromatic_aberration)
        p['fresnel_strength'].value = float(params.fresnel_strength)
        p['specular_strength'].value = float(params.specular_strength)
        p['glass_opacity'].value = float(params.glass_opacity)
        p['edge_thickness'].value = float(params.edge_thickness)
        p['blur_quality'].value = int(isinstance(self.blur, QualityBlur))

        self.metrics.begin_gpu("glass")
        self._vao.render(moderngl.TRIANGLES, vertices=3)
        self.metrics.end_gpu("glass")

        with self.metrics.section("readback"):
            data = self._fbo.read(components=4, dtype='f4')
        log.debug("GPU pass %dx%d, t=%.3f", w, h, float(time))
        return np.frombuffer(data, dtype=np.float32).reshape(h, w, 4).copy()

    # ────────────────── Cleanup ──────────────────

    def release(self):
        """Release all GPU resources."""
        if self._fbo is not None:
            self._fbo.release()
            self._target_tex.release()
            self._fbo = None
        if self._source_tex is not None:
            self._source_tex.release()
            self._source_tex = None
            self._source = None
        self._release_pipeline()

    def _release_pipeline(self):
        """Program, VAO, VBO and an owned context; partial setups too."""
        for res in (self._vao, self._screen_quad_vbo, self.prog):
            if res is not None:
                res.release()
        self._vao = self._screen_quad_vbo = self.prog = None
        if self._owns_ctx:
            self.ctx.release()


def create_renderer(prefer_gpu=True, blur=None, metrics=None, **cpu_kwargs):
    """GPU renderer when a 3.3 context is available, else ``CPUPipeline``."""
    if prefer_gpu:
        try:
            return GlassRenderer(blur=blur, metrics=metrics)
        except Exception as e:
            log.warning("GPU renderer not available (%s); using CPU", e)
    return CPUPipeline(blur=blur, metrics=metrics, **cpu_kwargs)
