# =============================
# Liquid Glass — per-pixel compositing kernel
# =============================
"""
Pure functions that turn a surface-local ``uv`` into the colour seen
through a rounded slab of glass:

    uv → edge mask → refraction → {blur, chromatic} ─┐
         edge mask → fresnel, specular ──────────────┴→ composite → RGBA

Every function broadcasts over a trailing ``(..., 2)`` uv axis, so the
same code evaluates one pixel, a row tile, or a full frame.  Nothing
here keeps state, logs, or writes to the source image; the only shared
input is the read-only ``SourceImage``.

``uv`` space has the surface centre at (0.5, 0.5).  All texture reads
go through ``clamp_uv`` first.
"""

import math

import numpy as np

from config import (
    SAMPLE_MIN, SAMPLE_MAX, CENTER_EPSILON,
    WAVE_FREQUENCY, WAVE_SPEED, WAVE_AMPLITUDE,
    BLUR5_WEIGHTS, BLUR5_OFFSETS,
    BLUR9_CENTER, BLUR9_NEAR, BLUR9_FAR, BLUR_EDGE_FALLOFF,
    CHROMA_RED_SCALE, CHROMA_BLUE_SCALE,
    EDGE_BLEND, GLASS_TINT, FRESNEL_WEIGHT, SPECULAR_COLOR,
    LUMA_WEIGHTS, DESATURATION, LIGHTS, SPECULAR_RIM_SCALE,
)

_HALF_PI = math.pi * 0.5

# Light directions normalised once
_LIGHTS = [
    (np.asarray(d, dtype=np.float64) / math.hypot(*d), power, weight)
    for d, power, weight in LIGHTS
]


def _col(x):
    """Scalar field (...,) → (..., 1) so it broadcasts against vectors."""
    return np.expand_dims(x, -1)


def clamp_uv(uv):
    return np.clip(uv, SAMPLE_MIN, SAMPLE_MAX)


def smoothstep(edge0, edge1, x):
    """GLSL ``smoothstep``; a zero-width band degenerates to a step."""
    x = np.asarray(x, dtype=np.float64)
    if edge1 == edge0:
        return np.where(x >= edge1, 1.0, 0.0)
    t = np.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def center_offset(uv):
    return np.asarray(uv, dtype=np.float64) - 0.5


def center_distance(uv):
    p = center_offset(uv)
    return np.sqrt(p[..., 0] * p[..., 0] + p[..., 1] * p[..., 1])


def center_direction(uv):
    """Unit vector from the surface centre through ``uv``.

    The epsilon bias keeps the exact centre from normalising a zero vector.
    """
    d = center_offset(uv) + CENTER_EPSILON
    length = np.sqrt(d[..., 0] * d[..., 0] + d[..., 1] * d[..., 1])
    return d / _col(length)


# ────────────── Geometry mask ──────────────

def rounded_rect_sdf(p, size, r):
    """Signed distance to a rounded rectangle (half-extent ``size``)."""
    q = np.abs(p) - size + r
    qo = np.maximum(q, 0.0)
    outside = np.sqrt(qo[..., 0] * qo[..., 0] + qo[..., 1] * qo[..., 1])
    inside = np.minimum(np.maximum(q[..., 0], q[..., 1]), 0.0)
    return inside + outside - r


def edge_mask(uv, thickness, geometry):
    """0 deep inside the glass, 1 at/after the border inset by ``thickness``.

    ``thickness`` is an argument rather than ``params.edge_thickness``
    because the specular rim uses half of it.
    """
    p = center_offset(uv)
    r = geometry.corner_radius_uv
    sdf = rounded_rect_sdf(p, 0.5 - thickness, r)
    return smoothstep(-thickness, 0.0, sdf)


# ────────────── Refraction ──────────────

def refraction_offset(uv, edge, strength, time):
    """Edge-driven displacement with a slow travelling ripple."""
    wave = np.sin(center_distance(uv) * WAVE_FREQUENCY
                  + time * WAVE_SPEED) * WAVE_AMPLITUDE + 1.0
    magnitude = edge * np.sin(edge * _HALF_PI) * strength * wave
    return center_direction(uv) * _col(magnitude)


def refract_uv(uv, edge, strength, time):
    return clamp_uv(np.asarray(uv, dtype=np.float64)
                    + refraction_offset(uv, edge, strength, time))


# ────────────── Blur ──────────────

def blur_amount(blur_strength, edge):
    """Thicker glass in the middle: full strength at centre, half at rim."""
    return blur_strength * (1.0 - edge * BLUR_EDGE_FALLOFF)


class BlurKernel:
    """Weighted taps around a coordinate, offsets in texels × strength."""

    name = ""
    # ((dx, dy) in texels, weight)
    taps = ()

    def sample(self, source, uv, texel_size, strength):
        uv = np.asarray(uv, dtype=np.float64)
        step = np.asarray(texel_size, dtype=np.float64) * _col(strength)
        acc = 0.0
        for offset, weight in self.taps:
            coord = clamp_uv(uv + step * offset)
            acc = acc + source.sample(coord) * weight
        return acc

    def __repr__(self):
        return f"<{type(self).__name__} {self.name!r} taps={len(self.taps)}>"


class FastBlur(BlurKernel):
    """5 taps along the texel diagonal, used by the live compositing path."""

    name = "fast"

    def __init__(self):
        w0, w1, w2 = BLUR5_WEIGHTS
        _, o1, o2 = BLUR5_OFFSETS
        self.taps = (
            ((0.0, 0.0), w0),
            ((o1, o1), w1), ((-o1, -o1), w1),
            ((o2, o2), w2), ((-o2, -o2), w2),
        )


class QualityBlur(BlurKernel):
    """9 taps: centre, 4 axial at one texel, 4 axial at two texels."""

    name = "quality"

    def __init__(self):
        near = [((1.0, 0.0), BLUR9_NEAR), ((-1.0, 0.0), BLUR9_NEAR),
                ((0.0, 1.0), BLUR9_NEAR), ((0.0, -1.0), BLUR9_NEAR)]
        far = [((2.0, 0.0), BLUR9_FAR), ((-2.0, 0.0), BLUR9_FAR),
               ((0.0, 2.0), BLUR9_FAR), ((0.0, -2.0), BLUR9_FAR)]
        self.taps = tuple([((0.0, 0.0), BLUR9_CENTER)] + near + far)


BLUR_KERNELS = {
    FastBlur.name: FastBlur(),
    QualityBlur.name: QualityBlur(),
}


def get_blur_kernel(blur):
    """Resolve a kernel name (or pass a ``BlurKernel`` through)."""
    if isinstance(blur, BlurKernel):
        return blur
    try:
        return BLUR_KERNELS[blur]
    except KeyError:
        raise ValueError(
            f"unknown blur kernel {blur!r}; "
            f"expected one of {sorted(BLUR_KERNELS)}") from None


# ────────────── Chromatic dispersion ──────────────

def chromatic_sample(source, uv, direction, chromatic_aberration, edge):
    """Per-channel resample: red bends least, green is the reference."""
    uv = np.asarray(uv, dtype=np.float64)
    shift = direction * _col(chromatic_aberration * edge)
    r = source.sample(clamp_uv(uv + shift * CHROMA_RED_SCALE))[..., 0]
    g = source.sample(clamp_uv(uv))[..., 1]
    b = source.sample(clamp_uv(uv + shift * CHROMA_BLUE_SCALE))[..., 2]
    return np.stack([r, g, b], axis=-1)


# ────────────── Fresnel / specular ──────────────

def fresnel(uv, edge, fresnel_strength):
    return (2.0 * center_distance(uv)) ** 3 * edge * fresnel_strength


def specular(uv, rim, specular_strength):
    """Two sharp lobes, top-left primary and bottom-right secondary."""
    n = center_direction(uv)
    total = 0.0
    for light, power, weight in _LIGHTS:
        ndl = np.maximum(n[..., 0] * light[0] + n[..., 1] * light[1], 0.0)
        total = total + ndl ** power * weight
    return total * rim * specular_strength


# ────────────── Compositor ──────────────

def luminance(rgb):
    wr, wg, wb = LUMA_WEIGHTS
    return rgb[..., 0] * wr + rgb[..., 1] * wg + rgb[..., 2] * wb


def composite(blurred, chromatic, edge, glow, highlight, glass_opacity,
              tint=GLASS_TINT, desaturation=DESATURATION):
    """Blend, tint, add glow + highlight, desaturate; alpha = opacity.

    No clamping happens here; out-of-range colours are the display's job.
    """
    mix = _col(edge * EDGE_BLEND)
    glass = np.asarray(blurred)[..., :3] * (1.0 - mix) + chromatic * mix
    glass = glass * np.asarray(tint, dtype=np.float64)
    glass = glass + _col(glow * FRESNEL_WEIGHT)
    glass = glass + _col(highlight) * np.asarray(SPECULAR_COLOR)
    glass = (glass * (1.0 - desaturation)
             + _col(luminance(glass)) * desaturation)
    alpha = np.full(glass.shape[:-1] + (1,), glass_opacity, dtype=np.float64)
    return np.concatenate([glass, alpha], axis=-1)


def evaluate_pixels(uv, source, geometry, params, time, blur="fast"):
    """Vectorised kernel: uv (..., 2) → RGBA (..., 4) float64."""
    kernel = get_blur_kernel(blur)
    t = float(time)
    uv = np.asarray(uv, dtype=np.float64)

    edge = edge_mask(uv, params.edge_thickness, geometry)
    rim = edge_mask(uv, params.edge_thickness * SPECULAR_RIM_SCALE, geometry)
    direction = center_direction(uv)

    displaced = refract_uv(uv, edge, params.refraction_strength, t)
    blurred = kernel.sample(source, displaced, geometry.texel_size,
                            blur_amount(params.blur_strength, edge))
    chroma = chromatic_sample(source, displaced, direction,
                              params.chromatic_aberration, edge)

    glow = fresnel(uv, edge, params.fresnel_strength)
    highlight = specular(uv, rim, params.specular_strength)
    return composite(blurred, chroma, edge, glow, highlight,
                     params.glass_opacity)


def evaluate_pixel(uv, source, geometry, params, time, blur="fast"):
    """Single-pixel entry point → ``(r, g, b, a)`` floats."""
    uv = np.asarray(uv, dtype=np.float64).reshape(2)
    rgba = evaluate_pixels(uv, source, geometry, params, time, blur=blur)
    return tuple(float(c) for c in rgba)
