# =============================
# Конфигурация Liquid Glass
# =============================
from typing import Dict, List, Tuple, TypedDict

# Sampling window: every texture read is clamped into it
SAMPLE_MIN = 0.001
SAMPLE_MAX = 0.999

# Bias added to vectors-from-centre before normalising
CENTER_EPSILON = 1e-4

# Refraction ripple
WAVE_FREQUENCY = 8.0
WAVE_SPEED = 0.5
WAVE_AMPLITUDE = 0.1

# Blur kernels
# 5-tap (live path): linear-sampled gaussian, offsets in texels
BLUR5_WEIGHTS = (0.2270270270, 0.3162162162, 0.0702702703)
BLUR5_OFFSETS = (0.0, 1.3846153846, 3.2307692308)
# 9-tap (quality path): centre + 4 axial @1 texel + 4 axial @2 texels
BLUR9_CENTER = 0.1633
BLUR9_NEAR = 0.1531
BLUR9_FAR = 0.0561
BLUR_EDGE_FALLOFF = 0.5   # strength *= 1 - edge * falloff

# Chromatic dispersion (R bends least, B most)
CHROMA_RED_SCALE = 0.8
CHROMA_BLUE_SCALE = 1.2

# Compositor
EDGE_BLEND = 0.7                    # blur → chromatic mix at the rim
GLASS_TINT = (0.95, 0.97, 1.0)
FRESNEL_WEIGHT = 0.15
SPECULAR_COLOR = (1.0, 0.98, 0.95)
LUMA_WEIGHTS = (0.299, 0.587, 0.114)
DESATURATION = 0.1

# Specular lights: (direction, power, weight)
LIGHTS: List[Tuple[Tuple[float, float], float, float]] = [
    ((-0.7, -0.7), 16.0, 1.0),
    ((0.7, 0.7), 24.0, 0.5),
]
SPECULAR_RIM_SCALE = 0.5            # mask thickness for highlights

# Host / pipeline
DEFAULT_WORKERS = None              # None → os.cpu_count()
TILE_ROWS = 64
DEFAULT_FPS = 30.0

# Documented parameter ranges (reported, not enforced)
PARAM_RANGES: Dict[str, Tuple[float, float]] = {
    "blur_strength": (0.0, 2.0),
    "refraction_strength": (0.0, 0.15),
    "chromatic_aberration": (0.0, 0.02),
    "fresnel_strength": (0.0, 1.0),
    "specular_strength": (0.0, 1.0),
    "glass_opacity": (0.0, 1.0),
    "edge_thickness": (0.0, 0.3),
}

# =============================
# Глобальные настройки (runtime)
# =============================


class Settings(TypedDict):
    """Typed schema for the runtime settings dict.

    Material keys mirror ``MaterialParameters``; the rest describe where
    the host places the glass surface.
    """
    # Material
    blur_strength: float
    refraction_strength: float
    chromatic_aberration: float
    fresnel_strength: float
    specular_strength: float
    glass_opacity: float
    edge_thickness: float
    # Blur variant ("fast" | "quality")
    blur_kernel: str
    # Surface placement (pixels)
    surface_rect: List[int]   # [x, y, w, h]
    corner_radius: float


settings: Settings = {
    "blur_strength": 1.0,
    "refraction_strength": 0.08,
    "chromatic_aberration": 0.008,
    "fresnel_strength": 0.6,
    "specular_strength": 0.8,
    "glass_opacity": 0.9,
    "edge_thickness": 0.15,
    "blur_kernel": "fast",
    "surface_rect": [40, 40, 320, 200],
    "corner_radius": 32.0,
}
