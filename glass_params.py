# =============================
# Glass parameters — immutable per-pass inputs
# =============================
"""
Replaces shader-style uniform globals with two frozen dataclasses that
are built once per render pass and passed by reference to the kernel.

Nothing in here is mutated during a pass; a host that wants new values
(resize, drag, slider change) builds a new instance with ``replace()``.
"""

from dataclasses import dataclass, fields, replace
from typing import List, Optional, Tuple

import config
from config import PARAM_RANGES


@dataclass(frozen=True)
class SurfaceGeometry:
    """Rounded-rectangle region the effect is confined to (pixels)."""

    top_left: Tuple[float, float] = (0.0, 0.0)
    full_size: Tuple[float, float] = (1.0, 1.0)
    full_size_untransformed: Optional[Tuple[float, float]] = None
    radius: float = 0.0

    @classmethod
    def from_rect(cls, x, y, w, h, radius=0.0):
        return cls(top_left=(float(x), float(y)),
                   full_size=(float(w), float(h)),
                   full_size_untransformed=(float(w), float(h)),
                   radius=float(radius))

    @property
    def width(self) -> int:
        return int(round(self.full_size[0]))

    @property
    def height(self) -> int:
        return int(round(self.full_size[1]))

    @property
    def texel_size(self) -> Tuple[float, float]:
        return (1.0 / self.full_size[0], 1.0 / self.full_size[1])

    @property
    def corner_radius_uv(self) -> float:
        """Corner radius in the mask's [-0.5, 0.5] space."""
        return self.radius / max(self.full_size[0], self.full_size[1]) * 2.0

    def validate(self):
        """Host-side check of the ``full_size > 0`` precondition."""
        w, h = self.full_size
        if not (w > 0 and h > 0):
            raise ValueError(
                f"full_size must be positive on both axes, got {w}x{h}")
        return self


@dataclass(frozen=True)
class MaterialParameters:
    """Seven independent material knobs, one per visual effect."""

    blur_strength: float = 1.0
    refraction_strength: float = 0.08
    chromatic_aberration: float = 0.008
    fresnel_strength: float = 0.6
    specular_strength: float = 0.8
    glass_opacity: float = 0.9
    edge_thickness: float = 0.15

    @classmethod
    def from_settings(cls, s=None):
        """Build from a ``config.Settings`` dict (defaults to the global)."""
        s = config.settings if s is None else s
        return cls(**{f.name: float(s[f.name]) for f in fields(cls)
                      if f.name in s})

    @classmethod
    def neutral(cls, glass_opacity=1.0, edge_thickness=0.15):
        """All effect strengths zeroed; output is the tinted background."""
        return cls(blur_strength=0.0, refraction_strength=0.0,
                   chromatic_aberration=0.0, fresnel_strength=0.0,
                   specular_strength=0.0, glass_opacity=glass_opacity,
                   edge_thickness=edge_thickness)

    def with_values(self, **kwargs):
        return replace(self, **kwargs)

    def out_of_range(self) -> List[str]:
        """Names of fields outside their documented range.

        Such values are still used as-is; this exists so a host can warn.
        """
        bad = []
        for f in fields(self):
            lo, hi = PARAM_RANGES[f.name]
            v = getattr(self, f.name)
            if not (lo <= v <= hi):
                bad.append(f.name)
        return bad
