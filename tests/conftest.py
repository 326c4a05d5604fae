"""Shared fixtures for the liquid glass test suite."""

from __future__ import annotations

import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import numpy as np
import pytest

from glass_params import MaterialParameters, SurfaceGeometry
from source_image import SourceImage


class RecordingImage(SourceImage):
    """SourceImage that remembers every coordinate it was sampled at."""

    def __init__(self, pixels):
        super().__init__(pixels)
        self.calls = []

    def sample(self, uv):
        self.calls.append(np.array(uv, dtype=np.float64, copy=True))
        return super().sample(uv)

    def all_coords(self) -> np.ndarray:
        return np.concatenate([c.reshape(-1, 2) for c in self.calls])


def gradient_pixels(width: int, height: int) -> np.ndarray:
    """Smooth RGBA gradient; distinct values per channel."""
    u = (np.arange(width, dtype=np.float32) + 0.5) / width
    v = (np.arange(height, dtype=np.float32) + 0.5) / height
    px = np.empty((height, width, 4), dtype=np.float32)
    px[..., 0] = u[None, :]
    px[..., 1] = v[:, None]
    px[..., 2] = 0.5 * (u[None, :] + v[:, None])
    px[..., 3] = 1.0
    return px


@pytest.fixture
def square_geometry() -> SurfaceGeometry:
    return SurfaceGeometry.from_rect(0, 0, 200, 200, radius=20)


@pytest.fixture
def gradient_source() -> SourceImage:
    return SourceImage(gradient_pixels(48, 32))


@pytest.fixture
def noise_source() -> SourceImage:
    rng = np.random.default_rng(1234)
    return SourceImage(rng.random((40, 40, 4), dtype=np.float32))


@pytest.fixture
def material() -> MaterialParameters:
    return MaterialParameters(
        blur_strength=1.2,
        refraction_strength=0.1,
        chromatic_aberration=0.015,
        fresnel_strength=0.7,
        specular_strength=0.9,
        glass_opacity=0.85,
        edge_thickness=0.15,
    )


@pytest.fixture
def recording_image():
    """Factory: ``recording_image(pixels)`` → RecordingImage."""
    return RecordingImage


@pytest.fixture
def make_gradient():
    return gradient_pixels
