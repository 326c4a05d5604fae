"""Behavioural checks for the per-pixel glass kernel."""

from __future__ import annotations

import math

import numpy as np
import pytest

from config import GLASS_TINT, SAMPLE_MAX, SAMPLE_MIN, WAVE_SPEED
from cpu_pipeline import uv_grid
from glass_kernel import (
    BLUR_KERNELS,
    FastBlur,
    QualityBlur,
    blur_amount,
    center_direction,
    chromatic_sample,
    clamp_uv,
    composite,
    edge_mask,
    evaluate_pixel,
    evaluate_pixels,
    fresnel,
    get_blur_kernel,
    luminance,
    refraction_offset,
    refract_uv,
    smoothstep,
    specular,
)
from glass_params import MaterialParameters, SurfaceGeometry
from source_image import SourceImage


# ────────────── Geometry mask ──────────────


def test_edge_mask_is_zero_at_centre(square_geometry) -> None:
    assert edge_mask((0.5, 0.5), 0.1, square_geometry) == 0.0


def test_edge_mask_is_one_at_boundary(square_geometry) -> None:
    assert edge_mask((1.0, 0.5), 0.1, square_geometry) == 1.0


@pytest.mark.parametrize("angle", np.linspace(0.0, 2.0 * math.pi, 16, endpoint=False))
def test_edge_mask_non_decreasing_along_rays(square_geometry, angle: float) -> None:
    d = np.array([math.cos(angle), math.sin(angle)])
    d = d / np.max(np.abs(d)) * 0.5
    t = np.linspace(0.0, 1.0, 401)
    uv = 0.5 + t[:, None] * d[None, :]

    mask = edge_mask(uv, 0.1, square_geometry)

    assert mask[0] == 0.0
    assert mask[-1] == 1.0
    assert np.all(np.diff(mask) >= -1e-12)


def test_edge_mask_stays_in_unit_range(square_geometry) -> None:
    mask = edge_mask(uv_grid(64, 64), 0.2, square_geometry)
    assert mask.min() >= 0.0
    assert mask.max() <= 1.0


def test_zero_thickness_mask_is_a_step(square_geometry) -> None:
    assert edge_mask((0.5, 0.5), 0.0, square_geometry) == 0.0
    assert edge_mask((1.0, 0.5), 0.0, square_geometry) == 1.0
    assert edge_mask((0.9, 0.5), 0.0, square_geometry) == 0.0


def test_smoothstep_matches_glsl() -> None:
    assert smoothstep(0.0, 1.0, 0.5) == pytest.approx(0.5)
    assert smoothstep(0.0, 1.0, 0.25) == pytest.approx(0.15625)
    assert smoothstep(-1.0, 0.0, -2.0) == 0.0
    assert smoothstep(-1.0, 0.0, 3.0) == 1.0


# ────────────── Refraction ──────────────


def test_refraction_offset_points_away_from_centre() -> None:
    offset = refraction_offset((0.9, 0.5), 0.8, 0.1, 0.0)
    assert offset[0] > 0.0
    assert abs(offset[1]) < 1e-3


def test_refraction_offset_vanishes_at_centre_mask() -> None:
    offset = refraction_offset((0.5, 0.5), 0.0, 0.15, 12.0)
    assert np.array_equal(offset, np.zeros(2))


def test_refraction_is_continuous_in_time() -> None:
    times = np.linspace(0.0, 20.0, 20001)
    offsets = refraction_offset((0.85, 0.5), 0.8, 0.1, times)

    steps = np.linalg.norm(np.diff(offsets, axis=0), axis=-1)
    assert steps.max() < 1e-5
    assert np.ptp(offsets[:, 0]) > 0.0


def test_refraction_wave_is_periodic() -> None:
    period = 2.0 * math.pi / WAVE_SPEED
    times = np.linspace(0.0, 10.0, 101)
    a = refraction_offset((0.8, 0.3), 0.7, 0.12, times)
    b = refraction_offset((0.8, 0.3), 0.7, 0.12, times + period)
    assert np.allclose(a, b, atol=1e-12)


def test_refraction_wave_modulates_within_ten_percent() -> None:
    edge, strength = 0.9, 0.1
    base = edge * math.sin(edge * math.pi / 2.0) * strength
    times = np.linspace(0.0, 30.0, 3001)
    mags = np.linalg.norm(refraction_offset((0.95, 0.5), edge, strength, times), axis=-1)
    assert mags.min() >= base * 0.9 - 1e-12
    assert mags.max() <= base * 1.1 + 1e-12


def test_refract_uv_clamps_extreme_displacement() -> None:
    uv = refract_uv((0.999, 0.999), 1.0, 5.0, 0.0)
    assert np.all(uv <= SAMPLE_MAX)
    assert np.all(uv >= SAMPLE_MIN)


def test_center_direction_is_unit_even_at_centre() -> None:
    d = center_direction((0.5, 0.5))
    assert np.linalg.norm(d) == pytest.approx(1.0)
    assert np.all(np.isfinite(d))


# ────────────── Blur ──────────────


def test_blur_registry_names() -> None:
    assert set(BLUR_KERNELS) == {"fast", "quality"}
    assert isinstance(get_blur_kernel("fast"), FastBlur)
    assert isinstance(get_blur_kernel("quality"), QualityBlur)


def test_blur_kernel_instance_passes_through() -> None:
    kernel = QualityBlur()
    assert get_blur_kernel(kernel) is kernel


def test_unknown_blur_kernel_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown blur kernel"):
        get_blur_kernel("box")


def test_blur_weights_sum_to_one() -> None:
    assert sum(w for _, w in FastBlur().taps) == pytest.approx(1.0, abs=1e-9)
    assert sum(w for _, w in QualityBlur().taps) == pytest.approx(1.0, abs=2e-4)
    assert len(FastBlur().taps) == 5
    assert len(QualityBlur().taps) == 9


def test_blur_amount_halves_at_rim() -> None:
    assert blur_amount(1.0, 0.0) == 1.0
    assert blur_amount(1.0, 1.0) == 0.5
    assert blur_amount(2.0, 0.5) == 1.5


def test_fast_blur_tap_positions(recording_image, noise_source) -> None:
    rec = recording_image(noise_source.pixels)
    FastBlur().sample(rec, (0.5, 0.5), (0.01, 0.02), 1.0)

    coords = rec.all_coords() - 0.5
    expected = np.array([
        [0.0, 0.0],
        [0.013846153846, 0.027692307692],
        [-0.013846153846, -0.027692307692],
        [0.032307692308, 0.064615384616],
        [-0.032307692308, -0.064615384616],
    ])
    assert np.allclose(coords, expected, atol=1e-9)


def test_quality_blur_tap_positions(recording_image, noise_source) -> None:
    rec = recording_image(noise_source.pixels)
    QualityBlur().sample(rec, (0.5, 0.5), (0.01, 0.01), 2.0)

    coords = np.round((rec.all_coords() - 0.5) / 0.02, 6)
    taps = {tuple(c) for c in coords}
    assert taps == {
        (0.0, 0.0),
        (1.0, 0.0), (-1.0, 0.0), (0.0, 1.0), (0.0, -1.0),
        (2.0, 0.0), (-2.0, 0.0), (0.0, 2.0), (0.0, -2.0),
    }


def test_blur_of_flat_image_is_flat() -> None:
    flat = SourceImage.solid(8, 8, (0.2, 0.4, 0.6, 1.0))
    out = FastBlur().sample(flat, (0.3, 0.7), (0.125, 0.125), 2.0)
    assert np.allclose(out, (0.2, 0.4, 0.6, 1.0), atol=1e-6)


# ────────────── Chromatic ──────────────


def test_chromatic_blue_offset_exceeds_red(recording_image, noise_source) -> None:
    rec = recording_image(noise_source.pixels)
    uv = np.array([0.7, 0.6])
    direction = center_direction(uv)

    chromatic_sample(rec, uv, direction, 0.02, 0.9)

    red_off = rec.calls[0] - uv
    green_off = rec.calls[1] - uv
    blue_off = rec.calls[2] - uv
    assert np.allclose(green_off, 0.0)
    assert np.linalg.norm(blue_off) > np.linalg.norm(red_off) > 0.0
    assert np.linalg.norm(blue_off) / np.linalg.norm(red_off) == pytest.approx(1.5)
    # Same direction
    assert np.dot(red_off, blue_off) > 0.0
    assert abs(red_off[0] * blue_off[1] - red_off[1] * blue_off[0]) < 1e-12


def test_chromatic_collapses_without_aberration(noise_source) -> None:
    uv = np.array([0.8, 0.25])
    out = chromatic_sample(noise_source, uv, center_direction(uv), 0.0, 1.0)
    assert np.allclose(out, noise_source.sample(uv)[:3])


# ────────────── Fresnel / specular ──────────────


def test_fresnel_is_zero_at_centre_and_full_at_rim() -> None:
    assert fresnel((0.5, 0.5), 0.0, 1.0) == 0.0
    assert fresnel((1.0, 0.5), 1.0, 0.6) == pytest.approx(0.6)


def test_specular_lobes() -> None:
    primary = specular((0.02, 0.02), 1.0, 0.8)
    secondary = specular((0.98, 0.98), 1.0, 0.8)
    off_axis = specular((0.98, 0.02), 1.0, 0.8)

    assert primary == pytest.approx(0.8, rel=1e-9)
    assert secondary == pytest.approx(0.4, rel=1e-9)
    assert off_axis < 1e-6


def test_specular_gated_by_rim() -> None:
    assert specular((0.02, 0.02), 0.0, 1.0) == 0.0


# ────────────── Compositor ──────────────


def test_composite_reference_values() -> None:
    out = composite(
        np.array([0.2, 0.4, 0.6, 1.0]),
        np.array([0.8, 0.6, 0.4]),
        0.5, 1.0, 0.5, 0.7,
    )
    assert np.allclose(out, [1.04412738, 1.09488738, 1.14807738, 0.7], atol=1e-8)


def test_composite_identity_without_tint_or_desaturation(noise_source) -> None:
    grid = uv_grid(10, 10)
    bg = noise_source.sample(grid)
    out = composite(bg, bg[..., :3], np.full((10, 10), 0.4), 0.0, 0.0, 1.0,
                    tint=(1.0, 1.0, 1.0), desaturation=0.0)
    assert np.allclose(out[..., :3], bg[..., :3], atol=1e-12)


# ────────────── Full kernel ──────────────


def test_evaluate_pixel_is_deterministic(noise_source, square_geometry, material) -> None:
    a = evaluate_pixel((0.93, 0.12), noise_source, square_geometry, material, 1.75)
    b = evaluate_pixel((0.93, 0.12), noise_source, square_geometry, material, 1.75)
    assert a == b


def test_evaluate_pixels_is_deterministic(noise_source, square_geometry, material) -> None:
    grid = uv_grid(24, 24)
    a = evaluate_pixels(grid, noise_source, square_geometry, material, 0.5)
    b = evaluate_pixels(grid, noise_source, square_geometry, material, 0.5)
    assert np.array_equal(a, b)


@pytest.mark.parametrize("opacity", [0.0, 0.37, 1.0, 1.7, -0.2])
def test_alpha_equals_opacity(noise_source, square_geometry, material, opacity: float) -> None:
    params = material.with_values(glass_opacity=opacity)
    for uv in [(0.5, 0.5), (0.01, 0.99), (0.75, 0.2)]:
        assert evaluate_pixel(uv, noise_source, square_geometry, params, 2.0)[3] == opacity


def test_single_and_batched_paths_agree(noise_source, square_geometry, material) -> None:
    uv = np.array([[0.1, 0.2], [0.5, 0.5], [0.97, 0.6]])
    batch = evaluate_pixels(uv, noise_source, square_geometry, material, 4.0, blur="quality")
    for row, point in zip(batch, uv):
        single = evaluate_pixel(point, noise_source, square_geometry, material, 4.0, blur="quality")
        assert np.allclose(row, single, atol=1e-12)


@pytest.mark.parametrize("blur, atol", [("fast", 1e-6), ("quality", 2e-4)])
def test_zero_parameters_leave_only_tint_and_desaturation(noise_source, blur: str, atol: float) -> None:
    geometry = SurfaceGeometry.from_rect(0, 0, 40, 40, radius=6)
    params = MaterialParameters.neutral(glass_opacity=1.0)
    grid = uv_grid(40, 40)

    out = evaluate_pixels(grid, noise_source, geometry, params, 3.0, blur=blur)

    # Residual tint + 10 % desaturation are expected at these settings
    bg = noise_source.sample(clamp_uv(grid))[..., :3]
    tinted = bg * np.asarray(GLASS_TINT)
    expected = tinted * 0.9 + luminance(tinted)[..., None] * 0.1
    assert np.allclose(out[..., :3], expected, atol=atol)
    assert np.all(out[..., 3] == 1.0)


def test_sampling_stays_clamped_at_max_refraction(recording_image, noise_source) -> None:
    geometry = SurfaceGeometry.from_rect(0, 0, 64, 64, radius=8)
    params = MaterialParameters(
        blur_strength=2.0, refraction_strength=0.15, chromatic_aberration=0.02,
        fresnel_strength=1.0, specular_strength=1.0, glass_opacity=1.0,
        edge_thickness=0.3,
    )
    rec = recording_image(noise_source.pixels)
    corners = np.array([
        [0.0, 0.0], [1.0, 1.0], [0.0, 1.0], [1.0, 0.0],
        [0.002, 0.003], [0.998, 0.997], [0.9995, 0.0005], [0.01, 0.99],
    ])

    evaluate_pixels(corners, rec, geometry, params, 7.0, blur="fast")
    evaluate_pixels(corners, rec, geometry, params, 7.0, blur="quality")

    coords = rec.all_coords()
    assert coords.min() >= SAMPLE_MIN
    assert coords.max() <= SAMPLE_MAX


def test_rim_is_brighter_than_centre_on_flat_background(square_geometry, material) -> None:
    flat = SourceImage.solid(16, 16, (0.3, 0.3, 0.3, 1.0))
    centre = evaluate_pixel((0.5, 0.5), flat, square_geometry, material, 0.0)
    rim = evaluate_pixel((0.02, 0.02), flat, square_geometry, material, 0.0)
    assert sum(rim[:3]) > sum(centre[:3])
