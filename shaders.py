# =============================
# GLSL Шейдеры
# =============================
# GPU twin of glass_kernel.py.  Constants must stay in sync with config.py
# (tests compare the two paths when a GL context is available).

# =============================
# Fullscreen triangle vertex shader
# =============================

FULLSCREEN_VERTEX_SHADER = """
#version 330

in vec2 in_pos;
in vec2 in_uv;
out vec2 v_uv;

void main() {
    gl_Position = vec4(in_pos, 0.0, 1.0);
    v_uv = in_uv;
}
"""

# =============================
# Liquid glass fragment shader
# =============================

GLASS_FRAGMENT_SHADER = """
#version 330

in vec2 v_uv;
out vec4 fragColor;

uniform sampler2D source_tex;
uniform vec2 texel_size;        // 1 / full_size
uniform float corner_radius;    // radius / max(full_size) * 2
uniform float time;

uniform float blur_strength;
uniform float refraction_strength;
uniform float chromatic_aberration;
uniform float fresnel_strength;
uniform float specular_strength;
uniform float glass_opacity;
uniform float edge_thickness;

// 0 = 5-tap (fast), 1 = 9-tap (quality)
uniform int blur_quality;

const float SAMPLE_MIN = 0.001;
const float SAMPLE_MAX = 0.999;
const float CENTER_EPSILON = 0.0001;
const float HALF_PI = 1.5707963267948966;

vec2 clamp_uv(vec2 uv) {
    return clamp(uv, vec2(SAMPLE_MIN), vec2(SAMPLE_MAX));
}

vec4 tex(vec2 uv) {
    return texture(source_tex, clamp_uv(uv));
}

float rounded_rect_sdf(vec2 p, vec2 size, float r) {
    vec2 q = abs(p) - size + r;
    return min(max(q.x, q.y), 0.0) + length(max(q, 0.0)) - r;
}

// smoothstep(-thickness, 0, sdf) with a step for zero thickness
float edge_mask(vec2 uv, float thickness) {
    vec2 p = uv - 0.5;
    float sdf = rounded_rect_sdf(p, vec2(0.5 - thickness), corner_radius);
    if (thickness == 0.0) {
        return sdf >= 0.0 ? 1.0 : 0.0;
    }
    float t = clamp((sdf + thickness) / thickness, 0.0, 1.0);
    return t * t * (3.0 - 2.0 * t);
}

vec2 center_direction(vec2 uv) {
    return normalize(uv - 0.5 + CENTER_EPSILON);
}

vec4 blur5(vec2 uv, float strength) {
    vec2 spread = texel_size * strength;
    vec4 c = tex(uv) * 0.2270270270;
    c += tex(uv + spread * 1.3846153846) * 0.3162162162;
    c += tex(uv - spread * 1.3846153846) * 0.3162162162;
    c += tex(uv + spread * 3.2307692308) * 0.0702702703;
    c += tex(uv - spread * 3.2307692308) * 0.0702702703;
    return c;
}

vec4 blur9(vec2 uv, float strength) {
    vec2 spread = texel_size * strength;
    vec4 c = tex(uv) * 0.1633;
    c += tex(uv + vec2(spread.x, 0.0)) * 0.1531;
    c += tex(uv - vec2(spread.x, 0.0)) * 0.1531;
    c += tex(uv + vec2(0.0, spread.y)) * 0.1531;
    c += tex(uv - vec2(0.0, spread.y)) * 0.1531;
    c += tex(uv + vec2(spread.x * 2.0, 0.0)) * 0.0561;
    c += tex(uv - vec2(spread.x * 2.0, 0.0)) * 0.0561;
    c += tex(uv + vec2(0.0, spread.y * 2.0)) * 0.0561;
    c += tex(uv - vec2(0.0, spread.y * 2.0)) * 0.0561;
    return c;
}

void main() {
    vec2 uv = v_uv;
    vec2 dir = center_direction(uv);
    float dist = length(uv - 0.5);

    float edge = edge_mask(uv, edge_thickness);
    float rim = edge_mask(uv, edge_thickness * 0.5);

    // Refraction: edge-driven bend with a slow ripple
    float wave = sin(dist * 8.0 + time * 0.5) * 0.1 + 1.0;
    float bend = edge * sin(edge * HALF_PI) * refraction_strength * wave;
    vec2 displaced = clamp_uv(uv + dir * bend);

    // Blur: strongest at the optical centre
    float strength = blur_strength * (1.0 - edge * 0.5);
    vec4 blurred = (blur_quality == 1)
        ? blur9(displaced, strength)
        : blur5(displaced, strength);

    // Chromatic dispersion
    float ca = chromatic_aberration * edge;
    vec3 chroma = vec3(
        tex(displaced + dir * ca * 0.8).r,
        tex(displaced).g,
        tex(displaced + dir * ca * 1.2).b);

    // Fresnel rim glow
    float glow = pow(dist * 2.0, 3.0) * edge * fresnel_strength;

    // Two-light specular
    float s1 = pow(max(dot(dir, normalize(vec2(-0.7, -0.7))), 0.0), 16.0);
    float s2 = pow(max(dot(dir, normalize(vec2(0.7, 0.7))), 0.0), 24.0) * 0.5;
    float highlight = (s1 + s2) * rim * specular_strength;

    vec3 glass = mix(blurred.rgb, chroma, edge * 0.7);
    glass *= vec3(0.95, 0.97, 1.0);
    glass += vec3(glow * 0.15);
    glass += vec3(1.0, 0.98, 0.95) * highlight;
    float lum = dot(glass, vec3(0.299, 0.587, 0.114));
    glass = mix(glass, vec3(lum), 0.1);

    fragColor = vec4(glass, glass_opacity);
}
"""
