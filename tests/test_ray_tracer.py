import numpy as np
import pytest

from camera import Camera
from material import Material
from ray_tracer import (
    compute_color,
    normalize,
    parse_scene_file,
    quantize,
    reflect,
    render,
    render_vectorized,
    trace_ray,
)
from scene import Scene
from scene_settings import SceneSettings
from surfaces.sphere import Sphere
from surfaces.tiled_plane import TiledPlane


DOWN = np.array([0.0, -1.0, 0.0])
UP = np.array([0.0, 1.0, 0.0])


def emitter(position, radius, emissive):
    return Sphere(position, radius, Material((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), emissive=emissive))


# --- Vector helpers ---

def test_normalize_leaves_zero_vector_alone():
    result = normalize(np.zeros(3))
    assert np.all(np.isfinite(result))
    assert np.allclose(result, 0.0)


def test_reflect_flips_normal_component():
    assert np.allclose(reflect(np.array([1.0, -1.0, 0.0]), UP), [1.0, 1.0, 0.0])


def test_quantize_clamps_and_truncates():
    pixel = quantize(np.array([0.5, 1.7, -0.3]))
    assert pixel.dtype == np.uint8
    assert pixel.tolist() == [127, 255, 0]


# --- Misses ---

def test_miss_returns_background(settings):
    color = trace_ray(np.zeros(3), np.array([0.0, 0.0, -1.0]), Scene(), settings)
    assert np.allclose(color, settings.background_color)


def test_sphere_behind_camera_returns_background():
    settings = SceneSettings(background_color=(0.1, 0.2, 0.3))
    scene = Scene([Sphere((0.0, 0.0, 5.0), 1.0, Material((1, 1, 1), (1, 1, 1)))])
    color = trace_ray(np.zeros(3), np.array([0.0, 0.0, -1.0]), scene, settings)
    assert np.allclose(color, [0.1, 0.2, 0.3])


def test_zero_direction_returns_background(settings, lit_sphere_scene):
    color = trace_ray(np.array([0.0, 3.0, 0.0]), np.zeros(3), lit_sphere_scene, settings)
    assert np.allclose(color, settings.background_color)


# --- Direct lighting ---

def test_top_of_sphere_under_light_gets_full_diffuse(settings, lit_sphere_scene):
    color = trace_ray(np.array([0.0, 3.0, 0.0]), DOWN, lit_sphere_scene, settings)
    # albedo * light emissive * N.L with N.L == 1
    assert np.allclose(color, [0.5, 0.5, 0.5])


def test_far_side_of_sphere_gets_no_diffuse(settings, lit_sphere_scene):
    color = trace_ray(np.array([0.0, -3.0, 0.0]), UP, lit_sphere_scene, settings)
    assert np.allclose(color, 0.0)


def test_unnormalized_primary_direction(settings, lit_sphere_scene):
    color = trace_ray(np.array([0.0, 3.0, 0.0]), DOWN * 4.0, lit_sphere_scene, settings)
    assert np.allclose(color, [0.5, 0.5, 0.5])


def test_emissive_surface_adds_own_emission(settings):
    glow = Material((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), emissive=(0.2, 0.4, 0.6))
    scene = Scene([Sphere((0.0, 0.0, -5.0), 1.0, glow)])
    color = trace_ray(np.zeros(3), np.array([0.0, 0.0, -1.0]), scene, settings)
    assert np.allclose(color, [0.2, 0.4, 0.6])


def test_nearer_sphere_wins(settings):
    near = emitter((0.0, 0.0, -5.0), 1.0, (1.0, 0.0, 0.0))
    far = emitter((0.0, 0.0, -10.0), 1.0, (0.0, 1.0, 0.0))
    scene = Scene([far, near])
    color = trace_ray(np.zeros(3), np.array([0.0, 0.0, -1.0]), scene, settings)
    assert np.allclose(color, [1.0, 0.0, 0.0])


def test_shadow_bias_does_not_skip_a_close_occluder(settings, lit_sphere_scene):
    # A tiny sphere just above the surface, closer than any light
    lit_sphere_scene.add(Sphere((0.0, 1.01, 0.0), 0.005, Material((0, 0, 0), (0, 0, 0))))
    hit_point = np.array([0.0, 1.0, 0.0])
    color = compute_color(DOWN, hit_point, 0, lit_sphere_scene, settings)
    assert np.allclose(color, 0.0)


def test_back_facing_specular_still_contributes(settings):
    # The sphere is its own candidate light: R.L == -1 at the top, squared to 1
    shiny = Sphere((0.0, 0.0, 0.0), 1.0, Material((0.0, 0.0, 0.0), (0.25, 0.5, 0.75)))
    scene = Scene([shiny])
    color = compute_color(DOWN, np.array([0.0, 1.0, 0.0]), 0, scene, settings)
    assert np.allclose(color, [0.25, 0.5, 0.75])


def test_plane_is_never_a_light(settings):
    floor = Material((1.0, 1.0, 1.0), (0.0, 0.0, 0.0), emissive=(0.3, 0.3, 0.3))
    scene = Scene([TiledPlane((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), floor, floor)])
    color = trace_ray(np.array([0.5, 2.0, 0.5]), DOWN, scene, settings)
    assert np.allclose(color, [0.3, 0.3, 0.3])


class TestOcclusion:
    """A plane between the shaded point and one light removes only that light."""

    @pytest.fixture
    def scene(self):
        body = Sphere((0.0, 0.0, 0.0), 1.0,
                      Material((0.5, 0.5, 0.5), (0.2, 0.2, 0.2), emissive=(0.1, 0.0, 0.0)))
        overhead = emitter((0.0, 5.0, 0.0), 0.5, (1.0, 0.0, 0.0))
        side = emitter((5.0, 1.5, 0.0), 0.5, (0.0, 0.0, 1.0))
        return Scene([body, overhead, side])

    @pytest.fixture
    def blocker(self):
        grey = Material((0.5, 0.5, 0.5), (0.0, 0.0, 0.0))
        return TiledPlane((0.0, 3.0, 0.0), (0.0, 1.0, 0.0), grey, grey)

    def shade(self, scene, settings):
        return compute_color(DOWN, np.array([0.0, 1.0, 0.0]), 0, scene, settings)

    def test_occluded_light_loses_diffuse_and_specular(self, scene, blocker, settings):
        unblocked = self.shade(scene, settings)
        scene.add(blocker)
        blocked = self.shade(scene, settings)

        # overhead light: diffuse 0.5 * (1, 0, 0) * 1 plus specular 0.2 * 1
        assert np.allclose(unblocked - blocked, [0.7, 0.2, 0.2])

    def test_emissive_and_other_lights_survive(self, scene, blocker, settings):
        scene.add(blocker)
        blocked = self.shade(scene, settings)

        side_dir = normalize(np.array([5.0, 0.5, 0.0]))
        n_dot_l = side_dir[1]
        expected = (np.array([0.1, 0.0, 0.0])                       # own emission
                    + 0.2                                           # self, back-facing specular
                    + np.array([0.0, 0.0, 0.5 * n_dot_l])           # side light diffuse
                    + 0.2 * n_dot_l ** 2)                           # side light specular
        assert np.allclose(blocked, expected)


# --- Raster drivers ---

def test_render_is_deterministic(default_scene_path):
    camera, settings, scene = parse_scene_file(default_scene_path)
    first = render(camera, scene, settings, 16, 12, verbose=False)
    second = render(camera, scene, settings, 16, 12, verbose=False)
    assert first.shape == (12, 16, 3)
    assert first.dtype == np.uint8
    assert first.tobytes() == second.tobytes()


def test_render_fills_misses_with_background():
    settings = SceneSettings(background_color=(0.5, 0.25, 1.0))
    camera = Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 60.0)
    image = render(camera, Scene(), settings, 4, 3, verbose=False)
    assert (image == np.array([127, 63, 255], dtype=np.uint8)).all()


def test_render_places_sphere_in_the_center():
    settings = SceneSettings(background_color=(0.0, 0.0, 0.0))
    camera = Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 30.0)
    scene = Scene([emitter((0.0, 0.0, -10.0), 1.0, (1.0, 1.0, 1.0))])
    image = render(camera, scene, settings, 9, 9, verbose=False)
    assert image[4, 4].tolist() == [255, 255, 255]
    assert image[0, 0].tolist() == [0, 0, 0]


def test_vectorized_matches_sequential(default_scene_path):
    camera, settings, scene = parse_scene_file(default_scene_path)
    sequential = render(camera, scene, settings, 24, 18, verbose=False)
    vectorized = render_vectorized(camera, scene, settings, 24, 18, verbose=False)

    assert vectorized.shape == sequential.shape
    assert vectorized.dtype == np.uint8
    difference = np.abs(vectorized.astype(int) - sequential.astype(int))
    # Rounding may move a channel by one step or flip a pixel on a shadow edge
    assert np.mean(difference.max(axis=2) > 1) < 0.02


def test_vectorized_is_deterministic(default_scene_path):
    camera, settings, scene = parse_scene_file(default_scene_path)
    first = render_vectorized(camera, scene, settings, 10, 8, verbose=False)
    second = render_vectorized(camera, scene, settings, 10, 8, verbose=False)
    assert np.array_equal(first, second)


def test_vectorized_empty_scene():
    settings = SceneSettings()
    camera = Camera((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 60.0)
    image = render_vectorized(camera, Scene(), settings, 3, 2, verbose=False)
    assert (image == 127).all()
