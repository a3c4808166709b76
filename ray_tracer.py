import argparse
import sys
import time

from PIL import Image
import numpy as np
from numba import njit

from camera import Camera
from material import Material
from scene import Scene
from scene_settings import SceneSettings
from surfaces.sphere import Sphere
from surfaces.tiled_plane import TiledPlane


# Vectors shorter than this are treated as degenerate
EPSILON = 1e-6

SPHERE_TYPE = 0
PLANE_TYPE = 1


# =============================================================================
# Numba JIT-compiled nearest-hit kernel for the vectorized renderer
# =============================================================================

@njit(cache=True)
def _find_nearest_intersection_jit(ray_origins, ray_directions,
                                   sphere_centers, sphere_radii,
                                   plane_points, plane_normals,
                                   surface_types, surface_indices):
    """
    Find nearest intersection for all rays against all surfaces (JIT-accelerated).

    surface_types: 0=sphere, 1=plane
    surface_indices: index into respective type array

    Mirrors Sphere.intersect / TiledPlane.intersect: no epsilon bias, only
    strictly closer hits replace the current one.
    """
    N = ray_origins.shape[0]
    num_surfaces = len(surface_types)

    best_t = np.full(N, np.inf)
    best_surf_idx = np.full(N, -1, dtype=np.int32)

    for ray_idx in range(N):
        ray_o = ray_origins[ray_idx]
        ray_d = ray_directions[ray_idx]

        for surf_idx in range(num_surfaces):
            surf_type = surface_types[surf_idx]
            type_idx = surface_indices[surf_idx]

            t = np.inf

            if surf_type == 0:  # Sphere
                center = sphere_centers[type_idx]
                radius = sphere_radii[type_idx]

                oc_x = ray_o[0] - center[0]
                oc_y = ray_o[1] - center[1]
                oc_z = ray_o[2] - center[2]

                a = ray_d[0]*ray_d[0] + ray_d[1]*ray_d[1] + ray_d[2]*ray_d[2]
                if a < 1e-12:
                    continue
                b = 2.0 * (oc_x*ray_d[0] + oc_y*ray_d[1] + oc_z*ray_d[2])
                c = oc_x*oc_x + oc_y*oc_y + oc_z*oc_z - radius*radius

                disc = b*b - 4*a*c
                if disc >= 0:
                    sqrt_disc = np.sqrt(disc)
                    t1 = (-b - sqrt_disc) / (2*a)
                    t2 = (-b + sqrt_disc) / (2*a)

                    if t1 > 0:
                        t = t1
                    elif t2 > 0:
                        t = t2

            elif surf_type == 1:  # Plane
                point = plane_points[type_idx]
                normal = plane_normals[type_idx]

                denom = ray_d[0]*normal[0] + ray_d[1]*normal[1] + ray_d[2]*normal[2]
                if abs(denom) >= 1e-10:
                    num = ((point[0] - ray_o[0])*normal[0] +
                           (point[1] - ray_o[1])*normal[1] +
                           (point[2] - ray_o[2])*normal[2])
                    t_cand = num / denom
                    if t_cand > 0:
                        t = t_cand

            if t < best_t[ray_idx]:
                best_t[ray_idx] = t
                best_surf_idx[ray_idx] = surf_idx

    return best_t, best_surf_idx


def normalize(v):
    """Normalize a vector. Degenerate vectors are returned unchanged."""
    norm = np.linalg.norm(v)
    if norm < EPSILON:
        return v
    return v / norm


def normalize_batch(v):
    """Normalize an array of vectors (N, 3), leaving degenerate rows unchanged."""
    norms = np.linalg.norm(v, axis=1, keepdims=True)
    return np.where(norms < EPSILON, v, v / np.maximum(norms, EPSILON))


def reflect(d, n):
    """Reflect direction d around normal n."""
    return d - 2 * np.dot(d, n) * n


def reflect_batch(d, n):
    """Reflect directions d around normals n. Both are (N, 3) arrays."""
    dot = np.sum(d * n, axis=1, keepdims=True)
    return d - 2 * dot * n


def quantize(color):
    """Scale a linear color to 8 bits per channel, clamping to [0, 255] and truncating."""
    return np.clip(np.asarray(color) * 255.0, 0.0, 255.0).astype(np.uint8)


def prepare_surface_data(scene):
    """
    Prepare surface data as numpy arrays for JIT-compiled intersection.

    Returns a dict containing arrays that can be passed to _find_nearest_intersection_jit.
    """
    surfaces = scene.surfaces
    spheres = [s for s in surfaces if isinstance(s, Sphere)]
    planes = [s for s in surfaces if isinstance(s, TiledPlane)]

    # Arrays for spheres
    sphere_centers = np.zeros((max(1, len(spheres)), 3))
    sphere_radii = np.zeros(max(1, len(spheres)))
    for idx, s in enumerate(spheres):
        sphere_centers[idx] = s.position
        sphere_radii[idx] = s.radius

    # Arrays for planes
    plane_points = np.zeros((max(1, len(planes)), 3))
    plane_normals = np.zeros((max(1, len(planes)), 3))
    for idx, s in enumerate(planes):
        plane_points[idx] = s.point
        plane_normals[idx] = s.normal

    surface_types = np.zeros(len(surfaces), dtype=np.int32)
    surface_type_indices = np.zeros(len(surfaces), dtype=np.int32)

    sphere_idx = 0
    plane_idx = 0
    for i, s in enumerate(surfaces):
        if isinstance(s, Sphere):
            surface_types[i] = SPHERE_TYPE
            surface_type_indices[i] = sphere_idx
            sphere_idx += 1
        elif isinstance(s, TiledPlane):
            surface_types[i] = PLANE_TYPE
            surface_type_indices[i] = plane_idx
            plane_idx += 1
        else:
            raise TypeError("Unsupported surface type: {}".format(type(s).__name__))

    return {
        'sphere_centers': sphere_centers,
        'sphere_radii': sphere_radii,
        'plane_points': plane_points,
        'plane_normals': plane_normals,
        'surface_types': surface_types,
        'surface_indices': surface_type_indices,
    }


def find_nearest_intersection_batch_jit(ray_origins, ray_directions, surface_data):
    """
    Nearest hit for a batch of rays.

    Returns:
        t_values: (N,) array of hit distances (np.inf where no hit)
        surface_indices: (N,) array of scene surface indices (-1 where no hit)
    """
    return _find_nearest_intersection_jit(
        np.ascontiguousarray(ray_origins, dtype=np.float64),
        np.ascontiguousarray(ray_directions, dtype=np.float64),
        surface_data['sphere_centers'], surface_data['sphere_radii'],
        surface_data['plane_points'], surface_data['plane_normals'],
        surface_data['surface_types'], surface_data['surface_indices'],
    )


def compute_color(ray_direction, hit_point, surface_index, scene, scene_settings):
    """
    Direct lighting at a hit point.

    Every surface is a candidate light positioned by its light_direction_from
    proxy. A light counts only when the biased shadow ray towards it reaches
    that same surface first.
    """
    surface = scene.surfaces[surface_index]
    normal = surface.surface_normal_at(hit_point)
    material = surface.material_at(hit_point)

    color = material.emissive.copy()
    reflection = reflect(ray_direction, normal)

    for light_index, light in enumerate(scene.surfaces):
        light_dir = light.light_direction_from(hit_point)
        if np.linalg.norm(light_dir) < EPSILON:
            continue
        light_dir = normalize(light_dir)

        shadow_origin = hit_point + light_dir * scene_settings.shadow_bias
        occluder = scene.nearest_hit(shadow_origin, light_dir)
        if occluder is None or occluder.surface_index != light_index:
            continue

        # Diffuse: albedo * light emission * max(0, N.L)
        intensity = max(np.dot(normal, light_dir), 0.0)
        color += material.albedo * light.material_at(hit_point).emissive * intensity

        # Specular: squared R.L, not clamped before squaring
        specular_intensity = np.dot(reflection, light_dir)
        color += material.specular * (specular_intensity * specular_intensity)

    return color


def trace_ray(ray_origin, ray_direction, scene, scene_settings, depth=0):
    """
    Trace a ray through the scene and return the (unclamped) color.

    depth is accepted for a future reflected bounce; only primary hits are shaded.
    """
    direction = normalize(ray_direction)
    hit = scene.nearest_hit(ray_origin, direction)

    if hit is None:
        return scene_settings.background_color.copy()

    hit_point = ray_origin + direction * hit.distance

    return compute_color(direction, hit_point, hit.surface_index, scene, scene_settings)


def render(camera, scene, scene_settings, width, height, verbose=True):
    """
    Render the scene to an 8-bit image array, one pixel at a time.
    """
    camera.setup(width, height)
    if verbose:
        print(f"Camera setup complete. Forward: {camera.forward}, Right: {camera.right}, Up: {camera.up}")

    image = np.zeros((height, width, 3), dtype=np.uint8)

    start_time = time.time()

    for y in range(height):
        row_start = time.time()
        for x in range(width):
            ray_origin, ray_direction = camera.get_world_ray(x + 0.5, y + 0.5)

            color = trace_ray(ray_origin, ray_direction, scene, scene_settings, 0)

            image[y, x] = quantize(color)

        if verbose and ((y + 1) % 10 == 0 or y == height - 1):
            elapsed = time.time() - start_time
            progress = (y + 1) / height
            eta = (elapsed / progress) * (1 - progress)
            row_time = time.time() - row_start
            print(f"Row {y+1}/{height} ({progress*100:.1f}%) - Row time: {row_time:.2f}s - ETA: {eta:.0f}s")
            sys.stdout.flush()

    if verbose:
        print(f"Rendering complete in {time.time() - start_time:.1f}s")

    return image


def render_vectorized(camera, scene, scene_settings, width, height, verbose=True):
    """
    Render the scene using vectorized operations (much faster).

    Same shading as render(); every light is processed as one batch of shadow rays.
    """
    start_time = time.time()

    camera.setup(width, height)
    if verbose:
        print(f"Camera setup complete. Forward: {camera.forward}, Right: {camera.right}, Up: {camera.up}")
        print(f"Vectorized rendering {width}x{height} = {width*height} rays...")

    surface_data = prepare_surface_data(scene)

    ray_origins, ray_directions = camera.generate_all_rays()
    ray_directions = normalize_batch(ray_directions)
    N = ray_origins.shape[0]

    colors = np.tile(scene_settings.background_color, (N, 1))

    t_values, surface_indices = find_nearest_intersection_batch_jit(
        ray_origins, ray_directions, surface_data)

    hit_idx = np.where(surface_indices >= 0)[0]
    if verbose:
        print(f"Primary rays: {len(hit_idx)} hits, {N - len(hit_idx)} misses")

    if len(hit_idx) > 0:
        hit_surf_idx = surface_indices[hit_idx]
        directions = ray_directions[hit_idx]
        hit_points = ray_origins[hit_idx] + t_values[hit_idx, np.newaxis] * directions

        M = len(hit_idx)
        normals = np.zeros((M, 3))
        albedo = np.zeros((M, 3))
        specular = np.zeros((M, 3))
        emissive = np.zeros((M, 3))

        for surf_idx, surface in enumerate(scene.surfaces):
            mask = hit_surf_idx == surf_idx
            if not np.any(mask):
                continue
            points = hit_points[mask]
            normals[mask] = np.broadcast_to(surface.surface_normal_at(points), points.shape)
            albedo[mask], specular[mask], emissive[mask] = surface.material_at_batch(points)

        shaded = emissive.copy()
        reflections = reflect_batch(directions, normals)

        for light_index, light in enumerate(scene.surfaces):
            light_dirs = np.broadcast_to(light.light_direction_from(hit_points), hit_points.shape)
            valid = np.linalg.norm(light_dirs, axis=1) >= EPSILON
            if not np.any(valid):
                continue
            light_dirs = normalize_batch(light_dirs)

            shadow_origins = hit_points[valid] + light_dirs[valid] * scene_settings.shadow_bias
            _, occluders = find_nearest_intersection_batch_jit(
                shadow_origins, light_dirs[valid], surface_data)

            visible = np.zeros(M, dtype=bool)
            visible[valid] = occluders == light_index
            if not np.any(visible):
                continue

            l = light_dirs[visible]
            n_dot_l = np.maximum(np.sum(normals[visible] * l, axis=1), 0.0)
            light_emissive = light.material_at_batch(hit_points[visible])[2]
            shaded[visible] += albedo[visible] * light_emissive * n_dot_l[:, np.newaxis]

            r_dot_l = np.sum(reflections[visible] * l, axis=1)
            shaded[visible] += specular[visible] * (r_dot_l * r_dot_l)[:, np.newaxis]

        colors[hit_idx] = shaded

    image = quantize(colors).reshape(height, width, 3)

    if verbose:
        print(f"Vectorized rendering complete in {time.time() - start_time:.1f}s")

    return image


def _parse_floats(parts, path, line_no):
    try:
        return [float(p) for p in parts]
    except ValueError:
        raise ValueError("{}:{}: expected numeric values, got {}".format(path, line_no, " ".join(parts)))


def _check_count(obj_type, params, counts, path, line_no):
    if len(params) not in counts:
        expected = " or ".join(str(c) for c in counts)
        raise ValueError("{}:{}: '{}' takes {} values, got {}".format(
            path, line_no, obj_type, expected, len(params)))


def parse_scene_file(file_path):
    """Parse the scene file and return camera, settings, and scene."""
    camera = None
    scene_settings = SceneSettings()
    materials = []
    pending_surfaces = []

    with open(file_path, 'r') as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split()
            obj_type = parts[0]
            params = _parse_floats(parts[1:], file_path, line_no)

            if obj_type == "cam":
                _check_count(obj_type, params, (7, 10), file_path, line_no)
                up_vector = params[7:10] if len(params) == 10 else (0.0, 1.0, 0.0)
                camera = Camera(params[:3], params[3:6], params[6], up_vector)
            elif obj_type == "set":
                _check_count(obj_type, params, (4, 5), file_path, line_no)
                shadow_bias = params[4] if len(params) == 5 else 1e-3
                scene_settings = SceneSettings(params[:3], params[3], shadow_bias)
            elif obj_type == "mtl":
                _check_count(obj_type, params, (10,), file_path, line_no)
                materials.append(Material(params[:3], params[3:6], params[6:9], params[9]))
            elif obj_type in ("sph", "pln"):
                _check_count(obj_type, params, (5,) if obj_type == "sph" else (8, 9), file_path, line_no)
                pending_surfaces.append((obj_type, params, line_no))
            else:
                raise ValueError("{}:{}: unknown object type: {}".format(file_path, line_no, obj_type))

    if camera is None:
        raise ValueError("{}: scene has no 'cam' line".format(file_path))

    def material(index, line_no):
        if index != int(index):
            raise ValueError("{}:{}: material index must be a whole number, got {}".format(
                file_path, line_no, index))
        index = int(index)
        if not 1 <= index <= len(materials):
            raise ValueError("{}:{}: material index {} out of range (1..{})".format(
                file_path, line_no, index, len(materials)))
        return materials[index - 1]  # 1-indexed

    # Materials may be declared after the surfaces that use them
    scene = Scene()
    for obj_type, params, line_no in pending_surfaces:
        if obj_type == "sph":
            sphere_material = material(params[4], line_no)
            try:
                sphere = Sphere(params[:3], params[3], sphere_material)
            except ValueError as e:
                raise ValueError("{}:{}: {}".format(file_path, line_no, e))
            scene.add(sphere)
        else:
            tile_size = params[8] if len(params) == 9 else 1.0
            try:
                plane = TiledPlane(params[:3], params[3:6],
                                   material(params[6], line_no), material(params[7], line_no), tile_size)
            except ValueError as e:
                raise ValueError("{}:{}: {}".format(file_path, line_no, e))
            scene.add(plane)

    return camera, scene_settings, scene


def save_image(image_array, output_path):
    """Save the rendered 8-bit image to a file."""
    image = Image.fromarray(image_array)
    image.save(output_path)
    print(f"Image saved to {output_path}")
    return image


def main(argv=None):
    parser = argparse.ArgumentParser(description='Python Ray Tracer')
    parser.add_argument('scene_file', type=str, help='Path to the scene file')
    parser.add_argument('output_image', type=str, nargs='?', default='image.bmp',
                        help='Name of the output image file (default: image.bmp)')
    parser.add_argument('--width', type=int, default=512, help='Image width')
    parser.add_argument('--height', type=int, default=512, help='Image height')
    parser.add_argument('--vectorized', action='store_true',
                        help='Use the vectorized (numba) renderer')
    parser.add_argument('--show', action='store_true',
                        help='Open the rendered image in the default viewer')
    args = parser.parse_args(argv)

    camera, scene_settings, scene = parse_scene_file(args.scene_file)

    print(f"Scene loaded: {len(scene)} surfaces")
    print(f"Rendering {args.width}x{args.height} image...")

    if args.vectorized:
        print("Using vectorized renderer...")
        image_array = render_vectorized(camera, scene, scene_settings, args.width, args.height)
    else:
        image_array = render(camera, scene, scene_settings, args.width, args.height)

    image = save_image(image_array, args.output_image)

    if args.show:
        image.show()

    return 0


if __name__ == '__main__':
    sys.exit(main())
