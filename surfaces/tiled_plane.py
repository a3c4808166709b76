import numpy as np


class TiledPlane:
    def __init__(self, point, normal, material_a, material_b, tile_size=1.0):
        self.point = np.array(point, dtype=np.float64)
        self.normal = np.array(normal, dtype=np.float64)
        norm = np.linalg.norm(self.normal)
        if norm < 1e-12:
            raise ValueError("Plane normal must be non-zero")
        self.normal = self.normal / norm
        if tile_size <= 0:
            raise ValueError("Tile size must be positive, got {}".format(tile_size))
        self.tile_size = float(tile_size)
        self.material_a = material_a
        self.material_b = material_b

        # Tangent axes spanning the plane, used for the checkerboard
        helper = np.array([0.0, 0.0, 1.0]) if abs(self.normal[2]) < 0.9 else np.array([1.0, 0.0, 0.0])
        self.u_axis = np.cross(self.normal, helper)
        self.u_axis = self.u_axis / np.linalg.norm(self.u_axis)
        self.v_axis = np.cross(self.normal, self.u_axis)

    def intersect(self, ray_origin, ray_direction):
        """Compute ray-plane intersection. Returns the positive distance or None."""
        denom = np.dot(ray_direction, self.normal)

        if abs(denom) < 1e-10:
            return None

        t = np.dot(self.point - ray_origin, self.normal) / denom

        if t <= 0:
            return None

        return float(t)

    def surface_normal_at(self, point):
        return self.normal

    def tile_indices(self, point):
        offset = point - self.point
        i = int(np.floor(np.dot(offset, self.u_axis) / self.tile_size))
        j = int(np.floor(np.dot(offset, self.v_axis) / self.tile_size))
        return i, j

    def material_at(self, point):
        i, j = self.tile_indices(point)
        return self.material_a if (i + j) % 2 == 0 else self.material_b

    def material_at_batch(self, points):
        """Material arrays (albedo, specular, emissive) for an (N, 3) batch of points."""
        offsets = points - self.point
        i = np.floor(offsets @ self.u_axis / self.tile_size).astype(np.int64)
        j = np.floor(offsets @ self.v_axis / self.tile_size).astype(np.int64)
        even = ((i + j) % 2 == 0)[:, np.newaxis]

        return (np.where(even, self.material_a.albedo, self.material_b.albedo),
                np.where(even, self.material_a.specular, self.material_b.specular),
                np.where(even, self.material_a.emissive, self.material_b.emissive))

    def light_direction_from(self, point):
        # An infinite plane has no position to act as a light
        return np.zeros(3)
