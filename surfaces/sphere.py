import numpy as np


class Sphere:
    def __init__(self, position, radius, material):
        self.position = np.array(position, dtype=np.float64)
        if radius <= 0:
            raise ValueError("Sphere radius must be positive, got {}".format(radius))
        self.radius = float(radius)
        self.material = material

    def intersect(self, ray_origin, ray_direction):
        """Compute ray-sphere intersection using the quadratic formula.

        Returns the smallest positive root, or None when the ray misses or the
        sphere lies entirely behind the origin.
        """
        oc = ray_origin - self.position

        a = np.dot(ray_direction, ray_direction)
        if a < 1e-12:
            return None

        b = 2.0 * np.dot(oc, ray_direction)
        c = np.dot(oc, oc) - self.radius * self.radius

        discriminant = b * b - 4 * a * c

        if discriminant < 0:
            return None

        sqrt_disc = np.sqrt(discriminant)
        t1 = (-b - sqrt_disc) / (2 * a)
        t2 = (-b + sqrt_disc) / (2 * a)

        if t1 > 0:
            return float(t1)
        if t2 > 0:
            return float(t2)
        return None

    def surface_normal_at(self, point):
        return (point - self.position) / self.radius

    def material_at(self, point):
        return self.material

    def material_at_batch(self, points):
        """Material arrays (albedo, specular, emissive) for an (N, 3) batch of points."""
        n = points.shape[0]
        return (np.tile(self.material.albedo, (n, 1)),
                np.tile(self.material.specular, (n, 1)),
                np.tile(self.material.emissive, (n, 1)))

    def light_direction_from(self, point):
        """Unnormalized direction from point towards the center, used as a point-light position."""
        return self.position - point
