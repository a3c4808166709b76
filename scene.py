from collections import namedtuple

# surface_index is the position in Scene.surfaces and identifies the surface
Hit = namedtuple("Hit", ["surface_index", "distance"])


class Scene:
    """An ordered collection of surfaces (spheres and tiled planes)."""

    def __init__(self, surfaces=None):
        self.surfaces = list(surfaces) if surfaces is not None else []

    def __len__(self):
        return len(self.surfaces)

    def add(self, surface):
        self.surfaces.append(surface)
        return len(self.surfaces) - 1

    def nearest_hit(self, ray_origin, ray_direction):
        """
        Find the nearest surface intersection along the ray.

        Surfaces are scanned in insertion order and only a strictly closer hit
        replaces the current one, so the first surface wins an exact tie.

        Returns:
            Hit(surface_index, distance) or None if nothing is hit
        """
        nearest = None

        for surf_idx, surface in enumerate(self.surfaces):
            t = surface.intersect(ray_origin, ray_direction)
            if t is not None and t >= 0 and (nearest is None or t < nearest.distance):
                nearest = Hit(surf_idx, t)

        return nearest
