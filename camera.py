import numpy as np


class Camera:
    def __init__(self, position, look_at, fov, up_vector=(0.0, 1.0, 0.0)):
        self.position = np.array(position, dtype=np.float64)
        self.look_at = np.array(look_at, dtype=np.float64)
        self.up_vector = np.array(up_vector, dtype=np.float64)
        self.fov = float(fov)

        self.image_width = None
        self.image_height = None
        self.forward = None
        self.right = None
        self.up = None
        self.half_width = None
        self.half_height = None

    def setup(self, image_width, image_height):
        """Compute the orthonormal camera basis and view-plane half extents."""
        if image_width <= 0 or image_height <= 0:
            raise ValueError("Image resolution must be positive, got {}x{}".format(image_width, image_height))
        if not 0.0 < self.fov < 180.0:
            raise ValueError("Field of view must be between 0 and 180 degrees, got {}".format(self.fov))

        self.image_width = image_width
        self.image_height = image_height

        self.forward = self.look_at - self.position
        norm = np.linalg.norm(self.forward)
        if norm < 1e-12:
            raise ValueError("Camera look_at must differ from its position")
        self.forward = self.forward / norm

        self.right = np.cross(self.forward, self.up_vector)
        norm = np.linalg.norm(self.right)
        if norm < 1e-12:
            raise ValueError("Camera up vector is parallel to the viewing direction")
        self.right = self.right / norm

        self.up = np.cross(self.right, self.forward)

        # Vertical field of view; the horizontal extent follows the aspect ratio
        self.half_height = np.tan(np.radians(self.fov) / 2.0)
        self.half_width = self.half_height * image_width / image_height

    def get_world_ray(self, x, y):
        """Generate the ray through the continuous pixel coordinate (x, y).

        Pixel centers sit at (col + 0.5, row + 0.5); row 0 is the top of the image.
        """
        px = (2.0 * x / self.image_width - 1.0) * self.half_width
        py = (1.0 - 2.0 * y / self.image_height) * self.half_height

        direction = self.forward + self.right * px + self.up * py
        direction = direction / np.linalg.norm(direction)

        return self.position, direction

    def generate_all_rays(self):
        """Generate the pixel-center rays for the entire image at once (vectorized), row-major."""
        x = np.arange(self.image_width, dtype=np.float64) + 0.5
        y = np.arange(self.image_height, dtype=np.float64) + 0.5

        xx, yy = np.meshgrid(x, y)
        xx = xx.ravel()
        yy = yy.ravel()

        px = (2.0 * xx / self.image_width - 1.0) * self.half_width
        py = (1.0 - 2.0 * yy / self.image_height) * self.half_height

        directions = (self.forward[np.newaxis, :] +
                      np.outer(px, self.right) +
                      np.outer(py, self.up))
        norms = np.linalg.norm(directions, axis=1, keepdims=True)
        directions = directions / norms

        num_rays = self.image_width * self.image_height
        origins = np.tile(self.position, (num_rays, 1))

        return origins, directions
