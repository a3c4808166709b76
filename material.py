import numpy as np


class Material:
    def __init__(self, albedo, specular, emissive=(0.0, 0.0, 0.0), reflectance=0.0):
        self.albedo = np.array(albedo, dtype=np.float64)
        self.specular = np.array(specular, dtype=np.float64)
        self.emissive = np.array(emissive, dtype=np.float64)
        self.reflectance = float(reflectance)

    def __repr__(self):
        return "Material(albedo={}, specular={}, emissive={}, reflectance={})".format(
            self.albedo.tolist(), self.specular.tolist(), self.emissive.tolist(), self.reflectance)
