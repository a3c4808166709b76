import numpy as np


class SceneSettings:
    def __init__(self, background_color=(0.5, 0.5, 0.5), max_recursions=3, shadow_bias=1e-3):
        self.background_color = np.array(background_color, dtype=np.float64)
        # Threaded through trace_ray but never consulted: shading stops at the primary hit.
        self.max_recursions = int(max_recursions)
        self.shadow_bias = float(shadow_bias)
