"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from material import Material  # noqa: E402
from scene import Scene  # noqa: E402
from scene_settings import SceneSettings  # noqa: E402
from surfaces.sphere import Sphere  # noqa: E402


@pytest.fixture
def settings():
    """Default settings: mid-grey background, shadow bias 1e-3."""
    return SceneSettings()


@pytest.fixture
def lit_sphere_scene():
    """A grey unit sphere at the origin with a white emissive sphere directly above it."""
    body = Sphere((0.0, 0.0, 0.0), 1.0, Material((0.5, 0.5, 0.5), (0.0, 0.0, 0.0)))
    light = Sphere((0.0, 5.0, 0.0), 0.5,
                   Material((0.0, 0.0, 0.0), (0.0, 0.0, 0.0), emissive=(1.0, 1.0, 1.0)))
    return Scene([body, light])


@pytest.fixture
def default_scene_path():
    return project_root / "scenes" / "default.txt"
