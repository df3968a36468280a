"""
Shared test fixtures for silhouette reconstruction tests.
"""
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ortho_hull.contracts import ReconstructionConfig, Shape


def square_ring(half: float, cx: float = 0.0, cy: float = 0.0, clockwise: bool = False):
    ring = (
        (cx - half, cy - half),
        (cx + half, cy - half),
        (cx + half, cy + half),
        (cx - half, cy + half),
    )
    return tuple(reversed(ring)) if clockwise else ring


def rect_ring(width: float, height: float):
    w, h = width / 2.0, height / 2.0
    return ((-w, -h), (w, -h), (w, h), (-w, h))


@pytest.fixture
def square_shape():
    """A 100x100 square centered on the origin."""
    return Shape(outer=square_ring(50.0))


@pytest.fixture
def small_square_shape():
    """A 10x10 square centered on the origin."""
    return Shape(outer=square_ring(5.0))


@pytest.fixture
def ring_shape():
    """A 100x100 square with a 90x90 square hole (a thin frame)."""
    return Shape(outer=square_ring(50.0), holes=(square_ring(45.0, clockwise=True),))


@pytest.fixture
def wide_shape():
    """A 100 wide x 40 tall rectangle."""
    return Shape(outer=rect_ring(100.0, 40.0))


@pytest.fixture
def default_config():
    return ReconstructionConfig()


@pytest.fixture
def rgba_silhouette():
    """Factory for RGBA images: opaque gray rectangles on a transparent background."""

    def _make(size=120, boxes=((30, 30, 90, 90),)):
        image = np.zeros((size, size, 4), dtype=np.uint8)
        for r0, c0, r1, c1 in boxes:
            image[r0:r1, c0:c1, :3] = 90
            image[r0:r1, c0:c1, 3] = 255
        return image

    return _make


@pytest.fixture
def dark_on_white():
    """Opaque RGB image: black 40x40 square on a white 100x100 background."""
    image = np.full((100, 100, 3), 255, dtype=np.uint8)
    image[30:70, 30:70] = 0
    return image


@pytest.fixture
def square_views(rgba_silhouette):
    """The same centered square silhouette for front, top and side."""
    return {
        "front": rgba_silhouette(),
        "top": rgba_silhouette(),
        "side": rgba_silhouette(),
    }
