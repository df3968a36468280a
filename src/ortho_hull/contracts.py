"""Contracts for the orthographic silhouette reconstruction pipeline."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import trimesh

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Ring = Tuple[Vec2, ...]


class View(Enum):
    """Orthographic view of the object.

    Each view carries how its local extrusion frame maps into the world:
    the rotation applied after extrusion and the world axis the prism
    ends up running along.
    """

    FRONT = "front"
    TOP = "top"
    SIDE = "side"

    @classmethod
    def coerce(cls, value: Union["View", str]) -> "View":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown view: {value!r}") from None

    @property
    def rotation(self) -> Optional[Tuple[float, Vec3]]:
        """(angle_rad, axis) applied after extrusion, or None."""
        return _VIEW_ROTATIONS[self]

    @property
    def extrusion_axis(self) -> int:
        """World axis index (0=X, 1=Y, 2=Z) the prism runs along."""
        return _VIEW_EXTRUSION_AXES[self]


_VIEW_ROTATIONS: Dict[View, Optional[Tuple[float, Vec3]]] = {
    View.FRONT: None,
    View.TOP: (math.pi / 2.0, (1.0, 0.0, 0.0)),
    View.SIDE: (math.pi / 2.0, (0.0, 1.0, 0.0)),
}

_VIEW_EXTRUSION_AXES: Dict[View, int] = {
    View.FRONT: 2,
    View.TOP: 1,
    View.SIDE: 0,
}

ORDERED_VIEWS: Tuple[View, ...] = (View.FRONT, View.TOP, View.SIDE)


class ContourPolicy(Enum):
    """How the contour extractor aggregates disjoint outer contours."""

    LARGEST = "largest"
    ALL = "all"


@dataclass(frozen=True)
class ReconstructionConfig:
    """Parameters for image -> silhouette -> intersection mesh."""

    # Binarization
    threshold: int = 127
    use_otsu_threshold: bool = True
    auto_invert: bool = True
    blur_kernel_size: int = 5
    morphology_kernel_size: int = 5
    morphology_iterations: int = 1
    alpha_threshold: int = 8
    opaque_alpha_cutoff: int = 250

    # Contours
    epsilon_ratio: float = 0.01
    min_area_ratio: float = 0.0005
    keep_largest_contour: bool = True
    min_polygon_area: float = 1e-4

    # Solids
    min_extrusion_depth: float = 300.0
    depth_multiplier: float = 2.5

    # Intersection / output
    boolean_engine: str = "manifold"
    target_max_dimension: float = 120.0

    @property
    def contour_policy(self) -> ContourPolicy:
        return ContourPolicy.LARGEST if self.keep_largest_contour else ContourPolicy.ALL

    def validate(self) -> "ReconstructionConfig":
        """Raise ValueError on out-of-range values; return self otherwise."""
        problems = []
        if not 0 <= self.threshold <= 255:
            problems.append(f"threshold must be in [0, 255], got {self.threshold}")
        if not 0 <= self.alpha_threshold <= 255:
            problems.append(f"alpha_threshold must be in [0, 255], got {self.alpha_threshold}")
        if not 0 < self.opaque_alpha_cutoff <= 256:
            problems.append(f"opaque_alpha_cutoff must be in (0, 256], got {self.opaque_alpha_cutoff}")
        if not 0.0 <= self.epsilon_ratio < 1.0:
            problems.append(f"epsilon_ratio must be in [0, 1), got {self.epsilon_ratio}")
        if not 0.0 <= self.min_area_ratio < 1.0:
            problems.append(f"min_area_ratio must be in [0, 1), got {self.min_area_ratio}")
        if self.blur_kernel_size < 0 or self.morphology_kernel_size < 0:
            problems.append("kernel sizes must be non-negative")
        if self.morphology_iterations < 0:
            problems.append("morphology_iterations must be non-negative")
        if self.min_polygon_area < 0.0:
            problems.append("min_polygon_area must be non-negative")
        if self.min_extrusion_depth <= 0.0 or self.depth_multiplier <= 0.0:
            problems.append("extrusion depth floor and multiplier must be positive")
        if self.target_max_dimension <= 0.0:
            problems.append("target_max_dimension must be positive")
        if problems:
            raise ValueError("Invalid reconstruction config: " + "; ".join(problems))
        return self

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class Shape:
    """Planar region: one CCW outer ring plus CW holes, centered Y-up frame.

    Closure is implicit; the first vertex is never repeated at the end.
    """

    outer: Ring
    holes: Tuple[Ring, ...] = ()

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) of the outer ring."""
        pts = np.asarray(self.outer, dtype=float)
        return (
            float(pts[:, 0].min()),
            float(pts[:, 1].min()),
            float(pts[:, 0].max()),
            float(pts[:, 1].max()),
        )

    @property
    def max_dimension(self) -> float:
        min_x, min_y, max_x, max_y = self.bounds
        return max(max_x - min_x, max_y - min_y)

    @property
    def area(self) -> float:
        from ortho_hull.polygon import signed_area

        return signed_area(self.outer) - sum(abs(signed_area(h)) for h in self.holes)

    @property
    def vertex_count(self) -> int:
        return len(self.outer) + sum(len(h) for h in self.holes)


@dataclass(frozen=True)
class RegionCandidate:
    """A sanitized shape extracted from one outer contour of a mask."""

    shape: Shape
    pixel_area: float
    raw_vertex_count: int
    simplified_vertex_counts: Tuple[int, ...]  # outer first, then each kept hole


@dataclass
class Solid:
    """A silhouette prism in world space."""

    view: View
    mesh: trimesh.Trimesh
    depth: float
    transform: np.ndarray  # (4, 4) accumulated center + rotate
    part_count: int = 1


@dataclass
class IntersectionResult:
    """Triangle soup of an intersection volume, with vertex normals."""

    mesh: trimesh.Trimesh

    @classmethod
    def empty(cls) -> "IntersectionResult":
        return cls(
            mesh=trimesh.Trimesh(
                vertices=np.zeros((0, 3), dtype=np.float64),
                faces=np.zeros((0, 3), dtype=np.int64),
                process=False,
            )
        )

    @property
    def is_empty(self) -> bool:
        return len(self.mesh.faces) == 0

    @property
    def vertices(self) -> np.ndarray:
        return np.asarray(self.mesh.vertices)

    @property
    def faces(self) -> np.ndarray:
        return np.asarray(self.mesh.faces)

    @property
    def vertex_normals(self) -> np.ndarray:
        if self.is_empty:
            return np.zeros((0, 3), dtype=np.float64)
        return np.asarray(self.mesh.vertex_normals)

    @property
    def volume(self) -> float:
        return 0.0 if self.is_empty else float(self.mesh.volume)

    @property
    def extents(self) -> Vec3:
        if self.is_empty:
            return (0.0, 0.0, 0.0)
        return to_vec3(self.mesh.extents)

    @property
    def bounds_center(self) -> Vec3:
        if self.is_empty:
            return (0.0, 0.0, 0.0)
        return to_vec3(np.mean(self.mesh.bounds, axis=0))


@dataclass
class ReconstructionResult:
    """In-memory result of one pipeline run."""

    mesh: IntersectionResult
    shapes: Dict[View, List[Shape]]
    depth: float
    scale_factor: float
    debug: Dict[str, object] = field(default_factory=dict)


def to_vec3(values: Sequence[float]) -> Vec3:
    return (float(values[0]), float(values[1]), float(values[2]))


def to_vec2(values: Sequence[float]) -> Vec2:
    return (float(values[0]), float(values[1]))
