"""
Silhouette prisms.

Each view's shape is extruded along its local +Z, recentered on its own
bounding box and rotated so the prism runs along the view's world axis:

    front  no rotation     local XY -> world XY, extrusion along Z
    top    +90 deg about X local XY -> world XZ, extrusion along Y
    side   +90 deg about Y local XY -> world ZY, extrusion along X

All three prisms share one depth, long enough that none of them is capped
inside the region where they intersect.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import trimesh

from ortho_hull.contracts import ORDERED_VIEWS, ReconstructionConfig, Shape, Solid, View
from ortho_hull.errors import ExtrusionError, InvalidPolygonError, MissingInputError
from ortho_hull.polygon import shape_to_polygon

logger = logging.getLogger(__name__)

MIN_EXTRUSION_DEPTH = 300.0
DEPTH_MULTIPLIER = 2.5

ShapeInput = Union[Shape, Sequence[Shape]]


def _as_shape_list(value: Optional[ShapeInput]) -> list:
    if value is None:
        return []
    if isinstance(value, Shape):
        return [value]
    return [s for s in value if s is not None]


def compute_extrusion_depth(
    shapes: Iterable[Optional[ShapeInput]],
    min_depth: float = MIN_EXTRUSION_DEPTH,
    multiplier: float = DEPTH_MULTIPLIER,
) -> float:
    """max(min_depth, ceil(multiplier * largest bbox edge of any present shape))."""
    max_dimension = 0.0
    for entry in shapes:
        for shape in _as_shape_list(entry):
            max_dimension = max(max_dimension, shape.max_dimension)

    if not math.isfinite(max_dimension) or max_dimension <= 0.0:
        return float(min_depth)
    return float(max(min_depth, math.ceil(max_dimension * multiplier)))


def view_transform(view: View, center: np.ndarray) -> np.ndarray:
    """4x4 transform: move *center* to the origin, then apply the view rotation."""
    translate = trimesh.transformations.translation_matrix(-np.asarray(center, dtype=float))
    if view.rotation is None:
        return translate
    angle, axis = view.rotation
    rotate = trimesh.transformations.rotation_matrix(angle, axis)
    return rotate @ translate


def _extrude(shape: Shape, depth: float) -> trimesh.Trimesh:
    polygon = shape_to_polygon(shape)
    return trimesh.creation.extrude_polygon(polygon, height=float(depth))


def build_solid(view: Union[View, str], shapes: ShapeInput, depth: float) -> Solid:
    """Extrude one view's shape(s) into a world-aligned prism.

    Several shapes (disjoint parts of one silhouette) become one compound
    solid made of disjoint prisms.
    """
    view = View.coerce(view)
    parts = _as_shape_list(shapes)
    if not parts:
        raise MissingInputError("no shape to extrude", view=view)
    if not depth > 0.0:
        raise ExtrusionError(f"extrusion depth must be positive, got {depth}", view=view)

    try:
        prisms = [_extrude(shape, depth) for shape in parts]
    except InvalidPolygonError as exc:
        raise ExtrusionError(f"cannot extrude shape: {exc.message}", view=view) from exc
    except Exception as exc:
        raise ExtrusionError(f"extrude_polygon failed: {exc}", view=view) from exc

    mesh = prisms[0] if len(prisms) == 1 else trimesh.util.concatenate(prisms)
    if len(mesh.faces) == 0:
        raise ExtrusionError("extrusion produced no faces", view=view)

    center = np.mean(mesh.bounds, axis=0)
    transform = view_transform(view, center)
    mesh.apply_transform(transform)
    mesh.fix_normals()

    logger.debug(
        "%s solid: %d vertices, %d faces, depth=%.1f, parts=%d",
        view.value, len(mesh.vertices), len(mesh.faces), depth, len(prisms),
    )
    return Solid(view=view, mesh=mesh, depth=float(depth), transform=transform,
                 part_count=len(prisms))


def require_all_views(shapes_by_view: Mapping[Union[View, str], Optional[ShapeInput]]) -> Dict[View, list]:
    """Normalize keys to View and fail if any of the three views is absent."""
    normalized: Dict[View, list] = {}
    for key, value in shapes_by_view.items():
        normalized[View.coerce(key)] = _as_shape_list(value)
    missing = [v.value for v in ORDERED_VIEWS if not normalized.get(v)]
    if missing:
        raise MissingInputError(
            "one or more input shapes are missing: " + ", ".join(missing)
        )
    return normalized


def build_solids(
    shapes_by_view: Mapping[Union[View, str], Optional[ShapeInput]],
    config: Optional[ReconstructionConfig] = None,
    depth: Optional[float] = None,
) -> Dict[View, Solid]:
    """Build all three prisms with one shared depth."""
    if config is None:
        config = ReconstructionConfig()
    normalized = require_all_views(shapes_by_view)
    if depth is None:
        depth = compute_extrusion_depth(
            normalized.values(),
            min_depth=config.min_extrusion_depth,
            multiplier=config.depth_multiplier,
        )
    return {view: build_solid(view, normalized[view], depth) for view in ORDERED_VIEWS}
