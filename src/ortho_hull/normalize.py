"""Recenter and rescale the intersection mesh to a canonical size."""

from __future__ import annotations

import logging
import math
from typing import Tuple

import numpy as np

from ortho_hull.contracts import IntersectionResult

logger = logging.getLogger(__name__)

TARGET_MAX_DIMENSION = 120.0


def center_mesh(result: IntersectionResult) -> IntersectionResult:
    """Translate so the bounding-box center sits at the origin."""
    if result.is_empty:
        return result
    center = np.mean(result.mesh.bounds, axis=0)
    result.mesh.apply_translation(-center)
    return result


def normalize_mesh(
    result: IntersectionResult,
    target_max_dimension: float = TARGET_MAX_DIMENSION,
) -> Tuple[IntersectionResult, float]:
    """Center, scale the largest bbox edge to *target_max_dimension*, recenter.

    Works on a copy. A degenerate bounding box (empty mesh or zero extent)
    is returned unmodified with a scale factor of 1.0.
    """
    if result.is_empty:
        return result, 1.0

    max_dim = float(np.max(result.mesh.extents))
    if not math.isfinite(max_dim) or max_dim <= 0.0:
        logger.warning("Degenerate bounding box (max edge %.3g); leaving mesh as is", max_dim)
        return result, 1.0

    normalized = IntersectionResult(mesh=result.mesh.copy())
    center_mesh(normalized)

    scale = float(target_max_dimension) / max_dim
    normalized.mesh.apply_scale(scale)
    center_mesh(normalized)

    # Vertex normals are cached on the mesh; compute them for the final geometry.
    _ = normalized.mesh.vertex_normals
    logger.debug("Normalized mesh: max edge %.3f -> %.3f (scale %.5f)",
                 max_dim, target_max_dimension, scale)
    return normalized, scale
