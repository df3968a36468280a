"""Volumetric intersection of the three silhouette prisms."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np
import trimesh

from ortho_hull.contracts import ORDERED_VIEWS, IntersectionResult, Solid, View
from ortho_hull.errors import BooleanEvaluationError, MissingInputError

logger = logging.getLogger(__name__)

DEFAULT_ENGINE = "manifold"


def _intersect_pair(
    a: trimesh.Trimesh, b: trimesh.Trimesh, engine: str, step: str
) -> trimesh.Trimesh:
    try:
        result = trimesh.boolean.intersection([a, b], engine=engine)
    except Exception as exc:
        raise BooleanEvaluationError(f"{step} failed: {exc}") from exc

    if result is None:
        raise BooleanEvaluationError(f"{step} returned no geometry object")
    if len(result.vertices) and not np.all(np.isfinite(result.vertices)):
        raise BooleanEvaluationError(f"{step} produced non-finite vertices")
    return result


def intersect_solids(
    solids: Mapping[Union[View, str], Solid],
    engine: str = DEFAULT_ENGINE,
    on_step: Optional[Callable[[str, int], None]] = None,
) -> IntersectionResult:
    """Compute (front ∩ top) ∩ side.

    The order is fixed so floating-point results are reproducible. An empty
    intersection (silhouettes that never overlap) is returned as an empty
    result rather than raised.
    """
    by_view: Dict[View, Solid] = {View.coerce(k): v for k, v in solids.items() if v is not None}
    missing = [v.value for v in ORDERED_VIEWS if v not in by_view]
    if missing:
        raise MissingInputError(
            "intersection needs front, top and side solids; missing: " + ", ".join(missing),
            stage="boolean",
        )

    front, top, side = (by_view[v].mesh for v in ORDERED_VIEWS)

    r1 = _intersect_pair(front, top, engine, "front ∩ top")
    if on_step is not None:
        on_step("front ∩ top", len(r1.vertices))
    if len(r1.faces) == 0:
        logger.warning("Front and top silhouettes do not overlap; intersection is empty")
        return IntersectionResult.empty()

    r2 = _intersect_pair(r1, side, engine, "(front ∩ top) ∩ side")
    if on_step is not None:
        on_step("(front ∩ top) ∩ side", len(r2.vertices))
    if len(r2.faces) == 0:
        logger.warning("Side silhouette does not overlap front ∩ top; intersection is empty")
        return IntersectionResult.empty()

    logger.debug("Intersection: %d vertices, %d faces", len(r2.vertices), len(r2.faces))
    return IntersectionResult(mesh=r2)
