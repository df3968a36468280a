"""
Polygon hygiene for silhouette rings.

Contours coming out of raster tracing are noisy: duplicated points, closing
points repeated, needle-thin slivers and arbitrary winding. Everything here is
pure: the same ring always gets the same accept/reject/orientation decision,
and running a sanitized ring through again changes nothing.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from shapely.geometry import MultiPolygon, Polygon

from ortho_hull.contracts import Ring, Shape
from ortho_hull.errors import InvalidPolygonError

logger = logging.getLogger(__name__)

DEFAULT_MIN_AREA = 1e-4


def signed_area(points: Sequence[Sequence[float]]) -> float:
    """Shoelace area; positive for counter-clockwise rings in a Y-up frame."""
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def sanitize_ring(
    points: Iterable[Sequence[float]],
    *,
    clockwise: bool = False,
    min_area: float = DEFAULT_MIN_AREA,
) -> Ring:
    """Clean one closed ring and orient it.

    Raises:
        InvalidPolygonError: fewer than 3 usable points or |area| < min_area.
    """
    finite: List[Tuple[float, float]] = []
    for p in points:
        x, y = float(p[0]), float(p[1])
        if math.isfinite(x) and math.isfinite(y):
            finite.append((x, y))

    deduped: List[Tuple[float, float]] = []
    for p in finite:
        if not deduped or deduped[-1] != p:
            deduped.append(p)

    if len(deduped) >= 2 and deduped[0] == deduped[-1]:
        deduped.pop()

    if len(deduped) < 3:
        raise InvalidPolygonError(
            f"ring has {len(deduped)} distinct points after cleanup (need >= 3)"
        )

    area = signed_area(deduped)
    if not math.isfinite(area) or abs(area) < min_area:
        raise InvalidPolygonError(f"ring area {abs(area):.3g} below minimum {min_area:.3g}")

    # Orientation is checked after dedup; removing points can flip it.
    if (area < 0.0) != clockwise:
        deduped.reverse()
    return tuple(deduped)


def sanitize_shape(
    outer: Iterable[Sequence[float]],
    holes: Iterable[Iterable[Sequence[float]]] = (),
    *,
    min_area: float = DEFAULT_MIN_AREA,
) -> Shape:
    """Build a validated Shape; the outer ring must pass, bad holes are dropped."""
    outer_ring = sanitize_ring(outer, clockwise=False, min_area=min_area)
    kept: List[Ring] = []
    for index, hole in enumerate(holes):
        try:
            kept.append(sanitize_ring(hole, clockwise=True, min_area=min_area))
        except InvalidPolygonError as exc:
            logger.warning("Dropping hole %d: %s", index, exc.message)
    return Shape(outer=outer_ring, holes=tuple(kept))


def resanitize(shape: Shape, min_area: float = DEFAULT_MIN_AREA) -> Shape:
    """Run an existing Shape back through the sanitizer."""
    return sanitize_shape(shape.outer, shape.holes, min_area=min_area)


def shape_to_polygon(shape: Shape) -> Polygon:
    """Convert to a valid Shapely polygon.

    Invalid rings (self-touching simplifications) are repaired with a zero
    buffer; if that splits the region, the largest piece is kept.
    """
    polygon = Polygon(shape.outer, holes=list(shape.holes))
    if polygon.is_valid:
        return polygon

    repaired = polygon.buffer(0)
    if isinstance(repaired, MultiPolygon):
        repaired = max(repaired.geoms, key=lambda g: g.area)
    if repaired.is_empty or not isinstance(repaired, Polygon):
        raise InvalidPolygonError("polygon is invalid and could not be repaired")
    logger.debug(
        "Repaired invalid polygon: area %.3f -> %.3f", polygon.area, repaired.area
    )
    return repaired


def shape_stats(label: str, shape: Shape | None) -> str:
    """One-line diagnostic summary of a shape."""
    if shape is None:
        return f"{label}: missing"
    contour_area = abs(signed_area(shape.outer))
    hole_area = sum(abs(signed_area(h)) for h in shape.holes)
    return (
        f"{label}: contourPoints={len(shape.outer)}, holes={len(shape.holes)}, "
        f"contourArea={contour_area:.2f}, holeArea={hole_area:.2f}"
    )
