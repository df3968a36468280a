"""
Contour extraction: binary mask -> hole-aware polygons.

Uses a two-level contour forest (``RETR_CCOMP``): top-level contours are
outer boundaries, their direct children are holes. Anything nested deeper is
reported by OpenCV as another top-level contour and is treated as a separate
part.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from ortho_hull.contracts import ContourPolicy, RegionCandidate, ReconstructionConfig, Vec2
from ortho_hull.errors import InvalidPolygonError, NoContourError
from ortho_hull.polygon import sanitize_ring, sanitize_shape
from ortho_hull.rasterize import MaskHandle

logger = logging.getLogger(__name__)

# Hierarchy row layout from cv2.findContours.
_NEXT, _PREV, _FIRST_CHILD, _PARENT = 0, 1, 2, 3


def to_scene_points(contour: np.ndarray, width: int, height: int) -> List[Vec2]:
    """Pixel coordinates (top-left, Y-down) -> centered, Y-up coordinates."""
    pts = contour.reshape(-1, 2).astype(float)
    return [(x - width / 2.0, height / 2.0 - y) for x, y in pts]


def simplify_contour(contour: np.ndarray, epsilon_ratio: float) -> np.ndarray:
    """Douglas-Peucker with tolerance proportional to the contour perimeter."""
    if len(contour) < 3:
        return contour
    epsilon = epsilon_ratio * cv2.arcLength(contour, True)
    return cv2.approxPolyDP(contour, epsilon, True)


def extract_regions(
    mask: Union[np.ndarray, MaskHandle],
    config: Optional[ReconstructionConfig] = None,
    policy: Optional[ContourPolicy] = None,
) -> List[RegionCandidate]:
    """Extract sanitized shapes from a binary mask, largest first.

    Raises:
        NoContourError: no outer contour survived area filtering and cleanup.
    """
    if config is None:
        config = ReconstructionConfig()
    if policy is None:
        policy = config.contour_policy
    if isinstance(mask, MaskHandle):
        mask = mask.array

    height, width = mask.shape[:2]
    min_area = width * height * config.min_area_ratio

    contours, hierarchy = cv2.findContours(mask, cv2.RETR_CCOMP, cv2.CHAIN_APPROX_SIMPLE)
    if hierarchy is None or len(contours) == 0:
        raise NoContourError("no valid contour found in the image")
    hierarchy = hierarchy.reshape(-1, 4)

    candidates: List[RegionCandidate] = []
    for index, contour in enumerate(contours):
        if hierarchy[index, _PARENT] != -1:
            continue

        area = abs(float(cv2.contourArea(contour)))
        if area < min_area:
            continue

        approx = simplify_contour(contour, config.epsilon_ratio)
        outer_points = to_scene_points(approx, width, height)

        holes: List[List[Vec2]] = []
        child = int(hierarchy[index, _FIRST_CHILD])
        while child != -1:
            hole = contours[child]
            if abs(float(cv2.contourArea(hole))) >= min_area:
                holes.append(
                    to_scene_points(simplify_contour(hole, config.epsilon_ratio), width, height)
                )
            child = int(hierarchy[child, _NEXT])

        try:
            shape = sanitize_shape(outer_points, holes, min_area=config.min_polygon_area)
        except InvalidPolygonError as exc:
            logger.debug("Skipping contour %d: %s", index, exc.message)
            continue

        candidates.append(
            RegionCandidate(
                shape=shape,
                pixel_area=area,
                raw_vertex_count=int(len(contour)),
                simplified_vertex_counts=(len(shape.outer),)
                + tuple(len(h) for h in shape.holes),
            )
        )

    if not candidates:
        raise NoContourError("no valid contour found in the image")

    candidates.sort(key=lambda c: c.pixel_area, reverse=True)
    logger.debug(
        "Extracted %d candidate region(s) from %dx%d mask (policy=%s)",
        len(candidates), width, height, policy.value,
    )
    if policy is ContourPolicy.LARGEST:
        return candidates[:1]
    return candidates


def contour_ring(
    contour: np.ndarray,
    width: int,
    height: int,
    *,
    clockwise: bool = False,
    min_area: float = 1e-4,
) -> Tuple[Vec2, ...]:
    """Map a single raw contour to scene space and sanitize it as one ring."""
    return sanitize_ring(
        to_scene_points(contour, width, height), clockwise=clockwise, min_area=min_area
    )
