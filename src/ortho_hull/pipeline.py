"""Silhouette images -> extrusion intersection mesh."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ortho_hull.boolean import intersect_solids
from ortho_hull.contours import extract_regions
from ortho_hull.contracts import (
    ORDERED_VIEWS,
    ReconstructionConfig,
    ReconstructionResult,
    Shape,
    View,
)
from ortho_hull.errors import InvalidPolygonError, MissingInputError, ReconstructionError
from ortho_hull.normalize import normalize_mesh
from ortho_hull.polygon import resanitize, shape_stats
from ortho_hull.rasterize import ImageSource, acquire_mask
from ortho_hull.solids import build_solids, compute_extrusion_depth

logger = logging.getLogger(__name__)


def _tag(exc: ReconstructionError, view: Optional[View]) -> ReconstructionError:
    if exc.view is None and view is not None:
        exc.view = view.value
    return exc


def shapes_from_image(
    image: ImageSource,
    config: Optional[ReconstructionConfig] = None,
    view: Optional[Union[View, str]] = None,
) -> List[Shape]:
    """Binarize one silhouette image and extract its shape(s), largest first."""
    if config is None:
        config = ReconstructionConfig()
    view = View.coerce(view) if view is not None else None
    try:
        with acquire_mask(image, config) as mask:
            regions = extract_regions(mask, config)
    except ReconstructionError as exc:
        _tag(exc, view)
        raise
    return [region.shape for region in regions]


def _sanitize_views(
    shapes_by_view: Mapping[Union[View, str], Union[Shape, Sequence[Shape], None]],
    config: ReconstructionConfig,
    debug: Dict[str, object],
) -> Dict[View, List[Shape]]:
    normalized: Dict[View, List[Shape]] = {}
    for key, value in shapes_by_view.items():
        view = View.coerce(key)
        if value is None:
            continue
        parts = [value] if isinstance(value, Shape) else [s for s in value if s is not None]
        if not parts:
            continue
        for i, shape in enumerate(parts):
            debug.setdefault("shape_stats", []).append(shape_stats(f"{view.value}[{i}](raw)", shape))
        try:
            safe = [resanitize(shape, config.min_polygon_area) for shape in parts]
        except InvalidPolygonError as exc:
            raise InvalidPolygonError(
                f"shape sanitization failed (invalid contour or too small area): {exc.message}",
                view=view,
            ) from exc
        for i, shape in enumerate(safe):
            debug["shape_stats"].append(shape_stats(f"{view.value}[{i}](safe)", shape))
        normalized[view] = safe

    missing = [v.value for v in ORDERED_VIEWS if v not in normalized]
    if missing:
        raise MissingInputError(
            "one or more input shapes are missing: " + ", ".join(missing)
        )
    return normalized


def reconstruct_from_shapes(
    shapes_by_view: Mapping[Union[View, str], Union[Shape, Sequence[Shape], None]],
    config: Optional[ReconstructionConfig] = None,
) -> ReconstructionResult:
    """Extrude, intersect and normalize three view shapes."""
    if config is None:
        config = ReconstructionConfig()
    config.validate()

    debug: Dict[str, object] = {"shape_stats": []}
    started = time.perf_counter()

    shapes = _sanitize_views(shapes_by_view, config, debug)
    depth = compute_extrusion_depth(
        shapes.values(),
        min_depth=config.min_extrusion_depth,
        multiplier=config.depth_multiplier,
    )
    debug["depth"] = depth

    solids = build_solids(shapes, config, depth=depth)
    debug["solid_vertices"] = {v.value: int(len(s.mesh.vertices)) for v, s in solids.items()}

    boolean_steps: List[Dict[str, object]] = []
    raw = intersect_solids(
        solids,
        engine=config.boolean_engine,
        on_step=lambda step, count: boolean_steps.append({"step": step, "vertices": count}),
    )
    debug["boolean_steps"] = boolean_steps

    final, scale = normalize_mesh(raw, config.target_max_dimension)
    debug["result_vertices"] = int(len(final.vertices))
    debug["elapsed_s"] = round(time.perf_counter() - started, 4)

    logger.info(
        "Reconstructed mesh: %d vertices, %d faces (depth=%.0f, scale=%.4f)",
        len(final.vertices), len(final.faces), depth, scale,
    )
    return ReconstructionResult(
        mesh=final, shapes=shapes, depth=depth, scale_factor=scale, debug=debug
    )


def reconstruct_from_images(
    images_by_view: Mapping[Union[View, str], Optional[ImageSource]],
    config: Optional[ReconstructionConfig] = None,
) -> ReconstructionResult:
    """Full pipeline from three silhouette images (arrays, bytes or paths)."""
    if config is None:
        config = ReconstructionConfig()
    config.validate()

    by_view = {View.coerce(k): v for k, v in images_by_view.items() if v is not None}
    missing = [v.value for v in ORDERED_VIEWS if v not in by_view]
    if missing:
        raise MissingInputError(
            "one or more input images are missing: " + ", ".join(missing),
            stage="rasterize",
        )

    shapes: Dict[View, List[Shape]] = {}
    for view in ORDERED_VIEWS:
        logger.info("%s: extracting contour", view.value.upper())
        shapes[view] = shapes_from_image(by_view[view], config, view)

    return reconstruct_from_shapes(shapes, config)


def submit_reconstruction(
    images_by_view: Mapping[Union[View, str], Optional[ImageSource]],
    config: Optional[ReconstructionConfig] = None,
    executor: Optional[Executor] = None,
) -> Future:
    """Run the pipeline off the calling thread.

    A caller-supplied *executor* stays owned by the caller. Without one, a
    single-worker pool is created for this run and shut down once the run
    finishes. There is no cancellation; a caller that no longer wants the
    result simply ignores the returned future.
    """
    if executor is not None:
        return executor.submit(reconstruct_from_images, dict(images_by_view), config)

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ortho-hull")
    try:
        return pool.submit(reconstruct_from_images, dict(images_by_view), config)
    finally:
        pool.shutdown(wait=False)
