#!/usr/bin/env python3
"""Reconstruct a solid from front/top/side silhouette images."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import cv2

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ortho_hull import (
    ImageDecodeError,
    ReconstructionConfig,
    ReconstructionError,
    reconstruct_from_shapes,
)
from ortho_hull.contracts import ORDERED_VIEWS
from ortho_hull.contours import extract_regions
from ortho_hull.rasterize import acquire_mask, cutout_preview, load_image
from run_protocol import (
    copy_input_views,
    prepare_run_dir,
    update_latest_pointer,
    write_json,
    write_text,
)

logger = logging.getLogger("reconstruct_views")

EXPORT_FORMATS = ("stl", "glb", "obj", "ply")


def build_parser() -> argparse.ArgumentParser:
    defaults = ReconstructionConfig()
    parser = argparse.ArgumentParser(
        description="Intersect extruded front/top/side silhouettes into one mesh"
    )
    parser.add_argument("--front", required=True, help="Front view image")
    parser.add_argument("--top", required=True, help="Top view image")
    parser.add_argument("--side", required=True, help="Side view image")
    parser.add_argument("--name", default="silhouette", help="Run name")
    parser.add_argument("--runs-dir", default="runs", help="Runs output root")
    parser.add_argument(
        "--format", choices=EXPORT_FORMATS, default="stl", help="Mesh export format"
    )
    parser.add_argument(
        "--epsilon-ratio",
        type=float,
        default=defaults.epsilon_ratio,
        help="Contour simplification tolerance as a fraction of perimeter",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        default=defaults.threshold,
        help="Fixed binarization cutoff (0-255), used with --no-otsu",
    )
    parser.add_argument(
        "--no-otsu", action="store_true", help="Use --threshold instead of Otsu"
    )
    parser.add_argument(
        "--no-auto-invert",
        action="store_true",
        help="Do not invert masks whose foreground is the majority",
    )
    parser.add_argument(
        "--min-area-ratio",
        type=float,
        default=defaults.min_area_ratio,
        help="Reject contours smaller than this fraction of the image area",
    )
    parser.add_argument(
        "--blur-kernel", type=int, default=defaults.blur_kernel_size,
        help="Gaussian blur kernel size (<3 disables)",
    )
    parser.add_argument(
        "--morph-kernel", type=int, default=defaults.morphology_kernel_size,
        help="Morphology kernel size (<3 disables)",
    )
    parser.add_argument(
        "--morph-iterations", type=int, default=defaults.morphology_iterations,
        help="Opening/closing iterations",
    )
    parser.add_argument(
        "--keep-all-contours",
        action="store_true",
        help="Extrude every disjoint part instead of only the largest",
    )
    parser.add_argument(
        "--target-max-dimension",
        type=float,
        default=defaults.target_max_dimension,
        help="Largest bounding-box edge of the output mesh",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logs"
    )
    return parser


def _build_summary(*, run_id: str, elapsed_s: float, status: str, lines: list) -> str:
    return "\n".join(
        [
            f"# Run {run_id}",
            "",
            f"- Status: **{status.upper()}**",
            f"- Duration: {elapsed_s:.2f}s",
            *lines,
            "",
        ]
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    started = time.perf_counter()
    run_paths = prepare_run_dir(args.runs_dir, args.name)
    file_handler = logging.FileHandler(run_paths.logs_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.getLogger().addHandler(file_handler)

    sources = {"front": args.front, "top": args.top, "side": args.side}

    config = ReconstructionConfig(
        epsilon_ratio=float(args.epsilon_ratio),
        threshold=int(args.threshold),
        use_otsu_threshold=not args.no_otsu,
        auto_invert=not args.no_auto_invert,
        min_area_ratio=float(args.min_area_ratio),
        blur_kernel_size=max(0, int(args.blur_kernel)),
        morphology_kernel_size=max(0, int(args.morph_kernel)),
        morphology_iterations=max(0, int(args.morph_iterations)),
        keep_largest_contour=not args.keep_all_contours,
        target_max_dimension=float(args.target_max_dimension),
    )

    manifest = {
        "run_id": run_paths.run_id,
        "name": args.name,
        "created_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "inputs": {},
        "config": config.to_dict(),
        "artifacts": {},
    }

    try:
        copied = {}
        for view in ORDERED_VIEWS:
            try:
                copied.update(
                    copy_input_views({view.value: sources[view.value]}, run_paths.input_dir)
                )
            except OSError as exc:
                raise ImageDecodeError(
                    f"could not read {sources[view.value]}: {exc}", view=view
                ) from exc
            manifest["inputs"][view.value] = str(copied[view.value])

        config.validate()
        shapes = {}
        for view in ORDERED_VIEWS:
            try:
                image = load_image(copied[view.value])
                with acquire_mask(image, config) as mask:
                    preview_path = run_paths.artifacts_dir / f"cutout_{view.value}.png"
                    preview = cutout_preview(image, mask.array)
                    cv2.imwrite(str(preview_path), cv2.cvtColor(preview, cv2.COLOR_RGBA2BGRA))
                    manifest["artifacts"][f"cutout_{view.value}"] = str(preview_path)
                    shapes[view] = [r.shape for r in extract_regions(mask, config)]
            except ReconstructionError as exc:
                if exc.view is None:
                    exc.view = view.value
                raise
        result = reconstruct_from_shapes(shapes, config)
    except (ReconstructionError, ValueError) as exc:
        elapsed = time.perf_counter() - started
        logger.error("Reconstruction failed: %s", exc)
        manifest["status"] = "failed"
        manifest["error"] = str(exc)
        write_json(run_paths.manifest_path, manifest)
        write_text(
            run_paths.summary_path,
            _build_summary(
                run_id=run_paths.run_id, elapsed_s=elapsed, status="failed",
                lines=[f"- Error: `{exc}`"],
            ),
        )
        update_latest_pointer(args.runs_dir, run_paths.run_dir)
        print(f"Run ID: {run_paths.run_id}")
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()

    elapsed = time.perf_counter() - started
    mesh_path = run_paths.artifacts_dir / f"model.{args.format}"
    status = "empty" if result.mesh.is_empty else "ok"
    if not result.mesh.is_empty:
        result.mesh.mesh.export(str(mesh_path))
        manifest["artifacts"]["mesh"] = str(mesh_path)

    metrics = {
        "run_id": run_paths.run_id,
        "status": status,
        "elapsed_s": round(elapsed, 3),
        "depth": result.depth,
        "scale_factor": result.scale_factor,
        "counts": {
            "vertices": int(len(result.mesh.vertices)),
            "faces": int(len(result.mesh.faces)),
            "parts": {v.value: len(result.shapes[v]) for v in ORDERED_VIEWS},
        },
        "extents": list(result.mesh.extents),
        "volume": result.mesh.volume,
        "watertight": bool(result.mesh.mesh.is_watertight) if not result.mesh.is_empty else False,
        "debug": result.debug,
    }
    write_json(run_paths.metrics_path, metrics)

    manifest["status"] = status
    write_json(run_paths.manifest_path, manifest)
    write_text(
        run_paths.summary_path,
        _build_summary(
            run_id=run_paths.run_id,
            elapsed_s=elapsed,
            status=status,
            lines=[
                f"- Vertices: {metrics['counts']['vertices']}",
                f"- Faces: {metrics['counts']['faces']}",
                f"- Extrusion depth: {result.depth:.0f}",
                f"- Extents: {', '.join(f'{e:.2f}' for e in result.mesh.extents)}",
            ],
        ),
    )
    update_latest_pointer(args.runs_dir, run_paths.run_dir)

    print(f"Run ID: {run_paths.run_id}")
    print(f"Run dir: {run_paths.run_dir}")
    if "mesh" in manifest["artifacts"]:
        print(f"Mesh: {mesh_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
