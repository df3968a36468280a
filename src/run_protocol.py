"""Run-folder protocol for reconstruction runs.

Layout::

    <runs_root>/<YYYYmmdd_HHMMSS>_<slug>/
        input/        copies of the three view images
        artifacts/    exported mesh, cutout previews
        logs.txt  manifest.json  metrics.json  summary.md
    <runs_root>/latest -> most recent run
"""

from __future__ import annotations

import json
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping


@dataclass
class RunPaths:
    run_id: str
    run_dir: Path
    input_dir: Path
    artifacts_dir: Path
    logs_path: Path
    manifest_path: Path
    metrics_path: Path
    summary_path: Path


def slugify(value: str) -> str:
    value = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return value.strip("-") or "run"


def create_run_id(name: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{slugify(name)}"


def prepare_run_dir(runs_root: str, name: str) -> RunPaths:
    runs_path = Path(runs_root)
    run_id = create_run_id(name)
    run_dir = runs_path / run_id
    suffix = 1
    while run_dir.exists():
        suffix += 1
        run_dir = runs_path / f"{run_id}_{suffix}"
    run_id = run_dir.name

    input_dir = run_dir / "input"
    artifacts_dir = run_dir / "artifacts"
    input_dir.mkdir(parents=True, exist_ok=True)
    artifacts_dir.mkdir(parents=True, exist_ok=True)

    return RunPaths(
        run_id=run_id,
        run_dir=run_dir,
        input_dir=input_dir,
        artifacts_dir=artifacts_dir,
        logs_path=run_dir / "logs.txt",
        manifest_path=run_dir / "manifest.json",
        metrics_path=run_dir / "metrics.json",
        summary_path=run_dir / "summary.md",
    )


def copy_input_views(image_paths: Mapping[str, str], input_dir: Path) -> Dict[str, Path]:
    """Copy each view image as ``<view><suffix>`` so names never collide."""
    copied: Dict[str, Path] = {}
    for view, image_path in image_paths.items():
        src = Path(image_path)
        if not src.is_file():
            raise FileNotFoundError(f"{view} image not found: {src}")
        dst = input_dir / f"{view}{src.suffix.lower()}"
        shutil.copy2(src, dst)
        copied[view] = dst
    return copied


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def update_latest_pointer(runs_root: str, run_dir: Path) -> None:
    runs_path = Path(runs_root)
    latest = runs_path / "latest"

    if latest.is_symlink() or latest.is_file():
        latest.unlink()
    elif latest.exists():
        shutil.rmtree(latest)

    try:
        latest.symlink_to(os.path.relpath(run_dir, runs_path))
    except OSError:
        # Filesystems without symlinks get a pointer file instead.
        latest.mkdir(parents=True, exist_ok=True)
        (latest / "latest_run.txt").write_text(run_dir.name, encoding="utf-8")
