from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import cv2
import pytest

REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def view_files(tmp_path: Path, rgba_silhouette):
    paths = {}
    for view in ("front", "top", "side"):
        path = tmp_path / f"{view}_in.png"
        cv2.imwrite(str(path), cv2.cvtColor(rgba_silhouette(), cv2.COLOR_RGBA2BGRA))
        paths[view] = str(path)
    return paths


def _run(view_files, runs_dir: Path, *extra: str):
    cmd = [
        sys.executable,
        str(REPO_ROOT / "scripts" / "reconstruct_views.py"),
        "--front",
        view_files["front"],
        "--top",
        view_files["top"],
        "--side",
        view_files["side"],
        "--name",
        "cube test",
        "--runs-dir",
        str(runs_dir),
        *extra,
    ]
    return subprocess.run(cmd, capture_output=True, text=True)


def _single_run_dir(runs_dir: Path) -> Path:
    run_dirs = sorted(
        [path for path in runs_dir.iterdir() if path.is_dir() and path.name != "latest"]
    )
    assert len(run_dirs) == 1
    return run_dirs[0]


def test_reconstruct_cli_writes_mesh_and_records(view_files, tmp_path: Path):
    runs_dir = tmp_path / "runs"
    proc = _run(view_files, runs_dir)
    assert proc.returncode == 0, proc.stderr
    assert "Run ID:" in proc.stdout

    run_dir = _single_run_dir(runs_dir)
    assert run_dir.name.endswith("_cube-test")
    assert (run_dir / "input" / "front.png").exists()
    assert (run_dir / "artifacts" / "model.stl").exists()
    assert (run_dir / "artifacts" / "cutout_top.png").exists()
    assert (run_dir / "logs.txt").exists()
    assert (run_dir / "summary.md").read_text(encoding="utf-8").startswith("# Run ")

    metrics = json.loads((run_dir / "metrics.json").read_text(encoding="utf-8"))
    assert metrics["status"] == "ok"
    assert metrics["depth"] == 300.0
    assert metrics["watertight"] is True
    assert max(metrics["extents"]) == pytest.approx(120.0)

    manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["status"] == "ok"
    assert manifest["config"]["epsilon_ratio"] == 0.01
    assert set(manifest["inputs"]) == {"front", "top", "side"}


def test_reconstruct_cli_export_format(view_files, tmp_path: Path):
    runs_dir = tmp_path / "runs"
    proc = _run(view_files, runs_dir, "--format", "ply", "--target-max-dimension", "50")
    assert proc.returncode == 0, proc.stderr

    run_dir = _single_run_dir(runs_dir)
    assert (run_dir / "artifacts" / "model.ply").exists()
    metrics = json.loads((run_dir / "metrics.json").read_text(encoding="utf-8"))
    assert max(metrics["extents"]) == pytest.approx(50.0)


def test_reconstruct_cli_reports_undecodable_view(view_files, tmp_path: Path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not a png")
    view_files["side"] = str(broken)

    runs_dir = tmp_path / "runs"
    proc = _run(view_files, runs_dir)
    assert proc.returncode == 1
    assert "Error: [rasterize/side]" in proc.stderr

    run_dir = _single_run_dir(runs_dir)
    manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["status"] == "failed"
    assert "[rasterize/side]" in manifest["error"]


def test_reconstruct_cli_reports_missing_view_file(view_files, tmp_path: Path):
    view_files["side"] = str(tmp_path / "nope.png")

    runs_dir = tmp_path / "runs"
    proc = _run(view_files, runs_dir)
    assert proc.returncode == 1
    assert "Error: [rasterize/side]" in proc.stderr
    assert "Traceback" not in proc.stderr

    run_dir = _single_run_dir(runs_dir)
    manifest = json.loads((run_dir / "manifest.json").read_text(encoding="utf-8"))
    assert manifest["status"] == "failed"
    assert "nope.png" in manifest["error"]
    assert set(manifest["inputs"]) == {"front", "top"}
    assert (run_dir / "summary.md").exists()
    assert (runs_dir / "latest").exists()
