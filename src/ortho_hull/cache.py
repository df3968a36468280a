"""Input fingerprints and whole-pipeline memoization."""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np

from ortho_hull.contracts import (
    ORDERED_VIEWS,
    IntersectionResult,
    ReconstructionConfig,
    ReconstructionResult,
    View,
)

logger = logging.getLogger(__name__)


def _canonical_json(payload: Dict[str, object]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _update_with_image(digest, image) -> None:
    if isinstance(image, np.ndarray):
        arr = np.ascontiguousarray(image)
        digest.update(f"array:{arr.shape}:{arr.dtype.str}".encode("ascii"))
        digest.update(arr.tobytes())
    elif isinstance(image, (bytes, bytearray)):
        digest.update(b"bytes:")
        digest.update(bytes(image))
    else:
        digest.update(b"file:")
        digest.update(sha256_file(Path(image)).encode("ascii"))


def _detached(result: ReconstructionResult) -> ReconstructionResult:
    return ReconstructionResult(
        mesh=IntersectionResult(mesh=result.mesh.mesh.copy()),
        shapes={view: list(shapes) for view, shapes in result.shapes.items()},
        depth=result.depth,
        scale_factor=result.scale_factor,
        debug=copy.deepcopy(result.debug),
    )


def fingerprint(
    images_by_view: Mapping[Union[View, str], object],
    config: ReconstructionConfig,
) -> str:
    """SHA-256 over the three inputs (in view order) and the parameters."""
    by_view = {View.coerce(k): v for k, v in images_by_view.items()}
    digest = hashlib.sha256()
    for view in ORDERED_VIEWS:
        digest.update(f"|{view.value}|".encode("ascii"))
        image = by_view.get(view)
        if image is None:
            digest.update(b"missing")
        else:
            _update_with_image(digest, image)
    digest.update(_canonical_json(config.to_dict()).encode("utf-8"))
    return digest.hexdigest()


class ReconstructionCache:
    """Memoize pipeline results keyed by (images, config) fingerprint.

    Only successful results are stored; a failing run raises and leaves the
    previous entries untouched. The cache keeps its own copy of each result
    and hands out fresh copies, so callers may modify what they get back.
    """

    def __init__(self, max_entries: int = 1):
        self.max_entries = max(1, int(max_entries))
        self._entries: "OrderedDict[str, ReconstructionResult]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, key: str) -> Optional[ReconstructionResult]:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                return None
            self._entries.move_to_end(key)
            return _detached(result)

    def put(self, key: str, result: ReconstructionResult) -> None:
        with self._lock:
            self._entries[key] = _detached(result)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get_or_compute(
        self,
        images_by_view: Mapping[Union[View, str], object],
        config: ReconstructionConfig,
        compute: Optional[Callable[..., ReconstructionResult]] = None,
    ) -> ReconstructionResult:
        if compute is None:
            from ortho_hull.pipeline import reconstruct_from_images as compute

        key = fingerprint(images_by_view, config)
        cached = self.get(key)
        if cached is not None:
            self.hits += 1
            logger.debug("Reconstruction cache hit %s", key[:12])
            return cached

        self.misses += 1
        result = compute(images_by_view, config)
        self.put(key, result)
        return result
