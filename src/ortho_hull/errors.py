"""
Error taxonomy for the silhouette reconstruction pipeline.

Every error is fatal to the current invocation and carries the stage (and,
where known, the view) it was raised in, so a caller can show a diagnostic
like ``[extrude/top] extrude_polygon failed: ...`` without parsing anything.
"""
from typing import Optional


class ReconstructionError(Exception):
    """Base exception for pipeline failures."""

    stage = "pipeline"

    def __init__(self, message: str, *, stage: Optional[str] = None,
                 view: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.view = getattr(view, "value", view)

    def __str__(self) -> str:
        tag = self.stage if self.view is None else f"{self.stage}/{self.view}"
        return f"[{tag}] {self.message}"


class ImageDecodeError(ReconstructionError):
    """Source raster could not be loaded or decoded."""
    stage = "rasterize"


class NoContourError(ReconstructionError):
    """No contour survived area filtering for a view."""
    stage = "contour"


class InvalidPolygonError(ReconstructionError):
    """Sanitization rejected a ring (degenerate, too small, < 3 vertices)."""
    stage = "sanitize"


class MissingInputError(ReconstructionError):
    """Fewer than three valid shapes were supplied."""
    stage = "extrude"


class ExtrusionError(ReconstructionError):
    """Solid construction failed for a view."""
    stage = "extrude"


class BooleanEvaluationError(ReconstructionError):
    """The intersection evaluator failed or produced unusable output."""
    stage = "boolean"
