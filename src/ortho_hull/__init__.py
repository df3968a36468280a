"""Public API for orthographic silhouette reconstruction (visual hull)."""

from ortho_hull.cache import ReconstructionCache, fingerprint
from ortho_hull.contracts import (
    ContourPolicy,
    IntersectionResult,
    ReconstructionConfig,
    ReconstructionResult,
    Shape,
    Solid,
    View,
)
from ortho_hull.errors import (
    BooleanEvaluationError,
    ExtrusionError,
    ImageDecodeError,
    InvalidPolygonError,
    MissingInputError,
    NoContourError,
    ReconstructionError,
)
from ortho_hull.pipeline import (
    reconstruct_from_images,
    reconstruct_from_shapes,
    shapes_from_image,
    submit_reconstruction,
)

__version__ = "0.1.0"

__all__ = [
    "BooleanEvaluationError",
    "ContourPolicy",
    "ExtrusionError",
    "ImageDecodeError",
    "IntersectionResult",
    "InvalidPolygonError",
    "MissingInputError",
    "NoContourError",
    "ReconstructionCache",
    "ReconstructionConfig",
    "ReconstructionError",
    "ReconstructionResult",
    "Shape",
    "Solid",
    "View",
    "fingerprint",
    "reconstruct_from_images",
    "reconstruct_from_shapes",
    "shapes_from_image",
    "submit_reconstruction",
]
