"""Tests for contour extraction from binary masks."""
import numpy as np
import pytest

from ortho_hull.contours import contour_ring, extract_regions, simplify_contour, to_scene_points
from ortho_hull.contracts import ContourPolicy, ReconstructionConfig
from ortho_hull.errors import InvalidPolygonError, NoContourError
from ortho_hull.polygon import signed_area
from ortho_hull.rasterize import MaskHandle


def box_mask(size=120, boxes=((30, 30, 90, 90),), holes=()):
    mask = np.zeros((size, size), dtype=np.uint8)
    for r0, c0, r1, c1 in boxes:
        mask[r0:r1, c0:c1] = 255
    for r0, c0, r1, c1 in holes:
        mask[r0:r1, c0:c1] = 0
    return mask


class TestSceneMapping:

    def test_center_and_y_flip(self):
        contour = np.array([[[0, 0]], [[100, 80]], [[50, 40]]], dtype=np.int32)
        pts = to_scene_points(contour, 100, 80)
        assert pts[0] == (-50.0, 40.0)
        assert pts[1] == (50.0, -40.0)
        assert pts[2] == (0.0, 0.0)

    def test_short_contour_not_simplified(self):
        contour = np.array([[[3, 3]]], dtype=np.int32)
        assert simplify_contour(contour, 0.05) is contour


class TestExtractRegions:

    def test_square(self):
        regions = extract_regions(box_mask())
        assert len(regions) == 1
        shape = regions[0].shape
        assert shape.bounds == (-30.0, -29.0, 29.0, 30.0)
        assert len(shape.outer) == 4
        assert signed_area(shape.outer) == pytest.approx(59.0 * 59.0)
        assert regions[0].simplified_vertex_counts == (4,)

    def test_accepts_mask_handle(self):
        handle = MaskHandle(box_mask())
        regions = extract_regions(handle)
        assert regions[0].shape.bounds == (-30.0, -29.0, 29.0, 30.0)

    def test_hole_is_clockwise(self):
        mask = box_mask(boxes=((20, 20, 100, 100),), holes=((40, 40, 80, 80),))
        shape = extract_regions(mask)[0].shape
        assert len(shape.holes) == 1
        assert signed_area(shape.outer) > 0
        hole_area = signed_area(shape.holes[0])
        assert hole_area < 0
        assert 1400.0 < abs(hole_area) < 1800.0
        assert 0.0 < shape.area < signed_area(shape.outer)

    def test_small_blobs_filtered(self):
        mask = box_mask(boxes=((30, 30, 90, 90), (5, 5, 9, 9)))
        config = ReconstructionConfig(keep_largest_contour=False, min_area_ratio=0.01)
        regions = extract_regions(mask, config)
        assert len(regions) == 1

    def test_everything_below_min_area(self):
        mask = box_mask(boxes=((5, 5, 9, 9),))
        config = ReconstructionConfig(min_area_ratio=0.01)
        with pytest.raises(NoContourError) as info:
            extract_regions(mask, config)
        assert info.value.stage == "contour"

    def test_empty_mask(self):
        with pytest.raises(NoContourError):
            extract_regions(np.zeros((50, 50), dtype=np.uint8))

    def test_largest_policy(self):
        mask = box_mask(boxes=((10, 10, 50, 50), (70, 70, 100, 100)))
        regions = extract_regions(mask)
        assert len(regions) == 1
        assert regions[0].pixel_area == pytest.approx(39.0 * 39.0)

    def test_all_policy_sorted_by_area(self):
        mask = box_mask(boxes=((70, 70, 100, 100), (10, 10, 50, 50)))
        regions = extract_regions(mask, policy=ContourPolicy.ALL)
        assert len(regions) == 2
        assert regions[0].pixel_area > regions[1].pixel_area

    def test_policy_from_config(self):
        mask = box_mask(boxes=((10, 10, 50, 50), (70, 70, 100, 100)))
        config = ReconstructionConfig(keep_largest_contour=False)
        assert len(extract_regions(mask, config)) == 2

    @pytest.mark.parametrize("epsilon_ratio", [0.001, 0.01, 0.05])
    def test_single_pixel_rejected(self, epsilon_ratio):
        mask = np.zeros((40, 40), dtype=np.uint8)
        mask[20, 20] = 255
        config = ReconstructionConfig(epsilon_ratio=epsilon_ratio, min_area_ratio=0.0)
        with pytest.raises(NoContourError):
            extract_regions(mask, config)

    def test_coarse_simplification_keeps_valid_shape(self):
        config = ReconstructionConfig(epsilon_ratio=0.05)
        regions = extract_regions(box_mask(), config)
        assert len(regions[0].shape.outer) >= 3
        assert regions[0].shape.area > 0


class TestContourRing:

    def test_valid_ring(self):
        contour = np.array([[[10, 10]], [[10, 30]], [[30, 30]], [[30, 10]]], dtype=np.int32)
        ring = contour_ring(contour, 40, 40)
        assert len(ring) == 4
        assert signed_area(ring) > 0

    def test_hole_orientation(self):
        contour = np.array([[[10, 10]], [[10, 30]], [[30, 30]], [[30, 10]]], dtype=np.int32)
        ring = contour_ring(contour, 40, 40, clockwise=True)
        assert signed_area(ring) < 0

    def test_degenerate_contour(self):
        with pytest.raises(InvalidPolygonError):
            contour_ring(np.array([[[5, 5]]], dtype=np.int32), 10, 10)
