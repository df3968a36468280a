"""Tests for mesh recentering and rescaling."""
import numpy as np
import pytest
import trimesh

from ortho_hull.contracts import IntersectionResult
from ortho_hull.normalize import center_mesh, normalize_mesh


def box_result(extents, center=(0.0, 0.0, 0.0)):
    mesh = trimesh.creation.box(extents=extents)
    mesh.apply_translation(center)
    return IntersectionResult(mesh=mesh)


class TestNormalizeMesh:

    def test_scales_largest_edge(self):
        result, scale = normalize_mesh(box_result((60.0, 30.0, 15.0), center=(10.0, -4.0, 7.0)))
        assert scale == pytest.approx(2.0)
        np.testing.assert_allclose(result.extents, (120.0, 60.0, 30.0), atol=1e-9)
        np.testing.assert_allclose(result.bounds_center, (0.0, 0.0, 0.0), atol=1e-9)

    def test_custom_target(self):
        result, scale = normalize_mesh(box_result((50.0, 50.0, 10.0)), target_max_dimension=10.0)
        assert scale == pytest.approx(0.2)
        assert max(result.extents) == pytest.approx(10.0)

    def test_input_untouched(self):
        original = box_result((10.0, 20.0, 30.0), center=(5.0, 5.0, 5.0))
        before = original.vertices.copy()
        normalize_mesh(original)
        np.testing.assert_array_equal(original.vertices, before)

    def test_normals_match_vertices(self):
        result, _ = normalize_mesh(box_result((1.0, 2.0, 3.0)))
        normals = result.vertex_normals
        assert normals.shape == result.vertices.shape
        np.testing.assert_allclose(np.linalg.norm(normals, axis=1), 1.0, atol=1e-9)

    def test_empty_is_unscaled(self):
        empty = IntersectionResult.empty()
        result, scale = normalize_mesh(empty)
        assert scale == 1.0
        assert result.is_empty


    def test_zero_extent_is_left_alone(self):
        mesh = trimesh.Trimesh(
            vertices=np.full((3, 3), 5.0),
            faces=np.array([[0, 1, 2]]),
            process=False,
        )
        collapsed = IntersectionResult(mesh=mesh)
        result, scale = normalize_mesh(collapsed)
        assert scale == 1.0
        assert result is collapsed
        np.testing.assert_array_equal(result.vertices, np.full((3, 3), 5.0))


class TestCenterMesh:

    def test_centers_in_place(self):
        result = box_result((4.0, 4.0, 4.0), center=(100.0, 0.0, -50.0))
        assert center_mesh(result) is result
        np.testing.assert_allclose(result.bounds_center, (0.0, 0.0, 0.0), atol=1e-9)

    def test_empty(self):
        empty = IntersectionResult.empty()
        assert center_mesh(empty) is empty
