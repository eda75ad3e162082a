"""
Tests for the alpha-shape boundary.

Validates:
    1. Closed-boundary membership (edges and vertices are inside)
    2. Large alpha reproduces the convex hull
    3. Small alpha keeps concavities open
    4. Degenerate and invalid inputs are rejected
"""

import numpy as np
import pytest
from scipy.spatial import ConvexHull

from gridwindow.core import boundary
from gridwindow.validation import (
    DegenerateInputError,
    InvalidParameterError,
    UnsupportedDimensionError,
)


# ─────────────────────────────────────────────────────────────────────
# Fixtures: synthetic point clouds
# ─────────────────────────────────────────────────────────────────────

def _unit_square():
    return np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])


def _l_shape(seed=0):
    """Jittered unit lattice covering x<=3 or y<=3 inside [0, 10]^2."""
    rng = np.random.default_rng(seed)
    pts = np.array(
        [(x, y) for x in range(11) for y in range(11) if x <= 3 or y <= 3],
        dtype=float,
    )
    return pts + rng.uniform(-0.05, 0.05, size=pts.shape)


def _disk(n=400, radius=5.0, seed=1):
    rng = np.random.default_rng(seed)
    r = radius * np.sqrt(rng.uniform(0, 1, n))
    theta = rng.uniform(0, 2 * np.pi, n)
    return np.column_stack([r * np.cos(theta), r * np.sin(theta)])


class TestMembership:
    """Closed-boundary membership on simple shapes."""

    def test_square_interior_and_boundary(self):
        shape = boundary.build(_unit_square(), alpha=1.0)

        assert boundary.contains(shape, (0.5, 0.5))
        assert boundary.contains(shape, (0.25, 0.6))
        # Edges and vertices are inside
        assert boundary.contains(shape, (0.5, 0.0))
        assert boundary.contains(shape, (1.0, 0.3))
        assert boundary.contains(shape, (0.0, 0.0))
        assert boundary.contains(shape, (1.0, 1.0))

    def test_square_outside(self):
        shape = boundary.build(_unit_square(), alpha=1.0)

        assert not boundary.contains(shape, (1.001, 0.5))
        assert not boundary.contains(shape, (-0.5, -0.5))
        assert not boundary.contains(shape, (0.5, 2.0))

    def test_vectorized_matches_scalar(self):
        shape = boundary.build(_disk(), alpha=1.5)
        rng = np.random.default_rng(7)
        queries = rng.uniform(-6, 6, size=(200, 2))

        mask = shape.contains(queries)

        assert mask.shape == (200,)
        assert mask.dtype == bool
        expected = [boundary.contains(shape, q) for q in queries]
        assert list(mask) == expected

    def test_non_finite_query_is_outside(self):
        shape = boundary.build(_unit_square(), alpha=1.0)
        mask = shape.contains(np.array([[np.nan, 0.5], [0.5, 0.5]]))
        assert list(mask) == [False, True]

    def test_membership_requires_2d(self):
        shape = boundary.build(_unit_square(), alpha=1.0)
        with pytest.raises(UnsupportedDimensionError):
            boundary.contains(shape, (0.5, 0.5, 0.5))


class TestShape:
    """Shape geometry as a function of alpha."""

    def test_large_alpha_is_convex_hull(self):
        pts = _disk()
        shape = boundary.build(pts, alpha=1e6)
        hull = ConvexHull(pts)

        assert shape.area == pytest.approx(hull.volume, rel=1e-9)

    def test_small_alpha_keeps_concavity(self):
        pts = _l_shape()
        tight = boundary.build(pts, alpha=1.2)

        assert boundary.contains(tight, (1.0, 1.0))
        assert boundary.contains(tight, (7.0, 1.5))
        assert boundary.contains(tight, (1.5, 7.0))
        assert not boundary.contains(tight, (5.0, 5.0)), "Notch of the L should stay open"

        loose = boundary.build(pts, alpha=100.0)
        assert boundary.contains(loose, (5.0, 5.0)), "Convex hull covers the notch"

    def test_area_grows_with_alpha(self):
        pts = _l_shape()
        areas = [boundary.build(pts, alpha=a).area for a in (1.2, 3.0, 100.0)]
        assert areas[0] <= areas[1] <= areas[2]

    def test_square_area_and_edges(self):
        shape = boundary.build(_unit_square(), alpha=1.0)

        assert shape.area == pytest.approx(1.0)
        assert shape.n_triangles == 2
        assert len(shape.boundary_edges) == 4

    def test_default_alpha(self):
        pts = _disk()
        alpha = boundary.default_alpha(pts)
        assert alpha > 0

        shape = boundary.build(pts)
        assert shape.alpha == pytest.approx(alpha)
        assert boundary.contains(shape, (0.0, 0.0))

    def test_non_finite_and_duplicate_rows_ignored(self):
        pts = np.vstack([_unit_square(), [[np.nan, 1.0]], _unit_square()])
        shape = boundary.build(pts, alpha=1.0)
        assert len(shape.points) == 4

    def test_shape_is_immutable(self):
        shape = boundary.build(_unit_square(), alpha=1.0)
        with pytest.raises(ValueError):
            shape.points[0, 0] = 10.0


class TestInvalidInput:
    """Degenerate point sets and bad parameters."""

    def test_too_few_points(self):
        with pytest.raises(DegenerateInputError):
            boundary.build([[0.0, 0.0], [1.0, 1.0]], alpha=1.0)

    def test_duplicates_do_not_count(self):
        pts = [[0.0, 0.0]] * 5 + [[1.0, 1.0]]
        with pytest.raises(DegenerateInputError):
            boundary.build(pts, alpha=1.0)

    def test_collinear_points(self):
        pts = [[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]]
        with pytest.raises(DegenerateInputError):
            boundary.build(pts, alpha=1.0)

    def test_alpha_too_small(self):
        with pytest.raises(DegenerateInputError):
            boundary.build(_unit_square(), alpha=0.1)

    @pytest.mark.parametrize("alpha", [0.0, -1.0, float('inf'), float('nan')])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(InvalidParameterError):
            boundary.build(_unit_square(), alpha=alpha)

    def test_three_dimensions_rejected(self):
        pts = np.random.default_rng(0).uniform(size=(10, 3))
        with pytest.raises(UnsupportedDimensionError):
            boundary.build(pts, alpha=1.0)
