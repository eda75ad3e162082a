"""
Alpha-Shape Boundary
====================

Irregular boundary of a 2-D point cloud, used to crop grids to the region the
data actually covers.

Construction:
    Delaunay-triangulate the distinct points and keep every triangle whose
    circumradius is <= alpha. The union of kept triangles is the shape.

    small alpha  -> tight boundary, concavities and holes survive
    large alpha  -> every triangle kept, shape == convex hull

Membership is closed: points on an edge or vertex of a kept triangle are
inside. Shapes are immutable and can be shared between workers.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from scipy.spatial import Delaunay, QhullError

from gridwindow.core.config import ALPHA_EDGE_FACTOR
from gridwindow.validation.errors import (
    DegenerateInputError,
    InvalidParameterError,
    UnsupportedDimensionError,
)

logger = logging.getLogger(__name__)

# Barycentric tolerance for the closed-boundary test (scale-free)
BARYCENTRIC_EPS = 1e-9

# Cap on query-points x triangles evaluated at once by the exact test
_BLOCK_ELEMENTS = 2_000_000


def _prepare_points(points) -> np.ndarray:
    """Distinct finite 2-D points as an (m, 2) float array."""
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2:
        raise InvalidParameterError('points', pts.shape, "expected an (n, 2) array")
    if pts.shape[1] != 2:
        raise UnsupportedDimensionError('alpha-shape', pts.shape[1])
    pts = pts[np.all(np.isfinite(pts), axis=1)]
    if len(pts) == 0:
        return pts
    return np.unique(pts, axis=0)


def _triangulate(pts: np.ndarray) -> Delaunay:
    if len(pts) < 3:
        raise DegenerateInputError("alpha-shape needs at least 3 distinct points", n_points=len(pts))
    try:
        tri = Delaunay(pts)
    except QhullError as e:
        raise DegenerateInputError(
            f"points cannot be triangulated (collinear?): {str(e).splitlines()[0]}",
            n_points=len(pts),
        ) from e
    if len(tri.simplices) == 0:
        raise DegenerateInputError("triangulation is empty", n_points=len(pts))
    return tri


def _circumradii(vertices: np.ndarray) -> np.ndarray:
    """Circumradius of each triangle in a (t, 3, 2) vertex array; inf for flat ones."""
    a = np.linalg.norm(vertices[:, 1] - vertices[:, 2], axis=1)
    b = np.linalg.norm(vertices[:, 0] - vertices[:, 2], axis=1)
    c = np.linalg.norm(vertices[:, 0] - vertices[:, 1], axis=1)
    e1 = vertices[:, 1] - vertices[:, 0]
    e2 = vertices[:, 2] - vertices[:, 0]
    twice_area = np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])
    with np.errstate(divide='ignore', invalid='ignore'):
        radii = a * b * c / (2.0 * twice_area)
    radii[~np.isfinite(radii)] = np.inf
    return radii


def _unique_edges(simplices: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Unique undirected edges of a triangle list and how many triangles share each."""
    edges = np.concatenate([
        simplices[:, [0, 1]],
        simplices[:, [1, 2]],
        simplices[:, [0, 2]],
    ])
    edges = np.sort(edges, axis=1)
    return np.unique(edges, axis=0, return_counts=True)


def _default_alpha(pts: np.ndarray, tri: Delaunay) -> float:
    edges, _ = _unique_edges(tri.simplices)
    lengths = np.linalg.norm(pts[edges[:, 0]] - pts[edges[:, 1]], axis=1)
    return float(ALPHA_EDGE_FACTOR * np.median(lengths))


def default_alpha(points) -> float:
    """
    Data-derived alpha used when none is configured.

    Twice the median Delaunay edge length: wide enough to bridge the typical
    gap between neighbouring points, narrow enough to keep large voids open.
    """
    pts = _prepare_points(points)
    return _default_alpha(pts, _triangulate(pts))


@dataclass(frozen=True, eq=False)
class AlphaShape:
    """
    Union of the Delaunay triangles with circumradius <= alpha.

    Attributes:
        points: Distinct input points, (m, 2)
        alpha: Circumradius threshold
        triangles: Kept triangles as (t, 3) indices into points
    """
    points: np.ndarray
    alpha: float
    triangles: np.ndarray
    _delaunay: Delaunay = field(repr=False)
    _kept: np.ndarray = field(repr=False)
    _origins: np.ndarray = field(init=False, repr=False)
    _inverses: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        verts = self.points[self.triangles]
        e1 = verts[:, 1] - verts[:, 0]
        e2 = verts[:, 2] - verts[:, 0]
        # Columns are the edge vectors: q - p0 = M @ (l1, l2)
        mats = np.stack([e1, e2], axis=2)
        object.__setattr__(self, '_origins', verts[:, 0].copy())
        object.__setattr__(self, '_inverses', np.linalg.inv(mats))
        for arr in (self.points, self.triangles, self._origins, self._inverses):
            arr.setflags(write=False)

    @property
    def n_triangles(self) -> int:
        return len(self.triangles)

    @property
    def area(self) -> float:
        verts = self.points[self.triangles]
        e1 = verts[:, 1] - verts[:, 0]
        e2 = verts[:, 2] - verts[:, 0]
        return float(0.5 * np.abs(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0]).sum())

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """(lower, upper) corners of the shape's bounding box."""
        used = self.points[np.unique(self.triangles)]
        return used.min(axis=0), used.max(axis=0)

    @property
    def boundary_edges(self) -> np.ndarray:
        """Edges that belong to exactly one kept triangle, as (e, 2) point indices."""
        edges, counts = _unique_edges(self.triangles)
        return edges[counts == 1]

    def contains(self, points) -> np.ndarray:
        """
        Vectorized closed-boundary membership.

        Args:
            points: (k, 2) array (or a single (2,) point)

        Returns:
            (k,) boolean array
        """
        q = np.atleast_2d(np.asarray(points, dtype=np.float64))
        if q.shape[1] != 2:
            raise UnsupportedDimensionError('alpha-shape membership', q.shape[1])

        inside = np.zeros(len(q), dtype=bool)
        if len(q) == 0:
            return inside

        lo, hi = self.bounds
        pad = BARYCENTRIC_EPS * max(float(np.max(hi - lo)), 1.0)
        candidates = np.flatnonzero(
            np.all(np.isfinite(q), axis=1)
            & np.all(q >= lo - pad, axis=1)
            & np.all(q <= hi + pad, axis=1)
        )
        if candidates.size == 0:
            return inside

        # Fast path: strictly interior points of a kept Delaunay triangle
        simplex = self._delaunay.find_simplex(q[candidates])
        hit = (simplex >= 0) & self._kept[np.maximum(simplex, 0)]
        inside[candidates[hit]] = True

        # Exact path for the rest: outside the hull, in a dropped triangle,
        # or sitting on an edge shared with one
        rest = candidates[~hit]
        if rest.size:
            inside[rest] = self._barycentric_contains(q[rest])
        return inside

    def _barycentric_contains(self, q: np.ndarray) -> np.ndarray:
        result = np.zeros(len(q), dtype=bool)
        block = max(1, _BLOCK_ELEMENTS // max(len(q), 1))
        for start in range(0, self.n_triangles, block):
            origins = self._origins[start:start + block]
            inverses = self._inverses[start:start + block]
            d = q[:, None, :] - origins[None, :, :]
            lam = np.einsum('bij,kbj->kbi', inverses, d)
            l0 = 1.0 - lam[..., 0] - lam[..., 1]
            ok = (
                (lam[..., 0] >= -BARYCENTRIC_EPS)
                & (lam[..., 1] >= -BARYCENTRIC_EPS)
                & (l0 >= -BARYCENTRIC_EPS)
            )
            result |= ok.any(axis=1)
        return result


def build(points, alpha: float = None) -> AlphaShape:
    """
    Build the alpha-shape of a 2-D point set.

    Args:
        points: (n, 2) array-like; non-finite rows are ignored
        alpha: Circumradius threshold (None = default_alpha(points))

    Returns:
        AlphaShape

    Raises:
        UnsupportedDimensionError: points are not 2-D
        InvalidParameterError: alpha <= 0 or not finite
        DegenerateInputError: < 3 distinct points, collinear points, or no
            triangle survives the alpha filter
    """
    pts = _prepare_points(points)
    if alpha is not None:
        if isinstance(alpha, bool) or not isinstance(alpha, (int, float, np.number)):
            raise InvalidParameterError('alpha', alpha, "must be a positive number")
        if not math.isfinite(alpha) or alpha <= 0:
            raise InvalidParameterError('alpha', alpha, "must be a positive finite number")
    tri = _triangulate(pts)

    if alpha is None:
        alpha = _default_alpha(pts, tri)
        logger.debug(f"alpha-shape: default alpha={alpha:.6g}")
    alpha = float(alpha)

    radii = _circumradii(pts[tri.simplices])
    kept = radii <= alpha
    if not kept.any():
        raise DegenerateInputError(
            f"no Delaunay triangle has circumradius <= alpha={alpha:g} "
            f"(smallest is {radii.min():.6g}); increase alpha",
            n_points=len(pts),
        )

    logger.debug(
        f"alpha-shape: {int(kept.sum())}/{len(kept)} triangles kept at alpha={alpha:.6g}"
    )
    return AlphaShape(
        points=pts,
        alpha=alpha,
        triangles=tri.simplices[kept],
        _delaunay=tri,
        _kept=kept,
    )


def contains(shape: AlphaShape, point) -> bool:
    """Closed-boundary membership test for a single 2-D point."""
    p = np.asarray(point, dtype=np.float64).reshape(-1)
    if p.shape[0] != 2:
        raise UnsupportedDimensionError('alpha-shape membership', p.shape[0])
    return bool(shape.contains(p[None, :])[0])
