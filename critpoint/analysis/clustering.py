"""
Deduplication of nearby critical points by threshold-graph clustering.

Two points are neighbours when their Euclidean distance is strictly below
``distance_threshold``; clusters are the connected components of that
neighbour graph. Neighbour pairs come from a KD-tree and are merged with a
union-find, so the result does not depend on the order of the input.

References:
    - Cormen, Leiserson, Rivest, Stein. "Introduction to Algorithms", 3rd ed.
      Chapter 21 (disjoint-set forests).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy.spatial import cKDTree

from .classification import CriticalPointKind, HessianClassification

# Centroid distances within this relative gap count as tied.
_TIE_RTOL = 1e-12


class UnionFind:
    """
    Union-Find (Disjoint Set) over the integers ``0..n-1`` with path
    compression and union by rank.
    """

    def __init__(self, n: int):
        self.parent = np.arange(n)
        self.rank = np.zeros(n, dtype=int)

    def find(self, x: int) -> int:
        """Find the root of ``x``, compressing the path on the way."""
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return int(root)

    def union(self, x: int, y: int) -> bool:
        """
        Merge the sets containing ``x`` and ``y``.

        Returns:
            True if a merge happened, False if both were already in one set.
        """
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x == root_y:
            return False
        if self.rank[root_x] < self.rank[root_y]:
            root_x, root_y = root_y, root_x
        self.parent[root_y] = root_x
        if self.rank[root_x] == self.rank[root_y]:
            self.rank[root_x] += 1
        return True


@dataclass(frozen=True)
class ClusterAssignment:
    """
    Mapping of input points to clusters.

    Attributes:
        labels: Cluster id per input point. Ids are numbered in order of
            first appearance in the input.
        representatives: Input index of each cluster's representative.
        centroids: Mean coordinates of each cluster, shape ``(k, d)``.
    """

    labels: np.ndarray
    representatives: tuple[int, ...]
    centroids: np.ndarray

    def __post_init__(self) -> None:
        for name in ("labels", "centroids"):
            array = np.array(getattr(self, name), copy=True)
            array.setflags(write=False)
            object.__setattr__(self, name, array)
        object.__setattr__(self, "representatives", tuple(int(i) for i in self.representatives))

    @property
    def n_clusters(self) -> int:
        return len(self.representatives)

    def members(self, cluster: int) -> tuple[int, ...]:
        """Input indices belonging to ``cluster``."""
        if not 0 <= cluster < self.n_clusters:
            raise ValueError(f"cluster must lie in [0, {self.n_clusters}), got {cluster}")
        return tuple(int(i) for i in np.flatnonzero(self.labels == cluster))


@dataclass(frozen=True)
class DistinctMinima:
    """Clustering of the minima within a larger set of classified points.

    ``minima_indices`` maps positions inside ``assignment`` back to the
    caller's indexing.
    """

    minima_indices: tuple[int, ...]
    assignment: ClusterAssignment

    @property
    def representatives(self) -> tuple[int, ...]:
        """Representative of each distinct minimum, in the caller's indexing."""
        return tuple(self.minima_indices[i] for i in self.assignment.representatives)

    @property
    def n_distinct(self) -> int:
        return self.assignment.n_clusters


class DistinctMinimaClusterer:
    """
    Collapse spatially close points onto one representative each.

    Args:
        distance_threshold: Neighbourhood radius. Points strictly closer than
            this are linked; links are transitive.

    Example:
        >>> import numpy as np
        >>> clusterer = DistinctMinimaClusterer(distance_threshold=1e-3)
        >>> points = np.array([[0.0, 0.0], [1e-4, 0.0], [1.0, 1.0]])
        >>> clusterer.cluster(points).labels.tolist()
        [0, 0, 1]
    """

    def __init__(self, distance_threshold: float = 1e-3):
        if not distance_threshold > 0:
            raise ValueError(f"distance_threshold must be positive, got {distance_threshold}")
        self.distance_threshold = float(distance_threshold)

    def cluster(self, points, values: Optional[Sequence[float]] = None) -> ClusterAssignment:
        """
        Cluster ``points`` (shape ``(n, d)``).

        The representative of a cluster is the member nearest its centroid.
        Distances that differ only by floating-point rounding of the centroid
        count as tied; ties go to the lower objective value in ``values`` and
        then to the lower input index.
        """
        points = np.asarray(points, dtype=float)
        if points.ndim != 2:
            raise ValueError(f"points must have shape (n, d), got {points.shape}")
        if not np.all(np.isfinite(points)):
            raise ValueError("points must be finite")
        n, d = points.shape
        if values is not None:
            values = np.asarray(values, dtype=float).reshape(-1)
            if values.size != n:
                raise ValueError(f"Expected {n} objective values, got {values.size}")
        if n == 0:
            return ClusterAssignment(
                labels=np.zeros(0, dtype=int), representatives=(), centroids=np.zeros((0, d))
            )

        uf = UnionFind(n)
        pairs = cKDTree(points).query_pairs(self.distance_threshold, output_type="ndarray")
        if len(pairs):
            gaps = np.linalg.norm(points[pairs[:, 0]] - points[pairs[:, 1]], axis=1)
            for i, j in pairs[gaps < self.distance_threshold]:
                uf.union(int(i), int(j))

        labels = np.empty(n, dtype=int)
        cluster_of_root: dict[int, int] = {}
        for i in range(n):
            root = uf.find(i)
            if root not in cluster_of_root:
                cluster_of_root[root] = len(cluster_of_root)
            labels[i] = cluster_of_root[root]

        k = len(cluster_of_root)
        centroids = np.zeros((k, d))
        representatives = []
        for cluster in range(k):
            members = np.flatnonzero(labels == cluster)
            centroid = points[members].mean(axis=0)
            centroids[cluster] = centroid
            dist = np.linalg.norm(points[members] - centroid, axis=1)
            scale = max(1.0, float(np.max(np.abs(points[members]))))
            tied = members[dist <= dist.min() + _TIE_RTOL * scale]
            if values is None:
                representatives.append(int(tied[0]))
            else:
                representatives.append(int(min(tied, key=lambda i: (values[i], int(i)))))
        return ClusterAssignment(labels=labels, representatives=tuple(representatives), centroids=centroids)

    def distinct_minima(
        self,
        points,
        classifications: Sequence[HessianClassification | CriticalPointKind],
        values: Optional[Sequence[float]] = None,
    ) -> DistinctMinima:
        """Cluster only the points classified as minima."""
        points = np.asarray(points, dtype=float)
        if points.ndim != 2 or len(classifications) != points.shape[0]:
            raise ValueError(
                f"Need one classification per point: {len(classifications)} for points of shape {points.shape}"
            )
        kinds = [c.kind if isinstance(c, HessianClassification) else CriticalPointKind(c) for c in classifications]
        minima = tuple(i for i, kind in enumerate(kinds) if kind is CriticalPointKind.MINIMUM)
        sub_values = None if values is None else np.asarray(values, dtype=float)[list(minima)]
        assignment = self.cluster(points[list(minima)].reshape(len(minima), points.shape[1]), sub_values)
        return DistinctMinima(minima_indices=minima, assignment=assignment)


def find_distinct_minima(points, values=None, distance_threshold: float = 1e-3) -> ClusterAssignment:
    """Functional shortcut for :meth:`DistinctMinimaClusterer.cluster`."""
    return DistinctMinimaClusterer(distance_threshold).cluster(points, values)


__all__ = [
    "ClusterAssignment",
    "DistinctMinima",
    "DistinctMinimaClusterer",
    "UnionFind",
    "find_distinct_minima",
]
