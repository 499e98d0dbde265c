"""
cell_region.py

Module providing the CellRegion class, one segmented cell represented by the exact set
of its pixel coordinates.

Two regions are equal when their coordinate sets are equal, regardless of the order the
coordinates were given in. Overlaps between regions are computed on these sets, never on
bounding shapes.

Classes:
    CellRegion: Immutable set of (row, col) pixel coordinates of one cell.
"""

import math

import numpy as np


class CellRegion:
    """
    Immutable set of (row, col) pixel coordinates of one connected cell.

    Attributes:
        pts (ndarray[int]): (N,2) read-only array of unique coordinates in row-major order.
        coords (frozenset[tuple[int, int]]): The same coordinates as a set.
        n_pts (int): Number of pixels (area).
        tl (ndarray[int]): Top-left coordinate of the bounding box.
        br (ndarray[int]): Bottom-right coordinate of the bounding box.
        center (ndarray[float]): Mean coordinate of the pixels.
    """

    def __init__(self, pts):
        """
        Initialize a CellRegion from pixel coordinates.

        Args:
            pts (array-like): (N,2) array or iterable of (row, col) pairs. Duplicates are dropped.

        Raises:
            ValueError: If no coordinate is given or the coordinates are not pairs.
        """
        pts = np.asarray(list(pts) if not isinstance(pts, np.ndarray) else pts)
        if pts.size == 0:
            raise ValueError("A cell region needs at least one pixel.")
        if pts.ndim != 2 or pts.shape[1] != 2:
            raise ValueError(f"Coordinates must have shape (N, 2), got {pts.shape}")

        pts = np.unique(pts.astype(int), axis=0)
        pts.setflags(write=False)

        self.pts: np.ndarray = pts
        self.coords: frozenset = frozenset(zip(pts[:, 0].tolist(), pts[:, 1].tolist()))
        self.n_pts: int = pts.shape[0]
        self.tl: np.ndarray = np.min(pts, axis=0)
        self.br: np.ndarray = np.max(pts, axis=0)
        self.center: np.ndarray = np.mean(pts, axis=0)

    @property
    def area(self) -> int:
        return self.n_pts

    @property
    def diameter(self) -> float:
        """Diameter of the circle with the same area."""
        return 2 * math.sqrt(self.n_pts / math.pi)

    @property
    def mask(self) -> np.ndarray:
        """Binary mask of the region within its bounding box."""
        pts_i = self.pts - self.tl
        mask = np.zeros(self.br - self.tl + 1, dtype=bool)
        mask[pts_i[:, 0], pts_i[:, 1]] = True
        return mask

    def bbox_overlaps(self, other: 'CellRegion') -> bool:
        """Whether the bounding boxes of both regions intersect."""
        return bool(np.all(self.tl <= other.br) and np.all(other.tl <= self.br))

    def intersection_size(self, other: 'CellRegion') -> int:
        """Number of pixels shared with another region."""
        if not self.bbox_overlaps(other):
            return 0
        return len(self.coords & other.coords)

    def __len__(self):
        return self.n_pts

    def __contains__(self, pt):
        return tuple(pt) in self.coords

    def __eq__(self, other):
        if not isinstance(other, CellRegion):
            return NotImplemented
        return self.coords == other.coords

    def __hash__(self):
        return hash(self.coords)

    def __repr__(self):
        if self.n_pts <= 4:
            return f"CellRegion({sorted(self.coords)})"
        return f"CellRegion(n={self.n_pts}, tl={self.tl.tolist()}, br={self.br.tolist()})"


# name used by the colocalization output of the reporting side
PositionedCell = CellRegion
