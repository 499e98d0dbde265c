"""
segments.py

Module for extracting cell regions from a segmented binary mask.
Defines the Segments class to find 8-connected foreground components, label them, and
wrap each in a CellRegion for downstream colocalization.

Functions:
    mask_segments(mask): Coordinate arrays of the 8-connected components of a mask.

Classes:
    Segments: Detects cell regions in a binary mask and keeps a labeled image of them.
"""

import numpy as np
from skimage.measure import label

from cell_region import CellRegion
from constants import BG_L
from parameters import CellDiameterRange


def mask_segments(mask: np.ndarray) -> list[np.ndarray]:
    """
    Collect the pixel coordinates of every 8-connected foreground component.

    Components are ordered by their first pixel in row-major order.

    Args:
        mask (ndarray[bool]): 2D binary mask.

    Returns:
        list of ndarray[int]: Each element is an (N,2) array of (row, col) coordinates.
    """
    labels = label(mask, connectivity=2)
    n = int(np.max(labels)) if labels.size else 0
    if n == 0:
        return []

    pts = np.argwhere(labels > 0)
    ids = labels[pts[:, 0], pts[:, 1]]
    order = np.argsort(ids, kind='stable')
    ends = np.cumsum(np.bincount(ids, minlength=n + 1)[1:])
    return np.split(pts[order], ends[:-1])


class Segments:
    """
    Detects and organizes cell regions within a segmented binary mask.

    Attributes:
        cells (list[CellRegion]): One region per accepted connected component.
        n_cells (int): Number of detected cells.
        labeled_cells (ndarray[int]): 2D array with same shape as the mask, where each
            pixel is assigned its cell index or BG_L for background.
    """

    def __init__(self, mask: np.ndarray, diameter_range: CellDiameterRange = None):
        """
        Initialize and immediately extract cell regions from the mask.

        Args:
            mask (ndarray[H, W]): 2D binary mask, not modified.
            diameter_range (CellDiameterRange): Accepted cell diameters, all by default.
        """
        if mask.ndim != 2:
            raise ValueError(f"Mask must be 2D, got shape {mask.shape}")
        self.cells: list[CellRegion] = []
        self.n_cells: int = 0
        self.labeled_cells: np.ndarray = BG_L * np.ones(mask.shape, dtype=int)
        self.extract_segments(mask.astype(bool), diameter_range or CellDiameterRange())

    def extract_segments(self, mask: np.ndarray, diameter_range: CellDiameterRange):
        """
        Find connected components and create a CellRegion for each accepted one.

        Args:
            mask (ndarray[bool]): 2D binary mask.
            diameter_range (CellDiameterRange): Accepted cell diameters.

        Side Effects:
            - Populates `self.cells` with CellRegion instances.
            - Fills `self.labeled_cells` with cell labels.
            - Updates `self.n_cells` to the number of regions kept.
        """
        for pts in mask_segments(mask):
            cell = CellRegion(pts)
            if not diameter_range.contains(cell.diameter):
                continue
            self.labeled_cells[cell.pts[:, 0], cell.pts[:, 1]] = len(self.cells)
            self.cells.append(cell)
        self.n_cells = len(self.cells)

    def get_dict(self) -> dict:
        """
        Serialize the Segments state.

        Returns:
            dict: {
                'cells_n': int number of detected cells,
                'cells_labels': ndarray[int] labeled cell image,
                'cells_area': list[int] pixel count per cell
            }
        """
        return {'cells_n': self.n_cells,
                'cells_labels': self.labeled_cells,
                'cells_area': [cell.area for cell in self.cells]}
