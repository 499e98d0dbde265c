"""
intensity.py

Module computing per-cell intensity statistics against an intensity channel.

Statistics are computed on demand from the coordinates of a CellRegion and whichever
channel is passed; nothing is cached on the region, so the same cell can be measured
against several channels.

Classes:
    IntensityStatistics: Area, mean, median, min, max and raw integrated density of a cell.
    Metric: Reported per-cell metrics and how to read them from IntensityStatistics.

Functions:
    measure_cells(cells, channel): IntensityStatistics for every cell of a list.
"""

from enum import Enum

import numpy as np

from cell_region import CellRegion


class IntensityStatistics:
    """
    Intensity statistics of one cell in one channel.

    Attributes:
        area (int): Number of pixels.
        mean (float): Mean intensity.
        median (float): Median intensity.
        min (float): Minimal intensity.
        max (float): Maximal intensity.
        raw_int_den (float): Sum of intensities (raw integrated density).
    """

    def __init__(self, cell: CellRegion, channel: np.ndarray):
        """
        Measure a cell against an intensity channel.

        Args:
            cell (CellRegion): Cell whose pixels are measured.
            channel (ndarray[H, W]): Intensity channel, read only.

        Raises:
            ValueError: If the channel is not 2D or the cell reaches outside of it.
        """
        if channel.ndim != 2:
            raise ValueError(f"Intensity channel must be 2D, got shape {channel.shape}")
        if np.any(cell.tl < 0) or np.any(cell.br >= channel.shape):
            raise ValueError(f"Cell {cell!r} lies outside of the channel of shape {channel.shape}")

        values = channel[cell.pts[:, 0], cell.pts[:, 1]].astype(float)
        self.area: int = cell.n_pts
        self.mean: float = float(np.mean(values))
        self.median: float = float(np.median(values))
        self.min: float = float(np.min(values))
        self.max: float = float(np.max(values))
        self.raw_int_den: float = float(np.sum(values))

    def get_dict(self) -> dict:
        return {metric.value: metric.compute(self) for metric in Metric}

    def __repr__(self):
        return (f"IntensityStatistics(area={self.area}, mean={self.mean:.2f}, median={self.median}, "
                f"min={self.min}, max={self.max}, raw_int_den={self.raw_int_den})")


class Metric(Enum):
    AREA = 'Morphology Area'
    MEAN = 'Mean Int'
    MEDIAN = 'Median Int'
    MIN = 'Min Int'
    MAX = 'Max Int'
    RAW_INT_DEN = 'Raw IntDen'

    def compute(self, stats: IntensityStatistics) -> int:
        """Integer value of this metric for one cell."""
        value = {Metric.AREA: stats.area,
                 Metric.MEAN: stats.mean,
                 Metric.MEDIAN: stats.median,
                 Metric.MIN: stats.min,
                 Metric.MAX: stats.max,
                 Metric.RAW_INT_DEN: stats.raw_int_den}[self]
        return int(round(value))


def measure_cells(cells: list[CellRegion], channel: np.ndarray) -> list[IntensityStatistics]:
    """
    Measure each cell of a list against the same channel.

    Args:
        cells (list[CellRegion]): Cells to measure.
        channel (ndarray[H, W]): Intensity channel.

    Returns:
        list[IntensityStatistics]: One entry per cell, in the order of `cells`.
    """
    return [IntensityStatistics(cell, channel) for cell in cells]
