"""
colocalizer.py

Module classifying cells of one population as overlapping or not overlapping the cells of
another population.

A query cell q overlaps the reference population if, for at least one reference cell r,
|q & r| / |q| is strictly greater than the threshold. With a threshold of 0 a single shared
pixel is enough, with a threshold of 1 no cell can ever overlap.

Functions:
    overlap_ratio(query, reference): Fraction of the query cell covered by a reference cell.
    match(reference, query, threshold): Partition the query cells into a TransductionAnalysis.

Classes:
    TransductionAnalysis: Overlapping and non-overlapping query cells.
    NaiveColocalizer: Pairwise colocalizer bound to one overlap threshold.
"""

from cell_region import CellRegion
from parameters import check_overlap_threshold


def overlap_ratio(query: CellRegion, reference: CellRegion) -> float:
    """
    Fraction of the query cell's pixels that also belong to the reference cell.

    Args:
        query (CellRegion): Cell whose coverage is measured.
        reference (CellRegion): Covering cell.

    Returns:
        float: Value in [0, 1].
    """
    return query.intersection_size(reference) / query.n_pts


class TransductionAnalysis:
    """
    Partition of a query population by overlap with a reference population.

    Every query cell is in exactly one of the two lists, in the order of the query list.

    Attributes:
        overlapping (list[CellRegion]): Query cells overlapping some reference cell.
        non_overlapping (list[CellRegion]): The remaining query cells.
    """

    def __init__(self, overlapping: list[CellRegion] = None, non_overlapping: list[CellRegion] = None):
        self.overlapping: list[CellRegion] = list(overlapping or [])
        self.non_overlapping: list[CellRegion] = list(non_overlapping or [])

    def get_dict(self) -> dict:
        return {'overlapping_n': len(self.overlapping),
                'non_overlapping_n': len(self.non_overlapping)}

    def __eq__(self, other):
        if not isinstance(other, TransductionAnalysis):
            return NotImplemented
        return self.overlapping == other.overlapping and self.non_overlapping == other.non_overlapping

    def __repr__(self):
        return f"TransductionAnalysis(overlapping={self.overlapping}, non_overlapping={self.non_overlapping})"


def match(reference: list[CellRegion], query: list[CellRegion], threshold: float) -> TransductionAnalysis:
    """
    Classify each query cell by its overlap with the reference cells.

    Args:
        reference (list[CellRegion]): Reference population, e.g. target cells.
        query (list[CellRegion]): Query population, e.g. transduced cells.
        threshold (float): Overlap threshold in [0, 1], compared with strict `>`.

    Returns:
        TransductionAnalysis: Partition of `query`.

    Raises:
        ConfigurationError: If the threshold is outside [0, 1].
    """
    threshold = check_overlap_threshold(threshold)
    result = TransductionAnalysis()
    for q in query:
        if any(overlap_ratio(q, r) > threshold for r in reference):
            result.overlapping.append(q)
        else:
            result.non_overlapping.append(q)
    return result


class NaiveColocalizer:
    """
    Colocalizer comparing every query cell with every reference cell.

    Attributes:
        threshold (float): Overlap threshold in [0, 1].
    """

    def __init__(self, threshold: float):
        self.threshold: float = check_overlap_threshold(threshold)

    def analyse_transduction(self, target_cells: list[CellRegion],
                             transduced_cells: list[CellRegion]) -> TransductionAnalysis:
        """
        Find the transduced cells that are target cells.

        Args:
            target_cells (list[CellRegion]): Reference population.
            transduced_cells (list[CellRegion]): Query population.

        Returns:
            TransductionAnalysis: Partition of `transduced_cells`.
        """
        return match(target_cells, transduced_cells, self.threshold)
