"""
transduction.py

High-level transduction pipeline combining cell segmentation of several channels and
their colocalization.
Defines the TransductionAnalyzer class to segment the target, transduced and optional
all cells channels of an image, find the transduced cells that are target cells, confirm
them against the all cells channel and measure their intensities.

Classes:
    ChannelAnalysisResult: Per-image bundle of counts, colocalization and intensities.
    TransductionAnalyzer: Manages the workflow from a multi-channel image to its result.
"""

import time

import numpy as np

from cell_region import CellRegion
from colocalizer import TransductionAnalysis, NaiveColocalizer
from data_matrix import DataMatrix
from intensity import IntensityStatistics, Metric, measure_cells
from parameters import PreprocessingParameters, TransductionParameters
from segmentation import extract_cells

WRITE_TIME = True


class ChannelAnalysisResult:
    """
    Result of the transduction analysis of one image.

    Attributes:
        target_cell_count (int): Number of cells detected in the target channel.
        transduced_cell_count (int): Number of cells detected in the transduced channel.
        all_cell_count (int or None): Number of cells in the all cells channel, None without it.
        two_channel (TransductionAnalysis): Transduced cells split by overlap with target cells.
        three_channel (TransductionAnalysis or None): Transduced target cells split by overlap
            with the all cells channel, None without it.
        intensities (list[IntensityStatistics]): Transduced channel statistics of each cell
            of `overlapping_cells`, in the same order.
    """

    def __init__(self, target_cell_count: int, transduced_cell_count: int,
                 two_channel: TransductionAnalysis, intensities: list[IntensityStatistics],
                 all_cell_count: int = None, three_channel: TransductionAnalysis = None):
        self.target_cell_count: int = target_cell_count
        self.transduced_cell_count: int = transduced_cell_count
        self.all_cell_count: int = all_cell_count
        self.two_channel: TransductionAnalysis = two_channel
        self.three_channel: TransductionAnalysis = three_channel
        self.intensities: list[IntensityStatistics] = intensities

    @property
    def overlapping_cells(self) -> list[CellRegion]:
        """Final overlapping cells, confirmed against all cells when that channel exists."""
        analysis = self.two_channel if self.three_channel is None else self.three_channel
        return analysis.overlapping

    @property
    def transduced_target_count(self) -> int:
        return len(self.two_channel.overlapping)

    @property
    def three_channel_count(self):
        """Number of cells overlapping in all three channels, None without an all cells channel."""
        return None if self.three_channel is None else len(self.three_channel.overlapping)

    @property
    def transduction_efficiency(self):
        """Percentage of target cells that are transduced, None without target cells."""
        if self.target_cell_count == 0:
            return None
        return 100 * self.transduced_target_count / self.target_cell_count

    @property
    def average_area(self):
        """Mean area of the measured cells, None if there are none."""
        if len(self.intensities) == 0:
            return None
        return float(np.mean([stats.area for stats in self.intensities]))

    def metric_values(self, metric: Metric) -> list[int]:
        """Values of one metric for every measured cell."""
        return [metric.compute(stats) for stats in self.intensities]

    def get_dict(self) -> dict:
        """
        Serialize the result summary.

        Returns:
            dict: Counts, efficiency, average area and per-cell metrics. Fields depending on
                the all cells channel are None when it was not analysed.
        """
        return {'target_cells_n': self.target_cell_count,
                'transduced_cells_n': self.transduced_cell_count,
                'transduced_target_cells_n': self.transduced_target_count,
                'all_cells_n': self.all_cell_count,
                'three_channel_cells_n': self.three_channel_count,
                'transduction_efficiency': self.transduction_efficiency,
                'average_area': self.average_area,
                'cells': [stats.get_dict() for stats in self.intensities]}


class TransductionAnalyzer:
    """
    Orchestrates segmentation and colocalization across the channels of an image.

    Attributes:
        preprocessing (PreprocessingParameters): Segmentation options shared by all channels.
        transduction (TransductionParameters): Channels and overlap threshold.
        colocalizer (NaiveColocalizer): Matcher bound to the overlap threshold.
    """

    def __init__(self, preprocessing: PreprocessingParameters = None, transduction: TransductionParameters = None):
        self.preprocessing: PreprocessingParameters = preprocessing or PreprocessingParameters()
        self.transduction: TransductionParameters = transduction or TransductionParameters()
        self.colocalizer: NaiveColocalizer = NaiveColocalizer(self.transduction.overlap_threshold)

    def segment_channel(self, image: DataMatrix, c: int, should_stop=None) -> list[CellRegion]:
        """
        Segment one channel of the image, using its maximum projection over depth slices.

        Args:
            image (DataMatrix): Multi-channel image.
            c (int): Channel index.
            should_stop (callable or None): Polled between pipeline stages.

        Returns:
            list[CellRegion]: Cells of the channel.

        Raises:
            ChannelUnavailableError: If the image has no channel `c`.
        """
        t_start = time.time()
        cells = extract_cells(image.projection(c), self.preprocessing, should_stop)
        if WRITE_TIME:
            print(f"\tCell segmentation of {image.name or 'image'} channel {c} found {len(cells)} cells "
                  f"in {time.time() - t_start:.2f} seconds.")
        return cells

    def count_cells(self, image, c: int, should_stop=None) -> list[CellRegion]:
        """
        Segment a single channel without colocalization.

        Args:
            image (DataMatrix or list[ndarray]): Image or its channels.
            c (int): Channel index.
            should_stop (callable or None): Polled between pipeline stages.

        Returns:
            list[CellRegion]: Cells of the channel.
        """
        return self.segment_channel(as_data_matrix(image), c, should_stop)

    def analyse(self, image, should_stop=None) -> ChannelAnalysisResult:
        """
        Run the transduction analysis on one image.

        All requested channels are checked before any processing starts.

        Args:
            image (DataMatrix or list[ndarray]): Image or its channels.
            should_stop (callable or None): Polled between pipeline stages.

        Returns:
            ChannelAnalysisResult: Counts, colocalization and intensities of the image.

        Raises:
            ChannelUnavailableError: If one of the requested channels does not exist.
            AnalysisCancelled: If `should_stop()` returned True.
        """
        image = as_data_matrix(image)
        params = self.transduction
        transduced_raw = image.projection(params.transduced_channel)
        image.channel(params.target_channel)
        if params.all_cells_channel is not None:
            image.channel(params.all_cells_channel)

        t_start = time.time()
        target_cells = self.segment_channel(image, params.target_channel, should_stop)
        transduced_cells = self.segment_channel(image, params.transduced_channel, should_stop)
        two_channel = self.colocalizer.analyse_transduction(target_cells, transduced_cells)

        all_cell_count, three_channel = None, None
        if params.all_cells_channel is not None:
            all_cells = self.segment_channel(image, params.all_cells_channel, should_stop)
            all_cell_count = len(all_cells)
            three_channel = self.colocalizer.analyse_transduction(all_cells, two_channel.overlapping)

        final = two_channel if three_channel is None else three_channel
        result = ChannelAnalysisResult(len(target_cells), len(transduced_cells), two_channel,
                                       measure_cells(final.overlapping, transduced_raw),
                                       all_cell_count, three_channel)
        if WRITE_TIME:
            print(f"Transduction analysis of {image.name or 'image'} took {time.time() - t_start:.2f} seconds.")
        return result


def as_data_matrix(image) -> DataMatrix:
    """
    Accept a DataMatrix or a list of per-channel arrays.

    Raises:
        TypeError: For any other input.
    """
    if isinstance(image, DataMatrix):
        return image
    if isinstance(image, (list, tuple)):
        return DataMatrix.from_channels(list(image))
    raise TypeError(f"Expected a DataMatrix or a list of channels, got {type(image).__name__}")
