"""
parameters.py

Configuration records for segmentation and colocalization.

All validation happens at construction so that an invalid configuration fails
before any image is processed.

Classes:
    ThresholdLocality: GLOBAL or LOCAL thresholding.
    LocalThresholdAlgorithm: OTSU, BERNSEN or NIBLACK local thresholding.
    CellDiameterRange: Inclusive range of accepted cell diameters.
    PreprocessingParameters: Options of the segmentation pipeline.
    TransductionParameters: Overlap threshold and channel indices of a colocalization.

Functions:
    as_locality(value): Coerce a selector into a ThresholdLocality.
    as_local_algorithm(value): Coerce a selector into a LocalThresholdAlgorithm.
"""

import math
from enum import Enum

from constants import LARGEST_CELL_DIAMETER, GAUSSIAN_BLUR_SIGMA, DESPECKLE_RADIUS, OVERLAP_THRESHOLD
from errors import ConfigurationError


class ThresholdLocality(Enum):
    GLOBAL = 'global'
    LOCAL = 'local'


class LocalThresholdAlgorithm(Enum):
    OTSU = 'otsu'
    BERNSEN = 'bernsen'
    NIBLACK = 'niblack'


def _as_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        if name in enum_cls.__members__:
            return enum_cls[name]
    raise ConfigurationError(f"Invalid {enum_cls.__name__} selected: {value!r}")


def as_locality(value) -> ThresholdLocality:
    """
    Coerce a selector into a ThresholdLocality.

    Args:
        value (ThresholdLocality or str): Enum member or its case-insensitive name.

    Raises:
        ConfigurationError: If the selector is not recognised.
    """
    return _as_enum(ThresholdLocality, value)


def as_local_algorithm(value) -> LocalThresholdAlgorithm:
    """
    Coerce a selector into a LocalThresholdAlgorithm.

    Args:
        value (LocalThresholdAlgorithm or str): Enum member or its case-insensitive name.

    Raises:
        ConfigurationError: If the selector is not recognised.
    """
    return _as_enum(LocalThresholdAlgorithm, value)


def _check_number(name: str, value, minimum: float = 0.0, allow_inf: bool = False) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if math.isnan(value) or (math.isinf(value) and not allow_inf):
        raise ConfigurationError(f"{name} must be finite, got {value}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


class CellDiameterRange:
    """
    Inclusive range of accepted cell diameters in pixels.

    The diameter of a region is the diameter of the circle with the same area.

    Attributes:
        smallest (float): Smallest accepted diameter.
        largest (float): Largest accepted diameter, may be infinite.
    """

    def __init__(self, smallest: float = 0.0, largest: float = math.inf):
        self.smallest: float = _check_number('smallest cell diameter', smallest)
        self.largest: float = _check_number('largest cell diameter', largest, allow_inf=True)
        if self.smallest > self.largest:
            raise ConfigurationError(
                f"Smallest cell diameter {self.smallest} is larger than largest {self.largest}")

    def contains(self, diameter: float) -> bool:
        return self.smallest <= diameter <= self.largest

    def __repr__(self):
        return f"CellDiameterRange({self.smallest}, {self.largest})"


class PreprocessingParameters:
    """
    Options of the segmentation pipeline.

    Attributes:
        largest_cell_diameter (float): Expected largest cell diameter, sizes the rolling ball
            and the local threshold window.
        gaussian_blur_sigma (float): Sigma of the blur applied before rethresholding.
        should_subtract_background (bool): Whether to subtract a rolling-ball background.
        should_despeckle (bool): Whether to median filter the thresholded mask.
        despeckle_radius (float): Radius of the despeckle median filter.
        threshold_locality (ThresholdLocality): Global or local thresholding.
        local_threshold_algorithm (LocalThresholdAlgorithm): Algorithm for local thresholding.
        should_gaussian_blur (bool): Whether to blur and rethreshold the mask.
        cell_diameter_range (CellDiameterRange): Accepted diameters of extracted cells.
    """

    def __init__(self,
                 largest_cell_diameter: float = LARGEST_CELL_DIAMETER,
                 gaussian_blur_sigma: float = GAUSSIAN_BLUR_SIGMA,
                 should_subtract_background: bool = True,
                 should_despeckle: bool = True,
                 despeckle_radius: float = DESPECKLE_RADIUS,
                 threshold_locality=ThresholdLocality.GLOBAL,
                 local_threshold_algorithm=LocalThresholdAlgorithm.OTSU,
                 should_gaussian_blur: bool = True,
                 cell_diameter_range: CellDiameterRange = None):
        """
        Validate and store the preprocessing options.

        Raises:
            ConfigurationError: If a selector is unknown or a value is out of range.
        """
        self.largest_cell_diameter: float = _check_number('largest_cell_diameter', largest_cell_diameter)
        if self.largest_cell_diameter < 1:
            raise ConfigurationError(f"largest_cell_diameter must be at least 1, got {self.largest_cell_diameter}")
        self.gaussian_blur_sigma: float = _check_number('gaussian_blur_sigma', gaussian_blur_sigma)
        self.should_subtract_background: bool = bool(should_subtract_background)
        self.should_despeckle: bool = bool(should_despeckle)
        self.despeckle_radius: float = _check_number('despeckle_radius', despeckle_radius)
        self.threshold_locality: ThresholdLocality = as_locality(threshold_locality)
        self.local_threshold_algorithm: LocalThresholdAlgorithm = as_local_algorithm(local_threshold_algorithm)
        self.should_gaussian_blur: bool = bool(should_gaussian_blur)
        self.cell_diameter_range: CellDiameterRange = cell_diameter_range or CellDiameterRange()

    @property
    def window_radius(self) -> int:
        """Radius in pixels of the local thresholding window."""
        return max(1, int(round(self.largest_cell_diameter)))

    def get_dict(self) -> dict:
        """
        Serialize the options, e.g. for a parameters sheet of a report.
        """
        return {'largest_cell_diameter': self.largest_cell_diameter,
                'gaussian_blur_sigma': self.gaussian_blur_sigma,
                'should_subtract_background': self.should_subtract_background,
                'should_despeckle': self.should_despeckle,
                'despeckle_radius': self.despeckle_radius,
                'threshold_locality': self.threshold_locality.name,
                'local_threshold_algorithm': self.local_threshold_algorithm.name,
                'should_gaussian_blur': self.should_gaussian_blur,
                'smallest_cell_diameter': self.cell_diameter_range.smallest,
                'largest_accepted_cell_diameter': self.cell_diameter_range.largest}


class TransductionParameters:
    """
    Overlap threshold and channel selection of a transduction analysis.

    Attributes:
        overlap_threshold (float): Overlap ratio in [0, 1] a query cell must exceed.
        target_channel (int): Channel index of the target cells.
        transduced_channel (int): Channel index of the transduced (marker) cells.
        all_cells_channel (int or None): Channel index of the all cells control, if any.
    """

    def __init__(self,
                 target_channel: int = 0,
                 transduced_channel: int = 1,
                 all_cells_channel: int = None,
                 overlap_threshold: float = OVERLAP_THRESHOLD):
        """
        Validate and store the colocalization options.

        Raises:
            ConfigurationError: If the threshold is outside [0, 1] or a channel index is negative.
        """
        self.overlap_threshold: float = check_overlap_threshold(overlap_threshold)
        self.target_channel: int = _check_channel('target_channel', target_channel)
        self.transduced_channel: int = _check_channel('transduced_channel', transduced_channel)
        self.all_cells_channel: int = None if all_cells_channel is None else \
            _check_channel('all_cells_channel', all_cells_channel)

    def get_dict(self) -> dict:
        return {'overlap_threshold': self.overlap_threshold,
                'target_channel': self.target_channel,
                'transduced_channel': self.transduced_channel,
                'all_cells_channel': self.all_cells_channel}


def check_overlap_threshold(threshold) -> float:
    """
    Validate an overlap threshold.

    Args:
        threshold (float): Fraction in [0, 1].

    Returns:
        float: The threshold as float.

    Raises:
        ConfigurationError: If the threshold is not a number in [0, 1].
    """
    threshold = _check_number('overlap_threshold', threshold)
    if threshold > 1:
        raise ConfigurationError(f"overlap_threshold must be at most 1, got {threshold}")
    return threshold


def _check_channel(name: str, channel) -> int:
    if isinstance(channel, bool) or not hasattr(channel, '__index__'):
        raise ConfigurationError(f"{name} must be an integer, got {channel!r}")
    channel = int(channel)
    if channel < 0:
        raise ConfigurationError(f"{name} must not be negative, got {channel}")
    return channel
