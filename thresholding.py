"""
thresholding.py

Module converting 8-bit grayscale images into binary foreground masks.

The global variant uses Otsu's method on the whole image histogram. The local variants
decide per pixel from a window around it whose size derives from the expected largest
cell diameter. Windows reaching past the image border are clipped to the image.
Windows without any contrast (and uniform images for the global variant) have no
meaningful cut, they are classified against the mid-gray level instead.

Functions:
    otsu_cut(image): Global Otsu cut value, None for a uniform image.
    otsu_mask(image): Global Otsu foreground mask.
    local_otsu_mask(image, radius): Otsu applied to the histogram of each window.
    bernsen_mask(image, radius, contrast): Midpoint of window extremes with contrast floor.
    niblack_mask(image, radius, k, bias): Window mean plus weighted standard deviation.
    threshold(image, locality, algorithm, radius): Dispatch to the selected algorithm.
"""

import numpy as np
import scipy.ndimage as spi
from skimage.filters import threshold_otsu, rank
from skimage.morphology import disk

from constants import BERNSEN_CONTRAST, NIBLACK_K, NIBLACK_BIAS, MID_GRAY
from errors import ConfigurationError
from parameters import ThresholdLocality, LocalThresholdAlgorithm, as_locality, as_local_algorithm


def otsu_cut(image: np.ndarray):
    """
    Compute the intensity cut maximizing the between-class variance.

    Args:
        image (ndarray[uint8]): 2D grayscale image.

    Returns:
        int or None: Smallest intensity classified as foreground, None if the image is uniform.
    """
    if image.size == 0 or image.min() == image.max():
        return None
    # pixels above otsu value are the upper class
    return int(np.floor(threshold_otsu(image))) + 1


def otsu_mask(image: np.ndarray) -> np.ndarray:
    """
    Global Otsu threshold: pixels >= cut are foreground.

    Args:
        image (ndarray[uint8]): 2D grayscale image.

    Returns:
        ndarray[bool]: Foreground mask, empty for a uniform image.
    """
    cut = otsu_cut(image)
    if cut is None:
        return np.zeros(image.shape, dtype=bool)
    return image >= cut


def _flat_fallback(mask: np.ndarray, flat: np.ndarray, level: np.ndarray) -> np.ndarray:
    mask[flat] = level[flat] >= MID_GRAY
    return mask


def local_otsu_mask(image: np.ndarray, radius: int) -> np.ndarray:
    """
    Local Otsu threshold: the global rule applied to each window histogram.

    Args:
        image (ndarray[uint8]): 2D grayscale image.
        radius (int): Radius of the circular window.

    Returns:
        ndarray[bool]: Foreground mask.
    """
    footprint = disk(radius)
    # pixels above the window otsu value are the upper class
    local_cut = rank.otsu(image, footprint)
    flat = rank.maximum(image, footprint) == rank.minimum(image, footprint)
    return _flat_fallback(image > local_cut, flat, image)


def bernsen_mask(image: np.ndarray, radius: int, contrast: int = BERNSEN_CONTRAST) -> np.ndarray:
    """
    Bernsen local threshold.

    A pixel is foreground if it is at least the midpoint of the window maximum and minimum.
    Where the window contrast (maximum - minimum) is below `contrast`, the midpoint itself
    is classified against the mid-gray level.

    Args:
        image (ndarray[uint8]): 2D grayscale image.
        radius (int): Radius of the circular window.
        contrast (int): Minimal local contrast to use the local midpoint.

    Returns:
        ndarray[bool]: Foreground mask.
    """
    footprint = disk(radius)
    local_max = rank.maximum(image, footprint).astype(int)
    local_min = rank.minimum(image, footprint).astype(int)
    mid = (local_max + local_min) // 2
    low_contrast = (local_max - local_min) < contrast
    return _flat_fallback(image >= mid, low_contrast, mid)


def niblack_mask(image: np.ndarray, radius: int, k: float = NIBLACK_K, bias: float = NIBLACK_BIAS) -> np.ndarray:
    """
    Niblack local threshold: pixel >= window mean + k * window std + bias.

    The square window has side 2 * radius + 1 and its statistics only count pixels inside
    the image.

    Args:
        image (ndarray[uint8]): 2D grayscale image.
        radius (int): Half side of the square window.
        k (float): Weight of the local standard deviation.
        bias (float): Additive bias of the threshold.

    Returns:
        ndarray[bool]: Foreground mask.
    """
    size = 2 * radius + 1
    im = image.astype(float)

    # window sums normalised by the number of valid pixels
    count = spi.uniform_filter(np.ones_like(im), size=size, mode='constant', cval=0)
    mean = spi.uniform_filter(im, size=size, mode='constant', cval=0) / count
    mean_sq = spi.uniform_filter(im ** 2, size=size, mode='constant', cval=0) / count
    std = np.sqrt(np.maximum(mean_sq - mean ** 2, 0))

    flat = spi.maximum_filter(image, size=size, mode='nearest') == spi.minimum_filter(image, size=size, mode='nearest')
    return _flat_fallback(im >= mean + k * std + bias, flat, image)


def threshold(image: np.ndarray, locality=ThresholdLocality.GLOBAL,
              algorithm=LocalThresholdAlgorithm.OTSU, radius: int = 15) -> np.ndarray:
    """
    Threshold an 8-bit image with the selected algorithm.

    Args:
        image (ndarray[uint8]): 2D grayscale image.
        locality (ThresholdLocality or str): GLOBAL or LOCAL.
        algorithm (LocalThresholdAlgorithm or str): Local algorithm, ignored for GLOBAL.
        radius (int): Local window radius in pixels.

    Returns:
        ndarray[bool]: Foreground mask with the shape of `image`.

    Raises:
        ConfigurationError: If the locality or the algorithm is not recognised.
    """
    locality = as_locality(locality)
    if locality is ThresholdLocality.GLOBAL:
        return otsu_mask(image)

    algorithm = as_local_algorithm(algorithm)
    if radius < 1:
        raise ConfigurationError(f"Local threshold radius must be at least 1, got {radius}")
    if algorithm is LocalThresholdAlgorithm.OTSU:
        return local_otsu_mask(image, radius)
    elif algorithm is LocalThresholdAlgorithm.BERNSEN:
        return bernsen_mask(image, radius)
    elif algorithm is LocalThresholdAlgorithm.NIBLACK:
        return niblack_mask(image, radius)
    raise ConfigurationError(f"Invalid local threshold algorithm selected: {algorithm}")
