"""
segmentation.py

Module segmenting one grayscale channel into individual cells.

The pipeline runs these stages in order, each producing a new buffer:
    1. conversion to 8-bit grayscale (after a maximum projection of depth slices),
    2. optional rolling-ball background subtraction,
    3. global or local thresholding,
    4. optional despeckling by a median filter,
    5. removal of axon-like line structures,
    6. optional Gaussian blur of the mask followed by a second global threshold,
    7. watershed separation of touching cells.
A caller may abandon an image between stages through a `should_stop` callable.

Functions:
    max_projection(image): Maximum-intensity projection of a (Z, H, W) stack.
    to_gray8(image): Convert a 2D image into 8-bit grayscale.
    subtract_background(image, radius): Rolling-ball background subtraction.
    rank_kernel(radius): Circular footprint of a median filter.
    despeckle(mask, radius): Median filter of a binary mask.
    blur_and_rethreshold(mask, sigma): Blur the mask and threshold it again.
    separate_labels(labels): Binary mask whose labels are 8-disconnected from each other.
    watershed_separate(mask): Split touching blobs along distance-map ridges.
    preprocess(image, params, should_stop): Stages 1 to 6.
    segment(image, params, should_stop): Stages 1 to 7.
    extract_cells(image, params, should_stop): Segment and extract CellRegions.
"""

import numpy as np
import scipy.ndimage as spi
from skimage.measure import label
from skimage.morphology import h_maxima
from skimage.restoration import rolling_ball
from skimage.segmentation import watershed

from cell_region import CellRegion
from constants import WATERSHED_H
from errors import AnalysisCancelled
from line_detection import suppress_axons
from parameters import PreprocessingParameters
from segments import Segments
from thresholding import threshold, otsu_mask


def _checkpoint(should_stop):
    if should_stop is not None and should_stop():
        raise AnalysisCancelled('Image processing was cancelled.')


def max_projection(image: np.ndarray) -> np.ndarray:
    """
    Flatten depth slices into one plane.

    Args:
        image (ndarray): (H, W) image or (Z, H, W) stack.

    Returns:
        ndarray[H, W]: The image itself for 2D input, the maximum over Z otherwise.
    """
    image = np.asarray(image)
    if image.ndim == 2:
        return image
    if image.ndim == 3:
        return np.max(image, axis=0)
    raise ValueError(f"Expected a 2D image or a 3D stack, got shape {image.shape}")


def to_gray8(image: np.ndarray) -> np.ndarray:
    """
    Convert an image into 8-bit grayscale.

    8-bit images are copied, boolean images map to 0 and 255 and other types are scaled
    linearly from their minimum and maximum to [0, 255].

    Args:
        image (ndarray[H, W]): Image of any numeric type.

    Returns:
        ndarray[uint8]: New 8-bit image, all zero for a uniform image.
    """
    if image.dtype == np.uint8:
        return image.copy()
    if image.dtype == bool:
        return image.astype(np.uint8) * 255

    im = image.astype(float)
    lo, hi = np.min(im), np.max(im)
    if hi == lo:
        return np.zeros(im.shape, dtype=np.uint8)
    return np.round((im - lo) / (hi - lo) * 255).astype(np.uint8)


def subtract_background(image: np.ndarray, radius: float) -> np.ndarray:
    """
    Remove a smooth illumination background estimated by a rolling ball.

    Args:
        image (ndarray[uint8]): 8-bit grayscale image.
        radius (float): Ball radius, the expected largest cell diameter.

    Returns:
        ndarray[uint8]: Background-subtracted image.
    """
    im = image.astype(float)
    background = rolling_ball(im, radius=radius)
    return np.clip(np.round(im - background), 0, 255).astype(np.uint8)


def rank_kernel(radius: float) -> np.ndarray:
    """
    Circular footprint of a rank filter, (x^2 + y^2 <= radius^2 + 1).

    A radius of 1 gives the full 3x3 neighborhood.

    Args:
        radius (float): Filter radius in pixels.

    Returns:
        ndarray[bool]: Square footprint with the circular kernel.
    """
    r = int(np.floor(np.sqrt(radius ** 2 + 1)))
    yy, xx = np.mgrid[-r:r + 1, -r:r + 1]
    return (xx ** 2 + yy ** 2) <= radius ** 2 + 1


def despeckle(mask: np.ndarray, radius: float) -> np.ndarray:
    """
    Remove isolated noise pixels with a median filter.

    Args:
        mask (ndarray[bool]): Binary mask.
        radius (float): Median filter radius; below 1 the mask is only copied.

    Returns:
        ndarray[bool]: Filtered mask.
    """
    if radius < 1:
        return mask.copy()
    filtered = spi.median_filter(mask.astype(np.uint8), footprint=rank_kernel(radius), mode='nearest')
    return filtered > 0


def blur_and_rethreshold(mask: np.ndarray, sigma: float) -> np.ndarray:
    """
    Merge adjacent speckles by blurring the mask and applying a global Otsu threshold again.

    Args:
        mask (ndarray[bool]): Binary mask.
        sigma (float): Gaussian sigma; 0 leaves the mask unchanged.

    Returns:
        ndarray[bool]: Rethresholded mask.
    """
    if sigma <= 0:
        return mask.copy()
    blurred = spi.gaussian_filter(mask.astype(float) * 255, sigma=sigma)
    return otsu_mask(np.clip(np.round(blurred), 0, 255).astype(np.uint8))


def _emptied(labels: np.ndarray, cleared: np.ndarray) -> np.ndarray:
    """Labels that would lose all of their pixels."""
    positive = labels > 0
    return np.setdiff1d(np.unique(labels[positive]), np.unique(labels[positive & ~cleared]))


def separate_labels(labels: np.ndarray) -> np.ndarray:
    """
    Turn a label image into a mask where different labels never touch.

    Pixels of a label that are 8-adjacent to a smaller positive label are cleared, leaving
    a one pixel gap between touching labels. A label that would lose all of its pixels
    (e.g. one enclosed by a lower label) is kept and its neighbors give way instead.
    Where that would empty a neighbor as well, both labels keep their pixels and stay in
    contact, so no label ever disappears.

    Args:
        labels (ndarray[int]): Label image, 0 for background.

    Returns:
        ndarray[bool]: Foreground mask.
    """
    positive = labels > 0
    if not np.any(positive):
        return positive
    top = int(labels.max()) + 1
    lowest_nbr = spi.minimum_filter(np.where(positive, labels, top), size=3, mode='constant', cval=top)
    cleared = positive & (lowest_nbr < labels)

    emptied = _emptied(labels, cleared)
    if emptied.size:
        kept = np.isin(labels, emptied)
        cleared &= ~kept
        contact = positive & ~kept & spi.binary_dilation(kept, structure=np.ones((3, 3), dtype=bool))
        contact &= ~np.isin(labels, _emptied(labels, cleared | contact))
        cleared |= contact
    return positive & ~cleared


def watershed_separate(mask: np.ndarray) -> np.ndarray:
    """
    Split touching blobs along ridge lines of their distance transform.

    Each maximum of the Euclidean distance map with height of at least WATERSHED_H seeds
    one basin, so two touching round cells end up as two separate components.

    Args:
        mask (ndarray[bool]): Binary mask.

    Returns:
        ndarray[bool]: Separated mask.
    """
    if not np.any(mask):
        return mask.copy()
    dist = spi.distance_transform_edt(mask)
    markers = label(h_maxima(dist, WATERSHED_H), connectivity=2)
    labels = watershed(-dist, markers, mask=mask)
    # components without a seed keep their pixels
    return separate_labels(labels) | (mask & (labels == 0))


def preprocess(image: np.ndarray, params: PreprocessingParameters, should_stop=None) -> np.ndarray:
    """
    Run the stages before watershed separation.

    Args:
        image (ndarray[H, W]): Grayscale image, not modified.
        params (PreprocessingParameters): Pipeline options.
        should_stop (callable or None): Polled between stages.

    Returns:
        ndarray[bool]: Thresholded mask with axons removed.

    Raises:
        AnalysisCancelled: If `should_stop()` returned True.
    """
    gray = to_gray8(image)
    _checkpoint(should_stop)

    if params.should_subtract_background:
        gray = subtract_background(gray, params.largest_cell_diameter)
        _checkpoint(should_stop)

    mask = threshold(gray, params.threshold_locality, params.local_threshold_algorithm, params.window_radius)
    _checkpoint(should_stop)

    if params.should_despeckle:
        mask = despeckle(mask, params.despeckle_radius)
        _checkpoint(should_stop)

    mask = suppress_axons(mask)
    _checkpoint(should_stop)

    if params.should_gaussian_blur:
        mask = blur_and_rethreshold(mask, params.gaussian_blur_sigma)
        _checkpoint(should_stop)

    return mask


def segment(image: np.ndarray, params: PreprocessingParameters, should_stop=None) -> np.ndarray:
    """
    Segment a grayscale image or stack into a mask of separated cells.

    Args:
        image (ndarray): (H, W) image or (Z, H, W) stack, projected over Z first.
        params (PreprocessingParameters): Pipeline options.
        should_stop (callable or None): Polled between stages.

    Returns:
        ndarray[bool]: Mask ready for region extraction.
    """
    mask = preprocess(max_projection(image), params, should_stop)
    mask = watershed_separate(mask)
    _checkpoint(should_stop)
    return mask


def extract_cells(image: np.ndarray, params: PreprocessingParameters, should_stop=None) -> list[CellRegion]:
    """
    Segment an image and extract one CellRegion per separated cell.

    Args:
        image (ndarray): (H, W) image or (Z, H, W) stack.
        params (PreprocessingParameters): Pipeline options.
        should_stop (callable or None): Polled between stages.

    Returns:
        list[CellRegion]: Detected cells, empty for a blank image.
    """
    return Segments(segment(image, params, should_stop), params.cell_diameter_range).cells
