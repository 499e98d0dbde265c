import numpy as np
import pytest
from skimage.draw import disk

from parameters import PreprocessingParameters


def _draw_disks(shape, centers, radius=8, value=200, dtype=np.uint8):
    image = np.zeros(shape, dtype=dtype)
    for center in centers:
        rr, cc = disk(center, radius, shape=shape)
        image[rr, cc] = value
    return image


@pytest.fixture
def draw_disks():
    """Factory drawing filled disks of one value on a black image."""
    return _draw_disks


@pytest.fixture
def plain_params():
    """Pipeline options keeping the thresholded shapes unchanged."""
    return PreprocessingParameters(should_subtract_background=False,
                                   should_despeckle=False,
                                   should_gaussian_blur=False)
