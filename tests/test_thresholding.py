import numpy as np
import pytest

from errors import ConfigurationError
from parameters import ThresholdLocality, LocalThresholdAlgorithm
from thresholding import otsu_cut, otsu_mask, local_otsu_mask, bernsen_mask, niblack_mask, threshold

LOCAL_ALGORITHMS = list(LocalThresholdAlgorithm)


def test_otsu_separates_two_levels():
    image = np.full((20, 20), 50, dtype=np.uint8)
    image[5:10, 5:15] = 200
    cut = otsu_cut(image)
    assert 50 < cut <= 200
    assert np.array_equal(otsu_mask(image), image == 200)


@pytest.mark.parametrize('value', [0, 100, 255])
def test_uniform_image_has_no_global_foreground(value):
    image = np.full((16, 16), value, dtype=np.uint8)
    assert otsu_cut(image) is None
    assert not np.any(otsu_mask(image))


@pytest.mark.parametrize('algorithm', LOCAL_ALGORITHMS)
def test_blank_image_has_no_local_foreground(algorithm):
    image = np.zeros((32, 32), dtype=np.uint8)
    assert not np.any(threshold(image, ThresholdLocality.LOCAL, algorithm, radius=5))


@pytest.mark.parametrize('algorithm', LOCAL_ALGORITHMS)
def test_local_threshold_finds_disk(algorithm, draw_disks):
    image = draw_disks((60, 60), [(30, 30)], radius=8)
    mask = threshold(image, ThresholdLocality.LOCAL, algorithm, radius=15)
    assert mask.shape == image.shape
    assert mask.dtype == bool
    assert np.array_equal(mask, image > 0)


@pytest.mark.parametrize('algorithm', LOCAL_ALGORITHMS)
def test_windows_are_clipped_at_border(algorithm, draw_disks):
    image = draw_disks((40, 40), [(3, 3)], radius=4)
    mask = threshold(image, ThresholdLocality.LOCAL, algorithm, radius=6)
    assert np.array_equal(mask, image > 0)


def test_local_otsu_keeps_background_of_two_level_windows():
    image = np.zeros((9, 9), dtype=np.uint8)
    image[4, 4] = 200
    mask = local_otsu_mask(image, 4)
    assert mask.sum() == 1
    assert mask[4, 4]


def test_bright_flat_windows_are_foreground():
    image = np.full((20, 20), 150, dtype=np.uint8)
    image[10, 10] = 155
    assert np.all(bernsen_mask(image, 3))
    assert np.all(local_otsu_mask(np.full((20, 20), 150, dtype=np.uint8), 3))
    assert np.all(niblack_mask(np.full((20, 20), 150, dtype=np.uint8), 3))


def test_bernsen_uses_local_midpoint_with_contrast():
    image = np.full((20, 20), 20, dtype=np.uint8)
    image[8:12, 8:12] = 90
    mask = bernsen_mask(image, 4)
    # contrast 70 around the square, midpoint 55
    assert np.all(mask[8:12, 8:12])
    assert not mask[6, 6]


def test_global_ignores_local_algorithm():
    image = np.zeros((10, 10), dtype=np.uint8)
    image[2:5, 2:5] = 180
    assert np.array_equal(threshold(image, ThresholdLocality.GLOBAL, 'bernsen'), otsu_mask(image))


def test_string_selectors():
    image = np.zeros((30, 30), dtype=np.uint8)
    image[10:20, 10:20] = 200
    expected = threshold(image, ThresholdLocality.LOCAL, LocalThresholdAlgorithm.NIBLACK, radius=5)
    assert np.array_equal(threshold(image, 'Local', 'niblack', radius=5), expected)


@pytest.mark.parametrize('locality, algorithm', [('regional', 'otsu'), ('local', 'sauvola'), (None, 'otsu'),
                                                 ('local', 3)])
def test_invalid_selectors(locality, algorithm):
    image = np.zeros((10, 10), dtype=np.uint8)
    with pytest.raises(ConfigurationError):
        threshold(image, locality, algorithm)


def test_invalid_radius():
    with pytest.raises(ConfigurationError):
        threshold(np.zeros((10, 10), dtype=np.uint8), 'local', 'otsu', radius=0)
