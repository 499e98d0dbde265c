import numpy as np
import pytest
from skimage.measure import label

from cell_region import CellRegion
from errors import AnalysisCancelled
from parameters import PreprocessingParameters
from segmentation import (to_gray8, max_projection, subtract_background, rank_kernel, despeckle, separate_labels,
                          watershed_separate, extract_cells, segment)
from segments import Segments


def test_to_gray8():
    assert np.array_equal(to_gray8(np.array([[0, 500, 1000]], dtype=np.uint16)), [[0, 128, 255]])
    assert np.array_equal(to_gray8(np.array([[True, False]])), [[255, 0]])
    assert not np.any(to_gray8(np.full((3, 3), 7.5)))
    image = np.array([[1, 2]], dtype=np.uint8)
    assert to_gray8(image) is not image


def test_max_projection():
    stack = np.zeros((3, 4, 4), dtype=np.uint8)
    stack[0, 0, 0] = 5
    stack[2, 3, 3] = 9
    projected = max_projection(stack)
    assert projected.shape == (4, 4)
    assert projected[0, 0] == 5 and projected[3, 3] == 9
    with pytest.raises(ValueError):
        max_projection(np.zeros((2, 2, 2, 2)))


def test_subtract_background(draw_disks):
    image = draw_disks((60, 60), [(30, 30)], radius=5, value=200)
    image[image == 0] = 50
    result = subtract_background(image, 30)
    assert np.all(result[:10, :10] <= 1)
    assert result[30, 30] >= 140


def test_rank_kernel():
    assert np.all(rank_kernel(1))
    assert rank_kernel(1).shape == (3, 3)
    kernel = rank_kernel(2)
    assert kernel.shape == (5, 5)
    assert not kernel[0, 0] and kernel[0, 2] and kernel[1, 1]


def test_despeckle_removes_isolated_pixel():
    mask = np.zeros((9, 9), dtype=bool)
    mask[4, 4] = True
    mask[0:3, 6:9] = True
    result = despeckle(mask, 1)
    assert not result[4, 4]
    assert result[1, 7]


def test_separate_labels():
    labels = np.array([[1, 1, 2, 2],
                       [0, 0, 0, 3]])
    assert separate_labels(labels).tolist() == [[True, True, False, True],
                                                [False, False, False, False]]


def test_separate_labels_keeps_enclosed_label():
    labels = np.ones((5, 5), dtype=int)
    labels[2, 2] = 2
    result = separate_labels(labels)

    assert result[2, 2]
    assert not np.any(result[1:4, 1:4] & (labels == 1))
    assert np.all(result[0]) and np.all(result[4])
    assert np.max(label(result, connectivity=2)) == 2


def test_separate_labels_never_erases_a_label():
    labels = np.array([[1, 1, 1],
                       [1, 2, 1],
                       [1, 1, 1]])
    result = separate_labels(labels)
    assert set(np.unique(labels[result])) == {1, 2}


@pytest.mark.parametrize('centers', [[(30, 30), (30, 49)], [(30, 30), (30, 48)], [(30, 30), (30, 44)]])
def test_watershed_splits_touching_cells(centers, draw_disks):
    mask = draw_disks((60, 80), centers, radius=10) > 0
    assert np.max(label(mask, connectivity=2)) == 1

    separated = watershed_separate(mask)
    cells = Segments(separated).cells
    assert len(cells) == 2
    assert all(cell.area > 200 for cell in cells)
    assert not np.any(separated & ~mask)


def test_watershed_keeps_single_cell(draw_disks):
    mask = draw_disks((40, 40), [(20, 20)], radius=10) > 0
    assert len(Segments(watershed_separate(mask)).cells) == 1


@pytest.mark.parametrize('image', [np.zeros((50, 50), dtype=np.uint8), np.zeros((3, 50, 50), dtype=np.uint16),
                                   np.full((50, 50), 0.25)])
def test_blank_image_has_no_cells(image):
    assert extract_cells(image, PreprocessingParameters()) == []


def test_separated_cells_with_defaults(draw_disks):
    image = draw_disks((80, 80), [(20, 20), (55, 60)], radius=8)
    cells = extract_cells(image, PreprocessingParameters())
    assert len(cells) == 2
    assert cells[0].center == pytest.approx((20, 20), abs=1.5)


@pytest.mark.parametrize('algorithm', ['otsu', 'bernsen', 'niblack'])
def test_local_threshold_pipeline_keeps_cell_shapes(algorithm, draw_disks):
    centers = [(20, 20), (55, 60)]
    image = draw_disks((80, 80), centers, radius=8)
    params = PreprocessingParameters(threshold_locality='local', local_threshold_algorithm=algorithm,
                                     should_subtract_background=False, should_despeckle=False,
                                     should_gaussian_blur=False)
    cells = extract_cells(image, params)

    expected = [CellRegion(np.argwhere(draw_disks((80, 80), [center], radius=8))) for center in centers]
    assert [cell.area for cell in cells] == [cell.area for cell in expected]
    assert cells == expected


def test_despeckle_option(draw_disks, plain_params):
    image = draw_disks((60, 60), [(30, 30)], radius=8)
    image[5, 5] = 200

    assert len(extract_cells(image, plain_params)) == 2

    params = PreprocessingParameters(should_subtract_background=False, should_gaussian_blur=False)
    cells = extract_cells(image, params)
    assert len(cells) == 1
    assert (5, 5) not in cells[0]


def test_stack_is_projected(draw_disks, plain_params):
    stack = np.zeros((2, 60, 60), dtype=np.uint8)
    stack[0] = draw_disks((60, 60), [(15, 15)])
    stack[1] = draw_disks((60, 60), [(45, 45)])
    assert len(extract_cells(stack, plain_params)) == 2


def test_input_is_not_modified(draw_disks):
    image = draw_disks((40, 40), [(20, 20)])
    before = image.copy()
    segment(image, PreprocessingParameters())
    assert np.array_equal(image, before)


def test_cancellation(draw_disks):
    image = draw_disks((40, 40), [(20, 20)])
    with pytest.raises(AnalysisCancelled):
        extract_cells(image, PreprocessingParameters(), should_stop=lambda: True)

    calls = []

    def stop_later():
        calls.append(1)
        return len(calls) >= 3

    with pytest.raises(AnalysisCancelled):
        extract_cells(image, PreprocessingParameters(), should_stop=stop_later)
    assert len(calls) == 3
