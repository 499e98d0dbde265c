import pickle

import numpy as np
import pytest

from data_matrix import DataMatrix
from errors import ChannelUnavailableError


def test_missing_axes_are_added():
    image = DataMatrix(np.zeros((4, 5), dtype=np.uint8), axes='YX')
    assert image.dims == {'Z': 1, 'Y': 4, 'X': 5, 'C': 1}
    assert image.n_channels == 1


def test_axes_are_reordered():
    data = np.zeros((2, 3, 4, 5), dtype=np.uint16)  # C, Z, Y, X
    data[1, 2, 0, 0] = 7
    image = DataMatrix(data, axes='czyx')
    assert image.data.shape == (3, 4, 5, 2)
    assert image.channel(1)[2, 0, 0] == 7


@pytest.mark.parametrize('axes', ['YX', 'YXCC', 'YXT', 'ZC'])
def test_invalid_axes(axes):
    with pytest.raises(ValueError):
        DataMatrix(np.zeros((2, 2, 2)), axes=axes)


def test_data_is_read_only():
    data = np.zeros((3, 3, 2))
    image = DataMatrix(data)
    with pytest.raises(ValueError):
        image.data[0, 0, 0, 0] = 1
    assert data.flags.writeable


def test_from_channels():
    a = np.zeros((6, 7), dtype=np.uint8)
    b = np.ones((6, 7), dtype=np.uint8)
    image = DataMatrix.from_channels([a, b], name='well_A1')
    assert image.n_channels == 2
    assert image.name == 'well_A1'
    assert np.array_equal(image.projection(1), b)
    with pytest.raises(ValueError):
        DataMatrix.from_channels([a, np.zeros((3, 3))])
    with pytest.raises(ValueError):
        DataMatrix.from_channels([])


def test_projection_takes_maximum_over_slices():
    stack = np.zeros((3, 4, 4), dtype=np.uint16)
    stack[0, 1, 1] = 10
    stack[2, 1, 1] = 30
    stack[1, 2, 2] = 5
    image = DataMatrix.from_channels([stack])
    projected = image.projection(0)
    assert projected.shape == (4, 4)
    assert projected[1, 1] == 30 and projected[2, 2] == 5


@pytest.mark.parametrize('c', [2, -1, None])
def test_channel_unavailable(c):
    image = DataMatrix(np.zeros((4, 4, 2)))
    with pytest.raises(ChannelUnavailableError) as info:
        image.channel(c)
    assert info.value.channel == c
    assert info.value.n_channels == 2
    assert isinstance(info.value, IndexError)


def test_channel_error_survives_pickling():
    error = pickle.loads(pickle.dumps(ChannelUnavailableError(3, 2)))
    assert (error.channel, error.n_channels) == (3, 2)
    assert str(error) == "Channel 3 does not exist, image has 2 channel(s)."
