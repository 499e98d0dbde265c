"""
data_matrix.py

Module for representing one multi-channel, possibly multi-slice microscopy image.
Defines the DataMatrix class to hold the raw pixel data in a fixed axis order and
hand out single channels for segmentation and intensity measurements.

Classes:
    DataMatrix: Holds (Z, Y, X, C) image data and serves per-channel planes.
"""

import numpy as np

from errors import ChannelUnavailableError

AXES = 'ZYXC'


class DataMatrix:
    """
    Encapsulates the pixel data of one image with all its channels and slices.

    The data is stored with the axes (Z, Y, X, C) where:
        Z: number of depth slices (1 for a flat image),
        Y, X: spatial dimensions (height, width),
        C: number of channels.

    Attributes:
        name (str): Image name, e.g. the file name it was read from.
        dims (dict): Mapping with keys 'Z', 'Y', 'X', 'C' describing data shape.
        data (ndarray): Read-only view of the input data with shape (Z, Y, X, C).
    """

    def __init__(self, data: np.ndarray, axes: str = 'YXC', name: str = ''):
        """
        Initializes the DataMatrix with raw data and the order of its axes.

        Args:
            data (array-like): Image data whose dimensions are described by `axes`.
            axes (str): Axis names of `data`, a permutation of 'YX' plus optionally 'Z' and 'C'.
                Missing 'Z' or 'C' axes are added with size 1.
            name (str): Image name.

        Raises:
            ValueError: If `axes` does not describe `data`.
        """
        data = np.asarray(data)
        axes = axes.upper()
        if len(axes) != data.ndim:
            raise ValueError(f"Axes {axes!r} do not match data with {data.ndim} dimensions")
        if len(set(axes)) != len(axes) or not set(axes) <= set(AXES) or not {'Y', 'X'} <= set(axes):
            raise ValueError(f"Invalid axes {axes!r}, expected a subset of {AXES!r} containing 'Y' and 'X'")

        for axis in AXES:
            if axis not in axes:
                data = data[..., None]
                axes += axis
        data = np.transpose(data, [axes.index(axis) for axis in AXES])
        data = data.view()
        data.setflags(write=False)

        self.name: str = name
        self.data: np.ndarray = data
        self.dims: dict = dict(zip(AXES, data.shape))

    @classmethod
    def from_channels(cls, channels: list[np.ndarray], name: str = '') -> 'DataMatrix':
        """
        Build a DataMatrix from a list of per-channel (Y, X) images or (Z, Y, X) stacks.

        Raises:
            ValueError: If the channels differ in shape.
        """
        channels = [np.asarray(c) for c in channels]
        if len(channels) == 0:
            raise ValueError("At least one channel is needed")
        if any(c.shape != channels[0].shape for c in channels):
            raise ValueError(f"Channels differ in shape: {[c.shape for c in channels]}")
        axes = 'YXC' if channels[0].ndim == 2 else 'ZYXC'
        return cls(np.stack(channels, axis=-1), axes, name)

    @property
    def n_channels(self) -> int:
        return self.dims['C']

    def channel(self, c: int) -> np.ndarray:
        """
        Return one channel of every slice.

        Args:
            c (int): Channel index.

        Returns:
            ndarray: Read-only (Z, Y, X) stack.

        Raises:
            ChannelUnavailableError: If the image has no channel `c`.
        """
        if c is None or not 0 <= c < self.n_channels:
            raise ChannelUnavailableError(c, self.n_channels)
        return self.data[..., c]

    def projection(self, c: int) -> np.ndarray:
        """
        Maximum-intensity projection of one channel over the depth slices.

        Args:
            c (int): Channel index.

        Returns:
            ndarray: (Y, X) plane with the raw intensities.

        Raises:
            ChannelUnavailableError: If the image has no channel `c`.
        """
        return np.max(self.channel(c), axis=0)

    def __repr__(self):
        return f"DataMatrix(name={self.name!r}, dims={self.dims}, dtype={self.data.dtype})"
