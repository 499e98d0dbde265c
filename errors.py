"""
errors.py

Exceptions raised by the segmentation and colocalization pipeline.

Classes:
    ConfigurationError: Invalid selector or out-of-range parameter.
    ChannelUnavailableError: A requested channel does not exist on the image.
    AnalysisCancelled: The caller asked to abandon an image between stages.
"""


class ConfigurationError(ValueError):
    """
    Raised for an unknown algorithm selector or an out-of-range parameter.

    This is a programming error of the caller and is never retried.
    """


class ChannelUnavailableError(IndexError):
    """
    Raised when a requested channel index does not exist on the supplied image.

    Attributes:
        channel (int): Requested channel index.
        n_channels (int): Number of channels present on the image.
    """

    def __init__(self, channel: int, n_channels: int):
        self.channel = channel
        self.n_channels = n_channels
        super().__init__(f"Channel {channel} does not exist, image has {n_channels} channel(s).")

    def __reduce__(self):
        return self.__class__, (self.channel, self.n_channels)


class AnalysisCancelled(RuntimeError):
    """
    Raised between pipeline stages when processing of an image was abandoned.
    """
