class FrameGrabberError(Exception):
    """Base class for errors raised by frame_grabber."""


class ConfigError(FrameGrabberError):
    """Configuration could not be read or is missing a required value."""


class CaptureError(FrameGrabberError):
    """The transcoder failed to produce a frame."""


class CaptureTimeout(CaptureError):
    """The transcoder did not finish before the per-attempt deadline."""


class DeliveryError(FrameGrabberError):
    """A captured frame could not be saved or posted."""
