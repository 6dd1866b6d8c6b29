class PolestarError(Exception):
    """Base exception for Polestar errors."""


class ServiceError(PolestarError):
    """Raised for service-layer failures."""


class PolarAlignError(ServiceError):
    """Raised when a polar-alignment operation cannot produce a result."""


class InputUnavailableError(PolarAlignError):
    """Raised when an image or pixel has no usable coordinate solution."""


class SampleLimitError(PolarAlignError):
    """Raised when a session already holds its three samples."""


class InsufficientSamplesError(PolarAlignError):
    """Raised when the axis is requested without exactly three samples."""


class DegenerateGeometryError(PolarAlignError):
    """Raised when the samples do not determine a rotation axis."""


class SearchNonConvergenceError(PolarAlignError):
    """Raised when a search finds no acceptable solution."""


class AxisNotComputedError(PolarAlignError):
    """Raised for operations that need the mount axis before it is known."""
